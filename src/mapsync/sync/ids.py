"""Feature id allocation owned by a client session."""

from __future__ import annotations

import uuid


class IdAllocator:
    """Hands out ids that are unique across clients.

    Ids are ``<prefix>-<uuid4 hex>``, so two clients drawing at the same
    moment never collide.
    """

    def __init__(self, prefix: str = "f") -> None:
        self._prefix = prefix
        self._issued: int = 0

    @property
    def issued(self) -> int:
        return self._issued

    def next_id(self) -> str:
        self._issued += 1
        return f"{self._prefix}-{uuid.uuid4().hex}"
