"""Initial bulk load of the shared feature set over HTTP.

The endpoint answers a GET with a single ``bulkAdd`` envelope.  Any
failure yields "no initial data"; there is no retry.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from mapsync.comms.envelope import BULK_ADD


def load_initial(url: str, client: httpx.Client | None = None, timeout: float = 10.0) -> dict | None:
    """Fetch the bulk packet from ``url``.

    Args:
        url: Bulk load endpoint.
        client: Optional httpx client (tests pass one with a mock transport).
        timeout: Request timeout in seconds when no client is given.

    Returns:
        The decoded JSON packet, or None on any failure.
    """
    try:
        if client is None:
            with httpx.Client(timeout=timeout) as own_client:
                resp = own_client.get(url)
        else:
            resp = client.get(url)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPError as e:
        logger.error(f"Failed to load initial map data: {e}")
    except ValueError as e:
        logger.error(f"Initial map data is not JSON: {e}")
    return None


def bulk_features(packet: Any) -> list[dict] | None:
    """Feature dicts from a ``bulkAdd`` packet, or None if it is not one."""
    if isinstance(packet, dict) and packet.get("type") == BULK_ADD and isinstance(packet.get("data"), list):
        return packet["data"]
    if packet is not None:
        logger.warning("Initial map data is not a bulkAdd packet; ignoring it")
    return None
