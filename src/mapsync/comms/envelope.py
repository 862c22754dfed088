"""Envelope — the wire message wrapping one mutation intent.

Wire shapes (UTF-8 JSON):
    {"type": "add",     "data": Feature}
    {"type": "modify",  "id": identifier, "data": Feature}
    {"type": "remove",  "id": identifier}
    {"type": "bulkAdd", "data": [Feature, ...]}
"""

from __future__ import annotations

import json
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from mapsync.errors import EnvelopeError, ProtocolError
from mapsync.layers.feature import Feature

ADD = "add"
MODIFY = "modify"
REMOVE = "remove"
BULK_ADD = "bulkAdd"

MESSAGE_TYPES = (ADD, MODIFY, REMOVE, BULK_ADD)


class Envelope(BaseModel):
    """A decoded broadcast message.

    ``data`` stays as plain JSON (a dict, or a list of dicts for bulkAdd);
    features are normalized by the validator after decode.
    """

    model_config = ConfigDict(extra="ignore")

    type: str
    id: Union[int, str, None] = None
    data: Any = None

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_updates(cls, payload: Any) -> Any:
        # Older peers sent the feature under "updates"
        if isinstance(payload, dict) and payload.get("data") is None and "updates" in payload:
            payload = {**payload, "data": payload["updates"]}
        return payload

    def to_wire(self) -> dict:
        """Dict carrying only the fields the message type defines."""
        if self.type == ADD:
            return {"type": ADD, "data": self.data}
        if self.type == MODIFY:
            return {"type": MODIFY, "id": self.id, "data": self.data}
        if self.type == REMOVE:
            return {"type": REMOVE, "id": self.id}
        if self.type == BULK_ADD:
            return {"type": BULK_ADD, "data": self.data}
        raise ProtocolError(f"Invalid message type: {self.type}")

    def encode(self) -> bytes:
        return json.dumps(self.to_wire()).encode("utf-8")


def _feature_json(data: Any) -> Any:
    if isinstance(data, Feature):
        return data.to_dict()
    return data


def build(msg_type: str, data: Any = None, feature_id: Any = None) -> Envelope:
    """Build an outbound Envelope for ``msg_type``.

    Raises:
        ProtocolError: Unknown type, or bulkAdd data that is not an array.
    """
    if msg_type == ADD:
        return Envelope(type=ADD, data=_feature_json(data))
    if msg_type == MODIFY:
        return Envelope(type=MODIFY, id=feature_id, data=_feature_json(data))
    if msg_type == REMOVE:
        return Envelope(type=REMOVE, id=feature_id)
    if msg_type == BULK_ADD:
        if not isinstance(data, (list, tuple)):
            raise ProtocolError(f"Invalid data for bulkAdd: expected an array, got {type(data).__name__}")
        return Envelope(type=BULK_ADD, data=[_feature_json(f) for f in data])
    raise ProtocolError(f"Invalid message type: {msg_type}")


def decode(body: bytes | str) -> Envelope:
    """Decode a wire body into an Envelope.

    Raises:
        EnvelopeError: Body is not UTF-8 JSON object of the envelope shape.
        ProtocolError: Unknown type, or bulkAdd data that is not an array.
    """
    try:
        text = body.decode("utf-8") if isinstance(body, (bytes, bytearray)) else body
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise EnvelopeError(f"Malformed message body: {e}") from e

    if not isinstance(payload, dict):
        raise EnvelopeError(f"Message body is not an object: {type(payload).__name__}")

    try:
        envelope = Envelope.model_validate(payload)
    except ValidationError as e:
        raise EnvelopeError(f"Envelope schema violation: {e.error_count()} error(s)") from e

    if envelope.type not in MESSAGE_TYPES:
        raise ProtocolError(f"Unknown message type: {envelope.type}")
    if envelope.type == BULK_ADD and not isinstance(envelope.data, list):
        raise ProtocolError("Invalid data for bulkAdd: expected an array")
    return envelope
