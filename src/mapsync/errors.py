"""Error types raised by the envelope codec.

These never escape the channel boundary: they are caught, logged and the
offending message is discarded.
"""

from __future__ import annotations


class MapSyncError(Exception):
    """Base class for mapsync errors."""


class EnvelopeError(MapSyncError):
    """A wire message could not be decoded (bad UTF-8, JSON or shape)."""


class ProtocolError(EnvelopeError):
    """A decoded message violates the protocol (unknown type, bad bulkAdd)."""
