"""Typed gesture events emitted by a renderer and consumed by the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mapsync.layers.feature import FeatureId


@dataclass(frozen=True)
class CreateGesture:
    """The user drew a new shape of ``kind`` ("marker", "polyline", ...)."""

    handle: Any
    kind: str
    radius: float | None = None


@dataclass(frozen=True)
class EditGesture:
    """The user finished reshaping these handles."""

    handles: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class DeleteGesture:
    """The user deleted these handles."""

    handles: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class EditSessionGesture:
    """Edit mode toggled on or off."""

    active: bool


@dataclass(frozen=True)
class SelectGesture:
    feature_id: FeatureId | None


Gesture = CreateGesture | EditGesture | DeleteGesture | EditSessionGesture | SelectGesture
