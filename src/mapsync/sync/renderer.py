"""Renderer interface and a headless in-memory implementation.

The reconciliation engine only talks to a renderer through ``Renderer``.
A map widget adapter implements it for a real drawing toolkit;
``MemoryRenderer`` implements it without one, for the CLI and tests.
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from mapsync.layers.feature import Feature, Geometry
from mapsync.sync.styles import Style


class RenderPath(str, Enum):
    """How a feature becomes a renderable object."""

    CIRCLE = "circle"      # center + radius
    MARKER = "marker"      # icon at a point
    GEOMETRY = "geometry"  # generic geometry-to-layer conversion


class Renderer(Protocol):
    def create(self, feature: Feature, path: RenderPath) -> Any | None:
        """Create a renderable object; return its handle or None on failure."""

    def destroy(self, handle: Any) -> None: ...

    def apply_style(self, handle: Any, style: Style) -> None: ...

    def on_click(self, handle: Any, callback: Callable[[], None]) -> None: ...

    def supports_editing(self, handle: Any) -> bool: ...

    def editing_enabled(self, handle: Any) -> bool: ...

    def set_editing(self, handle: Any, enabled: bool) -> None: ...

    def read_geometry(self, handle: Any) -> Geometry:
        """Current geometry of a handle (after a user draw or edit)."""

    def read_radius(self, handle: Any) -> float | None: ...


@dataclass(eq=False)
class MemoryLayer:
    """A renderable object held by MemoryRenderer."""

    layer_id: int
    geometry: Geometry
    path: RenderPath
    radius: float | None = None
    style: Style | None = None
    editable: bool = True
    editing: bool = False
    style_count: int = 0
    click_callbacks: list = field(default_factory=list)


class MemoryRenderer:
    """Renderer that keeps layers in a dict and counts every operation."""

    def __init__(self, editable: bool = True) -> None:
        self._ids = itertools.count(1)
        self._editable = editable
        self.layers: dict[int, MemoryLayer] = {}
        self.created: int = 0
        self.destroyed: int = 0
        self.styled: int = 0

    # --- Renderer API ---

    def create(self, feature: Feature, path: RenderPath) -> MemoryLayer | None:
        if feature.geometry.type is None:
            return None
        layer = MemoryLayer(
            layer_id=next(self._ids),
            geometry=Geometry(feature.geometry.type, copy.deepcopy(feature.geometry.coordinates)),
            path=path,
            radius=feature.properties.get("radius") if path is RenderPath.CIRCLE else None,
            editable=self._editable,
        )
        self.layers[layer.layer_id] = layer
        self.created += 1
        return layer

    def destroy(self, handle: MemoryLayer) -> None:
        if self.layers.pop(handle.layer_id, None) is not None:
            self.destroyed += 1

    def apply_style(self, handle: MemoryLayer, style: Style) -> None:
        handle.style = style
        handle.style_count += 1
        self.styled += 1

    def on_click(self, handle: MemoryLayer, callback: Callable[[], None]) -> None:
        handle.click_callbacks.append(callback)

    def supports_editing(self, handle: MemoryLayer) -> bool:
        return handle.editable

    def editing_enabled(self, handle: MemoryLayer) -> bool:
        return handle.editing

    def set_editing(self, handle: MemoryLayer, enabled: bool) -> None:
        handle.editing = enabled

    def read_geometry(self, handle: MemoryLayer) -> Geometry:
        return Geometry(handle.geometry.type, copy.deepcopy(handle.geometry.coordinates))

    def read_radius(self, handle: MemoryLayer) -> float | None:
        return handle.radius

    # --- Simulated user interaction ---

    def draw(self, geometry: Geometry, radius: float | None = None) -> MemoryLayer:
        """A shape the user just finished drawing (not yet tracked)."""
        layer = MemoryLayer(
            layer_id=next(self._ids),
            geometry=geometry,
            path=RenderPath.CIRCLE if radius is not None else RenderPath.GEOMETRY,
            radius=radius,
            editable=self._editable,
        )
        self.layers[layer.layer_id] = layer
        return layer

    def move(self, handle: MemoryLayer, geometry: Geometry, radius: float | None = None) -> None:
        """The user reshaped ``handle`` in edit mode."""
        handle.geometry = geometry
        if radius is not None:
            handle.radius = radius

    def erase(self, handle: MemoryLayer) -> None:
        """The user deleted ``handle`` with the delete tool."""
        self.layers.pop(handle.layer_id, None)

    def click(self, handle: MemoryLayer) -> None:
        for callback in list(handle.click_callbacks):
            callback()
