"""ReconciliationEngine — keeps renderer layers consistent with the store.

Inbound direction: every store snapshot change runs a full diff against
the tracked layers (remove, then create / recreate / keep, then restyle).
Geometry changes always recreate the layer; property-only changes restyle
it in place.

Outbound direction: typed gestures from the renderer become Features,
are written to the store optimistically and published on the channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from loguru import logger

from mapsync.comms.envelope import ADD, MODIFY, REMOVE
from mapsync.layers import validator
from mapsync.layers.feature import CIRCLE, KIND_MARKER, POINT, Feature, FeatureId
from mapsync.layers.store import FeatureStore, Snapshot
from mapsync.sync.gestures import (
    CreateGesture,
    DeleteGesture,
    EditGesture,
    EditSessionGesture,
    Gesture,
    SelectGesture,
)
from mapsync.sync.ids import IdAllocator
from mapsync.sync.renderer import Renderer, RenderPath
from mapsync.sync.styles import default_properties, resolve_style


class Publisher(Protocol):
    def send(self, msg_type: str, data: Any = None, feature_id: Any = None) -> bool: ...


@dataclass
class TrackedLayer:
    """A renderer handle plus the cleaned feature last rendered into it."""

    handle: Any
    feature: Feature


@dataclass
class ReconcileReport:
    created: list = field(default_factory=list)
    recreated: list = field(default_factory=list)
    removed: list = field(default_factory=list)
    styled: list = field(default_factory=list)

    @property
    def structural_changes(self) -> int:
        return len(self.created) + len(self.recreated) + len(self.removed)


def render_path(feature: Feature) -> RenderPath:
    if feature.geometry.type == CIRCLE:
        return RenderPath.CIRCLE
    if feature.geometry.type == POINT and feature.kind == KIND_MARKER:
        return RenderPath.MARKER
    return RenderPath.GEOMETRY


def geometry_signature(feature: Feature) -> tuple:
    """What must match for a layer to be kept rather than recreated."""
    radius = feature.properties.get("radius") if feature.geometry.type == CIRCLE else None
    return (feature.geometry.type, feature.geometry.coordinates, radius)


class ReconciliationEngine:
    """Diffs the feature store against the renderer's live layers."""

    def __init__(
        self,
        renderer: Renderer,
        store: FeatureStore,
        publisher: Publisher | None = None,
        ids: IdAllocator | None = None,
    ) -> None:
        self._renderer = renderer
        self._store = store
        self._publisher = publisher
        self._ids = ids or IdAllocator()
        self._layers: dict[FeatureId, TrackedLayer] = {}
        self._selected_id: FeatureId | None = None
        self._editing_active = False
        self._select_listeners: list[Callable[[FeatureId | None], None]] = []
        self.last_report = ReconcileReport()
        store.subscribe(self.reconcile)

    @property
    def layers(self) -> dict[FeatureId, TrackedLayer]:
        return self._layers

    @property
    def selected_id(self) -> FeatureId | None:
        return self._selected_id

    @property
    def editing_active(self) -> bool:
        return self._editing_active

    def detach(self) -> None:
        """Stop following the store and destroy every tracked layer."""
        self._store.unsubscribe(self.reconcile)
        for tracked in self._layers.values():
            self._teardown(tracked.handle)
        self._layers.clear()

    def add_select_listener(self, listener: Callable[[FeatureId | None], None]) -> None:
        self._select_listeners.append(listener)

    # --- Inbound: snapshot -> layers ---

    def reconcile(self, snapshot: Snapshot | None = None) -> ReconcileReport:
        """Run one full diff of ``snapshot`` (default: current store)."""
        if snapshot is None:
            snapshot = self._store.snapshot
        report = ReconcileReport()
        present = {f.id for f in snapshot}

        for feature_id in [fid for fid in self._layers if fid not in present]:
            tracked = self._layers.pop(feature_id)
            self._teardown(tracked.handle)
            report.removed.append(feature_id)

        for feature in snapshot:
            cleaned = validator.clean(feature)
            tracked = self._layers.get(cleaned.id)

            if tracked is None:
                tracked = self._create(cleaned)
                if tracked is None:
                    continue
                report.created.append(cleaned.id)
            elif geometry_signature(tracked.feature) != geometry_signature(cleaned):
                self._teardown(tracked.handle)
                del self._layers[cleaned.id]
                tracked = self._create(cleaned)
                if tracked is None:
                    continue
                report.recreated.append(cleaned.id)
            else:
                tracked.feature = cleaned

            self._restyle(tracked)
            report.styled.append(cleaned.id)

        if self._selected_id is not None and self._selected_id not in present:
            self._selected_id = None
        self._sync_editing()

        if report.structural_changes:
            logger.debug(
                f"Reconciled {len(snapshot)} feature(s): {len(report.created)} created, "
                f"{len(report.recreated)} recreated, {len(report.removed)} removed"
            )
        self.last_report = report
        return report

    def _create(self, feature: Feature) -> TrackedLayer | None:
        handle = self._renderer.create(feature, render_path(feature))
        if handle is None:
            logger.error(f"Could not create layer for feature {feature.id} ({feature.geometry.type})")
            return None
        tracked = self._track(feature.id, handle, feature)
        if self._renderer.supports_editing(handle):
            self._renderer.set_editing(handle, False)
        return tracked

    def _track(self, feature_id: FeatureId, handle: Any, feature: Feature) -> TrackedLayer:
        tracked = TrackedLayer(handle=handle, feature=feature)
        self._layers[feature_id] = tracked
        self._renderer.on_click(handle, lambda: self.select(feature_id))
        return tracked

    def _teardown(self, handle: Any) -> None:
        if self._renderer.supports_editing(handle) and self._renderer.editing_enabled(handle):
            self._renderer.set_editing(handle, False)
        self._renderer.destroy(handle)

    def _restyle(self, tracked: TrackedLayer) -> None:
        highlighted = self._editing_active and tracked.feature.id == self._selected_id
        self._renderer.apply_style(tracked.handle, resolve_style(tracked.feature, highlighted))

    def _restyle_all(self) -> None:
        for tracked in self._layers.values():
            self._restyle(tracked)

    def _sync_editing(self) -> None:
        """Only the selected layer is editable, and only in edit mode."""
        for feature_id, tracked in self._layers.items():
            handle = tracked.handle
            if not self._renderer.supports_editing(handle):
                continue
            wanted = self._editing_active and feature_id == self._selected_id
            if self._renderer.editing_enabled(handle) != wanted:
                self._renderer.set_editing(handle, wanted)

    # --- Selection / edit mode ---

    def select(self, feature_id: FeatureId | None) -> None:
        previous = self._selected_id
        self._selected_id = feature_id
        if self._editing_active and previous != feature_id:
            self._restyle_all()
        self._sync_editing()
        for listener in list(self._select_listeners):
            listener(feature_id)

    def set_editing(self, active: bool) -> None:
        self._editing_active = active
        self._restyle_all()
        self._sync_editing()

    # --- Outbound: gestures -> store + channel ---

    def handle(self, gesture: Gesture) -> None:
        """Consume one renderer gesture synchronously."""
        if isinstance(gesture, CreateGesture):
            self._on_create(gesture)
        elif isinstance(gesture, EditGesture):
            self._on_edit(gesture)
        elif isinstance(gesture, DeleteGesture):
            self._on_delete(gesture)
        elif isinstance(gesture, EditSessionGesture):
            self.set_editing(gesture.active)
        elif isinstance(gesture, SelectGesture):
            self.select(gesture.feature_id)
        else:
            logger.warning(f"Unknown gesture {gesture!r}")

    def _publish(self, msg_type: str, data: Any = None, feature_id: Any = None) -> None:
        if self._publisher is not None:
            self._publisher.send(msg_type, data, feature_id)

    def _id_for(self, handle: Any) -> FeatureId | None:
        for feature_id, tracked in self._layers.items():
            if tracked.handle is handle:
                return feature_id
        return None

    def _on_create(self, gesture: CreateGesture) -> None:
        feature_id = self._ids.next_id()
        feature = validator.clean(Feature(
            id=feature_id,
            geometry=self._renderer.read_geometry(gesture.handle),
            properties=default_properties(gesture.kind, gesture.radius),
        ))
        self._renderer.apply_style(gesture.handle, resolve_style(feature))
        self._track(feature_id, gesture.handle, feature)
        logger.info(f"Created {gesture.kind} {feature_id}")
        self._store.add(feature)
        self._publish(ADD, feature)

    def _on_edit(self, gesture: EditGesture) -> None:
        for handle in gesture.handles:
            feature_id = self._id_for(handle)
            existing = self._store.get(feature_id) if feature_id is not None else None
            if existing is None:
                logger.warning(f"Edited layer not found in current features: {feature_id}")
                continue
            updated = existing.with_geometry(self._renderer.read_geometry(handle))
            if updated.geometry.type == CIRCLE:
                radius = self._renderer.read_radius(handle)
                if radius is not None:
                    updated = updated.with_property("radius", radius)
            updated = validator.clean(updated)
            self._layers[feature_id].feature = updated
            self._store.modify(feature_id, updated)
            self._publish(MODIFY, updated, feature_id)

    def _on_delete(self, gesture: DeleteGesture) -> None:
        for handle in gesture.handles:
            feature_id = self._id_for(handle)
            if feature_id is None:
                logger.warning("Deleted layer is not tracked; ignoring")
                continue
            del self._layers[feature_id]
            self._store.remove(feature_id)
            self._publish(REMOVE, None, feature_id)
