"""FeatureStore — the client's authoritative ordered feature collection.

Every mutation builds a new tuple snapshot; snapshots handed out earlier
never change.  Ids are unique and iteration follows insertion order,
which ``modify`` preserves.  The store has no transport dependency.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator

from loguru import logger

from mapsync.layers.feature import KIND_MARKER, Feature, FeatureId

Snapshot = tuple[Feature, ...]
SnapshotListener = Callable[[Snapshot], None]


class FeatureStore:
    """Ordered, id-keyed collection of Features."""

    def __init__(self, features: Iterable[Feature] = ()) -> None:
        self._features: Snapshot = _dedupe(features)
        self._listeners: list[SnapshotListener] = []

    # --- Read API ---

    @property
    def snapshot(self) -> Snapshot:
        return self._features

    def get(self, feature_id: FeatureId) -> Feature | None:
        for feature in self._features:
            if feature.id == feature_id:
                return feature
        return None

    def ids(self) -> list[FeatureId]:
        return [f.id for f in self._features]

    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features)

    def __contains__(self, feature_id: object) -> bool:
        return any(f.id == feature_id for f in self._features)

    def markers(self) -> list[Feature]:
        return [f for f in self._features if f.kind == KIND_MARKER]

    def search_markers(self, term: str) -> list[Feature]:
        """Markers whose name contains ``term`` (case-insensitive), one per id."""
        needle = term.lower()
        seen: set = set()
        result = []
        for feature in self.markers():
            if needle not in feature.name.lower():
                continue
            if feature.id in seen:
                continue
            seen.add(feature.id)
            result.append(feature)
        return result

    # --- Listeners ---

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _commit(self, features: Snapshot) -> None:
        self._features = features
        for listener in list(self._listeners):
            listener(features)

    # --- Mutations ---

    def add(self, feature: Feature) -> bool:
        """Append ``feature`` unless its id is already present.

        Returns:
            True if the feature was inserted.
        """
        if feature.id in self:
            logger.debug(f"Feature {feature.id} already present; add ignored")
            return False
        self._commit(self._features + (feature,))
        return True

    def modify(self, feature_id: FeatureId, feature: Feature) -> bool:
        """Replace the feature with ``feature_id``, keeping its position.

        A modify for an unknown id falls back to ``add`` so out-of-order
        messages still converge.

        Returns:
            True if the store changed.
        """
        replacement = feature if feature.id == feature_id else feature.with_id(feature_id)
        for idx, existing in enumerate(self._features):
            if existing.id == feature_id:
                if existing == replacement:
                    return False
                self._commit(self._features[:idx] + (replacement,) + self._features[idx + 1:])
                return True
        logger.warning(f"Modify for unknown feature {feature_id}; adding it")
        return self.add(replacement)

    def remove(self, feature_id: FeatureId) -> bool:
        """Delete the feature with ``feature_id``.  No-op if absent."""
        remaining = tuple(f for f in self._features if f.id != feature_id)
        if len(remaining) == len(self._features):
            return False
        self._commit(remaining)
        return True

    def replace_all(self, features: Iterable[Feature]) -> None:
        """Replace the whole collection (bulk load / bulkAdd)."""
        self._commit(_dedupe(features))

    def update_property(self, feature_id: FeatureId, key: str, value: Any) -> Feature | None:
        """Merge one property into the matching feature.

        Returns:
            The updated Feature, or None if ``feature_id`` is unknown.
        """
        existing = self.get(feature_id)
        if existing is None:
            logger.warning(f"Property update for unknown feature {feature_id}")
            return None
        updated = existing.with_property(key, value)
        self.modify(feature_id, updated)
        return updated


def _dedupe(features: Iterable[Feature]) -> Snapshot:
    seen: set = set()
    result = []
    for feature in features:
        if feature.id in seen:
            logger.warning(f"Duplicate feature id {feature.id} in bulk payload; keeping first")
            continue
        seen.add(feature.id)
        result.append(feature)
    return tuple(result)
