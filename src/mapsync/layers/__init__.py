"""Shared map feature model — features, validation, store and stats."""

from mapsync.layers.feature import Feature, FeatureId, Geometry
from mapsync.layers.store import FeatureStore

__all__ = ["Feature", "FeatureId", "FeatureStore", "Geometry"]
