"""Reconciliation between the feature store and a renderer."""

from mapsync.sync.engine import ReconcileReport, ReconciliationEngine
from mapsync.sync.renderer import MemoryRenderer, Renderer, RenderPath

__all__ = [
    "MemoryRenderer",
    "ReconcileReport",
    "ReconciliationEngine",
    "RenderPath",
    "Renderer",
]
