"""Read-only display metrics derived from a feature's geometry.

Coordinates are treated as planar base units (meters).  Areas are
reported in km² (×1e-6) and lengths in km (×1e-3).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from mapsync.layers.feature import CIRCLE, LINE_STRING, POINT, POLYGON, Feature

SQ_UNITS_PER_DISPLAY_AREA = 1_000_000
UNITS_PER_DISPLAY_LENGTH = 1_000


@dataclass
class ShapeStats:
    kind: str | None
    color: str | None
    area: float | None = None
    perimeter: float | None = None
    length: float | None = None
    position: list[float] | None = None

    def format_lines(self) -> list[str]:
        """Human-readable lines for a properties panel."""
        lines = [f"Type: {self.kind}"]
        if self.area is not None:
            lines.append(f"Area: {self.area:.2f} km²")
        if self.perimeter is not None:
            lines.append(f"Perimeter: {self.perimeter:.2f} km")
        if self.length is not None:
            lines.append(f"Length: {self.length:.2f} km")
        if self.position is not None:
            lines.append("Position: [" + ", ".join(f"{n:.2f}" for n in self.position) + "]")
        return lines


def _distance(a: list[float], b: list[float]) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def shoelace_area(ring: list[list[float]]) -> float:
    """Unsigned area of a ring via the shoelace formula (wrap-around)."""
    n = len(ring)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        x1, y1 = ring[i][0], ring[i][1]
        x2, y2 = ring[(i + 1) % n][0], ring[(i + 1) % n][1]
        total += x1 * y2 - x2 * y1
    return abs(total) / 2.0


def ring_perimeter(ring: list[list[float]]) -> float:
    n = len(ring)
    if n < 2:
        return 0.0
    return sum(_distance(ring[i], ring[(i + 1) % n]) for i in range(n))


def path_length(points: list[list[float]]) -> float:
    return sum(_distance(points[i - 1], points[i]) for i in range(1, len(points)))


def _radius(value) -> float | None:
    """Radius as a finite float, or None when the wire value is unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        radius = float(value)
    except (TypeError, ValueError):
        return None
    return radius if math.isfinite(radius) else None


def project(feature: Feature | None) -> ShapeStats | None:
    """Compute display stats for ``feature``.  Pure; no side effects."""
    if feature is None:
        return None

    stats = ShapeStats(kind=feature.kind, color=feature.color)
    geometry = feature.geometry

    if geometry.type == POLYGON:
        ring = geometry.coordinates[0] if geometry.coordinates else []
        stats.area = shoelace_area(ring) / SQ_UNITS_PER_DISPLAY_AREA
        stats.perimeter = ring_perimeter(ring) / UNITS_PER_DISPLAY_LENGTH
    elif geometry.type == LINE_STRING:
        stats.length = path_length(geometry.coordinates) / UNITS_PER_DISPLAY_LENGTH
    elif geometry.type == CIRCLE:
        radius = _radius(feature.properties.get("radius"))
        if radius:
            stats.area = math.pi * radius * radius / SQ_UNITS_PER_DISPLAY_AREA
            stats.perimeter = 2 * math.pi * radius / UNITS_PER_DISPLAY_LENGTH
        stats.position = list(geometry.coordinates)
    elif geometry.type == POINT:
        stats.position = list(geometry.coordinates)

    return stats
