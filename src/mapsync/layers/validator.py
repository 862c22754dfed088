"""Geometry normalization for inbound and outbound features.

``clean`` never raises.  Malformed coordinate pairs are coerced to
``[0.0, 0.0]`` and open polygon rings are closed, so the store only ever
holds renderable features.
"""

from __future__ import annotations

import copy
import math
from typing import Any

from loguru import logger

from mapsync.layers.feature import (
    CIRCLE,
    LINE_STRING,
    POINT,
    POLYGON,
    Feature,
    Geometry,
)

# Nesting depth at which [lng, lat] pairs sit for each geometry type
_PAIR_DEPTH = {POINT: 0, CIRCLE: 0, LINE_STRING: 1, POLYGON: 2}


def _parse_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("bool is not a coordinate")
    return float(value)


def clean_pair(pair: Any) -> list[float]:
    """Return ``pair`` as ``[lng, lat]`` floats, or ``[0.0, 0.0]`` if invalid."""
    if not isinstance(pair, (list, tuple)) or len(pair) != 2:
        logger.warning(f"Expected [lon, lat] pair, got {pair!r}; defaulting to (0, 0)")
        return [0.0, 0.0]
    try:
        lng = _parse_float(pair[0])
        lat = _parse_float(pair[1])
    except (TypeError, ValueError):
        logger.warning(f"Unparseable coordinate {pair!r}; defaulting to (0, 0)")
        return [0.0, 0.0]
    if not (math.isfinite(lng) and math.isfinite(lat)):
        logger.warning(f"Non-finite coordinate {pair!r}; defaulting to (0, 0)")
        return [0.0, 0.0]
    return [lng, lat]


def _looks_like_pair(node: Any) -> bool:
    return (
        isinstance(node, (list, tuple))
        and len(node) == 2
        and all(isinstance(v, (int, float, str)) and not isinstance(v, bool) for v in node)
    )


def clean_coordinates(coordinates: Any, depth: int | None = None) -> Any:
    """Recursively clean a coordinate tree.

    Args:
        coordinates: Nested coordinate arrays.
        depth: How many list levels sit above each pair.  When known,
            every node at that depth is cleaned as a pair whatever its
            shape.  When None, any two-element list of numbers (or numeric
            strings) is treated as a pair and other values are walked or
            left alone.
    """
    if depth is None:
        if not isinstance(coordinates, (list, tuple)):
            return coordinates
        if _looks_like_pair(coordinates):
            return clean_pair(coordinates)
        return [clean_coordinates(sub) for sub in coordinates]

    if depth == 0:
        return clean_pair(coordinates)
    if not isinstance(coordinates, (list, tuple)):
        logger.warning(f"Expected coordinate array, got {coordinates!r}; replacing with []")
        return []
    return [clean_coordinates(sub, depth - 1) for sub in coordinates]


def _clean_polygon(rings: Any, feature_id: Any) -> list:
    if not isinstance(rings, (list, tuple)):
        logger.warning(f"Polygon coordinates on feature {feature_id} are not an array; replacing with []")
        return []
    cleaned = []
    for ring in rings:
        if not isinstance(ring, (list, tuple)) or not ring:
            logger.warning(f"Invalid polygon ring {ring!r} on feature {feature_id}; replacing with []")
            cleaned.append([])
            continue
        points = [clean_pair(p) for p in ring]
        if points[0] != points[-1]:
            logger.warning(f"Polygon ring not closed on feature {feature_id}; closing it")
            points.append(list(points[0]))
        cleaned.append(points)
    return cleaned


def clean(raw: Feature | dict) -> Feature:
    """Deep-copy and normalize a feature.

    Args:
        raw: A Feature or a wire dict.

    Returns:
        A new Feature with every coordinate pair finite and every Polygon
        ring closed.  The input is never mutated.
    """
    if isinstance(raw, Feature):
        feature = Feature(
            id=raw.id,
            geometry=Geometry(raw.geometry.type, copy.deepcopy(raw.geometry.coordinates)),
            properties=copy.deepcopy(raw.properties),
        )
    elif isinstance(raw, dict):
        feature = Feature.from_dict(raw)
    else:
        logger.warning(f"Cannot clean non-feature payload {raw!r}; using empty feature")
        feature = Feature(id=None, geometry=Geometry(None, []), properties={})

    geom_type = feature.geometry.type
    if geom_type == POLYGON:
        coordinates = _clean_polygon(feature.geometry.coordinates, feature.id)
    else:
        coordinates = clean_coordinates(feature.geometry.coordinates, _PAIR_DEPTH.get(geom_type))

    return Feature(
        id=feature.id,
        geometry=Geometry(geom_type, coordinates),
        properties=feature.properties,
    )
