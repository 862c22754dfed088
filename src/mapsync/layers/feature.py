"""Feature and Geometry dataclasses for the shared map feature set.

Coordinates follow the GeoJSON convention: [lng, lat] pairs in a planar
coordinate system.  Circle is an extension of GeoJSON whose coordinates
are the [lng, lat] center; the radius lives in ``properties["radius"]``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Union

FeatureId = Union[int, str]

POINT = "Point"
LINE_STRING = "LineString"
POLYGON = "Polygon"
CIRCLE = "Circle"

GEOMETRY_TYPES = (POINT, LINE_STRING, POLYGON, CIRCLE)

# Shape kinds carried in properties["type"]
KIND_MARKER = "marker"
KIND_POLYLINE = "polyline"
KIND_POLYGON = "polygon"
KIND_RECTANGLE = "rectangle"
KIND_CIRCLE = "circle"

AREA_KINDS = (KIND_POLYGON, KIND_RECTANGLE, KIND_CIRCLE)


@dataclass(frozen=True)
class Geometry:
    """Tagged geometry.

    Attributes:
        type: One of "Point", "LineString", "Polygon", "Circle" (None when
            the payload carried no usable geometry).
        coordinates: GeoJSON-style coordinate arrays.
            Point / Circle: [lng, lat]
            LineString: [[lng, lat], ...]
            Polygon: [[[lng, lat], ...], ...]  (list of closed rings)
    """

    type: str | None
    coordinates: Any = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"type": self.type, "coordinates": copy.deepcopy(self.coordinates)}

    @classmethod
    def from_dict(cls, raw: Any) -> Geometry:
        if not isinstance(raw, dict):
            return cls(type=None, coordinates=[])
        geom_type = raw.get("type")
        if not isinstance(geom_type, str):
            geom_type = None
        coordinates = raw.get("coordinates")
        if coordinates is None:
            coordinates = []
        return cls(type=geom_type, coordinates=copy.deepcopy(coordinates))


@dataclass(frozen=True)
class Feature:
    """A single spatial object shared across clients.

    Attributes:
        id: Stable identifier, unique within a FeatureStore.
        geometry: The feature's Geometry.
        properties: Open mapping of display attributes (name, color,
            shape-kind ``type``, ``customType``, ``customFillType``,
            ``radius``...).
    """

    id: FeatureId
    geometry: Geometry
    properties: dict = field(default_factory=dict)

    @property
    def kind(self) -> str | None:
        return self.properties.get("type")

    @property
    def name(self) -> str:
        return self.properties.get("name") or ""

    @property
    def color(self) -> str | None:
        return self.properties.get("color")

    def with_geometry(self, geometry: Geometry) -> Feature:
        return Feature(id=self.id, geometry=geometry, properties=copy.deepcopy(self.properties))

    def with_property(self, key: str, value: Any) -> Feature:
        props = copy.deepcopy(self.properties)
        props[key] = value
        return Feature(id=self.id, geometry=self.geometry, properties=props)

    def with_id(self, feature_id: FeatureId) -> Feature:
        return Feature(id=feature_id, geometry=self.geometry, properties=copy.deepcopy(self.properties))

    def to_dict(self) -> dict:
        """Serialize to the wire JSON shape."""
        return {
            "id": self.id,
            "type": "Feature",
            "geometry": self.geometry.to_dict(),
            "properties": copy.deepcopy(self.properties),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> Feature:
        """Build a Feature from a wire dict without validating coordinates.

        Missing properties become ``{}`` and a missing geometry becomes an
        empty geometry.  Run the result through ``validator.clean`` before
        storing it.
        """
        properties = raw.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        feature_id = raw.get("id")
        if feature_id is None:
            # Older payloads carried the id inside properties only
            feature_id = properties.get("id")
        return cls(
            id=feature_id,
            geometry=Geometry.from_dict(raw.get("geometry")),
            properties=copy.deepcopy(properties),
        )
