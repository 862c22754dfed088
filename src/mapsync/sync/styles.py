"""Pure style resolution: Feature -> Style descriptor.

Nothing here touches a renderer.  The reconciliation engine resolves a
style and hands it to the renderer to apply.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from mapsync.layers.feature import AREA_KINDS, KIND_MARKER, KIND_POLYLINE, Feature

DEFAULT_COLOR = "#3388ff"

_MARKER_SVG = (
    '<svg width="24" height="24" viewBox="0 0 24 24" xmlns="http://www.w3.org/2000/svg">'
    '<path d="M12 0C7.31 0 3.5 3.81 3.5 8.5C3.5 15.31 12 24 12 24C12 24 20.5 15.31 20.5 8.5'
    "C20.5 3.81 16.69 0 12 0ZM12 13C9.24 13 7 10.76 7 8C7 5.24 9.24 3 12 3C14.76 3 17 5.24 "
    '17 8C17 10.76 14.76 13 12 13Z" fill="{color}"/></svg>'
)


@dataclass(frozen=True)
class LineStyle:
    color: str | None
    weight: int
    opacity: float
    dash_array: str | None = None


# Named polyline sub-styles; "default" takes the feature's own color
POLYLINE_STYLES: dict[str, LineStyle] = {
    "motorway": LineStyle("#800000", 6, 0.9),
    "railway": LineStyle("#000000", 4, 0.9, "1, 10"),
    "path": LineStyle("#8B4513", 2, 0.7, "5, 5"),
    "river": LineStyle("#0000FF", 5, 0.8),
    "default": LineStyle(None, 4, 0.8),
}

FILL_PATTERNS = ("stripes", "dots", "grid")


@dataclass(frozen=True)
class FillPattern:
    """Renderer-agnostic fill pattern description."""

    name: str
    color: str | None


@dataclass(frozen=True)
class MarkerIcon:
    html: str
    size: tuple[int, int] = (24, 24)
    anchor: tuple[int, int] = (12, 24)
    popup_anchor: tuple[int, int] = (0, -20)
    class_name: str = "custom-marker-icon"


@dataclass(frozen=True)
class Style:
    color: str | None = None
    weight: int | None = None
    opacity: float | None = None
    dash_array: str | None = None
    fill_color: str | None = None
    fill_opacity: float | None = None
    fill_pattern: FillPattern | None = None
    icon: MarkerIcon | None = None
    popup: str = ""


def polyline_style(custom_type: str | None) -> LineStyle:
    return POLYLINE_STYLES.get(custom_type or "default", POLYLINE_STYLES["default"])


def fill_style(custom_fill_type: str | None, color: str | None) -> tuple[float, FillPattern | None]:
    """(fill opacity, pattern) for an area sub-style."""
    if custom_fill_type in FILL_PATTERNS:
        return 0.7, FillPattern(custom_fill_type, color)
    return 0.5, None


def marker_icon(color: str | None) -> MarkerIcon:
    return MarkerIcon(html=_MARKER_SVG.format(color=color or DEFAULT_COLOR))


def popup_text(feature: Feature) -> str:
    if feature.name:
        return f"<b>{feature.name}</b>"
    return f"Shape ID: {feature.id}"


def resolve_style(feature: Feature, highlighted: bool = False) -> Style:
    """Resolve the display style for ``feature``.

    Args:
        feature: The feature to style.
        highlighted: Selected while editing is active; thickens the stroke.
    """
    props = feature.properties
    color = props.get("color") or DEFAULT_COLOR
    kind = feature.kind

    if kind == KIND_POLYLINE:
        custom_type = props.get("customType") or "default"
        line = polyline_style(custom_type)
        style = Style(
            color=color if custom_type == "default" or line.color is None else line.color,
            weight=line.weight,
            opacity=line.opacity,
            dash_array=line.dash_array,
        )
    elif kind in AREA_KINDS:
        fill_opacity, pattern = fill_style(props.get("customFillType"), color)
        style = Style(
            color=color,
            weight=3,
            fill_color=color,
            fill_opacity=fill_opacity,
            fill_pattern=pattern,
        )
    elif kind == KIND_MARKER:
        style = Style(color=color, icon=marker_icon(color))
    else:
        style = Style(color=color, fill_color=color)

    style = replace(style, popup=popup_text(feature))
    if highlighted and style.icon is None:
        style = replace(style, weight=(style.weight or 3) + 2, opacity=1.0)
    return style


def default_properties(kind: str, radius: float | None = None) -> dict:
    """Initial properties for a shape the local user just drew."""
    props: dict = {
        "name": f"Unnamed {kind}",
        "color": DEFAULT_COLOR,
        "type": kind,
    }
    if kind == KIND_POLYLINE:
        props["customType"] = "default"
    elif kind in AREA_KINDS:
        props["customFillType"] = "default"
    if radius is not None:
        props["radius"] = radius
    return props
