"""Tests for display stats — shoelace area, perimeter, length, circles."""

import math

import pytest

from mapsync.layers.feature import Feature, Geometry
from mapsync.layers.stats import path_length, project, ring_perimeter, shoelace_area


def _feature(geom_type, coords, **props):
    return Feature(id=1, geometry=Geometry(geom_type, coords), properties={"type": "x", "color": "#abc", **props})


@pytest.mark.unit
class TestGeometryMath:

    def test_shoelace_square(self):
        """Shoelace area of a 4x4 square is 16."""
        assert shoelace_area([[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]]) == pytest.approx(16.0)

    def test_shoelace_orientation_independent(self):
        """Clockwise rings give a positive area."""
        cw = [[0, 0], [0, 4], [4, 4], [4, 0], [0, 0]]
        assert shoelace_area(cw) == pytest.approx(16.0)

    def test_shoelace_degenerate(self):
        """Fewer than three points have no area."""
        assert shoelace_area([[0, 0], [1, 1]]) == 0.0

    def test_ring_perimeter_closed_and_open_agree(self):
        """Perimeter wraps around, so closing a ring changes nothing."""
        closed = [[0, 0], [3, 0], [3, 4], [0, 0]]
        open_ring = [[0, 0], [3, 0], [3, 4]]
        assert ring_perimeter(closed) == pytest.approx(12.0)
        assert ring_perimeter(open_ring) == pytest.approx(12.0)

    def test_path_length(self):
        """Path length sums consecutive segments."""
        assert path_length([[0, 0], [3, 4], [3, 10]]) == pytest.approx(11.0)


@pytest.mark.unit
class TestProject:

    def test_none(self):
        """No feature yields no stats."""
        assert project(None) is None

    def test_polygon(self):
        """Polygon stats report area and perimeter in km."""
        f = _feature("Polygon", [[[0, 0], [2000, 0], [2000, 3000], [0, 3000], [0, 0]]])
        stats = project(f)
        assert stats.area == pytest.approx(6.0)
        assert stats.perimeter == pytest.approx(10.0)
        assert stats.length is None
        assert stats.kind == "x"
        assert stats.color == "#abc"

    def test_linestring(self):
        """LineString stats report length only."""
        stats = project(_feature("LineString", [[0, 0], [3000, 4000]]))
        assert stats.length == pytest.approx(5.0)
        assert stats.area is None

    def test_circle(self):
        """Circle stats are derived from the radius property."""
        stats = project(_feature("Circle", [10, 20], radius=1000))
        assert stats.area == pytest.approx(math.pi)
        assert stats.perimeter == pytest.approx(2 * math.pi)
        assert stats.position == [10, 20]

    def test_circle_without_radius(self):
        """A circle without a radius reports only its center."""
        stats = project(_feature("Circle", [10, 20]))
        assert stats.area is None
        assert stats.position == [10, 20]

    def test_circle_string_radius_coerced(self):
        """A numeric-string radius is parsed."""
        stats = project(_feature("Circle", [0, 0], radius="1000"))
        assert stats.area == pytest.approx(math.pi)

    @pytest.mark.parametrize("radius", ["wide", [5], float("nan"), True])
    def test_circle_unusable_radius_leaves_area_empty(self, radius):
        """An unusable radius leaves area and perimeter empty."""
        stats = project(_feature("Circle", [0, 0], radius=radius))
        assert stats.area is None
        assert stats.perimeter is None
        assert stats.position == [0, 0]

    def test_point(self):
        """Point stats report the position."""
        stats = project(_feature("Point", [5, 6]))
        assert stats.position == [5, 6]
        assert stats.area is None

    def test_format_lines(self):
        """format_lines renders two-decimal display strings."""
        stats = project(_feature("Polygon", [[[0, 0], [4000, 0], [4000, 4000], [0, 4000], [0, 0]]]))
        lines = stats.format_lines()
        assert lines[0] == "Type: x"
        assert "Area: 16.00 km²" in lines
        assert "Perimeter: 16.00 km" in lines
