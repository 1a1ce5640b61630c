import pytest

from planscale.domain.geometry import (
    Point,
    as_points,
    centroid,
    dedupe_consecutive,
    line_length,
    measure,
    polygon_area,
    snap_to_axis,
    to_real_area,
    to_real_length,
)

SQUARE_96 = as_points([(0, 0), (96, 0), (96, 96), (0, 96)])


def test_line_length_under_scale():
    pts = as_points([(0, 0), (50, 0)])
    assert line_length(pts) == 50.0
    assert to_real_length(line_length(pts), 10.0) == 5.0


def test_polyline_length_accumulates_segments():
    pts = as_points([(0, 0), (3, 4), (3, 10)])
    assert line_length(pts) == 11.0


def test_area_uses_squared_scale():
    assert polygon_area(SQUARE_96) == 9216.0
    assert to_real_area(polygon_area(SQUARE_96), 96.0) == 1.0


def test_area_invariant_under_rotation_and_winding():
    base = as_points([(0, 0), (40, 0), (55, 30), (10, 45), (-5, 20)])
    expected = polygon_area(base)
    for shift in range(len(base)):
        rotated = base[shift:] + base[:shift]
        assert polygon_area(rotated) == pytest.approx(expected)
        assert polygon_area(tuple(reversed(rotated))) == pytest.approx(expected)


def test_centroid_is_vertex_mean():
    assert centroid(SQUARE_96) == Point(48.0, 48.0)


def test_measure_by_type():
    line = as_points([(0, 0), (30, 0)])
    assert measure("line", line, 10.0) == 3.0
    assert measure("area", SQUARE_96, 96.0) == 1.0
    assert measure("count", as_points([(1, 1)]), 10.0) == 1.0
    assert measure("text", as_points([(1, 1)]), 10.0) == 0.0


def test_snap_to_axis_keeps_dominant_delta():
    prev = Point(0, 0)
    assert snap_to_axis(prev, Point(10, 3)) == Point(10, 0)
    assert snap_to_axis(prev, Point(2, -9)) == Point(0, -9)


def test_dedupe_consecutive_collapses_repeats_and_closing_point():
    a, b, c = Point(0, 0), Point(10, 0), Point(10, 10)
    assert dedupe_consecutive([a, a, b, c, c]) == (a, b, c)
    assert dedupe_consecutive([a, b, c, a]) == (a, b, c)


def test_as_points_accepts_pairs_and_points():
    pts = as_points([(1, 2), Point(3, 4)])
    assert pts == (Point(1.0, 2.0), Point(3, 4))
