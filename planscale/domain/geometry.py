import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from planscale.constants import POINT_MERGE_TOLERANCE_PX


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def offset(self, dx: float, dy: float) -> "Point":
        return Point(self.x + dx, self.y + dy)


def as_points(raw: Iterable) -> tuple[Point, ...]:
    """Coerce ``Point`` / ``(x, y)`` items into a tuple of points."""
    result = []
    for item in raw or ():
        if isinstance(item, Point):
            result.append(item)
        else:
            x, y = item
            result.append(Point(float(x), float(y)))
    return tuple(result)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def line_length(points: Sequence[Point]) -> float:
    """Accumulated pixel length of the polyline through ``points``."""
    total = 0.0
    for i in range(1, len(points)):
        total += distance(points[i - 1], points[i])
    return total


def polygon_area(points: Sequence[Point]) -> float:
    """Shoelace area of the implicitly closed ring, in square pixels."""
    n = len(points)
    signed = 0.0
    for i in range(n):
        p = points[i]
        q = points[(i + 1) % n]
        signed += p.x * q.y - q.x * p.y
    return abs(signed) / 2.0


def centroid(points: Sequence[Point]) -> Point:
    """Vertex mean. Used for label placement only."""
    n = len(points)
    return Point(sum(p.x for p in points) / n, sum(p.y for p in points) / n)


def to_real_length(pixel_length: float, scale: float) -> float:
    return pixel_length / scale


def to_real_area(pixel_area: float, scale: float) -> float:
    # Area scales with the square of the linear pixels-per-unit factor.
    return pixel_area / (scale * scale)


def snap_to_axis(previous: Point, point: Point) -> Point:
    """Constrain ``point`` to be horizontal or vertical from ``previous``."""
    dx = point.x - previous.x
    dy = point.y - previous.y
    if abs(dx) >= abs(dy):
        return Point(point.x, previous.y)
    return Point(previous.x, point.y)


def dedupe_consecutive(points: Sequence[Point], tolerance: float = POINT_MERGE_TOLERANCE_PX) -> tuple[Point, ...]:
    result: list[Point] = []
    for point in points:
        if result and distance(result[-1], point) <= tolerance:
            continue
        result.append(point)
    if len(result) > 1 and distance(result[0], result[-1]) <= tolerance:
        result.pop()
    return tuple(result)


def measure(kind: str, points: Sequence[Point], scale: float) -> float:
    """Real-world value for a measurement type under ``scale`` pixels-per-unit."""
    if kind == "line":
        return to_real_length(line_length(points), scale)
    if kind == "area":
        return to_real_area(polygon_area(points), scale)
    if kind == "count":
        return 1.0
    return 0.0


__all__ = [
    "Point",
    "as_points",
    "centroid",
    "dedupe_consecutive",
    "distance",
    "line_length",
    "measure",
    "polygon_area",
    "snap_to_axis",
    "to_real_area",
    "to_real_length",
]
