from dataclasses import dataclass, replace

from planscale.constants import ZOOM_MAX, ZOOM_MIN, ZOOM_STEP
from planscale.domain.geometry import Point


def clamp_zoom(zoom: float, min_zoom: float = ZOOM_MIN, max_zoom: float = ZOOM_MAX) -> float:
    return max(min_zoom, min(float(zoom), max_zoom))


@dataclass(frozen=True)
class ViewTransform:
    """Pan/zoom applied to the plan canvas.

    Screen = world * zoom + translate. All operations return a new transform.
    """

    tx: float = 0.0
    ty: float = 0.0
    zoom: float = 1.0

    def to_world(self, sx: float, sy: float) -> Point:
        return Point((sx - self.tx) / self.zoom, (sy - self.ty) / self.zoom)

    def to_screen(self, point: Point) -> tuple[float, float]:
        return point.x * self.zoom + self.tx, point.y * self.zoom + self.ty

    def zoom_at(
        self,
        new_zoom: float,
        sx: float,
        sy: float,
        min_zoom: float = ZOOM_MIN,
        max_zoom: float = ZOOM_MAX,
    ) -> "ViewTransform":
        """Zoom keeping the world point under ``(sx, sy)`` fixed on screen."""
        zoom = clamp_zoom(new_zoom, min_zoom, max_zoom)
        anchor = self.to_world(sx, sy)
        return ViewTransform(tx=sx - anchor.x * zoom, ty=sy - anchor.y * zoom, zoom=zoom)

    def zoom_by(
        self,
        factor: float,
        sx: float,
        sy: float,
        min_zoom: float = ZOOM_MIN,
        max_zoom: float = ZOOM_MAX,
    ) -> "ViewTransform":
        return self.zoom_at(self.zoom * factor, sx, sy, min_zoom, max_zoom)

    def zoom_in(self, sx: float, sy: float, step: float = ZOOM_STEP, **limits) -> "ViewTransform":
        return self.zoom_by(step, sx, sy, **limits)

    def zoom_out(self, sx: float, sy: float, step: float = ZOOM_STEP, **limits) -> "ViewTransform":
        return self.zoom_by(1.0 / step, sx, sy, **limits)

    def pan_by(self, dx: float, dy: float) -> "ViewTransform":
        return replace(self, tx=self.tx + dx, ty=self.ty + dy)

    @staticmethod
    def identity() -> "ViewTransform":
        return ViewTransform()


__all__ = ["ViewTransform", "clamp_zoom"]
