from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QBrush, QColor, QImage, QPainter, QPen, QPixmap, QPolygonF
from PySide6.QtWidgets import (
    QGraphicsEllipseItem,
    QGraphicsLineItem,
    QGraphicsPixmapItem,
    QGraphicsPolygonItem,
    QGraphicsScene,
    QGraphicsSimpleTextItem,
    QGraphicsView,
)

from planscale.constants import SELECTED_COLOR
from planscale.domain.geometry import centroid
from planscale.domain.helpers import format_value
from planscale.domain.measurements import MeasurementType
from planscale.domain.tools import EnteringText
from planscale.services.takeoff_session import ImageState
from planscale_qt.constants import (
    AREA_FILL_ALPHA,
    CANVAS_BACKGROUND,
    COUNT_DOT_RADIUS,
    GRID_COLOR,
    GRID_SPACING_PX,
    PLACEHOLDER_SIZE,
    PREVIEW_COLOR,
    SELECTED_STROKE_WIDTH,
    STROKE_WIDTH,
    VERTEX_DOT_RADIUS,
)

_KEY_NAMES = {
    Qt.Key_Return: "Enter",
    Qt.Key_Enter: "Enter",
    Qt.Key_Escape: "Escape",
    Qt.Key_Shift: "Shift",
    Qt.Key_Backspace: "Backspace",
    Qt.Key_Delete: "Delete",
}


class PlanGraphicsView(QGraphicsView):
    """Plan canvas driven by a ``TakeoffSession``.

    The scene is kept in viewport coordinates; the session's view transform maps
    world points onto it, so mouse positions go to the session unchanged.
    """

    textRequested = Signal()

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        self._scene = QGraphicsScene(self)
        self.setScene(self._scene)
        self.setRenderHint(QPainter.Antialiasing)
        self.setDragMode(QGraphicsView.NoDrag)
        self.setTransformationAnchor(QGraphicsView.NoAnchor)
        self.setAlignment(Qt.AlignLeft | Qt.AlignTop)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setBackgroundBrush(QColor(CANVAS_BACKGROUND))
        self.setCursor(Qt.CrossCursor)

        self._pixmap = None
        self._pan_anchor = None

    # ── Public API ───────────────────────────────────────────────

    def set_plan_image(self, image):
        if image is None:
            self._pixmap = None
        else:
            qimage = QImage.fromData(image.content)
            self._pixmap = QPixmap.fromImage(qimage) if not qimage.isNull() else None
        self.refresh()

    def refresh(self):
        self._scene.clear()
        self._scene.setSceneRect(QRectF(0, 0, max(1, self.viewport().width()), max(1, self.viewport().height())))
        self._draw_background()
        selected = self.session.store.selected
        selected_id = selected.id if selected is not None else None
        for measurement in self.session.measurements():
            self._draw_measurement(measurement, measurement.id == selected_id)
        self._draw_preview()

    # ── Mouse / keyboard → session ───────────────────────────────

    def mousePressEvent(self, event):
        pos = event.position()
        if event.button() == Qt.LeftButton:
            shift = bool(event.modifiers() & Qt.ShiftModifier)
            self.session.pointer_down(pos.x(), pos.y(), shift=shift)
            self._maybe_request_text()
            event.accept()
            return
        if event.button() in (Qt.MiddleButton, Qt.RightButton):
            self._pan_anchor = (pos.x(), pos.y())
            self.setCursor(Qt.ClosedHandCursor)
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        pos = event.position()
        if self._pan_anchor is not None:
            x0, y0 = self._pan_anchor
            self._pan_anchor = (pos.x(), pos.y())
            self.session.pan_by(pos.x() - x0, pos.y() - y0)
        else:
            shift = bool(event.modifiers() & Qt.ShiftModifier)
            self.session.pointer_move(pos.x(), pos.y(), shift=shift)
        event.accept()

    def mouseReleaseEvent(self, event):
        pos = event.position()
        if event.button() == Qt.LeftButton:
            self.session.pointer_up(pos.x(), pos.y())
        elif self._pan_anchor is not None:
            self._pan_anchor = None
            self.setCursor(Qt.CrossCursor)
        event.accept()

    def mouseDoubleClickEvent(self, event):
        if event.button() != Qt.LeftButton:
            super().mouseDoubleClickEvent(event)
            return
        # Qt delivers the second press of a double-click only as this event.
        pos = event.position()
        self.session.pointer_down(pos.x(), pos.y(), shift=bool(event.modifiers() & Qt.ShiftModifier))
        self.session.double_click(pos.x(), pos.y())
        self._maybe_request_text()
        event.accept()

    def wheelEvent(self, event):
        delta = event.angleDelta().y()
        pos = event.position()
        if delta > 0:
            self.session.zoom_in(pos.x(), pos.y())
        elif delta < 0:
            self.session.zoom_out(pos.x(), pos.y())
        event.accept()

    def keyPressEvent(self, event):
        name = _KEY_NAMES.get(event.key())
        if name is None or event.isAutoRepeat():
            super().keyPressEvent(event)
            return
        self.session.key_down(name)
        event.accept()

    def keyReleaseEvent(self, event):
        if event.key() == Qt.Key_Shift and not event.isAutoRepeat():
            self.session.key_up("Shift")
            event.accept()
            return
        super().keyReleaseEvent(event)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.refresh()

    # ── Drawing ──────────────────────────────────────────────────

    def _to_scene(self, point):
        sx, sy = self.session.transform.to_screen(point)
        return QPointF(sx, sy)

    def _draw_background(self):
        transform = self.session.transform
        if self._pixmap is not None and self.session.image_state == ImageState.LOADED:
            item = QGraphicsPixmapItem(self._pixmap)
            item.setTransformationMode(Qt.SmoothTransformation)
            item.setScale(transform.zoom)
            item.setPos(transform.tx, transform.ty)
            self._scene.addItem(item)
            return
        width, height = PLACEHOLDER_SIZE
        pen = QPen(QColor(GRID_COLOR), 1)
        left, top = transform.tx, transform.ty
        right = left + width * transform.zoom
        bottom = top + height * transform.zoom
        step = GRID_SPACING_PX * transform.zoom
        x = left
        while x <= right:
            self._scene.addLine(x, top, x, bottom, pen)
            x += step
        y = top
        while y <= bottom:
            self._scene.addLine(left, y, right, y, pen)
            y += step
        if self.session.image_state == ImageState.FAILED:
            label = self._scene.addSimpleText("Plan image unavailable")
            label.setBrush(QColor("#9CA3AF"))
            label.setPos(left + 12, top + 12)

    def _draw_measurement(self, measurement, selected):
        color = QColor(SELECTED_COLOR if selected else measurement.color)
        pen = QPen(color, SELECTED_STROKE_WIDTH if selected else STROKE_WIDTH)
        points = [self._to_scene(p) for p in measurement.points]

        if measurement.type == MeasurementType.LINE:
            item = QGraphicsLineItem(points[0].x(), points[0].y(), points[1].x(), points[1].y())
            item.setPen(pen)
            self._scene.addItem(item)
            anchor = QPointF((points[0].x() + points[1].x()) / 2, (points[0].y() + points[1].y()) / 2)
            self._add_label(f"{measurement.label}: {format_value(measurement.value, measurement.unit)}", anchor, color)
        elif measurement.type == MeasurementType.AREA:
            fill = QColor(color)
            fill.setAlpha(AREA_FILL_ALPHA)
            item = QGraphicsPolygonItem(QPolygonF(points))
            item.setPen(pen)
            item.setBrush(QBrush(fill))
            self._scene.addItem(item)
            anchor = self._to_scene(centroid(measurement.points))
            self._add_label(f"{measurement.label}: {format_value(measurement.value, measurement.unit)}", anchor, color)
        elif measurement.type == MeasurementType.COUNT:
            r = COUNT_DOT_RADIUS
            dot = QGraphicsEllipseItem(points[0].x() - r, points[0].y() - r, r * 2, r * 2)
            dot.setBrush(color)
            dot.setPen(QPen(Qt.NoPen) if not selected else pen)
            self._scene.addItem(dot)
        else:
            self._add_label(measurement.label, points[0], color)

    def _draw_preview(self):
        preview = self.session.preview()
        if not preview.points:
            return
        pen = QPen(QColor(PREVIEW_COLOR), STROKE_WIDTH, Qt.DashLine)
        points = [self._to_scene(p) for p in preview.points]
        for i in range(1, len(points)):
            line = QGraphicsLineItem(points[i - 1].x(), points[i - 1].y(), points[i].x(), points[i].y())
            line.setPen(pen)
            self._scene.addItem(line)
        if preview.closed:
            line = QGraphicsLineItem(points[-1].x(), points[-1].y(), points[0].x(), points[0].y())
            line.setPen(pen)
            self._scene.addItem(line)
        r = VERTEX_DOT_RADIUS
        for pt in points:
            dot = QGraphicsEllipseItem(pt.x() - r, pt.y() - r, r * 2, r * 2)
            dot.setBrush(QColor(PREVIEW_COLOR))
            dot.setPen(QPen(Qt.NoPen))
            self._scene.addItem(dot)
        if preview.value is not None:
            text = f"{preview.value:.1f} px" if preview.unit == "px" else format_value(preview.value, preview.unit)
            self._add_label(text, points[-1], QColor(PREVIEW_COLOR))

    def _add_label(self, text, anchor, color):
        if not text:
            return
        label = QGraphicsSimpleTextItem(text)
        label.setBrush(color)
        label.setPos(anchor.x() + 6, anchor.y() - 18)
        self._scene.addItem(label)

    def _maybe_request_text(self):
        state = self.session.state
        if isinstance(state, EnteringText) and state.anchor is not None:
            self.textRequested.emit()


__all__ = ["PlanGraphicsView"]
