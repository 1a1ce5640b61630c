import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from planscale.constants import (
    CALIBRATION_QUEUE_KEY,
    DEFAULT_LAYER,
    DEFAULT_SCALE_PRESET,
    DRAG_THRESHOLD_PX,
    LINE_INTERACTION_CLICK,
    ZOOM_MAX,
    ZOOM_MIN,
    ZOOM_STEP,
)
from planscale.domain.calibration import Calibration, CalibrationManager
from planscale.domain.geometry import Point, distance, line_length, polygon_area, to_real_area, to_real_length
from planscale.domain.helpers import area_unit_for, parse_length
from planscale.domain.hit_test import HIT_TOLERANCE_PX, hit_test, nearest_vertex
from planscale.domain.measurements import DraftMeasurement, Measurement, MeasurementType
from planscale.domain.summary import TakeoffSummary, summary_text, totals_by_division
from planscale.domain.tools import (
    Calibrating,
    CalibrationCaptured,
    CalibrationRejected,
    DoubleClick,
    DrawingArea,
    DrawingLine,
    KeyDown,
    KeyUp,
    PointerDown,
    PointerMove,
    PointerUp,
    SelectionProbe,
    TextCancelled,
    TextSubmitted,
    Tool,
    ToolStateMachine,
)
from planscale.domain.transform import ViewTransform
from planscale.errors import InvalidCalibration, ValidationError
from planscale.infra.image_loader import PlanImage
from planscale.infra.wire import calibration_from_wire, calibration_to_wire
from planscale.services.measurement_store import MeasurementStore
from planscale.services.write_queue import WriteQueue

logger = logging.getLogger(__name__)

KEY_DELETE = "Delete"


class ImageState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class Preview:
    """In-progress geometry for display, in world coordinates."""

    tool: Tool
    state: str
    points: tuple[Point, ...] = ()
    value: float | None = None
    unit: str = ""
    closed: bool = False


@dataclass(frozen=True)
class VertexDrag:
    measurement_id: str
    index: int
    start: Point
    point: Point

    @property
    def moved(self) -> bool:
        return distance(self.start, self.point) >= DRAG_THRESHOLD_PX


class TakeoffSession:
    """Single entry point for a UI host.

    Screen-space pointer input is mapped through the view transform, driven
    through the tool state machine, and the resulting drafts land in the store.
    """

    def __init__(
        self,
        api=None,
        write_queue: WriteQueue | None = None,
        scale_preset: str = DEFAULT_SCALE_PRESET,
        line_interaction: str = LINE_INTERACTION_CLICK,
        layer: str = DEFAULT_LAYER,
        zoom_min: float = ZOOM_MIN,
        zoom_max: float = ZOOM_MAX,
        zoom_step: float = ZOOM_STEP,
    ):
        self.api = api
        self.write_queue = write_queue or WriteQueue()
        self.calibration = CalibrationManager(scale_preset, on_change=self._persist_calibration)
        self.machine = ToolStateMachine(line_interaction)
        self.store = MeasurementStore(
            self.calibration,
            api=api,
            write_queue=self.write_queue,
            on_change=self._notify,
            on_error=self._report_error,
        )
        self.transform = ViewTransform()
        self.zoom_min = float(zoom_min)
        self.zoom_max = float(zoom_max)
        self.zoom_step = float(zoom_step)
        self.layer = layer or DEFAULT_LAYER
        self.pending_calibration: CalibrationCaptured | None = None
        self.vertex_drag: VertexDrag | None = None

        self.image_state = ImageState.EMPTY
        self.image: PlanImage | None = None
        self.image_url = ""
        self.image_error = ""

        self.on_change: Callable[[], None] | None = None
        self.on_status: Callable[[str], None] | None = None
        self.on_error: Callable[[str], None] | None = None
        self.on_calibration_prompt: Callable[[float], None] | None = None

    @classmethod
    def from_config(cls, config, api=None, write_queue=None):
        return cls(
            api=api,
            write_queue=write_queue,
            scale_preset=config.get("scale_preset", DEFAULT_SCALE_PRESET),
            line_interaction=config.get("line_interaction", LINE_INTERACTION_CLICK),
            layer=config.get("default_layer", DEFAULT_LAYER),
            zoom_min=config.get_float("zoom_min", ZOOM_MIN),
            zoom_max=config.get_float("zoom_max", ZOOM_MAX),
            zoom_step=config.get_float("zoom_step", ZOOM_STEP),
        )

    # ── Tools ────────────────────────────────────────────────

    @property
    def tool(self) -> Tool:
        return self.machine.tool

    @property
    def state(self):
        return self.machine.state

    def select_tool(self, tool) -> None:
        self.machine.select_tool(tool)
        self.pending_calibration = None
        self.vertex_drag = None
        if self.machine.tool == Tool.CALIBRATE:
            self._status("Click two points on a known dimension")
        self._notify()

    def begin_calibration(self) -> None:
        self.select_tool(Tool.CALIBRATE)

    def set_layer(self, layer: str) -> None:
        layer = (layer or "").strip()
        if not layer:
            raise ValidationError("Layer name cannot be empty.")
        self.layer = layer

    def select_preset(self, label: str) -> None:
        self.calibration.select_preset(label)
        self._notify()

    def clear_calibration(self) -> None:
        self.calibration.clear_calibration()
        self._status(self.calibration.status_text())
        self._notify()

    # ── Pointer / keyboard input (screen coordinates) ────────

    def pointer_down(self, sx: float, sy: float, shift: bool = False) -> list:
        point = self.transform.to_world(sx, sy)
        if self.machine.tool == Tool.SELECT and self._start_vertex_drag(point):
            self._notify()
            return []
        return self._dispatch(PointerDown(point, shift=shift))

    def pointer_move(self, sx: float, sy: float, shift: bool = False) -> list:
        point = self.transform.to_world(sx, sy)
        if self.vertex_drag is not None:
            self.vertex_drag = replace(self.vertex_drag, point=point)
            self._notify()
            return []
        return self._dispatch(PointerMove(point, shift=shift))

    def pointer_up(self, sx: float, sy: float) -> list:
        point = self.transform.to_world(sx, sy)
        if self.vertex_drag is not None:
            self._finish_vertex_drag(point)
            return []
        return self._dispatch(PointerUp(point))

    def double_click(self, sx: float, sy: float) -> list:
        return self._dispatch(DoubleClick(self.transform.to_world(sx, sy)))

    def key_down(self, key: str) -> list:
        if key == KEY_DELETE and self.machine.tool == Tool.SELECT:
            self.vertex_drag = None
            selected = self.store.selected
            if selected is not None:
                self.store.remove(selected.id)
            return []
        return self._dispatch(KeyDown(key))

    def key_up(self, key: str) -> list:
        return self._dispatch(KeyUp(key))

    def submit_text(self, text: str) -> list:
        return self._dispatch(TextSubmitted(text))

    def cancel_text(self) -> list:
        return self._dispatch(TextCancelled())

    def finish(self) -> list:
        effects = self.machine.finish()
        self._apply(effects)
        self._notify()
        return effects

    def submit_calibration(self, real_distance, unit: str = "ft") -> Calibration:
        """Complete the captured calibration line with its real-world length.

        Raises ``InvalidCalibration`` and keeps the capture when the distance is
        rejected, so the user can try another value.
        """
        captured = self.pending_calibration
        if captured is None:
            raise InvalidCalibration("Pick two calibration points first.")
        try:
            real = parse_length(real_distance, unit)
        except ValueError as exc:
            raise InvalidCalibration(str(exc)) from exc
        calibration = self.calibration.complete_calibration(captured.pixel_distance, real, unit)
        self.pending_calibration = None
        self.machine.calibration_committed()
        self._status(self.calibration.status_text())
        self._notify()
        return calibration

    # ── View ─────────────────────────────────────────────────

    def zoom_at(self, new_zoom: float, sx: float, sy: float) -> ViewTransform:
        self.transform = self.transform.zoom_at(new_zoom, sx, sy, self.zoom_min, self.zoom_max)
        self._notify()
        return self.transform

    def zoom_in(self, sx: float = 0.0, sy: float = 0.0) -> ViewTransform:
        return self.zoom_at(self.transform.zoom * self.zoom_step, sx, sy)

    def zoom_out(self, sx: float = 0.0, sy: float = 0.0) -> ViewTransform:
        return self.zoom_at(self.transform.zoom / self.zoom_step, sx, sy)

    def pan_by(self, dx: float, dy: float) -> ViewTransform:
        self.transform = self.transform.pan_by(dx, dy)
        self._notify()
        return self.transform

    def reset_view(self) -> ViewTransform:
        self.transform = ViewTransform.identity()
        self._notify()
        return self.transform

    # ── Plan image ───────────────────────────────────────────

    def begin_image_load(self, url: str) -> None:
        self.image_url = url
        self.image = None
        self.image_error = ""
        self.image_state = ImageState.LOADING
        self._notify()

    def image_loaded(self, image: PlanImage) -> None:
        self.image = image
        self.image_error = ""
        self.image_state = ImageState.LOADED
        self._notify()

    def image_failed(self, error) -> None:
        self.image = None
        self.image_error = str(error)
        self.image_state = ImageState.FAILED
        logger.warning("Plan image failed to load from %s: %s", self.image_url, error)
        self._status(f"Plan image unavailable: {error}")
        self._notify()

    # ── Display helpers ──────────────────────────────────────

    def preview(self) -> Preview:
        if self.vertex_drag is not None and self.vertex_drag.measurement_id in self.store:
            return self._drag_preview(self.vertex_drag)
        state = self.machine.state
        points = self.machine.in_progress_points()
        value = None
        unit = ""
        scale = self.calibration.resolve_scale()
        if isinstance(state, DrawingLine) and len(points) >= 2:
            value = to_real_length(line_length(points), scale)
            unit = self.calibration.resolve_unit()
        elif isinstance(state, DrawingArea) and len(points) >= 3:
            value = to_real_area(polygon_area(points), scale)
            unit = area_unit_for(self.calibration.resolve_unit())
        elif isinstance(state, Calibrating) and len(points) == 2:
            value = distance(points[0], points[1])
            unit = "px"
        return Preview(
            tool=self.machine.tool,
            state=state.name,
            points=points,
            value=value,
            unit=unit,
            closed=isinstance(state, DrawingArea) and len(points) >= 3,
        )

    def measurements(self) -> list[Measurement]:
        return self.store.measurements()

    def summary(self) -> TakeoffSummary:
        unit = self.calibration.resolve_unit()
        return totals_by_division(self.store.measurements(), length_unit=unit, area_unit=area_unit_for(unit))

    def summary_text(self) -> str:
        return summary_text(self.summary())

    # ── Remote state ─────────────────────────────────────────

    def fetch_remote(self):
        """Read measurements and calibration from the API. Safe to run off the UI thread."""
        if self.api is None:
            return [], None
        return self.api.list_measurements(), self.api.get_calibration()

    def apply_remote(self, payload) -> None:
        records, calibration_payload = payload
        self.calibration.load(calibration_from_wire(calibration_payload))
        self.store.load(records)
        self._status(self.calibration.status_text())

    # ── Internal ─────────────────────────────────────────────

    def _dispatch(self, event) -> list:
        effects = self.machine.handle(event)
        state = self.machine.state
        if not (isinstance(state, Calibrating) and state.awaiting_distance):
            self.pending_calibration = None
        self._apply(effects)
        self._notify()
        return effects

    def _apply(self, effects) -> None:
        for effect in effects:
            if isinstance(effect, DraftMeasurement):
                self.store.add(effect, layer=self.layer)
            elif isinstance(effect, CalibrationCaptured):
                self.pending_calibration = effect
                self._status(f"Calibration line: {effect.pixel_distance:.1f} px. Enter its real length.")
                if self.on_calibration_prompt is not None:
                    self.on_calibration_prompt(effect.pixel_distance)
            elif isinstance(effect, CalibrationRejected):
                self.pending_calibration = None
                self._status(effect.reason)
            elif isinstance(effect, SelectionProbe):
                hit = hit_test(self.store.measurements(), effect.point, self._hit_tolerance())
                self.store.select(hit.id if hit is not None else None)

    def _hit_tolerance(self) -> float:
        return HIT_TOLERANCE_PX / max(self.transform.zoom, 1e-9)

    def _start_vertex_drag(self, point: Point) -> bool:
        selected = self.store.selected
        if selected is None:
            return False
        index = nearest_vertex(selected, point, self._hit_tolerance())
        if index is None:
            return False
        self.vertex_drag = VertexDrag(selected.id, index, start=point, point=point)
        return True

    def _finish_vertex_drag(self, point: Point) -> None:
        drag = replace(self.vertex_drag, point=point)
        self.vertex_drag = None
        if drag.moved and drag.measurement_id in self.store:
            try:
                self.store.move_point(drag.measurement_id, drag.index, point)
            except ValidationError as exc:
                self._status(str(exc))
        self._notify()

    def _drag_preview(self, drag: VertexDrag) -> Preview:
        measurement = self.store.get(drag.measurement_id)
        points = list(measurement.points)
        points[drag.index] = drag.point
        return Preview(
            tool=self.machine.tool,
            state="editing",
            points=tuple(points),
            closed=measurement.type == MeasurementType.AREA,
        )

    def _persist_calibration(self, calibration: Calibration | None) -> None:
        if self.api is None:
            return
        payload = calibration_to_wire(calibration) if calibration is not None else {}

        def _job():
            return self.api.save_calibration(payload)

        self.write_queue.enqueue(CALIBRATION_QUEUE_KEY, _job, "save calibration")

    def _report_error(self, message: str) -> None:
        if self.on_error is not None:
            self.on_error(message)

    def _status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()


__all__ = ["ImageState", "Preview", "TakeoffSession", "VertexDrag"]
