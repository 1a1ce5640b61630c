"""Drawing tool state machine.

Pointer and keyboard input arrive as event values and are applied with
``ToolStateMachine.handle``. The machine holds exactly one state value; each
call returns the effects it produced (finalized drafts, captured calibration
lines, selection probes). It never talks to persistence or the UI directly.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar

from planscale.constants import (
    DRAG_THRESHOLD_PX,
    LINE_INTERACTION_CLICK,
    LINE_INTERACTION_DRAG,
    MIN_CALIBRATION_PIXELS,
    POINT_MERGE_TOLERANCE_PX,
)
from planscale.domain.geometry import Point, dedupe_consecutive, distance, line_length, snap_to_axis
from planscale.domain.measurements import DraftMeasurement, MeasurementType


class Tool(str, Enum):
    SELECT = "select"
    LINE = "line"
    AREA = "area"
    COUNT = "count"
    TEXT = "text"
    CALIBRATE = "calibrate"


KEY_ENTER = "Enter"
KEY_ESCAPE = "Escape"
KEY_SHIFT = "Shift"
KEY_BACKSPACE = "Backspace"


# ── Events ───────────────────────────────────────────────────


@dataclass(frozen=True)
class PointerDown:
    point: Point
    shift: bool = False


@dataclass(frozen=True)
class PointerMove:
    point: Point
    shift: bool = False


@dataclass(frozen=True)
class PointerUp:
    point: Point


@dataclass(frozen=True)
class DoubleClick:
    point: Point


@dataclass(frozen=True)
class KeyDown:
    key: str


@dataclass(frozen=True)
class KeyUp:
    key: str


@dataclass(frozen=True)
class TextSubmitted:
    text: str


@dataclass(frozen=True)
class TextCancelled:
    pass


# ── States ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Idle:
    name: ClassVar[str] = "idle"


@dataclass(frozen=True)
class DrawingLine:
    name: ClassVar[str] = "drawing_line"
    points: tuple[Point, ...] = ()
    preview: Point | None = None


@dataclass(frozen=True)
class DrawingArea:
    name: ClassVar[str] = "drawing_area"
    points: tuple[Point, ...] = ()
    preview: Point | None = None


@dataclass(frozen=True)
class Counting:
    name: ClassVar[str] = "counting"


@dataclass(frozen=True)
class EnteringText:
    name: ClassVar[str] = "entering_text"
    anchor: Point | None = None


@dataclass(frozen=True)
class Calibrating:
    name: ClassVar[str] = "calibrating"
    start: Point | None = None
    end: Point | None = None
    preview: Point | None = None

    @property
    def awaiting_distance(self) -> bool:
        return self.start is not None and self.end is not None


ToolState = Idle | DrawingLine | DrawingArea | Counting | EnteringText | Calibrating


# ── Effects ──────────────────────────────────────────────────


@dataclass(frozen=True)
class CalibrationCaptured:
    start: Point
    end: Point
    pixel_distance: float


@dataclass(frozen=True)
class CalibrationRejected:
    reason: str


@dataclass(frozen=True)
class SelectionProbe:
    point: Point


def armed_state(tool: Tool) -> ToolState:
    if tool == Tool.LINE:
        return DrawingLine()
    if tool == Tool.AREA:
        return DrawingArea()
    if tool == Tool.COUNT:
        return Counting()
    if tool == Tool.TEXT:
        return EnteringText()
    if tool == Tool.CALIBRATE:
        return Calibrating()
    return Idle()


class ToolStateMachine:
    def __init__(self, line_interaction: str = LINE_INTERACTION_CLICK):
        if line_interaction not in (LINE_INTERACTION_CLICK, LINE_INTERACTION_DRAG):
            line_interaction = LINE_INTERACTION_CLICK
        self.line_interaction = line_interaction
        self.tool = Tool.SELECT
        self.state: ToolState = Idle()
        self.shift_held = False

    # ── Public API ───────────────────────────────────────────

    def select_tool(self, tool: Tool | str) -> None:
        """Activate ``tool``. Any unpersisted in-progress geometry is dropped."""
        self.tool = Tool(tool)
        self.state = armed_state(self.tool)

    def reset(self) -> None:
        self.state = Idle()

    def handle(self, event) -> list:
        if isinstance(event, PointerDown):
            return self._on_pointer_down(event)
        if isinstance(event, PointerMove):
            return self._on_pointer_move(event)
        if isinstance(event, PointerUp):
            return self._on_pointer_up(event)
        if isinstance(event, DoubleClick):
            return self._on_double_click(event)
        if isinstance(event, KeyDown):
            return self._on_key_down(event.key)
        if isinstance(event, KeyUp):
            if event.key == KEY_SHIFT:
                self.shift_held = False
            return []
        if isinstance(event, TextSubmitted):
            return self._on_text_submitted(event.text)
        if isinstance(event, TextCancelled):
            if isinstance(self.state, EnteringText):
                self.state = Idle()
            return []
        raise TypeError(f"Unsupported tool event: {type(event).__name__}")

    def finish(self) -> list:
        """Finalize the accumulated line/area. A no-op when nothing qualifies."""
        state = self.state
        if isinstance(state, DrawingArea):
            points = dedupe_consecutive(state.points)
            self.state = Idle()
            if len(points) < 3:
                return []
            return [DraftMeasurement(type=MeasurementType.AREA, points=points)]
        if isinstance(state, DrawingLine):
            self.state = Idle()
            if len(state.points) < 2:
                return []
            return self._finalize_line(state.points[0], state.points[-1])
        return []

    def cancel(self) -> None:
        self.state = Idle()

    def calibration_committed(self) -> None:
        if isinstance(self.state, Calibrating):
            self.state = Idle()

    def undo_point(self) -> None:
        state = self.state
        if isinstance(state, DrawingArea) and state.points:
            self.state = replace(state, points=state.points[:-1])

    def in_progress_points(self) -> tuple[Point, ...]:
        """Accumulated points plus the live preview point, for drawing."""
        state = self.state
        if isinstance(state, (DrawingLine, DrawingArea)):
            if state.points and state.preview is not None:
                return state.points + (state.preview,)
            return state.points
        if isinstance(state, Calibrating) and state.start is not None:
            end = state.end or state.preview
            return (state.start, end) if end is not None else (state.start,)
        if isinstance(state, EnteringText) and state.anchor is not None:
            return (state.anchor,)
        return ()

    # ── Event handlers ───────────────────────────────────────

    def _on_pointer_down(self, event: PointerDown) -> list:
        if isinstance(self.state, Idle):
            if self.tool == Tool.SELECT:
                return [SelectionProbe(event.point)]
            self.state = armed_state(self.tool)

        state = self.state
        point = event.point
        if isinstance(state, DrawingLine):
            if not state.points or self.line_interaction == LINE_INTERACTION_DRAG:
                self.state = DrawingLine(points=(point,))
                return []
            return self._finalize_line(state.points[0], point)

        if isinstance(state, DrawingArea):
            if state.points and (event.shift or self.shift_held):
                point = snap_to_axis(state.points[-1], point)
            self.state = DrawingArea(points=state.points + (point,))
            return []

        if isinstance(state, Counting):
            return [DraftMeasurement(type=MeasurementType.COUNT, points=(point,))]

        if isinstance(state, EnteringText):
            self.state = EnteringText(anchor=point)
            return []

        if isinstance(state, Calibrating):
            if state.start is None or state.awaiting_distance:
                self.state = Calibrating(start=point)
                return []
            return self._capture_calibration(state.start, point)
        return []

    def _on_pointer_move(self, event: PointerMove) -> list:
        state = self.state
        point = event.point
        if isinstance(state, DrawingLine) and state.points:
            self.state = replace(state, preview=point)
        elif isinstance(state, DrawingArea) and state.points:
            if event.shift or self.shift_held:
                point = snap_to_axis(state.points[-1], point)
            self.state = replace(state, preview=point)
        elif isinstance(state, Calibrating) and state.start is not None and state.end is None:
            self.state = replace(state, preview=point)
        return []

    def _on_pointer_up(self, event: PointerUp) -> list:
        state = self.state
        if isinstance(state, DrawingLine) and state.points and self.line_interaction == LINE_INTERACTION_DRAG:
            self.state = Idle()
            return self._finalize_line(state.points[0], event.point)
        if isinstance(state, Calibrating) and state.start is not None and state.end is None:
            if distance(state.start, event.point) >= DRAG_THRESHOLD_PX:
                return self._capture_calibration(state.start, event.point)
        return []

    def _on_double_click(self, event: DoubleClick) -> list:
        if isinstance(self.state, DrawingArea):
            return self.finish()
        return []

    def _on_key_down(self, key: str) -> list:
        if key == KEY_SHIFT:
            self.shift_held = True
            return []
        if key == KEY_ESCAPE:
            self.cancel()
            return []
        if key == KEY_ENTER:
            return self.finish()
        if key == KEY_BACKSPACE:
            self.undo_point()
        return []

    def _on_text_submitted(self, text: str) -> list:
        state = self.state
        if not isinstance(state, EnteringText) or state.anchor is None:
            return []
        self.state = Idle()
        label = (text or "").strip()
        if not label:
            return []
        return [DraftMeasurement(type=MeasurementType.TEXT, points=(state.anchor,), label=label)]

    # ── Internal ─────────────────────────────────────────────

    def _finalize_line(self, start: Point, end: Point) -> list:
        self.state = Idle()
        if distance(start, end) <= POINT_MERGE_TOLERANCE_PX:
            return []
        return [DraftMeasurement(type=MeasurementType.LINE, points=(start, end))]

    def _capture_calibration(self, start: Point, end: Point) -> list:
        pixel_distance = line_length((start, end))
        if pixel_distance < MIN_CALIBRATION_PIXELS:
            self.state = Calibrating()
            return [CalibrationRejected("Points too close. Try again.")]
        self.state = Calibrating(start=start, end=end)
        return [CalibrationCaptured(start=start, end=end, pixel_distance=pixel_distance)]


__all__ = [
    "Calibrating",
    "CalibrationCaptured",
    "CalibrationRejected",
    "Counting",
    "DoubleClick",
    "DrawingArea",
    "DrawingLine",
    "EnteringText",
    "Idle",
    "KEY_BACKSPACE",
    "KEY_ENTER",
    "KEY_ESCAPE",
    "KEY_SHIFT",
    "KeyDown",
    "KeyUp",
    "PointerDown",
    "PointerMove",
    "PointerUp",
    "SelectionProbe",
    "TextCancelled",
    "TextSubmitted",
    "Tool",
    "ToolState",
    "ToolStateMachine",
    "armed_state",
]
