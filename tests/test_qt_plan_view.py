import pytest

pytest.importorskip("PySide6")

from PySide6.QtCore import QPointF, Qt
from PySide6.QtWidgets import QApplication

from planscale.domain.geometry import Point
from planscale.domain.tools import Tool
from planscale.services.takeoff_session import TakeoffSession
from planscale_qt.plan_graphics_view import PlanGraphicsView


class _FakeMouseEvent:
    def __init__(self, x, y, button=Qt.LeftButton, modifiers=Qt.NoModifier):
        self._pos = QPointF(x, y)
        self._button = button
        self._modifiers = modifiers
        self.accepted = False

    def button(self):
        return self._button

    def position(self):
        return self._pos

    def modifiers(self):
        return self._modifiers

    def accept(self):
        self.accepted = True


class _FakeKeyEvent:
    def __init__(self, key):
        self._key = key
        self.accepted = False

    def key(self):
        return self._key

    def isAutoRepeat(self):
        return False

    def accept(self):
        self.accepted = True


def _ensure_app():
    return QApplication.instance() or QApplication([])


def _view():
    _ensure_app()
    session = TakeoffSession()
    session.calibration.complete_calibration(100, 10, "ft")
    view = PlanGraphicsView(session)
    view.resize(400, 300)
    session.on_change = view.refresh
    return session, view


def test_clicks_create_line_measurement():
    session, view = _view()
    session.select_tool(Tool.LINE)

    view.mousePressEvent(_FakeMouseEvent(0, 0))
    view.mouseReleaseEvent(_FakeMouseEvent(0, 0))
    view.mouseMoveEvent(_FakeMouseEvent(25, 0))
    view.mousePressEvent(_FakeMouseEvent(50, 0))

    (line,) = session.measurements()
    assert line.value == 5.0
    assert len(view.scene().items()) > 0


def test_double_click_closes_area():
    session, view = _view()
    session.select_tool(Tool.AREA)
    for x, y in [(0, 0), (40, 0), (40, 20)]:
        view.mousePressEvent(_FakeMouseEvent(x, y))
    view.mouseDoubleClickEvent(_FakeMouseEvent(0, 20))

    (area,) = session.measurements()
    assert area.points[-1] == Point(0, 20)
    assert area.value == 8.0


def test_keys_are_forwarded_to_session():
    session, view = _view()
    session.select_tool(Tool.AREA)
    for x, y in [(0, 0), (40, 0), (40, 20)]:
        view.mousePressEvent(_FakeMouseEvent(x, y))

    event = _FakeKeyEvent(Qt.Key_Return)
    view.keyPressEvent(event)

    assert event.accepted
    assert len(session.measurements()) == 1


def test_middle_drag_pans_view():
    session, view = _view()
    view.mousePressEvent(_FakeMouseEvent(10, 10, button=Qt.MiddleButton))
    view.mouseMoveEvent(_FakeMouseEvent(30, 25))
    view.mouseReleaseEvent(_FakeMouseEvent(30, 25, button=Qt.MiddleButton))
    assert (session.transform.tx, session.transform.ty) == (20.0, 15.0)


def test_text_tool_requests_text():
    session, view = _view()
    requests = []
    view.textRequested.connect(lambda: requests.append(True))
    session.select_tool(Tool.TEXT)
    view.mousePressEvent(_FakeMouseEvent(5, 5))
    assert requests == [True]


def test_left_drag_moves_selected_vertex():
    session, view = _view()
    session.select_tool(Tool.LINE)
    view.mousePressEvent(_FakeMouseEvent(0, 0))
    view.mousePressEvent(_FakeMouseEvent(50, 0))
    session.select_tool(Tool.SELECT)
    view.mousePressEvent(_FakeMouseEvent(25, 1))
    view.mouseReleaseEvent(_FakeMouseEvent(25, 1))

    view.mousePressEvent(_FakeMouseEvent(50, 0))
    view.mouseMoveEvent(_FakeMouseEvent(80, 0))
    view.mouseReleaseEvent(_FakeMouseEvent(100, 0))

    (line,) = session.measurements()
    assert line.points[1] == Point(100, 0)
    assert line.value == 10.0
