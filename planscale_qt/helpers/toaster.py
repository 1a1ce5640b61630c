from collections.abc import Callable

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel, QMainWindow, QWidget

from planscale_qt.constants import (
    TOAST_DEFAULT_DURATION_MS,
    TOAST_LAYOUT_MARGINS,
    TOAST_LAYOUT_SPACING,
    TOAST_MARGIN_PX,
    TOAST_TOP_OFFSET_PX,
)

_KIND_STYLES = {
    "info": "background: #1F2937; color: white;",
    "success": "background: #166534; color: white;",
    "error": "background: #B91C1C; color: white;",
}


class Toaster:
    """Transient status bubble in the top-right corner of the window."""

    def __init__(self, parent: QMainWindow, get_top_offset: Callable[[], int] = lambda: 0) -> None:
        self.parent = parent
        self.get_top_offset = get_top_offset
        self._toast_frame = None
        self._toast_label = None
        self._toast_timer = QTimer(parent)
        self._toast_timer.setSingleShot(True)
        self._toast_timer.timeout.connect(self.hide)

    def build(self, container: QWidget) -> None:
        self._toast_frame = QFrame(container)
        self._toast_frame.setObjectName("toastFrame")
        toast_layout = QHBoxLayout(self._toast_frame)
        toast_layout.setContentsMargins(*TOAST_LAYOUT_MARGINS)
        toast_layout.setSpacing(TOAST_LAYOUT_SPACING)
        self._toast_label = QLabel("")
        self._toast_label.setObjectName("toastLabel")
        self._toast_label.setWordWrap(True)
        toast_layout.addWidget(self._toast_label, 1)
        self._toast_frame.hide()
        self._set_kind("info")
        self.reposition()

    def _set_kind(self, kind: str) -> None:
        if self._toast_frame is None:
            return
        self._toast_frame.setStyleSheet(_KIND_STYLES.get(kind, _KIND_STYLES["info"]) + " border-radius: 6px;")

    def reposition(self) -> None:
        if self._toast_frame is None:
            return
        container = self.parent.centralWidget()
        if not container:
            return
        self._toast_frame.adjustSize()
        top_offset = self.get_top_offset() + TOAST_TOP_OFFSET_PX
        x = max(TOAST_MARGIN_PX, container.width() - self._toast_frame.width() - TOAST_MARGIN_PX)
        y = max(TOAST_MARGIN_PX, top_offset)
        self._toast_frame.move(x, y)

    def show(self, message: str, kind: str = "info", duration_ms: int = TOAST_DEFAULT_DURATION_MS) -> None:
        if self._toast_frame is None or self._toast_label is None:
            return
        self._set_kind(kind)
        self._toast_label.setText(message)
        self._toast_frame.adjustSize()
        self.reposition()
        self._toast_frame.show()
        self._toast_frame.raise_()
        self._toast_timer.start(duration_ms)

    def hide(self) -> None:
        if self._toast_frame is not None:
            self._toast_frame.hide()


__all__ = ["Toaster"]
