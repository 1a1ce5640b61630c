import logging

from PySide6.QtCore import QThreadPool, Qt
from PySide6.QtWidgets import (
    QApplication,
    QButtonGroup,
    QComboBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QPushButton,
    QRadioButton,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from planscale.constants import APP_NAME, CALIBRATION_UNITS, LAYERS, SCALE_PRESETS
from planscale.domain.helpers import format_value
from planscale.errors import InvalidCalibration, ProjectError
from planscale.infra.api_client import TakeoffApiClient
from planscale.infra.image_loader import load_plan_image
from planscale.services.takeoff_session import TakeoffSession
from planscale.services.write_queue import WriteQueue
from planscale_qt.constants import ROOT_LAYOUT_MARGINS, ROOT_LAYOUT_SPACING, TOOL_BUTTONS, TOOL_PANEL_WIDTH
from planscale_qt.helpers.toaster import Toaster
from planscale_qt.helpers.worker_manager import WorkerManager
from planscale_qt.plan_graphics_view import PlanGraphicsView

logger = logging.getLogger(__name__)


def _separator():
    sep = QLabel("")
    sep.setFixedHeight(1)
    sep.setStyleSheet("background: #dfe3ea;")
    return sep


def _last_trace_line(trace_text):
    lines = [line for line in str(trace_text or "").strip().splitlines() if line.strip()]
    return lines[-1] if lines else "Unknown error"


class TakeoffWindow(QMainWindow):
    def __init__(self, config):
        super().__init__()
        self.config = config
        self.setWindowTitle(APP_NAME)
        self._apply_window_geometry(config.get("window_geometry", ""))

        self.thread_pool = QThreadPool.globalInstance()
        self.workers = WorkerManager(self.thread_pool, self, on_default_error=self._log_worker_error)
        api = TakeoffApiClient.from_config(config) if config.get("api_base_url") else None
        self.session = TakeoffSession.from_config(config, api=api, write_queue=WriteQueue(dispatch=self.workers.dispatch))
        self.session.on_change = self._refresh
        self.session.on_status = self._set_status
        self.session.on_error = self._on_persistence_error
        self.session.on_calibration_prompt = self._prompt_calibration_distance

        self._build_ui()
        self.toaster = Toaster(self)
        self.toaster.build(self.centralWidget())
        if config.load_error:
            self.toaster.show(f"Config could not be read: {config.load_error}", kind="error")
        self._refresh()

        if api is not None:
            self._load_remote()
        last_url = config.get("last_plan_url")
        if last_url:
            self._load_plan(last_url)

    # ── UI construction ─────────────────────────────────────────

    def _build_ui(self):
        root = QWidget()
        layout = QVBoxLayout(root)
        layout.setContentsMargins(*ROOT_LAYOUT_MARGINS)
        layout.setSpacing(ROOT_LAYOUT_SPACING)

        toolbar = QHBoxLayout()
        toolbar.setContentsMargins(8, 6, 8, 6)
        open_btn = QPushButton("Open Plan URL")
        reload_btn = QPushButton("Reload Measurements")
        toolbar.addWidget(open_btn)
        toolbar.addWidget(reload_btn)
        toolbar.addStretch(1)

        toolbar.addWidget(QLabel("Scale:"))
        self._preset_combo = QComboBox()
        self._preset_combo.addItems(list(SCALE_PRESETS))
        self._preset_combo.setCurrentText(self.session.calibration.preset)
        toolbar.addWidget(self._preset_combo)

        reset_btn = QPushButton("Reset View")
        zoom_in_btn = QPushButton("+")
        zoom_in_btn.setFixedWidth(32)
        zoom_out_btn = QPushButton("-")
        zoom_out_btn.setFixedWidth(32)
        self._zoom_label = QLabel("100%")
        toolbar.addWidget(reset_btn)
        toolbar.addWidget(zoom_out_btn)
        toolbar.addWidget(self._zoom_label)
        toolbar.addWidget(zoom_in_btn)
        layout.addLayout(toolbar)

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(self._build_tool_panel())
        self.plan_view = PlanGraphicsView(self.session)
        self.plan_view.textRequested.connect(self._prompt_text)
        splitter.addWidget(self.plan_view)
        splitter.setStretchFactor(0, 0)
        splitter.setStretchFactor(1, 1)
        layout.addWidget(splitter, 1)

        self.setCentralWidget(root)

        open_btn.clicked.connect(self._open_plan_dialog)
        reload_btn.clicked.connect(self._load_remote)
        self._preset_combo.currentTextChanged.connect(self._on_preset_changed)
        reset_btn.clicked.connect(self.session.reset_view)
        zoom_in_btn.clicked.connect(self._on_zoom_in)
        zoom_out_btn.clicked.connect(self._on_zoom_out)

    def _build_tool_panel(self):
        panel = QWidget()
        panel.setFixedWidth(TOOL_PANEL_WIDTH)
        tp_layout = QVBoxLayout(panel)
        tp_layout.setContentsMargins(8, 8, 8, 8)
        tp_layout.setSpacing(6)

        tp_layout.addWidget(QLabel("Tool:"))
        self._tool_group = QButtonGroup(panel)
        self._tool_ids = {}
        for index, (tool_id, label) in enumerate(TOOL_BUTTONS):
            button = QRadioButton(label)
            self._tool_group.addButton(button, index)
            self._tool_ids[index] = tool_id
            tp_layout.addWidget(button)
        self._tool_group.button(0).setChecked(True)
        self._tool_group.idToggled.connect(self._on_tool_changed)

        tp_layout.addWidget(_separator())
        tp_layout.addWidget(QLabel("Calibration:"))
        self._cal_status = QLabel("")
        self._cal_status.setWordWrap(True)
        tp_layout.addWidget(self._cal_status)
        self._cal_unit_combo = QComboBox()
        self._cal_unit_combo.addItems(list(CALIBRATION_UNITS))
        tp_layout.addWidget(self._cal_unit_combo)
        clear_cal_btn = QPushButton("Clear Calibration")
        clear_cal_btn.clicked.connect(self.session.clear_calibration)
        tp_layout.addWidget(clear_cal_btn)

        tp_layout.addWidget(_separator())
        tp_layout.addWidget(QLabel("Layer:"))
        self._layer_combo = QComboBox()
        self._layer_combo.addItems(list(LAYERS))
        self._layer_combo.setCurrentText(self.session.layer)
        self._layer_combo.currentTextChanged.connect(self.session.set_layer)
        tp_layout.addWidget(self._layer_combo)

        self._preview_label = QLabel("")
        self._preview_label.setWordWrap(True)
        tp_layout.addWidget(self._preview_label)

        tp_layout.addWidget(_separator())
        tp_layout.addWidget(QLabel("Measurements:"))
        self._measurement_list = QListWidget()
        self._measurement_list.setAlternatingRowColors(True)
        self._measurement_list.currentItemChanged.connect(self._on_list_selection)
        tp_layout.addWidget(self._measurement_list, 1)

        rename_btn = QPushButton("Rename")
        price_btn = QPushButton("Set Price")
        duplicate_btn = QPushButton("Duplicate")
        remove_btn = QPushButton("Remove Selected")
        recompute_btn = QPushButton("Recompute Values")
        for btn in (rename_btn, price_btn, duplicate_btn, remove_btn, recompute_btn):
            tp_layout.addWidget(btn)

        tp_layout.addWidget(_separator())
        tp_layout.addWidget(QLabel("Totals:"))
        self._total_line_label = QLabel("Linear: —")
        self._total_area_label = QLabel("Area: —")
        self._total_count_label = QLabel("Count: —")
        for lbl in (self._total_line_label, self._total_area_label, self._total_count_label):
            tp_layout.addWidget(lbl)
        copy_btn = QPushButton("Copy Totals")
        tp_layout.addWidget(copy_btn)

        rename_btn.clicked.connect(self._on_rename_selected)
        price_btn.clicked.connect(self._on_price_selected)
        duplicate_btn.clicked.connect(self._on_duplicate_selected)
        remove_btn.clicked.connect(self._on_remove_selected)
        recompute_btn.clicked.connect(self._on_recompute)
        copy_btn.clicked.connect(self._on_copy_totals)
        return panel

    # ── Session callbacks ───────────────────────────────────────

    def _refresh(self):
        session = self.session
        self.plan_view.refresh()
        self._zoom_label.setText(f"{session.transform.zoom * 100:.0f}%")
        self._cal_status.setText(session.calibration.status_text())

        preview = session.preview()
        if preview.value is not None and preview.unit == "px":
            self._preview_label.setText(f"Calibration line: {preview.value:.1f} px")
        elif preview.value is not None:
            self._preview_label.setText(f"Current: {format_value(preview.value, preview.unit)}")
        else:
            self._preview_label.setText("")

        self._rebuild_measurement_list()
        summary = session.summary()
        if not summary.measurement_count:
            self._total_line_label.setText("Linear: —")
            self._total_area_label.setText("Area: —")
            self._total_count_label.setText("Count: —")
        else:
            self._total_line_label.setText(f"Linear: {format_value(summary.total_line, summary.length_unit)}")
            self._total_area_label.setText(f"Area: {format_value(summary.total_area, summary.area_unit)}")
            self._total_count_label.setText(f"Count: {format_value(summary.total_count, 'count')}")

    def _rebuild_measurement_list(self):
        selected = self.session.store.selected
        self._measurement_list.blockSignals(True)
        self._measurement_list.clear()
        for measurement in self.session.measurements():
            text = measurement.label
            value_text = format_value(measurement.value, measurement.unit)
            if value_text:
                text = f"{text}: {value_text}"
            item = QListWidgetItem(text)
            item.setData(Qt.UserRole, measurement.id)
            self._measurement_list.addItem(item)
            if selected is not None and selected.id == measurement.id:
                self._measurement_list.setCurrentItem(item)
        self._measurement_list.blockSignals(False)

    def _set_status(self, message):
        self.statusBar().showMessage(message)

    def _on_persistence_error(self, message):
        self.toaster.show(f"Save failed: {message}", kind="error", duration_ms=4000)

    def _log_worker_error(self, trace_text):
        logger.error("Background task failed:\n%s", trace_text)

    # ── Prompts ─────────────────────────────────────────────────

    def _prompt_calibration_distance(self, pixel_distance):
        unit = self._cal_unit_combo.currentText()
        while True:
            text, ok = QInputDialog.getText(
                self,
                "Calibrate",
                f"Line is {pixel_distance:.1f} px.\nEnter its real-world length in {unit}\n(e.g. 10, 10' 6\", 3m):",
            )
            if not ok or not text.strip():
                self.session.key_down("Escape")
                self._set_status("Calibration cancelled.")
                return
            try:
                self.session.submit_calibration(text.strip(), unit)
            except InvalidCalibration as exc:
                self.toaster.show(f"Invalid calibration: {exc}", kind="error")
                continue
            self.toaster.show("Calibration saved", kind="success")
            return

    def _prompt_text(self):
        text, ok = QInputDialog.getText(self, "Annotation", "Note text:")
        if ok and text.strip():
            self.session.submit_text(text)
        else:
            self.session.cancel_text()

    # ── Toolbar handlers ────────────────────────────────────────

    def _on_tool_changed(self, button_id, checked):
        if not checked:
            return
        self.session.select_tool(self._tool_ids[button_id])
        self.plan_view.setFocus()

    def _on_preset_changed(self, label):
        try:
            self.session.select_preset(label)
        except ProjectError as exc:
            self.toaster.show(str(exc), kind="error")
            return
        self.config.set("scale_preset", label)

    def _on_zoom_in(self):
        vp = self.plan_view.viewport()
        self.session.zoom_in(vp.width() / 2, vp.height() / 2)

    def _on_zoom_out(self):
        vp = self.plan_view.viewport()
        self.session.zoom_out(vp.width() / 2, vp.height() / 2)

    def _on_list_selection(self, current, _previous):
        measurement_id = current.data(Qt.UserRole) if current is not None else None
        if measurement_id in self.session.store:
            self.session.store.select(measurement_id)

    def _selected_or_warn(self):
        selected = self.session.store.selected
        if selected is None:
            self.toaster.show("Select a measurement first.", kind="error")
        return selected

    def _on_rename_selected(self):
        selected = self._selected_or_warn()
        if selected is None:
            return
        text, ok = QInputDialog.getText(self, "Rename", "Label:", text=selected.label)
        if ok and text.strip():
            self.session.store.update(selected.id, label=text.strip())

    def _on_price_selected(self):
        selected = self._selected_or_warn()
        if selected is None:
            return
        material, ok = QInputDialog.getText(self, "Material", "Material type:", text=selected.material_type or "")
        if not ok:
            return
        price, ok = QInputDialog.getDouble(
            self, "Price", f"Price per {selected.unit}:", selected.price_per_unit or 0.0, 0.0, 1e9, 2
        )
        if ok:
            self.session.store.update(selected.id, material_type=material.strip() or None, price_per_unit=price)

    def _on_duplicate_selected(self):
        selected = self._selected_or_warn()
        if selected is not None:
            copy = self.session.store.duplicate(selected.id)
            self.session.store.select(copy.id)

    def _on_remove_selected(self):
        selected = self._selected_or_warn()
        if selected is not None:
            self.session.store.remove(selected.id)

    def _on_recompute(self):
        changed = self.session.store.recompute_all()
        self.toaster.show(f"Recomputed {changed} measurement(s)", kind="success")

    def _on_copy_totals(self):
        if not self.session.measurements():
            return
        QApplication.clipboard().setText(self.session.summary_text())
        self.toaster.show("Totals copied to clipboard", kind="success")

    # ── Background loads ────────────────────────────────────────

    def _open_plan_dialog(self):
        url, ok = QInputDialog.getText(self, "Open Plan", "Plan image URL:", text=self.config.get("last_plan_url", ""))
        if ok and url.strip():
            self._load_plan(url.strip())

    def _load_plan(self, url):
        self.session.begin_image_load(url)
        self.workers.submit(
            lambda: load_plan_image(url),
            on_result=self._on_plan_loaded,
            on_error=lambda trace: self.session.image_failed(_last_trace_line(trace)),
        )

    def _on_plan_loaded(self, image):
        self.plan_view.set_plan_image(image)
        self.session.image_loaded(image)
        self.config.set("last_plan_url", image.url)
        self.toaster.show(f"Plan loaded ({image.width}x{image.height})", kind="success")

    def _load_remote(self):
        if self.session.api is None:
            self.toaster.show("No takeoff API configured.", kind="error")
            return
        self.workers.submit(
            self.session.fetch_remote,
            on_result=self.session.apply_remote,
            on_error=lambda trace: self.toaster.show(
                f"Could not load measurements: {_last_trace_line(trace)}", kind="error", duration_ms=4000
            ),
        )

    # ── Window state ────────────────────────────────────────────

    def _apply_window_geometry(self, raw):
        try:
            width, height = (int(part) for part in str(raw).lower().split("x", 1))
        except ValueError:
            width, height = 1280, 800
        self.resize(max(640, width), max(480, height))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if getattr(self, "toaster", None) is not None:
            self.toaster.reposition()

    def closeEvent(self, event):
        self.config.set("window_geometry", f"{self.width()}x{self.height()}")
        super().closeEvent(event)


__all__ = ["TakeoffWindow"]
