import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from planscale.constants import CALIBRATION_UNITS, DEFAULT_SCALE_PRESET, SCALE_PRESETS
from planscale.errors import InvalidCalibration, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Calibration:
    pixel_distance: float
    real_distance: float
    unit: str = "ft"

    @property
    def scale(self) -> float:
        """Pixels per real unit."""
        return self.pixel_distance / self.real_distance


def build_calibration(pixel_distance, real_distance, unit: str = "ft") -> Calibration:
    try:
        pixels = float(pixel_distance)
        real = float(real_distance)
    except (TypeError, ValueError) as exc:
        raise InvalidCalibration(f"Calibration distances must be numbers: {exc}") from exc
    if not math.isfinite(pixels) or pixels <= 0:
        raise InvalidCalibration("Pixel distance must be greater than zero.")
    if not math.isfinite(real) or real <= 0:
        raise InvalidCalibration("Real distance must be greater than zero.")
    unit = (unit or "").strip().lower()
    if unit not in CALIBRATION_UNITS:
        raise InvalidCalibration(f"Unsupported calibration unit: {unit or '(empty)'}")
    return Calibration(pixel_distance=pixels, real_distance=real, unit=unit)


class CalibrationManager:
    """Holds the plan's active calibration and the selected scale preset.

    ``resolve_scale`` is the single place that decides pixels-per-unit.
    """

    def __init__(
        self,
        preset: str = DEFAULT_SCALE_PRESET,
        on_change: Callable[[Calibration | None], None] | None = None,
    ):
        if preset not in SCALE_PRESETS:
            preset = DEFAULT_SCALE_PRESET
        self._preset = preset
        self._calibration: Calibration | None = None
        self.on_change = on_change

    @property
    def calibration(self) -> Calibration | None:
        return self._calibration

    @property
    def preset(self) -> str:
        return self._preset

    @property
    def is_calibrated(self) -> bool:
        return self._calibration is not None

    def complete_calibration(self, pixel_distance, real_distance, unit: str = "ft") -> Calibration:
        calibration = build_calibration(pixel_distance, real_distance, unit)
        self._calibration = calibration
        logger.info(
            "Calibrated %.2f px = %.4f %s (%.4f px/%s)",
            calibration.pixel_distance,
            calibration.real_distance,
            calibration.unit,
            calibration.scale,
            calibration.unit,
        )
        if self.on_change is not None:
            self.on_change(calibration)
        return calibration

    def load(self, calibration: Calibration | None) -> None:
        self._calibration = calibration

    def clear_calibration(self) -> None:
        if self._calibration is None:
            return
        self._calibration = None
        if self.on_change is not None:
            self.on_change(None)

    def select_preset(self, label: str) -> None:
        if label not in SCALE_PRESETS:
            raise ValidationError(f"Unknown scale preset: {label}")
        self._preset = label

    def resolve_scale(self) -> float:
        if self._calibration is not None:
            return self._calibration.scale
        return SCALE_PRESETS[self._preset]

    def resolve_unit(self) -> str:
        if self._calibration is not None:
            return self._calibration.unit
        return "ft"

    def status_text(self) -> str:
        if self._calibration is not None:
            return f"1 {self._calibration.unit} = {self._calibration.scale:.2f} px"
        return f"Scale {self._preset} (not calibrated)"


__all__ = ["Calibration", "CalibrationManager", "build_calibration"]
