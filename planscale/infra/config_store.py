import json
import os

from planscale.constants import (
    DEFAULT_LAYER,
    DEFAULT_SCALE_PRESET,
    HTTP_WRITE_BACKOFF_SEC,
    HTTP_WRITE_RETRIES,
    LINE_INTERACTION_CLICK,
    ZOOM_MAX,
    ZOOM_MIN,
    ZOOM_STEP,
)
from planscale.paths import CONFIG_DIR, CONFIG_FILE


class Config:
    """Persistent configuration manager."""

    def __init__(self, path=CONFIG_FILE):
        self.path = path
        self.load_error = None
        self.data = {
            "api_base_url": "",
            "api_token": "",
            "scale_preset": DEFAULT_SCALE_PRESET,
            "zoom_min": ZOOM_MIN,
            "zoom_max": ZOOM_MAX,
            "zoom_step": ZOOM_STEP,
            "line_interaction": LINE_INTERACTION_CLICK,
            "default_layer": DEFAULT_LAYER,
            "write_retries": HTTP_WRITE_RETRIES,
            "write_backoff_sec": HTTP_WRITE_BACKOFF_SEC,
            "window_geometry": "1280x800",
            "last_plan_url": "",
        }
        self.load()

    def load(self):
        self.load_error = None
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    saved = json.load(f)
                if not isinstance(saved, dict):
                    raise ValueError("Config payload must be a JSON object.")
                self.data.update(saved)
            except (OSError, json.JSONDecodeError, TypeError, ValueError) as exc:
                self.load_error = str(exc)

    def save(self):
        os.makedirs(os.path.dirname(self.path) or CONFIG_DIR, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2)

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value):
        self.data[key] = value
        self.save()

    def get_float(self, key, default: float) -> float:
        try:
            return float(self.data.get(key, default))
        except (TypeError, ValueError):
            return float(default)

    def get_int(self, key, default: int) -> int:
        try:
            return int(self.data.get(key, default))
        except (TypeError, ValueError):
            return int(default)
