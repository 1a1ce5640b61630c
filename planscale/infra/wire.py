"""JSON wire format shared with the takeoff REST API.

Points are encoded as ``[{"x": .., "y": ..}, ...]``. Older records that stored
points as a flat ``[x1, y1, x2, y2, ...]`` list are still accepted on decode.
Points may also arrive as a JSON string of either encoding.
"""

import json
import math
from datetime import datetime, timezone

from planscale.domain.calibration import Calibration, build_calibration
from planscale.domain.geometry import Point, as_points
from planscale.domain.measurements import Measurement
from planscale.errors import ValidationError

_FIELD_TO_WIRE = {
    "type": "type",
    "value": "value",
    "unit": "unit",
    "label": "label",
    "division": "division",
    "subcategory": "subcategory",
    "layer": "layer",
    "color": "color",
    "material_type": "materialType",
    "price_per_unit": "pricePerUnit",
    "notes": "notes",
    "version": "version",
}


def _number(raw, what: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(f"{what} must be a number, got {raw!r}")
    value = float(raw)
    if not math.isfinite(value):
        raise ValidationError(f"{what} must be finite")
    return value


def encode_points(points) -> list[dict]:
    return [{"x": p.x, "y": p.y} for p in as_points(points)]


def decode_points(raw) -> tuple[Point, ...]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ValidationError("Points payload is not valid JSON.") from exc
    if not isinstance(raw, list):
        raise ValidationError("Points payload must be a list.")
    if not raw:
        return ()
    if all(isinstance(item, dict) for item in raw):
        result = []
        for item in raw:
            if "x" not in item or "y" not in item:
                raise ValidationError("Point objects need both 'x' and 'y'.")
            result.append(Point(_number(item["x"], "x"), _number(item["y"], "y")))
        return tuple(result)
    if len(raw) % 2:
        raise ValidationError("Flattened point list must have an even length.")
    coords = [_number(item, "coordinate") for item in raw]
    return tuple(Point(coords[i], coords[i + 1]) for i in range(0, len(coords), 2))


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(raw) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid timestamp: {raw!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def measurement_to_wire(measurement: Measurement) -> dict:
    payload = {
        "id": measurement.id,
        "points": encode_points(measurement.points),
        "createdAt": _format_timestamp(measurement.created_at),
    }
    for attr, key in _FIELD_TO_WIRE.items():
        value = getattr(measurement, attr)
        payload[key] = value.value if attr == "type" else value
    return payload


def changes_to_wire(changes: dict) -> dict:
    """Partial update payload for the fields in ``changes``."""
    payload = {}
    for attr, value in changes.items():
        if attr == "points":
            payload["points"] = encode_points(value)
        elif attr in _FIELD_TO_WIRE:
            payload[_FIELD_TO_WIRE[attr]] = value
    return payload


def measurement_from_wire(payload: dict) -> Measurement:
    if not isinstance(payload, dict):
        raise ValidationError("Measurement payload must be an object.")
    kwargs = {}
    for attr, key in _FIELD_TO_WIRE.items():
        if key in payload and payload[key] is not None:
            kwargs[attr] = payload[key]
    if "type" not in kwargs:
        raise ValidationError("Measurement payload is missing 'type'.")
    kwargs["points"] = decode_points(payload.get("points", []))
    kwargs["value"] = _number(kwargs.get("value", 0.0), "value")
    kwargs.setdefault("unit", "")
    if "price_per_unit" in kwargs:
        kwargs["price_per_unit"] = _number(kwargs["price_per_unit"], "pricePerUnit")
    if "version" in kwargs:
        kwargs["version"] = int(_number(kwargs["version"], "version"))
    if payload.get("id"):
        kwargs["id"] = str(payload["id"])
    created_at = _parse_timestamp(payload.get("createdAt"))
    if created_at is not None:
        kwargs["created_at"] = created_at
    return Measurement(**kwargs)


def calibration_to_wire(calibration: Calibration) -> dict:
    return {
        "pixelDistance": calibration.pixel_distance,
        "realDistance": calibration.real_distance,
        "unit": calibration.unit,
        "scale": calibration.scale,
    }


def calibration_from_wire(payload) -> Calibration | None:
    """Decode a calibration record; an empty payload means not calibrated."""
    if not payload:
        return None
    if not isinstance(payload, dict):
        raise ValidationError("Calibration payload must be an object.")
    return build_calibration(
        payload.get("pixelDistance"),
        payload.get("realDistance"),
        payload.get("unit", "ft"),
    )


__all__ = [
    "calibration_from_wire",
    "calibration_to_wire",
    "changes_to_wire",
    "decode_points",
    "encode_points",
    "measurement_from_wire",
    "measurement_to_wire",
]
