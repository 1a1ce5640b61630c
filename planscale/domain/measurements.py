import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from planscale.constants import DEFAULT_CLASSIFICATION, DEFAULT_LAYER, TOOL_COLORS
from planscale.domain.geometry import Point, as_points
from planscale.errors import ValidationError


class MeasurementType(str, Enum):
    LINE = "line"
    AREA = "area"
    COUNT = "count"
    TEXT = "text"


# Point-count rule per type: (minimum, maximum or None)
POINT_COUNT_RULES = {
    MeasurementType.LINE: (2, 2),
    MeasurementType.AREA: (3, None),
    MeasurementType.COUNT: (1, 1),
    MeasurementType.TEXT: (1, 1),
}

GEOMETRIC_TYPES = (MeasurementType.LINE, MeasurementType.AREA)

EDITABLE_FIELDS = frozenset(
    {
        "label",
        "value",
        "unit",
        "division",
        "subcategory",
        "layer",
        "color",
        "material_type",
        "price_per_unit",
        "notes",
        "points",
    }
)


def coerce_type(raw) -> MeasurementType:
    try:
        return MeasurementType(raw)
    except ValueError as exc:
        raise ValidationError(f"Unknown measurement type: {raw!r}") from exc


def validate_points(kind: MeasurementType, points) -> tuple[Point, ...]:
    pts = as_points(points)
    minimum, maximum = POINT_COUNT_RULES[kind]
    if len(pts) < minimum or (maximum is not None and len(pts) > maximum):
        expected = f"exactly {minimum}" if minimum == maximum else f"at least {minimum}"
        raise ValidationError(f"A {kind.value} measurement needs {expected} points, got {len(pts)}.")
    return pts


def new_measurement_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DraftMeasurement:
    """Finalized geometry emitted by the tool state machine, not yet stored."""

    type: MeasurementType
    points: tuple[Point, ...]
    label: str = ""


@dataclass(frozen=True)
class Measurement:
    type: MeasurementType
    points: tuple[Point, ...]
    value: float
    unit: str
    label: str = ""
    division: str = ""
    subcategory: str = ""
    layer: str = DEFAULT_LAYER
    color: str = ""
    material_type: str | None = None
    price_per_unit: float | None = None
    notes: str | None = None
    id: str = field(default_factory=new_measurement_id)
    created_at: datetime = field(default_factory=utc_now)
    version: int = 0

    def __post_init__(self):
        object.__setattr__(self, "type", coerce_type(self.type))
        object.__setattr__(self, "points", validate_points(self.type, self.points))
        if not self.color:
            object.__setattr__(self, "color", TOOL_COLORS[self.type.value])
        if not self.division and not self.subcategory:
            division, subcategory = DEFAULT_CLASSIFICATION[self.type.value]
            object.__setattr__(self, "division", division)
            object.__setattr__(self, "subcategory", subcategory)

    @property
    def cost(self) -> float | None:
        if not self.material_type or self.price_per_unit is None:
            return None
        return self.value * self.price_per_unit

    @property
    def is_geometric(self) -> bool:
        return self.type in GEOMETRIC_TYPES

    def with_changes(self, **changes) -> "Measurement":
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        return replace(self, **changes)


__all__ = [
    "DraftMeasurement",
    "EDITABLE_FIELDS",
    "GEOMETRIC_TYPES",
    "Measurement",
    "MeasurementType",
    "POINT_COUNT_RULES",
    "coerce_type",
    "new_measurement_id",
    "utc_now",
    "validate_points",
]
