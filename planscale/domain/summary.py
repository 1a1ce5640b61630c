from dataclasses import dataclass, field
from typing import Iterable

from planscale.constants import DIVISIONS
from planscale.domain.helpers import format_value
from planscale.domain.measurements import Measurement, MeasurementType


@dataclass
class DivisionTotals:
    division: str
    name: str
    line: float = 0.0
    area: float = 0.0
    count: float = 0.0
    text: int = 0
    cost: float = 0.0
    items: list = field(default_factory=list)

    def add(self, measurement: Measurement) -> None:
        if measurement.type == MeasurementType.LINE:
            self.line += measurement.value
        elif measurement.type == MeasurementType.AREA:
            self.area += measurement.value
        elif measurement.type == MeasurementType.COUNT:
            self.count += measurement.value
        else:
            self.text += 1
        cost = measurement.cost
        if cost is not None:
            self.cost += cost
        self.items.append(measurement)


@dataclass
class TakeoffSummary:
    divisions: list[DivisionTotals]
    length_unit: str = "ft"
    area_unit: str = "sq ft"

    @property
    def total_line(self) -> float:
        return sum(d.line for d in self.divisions)

    @property
    def total_area(self) -> float:
        return sum(d.area for d in self.divisions)

    @property
    def total_count(self) -> float:
        return sum(d.count for d in self.divisions)

    @property
    def total_cost(self) -> float:
        return sum(d.cost for d in self.divisions)

    @property
    def measurement_count(self) -> int:
        return sum(len(d.items) for d in self.divisions)


def division_name(code: str) -> str:
    return DIVISIONS.get(code, code or "Unclassified")


def totals_by_division(
    measurements: Iterable[Measurement],
    length_unit: str = "ft",
    area_unit: str = "sq ft",
) -> TakeoffSummary:
    """Group measurements by CSI division, in division code order."""
    buckets: dict[str, DivisionTotals] = {}
    for measurement in measurements:
        code = measurement.division
        bucket = buckets.get(code)
        if bucket is None:
            bucket = DivisionTotals(division=code, name=division_name(code))
            buckets[code] = bucket
        bucket.add(measurement)
    ordered = [buckets[code] for code in sorted(buckets)]
    return TakeoffSummary(divisions=ordered, length_unit=length_unit, area_unit=area_unit)


def summary_text(summary: TakeoffSummary) -> str:
    """Plain-text totals for the clipboard."""
    lines = [f"Measurements: {summary.measurement_count}"]
    for totals in summary.divisions:
        lines.append(f"{totals.division} {totals.name}".strip())
        if totals.line:
            lines.append(f"  Linear: {format_value(totals.line, summary.length_unit)}")
        if totals.area:
            lines.append(f"  Area: {format_value(totals.area, summary.area_unit)}")
        if totals.count:
            lines.append(f"  Count: {format_value(totals.count, 'count')}")
        if totals.text:
            lines.append(f"  Notes: {totals.text}")
        if totals.cost:
            lines.append(f"  Cost: ${totals.cost:,.2f}")
    lines.append("Totals:")
    lines.append(f"  Linear: {format_value(summary.total_line, summary.length_unit)}")
    lines.append(f"  Area: {format_value(summary.total_area, summary.area_unit)}")
    lines.append(f"  Count: {format_value(summary.total_count, 'count')}")
    if summary.total_cost:
        lines.append(f"  Cost: ${summary.total_cost:,.2f}")
    return "\n".join(lines)


__all__ = ["DivisionTotals", "TakeoffSummary", "division_name", "summary_text", "totals_by_division"]
