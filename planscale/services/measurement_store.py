import logging
import re
from collections.abc import Callable
from dataclasses import replace

from planscale.constants import DEFAULT_LAYER
from planscale.domain.calibration import CalibrationManager
from planscale.domain.geometry import Point, measure
from planscale.domain.helpers import area_unit_for
from planscale.domain.measurements import (
    DraftMeasurement,
    Measurement,
    MeasurementType,
    new_measurement_id,
    utc_now,
    validate_points,
)
from planscale.errors import PersistenceFailure, ValidationError
from planscale.infra.wire import changes_to_wire, measurement_from_wire, measurement_to_wire
from planscale.services.write_queue import WriteQueue

logger = logging.getLogger(__name__)

_LABEL_PREFIX = {
    MeasurementType.LINE: "Line",
    MeasurementType.AREA: "Area",
    MeasurementType.COUNT: "Count",
    MeasurementType.TEXT: "Text",
}


def _record_id(record):
    return record.get("id") if isinstance(record, dict) else None


class MeasurementStore:
    """In-memory list of measurements with optimistic remote persistence.

    Local state changes first; the matching API write is queued afterwards and
    failures are reported through ``on_error`` without rolling back.
    """

    def __init__(
        self,
        calibration: CalibrationManager,
        api=None,
        write_queue: WriteQueue | None = None,
        on_change: Callable[[], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ):
        self.calibration = calibration
        self.api = api
        self.on_change = on_change
        self.on_error = on_error
        self.write_queue = write_queue or WriteQueue()
        if self.write_queue.on_error is None:
            self.write_queue.on_error = self._on_write_error
        self._items: dict[str, Measurement] = {}
        self._remote_ids: dict[str, str] = {}
        self._selected_id: str | None = None

    # ── Queries ──────────────────────────────────────────────

    def get(self, measurement_id: str) -> Measurement:
        try:
            return self._items[measurement_id]
        except KeyError:
            raise KeyError(f"Unknown measurement: {measurement_id}") from None

    def measurements(self) -> list[Measurement]:
        return list(self._items.values())

    def by_layer(self, layer: str) -> list[Measurement]:
        return [m for m in self._items.values() if m.layer == layer]

    def __len__(self):
        return len(self._items)

    def __contains__(self, measurement_id):
        return measurement_id in self._items

    @property
    def selected(self) -> Measurement | None:
        if self._selected_id is None:
            return None
        return self._items.get(self._selected_id)

    def remote_id(self, measurement_id: str) -> str:
        return self._remote_ids.get(measurement_id, measurement_id)

    def next_label(self, kind) -> str:
        kind = MeasurementType(kind)
        prefix = _LABEL_PREFIX[kind]
        pattern = re.compile(rf"^{prefix} (\d+)$")
        highest = 0
        same_type = 0
        for m in self._items.values():
            if m.type != kind:
                continue
            same_type += 1
            match = pattern.match(m.label or "")
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{prefix} {max(highest, same_type) + 1}"

    # ── Value derivation ─────────────────────────────────────

    def unit_for(self, kind) -> str:
        kind = MeasurementType(kind)
        if kind == MeasurementType.LINE:
            return self.calibration.resolve_unit()
        if kind == MeasurementType.AREA:
            return area_unit_for(self.calibration.resolve_unit())
        return kind.value

    def value_for(self, kind, points) -> float:
        kind = MeasurementType(kind)
        return measure(kind.value, points, self.calibration.resolve_scale())

    # ── Mutations ────────────────────────────────────────────

    def build(self, draft: DraftMeasurement, **metadata) -> Measurement:
        """Turn a finalized draft into a measurement under the current scale."""
        kind = MeasurementType(draft.type)
        label = draft.label or self.next_label(kind)
        return Measurement(
            type=kind,
            points=draft.points,
            value=self.value_for(kind, draft.points),
            unit=self.unit_for(kind),
            label=label,
            layer=metadata.pop("layer", None) or DEFAULT_LAYER,
            **metadata,
        )

    def add(self, item: DraftMeasurement | Measurement, **metadata) -> Measurement:
        measurement = self.build(item, **metadata) if isinstance(item, DraftMeasurement) else item
        if measurement.id in self._items:
            raise ValidationError(f"Measurement already exists: {measurement.id}")
        self._items[measurement.id] = measurement
        logger.debug("Added %s %s = %.4f %s", measurement.type.value, measurement.id, measurement.value, measurement.unit)
        self._queue_create(measurement)
        self._changed()
        return measurement

    def update(self, measurement_id: str, **changes) -> Measurement:
        current = self.get(measurement_id)
        if not changes:
            return current
        changes = dict(changes)
        if "points" in changes:
            points = validate_points(current.type, changes["points"])
            changes["points"] = points
            # Points always re-derive the value.
            if current.is_geometric:
                changes["value"] = self.value_for(current.type, points)
                changes["unit"] = self.unit_for(current.type)
        updated = current.with_changes(**changes)
        updated = replace(updated, version=current.version + 1)
        self._items[measurement_id] = updated
        self._queue_update(updated, changes)
        self._changed()
        return updated

    def move_point(self, measurement_id: str, index: int, point: Point) -> Measurement:
        current = self.get(measurement_id)
        points = list(current.points)
        if not -len(points) <= index < len(points):
            raise IndexError(f"Point index {index} out of range for {measurement_id}")
        points[index] = point
        return self.update(measurement_id, points=tuple(points))

    def remove(self, measurement_id: str) -> Measurement:
        measurement = self.get(measurement_id)
        del self._items[measurement_id]
        if self._selected_id == measurement_id:
            self._selected_id = None
        self._queue_delete(measurement)
        self._changed()
        return measurement

    def select(self, measurement_id: str | None) -> Measurement | None:
        if measurement_id is not None and measurement_id not in self._items:
            raise KeyError(f"Unknown measurement: {measurement_id}")
        self._selected_id = measurement_id
        self._changed()
        return self.selected

    def duplicate(self, measurement_id: str, offset: tuple[float, float] = (20.0, 20.0)) -> Measurement:
        source = self.get(measurement_id)
        dx, dy = offset
        copy = Measurement(
            type=source.type,
            points=tuple(p.offset(dx, dy) for p in source.points),
            value=source.value,
            unit=source.unit,
            label=f"{source.label} (copy)" if source.label else self.next_label(source.type),
            division=source.division,
            subcategory=source.subcategory,
            layer=source.layer,
            color=source.color,
            material_type=source.material_type,
            price_per_unit=source.price_per_unit,
            notes=source.notes,
            id=new_measurement_id(),
            created_at=utc_now(),
        )
        return self.add(copy)

    def recompute_all(self) -> int:
        """Re-derive line/area values under the current scale. Returns how many changed."""
        changed = 0
        for measurement in list(self._items.values()):
            if not measurement.is_geometric:
                continue
            value = self.value_for(measurement.type, measurement.points)
            unit = self.unit_for(measurement.type)
            if value == measurement.value and unit == measurement.unit:
                continue
            self.update(measurement.id, value=value, unit=unit)
            changed += 1
        return changed

    def load(self, records) -> None:
        """Replace local contents with records read back from persistence."""
        items = {}
        remote_ids = {}
        for record in records or []:
            try:
                measurement = record if isinstance(record, Measurement) else measurement_from_wire(record)
            except ValidationError as exc:
                logger.warning("Skipping malformed measurement record %r: %s", _record_id(record), exc)
                continue
            items[measurement.id] = measurement
            remote_ids[measurement.id] = measurement.id
        self._items = items
        self._remote_ids = remote_ids
        self._selected_id = None
        self._changed()

    # ── Persistence ──────────────────────────────────────────

    def _queue_create(self, measurement: Measurement) -> None:
        if self.api is None:
            return
        payload = measurement_to_wire(measurement)

        def _job():
            return self.api.create_measurement(payload)

        def _created(result):
            remote = (result or {}).get("id") if isinstance(result, dict) else None
            self._remote_ids[measurement.id] = str(remote or measurement.id)

        self.write_queue.enqueue(measurement.id, _job, f"create {measurement.id}", on_success=_created)

    def _queue_update(self, measurement: Measurement, changes: dict) -> None:
        if self.api is None:
            return
        payload = changes_to_wire(changes)
        payload["version"] = measurement.version

        def _job():
            return self.api.update_measurement(self.remote_id(measurement.id), payload)

        self.write_queue.enqueue(measurement.id, _job, f"update {measurement.id} v{measurement.version}")

    def _queue_delete(self, measurement: Measurement) -> None:
        if self.api is None:
            return

        def _job():
            self.api.delete_measurement(self.remote_id(measurement.id))
            self._remote_ids.pop(measurement.id, None)

        self.write_queue.enqueue(measurement.id, _job, f"delete {measurement.id}")

    def _on_write_error(self, key: str, description: str, error: Exception) -> None:
        if not isinstance(error, PersistenceFailure):
            error = PersistenceFailure(f"{description}: {error}")
        if self.on_error is not None:
            self.on_error(str(error))

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()


__all__ = ["MeasurementStore"]
