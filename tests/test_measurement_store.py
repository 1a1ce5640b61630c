import pytest

from planscale.constants import TOOL_COLORS
from planscale.domain.calibration import CalibrationManager
from planscale.domain.geometry import Point, as_points
from planscale.domain.measurements import DraftMeasurement, MeasurementType
from planscale.errors import PersistenceFailure, ValidationError
from planscale.services.measurement_store import MeasurementStore


class _FakeApi:
    def __init__(self, fail_creates=False):
        self.calls = []
        self.fail_creates = fail_creates

    def create_measurement(self, payload):
        self.calls.append(("create", payload["id"], payload))
        if self.fail_creates:
            raise PersistenceFailure("POST measurements returned HTTP 500")
        return {"id": f"srv-{len(self.calls)}"}

    def update_measurement(self, measurement_id, partial):
        self.calls.append(("update", measurement_id, partial))
        return {}

    def delete_measurement(self, measurement_id):
        self.calls.append(("delete", measurement_id, None))


def _store(api=None, errors=None):
    calibration = CalibrationManager()
    calibration.complete_calibration(100, 10, "ft")
    on_error = errors.append if errors is not None else None
    return MeasurementStore(calibration, api=api, on_error=on_error)


def _line(x1=0, y1=0, x2=50, y2=0):
    return DraftMeasurement(type=MeasurementType.LINE, points=as_points([(x1, y1), (x2, y2)]))


def test_add_draft_computes_value_and_metadata():
    store = _store()
    m = store.add(_line(), layer="Framing")

    assert m.value == 5.0
    assert m.unit == "ft"
    assert m.label == "Line 1"
    assert m.layer == "Framing"
    assert m.color == TOOL_COLORS["line"]
    assert (m.division, m.subcategory) == ("03", "Foundation")
    assert store.get(m.id) is m
    assert m.cost is None


def test_area_and_count_units():
    store = _store()
    area = store.add(DraftMeasurement(MeasurementType.AREA, as_points([(0, 0), (40, 0), (40, 20), (0, 20)])))
    count = store.add(DraftMeasurement(MeasurementType.COUNT, as_points([(5, 5)])))

    assert (area.value, area.unit) == (8.0, "sq ft")
    assert (count.value, count.unit) == (1.0, "count")
    assert (count.division, count.subcategory) == ("08", "Openings")


def test_labels_number_per_type():
    store = _store()
    assert store.add(_line()).label == "Line 1"
    assert store.add(_line()).label == "Line 2"
    assert store.next_label("area") == "Area 1"


def test_update_points_recomputes_value():
    store = _store()
    m = store.add(_line())
    updated = store.update(m.id, points=[(0, 0), (100, 0)])

    assert updated.value == 10.0
    assert updated.version == m.version + 1
    assert updated.created_at == m.created_at
    assert updated.id == m.id


def test_update_value_override_and_price():
    store = _store()
    m = store.add(_line())
    updated = store.update(m.id, value=42.0, material_type="Footing", price_per_unit=2.5)
    assert updated.value == 42.0
    assert updated.cost == 105.0


def test_move_point_recomputes_geometry_only():
    store = _store()
    line = store.add(_line())
    count = store.add(DraftMeasurement(MeasurementType.COUNT, as_points([(5, 5)])))

    assert store.move_point(line.id, 1, Point(0, 30)).value == 3.0
    assert store.move_point(count.id, 0, Point(9, 9)).value == 1.0
    with pytest.raises(IndexError):
        store.move_point(line.id, 5, Point(0, 0))


def test_update_rejects_bad_input():
    store = _store()
    m = store.add(_line())

    with pytest.raises(ValidationError):
        store.update(m.id, points=[(0, 0)])
    with pytest.raises(ValidationError):
        store.update(m.id, id="other")
    with pytest.raises(ValidationError):
        store.update(m.id, created_at=None)
    with pytest.raises(KeyError):
        store.update("missing", label="x")
    assert store.get(m.id) == m


def test_remove_clears_selection():
    store = _store()
    m = store.add(_line())
    store.select(m.id)
    assert store.selected == m

    store.remove(m.id)

    assert store.selected is None
    assert len(store) == 0
    with pytest.raises(KeyError):
        store.select(m.id)


def test_recompute_all_is_explicit():
    store = _store()
    m = store.add(_line())
    store.calibration.complete_calibration(50, 10, "ft")

    assert store.get(m.id).value == 5.0
    assert store.recompute_all() == 1
    assert store.get(m.id).value == 10.0
    assert store.recompute_all() == 0


def test_duplicate_offsets_points():
    store = _store()
    m = store.add(_line(), layer="Electrical")
    copy = store.duplicate(m.id, offset=(10, 5))

    assert copy.id != m.id
    assert copy.points == (Point(10, 5), Point(60, 5))
    assert copy.label == "Line 1 (copy)"
    assert copy.layer == "Electrical"
    assert [x.id for x in store.by_layer("Electrical")] == [m.id, copy.id]


def test_load_replaces_contents_from_wire():
    store = _store()
    store.add(_line())
    store.load(
        [
            {"id": "a1", "type": "line", "points": [{"x": 0, "y": 0}, {"x": 10, "y": 0}], "value": 1.0, "unit": "ft"},
            {"id": "a2", "type": "count", "points": [3, 4], "value": 1, "unit": "count"},
        ]
    )
    assert [m.id for m in store.measurements()] == ["a1", "a2"]
    assert store.get("a2").points == (Point(3.0, 4.0),)


def test_writes_use_server_id_after_create():
    api = _FakeApi()
    store = _store(api=api)
    m = store.add(_line())
    store.update(m.id, label="North wall")
    store.remove(m.id)

    assert [call[0] for call in api.calls] == ["create", "update", "delete"]
    assert api.calls[1][1] == "srv-1"
    assert api.calls[1][2] == {"label": "North wall", "version": 1}
    assert api.calls[2][1] == "srv-1"


def test_write_failure_reported_without_rollback():
    errors = []
    store = _store(api=_FakeApi(fail_creates=True), errors=errors)
    m = store.add(_line())

    assert m.id in store
    assert len(errors) == 1
    assert "HTTP 500" in errors[0]


def test_update_points_overrides_given_value():
    store = _store()
    m = store.add(_line())
    updated = store.update(m.id, points=[(0, 0), (100, 0)], value=99.0)
    assert updated.value == 10.0


def test_load_skips_malformed_records(caplog):
    store = _store()
    store.load(
        [
            {"id": "bad", "type": "area", "points": [0, 0, 10, 0], "value": 0, "unit": "sq ft"},
            {"id": "worse", "type": "line", "points": [0, 0, 1, 1], "version": "v2"},
            {"id": "ok", "type": "count", "points": [3, 4], "value": 1, "unit": "count"},
        ]
    )
    assert [m.id for m in store.measurements()] == ["ok"]
    assert "Skipping malformed measurement record 'bad'" in caplog.text
