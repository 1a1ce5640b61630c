import planscale
from planscale.errors import ExternalServiceError, ImageLoadFailure, InvalidCalibration, PersistenceFailure, ProjectError, ValidationError
from planscale.paths import CONFIG_FILE


def test_package_exports_modules():
    assert set(planscale.__all__) == {"constants", "domain", "errors", "infra", "paths", "services"}
    assert CONFIG_FILE.endswith("config.json")


def test_error_hierarchy():
    assert issubclass(InvalidCalibration, ValidationError)
    assert issubclass(ValidationError, ProjectError)
    assert issubclass(ImageLoadFailure, ExternalServiceError)
    assert issubclass(PersistenceFailure, ExternalServiceError)
    assert issubclass(ExternalServiceError, ProjectError)


def test_service_modules_import():
    from planscale.services import measurement_store, takeoff_session

    assert callable(measurement_store.MeasurementStore.measurements)
    assert takeoff_session.TakeoffSession.__name__ == "TakeoffSession"
