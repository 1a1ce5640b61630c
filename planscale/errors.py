"""Project-wide error types."""


class ProjectError(Exception):
    """Base for all PlanScale errors."""


class ValidationError(ProjectError):
    """Invalid input data."""


class InvalidCalibration(ValidationError):
    """Calibration distances or unit rejected before the record is written."""


class ExternalServiceError(ProjectError):
    """Third-party API or service failure."""


class ImageLoadFailure(ExternalServiceError):
    """Plan image could not be fetched or is not a raster image."""


class PersistenceFailure(ExternalServiceError):
    """A create/update/delete call against the takeoff API failed."""


__all__ = [
    "ExternalServiceError",
    "ImageLoadFailure",
    "InvalidCalibration",
    "PersistenceFailure",
    "ProjectError",
    "ValidationError",
]
