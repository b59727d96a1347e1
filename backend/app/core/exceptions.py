from typing import Any


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidTimeRange(AppError):
    """Raised when a start/end pair is malformed, off-grid or not increasing."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class MissingReference(AppError):
    """Raised when a required identifier is empty."""
    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(
            f"Missing required reference(s): {', '.join(self.fields)}",
            status_code=400,
            details={"fields": self.fields},
        )


class InvalidFilter(AppError):
    """Raised when a query filter value cannot be used."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class InvalidDateRange(AppError):
    def __init__(self, message: str = "End date must be after start date"):
        super().__init__(message, status_code=400)


class SchedulingConflict(AppError):
    """An active entry already occupies the proposed slot on one axis."""
    axis: str = ""

    def __init__(self, existing: Any, conflict: dict):
        self.existing = existing
        super().__init__(
            f"Scheduling conflict detected: {self.axis} is already booked",
            status_code=409,
            details={"axis": self.axis, "conflict": conflict},
        )


class ClassroomConflict(SchedulingConflict):
    axis = "classroom"


class TeacherConflict(SchedulingConflict):
    axis = "teacher"


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


NotFound = ResourceNotFoundError


class StoreUnavailable(AppError):
    """Raised when the backing store fails or times out. Safe to retry."""
    def __init__(self, message: str = "Timetable store is unavailable"):
        super().__init__(message, status_code=503)


class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)


class SemesterActivationConflict(AppError):
    """Raised when another activation committed first. Safe to retry."""
    def __init__(self, semester_id: str):
        super().__init__(
            "Another semester was activated concurrently; retry the activation",
            status_code=409,
            details={"semester": semester_id},
        )
