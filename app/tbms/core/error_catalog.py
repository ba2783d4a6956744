from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INVALID_SHEET = ErrorDefinition(
        "INVALID_SHEET",
        "Invalid sheet name",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_PARAMETERS = ErrorDefinition(
        "INVALID_PARAMETERS",
        "Invalid parameters",
        status.HTTP_400_BAD_REQUEST,
    )
    UNKNOWN_ACTION = ErrorDefinition(
        "UNKNOWN_ACTION",
        "Unknown action",
        status.HTTP_400_BAD_REQUEST,
    )
    ROW_NOT_FOUND = ErrorDefinition(
        "ROW_NOT_FOUND",
        "Row not found",
        status.HTTP_404_NOT_FOUND,
    )
    REQUEST_NOT_FOUND = ErrorDefinition(
        "REQUEST_NOT_FOUND",
        "Time change request not found",
        status.HTTP_404_NOT_FOUND,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Time change request cannot move to the requested state",
        status.HTTP_409_CONFLICT,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
