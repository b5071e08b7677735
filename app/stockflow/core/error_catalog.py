from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Resource not found",
        status.HTTP_404_NOT_FOUND,
    )
    CONFLICT = ErrorDefinition(
        "CONFLICT",
        "Resource already exists",
        status.HTTP_409_CONFLICT,
    )
    INVALID_STATE_TRANSITION = ErrorDefinition(
        "INVALID_STATE_TRANSITION",
        "Action not allowed in the current transfer status",
        status.HTTP_409_CONFLICT,
    )
    IMMUTABLE_AFTER_APPROVAL = ErrorDefinition(
        "IMMUTABLE_AFTER_APPROVAL",
        "Transfer can no longer be edited",
        status.HTTP_409_CONFLICT,
    )
    CONCURRENT_MODIFICATION = ErrorDefinition(
        "CONCURRENT_MODIFICATION",
        "Transfer was modified concurrently",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
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


class CatalogError(AppError):
    """AppError bound to a fixed catalog entry.

    ``message`` lands in ``details["message"]`` so clients can show why the
    action failed; extra keyword arguments are merged into ``details``.
    """

    definition: ErrorDefinition = ErrorCatalog.INTERNAL_ERROR

    def __init__(self, message: str | None = None, **details):
        payload = dict(details)
        if message:
            payload["message"] = message
        super().__init__(self.definition, details=payload or None)

    @property
    def message(self) -> str:
        if isinstance(self.details, dict) and self.details.get("message"):
            return str(self.details["message"])
        return self.error.message


class ValidationError(CatalogError):
    definition = ErrorCatalog.VALIDATION_ERROR


class AuthorizationError(CatalogError):
    definition = ErrorCatalog.PERMISSION_DENIED


class InvalidStateTransition(CatalogError):
    definition = ErrorCatalog.INVALID_STATE_TRANSITION


class ImmutableAfterApproval(CatalogError):
    definition = ErrorCatalog.IMMUTABLE_AFTER_APPROVAL


class NotFoundError(CatalogError):
    definition = ErrorCatalog.NOT_FOUND


class ConflictError(CatalogError):
    definition = ErrorCatalog.CONFLICT


class ConcurrentModification(CatalogError):
    definition = ErrorCatalog.CONCURRENT_MODIFICATION
