from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    AUTHENTICATION_REQUIRED = ErrorDefinition(
        "AUTHENTICATION_REQUIRED",
        "Authentication required",
        status.HTTP_401_UNAUTHORIZED,
    )
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    FORBIDDEN = ErrorDefinition(
        "FORBIDDEN",
        "Only the user who opened the cash register can close it",
        status.HTTP_403_FORBIDDEN,
    )
    ASSIGNMENT_NOT_FOUND = ErrorDefinition(
        "ASSIGNMENT_NOT_FOUND",
        "Cash register is not assigned to the user",
        status.HTTP_403_FORBIDDEN,
    )
    REPORT_TOKEN_INVALID = ErrorDefinition(
        "REPORT_TOKEN_INVALID",
        "Report access token does not grant this report",
        status.HTTP_403_FORBIDDEN,
    )
    SESSION_NOT_FOUND = ErrorDefinition(
        "SESSION_NOT_FOUND",
        "Cash register session not found",
        status.HTTP_404_NOT_FOUND,
    )
    CASH_REGISTER_NOT_FOUND = ErrorDefinition(
        "CASH_REGISTER_NOT_FOUND",
        "Cash register not found or inactive",
        status.HTTP_404_NOT_FOUND,
    )
    SESSION_ALREADY_OPEN = ErrorDefinition(
        "SESSION_ALREADY_OPEN",
        "An open session already exists for the user or the cash register",
        status.HTTP_409_CONFLICT,
    )
    SESSION_NOT_OPEN = ErrorDefinition(
        "SESSION_NOT_OPEN",
        "Cash register session is not open",
        status.HTTP_409_CONFLICT,
    )
    DENOMINATIONS_REQUIRED = ErrorDefinition(
        "DENOMINATIONS_REQUIRED",
        "Denominations are required when the amount is greater than zero",
        status.HTTP_400_BAD_REQUEST,
    )
    CURRENCY_MISMATCH = ErrorDefinition(
        "CURRENCY_MISMATCH",
        "Denominations must be in the local currency",
        status.HTTP_400_BAD_REQUEST,
    )
    AMOUNT_MISMATCH = ErrorDefinition(
        "AMOUNT_MISMATCH",
        "Denominations total does not match the amount",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_REPORT_FORMAT = ErrorDefinition(
        "INVALID_REPORT_FORMAT",
        "Unsupported report format",
        status.HTTP_400_BAD_REQUEST,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_400_BAD_REQUEST,
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
