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
    INSUFFICIENT_STOCK = ErrorDefinition(
        "INSUFFICIENT_STOCK",
        "Insufficient stock",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INVALID_TRANSFER_STATE = ErrorDefinition(
        "INVALID_TRANSFER_STATE",
        "Transfer cannot perform this action from its current state",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    OVER_RECEIPT = ErrorDefinition(
        "OVER_RECEIPT",
        "Received quantity exceeds requested quantity",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    PAYMENT_MISMATCH = ErrorDefinition(
        "PAYMENT_MISMATCH",
        "Payment amounts do not match the transfer total",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    ACTOR_REQUIRED = ErrorDefinition(
        "ACTOR_REQUIRED",
        "Actor identity is required",
        status.HTTP_400_BAD_REQUEST,
    )
    TRANSFER_NOT_FOUND = ErrorDefinition(
        "TRANSFER_NOT_FOUND",
        "Transfer not found",
        status.HTTP_404_NOT_FOUND,
    )
    PRODUCT_NOT_FOUND = ErrorDefinition(
        "PRODUCT_NOT_FOUND",
        "Product not found",
        status.HTTP_404_NOT_FOUND,
    )
    STORE_NOT_FOUND = ErrorDefinition(
        "STORE_NOT_FOUND",
        "Store not found",
        status.HTTP_404_NOT_FOUND,
    )
    SALE_NOT_FOUND = ErrorDefinition(
        "SALE_NOT_FOUND",
        "Sale not found",
        status.HTTP_404_NOT_FOUND,
    )
    CONFLICT = ErrorDefinition(
        "CONFLICT",
        "Concurrent modification detected, retry the request",
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
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


class DomainValidationError(AppError):
    """Caller error. Never retried, never coerced into a valid request."""

    def __init__(self, error: ErrorDefinition = ErrorCatalog.VALIDATION_ERROR, details: object | None = None):
        super().__init__(error, details)


class NotFoundError(AppError):
    pass


class ConflictError(AppError):
    """Retryable failure raised when the backing transaction detects a concurrent writer."""

    def __init__(self, error: ErrorDefinition = ErrorCatalog.CONFLICT, details: object | None = None):
        super().__init__(error, details)
