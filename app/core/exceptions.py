"""Domain exceptions translated to HTTP responses in main.py."""

from typing import Any

from fastapi import status


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.detail}


class ValidationError(AppError):
    """Malformed input. Carries field-level errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation error"

    def __init__(
        self,
        detail: str | None = None,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(detail)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.detail, "errors": self.errors}


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(AppError):
    """Unique value already taken."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class StateError(AppError):
    """Illegal status transition."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid state transition"


class ExternalServiceError(AppError):
    """Notification or storage collaborator failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "External service error"


class PaymentRequiredError(AppError):
    """School access suspended for non-payment."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = "Payment required. School access has been suspended due to unpaid invoices."

    def __init__(self, payment_status: str, days_overdue: int) -> None:
        super().__init__()
        self.payment_status = payment_status
        self.days_overdue = days_overdue

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.detail,
            "payment_status": self.payment_status,
            "days_overdue": self.days_overdue,
        }
