"""
Centralized HTTP exceptions for consistent error handling.

Usage:
    from shared.utils.exceptions import NotFoundError, InsufficientStockError

    raise NotFoundError("Meal", meal_id)
    raise InsufficientStockError("Only 2 items available", remaining=2)
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Meal", 123)
        raise NotFoundError("Cart item", row_id, user_id=user_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class BookingNotFoundError(AppException):
    """No booking matches the reference number or ID."""

    def __init__(self, reference: str | int | None = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
            log_level="warning",
            reference=reference,
            **log_context,
        )


class CartItemNotFoundError(NotFoundError):
    """Cart row absent or owned by someone else."""

    def __init__(self, row_id: int | None = None, **log_context: Any):
        super().__init__("Cart item", row_id, **log_context)


# =============================================================================
# 401 / 403 Auth Errors
# =============================================================================


class UnauthorizedError(AppException):
    """Missing or invalid credentials (401)."""

    def __init__(self, detail: str = "Not authenticated", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


class InvalidSignatureError(AppException):
    """Webhook signature missing, stale or not matching."""

    def __init__(self, provider: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
            log_level="warning",
            provider=provider,
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("override payment status")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """User doesn't have the required role."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(required_roles)
        super().__init__(
            f"perform this action (requires role: {roles_str})",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Cart is empty")
        raise ValidationError("Invalid quantity", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class MissingCorrelationIdError(ValidationError):
    """Webhook payload carries no booking reference."""

    def __init__(self, field: str, **log_context: Any):
        super().__init__(f"Missing {field}", field=field, **log_context)


# =============================================================================
# 409 Conflict Errors (business-rule rejections)
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Booking is already cancelled")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InsufficientStockError(ConflictError):
    """
    Requested quantity exceeds what is left.

    The message always quotes the remaining quantity so the client can
    offer a corrected amount; it is also exposed as `remaining`.
    """

    def __init__(self, detail: str, remaining: int, **log_context: Any):
        self.remaining = remaining
        super().__init__(detail, remaining=remaining, **log_context)


class ItemUnavailableError(ConflictError):
    """Item exists but is not open for ordering."""

    def __init__(self, item_type: str, item_id: int, **log_context: Any):
        noun = "Event" if item_type == "EVENT" else "Meal"
        super().__init__(
            f"{noun} is not available for order",
            item_type=item_type,
            item_id=item_id,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Internal server error", reference=ref)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)


# =============================================================================
# 5xx Upstream Errors
# =============================================================================


class ExternalServiceError(AppException):
    """External service error (502 or 503)."""

    def __init__(
        self,
        service: str,
        is_unavailable: bool = False,
        retry_after: int | None = None,
        **log_context: Any,
    ):
        if is_unavailable:
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            detail = f"{service} is temporarily unavailable"
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
            detail = f"Error communicating with {service}"

        headers = None
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        super().__init__(
            status_code=status_code,
            detail=detail,
            log_level="error",
            headers=headers,
            service=service,
            **log_context,
        )


class PaymentCheckFailedError(AppException):
    """
    The payment provider could not be reached or gave an unusable answer.

    Distinct from a provider-reported FAILED: the real outcome is unknown,
    so the booking is left untouched and the caller may retry.
    """

    def __init__(
        self,
        provider: str,
        reason: str,
        retry_after: int | None = 30,
        **log_context: Any,
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not verify payment with {provider}. Please retry the status check.",
            log_level="error",
            headers=headers,
            provider=provider,
            reason=reason,
            **log_context,
        )

