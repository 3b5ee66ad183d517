"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import BookingStatus, PaymentStatus, Limits

    if booking.status == BookingStatus.CONFIRMED:
        ...
"""

from decimal import Decimal
from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants (carried in the JWT "roles" claim)."""

    ADMIN: Final[str] = "ADMIN"
    CUSTOMER: Final[str] = "CUSTOMER"

    ALL: Final[list[str]] = [ADMIN, CUSTOMER]


# =============================================================================
# Catalog
# =============================================================================


class ItemType:
    """Kinds of catalog item a cart row or booking can reference."""

    MEAL: Final[str] = "MEAL"
    EVENT: Final[str] = "EVENT"

    ALL: Final[list[str]] = [MEAL, EVENT]


class MealAvailability:
    """Meal availability flag. Only AVAILABLE admits a meal into a cart."""

    AVAILABLE: Final[str] = "AVAILABLE"
    OUT_OF_STOCK: Final[str] = "OUT_OF_STOCK"
    DISCONTINUED: Final[str] = "DISCONTINUED"

    ALL: Final[list[str]] = [AVAILABLE, OUT_OF_STOCK, DISCONTINUED]


class EventStatus:
    """Event status. Only ACTIVE admits tickets into a cart."""

    ACTIVE: Final[str] = "ACTIVE"
    INACTIVE: Final[str] = "INACTIVE"

    ALL: Final[list[str]] = [ACTIVE, INACTIVE]


# =============================================================================
# Bookings and Payments
# =============================================================================


class BookingStatus:
    """Booking status constants."""

    PENDING_PAYMENT: Final[str] = "PENDING_PAYMENT"
    CONFIRMED: Final[str] = "CONFIRMED"
    CANCELLED: Final[str] = "CANCELLED"

    ALL: Final[list[str]] = [PENDING_PAYMENT, CONFIRMED, CANCELLED]


class PaymentStatus:
    """Payment status constants."""

    PENDING: Final[str] = "PENDING"
    COMPLETED: Final[str] = "COMPLETED"
    FAILED: Final[str] = "FAILED"
    REFUNDED: Final[str] = "REFUNDED"

    ALL: Final[list[str]] = [PENDING, COMPLETED, FAILED, REFUNDED]


class PaymentMethod:
    """Payment method constants."""

    MTN_MOMO: Final[str] = "MTN_MOMO"
    ORANGE_MONEY: Final[str] = "ORANGE_MONEY"
    CASH: Final[str] = "CASH"

    ALL: Final[list[str]] = [MTN_MOMO, ORANGE_MONEY, CASH]
    MOBILE_MONEY: Final[list[str]] = [MTN_MOMO, ORANGE_MONEY]


class AuditSource:
    """Origin of a payment audit entry."""

    WEBHOOK: Final[str] = "WEBHOOK"
    STATUS_CHECK: Final[str] = "STATUS_CHECK"
    MANUAL_UPDATE: Final[str] = "MANUAL_UPDATE"
    INITIATION: Final[str] = "INITIATION"

    ALL: Final[list[str]] = [WEBHOOK, STATUS_CHECK, MANUAL_UPDATE, INITIATION]


# Provider status strings, grouped by the outcome they map to
PROVIDER_SUCCESS_STATUSES: Final[frozenset[str]] = frozenset({"SUCCESSFUL", "SUCCESS", "COMPLETED"})
PROVIDER_FAILURE_STATUSES: Final[frozenset[str]] = frozenset({"FAILED", "FAILURE"})


# =============================================================================
# Pricing
# =============================================================================

# Fixed sales tax rate (19.25%), not configurable per item or jurisdiction
TAX_RATE: Final[Decimal] = Decimal("0.1925")


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Quantity limits per cart row
    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99

    # String lengths
    MAX_NOTES_LENGTH: Final[int] = 500
    MAX_REFERENCE_LENGTH: Final[int] = 50
    MAX_PAYMENT_REFERENCE_LENGTH: Final[int] = 100

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 20
    MAX_PAGE_SIZE: Final[int] = 50
