"""
Shared Pydantic schemas for the public API.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

ItemTypeName = Literal["MEAL", "EVENT"]
BookingStatusName = Literal["PENDING_PAYMENT", "CONFIRMED", "CANCELLED"]
PaymentStatusName = Literal["PENDING", "COMPLETED", "FAILED", "REFUNDED"]
PaymentMethodName = Literal["MTN_MOMO", "ORANGE_MONEY", "CASH"]
MobileMoneyMethodName = Literal["MTN_MOMO", "ORANGE_MONEY"]


class ApiModel(BaseModel):
    """Base for API schemas: camelCase aliases, accepts either form."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(ApiModel):
    success: bool = True
    message: str


# =============================================================================
# Cart
# =============================================================================


class AddToCartRequest(ApiModel):
    item_type: ItemTypeName
    item_id: int = Field(gt=0)
    quantity: int = Field(default=1, ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)
    notes: Optional[str] = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class UpdateCartItemRequest(ApiModel):
    quantity: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)


class CartItemOutput(ApiModel):
    id: int
    item_type: str
    item_id: int
    name: str
    image_url: Optional[str] = None
    unit_price: float
    quantity: int
    line_total: float
    notes: Optional[str] = None
    available: bool
    stock: Optional[int] = None
    added_at: datetime


class CartSummaryOutput(ApiModel):
    item_count: int
    subtotal: float
    tax: float
    total: float


class CartOutput(ApiModel):
    items: list[CartItemOutput]
    summary: CartSummaryOutput


class CartCountOutput(ApiModel):
    count: int


class CartMutationOutput(ApiModel):
    success: bool = True
    item_id: int
    quantity: int
    message: str


class ClearCartOutput(ApiModel):
    success: bool = True
    removed: int


# =============================================================================
# Payments
# =============================================================================


class WebhookResponse(ApiModel):
    success: bool
    message: str


class ManualStatusRequest(ApiModel):
    reference: str = Field(min_length=1, max_length=Limits.MAX_REFERENCE_LENGTH)
    status: str = Field(min_length=1, max_length=50)
    transaction_id: Optional[str] = Field(
        default=None, max_length=Limits.MAX_PAYMENT_REFERENCE_LENGTH
    )


class BookingRef(ApiModel):
    id: int
    reference: str
    status: BookingStatusName
    payment_status: PaymentStatusName


class PaymentStatusOutput(ApiModel):
    success: bool
    status: str
    updated: bool
    checked: bool
    message: Optional[str] = None
    transaction_id: Optional[str] = None
    booking: BookingRef


class ManualStatusOutput(ApiModel):
    success: bool = True
    message: str
    changed: bool
    booking: BookingRef


# =============================================================================
# Bookings
# =============================================================================


class CheckoutRequest(ApiModel):
    payment_method: PaymentMethodName
    customer_phone: Optional[str] = Field(default=None, max_length=32)


class AuditEntryOutput(ApiModel):
    id: int
    source: str
    provider: Optional[str] = None
    provider_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payload: dict[str, Any]
    created_at: datetime


class BookingOutput(ApiModel):
    id: int
    reference_number: str
    item_type: str
    item_id: int
    item_name: str
    quantity: int
    unit_price: float
    total_amount: float
    status: BookingStatusName
    payment_method: str
    payment_status: PaymentStatusName
    payment_reference: Optional[str] = None
    payment_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BookingDetailOutput(BookingOutput):
    audit_trail: list[AuditEntryOutput] = []


class CheckoutLineOutput(ApiModel):
    booking: BookingOutput
    payment_status: str
    payment_url: Optional[str] = None
    message: Optional[str] = None


class CheckoutOutput(ApiModel):
    success: bool
    bookings: list[CheckoutLineOutput]


class BookingListOutput(ApiModel):
    bookings: list[BookingOutput]
    total: int
    has_more: bool


class BookingStatsOutput(ApiModel):
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    total_spent: float
    total_quantity: int
