"""
Booking Domain Service.

Turns a cart into bookings (one per cart line), reserving stock, and then
initiates payment for each booking. Also lists, shows, cancels and
summarises a customer's bookings.
"""

import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import BookingStatus, Limits, PaymentMethod, PaymentStatus
from shared.config.logging import booking_logger as logger, mask_phone
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    BookingNotFoundError,
    ExternalServiceError,
    InsufficientStockError,
    ItemUnavailableError,
    NotFoundError,
    ValidationError,
)
from rest_api.models import Booking, CartItem
from rest_api.services.domain.cart_service import CartService
from rest_api.services.domain.inventory import InventoryStore, item_label
from rest_api.services.domain.pricing import cents_to_amount, line_total_cents, tax_cents
from rest_api.services.payments.gateway import (
    PaymentGateway,
    PaymentGatewayError,
    PaymentRequest,
    PaymentResult,
)
from rest_api.services.payments.reconciliation import ReconciliationService

_BASE36 = string.digits + string.ascii_uppercase


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_reference_number() -> str:
    """EVT-<base36 epoch millis>-<6 random chars>, upper case."""
    stamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"EVT-{stamp}-{suffix}"


@dataclass
class CheckoutLine:
    booking: Booking
    payment: Optional[PaymentResult] = None
    message: Optional[str] = None


@dataclass
class CheckoutResult:
    lines: list[CheckoutLine] = field(default_factory=list)

    @property
    def bookings(self) -> list[Booking]:
        return [line.booking for line in self.lines]


@dataclass
class BookingPage:
    bookings: list[Booking]
    total: int
    has_more: bool


class BookingService:
    """Domain service for checkout and booking management."""

    def __init__(self, db: Session):
        self._db = db
        self._inventory = InventoryStore(db)
        self._reconciliation = ReconciliationService(db, self._inventory)

    # =========================================================================
    # Checkout
    # =========================================================================

    def _create_bookings(
        self,
        user_id: str,
        payment_method: str,
        customer_phone: Optional[str],
    ) -> list[Booking]:
        view = CartService(self._db, self._inventory).get_items(user_id)
        if not view.lines:
            raise ValidationError("Cart is empty", user_id=user_id)

        bookings: list[Booking] = []
        for line in view.lines:
            row = line.row
            item = self._inventory.get(row.item_type, row.item_id, lock=True)
            if item is None:
                self._db.rollback()
                raise NotFoundError(item_label(row.item_type), row.item_id)
            if not item.orderable:
                self._db.rollback()
                raise ItemUnavailableError(item.item_type, item.item_id)

            if not self._inventory.reserve(item.item_type, item.item_id, row.quantity):
                self._db.rollback()
                remaining = item.stock or 0
                raise InsufficientStockError(
                    f"Not enough stock available for {item.name}. Only {remaining} left.",
                    remaining=remaining,
                    item_type=item.item_type,
                    item_id=item.item_id,
                )

            subtotal = line_total_cents(item.price_cents, row.quantity)
            booking = Booking(
                user_id=user_id,
                item_type=item.item_type,
                item_id=item.item_id,
                item_name=item.name,
                quantity=row.quantity,
                unit_price_cents=item.price_cents,
                total_cents=subtotal + tax_cents(subtotal),
                reference_number=generate_reference_number(),
                status=BookingStatus.PENDING_PAYMENT,
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                customer_phone=customer_phone,
            )
            self._db.add(booking)
            bookings.append(booking)

        self._db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        safe_commit(self._db)
        for booking in bookings:
            self._db.refresh(booking)
        return bookings

    async def checkout(
        self,
        user_id: str,
        payment_method: str,
        gateway: PaymentGateway,
        customer_phone: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Book every live cart line and start payment for each booking.

        Bookings, stock reservations and the cart clear commit together
        before any provider is contacted. A provider that answers FAILED
        cancels its booking (and releases the stock); a provider that cannot
        be reached leaves the booking pending so the status can be checked
        again later.

        Raises:
            ValidationError: empty cart or unknown payment method
            ExternalServiceError: the provider is not configured
            InsufficientStockError: a line no longer fits in stock
        """
        if payment_method not in PaymentMethod.ALL:
            raise ValidationError(f"Unsupported payment method: {payment_method}")
        if not gateway.supports(payment_method):
            raise ExternalServiceError(payment_method, is_unavailable=True, retry_after=60)

        bookings = self._create_bookings(user_id, payment_method, customer_phone)
        logger.info(
            "Checkout created bookings",
            user_id=user_id,
            count=len(bookings),
            payment_method=payment_method,
            phone=mask_phone(customer_phone),
        )

        result = CheckoutResult()
        for booking in bookings:
            request = PaymentRequest(
                method=payment_method,
                amount_cents=booking.total_cents,
                reference=booking.reference_number,
                description=f"Booking for {booking.item_name}",
                customer_phone=customer_phone,
            )
            try:
                payment = await gateway.initiate(request)
            except PaymentGatewayError as e:
                logger.error(
                    "Payment initiation failed",
                    reference=booking.reference_number,
                    provider=e.provider,
                    reason=e.reason,
                )
                result.lines.append(
                    CheckoutLine(
                        booking=booking,
                        message=(
                            "We could not reach the payment provider. "
                            "Your booking is pending; please check the payment status again shortly."
                        ),
                    )
                )
                continue

            outcome = self._reconciliation.record_initiation(booking.id, payment)
            result.lines.append(
                CheckoutLine(booking=outcome.booking, payment=payment, message=payment.message)
            )

        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def list_bookings(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> BookingPage:
        conditions = [Booking.user_id == user_id]
        if status:
            conditions.append(Booking.status == status)

        total = self._db.scalar(select(func.count(Booking.id)).where(*conditions)) or 0
        bookings = self._db.scalars(
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()

        return BookingPage(bookings=list(bookings), total=total, has_more=offset + limit < total)

    def get_booking(self, user_id: str, booking_id: int, is_admin: bool = False) -> Booking:
        """
        A booking with its payment audit trail. Other users' bookings are
        reported as not found.
        """
        booking = self._db.scalar(
            select(Booking)
            .options(selectinload(Booking.audit_entries))
            .where(Booking.id == booking_id)
        )
        if not booking or (booking.user_id != user_id and not is_admin):
            raise BookingNotFoundError(booking_id, user_id=user_id)
        return booking

    def get_by_reference(self, reference: str) -> Booking:
        booking = self._db.scalar(select(Booking).where(Booking.reference_number == reference))
        if not booking:
            raise BookingNotFoundError(reference)
        return booking

    def stats(self, user_id: str) -> dict:
        confirmed = Booking.status == BookingStatus.CONFIRMED
        row = self._db.execute(
            select(
                func.count(Booking.id),
                func.sum(case((confirmed, 1), else_=0)),
                func.sum(case((Booking.status == BookingStatus.CANCELLED, 1), else_=0)),
                func.sum(case((confirmed, Booking.total_cents), else_=0)),
                func.sum(case((confirmed, Booking.quantity), else_=0)),
            ).where(Booking.user_id == user_id)
        ).one()

        total, confirmed_count, cancelled_count, spent_cents, quantity = row
        return {
            "totalBookings": total or 0,
            "confirmedBookings": int(confirmed_count or 0),
            "cancelledBookings": int(cancelled_count or 0),
            "totalSpent": float(cents_to_amount(int(spent_cents or 0))),
            "totalQuantity": int(quantity or 0),
        }

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel(self, user_id: str, booking_id: int) -> Booking:
        """
        Cancel one of the user's confirmed bookings and return its stock.

        Raises:
            BookingNotFoundError: not the user's booking
            ConflictError: booking is not CONFIRMED
        """
        booking = self._db.scalar(select(Booking).where(Booking.id == booking_id))
        if not booking or booking.user_id != user_id:
            raise BookingNotFoundError(booking_id, user_id=user_id)

        booking = self._reconciliation.cancel(booking_id, actor=user_id)
        logger.info("Booking cancelled by customer", user_id=user_id, reference=booking.reference_number)
        return booking
