"""
Bookings Router.

Checkout turns the caller's cart into bookings and starts payment; the
remaining endpoints read and cancel the caller's own bookings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from shared.config.constants import Roles
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, has_role
from shared.security.rate_limit import limiter, CHECKOUT_RATE_LIMIT
from shared.utils.schemas import (
    AuditEntryOutput,
    BookingDetailOutput,
    BookingListOutput,
    BookingOutput,
    BookingStatsOutput,
    BookingStatusName,
    CheckoutLineOutput,
    CheckoutOutput,
    CheckoutRequest,
)
from rest_api.core.dependencies import get_payment_gateway
from rest_api.models import Booking, PaymentAuditEntry
from rest_api.routers._common import Pagination, get_pagination, translate_db_errors
from rest_api.services.domain.booking_service import BookingService
from rest_api.services.domain.pricing import cents_to_amount
from rest_api.services.payments import PaymentGateway


router = APIRouter(prefix="/api/bookings", tags=["bookings"])


def _booking_output(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "reference_number": booking.reference_number,
        "item_type": booking.item_type,
        "item_id": booking.item_id,
        "item_name": booking.item_name,
        "quantity": booking.quantity,
        "unit_price": float(cents_to_amount(booking.unit_price_cents)),
        "total_amount": float(cents_to_amount(booking.total_cents)),
        "status": booking.status,
        "payment_method": booking.payment_method,
        "payment_status": booking.payment_status,
        "payment_reference": booking.payment_reference,
        "payment_url": booking.payment_url,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }


def _audit_output(entry: PaymentAuditEntry) -> AuditEntryOutput:
    return AuditEntryOutput(
        id=entry.id,
        source=entry.source,
        provider=entry.provider,
        provider_status=entry.provider_status,
        transaction_id=entry.transaction_id,
        payload=entry.payload,
        created_at=entry.created_at,
    )


@router.post("/checkout", response_model=CheckoutOutput)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def checkout(
    request: Request,
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CheckoutOutput:
    """
    Book every cart line and start payment for each booking.

    success is false when any provider refused the payment; those bookings
    are already cancelled and their stock returned.
    """
    phone = body.customer_phone.strip() if body.customer_phone else None
    with translate_db_errors(db, "checkout"):
        result = await BookingService(db).checkout(
            ctx["sub"],
            body.payment_method,
            gateway,
            customer_phone=phone,
        )

    lines = [
        CheckoutLineOutput(
            booking=BookingOutput(**_booking_output(line.booking)),
            payment_status=line.booking.payment_status,
            payment_url=line.booking.payment_url,
            message=line.message,
        )
        for line in result.lines
    ]
    success = all(line.payment is None or line.payment.success for line in result.lines)
    return CheckoutOutput(success=success, bookings=lines)


@router.get("", response_model=BookingListOutput)
def list_bookings(
    status: Optional[BookingStatusName] = Query(default=None),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> BookingListOutput:
    """The caller's bookings, newest first."""
    page = BookingService(db).list_bookings(
        ctx["sub"],
        status=status,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return BookingListOutput(
        bookings=[BookingOutput(**_booking_output(b)) for b in page.bookings],
        total=page.total,
        has_more=page.has_more,
    )


@router.get("/stats", response_model=BookingStatsOutput)
def booking_stats(
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> BookingStatsOutput:
    return BookingStatsOutput.model_validate(BookingService(db).stats(ctx["sub"]))


@router.get("/{booking_id}", response_model=BookingDetailOutput)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> BookingDetailOutput:
    """A booking with its payment audit trail. ADMIN may read any booking."""
    booking = BookingService(db).get_booking(
        ctx["sub"], booking_id, is_admin=has_role(ctx, Roles.ADMIN)
    )
    return BookingDetailOutput(
        **_booking_output(booking),
        audit_trail=[_audit_output(e) for e in booking.audit_entries],
    )


@router.post("/{booking_id}/cancel", response_model=BookingOutput)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> BookingOutput:
    """Cancel a confirmed booking. 409 for any other status."""
    with translate_db_errors(db, "cancel booking"):
        booking = BookingService(db).cancel(ctx["sub"], booking_id)
    return BookingOutput(**_booking_output(booking))
