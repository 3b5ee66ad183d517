"""
Payment Router.

Provider webhooks (HMAC-signed, no bearer token), status polling for the
booking owner, and the admin manual override. All three paths funnel into
ReconciliationService so they share one transition table and audit trail.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from shared.config.constants import PaymentMethod, Roles
from shared.config.logging import audit_webhook_event, payment_logger as logger
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, has_role, require_roles
from shared.security.rate_limit import (
    limiter,
    PAYMENT_STATUS_RATE_LIMIT,
    WEBHOOK_RATE_LIMIT,
)
from shared.security.webhook_signing import verify_provider_webhook
from shared.utils.exceptions import (
    ForbiddenError,
    InternalError,
    InvalidSignatureError,
    ValidationError,
)
from shared.utils.schemas import (
    BookingRef,
    ManualStatusOutput,
    ManualStatusRequest,
    PaymentMethodName,
    PaymentStatusOutput,
    WebhookResponse,
)
from rest_api.core.dependencies import get_payment_gateway
from rest_api.services.domain.booking_service import BookingService
from rest_api.services.payments import (
    PaymentGateway,
    ReconciliationService,
    parse_webhook,
)


router = APIRouter(prefix="/api/payment", tags=["payments"])


async def _handle_webhook(provider: str, request: Request, db: Session) -> WebhookResponse:
    body = await request.body()
    client_ip = request.client.host if request.client else None

    if not verify_provider_webhook(
        provider,
        body,
        request.headers.get("X-Signature"),
        request.headers.get("X-Timestamp"),
    ):
        audit_webhook_event(provider, accepted=False, reason="invalid signature", ip_address=client_ip)
        raise InvalidSignatureError(provider)

    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationError("Invalid JSON body", provider=provider)

    try:
        inp = parse_webhook(provider, data)
        outcome = ReconciliationService(db).apply_webhook(inp, data)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error("Webhook processing failed", provider=provider, error=str(e), exc_info=True)
        raise InternalError(provider=provider)

    audit_webhook_event(
        provider,
        accepted=True,
        ip_address=client_ip,
        reference=inp.reference_number,
        duplicate=outcome.duplicate,
    )

    if outcome.duplicate:
        return WebhookResponse(success=True, message="Webhook already processed")
    return WebhookResponse(success=True, message="Webhook processed successfully")


@router.post("/mtn/webhook", response_model=WebhookResponse)
@limiter.limit(WEBHOOK_RATE_LIMIT)
async def mtn_webhook(request: Request, db: Session = Depends(get_db)) -> WebhookResponse:
    """
    MTN MoMo request-to-pay callback.

    Body carries externalId (our booking reference), status and
    financialTransactionId.
    """
    return await _handle_webhook(PaymentMethod.MTN_MOMO, request, db)


@router.post("/orange/webhook", response_model=WebhookResponse)
@limiter.limit(WEBHOOK_RATE_LIMIT)
async def orange_webhook(request: Request, db: Session = Depends(get_db)) -> WebhookResponse:
    """
    Orange Money web-payment notification.

    Body carries order_id (our booking reference), status and txnid.
    """
    return await _handle_webhook(PaymentMethod.ORANGE_MONEY, request, db)


@router.get("/status", response_model=PaymentStatusOutput)
@limiter.limit(PAYMENT_STATUS_RATE_LIMIT)
async def get_payment_status(
    request: Request,
    reference: str = Query(min_length=1, max_length=50),
    method: Optional[PaymentMethodName] = Query(default=None),
    transaction_id: Optional[str] = Query(default=None, alias="transactionId", max_length=100),
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentStatusOutput:
    """
    Ask the provider for the payment status and reconcile the booking.

    Only the booking owner or an ADMIN may poll. 503 with Retry-After when
    the provider cannot be reached; the booking is left untouched then.
    """
    booking = BookingService(db).get_by_reference(reference)
    if booking.user_id != ctx["sub"] and not has_role(ctx, Roles.ADMIN):
        raise ForbiddenError("check the payment status of this booking", user_id=ctx["sub"])

    result = await ReconciliationService(db).poll_status(
        gateway,
        reference,
        method=method,
        transaction_id=transaction_id,
    )
    return PaymentStatusOutput.model_validate(result.to_dict())


@router.post("/status", response_model=ManualStatusOutput)
def set_payment_status(
    body: ManualStatusRequest,
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> ManualStatusOutput:
    """Set a payment status by hand (ADMIN only). Always audited."""
    require_roles(ctx, [Roles.ADMIN])

    outcome = ReconciliationService(db).manual_override(
        body.reference,
        body.status,
        transaction_id=body.transaction_id,
        actor=ctx["sub"],
    )
    booking = outcome.booking
    return ManualStatusOutput(
        message="Payment status updated" if outcome.changed else "Payment status unchanged",
        changed=outcome.changed,
        booking=BookingRef(
            id=booking.id,
            reference=booking.reference_number,
            status=booking.status,
            payment_status=booking.payment_status,
        ),
    )
