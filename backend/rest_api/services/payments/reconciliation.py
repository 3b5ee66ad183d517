"""
Payment Reconciliation Service.

Applies provider-reported payment statuses to bookings through one fixed
transition table, whether the status arrives by webhook, by polling the
provider, by a manual override or as the response to payment initiation.

Every applied status writes a PaymentAuditEntry in the same transaction as
the status fields. Webhook replays (same transaction id and payload hash)
are recognised and leave the booking untouched.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import (
    PROVIDER_FAILURE_STATUSES,
    PROVIDER_SUCCESS_STATUSES,
    AuditSource,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)
from shared.config.logging import payment_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    BookingNotFoundError,
    ConflictError,
    PaymentCheckFailedError,
    ValidationError,
)
from rest_api.models import Booking, PaymentAuditEntry
from rest_api.services.domain.inventory import InventoryStore
from rest_api.services.payments.gateway import PaymentGateway, PaymentGatewayError, PaymentResult
from rest_api.services.payments.webhooks import ReconciliationInput


# =============================================================================
# Transition table
# =============================================================================


@dataclass(frozen=True)
class Transition:
    payment_status: str
    booking_status: str

    @property
    def is_terminal(self) -> bool:
        return self.payment_status != PaymentStatus.PENDING


COMPLETED = Transition(PaymentStatus.COMPLETED, BookingStatus.CONFIRMED)
FAILED = Transition(PaymentStatus.FAILED, BookingStatus.CANCELLED)
PENDING = Transition(PaymentStatus.PENDING, BookingStatus.PENDING_PAYMENT)


def normalize_status(provider_status: Optional[str]) -> str:
    return (provider_status or "").strip().upper()


def resolve_transition(provider_status: Optional[str]) -> Transition:
    """
    Map a provider status string to (payment status, booking status).

        SUCCESSFUL / SUCCESS / COMPLETED -> (COMPLETED, CONFIRMED)
        FAILED / FAILURE                 -> (FAILED, CANCELLED)
        anything else                    -> (PENDING, PENDING_PAYMENT)
    """
    status = normalize_status(provider_status)
    if status in PROVIDER_SUCCESS_STATUSES:
        return COMPLETED
    if status in PROVIDER_FAILURE_STATUSES:
        return FAILED
    return PENDING


def payload_hash(payload: dict[str, Any]) -> str:
    """sha256 of the canonical JSON form (sorted keys, no whitespace)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# =============================================================================
# Results
# =============================================================================


@dataclass
class ReconciliationOutcome:
    booking: Booking
    transition: Transition
    changed: bool
    duplicate: bool = False


@dataclass
class StatusCheckResult:
    booking: Booking
    status: str  # payment status observed (PENDING, COMPLETED, FAILED)
    updated: bool
    checked: bool  # False when no provider call was made
    transaction_id: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.status != PaymentStatus.FAILED,
            "status": self.status,
            "updated": self.updated,
            "checked": self.checked,
            "message": self.message,
            "transactionId": self.transaction_id,
            "booking": {
                "id": self.booking.id,
                "reference": self.booking.reference_number,
                "status": self.booking.status,
                "paymentStatus": self.booking.payment_status,
            },
        }


class ReconciliationService:
    """
    Synchronises booking and payment status with provider state.

    One commit per operation: status fields, audit entry and any stock
    movement are written together.
    """

    def __init__(self, db: Session, inventory: Optional[InventoryStore] = None):
        self._db = db
        self._inventory = inventory or InventoryStore(db)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _find(self, reference: str, lock: bool = False) -> Booking:
        stmt = select(Booking).where(Booking.reference_number == reference)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        booking = self._db.scalar(stmt)
        if not booking:
            raise BookingNotFoundError(reference)
        return booking

    def _lock_by_id(self, booking_id: int) -> Booking:
        booking = self._db.scalar(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    def _is_replay(self, booking_id: int, transaction_id: Optional[str], digest: str) -> bool:
        if transaction_id is None:
            tx_clause = PaymentAuditEntry.transaction_id.is_(None)
        else:
            tx_clause = PaymentAuditEntry.transaction_id == transaction_id

        existing = self._db.scalar(
            select(PaymentAuditEntry.id)
            .where(
                PaymentAuditEntry.booking_id == booking_id,
                PaymentAuditEntry.source == AuditSource.WEBHOOK,
                tx_clause,
                PaymentAuditEntry.payload_hash == digest,
            )
            .limit(1)
        )
        return existing is not None

    def _move(self, booking: Booking, payment_status: str, booking_status: str) -> bool:
        """
        Set both status fields, moving reserved stock when the booking
        enters or leaves CANCELLED. Returns True if anything changed.
        """
        old_status = booking.status
        changed = (
            booking.status != booking_status or booking.payment_status != payment_status
        )

        if old_status != BookingStatus.CANCELLED and booking_status == BookingStatus.CANCELLED:
            self._inventory.release(booking.item_type, booking.item_id, booking.quantity)
        elif old_status == BookingStatus.CANCELLED and booking_status != BookingStatus.CANCELLED:
            if not self._inventory.reserve(booking.item_type, booking.item_id, booking.quantity):
                logger.warning(
                    "Cancelled booking revived without stock to cover it",
                    reference=booking.reference_number,
                    item_type=booking.item_type,
                    item_id=booking.item_id,
                    quantity=booking.quantity,
                )

        booking.payment_status = payment_status
        booking.status = booking_status

        if changed:
            logger.info(
                "Booking status changed",
                reference=booking.reference_number,
                old_status=old_status,
                new_status=booking_status,
                payment_status=payment_status,
            )
        return changed

    def _audit(
        self,
        booking: Booking,
        source: str,
        payload: dict[str, Any],
        provider: Optional[str] = None,
        provider_status: Optional[str] = None,
        transaction_id: Optional[str] = None,
        digest: Optional[str] = None,
    ) -> PaymentAuditEntry:
        entry = PaymentAuditEntry(
            booking_id=booking.id,
            source=source,
            provider=provider,
            provider_status=provider_status[:50] if provider_status else None,
            transaction_id=transaction_id,
            payload=payload,
            payload_hash=digest or payload_hash(payload),
        )
        self._db.add(entry)
        return entry

    # =========================================================================
    # Webhooks
    # =========================================================================

    def apply_webhook(self, inp: ReconciliationInput, raw_payload: dict[str, Any]) -> ReconciliationOutcome:
        """
        Apply a normalised webhook notification.

        Raises:
            BookingNotFoundError: no booking has the reference number
        """
        booking = self._find(inp.reference_number, lock=True)
        transition = resolve_transition(inp.provider_status)
        digest = payload_hash(raw_payload)

        if self._is_replay(booking.id, inp.transaction_id, digest):
            self._db.rollback()
            logger.info(
                "Webhook replay ignored",
                provider=inp.provider,
                reference=inp.reference_number,
                transaction_id=inp.transaction_id,
            )
            booking = self._find(inp.reference_number)
            return ReconciliationOutcome(booking, transition, changed=False, duplicate=True)

        changed = self._move(booking, transition.payment_status, transition.booking_status)
        if inp.transaction_id:
            booking.payment_reference = inp.transaction_id

        self._audit(
            booking,
            AuditSource.WEBHOOK,
            raw_payload,
            provider=inp.provider,
            provider_status=inp.provider_status,
            transaction_id=inp.transaction_id,
            digest=digest,
        )
        safe_commit(self._db)
        self._db.refresh(booking)

        logger.info(
            "Webhook applied",
            provider=inp.provider,
            reference=inp.reference_number,
            provider_status=inp.provider_status,
            payment_status=booking.payment_status,
            changed=changed,
        )
        return ReconciliationOutcome(booking, transition, changed=changed)

    # =========================================================================
    # Polling
    # =========================================================================

    async def poll_status(
        self,
        gateway: PaymentGateway,
        reference: str,
        method: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> StatusCheckResult:
        """
        Ask the provider for the booking's payment status and apply it.

        Only a COMPLETED or FAILED answer is written, and only when the
        booking is not already in that state. A PENDING answer is reported
        without touching the booking.

        The provider is asked about the id it issued at initiation
        (provider_request_id); payment_reference may since hold its
        financial transaction id.

        Raises:
            BookingNotFoundError: unknown reference
            ValidationError: method is not the booking's payment method
            PaymentCheckFailedError: the provider could not be asked
        """
        booking = self._find(reference)
        if method and method != booking.payment_method:
            self._db.rollback()
            raise ValidationError(
                "Payment method does not match booking",
                field="method",
                reference=reference,
                method=method,
            )
        method = booking.payment_method
        tx = transaction_id or booking.provider_request_id or booking.payment_reference
        amount_cents = booking.total_cents

        # Release the read transaction while waiting on the provider
        self._db.commit()

        try:
            observed = await gateway.check_status(method, reference, amount_cents, tx)
        except PaymentGatewayError as e:
            logger.error(
                "Payment status check failed",
                reference=reference,
                provider=method,
                reason=e.reason,
            )
            raise PaymentCheckFailedError(
                method,
                e.reason,
                retry_after=int(e.retry_after) + 1 if e.retry_after else 30,
                reference=reference,
            )

        if observed is None:
            booking = self._find(reference)
            return StatusCheckResult(
                booking=booking,
                status=booking.payment_status,
                updated=False,
                checked=False,
                transaction_id=booking.payment_reference,
                message="No provider transaction to check; current status reported",
            )

        transition = resolve_transition(observed.status)
        booking = self._find(reference, lock=True)

        already = (
            booking.status == transition.booking_status
            and booking.payment_status == transition.payment_status
        )
        if not transition.is_terminal or already:
            self._db.rollback()
            booking = self._find(reference)
            return StatusCheckResult(
                booking=booking,
                status=transition.payment_status,
                updated=False,
                checked=True,
                transaction_id=observed.transaction_id,
                message=observed.reason or _status_message(transition),
            )

        self._move(booking, transition.payment_status, transition.booking_status)
        if observed.transaction_id and method == PaymentMethod.MTN_MOMO:
            booking.payment_reference = observed.transaction_id

        self._audit(
            booking,
            AuditSource.STATUS_CHECK,
            {
                "status": observed.status,
                "transactionId": observed.transaction_id,
                "reason": observed.reason,
                "response": observed.raw,
            },
            provider=method,
            provider_status=observed.status,
            transaction_id=observed.transaction_id,
        )
        safe_commit(self._db)
        self._db.refresh(booking)

        return StatusCheckResult(
            booking=booking,
            status=transition.payment_status,
            updated=True,
            checked=True,
            transaction_id=observed.transaction_id,
            message=observed.reason or _status_message(transition, updated=True),
        )

    # =========================================================================
    # Manual override and initiation
    # =========================================================================

    def manual_override(
        self,
        reference: str,
        status: str,
        transaction_id: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ReconciliationOutcome:
        """
        Apply a status without contacting the provider. Always audited.

        Raises:
            BookingNotFoundError: unknown reference
        """
        booking = self._find(reference, lock=True)
        transition = resolve_transition(status)

        changed = self._move(booking, transition.payment_status, transition.booking_status)
        if transaction_id:
            booking.payment_reference = transaction_id

        self._audit(
            booking,
            AuditSource.MANUAL_UPDATE,
            {"status": status, "transactionId": transaction_id, "actor": actor},
            provider_status=status,
            transaction_id=transaction_id,
        )
        safe_commit(self._db)
        self._db.refresh(booking)

        logger.info(
            "Manual payment status update",
            reference=reference,
            status=status,
            actor=actor,
            changed=changed,
        )
        return ReconciliationOutcome(booking, transition, changed=changed)

    def record_initiation(self, booking_id: int, result: PaymentResult) -> ReconciliationOutcome:
        """Store the provider's answer to payment initiation."""
        booking = self._lock_by_id(booking_id)
        transition = resolve_transition(result.status)

        changed = self._move(booking, transition.payment_status, transition.booking_status)
        if result.transaction_id:
            booking.provider_request_id = result.transaction_id
        if result.payment_reference:
            booking.payment_reference = result.payment_reference
        if result.payment_url:
            booking.payment_url = result.payment_url

        self._audit(
            booking,
            AuditSource.INITIATION,
            result.to_dict(),
            provider=booking.payment_method,
            provider_status=result.status,
            transaction_id=result.transaction_id,
        )
        safe_commit(self._db)
        self._db.refresh(booking)
        return ReconciliationOutcome(booking, transition, changed=changed)

    def cancel(self, booking_id: int, actor: Optional[str] = None) -> Booking:
        """
        Cancel a paid booking on the customer's request: the booking becomes
        CANCELLED, the payment REFUNDED and the stock is returned.

        Raises:
            ConflictError: booking is not CONFIRMED
        """
        booking = self._lock_by_id(booking_id)
        if booking.status != BookingStatus.CONFIRMED:
            self._db.rollback()
            raise ConflictError(
                "Only confirmed bookings can be cancelled",
                reference=booking.reference_number,
                status=booking.status,
            )

        self._move(booking, PaymentStatus.REFUNDED, BookingStatus.CANCELLED)
        self._audit(
            booking,
            AuditSource.MANUAL_UPDATE,
            {"action": "cancel", "actor": actor},
            provider_status=PaymentStatus.REFUNDED,
        )
        safe_commit(self._db)
        self._db.refresh(booking)
        return booking


def _status_message(transition: Transition, updated: bool = False) -> str:
    if transition == COMPLETED:
        return "Payment confirmed and booking updated" if updated else "Payment completed"
    if transition == FAILED:
        return "Payment failed and booking cancelled" if updated else "Payment failed"
    return "Payment is still pending confirmation"
