"""
Booking Models: Booking and PaymentAuditEntry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import BookingStatus, PaymentStatus
from .base import Base, BigIntPK, TimestampMixin, utcnow


class Booking(TimestampMixin, Base):
    """
    A purchase of one cart line, paid through a mobile-money provider or cash.

    status and payment_status move together:
    COMPLETED -> CONFIRMED, FAILED -> CANCELLED, anything else -> PENDING_PAYMENT.
    Both are only changed by the payment reconciliation service and the
    customer cancel flow, never deleted.
    """

    __tablename__ = "booking"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    item_type: Mapped[str] = mapped_column(String(10), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Snapshot so the booking stays readable if the item is removed
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(20), default=BookingStatus.PENDING_PAYMENT, nullable=False, index=True
    )  # PENDING_PAYMENT, CONFIRMED, CANCELLED
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)  # MTN_MOMO, ORANGE_MONEY, CASH
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING, nullable=False
    )  # PENDING, COMPLETED, FAILED, REFUNDED
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100))
    # Id the provider issued at initiation; status checks are keyed on it
    provider_request_id: Mapped[Optional[str]] = mapped_column(String(100))
    payment_url: Mapped[Optional[str]] = mapped_column(Text)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32))

    audit_entries: Mapped[list["PaymentAuditEntry"]] = relationship(
        back_populates="booking",
        order_by="PaymentAuditEntry.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref={self.reference_number}, status={self.status}, "
            f"payment={self.payment_status}, total={self.total_cents})>"
        )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_booking_quantity_positive"),
        CheckConstraint("total_cents >= 0", name="chk_booking_total_non_negative"),
        Index("ix_booking_user_status", "user_id", "status"),
    )


class PaymentAuditEntry(Base):
    """
    One entry of a booking's payment trail: a webhook payload, a status
    check result, a manual update or the payment initiation response.

    Append-only. payload_hash (sha256 of canonical JSON) lets replays of the
    same delivery be recognised.
    """

    __tablename__ = "payment_audit_entry"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("booking.id"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # WEBHOOK, STATUS_CHECK, MANUAL_UPDATE, INITIATION
    provider: Mapped[Optional[str]] = mapped_column(String(20))
    provider_status: Mapped[Optional[str]] = mapped_column(String(50))
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    booking: Mapped["Booking"] = relationship(back_populates="audit_entries")

    __table_args__ = (
        Index("ix_payment_audit_dedup", "booking_id", "transaction_id", "payload_hash"),
    )
