"""
Catalog Models: Meal and Event, the two kinds of orderable item.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import EventStatus, MealAvailability
from .base import AuditMixin, Base, BigIntPK


class Meal(AuditMixin, Base):
    """
    A dish on the menu.

    stock_quantity is optional: NULL means stock is not tracked and only the
    availability flag gates ordering.
    """

    __tablename__ = "meal"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    availability: Mapped[str] = mapped_column(
        String(20), default=MealAvailability.AVAILABLE, nullable=False
    )  # AVAILABLE, OUT_OF_STOCK, DISCONTINUED
    stock_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Meal(id={self.id}, name={self.name!r}, price={self.price_cents}, stock={self.stock_quantity})>"

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_meal_price_non_negative"),
        Index("ix_meal_availability_active", "availability", "is_active"),
    )


class Event(AuditMixin, Base):
    """A ticketed event. Every event tracks its remaining tickets."""

    __tablename__ = "event"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    venue: Mapped[Optional[str]] = mapped_column(String(200))
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=EventStatus.ACTIVE, nullable=False, index=True
    )  # ACTIVE, INACTIVE
    available_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name!r}, price={self.price_cents}, available={self.available_tickets})>"

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_event_price_non_negative"),
        CheckConstraint("total_tickets >= 0", name="chk_event_total_non_negative"),
    )
