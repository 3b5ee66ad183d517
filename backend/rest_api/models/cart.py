"""
Cart Models: CartItem, one row per (user, item) pair.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, utcnow


class CartItem(Base):
    """
    A line in a user's cart.

    The referenced item is polymorphic (item_type + item_id) and carries no
    foreign key: a row whose meal/event was removed becomes dangling and is
    dropped on the next cart read.
    """

    __tablename__ = "cart_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    item_type: Mapped[str] = mapped_column(String(10), nullable=False)  # MEAL, EVENT
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    def __repr__(self) -> str:
        return f"<CartItem(id={self.id}, user={self.user_id}, {self.item_type}:{self.item_id}, qty={self.quantity})>"

    __table_args__ = (
        # Adds for an existing pair increment the row instead of inserting
        UniqueConstraint("user_id", "item_type", "item_id", name="uq_cart_item_user_item"),
        CheckConstraint("quantity > 0 AND quantity <= 99", name="chk_cart_item_quantity"),
        Index("ix_cart_item_item", "item_type", "item_id"),
    )
