"""
SQLAlchemy ORM Models Package.

- base: Base class, TimestampMixin, AuditMixin
- catalog: Meal, Event
- cart: CartItem
- booking: Booking, PaymentAuditEntry
"""

from .base import Base, AuditMixin, TimestampMixin
from .catalog import Meal, Event
from .cart import CartItem
from .booking import Booking, PaymentAuditEntry

__all__ = [
    "Base",
    "AuditMixin",
    "TimestampMixin",
    "Meal",
    "Event",
    "CartItem",
    "Booking",
    "PaymentAuditEntry",
]
