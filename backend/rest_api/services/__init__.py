"""
Services module for business logic.

- domain/: cart, pricing, inventory and booking services
- payments/: provider gateway, webhook parsing, status reconciliation

Usage:
    from rest_api.services.domain import CartService
    service = CartService(db)
    view = service.get_items(user_id)
"""

from .domain import (
    CartService,
    BookingService,
    InventoryStore,
    summarize,
)
from .payments import (
    PaymentGateway,
    PaymentGatewayError,
    ReconciliationService,
    parse_webhook,
    resolve_transition,
)

__all__ = [
    # Domain
    "CartService",
    "BookingService",
    "InventoryStore",
    "summarize",
    # Payments
    "PaymentGateway",
    "PaymentGatewayError",
    "ReconciliationService",
    "parse_webhook",
    "resolve_transition",
]
