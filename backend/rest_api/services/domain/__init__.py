"""
Domain Services - application layer.

Services contain the business rules and own their transactions. Routers stay
thin: validate input, call one service method, shape the response.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import CartService

    # In router
    service = CartService(db)
    view = service.get_items(user_id)
"""

from .pricing import CartSummary, summarize, tax_cents, cents_to_amount
from .inventory import InventoryStore, StockedItem
from .cart_service import CartService, CartLine, CartView
from .booking_service import BookingService, BookingPage, CheckoutResult, generate_reference_number

__all__ = [
    # Pricing
    "CartSummary",
    "summarize",
    "tax_cents",
    "cents_to_amount",
    # Inventory
    "InventoryStore",
    "StockedItem",
    # Cart
    "CartService",
    "CartLine",
    "CartView",
    # Bookings
    "BookingService",
    "BookingPage",
    "CheckoutResult",
    "generate_reference_number",
]
