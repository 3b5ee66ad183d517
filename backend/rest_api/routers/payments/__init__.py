"""
Payment routers.
- /api/payment/{mtn,orange}/webhook - Provider callbacks (HMAC signed)
- /api/payment/status - Status polling and manual override
"""

from .routes import router

__all__ = ["router"]
