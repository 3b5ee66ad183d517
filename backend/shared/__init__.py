"""
Shared module for cross-cutting concerns of the REST API.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Statuses, payment methods, limits, tax rate

- shared.infrastructure: Database and request plumbing
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: X-Request-ID middleware and log filter

- shared.security: Authentication and request trust
  - auth.py: JWT verification, current_user_context, require_roles
  - webhook_signing.py: HMAC verification of provider callbacks
  - rate_limit.py: slowapi limiter

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - validators.py: Quantity, notes and phone number validation
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import BookingStatus, PaymentStatus
    from shared.utils.exceptions import NotFoundError, InsufficientStockError
"""
