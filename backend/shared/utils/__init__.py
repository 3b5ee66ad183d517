"""
Utilities module: Exceptions, validators, schemas.
"""

from shared.utils.exceptions import (
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    InsufficientStockError,
)
from shared.utils.validators import (
    validate_quantity,
    sanitize_notes,
    is_valid_mtn_phone,
    is_valid_orange_phone,
)

__all__ = [
    # exceptions
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "InsufficientStockError",
    # validators
    "validate_quantity",
    "sanitize_notes",
    "is_valid_mtn_phone",
    "is_valid_orange_phone",
]
