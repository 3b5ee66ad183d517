"""
Common utilities shared across routers.
"""

from .errors import translate_db_errors
from .pagination import Pagination, get_pagination

__all__ = [
    "translate_db_errors",
    "Pagination",
    "get_pagination",
]
