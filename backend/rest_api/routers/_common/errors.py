"""
Database error translation for routers.

Usage:
    with translate_db_errors(db, "add to cart"):
        row = service.add_item(...)
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.logging import rest_api_logger as logger
from shared.utils.exceptions import DatabaseError


@contextmanager
def translate_db_errors(db: Session, operation: str) -> Iterator[None]:
    """Roll back and raise DatabaseError (500) on any SQLAlchemy failure."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database operation failed", operation=operation, error=str(e))
        raise DatabaseError(operation) from e
