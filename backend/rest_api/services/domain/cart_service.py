"""
Cart Domain Service.

Keeps one row per (user, item) and never lets a row's quantity exceed the
item's stock counter at the time of the write.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.config.logging import cart_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    CartItemNotFoundError,
    InsufficientStockError,
    ItemUnavailableError,
    NotFoundError,
    ValidationError,
)
from shared.utils.validators import sanitize_notes, validate_quantity
from rest_api.models import CartItem
from rest_api.services.domain.inventory import InventoryStore, StockedItem, item_label
from rest_api.services.domain.pricing import CartSummary, line_total_cents, summarize


@dataclass(frozen=True)
class CartLine:
    """A cart row joined with the current state of its item."""

    row: CartItem
    item: StockedItem

    @property
    def line_total_cents(self) -> int:
        return line_total_cents(self.item.price_cents, self.row.quantity)


@dataclass(frozen=True)
class CartView:
    lines: list[CartLine]
    summary: CartSummary


class CartService:
    """
    Domain service for cart operations.

    Every mutation is its own transaction.
    """

    def __init__(self, db: Session, inventory: Optional[InventoryStore] = None):
        self._db = db
        self._inventory = inventory or InventoryStore(db)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check_quantity(quantity: int) -> int:
        try:
            return validate_quantity(quantity)
        except ValueError as e:
            raise ValidationError(str(e), field="quantity", value=quantity)

    def _load_orderable(self, item_type: str, item_id: int) -> StockedItem:
        item = self._inventory.get(item_type, item_id, lock=True)
        if item is None:
            raise NotFoundError(item_label(item_type), item_id)
        if not item.orderable:
            raise ItemUnavailableError(item_type, item_id)
        return item

    def _find_row(self, user_id: str, item_type: str, item_id: int) -> Optional[CartItem]:
        return self._db.scalar(
            select(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.item_type == item_type,
                CartItem.item_id == item_id,
            )
        )

    def _increment(
        self,
        row_id: int,
        item: StockedItem,
        quantity: int,
        notes: Optional[str],
    ) -> bool:
        """
        Atomically add quantity to an existing row.

        The stock ceiling is part of the UPDATE's WHERE clause, so the
        increment either applies in full or not at all.
        """
        stmt = update(CartItem).where(
            CartItem.id == row_id,
            CartItem.quantity + quantity <= Limits.MAX_QUANTITY,
        )
        if item.stock is not None:
            stmt = stmt.where(CartItem.quantity + quantity <= item.stock)

        values: dict = {"quantity": CartItem.quantity + quantity}
        if notes:
            values["notes"] = notes

        result = self._db.execute(
            stmt.values(**values).execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def _raise_increment_rejected(self, row_id: int, item: StockedItem, quantity: int) -> None:
        self._db.rollback()
        existing = self._db.scalar(select(CartItem.quantity).where(CartItem.id == row_id)) or 0

        if item.stock is not None and existing + quantity > item.stock:
            remaining = max(item.stock - existing, 0)
            raise InsufficientStockError(
                f"Cannot add {quantity} more items. Only {remaining} more available",
                remaining=remaining,
                item_type=item.item_type,
                item_id=item.item_id,
            )

        raise ValidationError(
            f"Maximum quantity is {Limits.MAX_QUANTITY}",
            field="quantity",
            existing=existing,
            requested=quantity,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_item(
        self,
        user_id: str,
        item_type: str,
        item_id: int,
        quantity: int = 1,
        notes: Optional[str] = None,
    ) -> CartItem:
        """
        Add quantity of an item to the user's cart.

        Sums into the existing row for the same item; a non-empty note
        replaces the stored one.

        Raises:
            NotFoundError: item does not exist
            ItemUnavailableError: item is not open for ordering
            InsufficientStockError: existing + quantity exceeds stock
        """
        quantity = self._check_quantity(quantity)
        notes = sanitize_notes(notes)
        item = self._load_orderable(item_type, item_id)

        row = self._find_row(user_id, item_type, item_id)
        if row is None:
            if item.stock is not None and quantity > item.stock:
                self._db.rollback()
                raise InsufficientStockError(
                    f"Only {item.stock} items available",
                    remaining=item.stock,
                    item_type=item_type,
                    item_id=item_id,
                )

            row = CartItem(
                user_id=user_id,
                item_type=item_type,
                item_id=item_id,
                quantity=quantity,
                notes=notes,
            )
            self._db.add(row)
            try:
                safe_commit(self._db)
            except IntegrityError:
                # A concurrent request inserted the same pair first
                row = self._find_row(user_id, item_type, item_id)
                if row is None:
                    raise
                item = self._load_orderable(item_type, item_id)
            else:
                self._db.refresh(row)
                logger.info(
                    "Cart item added",
                    user_id=user_id,
                    item_type=item_type,
                    item_id=item_id,
                    quantity=quantity,
                )
                return row

        row_id = row.id
        if not self._increment(row_id, item, quantity, notes):
            self._raise_increment_rejected(row_id, item, quantity)

        safe_commit(self._db)
        row = self._db.get(CartItem, row_id)
        self._db.refresh(row)
        logger.info(
            "Cart item incremented",
            user_id=user_id,
            item_type=item_type,
            item_id=item_id,
            added=quantity,
            quantity=row.quantity,
        )
        return row

    def update_quantity(self, user_id: str, row_id: int, quantity: int) -> CartItem:
        """
        Overwrite a row's quantity.

        Raises:
            CartItemNotFoundError: row missing or not the caller's
            NotFoundError: the row's item no longer exists
            InsufficientStockError: quantity exceeds stock
        """
        quantity = self._check_quantity(quantity)

        row = self._db.scalar(
            select(CartItem).where(CartItem.id == row_id, CartItem.user_id == user_id)
        )
        if not row:
            raise CartItemNotFoundError(row_id, user_id=user_id)

        item = self._inventory.get(row.item_type, row.item_id, lock=True)
        if item is None:
            raise NotFoundError(item_label(row.item_type), row.item_id)

        if item.stock is not None and quantity > item.stock:
            self._db.rollback()
            raise InsufficientStockError(
                f"Only {item.stock} items available",
                remaining=item.stock,
                item_type=row.item_type,
                item_id=row.item_id,
            )

        row.quantity = quantity
        safe_commit(self._db)
        self._db.refresh(row)

        logger.info("Cart item updated", user_id=user_id, row_id=row_id, quantity=quantity)
        return row

    def remove_item(self, user_id: str, row_id: int) -> bool:
        """
        Delete a row. Idempotent: returns False if nothing was deleted.
        """
        result = self._db.execute(
            delete(CartItem).where(CartItem.id == row_id, CartItem.user_id == user_id)
        )
        safe_commit(self._db)

        removed = result.rowcount > 0
        if removed:
            logger.info("Cart item removed", user_id=user_id, row_id=row_id)
        return removed

    def clear_cart(self, user_id: str) -> int:
        """Delete every row of the user's cart. Returns the number deleted."""
        result = self._db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        safe_commit(self._db)

        logger.info("Cart cleared", user_id=user_id, removed=result.rowcount)
        return result.rowcount

    # =========================================================================
    # Queries
    # =========================================================================

    def get_items(self, user_id: str) -> CartView:
        """
        The user's cart with current item data and totals.

        Rows whose item was removed are left out of both the listing and the
        totals, and deleted.
        """
        rows = self._db.scalars(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.added_at, CartItem.id)
        ).all()

        items = self._inventory.get_many((row.item_type, row.item_id) for row in rows)

        lines: list[CartLine] = []
        dangling: list[int] = []
        for row in rows:
            item = items.get((row.item_type, row.item_id))
            if item is None:
                dangling.append(row.id)
            else:
                lines.append(CartLine(row=row, item=item))

        if dangling:
            self._db.execute(delete(CartItem).where(CartItem.id.in_(dangling)))
            safe_commit(self._db)
            logger.info("Dropped cart rows for removed items", user_id=user_id, row_ids=dangling)

        summary = summarize((line.item.price_cents, line.row.quantity) for line in lines)
        return CartView(lines=lines, summary=summary)

    def item_count(self, user_id: str) -> int:
        """Sum of quantities over the user's live cart rows."""
        return self.get_items(user_id).summary.item_count
