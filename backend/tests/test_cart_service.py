"""
Tests for CartService: admission, stock ceilings and row merging.
"""

import pytest

from shared.config.constants import EventStatus, ItemType, MealAvailability
from shared.infrastructure.db import SessionLocal
from shared.utils.exceptions import (
    CartItemNotFoundError,
    InsufficientStockError,
    ItemUnavailableError,
    NotFoundError,
    ValidationError,
)
from rest_api.models import CartItem
from rest_api.services.domain.cart_service import CartService

from tests.conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID


def _rows(db_session, user_id=CUSTOMER_ID):
    return db_session.query(CartItem).filter(CartItem.user_id == user_id).all()


class TestAddItem:
    """Adding items to a cart."""

    def test_add_creates_row(self, db_session, seed_meal):
        row = CartService(db_session).add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2, "No onions")

        assert row.id is not None
        assert row.quantity == 2
        assert row.notes == "No onions"

    def test_add_same_item_merges_into_one_row(self, db_session, seed_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        assert row.quantity == 3
        assert len(_rows(db_session)) == 1

    def test_empty_note_keeps_stored_note(self, db_session, seed_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1, "Extra spicy")
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1, "   ")

        assert row.notes == "Extra spicy"

    def test_new_note_replaces_stored_note(self, db_session, seed_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1, "Extra spicy")
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1, "Mild")

        assert row.notes == "Mild"

    def test_new_row_over_stock_rejected(self, db_session, seed_meal):
        with pytest.raises(InsufficientStockError) as exc:
            CartService(db_session).add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 6)

        assert exc.value.status_code == 409
        assert exc.value.detail == "Only 5 items available"
        assert _rows(db_session) == []

    def test_increment_over_stock_reports_remaining(self, db_session, seed_meal):
        """Stock 5: adding 3 then 4 is refused with 2 remaining."""
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 3)

        with pytest.raises(InsufficientStockError) as exc:
            service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 4)

        assert exc.value.detail == "Cannot add 4 more items. Only 2 more available"
        assert exc.value.remaining == 2
        assert _rows(db_session)[0].quantity == 3

    def test_increment_up_to_stock_allowed(self, db_session, seed_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 3)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)

        assert row.quantity == 5

    def test_increment_capped_at_99(self, db_session, seed_untracked_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_untracked_meal.id, 90)

        with pytest.raises(ValidationError) as exc:
            service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_untracked_meal.id, 10)

        assert exc.value.detail == "Maximum quantity is 99"

    def test_untracked_stock_not_limited(self, db_session, seed_untracked_meal):
        row = CartService(db_session).add_item(CUSTOMER_ID, ItemType.MEAL, seed_untracked_meal.id, 50)
        assert row.quantity == 50

    @pytest.mark.parametrize("quantity", [0, -1, 100])
    def test_quantity_out_of_range(self, db_session, seed_meal, quantity):
        with pytest.raises(ValidationError):
            CartService(db_session).add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, quantity)

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError) as exc:
            CartService(db_session).add_item(CUSTOMER_ID, ItemType.MEAL, 9999, 1)
        assert exc.value.status_code == 404

    def test_unavailable_meal(self, db_session, seed_meal):
        seed_meal.availability = MealAvailability.OUT_OF_STOCK
        db_session.commit()

        with pytest.raises(ItemUnavailableError) as exc:
            CartService(db_session).add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)
        assert exc.value.status_code == 409

    def test_inactive_event(self, db_session, seed_event):
        seed_event.status = EventStatus.INACTIVE
        db_session.commit()

        with pytest.raises(ItemUnavailableError):
            CartService(db_session).add_item(CUSTOMER_ID, ItemType.EVENT, seed_event.id, 1)

    def test_event_tickets_limit(self, db_session, seed_event):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.EVENT, seed_event.id, 8)

        with pytest.raises(InsufficientStockError) as exc:
            service.add_item(CUSTOMER_ID, ItemType.EVENT, seed_event.id, 3)
        assert exc.value.remaining == 2

    def test_carts_are_per_user(self, db_session, seed_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 3)
        service.add_item(OTHER_CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 3)

        assert len(_rows(db_session)) == 1
        assert len(_rows(db_session, OTHER_CUSTOMER_ID)) == 1


class TestConcurrentAdds:
    """
    Two sessions adding to the same row. The first session's loaded copy is
    stale once the second commits; the increment must build on the stored
    quantity, not on that copy.
    """

    def _add_in_other_session(self, item_id, quantity):
        other = SessionLocal()
        try:
            return CartService(other).add_item(CUSTOMER_ID, ItemType.MEAL, item_id, quantity).quantity
        finally:
            other.close()

    def test_both_adds_count(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)
        assert row.quantity == 2

        assert self._add_in_other_session(seed_meal.id, 1) == 3
        assert row.quantity == 2  # stale in this session

        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        assert row.quantity == 4
        rows = _rows(db_session)
        assert len(rows) == 1
        assert rows[0].quantity == 4

    def test_stock_ceiling_uses_committed_quantity(self, db_session, seed_meal):
        """Stock 5: 2 here, 2 elsewhere, then 2 more here must be refused."""
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)
        assert row.quantity == 2

        assert self._add_in_other_session(seed_meal.id, 2) == 4

        with pytest.raises(InsufficientStockError) as exc:
            service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)

        assert exc.value.detail == "Cannot add 2 more items. Only 1 more available"
        assert exc.value.remaining == 1
        db_session.expire_all()
        assert _rows(db_session)[0].quantity == 4


class TestUpdateQuantity:
    def test_overwrites_quantity(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        updated = service.update_quantity(CUSTOMER_ID, row.id, 4)
        assert updated.quantity == 4

    def test_over_stock(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        with pytest.raises(InsufficientStockError) as exc:
            service.update_quantity(CUSTOMER_ID, row.id, 6)
        assert exc.value.detail == "Only 5 items available"

    def test_other_users_row_not_found(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        with pytest.raises(CartItemNotFoundError):
            service.update_quantity(OTHER_CUSTOMER_ID, row.id, 2)

    def test_item_removed(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)
        seed_meal.soft_delete()
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.update_quantity(CUSTOMER_ID, row.id, 2)


class TestRemoveAndClear:
    def test_remove_is_idempotent(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        assert service.remove_item(CUSTOMER_ID, row.id) is True
        assert service.remove_item(CUSTOMER_ID, row.id) is False

    def test_remove_other_users_row_is_noop(self, db_session, seed_meal):
        service = CartService(db_session)
        row = service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        assert service.remove_item(OTHER_CUSTOMER_ID, row.id) is False
        assert len(_rows(db_session)) == 1

    def test_clear_only_own_cart(self, db_session, seed_meal, seed_event):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)
        service.add_item(CUSTOMER_ID, ItemType.EVENT, seed_event.id, 1)
        service.add_item(OTHER_CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 1)

        assert service.clear_cart(CUSTOMER_ID) == 2
        assert _rows(db_session) == []
        assert len(_rows(db_session, OTHER_CUSTOMER_ID)) == 1


class TestGetItems:
    def test_summary(self, db_session, seed_meal, seed_event):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)
        service.add_item(CUSTOMER_ID, ItemType.EVENT, seed_event.id, 1)

        view = service.get_items(CUSTOMER_ID)

        assert len(view.lines) == 2
        assert view.summary.item_count == 3
        # 2 * 1000.00 + 5000.00
        assert view.summary.subtotal_cents == 700000
        assert view.summary.tax_cents == 134750

    def test_dangling_rows_dropped(self, db_session, seed_meal, seed_event):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 2)
        service.add_item(CUSTOMER_ID, ItemType.EVENT, seed_event.id, 1)
        seed_event.soft_delete()
        db_session.commit()

        view = service.get_items(CUSTOMER_ID)

        assert [line.item.item_type for line in view.lines] == [ItemType.MEAL]
        assert view.summary.item_count == 2
        assert len(_rows(db_session)) == 1

    def test_item_count(self, db_session, seed_meal):
        service = CartService(db_session)
        service.add_item(CUSTOMER_ID, ItemType.MEAL, seed_meal.id, 4)
        assert service.item_count(CUSTOMER_ID) == 4
        assert service.item_count(OTHER_CUSTOMER_ID) == 0
