"""
Inventory Store.

Uniform view over the two orderable item kinds (meals and events): price,
whether the item may be ordered, and its stock counter. Also owns the
conditional stock reservation used at checkout.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shared.config.constants import EventStatus, ItemType, MealAvailability
from shared.config.logging import get_logger
from shared.utils.exceptions import ValidationError
from rest_api.models import Event, Meal

logger = get_logger(__name__)

ItemKey = tuple[str, int]


@dataclass(frozen=True)
class StockedItem:
    """Snapshot of an orderable item."""

    item_type: str
    item_id: int
    name: str
    price_cents: int
    orderable: bool
    # None when stock is not tracked
    stock: Optional[int]
    image_url: Optional[str] = None

    @property
    def key(self) -> ItemKey:
        return (self.item_type, self.item_id)

    @property
    def label(self) -> str:
        return item_label(self.item_type)


def _from_meal(meal: Meal) -> StockedItem:
    return StockedItem(
        item_type=ItemType.MEAL,
        item_id=meal.id,
        name=meal.name,
        price_cents=meal.price_cents,
        orderable=meal.availability == MealAvailability.AVAILABLE,
        stock=meal.stock_quantity,
        image_url=meal.image_url,
    )


def _from_event(event: Event) -> StockedItem:
    return StockedItem(
        item_type=ItemType.EVENT,
        item_id=event.id,
        name=event.name,
        price_cents=event.price_cents,
        orderable=event.status == EventStatus.ACTIVE,
        stock=event.available_tickets,
        image_url=event.image_url,
    )


def item_label(item_type: str) -> str:
    return "Event" if item_type == ItemType.EVENT else "Meal"


class InventoryStore:
    """
    Reads and reserves catalog stock.

    Soft-deleted meals/events are reported as missing.
    """

    def __init__(self, db: Session):
        self._db = db

    @staticmethod
    def _check_type(item_type: str) -> None:
        if item_type not in ItemType.ALL:
            raise ValidationError(f"Unknown item type: {item_type}", item_type=item_type)

    def get(self, item_type: str, item_id: int, lock: bool = False) -> Optional[StockedItem]:
        """
        Fetch one item, or None if it does not exist.

        With lock=True the item row is held (SELECT ... FOR UPDATE) until the
        caller's transaction ends, serialising concurrent cart writes for it.
        """
        self._check_type(item_type)

        if item_type == ItemType.MEAL:
            stmt = select(Meal).where(Meal.id == item_id, Meal.is_active.is_(True))
            if lock:
                stmt = stmt.with_for_update()
            meal = self._db.scalar(stmt)
            return _from_meal(meal) if meal else None

        stmt = select(Event).where(Event.id == item_id, Event.is_active.is_(True))
        if lock:
            stmt = stmt.with_for_update()
        event = self._db.scalar(stmt)
        return _from_event(event) if event else None

    def get_many(self, keys: Iterable[ItemKey]) -> dict[ItemKey, StockedItem]:
        """Batch lookup; missing items are simply absent from the result."""
        keys = list(keys)
        meal_ids = {item_id for item_type, item_id in keys if item_type == ItemType.MEAL}
        event_ids = {item_id for item_type, item_id in keys if item_type == ItemType.EVENT}

        found: dict[ItemKey, StockedItem] = {}
        if meal_ids:
            meals = self._db.scalars(
                select(Meal).where(Meal.id.in_(meal_ids), Meal.is_active.is_(True))
            ).all()
            for meal in meals:
                item = _from_meal(meal)
                found[item.key] = item
        if event_ids:
            events = self._db.scalars(
                select(Event).where(Event.id.in_(event_ids), Event.is_active.is_(True))
            ).all()
            for event in events:
                item = _from_event(event)
                found[item.key] = item
        return found

    def reserve(self, item_type: str, item_id: int, quantity: int) -> bool:
        """
        Take quantity out of stock if enough is left.

        A single conditional UPDATE, so two concurrent checkouts cannot both
        take the last units. Returns False when stock is insufficient.
        Untracked meal stock always succeeds. Does not commit.
        """
        self._check_type(item_type)

        if item_type == ItemType.MEAL:
            tracked = self._db.scalar(select(Meal.stock_quantity).where(Meal.id == item_id))
            if tracked is None:
                return True
            result = self._db.execute(
                update(Meal)
                .where(
                    Meal.id == item_id,
                    Meal.stock_quantity.is_not(None),
                    Meal.stock_quantity >= quantity,
                )
                .values(stock_quantity=Meal.stock_quantity - quantity)
                .execution_options(synchronize_session="fetch")
            )
        else:
            result = self._db.execute(
                update(Event)
                .where(Event.id == item_id, Event.available_tickets >= quantity)
                .values(available_tickets=Event.available_tickets - quantity)
                .execution_options(synchronize_session="fetch")
            )

        reserved = result.rowcount == 1
        if reserved:
            logger.debug("Stock reserved", item_type=item_type, item_id=item_id, quantity=quantity)
        return reserved

    def release(self, item_type: str, item_id: int, quantity: int) -> None:
        """Return quantity to stock (no-op for untracked meals). Does not commit."""
        self._check_type(item_type)

        if item_type == ItemType.MEAL:
            self._db.execute(
                update(Meal)
                .where(Meal.id == item_id, Meal.stock_quantity.is_not(None))
                .values(stock_quantity=Meal.stock_quantity + quantity)
                .execution_options(synchronize_session="fetch")
            )
        else:
            self._db.execute(
                update(Event)
                .where(Event.id == item_id)
                .values(available_tickets=Event.available_tickets + quantity)
                .execution_options(synchronize_session="fetch")
            )
        logger.info("Stock released", item_type=item_type, item_id=item_id, quantity=quantity)
