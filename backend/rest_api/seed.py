"""
Seed data for development.
Creates a small menu and a few ticketed events when the catalog is empty.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import EventStatus, MealAvailability
from shared.config.logging import get_logger
from rest_api.models import Event, Meal

logger = get_logger(__name__)


DEMO_MEALS = [
    {
        "name": "Ndolé with plantains",
        "description": "Bitterleaf stew with peanuts and smoked fish",
        "category": "Mains",
        "price_cents": 350000,
        "stock_quantity": 40,
    },
    {
        "name": "Poulet DG",
        "description": "Chicken sautéed with ripe plantains and vegetables",
        "category": "Mains",
        "price_cents": 450000,
        "stock_quantity": 25,
    },
    {
        "name": "Grilled fish and bobolo",
        "description": None,
        "category": "Mains",
        "price_cents": 500000,
        "stock_quantity": None,
    },
    {
        "name": "Puff-puff",
        "description": "Fried dough balls, six per portion",
        "category": "Desserts",
        "price_cents": 50000,
        "stock_quantity": 100,
    },
    {
        "name": "Folere juice",
        "description": "Hibiscus infusion",
        "category": "Drinks",
        "price_cents": 75000,
        "stock_quantity": None,
        "availability": MealAvailability.OUT_OF_STOCK,
    },
]

DEMO_EVENTS = [
    {
        "name": "Friday jazz night",
        "venue": "Main terrace",
        "days_ahead": 5,
        "price_cents": 1000000,
        "total_tickets": 80,
    },
    {
        "name": "Chef's tasting dinner",
        "venue": "Private room",
        "days_ahead": 12,
        "price_cents": 2500000,
        "total_tickets": 16,
    },
]


def seed(db: Session) -> None:
    """
    Insert demo meals and events. Idempotent: does nothing once any meal
    or event exists.
    """
    if db.scalar(select(Meal.id).limit(1)) or db.scalar(select(Event.id).limit(1)):
        logger.info("Catalog already seeded, skipping")
        return

    for data in DEMO_MEALS:
        db.add(Meal(**{"availability": MealAvailability.AVAILABLE, **data}))

    now = datetime.now(timezone.utc)
    for data in DEMO_EVENTS:
        db.add(
            Event(
                name=data["name"],
                venue=data["venue"],
                starts_at=now + timedelta(days=data["days_ahead"]),
                price_cents=data["price_cents"],
                status=EventStatus.ACTIVE,
                total_tickets=data["total_tickets"],
                available_tickets=data["total_tickets"],
            )
        )

    db.commit()
    logger.info("Demo catalog seeded", meals=len(DEMO_MEALS), events=len(DEMO_EVENTS))
