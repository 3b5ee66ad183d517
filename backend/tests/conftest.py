"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import itertools
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from shared.config.constants import (
    BookingStatus,
    EventStatus,
    ItemType,
    MealAvailability,
    PaymentMethod,
    PaymentStatus,
    Roles,
)
from shared.infrastructure.db import SessionLocal, engine, get_db
from shared.security.auth import sign_jwt
from rest_api.core.dependencies import get_payment_gateway
from rest_api.main import app
from rest_api.models import Base, Booking, Event, Meal
from rest_api.services.payments import PaymentResult, ProviderStatus


_reference_counter = itertools.count(1)


def next_reference() -> str:
    return f"EVT-TEST-{next(_reference_counter):06d}"


CUSTOMER_ID = "user-customer-1"
OTHER_CUSTOMER_ID = "user-customer-2"
ADMIN_ID = "user-admin-1"


# =============================================================================
# Fake payment gateway
# =============================================================================


class FakeGateway:
    """
    Stands in for PaymentGateway in router tests.

    initiate_result / status may be a value or an exception to raise.
    """

    def __init__(self):
        self.initiate_result: Optional[PaymentResult | Exception] = None
        self.status: Optional[ProviderStatus | Exception] = None
        self.unsupported: set[str] = set()
        self.initiated = []
        self.checked = []

    @property
    def breakers(self):
        return []

    async def aclose(self) -> None:
        pass

    def supports(self, method: str) -> bool:
        return method in PaymentMethod.ALL and method not in self.unsupported

    async def initiate(self, request):
        self.initiated.append(request)
        if isinstance(self.initiate_result, Exception):
            raise self.initiate_result
        if self.initiate_result is not None:
            return self.initiate_result
        tx = f"tx-{request.reference}"
        return PaymentResult(
            success=True,
            status=PaymentStatus.PENDING,
            transaction_id=tx,
            payment_reference=tx,
            message="Payment request sent to your phone. Please confirm the transaction.",
        )

    async def check_status(self, method, reference, amount_cents, transaction_id=None):
        self.checked.append((method, reference, transaction_id))
        if isinstance(self.status, Exception):
            raise self.status
        if not transaction_id:
            return None
        return self.status


# =============================================================================
# Database and client
# =============================================================================


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh in-memory database per test.
    """
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(db_session, gateway):
    """
    Test client sharing the test's session and using the fake gateway.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Authentication
# =============================================================================


def _bearer(sub: str, roles: list[str]) -> dict[str, str]:
    token = sign_jwt({"sub": sub, "roles": roles})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _bearer(CUSTOMER_ID, [Roles.CUSTOMER])


@pytest.fixture
def other_auth_headers():
    return _bearer(OTHER_CUSTOMER_ID, [Roles.CUSTOMER])


@pytest.fixture
def admin_headers():
    return _bearer(ADMIN_ID, [Roles.ADMIN])


# =============================================================================
# Catalog and bookings
# =============================================================================


@pytest.fixture
def seed_meal(db_session):
    """A meal priced 1000.00 with 5 in stock."""
    meal = Meal(
        name="Poulet DG",
        category="Mains",
        price_cents=100000,
        availability=MealAvailability.AVAILABLE,
        stock_quantity=5,
    )
    db_session.add(meal)
    db_session.commit()
    db_session.refresh(meal)
    return meal


@pytest.fixture
def seed_untracked_meal(db_session):
    """A meal without a stock counter."""
    meal = Meal(
        name="Grilled fish",
        price_cents=250050,
        availability=MealAvailability.AVAILABLE,
        stock_quantity=None,
    )
    db_session.add(meal)
    db_session.commit()
    db_session.refresh(meal)
    return meal


@pytest.fixture
def seed_event(db_session):
    """An active event priced 5000.00 with 10 tickets left."""
    event = Event(
        name="Friday jazz night",
        venue="Main terrace",
        price_cents=500000,
        status=EventStatus.ACTIVE,
        available_tickets=10,
        total_tickets=10,
    )
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event


@pytest.fixture
def make_booking(db_session):
    """
    Factory for bookings that already hold their stock reservation.
    """
    def _make(
        item,
        quantity: int = 2,
        user_id: str = CUSTOMER_ID,
        status: str = BookingStatus.PENDING_PAYMENT,
        payment_status: str = PaymentStatus.PENDING,
        payment_method: str = PaymentMethod.MTN_MOMO,
        payment_reference: Optional[str] = None,
        provider_request_id: Optional[str] = None,
    ) -> Booking:
        item_type = ItemType.EVENT if isinstance(item, Event) else ItemType.MEAL
        if item_type == ItemType.EVENT:
            item.available_tickets -= quantity
        elif item.stock_quantity is not None:
            item.stock_quantity -= quantity

        booking = Booking(
            user_id=user_id,
            item_type=item_type,
            item_id=item.id,
            item_name=item.name,
            quantity=quantity,
            unit_price_cents=item.price_cents,
            total_cents=item.price_cents * quantity,
            reference_number=next_reference(),
            status=status,
            payment_method=payment_method,
            payment_status=payment_status,
            payment_reference=payment_reference,
            provider_request_id=provider_request_id,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return _make
