"""Test configuration and fixtures."""

import hashlib
import hmac
import json
import time
from datetime import date, timedelta
from decimal import Decimal

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.core.config import Settings
from marketplace.core.database import Base
from marketplace.core.dependencies import get_db
from marketplace.models import *  # noqa: F403 - Import all models
from marketplace.models import Cart, CartItem, PartnerStatus, ReferralPartner, ServiceListing, User
from marketplace.services.payment_gateway import CreatedPaymentIntent, StripeGateway
from marketplace.services.side_effects import SideEffectOrchestrator

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

WEBHOOK_SECRET = "whsec_test_secret"
TOKEN_SECRET = "test-token-secret"


class FakeStripeGateway(StripeGateway):
    """Records payment intents instead of calling Stripe; signatures are checked for real."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.created = []

    async def create_payment_intent(self, amount_cents, metadata, receipt_email=None, idempotency_key=None):
        intent_id = f"pi_test_{len(self.created) + 1}"
        self.created.append({
            "id": intent_id,
            "amount": amount_cents,
            "metadata": metadata,
            "receipt_email": receipt_email,
            "idempotency_key": idempotency_key,
        })
        return CreatedPaymentIntent(id=intent_id, client_secret=f"{intent_id}_secret_abc")


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def payment_succeeded_event(intent_id: str, metadata: dict, event_id: str = "evt_1", amount: int = 10000) -> str:
    """Serialized payment_intent.succeeded event."""
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "amount": amount,
                "currency": "usd",
                "metadata": metadata,
            }
        },
    })


def bearer(user_id: str, roles=None) -> dict:
    """Authorization header for a user."""
    token = jwt.encode({"sub": user_id, "roles": roles or []}, TOKEN_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_settings():
    """Settings for the test application."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        environment="test",
        bearer_token_secret=TOKEN_SECRET,
        stripe_secret_key="sk_test_unused",
        stripe_webhook_secret=WEBHOOK_SECRET,
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory shared by the app, side effects and assertions."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway(test_settings):
    return FakeStripeGateway(test_settings)


@pytest.fixture
def orchestrator(session_factory):
    return SideEffectOrchestrator(session_factory)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_settings, test_session, session_factory, gateway, orchestrator):
    """Create a test FastAPI application without lifespan or background workers."""
    from marketplace.main import create_app

    app = create_app(test_settings, use_lifespan=False)
    app.state.session_factory = session_factory
    app.state.payment_gateway = gateway
    app.state.side_effects = orchestrator

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def catalog(test_session):
    """Services across every category, owned by one vendor or host."""
    services = [
        ServiceListing(id="act_1", name="Reef Snorkeling", service_type="Activity", vendor_id="vendor_1"),
        ServiceListing(id="act_2", name="Sunset Sail", service_type="Activity", vendor_id="vendor_1"),
        ServiceListing(id="stay_1", name="Beach Villa", service_type="Stay", host_id="host_1"),
        ServiceListing(id="spa_1", name="Island Spa", service_type="WellnessSpa", vendor_id="vendor_2"),
        ServiceListing(id="dine_1", name="Harbour Grill", service_type="Dining", vendor_id="vendor_3"),
        ServiceListing(id="ride_1", name="Airport Shuttle", service_type="Transportation", vendor_id="vendor_4"),
        ServiceListing(id="orphan_1", name="Unowned Tour", service_type="Activity"),
    ]
    test_session.add_all(services)
    await test_session.commit()
    return {service.id: service for service in services}


@pytest_asyncio.fixture
async def customer(test_session):
    """Registered user with no loyalty credits yet."""
    user = User(id="user_1", email="ana@example.com", loyalty_credits=0)
    test_session.add(user)
    await test_session.commit()
    return user


@pytest_asyncio.fixture
async def partner(test_session):
    """Approved referral partner earning 5%."""
    partner = ReferralPartner(
        name="Island Blog",
        email="partner@example.com",
        referral_code="ISLAND5",
        commission_percentage=Decimal("5"),
        status=PartnerStatus.APPROVED.value,
        is_active=True,
    )
    test_session.add(partner)
    await test_session.commit()
    return partner


@pytest_asyncio.fixture
async def cart(test_session, catalog, customer):
    """Three-line cart; the second line points at a service that does not exist."""
    day = date.today() + timedelta(days=14)
    cart = Cart(
        id="cart_1",
        user_id=customer.id,
        items=[
            CartItem(
                id="item_1",
                position=0,
                service_id="act_1",
                service_type="Activity",
                selected_date=day,
                selected_time="9:30 AM",
                num_people=2,
                total_price=Decimal("120.00"),
            ),
            CartItem(
                id="item_2",
                position=1,
                service_id="missing_service",
                service_type="Activity",
                selected_date=day,
                selected_time="10:00",
                total_price=Decimal("50.00"),
            ),
            CartItem(
                id="item_3",
                position=2,
                service_id="dine_1",
                service_type="Dining",
                selected_date=day,
                num_people=4,
                total_price=Decimal("80.00"),
            ),
        ],
    )
    cart.recompute_total()
    test_session.add(cart)
    await test_session.commit()
    return cart


@pytest.fixture
def activity_draft_data():
    """Guest activity draft as the checkout page sends it."""
    return {
        "category": "activity",
        "activity": "act_1",
        "option": "opt_morning",
        "date": (date.today() + timedelta(days=10)).isoformat(),
        "time": "9:00 AM",
        "timeSlot": {"startTime": "9:00 AM", "endTime": "11:00 AM"},
        "guestName": "Sam Guest",
        "guestEmail": "sam@example.com",
        "numOfPeople": 2,
        "totalPrice": 100.0,
        "basePrice": 90.0,
        "referralCode": "",
    }


@pytest.fixture
def contact_info():
    return {"email": "sam@example.com", "firstName": "Sam", "lastName": "Guest", "phone": "+1 555 0100"}


@pytest.fixture
def sign():
    """Stripe-Signature header builder."""
    return sign_payload


@pytest.fixture
def paid_event():
    """payment_intent.succeeded event builder."""
    return payment_succeeded_event


@pytest.fixture
def auth_headers():
    """Bearer header builder."""
    return bearer
