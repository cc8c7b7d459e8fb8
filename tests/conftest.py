"""
Test configuration and fixtures for the Rental Marketplace API.
Provides an in-memory database per test, a recording channel dispatcher,
account and listing factories, and an authenticated API client.
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only-0123456789")
os.environ.setdefault("NOTIFICATIONS_DRY_RUN", "true")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import uuid
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import rental_api.models  # noqa: F401
from rental_api.config import settings
from rental_api.database import Base, get_db
from rental_api.main import app
from rental_api.models.contract import RentalContract, ContractStatus
from rental_api.models.notification import NotificationChannel
from rental_api.models.property import Property, PropertyStatus
from rental_api.models.user import User, UserRole
from rental_api.repositories.contract import ContractRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.repositories.user import UserRepository
from rental_api.services.channels import (
    ChannelDeliveryError,
    ChannelDispatcher,
    ChannelSender,
    DeliveryReceipt,
    OutboundMessage,
)
from rental_api.utils.auth import create_access_token
from rental_api.utils.dependencies import get_notification_dispatcher
from rental_api.utils.timeutils import today_utc


class RecordingSender(ChannelSender):
    """Channel sender that records messages instead of contacting a provider."""

    def __init__(self, channel: NotificationChannel, fail: bool = False, invalid: Optional[List[str]] = None):
        super().__init__(settings)
        self.channel = channel
        self.fail = fail
        self.invalid = invalid or []
        self.sent: List[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> DeliveryReceipt:
        if self.fail:
            raise ChannelDeliveryError(self.channel, "provider unavailable")
        self.sent.append(message)
        return DeliveryReceipt(
            channel=self.channel,
            provider_ids=[f"test-{len(self.sent)}"],
            invalid_recipients=list(self.invalid),
        )


class RecordingDispatcher(ChannelDispatcher):
    """Dispatcher with a recording sender per channel."""

    def __init__(self):
        super().__init__({channel: RecordingSender(channel) for channel in NotificationChannel})

    def sent(self, channel: NotificationChannel) -> List[OutboundMessage]:
        return self.senders[channel].sent

    def fail(self, channel: NotificationChannel) -> None:
        self.senders[channel].fail = True


@pytest.fixture
async def engine():
    """Fresh in-memory database for every test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
async def client(db_session: AsyncSession, dispatcher: RecordingDispatcher) -> AsyncGenerator[AsyncClient, None]:
    """API client sharing the test session and the recording dispatcher."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        password: str = "testpassword123",
        full_name: str = "Test User",
        role: UserRole = UserRole.RENTER,
        phone: Optional[str] = None,
        is_active: bool = True
    ) -> dict:
        return {
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "password": password,
            "full_name": full_name,
            "role": role,
            "phone": phone,
            "is_active": is_active
        }

    @staticmethod
    async def create_user(db_session: AsyncSession, **kwargs) -> User:
        return await UserRepository(db_session).create_user(UserFactory.create_user_data(**kwargs))


class PropertyFactory:
    """Factory for creating test listings."""

    @staticmethod
    def create_property_data(owner_id: uuid.UUID, **overrides) -> dict:
        data = {
            "owner_id": owner_id,
            "title": "Two-bedroom flat in Jabal Amman",
            "description": "Quiet flat near Rainbow Street with a balcony and parking.",
            "price": Decimal("450.00"),
            "currency": "JOD",
            "city": "Amman",
            "area": "Jabal Amman",
            "address": "5 Rainbow Street",
            "bedrooms": 2,
            "bathrooms": 1,
            "size_sqm": 95,
            "furnished": True,
            "amenities": ["parking"],
            "status": PropertyStatus.AVAILABLE,
        }
        data.update(overrides)
        return data

    @staticmethod
    async def create_property(db_session: AsyncSession, owner_id: uuid.UUID, **overrides) -> Property:
        repo = PropertyRepository(db_session)
        return await repo.create_property(PropertyFactory.create_property_data(owner_id, **overrides))


class ContractFactory:
    """Factory for creating leases directly in a given state."""

    @staticmethod
    async def create_contract(
        db_session: AsyncSession,
        property: Property,
        renter: User,
        status: ContractStatus = ContractStatus.ACTIVE,
        start_offset_days: int = -30,
        length_days: int = 365,
        **overrides
    ) -> RentalContract:
        start = today_utc() + timedelta(days=start_offset_days)
        data = {
            "property_id": property.id,
            "renter_id": renter.id,
            "landlord_id": property.owner_id,
            "start_date": start,
            "end_date": start + timedelta(days=length_days),
            "monthly_rent": property.price,
            "security_deposit": property.price,
            "currency": property.currency,
            "status": status,
        }
        data.update(overrides)
        return await ContractRepository(db_session).create(data)


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


# Common test fixtures
@pytest.fixture
async def landlord(db_session: AsyncSession) -> User:
    return await UserFactory.create_user(
        db_session, email="landlord@test.com", full_name="Omar Haddad", role=UserRole.LANDLORD
    )


@pytest.fixture
async def renter(db_session: AsyncSession) -> User:
    return await UserFactory.create_user(
        db_session, email="renter@test.com", full_name="Lina Khalil", role=UserRole.RENTER, phone="+962791234567"
    )


@pytest.fixture
async def other_renter(db_session: AsyncSession) -> User:
    return await UserFactory.create_user(
        db_session, email="other@test.com", full_name="Sami Nasser", role=UserRole.RENTER
    )


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    return await UserFactory.create_user(
        db_session, email="admin@test.com", full_name="Test Admin", role=UserRole.ADMIN
    )


@pytest.fixture
async def listing(db_session: AsyncSession, landlord: User) -> Property:
    return await PropertyFactory.create_property(db_session, landlord.id)


@pytest.fixture
async def active_contract(db_session: AsyncSession, listing: Property, renter: User) -> RentalContract:
    contract = await ContractFactory.create_contract(db_session, listing, renter)
    await PropertyRepository(db_session).update_status(listing.id, PropertyStatus.RENTED)
    return contract


@pytest.fixture
def landlord_headers(landlord: User) -> Dict[str, str]:
    return auth_headers(landlord)


@pytest.fixture
def renter_headers(renter: User) -> Dict[str, str]:
    return auth_headers(renter)


@pytest.fixture
def admin_headers(admin: User) -> Dict[str, str]:
    return auth_headers(admin)
