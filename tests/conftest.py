import asyncio
import os
from datetime import datetime, timedelta, timezone

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-the-push-suite-0123456789")
os.environ.setdefault("LOG_FORMAT", "text")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.db import Base, create_engine_for, get_db
from app.errors import PermanentInvalidEndpoint, TransientDeliveryFailure
from app.main import app
from app.models import User, UserRole
from app.security import create_access_token
from app.services.providers import DeliveryProvider


class FakeProvider(DeliveryProvider):
    """Scripted provider: each token delivers unless told otherwise."""

    name = "fake"

    def __init__(self, outcomes=None, delays=None, available=True):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self._available = available
        self.calls = []

    @property
    def available(self) -> bool:
        return self._available

    async def send(self, address, payload):
        # Web push addresses are subscription dicts keyed by endpoint
        token = address["endpoint"] if isinstance(address, dict) else address
        self.calls.append((token, payload))
        if token in self.delays:
            await asyncio.sleep(self.delays[token])
        outcome = self.outcomes.get(token, "delivered")
        if outcome == "invalid":
            raise PermanentInvalidEndpoint(
                "Requested entity was not found.", code="registration-token-not-registered"
            )
        if outcome == "failed":
            raise TransientDeliveryFailure("Quota exceeded", code="RESOURCE_EXHAUSTED")
        if isinstance(outcome, Exception):
            raise outcome
        return f"projects/test/messages/{len(self.calls)}"

    @property
    def sent_tokens(self):
        return [token for token, _ in self.calls]


@pytest_asyncio.fixture
async def engine():
    engine = create_engine_for("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(session_maker):
    async def _make_user(email: str, role: UserRole = UserRole.REPARTIDOR, is_active: bool = True) -> User:
        async with session_maker() as session:
            user = User(email=email, name=email.split("@")[0].title(), role=role, is_active=is_active)
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def clock():
    """Clock that advances one second per call."""
    current = [datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)]

    def tick():
        current[0] += timedelta(seconds=1)
        return current[0]

    return tick


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def webpush_provider():
    return FakeProvider()


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_maker, provider, webpush_provider):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.push_provider = provider
    app.state.webpush_provider = webpush_provider
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.push_provider = None
    app.state.webpush_provider = None
