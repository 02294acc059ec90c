"""
Pytest fixtures - test DB, client, auth, and deterministic collaborators.
Challenge: Isolated tests; no real Postgres, Redis, broker or model in unit tests.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from finderguard.config import ExchangeConfig, NotificationConfig
from finderguard.core.dependencies import (
    get_clock,
    get_expiry_scheduler,
    get_matcher,
    get_notifier,
)
from finderguard.core.security import create_access_token
from finderguard.db.base import Base
from finderguard.db.models import Item, Match, User
from finderguard.db.repositories import ItemRepository, MatchRepository, UserRepository
from finderguard.db.session import get_db
from finderguard.main import app
from finderguard.schemas.enums import ExchangeStatus, ItemKind, ItemStatus, MatchStatus
from finderguard.services.exchange_service import ExchangeService
from finderguard.services.notifier import Notifier

# In-memory SQLite shared across the one connection StaticPool hands out
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

T0 = datetime(2026, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    def set(self, seconds_after_start: float) -> None:
        self.current = T0 + timedelta(seconds=seconds_after_start)


class RecordingScheduler:
    def __init__(self):
        self.scheduled: list[tuple[int, float]] = []

    def schedule(self, match_id: int, delay_seconds: float) -> None:
        self.scheduled.append((match_id, delay_seconds))


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Cache is best-effort; keep unit tests off the network."""

    async def cache_get(key):
        return None

    async def cache_set(key, value, ttl_seconds=300):
        return True

    async def cache_delete(key):
        return True

    async def cache_delete_many(keys):
        return True

    monkeypatch.setattr("finderguard.services.item_service.cache_get", cache_get)
    monkeypatch.setattr("finderguard.services.item_service.cache_set", cache_set)
    monkeypatch.setattr("finderguard.services.item_service.cache_delete", cache_delete)
    monkeypatch.setattr("finderguard.services.exchange_service.cache_delete_many", cache_delete_many)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as s:
        yield s


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def notifications() -> list:
    return []


@pytest.fixture
def notifier(notifications) -> Notifier:
    return Notifier(NotificationConfig(enabled=True), lambda event, payload: notifications.append((event, payload)))


@pytest_asyncio.fixture
async def client(session: AsyncSession, clock, scheduler, notifier):
    async def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_expiry_scheduler] = lambda: scheduler
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_matcher] = lambda: None
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(session: AsyncSession, username: str, trust_score: int = 100) -> User:
    user = User(username=username, trust_score=trust_score)
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def make_item(
    session: AsyncSession,
    owner: User,
    kind: ItemKind,
    *,
    category: str = "Electronics",
    description: str = "Blue iPhone in a clear case",
    color_tokens: list[str] | None = None,
    brand_token: str | None = None,
    created_at: datetime = T0,
    private_details: dict | None = None,
) -> Item:
    item = Item(
        owner_id=owner.id,
        kind=kind,
        category=category,
        title="",
        description=description,
        color_tokens=color_tokens or [],
        brand_token=brand_token,
        status=ItemStatus.OPEN,
        private_details=private_details,
        created_at=created_at,
    )
    return await ItemRepository(session).add(item)


async def make_match(
    session: AsyncSession,
    lost: Item,
    found: Item,
    *,
    status: MatchStatus = MatchStatus.ACCEPTED,
    confidence: int = 90,
) -> Match:
    match = Match(
        lost_item_id=lost.id,
        found_item_id=found.id,
        lost_user_id=lost.owner_id,
        found_user_id=found.owner_id,
        confidence=confidence,
        status=status,
        exchange_status=ExchangeStatus.NONE,
        exchange_confirmed_by=[],
    )
    return await MatchRepository(session).add(match)


def auth_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def founder(session: AsyncSession) -> User:
    return await make_user(session, "finder", trust_score=80)


@pytest_asyncio.fixture
async def owner(session: AsyncSession) -> User:
    return await make_user(session, "owner")


@pytest.fixture
def exchange_service(session, clock, scheduler, notifier) -> ExchangeService:
    return ExchangeService(
        MatchRepository(session),
        ItemRepository(session),
        UserRepository(session),
        clock,
        ExchangeConfig(timeout_seconds=300),
        scheduler,
        notifier,
    )
