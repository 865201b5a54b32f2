"""
Shared fixtures: in-memory database, fake collaborators, services
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("GOOGLE_PLACES_API_KEY", "")

from typing import Dict, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ping_backend.models import Base, PlaceActivity, User
from ping_backend.models.enums import PlaceKind, PlaceVisibility
from ping_backend.schemas.place import PlaceCreate
from ping_backend.services.activities import ActivityService
from ping_backend.services.moderation import ModerationResult
from ping_backend.services.place_registry import PlaceRegistry
from ping_backend.services.profile import ProfileAggregator
from ping_backend.services.review_feed import ReviewFeed
from ping_backend.services.semantic import FuzzySemanticMatcher


class FakeRateLimiter:
    """In-memory counter with the CacheService.increment contract"""

    def __init__(self):
        self.counts: Dict[str, int] = {}
        self.ttls: Dict[str, int] = {}

    async def increment(self, key: str, ttl: int) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        self.ttls.setdefault(key, ttl)
        return self.counts[key]


class FakeModeration:
    """Flags any text containing one of the blocked words"""

    def __init__(self, blocked=("badword",)):
        self.blocked = set(blocked)
        self.checked = []

    async def check(self, text: Optional[str]) -> ModerationResult:
        self.checked.append(text)
        if not text or not text.strip():
            return ModerationResult(flagged=False)
        lowered = text.lower()
        for word in self.blocked:
            if word in lowered:
                return ModerationResult(flagged=True, reason="harassment")
        return ModerationResult(flagged=False)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def rate_limiter():
    return FakeRateLimiter()


@pytest.fixture
def moderation():
    return FakeModeration()


@pytest.fixture
def semantic():
    return FuzzySemanticMatcher(threshold=0.85)


@pytest.fixture
def places_lookup():
    lookup = AsyncMock()
    lookup.resolve_by_coordinates.return_value = None
    lookup.resolve_by_id.return_value = None
    return lookup


@pytest.fixture
def registry(rate_limiter, moderation, semantic, places_lookup):
    return PlaceRegistry(rate_limiter, moderation, semantic, places_lookup)


@pytest.fixture
def activities(rate_limiter, moderation, semantic):
    return ActivityService(rate_limiter, moderation, semantic)


@pytest.fixture
def feed(moderation, activities):
    return ReviewFeed(moderation, activities)


@pytest.fixture
def profiles(registry, feed):
    return ProfileAggregator(registry, feed)


@pytest.fixture
def make_user(db):
    async def _make_user(username: str, **kwargs) -> User:
        user = User(username=username, **kwargs)
        db.add(user)
        await db.flush()
        return user
    return _make_user


@pytest.fixture
def make_place(db, registry):
    async def _make_place(owner: User, name: str = "Corner Cafe", visibility=PlaceVisibility.PUBLIC,
                          latitude: float = 40.0, longitude: float = -74.0, kind=PlaceKind.CUSTOM, **kwargs):
        data = PlaceCreate(
            name=name,
            latitude=latitude,
            longitude=longitude,
            visibility=visibility,
            kind=kind,
            **kwargs,
        )
        return await registry.create_place(db, data, owner.id)
    return _make_place


@pytest.fixture
def make_activity(db):
    async def _make_activity(place_id: int, name: str = "Coffee") -> PlaceActivity:
        activity = PlaceActivity(place_id=place_id, name=name)
        db.add(activity)
        await db.flush()
        return activity
    return _make_activity

