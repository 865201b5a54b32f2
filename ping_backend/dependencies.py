# ping_backend/dependencies.py
"""
FastAPI dependencies: actor resolution and service wiring
"""

from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_db
from .models import User, UserRole
from .schemas.base import PageParams
from .services.activities import ActivityService
from .services.cache import CacheService
from .services.moderation import OpenAIModerationGate
from .services.place_registry import PlaceRegistry
from .services.places_lookup import GooglePlacesLookup
from .services.profile import ProfileAggregator
from .services.review_feed import ReviewFeed
from .services.semantic import SemanticMatcher, build_semantic_matcher


# Shared collaborators (one per process)

@lru_cache
def get_cache() -> CacheService:
    return CacheService(settings.REDIS_URL)


@lru_cache
def get_moderation() -> OpenAIModerationGate:
    return OpenAIModerationGate()


@lru_cache
def get_semantic_matcher() -> SemanticMatcher:
    return build_semantic_matcher()


@lru_cache
def get_places_lookup() -> GooglePlacesLookup:
    return GooglePlacesLookup()


# Services

def get_place_registry(
    cache: CacheService = Depends(get_cache),
    moderation: OpenAIModerationGate = Depends(get_moderation),
    semantic: SemanticMatcher = Depends(get_semantic_matcher),
    places_lookup: GooglePlacesLookup = Depends(get_places_lookup),
) -> PlaceRegistry:
    return PlaceRegistry(cache, moderation, semantic, places_lookup)


def get_activity_service(
    cache: CacheService = Depends(get_cache),
    moderation: OpenAIModerationGate = Depends(get_moderation),
    semantic: SemanticMatcher = Depends(get_semantic_matcher),
) -> ActivityService:
    return ActivityService(cache, moderation, semantic)


def get_review_feed(
    moderation: OpenAIModerationGate = Depends(get_moderation),
    activities: ActivityService = Depends(get_activity_service),
) -> ReviewFeed:
    return ReviewFeed(moderation, activities)


def get_profile_aggregator(
    places: PlaceRegistry = Depends(get_place_registry),
    reviews: ReviewFeed = Depends(get_review_feed),
) -> ProfileAggregator:
    return ProfileAggregator(places, reviews)


# Actor

def get_current_user_id(x_user_id: Optional[UUID] = Header(None, alias="X-User-Id")) -> Optional[UUID]:
    """Actor id from the X-User-Id header (None for anonymous requests)"""
    return x_user_id


async def get_current_user(
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticated actor; required for mutations"""
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is blocked")
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return current_user


def get_page(
    page_number: int = Query(1, ge=1, alias="pageNumber"),
    page_size: int = Query(20, ge=1, alias="pageSize"),
) -> PageParams:
    return PageParams(page_number=page_number, page_size=page_size)
