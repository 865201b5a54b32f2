# ping_backend/routers/profiles.py
"""
Router for user profiles
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_current_user, get_current_user_id, get_page, get_profile_aggregator
from ..models import User
from ..schemas.base import PageParams, PaginatedResult
from ..schemas.place import PlaceDetails
from ..schemas.profile import PrivacyUpdate, ProfileEvent, ProfileSummary
from ..schemas.review import ExploreReview
from ..services.profile import ProfileAggregator

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


@router.put("/me/privacy", response_model=ProfileSummary)
async def update_privacy(
    data: PrivacyUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
):
    return await profiles.update_privacy(db, current_user.id, data)


@router.get("/{target_id}", response_model=ProfileSummary)
async def get_profile(
    target_id: UUID,
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
):
    return await profiles.get_profile(db, target_id, user_id)


@router.get("/{target_id}/places", response_model=PaginatedResult[PlaceDetails])
async def get_profile_places(
    target_id: UUID,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
):
    return await profiles.get_profile_places(db, target_id, user_id, page)


@router.get("/{target_id}/reviews", response_model=PaginatedResult[ExploreReview])
async def get_profile_reviews(
    target_id: UUID,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
):
    return await profiles.get_profile_reviews(db, target_id, user_id, page)


@router.get("/{target_id}/likes", response_model=PaginatedResult[ExploreReview])
async def get_profile_likes(
    target_id: UUID,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
):
    return await profiles.get_profile_likes(db, target_id, user_id, page)


@router.get("/{target_id}/events", response_model=PaginatedResult[ProfileEvent])
async def get_profile_events(
    target_id: UUID,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
):
    return await profiles.get_profile_events(db, target_id, user_id, page)
