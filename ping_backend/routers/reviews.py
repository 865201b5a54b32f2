# ping_backend/routers/reviews.py
"""
Router for reviews, check-ins and feeds
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_current_user, get_current_user_id, get_page, get_review_feed, require_admin
from ..models import ReviewScope, User
from ..schemas.base import PageParams, PaginatedResult
from ..schemas.review import (
    ExploreFilter, ExploreReview, ReviewCreate, ReviewForPlaceCreate, ReviewGroup, ReviewUpdate
)
from ..services.review_feed import ReviewFeed

router = APIRouter(prefix="/api/v1/reviews", tags=["Reviews"])


@router.post("/activities/{activity_id}", response_model=ExploreReview, status_code=status.HTTP_201_CREATED)
async def create_review(
    activity_id: int,
    data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    """Post a review (first time) or a check-in"""
    return await feed.create_review(db, activity_id, data, current_user.id, current_user.username)


@router.post("/places/{place_id}", response_model=ExploreReview, status_code=status.HTTP_201_CREATED)
async def create_review_for_place(
    place_id: int,
    data: ReviewForPlaceCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.create_review_for_place(db, place_id, data, current_user.id, current_user.username)


@router.get("/activities/{activity_id}", response_model=PaginatedResult[ExploreReview])
async def get_reviews(
    activity_id: int,
    scope: ReviewScope = ReviewScope.GLOBAL,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.get_reviews(db, activity_id, scope, user_id, page)


@router.get("/activities/{activity_id}/grouped", response_model=PaginatedResult[ReviewGroup])
async def get_grouped_reviews(
    activity_id: int,
    scope: ReviewScope = ReviewScope.GLOBAL,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.get_grouped_reviews(db, activity_id, scope, user_id, page)


@router.get("/explore", response_model=PaginatedResult[ExploreReview])
async def explore(
    scope: ReviewScope = ReviewScope.GLOBAL,
    keyword: Optional[str] = None,
    genre_ids: List[int] = Query(default=[], alias="genreIds"),
    tags: List[str] = Query(default=[]),
    activity_name: Optional[str] = Query(None, alias="activityName"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, alias="radiusKm"),
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    """Explore feed"""
    filters = ExploreFilter(
        scope=scope,
        keyword=keyword,
        genre_ids=genre_ids,
        tags=tags,
        activity_name=activity_name,
        latitude=lat,
        longitude=lng,
        radius_km=radius_km,
    )
    return await feed.get_explore(db, filters, user_id, page)


@router.get("/friends", response_model=PaginatedResult[ExploreReview])
async def friends_feed(
    page: PageParams = Depends(get_page),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.get_friends_feed(db, current_user.id, page)


@router.get("/liked", response_model=PaginatedResult[ExploreReview])
async def liked_reviews(
    page: PageParams = Depends(get_page),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.get_liked(db, current_user.id, page)


@router.get("/mine", response_model=PaginatedResult[ExploreReview])
async def my_reviews(
    page: PageParams = Depends(get_page),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.get_my_reviews(db, current_user.id, page)


@router.get("/users/{target_id}", response_model=PaginatedResult[ExploreReview])
async def user_reviews(
    target_id: UUID,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.get_user_reviews(db, target_id, user_id, page)


@router.post("/{review_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def like_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    await feed.like(db, review_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{review_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    await feed.unlike(db, review_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{review_id}", response_model=ExploreReview)
async def update_review(
    review_id: int,
    data: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    return await feed.update_review(db, review_id, data, current_user.id)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    await feed.delete_review(db, review_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/admin/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review_as_admin(
    review_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    feed: ReviewFeed = Depends(get_review_feed),
):
    await feed.delete_review_as_admin(db, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
