# ping_backend/services/activities.py
"""
Place activities: creation with name deduplication, lookup and search
"""

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import (
    AlreadyExistsError, ContentRejectedError, NotFoundError, QuotaExceededError, ValidationFailedError
)
from ..models import Place, PlaceActivity, PlaceGenre, Review, ReviewLike, review_tags
from ..schemas.activity import ActivityCreate, ActivityCreateResult, ActivityResponse
from ..schemas.base import PageParams, PaginatedResult
from ..utils.db import like_pattern
from .cache import CacheService
from .moderation import OpenAIModerationGate
from .semantic import SemanticMatcher

logger = logging.getLogger(__name__)

HOUR_SECONDS = 60 * 60


class ActivityService:
    def __init__(self, rate_limiter: CacheService, moderation: OpenAIModerationGate, semantic: SemanticMatcher):
        self.rate_limiter = rate_limiter
        self.moderation = moderation
        self.semantic = semantic

    async def create_activity(self, db: AsyncSession, data: ActivityCreate, user_id: UUID) -> ActivityCreateResult:
        """Create an activity, or return the existing one it duplicates"""
        # 1. Hourly quota
        await self._check_quota(user_id)

        # 2. Resolve against existing activities of the place
        activity, warning = await self.get_or_create(db, data.place_id, data.name)

        stats = await self._rating_stats(db, [activity.id])
        return ActivityCreateResult(
            activity=self._to_response(activity, stats),
            created=warning is None,
            warning=warning,
        )

    async def get_or_create(
        self, db: AsyncSession, place_id: int, name: str, user_id: Optional[UUID] = None
    ) -> Tuple[PlaceActivity, Optional[str]]:
        """(activity, warning); warning is None only when a new activity was created.

        When user_id is given the hourly quota is charged only if a new row is
        actually created.
        """
        place = await self._require_place(db, place_id)

        name = (name or "").strip()
        if not name:
            raise ValidationFailedError("Activity name is required")

        moderation = await self.moderation.check(name)
        if moderation.flagged:
            logger.warning(f"Activity name flagged: '{name}' - {moderation.reason}")
            raise ContentRejectedError(f"Activity name rejected: {moderation.reason}", reason=moderation.reason)

        existing = await self._activities_of(db, place.id)

        # Exact match (case-insensitive)
        for activity in existing:
            if activity.name.lower() == name.lower():
                logger.info(f"Activity '{name}' already exists at place {place.id} (id {activity.id})")
                return activity, f"Activity '{activity.name}' already exists here."

        # Semantic match
        if existing:
            match_name = await self.semantic.find_duplicate(name, [a.name for a in existing])
            match = next((a for a in existing if a.name == match_name), None) if match_name else None
            if match is None and match_name:
                logger.warning(f"Semantic matcher returned unknown activity '{match_name}', ignoring")
            if match is not None:
                logger.info(f"Merged activity '{name}' into '{match.name}' (id {match.id})")
                return match, f"Merged '{name}' into existing activity '{match.name}'."

        if user_id is not None:
            await self._check_quota(user_id)

        activity = PlaceActivity(place_id=place.id, name=name)
        db.add(activity)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise AlreadyExistsError(f"Activity '{name}' already exists here", conflict_name=name)

        logger.info(f"Activity {activity.id} '{name}' created at place {place.id}")
        return await self._load(db, activity.id), None

    async def get_activity(self, db: AsyncSession, activity_id: int) -> ActivityResponse:
        activity = await self._load(db, activity_id)
        if activity is None:
            raise NotFoundError("Activity not found")
        stats = await self._rating_stats(db, [activity.id])
        return self._to_response(activity, stats)

    async def search_activities(
        self,
        db: AsyncSession,
        query: Optional[str],
        place_id: Optional[int],
        genre_id: Optional[int],
        page: PageParams,
    ) -> PaginatedResult[ActivityResponse]:
        """Name / genre substring search, newest first"""
        stmt = (
            select(PlaceActivity)
            .join(Place, Place.id == PlaceActivity.place_id)
            .outerjoin(PlaceGenre, PlaceGenre.id == Place.genre_id)
            .where(Place.is_deleted.is_(False))
        )
        if query and query.strip():
            pattern = like_pattern(query)
            stmt = stmt.where(or_(PlaceActivity.name.ilike(pattern), PlaceGenre.name.ilike(pattern)))
        if genre_id is not None:
            stmt = stmt.where(Place.genre_id == genre_id)
        if place_id is not None:
            stmt = stmt.where(PlaceActivity.place_id == place_id)

        total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        if total == 0:
            return PaginatedResult.empty(page)

        result = await db.execute(
            stmt.order_by(PlaceActivity.created_at.desc(), PlaceActivity.id.desc())
            .offset(page.offset)
            .limit(page.size)
            .execution_options(populate_existing=True)
        )
        activities = result.scalars().all()
        stats = await self._rating_stats(db, [a.id for a in activities])
        return PaginatedResult.build([self._to_response(a, stats) for a in activities], total, page)

    async def delete_activity_as_admin(self, db: AsyncSession, activity_id: int) -> None:
        """Remove an activity with its reviews; missing ids are ignored"""
        activity = await db.get(PlaceActivity, activity_id)
        if activity is None:
            return

        review_ids = select(Review.id).where(Review.activity_id == activity_id)
        await db.execute(delete(ReviewLike).where(ReviewLike.review_id.in_(review_ids)))
        await db.execute(delete(review_tags).where(review_tags.c.review_id.in_(review_ids)))
        await db.execute(
            delete(Review).where(Review.activity_id == activity_id).execution_options(synchronize_session=False)
        )
        await db.delete(activity)
        await db.flush()
        logger.info(f"Activity {activity_id} deleted by admin")

    # ---- helpers ----

    async def _check_quota(self, user_id: UUID) -> None:
        count = await self.rate_limiter.increment(f"ratelimit:activity:{user_id}", HOUR_SECONDS)
        if count > settings.ACTIVITY_CREATION_LIMIT_PER_HOUR:
            logger.warning(f"Activity creation rate limit exceeded for user {user_id}")
            raise QuotaExceededError("Too many activities created. Please try again in an hour.")

    async def _require_place(self, db: AsyncSession, place_id: int) -> Place:
        result = await db.execute(select(Place).where(Place.id == place_id, Place.is_deleted.is_(False)))
        place = result.scalar_one_or_none()
        if place is None:
            logger.warning(f"Place {place_id} not found for activity")
            raise NotFoundError("Place not found")
        return place

    async def _activities_of(self, db: AsyncSession, place_id: int) -> List[PlaceActivity]:
        result = await db.execute(
            select(PlaceActivity)
            .where(PlaceActivity.place_id == place_id)
            .order_by(PlaceActivity.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _load(self, db: AsyncSession, activity_id: int) -> Optional[PlaceActivity]:
        result = await db.execute(
            select(PlaceActivity).where(PlaceActivity.id == activity_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _rating_stats(self, db: AsyncSession, activity_ids: List[int]) -> Dict[int, Tuple[float, int]]:
        """activity id -> (average rating, review count) in one query"""
        if not activity_ids:
            return {}
        result = await db.execute(
            select(Review.activity_id, func.avg(Review.rating), func.count(Review.id))
            .where(Review.activity_id.in_(activity_ids))
            .group_by(Review.activity_id)
        )
        return {row[0]: (float(row[1]), row[2]) for row in result.all()}

    @staticmethod
    def _to_response(activity: PlaceActivity, stats: Dict[int, Tuple[float, int]]) -> ActivityResponse:
        average, count = stats.get(activity.id, (None, 0))
        place = activity.place
        return ActivityResponse(
            id=activity.id,
            place_id=activity.place_id,
            name=activity.name,
            created_at=activity.created_at,
            place_name=place.name if place else None,
            genre_name=place.genre.name if place and place.genre else None,
            average_rating=round(average, 2) if average is not None else None,
            reviews_count=count,
        )
