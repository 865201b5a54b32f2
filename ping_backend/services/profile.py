# ping_backend/services/profile.py
"""
Per-user profile listings honoring block state and privacy settings
"""

import logging
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError
from ..models import Event, EventAttendee, Follow, Place, PlaceActivity, PrivacyConstraint, Review, User
from ..schemas.base import PageParams, PaginatedResult
from ..schemas.place import PlaceDetails
from ..schemas.profile import PrivacyUpdate, ProfileEvent, ProfileSummary
from ..schemas.review import ExploreReview
from ..utils.visibility import can_view, can_view_category
from .place_registry import PlaceRegistry
from .review_feed import ReviewFeed
from .social import BlockGraph, FriendGraph

logger = logging.getLogger(__name__)


class ProfileAggregator:
    def __init__(
        self,
        places: PlaceRegistry,
        reviews: ReviewFeed,
        friends: Optional[FriendGraph] = None,
        blocks: Optional[BlockGraph] = None,
    ):
        self.places = places
        self.reviews = reviews
        self.friends = friends or FriendGraph()
        self.blocks = blocks or BlockGraph()

    async def get_profile(self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID]) -> ProfileSummary:
        target, is_friend = await self._resolve_target(db, target_id, viewer_id)

        reviews_count = await db.scalar(select(func.count(Review.id)).where(Review.author_id == target_id))
        places_visited = await db.scalar(
            select(func.count(func.distinct(PlaceActivity.place_id)))
            .join(Review, Review.activity_id == PlaceActivity.id)
            .where(Review.author_id == target_id)
        )
        followers = await db.scalar(select(func.count(Follow.id)).where(Follow.followee_id == target_id))
        following = await db.scalar(select(func.count(Follow.id)).where(Follow.follower_id == target_id))

        return ProfileSummary(
            id=target.id,
            username=target.username,
            profile_image_url=target.profile_image_url,
            is_friend=is_friend,
            is_self=viewer_id == target_id,
            reviews_count=reviews_count or 0,
            places_visited_count=places_visited or 0,
            followers_count=followers or 0,
            following_count=following or 0,
            reviews_privacy=target.reviews_privacy,
            places_privacy=target.places_privacy,
            likes_privacy=target.likes_privacy,
        )

    async def get_profile_places(
        self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[PlaceDetails]:
        """Places created or reviewed by target, most recent interaction first"""
        target, is_friend = await self._resolve_target(db, target_id, viewer_id)
        if not can_view_category(viewer_id, target_id, target.places_privacy, is_friend):
            return PaginatedResult.empty(page)

        # 1. Created places
        created = await db.execute(
            select(Place)
            .where(Place.owner_id == target_id, Place.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        interactions: Dict[int, datetime] = {}
        places: Dict[int, Place] = {}
        for place in created.scalars().all():
            places[place.id] = place
            interactions[place.id] = place.created_at

        # 2. Reviewed places, keyed by the latest review
        reviewed = await db.execute(
            select(Place, func.max(Review.created_at))
            .join(PlaceActivity, PlaceActivity.place_id == Place.id)
            .join(Review, Review.activity_id == PlaceActivity.id)
            .where(Review.author_id == target_id, Place.is_deleted.is_(False))
            .group_by(Place.id)
        )
        for place, last_review in reviewed.all():
            places[place.id] = place
            if place.id not in interactions or last_review > interactions[place.id]:
                interactions[place.id] = last_review

        # 3. Each place keeps its own visibility
        friend_ids = await self.friends.friend_ids(db, viewer_id)
        visible = [
            p for p in places.values()
            if can_view(viewer_id, p.owner_id, p.visibility, p.owner_id in friend_ids)
        ]
        visible.sort(key=lambda p: (interactions[p.id], p.id), reverse=True)

        page_items = visible[page.offset:page.offset + page.size]
        items = await self.places.to_details(db, page_items, viewer_id)
        return PaginatedResult.build(items, len(visible), page)

    async def get_profile_reviews(
        self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[ExploreReview]:
        target, is_friend = await self._resolve_target(db, target_id, viewer_id)
        if not can_view_category(viewer_id, target_id, target.reviews_privacy, is_friend):
            return PaginatedResult.empty(page)
        return await self.reviews.get_user_reviews(db, target_id, viewer_id, page)

    async def get_profile_likes(
        self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[ExploreReview]:
        target, is_friend = await self._resolve_target(db, target_id, viewer_id)
        if not can_view_category(viewer_id, target_id, target.likes_privacy, is_friend):
            return PaginatedResult.empty(page)
        return await self.reviews.get_user_likes(db, target_id, viewer_id, page)

    async def get_profile_events(
        self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[ProfileEvent]:
        """Events created or attended by target that the viewer may see"""
        await self._resolve_target(db, target_id, viewer_id)

        attending = select(EventAttendee.event_id).where(EventAttendee.user_id == target_id)
        result = await db.execute(
            select(Event)
            .where(or_(Event.created_by_id == target_id, Event.id.in_(attending)))
            .order_by(Event.start_time.desc(), Event.id.desc())
            .execution_options(populate_existing=True)
        )
        events = result.scalars().unique().all()

        visible = []
        for event in events:
            attendee_ids = {a.user_id for a in event.attendees}
            if event.is_public or (viewer_id is not None and (
                viewer_id == event.created_by_id or viewer_id in attendee_ids
            )):
                visible.append(event)

        page_items = visible[page.offset:page.offset + page.size]
        items = [
            ProfileEvent(
                id=e.id,
                title=e.title,
                place_id=e.place_id,
                start_time=e.start_time,
                is_public=e.is_public,
                is_creator=e.created_by_id == target_id,
            )
            for e in page_items
        ]
        return PaginatedResult.build(items, len(visible), page)

    async def update_privacy(self, db: AsyncSession, user_id: UUID, data: PrivacyUpdate) -> ProfileSummary:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        if data.reviews_privacy is not None:
            user.reviews_privacy = PrivacyConstraint(data.reviews_privacy).value
        if data.places_privacy is not None:
            user.places_privacy = PrivacyConstraint(data.places_privacy).value
        if data.likes_privacy is not None:
            user.likes_privacy = PrivacyConstraint(data.likes_privacy).value
        await db.flush()

        logger.info(f"Privacy settings updated for {user_id}")
        return await self.get_profile(db, user_id, user_id)

    async def _resolve_target(self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID]):
        """(target user, is_friend); blocked pairs look like a missing user"""
        target = await db.get(User, target_id)
        if target is None or not target.is_active:
            raise NotFoundError("User not found")
        if await self.blocks.is_blocked_either_way(db, viewer_id, target_id):
            raise NotFoundError("User not found")

        is_friend = False
        if viewer_id is not None and viewer_id != target_id:
            is_friend = await self.friends.is_friend(db, viewer_id, target_id)
        return target, is_friend
