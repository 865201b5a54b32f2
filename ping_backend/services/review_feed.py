# ping_backend/services/review_feed.py
"""
Reviews and check-ins: creation, scoped feeds, explore and likes
"""

import logging
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from ..config import settings
from ..errors import ContentRejectedError, NotFoundError, PermissionDeniedError, ValidationFailedError
from ..models import (
    TAG_MAX_LENGTH, Place, PlaceActivity, PlaceVisibility, Review, ReviewKind, ReviewLike, ReviewScope, Tag, User
)
from ..schemas.base import PageParams, PaginatedResult
from ..schemas.review import (
    ExploreFilter, ExploreReview, ReviewCreate, ReviewForPlaceCreate, ReviewGroup, ReviewUpdate
)
from ..utils.db import fetch_page, insert_ignore, like_pattern, within_box
from ..utils.geo import bounding_box
from ..utils.tags import normalize_tags
from ..utils.visibility import can_view, visible_place_clause
from .activities import ActivityService
from .moderation import OpenAIModerationGate
from .social import BlockGraph, FriendGraph

logger = logging.getLogger(__name__)


class ReviewFeed:
    """Review creation and every review listing"""

    def __init__(
        self,
        moderation: OpenAIModerationGate,
        activities: ActivityService,
        friends: Optional[FriendGraph] = None,
        blocks: Optional[BlockGraph] = None,
    ):
        self.moderation = moderation
        self.activities = activities
        self.friends = friends or FriendGraph()
        self.blocks = blocks or BlockGraph()

    # ---- create / update / delete ----

    async def create_review(
        self,
        db: AsyncSession,
        activity_id: int,
        data: ReviewCreate,
        author_id: UUID,
        author_name: str,
    ) -> ExploreReview:
        """Create a review, or a check-in when the author already posted on this activity"""
        # 1. Activity must exist
        activity = await db.get(PlaceActivity, activity_id)
        if activity is None:
            raise NotFoundError("Activity not found")

        # 2. Validate and moderate
        self._validate(data.rating, data.content)
        await self._moderate_content(data.content)

        # 3. First post is a review, the rest are check-ins
        prior = await db.execute(
            select(Review.id).where(Review.activity_id == activity_id, Review.author_id == author_id).limit(1)
        )
        kind = ReviewKind.CHECK_IN if prior.scalar_one_or_none() is not None else ReviewKind.REVIEW

        # 4. Tags
        tags = await self._resolve_tags(db, data.tags)

        review = Review(
            activity_id=activity_id,
            author_id=author_id,
            author_name=author_name,
            rating=data.rating,
            content=data.content,
            image_url=data.image_url,
            thumbnail_url=data.thumbnail_url or data.image_url,
            likes_count=0,
            kind=kind.value,
            tags=tags,
        )
        db.add(review)
        await db.flush()

        logger.info(f"{kind.value} {review.id} created by {author_id} on activity {activity_id}")
        return (await self._project(db, [await self._load(db, review.id)], author_id))[0]

    async def create_review_for_place(
        self,
        db: AsyncSession,
        place_id: int,
        data: ReviewForPlaceCreate,
        author_id: UUID,
        author_name: str,
    ) -> ExploreReview:
        """Review an activity by name, creating the activity when it does not exist"""
        self._validate(data.rating, data.content)
        activity, _ = await self.activities.get_or_create(db, place_id, data.activity_name, user_id=author_id)
        return await self.create_review(db, activity.id, data, author_id, author_name)

    async def update_review(
        self, db: AsyncSession, review_id: int, data: ReviewUpdate, user_id: UUID
    ) -> ExploreReview:
        review = await self._load(db, review_id)
        if review is None:
            raise NotFoundError("Review not found")
        if review.author_id != user_id:
            logger.warning(f"User {user_id} tried to update review {review_id}")
            raise PermissionDeniedError("You are not allowed to update this review")

        if data.rating is not None:
            self._validate(data.rating, None)
            review.rating = data.rating

        if data.content is not None and data.content != review.content:
            self._validate(review.rating, data.content)
            await self._moderate_content(data.content)
            review.content = data.content

        if data.image_url is not None:
            review.image_url = data.image_url
            review.thumbnail_url = data.thumbnail_url or data.image_url

        if data.tags is not None:
            review.tags = await self._resolve_tags(db, data.tags)

        await db.flush()
        logger.info(f"Review {review_id} updated by {user_id}")
        return (await self._project(db, [await self._load(db, review_id)], user_id))[0]

    async def delete_review(self, db: AsyncSession, review_id: int, user_id: UUID) -> None:
        review = await db.get(Review, review_id)
        if review is None:
            raise NotFoundError("Review not found")
        if review.author_id != user_id:
            logger.warning(f"User {user_id} tried to delete review {review_id}")
            raise PermissionDeniedError("You are not allowed to delete this review")
        await self._delete(db, review)
        logger.info(f"Review {review_id} deleted by {user_id}")

    async def delete_review_as_admin(self, db: AsyncSession, review_id: int) -> None:
        review = await db.get(Review, review_id)
        if review is None:
            return
        await self._delete(db, review)
        logger.info(f"Review {review_id} deleted by admin")

    # ---- likes ----

    async def like(self, db: AsyncSession, review_id: int, user_id: UUID) -> None:
        """Idempotent like; likes_count moves only when a row was inserted"""
        exists = await db.execute(select(Review.id).where(Review.id == review_id))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Review not found")

        inserted = await insert_ignore(db, ReviewLike, {"user_id": user_id, "review_id": review_id})
        if not inserted:
            return
        await db.execute(
            update(Review)
            .where(Review.id == review_id)
            .values(likes_count=Review.likes_count + 1)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Review {review_id} liked by {user_id}")

    async def unlike(self, db: AsyncSession, review_id: int, user_id: UUID) -> None:
        result = await db.execute(
            delete(ReviewLike)
            .where(ReviewLike.user_id == user_id, ReviewLike.review_id == review_id)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return
        await db.execute(
            update(Review)
            .where(Review.id == review_id, Review.likes_count > 0)
            .values(likes_count=Review.likes_count - 1)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Review {review_id} unliked by {user_id}")

    # ---- feeds ----

    async def get_reviews(
        self,
        db: AsyncSession,
        activity_id: int,
        scope: ReviewScope,
        actor_id: Optional[UUID],
        page: PageParams,
    ) -> PaginatedResult[ExploreReview]:
        """Reviews on one activity, newest first"""
        query = await self._scoped_activity_query(db, activity_id, scope, actor_id)
        if query is None:
            return PaginatedResult.empty(page)

        reviews, total = await fetch_page(db, query, page.offset, page.size)
        items = await self._project(db, reviews, actor_id)
        return PaginatedResult.build(items, total, page)

    async def get_grouped_reviews(
        self,
        db: AsyncSession,
        activity_id: int,
        scope: ReviewScope,
        actor_id: Optional[UUID],
        page: PageParams,
    ) -> PaginatedResult[ReviewGroup]:
        """Per-author {latest, history} groups, ordered by each author's latest post"""
        query = await self._scoped_activity_query(db, activity_id, scope, actor_id)
        if query is None:
            return PaginatedResult.empty(page)

        result = await db.execute(query.execution_options(populate_existing=True))
        reviews = result.scalars().all()

        groups: Dict[UUID, List[Review]] = {}
        for review in reviews:
            groups.setdefault(review.author_id, []).append(review)

        ordered = list(groups.values())
        page_groups = ordered[page.offset:page.offset + page.size]
        projected = await self._project(db, [r for g in page_groups for r in g], actor_id)
        by_id = {r.id: r for r in projected}

        items = [
            ReviewGroup(
                author_id=group[0].author_id,
                latest=by_id[group[0].id],
                history=[by_id[r.id] for r in group[1:]],
            )
            for group in page_groups
        ]
        return PaginatedResult.build(items, len(ordered), page)

    async def get_explore(
        self,
        db: AsyncSession,
        filters: ExploreFilter,
        actor_id: Optional[UUID],
        page: PageParams,
    ) -> PaginatedResult[ExploreReview]:
        """Discovery feed: global by popularity, friends by recency"""
        query = self._feed_query()

        if filters.scope == ReviewScope.FRIENDS:
            friend_ids = await self.friends.friend_ids(db, actor_id)
            if not friend_ids:
                return PaginatedResult.empty(page)
            query = query.where(
                Review.author_id.in_(friend_ids),
                Place.visibility.in_([PlaceVisibility.PUBLIC.value, PlaceVisibility.FRIENDS.value]),
                visible_place_clause(actor_id, friend_ids),
            ).order_by(Review.created_at.desc(), Review.id.desc())
        else:
            query = query.where(Place.visibility == PlaceVisibility.PUBLIC.value).order_by(
                Review.likes_count.desc(), Review.created_at.desc(), Review.id.desc()
            )

        query = await self._exclude_blocked(db, query, actor_id)

        if filters.keyword and filters.keyword.strip():
            pattern = like_pattern(filters.keyword)
            query = query.where(
                or_(
                    Place.name.ilike(pattern),
                    Place.address.ilike(pattern),
                    Review.content.ilike(pattern),
                    PlaceActivity.name.ilike(pattern),
                )
            )
        if filters.genre_ids:
            query = query.where(Place.genre_id.in_(filters.genre_ids))
        if filters.activity_name and filters.activity_name.strip():
            query = query.where(func.lower(PlaceActivity.name) == filters.activity_name.strip().lower())

        tags = normalize_tags(filters.tags)
        if tags:
            query = query.where(Review.tags.any(Tag.name.in_(tags)))

        if filters.has_area:
            box = bounding_box(filters.latitude, filters.longitude, filters.radius_km)
            query = query.where(within_box(Place.latitude, Place.longitude, box))

        reviews, total = await fetch_page(db, query, page.offset, page.size)
        items = await self._project(db, reviews, actor_id)
        return PaginatedResult.build(items, total, page)

    async def get_friends_feed(
        self, db: AsyncSession, user_id: UUID, page: PageParams
    ) -> PaginatedResult[ExploreReview]:
        return await self.get_explore(db, ExploreFilter(scope=ReviewScope.FRIENDS), user_id, page)

    async def get_my_reviews(self, db: AsyncSession, user_id: UUID, page: PageParams) -> PaginatedResult[ExploreReview]:
        query = (
            self._feed_query(include_deleted=True)
            .where(Review.author_id == user_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        reviews, total = await fetch_page(db, query, page.offset, page.size)
        items = await self._project(db, reviews, user_id)
        return PaginatedResult.build(items, total, page)

    async def get_user_reviews(
        self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[ExploreReview]:
        """Reviews by target on places the viewer can see, newest first"""
        if viewer_id is not None and viewer_id == target_id:
            return await self.get_my_reviews(db, target_id, page)
        if await self.blocks.is_blocked_either_way(db, viewer_id, target_id):
            return PaginatedResult.empty(page)

        friend_ids = await self.friends.friend_ids(db, viewer_id)
        query = (
            self._feed_query(include_deleted=True)
            .where(Review.author_id == target_id, visible_place_clause(viewer_id, friend_ids))
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        reviews, total = await fetch_page(db, query, page.offset, page.size)
        items = await self._project(db, reviews, viewer_id)
        return PaginatedResult.build(items, total, page)

    async def get_liked(self, db: AsyncSession, user_id: UUID, page: PageParams) -> PaginatedResult[ExploreReview]:
        """Reviews liked by the user, most recently liked first"""
        return await self.get_user_likes(db, user_id, user_id, page)

    async def get_user_likes(
        self, db: AsyncSession, target_id: UUID, viewer_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[ExploreReview]:
        query = (
            self._feed_query()
            .join(ReviewLike, ReviewLike.review_id == Review.id)
            .where(ReviewLike.user_id == target_id)
            .order_by(ReviewLike.created_at.desc(), ReviewLike.id.desc())
        )
        if viewer_id != target_id:
            friend_ids = await self.friends.friend_ids(db, viewer_id)
            query = query.where(visible_place_clause(viewer_id, friend_ids))
            query = await self._exclude_blocked(db, query, viewer_id)

        reviews, total = await fetch_page(db, query, page.offset, page.size)
        items = await self._project(db, reviews, viewer_id)
        return PaginatedResult.build(items, total, page)

    # ---- helpers ----

    @staticmethod
    def _validate(rating: Optional[int], content: Optional[str]) -> None:
        if rating is None or not 1 <= rating <= 5:
            raise ValidationFailedError("Rating must be between 1 and 5")
        if content is not None and len(content) > settings.REVIEW_CONTENT_MAX_LENGTH:
            raise ValidationFailedError(
                f"Content must be at most {settings.REVIEW_CONTENT_MAX_LENGTH} characters"
            )

    async def _moderate_content(self, content: Optional[str]) -> None:
        if not content or not content.strip():
            return
        moderation = await self.moderation.check(content)
        if moderation.flagged:
            logger.warning(f"Review content flagged: {moderation.reason}")
            raise ContentRejectedError(f"Content rejected: {moderation.reason}", reason=moderation.reason)

    async def _resolve_tags(self, db: AsyncSession, raw_tags: Optional[List[str]]) -> List[Tag]:
        """Existing or newly created tags; over-long names and new names that fail moderation are dropped"""
        names = []
        for name in normalize_tags(raw_tags or []):
            if len(name) > TAG_MAX_LENGTH:
                logger.warning(f"Tag longer than {TAG_MAX_LENGTH} characters, skipping: '{name[:20]}...'")
                continue
            names.append(name)
        if not names:
            return []

        result = await db.execute(select(Tag).where(Tag.name.in_(names)))
        existing = {t.name: t for t in result.scalars().all()}

        for name in names:
            if name in existing:
                continue
            moderation = await self.moderation.check(name)
            if moderation.flagged:
                logger.warning(f"Tag '{name}' flagged, skipping: {moderation.reason}")
                continue
            await insert_ignore(db, Tag, {"name": name})

        result = await db.execute(select(Tag).where(Tag.name.in_(names)))
        by_name = {t.name: t for t in result.scalars().all()}
        return [by_name[n] for n in names if n in by_name]

    async def _delete(self, db: AsyncSession, review: Review) -> None:
        await db.execute(delete(ReviewLike).where(ReviewLike.review_id == review.id))
        await db.delete(review)
        await db.flush()

    async def _load(self, db: AsyncSession, review_id: int) -> Optional[Review]:
        result = await db.execute(
            select(Review).where(Review.id == review_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _feed_query(include_deleted: bool = False) -> Select:
        query = (
            select(Review)
            .join(PlaceActivity, PlaceActivity.id == Review.activity_id)
            .join(Place, Place.id == PlaceActivity.place_id)
        )
        if not include_deleted:
            query = query.where(Place.is_deleted.is_(False))
        return query

    async def _exclude_blocked(self, db: AsyncSession, query: Select, actor_id: Optional[UUID]) -> Select:
        blocked = await self.blocks.blocked_ids(db, actor_id)
        if blocked:
            query = query.where(Review.author_id.not_in(blocked))
        return query

    async def _scoped_activity_query(
        self, db: AsyncSession, activity_id: int, scope: ReviewScope, actor_id: Optional[UUID]
    ) -> Optional[Select]:
        """Query for one activity's reviews in scope, or None when the scope is empty"""
        result = await db.execute(
            select(PlaceActivity).where(PlaceActivity.id == activity_id).execution_options(populate_existing=True)
        )
        activity = result.scalar_one_or_none()
        if activity is None:
            raise NotFoundError("Activity not found")

        place = activity.place
        is_friend = False
        if place.visibility == PlaceVisibility.FRIENDS.value and actor_id is not None:
            is_friend = await self.friends.is_friend(db, actor_id, place.owner_id)
        if place.is_deleted or not can_view(actor_id, place.owner_id, place.visibility, is_friend):
            raise NotFoundError("Activity not found")

        query = select(Review).where(Review.activity_id == activity_id)

        scope = ReviewScope(scope)
        if scope == ReviewScope.MINE:
            if actor_id is None:
                return None
            query = query.where(Review.author_id == actor_id)
        elif scope == ReviewScope.FRIENDS:
            friend_ids = await self.friends.friend_ids(db, actor_id)
            if not friend_ids:
                return None
            query = query.where(Review.author_id.in_(friend_ids))

        query = await self._exclude_blocked(db, query, actor_id)
        return query.order_by(Review.created_at.desc(), Review.id.desc())

    async def _project(
        self, db: AsyncSession, reviews: List[Review], actor_id: Optional[UUID]
    ) -> List[ExploreReview]:
        """Feed projection with batched liked-state and author avatars (two queries total)"""
        if not reviews:
            return []

        review_ids = [r.id for r in reviews]
        liked: Set[int] = set()
        if actor_id is not None:
            result = await db.execute(
                select(ReviewLike.review_id).where(
                    ReviewLike.user_id == actor_id,
                    ReviewLike.review_id.in_(review_ids),
                )
            )
            liked = set(result.scalars().all())

        author_ids = {r.author_id for r in reviews}
        result = await db.execute(select(User.id, User.profile_image_url).where(User.id.in_(author_ids)))
        avatars = {row[0]: row[1] for row in result.all()}

        items = []
        for r in reviews:
            activity = r.activity
            place = activity.place
            items.append(
                ExploreReview(
                    id=r.id,
                    activity_id=r.activity_id,
                    author_id=r.author_id,
                    author_name=r.author_name,
                    rating=r.rating,
                    content=r.content,
                    image_url=r.image_url,
                    thumbnail_url=r.thumbnail_url,
                    likes_count=r.likes_count,
                    kind=r.kind,
                    tags=[t.name for t in r.tags],
                    created_at=r.created_at,
                    activity_name=activity.name,
                    place_id=place.id,
                    place_name=place.name,
                    place_address=place.address,
                    latitude=place.latitude,
                    longitude=place.longitude,
                    is_place_deleted=place.is_deleted,
                    author_avatar_url=avatars.get(r.author_id),
                    genre_name=place.genre.name if place.genre else None,
                    is_liked=r.id in liked,
                    is_owner=actor_id is not None and r.author_id == actor_id,
                )
            )
        return items
