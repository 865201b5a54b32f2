# ping_backend/services/place_registry.py
"""
Place ("ping") creation, duplicate detection, search and favorites
"""

import logging
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import (
    AlreadyExistsError, ContentRejectedError, NotFoundError, PermissionDeniedError, QuotaExceededError,
    ValidationFailedError
)
from ..models import Favorite, Place, PlaceActivity, PlaceGenre, PlaceKind, PlaceVisibility, Review, Tag, utcnow
from ..models.review import review_tags
from ..schemas.base import PageParams, PaginatedResult
from ..schemas.place import ActivityBrief, PlaceCreate, PlaceDetails, PlaceFilter, PlaceUpdate
from ..utils.db import insert_ignore, like_pattern, within_box
from ..utils.geo import KM_PER_DEGREE, bounding_box, haversine_km, is_valid_coordinate
from ..utils.tags import normalize_tags
from ..utils.visibility import can_view
from .cache import CacheService
from .moderation import OpenAIModerationGate
from .places_lookup import GooglePlacesLookup
from .semantic import SemanticMatcher
from .social import FriendGraph

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


class PlaceRegistry:
    """Owns place lifecycle, duplicate detection and visibility enforcement"""

    def __init__(
        self,
        rate_limiter: CacheService,
        moderation: OpenAIModerationGate,
        semantic: SemanticMatcher,
        places_lookup: GooglePlacesLookup,
        friends: Optional[FriendGraph] = None,
    ):
        self.rate_limiter = rate_limiter
        self.moderation = moderation
        self.semantic = semantic
        self.places_lookup = places_lookup
        self.friends = friends or FriendGraph()

    # ---- create / update ----

    async def create_place(self, db: AsyncSession, data: PlaceCreate, owner_id: UUID) -> PlaceDetails:
        """Create a place, enforcing quota, moderation and duplicate rules"""
        if not is_valid_coordinate(data.latitude, data.longitude):
            raise ValidationFailedError("Invalid coordinates")

        # 1. Daily quota
        await self._check_quota(owner_id)

        # 2. Non-public places are never verified
        kind = PlaceKind(data.kind)
        visibility = PlaceVisibility(data.visibility)
        if kind == PlaceKind.VERIFIED and visibility != PlaceVisibility.PUBLIC:
            logger.info(f"Verified kind requires public visibility, using custom for {visibility.value} place")
            kind = PlaceKind.CUSTOM

        name = data.name.strip()
        address = data.address
        latitude, longitude = data.latitude, data.longitude
        external_place_id = None

        # 3. Custom names are moderated
        if kind == PlaceKind.CUSTOM:
            await self._moderate_name(name)

        # 4. Public + verified
        if kind == PlaceKind.VERIFIED:
            if data.external_place_id:
                official = await self.places_lookup.resolve_by_id(data.external_place_id)
                if official and await self.semantic.names_match(official.name, name):
                    existing = await self._find_by_external_id(db, data.external_place_id)
                    if existing:
                        raise AlreadyExistsError(
                            f"Place '{existing.name}' already exists",
                            conflict_name=existing.name,
                            conflict_id=existing.id,
                        )
                    name = official.name
                    external_place_id = data.external_place_id
                    if official.latitude is not None and official.longitude is not None:
                        latitude, longitude = official.latitude, official.longitude
                else:
                    logger.info(f"Official name did not match '{name}', creating as custom")
                    kind = PlaceKind.CUSTOM
                    await self._moderate_name(name)
            else:
                if not address:
                    raise ValidationFailedError("Verified places require an address or an external place id")
                existing = await self._find_verified_by_address(db, address)
                if existing:
                    raise AlreadyExistsError(
                        f"Place '{existing.name}' already exists at this address",
                        conflict_name=existing.name,
                        conflict_id=existing.id,
                    )
                official_name = await self.places_lookup.resolve_by_coordinates(latitude, longitude)
                if official_name and official_name.strip():
                    name = official_name.strip()

        # 5. Public + custom: proximity and semantic duplicates
        if kind == PlaceKind.CUSTOM and visibility == PlaceVisibility.PUBLIC:
            duplicate = await self._find_custom_duplicate(db, name, latitude, longitude)
            if duplicate:
                raise AlreadyExistsError(
                    f"A similar place '{duplicate.name}' already exists nearby",
                    conflict_name=duplicate.name,
                    conflict_id=duplicate.id,
                )

        # 6. Persist
        place = Place(
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
            owner_id=owner_id,
            visibility=visibility.value,
            kind=kind.value,
            genre_id=data.genre_id,
            external_place_id=external_place_id,
            favorites_count=0,
            is_deleted=False,
        )
        db.add(place)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Concurrent duplicate for address '{address}'")
            raise AlreadyExistsError("A verified place already exists at this address")

        logger.info(f"Place {place.id} '{name}' created by {owner_id} ({visibility.value}/{kind.value})")
        place = await self._load(db, place.id)
        return (await self.to_details(db, [place], owner_id))[0]

    async def update_place(self, db: AsyncSession, place_id: int, data: PlaceUpdate, owner_id: UUID) -> PlaceDetails:
        """Owner edit; verification rules are re-applied the same way as on create"""
        place = await self._load(db, place_id)
        if place is None or place.is_deleted:
            raise NotFoundError("Place not found")
        if place.owner_id != owner_id:
            logger.warning(f"User {owner_id} tried to update place {place_id}")
            raise PermissionDeniedError("You do not have permission to update this place")
        if not is_valid_coordinate(data.latitude, data.longitude):
            raise ValidationFailedError("Invalid coordinates")

        kind = PlaceKind(data.kind)
        visibility = PlaceVisibility(data.visibility)
        if kind == PlaceKind.VERIFIED and visibility != PlaceVisibility.PUBLIC:
            kind = PlaceKind.CUSTOM

        name = data.name.strip()
        latitude, longitude = data.latitude, data.longitude
        external_place_id = data.external_place_id or place.external_place_id

        if kind == PlaceKind.VERIFIED:
            if external_place_id:
                official = await self.places_lookup.resolve_by_id(external_place_id)
                if official and await self.semantic.names_match(official.name, name):
                    existing = await self._find_by_external_id(db, external_place_id, exclude_id=place.id)
                    if existing:
                        raise AlreadyExistsError(
                            f"Place '{existing.name}' already exists",
                            conflict_name=existing.name,
                            conflict_id=existing.id,
                        )
                    name = official.name
                    if official.latitude is not None and official.longitude is not None:
                        latitude, longitude = official.latitude, official.longitude
                else:
                    logger.info(f"Place {place_id} no longer matches its official name, downgrading to custom")
                    kind = PlaceKind.CUSTOM
            else:
                if not data.address:
                    raise ValidationFailedError("Verified places require an address or an external place id")
                reverify = (
                    place.kind != PlaceKind.VERIFIED.value
                    or place.address != data.address
                    or (place.latitude, place.longitude) != (latitude, longitude)
                )
                if reverify:
                    existing = await self._find_verified_by_address(db, data.address, exclude_id=place.id)
                    if existing:
                        raise AlreadyExistsError(
                            f"Place '{existing.name}' already exists at this address",
                            conflict_name=existing.name,
                            conflict_id=existing.id,
                        )
                    official_name = await self.places_lookup.resolve_by_coordinates(latitude, longitude)
                    if official_name and official_name.strip():
                        name = official_name.strip()

        if kind == PlaceKind.CUSTOM and name != place.name:
            await self._moderate_name(name)

        place.name = name
        place.address = data.address
        place.latitude = latitude
        place.longitude = longitude
        place.visibility = visibility.value
        place.kind = kind.value
        place.genre_id = data.genre_id
        place.external_place_id = external_place_id if kind == PlaceKind.VERIFIED else None
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise AlreadyExistsError("A verified place already exists at this address")

        logger.info(f"Place {place_id} updated by {owner_id}")
        place = await self._load(db, place_id)
        return (await self.to_details(db, [place], owner_id))[0]

    # ---- reads ----

    async def get_by_id(self, db: AsyncSession, place_id: int, actor_id: Optional[UUID]) -> Optional[PlaceDetails]:
        """Place details, or None when missing, deleted or not visible"""
        place = await self._load(db, place_id)
        if place is None or place.is_deleted or not await self._can_see(db, place, actor_id):
            return None

        return (await self.to_details(db, [place], actor_id))[0]

    async def search_nearby(
        self,
        db: AsyncSession,
        filters: PlaceFilter,
        actor_id: Optional[UUID],
        page: PageParams,
    ) -> PaginatedResult[PlaceDetails]:
        """Coarse store-side filter, then visibility and exact distance in memory"""
        if filters.has_center and not is_valid_coordinate(filters.latitude, filters.longitude):
            raise ValidationFailedError("Invalid coordinates")

        query = select(Place).where(Place.is_deleted.is_(False))

        if filters.keyword and filters.keyword.strip():
            pattern = like_pattern(filters.keyword)
            query = query.where(or_(Place.name.ilike(pattern), Place.address.ilike(pattern)))

        tags = normalize_tags(filters.tags)
        if tags:
            tagged_places = (
                select(PlaceActivity.place_id)
                .join(Review, Review.activity_id == PlaceActivity.id)
                .join(review_tags, review_tags.c.review_id == Review.id)
                .join(Tag, Tag.id == review_tags.c.tag_id)
                .where(Tag.name.in_(tags))
            )
            query = query.where(Place.id.in_(tagged_places))

        if filters.has_center and filters.radius_km:
            box = bounding_box(filters.latitude, filters.longitude, filters.radius_km, km_per_degree=KM_PER_DEGREE)
            query = query.where(within_box(Place.latitude, Place.longitude, box))

        if filters.visibility:
            query = query.where(Place.visibility == PlaceVisibility(filters.visibility).value)
        if filters.kind:
            query = query.where(Place.kind == PlaceKind(filters.kind).value)

        if filters.activity_name and filters.activity_name.strip():
            activity_name = filters.activity_name.strip().lower()
            query = query.where(Place.activities.any(func.lower(PlaceActivity.name) == activity_name))

        if filters.genre_name and filters.genre_name.strip():
            genre_name = filters.genre_name.strip().lower()
            query = query.where(Place.genre.has(func.lower(PlaceGenre.name) == genre_name))

        result = await db.execute(
            query.order_by(Place.created_at.desc(), Place.id.desc()).execution_options(populate_existing=True)
        )
        candidates = result.scalars().all()

        friend_ids = await self.friends.friend_ids(db, actor_id)
        visible = [p for p in candidates if self._is_visible(p, actor_id, friend_ids)]

        distances: Dict[int, float] = {}
        if filters.has_center:
            for place in visible:
                distances[place.id] = haversine_km(filters.latitude, filters.longitude, place.latitude, place.longitude)
            if filters.radius_km:
                visible = [p for p in visible if distances[p.id] <= filters.radius_km]

        # Python's sort is stable, so places without a distance keep newest-first order
        visible.sort(key=lambda p: (p.id not in distances, distances.get(p.id, 0.0)))

        total = len(visible)
        page_items = visible[page.offset:page.offset + page.size]
        items = await self.to_details(db, page_items, actor_id, distances)
        return PaginatedResult.build(items, total, page)

    async def get_favorited(
        self, db: AsyncSession, user_id: UUID, page: PageParams
    ) -> PaginatedResult[PlaceDetails]:
        """User's favorites, re-checked against current visibility"""
        result = await db.execute(
            select(Place)
            .join(Favorite, Favorite.place_id == Place.id)
            .where(Favorite.user_id == user_id, Place.is_deleted.is_(False))
            .order_by(Favorite.created_at.desc(), Favorite.id.desc())
            .execution_options(populate_existing=True)
        )
        places = result.scalars().all()
        friend_ids = await self.friends.friend_ids(db, user_id)
        visible = [p for p in places if self._is_visible(p, user_id, friend_ids)]

        page_items = visible[page.offset:page.offset + page.size]
        items = await self.to_details(db, page_items, user_id)
        return PaginatedResult.build(items, len(visible), page)

    async def get_by_owner(
        self, db: AsyncSession, owner_id: UUID, actor_id: Optional[UUID], page: PageParams
    ) -> PaginatedResult[PlaceDetails]:
        result = await db.execute(
            select(Place)
            .where(Place.owner_id == owner_id, Place.is_deleted.is_(False))
            .order_by(Place.created_at.desc(), Place.id.desc())
            .execution_options(populate_existing=True)
        )
        places = result.scalars().all()

        is_friend = False
        if actor_id is not None and actor_id != owner_id:
            is_friend = await self.friends.is_friend(db, actor_id, owner_id)
        visible = [p for p in places if can_view(actor_id, p.owner_id, p.visibility, is_friend)]

        page_items = visible[page.offset:page.offset + page.size]
        items = await self.to_details(db, page_items, actor_id)
        return PaginatedResult.build(items, len(visible), page)

    # ---- favorites ----

    async def favorite(self, db: AsyncSession, place_id: int, user_id: UUID) -> None:
        """Idempotent add; the counter moves only when a row was inserted"""
        place = await self._load(db, place_id)
        if place is None or place.is_deleted or not await self._can_see(db, place, user_id):
            raise NotFoundError("Place not found")

        inserted = await insert_ignore(db, Favorite, {"user_id": user_id, "place_id": place_id, "created_at": utcnow()})
        if not inserted:
            return
        await db.execute(
            update(Place)
            .where(Place.id == place_id)
            .values(favorites_count=Place.favorites_count + 1)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Place {place_id} favorited by {user_id}")

    async def unfavorite(self, db: AsyncSession, place_id: int, user_id: UUID) -> None:
        await self._require_place(db, place_id)

        result = await db.execute(
            delete(Favorite)
            .where(Favorite.user_id == user_id, Favorite.place_id == place_id)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return
        await db.execute(
            update(Place)
            .where(Place.id == place_id, Place.favorites_count > 0)
            .values(favorites_count=Place.favorites_count - 1)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Place {place_id} unfavorited by {user_id}")

    # ---- delete ----

    async def soft_delete(self, db: AsyncSession, place_id: int, actor_id: UUID) -> None:
        place = await self._load(db, place_id)
        if place is None or place.is_deleted:
            raise NotFoundError("Place not found")
        if place.owner_id != actor_id:
            logger.warning(f"User {actor_id} tried to delete place {place_id}")
            raise PermissionDeniedError("You do not have permission to delete this place")
        place.is_deleted = True
        await db.flush()
        logger.info(f"Place {place_id} deleted by owner {actor_id}")

    async def soft_delete_as_admin(self, db: AsyncSession, place_id: int) -> None:
        place = await self._load(db, place_id)
        if place is None:
            raise NotFoundError("Place not found")
        place.is_deleted = True
        await db.flush()
        logger.info(f"Place {place_id} deleted by admin")

    # ---- projection ----

    async def to_details(
        self,
        db: AsyncSession,
        places: Iterable[Place],
        actor_id: Optional[UUID],
        distances: Optional[Dict[int, float]] = None,
    ) -> List[PlaceDetails]:
        """Detail projection with one batched favorite lookup"""
        places = list(places)
        distances = distances or {}
        favorited: Set[int] = set()
        if actor_id is not None and places:
            result = await db.execute(
                select(Favorite.place_id).where(
                    Favorite.user_id == actor_id,
                    Favorite.place_id.in_([p.id for p in places]),
                )
            )
            favorited = set(result.scalars().all())

        return [
            PlaceDetails(
                id=p.id,
                name=p.name,
                address=p.address,
                latitude=p.latitude,
                longitude=p.longitude,
                visibility=p.visibility,
                kind=p.kind,
                owner_id=p.owner_id,
                is_owner=actor_id is not None and p.owner_id == actor_id,
                is_favorited=p.id in favorited,
                favorites_count=p.favorites_count,
                activities=[ActivityBrief(id=a.id, name=a.name) for a in p.activities],
                genre_id=p.genre_id,
                genre_name=p.genre.name if p.genre else None,
                external_place_id=p.external_place_id,
                is_deleted=p.is_deleted,
                distance_km=round(distances[p.id], 3) if p.id in distances else None,
            )
            for p in places
        ]

    # ---- helpers ----

    @staticmethod
    def _is_visible(place: Place, actor_id: Optional[UUID], friend_ids: Set[UUID]) -> bool:
        return can_view(actor_id, place.owner_id, place.visibility, place.owner_id in friend_ids)

    async def _can_see(self, db: AsyncSession, place: Place, actor_id: Optional[UUID]) -> bool:
        """Friend lookup only for friends-only places"""
        is_friend = False
        if place.visibility == PlaceVisibility.FRIENDS.value and actor_id is not None:
            is_friend = await self.friends.is_friend(db, actor_id, place.owner_id)
        return can_view(actor_id, place.owner_id, place.visibility, is_friend)

    async def _check_quota(self, user_id: UUID) -> None:
        key = f"ratelimit:place:create:{user_id}:{utcnow():%Y-%m-%d}"
        count = await self.rate_limiter.increment(key, DAY_SECONDS)
        if count > settings.PLACE_CREATION_LIMIT_PER_DAY:
            logger.warning(f"User {user_id} exceeded daily place creation limit")
            raise QuotaExceededError(
                f"You can create at most {settings.PLACE_CREATION_LIMIT_PER_DAY} places per day"
            )

    async def _moderate_name(self, name: str) -> None:
        moderation = await self.moderation.check(name)
        if moderation.flagged:
            logger.warning(f"Place name flagged: '{name}' - {moderation.reason}")
            raise ContentRejectedError(f"Place name rejected: {moderation.reason}", reason=moderation.reason)

    async def _load(self, db: AsyncSession, place_id: int) -> Optional[Place]:
        result = await db.execute(
            select(Place).where(Place.id == place_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require_place(self, db: AsyncSession, place_id: int) -> None:
        result = await db.execute(
            select(Place.id).where(Place.id == place_id, Place.is_deleted.is_(False))
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Place not found")

    async def _find_by_external_id(
        self, db: AsyncSession, external_place_id: str, exclude_id: Optional[int] = None
    ) -> Optional[Place]:
        query = select(Place).where(
            Place.external_place_id == external_place_id,
            Place.is_deleted.is_(False),
        )
        if exclude_id is not None:
            query = query.where(Place.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def _find_verified_by_address(
        self, db: AsyncSession, address: str, exclude_id: Optional[int] = None
    ) -> Optional[Place]:
        query = select(Place).where(
            Place.address == address,
            Place.visibility == PlaceVisibility.PUBLIC.value,
            Place.kind == PlaceKind.VERIFIED.value,
            Place.is_deleted.is_(False),
        )
        if exclude_id is not None:
            query = query.where(Place.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def _find_custom_duplicate(
        self, db: AsyncSession, name: str, latitude: float, longitude: float
    ) -> Optional[Place]:
        """Public custom place nearby with the same or an equivalent name"""
        radius = settings.DUPLICATE_RADIUS_DEGREES
        result = await db.execute(
            select(Place).where(
                Place.is_deleted.is_(False),
                Place.visibility == PlaceVisibility.PUBLIC.value,
                Place.kind == PlaceKind.CUSTOM.value,
                Place.latitude.between(latitude - radius, latitude + radius),
                Place.longitude.between(longitude - radius, longitude + radius),
                (Place.latitude - latitude) * (Place.latitude - latitude)
                + (Place.longitude - longitude) * (Place.longitude - longitude) <= radius * radius,
            ).order_by(Place.created_at, Place.id)
        )
        nearby = result.scalars().all()
        if not nearby:
            return None

        lowered = name.lower()
        for place in nearby:
            if place.name.lower() == lowered:
                logger.info(f"Exact duplicate of place {place.id} '{place.name}' nearby")
                return place

        match = await self.semantic.find_duplicate(name, [p.name for p in nearby])
        if match:
            for place in nearby:
                if place.name == match:
                    logger.info(f"Semantic duplicate: '{name}' matches place {place.id} '{place.name}'")
                    return place
        return None

