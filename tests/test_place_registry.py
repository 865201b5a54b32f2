"""
Tests for place creation, duplicate detection, search and favorites
"""
import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import InvalidRequestError

from ping_backend.config import settings
from ping_backend.errors import (
    AlreadyExistsError, ContentRejectedError, NotFoundError, PermissionDeniedError, QuotaExceededError,
    ValidationFailedError
)
from ping_backend.models import Favorite, PlaceGenre
from ping_backend.models.enums import PlaceKind, PlaceVisibility
from ping_backend.schemas.base import PageParams
from ping_backend.schemas.place import PlaceFilter, PlaceUpdate
from ping_backend.schemas.review import ReviewCreate
from ping_backend.services.places_lookup import OfficialPlace

from .helpers import make_friends


class TestCreatePlace:

    async def test_non_public_verified_is_downgraded(self, db, make_user, make_place, places_lookup):
        owner = await make_user("owner")
        place = await make_place(owner, visibility=PlaceVisibility.FRIENDS, kind=PlaceKind.VERIFIED,
                                 address="1 Main St")
        assert place.kind == PlaceKind.CUSTOM
        assert place.visibility == PlaceVisibility.FRIENDS
        places_lookup.resolve_by_coordinates.assert_not_called()

    async def test_daily_quota(self, db, make_user, make_place, monkeypatch):
        monkeypatch.setattr(settings, "PLACE_CREATION_LIMIT_PER_DAY", 2)
        owner = await make_user("owner")
        await make_place(owner, name="One", visibility=PlaceVisibility.PRIVATE)
        await make_place(owner, name="Two", visibility=PlaceVisibility.PRIVATE)
        with pytest.raises(QuotaExceededError):
            await make_place(owner, name="Three", visibility=PlaceVisibility.PRIVATE)

    async def test_quota_key_is_per_user_per_day(self, db, make_user, make_place, rate_limiter):
        owner = await make_user("owner")
        await make_place(owner, visibility=PlaceVisibility.PRIVATE)
        [key] = rate_limiter.counts
        assert key.startswith(f"ratelimit:place:create:{owner.id}:")
        assert rate_limiter.ttls[key] == 24 * 60 * 60

    async def test_flagged_custom_name_is_rejected(self, db, make_user, make_place):
        owner = await make_user("owner")
        with pytest.raises(ContentRejectedError) as exc_info:
            await make_place(owner, name="badword bar")
        assert exc_info.value.reason == "harassment"

    async def test_near_identical_public_custom_place_is_duplicate(self, db, make_user, make_place):
        owner = await make_user("owner")
        first = await make_place(owner, name="Joe's Cafe", latitude=40.0, longitude=-74.0)

        with pytest.raises(AlreadyExistsError) as exc_info:
            await make_place(owner, name="Joes Cafe", latitude=40.0002, longitude=-74.0001)
        assert exc_info.value.conflict_name == "Joe's Cafe"
        assert exc_info.value.conflict_id == first.id

    async def test_exact_name_match_is_case_insensitive(self, db, make_user, make_place):
        owner = await make_user("owner")
        other = await make_user("other")
        await make_place(owner, name="Central Park")
        with pytest.raises(AlreadyExistsError):
            await make_place(other, name="CENTRAL PARK", latitude=40.0001)

    async def test_same_name_far_away_is_not_duplicate(self, db, make_user, make_place):
        owner = await make_user("owner")
        await make_place(owner, name="Corner Cafe", latitude=40.0)
        place = await make_place(owner, name="Corner Cafe", latitude=40.01)
        assert place.name == "Corner Cafe"

    async def test_non_public_skips_duplicate_detection(self, db, make_user, make_place):
        owner = await make_user("owner")
        await make_place(owner, name="Corner Cafe")
        place = await make_place(owner, name="Corner Cafe", visibility=PlaceVisibility.PRIVATE)
        assert place.visibility == PlaceVisibility.PRIVATE

    async def test_verified_requires_address_or_external_id(self, db, make_user, make_place):
        owner = await make_user("owner")
        with pytest.raises(ValidationFailedError):
            await make_place(owner, kind=PlaceKind.VERIFIED)

    async def test_verified_by_address_uses_official_name(self, db, make_user, make_place, places_lookup):
        places_lookup.resolve_by_coordinates.return_value = "Blue Bottle Coffee"
        owner = await make_user("owner")

        place = await make_place(owner, name="coffee spot", kind=PlaceKind.VERIFIED, address="1 Main St")
        assert place.kind == PlaceKind.VERIFIED
        assert place.name == "Blue Bottle Coffee"

        with pytest.raises(AlreadyExistsError) as exc_info:
            await make_place(owner, name="another", kind=PlaceKind.VERIFIED, address="1 Main St")
        assert exc_info.value.conflict_name == "Blue Bottle Coffee"

    async def test_verified_keeps_user_name_without_official_name(self, db, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner, name="Coffee Spot", kind=PlaceKind.VERIFIED, address="2 Main St")
        assert place.name == "Coffee Spot"
        assert place.kind == PlaceKind.VERIFIED

    async def test_verified_by_external_id(self, db, make_user, make_place, places_lookup):
        places_lookup.resolve_by_id.return_value = OfficialPlace("Blue Bottle Coffee", 40.001, -74.001)
        owner = await make_user("owner")

        place = await make_place(owner, name="blue bottle coffee", kind=PlaceKind.VERIFIED,
                                 external_place_id="gp-123")
        assert place.kind == PlaceKind.VERIFIED
        assert place.external_place_id == "gp-123"
        assert place.latitude == pytest.approx(40.001)
        assert place.longitude == pytest.approx(-74.001)

        with pytest.raises(AlreadyExistsError) as exc_info:
            await make_place(owner, name="Blue Bottle Coffee", kind=PlaceKind.VERIFIED,
                             external_place_id="gp-123")
        assert exc_info.value.conflict_id == place.id

    async def test_external_id_name_mismatch_downgrades(self, db, make_user, make_place, places_lookup):
        places_lookup.resolve_by_id.return_value = OfficialPlace("City Museum of Art")
        owner = await make_user("owner")
        place = await make_place(owner, name="Skate Park", kind=PlaceKind.VERIFIED, external_place_id="gp-9")
        assert place.kind == PlaceKind.CUSTOM
        assert place.external_place_id is None

    async def test_external_lookup_failure_downgrades(self, db, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner, name="Skate Park", kind=PlaceKind.VERIFIED, external_place_id="gp-9")
        assert place.kind == PlaceKind.CUSTOM


class TestGetById:

    async def test_private_place_is_hidden_from_stranger(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        stranger = await make_user("stranger")
        place = await make_place(owner, visibility=PlaceVisibility.PRIVATE)

        assert await registry.get_by_id(db, place.id, stranger.id) is None
        assert await registry.get_by_id(db, place.id, None) is None
        assert (await registry.get_by_id(db, place.id, owner.id)).is_owner is True

    async def test_missing_and_hidden_look_the_same(self, db, registry, make_user):
        stranger = await make_user("stranger")
        assert await registry.get_by_id(db, 999, stranger.id) is None

    async def test_friends_place(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        friend = await make_user("friend")
        stranger = await make_user("stranger")
        await make_friends(db, owner, friend)
        place = await make_place(owner, visibility=PlaceVisibility.FRIENDS)

        assert await registry.get_by_id(db, place.id, friend.id) is not None
        assert await registry.get_by_id(db, place.id, stranger.id) is None
        assert await registry.get_by_id(db, place.id, None) is None

    async def test_soft_deleted_place_is_invisible(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner)
        await registry.soft_delete(db, place.id, owner.id)
        assert await registry.get_by_id(db, place.id, owner.id) is None


class TestSearchNearby:

    async def test_radius_and_distance_order(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        far = await make_place(owner, name="Far", latitude=40.05)      # ~5.6 km
        near = await make_place(owner, name="Near", latitude=40.001)   # ~0.1 km
        mid = await make_place(owner, name="Mid", latitude=40.02)      # ~2.2 km

        filters = PlaceFilter(latitude=40.0, longitude=-74.0, radius_km=3.0)
        result = await registry.search_nearby(db, filters, owner.id, PageParams())

        assert [p.id for p in result.items] == [near.id, mid.id]
        assert far.id not in [p.id for p in result.items]
        assert result.total_count == 2
        assert result.items[0].distance_km < result.items[1].distance_km
        assert all(p.distance_km <= 3.0 for p in result.items)

    async def test_excludes_places_the_actor_cannot_see(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        stranger = await make_user("stranger")
        public = await make_place(owner, name="Open", latitude=40.001)
        await make_place(owner, name="Secret", latitude=40.002, visibility=PlaceVisibility.PRIVATE)
        await make_place(owner, name="Circle", latitude=40.003, visibility=PlaceVisibility.FRIENDS)

        filters = PlaceFilter(latitude=40.0, longitude=-74.0, radius_km=1.0)
        result = await registry.search_nearby(db, filters, stranger.id, PageParams())
        assert [p.id for p in result.items] == [public.id]

        own = await registry.search_nearby(db, filters, owner.id, PageParams())
        assert own.total_count == 3

    async def test_without_center_lists_newest_first(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        first = await make_place(owner, name="First", latitude=41.0)
        second = await make_place(owner, name="Second", latitude=42.0)

        result = await registry.search_nearby(db, PlaceFilter(), owner.id, PageParams())
        assert [p.id for p in result.items] == [second.id, first.id]
        assert all(p.distance_km is None for p in result.items)

    async def test_keyword_and_activity_filters(self, db, registry, make_user, make_place, make_activity):
        owner = await make_user("owner")
        cafe = await make_place(owner, name="Sunny Cafe", latitude=41.0)
        await make_place(owner, name="Dark Bar", latitude=42.0)
        await make_activity(cafe.id, "Espresso")

        by_keyword = await registry.search_nearby(db, PlaceFilter(keyword="sunny"), owner.id, PageParams())
        assert [p.id for p in by_keyword.items] == [cafe.id]

        by_activity = await registry.search_nearby(
            db, PlaceFilter(activity_name="ESPRESSO"), owner.id, PageParams()
        )
        assert [p.id for p in by_activity.items] == [cafe.id]

    async def test_tag_filter_matches_reviews_under_any_activity(self, db, registry, feed, make_user, make_place,
                                                                 make_activity):
        owner = await make_user("owner")
        park = await make_place(owner, name="River Park", latitude=41.0)
        plain = await make_place(owner, name="Plain Lot", latitude=42.0)
        await make_activity(park.id, "Picnic")
        kayaking = await make_activity(park.id, "Kayaking")
        await feed.create_review(db, kayaking.id, ReviewCreate(rating=5, tags=["Scenic"]), owner.id, owner.username)
        lot_activity = await make_activity(plain.id, "Parking")
        await feed.create_review(db, lot_activity.id, ReviewCreate(rating=2, tags=["busy"]), owner.id, owner.username)

        result = await registry.search_nearby(db, PlaceFilter(tags=["scenic", "unused"]), owner.id, PageParams())
        assert [p.id for p in result.items] == [park.id]

    async def test_genre_filter(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        genre = PlaceGenre(name="Parks")
        db.add(genre)
        await db.flush()
        park = await make_place(owner, name="Green Field", latitude=41.0, genre_id=genre.id)
        await make_place(owner, name="Snack Bar", latitude=42.0)

        result = await registry.search_nearby(db, PlaceFilter(genre_name=" parks "), owner.id, PageParams())
        assert [p.id for p in result.items] == [park.id]
        assert result.items[0].genre_name == "Parks"

    async def test_visibility_filter(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        await make_place(owner, name="Open", latitude=41.0)
        secret = await make_place(owner, name="Secret", latitude=42.0, visibility=PlaceVisibility.PRIVATE)

        result = await registry.search_nearby(
            db, PlaceFilter(visibility=PlaceVisibility.PRIVATE), owner.id, PageParams()
        )
        assert [p.id for p in result.items] == [secret.id]

    async def test_kind_filter(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        await make_place(owner, name="Open", latitude=41.0)
        museum = await make_place(owner, name="Museum", latitude=42.0, kind=PlaceKind.VERIFIED, address="5 Art Ave")

        result = await registry.search_nearby(db, PlaceFilter(kind=PlaceKind.VERIFIED), owner.id, PageParams())
        assert [p.id for p in result.items] == [museum.id]

    async def test_radius_across_the_antimeridian(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        east = await make_place(owner, name="East Edge", latitude=0.0, longitude=179.99)
        await make_place(owner, name="Far West", latitude=0.0, longitude=-179.0)

        filters = PlaceFilter(latitude=0.0, longitude=-179.99, radius_km=5.0)
        result = await registry.search_nearby(db, filters, owner.id, PageParams())
        assert [p.id for p in result.items] == [east.id]
        assert result.items[0].distance_km == pytest.approx(2.22, abs=0.01)

    async def test_invalid_center_is_rejected(self, db, registry, make_user):
        user = await make_user("user")
        filters = PlaceFilter.model_construct(latitude=float("nan"), longitude=0.0, radius_km=1.0)
        with pytest.raises(ValidationFailedError):
            await registry.search_nearby(db, filters, user.id, PageParams())

    async def test_pagination(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        for i in range(5):
            await make_place(owner, name=f"Spot {i}", latitude=40.0 + i * 0.001)

        filters = PlaceFilter(latitude=40.0, longitude=-74.0, radius_km=5.0)
        result = await registry.search_nearby(db, filters, owner.id, PageParams(page_number=2, page_size=2))
        assert result.total_count == 5
        assert [p.name for p in result.items] == ["Spot 2", "Spot 3"]


class TestFavorites:

    async def test_favorite_is_idempotent(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        fan = await make_user("fan")
        place = await make_place(owner)

        await registry.favorite(db, place.id, fan.id)
        await registry.favorite(db, place.id, fan.id)

        details = await registry.get_by_id(db, place.id, fan.id)
        assert details.favorites_count == 1
        assert details.is_favorited is True
        favorites = await registry.get_favorited(db, fan.id, PageParams())
        assert favorites.total_count == 1

    async def test_unfavorite_never_goes_below_zero(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        fan = await make_user("fan")
        place = await make_place(owner)

        await registry.unfavorite(db, place.id, fan.id)
        await registry.favorite(db, place.id, fan.id)
        await registry.unfavorite(db, place.id, fan.id)
        await registry.unfavorite(db, place.id, fan.id)

        details = await registry.get_by_id(db, place.id, fan.id)
        assert details.favorites_count == 0
        assert details.is_favorited is False

    async def test_concurrent_favorites_count_once(self, db, session_factory, registry, make_user, make_place):
        owner = await make_user("owner")
        fan = await make_user("fan")
        place = await make_place(owner)
        await db.commit()

        async def favorite_in_own_session():
            async with session_factory() as session:
                await registry.favorite(session, place.id, fan.id)
                await session.commit()

        await asyncio.gather(favorite_in_own_session(), favorite_in_own_session())

        async with session_factory() as session:
            rows = await session.scalar(select(func.count(Favorite.id)).where(Favorite.place_id == place.id))
            details = await registry.get_by_id(session, place.id, fan.id)
            assert rows == 1
            assert details.favorites_count == 1

    async def test_hidden_place_cannot_be_favorited(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        friend = await make_user("friend")
        stranger = await make_user("stranger")
        await make_friends(db, owner, friend)
        secret = await make_place(owner, name="Secret", visibility=PlaceVisibility.PRIVATE)
        circle = await make_place(owner, name="Circle", latitude=41.0, visibility=PlaceVisibility.FRIENDS)

        with pytest.raises(NotFoundError):
            await registry.favorite(db, secret.id, stranger.id)
        with pytest.raises(NotFoundError):
            await registry.favorite(db, circle.id, stranger.id)
        await registry.favorite(db, circle.id, friend.id)

        assert (await registry.get_by_id(db, secret.id, owner.id)).favorites_count == 0
        assert (await registry.get_by_id(db, circle.id, owner.id)).favorites_count == 1

    async def test_favorite_unknown_place(self, db, registry, make_user):
        fan = await make_user("fan")
        with pytest.raises(NotFoundError):
            await registry.favorite(db, 12345, fan.id)

    async def test_favorites_are_revalidated(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        fan = await make_user("fan")
        place = await make_place(owner, name="Hideout")
        await registry.favorite(db, place.id, fan.id)

        data = PlaceUpdate(name="Hideout", latitude=40.0, longitude=-74.0, visibility=PlaceVisibility.PRIVATE)
        await registry.update_place(db, place.id, data, owner.id)

        favorites = await registry.get_favorited(db, fan.id, PageParams())
        assert favorites.items == []


class TestUpdateAndDelete:

    async def test_only_owner_can_update(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        other = await make_user("other")
        place = await make_place(owner)
        data = PlaceUpdate(name="Renamed", latitude=40.0, longitude=-74.0, visibility=PlaceVisibility.PUBLIC)
        with pytest.raises(PermissionDeniedError):
            await registry.update_place(db, place.id, data, other.id)

    async def test_renamed_custom_place_is_moderated(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner)
        data = PlaceUpdate(name="badword corner", latitude=40.0, longitude=-74.0)
        with pytest.raises(ContentRejectedError):
            await registry.update_place(db, place.id, data, owner.id)

    async def test_verified_rename_that_breaks_match_downgrades(
        self, db, registry, make_user, make_place, places_lookup
    ):
        places_lookup.resolve_by_id.return_value = OfficialPlace("Blue Bottle Coffee")
        owner = await make_user("owner")
        place = await make_place(owner, name="Blue Bottle Coffee", kind=PlaceKind.VERIFIED,
                                 external_place_id="gp-1")
        assert place.kind == PlaceKind.VERIFIED

        data = PlaceUpdate(name="My Hangout", latitude=40.0, longitude=-74.0,
                           visibility=PlaceVisibility.PUBLIC, kind=PlaceKind.VERIFIED)
        updated = await registry.update_place(db, place.id, data, owner.id)
        assert updated.kind == PlaceKind.CUSTOM
        assert updated.name == "My Hangout"

    async def test_update_rejects_invalid_coordinates(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner)
        data = PlaceUpdate.model_construct(
            name="Corner Cafe", latitude=95.0, longitude=-74.0, visibility=PlaceVisibility.PUBLIC,
            kind=PlaceKind.CUSTOM, address=None, genre_id=None, external_place_id=None,
        )
        with pytest.raises(ValidationFailedError):
            await registry.update_place(db, place.id, data, owner.id)

    async def test_verifying_by_address_uses_official_name(self, db, registry, make_user, make_place,
                                                           places_lookup):
        owner = await make_user("owner")
        place = await make_place(owner, name="coffee spot")
        places_lookup.resolve_by_coordinates.return_value = "Blue Bottle Coffee"

        data = PlaceUpdate(name="coffee spot", address="1 Main St", latitude=40.0, longitude=-74.0,
                           visibility=PlaceVisibility.PUBLIC, kind=PlaceKind.VERIFIED)
        updated = await registry.update_place(db, place.id, data, owner.id)
        assert updated.kind == PlaceKind.VERIFIED
        assert updated.name == "Blue Bottle Coffee"
        places_lookup.resolve_by_coordinates.assert_awaited_once_with(40.0, -74.0)

    async def test_verifying_at_a_taken_address_conflicts(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        museum = await make_place(owner, name="Museum", kind=PlaceKind.VERIFIED, address="5 Art Ave")
        other = await make_place(owner, name="Gallery", latitude=41.0)

        data = PlaceUpdate(name="Gallery", address="5 Art Ave", latitude=41.0, longitude=-74.0,
                           visibility=PlaceVisibility.PUBLIC, kind=PlaceKind.VERIFIED)
        with pytest.raises(AlreadyExistsError) as exc_info:
            await registry.update_place(db, other.id, data, owner.id)
        assert exc_info.value.conflict_id == museum.id

    async def test_unchanged_verified_place_is_not_looked_up_again(self, db, registry, make_user, make_place,
                                                                  places_lookup):
        owner = await make_user("owner")
        museum = await make_place(owner, name="Museum", kind=PlaceKind.VERIFIED, address="5 Art Ave")
        places_lookup.resolve_by_coordinates.reset_mock()

        data = PlaceUpdate(name="Museum", address="5 Art Ave", latitude=40.0, longitude=-74.0,
                           visibility=PlaceVisibility.PUBLIC, kind=PlaceKind.VERIFIED)
        updated = await registry.update_place(db, museum.id, data, owner.id)
        assert updated.kind == PlaceKind.VERIFIED
        places_lookup.resolve_by_coordinates.assert_not_called()

    async def test_unloaded_owner_relationship_raises(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner)
        loaded = await registry._load(db, place.id)
        with pytest.raises(InvalidRequestError):
            loaded.owner

    async def test_update_to_private_drops_verified(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner, name="Museum", kind=PlaceKind.VERIFIED, address="5 Art Ave")
        data = PlaceUpdate(name="Museum", address="5 Art Ave", latitude=40.0, longitude=-74.0,
                           visibility=PlaceVisibility.PRIVATE, kind=PlaceKind.VERIFIED)
        updated = await registry.update_place(db, place.id, data, owner.id)
        assert updated.kind == PlaceKind.CUSTOM
        assert updated.visibility == PlaceVisibility.PRIVATE

    async def test_only_owner_can_delete(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        other = await make_user("other")
        place = await make_place(owner)
        with pytest.raises(PermissionDeniedError):
            await registry.soft_delete(db, place.id, other.id)

    async def test_admin_delete_and_search_exclusion(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        place = await make_place(owner)
        await registry.soft_delete_as_admin(db, place.id)

        result = await registry.search_nearby(db, PlaceFilter(), owner.id, PageParams())
        assert result.items == []
        with pytest.raises(NotFoundError):
            await registry.soft_delete_as_admin(db, 4242)

    async def test_get_by_owner_respects_visibility(self, db, registry, make_user, make_place):
        owner = await make_user("owner")
        stranger = await make_user("stranger")
        await make_place(owner, name="Open", latitude=41.0)
        await make_place(owner, name="Secret", latitude=42.0, visibility=PlaceVisibility.PRIVATE)

        assert (await registry.get_by_owner(db, owner.id, stranger.id, PageParams())).total_count == 1
        assert (await registry.get_by_owner(db, owner.id, owner.id, PageParams())).total_count == 2
