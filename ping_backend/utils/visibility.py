# ping_backend/utils/visibility.py
"""
Visibility rules shared by places, profile categories and reviews
"""

from typing import Iterable, Optional, Union
from uuid import UUID

from sqlalchemy import and_, or_

from ..models.enums import PlaceVisibility, PrivacyConstraint
from ..models.place import Place


def can_view(
    actor_id: Optional[UUID],
    owner_id: UUID,
    visibility: Union[PlaceVisibility, str],
    is_friend_of_owner: bool,
) -> bool:
    """Whether actor may see content owned by owner_id at the given tier"""
    visibility = PlaceVisibility(visibility)

    if actor_id is not None and actor_id == owner_id:
        return True
    if visibility == PlaceVisibility.PUBLIC:
        return True
    if visibility == PlaceVisibility.FRIENDS:
        return actor_id is not None and is_friend_of_owner
    return False


def privacy_as_visibility(privacy: Union[PrivacyConstraint, str]) -> PlaceVisibility:
    """Map a profile privacy setting onto the visibility tiers"""
    if PrivacyConstraint(privacy) == PrivacyConstraint.PUBLIC:
        return PlaceVisibility.PUBLIC
    return PlaceVisibility.FRIENDS


def can_view_category(
    actor_id: Optional[UUID],
    owner_id: UUID,
    privacy: Union[PrivacyConstraint, str],
    is_friend_of_owner: bool,
) -> bool:
    """Profile category check (reviews / places / likes)"""
    return can_view(actor_id, owner_id, privacy_as_visibility(privacy), is_friend_of_owner)


def visible_place_clause(actor_id: Optional[UUID], friend_ids: Iterable[UUID]):
    """SQL form of can_view for Place rows, given the actor's friend ids"""
    conditions = [Place.visibility == PlaceVisibility.PUBLIC.value]
    if actor_id is not None:
        conditions.append(Place.owner_id == actor_id)
    friend_ids = list(friend_ids)
    if friend_ids:
        conditions.append(
            and_(Place.visibility == PlaceVisibility.FRIENDS.value, Place.owner_id.in_(friend_ids))
        )
    return or_(*conditions)
