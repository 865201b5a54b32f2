# ping_backend/schemas/profile.py
from datetime import datetime
from typing import Optional
from uuid import UUID

from ..models.enums import PrivacyConstraint
from .base import BaseSchema


class ProfileSummary(BaseSchema):
    id: UUID
    username: str
    profile_image_url: Optional[str] = None
    is_friend: bool = False
    is_self: bool = False
    reviews_count: int = 0
    places_visited_count: int = 0
    followers_count: int = 0
    following_count: int = 0
    reviews_privacy: PrivacyConstraint
    places_privacy: PrivacyConstraint
    likes_privacy: PrivacyConstraint


class PrivacyUpdate(BaseSchema):
    reviews_privacy: Optional[PrivacyConstraint] = None
    places_privacy: Optional[PrivacyConstraint] = None
    likes_privacy: Optional[PrivacyConstraint] = None


class ProfileEvent(BaseSchema):
    id: int
    title: str
    place_id: Optional[int] = None
    start_time: datetime
    is_public: bool
    is_creator: bool = False
