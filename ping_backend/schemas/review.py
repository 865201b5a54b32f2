# ping_backend/schemas/review.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from ..models.enums import ReviewKind, ReviewScope
from .base import BaseSchema


class ReviewCreate(BaseSchema):
    """Input for a review or check-in"""
    rating: int
    content: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ReviewForPlaceCreate(ReviewCreate):
    """Review on a place activity that may not exist yet"""
    activity_name: str = Field(..., max_length=100)


class ReviewUpdate(BaseSchema):
    """Partial update; omitted fields are left unchanged"""
    rating: Optional[int] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    tags: Optional[List[str]] = None


class ExploreFilter(BaseSchema):
    """Filters for the explore feed"""
    scope: ReviewScope = ReviewScope.GLOBAL
    keyword: Optional[str] = None
    genre_ids: List[int] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    activity_name: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: Optional[float] = Field(None, gt=0)

    @property
    def has_area(self) -> bool:
        return self.latitude is not None and self.longitude is not None and self.radius_km is not None


class ReviewResponse(BaseSchema):
    id: int
    activity_id: int
    author_id: UUID
    author_name: str
    rating: int
    content: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    likes_count: int = 0
    kind: ReviewKind
    tags: List[str] = Field(default_factory=list)
    created_at: datetime


class ExploreReview(ReviewResponse):
    """Review enriched for feeds"""
    activity_name: str
    place_id: int
    place_name: str
    place_address: Optional[str] = None
    latitude: float
    longitude: float
    is_place_deleted: bool = False
    author_avatar_url: Optional[str] = None
    genre_name: Optional[str] = None
    is_liked: bool = False
    is_owner: bool = False


class ReviewGroup(BaseSchema):
    """Author's latest post on an activity plus earlier posts"""
    author_id: UUID
    latest: ExploreReview
    history: List[ExploreReview] = Field(default_factory=list)
