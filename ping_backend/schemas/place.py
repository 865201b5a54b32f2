# ping_backend/schemas/place.py
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from ..models.enums import PlaceKind, PlaceVisibility
from .base import BaseSchema


class PlaceCreate(BaseSchema):
    """Input for creating a place"""
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=300)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    visibility: PlaceVisibility = PlaceVisibility.PRIVATE
    kind: PlaceKind = PlaceKind.CUSTOM
    genre_id: Optional[int] = None
    external_place_id: Optional[str] = Field(None, max_length=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name must not be blank")
        return v.strip()

    @field_validator("address", "external_place_id")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        return v.strip() or None


class PlaceUpdate(PlaceCreate):
    """Input for updating a place (full replacement of editable fields)"""


class PlaceFilter(BaseSchema):
    """Search filters for nearby/listing queries"""
    keyword: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: Optional[float] = Field(None, gt=0)
    visibility: Optional[PlaceVisibility] = None
    kind: Optional[PlaceKind] = None
    activity_name: Optional[str] = None
    genre_name: Optional[str] = None

    @property
    def has_center(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ActivityBrief(BaseSchema):
    id: int
    name: str


class PlaceDetails(BaseSchema):
    """Place detail projection"""
    id: int
    name: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    visibility: PlaceVisibility
    kind: PlaceKind
    owner_id: UUID
    is_owner: bool = False
    is_favorited: bool = False
    favorites_count: int = 0
    activities: List[ActivityBrief] = Field(default_factory=list)
    genre_id: Optional[int] = None
    genre_name: Optional[str] = None
    external_place_id: Optional[str] = None
    is_deleted: bool = False
    distance_km: Optional[float] = None
