# ping_backend/schemas/activity.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import BaseSchema


class ActivityCreate(BaseSchema):
    place_id: int
    name: str = Field(..., max_length=100)


class ActivityResponse(BaseSchema):
    id: int
    place_id: int
    name: str
    created_at: datetime
    place_name: Optional[str] = None
    genre_name: Optional[str] = None
    average_rating: Optional[float] = None
    reviews_count: int = 0


class ActivityCreateResult(BaseSchema):
    """Created or matched activity; warning is set when an existing one was reused"""
    activity: ActivityResponse
    created: bool
    warning: Optional[str] = None
