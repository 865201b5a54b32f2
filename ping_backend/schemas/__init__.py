# ping_backend/schemas/__init__.py
from .activity import ActivityCreate, ActivityCreateResult, ActivityResponse
from .base import BaseSchema, PageParams, PaginatedResult
from .place import ActivityBrief, PlaceCreate, PlaceDetails, PlaceFilter, PlaceUpdate
from .profile import PrivacyUpdate, ProfileEvent, ProfileSummary
from .review import (
    ExploreFilter, ExploreReview, ReviewCreate, ReviewForPlaceCreate, ReviewGroup, ReviewResponse, ReviewUpdate
)

__all__ = [
    'BaseSchema',
    'PageParams',
    'PaginatedResult',
    'PlaceCreate',
    'PlaceUpdate',
    'PlaceFilter',
    'PlaceDetails',
    'ActivityBrief',
    'ActivityCreate',
    'ActivityResponse',
    'ActivityCreateResult',
    'ReviewCreate',
    'ReviewForPlaceCreate',
    'ReviewUpdate',
    'ReviewResponse',
    'ExploreFilter',
    'ExploreReview',
    'ReviewGroup',
    'ProfileSummary',
    'PrivacyUpdate',
    'ProfileEvent',
]
