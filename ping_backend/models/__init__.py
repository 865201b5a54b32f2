# ping_backend/models/__init__.py
from .base import Base, TimestampMixin, utcnow
from .enums import PlaceKind, PlaceVisibility, PrivacyConstraint, ReviewKind, ReviewScope, UserRole
from .event import Event, EventAttendee
from .place import Favorite, Place, PlaceActivity, PlaceGenre
from .review import TAG_MAX_LENGTH, Review, ReviewLike, Tag, review_tags
from .user import Follow, User, UserBlock

__all__ = [
    'Base',
    'TimestampMixin',
    'utcnow',
    'User',
    'Follow',
    'UserBlock',
    'Place',
    'PlaceActivity',
    'PlaceGenre',
    'Favorite',
    'Review',
    'ReviewLike',
    'Tag',
    'review_tags',
    'TAG_MAX_LENGTH',
    'Event',
    'EventAttendee',
    'UserRole',
    'PlaceVisibility',
    'PlaceKind',
    'ReviewKind',
    'PrivacyConstraint',
    'ReviewScope',
]
