# ping_backend/models/enums.py
from enum import Enum


class UserRole(str, Enum):
    """User roles"""
    USER = "user"
    ADMIN = "admin"


class PlaceVisibility(str, Enum):
    """Who may see a place"""
    PRIVATE = "private"
    FRIENDS = "friends"
    PUBLIC = "public"


class PlaceKind(str, Enum):
    """Whether the place name is backed by an official record"""
    CUSTOM = "custom"
    VERIFIED = "verified"


class ReviewKind(str, Enum):
    """First post by a user on an activity is a review, later ones are check-ins"""
    REVIEW = "review"
    CHECK_IN = "check_in"


class PrivacyConstraint(str, Enum):
    """Per-category profile privacy"""
    PUBLIC = "public"
    FRIENDS_ONLY = "friends_only"


class ReviewScope(str, Enum):
    MINE = "mine"
    FRIENDS = "friends"
    GLOBAL = "global"
