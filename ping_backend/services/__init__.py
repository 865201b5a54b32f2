# ping_backend/services/__init__.py
from .activities import ActivityService
from .cache import CacheService
from .moderation import ModerationResult, OpenAIModerationGate
from .place_registry import PlaceRegistry
from .places_lookup import GooglePlacesLookup, OfficialPlace
from .profile import ProfileAggregator
from .review_feed import ReviewFeed
from .semantic import FuzzySemanticMatcher, LLMSemanticMatcher, SemanticMatcher, build_semantic_matcher
from .social import BlockGraph, FriendGraph

__all__ = [
    'ActivityService',
    'CacheService',
    'ModerationResult',
    'OpenAIModerationGate',
    'PlaceRegistry',
    'GooglePlacesLookup',
    'OfficialPlace',
    'ProfileAggregator',
    'ReviewFeed',
    'SemanticMatcher',
    'LLMSemanticMatcher',
    'FuzzySemanticMatcher',
    'build_semantic_matcher',
    'FriendGraph',
    'BlockGraph',
]
