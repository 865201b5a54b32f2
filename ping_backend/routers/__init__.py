# ping_backend/routers/__init__.py
from .activities import router as activities_router
from .health import router as health_router
from .places import router as places_router
from .profiles import router as profiles_router
from .reviews import router as reviews_router

__all__ = [
    'activities_router',
    'health_router',
    'places_router',
    'profiles_router',
    'reviews_router',
]
