# ping_backend/routers/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_cache
from ..services.cache import CacheService

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Service health"""
    db_ok = False
    try:
        await db.execute(select(1))
        db_ok = True
    except Exception:
        db_ok = False

    redis_ok = await cache.ping()

    return {
        "status": "healthy" if db_ok and redis_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_ok else "disconnected",
        "redis": "connected" if redis_ok else "disconnected",
        "service": "ping-backend",
        "version": "2.0.0",
    }
