# ping_backend/main.py
"""
FastAPI application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import create_tables
from .dependencies import get_cache
from .errors import ServiceError
from .routers import activities_router, health_router, places_router, profiles_router, reviews_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logger.info("Starting ping backend...")

    await create_tables()
    logger.info("✅ Database tables ready")

    if await get_cache().ping():
        logger.info("✅ Redis connected")
    else:
        logger.warning("⚠️  Redis is not reachable, creation quotas will fail")

    if not settings.OPENAI_API_KEY:
        logger.warning("⚠️  OPENAI_API_KEY not set: moderation fails open, semantic matching disabled")
    if not settings.GOOGLE_PLACES_API_KEY:
        logger.warning("⚠️  GOOGLE_PLACES_API_KEY not set: official place names are not resolved")
    logger.info(f"Semantic matcher: {settings.SEMANTIC_MATCHER}")

    yield

    logger.info("Stopping ping backend...")
    await get_cache().close()


app = FastAPI(
    title="Ping API",
    description="Places, reviews and geo-aware feeds",
    version="2.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors with their mapped status code"""
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.model_dump())


app.include_router(health_router)
app.include_router(places_router)
app.include_router(activities_router)
app.include_router(reviews_router)
app.include_router(profiles_router)


@app.get("/")
async def root():
    return {
        "message": "Ping API",
        "version": "2.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ping_backend.main:app", host="0.0.0.0", port=8000, reload=True)
