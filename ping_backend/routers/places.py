# ping_backend/routers/places.py
"""
Router for places (pings)
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_current_user, get_current_user_id, get_page, get_place_registry, require_admin
from ..models import PlaceKind, PlaceVisibility, User
from ..schemas.base import PageParams, PaginatedResult
from ..schemas.place import PlaceCreate, PlaceDetails, PlaceFilter, PlaceUpdate
from ..services.place_registry import PlaceRegistry

router = APIRouter(prefix="/api/v1/places", tags=["Places"])


@router.post("", response_model=PlaceDetails, status_code=status.HTTP_201_CREATED)
async def create_place(
    data: PlaceCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    """Create a place"""
    return await registry.create_place(db, data, current_user.id)


@router.get("", response_model=PaginatedResult[PlaceDetails])
async def search_places(
    keyword: Optional[str] = None,
    tags: List[str] = Query(default=[]),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, alias="radiusKm"),
    visibility: Optional[PlaceVisibility] = None,
    kind: Optional[PlaceKind] = None,
    activity_name: Optional[str] = Query(None, alias="activityName"),
    genre_name: Optional[str] = Query(None, alias="genreName"),
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    """Search places, nearest first when a center is given"""
    filters = PlaceFilter(
        keyword=keyword,
        tags=tags,
        latitude=lat,
        longitude=lng,
        radius_km=radius_km,
        visibility=visibility,
        kind=kind,
        activity_name=activity_name,
        genre_name=genre_name,
    )
    return await registry.search_nearby(db, filters, user_id, page)


@router.get("/favorites", response_model=PaginatedResult[PlaceDetails])
async def get_favorites(
    page: PageParams = Depends(get_page),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    return await registry.get_favorited(db, current_user.id, page)


@router.get("/owner/{owner_id}", response_model=PaginatedResult[PlaceDetails])
async def get_places_by_owner(
    owner_id: UUID,
    page: PageParams = Depends(get_page),
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    return await registry.get_by_owner(db, owner_id, user_id, page)


@router.get("/{place_id}", response_model=PlaceDetails)
async def get_place(
    place_id: int,
    user_id: Optional[UUID] = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    place = await registry.get_by_id(db, place_id, user_id)
    if place is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Place not found")
    return place


@router.put("/{place_id}", response_model=PlaceDetails)
async def update_place(
    place_id: int,
    data: PlaceUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    return await registry.update_place(db, place_id, data, current_user.id)


@router.delete("/{place_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_place(
    place_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    await registry.soft_delete(db, place_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/admin/{place_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_place_as_admin(
    place_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    await registry.soft_delete_as_admin(db, place_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{place_id}/favorite", status_code=status.HTTP_204_NO_CONTENT)
async def favorite_place(
    place_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    await registry.favorite(db, place_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{place_id}/favorite", status_code=status.HTTP_204_NO_CONTENT)
async def unfavorite_place(
    place_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PlaceRegistry = Depends(get_place_registry),
):
    await registry.unfavorite(db, place_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
