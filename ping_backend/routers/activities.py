# ping_backend/routers/activities.py
"""
Router for place activities
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_activity_service, get_current_user, get_page, require_admin
from ..models import User
from ..schemas.activity import ActivityCreate, ActivityCreateResult, ActivityResponse
from ..schemas.base import PageParams, PaginatedResult
from ..services.activities import ActivityService

router = APIRouter(prefix="/api/v1/activities", tags=["Activities"])


@router.post("", response_model=ActivityCreateResult)
async def create_activity(
    data: ActivityCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: ActivityService = Depends(get_activity_service),
):
    """Create an activity; an existing duplicate is returned with a warning"""
    result = await service.create_activity(db, data, current_user.id)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return result


@router.get("", response_model=PaginatedResult[ActivityResponse])
async def search_activities(
    q: Optional[str] = None,
    place_id: Optional[int] = Query(None, alias="placeId"),
    genre_id: Optional[int] = Query(None, alias="genreId"),
    page: PageParams = Depends(get_page),
    db: AsyncSession = Depends(get_db),
    service: ActivityService = Depends(get_activity_service),
):
    return await service.search_activities(db, q, place_id, genre_id, page)


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    service: ActivityService = Depends(get_activity_service),
):
    return await service.get_activity(db, activity_id)


@router.delete("/admin/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity_as_admin(
    activity_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    service: ActivityService = Depends(get_activity_service),
):
    await service.delete_activity_as_admin(db, activity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
