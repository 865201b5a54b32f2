# ping_backend/utils/db.py
"""
Small query helpers shared by services
"""

from typing import Any, Dict, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from .geo import longitude_ranges


async def insert_ignore(db: AsyncSession, model, values: Dict[str, Any]) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING; True when a row was written"""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values).on_conflict_do_nothing()
    else:
        stmt = postgresql.insert(model).values(**values).on_conflict_do_nothing()
    result = await db.execute(stmt)
    return (result.rowcount or 0) > 0


async def fetch_page(db: AsyncSession, query: Select, offset: int, limit: int) -> Tuple[list, int]:
    """Run a select for one page plus its total count"""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()
    if total == 0:
        return [], 0
    result = await db.execute(
        query.offset(offset).limit(limit).execution_options(populate_existing=True)
    )
    return list(result.scalars().unique().all()), total


def like_pattern(keyword: str) -> str:
    return f"%{keyword.strip()}%"


def within_box(lat_column, lng_column, box: Tuple[float, float, float, float]):
    """Coarse lat/lng predicate; the longitude span may wrap the antimeridian"""
    min_lat, max_lat, min_lng, max_lng = box
    return and_(
        lat_column.between(min_lat, max_lat),
        or_(*[lng_column.between(lo, hi) for lo, hi in longitude_ranges(min_lng, max_lng)]),
    )
