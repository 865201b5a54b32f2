# ping_backend/services/social.py
"""
Friend and block graphs backed by the follows / user_blocks tables
"""

from typing import Optional, Set
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..models import Follow, UserBlock


class FriendGraph:
    """Friends are users who follow each other"""

    async def friend_ids(self, db: AsyncSession, user_id: Optional[UUID]) -> Set[UUID]:
        if user_id is None:
            return set()
        back = aliased(Follow)
        result = await db.execute(
            select(Follow.followee_id)
            .join(back, and_(back.follower_id == Follow.followee_id, back.followee_id == Follow.follower_id))
            .where(Follow.follower_id == user_id)
        )
        return set(result.scalars().all())

    async def is_friend(self, db: AsyncSession, a: Optional[UUID], b: Optional[UUID]) -> bool:
        if a is None or b is None or a == b:
            return False
        forward = select(Follow.id).where(Follow.follower_id == a, Follow.followee_id == b).exists()
        backward = select(Follow.id).where(Follow.follower_id == b, Follow.followee_id == a).exists()
        result = await db.execute(select(and_(forward, backward)))
        return bool(result.scalar())


class BlockGraph:
    async def blocked_ids(self, db: AsyncSession, user_id: Optional[UUID]) -> Set[UUID]:
        """Users blocked by user_id or blocking user_id"""
        if user_id is None:
            return set()
        result = await db.execute(
            select(UserBlock.blocker_id, UserBlock.blocked_id).where(
                or_(UserBlock.blocker_id == user_id, UserBlock.blocked_id == user_id)
            )
        )
        ids = set()
        for blocker_id, blocked_id in result.all():
            ids.add(blocked_id if blocker_id == user_id else blocker_id)
        return ids

    async def is_blocked_either_way(self, db: AsyncSession, a: Optional[UUID], b: Optional[UUID]) -> bool:
        if a is None or b is None or a == b:
            return False
        result = await db.execute(
            select(UserBlock.id).where(
                or_(
                    and_(UserBlock.blocker_id == a, UserBlock.blocked_id == b),
                    and_(UserBlock.blocker_id == b, UserBlock.blocked_id == a),
                )
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None
