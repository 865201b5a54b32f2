# ping_backend/models/user.py
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin
from .enums import PrivacyConstraint, UserRole


class User(Base, TimestampMixin):
    """Application user (profile fields the core needs)"""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=False, index=True)
    profile_image_url = Column(Text)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    reviews_privacy = Column(String(20), default=PrivacyConstraint.PUBLIC.value, nullable=False)
    places_privacy = Column(String(20), default=PrivacyConstraint.PUBLIC.value, nullable=False)
    likes_privacy = Column(String(20), default=PrivacyConstraint.PUBLIC.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    places = relationship("Place", back_populates="owner", lazy="raise", passive_deletes=True)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class Follow(Base, TimestampMixin):
    """Directed follow edge; two opposite edges make a friendship"""
    __tablename__ = "follows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    follower_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    followee_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("follower_id", "followee_id", name="uq_follow_pair"),
    )


class UserBlock(Base, TimestampMixin):
    """Block edge (blocker hides blocked)"""
    __tablename__ = "user_blocks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    blocker_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blocked_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_block_pair"),
    )
