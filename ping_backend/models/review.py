# ping_backend/models/review.py
from sqlalchemy import (
    CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Table, Text,
    UniqueConstraint, Uuid
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow
from .enums import ReviewKind

TAG_MAX_LENGTH = 50

review_tags = Table(
    "review_tags",
    Base.metadata,
    Column("review_id", Integer, ForeignKey("reviews.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(Base):
    """Normalized (lowercase) tag"""
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String(TAG_MAX_LENGTH), unique=True, nullable=False)


class Review(Base):
    """Review or check-in on a place activity"""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True)
    activity_id = Column(Integer, ForeignKey("place_activities.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    author_name = Column(String(100), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5
    content = Column(Text)
    image_url = Column(Text)
    thumbnail_url = Column(Text)
    likes_count = Column(Integer, default=0, nullable=False)
    kind = Column(String(20), default=ReviewKind.REVIEW.value, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationships
    activity = relationship("PlaceActivity", back_populates="reviews", lazy="selectin")
    tags = relationship("Tag", secondary=review_tags, lazy="selectin", order_by="Tag.name")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating"),
        Index("idx_review_activity_author", "activity_id", "author_id"),
        Index("idx_review_likes", "likes_count"),
    )

    def __repr__(self):
        return f"<Review(id={self.id}, rating={self.rating}, kind={self.kind})>"


class ReviewLike(Base):
    """(user, review) like pair"""
    __tablename__ = "review_likes"

    id = Column(Integer, primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    review = relationship("Review", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "review_id", name="uq_like_user_review"),
    )
