# ping_backend/models/place.py
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid, func, text
)
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, utcnow
from .enums import PlaceKind, PlaceVisibility


class PlaceGenre(Base):
    """Place classification (cafe, park, ...)"""
    __tablename__ = "place_genres"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


class Place(Base, TimestampMixin):
    """User-created or verified point of interest (a "ping")"""
    __tablename__ = "places"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    address = Column(String(300))
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    visibility = Column(String(20), default=PlaceVisibility.PRIVATE.value, nullable=False)
    kind = Column(String(20), default=PlaceKind.CUSTOM.value, nullable=False)
    genre_id = Column(Integer, ForeignKey("place_genres.id", ondelete="SET NULL"))
    external_place_id = Column(String(100), index=True)
    favorites_count = Column(Integer, default=0, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="places", lazy="raise")
    genre = relationship("PlaceGenre", lazy="selectin")
    activities = relationship(
        "PlaceActivity",
        back_populates="place",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PlaceActivity.id",
    )

    __table_args__ = (
        Index("idx_place_location", "latitude", "longitude"),
        Index("idx_place_visibility_kind", "visibility", "kind", "is_deleted"),
        # One public verified place per address
        Index(
            "uq_place_verified_address",
            "address",
            unique=True,
            postgresql_where=text("visibility = 'public' AND kind = 'verified' AND is_deleted = false"),
            sqlite_where=text("visibility = 'public' AND kind = 'verified' AND is_deleted = 0"),
        ),
    )

    def __repr__(self):
        return f"<Place(id={self.id}, name={self.name[:30]}, visibility={self.visibility})>"


class PlaceActivity(Base):
    """Named sub-context of a place that reviews attach to"""
    __tablename__ = "place_activities"

    id = Column(Integer, primary_key=True)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    place = relationship("Place", back_populates="activities", lazy="selectin")
    reviews = relationship("Review", back_populates="activity", lazy="raise", passive_deletes=True)

    __table_args__ = (
        Index("uq_activity_place_name", "place_id", func.lower(name), unique=True),
    )


class Favorite(Base):
    """(user, place) favorite pair"""
    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    place = relationship("Place", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "place_id", name="uq_favorite_user_place"),
    )
