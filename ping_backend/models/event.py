# ping_backend/models/event.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Event(Base):
    """Event hosted at a place (only the fields profile listings need)"""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="SET NULL"))
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_public = Column(Boolean, default=True, nullable=False)
    start_time = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    attendees = relationship("EventAttendee", back_populates="event", lazy="selectin", cascade="all, delete-orphan")


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="attendees", lazy="raise")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),
    )
