from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func

from database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(String(64), primary_key=True, index=True)
    event_name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(256), nullable=True)
    # open | restricted; restricted events cap participants
    type = Column(String(32), nullable=False, default="open")
    status = Column(String(32), nullable=False, default="pending")
    max_participants = Column(Integer, nullable=True)
    date_start = Column(DateTime(timezone=True), nullable=False)
    date_end = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class EventParticipant(Base):
    __tablename__ = "event_participants"
    __table_args__ = (UniqueConstraint("event_id", "citizen_id", name="uq_event_participant"),)

    id = Column(String(64), primary_key=True, index=True)
    event_id = Column(String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    citizen_id = Column(String(64), ForeignKey("citizens.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
