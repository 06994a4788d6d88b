from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from services.workflows import EventStatus, EventType


class EventCreate(BaseModel):
    event_name: str = Field(..., alias="eventName", min_length=1, max_length=256)
    type: EventType = EventType.OPEN
    max_participants: Optional[int] = Field(None, alias="maxParticipants", ge=1)
    date_start: datetime = Field(..., alias="dateStart")
    date_end: datetime = Field(..., alias="dateEnd")
    location: Optional[str] = None
    description: Optional[str] = None

    model_config = {"populate_by_name": True}


class ParticipantRegister(BaseModel):
    citizen_id: str = Field(..., alias="citizenId")

    model_config = {"populate_by_name": True}


class EventStatusUpdate(BaseModel):
    status: EventStatus
