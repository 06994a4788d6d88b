"""Village events and participant registration."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import (
    DomainValidationError,
    DuplicateEntryError,
    InvalidTransitionError,
    QuotaExceededError,
    RecordNotFoundError,
    UnauthorizedTransitionError,
)
from models import Citizen, Event, EventParticipant
from services.derived_state import UNLIMITED, Spots, available_spots
from services.lifecycle import Actor, TransitionEvent, creation_event
from services.workflows import EVENT, EventStatus, EventType, event_machine, event_mapping
from utils.dates import as_utc, isoformat, utcnow

logger = logging.getLogger(__name__)


async def create_event(
    session: AsyncSession,
    actor: Actor,
    event_name: str,
    type: EventType,
    date_start: datetime,
    date_end: datetime,
    max_participants: Optional[int] = None,
    location: Optional[str] = None,
    description: Optional[str] = None,
) -> tuple[Event, TransitionEvent]:
    if not actor.is_admin:
        raise UnauthorizedTransitionError("Only administrators can create events")
    type = EventType(type)
    if type == EventType.RESTRICTED and not max_participants:
        raise DomainValidationError("Restricted events need max_participants")
    if as_utc(date_end) < as_utc(date_start):
        raise DomainValidationError("date_end must not be before date_start")
    event = Event(
        id=f"evt-{uuid.uuid4().hex[:12]}",
        event_name=event_name,
        type=type.value,
        status=EventStatus.PENDING.value,
        max_participants=max_participants if type == EventType.RESTRICTED else None,
        date_start=as_utc(date_start),
        date_end=as_utc(date_end),
        location=location,
        description=description,
        created_by=actor.id,
        created_at=utcnow(),
    )
    session.add(event)
    await session.flush()
    logger.info("Event %s created by %s", event.id, actor.id)
    context = {
        "event_name": event_name,
        "location": location,
        "description": description,
        "date_start": isoformat(event.date_start),
    }
    return event, creation_event(EVENT, event.id, actor.id, context=context)


async def get_event(session: AsyncSession, event_id: str) -> Event:
    event = await session.get(Event, event_id)
    if event is None:
        raise RecordNotFoundError("Event not found")
    return event


async def set_event_status(
    session: AsyncSession,
    event_id: str,
    target: EventStatus | str,
    actor: Actor,
) -> tuple[Event, Optional[TransitionEvent]]:
    """Start, reopen or finish an event. Finished events no longer accept registrations."""
    result = await session.execute(
        select(Event).where(Event.id == event_id).with_for_update().execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if event is None:
        raise RecordNotFoundError("Event not found")
    outcome = event_machine.transition(
        event_mapping.to_record(event),
        target,
        actor,
        context={"event_name": event.event_name, "location": event.location},
    )
    if not outcome.changed:
        return event, None
    event_mapping.apply(event, outcome.record)
    await session.flush()
    return event, outcome.event


async def participant_count(session: AsyncSession, event_id: str) -> int:
    return await session.scalar(
        select(func.count(EventParticipant.id)).where(EventParticipant.event_id == event_id)
    )


async def event_spots(session: AsyncSession, event: Event) -> Spots:
    return available_spots(event.max_participants, await participant_count(session, event.id))


async def register_participant(
    session: AsyncSession,
    actor: Actor,
    event_id: str,
    citizen_id: str,
) -> EventParticipant:
    event = await get_event(session, event_id)
    if not actor.is_admin and citizen_id != actor.citizen_id:
        raise UnauthorizedTransitionError("Citizens may only register themselves")
    if event.status == EventStatus.FINISHED.value:
        raise InvalidTransitionError("Registration is closed for finished events", entity_id=event.id)
    if await session.get(Citizen, citizen_id) is None:
        raise RecordNotFoundError("Citizen not found")
    taken = await session.execute(
        select(EventParticipant.id).where(
            EventParticipant.event_id == event.id,
            EventParticipant.citizen_id == citizen_id,
        )
    )
    if taken.first() is not None:
        raise DuplicateEntryError("Citizen is already registered for this event")

    participant = EventParticipant(
        id=f"ptc-{uuid.uuid4().hex[:12]}",
        event_id=event.id,
        citizen_id=citizen_id,
        created_at=utcnow(),
    )
    session.add(participant)
    await session.flush()
    # Counted after our own insert so concurrent registrations serialize on the write
    spots = available_spots(event.max_participants, await participant_count(session, event.id) - 1)
    if spots is not UNLIMITED and spots < 1:
        raise QuotaExceededError("Event is full", subject_id=event.id)
    return participant
