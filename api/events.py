from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_dispatcher
from database import get_db
from models import Event
from schemas.event import EventCreate, EventStatusUpdate, ParticipantRegister
from services import events
from services.derived_state import Spots, spots_to_json
from services.lifecycle import Actor
from services.notifications import Dispatcher
from utils.dates import isoformat

router = APIRouter(prefix="/api/events", tags=["events"])


def _event_to_response(e: Event, spots: Spots) -> dict[str, Any]:
    return {
        "id": e.id,
        "eventName": e.event_name,
        "type": e.type,
        "status": e.status,
        "maxParticipants": e.max_participants,
        "availableSpots": spots_to_json(spots),
        "dateStart": isoformat(e.date_start),
        "dateEnd": isoformat(e.date_end),
        "location": e.location,
        "description": e.description,
    }


@router.post("", status_code=201)
async def create_event(
    body: EventCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    event, created = await events.create_event(
        db,
        actor,
        event_name=body.event_name,
        type=body.type,
        date_start=body.date_start,
        date_end=body.date_end,
        max_participants=body.max_participants,
        location=body.location,
        description=body.description,
    )
    await db.commit()
    await dispatcher.dispatch(db, created, schedule=background_tasks.add_task)
    return _event_to_response(event, await events.event_spots(db, event))


@router.get("/{event_id}")
async def get_event(event_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    event = await events.get_event(db, event_id)
    return _event_to_response(event, await events.event_spots(db, event))


@router.post("/{event_id}/participants", status_code=201)
async def register_participant(
    event_id: str,
    body: ParticipantRegister,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    participant = await events.register_participant(db, actor, event_id, body.citizen_id)
    event = await events.get_event(db, event_id)
    return {
        "id": participant.id,
        "eventId": participant.event_id,
        "citizenId": participant.citizen_id,
        "availableSpots": spots_to_json(await events.event_spots(db, event)),
    }


@router.post("/{event_id}/status")
async def update_event_status(
    event_id: str,
    body: EventStatusUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    event, _ = await events.set_event_status(db, event_id, body.status, actor)
    return _event_to_response(event, await events.event_spots(db, event))
