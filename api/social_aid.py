from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_dispatcher
from database import get_db
from models import SocialAidProgram, SocialAidRecipient
from schemas.social_aid import ProgramCreate, RecipientAction, RecipientEnroll
from services import social_aid
from services.derived_state import spots_to_json
from services.lifecycle import Actor
from services.notifications import Dispatcher
from utils.dates import isoformat

router = APIRouter(prefix="/api/social-aid", tags=["social-aid"])


def _program_to_response(p: SocialAidProgram, stats: social_aid.ProgramStats | None = None) -> dict[str, Any]:
    out = {
        "id": p.id,
        "programName": p.program_name,
        "period": p.period,
        "type": p.type,
        "quota": p.quota,
        "description": p.description,
        "location": p.location,
        "createdAt": isoformat(p.created_at),
    }
    if stats is not None:
        out.update({
            "recipientCount": stats.recipient_count,
            "collectedCount": stats.collected_count,
            "availableSpots": spots_to_json(stats.available_spots),
            "collectionRate": stats.collection_rate,
        })
    return out


def _recipient_to_response(r: SocialAidRecipient) -> dict[str, Any]:
    return {
        "id": r.id,
        "programId": r.program_id,
        "citizenId": r.citizen_id,
        "familyId": r.family_id,
        "status": r.status,
        "note": r.note,
        "performedBy": r.performed_by,
        "collectedAt": isoformat(r.collected_at),
        "createdAt": isoformat(r.created_at),
        "updatedAt": isoformat(r.updated_at),
    }


@router.get("/programs")
async def list_programs(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(SocialAidProgram).order_by(SocialAidProgram.created_at.desc()))
    programs = list(result.scalars().all())
    stats = await social_aid.program_stats(db, programs)
    return [_program_to_response(p, stats[p.id]) for p in programs]


@router.post("/programs", status_code=201)
async def create_program(
    body: ProgramCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    program, event = await social_aid.create_program(
        db,
        actor,
        program_name=body.program_name,
        period=body.period,
        type=body.type,
        quota=body.quota,
        description=body.description,
        location=body.location,
    )
    await db.commit()
    await dispatcher.dispatch(db, event, schedule=background_tasks.add_task)
    return _program_to_response(program)


@router.post("/programs/{program_id}/recipients", status_code=201)
async def enroll_recipients(
    program_id: str,
    body: RecipientEnroll,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    entries = [
        social_aid.RecipientEntry(citizen_id=r.citizen_id, family_id=r.family_id, note=r.note)
        for r in body.recipients
    ]
    rows, events = await social_aid.enroll_recipients(db, actor, program_id, entries)
    await db.commit()
    for event in events:
        await dispatcher.dispatch(db, event, schedule=background_tasks.add_task)
    return [_recipient_to_response(r) for r in rows]


@router.post("/recipients/{recipient_id}/action")
async def update_recipient_action(
    recipient_id: str,
    body: RecipientAction,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    row, event = await social_aid.set_collection_status(
        db, recipient_id, body.status, actor, note=body.note, collected_at=body.collected_at
    )
    await db.commit()
    report = await dispatcher.dispatch(db, event, schedule=background_tasks.add_task)
    out = _recipient_to_response(row)
    out["notification"] = report.summary()
    return out
