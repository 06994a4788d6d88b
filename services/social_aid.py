"""
Social aid programs, recipient enrolment and collection tracking.

Quota is enforced after the new rows are flushed, inside the same
transaction, so concurrent enrolments cannot overshoot a program's quota.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import (
    DomainValidationError,
    DuplicateEntryError,
    QuotaExceededError,
    RecordNotFoundError,
    UnauthorizedTransitionError,
)
from models import Citizen, Family, SocialAidProgram, SocialAidRecipient
from services.derived_state import UNLIMITED, Spots, available_spots, collection_rate
from services.lifecycle import Actor, TransitionEvent, creation_event
from services.workflows import (
    SOCIAL_AID_PROGRAM,
    SOCIAL_AID_RECIPIENT,
    ProgramType,
    RecipientStatus,
    social_aid_recipient_machine,
    social_aid_recipient_mapping,
)
from utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipientEntry:
    citizen_id: Optional[str] = None
    family_id: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class ProgramStats:
    recipient_count: int
    collected_count: int
    available_spots: Spots
    collection_rate: float


def _program_context(program: SocialAidProgram) -> dict:
    return {
        "program_name": program.program_name,
        "period": program.period,
        "location": program.location,
        "description": program.description,
    }


async def create_program(
    session: AsyncSession,
    actor: Actor,
    program_name: str,
    period: str,
    type: ProgramType,
    quota: Optional[int] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
) -> tuple[SocialAidProgram, TransitionEvent]:
    if not actor.is_admin:
        raise UnauthorizedTransitionError("Only administrators can create social aid programs")
    program = SocialAidProgram(
        id=f"aid-{uuid.uuid4().hex[:12]}",
        program_name=program_name,
        period=period,
        type=ProgramType(type).value,
        quota=quota,
        description=description,
        location=location,
        created_by=actor.id,
        created_at=utcnow(),
    )
    session.add(program)
    await session.flush()
    logger.info("Social aid program %s created by %s", program.id, actor.id)
    return program, creation_event(SOCIAL_AID_PROGRAM, program.id, actor.id, context=_program_context(program))


async def get_program(session: AsyncSession, program_id: str) -> SocialAidProgram:
    program = await session.get(SocialAidProgram, program_id)
    if program is None:
        raise RecordNotFoundError("Social aid program not found")
    return program


async def program_stats(session: AsyncSession, programs: list[SocialAidProgram]) -> dict[str, ProgramStats]:
    """Recipient counts per program, with remaining quota and collection rate derived on read."""
    if not programs:
        return {}
    collected = func.sum(case((SocialAidRecipient.status == RecipientStatus.COLLECTED.value, 1), else_=0))
    result = await session.execute(
        select(SocialAidRecipient.program_id, func.count(SocialAidRecipient.id), collected)
        .where(SocialAidRecipient.program_id.in_([p.id for p in programs]))
        .group_by(SocialAidRecipient.program_id)
    )
    counts = {pid: (total, int(done or 0)) for pid, total, done in result.all()}
    out = {}
    for p in programs:
        total, done = counts.get(p.id, (0, 0))
        out[p.id] = ProgramStats(
            recipient_count=total,
            collected_count=done,
            available_spots=available_spots(p.quota, total),
            collection_rate=collection_rate(done, total),
        )
    return out


def _check_entries(program: SocialAidProgram, entries: list[RecipientEntry]) -> list[RecipientEntry]:
    program_type = ProgramType(program.type)
    if program_type == ProgramType.PUBLIC:
        raise DomainValidationError("Public programs do not keep a recipient list")
    for entry in entries:
        if program_type == ProgramType.INDIVIDUAL and (not entry.citizen_id or entry.family_id):
            raise DomainValidationError("Individual programs only accept citizens, not families")
        if program_type == ProgramType.HOUSEHOLD and (not entry.family_id or entry.citizen_id):
            raise DomainValidationError("Household programs only accept families, not individual citizens")

    filtered = [e for e in entries if e.citizen_id or e.family_id]
    if not filtered:
        raise DomainValidationError("Select at least one recipient")
    citizen_ids = [e.citizen_id for e in filtered if e.citizen_id]
    family_ids = [e.family_id for e in filtered if e.family_id]
    if len(citizen_ids) != len(set(citizen_ids)):
        raise DuplicateEntryError("A citizen was selected more than once")
    if len(family_ids) != len(set(family_ids)):
        raise DuplicateEntryError("A family was selected more than once")
    return filtered


async def enroll_recipients(
    session: AsyncSession,
    actor: Actor,
    program_id: str,
    entries: list[RecipientEntry],
) -> tuple[list[SocialAidRecipient], list[TransitionEvent]]:
    if not actor.is_admin:
        raise UnauthorizedTransitionError("Only administrators can enrol recipients")
    program = await get_program(session, program_id)
    filtered = _check_entries(program, entries)
    citizen_ids = [e.citizen_id for e in filtered if e.citizen_id]
    family_ids = [e.family_id for e in filtered if e.family_id]

    if citizen_ids:
        found = await session.execute(select(Citizen.id).where(Citizen.id.in_(citizen_ids)))
        missing = set(citizen_ids) - set(found.scalars().all())
        if missing:
            raise RecordNotFoundError(f"Unknown citizens: {', '.join(sorted(missing))}")
    if family_ids:
        found = await session.execute(select(Family.id).where(Family.id.in_(family_ids)))
        missing = set(family_ids) - set(found.scalars().all())
        if missing:
            raise RecordNotFoundError(f"Unknown families: {', '.join(sorted(missing))}")

    conditions = []
    if citizen_ids:
        conditions.append(SocialAidRecipient.citizen_id.in_(citizen_ids))
    if family_ids:
        conditions.append(SocialAidRecipient.family_id.in_(family_ids))
    existing = await session.execute(
        select(SocialAidRecipient).where(SocialAidRecipient.program_id == program.id, or_(*conditions))
    )
    already = existing.scalars().all()
    if already:
        names = sorted(r.citizen_id or r.family_id for r in already)
        raise DuplicateEntryError(
            f"Already registered in {program.program_name}: {', '.join(names)}",
            existing=names,
        )

    now = utcnow()
    rows = [
        SocialAidRecipient(
            id=f"rcp-{uuid.uuid4().hex[:12]}",
            program_id=program.id,
            citizen_id=e.citizen_id,
            family_id=e.family_id,
            status=RecipientStatus.NOT_COLLECTED.value,
            note=e.note,
            created_at=now,
            updated_at=now,
        )
        for e in filtered
    ]
    session.add_all(rows)
    await session.flush()

    total = await session.scalar(
        select(func.count(SocialAidRecipient.id)).where(SocialAidRecipient.program_id == program.id)
    )
    spots = available_spots(program.quota, total - len(rows))
    if spots is not UNLIMITED and len(rows) > spots:
        raise QuotaExceededError(
            f"Program {program.program_name} has {spots} spots left, {len(rows)} requested",
            subject_id=program.id,
        )
    logger.info("Enrolled %d recipients in %s", len(rows), program.id)

    context = _program_context(program)
    events = [
        creation_event(SOCIAL_AID_RECIPIENT, r.id, actor.id, subject_id=program.id, context=context)
        for r in rows
    ]
    return rows, events


async def get_recipient(session: AsyncSession, recipient_id: str) -> SocialAidRecipient:
    result = await session.execute(
        select(SocialAidRecipient)
        .where(SocialAidRecipient.id == recipient_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise RecordNotFoundError("Social aid recipient not found")
    return row


async def set_collection_status(
    session: AsyncSession,
    recipient_id: str,
    target: RecipientStatus | str,
    actor: Actor,
    note: Optional[str] = None,
    collected_at: Optional[datetime] = None,
) -> tuple[SocialAidRecipient, Optional[TransitionEvent]]:
    row = await get_recipient(session, recipient_id)
    program = await session.get(SocialAidProgram, row.program_id)
    record = social_aid_recipient_mapping.to_record(row)
    context = _program_context(program)
    context["note"] = note
    outcome = social_aid_recipient_machine.transition(record, target, actor, note=note, context=context)
    if not outcome.changed:
        return row, None
    updated = outcome.record
    if collected_at is not None and updated.status == RecipientStatus.COLLECTED.value:
        updated = replace(updated, effective_at=as_utc(collected_at))
    social_aid_recipient_mapping.apply(row, updated)
    row.updated_at = utcnow()
    await session.flush()
    return row, outcome.event


async def mark_as_collected(
    session: AsyncSession,
    recipient_id: str,
    actor: Actor,
    note: Optional[str] = None,
    collected_at: Optional[datetime] = None,
) -> tuple[SocialAidRecipient, Optional[TransitionEvent]]:
    return await set_collection_status(
        session, recipient_id, RecipientStatus.COLLECTED, actor, note=note, collected_at=collected_at
    )


async def mark_as_not_collected(
    session: AsyncSession,
    recipient_id: str,
    actor: Actor,
    note: Optional[str] = None,
) -> tuple[SocialAidRecipient, Optional[TransitionEvent]]:
    return await set_collection_status(session, recipient_id, RecipientStatus.NOT_COLLECTED, actor, note=note)
