"""Citizen requests for village documents (letters, certificates) and their processing."""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import InvalidTransitionError, RecordNotFoundError, UnauthorizedTransitionError
from models import ApplicationDocument, Citizen, MasterDocument
from services.lifecycle import Actor, TransitionEvent
from services.workflows import (
    DOCUMENT_APPLICATION,
    DocumentStatus,
    document_application_machine,
    document_application_mapping,
)
from utils.dates import utcnow

logger = logging.getLogger(__name__)


def _context(application: ApplicationDocument, master: MasterDocument | None, note: Optional[str]) -> dict:
    return {
        "document_name": master.document_name if master else None,
        "nik": application.nik,
        "note": note,
    }


async def submit_application(
    session: AsyncSession,
    actor: Actor,
    nik: str,
    master_document_id: str,
    reason: Optional[str] = None,
    citizen_note: Optional[str] = None,
) -> ApplicationDocument:
    result = await session.execute(select(Citizen).where(Citizen.nik == nik))
    citizen = result.scalar_one_or_none()
    if citizen is None:
        raise RecordNotFoundError(f"No citizen registered with NIK {nik}")
    if not actor.is_admin and citizen.id != actor.citizen_id:
        raise UnauthorizedTransitionError("Citizens may only apply for their own documents")
    if await session.get(MasterDocument, master_document_id) is None:
        raise RecordNotFoundError("Document type not found")

    now = utcnow()
    application = ApplicationDocument(
        id=f"doc-{uuid.uuid4().hex[:12]}",
        master_document_id=master_document_id,
        citizen_id=citizen.id,
        nik=nik,
        status=DocumentStatus.PENDING.value,
        reason=reason,
        citizen_note=citizen_note,
        created_at=now,
        updated_at=now,
    )
    session.add(application)
    await session.flush()
    logger.info("Document application %s submitted for %s", application.id, nik)
    return application


async def get_application(session: AsyncSession, application_id: str, for_update: bool = False) -> ApplicationDocument:
    stmt = select(ApplicationDocument).where(ApplicationDocument.id == application_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    application = result.scalar_one_or_none()
    if application is None:
        raise RecordNotFoundError("Document application not found")
    return application


async def process_application(
    session: AsyncSession,
    application_id: str,
    target: DocumentStatus | str,
    actor: Actor,
    admin_note: str,
    file: Optional[str] = None,
) -> tuple[ApplicationDocument, Optional[TransitionEvent]]:
    """approve (on_process), reject or complete an application; the admin note is always recorded."""
    application = await get_application(session, application_id, for_update=True)
    master = await session.get(MasterDocument, application.master_document_id)
    record = document_application_mapping.to_record(application)
    outcome = document_application_machine.transition(
        record,
        target,
        actor,
        note=admin_note,
        context=_context(application, master, admin_note),
    )
    if not outcome.changed:
        return application, None
    document_application_mapping.apply(application, outcome.record)
    if file is not None:
        application.file = file
    application.updated_at = utcnow()
    await session.flush()
    return application, outcome.event


async def remind_applicant(
    session: AsyncSession,
    application_id: str,
    actor: Actor,
    admin_note: str,
) -> tuple[ApplicationDocument, TransitionEvent]:
    """Re-notify the applicant while the document is being processed; no status change."""
    if not actor.is_admin:
        raise UnauthorizedTransitionError("Only administrators can notify applicants")
    application = await get_application(session, application_id)
    if application.status != DocumentStatus.ON_PROCESS.value:
        raise InvalidTransitionError(
            "Notifications can only be sent while the application is being processed",
            entity_id=application.id,
        )
    application.admin_note = admin_note
    application.updated_at = utcnow()
    await session.flush()
    master = await session.get(MasterDocument, application.master_document_id)
    event = TransitionEvent(
        entity_type=DOCUMENT_APPLICATION,
        entity_id=application.id,
        from_status=application.status,
        to_status="reminder",
        actor_id=actor.id,
        occurred_at=utcnow(),
        subject_id=application.master_document_id,
        requester_id=application.citizen_id,
        context=_context(application, master, admin_note),
    )
    return application, event
