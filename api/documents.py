from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_dispatcher
from database import get_db
from exceptions import RecordNotFoundError
from models import ApplicationDocument
from schemas.document import AdminNote, DocumentApplicationCreate, DocumentCompletion
from services import documents
from services.lifecycle import Actor, TransitionEvent
from services.notifications import Dispatcher
from services.workflows import DocumentStatus
from utils.dates import isoformat

router = APIRouter(prefix="/api/document-applications", tags=["document-applications"])


def _application_to_response(a: ApplicationDocument) -> dict[str, Any]:
    return {
        "id": a.id,
        "masterDocumentId": a.master_document_id,
        "citizenId": a.citizen_id,
        "nik": a.nik,
        "status": a.status,
        "reason": a.reason,
        "citizenNote": a.citizen_note,
        "adminNote": a.admin_note,
        "file": a.file,
        "decidedAt": isoformat(a.decided_at),
        "decidedBy": a.decided_by,
        "completedAt": isoformat(a.completed_at),
        "createdAt": isoformat(a.created_at),
        "updatedAt": isoformat(a.updated_at),
    }


async def _finish(
    db: AsyncSession,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
    application: ApplicationDocument,
    event: TransitionEvent | None,
) -> dict[str, Any]:
    await db.commit()
    report = await dispatcher.dispatch(db, event, schedule=background_tasks.add_task)
    out = _application_to_response(application)
    out["notification"] = report.summary()
    return out


@router.post("", status_code=201)
async def submit_application(
    body: DocumentApplicationCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    application = await documents.submit_application(
        db,
        actor,
        nik=body.nik,
        master_document_id=body.master_document_id,
        reason=body.reason,
        citizen_note=body.citizen_note,
    )
    return _application_to_response(application)


@router.get("/{application_id}")
async def get_application(application_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    application = await documents.get_application(db, application_id)
    if not actor.is_admin and application.citizen_id != actor.citizen_id:
        raise RecordNotFoundError("Document application not found")
    return _application_to_response(application)


@router.post("/{application_id}/approve")
async def approve_application(
    application_id: str,
    body: AdminNote,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    application, event = await documents.process_application(
        db, application_id, DocumentStatus.ON_PROCESS, actor, body.admin_note
    )
    return await _finish(db, dispatcher, background_tasks, application, event)


@router.post("/{application_id}/reject")
async def reject_application(
    application_id: str,
    body: AdminNote,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    application, event = await documents.process_application(
        db, application_id, DocumentStatus.REJECTED, actor, body.admin_note
    )
    return await _finish(db, dispatcher, background_tasks, application, event)


@router.post("/{application_id}/complete")
async def complete_application(
    application_id: str,
    body: DocumentCompletion,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    application, event = await documents.process_application(
        db, application_id, DocumentStatus.COMPLETED, actor, body.admin_note, file=body.file
    )
    return await _finish(db, dispatcher, background_tasks, application, event)


@router.post("/{application_id}/notify")
async def notify_applicant(
    application_id: str,
    body: AdminNote,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    application, event = await documents.remind_applicant(db, application_id, actor, body.admin_note)
    return await _finish(db, dispatcher, background_tasks, application, event)
