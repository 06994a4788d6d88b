from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_dispatcher
from database import get_db
from exceptions import RecordNotFoundError
from models import AssetLoan
from schemas.asset_loan import AssetLoanCreate, AssetLoanStatusUpdate
from services import asset_loans
from services.lifecycle import Actor
from services.notifications import Dispatcher
from services.workflows import AssetLoanStatus, asset_loan_machine
from utils.dates import isoformat

router = APIRouter(prefix="/api/asset-loans", tags=["asset-loans"])


def _loan_to_response(loan: AssetLoan, actor: Actor) -> dict[str, Any]:
    return {
        "id": loan.id,
        "assetId": loan.asset_id,
        "citizenId": loan.citizen_id,
        "status": loan.status,
        "reason": loan.reason,
        "note": loan.note,
        "borrowedAt": isoformat(loan.borrowed_at),
        "expectedReturnDate": isoformat(loan.expected_return_date),
        "returnedAt": isoformat(loan.returned_at),
        "decidedAt": isoformat(loan.decided_at),
        "decidedBy": loan.decided_by,
        "isOverdue": asset_loans.loan_is_overdue(loan),
        "allowedTransitions": [s.value for s in asset_loan_machine.allowed_targets(loan.status, actor.role)],
        "createdAt": isoformat(loan.created_at),
        "updatedAt": isoformat(loan.updated_at),
    }


@router.get("")
async def list_asset_loans(
    status: Optional[AssetLoanStatus] = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    loans = await asset_loans.list_loans(db, actor, status)
    return [_loan_to_response(l, actor) for l in loans]


@router.get("/{loan_id}")
async def get_asset_loan(loan_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    loan = await asset_loans.get_loan(db, loan_id)
    if not actor.is_admin and loan.citizen_id != actor.citizen_id:
        raise RecordNotFoundError("Asset loan not found")
    return _loan_to_response(loan, actor)


@router.post("", status_code=201)
async def request_asset_loan(
    body: AssetLoanCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    loan, event = await asset_loans.request_loan(
        db,
        actor,
        nik=body.nik,
        asset_id=body.asset_id,
        reason=body.reason,
        borrowed_at=body.borrowed_at,
        expected_return_date=body.expected_return_date,
    )
    await db.commit()
    await dispatcher.dispatch(db, event, schedule=background_tasks.add_task)
    return _loan_to_response(loan, actor)


@router.post("/{loan_id}/status")
async def update_asset_loan_status(
    loan_id: str,
    body: AssetLoanStatusUpdate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    loan, event = await asset_loans.decide_loan(db, loan_id, body.status, actor, note=body.note)
    await db.commit()
    report = await dispatcher.dispatch(db, event, schedule=background_tasks.add_task)
    out = _loan_to_response(loan, actor)
    out["notification"] = report.summary()
    return out
