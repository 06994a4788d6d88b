"""
Asset loan requests and their approval workflow.

Approval claims the asset with a conditional UPDATE inside the caller's
transaction, so two concurrent approvals for the same asset cannot both
succeed: the second one sees no idle row and is rejected with
ResourceUnavailableError. Callers commit, then dispatch the returned event.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import (
    DomainValidationError,
    RecordNotFoundError,
    ResourceUnavailableError,
    UnauthorizedTransitionError,
)
from models import Asset, AssetLoan, Citizen
from services.derived_state import is_overdue
from services.lifecycle import Actor, TransitionEvent, creation_event
from services.workflows import (
    ASSET_LOAN,
    AssetLoanStatus,
    AssetStatus,
    asset_loan_machine,
    asset_loan_mapping,
)
from utils.dates import as_utc, isoformat, utcnow

logger = logging.getLogger(__name__)


def _loan_context(loan: AssetLoan, asset: Asset | None, citizen: Citizen | None) -> dict:
    return {
        "asset_name": asset.asset_name if asset else None,
        "asset_code": asset.code if asset else None,
        "citizen_name": citizen.full_name if citizen else None,
        "reason": loan.reason,
        "note": loan.note,
        "borrowed_at": isoformat(loan.borrowed_at),
        "expected_return_date": isoformat(loan.expected_return_date),
    }


async def request_loan(
    session: AsyncSession,
    actor: Actor,
    nik: str,
    asset_id: str,
    reason: str,
    borrowed_at: datetime,
    expected_return_date: datetime,
) -> tuple[AssetLoan, TransitionEvent]:
    borrowed_at, expected_return_date = as_utc(borrowed_at), as_utc(expected_return_date)
    if borrowed_at.date() < utcnow().date():
        raise DomainValidationError("borrowed_at must be today or later")
    if expected_return_date <= borrowed_at:
        raise DomainValidationError("expected_return_date must be after borrowed_at")

    result = await session.execute(select(Citizen).where(Citizen.nik == nik))
    citizen = result.scalar_one_or_none()
    if citizen is None:
        raise RecordNotFoundError(f"No citizen registered with NIK {nik}")
    if not actor.is_admin and citizen.id != actor.citizen_id:
        raise UnauthorizedTransitionError("Citizens may only request loans for themselves")
    asset = await session.get(Asset, asset_id)
    if asset is None:
        raise RecordNotFoundError("Asset not found")
    if asset.status != AssetStatus.IDLE.value:
        raise ResourceUnavailableError(f"Asset {asset.code} is not available for loan", subject_id=asset.id)

    now = utcnow()
    loan = AssetLoan(
        id=f"loan-{uuid.uuid4().hex[:12]}",
        asset_id=asset.id,
        citizen_id=citizen.id,
        status=AssetLoanStatus.WAITING_APPROVAL.value,
        reason=reason,
        borrowed_at=borrowed_at,
        expected_return_date=expected_return_date,
        created_at=now,
        updated_at=now,
    )
    session.add(loan)
    await session.flush()
    logger.info("Asset loan %s requested for %s by %s", loan.id, asset.id, actor.id)
    event = creation_event(
        ASSET_LOAN,
        loan.id,
        actor.id,
        subject_id=asset.id,
        requester_id=citizen.id,
        context=_loan_context(loan, asset, citizen),
    )
    return loan, event


async def get_loan(session: AsyncSession, loan_id: str, for_update: bool = False) -> AssetLoan:
    stmt = select(AssetLoan).where(AssetLoan.id == loan_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    loan = result.scalar_one_or_none()
    if loan is None:
        raise RecordNotFoundError("Asset loan not found")
    return loan


async def _claim_asset(session: AsyncSession, loan: AssetLoan) -> bool:
    result = await session.execute(
        update(Asset)
        .where(Asset.id == loan.asset_id, Asset.status == AssetStatus.IDLE.value)
        .values(status=AssetStatus.ON_LOAN.value, borrower_id=loan.citizen_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_asset(session: AsyncSession, loan: AssetLoan) -> None:
    await session.execute(
        update(Asset)
        .where(Asset.id == loan.asset_id, Asset.borrower_id == loan.citizen_id)
        .values(status=AssetStatus.IDLE.value, borrower_id=None)
        .execution_options(synchronize_session=False)
    )


async def decide_loan(
    session: AsyncSession,
    loan_id: str,
    target: AssetLoanStatus | str,
    actor: Actor,
    note: Optional[str] = None,
) -> tuple[AssetLoan, Optional[TransitionEvent]]:
    """
    Move a loan to ``target``. Approving (on_loan) claims the asset,
    returning releases it. Rejecting a waiting loan leaves the asset alone
    since it was never claimed by this loan.
    """
    loan = await get_loan(session, loan_id, for_update=True)
    record = asset_loan_mapping.to_record(loan)
    target = asset_loan_machine.coerce(target)
    previous = asset_loan_machine.coerce(record.status)
    now = utcnow()

    # Every rejection except availability is raised before the asset row is touched
    asset_loan_machine.check(record, target, actor.role, subject_available=lambda _: True, now=now)
    claimed = True
    if target in asset_loan_machine.guarded and target != previous:
        claimed = await _claim_asset(session, loan)

    asset = await session.get(Asset, loan.asset_id)
    citizen = await session.get(Citizen, loan.citizen_id)
    context = _loan_context(loan, asset, citizen)
    if note is not None:
        context["note"] = note
    outcome = asset_loan_machine.transition(
        record,
        target,
        actor,
        note=note,
        now=now,
        subject_available=lambda _: claimed,
        context=context,
    )
    if not outcome.changed:
        return loan, None

    asset_loan_mapping.apply(loan, outcome.record)
    loan.updated_at = now
    if previous == AssetLoanStatus.ON_LOAN and target == AssetLoanStatus.RETURNED:
        await _release_asset(session, loan)
    await session.flush()
    if asset is not None:
        await session.refresh(asset)
    return loan, outcome.event


async def list_loans(
    session: AsyncSession,
    actor: Actor,
    status: Optional[AssetLoanStatus] = None,
) -> list[AssetLoan]:
    stmt = select(AssetLoan).order_by(AssetLoan.created_at.desc())
    if not actor.is_admin:
        stmt = stmt.where(AssetLoan.citizen_id == actor.citizen_id)
    if status is not None:
        stmt = stmt.where(AssetLoan.status == status.value)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def loan_is_overdue(loan: AssetLoan, now: Optional[datetime] = None) -> bool:
    return is_overdue(asset_loan_mapping.to_record(loan), now or utcnow(), asset_loan_machine.active)
