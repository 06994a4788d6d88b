"""Recipient resolvers and the notification policy for every workflow."""
from __future__ import annotations

import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Citizen, SocialAidRecipient, User
from services.lifecycle import ADMIN_ROLES, TransitionEvent
from services.mailer import Recipient
from services.notifications import NotificationPolicy, NotificationRule
from services.workflows import (
    ASSET_LOAN,
    DOCUMENT_APPLICATION,
    EVENT,
    SOCIAL_AID_PROGRAM,
    SOCIAL_AID_RECIPIENT,
    AssetLoanStatus,
    DocumentStatus,
    RecipientStatus,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

HEAD_OF_HOUSEHOLD = "head_of_household"


def _contact(citizen: Citizen | None) -> list[Recipient]:
    if citizen is None or not citizen.email or not _EMAIL_RE.match(citizen.email):
        return []
    return [Recipient(address=citizen.email, name=citizen.full_name)]


async def requester(session: AsyncSession, event: TransitionEvent) -> list[Recipient]:
    if event.requester_id is None:
        return []
    return _contact(await session.get(Citizen, event.requester_id))


async def active_admins(session: AsyncSession, event: TransitionEvent) -> list[Recipient]:
    result = await session.execute(
        select(User).where(
            User.role.in_([r.value for r in ADMIN_ROLES]),
            User.status == "active",
            User.email.is_not(None),
        )
    )
    return [Recipient(address=u.email, name=u.name) for u in result.scalars().all() if _EMAIL_RE.match(u.email)]


async def aid_recipient(session: AsyncSession, event: TransitionEvent) -> list[Recipient]:
    """The enrolled citizen, or the head of household for family enrolments."""
    row = await session.get(SocialAidRecipient, event.entity_id)
    if row is None:
        return []
    if row.citizen_id:
        return _contact(await session.get(Citizen, row.citizen_id))
    if row.family_id:
        result = await session.execute(
            select(Citizen).where(
                Citizen.family_id == row.family_id,
                Citizen.family_status == HEAD_OF_HOUSEHOLD,
            )
        )
        return _contact(result.scalars().first())
    return []


async def all_citizens(session: AsyncSession, event: TransitionEvent) -> list[Recipient]:
    result = await session.execute(
        select(Citizen).where(Citizen.email.is_not(None)).order_by(Citizen.full_name)
    )
    out: list[Recipient] = []
    for citizen in result.scalars().all():
        out.extend(_contact(citizen))
    return out


def build_policy() -> NotificationPolicy:
    policy = NotificationPolicy()
    policy.register(ASSET_LOAN, "created", NotificationRule("asset_loan.requested", active_admins, is_async=True))
    policy.register(ASSET_LOAN, AssetLoanStatus.ON_LOAN.value, NotificationRule("asset_loan.approved", requester))
    policy.register(ASSET_LOAN, AssetLoanStatus.REJECTED.value, NotificationRule("asset_loan.rejected", requester))

    policy.register(SOCIAL_AID_RECIPIENT, "created", NotificationRule("social_aid.enrolled", aid_recipient, is_async=True))
    policy.register(SOCIAL_AID_RECIPIENT, RecipientStatus.COLLECTED.value, NotificationRule("social_aid.collected", aid_recipient))
    policy.register(SOCIAL_AID_PROGRAM, "created", NotificationRule("social_aid.new_program", all_citizens, is_async=True))

    policy.register(DOCUMENT_APPLICATION, DocumentStatus.ON_PROCESS.value, NotificationRule("document.approved", requester))
    policy.register(DOCUMENT_APPLICATION, DocumentStatus.REJECTED.value, NotificationRule("document.rejected", requester))
    policy.register(DOCUMENT_APPLICATION, DocumentStatus.COMPLETED.value, NotificationRule("document.completed", requester))
    policy.register(DOCUMENT_APPLICATION, "reminder", NotificationRule("document.reminder", requester))

    policy.register(EVENT, "created", NotificationRule("event.new_event", all_citizens, is_async=True))
    return policy
