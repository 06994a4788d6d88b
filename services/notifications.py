"""
Notification dispatch for applied transitions.

The policy maps (entity type, target status) to a template, a recipient
resolver and a delivery mode. Dispatch always runs after the state change
has committed: it never raises, and a failed delivery only shows up in the
log and in the returned DispatchReport.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import NotificationError
from services.lifecycle import TransitionEvent
from services.mailer import Mailer, Recipient

logger = logging.getLogger(__name__)

RecipientResolver = Callable[[AsyncSession, TransitionEvent], Awaitable[list[Recipient]]]
Scheduler = Callable[..., Any]


@dataclass(frozen=True)
class NotificationRule:
    template_id: str
    resolver: RecipientResolver
    is_async: bool = False


@dataclass
class DispatchReport:
    template_id: Optional[str] = None
    sent: list[str] = field(default_factory=list)
    queued: list[str] = field(default_factory=list)
    failed: list[NotificationError] = field(default_factory=list)
    skipped: bool = False

    @property
    def attempted(self) -> int:
        return len(self.sent) + len(self.failed)

    def summary(self) -> dict[str, int]:
        return {"sent": len(self.sent), "queued": len(self.queued), "failed": len(self.failed)}


class NotificationPolicy:
    def __init__(self):
        self._rules: dict[tuple[str, str], NotificationRule] = {}

    def register(self, entity_type: str, to_status: str, rule: NotificationRule) -> None:
        self._rules[(entity_type, str(to_status))] = rule

    def rule_for(self, event: TransitionEvent) -> Optional[NotificationRule]:
        return self._rules.get((event.entity_type, event.to_status))


def _unique(recipients: list[Recipient]) -> list[Recipient]:
    seen: set[str] = set()
    out = []
    for r in recipients:
        key = r.address.strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(r)
    return out


class Dispatcher:
    _history_size = 1024

    def __init__(self, policy: NotificationPolicy, mailer: Mailer):
        self.policy = policy
        self.mailer = mailer
        self._dispatched: OrderedDict[tuple, None] = OrderedDict()

    def _claim(self, event: TransitionEvent) -> bool:
        """Record the event key; False if this event was already dispatched."""
        if event.key in self._dispatched:
            return False
        self._dispatched[event.key] = None
        while len(self._dispatched) > self._history_size:
            self._dispatched.popitem(last=False)
        return True

    async def dispatch(
        self,
        session: AsyncSession,
        event: Optional[TransitionEvent],
        schedule: Optional[Scheduler] = None,
    ) -> DispatchReport:
        """
        Resolve recipients for the event and hand each one to the mailer.
        Async rules are queued on ``schedule`` (e.g. BackgroundTasks.add_task)
        when given, otherwise delivered inline.
        """
        if event is None:
            return DispatchReport(skipped=True)
        rule = self.policy.rule_for(event)
        if rule is None:
            return DispatchReport(skipped=True)
        report = DispatchReport(template_id=rule.template_id)
        if not self._claim(event):
            logger.info("Duplicate dispatch of %s %s -> %s ignored", event.entity_type, event.entity_id, event.to_status)
            report.skipped = True
            return report

        try:
            recipients = _unique(await rule.resolver(session, event))
        except Exception as e:
            logger.exception("Recipient resolution failed for %s %s", event.entity_type, event.entity_id)
            report.failed.append(NotificationError("*", rule.template_id, e))
            return report
        if not recipients:
            logger.info("No recipients for %s on %s %s", rule.template_id, event.entity_type, event.entity_id)
            return report

        context = dict(event.context)
        if rule.is_async and schedule is not None:
            schedule(self.deliver, rule.template_id, recipients, context)
            report.queued = [r.address for r in recipients]
            return report
        await self.deliver(rule.template_id, recipients, context, report)
        return report

    async def deliver(
        self,
        template_id: str,
        recipients: list[Recipient],
        context: dict[str, Any],
        report: Optional[DispatchReport] = None,
    ) -> DispatchReport:
        report = report or DispatchReport(template_id=template_id)
        for recipient in recipients:
            try:
                await self.mailer.send(recipient, template_id, context)
            except Exception as e:
                error = e if isinstance(e, NotificationError) else NotificationError(recipient.address, template_id, e)
                logger.warning("Notification %s to %s failed: %s", template_id, recipient.address, error.cause)
                report.failed.append(error)
            else:
                report.sent.append(recipient.address)
        return report
