"""
Generic status-transition engine for request-shaped workflow records
(asset loans, social aid recipients, document applications).

Each entity kind declares one StateMachine: its closed status enum, the
transition table with a role gate per edge, which statuses are terminal and
which targets need the subject (asset, quota) to be available. The engine is
pure: it never touches storage and returns a new record value plus the event
that notification dispatch consumes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from exceptions import (
    AlreadyFinalizedError,
    InvalidTransitionError,
    ResourceUnavailableError,
    UnauthorizedTransitionError,
    WorkflowError,
)
from utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    CITIZEN = "citizen"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role
    # Citizen record linked to the acting account, if any
    citizen_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class WorkflowRecord:
    entity_type: str
    id: str
    subject_id: Optional[str]
    requester_id: Optional[str]
    status: str
    note: Optional[str] = None
    decided_by: Optional[str] = None
    requested_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    effective_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransitionEvent:
    entity_type: str
    entity_id: str
    from_status: Optional[str]
    to_status: str
    actor_id: Optional[str]
    occurred_at: datetime
    subject_id: Optional[str] = None
    requester_id: Optional[str] = None
    # Display data for templates (asset name, program name, admin note...)
    context: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def key(self) -> tuple:
        return (self.entity_type, self.entity_id, self.to_status, self.occurred_at)


@dataclass(frozen=True)
class TransitionResult:
    record: WorkflowRecord
    event: Optional[TransitionEvent]

    @property
    def changed(self) -> bool:
        return self.event is not None


StampFn = Callable[[WorkflowRecord, datetime], dict]
AvailabilityFn = Callable[[WorkflowRecord], bool]


def stamp(*fields: str, overwrite: bool = True) -> StampFn:
    """on_enter hook setting the given timestamp fields to the transition time."""
    def _stamp(record: WorkflowRecord, now: datetime) -> dict:
        return {f: now for f in fields if overwrite or getattr(record, f) is None}
    return _stamp


def clear(*fields: str) -> StampFn:
    def _clear(record: WorkflowRecord, now: datetime) -> dict:
        return {f: None for f in fields}
    return _clear


class StateMachine:
    def __init__(
        self,
        entity_type: str,
        statuses: type[Enum],
        initial: Enum,
        edges: Mapping[Enum, Mapping[Enum, frozenset]],
        terminal: tuple = (),
        guarded: tuple = (),
        on_enter: Optional[Mapping[Enum, StampFn]] = None,
        active: Optional[Enum] = None,
    ):
        self.entity_type = entity_type
        self.statuses = statuses
        self.initial = initial
        self.edges = {src: dict(targets) for src, targets in edges.items()}
        self.terminal = frozenset(terminal)
        self.guarded = frozenset(guarded)
        self.on_enter = dict(on_enter or {})
        self.active = active
        for src, targets in self.edges.items():
            if src in self.terminal and targets:
                raise ValueError(f"{entity_type}: terminal status {src.value} has outgoing edges")

    def coerce(self, status: Any) -> Enum:
        """Validate a raw status value against the closed status set."""
        try:
            return self.statuses(status)
        except ValueError:
            raise InvalidTransitionError(
                f"'{status}' is not a valid {self.entity_type} status",
                entity_type=self.entity_type,
                status=status,
            ) from None

    def is_terminal(self, status: Any) -> bool:
        return self.coerce(status) in self.terminal

    def allowed_targets(self, status: Any, role: Role) -> list[Enum]:
        current = self.coerce(status)
        role = Role(role)
        return [t for t, roles in self.edges.get(current, {}).items() if role in roles]

    def _stamps(self, record: WorkflowRecord, current: Enum, target: Enum, now: datetime) -> dict:
        """Timestamps entering ``target`` would set; ``decided_by`` goes with ``decided_at``."""
        changes: dict[str, Any] = {}
        if current == self.initial and record.decided_at is None:
            changes["decided_at"] = now
        hook = self.on_enter.get(target)
        if hook is not None:
            changes.update(hook(record, now))
        return changes

    def _violation(
        self,
        record: WorkflowRecord,
        target: Any,
        role: Role,
        subject_available: Optional[AvailabilityFn],
        now: Optional[datetime] = None,
    ) -> Optional[WorkflowError]:
        try:
            current = self.coerce(record.status)
            target = self.coerce(target)
        except InvalidTransitionError as e:
            return e
        try:
            role = Role(role)
        except ValueError:
            return UnauthorizedTransitionError(f"unknown role {role!r}", entity_id=record.id)
        if current in self.terminal:
            return AlreadyFinalizedError(
                f"{self.entity_type} {record.id} is already {current.value}",
                entity_id=record.id,
                status=current.value,
            )
        if target == current:
            return None
        roles = self.edges.get(current, {}).get(target)
        if roles is None:
            return InvalidTransitionError(
                f"{self.entity_type} cannot move from {current.value} to {target.value}",
                entity_id=record.id,
                from_status=current.value,
                to_status=target.value,
            )
        if role not in roles:
            return UnauthorizedTransitionError(
                f"role {role.value} may not move {self.entity_type} from {current.value} to {target.value}",
                entity_id=record.id,
                role=role.value,
            )
        stamped = replace(record, **self._stamps(record, current, target, now or utcnow()))
        due, effective = as_utc(stamped.due_at), as_utc(stamped.effective_at)
        if due is not None and effective is not None and due < effective:
            return InvalidTransitionError(
                f"{self.entity_type} {record.id} is due {due.isoformat()}, before it would take effect",
                entity_id=record.id,
            )
        if target in self.guarded:
            if subject_available is None:
                raise ValueError(
                    f"{self.entity_type} transition to {target.value} requires a subject availability check"
                )
            if not subject_available(record):
                return ResourceUnavailableError(
                    f"subject {record.subject_id} is already committed to another request",
                    entity_id=record.id,
                    subject_id=record.subject_id,
                )
        return None

    def can_transition(
        self,
        record: WorkflowRecord,
        target: Any,
        role: Role,
        subject_available: Optional[AvailabilityFn] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        return self._violation(record, target, role, subject_available, now) is None

    def check(
        self,
        record: WorkflowRecord,
        target: Any,
        role: Role,
        subject_available: Optional[AvailabilityFn] = None,
        now: Optional[datetime] = None,
    ) -> None:
        error = self._violation(record, target, role, subject_available, now)
        if error is not None:
            raise error

    def transition(
        self,
        record: WorkflowRecord,
        target: Any,
        actor: Actor,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
        subject_available: Optional[AvailabilityFn] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> TransitionResult:
        """
        Apply one status change. Same-status resubmission on a non-terminal
        record is a no-op: the record is returned untouched and no event is
        produced, so nothing is stamped or notified twice.
        """
        now = now or utcnow()
        try:
            self.check(record, target, actor.role, subject_available, now)
        except WorkflowError as e:
            logger.info(
                "Rejected %s %s -> %s by %s: %s",
                self.entity_type, record.id, target, actor.id, e.code,
            )
            raise
        current = self.coerce(record.status)
        target = self.coerce(target)
        if target == current:
            return TransitionResult(record=record, event=None)

        changes: dict[str, Any] = {"status": target.value}
        if note is not None:
            changes["note"] = note
        changes.update(self._stamps(record, current, target, now))
        if "decided_at" in changes:
            changes["decided_by"] = actor.id
        updated = replace(record, **changes)

        event = TransitionEvent(
            entity_type=self.entity_type,
            entity_id=record.id,
            from_status=current.value,
            to_status=target.value,
            actor_id=actor.id,
            occurred_at=now,
            subject_id=record.subject_id,
            requester_id=record.requester_id,
            context=dict(context or {}),
        )
        logger.info(
            "%s %s: %s -> %s by %s",
            self.entity_type, record.id, current.value, target.value, actor.id,
        )
        return TransitionResult(record=updated, event=event)


def creation_event(
    entity_type: str,
    entity_id: str,
    actor_id: Optional[str],
    subject_id: Optional[str] = None,
    requester_id: Optional[str] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> TransitionEvent:
    """Event for a record entering its initial state (or a broadcast-worthy creation)."""
    return TransitionEvent(
        entity_type=entity_type,
        entity_id=entity_id,
        from_status=None,
        to_status="created",
        actor_id=actor_id,
        occurred_at=utcnow(),
        subject_id=subject_id,
        requester_id=requester_id,
        context=dict(context or {}),
    )
