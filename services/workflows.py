"""
Workflow declarations: status sets, transition tables and the column mapping
between ORM rows and WorkflowRecord for each entity kind.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping

from services.lifecycle import ADMIN_ROLES, StateMachine, WorkflowRecord, clear, stamp

ASSET_LOAN = "asset_loan"
SOCIAL_AID_RECIPIENT = "social_aid_recipient"
SOCIAL_AID_PROGRAM = "social_aid_program"
DOCUMENT_APPLICATION = "document_application"
EVENT = "event"


class AssetLoanStatus(str, Enum):
    WAITING_APPROVAL = "waiting_approval"
    ON_LOAN = "on_loan"
    RETURNED = "returned"
    REJECTED = "rejected"


class RecipientStatus(str, Enum):
    NOT_COLLECTED = "not_collected"
    COLLECTED = "collected"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    ON_PROCESS = "on_process"
    COMPLETED = "completed"
    REJECTED = "rejected"


class AssetStatus(str, Enum):
    IDLE = "idle"
    ON_LOAN = "onloan"


class ProgramType(str, Enum):
    INDIVIDUAL = "individual"
    HOUSEHOLD = "household"
    PUBLIC = "public"


class EventType(str, Enum):
    OPEN = "open"
    RESTRICTED = "restricted"


class EventStatus(str, Enum):
    PENDING = "pending"
    ONGOING = "ongoing"
    FINISHED = "finished"


# Approval and hand-over are one step: on_loan is both "approved" and "active".
# The requested borrow date is kept; approval only fills it in when missing.
asset_loan_machine = StateMachine(
    entity_type=ASSET_LOAN,
    statuses=AssetLoanStatus,
    initial=AssetLoanStatus.WAITING_APPROVAL,
    edges={
        AssetLoanStatus.WAITING_APPROVAL: {
            AssetLoanStatus.ON_LOAN: ADMIN_ROLES,
            AssetLoanStatus.REJECTED: ADMIN_ROLES,
        },
        AssetLoanStatus.ON_LOAN: {
            AssetLoanStatus.RETURNED: ADMIN_ROLES,
        },
    },
    terminal=(AssetLoanStatus.RETURNED, AssetLoanStatus.REJECTED),
    guarded=(AssetLoanStatus.ON_LOAN,),
    on_enter={
        AssetLoanStatus.ON_LOAN: stamp("effective_at", overwrite=False),
        AssetLoanStatus.RETURNED: stamp("closed_at", overwrite=False),
    },
    active=AssetLoanStatus.ON_LOAN,
)

# Collection can be corrected by an admin, so neither status is terminal.
social_aid_recipient_machine = StateMachine(
    entity_type=SOCIAL_AID_RECIPIENT,
    statuses=RecipientStatus,
    initial=RecipientStatus.NOT_COLLECTED,
    edges={
        RecipientStatus.NOT_COLLECTED: {RecipientStatus.COLLECTED: ADMIN_ROLES},
        RecipientStatus.COLLECTED: {RecipientStatus.NOT_COLLECTED: ADMIN_ROLES},
    },
    on_enter={
        RecipientStatus.COLLECTED: stamp("effective_at"),
        RecipientStatus.NOT_COLLECTED: clear("effective_at"),
    },
)

document_application_machine = StateMachine(
    entity_type=DOCUMENT_APPLICATION,
    statuses=DocumentStatus,
    initial=DocumentStatus.PENDING,
    edges={
        DocumentStatus.PENDING: {
            DocumentStatus.ON_PROCESS: ADMIN_ROLES,
            DocumentStatus.REJECTED: ADMIN_ROLES,
        },
        DocumentStatus.ON_PROCESS: {
            DocumentStatus.COMPLETED: ADMIN_ROLES,
            DocumentStatus.REJECTED: ADMIN_ROLES,
        },
    },
    terminal=(DocumentStatus.COMPLETED, DocumentStatus.REJECTED),
    on_enter={DocumentStatus.COMPLETED: stamp("closed_at")},
)

event_machine = StateMachine(
    entity_type=EVENT,
    statuses=EventStatus,
    initial=EventStatus.PENDING,
    edges={
        EventStatus.PENDING: {
            EventStatus.ONGOING: ADMIN_ROLES,
            EventStatus.FINISHED: ADMIN_ROLES,
        },
        EventStatus.ONGOING: {
            EventStatus.PENDING: ADMIN_ROLES,
            EventStatus.FINISHED: ADMIN_ROLES,
        },
    },
    terminal=(EventStatus.FINISHED,),
)


_RECORD_FIELDS = [f.name for f in fields(WorkflowRecord) if f.name not in ("entity_type",)]


@dataclass(frozen=True)
class RecordMapping:
    """Record field -> column name. Record fields left out are not persisted for that entity."""

    entity_type: str
    columns: Mapping[str, str]

    def to_record(self, row: Any) -> WorkflowRecord:
        values = {name: getattr(row, column) for name, column in self.columns.items()}
        for name in _RECORD_FIELDS:
            values.setdefault(name, None)
        return WorkflowRecord(entity_type=self.entity_type, **values)

    def apply(self, row: Any, record: WorkflowRecord) -> None:
        """Write a transitioned record back onto its row (identity columns untouched)."""
        for name, column in self.columns.items():
            if name in ("id", "subject_id", "requester_id", "requested_at"):
                continue
            setattr(row, column, getattr(record, name))


asset_loan_mapping = RecordMapping(
    entity_type=ASSET_LOAN,
    columns={
        "id": "id",
        "subject_id": "asset_id",
        "requester_id": "citizen_id",
        "status": "status",
        "note": "note",
        "decided_by": "decided_by",
        "requested_at": "created_at",
        "decided_at": "decided_at",
        "effective_at": "borrowed_at",
        "due_at": "expected_return_date",
        "closed_at": "returned_at",
    },
)

social_aid_recipient_mapping = RecordMapping(
    entity_type=SOCIAL_AID_RECIPIENT,
    columns={
        "id": "id",
        "subject_id": "program_id",
        "status": "status",
        "note": "note",
        "decided_by": "performed_by",
        "requested_at": "created_at",
        "decided_at": "decided_at",
        "effective_at": "collected_at",
    },
)

document_application_mapping = RecordMapping(
    entity_type=DOCUMENT_APPLICATION,
    columns={
        "id": "id",
        "subject_id": "master_document_id",
        "requester_id": "citizen_id",
        "status": "status",
        "note": "admin_note",
        "decided_by": "decided_by",
        "requested_at": "created_at",
        "decided_at": "decided_at",
        "closed_at": "completed_at",
    },
)

# Events only persist their status; decision stamps stay on the returned record.
event_mapping = RecordMapping(
    entity_type=EVENT,
    columns={"id": "id", "status": "status", "requested_at": "created_at"},
)
