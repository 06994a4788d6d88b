"""
Transition engine: edge table, role gates, terminal statuses, availability guard
and timestamp stamping. Pure functions, no database.
Run: python -m pytest tests/test_lifecycle.py -v
"""
import unittest
from datetime import datetime, timedelta, timezone

from exceptions import (
    AlreadyFinalizedError,
    InvalidTransitionError,
    ResourceUnavailableError,
    UnauthorizedTransitionError,
)
from services.lifecycle import Actor, Role, StateMachine, WorkflowRecord, creation_event
from services.workflows import (
    ASSET_LOAN,
    AssetLoanStatus,
    DocumentStatus,
    RecipientStatus,
    asset_loan_machine,
    document_application_machine,
    social_aid_recipient_machine,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
ADMIN = Actor(id="usr-admin", role=Role.ADMIN)
CITIZEN = Actor(id="usr-budi", role=Role.CITIZEN, citizen_id="cit-budi")


def _loan(status="waiting_approval", **kw):
    values = dict(
        entity_type=ASSET_LOAN,
        id="loan-1",
        subject_id="ast-tenda",
        requester_id="cit-budi",
        status=status,
        requested_at=NOW - timedelta(days=1),
        effective_at=NOW,
        due_at=NOW + timedelta(days=3),
    )
    values.update(kw)
    return WorkflowRecord(**values)


def _available(record):
    return True


def _taken(record):
    return False


class TestAssetLoanTransitions(unittest.TestCase):
    def test_approve_stamps_decision(self):
        out = asset_loan_machine.transition(_loan(), "on_loan", ADMIN, note="ok", now=NOW, subject_available=_available)
        self.assertTrue(out.changed)
        self.assertEqual(out.record.status, "on_loan")
        self.assertEqual(out.record.decided_at, NOW)
        self.assertEqual(out.record.decided_by, "usr-admin")
        self.assertEqual(out.record.effective_at, NOW)
        self.assertEqual(out.record.note, "ok")
        self.assertEqual(out.event.from_status, "waiting_approval")
        self.assertEqual(out.event.to_status, "on_loan")
        self.assertEqual(out.event.subject_id, "ast-tenda")
        self.assertEqual(out.event.requester_id, "cit-budi")

    def test_input_record_is_not_mutated(self):
        record = _loan()
        asset_loan_machine.transition(record, AssetLoanStatus.REJECTED, ADMIN, now=NOW)
        self.assertEqual(record.status, "waiting_approval")
        self.assertIsNone(record.decided_at)

    def test_superadmin_may_approve(self):
        actor = Actor(id="usr-superadmin", role=Role.SUPERADMIN)
        self.assertTrue(asset_loan_machine.can_transition(_loan(), "on_loan", actor.role, _available))

    def test_citizen_cannot_approve(self):
        with self.assertRaises(UnauthorizedTransitionError):
            asset_loan_machine.transition(_loan(), "on_loan", CITIZEN, now=NOW, subject_available=_available)

    def test_unknown_status_is_invalid(self):
        with self.assertRaises(InvalidTransitionError):
            asset_loan_machine.transition(_loan(), "approved", ADMIN, now=NOW)
        with self.assertRaises(InvalidTransitionError):
            asset_loan_machine.check(_loan(status="lost"), "on_loan", Role.ADMIN, _available)

    def test_edge_not_in_table_is_invalid(self):
        with self.assertRaises(InvalidTransitionError):
            asset_loan_machine.transition(_loan(), "returned", ADMIN, now=NOW)

    def test_missing_edge_reported_before_role(self):
        with self.assertRaises(InvalidTransitionError):
            asset_loan_machine.check(_loan(), "returned", Role.CITIZEN)

    def test_role_reported_before_availability(self):
        with self.assertRaises(UnauthorizedTransitionError):
            asset_loan_machine.check(_loan(), "on_loan", Role.CITIZEN, _taken)

    def test_unavailable_subject_blocks_approval(self):
        self.assertFalse(asset_loan_machine.can_transition(_loan(), "on_loan", Role.ADMIN, _taken))
        with self.assertRaises(ResourceUnavailableError):
            asset_loan_machine.transition(_loan(), "on_loan", ADMIN, now=NOW, subject_available=_taken)

    def test_guarded_target_needs_predicate(self):
        with self.assertRaises(ValueError):
            asset_loan_machine.check(_loan(), "on_loan", Role.ADMIN)

    def test_terminal_statuses_are_final(self):
        for status in ("returned", "rejected"):
            record = _loan(status=status)
            with self.assertRaises(AlreadyFinalizedError):
                asset_loan_machine.transition(record, "on_loan", ADMIN, now=NOW, subject_available=_available)
            # resubmitting the same terminal status is not a no-op
            with self.assertRaises(AlreadyFinalizedError):
                asset_loan_machine.transition(record, status, ADMIN, now=NOW)
            self.assertTrue(asset_loan_machine.is_terminal(status))

    def test_same_status_is_a_noop(self):
        record = _loan()
        out = asset_loan_machine.transition(record, "waiting_approval", ADMIN, now=NOW)
        self.assertFalse(out.changed)
        self.assertIsNone(out.event)
        self.assertIs(out.record, record)

    def test_return_keeps_first_decision(self):
        approved_at = NOW - timedelta(hours=5)
        record = _loan(status="on_loan", decided_at=approved_at, decided_by="usr-superadmin")
        out = asset_loan_machine.transition(record, "returned", ADMIN, now=NOW)
        self.assertEqual(out.record.decided_at, approved_at)
        self.assertEqual(out.record.decided_by, "usr-superadmin")
        self.assertEqual(out.record.closed_at, NOW)

    def test_requested_start_is_kept_on_approval(self):
        requested = NOW + timedelta(days=2)
        record = _loan(effective_at=requested, due_at=NOW + timedelta(days=4))
        out = asset_loan_machine.transition(record, "on_loan", ADMIN, now=NOW, subject_available=_available)
        self.assertEqual(out.record.effective_at, requested)
        self.assertEqual(out.record.decided_at, NOW)

    def test_missing_start_is_stamped_on_approval(self):
        out = asset_loan_machine.transition(
            _loan(effective_at=None), "on_loan", ADMIN, now=NOW, subject_available=_available
        )
        self.assertEqual(out.record.effective_at, NOW)

    def test_due_before_start_is_invalid(self):
        record = _loan(effective_at=NOW + timedelta(days=2), due_at=NOW + timedelta(days=1))
        self.assertFalse(asset_loan_machine.can_transition(record, "on_loan", Role.ADMIN, _available, now=NOW))
        with self.assertRaises(InvalidTransitionError):
            asset_loan_machine.transition(record, "on_loan", ADMIN, now=NOW, subject_available=_available)

    def test_stamp_past_due_date_is_invalid(self):
        record = _loan(effective_at=None, due_at=NOW - timedelta(days=1))
        self.assertFalse(asset_loan_machine.can_transition(record, "on_loan", Role.ADMIN, _available, now=NOW))
        # reported before the availability guard is consulted
        with self.assertRaises(InvalidTransitionError):
            asset_loan_machine.check(record, "on_loan", Role.ADMIN, _taken, now=NOW)

    def test_allowed_targets_depend_on_role(self):
        self.assertEqual(
            asset_loan_machine.allowed_targets("waiting_approval", "admin"),
            [AssetLoanStatus.ON_LOAN, AssetLoanStatus.REJECTED],
        )
        self.assertEqual(asset_loan_machine.allowed_targets("waiting_approval", Role.CITIZEN), [])
        self.assertEqual(asset_loan_machine.allowed_targets("returned", Role.ADMIN), [])


class TestOtherWorkflows(unittest.TestCase):
    def _recipient(self, status="not_collected", **kw):
        return WorkflowRecord(
            entity_type="social_aid_recipient", id="rcp-1", subject_id="aid-1",
            requester_id=None, status=status, **kw
        )

    def test_collection_can_be_corrected(self):
        first = social_aid_recipient_machine.transition(self._recipient(), "collected", ADMIN, now=NOW)
        self.assertEqual(first.record.effective_at, NOW)
        self.assertEqual(first.record.decided_by, "usr-admin")

        later = NOW + timedelta(hours=1)
        other = Actor(id="usr-superadmin", role=Role.SUPERADMIN)
        undone = social_aid_recipient_machine.transition(first.record, "not_collected", other, now=later)
        self.assertEqual(undone.record.status, "not_collected")
        self.assertIsNone(undone.record.effective_at)
        self.assertEqual(undone.record.decided_at, NOW)
        self.assertEqual(undone.record.decided_by, "usr-admin")

    def test_collected_twice_is_a_noop(self):
        record = self._recipient(status="collected", effective_at=NOW)
        out = social_aid_recipient_machine.transition(record, RecipientStatus.COLLECTED, ADMIN)
        self.assertIsNone(out.event)
        self.assertEqual(out.record.effective_at, NOW)

    def test_document_flow(self):
        record = WorkflowRecord(
            entity_type="document_application", id="doc-1", subject_id="mdoc-domisili",
            requester_id="cit-budi", status="pending",
        )
        self.assertFalse(document_application_machine.can_transition(record, "completed", Role.ADMIN))
        processing = document_application_machine.transition(record, DocumentStatus.ON_PROCESS, ADMIN, now=NOW)
        done = document_application_machine.transition(
            processing.record, "completed", ADMIN, note="Silakan diambil", now=NOW + timedelta(days=1)
        )
        self.assertEqual(done.record.closed_at, NOW + timedelta(days=1))
        self.assertEqual(done.record.decided_at, NOW)
        self.assertEqual(done.record.note, "Silakan diambil")
        with self.assertRaises(AlreadyFinalizedError):
            document_application_machine.check(done.record, "rejected", Role.ADMIN)


class TestMachineDefinition(unittest.TestCase):
    def test_terminal_status_with_edges_is_rejected(self):
        with self.assertRaises(ValueError):
            StateMachine(
                entity_type="broken",
                statuses=DocumentStatus,
                initial=DocumentStatus.PENDING,
                edges={DocumentStatus.COMPLETED: {DocumentStatus.PENDING: frozenset({Role.ADMIN})}},
                terminal=(DocumentStatus.COMPLETED,),
            )

    def test_creation_event(self):
        event = creation_event(ASSET_LOAN, "loan-1", "usr-budi", subject_id="ast-tenda", context={"a": 1})
        self.assertIsNone(event.from_status)
        self.assertEqual(event.to_status, "created")
        self.assertEqual(event.context, {"a": 1})


if __name__ == "__main__":
    unittest.main()
