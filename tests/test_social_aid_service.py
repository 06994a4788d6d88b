"""Social aid programs: enrolment rules, quota, collection tracking and stats."""
from datetime import datetime, timezone

from exceptions import (
    DomainValidationError,
    DuplicateEntryError,
    QuotaExceededError,
    RecordNotFoundError,
    ResourceUnavailableError,
    UnauthorizedTransitionError,
)
from services.derived_state import UNLIMITED
from services.social_aid import (
    RecipientEntry,
    create_program,
    enroll_recipients,
    mark_as_collected,
    mark_as_not_collected,
    program_stats,
)
from services.workflows import ProgramType
from tests.support import ADMIN, BUDI, DatabaseTestCase


class TestSocialAidService(DatabaseTestCase):
    async def _program(self, type=ProgramType.INDIVIDUAL, quota=None):
        async with self.Session() as session:
            program, event = await create_program(
                session, ADMIN, "BLT Dana Desa", "2026-Q1", type, quota=quota, location="Balai Desa"
            )
            await session.commit()
        return program, event

    async def _enroll(self, program_id, *entries):
        async with self.Session() as session:
            rows, events = await enroll_recipients(session, ADMIN, program_id, list(entries))
            await session.commit()
        return rows, events

    async def test_create_program_is_admin_only(self):
        program, event = await self._program()
        self.assertTrue(program.id.startswith("aid-"))
        self.assertEqual(event.entity_type, "social_aid_program")
        self.assertEqual(event.context["program_name"], "BLT Dana Desa")
        async with self.Session() as session:
            with self.assertRaises(UnauthorizedTransitionError):
                await create_program(session, BUDI, "BLT", "2026", ProgramType.PUBLIC)

    async def test_enroll_individuals(self):
        program, _ = await self._program()
        rows, events = await self._enroll(
            program.id, RecipientEntry(citizen_id="cit-budi"), RecipientEntry(citizen_id="cit-siti", note="lansia")
        )
        self.assertEqual([r.status for r in rows], ["not_collected", "not_collected"])
        self.assertEqual([e.to_status for e in events], ["created", "created"])
        self.assertEqual(events[0].subject_id, program.id)

    async def test_entry_kind_must_match_program(self):
        individual, _ = await self._program()
        household, _ = await self._program(type=ProgramType.HOUSEHOLD)
        public, _ = await self._program(type=ProgramType.PUBLIC)
        async with self.Session() as session:
            with self.assertRaises(DomainValidationError):
                await enroll_recipients(session, ADMIN, individual.id, [RecipientEntry(family_id="fam-santoso")])
            with self.assertRaises(DomainValidationError):
                await enroll_recipients(session, ADMIN, household.id, [RecipientEntry(citizen_id="cit-budi")])
            with self.assertRaises(DomainValidationError):
                await enroll_recipients(session, ADMIN, public.id, [RecipientEntry(citizen_id="cit-budi")])

    async def test_duplicates_rejected(self):
        program, _ = await self._program()
        async with self.Session() as session:
            with self.assertRaises(DuplicateEntryError):
                await enroll_recipients(
                    session, ADMIN, program.id,
                    [RecipientEntry(citizen_id="cit-budi"), RecipientEntry(citizen_id="cit-budi")],
                )
        await self._enroll(program.id, RecipientEntry(citizen_id="cit-budi"))
        async with self.Session() as session:
            with self.assertRaises(DuplicateEntryError) as ctx:
                await enroll_recipients(session, ADMIN, program.id, [RecipientEntry(citizen_id="cit-budi")])
        self.assertEqual(ctx.exception.details["existing"], ["cit-budi"])

    async def test_unknown_citizen(self):
        program, _ = await self._program()
        async with self.Session() as session:
            with self.assertRaises(RecordNotFoundError):
                await enroll_recipients(session, ADMIN, program.id, [RecipientEntry(citizen_id="cit-nobody")])

    async def test_quota_is_enforced(self):
        program, _ = await self._program(quota=2)
        await self._enroll(program.id, RecipientEntry(citizen_id="cit-budi"))
        async with self.Session() as session:
            with self.assertRaises(QuotaExceededError) as ctx:
                await enroll_recipients(
                    session, ADMIN, program.id,
                    [RecipientEntry(citizen_id="cit-siti"), RecipientEntry(citizen_id="cit-agus")],
                )
            await session.rollback()
        self.assertIsInstance(ctx.exception, ResourceUnavailableError)
        async with self.Session() as session:
            stats = await program_stats(session, [program])
        self.assertEqual(stats[program.id].recipient_count, 1)
        self.assertEqual(stats[program.id].available_spots, 1)

    async def test_household_recipients(self):
        program, _ = await self._program(type=ProgramType.HOUSEHOLD)
        rows, _ = await self._enroll(program.id, RecipientEntry(family_id="fam-santoso"))
        self.assertEqual(rows[0].family_id, "fam-santoso")
        self.assertIsNone(rows[0].citizen_id)

    async def test_collection_and_stats(self):
        program, _ = await self._program()
        rows, _ = await self._enroll(
            program.id, RecipientEntry(citizen_id="cit-budi"), RecipientEntry(citizen_id="cit-siti")
        )
        handed_over = datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)
        async with self.Session() as session:
            row, event = await mark_as_collected(session, rows[0].id, ADMIN, note="Diambil sendiri", collected_at=handed_over)
            await session.commit()
        self.assertEqual(row.status, "collected")
        self.assertEqual(row.collected_at, handed_over)
        self.assertEqual(row.performed_by, "usr-admin")
        self.assertEqual(event.to_status, "collected")
        self.assertEqual(event.context["note"], "Diambil sendiri")

        async with self.Session() as session:
            _, again = await mark_as_collected(session, rows[0].id, ADMIN)
            stats = (await program_stats(session, [program]))[program.id]
        self.assertIsNone(again)
        self.assertEqual(stats.collected_count, 1)
        self.assertEqual(stats.collection_rate, 50.0)
        self.assertIs(stats.available_spots, UNLIMITED)

        async with self.Session() as session:
            row, _ = await mark_as_not_collected(session, rows[0].id, ADMIN, note="Salah input")
            await session.commit()
        self.assertEqual(row.status, "not_collected")
        self.assertIsNone(row.collected_at)

    async def test_citizen_cannot_mark_collected(self):
        program, _ = await self._program()
        rows, _ = await self._enroll(program.id, RecipientEntry(citizen_id="cit-budi"))
        async with self.Session() as session:
            with self.assertRaises(UnauthorizedTransitionError):
                await mark_as_collected(session, rows[0].id, BUDI)
