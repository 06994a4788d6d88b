"""Village events: capacity for restricted events and registration rules."""
from datetime import timedelta

from exceptions import (
    AlreadyFinalizedError,
    DomainValidationError,
    DuplicateEntryError,
    InvalidTransitionError,
    QuotaExceededError,
    RecordNotFoundError,
    UnauthorizedTransitionError,
)
from services.derived_state import UNLIMITED
from services.events import create_event, event_spots, register_participant, set_event_status
from services.workflows import EventStatus, EventType
from tests.support import ADMIN, BUDI, SITI, DatabaseTestCase
from utils.dates import utcnow


class TestEventService(DatabaseTestCase):
    async def _event(self, type=EventType.RESTRICTED, max_participants=1):
        start = utcnow() + timedelta(days=7)
        async with self.Session() as session:
            event, created = await create_event(
                session, ADMIN, "Kerja Bakti", type, start, start + timedelta(hours=4),
                max_participants=max_participants, location="Lapangan Desa",
            )
            await session.commit()
        return event, created

    async def test_create_event(self):
        event, created = await self._event()
        self.assertEqual(event.status, "pending")
        self.assertEqual(created.to_status, "created")
        self.assertEqual(created.context["location"], "Lapangan Desa")

    async def test_create_validation(self):
        start = utcnow()
        async with self.Session() as session:
            with self.assertRaises(DomainValidationError):
                await create_event(session, ADMIN, "Rapat", EventType.RESTRICTED, start, start + timedelta(hours=1))
            with self.assertRaises(DomainValidationError):
                await create_event(session, ADMIN, "Rapat", EventType.OPEN, start, start - timedelta(hours=1))
            with self.assertRaises(UnauthorizedTransitionError):
                await create_event(session, BUDI, "Rapat", EventType.OPEN, start, start + timedelta(hours=1))

    async def test_open_event_has_no_limit(self):
        event, _ = await self._event(type=EventType.OPEN, max_participants=50)
        self.assertIsNone(event.max_participants)
        async with self.Session() as session:
            await register_participant(session, BUDI, event.id, "cit-budi")
            await session.commit()
            self.assertIs(await event_spots(session, event), UNLIMITED)

    async def test_full_event_rejects_registration(self):
        event, _ = await self._event(max_participants=1)
        async with self.Session() as session:
            await register_participant(session, BUDI, event.id, "cit-budi")
            await session.commit()
            self.assertEqual(await event_spots(session, event), 0)
        async with self.Session() as session:
            with self.assertRaises(QuotaExceededError):
                await register_participant(session, SITI, event.id, "cit-siti")

    async def test_duplicate_and_foreign_registration(self):
        event, _ = await self._event(max_participants=5)
        async with self.Session() as session:
            await register_participant(session, ADMIN, event.id, "cit-budi")
            await session.commit()
        async with self.Session() as session:
            with self.assertRaises(DuplicateEntryError):
                await register_participant(session, BUDI, event.id, "cit-budi")
            with self.assertRaises(UnauthorizedTransitionError):
                await register_participant(session, BUDI, event.id, "cit-siti")

    async def test_status_lifecycle(self):
        event, _ = await self._event(max_participants=5)
        async with self.Session() as session:
            started, change = await set_event_status(session, event.id, EventStatus.ONGOING, ADMIN)
            await session.commit()
        self.assertEqual(started.status, "ongoing")
        self.assertEqual(change.from_status, "pending")
        async with self.Session() as session:
            _, again = await set_event_status(session, event.id, "ongoing", ADMIN)
        self.assertIsNone(again)
        async with self.Session() as session:
            with self.assertRaises(UnauthorizedTransitionError):
                await set_event_status(session, event.id, "finished", BUDI)

    async def test_finished_event_is_closed(self):
        event, _ = await self._event(max_participants=5)
        async with self.Session() as session:
            finished, _ = await set_event_status(session, event.id, "finished", ADMIN)
            await session.commit()
        self.assertEqual(finished.status, "finished")
        async with self.Session() as session:
            with self.assertRaises(InvalidTransitionError):
                await register_participant(session, BUDI, event.id, "cit-budi")
            with self.assertRaises(AlreadyFinalizedError):
                await set_event_status(session, event.id, "ongoing", ADMIN)
            with self.assertRaises(RecordNotFoundError):
                await set_event_status(session, "evt-missing", "ongoing", ADMIN)
