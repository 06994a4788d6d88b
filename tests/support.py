"""
Shared fixtures: a throwaway file-backed SQLite database seeded with a small
village, and a mailer that records deliveries instead of sending them.
"""
import os
import tempfile
import unittest
from datetime import timedelta

from database import init_db, make_engine, make_sessionmaker
from models import Asset, Citizen, Family, MasterDocument, User
from services.lifecycle import Actor, Role
from utils.dates import utcnow

ADMIN = Actor(id="usr-admin", role=Role.ADMIN)
SUPERADMIN = Actor(id="usr-superadmin", role=Role.SUPERADMIN)
BUDI = Actor(id="usr-budi", role=Role.CITIZEN, citizen_id="cit-budi")
SITI = Actor(id="usr-siti", role=Role.CITIZEN, citizen_id="cit-siti")

BUDI_NIK = "3201010101800001"
SITI_NIK = "3201010101850002"


class RecordingMailer:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, recipient, template_id, context):
        if recipient.address in self.fail_for:
            raise ConnectionError("smtp connection refused")
        self.sent.append((recipient.address, template_id, dict(context)))

    def addresses(self, template_id=None):
        return [a for a, t, _ in self.sent if template_id is None or t == template_id]


def loan_window(days=3):
    start = utcnow() + timedelta(minutes=5)
    return start, start + timedelta(days=days)


async def seed(session):
    session.add_all([
        Family(id="fam-santoso", family_name="Santoso", kk_number="3201010101010001"),
        Family(id="fam-wijaya", family_name="Wijaya", kk_number="3201010101010002"),
    ])
    await session.flush()
    session.add_all([
        Citizen(
            id="cit-budi", nik=BUDI_NIK, full_name="Budi Santoso", email="budi@example.com",
            family_id="fam-santoso", family_status="head_of_household",
        ),
        Citizen(
            id="cit-siti", nik=SITI_NIK, full_name="Siti Santoso", email="siti@example.com",
            family_id="fam-santoso", family_status="spouse",
        ),
        Citizen(
            id="cit-agus", nik="3201010101900003", full_name="Agus Wijaya", email=None,
            family_id="fam-wijaya", family_status="head_of_household",
        ),
    ])
    await session.flush()
    session.add_all([
        User(id="usr-superadmin", name="Kepala Desa", email="kades@example.com", role="superadmin"),
        User(id="usr-admin", name="Sekretaris Desa", email="sekdes@example.com", role="admin"),
        User(id="usr-inactive", name="Mantan Admin", email="old@example.com", role="admin", status="inactive"),
        User(id="usr-budi", name="Budi Santoso", email="budi@example.com", role="citizen", citizen_id="cit-budi"),
        Asset(id="ast-tenda", code="TND-01", asset_name="Tenda Pleton"),
        Asset(id="ast-sound", code="SND-01", asset_name="Sound System"),
        MasterDocument(id="mdoc-domisili", document_name="Surat Keterangan Domisili"),
    ])
    await session.commit()


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Each test gets its own database file so separate sessions really contend."""

    async def asyncSetUp(self):
        fd, self.db_path = tempfile.mkstemp(suffix=".db")
        os.close(fd)
        self.engine = make_engine(f"sqlite+aiosqlite:///{self.db_path}")
        await init_db(self.engine)
        self.Session = make_sessionmaker(self.engine)
        async with self.Session() as session:
            await seed(session)

    async def asyncTearDown(self):
        await self.engine.dispose()
        os.remove(self.db_path)
