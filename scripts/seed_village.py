"""
Seed the village registry: families, citizens, admin accounts, loanable
assets and document types. Workflow records are created through the API.
Run: python -m scripts.seed_village
"""
import asyncio
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import AsyncSessionLocal, init_db
from models import Asset, Citizen, Family, MasterDocument, User


FAMILIES = [
    {"id": "fam-santoso", "family_name": "Santoso", "kk_number": "3201010101010001"},
    {"id": "fam-wijaya", "family_name": "Wijaya", "kk_number": "3201010101010002"},
]

CITIZENS = [
    {
        "id": "cit-budi",
        "nik": "3201010101800001",
        "full_name": "Budi Santoso",
        "email": "budi@example.com",
        "family_id": "fam-santoso",
        "family_status": "head_of_household",
    },
    {
        "id": "cit-siti",
        "nik": "3201010101850002",
        "full_name": "Siti Santoso",
        "email": "siti@example.com",
        "family_id": "fam-santoso",
        "family_status": "spouse",
    },
    {
        "id": "cit-agus",
        "nik": "3201010101900003",
        "full_name": "Agus Wijaya",
        "email": None,
        "family_id": "fam-wijaya",
        "family_status": "head_of_household",
    },
]

USERS = [
    {"id": "usr-superadmin", "name": "Kepala Desa", "email": "kades@example.com", "role": "superadmin"},
    {"id": "usr-admin", "name": "Sekretaris Desa", "email": "sekdes@example.com", "role": "admin"},
    {"id": "usr-budi", "name": "Budi Santoso", "email": "budi@example.com", "role": "citizen", "citizen_id": "cit-budi"},
]

ASSETS = [
    {"id": "ast-tenda-01", "code": "TND-01", "asset_name": "Tenda Pleton"},
    {"id": "ast-kursi-01", "code": "KRS-01", "asset_name": "Kursi Lipat (50 buah)"},
    {"id": "ast-sound-01", "code": "SND-01", "asset_name": "Sound System"},
]

MASTER_DOCUMENTS = [
    {"id": "mdoc-domisili", "document_name": "Surat Keterangan Domisili"},
    {"id": "mdoc-sktm", "document_name": "Surat Keterangan Tidak Mampu"},
    {"id": "mdoc-usaha", "document_name": "Surat Keterangan Usaha"},
]


async def _seed_table(session, model, rows, label):
    for data in rows:
        if await session.get(model, data["id"]) is not None:
            print(f"{label} {data['id']} already exists, skipping")
            continue
        session.add(model(**data))
        print(f"Seeded {label.lower()}: {data['id']}")
    await session.flush()


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        await _seed_table(session, Family, FAMILIES, "Family")
        await _seed_table(session, Citizen, CITIZENS, "Citizen")
        await _seed_table(session, User, USERS, "User")
        await _seed_table(session, Asset, ASSETS, "Asset")
        await _seed_table(session, MasterDocument, MASTER_DOCUMENTS, "Document type")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
