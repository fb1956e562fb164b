"""
Seed the database with a demo officer, a beat and a pending assignment.

Run with: python -m scripts.seed_data   (from backend/, DATABASE_URL set)
"""

import asyncio
import uuid
from datetime import time

from sqlalchemy import select

from epatrol.auth.password import hash_password
from epatrol.config import get_settings
from epatrol.database import get_engine, get_session_maker, init_db
from epatrol.models import AuthUser, Beat, BeatAssignment, Personnel

DEMO_PASSWORD = "patrol-demo-1"

OFFICERS = [
    {
        "email": "officer@unit.gov",
        "rank": "PO2",
        "full_name": "Juan Dela Cruz",
        "province": "Metro Manila",
        "unit": "Manila Police District",
        "sub_unit": "Station 5 - Ermita",
    },
]

# Beats around Ermita / Rizal Park
BEATS = [
    {
        "name": "Rizal Park Beat",
        "address": "Roxas Blvd, Ermita, Manila",
        "center_lat": 14.5826,
        "center_lng": 120.9787,
        "radius_meters": 800,
        "unit": "Manila Police District",
        "sub_unit": "Station 5 - Ermita",
        "duty_start_time": time(8, 0),
        "duty_end_time": time(16, 0),
    },
]


async def seed_officer(db, data: dict) -> Personnel:
    result = await db.execute(select(Personnel).where(Personnel.email == data["email"]))
    personnel = result.scalar_one_or_none()
    if personnel:
        print(f"  ✓ {data['full_name']} exists")
        return personnel

    officer_id = uuid.uuid4()
    db.add(AuthUser(
        id=officer_id,
        email=data["email"],
        password_hash=hash_password(DEMO_PASSWORD),
    ))
    personnel = Personnel(id=officer_id, **data)
    db.add(personnel)
    await db.flush()
    print(f"  + Created: {data['rank']} {data['full_name']} ({data['email']})")
    return personnel


async def seed_beat(db, data: dict) -> Beat:
    result = await db.execute(select(Beat).where(Beat.name == data["name"]))
    beat = result.scalar_one_or_none()
    if beat:
        print(f"  ✓ {data['name']} exists")
        return beat

    beat = Beat(id=uuid.uuid4(), beat_status="active", **data)
    db.add(beat)
    await db.flush()
    print(f"  + Created: {data['name']}")
    return beat


async def seed_assignment(db, personnel: Personnel, beat: Beat) -> None:
    result = await db.execute(
        select(BeatAssignment).where(BeatAssignment.personnel_id == personnel.id)
    )
    if result.scalars().first():
        print(f"  ✓ {personnel.full_name} already has an assignment")
        return

    db.add(BeatAssignment(personnel_id=personnel.id, beat_id=beat.id))
    print(f"  + Assigned {personnel.full_name} to {beat.name} (pending)")


async def main():
    """Main seed function."""
    print("=" * 50)
    print("Seeding E-Patrol Database")
    print("=" * 50)

    settings = get_settings()
    session_maker = get_session_maker(settings)

    print("\nInitializing database...")
    await init_db(get_engine(settings))

    async with session_maker() as db:
        print("\nOfficers:")
        officers = [await seed_officer(db, data) for data in OFFICERS]

        print("\nBeats:")
        beats = [await seed_beat(db, data) for data in BEATS]

        print("\nAssignments:")
        for officer, beat in zip(officers, beats):
            await seed_assignment(db, officer, beat)

        await db.commit()

    print(f"\n✓ Seed data complete! Demo password: {DEMO_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(main())
