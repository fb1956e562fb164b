import uuid
from datetime import datetime, time

import pytest
from sqlalchemy.pool import StaticPool

from epatrol.auth.password import hash_password
from epatrol.client import PatrolClient
from epatrol.config import Settings
from epatrol.database import build_engine, build_session_maker, init_db
from epatrol.models import AuthUser, Beat, BeatAssignment, Personnel
from epatrol.services.position_source import SimulatedPositionSource

OFFICER_EMAIL = "officer@unit.gov"
OFFICER_PASSWORD = "correct-pw"


@pytest.fixture()
def settings():
    # Long interval: samples only arrive when a test emits them.
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        tracking_interval_seconds=3600,
        tracking_min_distance_meters=5,
        remote_timeout_seconds=2,
        read_retries=1,
    )


@pytest.fixture()
async def session_maker():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield build_session_maker(engine)
    await engine.dispose()


async def add_officer(
    session_maker,
    email=OFFICER_EMAIL,
    password=OFFICER_PASSWORD,
    full_name="Juan Dela Cruz",
    with_personnel=True,
    is_active=True,
):
    officer_id = uuid.uuid4()
    async with session_maker() as db:
        db.add(AuthUser(
            id=officer_id,
            email=email,
            password_hash=hash_password(password),
            is_active=is_active,
        ))
        if with_personnel:
            db.add(Personnel(
                id=officer_id,
                email=email,
                rank="PO2",
                full_name=full_name,
                unit="Manila Police District",
                sub_unit="Station 5",
            ))
        await db.commit()
    return officer_id


async def add_assignment(
    session_maker,
    personnel_id,
    status="pending",
    radius_meters=None,
    address=None,
    assigned_at=None,
):
    beat_id = uuid.uuid4()
    assignment_id = uuid.uuid4()
    async with session_maker() as db:
        db.add(Beat(
            id=beat_id,
            name="Rizal Park Beat",
            center_lat=14.5826,
            center_lng=120.9787,
            radius_meters=radius_meters,
            address=address,
            unit="Manila Police District",
            sub_unit="Station 5",
            beat_status="active",
            duty_start_time=time(8, 0),
            duty_end_time=time(16, 0),
        ))
        db.add(BeatAssignment(
            id=assignment_id,
            personnel_id=personnel_id,
            beat_id=beat_id,
            acceptance_status=status,
            assigned_at=assigned_at or datetime(2026, 10, 18, 7, 30),
        ))
        await db.commit()
    return assignment_id


@pytest.fixture()
async def officer_id(session_maker):
    return await add_officer(session_maker)


@pytest.fixture()
async def position_source():
    source = SimulatedPositionSource()
    yield source
    await source.close()


@pytest.fixture()
async def client(settings, session_maker, position_source, officer_id):
    c = PatrolClient.create(position_source, settings=settings, session_maker=session_maker)
    yield c
    await c.aclose()


@pytest.fixture()
async def logged_in(client):
    await client.session.login(OFFICER_EMAIL, OFFICER_PASSWORD)
    return client
