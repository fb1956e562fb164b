import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from epatrol.errors import (
    InvalidTransition,
    PermissionDenied,
    PositionUnavailable,
    TeardownFailure,
    Unauthenticated,
)
from epatrol.schemas.patrol import DutyState, PermissionStatus, Position
from epatrol.services.duty_engine import DutyEngine
from epatrol.services.location_store import SqlLocationStore
from epatrol.services.position_source import SimulatedPositionSource

T0 = datetime(2026, 10, 18, 1, 0, 0, tzinfo=timezone.utc)


def sample(lat, lng, accuracy=5.0, at=T0):
    return Position(latitude=lat, longitude=lng, accuracy=accuracy, timestamp=at)


class FaultyLocationStore(SqlLocationStore):
    """Location store with injectable failures."""

    def __init__(self, *args, failing_upserts=0, upsert_delay=0.0, fail_delete=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing_upserts = failing_upserts
        self.upsert_delay = upsert_delay
        self.fail_delete = fail_delete

    async def upsert_location(self, *args, **kwargs):
        if self.upsert_delay:
            await asyncio.sleep(self.upsert_delay)
        if self.failing_upserts:
            self.failing_upserts -= 1
            raise ConnectionRefusedError("store offline")
        return await super().upsert_location(*args, **kwargs)

    async def delete_location(self, principal_id):
        if self.fail_delete:
            raise ConnectionRefusedError("store offline")
        return await super().delete_location(principal_id)


@pytest.fixture()
def duty(logged_in):
    return logged_in.duty


async def test_starts_off_duty(duty):
    assert duty.state == DutyState.OFF_DUTY
    assert not duty.is_tracking


async def test_full_shift_replay(duty, position_source):
    steps = [
        (duty.start_duty, DutyState.ON_DUTY),
        (duty.take_break, DutyState.BREAK),
        (duty.resume_duty, DutyState.ON_DUTY),
        (duty.take_break, DutyState.BREAK),
        (duty.end_duty, DutyState.OFF_DUTY),
        (duty.start_duty, DutyState.ON_DUTY),
        (duty.end_duty, DutyState.OFF_DUTY),
    ]
    for transition, expected in steps:
        result = await transition()
        assert result.state == expected
        assert duty.state == expected

    assert position_source.active_subscriptions == []


@pytest.mark.parametrize("setup,illegal", [
    ([], "take_break"),
    ([], "resume_duty"),
    ([], "end_duty"),
    (["start_duty"], "start_duty"),
    (["start_duty"], "resume_duty"),
    (["start_duty", "take_break"], "take_break"),
    (["start_duty", "take_break"], "start_duty"),
])
async def test_illegal_transitions_leave_state_unchanged(duty, setup, illegal):
    for name in setup:
        await getattr(duty, name)()
    before = duty.state

    with pytest.raises(InvalidTransition):
        await getattr(duty, illegal)()
    assert duty.state == before


async def test_start_twice_keeps_one_subscription(duty, position_source):
    await duty.start_duty()
    with pytest.raises(InvalidTransition):
        await duty.start_duty()
    assert len(position_source.active_subscriptions) == 1


@pytest.mark.parametrize("foreground,background,asked", [
    (PermissionStatus.DENIED, PermissionStatus.GRANTED, ["foreground"]),
    (PermissionStatus.GRANTED, PermissionStatus.DENIED, ["foreground", "background"]),
])
async def test_permission_refused(duty, position_source, foreground, background, asked):
    position_source.foreground = foreground
    position_source.background = background

    with pytest.raises(PermissionDenied):
        await duty.start_duty()

    assert duty.state == DutyState.OFF_DUTY
    assert not duty.is_tracking
    assert position_source.active_subscriptions == []
    assert position_source.permission_requests == asked


async def test_permission_is_asked_on_every_start(duty, position_source):
    await duty.start_duty()
    await duty.end_duty()
    position_source.background = PermissionStatus.DENIED

    with pytest.raises(PermissionDenied):
        await duty.start_duty()
    assert duty.state == DutyState.OFF_DUTY


async def test_requires_login(client):
    for transition in (client.duty.start_duty, client.duty.take_break, client.duty.end_duty):
        with pytest.raises(Unauthenticated):
            await transition()
    with pytest.raises(Unauthenticated):
        await client.duty.reported_location()
    assert client.duty.state == DutyState.OFF_DUTY


async def test_sample_is_reported(duty, position_source, officer_id):
    await duty.start_duty()
    position_source.emit(sample(14.5995, 120.9842))
    await duty.join()

    record = await duty.reported_location()
    assert record.personnel_id == officer_id
    assert record.latitude == pytest.approx(14.5995)
    assert record.longitude == pytest.approx(120.9842)
    assert record.accuracy == 5.0
    assert duty.stats.samples_synced == 1


async def test_reporting_continues_on_break(duty, position_source):
    await duty.start_duty()
    await duty.take_break()
    position_source.emit(sample(14.6, 120.98))
    await duty.join()

    assert (await duty.reported_location()).latitude == pytest.approx(14.6)


async def test_unsynced_samples_collapse_to_newest(duty, position_source, session_maker, settings, officer_id):
    await duty.start_duty()
    position_source.emit(sample(14.601, 120.98, at=T0 + timedelta(seconds=2)))
    position_source.emit(sample(14.603, 120.98, at=T0 + timedelta(seconds=3)))
    # Arrives last but was taken first
    position_source.emit(sample(14.500, 120.90, at=T0))
    await duty.join()

    store = SqlLocationStore(session_maker, settings)
    assert await store.count_locations(officer_id) == 1
    record = await duty.reported_location()
    assert record.latitude == pytest.approx(14.603)
    assert duty.stats.samples_synced == 1
    assert duty.stats.samples_discarded == 2


async def test_samples_synced_one_by_one_keep_latest(duty, position_source):
    await duty.start_duty()
    position_source.emit(sample(14.603, 120.98, at=T0 + timedelta(seconds=3)))
    await duty.join()
    position_source.emit(sample(14.500, 120.90, at=T0))
    await duty.join()

    assert duty.stats.samples_synced == 2
    assert (await duty.reported_location()).latitude == pytest.approx(14.603)


async def test_missing_accuracy_is_reported_as_default(duty, position_source, settings):
    await duty.start_duty()
    position_source.emit(sample(14.6, 120.98, accuracy=None))
    await duty.join()

    assert (await duty.reported_location()).accuracy == settings.default_accuracy_meters


async def test_sync_failure_does_not_stop_loop(logged_in, position_source, session_maker, settings):
    store = FaultyLocationStore(session_maker, settings, failing_upserts=1)
    duty = DutyEngine(logged_in.session, store, position_source, settings)
    try:
        await duty.start_duty()
        position_source.emit(sample(14.5, 120.9, at=T0))
        await duty.join()

        assert duty.state == DutyState.ON_DUTY
        assert duty.stats.samples_failed == 1
        assert "store offline" in duty.stats.last_error
        assert await duty.reported_location() is None

        position_source.emit(sample(14.6, 120.98, at=T0 + timedelta(seconds=5)))
        await duty.join()
        assert (await duty.reported_location()).latitude == pytest.approx(14.6)
    finally:
        await duty.aclose()


async def test_stalled_sync_times_out(logged_in, position_source, session_maker, settings):
    fast = settings.model_copy(update={"remote_timeout_seconds": 0.05})
    store = FaultyLocationStore(session_maker, fast, upsert_delay=1.0)
    duty = DutyEngine(logged_in.session, store, position_source, fast)
    try:
        await duty.start_duty()
        position_source.emit(sample(14.5, 120.9))
        await duty.join()

        assert duty.stats.samples_failed == 1
        assert "timed out" in duty.stats.last_error
        assert duty.state == DutyState.ON_DUTY
    finally:
        await duty.aclose()


async def test_end_duty_is_not_held_up_by_stalled_samples(logged_in, position_source, session_maker, settings):
    fast = settings.model_copy(update={"remote_timeout_seconds": 0.1})
    store = FaultyLocationStore(session_maker, fast, upsert_delay=1.0)
    duty = DutyEngine(logged_in.session, store, position_source, fast)
    try:
        await duty.start_duty()
        position_source.emit(sample(14.5, 120.9, at=T0))
        await asyncio.sleep(0.01)  # first sync now in flight
        for i in range(1, 30):
            position_source.emit(sample(14.5 + i * 0.001, 120.9, at=T0 + timedelta(seconds=i)))

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await duty.end_duty()
        elapsed = loop.time() - started

        assert result.state == DutyState.OFF_DUTY
        assert elapsed < 0.5
        await duty.join()
        assert duty.stats.samples_failed == 1
        assert duty.stats.samples_discarded == 29
    finally:
        await duty.aclose()


async def test_aclose_fails_transition_in_progress(logged_in, session_maker, settings):
    class StalledPermissions(SimulatedPositionSource):
        async def request_foreground_permission(self):
            await asyncio.Event().wait()

    source = StalledPermissions()
    duty = DutyEngine(logged_in.session, SqlLocationStore(session_maker, settings), source, settings)

    pending = asyncio.create_task(duty.start_duty())
    await asyncio.sleep(0.01)
    await duty.aclose()

    with pytest.raises(RuntimeError):
        await asyncio.wait_for(pending, timeout=1)
    assert duty.state == DutyState.OFF_DUTY
    assert not duty.is_tracking
    await source.close()


async def test_end_duty_clears_record_and_subscription(duty, position_source):
    await duty.start_duty()
    subscription = position_source.active_subscriptions[0]
    position_source.emit(sample(14.5995, 120.9842))
    await duty.join()
    assert await duty.reported_location() is not None

    result = await duty.end_duty()

    assert result.previous == DutyState.ON_DUTY
    assert result.state == DutyState.OFF_DUTY
    assert result.warning is None
    assert not duty.is_tracking
    assert not subscription.active
    assert await duty.reported_location() is None

    # A late callback from the old subscription is dropped
    subscription.on_sample(sample(14.7, 121.0))
    await duty.join()
    assert await duty.reported_location() is None
    assert duty.stats.samples_discarded == 1


async def test_queued_samples_are_dropped_after_end_duty(duty, position_source):
    await duty.start_duty()
    on_sample = position_source.active_subscriptions[0].on_sample

    end = asyncio.create_task(duty.end_duty())
    await asyncio.sleep(0)
    on_sample(sample(14.7, 121.0))
    await end
    await duty.join()

    assert await duty.reported_location() is None


async def test_teardown_failure_is_a_warning(logged_in, position_source, session_maker, settings):
    store = FaultyLocationStore(session_maker, settings, fail_delete=True)
    duty = DutyEngine(logged_in.session, store, position_source, settings)
    try:
        await duty.start_duty()
        position_source.emit(sample(14.5995, 120.9842))
        await duty.join()

        result = await duty.end_duty()

        assert result.state == DutyState.OFF_DUTY
        assert isinstance(result.warning, TeardownFailure)
        assert duty.state == DutyState.OFF_DUTY
        assert not duty.is_tracking
        # Stale row is left behind; the dashboard ages it out via updated_at
        assert await duty.reported_location() is not None
    finally:
        await duty.aclose()


async def test_logout_while_on_break_tears_down(duty, position_source, session_maker, settings, officer_id):
    await duty.start_duty()
    await duty.take_break()
    position_source.emit(sample(14.5995, 120.9842))
    await duty.join()

    result = await duty.logout()

    assert result.previous == DutyState.BREAK
    assert result.state == DutyState.OFF_DUTY
    assert not duty.session.is_authenticated()
    assert position_source.active_subscriptions == []
    store = SqlLocationStore(session_maker, settings)
    assert await store.get_location(officer_id) is None


async def test_logout_is_idempotent(duty):
    first = await duty.logout()
    second = await duty.logout()
    assert first.state == second.state == DutyState.OFF_DUTY
    assert not duty.session.is_authenticated()


async def test_current_position(duty, position_source):
    position_source.move_to(14.5995, 120.9842, accuracy=5.0)
    fix = await duty.current_position()
    assert fix.latitude == 14.5995

    position_source.foreground = PermissionStatus.DENIED
    with pytest.raises(PermissionDenied):
        await duty.current_position()


async def test_current_position_without_fix(duty):
    with pytest.raises(PositionUnavailable):
        await duty.current_position()
