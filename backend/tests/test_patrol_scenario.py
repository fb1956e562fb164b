"""Full shift: login, accept the beat, go on duty, report, end duty."""

from epatrol.models import AssignmentStatus
from epatrol.schemas.patrol import DutyState, Position
from epatrol.utils.timezone import utc_now

from conftest import OFFICER_EMAIL, OFFICER_PASSWORD, add_assignment


async def test_officer_shift(client, position_source, session_maker, officer_id):
    principal = await client.session.login(OFFICER_EMAIL, OFFICER_PASSWORD)
    assert principal.full_name == "Juan Dela Cruz"
    assert client.duty.state == DutyState.OFF_DUTY

    await add_assignment(session_maker, officer_id)
    assigned = await client.assignments.get_assigned_beat()
    assert assigned.assignment.status == AssignmentStatus.PENDING

    accepted = await client.assignments.accept_beat(assigned.assignment.id)
    assert accepted.status == AssignmentStatus.ACCEPTED
    again = await client.assignments.accept_beat(assigned.assignment.id)
    assert again.status == AssignmentStatus.ACCEPTED

    result = await client.duty.start_duty()
    assert result.state == DutyState.ON_DUTY
    assert len(position_source.active_subscriptions) == 1

    position_source.emit(Position(latitude=14.5995, longitude=120.9842, accuracy=5.0, timestamp=utc_now()))
    await client.duty.join()

    record = await client.duty.reported_location()
    assert (record.latitude, record.longitude, record.accuracy) == (14.5995, 120.9842, 5.0)

    result = await client.duty.end_duty()
    assert result.state == DutyState.OFF_DUTY
    assert result.warning is None
    assert await client.duty.reported_location() is None
    assert position_source.active_subscriptions == []
