"""
Assignment tracker - the officer's single beat and its acceptance.

An officer has at most one current assignment. Having none is a normal
state (shown as "no beat assigned"), so it is returned as None rather
than raised.
"""

import logging
from typing import Optional
from uuid import UUID

from epatrol.errors import AssignmentNotFound, InvalidAssignmentState, Unauthenticated
from epatrol.models import AssignmentStatus, BeatAssignment
from epatrol.schemas.patrol import AssignedBeat, Assignment, Beat, Principal
from epatrol.services.identity_session import IdentitySession
from epatrol.services.interfaces import AssignmentStore
from epatrol.utils.remote import call_remote

logger = logging.getLogger(__name__)


class AssignmentTracker:

    def __init__(self, session: IdentitySession, store: AssignmentStore):
        self.session = session
        self._store = store
        self.settings = session.settings

    def _require_principal(self) -> Principal:
        principal = self.session.current_principal()
        if principal is None:
            raise Unauthenticated()
        return principal

    async def get_assigned_beat(self) -> Optional[AssignedBeat]:
        """
        Fetch the officer's current beat assignment.

        Returns None when nothing is assigned.

        Raises:
            Unauthenticated: nobody is signed in
            NetworkError: the store could not be reached after one retry
        """
        principal = self._require_principal()
        logger.info("Fetching beat assignment for %s", principal.email)

        row = await call_remote(
            lambda: self._store.get_assignment_for_principal(principal.id),
            timeout=self.settings.remote_timeout_seconds,
            retries=self.settings.read_retries,
            what="beat assignment lookup",
        )
        if row is None:
            logger.info("No beat assigned to %s", principal.email)
            return None

        assigned = self._to_assigned_beat(row)
        logger.info(
            "Found beat assignment: %s (status: %s)",
            assigned.beat.name,
            assigned.assignment.status.value,
        )
        return assigned

    async def accept_beat(self, assignment_id: UUID) -> Assignment:
        """
        Accept a pending assignment.

        Accepting an assignment that is already accepted succeeds without
        changing anything.

        Raises:
            Unauthenticated: nobody is signed in
            AssignmentNotFound: no such assignment for this officer
            InvalidAssignmentState: assignment is already active or completed
            NetworkError: the store could not be reached
        """
        principal = self._require_principal()
        timeout = self.settings.remote_timeout_seconds
        logger.info("Accepting beat assignment %s", assignment_id)

        changed = await call_remote(
            lambda: self._store.update_assignment_status(
                assignment_id,
                principal.id,
                AssignmentStatus.ACCEPTED,
                expected_status=AssignmentStatus.PENDING,
            ),
            timeout=timeout,
            what="beat acceptance",
        )

        row = await call_remote(
            lambda: self._store.get_assignment(assignment_id, principal.id),
            timeout=timeout,
            retries=self.settings.read_retries,
            what="beat assignment lookup",
        )
        if row is None:
            raise AssignmentNotFound()

        assignment = self._to_assigned_beat(row).assignment
        if assignment.status != AssignmentStatus.ACCEPTED:
            raise InvalidAssignmentState(
                f"Beat assignment is {assignment.status.value} and can no longer be accepted"
            )

        if changed:
            logger.info("Beat accepted successfully by %s", principal.full_name)
        else:
            logger.info("Beat assignment %s was already accepted", assignment_id)
        return assignment

    def _to_assigned_beat(self, row: BeatAssignment) -> AssignedBeat:
        """Join beat attributes onto the assignment, filling optional fields."""
        beat_row = row.beat
        status = AssignmentStatus(row.acceptance_status or AssignmentStatus.PENDING.value)

        beat = Beat(
            id=beat_row.id,
            name=beat_row.name,
            center_lat=beat_row.center_lat,
            center_lng=beat_row.center_lng,
            radius_meters=beat_row.radius_meters or self.settings.default_beat_radius_meters,
            address=beat_row.address or self.settings.default_beat_address,
            unit=beat_row.unit,
            sub_unit=beat_row.sub_unit,
            beat_status=beat_row.beat_status,
            duty_start_time=beat_row.duty_start_time,
            duty_end_time=beat_row.duty_end_time,
            created_at=beat_row.created_at or row.assigned_at,
        )

        assignment = Assignment(
            id=row.id,
            personnel_id=row.personnel_id,
            beat_id=beat_row.id,
            assigned_date=row.assigned_at.date(),
            start_time=beat_row.duty_start_time,
            end_time=beat_row.duty_end_time,
            status=status,
            accepted_at=row.accepted_at,
            created_at=row.assigned_at,
            updated_at=row.updated_at or row.assigned_at,
        )
        return AssignedBeat(beat=beat, assignment=assignment)
