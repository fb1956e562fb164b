"""Assignment store backed by the `beat_personnel` and `beats` tables."""

from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import joinedload

from epatrol.database import SqlStore
from epatrol.models import AssignmentStatus, BeatAssignment
from epatrol.utils.timezone import db_now


class SqlAssignmentStore(SqlStore):

    async def get_assignment_for_principal(self, principal_id: UUID) -> Optional[BeatAssignment]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(BeatAssignment)
                .options(joinedload(BeatAssignment.beat))
                .where(BeatAssignment.personnel_id == principal_id)
                .order_by(BeatAssignment.assigned_at.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def get_assignment(self, assignment_id: UUID, principal_id: UUID) -> Optional[BeatAssignment]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(BeatAssignment)
                .options(joinedload(BeatAssignment.beat))
                .where(
                    BeatAssignment.id == assignment_id,
                    BeatAssignment.personnel_id == principal_id,
                )
            )
            return result.scalars().first()

    async def update_assignment_status(
        self,
        assignment_id: UUID,
        principal_id: UUID,
        new_status: AssignmentStatus,
        expected_status: AssignmentStatus,
    ) -> bool:
        """
        Move an assignment from expected_status to new_status.

        Scoped by both ids so officers can only touch their own rows. A null
        status counts as pending.
        """
        current = BeatAssignment.acceptance_status == expected_status.value
        if expected_status == AssignmentStatus.PENDING:
            current = current | BeatAssignment.acceptance_status.is_(None)

        now = db_now()
        values = {"acceptance_status": new_status.value, "updated_at": now}
        if new_status == AssignmentStatus.ACCEPTED:
            values["accepted_at"] = now

        async with self.session_maker() as db:
            result = await db.execute(
                update(BeatAssignment)
                .where(
                    BeatAssignment.id == assignment_id,
                    BeatAssignment.personnel_id == principal_id,
                    current,
                )
                .values(**values)
            )
            await db.commit()
            return result.rowcount > 0
