"""
Location store backed by the `personnel_locations` table.

Writes are a single INSERT ... ON CONFLICT (personnel_id) DO UPDATE, so
concurrent or retried reports can never leave two rows for one officer.
The update only applies when the incoming sample is at least as new as
the stored one, so a delayed older sample cannot overwrite a newer one.

Rows are written as given: a missing accuracy is stored as NULL. The duty
engine fills in `default_accuracy_meters` before it reports a sample.
"""

import uuid
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite

from epatrol.database import SqlStore
from epatrol.errors import ConfigurationError
from epatrol.models import PersonnelLocation
from epatrol.utils.timezone import to_utc

# Dialects with INSERT ... ON CONFLICT support
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SqlLocationStore(SqlStore):

    async def upsert_location(
        self,
        principal_id: UUID,
        latitude: float,
        longitude: float,
        accuracy: Optional[float],
        timestamp: datetime,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
    ) -> None:
        async with self.session_maker() as db:
            dialect = db.get_bind().dialect.name
            insert = _UPSERT_INSERTS.get(dialect)
            if insert is None:
                raise ConfigurationError(f"Location upserts are not supported on {dialect}")

            stmt = insert(PersonnelLocation).values(
                id=uuid.uuid4(),
                personnel_id=principal_id,
                latitude=latitude,
                longitude=longitude,
                accuracy=accuracy,
                speed=speed,
                heading=heading,
                updated_at=to_utc(timestamp),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["personnel_id"],
                set_={
                    "latitude": stmt.excluded.latitude,
                    "longitude": stmt.excluded.longitude,
                    "accuracy": stmt.excluded.accuracy,
                    "speed": stmt.excluded.speed,
                    "heading": stmt.excluded.heading,
                    "updated_at": stmt.excluded.updated_at,
                },
                where=PersonnelLocation.updated_at <= stmt.excluded.updated_at,
            )
            await db.execute(stmt)
            await db.commit()

    async def delete_location(self, principal_id: UUID) -> None:
        async with self.session_maker() as db:
            await db.execute(
                delete(PersonnelLocation).where(PersonnelLocation.personnel_id == principal_id)
            )
            await db.commit()

    async def get_location(self, principal_id: UUID) -> Optional[PersonnelLocation]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(PersonnelLocation).where(PersonnelLocation.personnel_id == principal_id)
            )
            return result.scalar_one_or_none()

    async def count_locations(self, principal_id: UUID) -> int:
        """Number of rows held for an officer (0 or 1)."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(PersonnelLocation.id).where(PersonnelLocation.personnel_id == principal_id)
            )
            return len(result.all())
