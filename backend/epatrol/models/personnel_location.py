"""PersonnelLocation model - the live position of an on-duty officer."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from epatrol.database import Base


class PersonnelLocation(Base):
    """
    Latest known position of one officer.

    At most one row per officer (unique personnel_id); the dispatch
    dashboard reads these rows and uses updated_at as the liveness signal.
    Rows only exist while the officer is on duty.
    """

    __tablename__ = "personnel_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    personnel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("personnel.id"),
        unique=True,
        nullable=False,
    )

    # GPS coordinates
    latitude: Mapped[float] = mapped_column(Numeric(10, 8, asdecimal=False), nullable=False)
    longitude: Mapped[float] = mapped_column(Numeric(11, 8, asdecimal=False), nullable=False)
    accuracy: Mapped[float | None] = mapped_column(Float)
    speed: Mapped[float | None] = mapped_column(Float)
    heading: Mapped[float | None] = mapped_column(Float)

    # Device time of the sample (UTC)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<PersonnelLocation {self.latitude}, {self.longitude} @ {self.updated_at}>"
