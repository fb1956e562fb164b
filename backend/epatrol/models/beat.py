"""Beat model - named patrol areas."""

import uuid
from datetime import datetime, time

from sqlalchemy import DateTime, Integer, Numeric, String, Text, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from epatrol.database import Base
from epatrol.utils.timezone import db_now


class Beat(Base):
    """
    Patrol area: a center point, a radius and a daily duty window.

    radius_meters and address are optional here; readers apply defaults.
    """

    __tablename__ = "beats"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)

    center_lat: Mapped[float] = mapped_column(Numeric(10, 8, asdecimal=False), nullable=False)
    center_lng: Mapped[float] = mapped_column(Numeric(11, 8, asdecimal=False), nullable=False)
    radius_meters: Mapped[int | None] = mapped_column(Integer)

    unit: Mapped[str] = mapped_column(String(100), nullable=False)
    sub_unit: Mapped[str] = mapped_column(String(100), nullable=False)
    beat_status: Mapped[str] = mapped_column(String(30), default="active", nullable=False)

    # Daily duty window (local time)
    duty_start_time: Mapped[time | None] = mapped_column(Time)
    duty_end_time: Mapped[time | None] = mapped_column(Time)

    created_at: Mapped[datetime | None] = mapped_column(DateTime, default=db_now)

    # Relationships
    assignments: Mapped[list["BeatAssignment"]] = relationship(
        "BeatAssignment",
        back_populates="beat",
    )

    def __repr__(self) -> str:
        return f"<Beat {self.name}>"
