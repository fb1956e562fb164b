"""BeatAssignment model - binds one officer to one beat."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from epatrol.database import Base
from epatrol.utils.timezone import db_now


class AssignmentStatus(str, Enum):
    """Acceptance lifecycle of a beat assignment."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    ACTIVE = "active"
    COMPLETED = "completed"


class BeatAssignment(Base):
    """
    Assignment row (`beat_personnel`).

    Created by dispatch; the client only moves it from pending to accepted.
    """

    __tablename__ = "beat_personnel"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    personnel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("personnel.id"),
        nullable=False,
        index=True,
    )
    beat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("beats.id"),
        nullable=False,
    )

    # Null reads as pending
    acceptance_status: Mapped[str | None] = mapped_column(
        String(20),
        default=AssignmentStatus.PENDING.value,
    )

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=db_now,
        nullable=False,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=db_now)

    # Relationships
    personnel: Mapped["Personnel"] = relationship("Personnel", back_populates="assignments")
    beat: Mapped["Beat"] = relationship("Beat", back_populates="assignments", lazy="joined")

    def __repr__(self) -> str:
        return f"<BeatAssignment {self.id} - {self.acceptance_status or 'pending'}>"
