"""Personnel model - the directory of field officers."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from epatrol.database import Base
from epatrol.utils.timezone import db_now


class Personnel(Base):
    """
    Field officer.

    Shares its id with the AuthUser the officer signs in as.
    """

    __tablename__ = "personnel"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    rank: Mapped[str] = mapped_column(String(50), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_number: Mapped[str | None] = mapped_column(String(30))

    # Organisation
    province: Mapped[str | None] = mapped_column(String(100))
    unit: Mapped[str] = mapped_column(String(100), nullable=False)
    sub_unit: Mapped[str] = mapped_column(String(100), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=db_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=db_now,
        onupdate=db_now,
        nullable=False,
    )

    # Relationships
    assignments: Mapped[list["BeatAssignment"]] = relationship(
        "BeatAssignment",
        back_populates="personnel",
    )

    def __repr__(self) -> str:
        return f"<Personnel {self.rank} {self.full_name}>"
