"""AuthUser model - sign-in identities held by the identity provider."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from epatrol.database import Base
from epatrol.utils.timezone import db_now


class AuthUser(Base):
    """
    Sign-in identity.

    Kept apart from the personnel directory: an account can exist without a
    personnel record, which login reports as a distinct failure.
    """

    __tablename__ = "auth_users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=db_now,
        nullable=False,
    )
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime)

    def __repr__(self) -> str:
        return f"<AuthUser {self.email}>"
