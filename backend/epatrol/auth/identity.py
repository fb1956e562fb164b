"""
Identity provider and personnel directory backed by the remote database.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select, text

from epatrol.auth.jwt import create_access_token, decode_access_token
from epatrol.auth.password import verify_password
from epatrol.database import SqlStore
from epatrol.errors import AuthenticationError
from epatrol.models import AuthUser, Personnel
from epatrol.utils.timezone import db_now


class SqlIdentityProvider(SqlStore):
    """
    Signs officers in against `auth_users`.

    Holds the identity token of the signed-in principal; the token is the
    durable part of a sign-in and can be handed back via `access_token`
    to resume later.
    """

    def __init__(self, session_maker=None, settings=None, access_token: Optional[str] = None):
        super().__init__(session_maker, settings)
        self._token = access_token

    @property
    def access_token(self) -> Optional[str]:
        return self._token

    async def ping(self) -> None:
        async with self.session_maker() as db:
            await db.execute(text("SELECT 1"))

    async def authenticate(self, email: str, password: str) -> UUID:
        async with self.session_maker() as db:
            result = await db.execute(
                select(AuthUser).where(AuthUser.email == email.lower())
            )
            user = result.scalar_one_or_none()

            if not user or not verify_password(password, user.password_hash):
                raise AuthenticationError()

            if not user.is_active:
                raise AuthenticationError("Account is disabled")

            user.last_sign_in_at = db_now()
            await db.commit()
            user_id = user.id

        self._token = create_access_token(user_id, settings=self.settings)
        return user_id

    async def current_principal_id(self) -> Optional[UUID]:
        if not self._token:
            return None
        return decode_access_token(self._token, settings=self.settings)

    async def sign_out(self) -> None:
        # Tokens are stateless; dropping ours is the sign-out.
        self._token = None


class SqlPersonnelDirectory(SqlStore):
    """Looks up officer records in `personnel`."""

    async def get_personnel_by_id(self, personnel_id: UUID) -> Optional[Personnel]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(Personnel).where(Personnel.id == personnel_id)
            )
            return result.scalar_one_or_none()
