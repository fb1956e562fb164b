"""
Identity session - who is signed in on this device.

One IdentitySession per signed-in device session. It is an ordinary object
handed to the assignment tracker and the duty engine; several sessions can
live side by side in one process.
"""

import logging
from typing import Optional

from epatrol.config import Settings, get_settings
from epatrol.errors import (
    ConfigurationError,
    EPatrolError,
    ProfileNotFound,
)
from epatrol.schemas.patrol import Principal
from epatrol.services.interfaces import IdentityProvider, PersonnelDirectory
from epatrol.utils.remote import call_remote

logger = logging.getLogger(__name__)


class IdentitySession:
    """Holds the current principal in memory for the life of the process."""

    def __init__(
        self,
        identity_provider: IdentityProvider,
        personnel_directory: PersonnelDirectory,
        settings: Optional[Settings] = None,
    ):
        self._identity = identity_provider
        self._directory = personnel_directory
        self.settings = settings or get_settings()
        self._principal: Optional[Principal] = None

    def current_principal(self) -> Optional[Principal]:
        return self._principal

    def is_authenticated(self) -> bool:
        return self._principal is not None

    async def login(self, email: str, password: str) -> Principal:
        """
        Sign in and resolve the officer's personnel record.

        Raises:
            ConfigurationError: backend URL missing (checked before any I/O)
            NetworkError: backend unreachable or too slow
            AuthenticationError: bad credentials or disabled account
            ProfileNotFound: signed in, but no personnel record exists
        """
        if not self.settings.is_backend_configured:
            raise ConfigurationError()

        timeout = self.settings.remote_timeout_seconds
        email = email.strip().lower()
        logger.info("Attempting login for %s", email)

        await call_remote(
            self._identity.ping,
            timeout=timeout,
            retries=self.settings.read_retries,
            what="backend reachability check",
        )

        principal_id = await call_remote(
            lambda: self._identity.authenticate(email, password),
            timeout=timeout,
            what="sign-in",
        )

        try:
            record = await call_remote(
                lambda: self._directory.get_personnel_by_id(principal_id),
                timeout=timeout,
                retries=self.settings.read_retries,
                what="personnel lookup",
            )
        except EPatrolError:
            await self._abandon_sign_in()
            raise

        if record is None:
            logger.warning("Auth succeeded for %s but no personnel record exists", email)
            await self._abandon_sign_in()
            raise ProfileNotFound()

        self._principal = Principal.model_validate(record)
        logger.info("Login successful for %s", self._principal.full_name)
        return self._principal

    async def restore(self) -> Optional[Principal]:
        """
        Rebuild the principal from the provider's existing identity token.

        Returns None when there is no usable token or no personnel record.
        """
        if self._principal is not None:
            return self._principal
        if not self.settings.is_backend_configured:
            return None

        timeout = self.settings.remote_timeout_seconds
        principal_id = await call_remote(
            self._identity.current_principal_id,
            timeout=timeout,
            retries=self.settings.read_retries,
            what="identity lookup",
        )
        if principal_id is None:
            return None

        record = await call_remote(
            lambda: self._directory.get_personnel_by_id(principal_id),
            timeout=timeout,
            retries=self.settings.read_retries,
            what="personnel lookup",
        )
        if record is None:
            return None

        self._principal = Principal.model_validate(record)
        return self._principal

    async def logout(self) -> None:
        """Forget the principal. Always succeeds locally."""
        principal, self._principal = self._principal, None
        try:
            await call_remote(
                self._identity.sign_out,
                timeout=self.settings.remote_timeout_seconds,
                what="sign-out",
            )
        except Exception:
            logger.exception("Remote sign-out failed")
        if principal is not None:
            logger.info("Logged out %s", principal.full_name)

    async def _abandon_sign_in(self) -> None:
        try:
            await self._identity.sign_out()
        except Exception:
            logger.exception("Sign-out after failed login did not complete")
