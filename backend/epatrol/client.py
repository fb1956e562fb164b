"""
Client wiring.

Builds the three components for one device session on top of the
database-backed store adapters.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from epatrol.auth.identity import SqlIdentityProvider, SqlPersonnelDirectory
from epatrol.config import Settings, get_settings
from epatrol.services.assignment_store import SqlAssignmentStore
from epatrol.services.assignment_tracker import AssignmentTracker
from epatrol.services.duty_engine import DutyEngine
from epatrol.services.identity_session import IdentitySession
from epatrol.services.interfaces import PositionSource
from epatrol.services.location_store import SqlLocationStore


@dataclass
class PatrolClient:
    session: IdentitySession
    assignments: AssignmentTracker
    duty: DutyEngine

    @classmethod
    def create(
        cls,
        position_source: PositionSource,
        settings: Optional[Settings] = None,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        access_token: Optional[str] = None,
    ) -> "PatrolClient":
        """
        Wire up a client. Nothing touches the network until the first call,
        so an unconfigured client can be built and will fail at login.
        """
        settings = settings or get_settings()
        session = IdentitySession(
            SqlIdentityProvider(session_maker, settings, access_token=access_token),
            SqlPersonnelDirectory(session_maker, settings),
            settings,
        )
        return cls(
            session=session,
            assignments=AssignmentTracker(session, SqlAssignmentStore(session_maker, settings)),
            duty=DutyEngine(session, SqlLocationStore(session_maker, settings), position_source, settings),
        )

    async def aclose(self) -> None:
        await self.duty.aclose()
