"""
Collaborator interfaces.

The duty core talks to the identity provider, the personnel directory,
the assignment store, the location store and the device position source
only through these protocols.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

from epatrol.models import AssignmentStatus, BeatAssignment, Personnel, PersonnelLocation
from epatrol.schemas.patrol import PermissionStatus, Position

SampleCallback = Callable[[Position], None]


class IdentityProvider(Protocol):
    async def ping(self) -> None:
        """Raise if the provider cannot be reached."""

    async def authenticate(self, email: str, password: str) -> UUID:
        """Sign in and return the principal id. Raises AuthenticationError."""

    async def current_principal_id(self) -> Optional[UUID]: ...

    async def sign_out(self) -> None: ...


class PersonnelDirectory(Protocol):
    async def get_personnel_by_id(self, personnel_id: UUID) -> Optional[Personnel]: ...


class AssignmentStore(Protocol):
    async def get_assignment_for_principal(self, principal_id: UUID) -> Optional[BeatAssignment]:
        """Latest assignment for the principal with its beat loaded."""

    async def get_assignment(self, assignment_id: UUID, principal_id: UUID) -> Optional[BeatAssignment]: ...

    async def update_assignment_status(
        self,
        assignment_id: UUID,
        principal_id: UUID,
        new_status: AssignmentStatus,
        expected_status: AssignmentStatus,
    ) -> bool:
        """Conditional status change. Returns False when no row matched."""


class LocationStore(Protocol):
    async def upsert_location(
        self,
        principal_id: UUID,
        latitude: float,
        longitude: float,
        accuracy: Optional[float],
        timestamp: datetime,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
    ) -> None: ...

    async def delete_location(self, principal_id: UUID) -> None: ...

    async def get_location(self, principal_id: UUID) -> Optional[PersonnelLocation]: ...


class Subscription(Protocol):
    @property
    def active(self) -> bool: ...


class PositionSource(Protocol):
    async def request_foreground_permission(self) -> PermissionStatus: ...

    async def request_background_permission(self) -> PermissionStatus: ...

    async def get_once(self) -> Position: ...

    async def subscribe(
        self,
        interval_seconds: float,
        min_distance_meters: float,
        on_sample: SampleCallback,
    ) -> Subscription:
        """Deliver samples every interval or after min_distance_meters of movement."""

    async def unsubscribe(self, subscription: Subscription) -> None: ...
