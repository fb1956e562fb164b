"""
In-process device position source.

Stands in for the handset's location service: answers permission prompts
and delivers fixes to subscribers on a dual trigger, every
`interval_seconds` or as soon as the device has moved
`min_distance_meters` since the last delivered sample, whichever comes
first. Used by the simulation script and the test suite.
"""

import asyncio
import logging
from typing import Optional

from epatrol.errors import PositionUnavailable
from epatrol.schemas.patrol import PermissionStatus, Position
from epatrol.services.interfaces import SampleCallback
from epatrol.utils.geo import haversine_meters
from epatrol.utils.timezone import utc_now

logger = logging.getLogger(__name__)


class SimulatedSubscription:
    """One watch on the simulated source."""

    def __init__(
        self,
        source: "SimulatedPositionSource",
        interval_seconds: float,
        min_distance_meters: float,
        on_sample: SampleCallback,
    ):
        self._source = source
        self.interval_seconds = interval_seconds
        self.min_distance_meters = min_distance_meters
        self.on_sample = on_sample
        self._active = True
        self._last_delivered: Optional[Position] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        self._timer = asyncio.create_task(self._run_timer(), name="position-timer")

    def cancel(self) -> None:
        self._active = False
        if self._timer and not self._timer.done():
            self._timer.cancel()

    def deliver(self, position: Position) -> None:
        if not self._active:
            return
        self._last_delivered = position
        self.on_sample(position)

    def offer(self, position: Position) -> None:
        """Distance trigger: deliver once the device moved far enough."""
        last = self._last_delivered
        if last is None:
            self.deliver(position)
            return
        moved = haversine_meters(last.latitude, last.longitude, position.latitude, position.longitude)
        if moved >= self.min_distance_meters:
            self.deliver(position)

    async def _run_timer(self) -> None:
        """Time trigger: re-report the current fix every interval."""
        while self._active:
            await asyncio.sleep(self.interval_seconds)
            fix = self._source.current_fix
            if fix is not None and self._active:
                self.deliver(fix.model_copy(update={"timestamp": utc_now()}))


class SimulatedPositionSource:
    """
    Position source driven by the caller.

    Permission answers are plain attributes so tests can flip them;
    `move_to()` feeds a new raw fix and `emit()` forces a sample out.
    """

    def __init__(
        self,
        foreground: PermissionStatus = PermissionStatus.GRANTED,
        background: PermissionStatus = PermissionStatus.GRANTED,
        initial_fix: Optional[Position] = None,
    ):
        self.foreground = foreground
        self.background = background
        self.current_fix = initial_fix
        self.permission_requests: list[str] = []
        self._subscriptions: list[SimulatedSubscription] = []

    @property
    def active_subscriptions(self) -> list[SimulatedSubscription]:
        return [s for s in self._subscriptions if s.active]

    async def request_foreground_permission(self) -> PermissionStatus:
        self.permission_requests.append("foreground")
        return self.foreground

    async def request_background_permission(self) -> PermissionStatus:
        self.permission_requests.append("background")
        return self.background

    async def get_once(self) -> Position:
        if self.current_fix is None:
            raise PositionUnavailable()
        return self.current_fix

    async def subscribe(
        self,
        interval_seconds: float,
        min_distance_meters: float,
        on_sample: SampleCallback,
    ) -> SimulatedSubscription:
        subscription = SimulatedSubscription(self, interval_seconds, min_distance_meters, on_sample)
        subscription.start()
        self._subscriptions.append(subscription)
        logger.debug(
            "Watching position every %ss / %sm", interval_seconds, min_distance_meters
        )
        return subscription

    async def unsubscribe(self, subscription: SimulatedSubscription) -> None:
        subscription.cancel()
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def move_to(
        self,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
        timestamp=None,
    ) -> Position:
        """Record a new raw fix and offer it to every subscriber."""
        fix = Position(
            latitude=latitude,
            longitude=longitude,
            accuracy=accuracy,
            speed=speed,
            heading=heading,
            timestamp=timestamp or utc_now(),
        )
        self.current_fix = fix
        for subscription in self.active_subscriptions:
            subscription.offer(fix)
        return fix

    def emit(self, position: Optional[Position] = None) -> None:
        """Push a sample to every subscriber regardless of the triggers."""
        position = position or self.current_fix
        if position is None:
            raise PositionUnavailable()
        self.current_fix = position
        for subscription in self.active_subscriptions:
            subscription.deliver(position)

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await self.unsubscribe(subscription)
