"""
Duty engine - duty-state machine and background location reporting.

States and transitions:

    OFF_DUTY --start_duty--> ON_DUTY       arm the reporting loop
    ON_DUTY  --take_break--> BREAK         loop keeps reporting
    BREAK    --resume_duty-> ON_DUTY
    ON_DUTY|BREAK --end_duty--> OFF_DUTY   disarm, then clear the live location
    any      --logout-->     OFF_DUTY      as end_duty, then sign out

Transitions and position samples are handled by a single worker task, so
a sample can never race a transition. Transitions queue in submission
order and always run before a waiting sample. Samples do not queue: the
engine holds at most one unsynced sample and a newer one replaces it, so a
stalled store delays a transition by one sync at most. Each armed
subscription gets a new generation number; samples carrying an older
generation are dropped, which makes disarm take effect immediately.

A failed location sync is logged and counted, never raised: the next
sample supersedes it and the duty state must not flap on network trouble.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from epatrol.config import Settings
from epatrol.errors import (
    EPatrolError,
    InvalidTransition,
    PermissionDenied,
    PositionUnavailable,
    SyncFailure,
    TeardownFailure,
    Unauthenticated,
)
from epatrol.schemas.patrol import (
    DutyState,
    LocationRecord,
    PermissionStatus,
    Position,
    Principal,
    TrackingStats,
    TransitionResult,
)
from epatrol.services.identity_session import IdentitySession
from epatrol.services.interfaces import LocationStore, PositionSource, SampleCallback, Subscription
from epatrol.utils.remote import call_remote
from epatrol.utils.timezone import to_utc, utc_now

logger = logging.getLogger(__name__)


def _reason(exc: Exception) -> str:
    if isinstance(exc, EPatrolError):
        return exc.detail or exc.message
    return str(exc) or type(exc).__name__


@dataclass
class _Transition:
    handler: Callable[[], Awaitable[TransitionResult]]
    future: asyncio.Future


@dataclass
class _Sample:
    generation: int
    position: Position


class DutyEngine:
    """One engine per signed-in session. Starts OFF_DUTY."""

    def __init__(
        self,
        session: IdentitySession,
        location_store: LocationStore,
        position_source: PositionSource,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self._store = location_store
        self._source = position_source
        self.settings = settings or session.settings

        self._state = DutyState.OFF_DUTY
        self._subscription: Optional[Subscription] = None
        self._generation = 0
        self._reporting_as: Optional[UUID] = None
        self._stats = TrackingStats()

        self._transitions: deque[_Transition] = deque()
        self._pending_sample: Optional[_Sample] = None
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> DutyState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._subscription is not None

    @property
    def stats(self) -> TrackingStats:
        return self._stats.model_copy()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the command worker (done implicitly by every transition)."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="duty-engine")

    async def join(self) -> None:
        """Wait until every queued transition and the pending sample have been handled."""
        await self._idle.wait()

    async def aclose(self) -> None:
        """
        Stop the worker, then stop reporting. Does not touch the remote record.

        Transitions that are running or still queued fail with RuntimeError.
        """
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        while self._transitions:
            command = self._transitions.popleft()
            if not command.future.done():
                command.future.set_exception(RuntimeError("Duty engine closed"))
        self._pending_sample = None

        await self._disarm()
        self._idle.set()

    async def __aenter__(self) -> "DutyEngine":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start_duty(self) -> TransitionResult:
        """
        Go on duty and start reporting position.

        Raises:
            Unauthenticated: nobody is signed in
            InvalidTransition: not currently off duty
            PermissionDenied: foreground or background location refused
            PositionUnavailable: the position source could not be watched
        """
        return await self._submit(self._do_start_duty)

    async def take_break(self) -> TransitionResult:
        return await self._submit(self._do_take_break)

    async def resume_duty(self) -> TransitionResult:
        return await self._submit(self._do_resume_duty)

    async def end_duty(self) -> TransitionResult:
        """
        Go off duty: stop reporting, then clear the live location.

        If clearing fails the officer is still off duty; the result carries
        a TeardownFailure warning instead of raising.
        """
        return await self._submit(self._do_end_duty)

    async def logout(self) -> TransitionResult:
        """End duty if needed, then sign out. Safe to call repeatedly."""
        return await self._submit(self._do_logout)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def current_position(self) -> Position:
        """One-shot fix, after the same permission check as start_duty."""
        self._require_principal()
        await self._check_permissions()
        try:
            return await asyncio.wait_for(
                self._source.get_once(),
                timeout=self.settings.remote_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise PositionUnavailable("Timed out waiting for a location fix") from e

    async def reported_location(self) -> Optional[LocationRecord]:
        """The officer's live location row as the dashboard sees it."""
        principal = self._require_principal()
        row = await call_remote(
            lambda: self._store.get_location(principal.id),
            timeout=self.settings.remote_timeout_seconds,
            retries=self.settings.read_retries,
            what="location lookup",
        )
        if row is None:
            return None
        return LocationRecord.model_validate(row)

    # ------------------------------------------------------------------
    # Command worker
    # ------------------------------------------------------------------

    async def _submit(self, handler: Callable[[], Awaitable[TransitionResult]]) -> TransitionResult:
        self.start()
        future = asyncio.get_running_loop().create_future()
        self._transitions.append(_Transition(handler, future))
        self._notify()
        return await future

    def _notify(self) -> None:
        self._idle.clear()
        self._wakeup.set()

    def _sample_callback(self, generation: int) -> SampleCallback:
        def on_sample(position: Position) -> None:
            self._offer_sample(_Sample(generation, position))

        return on_sample

    def _offer_sample(self, sample: _Sample) -> None:
        """Keep only the newest unsynced sample of the current generation."""
        if sample.generation != self._generation:
            self._stats.samples_discarded += 1
            logger.debug("Discarded sample from a disarmed subscription")
            return

        pending = self._pending_sample
        if pending is None or pending.generation != sample.generation:
            self._pending_sample = sample
        else:
            superseded = sample
            if to_utc(sample.position.timestamp) >= to_utc(pending.position.timestamp):
                superseded, self._pending_sample = pending, sample
            self._stats.samples_discarded += 1
            logger.debug("Dropped superseded sample taken at %s", superseded.position.timestamp)
        self._notify()

    async def _run(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            while True:
                if self._transitions:
                    await self._apply(self._transitions.popleft())
                elif self._pending_sample is not None:
                    sample, self._pending_sample = self._pending_sample, None
                    await self._sync_sample(sample)
                else:
                    break
            self._idle.set()

    async def _apply(self, command: _Transition) -> None:
        try:
            result: Any = await command.handler()
        except asyncio.CancelledError:
            if not command.future.done():
                command.future.set_exception(RuntimeError("Duty engine closed"))
            raise
        except Exception as e:
            if not command.future.done():
                command.future.set_exception(e)
            return
        if not command.future.done():
            command.future.set_result(result)

    # ------------------------------------------------------------------
    # Transition handlers (run on the worker only)
    # ------------------------------------------------------------------

    async def _do_start_duty(self) -> TransitionResult:
        principal = self._require_principal()
        self._expect(DutyState.OFF_DUTY, "start duty")
        await self._check_permissions()
        await self._arm(principal)
        return self._set_state(DutyState.ON_DUTY, principal)

    async def _do_take_break(self) -> TransitionResult:
        principal = self._require_principal()
        self._expect(DutyState.ON_DUTY, "take a break")
        return self._set_state(DutyState.BREAK, principal)

    async def _do_resume_duty(self) -> TransitionResult:
        principal = self._require_principal()
        self._expect(DutyState.BREAK, "resume duty")
        return self._set_state(DutyState.ON_DUTY, principal)

    async def _do_end_duty(self) -> TransitionResult:
        principal = self._require_principal()
        if self._state == DutyState.OFF_DUTY:
            raise InvalidTransition("Cannot end duty while off duty")
        warning = await self._teardown(principal.id)
        return self._set_state(DutyState.OFF_DUTY, principal, warning)

    async def _do_logout(self) -> TransitionResult:
        principal = self.session.current_principal()
        warning = None
        if principal is not None and self._state != DutyState.OFF_DUTY:
            warning = await self._teardown(principal.id)
        else:
            await self._disarm()
        result = self._set_state(DutyState.OFF_DUTY, principal, warning)
        await self.session.logout()
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_principal(self) -> Principal:
        principal = self.session.current_principal()
        if principal is None:
            raise Unauthenticated()
        return principal

    def _expect(self, state: DutyState, action: str) -> None:
        if self._state != state:
            raise InvalidTransition(
                f"Cannot {action} while {self._state.value.replace('_', ' ')}"
            )

    def _set_state(
        self,
        state: DutyState,
        principal: Optional[Principal],
        warning: Optional[TeardownFailure] = None,
    ) -> TransitionResult:
        previous, self._state = self._state, state
        if previous != state:
            name = principal.full_name if principal else "unknown"
            logger.info("Status updated for %s: %s", name, state.value)
        return TransitionResult(previous=previous, state=state, warning=warning)

    async def _check_permissions(self) -> None:
        """Both tiers must be granted in this call."""
        try:
            foreground = await self._source.request_foreground_permission()
            if foreground != PermissionStatus.GRANTED:
                raise PermissionDenied("Foreground location permission not granted")

            background = await self._source.request_background_permission()
            if background != PermissionStatus.GRANTED:
                raise PermissionDenied("Background location permission not granted")
        except PermissionDenied:
            raise
        except Exception as e:
            logger.exception("Permission request error")
            raise PermissionDenied() from e

    async def _arm(self, principal: Principal) -> None:
        if self._subscription is not None:
            return

        self._generation += 1
        try:
            self._subscription = await self._source.subscribe(
                self.settings.tracking_interval_seconds,
                self.settings.tracking_min_distance_meters,
                self._sample_callback(self._generation),
            )
        except EPatrolError:
            raise
        except Exception as e:
            logger.exception("Start tracking error")
            raise PositionUnavailable("Failed to start location tracking") from e

        self._reporting_as = principal.id
        logger.info(
            "GPS tracking started (every %ss or %sm)",
            self.settings.tracking_interval_seconds,
            self.settings.tracking_min_distance_meters,
        )

    async def _disarm(self) -> None:
        # Bumping the generation invalidates samples already queued.
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        self._reporting_as = None
        if subscription is None:
            return
        try:
            await self._source.unsubscribe(subscription)
        except Exception:
            logger.exception("Stop tracking error")
        logger.info("GPS tracking stopped")

    async def _teardown(self, principal_id: UUID) -> Optional[TeardownFailure]:
        await self._disarm()
        try:
            await call_remote(
                lambda: self._store.delete_location(principal_id),
                timeout=self.settings.remote_timeout_seconds,
                what="location clear",
            )
        except Exception as e:
            warning = TeardownFailure(detail=_reason(e))
            logger.warning("Error clearing location data: %s", warning.describe())
            return warning
        logger.info("Location data cleared on end duty")
        return None

    async def _sync_sample(self, sample: _Sample) -> None:
        principal_id = self._reporting_as
        if (
            sample.generation != self._generation
            or principal_id is None
            or self._state == DutyState.OFF_DUTY
        ):
            self._stats.samples_discarded += 1
            logger.debug("Discarded sample from a disarmed subscription")
            return

        position = sample.position
        accuracy = position.accuracy
        if accuracy is None:
            accuracy = self.settings.default_accuracy_meters
        try:
            await call_remote(
                lambda: self._store.upsert_location(
                    principal_id,
                    position.latitude,
                    position.longitude,
                    accuracy,
                    position.timestamp,
                    speed=position.speed,
                    heading=position.heading,
                ),
                timeout=self.settings.remote_timeout_seconds,
                what="location sync",
            )
        except Exception as e:
            failure = SyncFailure(detail=_reason(e))
            self._stats.samples_failed += 1
            self._stats.last_error = failure.describe()
            logger.warning("GPS update error: %s", failure.describe())
            return

        self._stats.samples_synced += 1
        self._stats.last_synced_at = utc_now()
        logger.debug(
            "GPS location updated: %s, %s (accuracy %s)",
            position.latitude,
            position.longitude,
            accuracy,
        )
