"""Health sync controller: owns the HealthKit refresh lifecycle.

One controller instance corresponds to one mounted session:

1. ``start()`` computes availability (once), requests permission and, if
   granted, performs the first fetch.
2. While available and authorized, a RefreshHandle re-fetches every
   ``refresh_interval`` seconds and whenever the app returns to the
   foreground.
3. ``close()`` releases the handle; nothing is fetched or written after it.

State transitions::

    UNINITIALIZED → REQUESTING_PERMISSION → UNAUTHORIZED
                                          → FETCHING ⇄ IDLE
    UNINITIALIZED → DISABLED            (unsupported platform / unavailable)
    any           → TORN_DOWN           (close)

Everything runs on one event loop.  Overlapping fetches (timer tick racing a
manual refresh or a resume) are allowed; each completed fetch replaces the
whole snapshot, so the last one to finish wins.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable

from src.healthkit.base import LatestVitals, WorkoutRecord
from src.healthkit.fetcher import VitalsFetcher
from src.healthkit.gateway import HealthKitGateway
from src.healthkit.lifecycle import AppState, AppStateMonitor, is_foreground_resume

logger = logging.getLogger("heartsense.healthkit.controller")

REFRESH_INTERVAL_SECONDS = 300.0
RECENT_WORKOUTS_LIMIT = 20

SleepFn = Callable[[float], Awaitable[Any]]
StateListener = Callable[["SyncState"], Any]


@dataclass(frozen=True)
class SyncState:
    """Snapshot of what the controller currently knows.

    Attributes:
        is_available:  HealthKit is usable on this device (fixed per session).
        is_authorized: The user granted read access.
        vitals:        Latest vitals snapshot, None until the first fetch.
        workouts:      Recent workouts, most recent first.
        is_loading:    True until initialization has finished.
    """

    is_available: bool
    is_authorized: bool = False
    vitals: LatestVitals | None = None
    workouts: tuple[WorkoutRecord, ...] = ()
    is_loading: bool = True


class ControllerPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    REQUESTING_PERMISSION = "requesting_permission"
    UNAUTHORIZED = "unauthorized"
    FETCHING = "fetching"
    IDLE = "idle"
    TORN_DOWN = "torn_down"


class RefreshHandle:
    """Recurring timer plus foreground-resume subscription.

    Acquired in one step and released in one step, so the pair cannot leak
    across remounts.  Ticks and resumes spawn ``on_refresh`` as a task; an
    in-flight refresh is not cancelled by ``release()``.
    """

    def __init__(
        self,
        on_refresh: Callable[[], Awaitable[None]],
        app_state: AppStateMonitor | None,
        interval: float,
        sleep: SleepFn,
    ) -> None:
        self._on_refresh = on_refresh
        self._interval = interval
        self._sleep = sleep
        self._pending: set[asyncio.Task] = set()
        self._released = False
        self._timer = asyncio.ensure_future(self._run_timer())
        self._subscription = app_state.add_listener(self._on_app_state) if app_state else None

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pending(self) -> frozenset[asyncio.Task]:
        return frozenset(self._pending)

    async def _run_timer(self) -> None:
        while not self._released:
            await self._sleep(self._interval)
            if self._released:
                return
            logger.debug("Refresh timer tick")
            self._spawn()

    def _on_app_state(self, previous: AppState, next_state: AppState) -> None:
        if self._released or not is_foreground_resume(previous, next_state):
            return
        logger.debug("App returned to foreground, refreshing")
        self._spawn()

    def _spawn(self) -> None:
        task = asyncio.ensure_future(self._on_refresh())
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Background refresh failed: %s", task.exception())

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._timer.cancel()
        if self._subscription is not None:
            self._subscription.remove()
        logger.debug("Refresh handle released")


class HealthSyncController:
    """Drive availability, permission and periodic fetching for one session.

    Usage::

        controller = HealthSyncController(gateway, fetcher, app_state)
        async with controller:
            ...
            print(controller.state.vitals)

    Args:
        gateway:          Availability/permission gateway.
        fetcher:          Vitals/workout fetcher bound to the same provider.
        app_state:        Host lifecycle notifications (None: no resume refresh).
        refresh_interval: Seconds between scheduled fetches.
        workouts_limit:   How many recent workouts each fetch asks for.
        sleep:            Coroutine used to wait between ticks (tests pass a
                          virtual clock here).
        on_update:        Called with each new SyncState; may be async.
    """

    def __init__(
        self,
        gateway: HealthKitGateway,
        fetcher: VitalsFetcher,
        app_state: AppStateMonitor | None = None,
        *,
        refresh_interval: float = REFRESH_INTERVAL_SECONDS,
        workouts_limit: int = RECENT_WORKOUTS_LIMIT,
        sleep: SleepFn | None = None,
        on_update: StateListener | None = None,
    ) -> None:
        self._gateway = gateway
        self._fetcher = fetcher
        self._app_state = app_state
        self._refresh_interval = refresh_interval
        self._workouts_limit = workouts_limit
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._listeners: list[StateListener] = [on_update] if on_update else []
        self._listener_tasks: set[asyncio.Task] = set()

        self._state = SyncState(is_available=gateway.check_availability())
        self._refresh_handle: RefreshHandle | None = None
        self._cycles = itertools.count(1)
        self._in_flight = 0
        self._started = False
        self._initialized = False
        self._requesting = False
        self._closed = False

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def refresh_handle(self) -> RefreshHandle | None:
        return self._refresh_handle

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def phase(self) -> ControllerPhase:
        if self._closed:
            return ControllerPhase.TORN_DOWN
        if self._requesting:
            return ControllerPhase.REQUESTING_PERMISSION
        if not self._initialized:
            return ControllerPhase.UNINITIALIZED
        if not self._state.is_available:
            return ControllerPhase.DISABLED
        if self._in_flight:
            return ControllerPhase.FETCHING
        if not self._state.is_authorized:
            return ControllerPhase.UNAUTHORIZED
        return ControllerPhase.IDLE

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        """Initialize once per session (the equivalent of mounting)."""
        if self._started or self._closed:
            return
        self._started = True
        if not self._gateway.is_supported_platform:
            logger.info("HealthKit not supported on this platform, sync disabled")
            self._initialized = True
            self._set_state(is_loading=False)
            return
        await self.initialize()

    async def initialize(self) -> None:
        """Request permission and, if granted, fetch the first snapshot.

        Always ends with ``is_loading`` False, whatever the outcome.
        """
        if self._closed:
            return
        if not self._gateway.is_supported_platform or not self._state.is_available:
            logger.info("HealthKit unavailable, sync disabled for this session")
            self._initialized = True
            self._set_state(is_loading=False)
            self._sync_refresh_handle()
            return

        self._requesting = True
        try:
            granted = await self._gateway.request_permissions()
        finally:
            self._requesting = False
        self._initialized = True

        if self._closed:
            return
        self._set_state(is_authorized=granted)

        if granted:
            await self._fetch_data()
        else:
            logger.info("HealthKit access not granted, no data will be fetched")

        self._set_state(is_loading=False)
        self._sync_refresh_handle()

    async def refresh(self) -> None:
        """Fetch immediately.  A no-op when HealthKit is unavailable."""
        await self._fetch_data()

    def close(self) -> None:
        """Tear down: release the timer and listener, stop writing state."""
        if self._closed:
            return
        self._closed = True
        self._release_refresh_handle()
        logger.info("Health sync controller closed")

    async def __aenter__(self) -> HealthSyncController:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_data(self) -> None:
        if not self._state.is_available or self._closed:
            return

        cycle = next(self._cycles)
        self._in_flight += 1
        try:
            vitals, workouts = await asyncio.gather(
                self._fetcher.fetch_latest_vitals(),
                self._fetcher.fetch_recent_workouts(self._workouts_limit),
            )
        except Exception as exc:
            logger.warning("Fetch cycle %d failed, keeping previous snapshot: %s", cycle, exc)
            return
        finally:
            self._in_flight -= 1

        if self._closed:
            logger.debug("Fetch cycle %d finished after close, discarded", cycle)
            return

        self._set_state(vitals=vitals, workouts=tuple(workouts))
        logger.debug("Fetch cycle %d: %d workouts", cycle, len(workouts))

    def _sync_refresh_handle(self) -> None:
        should_run = (
            not self._closed and self._state.is_available and self._state.is_authorized
        )
        if should_run and self._refresh_handle is None:
            self._refresh_handle = RefreshHandle(
                self._fetch_data, self._app_state, self._refresh_interval, self._sleep
            )
            logger.info("Scheduled HealthKit refresh every %.0fs", self._refresh_interval)
        elif not should_run:
            self._release_refresh_handle()

    def _release_refresh_handle(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.release()
            self._refresh_handle = None

    def _set_state(self, **changes: Any) -> None:
        if self._closed:
            return
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                result = listener(self._state)
            except Exception:
                logger.exception("Sync state listener failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._listener_tasks.add(task)
                task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Sync state listener failed: %s", task.exception())
