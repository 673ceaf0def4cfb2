"""Drive the daily sync for a signed-in user.

A DailySyncTracker runs ``perform_daily_sync`` once when started and again
each time the host comes back to the foreground.  The service's own
"already synced today" check keeps resumes cheap; the tracker only makes
sure two runs never overlap.

Usage::

    tracker = DailySyncTracker(service, user_id, app_state)
    tracker.start()
    ...
    tracker.close()
"""

from __future__ import annotations

import asyncio
import logging

from src.healthkit.lifecycle import AppState, AppStateMonitor, Subscription, is_foreground_resume
from src.healthkit.sync.daily import DailySyncResult, DailySyncService

logger = logging.getLogger("heartsense.healthkit.sync.tracker")


class DailySyncTracker:
    """Run the daily sync on start and on every foreground resume."""

    def __init__(
        self,
        service: DailySyncService,
        user_id: str,
        app_state: AppStateMonitor | None = None,
    ) -> None:
        if not user_id:
            raise ValueError("DailySyncTracker needs a user_id")
        self._service = service
        self._user_id = user_id
        self._app_state = app_state
        self._subscription: Subscription | None = None
        self._pending: set[asyncio.Task] = set()
        self._syncing = False
        self._closed = False

    @property
    def syncing(self) -> bool:
        return self._syncing

    @property
    def pending(self) -> frozenset[asyncio.Task]:
        return frozenset(self._pending)

    def start(self) -> None:
        """Kick off the first sync and start listening for resumes."""
        if self._closed or self._subscription is not None:
            return
        if self._app_state is not None:
            self._subscription = self._app_state.add_listener(self._on_app_state)
        self._spawn()

    async def sync(self) -> DailySyncResult | None:
        """Run one daily sync, or return None if one is already running."""
        if self._syncing:
            logger.debug("Daily sync already in progress, skipping")
            return None
        self._syncing = True
        try:
            return await self._service.perform_daily_sync(self._user_id)
        except Exception as exc:
            logger.warning("Daily sync error: %s", exc)
            return None
        finally:
            self._syncing = False

    def close(self) -> None:
        """Stop listening for resumes.  A sync already running is left to finish."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None
        logger.debug("Daily sync tracker closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_app_state(self, previous: AppState, next_state: AppState) -> None:
        if self._closed or not is_foreground_resume(previous, next_state):
            return
        logger.debug("App returned to foreground, running daily sync")
        self._spawn()

    def _spawn(self) -> None:
        task = asyncio.ensure_future(self.sync())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
