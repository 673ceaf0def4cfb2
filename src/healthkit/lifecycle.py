"""Host application lifecycle: foreground/background state notifications.

The host (UI shell, test harness) pushes state changes into an
AppStateMonitor; interested parties subscribe and get back a Subscription
they must remove on teardown.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger("heartsense.healthkit.lifecycle")


class AppState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


#: listener(previous_state, next_state)
AppStateListener = Callable[[AppState, AppState], None]


class Subscription:
    """Handle returned by AppStateMonitor.add_listener().

    ``remove()`` is idempotent.
    """

    def __init__(self, monitor: AppStateMonitor, listener: AppStateListener) -> None:
        self._monitor = monitor
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def remove(self) -> None:
        if self._active:
            self._monitor._discard(self._listener)
            self._active = False


class AppStateMonitor:
    """Broadcast foreground/background transitions to listeners."""

    def __init__(self, initial: AppState | str = AppState.ACTIVE) -> None:
        self._state = AppState(initial)
        self._listeners: list[AppStateListener] = []

    @property
    def current_state(self) -> AppState:
        return self._state

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: AppStateListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _discard(self, listener: AppStateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def set_state(self, state: AppState | str) -> None:
        """Record a new host state and notify listeners if it changed."""
        next_state = AppState(state)
        previous, self._state = self._state, next_state
        if previous == next_state:
            return
        logger.debug("App state %s → %s", previous.value, next_state.value)
        for listener in list(self._listeners):
            try:
                listener(previous, next_state)
            except Exception:
                logger.exception("App state listener failed")


def is_foreground_resume(previous: AppState, next_state: AppState) -> bool:
    """True for a background/inactive → active transition."""
    return previous in (AppState.INACTIVE, AppState.BACKGROUND) and next_state == AppState.ACTIVE
