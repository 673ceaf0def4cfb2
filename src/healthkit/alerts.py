"""Elevated heart-rate prompt.

When a fresh vitals snapshot shows a heart rate at or above the user's
threshold, notify them and invite them to log a symptom.  Notifications are
rate-limited per user by a cooldown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from src.healthkit.base import LatestVitals

logger = logging.getLogger("heartsense.healthkit.alerts")

DEFAULT_THRESHOLD_BPM = 100.0
DEFAULT_COOLDOWN = timedelta(minutes=30)

#: Screen the notification deep-links to.
SYMPTOM_ENTRY_SCREEN = "symptom-entry"
NOTIFICATION_TITLE = "Elevated Heart Rate Detected"

#: notifier(user_id, title, message, data)
Notifier = Callable[[str, str, str, dict], Awaitable[None]]
#: threshold_loader(user_id) → per-user threshold, or None for the default
ThresholdLoader = Callable[[str], Awaitable[float | None]]


@dataclass(frozen=True)
class HeartRateAlertResult:
    is_elevated: bool
    heart_rate_bpm: float | None
    threshold: float
    notification_sent: bool


class ElevatedHeartRateMonitor:
    """Check vitals snapshots against a heart-rate threshold and notify.

    Args:
        notifier:         Async callable that delivers the notification.
        threshold_bpm:    Default threshold when no per-user value exists.
        cooldown:         Minimum time between notifications per user.
        threshold_loader: Optional async lookup of a per-user threshold;
                          failures fall back to ``threshold_bpm``.
        clock:            Returns the current UTC time.
    """

    def __init__(
        self,
        notifier: Notifier,
        *,
        threshold_bpm: float = DEFAULT_THRESHOLD_BPM,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        threshold_loader: ThresholdLoader | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._notifier = notifier
        self._threshold_bpm = threshold_bpm
        self._cooldown = cooldown
        self._threshold_loader = threshold_loader
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_notified: dict[str, datetime] = {}

    async def threshold_for(self, user_id: str) -> float:
        if self._threshold_loader is None:
            return self._threshold_bpm
        try:
            threshold = await self._threshold_loader(user_id)
        except Exception as exc:
            logger.warning("Could not load heart-rate threshold for %s: %s", user_id, exc)
            return self._threshold_bpm
        return float(threshold) if isinstance(threshold, (int, float)) else self._threshold_bpm

    async def check(self, user_id: str, vitals: LatestVitals | None) -> HeartRateAlertResult:
        """Notify if the snapshot's heart rate is at or above the threshold."""
        threshold = await self.threshold_for(user_id)
        sample = vitals.heart_rate if vitals else None
        if sample is None:
            logger.debug("No heart rate sample, skipping")
            return HeartRateAlertResult(False, None, threshold, False)

        bpm = sample.value
        if bpm < threshold:
            return HeartRateAlertResult(False, bpm, threshold, False)

        now = self._clock()
        last = self._last_notified.get(user_id)
        if last is not None and now - last < self._cooldown:
            remaining = self._cooldown - (now - last)
            logger.info("Elevated HR %s bpm, cooldown active (%s remaining)", bpm, remaining)
            return HeartRateAlertResult(True, bpm, threshold, False)

        message = f"Your heart rate is {bpm:g} bpm. Would you like to log a symptom?"
        try:
            await self._notifier(
                user_id, NOTIFICATION_TITLE, message, {"screen": SYMPTOM_ENTRY_SCREEN}
            )
        except Exception as exc:
            logger.warning("Elevated HR notification failed for %s: %s", user_id, exc)
            return HeartRateAlertResult(True, bpm, threshold, False)

        self._last_notified[user_id] = now
        logger.info("Elevated HR notification sent: %s bpm ≥ %s bpm", bpm, threshold)
        return HeartRateAlertResult(True, bpm, threshold, True)
