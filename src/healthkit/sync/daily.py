"""Daily bulk sync of HealthKit data into the backend, plus symptom-time vitals.

Two entry points:
    DailySyncService.perform_daily_sync(user_id) — pull the last 24 h of
        HealthKit data and upsert it through a HealthDataWriter (once per day)
    fetch_vitals_around_symptom(...) — vitals in a ±30 min window around a
        symptom, for embedding on the symptom entry
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from src.healthkit.base import SymptomVitalsContext, Timestamp, VitalSample, WorkoutRecord
from src.healthkit.config_loader import SyncConfig
from src.healthkit.fetcher import VitalsFetcher
from src.healthkit.gateway import HealthKitGateway
from src.healthkit.normalizer import calendar_date, parse_timestamp, to_iso_timestamp
from src.healthkit.sync.dedup import (
    DAILY_STEPS_TYPE,
    daily_steps_key,
    vital_sample_key,
    workout_key,
)
from src.models.health import ActivityCreate, HealthDataCreate, Intensity

logger = logging.getLogger("heartsense.healthkit.sync.daily")

DEFAULT_LOOKBACK_HOURS = 24
DEFAULT_WORKOUTS_LIMIT = 50
DEFAULT_SYMPTOM_WINDOW_MINUTES = 30

_HIGH_INTENSITY = frozenset({"Running", "HIIT", "Boxing", "Jump Rope", "Swimming"})
_LOW_INTENSITY = frozenset(
    {"Walking", "Yoga", "Mind & Body", "Tai Chi", "Flexibility", "Cooldown", "Golf"}
)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class HealthDataWriter(ABC):
    """Backend write path for HealthKit-derived rows.  Both writes are upserts."""

    @abstractmethod
    async def upsert_health_data(self, key: str, row: HealthDataCreate) -> None:
        """Write a vitals reading or daily step total under ``key``."""

    @abstractmethod
    async def upsert_activity(self, key: str, row: ActivityCreate) -> None:
        """Write a workout-derived activity under ``key``."""


class SyncMarkerStore(ABC):
    """Persists the calendar date of the last successful daily sync."""

    @abstractmethod
    async def get_last_sync_date(self) -> str | None:
        """Return the YYYY-MM-DD of the last sync, or None."""

    @abstractmethod
    async def set_last_sync_date(self, day: str) -> None:
        """Record ``day`` (YYYY-MM-DD) as synced."""


class InMemorySyncMarkerStore(SyncMarkerStore):
    """Process-local marker store (tests, single-run tools)."""

    def __init__(self, last_sync_date: str | None = None) -> None:
        self._last_sync_date = last_sync_date

    async def get_last_sync_date(self) -> str | None:
        return self._last_sync_date

    async def set_last_sync_date(self, day: str) -> None:
        self._last_sync_date = day


@dataclass
class DailySyncResult:
    """Counts of rows written by one daily sync run."""

    vitals_count: int = 0
    workouts_count: int = 0
    steps_count: int = 0

    @property
    def total(self) -> int:
        return self.vitals_count + self.workouts_count + self.steps_count


# ---------------------------------------------------------------------------
# Workout helpers
# ---------------------------------------------------------------------------


def infer_intensity(workout: WorkoutRecord) -> Intensity:
    """Classify a workout as low / moderate / high from its activity type."""
    if workout.activity_type in _HIGH_INTENSITY:
        return "high"
    if workout.activity_type in _LOW_INTENSITY:
        return "low"
    return "moderate"


def describe_workout(workout: WorkoutRecord) -> str:
    """Build the activity description, e.g. ``Synced from Apple Watch · 320 kcal · 5.2 km``."""
    parts = ["Synced from Apple Watch"]
    if workout.calories_burned:
        parts.append(f"{workout.calories_burned} kcal")
    if workout.distance_km:
        km = f"{workout.distance_km:.2f}".rstrip("0").rstrip(".")
        parts.append(f"{km} km")
    if workout.indoor:
        parts.append("(indoor)")
    return " · ".join(parts)


def _timestamp_text(value: Timestamp) -> str:
    return value if isinstance(value, str) else to_iso_timestamp(value)


# ---------------------------------------------------------------------------
# Daily sync
# ---------------------------------------------------------------------------


class DailySyncService:
    """Pull the last day of HealthKit data and upsert it, at most once per day.

    Usage::

        service = DailySyncService(gateway, fetcher, writer, InMemorySyncMarkerStore())
        result = await service.perform_daily_sync(user_id)
    """

    def __init__(
        self,
        gateway: HealthKitGateway,
        fetcher: VitalsFetcher,
        writer: HealthDataWriter,
        marker_store: SyncMarkerStore,
        *,
        lookback_hours: int = DEFAULT_LOOKBACK_HOURS,
        workouts_limit: int = DEFAULT_WORKOUTS_LIMIT,
        symptom_window_minutes: int = DEFAULT_SYMPTOM_WINDOW_MINUTES,
        clock: Clock = _utc_now,
    ) -> None:
        self._gateway = gateway
        self._fetcher = fetcher
        self._writer = writer
        self._marker_store = marker_store
        self._lookback = timedelta(hours=lookback_hours)
        self._workouts_limit = workouts_limit
        self._symptom_window_minutes = symptom_window_minutes
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        gateway: HealthKitGateway,
        fetcher: VitalsFetcher,
        writer: HealthDataWriter,
        marker_store: SyncMarkerStore,
        config: SyncConfig,
        *,
        clock: Clock = _utc_now,
    ) -> DailySyncService:
        """Build a service tuned by the ``daily_sync`` and ``symptom_context`` sections."""
        return cls(
            gateway,
            fetcher,
            writer,
            marker_store,
            lookback_hours=config.daily_sync.lookback_hours,
            workouts_limit=config.daily_sync.workouts_limit,
            symptom_window_minutes=config.symptom_context.window_minutes,
            clock=clock,
        )

    async def should_sync_today(self) -> bool:
        return await self._marker_store.get_last_sync_date() != calendar_date(self._clock())

    async def perform_daily_sync(self, user_id: str) -> DailySyncResult:
        """Upsert the last ``lookback_hours`` of vitals, step totals and workouts.

        Skipped when HealthKit is unavailable or today was already synced.
        Today is only marked as synced when something was written, so a run
        before permissions are granted is retried on the next launch.
        Failures are logged; the counts written so far are returned.
        """
        result = DailySyncResult()

        if not self._gateway.check_availability():
            logger.info("Daily sync skipped: HealthKit not available")
            return result
        if not await self.should_sync_today():
            logger.info("Daily sync skipped: already synced today")
            return result

        now = parse_timestamp(self._clock())
        since = now - self._lookback
        logger.info("Daily sync starting for %s (since %s)", user_id, to_iso_timestamp(since))

        try:
            vitals = await self._fetcher.fetch_vitals(since, now)
            logger.debug("Fetched %d vitals samples", len(vitals))
            for sample in vitals:
                await self._writer.upsert_health_data(
                    vital_sample_key(user_id, sample), self._vital_row(user_id, sample)
                )
                result.vitals_count += 1

            daily_steps = await self._fetcher.fetch_daily_activity(since, now)
            logger.debug("Fetched %d daily step records", len(daily_steps))
            for day in daily_steps:
                await self._writer.upsert_health_data(
                    daily_steps_key(user_id, day.date),
                    HealthDataCreate(
                        user_id=user_id,
                        data_type=DAILY_STEPS_TYPE,
                        value=day.steps,
                        unit="count",
                        recorded_at=day.date,
                    ),
                )
                result.steps_count += 1

            workouts = await self._fetcher.fetch_recent_workouts(self._workouts_limit)
            recent = [w for w in workouts if parse_timestamp(w.start_time) >= since]
            logger.debug("Fetched %d workouts in the last %s", len(recent), self._lookback)
            for workout in recent:
                await self._writer.upsert_activity(
                    workout_key(user_id, workout.id), self._activity_row(user_id, workout)
                )
                result.workouts_count += 1

            if result.total > 0:
                await self._marker_store.set_last_sync_date(calendar_date(now))

            logger.info(
                "Daily sync complete: %d vitals, %d step records, %d workouts%s",
                result.vitals_count,
                result.steps_count,
                result.workouts_count,
                "" if result.total else " (no data, will retry on next launch)",
            )
        except Exception as exc:
            logger.warning("Daily sync failed: %s", exc)

        return result

    async def vitals_around_symptom(self, occurred_at: Timestamp) -> SymptomVitalsContext:
        """Vitals around a symptom, using the configured window."""
        return await fetch_vitals_around_symptom(
            self._gateway,
            self._fetcher,
            occurred_at,
            window_minutes=self._symptom_window_minutes,
            clock=self._clock,
        )

    @staticmethod
    def _vital_row(user_id: str, sample: VitalSample) -> HealthDataCreate:
        return HealthDataCreate(
            user_id=user_id,
            data_type=sample.type.value,
            value=sample.value,
            unit=sample.unit,
            recorded_at=_timestamp_text(sample.start_time),
        )

    @staticmethod
    def _activity_row(user_id: str, workout: WorkoutRecord) -> ActivityCreate:
        return ActivityCreate(
            user_id=user_id,
            activity_type=workout.activity_type,
            duration_minutes=workout.duration_minutes,
            intensity=infer_intensity(workout),
            description=describe_workout(workout),
            occurred_at=parse_timestamp(workout.start_time),
            healthkit_uuid=workout.id,
            calories_burned=workout.calories_burned,
            distance_km=workout.distance_km,
            indoor=workout.indoor,
        )


# ---------------------------------------------------------------------------
# Symptom context
# ---------------------------------------------------------------------------


async def fetch_vitals_around_symptom(
    gateway: HealthKitGateway,
    fetcher: VitalsFetcher,
    occurred_at: Timestamp,
    *,
    window_minutes: int = DEFAULT_SYMPTOM_WINDOW_MINUTES,
    clock: Clock = _utc_now,
) -> SymptomVitalsContext:
    """Return the vitals recorded within ± ``window_minutes`` of a symptom.

    The window end is clamped to now.  An unavailable provider or a failed
    query yields an empty sample list.
    """
    center = parse_timestamp(occurred_at)
    window = timedelta(minutes=window_minutes)
    now = parse_timestamp(clock())
    start = center - window
    end = min(center + window, now)

    samples: list[VitalSample] = []
    if gateway.check_availability():
        try:
            samples = await fetcher.fetch_vitals(start, end)
        except Exception as exc:
            logger.warning("Symptom vitals fetch failed: %s", exc)

    return SymptomVitalsContext(
        window_start=to_iso_timestamp(start),
        window_end=to_iso_timestamp(end),
        samples=tuple(samples),
        fetched_at=to_iso_timestamp(clock()),
    )
