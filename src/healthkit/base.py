"""Canonical records and the provider interface for the HealthKit layer.

Every provider must subclass HealthDataProvider and return raw records in
the shapes documented on its methods.  The normalizer turns those into the
canonical VitalSample / LatestVitals / WorkoutRecord types, which are the
single source of truth consumed by the sync controller, the daily sync
writer and the UI.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Iterator

from src.healthkit.catalog import VitalType

logger = logging.getLogger("heartsense.healthkit")

#: A timestamp as handed over by a provider: native datetime or ISO-8601 string.
Timestamp = datetime | str


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VitalSample:
    """One normalized vital-sign reading.

    Attributes:
        type:       Which vital this sample represents.
        value:      Numeric value in the unit given by ``unit``.
        unit:       Canonical unit, always resolved from the catalog.
        start_time: Start timestamp, as supplied by the provider.
        end_time:   End timestamp, as supplied by the provider.
    """

    type: VitalType
    value: float
    unit: str
    start_time: Timestamp
    end_time: Timestamp


@dataclass(frozen=True)
class LatestVitals:
    """Most recent sample for each vital type, from a single fetch cycle.

    Attributes:
        heart_rate:             Latest heart rate sample, or None.
        resting_heart_rate:     Latest resting heart rate sample, or None.
        heart_rate_variability: Latest HRV (SDNN) sample, or None.
        respiratory_rate:       Latest respiratory rate sample, or None.
        step_count:             Latest step count sample, or None.
        last_updated:           ISO-8601 UTC instant of the newest sample
                                start time, or None when nothing is present.
    """

    heart_rate: VitalSample | None = None
    resting_heart_rate: VitalSample | None = None
    heart_rate_variability: VitalSample | None = None
    respiratory_rate: VitalSample | None = None
    step_count: VitalSample | None = None
    last_updated: str | None = None

    def get(self, vital_type: VitalType | str) -> VitalSample | None:
        """Return the sample for ``vital_type`` (None when absent)."""
        return getattr(self, _FIELD_BY_TYPE[VitalType(vital_type)])

    def samples(self) -> Iterator[VitalSample]:
        """Yield the samples that are present, in catalog order."""
        for vital_type in VitalType:
            sample = self.get(vital_type)
            if sample is not None:
                yield sample

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


_FIELD_BY_TYPE: dict[VitalType, str] = {
    VitalType.HEART_RATE: "heart_rate",
    VitalType.RESTING_HEART_RATE: "resting_heart_rate",
    VitalType.HEART_RATE_VARIABILITY: "heart_rate_variability",
    VitalType.RESPIRATORY_RATE: "respiratory_rate",
    VitalType.STEP_COUNT: "step_count",
}


def latest_vitals_field(vital_type: VitalType | str) -> str:
    """Return the LatestVitals attribute name holding ``vital_type``."""
    return _FIELD_BY_TYPE[VitalType(vital_type)]


@dataclass(frozen=True)
class WorkoutRecord:
    """Canonical workout record.

    Attributes:
        id:                 Provider-assigned UUID, used for de-duplication.
        activity_type:      Display name (e.g. "Running"), "Other" if unknown.
        activity_type_code: Raw HKWorkoutActivityType value, kept verbatim.
        duration_minutes:   Duration rounded to whole minutes.
        calories_burned:    Active energy in kcal, None when not reported.
        distance_km:        Distance in km (2 decimals), None when not reported.
        start_time:         ISO-8601 UTC start timestamp.
        end_time:           ISO-8601 UTC end timestamp.
        indoor:             Whether the workout was flagged as indoor.
    """

    id: str
    activity_type: str
    activity_type_code: int | None
    duration_minutes: int
    calories_burned: int | None
    distance_km: float | None
    start_time: str
    end_time: str
    indoor: bool = False


@dataclass(frozen=True)
class DailyActivity:
    """Step total for one calendar day (YYYY-MM-DD, UTC day boundary)."""

    date: str
    steps: int


@dataclass(frozen=True)
class SymptomVitalsContext:
    """Vitals captured in a window around a logged symptom.

    Attributes:
        window_start: ISO-8601 start of the query window.
        window_end:   ISO-8601 end of the query window (clamped to now).
        samples:      Normalized samples found in the window.
        fetched_at:   ISO-8601 instant the query ran.
    """

    window_start: str
    window_end: str
    samples: tuple[VitalSample, ...] = field(default_factory=tuple)
    fetched_at: str = ""


# ---------------------------------------------------------------------------
# Provider boundary
# ---------------------------------------------------------------------------


class HealthDataProvider(ABC):
    """Abstract base class for a device health-data source.

    Raw records are plain dicts in the shapes used by HealthKit bridges:

        sample    {"quantity": float, "unit": str, "startDate": ts, "endDate": ts}
        workout   {"uuid": str, "workoutActivityType": int,
                   "duration": {"quantity": seconds, "unit": "s"} | seconds,
                   "startDate": ts, "endDate": ts,
                   "metadata": {"HKIndoorWorkout": bool}}
        statistics {identifier: {"sum": {"quantity": float, "unit": str}}}

    Any async method may raise; callers treat a failure as "no data this
    cycle", never as fatal.
    """

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Provider"

    @abstractmethod
    def is_health_data_available(self) -> bool:
        """Return True if health data can be read on this device.

        Must be synchronous and free of side effects.
        """

    @abstractmethod
    async def request_permissions(self, read: list[str], share: list[str]) -> bool:
        """Show the consent prompt for the given scopes.

        Args:
            read:  Identifiers to request read access for.
            share: Identifiers to request write access for.

        Returns:
            True if the request completed and access was granted.
        """

    @abstractmethod
    async def query_latest_sample(self, identifier: str) -> dict[str, Any] | None:
        """Return the most recent raw sample for a quantity identifier, or None."""

    @abstractmethod
    async def query_samples(
        self, identifier: str, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        """Return every raw sample for ``identifier`` between ``start`` and ``end``."""

    @abstractmethod
    async def query_workouts(self, limit: int) -> list[dict[str, Any]]:
        """Return up to ``limit`` of the most recent raw workouts."""

    @abstractmethod
    async def query_statistics(
        self, workout_id: str, identifiers: list[str]
    ) -> dict[str, Any]:
        """Return summed statistics for one workout, keyed by identifier."""

    async def aclose(self) -> None:
        """Release any resources held by the provider.  Default is a no-op."""
        return None
