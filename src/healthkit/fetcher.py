"""Assemble vitals snapshots and workout lists from a HealthDataProvider.

The fetcher owns the provider handle passed to it; its lifetime is scoped
to whoever constructed it (normally the sync controller's owner).
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Mapping

from src.healthkit.base import (
    DailyActivity,
    HealthDataProvider,
    LatestVitals,
    VitalSample,
    WorkoutRecord,
    latest_vitals_field,
)
from src.healthkit.catalog import (
    WORKOUT_STATISTIC_IDENTIFIERS,
    VitalType,
    query_identifier_for,
)
from src.healthkit.normalizer import (
    calendar_date,
    normalize_vital_sample,
    normalize_workout,
    parse_timestamp,
    round_half_up,
    to_iso_timestamp,
)

logger = logging.getLogger("heartsense.healthkit.fetcher")

# Range queries cover everything except steps, which are aggregated per day.
RANGE_VITAL_TYPES: tuple[VitalType, ...] = (
    VitalType.HEART_RATE,
    VitalType.RESTING_HEART_RATE,
    VitalType.HEART_RATE_VARIABILITY,
    VitalType.RESPIRATORY_RATE,
)


class VitalsFetcher:
    """Query a provider and normalize the results.

    Usage::

        fetcher = VitalsFetcher(provider)
        vitals = await fetcher.fetch_latest_vitals()
        workouts = await fetcher.fetch_recent_workouts(20)
    """

    def __init__(self, provider: HealthDataProvider) -> None:
        self._provider = provider

    @property
    def provider(self) -> HealthDataProvider:
        return self._provider

    # ------------------------------------------------------------------
    # Latest vitals
    # ------------------------------------------------------------------

    async def fetch_latest_vitals(self) -> LatestVitals:
        """Fetch the most recent sample of every vital type in one cycle.

        A failing query only blanks its own type; the other types are still
        reported in the same snapshot.
        """
        results = await asyncio.gather(*(self._safe_latest(t) for t in VitalType))
        by_field = {latest_vitals_field(t): s for t, s in zip(VitalType, results)}

        return LatestVitals(**by_field, last_updated=_newest_start(results))

    async def _safe_latest(self, vital_type: VitalType) -> VitalSample | None:
        try:
            raw = await self._provider.query_latest_sample(query_identifier_for(vital_type))
            return normalize_vital_sample(vital_type, raw)
        except Exception as exc:
            logger.debug("Latest %s unavailable: %s", vital_type.value, exc)
            return None

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    async def fetch_recent_workouts(self, limit: int) -> list[WorkoutRecord]:
        """Fetch up to ``limit`` recent workouts, most recent first.

        ``limit`` is passed to the provider query; the result is not
        truncated afterwards.  A statistics failure for one workout only
        drops its calories and distance; a malformed workout is skipped.

        Raises:
            Exception: Whatever the provider raises from the workout query.
        """
        raw_workouts: list[Mapping[str, Any]] = []
        for raw in await self._provider.query_workouts(limit) or []:
            if isinstance(raw, Mapping):
                raw_workouts.append(raw)
            else:
                logger.warning("Skipping malformed workout entry: %r", raw)
        if not raw_workouts:
            return []

        statistics = await asyncio.gather(
            *(self._safe_statistics(raw) for raw in raw_workouts)
        )

        workouts: list[WorkoutRecord] = []
        for raw, stats in zip(raw_workouts, statistics):
            try:
                workouts.append(normalize_workout(raw, stats))
            except (KeyError, TypeError, ValueError, ArithmeticError, AttributeError) as exc:
                logger.warning("Skipping malformed workout %r: %s", raw.get("uuid"), exc)

        workouts.sort(key=lambda w: parse_timestamp(w.start_time), reverse=True)
        return workouts

    async def _safe_statistics(self, raw: Mapping[str, Any]) -> Mapping[str, Any] | None:
        workout_id = raw.get("uuid")
        if not workout_id:
            return None
        try:
            statistics = await self._provider.query_statistics(
                str(workout_id), list(WORKOUT_STATISTIC_IDENTIFIERS)
            )
        except Exception as exc:
            logger.debug("Statistics unavailable for workout %s: %s", workout_id, exc)
            return None
        return statistics if isinstance(statistics, Mapping) else None

    # ------------------------------------------------------------------
    # Range queries
    # ------------------------------------------------------------------

    async def fetch_vitals(self, start: datetime, end: datetime) -> list[VitalSample]:
        """Return every heart rate, resting HR, HRV and respiratory sample in a window.

        A type whose query fails is skipped.
        """
        results: list[VitalSample] = []
        for vital_type in RANGE_VITAL_TYPES:
            try:
                raw_samples = await self._provider.query_samples(
                    query_identifier_for(vital_type), start, end
                )
            except Exception as exc:
                logger.debug("%s samples unavailable: %s", vital_type.value, exc)
                continue
            for raw in raw_samples or []:
                sample = normalize_vital_sample(vital_type, raw)
                if sample is not None:
                    results.append(sample)
        return results

    async def fetch_daily_activity(self, start: datetime, end: datetime) -> list[DailyActivity]:
        """Return step totals per calendar day, oldest day first."""
        try:
            raw_samples = await self._provider.query_samples(
                query_identifier_for(VitalType.STEP_COUNT), start, end
            )
        except Exception as exc:
            logger.warning("Step samples unavailable: %s", exc)
            return []

        buckets: dict[str, float] = defaultdict(float)
        for raw in raw_samples or []:
            sample = normalize_vital_sample(VitalType.STEP_COUNT, raw)
            if sample is None or not sample.start_time:
                continue
            try:
                day = calendar_date(sample.start_time)
            except ValueError:
                logger.debug("Ignoring step sample with bad start time %r", sample.start_time)
                continue
            buckets[day] += sample.value

        return [
            DailyActivity(date=day, steps=int(round_half_up(steps)))
            for day, steps in sorted(buckets.items())
        ]


def _newest_start(samples: list[VitalSample | None]) -> str | None:
    starts: list[datetime] = []
    for sample in samples:
        if sample is None:
            continue
        try:
            starts.append(parse_timestamp(sample.start_time))
        except ValueError:
            logger.debug("Ignoring unparseable start time %r", sample.start_time)
    return to_iso_timestamp(max(starts)) if starts else None
