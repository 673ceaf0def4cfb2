"""Map raw HealthKit samples and workouts into canonical records.

These are pure functions: no I/O, no state.  A malformed record yields an
explicit absence (None) for that record or field, never an exception and
never a fabricated zero.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from src.healthkit.base import Timestamp, VitalSample, WorkoutRecord
from src.healthkit.catalog import (
    DISTANCE_STATISTIC_PRIORITY,
    HK_ACTIVE_ENERGY,
    HK_INDOOR_WORKOUT_KEY,
    VitalType,
    activity_name,
    unit_for,
)

logger = logging.getLogger("heartsense.healthkit.normalizer")


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def parse_timestamp(value: Timestamp | date) -> datetime:
    """Parse a datetime, date or ISO-8601 string into an aware UTC datetime.

    Naive values are taken to be UTC.

    Raises:
        ValueError: If a string cannot be parsed as ISO-8601.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_timestamp(value: Timestamp | date) -> str:
    """Format any timestamp as an ISO-8601 UTC string, e.g. ``2026-02-23T06:45:00.000Z``."""
    dt = parse_timestamp(value)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def calendar_date(value: Timestamp | date) -> str:
    """Return the ``YYYY-MM-DD`` calendar day of a timestamp.

    The day boundary is UTC (the date part of the ISO-8601 instant), not the
    local calendar day.
    """
    return parse_timestamp(value).date().isoformat()


# ---------------------------------------------------------------------------
# Vitals
# ---------------------------------------------------------------------------


def _number(value: Any) -> float | None:
    """Return ``value`` if it is a finite real number, else None (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def normalize_vital_sample(
    vital_type: VitalType | str, raw: Mapping[str, Any] | None
) -> VitalSample | None:
    """Convert a raw HealthKit quantity sample into a VitalSample.

    The unit always comes from the catalog; any unit on the raw record is
    ignored.  Timestamps are copied as-is.

    Args:
        vital_type: One of the five vital types.
        raw:        ``{quantity, startDate, endDate}`` dict, or None.

    Returns:
        VitalSample, or None if the record is missing or its quantity is
        missing or not a number.
    """
    vital_type = VitalType(vital_type)
    unit = unit_for(vital_type)

    if not isinstance(raw, Mapping) or not raw:
        return None
    quantity = _number(raw.get("quantity"))
    if quantity is None:
        return None

    return VitalSample(
        type=vital_type,
        value=quantity,
        unit=unit,
        start_time=raw.get("startDate"),
        end_time=raw.get("endDate"),
    )


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------


def round_half_up(value: float, places: int = 0) -> Decimal:
    """Round like a calculator: 1.5 → 2, 2.5 → 3."""
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def _duration_seconds(raw_duration: Any) -> float:
    """Accept ``{"quantity": s}`` or a bare number of seconds."""
    if isinstance(raw_duration, Mapping):
        raw_duration = raw_duration.get("quantity")
    if raw_duration is None:
        return 0.0
    try:
        seconds = float(raw_duration)
    except (TypeError, ValueError):
        logger.warning("Could not parse workout duration: %r", raw_duration)
        return 0.0
    return max(seconds, 0.0) if math.isfinite(seconds) else 0.0


def _sum_quantity(statistic: Mapping[str, Any] | None) -> float | None:
    if not isinstance(statistic, Mapping):
        return None
    total = statistic.get("sum")
    if not isinstance(total, Mapping):
        return None
    return _number(total.get("quantity"))


def duration_minutes(seconds: float) -> int:
    """Round a duration in seconds to whole minutes (half-up: 90 s → 2)."""
    return int(round_half_up(seconds / 60))


def meters_to_km(meters: float) -> float:
    """Convert meters to kilometers, rounded half-up to 2 decimals."""
    return float(round_half_up(meters / 1000, 2))


def normalize_workout(
    raw: Mapping[str, Any],
    statistics: Mapping[str, Any] | None = None,
) -> WorkoutRecord:
    """Convert a raw HealthKit workout into a WorkoutRecord.

    Calories come from the active-energy statistic and distance from the
    first distance statistic present, in order walking/running, cycling,
    swimming.  A zero or missing sum is reported as None: HealthKit does not
    distinguish "no data" from "zero" for these sums.

    Args:
        raw:        Raw workout dict (see HealthDataProvider).
        statistics: Optional ``{identifier: {"sum": {"quantity", "unit"}}}``.

    Returns:
        WorkoutRecord.
    """
    if not isinstance(statistics, Mapping):
        statistics = {}

    calories = _sum_quantity(statistics.get(HK_ACTIVE_ENERGY))
    calories_burned = int(round_half_up(calories)) if calories else None

    distance_km: float | None = None
    for identifier in DISTANCE_STATISTIC_PRIORITY:
        if statistics.get(identifier) is None:
            continue
        meters = _sum_quantity(statistics[identifier])
        distance_km = meters_to_km(meters) if meters else None
        break

    code = raw.get("workoutActivityType")
    metadata = raw.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}

    return WorkoutRecord(
        id=str(raw.get("uuid", "")),
        activity_type=activity_name(code),
        activity_type_code=code,
        duration_minutes=duration_minutes(_duration_seconds(raw.get("duration"))),
        calories_burned=calories_burned,
        distance_km=distance_km,
        start_time=to_iso_timestamp(raw["startDate"]),
        end_time=to_iso_timestamp(raw["endDate"]),
        indoor=bool(metadata.get(HK_INDOOR_WORKOUT_KEY, False)),
    )
