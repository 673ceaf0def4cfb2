"""Deterministic row keys for HealthKit data written to the backend.

The same sample or workout is read again on every sync that overlaps it;
writing under a key derived from its content makes the write an upsert.

Keys:
    - health_data (vitals):  {user_id}_{data_type}_{recorded_at}
    - health_data (steps):   {user_id}_dailySteps_{YYYY-MM-DD}
    - activities (workouts): {user_id}_workout_{healthkit_uuid}
"""

from __future__ import annotations

from src.healthkit.base import VitalSample
from src.healthkit.normalizer import to_iso_timestamp

DAILY_STEPS_TYPE = "dailySteps"


def vital_sample_key(user_id: str, sample: VitalSample) -> str:
    """Key for one vitals reading: user, type and start timestamp."""
    start = sample.start_time
    if not isinstance(start, str):
        start = to_iso_timestamp(start)
    return f"{user_id}_{sample.type.value}_{start}"


def daily_steps_key(user_id: str, day: str) -> str:
    """Key for a daily step total (``day`` is YYYY-MM-DD)."""
    return f"{user_id}_{DAILY_STEPS_TYPE}_{day}"


def workout_key(user_id: str, workout_id: str) -> str:
    """Key for a workout, by its HealthKit UUID."""
    return f"{user_id}_workout_{workout_id}"
