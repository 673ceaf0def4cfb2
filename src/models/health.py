"""Pydantic models for rows written from HealthKit data: vitals and workout activities."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from src.models.base import HeartSenseBase, TimestampMixin, UserOwnedMixin

Intensity = Literal["low", "moderate", "high"]


# ---------- Health Data ----------

class HealthDataCreate(HeartSenseBase, UserOwnedMixin, TimestampMixin):
    """One vitals reading or daily step total (``health_data`` row)."""

    data_type: str = Field(max_length=50)
    value: float
    unit: str = Field(max_length=20)
    recorded_at: str  # ISO-8601 instant, or YYYY-MM-DD for daily totals


# ---------- Activities ----------

class ActivityCreate(HeartSenseBase, UserOwnedMixin, TimestampMixin):
    """A workout imported from HealthKit (``activities`` row)."""

    activity_type: str
    duration_minutes: int = Field(default=0, ge=0)
    intensity: Intensity = "moderate"
    description: str = ""
    occurred_at: datetime
    source: str = "healthkit"
    healthkit_uuid: str
    calories_burned: int | None = Field(default=None, ge=0)
    distance_km: float | None = Field(default=None, ge=0)
    indoor: bool = False
