"""Shared Pydantic bases for rows written from HealthKit data."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HeartSenseBase(BaseModel):
    """Base model with shared config for all HeartSense row schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    def to_row(self) -> dict[str, Any]:
        """JSON-safe dict for a backend write; unset optionals are omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class UserOwnedMixin(BaseModel):
    """Every synced row belongs to exactly one user."""

    user_id: str = Field(min_length=1)


class TimestampMixin(BaseModel):
    created_at: datetime = Field(default_factory=utc_now)
