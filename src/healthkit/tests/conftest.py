"""Shared fixtures, fakes and raw HealthKit records for the HealthKit layer tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from src.healthkit.base import HealthDataProvider
from src.healthkit.catalog import HK_ACTIVE_ENERGY, HK_IDENTIFIERS, VitalType
from src.healthkit.config_loader import SyncConfig, load_sync_config
from src.healthkit.fetcher import VitalsFetcher
from src.healthkit.gateway import HealthKitGateway
from src.healthkit.lifecycle import AppStateMonitor

TEST_USER_ID = "user-1234"
TEST_NOW = datetime(2026, 2, 23, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Raw record builders
# ---------------------------------------------------------------------------


def raw_sample(
    quantity: float | None,
    start: str = "2026-02-23T08:00:00.000Z",
    end: str | None = None,
    unit: str = "count/min",
) -> dict[str, Any]:
    return {"quantity": quantity, "unit": unit, "startDate": start, "endDate": end or start}


def raw_workout(
    uuid: str,
    activity_type: int = 37,
    seconds: float = 1800,
    start: str = "2026-02-23T07:00:00.000Z",
    end: str = "2026-02-23T07:30:00.000Z",
    indoor: bool | None = None,
) -> dict[str, Any]:
    workout: dict[str, Any] = {
        "uuid": uuid,
        "workoutActivityType": activity_type,
        "duration": {"quantity": seconds, "unit": "s"},
        "startDate": start,
        "endDate": end,
    }
    if indoor is not None:
        workout["metadata"] = {"HKIndoorWorkout": indoor}
    return workout


def statistic(quantity: float | None, unit: str = "m") -> dict[str, Any]:
    return {"sum": {"quantity": quantity, "unit": unit}}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeHealthProvider(HealthDataProvider):
    """In-memory provider; anything named in ``failing`` raises when queried.

    ``failing`` may hold quantity identifiers, ``"workouts"``,
    ``"authorization"`` or ``"statistics:<uuid>"``.
    """

    DISPLAY_NAME = "Fake HealthKit"

    def __init__(self, *, available: bool = True, grant: bool = True) -> None:
        self.available = available
        self.grant = grant
        self.latest: dict[str, dict[str, Any] | None] = {}
        self.samples: dict[str, list[dict[str, Any]]] = {}
        self.workouts: list[dict[str, Any]] = []
        self.statistics: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.permission_requests: list[tuple[list[str], list[str]]] = []
        self.latest_queries: list[str] = []
        self.workout_queries: list[int] = []

    def is_health_data_available(self) -> bool:
        return self.available

    async def request_permissions(self, read: list[str], share: list[str]) -> bool:
        self.permission_requests.append((read, share))
        if "authorization" in self.failing:
            raise RuntimeError("authorization sheet failed")
        return self.grant

    async def query_latest_sample(self, identifier: str) -> dict[str, Any] | None:
        self.latest_queries.append(identifier)
        if identifier in self.failing:
            raise RuntimeError(f"query failed: {identifier}")
        return self.latest.get(identifier)

    async def query_samples(
        self, identifier: str, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        if identifier in self.failing:
            raise RuntimeError(f"query failed: {identifier}")
        return list(self.samples.get(identifier, []))

    async def query_workouts(self, limit: int) -> list[dict[str, Any]]:
        self.workout_queries.append(limit)
        if "workouts" in self.failing:
            raise RuntimeError("workout query failed")
        return list(self.workouts[:limit])

    async def query_statistics(
        self, workout_id: str, identifiers: list[str]
    ) -> dict[str, Any]:
        if f"statistics:{workout_id}" in self.failing:
            raise RuntimeError(f"statistics failed: {workout_id}")
        return self.statistics.get(workout_id, {})

    @property
    def fetch_cycles(self) -> int:
        """Number of latest-vitals snapshots requested (one query per type)."""
        return len(self.latest_queries) // len(VitalType)


class ManualClock:
    """Virtual clock: ``sleep()`` only returns once ``advance()`` passes its deadline."""

    def __init__(self) -> None:
        self.now = 0.0
        self._waiters: list[tuple[float, asyncio.Future]] = []

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, future))
        await future

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, f in self._waiters if not f.done())

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        for item in list(self._waiters):
            deadline, future = item
            if future.done():
                self._waiters.remove(item)
            elif deadline <= self.now:
                future.set_result(None)
                self._waiters.remove(item)
        await settle()


async def settle(rounds: int = 50) -> None:
    """Let pending tasks on the loop run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def populate(provider: FakeHealthProvider) -> FakeHealthProvider:
    """Give the provider one sample per vital type and two workouts."""
    provider.latest = {
        HK_IDENTIFIERS[VitalType.HEART_RATE]: raw_sample(72, "2026-02-23T08:00:00.000Z"),
        HK_IDENTIFIERS[VitalType.RESTING_HEART_RATE]: raw_sample(54, "2026-02-23T06:00:00.000Z"),
        HK_IDENTIFIERS[VitalType.HEART_RATE_VARIABILITY]: raw_sample(48.5, "2026-02-23T05:00:00.000Z"),
        HK_IDENTIFIERS[VitalType.RESPIRATORY_RATE]: raw_sample(14.2, "2026-02-23T04:00:00.000Z"),
        HK_IDENTIFIERS[VitalType.STEP_COUNT]: raw_sample(312, "2026-02-23T09:15:00.000Z"),
    }
    provider.workouts = [
        raw_workout("wk-old", 52, 2400, "2026-02-21T07:00:00.000Z", "2026-02-21T07:40:00.000Z"),
        raw_workout("wk-new", 37, 1830, "2026-02-23T07:00:00.000Z", "2026-02-23T07:30:30.000Z"),
    ]
    provider.statistics = {
        "wk-new": {HK_ACTIVE_ENERGY: statistic(301.6, "kcal")},
    }
    return provider


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the bundled sync config."""
    return load_sync_config()


@pytest.fixture
def provider() -> FakeHealthProvider:
    return populate(FakeHealthProvider())


@pytest.fixture
def gateway(provider: FakeHealthProvider) -> HealthKitGateway:
    return HealthKitGateway(provider, platform="ios")


@pytest.fixture
def fetcher(provider: FakeHealthProvider) -> VitalsFetcher:
    return VitalsFetcher(provider)


@pytest.fixture
def app_state() -> AppStateMonitor:
    return AppStateMonitor()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
