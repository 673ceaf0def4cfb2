"""HeartSense HealthKit acquisition and normalization layer.

This package checks HealthKit availability and consent, polls it while the
app is in the foreground, and turns its raw samples and workouts into the
canonical records the rest of the app stores and displays.

Subpackages:
    providers/ — HealthDataProvider implementations (HTTP relay)
    sync/      — Daily bulk sync into the backend, deterministic row keys

Core modules:
    catalog       — Vital types, HealthKit identifiers, units, workout names
    base          — Canonical records and the HealthDataProvider ABC
    normalizer    — Pure raw → canonical conversion
    gateway       — Availability and permission checks
    fetcher       — Latest-vitals snapshots, recent workouts, range queries
    lifecycle     — Foreground/background notifications
    controller    — Refresh lifecycle (timer + foreground resume)
    alerts        — Elevated heart-rate prompt
    config_loader — Load/validate/hot-reload sync_config.yaml
"""

from src.healthkit.base import (
    HealthDataProvider,
    LatestVitals,
    VitalSample,
    WorkoutRecord,
)
from src.healthkit.catalog import VitalType
from src.healthkit.controller import HealthSyncController, SyncState
from src.healthkit.fetcher import VitalsFetcher
from src.healthkit.gateway import HealthKitGateway

__all__ = [
    "HealthDataProvider",
    "HealthKitGateway",
    "HealthSyncController",
    "LatestVitals",
    "SyncState",
    "VitalSample",
    "VitalType",
    "VitalsFetcher",
    "WorkoutRecord",
]
