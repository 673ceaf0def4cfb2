"""HeartSense HealthKit sync — process entry point.

Runs the health sync controller against the HealthKit relay and logs each
snapshot until interrupted.  With a user configured it also runs the daily
sync on start and on each foreground resume.

Run locally:
    python -m src.main
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

from src.config import Settings, get_settings
from src.healthkit.alerts import ElevatedHeartRateMonitor
from src.healthkit.config_loader import get_sync_config, reload_sync_config
from src.healthkit.controller import HealthSyncController, SyncState
from src.healthkit.fetcher import VitalsFetcher
from src.healthkit.gateway import HealthKitGateway
from src.healthkit.lifecycle import AppStateMonitor
from src.healthkit.providers import BridgeHealthProvider
from src.healthkit.sync.daily import DailySyncService, HealthDataWriter, InMemorySyncMarkerStore
from src.healthkit.sync.tracker import DailySyncTracker
from src.models.health import ActivityCreate, HealthDataCreate

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("heartsense")


async def _log_notification(user_id: str, title: str, message: str, data: dict) -> None:
    logger.info("[notify %s] %s: %s %s", user_id, title, message, data)


class LoggingHealthDataWriter(HealthDataWriter):
    """Log rows instead of writing them; stands in for the backend store."""

    async def upsert_health_data(self, key: str, row: HealthDataCreate) -> None:
        logger.info("[upsert health_data %s] %s", key, row.to_row())

    async def upsert_activity(self, key: str, row: ActivityCreate) -> None:
        logger.info("[upsert activities %s] %s", key, row.to_row())


def _log_snapshot(state: SyncState) -> None:
    if state.vitals is None:
        return
    readings = ", ".join(f"{s.type.value}={s.value:g} {s.unit}" for s in state.vitals.samples())
    logger.info(
        "Snapshot: %s | %d workouts | last updated %s",
        readings or "no vitals",
        len(state.workouts),
        state.vitals.last_updated,
    )


async def run(settings: Settings) -> None:
    logging.getLogger().setLevel(settings.log_level.upper())
    config = (
        reload_sync_config(Path(settings.sync_config_path))
        if settings.sync_config_path
        else get_sync_config()
    )
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)

    provider = BridgeHealthProvider(
        settings.healthkit_bridge_url,
        token=settings.healthkit_bridge_token,
        timeout=settings.healthkit_bridge_timeout_seconds,
    )
    await provider.refresh_availability()

    gateway = HealthKitGateway(provider, platform=settings.platform)
    fetcher = VitalsFetcher(provider)
    app_state = AppStateMonitor()
    controller = HealthSyncController(
        gateway,
        fetcher,
        app_state,
        refresh_interval=config.refresh.interval_seconds,
        workouts_limit=config.refresh.recent_workouts_limit,
        on_update=_log_snapshot,
    )

    hr_config = config.elevated_heart_rate
    if settings.user_id and hr_config.enabled:
        monitor = ElevatedHeartRateMonitor(
            _log_notification,
            threshold_bpm=hr_config.threshold_bpm,
            cooldown=timedelta(minutes=hr_config.cooldown_minutes),
        )

        async def _check_heart_rate(state: SyncState) -> None:
            if state.vitals is not None:
                await monitor.check(settings.user_id, state.vitals)

        controller.add_listener(_check_heart_rate)

    tracker: DailySyncTracker | None = None
    if settings.user_id:
        service = DailySyncService.from_config(
            gateway, fetcher, LoggingHealthDataWriter(), InMemorySyncMarkerStore(), config
        )
        tracker = DailySyncTracker(service, settings.user_id, app_state)

    try:
        async with controller:
            if not controller.state.is_available or not controller.state.is_authorized:
                logger.info("HealthKit sync inactive (available=%s, authorized=%s)",
                            controller.state.is_available, controller.state.is_authorized)
                return
            if tracker is not None:
                tracker.start()
            await asyncio.Event().wait()
    finally:
        if tracker is not None:
            tracker.close()
        await provider.aclose()
        logger.info("%s shut down", settings.app_name)


def main() -> None:
    try:
        asyncio.run(run(get_settings()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
