"""Availability and permission gateway for the HealthKit provider.

Both operations reduce every outcome to a boolean: unsupported platforms,
missing provider support and denied consent are normal results, not errors.
"""

from __future__ import annotations

import logging

from src.healthkit.base import HealthDataProvider
from src.healthkit.catalog import READ_IDENTIFIERS, WRITE_IDENTIFIERS

logger = logging.getLogger("heartsense.healthkit.gateway")

#: HealthKit only exists on iOS.
SUPPORTED_PLATFORM = "ios"


class HealthKitGateway:
    """Gate access to a HealthDataProvider behind platform and consent checks.

    Usage::

        gateway = HealthKitGateway(provider, platform="ios")
        if gateway.check_availability():
            granted = await gateway.request_permissions()
    """

    def __init__(self, provider: HealthDataProvider, platform: str = SUPPORTED_PLATFORM) -> None:
        self._provider = provider
        self._platform = platform.lower()

    @property
    def provider(self) -> HealthDataProvider:
        return self._provider

    @property
    def is_supported_platform(self) -> bool:
        return self._platform == SUPPORTED_PLATFORM

    def check_availability(self) -> bool:
        """Return True only on iOS with health data available.  Never raises."""
        if not self.is_supported_platform:
            return False
        try:
            return bool(self._provider.is_health_data_available())
        except Exception as exc:
            logger.warning("%s: availability check failed: %s", self._provider.DISPLAY_NAME, exc)
            return False

    async def request_permissions(self) -> bool:
        """Prompt for read access to the five vitals and workouts.

        Returns:
            True if access was granted, False if denied, unavailable or the
            request failed.
        """
        if not self.check_availability():
            return False
        try:
            granted = await self._provider.request_permissions(
                list(READ_IDENTIFIERS), list(WRITE_IDENTIFIERS)
            )
        except Exception as exc:
            logger.warning("%s: authorization failed: %s", self._provider.DISPLAY_NAME, exc)
            return False

        logger.info(
            "%s: authorization %s", self._provider.DISPLAY_NAME, "granted" if granted else "denied"
        )
        return bool(granted)
