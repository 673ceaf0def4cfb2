"""HealthKit data providers for HeartSense.

Each provider implements the HealthDataProvider ABC from src.healthkit.base.

Available providers:
    BridgeHealthProvider — on-device HealthKit relay over HTTP/JSON
"""

from src.healthkit.providers.bridge import BridgeHealthProvider

__all__ = ["BridgeHealthProvider"]
