"""HTTP client for an on-device HealthKit relay.

HealthKit has no server-side API; the relay app running on the phone
exposes the queries this layer needs as JSON endpoints:

    GET  /status                          → {"available": bool}
    POST /authorization                   {"read": [...], "share": [...]} → {"granted": bool}
    GET  /samples/{identifier}/latest     → sample | null
    GET  /samples/{identifier}?from=&to=  → [sample, ...]
    GET  /workouts?limit=N                → [workout, ...]
    POST /workouts/{uuid}/statistics      {"identifiers": [...]} → {identifier: {"sum": ...}}

Environment variables (see src.config.Settings):
    HEARTSENSE_HEALTHKIT_BRIDGE_URL     — relay base URL
    HEARTSENSE_HEALTHKIT_BRIDGE_TOKEN   — bearer token shared with the relay
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from src.healthkit.base import HealthDataProvider
from src.healthkit.normalizer import to_iso_timestamp

logger = logging.getLogger("heartsense.healthkit.bridge")


class BridgeHealthProvider(HealthDataProvider):
    """HealthDataProvider backed by the HealthKit relay over HTTP.

    Availability must be answered synchronously, so it is a cached flag:
    ``refresh_availability()`` asks the relay and updates it.  Until the first
    check the provider reports unavailable.
    """

    DISPLAY_NAME = "HealthKit Bridge"

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the bridge provider.

        Args:
            base_url:    Relay base URL.
            token:       Bearer token, if the relay requires one.
            timeout:     Request timeout in seconds.
            http_client: Optional pre-configured httpx client (for testing).
                         When given, the caller owns its lifetime.
        """
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout
        )
        self._available = False

    # ------------------------------------------------------------------
    # HealthDataProvider interface
    # ------------------------------------------------------------------

    def is_health_data_available(self) -> bool:
        return self._available

    async def refresh_availability(self) -> bool:
        """Ask the relay whether HealthKit is available and cache the answer."""
        try:
            data = await self._request("GET", "/status")
            self._available = bool(data and data.get("available"))
        except httpx.HTTPError as exc:
            logger.warning("HealthKit bridge unreachable: %s", exc)
            self._available = False
        return self._available

    async def request_permissions(self, read: list[str], share: list[str]) -> bool:
        data = await self._request("POST", "/authorization", json={"read": read, "share": share})
        return bool(data and data.get("granted"))

    async def query_latest_sample(self, identifier: str) -> dict[str, Any] | None:
        return await self._request("GET", f"/samples/{identifier}/latest")

    async def query_samples(
        self, identifier: str, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        params = {"from": to_iso_timestamp(start), "to": to_iso_timestamp(end)}
        return await self._request("GET", f"/samples/{identifier}", params=params) or []

    async def query_workouts(self, limit: int) -> list[dict[str, Any]]:
        return await self._request("GET", "/workouts", params={"limit": limit}) or []

    async def query_statistics(
        self, workout_id: str, identifiers: list[str]
    ) -> dict[str, Any]:
        return (
            await self._request(
                "POST", f"/workouts/{workout_id}/statistics", json={"identifiers": identifiers}
            )
            or {}
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request to the relay and return the decoded JSON body.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
        """
        response = await self._client.request(method, path, **kwargs)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()
