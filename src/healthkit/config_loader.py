"""Load, validate, and hot-reload the HeartSense sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_sync_config()`` to re-read from
disk; no restart required.

Usage::

    from src.healthkit.config_loader import get_sync_config

    config = get_sync_config()
    config.refresh.interval_seconds        # 300
    config.elevated_heart_rate.threshold_bpm  # 100
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("heartsense.healthkit.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class RefreshConfig:
    """Foreground polling settings for the sync controller."""

    interval_seconds: float
    recent_workouts_limit: int


@dataclass
class DailySyncConfig:
    """Once-per-day bulk sync settings."""

    lookback_hours: int
    workouts_limit: int


@dataclass
class SymptomContextConfig:
    """Window of vitals attached to a symptom entry (± minutes)."""

    window_minutes: int


@dataclass
class ElevatedHeartRateConfig:
    """Elevated heart-rate prompt settings."""

    enabled: bool
    threshold_bpm: float
    cooldown_minutes: int


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version:             Config schema version string.
        refresh:             Controller polling interval and workout limit.
        daily_sync:          Bulk sync lookback and workout limit.
        symptom_context:     Symptom vitals window.
        elevated_heart_rate: Elevated heart-rate prompt settings.
    """

    version: str
    refresh: RefreshConfig
    daily_sync: DailySyncConfig
    symptom_context: SymptomContextConfig
    elevated_heart_rate: ElevatedHeartRateConfig
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Missing sections fall back to defaults; values that are present must be
    numbers in range.

    Raises:
        ConfigValidationError: Listing every invalid value.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, default: float, where: str, minimum: float) -> float:
        value = section.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be a number, got {value!r}")
            return default
        if number < minimum:
            errors.append(f"{where}.{key} = {number} must be >= {minimum}")
        return number

    def _section(name: str) -> dict[str, Any]:
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            errors.append(f"'{name}' must be a mapping")
            return {}
        return section

    version = str(raw.get("version", "1.0"))

    # ── Refresh ──
    rf_raw = _section("refresh")
    refresh = RefreshConfig(
        interval_seconds=_number(rf_raw, "interval_seconds", 300, "refresh", 1),
        recent_workouts_limit=int(_number(rf_raw, "recent_workouts_limit", 20, "refresh", 1)),
    )

    # ── Daily sync ──
    ds_raw = _section("daily_sync")
    daily_sync = DailySyncConfig(
        lookback_hours=int(_number(ds_raw, "lookback_hours", 24, "daily_sync", 1)),
        workouts_limit=int(_number(ds_raw, "workouts_limit", 50, "daily_sync", 1)),
    )

    # ── Symptom context ──
    sc_raw = _section("symptom_context")
    symptom_context = SymptomContextConfig(
        window_minutes=int(_number(sc_raw, "window_minutes", 30, "symptom_context", 1)),
    )

    # ── Elevated heart rate ──
    hr_raw = _section("elevated_heart_rate")
    elevated_heart_rate = ElevatedHeartRateConfig(
        enabled=bool(hr_raw.get("enabled", True)),
        threshold_bpm=_number(hr_raw, "threshold_bpm", 100, "elevated_heart_rate", 1),
        cooldown_minutes=int(_number(hr_raw, "cooldown_minutes", 30, "elevated_heart_rate", 0)),
    )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        refresh=refresh,
        daily_sync=daily_sync,
        symptom_context=symptom_context,
        elevated_heart_rate=elevated_heart_rate,
        _raw=raw,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the global SyncConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_sync_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config


def reload_sync_config(path: Path | None = None) -> SyncConfig:
    """Reload the sync config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is
    re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_sync_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sync config: %s → %s", old_version, new_config.version)
    return new_config
