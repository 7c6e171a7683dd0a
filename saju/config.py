"""Runtime settings (SAJU_* environment variables, optionally from a .env file)."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from saju.errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val


def _int_env(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}", detail={"name": name}) from None


def _float_env(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}", detail={"name": name}) from None
    if math.isnan(value):
        raise ConfigError(f"{name} must be a number, got {raw!r}", detail={"name": name})
    return value


@dataclass
class Settings:
    """Engine settings.

    The reference location is Tokyo Station: births without coordinates are
    computed there, and naive datetimes are read in default_timezone.
    """

    default_timezone: str = field(default_factory=lambda: _env("SAJU_DEFAULT_TIMEZONE", "Asia/Tokyo"))
    reference_longitude: float = field(default_factory=lambda: _float_env("SAJU_REFERENCE_LONGITUDE", 139.7671))
    reference_latitude: float = field(default_factory=lambda: _float_env("SAJU_REFERENCE_LATITUDE", 35.6812))

    ruleset: str = field(default_factory=lambda: (_env("SAJU_RULESET", "standard") or "standard").lower())

    calendar_min_year: int = field(default_factory=lambda: _int_env("SAJU_CALENDAR_MIN_YEAR", 1900))
    calendar_max_year: int = field(default_factory=lambda: _int_env("SAJU_CALENDAR_MAX_YEAR", 2100))
    gateway_timeout: float = field(default_factory=lambda: _float_env("SAJU_GATEWAY_TIMEOUT", 2.0))
    ephe_path: Optional[str] = field(default_factory=lambda: _env("SAJU_EPHE_PATH"))

    cache_size: int = field(default_factory=lambda: _int_env("SAJU_CACHE_SIZE", 256))

    log_level: str = field(default_factory=lambda: (_env("SAJU_LOG_LEVEL", "INFO") or "INFO").upper())
    log_format: str = field(default_factory=lambda: (_env("SAJU_LOG_FORMAT", "plain") or "plain").lower())

    def __post_init__(self) -> None:
        if self.calendar_min_year > self.calendar_max_year:
            raise ConfigError(
                "SAJU_CALENDAR_MIN_YEAR is after SAJU_CALENDAR_MAX_YEAR",
                detail={"min": self.calendar_min_year, "max": self.calendar_max_year},
            )
        if self.gateway_timeout <= 0:
            raise ConfigError("SAJU_GATEWAY_TIMEOUT must be positive", detail={"value": self.gateway_timeout})
        if self.cache_size < 0:
            raise ConfigError("SAJU_CACHE_SIZE must not be negative", detail={"value": self.cache_size})
        if not -180.0 <= self.reference_longitude <= 180.0:
            raise ConfigError("SAJU_REFERENCE_LONGITUDE out of range", detail={"value": self.reference_longitude})
        if not -90.0 <= self.reference_latitude <= 90.0:
            raise ConfigError("SAJU_REFERENCE_LATITUDE out of range", detail={"value": self.reference_latitude})
        if self.log_format not in ("plain", "json"):
            raise ConfigError("SAJU_LOG_FORMAT must be plain or json", detail={"value": self.log_format})


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
