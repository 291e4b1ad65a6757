from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_ENVIRONMENT_ENV = "APP_ENV"
_VERSION_ENV = "APP_VERSION"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_TABLE_NAME_ENV = "READING_TABLE_NAME"
_TABLE_PATH_ENV = "READING_TABLE_PATH"
_DEFAULT_DEVICE_ENV = "DEFAULT_DEVICE_NAME"
_DEFAULT_LIMIT_ENV = "READINGS_DEFAULT_LIMIT"
_STATS_HOURS_ENV = "STATS_DEFAULT_HOURS"
_MULTI_USER_ENV = "MULTI_USER_MODE"
_API_TOKEN_ENV = "API_TOKEN"
_TRUST_PROXY_ENV = "TRUST_PROXY"
_QUEUE_SIZE_ENV = "NOTIFIER_QUEUE_SIZE"
_HEARTBEAT_ENV = "STREAM_HEARTBEAT_SECONDS"

ENVIRONMENTS = ("development", "test", "production")
MAX_LIMIT = 100
# Ten years.
MAX_STATS_HOURS = 87600


@dataclass(frozen=True)
class Settings:
    environment: str
    version: str
    log_level: str
    table_name: str
    table_persistence_path: Optional[str]
    default_device: str
    default_limit: int
    default_stats_hours: float
    multi_user_mode: bool
    api_token: Optional[str]
    trust_proxy: bool
    notifier_queue_size: int
    stream_heartbeat_seconds: float

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if not candidate:
        return default
    return candidate in {"1", "true", "yes", "on"}


def _read_environment(default: str) -> str:
    candidate = _read_str_env(_ENVIRONMENT_ENV, default).lower()
    return candidate if candidate in ENVIRONMENTS else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        environment=_read_environment("development"),
        version=_read_str_env(_VERSION_ENV, "1.0.0"),
        log_level=_read_log_level("INFO"),
        table_name=_read_str_env(_TABLE_NAME_ENV, "glucose_readings"),
        table_persistence_path=_read_optional_env(_TABLE_PATH_ENV, "./tmp/readings.json"),
        default_device=_read_str_env(_DEFAULT_DEVICE_ENV, "xDrip+"),
        default_limit=min(_read_positive_int(_DEFAULT_LIMIT_ENV, 10), MAX_LIMIT),
        default_stats_hours=min(_read_positive_float(_STATS_HOURS_ENV, 24.0), MAX_STATS_HOURS),
        multi_user_mode=_read_bool(_MULTI_USER_ENV, False),
        api_token=_read_optional_env(_API_TOKEN_ENV, None),
        trust_proxy=_read_bool(_TRUST_PROXY_ENV, False),
        notifier_queue_size=_read_positive_int(_QUEUE_SIZE_ENV, 100),
        stream_heartbeat_seconds=_read_positive_float(_HEARTBEAT_ENV, 30.0),
    )
