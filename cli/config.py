from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0

_BASE_URL_ENV = "API_BASE_URL"
_TIMEOUT_ENV = "CLI_TIMEOUT"
_TOKEN_ENV = "API_TOKEN"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    token: Optional[str] = None


def _env_or_none(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


def _positive_float(raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _normalize_base_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if "://" not in url:
        url = f"http://{url}"
    return url


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    token: Optional[str] = None,
) -> CLIConfig:
    """Merge command-line options over environment variables and defaults."""
    return CLIConfig(
        base_url=_normalize_base_url(base_url or _env_or_none(_BASE_URL_ENV) or DEFAULT_BASE_URL),
        timeout=timeout if timeout is not None else _positive_float(_env_or_none(_TIMEOUT_ENV), DEFAULT_TIMEOUT),
        token=token if token is not None else _env_or_none(_TOKEN_ENV),
    )
