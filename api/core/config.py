"""
Settings read from the environment.

Durations accept Go-style strings ("200ms", "1.5s", "2m") or bare seconds.
Command-line flags override these defaults (see `serve.py`).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(raw: str) -> float:
    """
    Parse a duration into seconds. "1m30s" and "250ms" are both accepted.
    """
    text = (raw or "").strip()
    if not text:
        raise ValueError("Duration is empty.")

    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            pos = match.end()
        if pos != len(text) or pos == 0:
            raise ValueError(f"Invalid duration: {raw!r}") from None

    if seconds < 0:
        raise ValueError(f"Duration must be non-negative: {raw!r}")
    return seconds


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_duration(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return parse_duration(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8080
    query_timeout_s: float = 0.2
    persist_timeout_s: float = 0.01
    drain_timeout_s: float = 10.0
    exchange_base_url: str = "https://economia.awesomeapi.com.br"
    exchange_pair: str = "USD-BRL"
    database_url: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        defaults = cls()
        return cls(
            host=_env_str("HOST", defaults.host),
            port=_env_int("PORT", defaults.port),
            query_timeout_s=_env_duration("QUERY_TIMEOUT", defaults.query_timeout_s),
            persist_timeout_s=_env_duration("PERSIST_TIMEOUT", defaults.persist_timeout_s),
            drain_timeout_s=_env_duration("DRAIN_TIMEOUT", defaults.drain_timeout_s),
            exchange_base_url=_env_str("EXCHANGE_BASE_URL", defaults.exchange_base_url),
            exchange_pair=_env_str("EXCHANGE_PAIR", defaults.exchange_pair).upper(),
            database_url=os.environ.get("DATABASE_URL", "").strip(),
            log_level=_env_str("LOG_LEVEL", defaults.log_level).upper(),
        )

    @property
    def exchange_url(self) -> str:
        return f"{self.exchange_base_url.rstrip('/')}/json/last/{self.exchange_pair}"
