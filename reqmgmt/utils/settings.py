"""Environment-driven settings for reference id allocation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, cast

logger = logging.getLogger(__name__)

CounterBackend = Literal["auto", "memory"]

DEFAULT_LOCK_TIMEOUT_MS = 100
DEFAULT_LOCK_POLL_INTERVAL_MS = 10

_COUNTER_BACKENDS = ("auto", "memory")


@dataclass(frozen=True)
class ReferenceIdSettings:
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    lock_poll_interval_ms: int = DEFAULT_LOCK_POLL_INTERVAL_MS
    counter_backend: CounterBackend = "auto"

    @property
    def lock_timeout(self) -> float:
        """Coordinator budget in seconds."""
        return self.lock_timeout_ms / 1000.0

    @property
    def lock_poll_interval(self) -> float:
        return self.lock_poll_interval_ms / 1000.0


def _positive_int(value: str | None, default: int, env_var: str) -> int:
    """Return a positive integer from an environment-style value or the default."""
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", env_var, value, default)
        return default
    if parsed <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %d", env_var, value, default)
        return default
    return parsed


def _counter_backend(value: str | None) -> CounterBackend:
    normalized = (value or "auto").strip().lower() or "auto"
    if normalized not in _COUNTER_BACKENDS:
        logger.warning("Unknown REFID_COUNTER_BACKEND '%s'; using auto.", value)
        return "auto"
    return cast(CounterBackend, normalized)


@lru_cache(maxsize=None)
def get_reference_id_settings() -> ReferenceIdSettings:
    """Return the cached settings sourced from the environment."""
    return ReferenceIdSettings(
        lock_timeout_ms=_positive_int(
            os.getenv("REFID_LOCK_TIMEOUT_MS"), DEFAULT_LOCK_TIMEOUT_MS, "REFID_LOCK_TIMEOUT_MS"
        ),
        lock_poll_interval_ms=_positive_int(
            os.getenv("REFID_LOCK_POLL_INTERVAL_MS"),
            DEFAULT_LOCK_POLL_INTERVAL_MS,
            "REFID_LOCK_POLL_INTERVAL_MS",
        ),
        counter_backend=_counter_backend(os.getenv("REFID_COUNTER_BACKEND")),
    )


def refresh_reference_id_settings_cache() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_reference_id_settings.cache_clear()
