"""Server configuration with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_PREFIX = "CHIMPCHAT_REST_"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
# Default budget for /init when the caller passes no ?timeout=
DEFAULT_INIT_TIMEOUT_MS = 20000
# Pause between connect attempts; with the default timeout this allows about three tries
DEFAULT_INIT_ATTEMPT_INTERVAL_MS = 6000
DEFAULT_PROBE_PROPERTY = "ro.product.model"
DEFAULT_CONNECT_POLL_INTERVAL_MS = 200

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env(name: str) -> str | None:
    value = os.environ.get(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as err:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from err


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")


@dataclass
class ServerConfig:
    """Settings for the server process and the connect sequence."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    init_timeout_ms: int = DEFAULT_INIT_TIMEOUT_MS
    init_retry: bool = True
    init_attempt_interval_ms: int = DEFAULT_INIT_ATTEMPT_INTERVAL_MS
    probe_property: str = DEFAULT_PROBE_PROPERTY
    connect_poll_interval_ms: int = DEFAULT_CONNECT_POLL_INTERVAL_MS

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build a config from CHIMPCHAT_REST_* variables, falling back to defaults.

        Raises:
            ValueError: If a numeric or boolean variable does not parse
        """
        return cls(
            host=_env("HOST") or DEFAULT_HOST,
            port=_env_int("PORT", DEFAULT_PORT),
            init_timeout_ms=_env_int("INIT_TIMEOUT_MS", DEFAULT_INIT_TIMEOUT_MS),
            init_retry=_env_bool("INIT_RETRY", True),
            init_attempt_interval_ms=_env_int(
                "INIT_ATTEMPT_INTERVAL_MS", DEFAULT_INIT_ATTEMPT_INTERVAL_MS
            ),
            probe_property=_env("PROBE_PROPERTY") or DEFAULT_PROBE_PROPERTY,
            connect_poll_interval_ms=_env_int(
                "CONNECT_POLL_INTERVAL_MS", DEFAULT_CONNECT_POLL_INTERVAL_MS
            ),
        )
