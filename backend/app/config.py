"""Runtime settings read from the environment (and .env, loaded by server.py)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_PORT = 3000
# How long a room may sit with a vacant host slot before the sweeper evicts it.
DEFAULT_GRACE_SECONDS = 300.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_OUTBOX_SIZE = 32


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    grace_seconds: float = DEFAULT_GRACE_SECONDS
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    outbox_size: int = DEFAULT_OUTBOX_SIZE
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        origins = [o.strip() for o in _env_str("CORS_ORIGINS", "*").split(",") if o.strip()]
        outbox_size = _env_int("OUTBOX_SIZE", DEFAULT_OUTBOX_SIZE)
        if outbox_size < 1:
            raise ValueError(f"OUTBOX_SIZE must be >= 1, got {outbox_size}")
        return cls(
            host=_env_str("HOST", "0.0.0.0"),
            port=_env_int("PORT", DEFAULT_PORT),
            grace_seconds=_env_float("ROOM_GRACE_SECONDS", DEFAULT_GRACE_SECONDS),
            sweep_interval_seconds=_env_float("SWEEP_INTERVAL_SECONDS", DEFAULT_SWEEP_INTERVAL_SECONDS),
            outbox_size=outbox_size,
            cors_origins=origins or ["*"],
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
