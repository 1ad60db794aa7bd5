"""Environment-based settings for the auditstream service."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from auditstream.errors import ConfigurationError

ENV_PREFIX = "AUDITSTREAM_"

SOURCE_KINDS = ("auto", "tail", "log-stream", "windows", "replay")


def _env_float(env: Mapping[str, str], name: str, default: float, minimum: float = 0.0) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from e
    if value < minimum or value != value:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {raw!r}")
    return value


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Process settings.

    Attributes:
        host: Bind address of the HTTP server.
        port: Bind port of the HTTP server.
        source: Source variant, one of SOURCE_KINDS. ``auto`` picks the
            native mechanism of the running platform.
        tail_path: Log file followed by the tail source.
        log_binary: ``log`` executable used by the log-stream source.
        windows_channel: Event log channel for the Windows source.
        grace_interval: Seconds between stopping a source and starting
            its replacement.
        poll_interval: Queue wait tick of source receive() calls.
        fanout_capacity: Per-subscriber buffer size of the broadcaster.
        static_dir: Directory of UI assets, served when it exists.
        log_level: Root log level name.
    """

    host: str = "0.0.0.0"
    port: int = 9357
    source: str = "auto"
    tail_path: str = "/var/log/audit/audit.log"
    log_binary: str = "/usr/bin/log"
    windows_channel: str = "Security"
    grace_interval: float = 0.1
    poll_interval: float = 0.05
    fanout_capacity: int = 100
    static_dir: str = "ui/dist"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.source not in SOURCE_KINDS:
            raise ConfigurationError(
                f"Unknown source '{self.source}', expected one of: {', '.join(SOURCE_KINDS)}"
            )
        if self.fanout_capacity < 1:
            raise ConfigurationError("fanout_capacity must be at least 1")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Load settings from ``AUDITSTREAM_*`` environment variables."""
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            host=env.get(ENV_PREFIX + "HOST") or defaults.host,
            port=_env_int(env, "PORT", defaults.port, minimum=1),
            source=(env.get(ENV_PREFIX + "SOURCE") or defaults.source).lower(),
            tail_path=env.get(ENV_PREFIX + "TAIL_PATH") or defaults.tail_path,
            log_binary=env.get(ENV_PREFIX + "LOG_BINARY") or defaults.log_binary,
            windows_channel=env.get(ENV_PREFIX + "WINDOWS_CHANNEL") or defaults.windows_channel,
            grace_interval=_env_float(env, "GRACE_INTERVAL", defaults.grace_interval),
            poll_interval=_env_float(env, "POLL_INTERVAL", defaults.poll_interval, minimum=0.001),
            fanout_capacity=_env_int(env, "FANOUT_CAPACITY", defaults.fanout_capacity, minimum=1),
            static_dir=env.get(ENV_PREFIX + "STATIC_DIR") or defaults.static_dir,
            log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or defaults.log_level).upper(),
        )

    def replace(self, **overrides: Any) -> "Settings":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
