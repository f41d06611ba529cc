"""
Centralized settings for cachecell.

:class:`CacheCellSettings` is the single validated source of the cache
connection configuration. Values come from ``CACHECELL_*`` environment
variables or a ``.env`` file.

The settings only describe how to build a client. Cells never read them:
the client built from them is passed explicitly to every Cell and
:class:`~cachecell.host.CacheHost`. Build it once at startup, from one
thread, and share it.

Tags:
    cachecell, configuration, settings, pydantic
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .components import ClientBackend, LogFormat


class CacheCellSettings(BaseSettings):
    """cachecell configuration.

    All fields can be set via ``CACHECELL_*`` environment variables (e.g.
    ``CACHECELL_BACKEND=memcached``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHECELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Backend ──────────────────────────────────────────────────
    backend: ClientBackend = Field(default=ClientBackend.MEMORY)

    # ── Memcached ────────────────────────────────────────────────
    servers: list[str] = Field(
        default=["127.0.0.1:11211"],
        description="memcached servers as host:port; more than one uses consistent hashing",
    )
    connect_timeout: float = Field(default=2.0, gt=0)
    timeout: float = Field(default=2.0, gt=0)

    # ── Redis ────────────────────────────────────────────────────
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_max_connections: int = Field(default=10, gt=0)

    # ── In-memory ────────────────────────────────────────────────
    memory_max_size: int = Field(default=10_000, gt=0)

    # ── Cells ────────────────────────────────────────────────────
    default_ttl: int = Field(default=0, description="Expiry in seconds for new cells, 0 for none")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.AUTO)

    @field_validator("default_ttl")
    @classmethod
    def _non_negative_ttl(cls, value: int) -> int:
        if value < 0:
            raise ValueError("default_ttl must be >= 0")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def json_logs(self) -> bool | None:
        """``json_format`` argument for :func:`cachecell.logging.configure_logging`."""
        if self.log_format is LogFormat.AUTO:
            return None
        return self.log_format is LogFormat.JSON


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, CacheCellSettings] = {}


def get_settings(*, _force_reload: bool = False) -> CacheCellSettings:
    """Load, validate, and cache a :class:`CacheCellSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = CacheCellSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
