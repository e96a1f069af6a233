"""Engine configuration for policykit.

This module provides the Pydantic-validated configuration model that controls
the enforcer's side effects (role link rebuilding, persistence, watcher
notification) and the ambient settings (log level, Redis watcher).

Direct os.environ/os.getenv usage is only allowed inside
:func:`load_engine_config_from_env`. Everything else receives an
:class:`EngineConfig` instance.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_WATCHER_CHANNEL = "policykit:policy-updates"
DEFAULT_MAX_HIERARCHY_LEVEL = 10


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EngineConfig(BaseModel):
    """Configuration for an enforcer instance.

    The three ``auto_*`` switches mirror the enforcer's runtime toggles
    (``enable_auto_build_role_links`` etc.) and only provide their initial
    values.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the engine",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Mutation side effects
    auto_build_role_links: bool = Field(
        default=True,
        description="Rebuild the role graph after every grouping policy mutation",
    )
    auto_save: bool = Field(
        default=True,
        description="Forward every committed mutation to the persistence adapter",
    )
    auto_notify_watcher: bool = Field(
        default=True,
        description="Notify registered watchers after every committed mutation",
    )

    # Role hierarchy
    max_hierarchy_level: int = Field(
        default=DEFAULT_MAX_HIERARCHY_LEVEL,
        ge=1,
        description="Maximum number of inheritance hops followed by role queries",
    )

    # Redis watcher
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for the policy update watcher",
    )
    watcher_channel: str = Field(
        default=DEFAULT_WATCHER_CHANNEL,
        min_length=1,
        description="Pub/sub channel used to broadcast policy changes",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",  # Prevent accidental extra fields
    }


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


def load_engine_config_from_env() -> EngineConfig:
    """Load engine configuration from environment variables.

    This is the ONLY place where os.getenv is allowed for engine settings.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL for the watcher
    - POLICY_AUTO_BUILD_ROLE_LINKS: Rebuild role links on grouping changes (default: true)
    - POLICY_AUTO_SAVE: Persist mutations through the adapter (default: true)
    - POLICY_AUTO_NOTIFY_WATCHER: Notify watchers on mutations (default: true)
    - POLICY_MAX_HIERARCHY_LEVEL: Role inheritance depth limit (default: 10)
    - POLICY_WATCHER_CHANNEL: Pub/sub channel name

    Returns:
        EngineConfig instance with values from environment or defaults.
    """
    import os

    return EngineConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_flag(os.getenv("LOG_JSON", "false")),
        redis_url=os.getenv("REDIS_URL"),
        auto_build_role_links=_env_flag(os.getenv("POLICY_AUTO_BUILD_ROLE_LINKS", "true")),
        auto_save=_env_flag(os.getenv("POLICY_AUTO_SAVE", "true")),
        auto_notify_watcher=_env_flag(os.getenv("POLICY_AUTO_NOTIFY_WATCHER", "true")),
        max_hierarchy_level=int(os.getenv("POLICY_MAX_HIERARCHY_LEVEL", str(DEFAULT_MAX_HIERARCHY_LEVEL))),
        watcher_channel=os.getenv("POLICY_WATCHER_CHANNEL", DEFAULT_WATCHER_CHANNEL),
    )


__all__ = [
    "DEFAULT_MAX_HIERARCHY_LEVEL",
    "DEFAULT_WATCHER_CHANNEL",
    "EngineConfig",
    "LogLevel",
    "load_engine_config_from_env",
]
