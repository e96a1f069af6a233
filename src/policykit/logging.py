"""Logging helpers for policykit.

- ``setup_logging`` configures the root logger from EngineConfig.
- ``get_enforcer_logger`` returns an adapter that stamps ``enforcer_id``.
- ``preview_rules`` / ``safe_preview`` keep rule dumps in debug logs short.
- ``redact_secrets`` masks labelled credentials before they reach a handler.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Sequence

from .config import EngineConfig, LogLevel


# Only labelled credentials and auth headers; the label is kept, the value
# replaced. Bare hex strings and path segments are ordinary rule fields.
CREDENTIAL_PATTERNS = (
    re.compile(
        r"(?i)\b(password|passwd|secret|(?:auth[_-]?|access[_-]?)?token|api[_-]?key|access[_-]?key)"
        r"(\s*[:=]\s*)[\"']?[^\"'\s,\]]+"
    ),
    re.compile(r"(?i)\b(bearer|basic)(\s+)[A-Za-z0-9._~+/=-]+"),
)

_RESERVED_RECORD_KEYS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "enforcer_id",
})


def _is_rule_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(rule, (list, tuple)) for rule in value)


def preview_rules(rules: Sequence[Sequence[str]], max_rules: int = 5) -> str:
    """Render rules as ``[alice, data1, read], [bob, data2, write] (+3 more)``."""
    shown = ", ".join("[" + ", ".join(str(field) for field in rule) + "]" for rule in rules[:max_rules])
    hidden = len(rules) - max_rules
    return f"{shown} (+{hidden} more)" if hidden > 0 else shown


def safe_preview(value: Any, limit: int = 240) -> str:
    """One-line text for a logged value, cut to ``limit`` characters.

    Rule lists go through :func:`preview_rules`; other containers are dumped
    as JSON.
    """
    if value is None:
        return ""
    if _is_rule_list(value):
        text = preview_rules(value)
    elif isinstance(value, (dict, list, tuple)):
        text = json.dumps(value, default=str, ensure_ascii=False)
    else:
        text = str(value)
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 1] + "…"


def redact_secrets(text: str, replacement: str = "[REDACTED]") -> str:
    """Replace the value of every labelled credential in ``text``."""
    if not isinstance(text, str):
        return text
    for pattern in CREDENTIAL_PATTERNS:
        text = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{replacement}", text)
    return text


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    preview = safe_preview(value, limit=limit)
    return redact_secrets(preview) if redact else preview


class PolicyLogFormatter(logging.Formatter):
    """Formatter that includes enforcer_id and optionally emits JSON.

    Extra fields passed via ``extra=`` are rendered through
    :func:`safe_log_value`, so whole rule lists can be attached to a record
    without flooding the log.
    """

    def __init__(
        self,
        include_enforcer_id: bool = True,
        json_format: bool = True,
        redact_secrets: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.include_enforcer_id = include_enforcer_id
        self.json_format = json_format
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        enforcer_id = getattr(record, "enforcer_id", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_enforcer_id and enforcer_id:
            log_data["enforcer_id"] = enforcer_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = safe_log_value(value, redact=self.redact_secrets)

        if self.redact_secrets:
            log_data["message"] = redact_secrets(log_data["message"])

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        if self.include_enforcer_id and enforcer_id:
            parts.append(f"enforcer_id={enforcer_id}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class EnforcerLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps every record with the owning enforcer's id.

    Usage:
        logger = get_enforcer_logger(__name__, enforcer_id="orders")
        logger.info("Policy loaded", extra={"rules": 42})
    """

    def __init__(self, logger: logging.Logger, enforcer_id: Optional[str] = None):
        super().__init__(logger, {})
        self.enforcer_id = enforcer_id

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        enforcer_id = kwargs.pop("enforcer_id", self.enforcer_id)
        extra = dict(kwargs.get("extra") or {})
        if enforcer_id:
            extra["enforcer_id"] = enforcer_id
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    config: Optional[EngineConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
) -> None:
    """Configure the root logger for an application embedding policykit.

    Args:
        config: EngineConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
        redact_secrets: Whether to redact secrets (default: True)
    """
    if config is None:
        from .config import load_engine_config_from_env
        config = load_engine_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        PolicyLogFormatter(
            include_enforcer_id=True,
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
        )
    )
    root_logger.addHandler(console_handler)


def get_enforcer_logger(name: str, enforcer_id: Optional[str] = None) -> EnforcerLoggerAdapter:
    """Get a logger adapter bound to an enforcer instance.

    Args:
        name: Logger name (typically __name__)
        enforcer_id: Identifier of the enforcer emitting the records

    Returns:
        EnforcerLoggerAdapter instance
    """
    return EnforcerLoggerAdapter(logging.getLogger(name), enforcer_id=enforcer_id)


__all__ = [
    "CREDENTIAL_PATTERNS",
    "preview_rules",
    "safe_preview",
    "redact_secrets",
    "safe_log_value",
    "PolicyLogFormatter",
    "EnforcerLoggerAdapter",
    "setup_logging",
    "get_enforcer_logger",
]
