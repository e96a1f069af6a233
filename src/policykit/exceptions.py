"""Unified exception hierarchy for policykit.

Every error raised by the engine inherits from PolicyEngineError. This module
provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for mapping codes back to exception types

Usage:
    from policykit.exceptions import (
        PolicyEngineError,
        InvalidArgumentError,
        AdapterError,
    )

Validation errors (InvalidArgumentError and its subclasses) are raised before
any mutation happens. AdapterError and WatcherError are raised after the
in-memory policy has already changed; the change is not rolled back.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "PolicyEngineError",
    "ConfigurationError",
    "InvalidArgumentError",
    "NotFoundError",
    "FieldIndexNotFoundError",
    "AdapterError",
    "WatcherError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]


# ---- Exception Hierarchy ----------------------------------------------------


class PolicyEngineError(Exception):
    """Base exception for the policy engine.

    Attributes:
        code: Stable error code string (e.g. "INVALID_ARGUMENT").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(PolicyEngineError):
    """Invalid or missing configuration (model definition, config, optional deps)."""

    code: str = "CONFIGURATION_ERROR"


class InvalidArgumentError(PolicyEngineError):
    """Malformed rule, arity mismatch, bad field index, unknown section or ptype."""

    code: str = "INVALID_ARGUMENT"
    message: str = "Invalid argument"


class NotFoundError(PolicyEngineError):
    """Lookup of something that does not exist where a boolean result would hide a bug."""

    code: str = "NOT_FOUND"
    message: str = "Not found"


class FieldIndexNotFoundError(NotFoundError, InvalidArgumentError):
    """Field name is not defined for the ptype."""

    code: str = "FIELD_INDEX_NOT_FOUND"


class AdapterError(PolicyEngineError):
    """Persistence adapter failed after the in-memory mutation was applied."""

    code: str = "ADAPTER_ERROR"
    message: str = "Persistence adapter failure"


class WatcherError(PolicyEngineError):
    """One or more watchers failed after the in-memory mutation was applied.

    ``details["failures"]`` holds ``(watcher, exception)`` pairs in
    notification order.
    """

    code: str = "WATCHER_ERROR"
    message: str = "Watcher notification failure"


# ---- Error Registry ---------------------------------------------------------

_E = TypeVar("_E", bound=type[PolicyEngineError])


class ErrorRegistry:
    """Registry for mapping error codes to exception types."""

    def __init__(self) -> None:
        self._errors: dict[str, type[PolicyEngineError]] = {}

    def register(self, code: str, error_cls: type[PolicyEngineError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[PolicyEngineError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[PolicyEngineError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("POLICY_CONFLICT")
        class PolicyConflictError(PolicyEngineError):
            code = "POLICY_CONFLICT"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
error_registry.register("INTERNAL_ERROR", PolicyEngineError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("INVALID_ARGUMENT", InvalidArgumentError)
error_registry.register("NOT_FOUND", NotFoundError)
error_registry.register("FIELD_INDEX_NOT_FOUND", FieldIndexNotFoundError)
error_registry.register("ADAPTER_ERROR", AdapterError)
error_registry.register("WATCHER_ERROR", WatcherError)
