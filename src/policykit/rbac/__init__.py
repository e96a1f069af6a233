"""Role hierarchy resolution."""

from .role_manager import DEFAULT_DOMAIN, MatchingFunc, RoleManager

__all__ = [
    "DEFAULT_DOMAIN",
    "MatchingFunc",
    "RoleManager",
]
