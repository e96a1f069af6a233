"""Policy change events passed to watchers.

A ``PolicyChange`` describes one committed mutation precisely enough for
another enforcer instance to replay it (see ``Enforcer.apply_policy_change``).
It serializes to JSON for transports such as Redis pub/sub.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class PolicyOperation(str, Enum):
    """Kind of committed mutation."""

    ADD = "add"
    REMOVE = "remove"
    REMOVE_FILTERED = "remove_filtered"
    UPDATE = "update"
    UPDATE_FILTERED = "update_filtered"
    RELOAD = "reload"  # whole policy changed; receivers reload from their adapter


class PolicyChange(BaseModel):
    """One committed mutation of a single ``(section, ptype)``.

    ``old_rules`` are the rules that left the store, ``new_rules`` the ones
    that entered it. Filtered operations also carry the filter so receivers
    can log or replay it.
    """

    operation: PolicyOperation
    section: str = ""
    ptype: str = ""
    old_rules: list[list[str]] = Field(default_factory=list)
    new_rules: list[list[str]] = Field(default_factory=list)
    field_index: Optional[int] = None
    field_values: list[str] = Field(default_factory=list)

    change_id: str = Field(default_factory=lambda: uuid4().hex)
    origin: Optional[str] = None  # set by the transport to skip its own echoes
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
    "PolicyChange",
    "PolicyOperation",
]
