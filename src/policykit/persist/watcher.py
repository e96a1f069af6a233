"""Watcher interfaces.

A watcher is told about every committed mutation so that other enforcer
instances can catch up. Plain ``Watcher`` implementations only receive
``update()`` ("something changed, reload"); ``UpdatableWatcher`` ones receive
the exact :class:`PolicyChange`.

Incoming notifications from other instances are delivered through the
callback installed with ``set_update_callback``. The enforcer installs one
that replays the change (or reloads on ``None`` / ``RELOAD``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from .events import PolicyChange, PolicyOperation

UpdateCallback = Callable[[Optional[PolicyChange]], None]


class Watcher(ABC):
    """Coarse-grained watcher: one ``update()`` per committed mutation."""

    _callback: Optional[UpdateCallback] = None

    def set_update_callback(self, callback: Optional[UpdateCallback]) -> None:
        self._callback = callback

    @abstractmethod
    def update(self) -> None:
        """Announce that the policy changed."""
        raise NotImplementedError

    def close(self) -> None:
        """Release transport resources. No-op by default."""


class UpdatableWatcher(Watcher):
    """Watcher that receives the precise change of every mutation."""

    @abstractmethod
    def update_for_change(self, change: PolicyChange) -> None:
        raise NotImplementedError

    def update(self) -> None:
        self.update_for_change(PolicyChange(operation=PolicyOperation.RELOAD))


__all__ = [
    "UpdatableWatcher",
    "UpdateCallback",
    "Watcher",
]
