"""Persistence adapters, watchers and the change events they exchange."""

from .adapter import Adapter, MemoryAdapter
from .events import PolicyChange, PolicyOperation
from .file_adapter import FileAdapter
from .redis_watcher import RedisWatcher
from .watcher import UpdatableWatcher, UpdateCallback, Watcher

__all__ = [
    "Adapter",
    "FileAdapter",
    "MemoryAdapter",
    "PolicyChange",
    "PolicyOperation",
    "RedisWatcher",
    "UpdatableWatcher",
    "UpdateCallback",
    "Watcher",
]
