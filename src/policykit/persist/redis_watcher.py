"""Redis pub/sub watcher.

Broadcasts every committed :class:`PolicyChange` as JSON on a Redis channel
and, once ``start()`` is called, listens on the same channel in a background
thread, handing changes published by *other* instances to the update
callback.

All enforcers sharing a policy should point at the same Redis and channel::

    watcher = RedisWatcher.from_url("redis://localhost:6379/0")
    enforcer.add_watcher(watcher)
    watcher.start()

The ``redis`` package is an optional dependency (``pip install policykit[redis]``).
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..config import DEFAULT_WATCHER_CHANNEL, EngineConfig
from ..exceptions import ConfigurationError
from .events import PolicyChange
from .watcher import UpdatableWatcher

logger = logging.getLogger(__name__)


class RedisWatcher(UpdatableWatcher):
    """Watcher publishing and receiving policy changes over Redis pub/sub.

    Args:
        client: A ``redis.Redis`` client (or anything with ``publish`` and ``pubsub``).
        channel: Pub/sub channel shared by all instances.
        instance_id: Identifier stamped on outgoing changes; incoming changes
            carrying the same id are ignored. Random when omitted.
    """

    def __init__(
        self,
        client: Any,
        channel: str = DEFAULT_WATCHER_CHANNEL,
        *,
        instance_id: Optional[str] = None,
    ) -> None:
        self._client = client
        self.channel = channel
        self.instance_id = instance_id or uuid4().hex
        self._pubsub: Any = None
        self._thread: Any = None

    def __repr__(self) -> str:
        return f"RedisWatcher(channel={self.channel!r}, instance_id={self.instance_id!r})"

    @classmethod
    def from_url(cls, redis_url: str, channel: str = DEFAULT_WATCHER_CHANNEL, **kwargs: Any) -> "RedisWatcher":
        try:
            import redis as redis_sync
        except ImportError as e:
            raise ConfigurationError(
                "RedisWatcher requires the 'redis' package (pip install policykit[redis])"
            ) from e
        return cls(redis_sync.from_url(redis_url, decode_responses=True), channel, **kwargs)

    @classmethod
    def from_config(cls, config: EngineConfig, **kwargs: Any) -> "RedisWatcher":
        if not config.redis_url:
            raise ConfigurationError("REDIS_URL not configured, cannot create RedisWatcher")
        return cls.from_url(config.redis_url, config.watcher_channel, **kwargs)

    # ── Outgoing ────────────────────────────────────────

    def update_for_change(self, change: PolicyChange) -> None:
        payload = change.model_copy(update={"origin": self.instance_id}).model_dump_json()
        receivers = self._client.publish(self.channel, payload)
        logger.debug(
            "Published %s %s.%s on %s (%s receivers)",
            change.operation.value,
            change.section,
            change.ptype,
            self.channel,
            receivers,
        )

    # ── Incoming ────────────────────────────────────────

    def start(self, sleep_time: float = 0.1) -> None:
        """Subscribe to the channel and dispatch messages in a daemon thread."""
        if self._thread is not None:
            return
        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(**{self.channel: self.handle_message})
        self._thread = self._pubsub.run_in_thread(sleep_time=sleep_time, daemon=True)
        logger.info("RedisWatcher listening on %s as %s", self.channel, self.instance_id)

    def handle_message(self, message: dict[str, Any]) -> None:
        data = message.get("data")
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        if not isinstance(data, str):
            return
        try:
            change = PolicyChange.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed policy change on %s: %s", self.channel, e)
            return
        if change.origin == self.instance_id:
            return
        callback = self._callback
        if callback is None:
            logger.debug("Policy change %s received with no callback installed", change.change_id)
            return
        try:
            callback(change)
        except Exception as e:
            # Runs on the pub/sub thread; nobody upstream can catch it.
            logger.exception("Applying policy change %s failed: %s", change.change_id, e)

    def close(self) -> None:
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
        logger.info("RedisWatcher on %s closed", self.channel)


__all__ = ["RedisWatcher"]
