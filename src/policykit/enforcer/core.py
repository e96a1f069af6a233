"""Enforcer state: policy store, role managers, functions, collaborators.

``CoreEnforcer`` owns everything one enforcer instance mutates and the
switches that control mutation side effects. Mutation logic lives in
:mod:`policykit.enforcer.internal`, the public API in
:mod:`policykit.enforcer.management`.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from ..config import EngineConfig
from ..exceptions import (
    AdapterError,
    ConfigurationError,
    InvalidArgumentError,
    PolicyEngineError,
    WatcherError,
)
from ..functions import FunctionRegistry, PolicyFunction, generate_g_function
from ..locks import ReadWriteLock
from ..logging import get_enforcer_logger
from ..persist.adapter import Adapter
from ..persist.events import PolicyChange, PolicyOperation
from ..persist.watcher import UpdatableWatcher, Watcher
from ..policy.constants import Section
from ..policy.definition import ModelDefinition
from ..policy.store import PolicyStore
from ..rbac.role_manager import MatchingFunc, RoleManager


class CoreEnforcer:
    """Explicitly owned aggregate of PolicyStore, RoleManagers and FunctionRegistry.

    Args:
        model: A :class:`ModelDefinition` or a mapping accepted by it. Defaults
            to a single ``p = sub, obj, act`` ptype without roles.
        adapter: Optional persistence adapter; the policy is loaded from it
            immediately.
        config: Engine configuration; defaults to :class:`EngineConfig()`.
        functions: Functions to start from; the enforcer works on its own copy
            (``enforcer.functions``), where it also registers one role
            predicate per grouping ptype. Built-ins only when omitted.
        enforcer_id: Identifier used in log records.
    """

    def __init__(
        self,
        model: Union[ModelDefinition, Mapping[str, Any], None] = None,
        adapter: Optional[Adapter] = None,
        *,
        config: Optional[EngineConfig] = None,
        functions: Optional[FunctionRegistry] = None,
        enforcer_id: Optional[str] = None,
    ) -> None:
        if model is None:
            model = ModelDefinition()
        elif not isinstance(model, ModelDefinition):
            model = ModelDefinition.model_validate(dict(model))
        self.definition = model
        self.config = config or EngineConfig()
        self.enforcer_id = enforcer_id or uuid4().hex[:12]
        self.logger = get_enforcer_logger(__name__, self.enforcer_id)

        # Writers hold it for a whole operation: store, role links, adapter, watchers.
        # The store and role managers take its read side for queries.
        self._lock = ReadWriteLock()

        self.store = PolicyStore(self.definition, lock=self._lock)
        self.functions = functions.copy() if functions is not None else FunctionRegistry.with_builtins()
        self._role_managers: dict[str, RoleManager] = {}
        for ptype in self.store.ptypes(Section.GROUPING):
            self.set_named_role_manager(ptype, RoleManager(self.config.max_hierarchy_level))

        self.adapter = adapter
        self._watchers: list[Watcher] = []

        self.auto_build_role_links = self.config.auto_build_role_links
        self.auto_save = self.config.auto_save
        self.auto_notify_watcher = self.config.auto_notify_watcher

        if adapter is not None:
            self.load_policy()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(enforcer_id={self.enforcer_id!r}, adapter={self.adapter!r})"

    @property
    def lock(self) -> ReadWriteLock:
        """Hold ``enforcer.lock.read()`` to run several queries against one state."""
        return self._lock

    # ── Switches ────────────────────────────────────────

    def enable_auto_build_role_links(self, enabled: bool = True) -> None:
        self.auto_build_role_links = enabled

    def enable_auto_save(self, enabled: bool = True) -> None:
        self.auto_save = enabled

    def enable_auto_notify_watcher(self, enabled: bool = True) -> None:
        self.auto_notify_watcher = enabled

    # ── Role managers ───────────────────────────────────

    def get_role_manager(self, ptype: str = Section.GROUPING) -> RoleManager:
        return self.get_named_role_manager(ptype)

    def get_named_role_manager(self, ptype: str) -> RoleManager:
        try:
            return self._role_managers[ptype]
        except KeyError:
            raise InvalidArgumentError(f"No role manager for grouping ptype {ptype!r}", ptype=ptype) from None

    def set_named_role_manager(self, ptype: str, role_manager: RoleManager) -> None:
        """Install a role manager for ``ptype`` and expose it to the matcher as ``ptype(...)``."""
        if not self.store.has_ptype(Section.GROUPING, ptype):
            raise InvalidArgumentError(f"Unknown grouping ptype {ptype!r}", ptype=ptype)
        with self._lock.write():
            role_manager.bind_lock(self._lock)
            role_manager.rebuild(self.store.table(Section.GROUPING, ptype).rules())
            self._role_managers[ptype] = role_manager
            self.functions.add_function(ptype, generate_g_function(role_manager))

    def _resolve_function(self, fn: Union[str, MatchingFunc, None]) -> Optional[MatchingFunc]:
        if fn is None or callable(fn):
            return fn
        return self.functions.get_function(fn)

    def add_named_matching_func(self, ptype: str, fn: Union[str, MatchingFunc, None]) -> None:
        """Turn on pattern matching of names for a grouping ptype.

        ``fn`` is a callable or the name of a registered function
        (``"key_match2"``, ``"glob_match"`` ...). ``None`` turns it off.
        """
        self.get_named_role_manager(ptype).set_matching_func(self._resolve_function(fn))
        self.logger.debug("Name matching for %s set to %r", ptype, fn)

    def add_named_domain_matching_func(self, ptype: str, fn: Union[str, MatchingFunc, None]) -> None:
        """Turn on pattern matching of domains for a grouping ptype."""
        self.get_named_role_manager(ptype).set_domain_matching_func(self._resolve_function(fn))
        self.logger.debug("Domain matching for %s set to %r", ptype, fn)

    def build_role_links(self) -> None:
        """Rebuild every role graph from the current grouping rules."""
        with self._lock.write():
            for ptype, role_manager in self._role_managers.items():
                role_manager.rebuild(self.store.table(Section.GROUPING, ptype).rules())

    # ── Collaborators ───────────────────────────────────

    def set_adapter(self, adapter: Optional[Adapter]) -> None:
        self.adapter = adapter

    @property
    def watchers(self) -> tuple[Watcher, ...]:
        return tuple(self._watchers)

    # ── Whole-policy operations ─────────────────────────

    def load_policy(self) -> None:
        """Replace the in-memory policy with the adapter's content.

        The new rules are loaded into a fresh store and swapped in, so a
        failing adapter leaves the current policy untouched.
        """
        if self.adapter is None:
            raise ConfigurationError("Cannot load policy: no adapter configured")
        with self._lock.write():
            fresh = self.store.empty_copy()
            try:
                self.adapter.load_policy(fresh)
            except PolicyEngineError:
                raise
            except Exception as e:
                raise AdapterError(f"Loading policy failed: {e}", adapter=repr(self.adapter)) from e
            if self.auto_build_role_links:
                for ptype, role_manager in self._role_managers.items():
                    role_manager.rebuild(fresh.table(Section.GROUPING, ptype).rules())
            self.store = fresh
            total = sum(len(table) for table in fresh.iter_tables())
            self.logger.info("Policy loaded: %d rules", total)

    def save_policy(self) -> None:
        """Persist the full policy through the adapter and tell watchers to reload."""
        if self.adapter is None:
            raise ConfigurationError("Cannot save policy: no adapter configured")
        with self._lock.write():
            try:
                self.adapter.save_policy(self.store)
            except PolicyEngineError:
                raise
            except Exception as e:
                raise AdapterError(f"Saving policy failed: {e}", adapter=repr(self.adapter)) from e
            if self.auto_notify_watcher:
                self._notify_watchers(PolicyChange(operation=PolicyOperation.RELOAD))

    def clear_policy(self) -> None:
        """Drop every rule in memory. Nothing is persisted or announced."""
        with self._lock.write():
            self.store.clear()
            if self.auto_build_role_links:
                for role_manager in self._role_managers.values():
                    role_manager.clear()

    def _notify_watchers(self, change: PolicyChange) -> None:
        """Notify every watcher in registration order.

        Every watcher is tried even if an earlier one fails; failures are
        logged and reported together as one WatcherError.
        """
        failures: list[tuple[Watcher, Exception]] = []
        for watcher in list(self._watchers):
            try:
                if isinstance(watcher, UpdatableWatcher):
                    watcher.update_for_change(change)
                else:
                    watcher.update()
            except Exception as e:
                self.logger.warning("Watcher %r failed on %s: %s", watcher, change.operation.value, e)
                failures.append((watcher, e))
        if failures:
            raise WatcherError(
                f"{len(failures)} of {len(self._watchers)} watcher(s) failed after {change.operation.value} "
                f"on {change.ptype or 'policy'}",
                failures=failures,
                change_id=change.change_id,
            )

    # ── Functions ───────────────────────────────────────

    def add_function(self, name: str, fn: PolicyFunction) -> None:
        """Register (or overwrite) a function the matcher can call by name."""
        self.functions.add_function(name, fn)


__all__ = ["CoreEnforcer"]
