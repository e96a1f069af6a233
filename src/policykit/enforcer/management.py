"""Public policy management API.

Queries take the read side of the enforcer lock (through the store and the
role managers), so they wait for a running mutation instead of seeing half of
it. Mutations go through the :class:`InternalEnforcer` pipeline; the
``self_*`` variants apply a change without forwarding it to the adapter or
watchers and are what :meth:`ManagementEnforcer.apply_policy_change` uses to
replay changes received from other instances.

Single-rule methods take the fields either flat or as one sequence::

    enforcer.add_policy("alice", "data1", "read")
    enforcer.add_policy(["alice", "data1", "read"])
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..exceptions import InvalidArgumentError
from ..persist.events import PolicyChange, PolicyOperation
from ..persist.watcher import Watcher
from ..policy.constants import GROUPING_ROLE_INDEX, FieldName, Section
from ..policy.store import RuleLike
from .internal import InternalEnforcer

P = Section.POLICY
G = Section.GROUPING


def _flatten(params: Sequence[object]) -> list[str]:
    """``("a", "b")`` and ``(["a", "b"],)`` both become ``["a", "b"]``."""
    if len(params) == 1 and isinstance(params[0], (list, tuple)):
        return list(params[0])
    return list(params)  # type: ignore[arg-type]


class ManagementEnforcer(InternalEnforcer):
    """Query, mutation and replication API over the policy store."""

    # ── Aggregate queries ───────────────────────────────

    def get_all_subjects(self) -> list[str]:
        return self.store.get_values_for_field_all_types(P, FieldName.SUBJECT)

    def get_all_named_subjects(self, ptype: str) -> list[str]:
        return self._named_values(ptype, FieldName.SUBJECT)

    def get_all_objects(self) -> list[str]:
        return self.store.get_values_for_field_all_types(P, FieldName.OBJECT)

    def get_all_named_objects(self, ptype: str) -> list[str]:
        return self._named_values(ptype, FieldName.OBJECT)

    def get_all_actions(self) -> list[str]:
        return self.store.get_values_for_field_all_types(P, FieldName.ACTION)

    def get_all_named_actions(self, ptype: str) -> list[str]:
        return self._named_values(ptype, FieldName.ACTION)

    def get_all_roles(self) -> list[str]:
        return self.store.get_values_for_field_all_types(G, GROUPING_ROLE_INDEX)

    def get_all_named_roles(self, ptype: str) -> list[str]:
        return self.store.get_values_for_field(G, ptype, GROUPING_ROLE_INDEX)

    def _named_values(self, ptype: str, field: str) -> list[str]:
        return self.store.get_values_for_field(P, ptype, self.store.get_field_index(ptype, field))

    # ── Rule queries ────────────────────────────────────

    def get_policy(self) -> list[list[str]]:
        return self.get_named_policy(P)

    def get_named_policy(self, ptype: str) -> list[list[str]]:
        return self.store.get_policy(P, ptype)

    def get_filtered_policy(self, field_index: int, *field_values: str) -> list[list[str]]:
        return self.get_filtered_named_policy(P, field_index, *field_values)

    def get_filtered_named_policy(self, ptype: str, field_index: int, *field_values: str) -> list[list[str]]:
        return self.store.get_filtered_policy(P, ptype, field_index, *field_values)

    def get_grouping_policy(self) -> list[list[str]]:
        return self.get_named_grouping_policy(G)

    def get_named_grouping_policy(self, ptype: str) -> list[list[str]]:
        return self.store.get_policy(G, ptype)

    def get_filtered_grouping_policy(self, field_index: int, *field_values: str) -> list[list[str]]:
        return self.get_filtered_named_grouping_policy(G, field_index, *field_values)

    def get_filtered_named_grouping_policy(
        self, ptype: str, field_index: int, *field_values: str
    ) -> list[list[str]]:
        return self.store.get_filtered_policy(G, ptype, field_index, *field_values)

    def has_policy(self, *params: str) -> bool:
        return self.has_named_policy(P, *params)

    def has_named_policy(self, ptype: str, *params: str) -> bool:
        return self.store.has_policy(P, ptype, _flatten(params))

    def has_grouping_policy(self, *params: str) -> bool:
        return self.has_named_grouping_policy(G, *params)

    def has_named_grouping_policy(self, ptype: str, *params: str) -> bool:
        return self.store.has_policy(G, ptype, _flatten(params))

    # ── Policy mutations ────────────────────────────────

    def add_policy(self, *params: str) -> bool:
        return self.add_named_policy(P, *params)

    def add_named_policy(self, ptype: str, *params: str) -> bool:
        return self._add_policy(P, ptype, _flatten(params))

    def add_policies(self, rules: Iterable[RuleLike]) -> bool:
        """Add all rules or none; False if any of them already exists."""
        return self.add_named_policies(P, rules)

    def add_named_policies(self, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._add_policies(P, ptype, rules)

    def add_policies_ex(self, rules: Iterable[RuleLike]) -> bool:
        """Add the rules that are missing and skip the ones that exist."""
        return self.add_named_policies_ex(P, rules)

    def add_named_policies_ex(self, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._add_policies(P, ptype, rules, atomic=False)

    def remove_policy(self, *params: str) -> bool:
        return self.remove_named_policy(P, *params)

    def remove_named_policy(self, ptype: str, *params: str) -> bool:
        return self._remove_policy(P, ptype, _flatten(params))

    def remove_policies(self, rules: Iterable[RuleLike]) -> bool:
        return self.remove_named_policies(P, rules)

    def remove_named_policies(self, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._remove_policies(P, ptype, rules)

    def remove_filtered_policy(self, field_index: int, *field_values: str) -> bool:
        return self.remove_filtered_named_policy(P, field_index, *field_values)

    def remove_filtered_named_policy(self, ptype: str, field_index: int, *field_values: str) -> bool:
        return self._remove_filtered_policy(P, ptype, field_index, field_values)

    def update_policy(self, old_rule: RuleLike, new_rule: RuleLike) -> bool:
        return self.update_named_policy(P, old_rule, new_rule)

    def update_named_policy(self, ptype: str, old_rule: RuleLike, new_rule: RuleLike) -> bool:
        return self._update_policy(P, ptype, old_rule, new_rule)

    def update_policies(self, old_rules: Iterable[RuleLike], new_rules: Iterable[RuleLike]) -> bool:
        return self.update_named_policies(P, old_rules, new_rules)

    def update_named_policies(
        self, ptype: str, old_rules: Iterable[RuleLike], new_rules: Iterable[RuleLike]
    ) -> bool:
        return self._update_policies(P, ptype, old_rules, new_rules)

    def update_filtered_policies(self, new_rules: Iterable[RuleLike], field_index: int, *field_values: str) -> bool:
        return self.update_filtered_named_policies(P, new_rules, field_index, *field_values)

    def update_filtered_named_policies(
        self, ptype: str, new_rules: Iterable[RuleLike], field_index: int, *field_values: str
    ) -> bool:
        return self._update_filtered_policies(P, ptype, new_rules, field_index, field_values)

    # ── Grouping mutations ──────────────────────────────

    def add_grouping_policy(self, *params: str) -> bool:
        return self.add_named_grouping_policy(G, *params)

    def add_named_grouping_policy(self, ptype: str, *params: str) -> bool:
        return self._add_policy(G, ptype, _flatten(params))

    def add_grouping_policies(self, rules: Iterable[RuleLike]) -> bool:
        return self.add_named_grouping_policies(G, rules)

    def add_named_grouping_policies(self, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._add_policies(G, ptype, rules)

    def add_grouping_policies_ex(self, rules: Iterable[RuleLike]) -> bool:
        return self.add_named_grouping_policies_ex(G, rules)

    def add_named_grouping_policies_ex(self, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._add_policies(G, ptype, rules, atomic=False)

    def remove_grouping_policy(self, *params: str) -> bool:
        return self.remove_named_grouping_policy(G, *params)

    def remove_named_grouping_policy(self, ptype: str, *params: str) -> bool:
        return self._remove_policy(G, ptype, _flatten(params))

    def remove_grouping_policies(self, rules: Iterable[RuleLike]) -> bool:
        return self.remove_named_grouping_policies(G, rules)

    def remove_named_grouping_policies(self, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._remove_policies(G, ptype, rules)

    def remove_filtered_grouping_policy(self, field_index: int, *field_values: str) -> bool:
        return self.remove_filtered_named_grouping_policy(G, field_index, *field_values)

    def remove_filtered_named_grouping_policy(self, ptype: str, field_index: int, *field_values: str) -> bool:
        return self._remove_filtered_policy(G, ptype, field_index, field_values)

    def update_grouping_policy(self, old_rule: RuleLike, new_rule: RuleLike) -> bool:
        return self.update_named_grouping_policy(G, old_rule, new_rule)

    def update_named_grouping_policy(self, ptype: str, old_rule: RuleLike, new_rule: RuleLike) -> bool:
        return self._update_policy(G, ptype, old_rule, new_rule)

    def update_grouping_policies(self, old_rules: Iterable[RuleLike], new_rules: Iterable[RuleLike]) -> bool:
        return self.update_named_grouping_policies(G, old_rules, new_rules)

    def update_named_grouping_policies(
        self, ptype: str, old_rules: Iterable[RuleLike], new_rules: Iterable[RuleLike]
    ) -> bool:
        return self._update_policies(G, ptype, old_rules, new_rules)

    # ── Without adapter / watchers ──────────────────────

    def self_add_policy(self, sec: str, ptype: str, rule: RuleLike) -> bool:
        return self._add_policy(sec, ptype, rule, notify=False)

    def self_add_policies(self, sec: str, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._add_policies(sec, ptype, rules, notify=False)

    def self_add_policies_ex(self, sec: str, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._add_policies(sec, ptype, rules, atomic=False, notify=False)

    def self_remove_policy(self, sec: str, ptype: str, rule: RuleLike) -> bool:
        return self._remove_policy(sec, ptype, rule, notify=False)

    def self_remove_policies(self, sec: str, ptype: str, rules: Iterable[RuleLike]) -> bool:
        return self._remove_policies(sec, ptype, rules, notify=False)

    def self_remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        return self._remove_filtered_policy(sec, ptype, field_index, field_values, notify=False)

    def self_update_policy(self, sec: str, ptype: str, old_rule: RuleLike, new_rule: RuleLike) -> bool:
        return self._update_policy(sec, ptype, old_rule, new_rule, notify=False)

    def self_update_policies(
        self, sec: str, ptype: str, old_rules: Iterable[RuleLike], new_rules: Iterable[RuleLike]
    ) -> bool:
        return self._update_policies(sec, ptype, old_rules, new_rules, notify=False)

    def self_update_filtered_policies(
        self, sec: str, ptype: str, new_rules: Iterable[RuleLike], field_index: int, *field_values: str
    ) -> bool:
        return self._update_filtered_policies(sec, ptype, new_rules, field_index, field_values, notify=False)

    # ── Replication ─────────────────────────────────────

    def apply_policy_change(self, change: PolicyChange) -> bool:
        """Replay a change committed by another instance.

        The change is applied with the ``self_*`` variants, so it is neither
        saved again nor re-broadcast. ``RELOAD`` reloads from the adapter.
        Returns whether the local store changed.
        """
        op = change.operation
        self.logger.debug("Applying %s %s.%s from %s", op.value, change.section, change.ptype, change.origin)
        if op == PolicyOperation.RELOAD:
            self.load_policy()
            return True
        sec, ptype = change.section, change.ptype
        if op == PolicyOperation.ADD:
            return self.self_add_policies_ex(sec, ptype, change.new_rules)
        if op == PolicyOperation.REMOVE:
            return self.self_remove_policies(sec, ptype, change.old_rules)
        if op == PolicyOperation.UPDATE:
            return self.self_update_policies(sec, ptype, change.old_rules, change.new_rules)
        if change.field_index is None:
            raise InvalidArgumentError(f"{op.value} change without field_index", change_id=change.change_id)
        if op == PolicyOperation.REMOVE_FILTERED:
            return self.self_remove_filtered_policy(sec, ptype, change.field_index, *change.field_values)
        return self.self_update_filtered_policies(
            sec, ptype, change.new_rules, change.field_index, *change.field_values
        )

    def add_watcher(self, watcher: Watcher) -> None:
        """Register a watcher and route its incoming updates into this enforcer."""
        with self._lock.write():
            if watcher in self._watchers:
                return
            watcher.set_update_callback(self._on_watcher_update)
            self._watchers.append(watcher)
        self.logger.info("Watcher %r added", watcher)

    def remove_watcher(self, watcher: Watcher) -> None:
        with self._lock.write():
            if watcher not in self._watchers:
                return
            self._watchers.remove(watcher)
            watcher.set_update_callback(None)
        self.logger.info("Watcher %r removed", watcher)

    def _on_watcher_update(self, change: Optional[PolicyChange] = None) -> None:
        if change is None or change.operation == PolicyOperation.RELOAD:
            if self.adapter is None:
                self.logger.warning("Reload requested by a watcher but no adapter is configured")
                return
            self.load_policy()
            return
        self.apply_policy_change(change)

    # ── Field index map ─────────────────────────────────

    def get_field_index(self, ptype: str, field: str) -> int:
        return self.store.get_field_index(ptype, field)

    def set_field_index(self, ptype: str, field: str, index: int) -> None:
        with self._lock.write():
            self.store.set_field_index(ptype, field, index)


__all__ = ["ManagementEnforcer"]
