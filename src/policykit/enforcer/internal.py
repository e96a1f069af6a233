"""Mutation pipeline shared by every public mutation.

Each ``_xxx`` method runs one whole operation under the write side of the
enforcer lock, so readers see the state before or after all of it:

1. validate the input (the store rejects bad sections, ptypes and arities);
2. apply the change to the PolicyStore;
3. rebuild the ptype's role graph if a grouping ptype changed and
   ``auto_build_role_links`` is on;
4. unless ``notify`` is False, forward the diff to the adapter
   (``auto_save``) and then to the watchers (``auto_notify_watcher``).

Adapter and watcher failures surface as AdapterError / WatcherError after
step 2; the in-memory change stays applied.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence

from ..exceptions import AdapterError
from ..logging import safe_preview
from ..persist.adapter import Adapter
from ..persist.events import PolicyChange, PolicyOperation
from ..policy.constants import Section
from ..policy.store import RuleLike
from .core import CoreEnforcer

PersistCall = Callable[[Adapter], None]


def _as_list(rule: RuleLike) -> list[str]:
    return list(rule)


def _dedupe(rules: Sequence[RuleLike]) -> list[list[str]]:
    return [list(rule) for rule in dict.fromkeys(tuple(rule) for rule in rules)]


class InternalEnforcer(CoreEnforcer):
    """CoreEnforcer plus the locked mutate → rebuild → persist → notify pipeline."""

    # ── Side effects ────────────────────────────────────

    def _commit(self, change: PolicyChange, persist: PersistCall, notify: bool) -> None:
        self.logger.debug(
            "%s %s.%s: -%s +%s",
            change.operation.value,
            change.section,
            change.ptype,
            safe_preview(change.old_rules),
            safe_preview(change.new_rules),
        )
        if change.section == Section.GROUPING and self.auto_build_role_links:
            self.get_named_role_manager(change.ptype).rebuild(
                self.store.table(Section.GROUPING, change.ptype).rules()
            )
        if not notify:
            return
        if self.auto_save and self.adapter is not None:
            self._persist(change, persist)
        if self.auto_notify_watcher and self._watchers:
            self._notify_watchers(change)

    def _persist(self, change: PolicyChange, persist: PersistCall) -> None:
        adapter = self.adapter
        try:
            persist(adapter)
        except NotImplementedError:
            self.logger.debug(
                "Adapter %r has no incremental %s; call save_policy() to persist",
                adapter,
                change.operation.value,
            )
        except AdapterError:
            self.logger.error("Adapter %r failed on %s %s", adapter, change.operation.value, change.ptype)
            raise
        except Exception as e:
            self.logger.error("Adapter %r failed on %s %s: %s", adapter, change.operation.value, change.ptype, e)
            raise AdapterError(
                f"Adapter failed on {change.operation.value} {change.ptype}: {e}",
                operation=change.operation.value,
                ptype=change.ptype,
                change_id=change.change_id,
            ) from e

    # ── Add ─────────────────────────────────────────────

    def _add_policy(self, sec: str, ptype: str, rule: RuleLike, notify: bool = True) -> bool:
        with self._lock.write():
            if not self.store.add_policy(sec, ptype, rule):
                return False
            new_rule = _as_list(rule)
            change = PolicyChange(operation=PolicyOperation.ADD, section=sec, ptype=ptype, new_rules=[new_rule])
            self._commit(change, lambda a: a.add_policy(sec, ptype, new_rule), notify)
            return True

    def _add_policies(
        self,
        sec: str,
        ptype: str,
        rules: Iterable[RuleLike],
        atomic: bool = True,
        notify: bool = True,
    ) -> bool:
        rules = list(rules)
        with self._lock.write():
            fresh = self.store.missing_rules(sec, ptype, rules)
            if not self.store.add_policies(sec, ptype, rules, atomic=atomic):
                return False
            if not fresh:
                # Best-effort batch made only of existing rules
                return True
            change = PolicyChange(operation=PolicyOperation.ADD, section=sec, ptype=ptype, new_rules=fresh)
            self._commit(change, lambda a: a.add_policies(sec, ptype, fresh), notify)
            return True

    # ── Remove ──────────────────────────────────────────

    def _remove_policy(self, sec: str, ptype: str, rule: RuleLike, notify: bool = True) -> bool:
        with self._lock.write():
            if not self.store.remove_policy(sec, ptype, rule):
                return False
            old_rule = _as_list(rule)
            change = PolicyChange(operation=PolicyOperation.REMOVE, section=sec, ptype=ptype, old_rules=[old_rule])
            self._commit(change, lambda a: a.remove_policy(sec, ptype, old_rule), notify)
            return True

    def _remove_policies(self, sec: str, ptype: str, rules: Iterable[RuleLike], notify: bool = True) -> bool:
        rules = list(rules)
        with self._lock.write():
            if not self.store.remove_policies(sec, ptype, rules):
                return False
            removed = _dedupe(rules)
            change = PolicyChange(operation=PolicyOperation.REMOVE, section=sec, ptype=ptype, old_rules=removed)
            self._commit(change, lambda a: a.remove_policies(sec, ptype, removed), notify)
            return True

    def _remove_filtered_policy(
        self,
        sec: str,
        ptype: str,
        field_index: int,
        field_values: Sequence[str],
        notify: bool = True,
    ) -> bool:
        values = list(field_values)
        with self._lock.write():
            removed = self.store.remove_filtered_policy(sec, ptype, field_index, *values)
            if not removed:
                return False
            change = PolicyChange(
                operation=PolicyOperation.REMOVE_FILTERED,
                section=sec,
                ptype=ptype,
                old_rules=removed,
                field_index=field_index,
                field_values=values,
            )
            self._commit(change, lambda a: a.remove_filtered_policy(sec, ptype, field_index, *values), notify)
            return True

    # ── Update ──────────────────────────────────────────

    def _update_policy(
        self,
        sec: str,
        ptype: str,
        old_rule: RuleLike,
        new_rule: RuleLike,
        notify: bool = True,
    ) -> bool:
        with self._lock.write():
            if not self.store.update_policy(sec, ptype, old_rule, new_rule):
                return False
            old, new = _as_list(old_rule), _as_list(new_rule)
            change = PolicyChange(
                operation=PolicyOperation.UPDATE,
                section=sec,
                ptype=ptype,
                old_rules=[old],
                new_rules=[new],
            )
            self._commit(change, lambda a: a.update_policy(sec, ptype, old, new), notify)
            return True

    def _update_policies(
        self,
        sec: str,
        ptype: str,
        old_rules: Iterable[RuleLike],
        new_rules: Iterable[RuleLike],
        notify: bool = True,
    ) -> bool:
        old_rules, new_rules = list(old_rules), list(new_rules)
        with self._lock.write():
            if not self.store.update_policies(sec, ptype, old_rules, new_rules):
                return False
            olds = [list(rule) for rule in old_rules]
            news = [list(rule) for rule in new_rules]
            change = PolicyChange(
                operation=PolicyOperation.UPDATE,
                section=sec,
                ptype=ptype,
                old_rules=olds,
                new_rules=news,
            )
            self._commit(change, lambda a: a.update_policies(sec, ptype, olds, news), notify)
            return True

    def _update_filtered_policies(
        self,
        sec: str,
        ptype: str,
        new_rules: Iterable[RuleLike],
        field_index: int,
        field_values: Sequence[str],
        notify: bool = True,
    ) -> bool:
        new_rules, values = list(new_rules), list(field_values)
        with self._lock.write():
            replaced = self.store.update_filtered_policies(sec, ptype, new_rules, field_index, *values)
            if not replaced:
                return False
            news = _dedupe(new_rules)
            change = PolicyChange(
                operation=PolicyOperation.UPDATE_FILTERED,
                section=sec,
                ptype=ptype,
                old_rules=replaced,
                new_rules=news,
                field_index=field_index,
                field_values=values,
            )
            self._commit(
                change,
                lambda a: a.update_filtered_policies(sec, ptype, news, field_index, *values),
                notify,
            )
            return True


__all__ = ["InternalEnforcer"]
