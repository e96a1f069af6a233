"""Persistence adapter interface and an in-memory implementation.

Adapters load and save the raw rule sets. Only ``load_policy`` and
``save_policy`` are mandatory; the incremental methods raise
``NotImplementedError`` by default, which the enforcer treats as "this adapter
only supports full saves" and skips.

Incremental methods must be idempotent: replaying the same logical mutation
must leave the backing store unchanged.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..policy.store import PolicyStore

RuleList = Sequence[Sequence[str]]


class Adapter(ABC):
    """Persistence backend for policy rules."""

    @abstractmethod
    def load_policy(self, store: PolicyStore) -> None:
        """Add every persisted rule to ``store``."""
        raise NotImplementedError

    @abstractmethod
    def save_policy(self, store: PolicyStore) -> None:
        """Replace the persisted rules with the full content of ``store``."""
        raise NotImplementedError

    def add_policy(self, section: str, ptype: str, rule: Sequence[str]) -> None:
        raise NotImplementedError

    def add_policies(self, section: str, ptype: str, rules: RuleList) -> None:
        raise NotImplementedError

    def remove_policy(self, section: str, ptype: str, rule: Sequence[str]) -> None:
        raise NotImplementedError

    def remove_policies(self, section: str, ptype: str, rules: RuleList) -> None:
        raise NotImplementedError

    def remove_filtered_policy(self, section: str, ptype: str, field_index: int, *field_values: str) -> None:
        raise NotImplementedError

    def update_policy(self, section: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]) -> None:
        raise NotImplementedError

    def update_policies(self, section: str, ptype: str, old_rules: RuleList, new_rules: RuleList) -> None:
        raise NotImplementedError

    def update_filtered_policies(
        self,
        section: str,
        ptype: str,
        new_rules: RuleList,
        field_index: int,
        *field_values: str,
    ) -> None:
        raise NotImplementedError


class MemoryAdapter(Adapter):
    """Adapter keeping rules in a process-local dict.

    Useful for tests and for sharing one rule set between several enforcers
    of the same process. Supports every incremental operation.
    """

    def __init__(self, rules: Optional[dict[tuple[str, str], RuleList]] = None) -> None:
        self._lock = threading.Lock()
        self._rules: dict[tuple[str, str], list[tuple[str, ...]]] = {}
        for key, rule_list in (rules or {}).items():
            self._rules[key] = list(dict.fromkeys(tuple(r) for r in rule_list))

    def rules(self, section: str, ptype: str) -> list[list[str]]:
        return [list(r) for r in self._rules.get((section, ptype), [])]

    def load_policy(self, store: PolicyStore) -> None:
        with self._lock:
            snapshot = {key: list(value) for key, value in self._rules.items()}
        for (section, ptype), rule_list in snapshot.items():
            if rule_list:
                store.add_policies(section, ptype, rule_list, atomic=False)

    def save_policy(self, store: PolicyStore) -> None:
        with self._lock:
            self._rules = {(t.section, t.ptype): list(t.rules()) for t in store.iter_tables()}

    def add_policy(self, section: str, ptype: str, rule: Sequence[str]) -> None:
        self.add_policies(section, ptype, [rule])

    def add_policies(self, section: str, ptype: str, rules: RuleList) -> None:
        with self._lock:
            bucket = self._rules.setdefault((section, ptype), [])
            for rule in rules:
                if tuple(rule) not in bucket:
                    bucket.append(tuple(rule))

    def remove_policy(self, section: str, ptype: str, rule: Sequence[str]) -> None:
        self.remove_policies(section, ptype, [rule])

    def remove_policies(self, section: str, ptype: str, rules: RuleList) -> None:
        drop = {tuple(r) for r in rules}
        with self._lock:
            bucket = self._rules.get((section, ptype), [])
            self._rules[(section, ptype)] = [r for r in bucket if r not in drop]

    def remove_filtered_policy(self, section: str, ptype: str, field_index: int, *field_values: str) -> None:
        def matches(rule: tuple[str, ...]) -> bool:
            return all(
                not value or (len(rule) > field_index + i and rule[field_index + i] == value)
                for i, value in enumerate(field_values)
            )

        with self._lock:
            bucket = self._rules.get((section, ptype), [])
            self._rules[(section, ptype)] = [r for r in bucket if not matches(r)]

    def update_policy(self, section: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]) -> None:
        self.update_policies(section, ptype, [old_rule], [new_rule])

    def update_policies(self, section: str, ptype: str, old_rules: RuleList, new_rules: RuleList) -> None:
        replacement = {tuple(o): tuple(n) for o, n in zip(old_rules, new_rules)}
        with self._lock:
            bucket = self._rules.get((section, ptype), [])
            self._rules[(section, ptype)] = list(dict.fromkeys(replacement.get(r, r) for r in bucket))

    def update_filtered_policies(
        self,
        section: str,
        ptype: str,
        new_rules: RuleList,
        field_index: int,
        *field_values: str,
    ) -> None:
        self.remove_filtered_policy(section, ptype, field_index, *field_values)
        self.add_policies(section, ptype, new_rules)


__all__ = [
    "Adapter",
    "MemoryAdapter",
    "RuleList",
]
