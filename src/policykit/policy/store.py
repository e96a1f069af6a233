"""Policy storage: ordered, de-duplicated rule tables per (section, ptype).

Provides:
- ``PolicyTable``: the rules of one ptype, its arity and its field index map.
- ``PolicyStore``: all tables of a model, addressed by ``(section, ptype)``.

Each table publishes an immutable snapshot (rules tuple + membership set) that
mutations replace in a single assignment. A store owned by an enforcer also
shares the enforcer's ReadWriteLock: its queries take the read side and so
wait for a running mutation, role link rebuild included, to finish.

Rules go in as any sequence of strings and come out as fresh ``list[str]``
copies; internally they are tuples.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Iterable, Iterator, NamedTuple, Optional, Sequence, TypeVar, Union

from ..exceptions import FieldIndexNotFoundError, InvalidArgumentError
from ..locks import ReadWriteLock, reading
from .constants import ANONYMOUS_TOKEN, Section
from .definition import ModelDefinition

logger = logging.getLogger(__name__)

Rule = tuple[str, ...]
RuleLike = Sequence[str]

_F = TypeVar("_F", bound=Callable[..., Any])


class _TableState(NamedTuple):
    rules: tuple[Rule, ...]
    members: frozenset[Rule]


def _unique(rules: Iterable[Rule]) -> list[Rule]:
    """Drop repeated rules, keeping the first occurrence."""
    return list(dict.fromkeys(rules))


def _as_lists(rules: Iterable[Rule]) -> list[list[str]]:
    return [list(rule) for rule in rules]


def _reads(method: _F) -> _F:
    @functools.wraps(method)
    def wrapper(self: "PolicyStore", *args: Any, **kwargs: Any) -> Any:
        with reading(self.lock):
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class PolicyTable:
    """Rules of a single ``(section, ptype)``.

    Invariants:
    - every rule has exactly ``arity`` string fields;
    - no two rules are equal;
    - iteration follows insertion order (an updated rule keeps its slot).
    """

    __slots__ = ("section", "ptype", "tokens", "_field_index", "_state")

    def __init__(self, section: str, ptype: str, tokens: Sequence[str]) -> None:
        self.section = section
        self.ptype = ptype
        self.tokens = tuple(tokens)
        self._field_index = self._default_field_index()
        self._state = _TableState((), frozenset())

    def _default_field_index(self) -> dict[str, int]:
        prefix = f"{self.ptype}_"
        mapping: dict[str, int] = {}
        for index, token in enumerate(self.tokens):
            if token == ANONYMOUS_TOKEN:
                continue
            name = token[len(prefix):] if token.startswith(prefix) else token
            mapping.setdefault(name, index)
        return mapping

    @property
    def arity(self) -> int:
        return len(self.tokens)

    def __len__(self) -> int:
        return len(self._state.rules)

    def __repr__(self) -> str:
        return f"PolicyTable(section={self.section!r}, ptype={self.ptype!r}, tokens={self.tokens!r}, rules={len(self)})"

    # ── Validation ──────────────────────────────────────

    def coerce(self, rule: RuleLike) -> Rule:
        """Validate a rule against this table's arity and return it as a tuple."""
        if isinstance(rule, (str, bytes)) or not isinstance(rule, Sequence):
            raise InvalidArgumentError(
                f"Rule for {self.ptype!r} must be a sequence of strings, got {type(rule).__name__}",
                section=self.section,
                ptype=self.ptype,
            )
        fields = tuple(rule)
        if len(fields) != self.arity:
            raise InvalidArgumentError(
                f"Rule for {self.ptype!r} needs {self.arity} fields, got {len(fields)}",
                section=self.section,
                ptype=self.ptype,
                rule=list(fields),
            )
        for value in fields:
            if not isinstance(value, str):
                raise InvalidArgumentError(
                    f"Rule fields must be strings, got {type(value).__name__} in {self.ptype!r}",
                    section=self.section,
                    ptype=self.ptype,
                )
        return fields

    def check_window(self, field_index: int, values: Sequence[str]) -> None:
        """Reject filters that fall outside ``[0, arity)``."""
        if isinstance(field_index, bool) or not isinstance(field_index, int):
            raise InvalidArgumentError(f"Field index must be an int, got {type(field_index).__name__}")
        if field_index < 0 or field_index + len(values) > self.arity:
            raise InvalidArgumentError(
                f"Filter window [{field_index}, {field_index + len(values)}) exceeds arity {self.arity} of {self.ptype!r}",
                ptype=self.ptype,
                field_index=field_index,
            )
        for value in values:
            if not isinstance(value, str):
                raise InvalidArgumentError(f"Filter values must be strings, got {type(value).__name__}")

    @staticmethod
    def _matches(rule: Rule, field_index: int, values: Sequence[str]) -> bool:
        # Empty string is the wildcard
        return all(not value or rule[field_index + offset] == value for offset, value in enumerate(values))

    def _publish(self, rules: Iterable[Rule]) -> None:
        ordered = tuple(rules)
        self._state = _TableState(ordered, frozenset(ordered))

    # ── Reads ───────────────────────────────────────────

    def rules(self) -> tuple[Rule, ...]:
        return self._state.rules

    def contains(self, rule: Rule) -> bool:
        return rule in self._state.members

    def filter(self, field_index: int, values: Sequence[str]) -> list[Rule]:
        self.check_window(field_index, values)
        return [rule for rule in self._state.rules if self._matches(rule, field_index, values)]

    def missing(self, rules: Iterable[Rule]) -> list[Rule]:
        """Rules an add would actually insert, in order, without repeats."""
        members = self._state.members
        return [rule for rule in _unique(rules) if rule not in members]

    def values_for_field(self, field_index: int) -> list[str]:
        if not 0 <= field_index < self.arity:
            raise InvalidArgumentError(f"Field index {field_index} out of range for {self.ptype!r}")
        return list(dict.fromkeys(rule[field_index] for rule in self._state.rules))

    # ── Writes ──────────────────────────────────────────

    def add(self, rule: Rule) -> bool:
        state = self._state
        if rule in state.members:
            return False
        self._publish(state.rules + (rule,))
        return True

    def add_many(self, rules: Iterable[Rule], atomic: bool = True) -> bool:
        """Batch add.

        ``atomic=True``: nothing is added if any rule already exists.
        ``atomic=False``: missing rules are added, existing ones skipped, and the
        result is True for any non-empty input.
        """
        batch = _unique(rules)
        if not batch:
            return False
        state = self._state
        if atomic and any(rule in state.members for rule in batch):
            return False
        fresh = [rule for rule in batch if rule not in state.members]
        if fresh:
            self._publish(state.rules + tuple(fresh))
        return True

    def remove(self, rule: Rule) -> bool:
        state = self._state
        if rule not in state.members:
            return False
        self._publish(r for r in state.rules if r != rule)
        return True

    def remove_many(self, rules: Iterable[Rule]) -> bool:
        """Remove all given rules, or none if any of them is absent."""
        batch = _unique(rules)
        state = self._state
        if not batch or any(rule not in state.members for rule in batch):
            return False
        drop = set(batch)
        self._publish(r for r in state.rules if r not in drop)
        return True

    def remove_filtered(self, field_index: int, values: Sequence[str]) -> list[Rule]:
        removed = self.filter(field_index, values)
        if removed:
            drop = set(removed)
            self._publish(r for r in self._state.rules if r not in drop)
        return removed

    def update(self, old: Rule, new: Rule) -> bool:
        """Replace ``old`` with ``new`` in place.

        Fails without mutation when ``old`` is absent or ``new`` already exists
        (including ``old == new``).
        """
        state = self._state
        if old not in state.members or new in state.members:
            return False
        self._publish(new if r == old else r for r in state.rules)
        return True

    def update_many(self, olds: Sequence[Rule], news: Sequence[Rule]) -> bool:
        if len(olds) != len(news):
            raise InvalidArgumentError(
                f"update needs as many new rules as old ones, got {len(olds)} old and {len(news)} new",
                ptype=self.ptype,
            )
        state = self._state
        if not olds or len(set(olds)) != len(olds) or len(set(news)) != len(news):
            return False
        if any(rule not in state.members for rule in olds):
            return False
        remaining = state.members.difference(olds)
        if any(rule in remaining for rule in news):
            return False
        replacement = dict(zip(olds, news))
        self._publish(replacement.get(r, r) for r in state.rules)
        return True

    def update_filtered(self, news: Iterable[Rule], field_index: int, values: Sequence[str]) -> list[Rule]:
        """Replace every rule matching the filter with ``news``.

        Returns the replaced rules; an empty list means nothing changed (no
        match, or a new rule collides with a rule outside the matched set).
        """
        matched = self.filter(field_index, values)
        if not matched:
            return []
        batch = _unique(news)
        drop = set(matched)
        kept = [r for r in self._state.rules if r not in drop]
        kept_members = set(kept)
        if any(rule in kept_members for rule in batch):
            return []
        self._publish(kept + batch)
        return matched

    def clear(self) -> None:
        self._publish(())

    # ── Field index map ─────────────────────────────────

    def field_index(self, field: str) -> int:
        try:
            return self._field_index[field]
        except KeyError:
            raise FieldIndexNotFoundError(
                f"Field {field!r} is not defined for ptype {self.ptype!r}",
                ptype=self.ptype,
                field=field,
            ) from None

    def set_field_index(self, field: str, index: int) -> None:
        if not 0 <= index < self.arity:
            raise InvalidArgumentError(
                f"Field index {index} out of range for {self.ptype!r} (arity {self.arity})",
                ptype=self.ptype,
                field=field,
            )
        for name, position in self._field_index.items():
            if position == index and name != field:
                raise InvalidArgumentError(
                    f"Index {index} of {self.ptype!r} is already assigned to {name!r}",
                    ptype=self.ptype,
                    field=field,
                )
        mapping = dict(self._field_index)
        mapping[field] = index
        self._field_index = mapping

    def field_index_map(self) -> dict[str, int]:
        return dict(self._field_index)


class PolicyStore:
    """All policy tables of a model, addressed by ``(section, ptype)``.

    Example::

        store = PolicyStore(ModelDefinition(role_definition={"g": "_, _"}))
        store.add_policy("p", "p", ["alice", "data1", "read"])
        store.get_filtered_policy("p", "p", 0, "alice")
        # [['alice', 'data1', 'read']]
    """

    def __init__(self, definition: Optional[ModelDefinition] = None, lock: Optional[ReadWriteLock] = None) -> None:
        self.lock = lock
        self._tables: dict[str, dict[str, PolicyTable]] = {section: {} for section in (Section.POLICY, Section.GROUPING)}
        if definition is not None:
            self.load_definition(definition)

    # ── Definition ──────────────────────────────────────

    def load_definition(self, definition: ModelDefinition) -> None:
        for section, ptype, tokens in definition.iter_ptypes():
            self.add_def(section, ptype, tokens)

    def add_def(self, section: str, ptype: str, tokens: Sequence[str]) -> PolicyTable:
        """Declare a ptype. Re-declaring an existing ptype replaces its table."""
        self._check_section(section)
        if not ptype.startswith(section):
            raise InvalidArgumentError(f"ptype {ptype!r} does not belong to section {section!r}")
        if not tokens:
            raise InvalidArgumentError(f"ptype {ptype!r} needs at least one token")
        table = PolicyTable(section, ptype, tokens)
        self._tables[section][ptype] = table
        logger.debug("Declared %s.%s with tokens %s", section, ptype, list(tokens))
        return table

    @staticmethod
    def _check_section(section: str) -> None:
        if section not in Section.ALL:
            raise InvalidArgumentError(f"Unknown section {section!r}, expected one of {sorted(Section.ALL)}")

    def table(self, section: str, ptype: str) -> PolicyTable:
        self._check_section(section)
        try:
            return self._tables[section][ptype]
        except KeyError:
            raise InvalidArgumentError(
                f"Unknown ptype {ptype!r} in section {section!r}",
                section=section,
                ptype=ptype,
            ) from None

    def sections(self) -> list[str]:
        """Sections that declare at least one ptype."""
        return [section for section, tables in self._tables.items() if tables]

    def has_ptype(self, section: str, ptype: str) -> bool:
        return ptype in self._tables.get(section, {})

    def ptypes(self, section: str) -> list[str]:
        self._check_section(section)
        return list(self._tables[section])

    def iter_tables(self) -> Iterator[PolicyTable]:
        for tables in self._tables.values():
            yield from tables.values()

    def clear(self) -> None:
        """Drop every rule, keeping the declared ptypes and field index maps."""
        for table in self.iter_tables():
            table.clear()

    def empty_copy(self) -> "PolicyStore":
        """A store with the same ptypes and field index maps but no rules."""
        clone = PolicyStore(lock=self.lock)
        for table in self.iter_tables():
            fresh = clone.add_def(table.section, table.ptype, table.tokens)
            fresh._field_index = table.field_index_map()
        return clone

    # ── Queries ─────────────────────────────────────────

    @_reads
    def get_policy(self, section: str, ptype: str) -> list[list[str]]:
        return _as_lists(self.table(section, ptype).rules())

    @_reads
    def get_filtered_policy(self, section: str, ptype: str, field_index: int, *values: str) -> list[list[str]]:
        return _as_lists(self.table(section, ptype).filter(field_index, values))

    @_reads
    def has_policy(self, section: str, ptype: str, rule: RuleLike) -> bool:
        table = self.table(section, ptype)
        return table.contains(table.coerce(rule))

    @_reads
    def missing_rules(self, section: str, ptype: str, rules: Iterable[RuleLike]) -> list[list[str]]:
        table = self.table(section, ptype)
        return _as_lists(table.missing(table.coerce(rule) for rule in rules))

    @_reads
    def get_values_for_field(self, section: str, ptype: str, field_index: int) -> list[str]:
        return self.table(section, ptype).values_for_field(field_index)

    @_reads
    def get_values_for_field_all_types(self, section: str, field: Union[int, str]) -> list[str]:
        """Distinct values of one column across every ptype of a section.

        ``field`` is either a fixed position or a field name resolved per
        ptype; ptypes that do not define the field name are skipped.
        """
        values: dict[str, None] = {}
        for ptype in self.ptypes(section):
            table = self._tables[section][ptype]
            if isinstance(field, str):
                try:
                    index = table.field_index(field)
                except FieldIndexNotFoundError:
                    continue
            else:
                index = field
                if index >= table.arity:
                    continue
            values.update(dict.fromkeys(table.values_for_field(index)))
        return list(values)

    # ── Mutations ───────────────────────────────────────

    def add_policy(self, section: str, ptype: str, rule: RuleLike) -> bool:
        table = self.table(section, ptype)
        return table.add(table.coerce(rule))

    def add_policies(self, section: str, ptype: str, rules: Iterable[RuleLike], atomic: bool = True) -> bool:
        table = self.table(section, ptype)
        return table.add_many([table.coerce(rule) for rule in rules], atomic=atomic)

    def remove_policy(self, section: str, ptype: str, rule: RuleLike) -> bool:
        table = self.table(section, ptype)
        return table.remove(table.coerce(rule))

    def remove_policies(self, section: str, ptype: str, rules: Iterable[RuleLike]) -> bool:
        table = self.table(section, ptype)
        return table.remove_many([table.coerce(rule) for rule in rules])

    def remove_filtered_policy(self, section: str, ptype: str, field_index: int, *values: str) -> list[list[str]]:
        return _as_lists(self.table(section, ptype).remove_filtered(field_index, values))

    def update_policy(self, section: str, ptype: str, old_rule: RuleLike, new_rule: RuleLike) -> bool:
        table = self.table(section, ptype)
        return table.update(table.coerce(old_rule), table.coerce(new_rule))

    def update_policies(
        self,
        section: str,
        ptype: str,
        old_rules: Iterable[RuleLike],
        new_rules: Iterable[RuleLike],
    ) -> bool:
        table = self.table(section, ptype)
        return table.update_many(
            [table.coerce(rule) for rule in old_rules],
            [table.coerce(rule) for rule in new_rules],
        )

    def update_filtered_policies(
        self,
        section: str,
        ptype: str,
        new_rules: Iterable[RuleLike],
        field_index: int,
        *values: str,
    ) -> list[list[str]]:
        table = self.table(section, ptype)
        news = [table.coerce(rule) for rule in new_rules]
        return _as_lists(table.update_filtered(news, field_index, values))

    # ── Field index map ─────────────────────────────────

    def _table_for_ptype(self, ptype: str) -> PolicyTable:
        if not ptype:
            raise InvalidArgumentError("ptype must not be empty")
        return self.table(ptype[0], ptype)

    def get_field_index(self, ptype: str, field: str) -> int:
        return self._table_for_ptype(ptype).field_index(field)

    def set_field_index(self, ptype: str, field: str, index: int) -> None:
        self._table_for_ptype(ptype).set_field_index(field, index)
        logger.debug("Field %r of %s now at index %d", field, ptype, index)


__all__ = [
    "PolicyStore",
    "PolicyTable",
    "Rule",
    "RuleLike",
]
