"""Role hierarchy resolution for one grouping ptype.

Grouping rules ``(member, role[, domain])`` become ``member → role`` edges,
partitioned by domain; two-field rules live in the default domain ``""``.
Queries walk the edges breadth-first, up to ``max_hierarchy_level`` hops.

``rebuild()`` computes a complete new graph and swaps it in with one
assignment. Queries grab the current graph once and work on it. An enforcer
binds its ReadWriteLock with ``bind_lock()``; queries then take its read side
and never see a graph that is ahead of or behind the grouping rules.

Pattern mode is opt-in. With ``set_matching_func(fn)`` a node whose name is a
pattern (e.g. ``/book/*`` with ``key_match``) also applies to every name
``fn(name, pattern)`` accepts; ``set_domain_matching_func`` does the same for
domains.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, NamedTuple, Optional, Sequence

from ..config import DEFAULT_MAX_HIERARCHY_LEVEL
from ..exceptions import InvalidArgumentError
from ..locks import ReadWriteLock, reading
from ..policy.constants import GROUPING_DOMAIN_INDEX, GROUPING_ROLE_INDEX, GROUPING_USER_INDEX

logger = logging.getLogger(__name__)

MatchingFunc = Callable[[str, str], bool]

DEFAULT_DOMAIN = ""

# domain → name → adjacent names
_Edges = dict[str, dict[str, frozenset[str]]]


class _RoleGraph(NamedTuple):
    parents: _Edges
    children: _Edges


def _freeze(edges: dict[str, dict[str, set[str]]]) -> _Edges:
    return {domain: {name: frozenset(adj) for name, adj in names.items()} for domain, names in edges.items()}


class RoleManager:
    """Transitive "has role" relation over names, optionally domain scoped."""

    def __init__(self, max_hierarchy_level: int = DEFAULT_MAX_HIERARCHY_LEVEL) -> None:
        if max_hierarchy_level < 1:
            raise InvalidArgumentError(f"max_hierarchy_level must be >= 1, got {max_hierarchy_level}")
        self.max_hierarchy_level = max_hierarchy_level
        self._matching_func: Optional[MatchingFunc] = None
        self._domain_matching_func: Optional[MatchingFunc] = None
        self._lock: Optional[ReadWriteLock] = None
        self._graph = _RoleGraph({}, {})

    def __repr__(self) -> str:
        graph = self._graph
        links = sum(len(adj) for names in graph.parents.values() for adj in names.values())
        return f"RoleManager(domains={len(graph.parents)}, links={links}, max_hierarchy_level={self.max_hierarchy_level})"

    # ── Configuration ───────────────────────────────────

    def set_matching_func(self, fn: Optional[MatchingFunc]) -> None:
        """Enable (or with ``None`` disable) pattern matching on names."""
        self._matching_func = fn

    def set_domain_matching_func(self, fn: Optional[MatchingFunc]) -> None:
        """Enable (or with ``None`` disable) pattern matching on domains."""
        self._domain_matching_func = fn

    def bind_lock(self, lock: Optional[ReadWriteLock]) -> None:
        """Make queries wait for writers holding ``lock``."""
        self._lock = lock

    @property
    def pattern_mode(self) -> bool:
        return self._matching_func is not None or self._domain_matching_func is not None

    # ── Building ────────────────────────────────────────

    def rebuild(self, rules: Iterable[Sequence[str]]) -> None:
        """Replace the whole graph with the one described by ``rules``."""
        parents: dict[str, dict[str, set[str]]] = {}
        children: dict[str, dict[str, set[str]]] = {}
        count = 0
        for rule in rules:
            if len(rule) < 2:
                raise InvalidArgumentError(f"Grouping rule needs at least 2 fields, got {list(rule)!r}")
            member = rule[GROUPING_USER_INDEX]
            role = rule[GROUPING_ROLE_INDEX]
            domain = rule[GROUPING_DOMAIN_INDEX] if len(rule) > GROUPING_DOMAIN_INDEX else DEFAULT_DOMAIN
            parents.setdefault(domain, {}).setdefault(member, set()).add(role)
            children.setdefault(domain, {}).setdefault(role, set()).add(member)
            count += 1
        self._graph = _RoleGraph(_freeze(parents), _freeze(children))
        logger.debug("Role graph rebuilt: %d links in %d domain(s)", count, len(parents))

    def clear(self) -> None:
        self._graph = _RoleGraph({}, {})

    # ── Matching helpers ────────────────────────────────

    def _name_matches(self, name: str, candidate: str) -> bool:
        if name == candidate:
            return True
        fn = self._matching_func
        return fn is not None and fn(name, candidate)

    def _domains(self, edges: _Edges, domain: Optional[str]) -> list[dict[str, frozenset[str]]]:
        wanted = DEFAULT_DOMAIN if domain is None else domain
        fn = self._domain_matching_func
        if fn is None:
            names = edges.get(wanted)
            return [names] if names is not None else []
        return [names for dom, names in edges.items() if dom == wanted or fn(wanted, dom)]

    def _adjacent(self, scopes: list[dict[str, frozenset[str]]], name: str) -> set[str]:
        found: set[str] = set()
        fn = self._matching_func
        for names in scopes:
            if fn is None:
                found.update(names.get(name, ()))
                continue
            for node, adj in names.items():
                if node == name or fn(name, node):
                    found.update(adj)
        return found

    def _walk(self, edges: _Edges, start: str, domain: Optional[str]) -> set[str]:
        """All names reachable from ``start`` within the hierarchy limit."""
        scopes = self._domains(edges, domain)
        seen: set[str] = set()
        frontier = {start}
        for _ in range(self.max_hierarchy_level):
            step: set[str] = set()
            for name in frontier:
                step.update(self._adjacent(scopes, name))
            step -= seen
            step.discard(start)
            if not step:
                break
            seen.update(step)
            frontier = step
        return seen

    # ── Queries ─────────────────────────────────────────

    def has_link(self, name1: str, name2: str, domain: Optional[str] = None) -> bool:
        """True iff ``name1`` inherits ``name2`` (reflexive, transitive)."""
        if self._name_matches(name1, name2):
            return True
        with reading(self._lock):
            reachable = self._walk(self._graph.parents, name1, domain)
        if name2 in reachable:
            return True
        fn = self._matching_func
        return fn is not None and any(fn(name2, role) for role in reachable)

    def get_roles(self, name: str, domain: Optional[str] = None) -> set[str]:
        """Roles held by ``name`` directly or through inheritance."""
        with reading(self._lock):
            return self._walk(self._graph.parents, name, domain)

    def get_users(self, name: str, domain: Optional[str] = None) -> set[str]:
        """Names holding role ``name`` directly or through inheritance."""
        with reading(self._lock):
            return self._walk(self._graph.children, name, domain)

    def get_direct_roles(self, name: str, domain: Optional[str] = None) -> set[str]:
        with reading(self._lock):
            return self._adjacent(self._domains(self._graph.parents, domain), name)

    def get_direct_users(self, name: str, domain: Optional[str] = None) -> set[str]:
        with reading(self._lock):
            return self._adjacent(self._domains(self._graph.children, domain), name)

    def get_domains(self, name: str) -> list[str]:
        """Domains in which ``name`` holds at least one role."""
        with reading(self._lock):
            return [domain for domain, names in self._graph.parents.items() if name in names]


__all__ = [
    "DEFAULT_DOMAIN",
    "MatchingFunc",
    "RoleManager",
]
