"""Function registry and built-in matching predicates.

The registry maps names to plain callables that the external matcher calls
while evaluating a request. The enforcer also resolves role pattern matchers
(``add_named_matching_func("g", "key_match2")``) through it.

Built-ins:
- ``key_match``: ``/alice_data/*`` style prefix wildcard
- ``key_match2``: ``/resource/:id`` path parameters, ``/*`` wildcard
- ``regex_match``: ``re.search`` of the pattern
- ``glob_match``: shell-style glob (``fnmatch``)
- ``ip_match``: address inside a CIDR network
"""

from __future__ import annotations

import fnmatch
import ipaddress
import logging
import re
import threading
from functools import lru_cache
from typing import Any, Callable, Optional

from .exceptions import InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)

PolicyFunction = Callable[..., Any]


# ── Built-in predicates ─────────────────────────────────


def key_match(key1: str, key2: str) -> bool:
    """Match ``key1`` against ``key2`` where a ``*`` in key2 matches any suffix.

    Example::

        key_match("/alice_data/resource1", "/alice_data/*")  # True
        key_match("/alice_data", "/alice_data/*")            # False
    """
    i = key2.find("*")
    if i == -1:
        return key1 == key2
    if len(key1) > i:
        return key1[:i] == key2[:i]
    return key1 == key2[:i]


@lru_cache(maxsize=512)
def _key_match2_pattern(key2: str) -> re.Pattern[str]:
    pattern = key2.replace("/*", "/.*")
    pattern = re.sub(r":[^/]+", r"[^/]+", pattern)
    return re.compile(f"^{pattern}$")


def key_match2(key1: str, key2: str) -> bool:
    """Match a path against a route pattern with ``:param`` segments.

    Example::

        key_match2("/book/42", "/book/:id")       # True
        key_match2("/book/42/pages", "/book/:id") # False
        key_match2("/book/42/pages", "/book/*")   # True
    """
    return _key_match2_pattern(key2).match(key1) is not None


def regex_match(key1: str, key2: str) -> bool:
    """True if regular expression ``key2`` is found in ``key1``."""
    return re.search(key2, key1) is not None


def glob_match(key1: str, key2: str) -> bool:
    """Case-sensitive shell glob match of ``key1`` against pattern ``key2``."""
    return fnmatch.fnmatchcase(key1, key2)


def ip_match(ip1: str, ip2: str) -> bool:
    """True if address ``ip1`` falls inside ``ip2`` (an address or CIDR network).

    Raises:
        InvalidArgumentError: either argument is not a valid address/network.
    """
    try:
        address = ipaddress.ip_address(ip1)
        network = ipaddress.ip_network(ip2, strict=False)
    except ValueError as e:
        raise InvalidArgumentError(f"ip_match: {e}", ip1=ip1, ip2=ip2) from e
    return address in network


BUILTIN_FUNCTIONS: dict[str, PolicyFunction] = {
    "key_match": key_match,
    "key_match2": key_match2,
    "regex_match": regex_match,
    "glob_match": glob_match,
    "ip_match": ip_match,
}


# ── Registry ────────────────────────────────────────────


class FunctionRegistry:
    """Name → callable mapping consulted by the matcher.

    Registration overwrites (last writer wins); there is no removal.
    """

    def __init__(self, functions: Optional[dict[str, PolicyFunction]] = None) -> None:
        self._lock = threading.Lock()
        self._functions: dict[str, PolicyFunction] = dict(functions or {})

    @classmethod
    def with_builtins(cls) -> "FunctionRegistry":
        registry = cls()
        registry.load_builtin_functions()
        return registry

    def load_builtin_functions(self) -> None:
        for name, fn in BUILTIN_FUNCTIONS.items():
            self.add_function(name, fn)

    def add_function(self, name: str, fn: PolicyFunction) -> None:
        if not name:
            raise InvalidArgumentError("Function name must not be empty")
        if not callable(fn):
            raise InvalidArgumentError(f"Function {name!r} is not callable")
        with self._lock:
            replaced = name in self._functions
            # Copy-on-write: readers iterate a dict that is never mutated
            functions = dict(self._functions)
            functions[name] = fn
            self._functions = functions
        if replaced:
            logger.debug("Function %r overwritten", name)

    def get_function(self, name: str) -> PolicyFunction:
        try:
            return self._functions[name]
        except KeyError:
            raise NotFoundError(f"Function {name!r} is not registered", name=name) from None

    def get_functions(self) -> dict[str, PolicyFunction]:
        return dict(self._functions)

    def copy(self) -> "FunctionRegistry":
        """An independent registry with the same functions."""
        return type(self)(self.get_functions())

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)


def generate_g_function(role_manager: Any) -> Callable[..., bool]:
    """Build the ``g(name1, name2[, domain])`` predicate for a role manager.

    The returned callable keeps a reference to the manager, so it keeps
    answering from the latest rebuilt graph.
    """

    def g(name1: str, name2: str, domain: Optional[str] = None) -> bool:
        return role_manager.has_link(name1, name2, domain)

    return g


__all__ = [
    "BUILTIN_FUNCTIONS",
    "FunctionRegistry",
    "PolicyFunction",
    "generate_g_function",
    "glob_match",
    "ip_match",
    "key_match",
    "key_match2",
    "regex_match",
]
