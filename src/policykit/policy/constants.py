"""Section keys and canonical field names.

Provides:
- ``Section``: top-level rule families (``p`` / ``g``).
- ``FieldName``: canonical names used to locate a column inside a rule.
"""

from __future__ import annotations


class Section:
    """Top-level policy sections.

    ``p`` holds authorization rules (``sub, obj, act``), ``g`` holds grouping
    rules (``user, role[, domain]``). Every ptype name starts with the letter
    of its section: ``p``, ``p2``, ``g``, ``g2``.
    """

    POLICY = "p"
    GROUPING = "g"

    ALL = frozenset({"p", "g"})


class FieldName:
    """Canonical field names assigned to rule columns.

    A ptype declared as ``p = sub, obj, act`` gets ``sub → 0``, ``obj → 1``,
    ``act → 2`` by default. Tokens may also be written in the prefixed form
    ``p_sub``; the ``{ptype}_`` prefix is stripped.
    """

    SUBJECT = "sub"
    OBJECT = "obj"
    ACTION = "act"
    DOMAIN = "dom"
    EFFECT = "eft"  # allow / deny column
    PRIORITY = "priority"


# Grouping rules always carry the member in field 0 and the role in field 1.
GROUPING_USER_INDEX = 0
GROUPING_ROLE_INDEX = 1
GROUPING_DOMAIN_INDEX = 2

# Placeholder token used in role definitions: ``g = _, _`` / ``g = _, _, _``
ANONYMOUS_TOKEN = "_"


__all__ = [
    "ANONYMOUS_TOKEN",
    "FieldName",
    "GROUPING_DOMAIN_INDEX",
    "GROUPING_ROLE_INDEX",
    "GROUPING_USER_INDEX",
    "Section",
]
