"""Policy data model.

Defines:
- Section / FieldName: section keys and canonical column names
- ModelDefinition: declared ptypes and their tokens
- PolicyStore / PolicyTable: indexed, de-duplicated rule storage
"""

from .constants import (
    ANONYMOUS_TOKEN,
    GROUPING_DOMAIN_INDEX,
    GROUPING_ROLE_INDEX,
    GROUPING_USER_INDEX,
    FieldName,
    Section,
)
from .definition import ModelDefinition
from .store import PolicyStore, PolicyTable, Rule, RuleLike

__all__ = [
    "ANONYMOUS_TOKEN",
    "GROUPING_DOMAIN_INDEX",
    "GROUPING_ROLE_INDEX",
    "GROUPING_USER_INDEX",
    "FieldName",
    "ModelDefinition",
    "PolicyStore",
    "PolicyTable",
    "Rule",
    "RuleLike",
    "Section",
]
