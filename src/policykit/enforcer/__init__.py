"""Enforcer facade.

``CoreEnforcer`` holds state, ``InternalEnforcer`` runs the mutation
pipeline, ``ManagementEnforcer`` exposes the policy API and ``Enforcer``
adds the RBAC helpers.
"""

from .core import CoreEnforcer
from .enforcer import Enforcer
from .internal import InternalEnforcer
from .management import ManagementEnforcer

__all__ = [
    "CoreEnforcer",
    "Enforcer",
    "InternalEnforcer",
    "ManagementEnforcer",
]
