"""Role-based access control convenience API.

Thin helpers over the management API that speak in users, roles and
permissions instead of raw rules. Role lookups use the default grouping
ptype ``g``; permission lookups use ``p``. Every mutation goes through the
same pipeline as the generic methods (role links, adapter, watchers).

Example::

    enforcer = Enforcer({"role_definition": {"g": "_, _"}})
    enforcer.add_permission_for_user("admin", "data1", "write")
    enforcer.add_role_for_user("alice", "admin")
    enforcer.get_implicit_permissions_for_user("alice")
    # [['admin', 'data1', 'write']]
"""

from __future__ import annotations

from typing import Optional

from ..policy.constants import GROUPING_ROLE_INDEX, GROUPING_USER_INDEX, FieldName, Section
from .management import ManagementEnforcer


class Enforcer(ManagementEnforcer):
    """The policy engine facade most applications use."""

    # ── Roles ───────────────────────────────────────────

    def get_roles_for_user(self, name: str, domain: Optional[str] = None) -> list[str]:
        """Roles assigned to ``name`` directly."""
        return sorted(self.get_role_manager().get_direct_roles(name, domain))

    def get_users_for_role(self, name: str, domain: Optional[str] = None) -> list[str]:
        """Users assigned role ``name`` directly."""
        return sorted(self.get_role_manager().get_direct_users(name, domain))

    def has_role_for_user(self, name: str, role: str, domain: Optional[str] = None) -> bool:
        return role in self.get_role_manager().get_direct_roles(name, domain)

    def add_role_for_user(self, user: str, role: str, domain: Optional[str] = None) -> bool:
        return self.add_grouping_policy(self._grouping_rule(user, role, domain))

    def delete_role_for_user(self, user: str, role: str, domain: Optional[str] = None) -> bool:
        return self.remove_grouping_policy(self._grouping_rule(user, role, domain))

    def delete_roles_for_user(self, user: str, domain: Optional[str] = None) -> bool:
        """Remove every role of ``user`` (in ``domain`` when given)."""
        if domain is None:
            return self.remove_filtered_grouping_policy(GROUPING_USER_INDEX, user)
        return self.remove_filtered_grouping_policy(GROUPING_USER_INDEX, user, "", domain)

    def delete_user(self, user: str) -> bool:
        """Remove ``user`` from every grouping rule and every rule it is the subject of."""
        with self._lock.write():
            grouped = self._remove_if_present(Section.GROUPING, Section.GROUPING, GROUPING_USER_INDEX, user)
            ruled = self._remove_if_present(Section.POLICY, Section.POLICY, self._subject_index(), user)
            return grouped or ruled

    def delete_role(self, role: str) -> bool:
        """Remove ``role`` from every grouping rule and every rule it is the subject of."""
        with self._lock.write():
            grouped = self._remove_if_present(Section.GROUPING, Section.GROUPING, GROUPING_ROLE_INDEX, role)
            ruled = self._remove_if_present(Section.POLICY, Section.POLICY, self._subject_index(), role)
            return grouped or ruled

    def get_implicit_roles_for_user(self, name: str, domain: Optional[str] = None) -> list[str]:
        """Roles held by ``name`` directly or through any chain of roles."""
        return sorted(self.get_role_manager().get_roles(name, domain))

    def get_implicit_users_for_role(self, name: str, domain: Optional[str] = None) -> list[str]:
        """Users holding role ``name`` directly or through any chain of roles."""
        return sorted(self.get_role_manager().get_users(name, domain))

    # ── Permissions ─────────────────────────────────────

    def get_permissions_for_user(self, user: str, domain: Optional[str] = None) -> list[list[str]]:
        """Rules whose subject is ``user`` (restricted to ``domain`` when given)."""
        rules = self.get_filtered_policy(self._subject_index(), user)
        if domain is None:
            return rules
        dom_index = self.get_field_index(Section.POLICY, FieldName.DOMAIN)
        return [rule for rule in rules if rule[dom_index] == domain]

    def get_implicit_permissions_for_user(self, user: str, domain: Optional[str] = None) -> list[list[str]]:
        """Rules of ``user`` and of every role it inherits, in subject order."""
        permissions: list[list[str]] = []
        with self._lock.read():
            for subject in [user, *self.get_implicit_roles_for_user(user, domain)]:
                permissions.extend(self.get_permissions_for_user(subject, domain))
        return permissions

    def add_permission_for_user(self, user: str, *permission: str) -> bool:
        return self.add_policy(user, *permission)

    def delete_permission_for_user(self, user: str, *permission: str) -> bool:
        return self.remove_policy(user, *permission)

    def delete_permissions_for_user(self, user: str) -> bool:
        return self.remove_filtered_policy(self._subject_index(), user)

    def has_permission_for_user(self, user: str, *permission: str) -> bool:
        return self.has_policy(user, *permission)

    # ── Domains ─────────────────────────────────────────

    def get_roles_for_user_in_domain(self, name: str, domain: str) -> list[str]:
        return self.get_roles_for_user(name, domain)

    def get_users_for_role_in_domain(self, name: str, domain: str) -> list[str]:
        return self.get_users_for_role(name, domain)

    def add_role_for_user_in_domain(self, user: str, role: str, domain: str) -> bool:
        return self.add_role_for_user(user, role, domain)

    def delete_role_for_user_in_domain(self, user: str, role: str, domain: str) -> bool:
        return self.delete_role_for_user(user, role, domain)

    def delete_roles_for_user_in_domain(self, user: str, domain: str) -> bool:
        return self.delete_roles_for_user(user, domain)

    def get_permissions_for_user_in_domain(self, user: str, domain: str) -> list[list[str]]:
        return self.get_permissions_for_user(user, domain)

    def get_domains_for_user(self, user: str) -> list[str]:
        return self.get_role_manager().get_domains(user)

    # ── Helpers ─────────────────────────────────────────

    @staticmethod
    def _grouping_rule(user: str, role: str, domain: Optional[str]) -> list[str]:
        return [user, role] if domain is None else [user, role, domain]

    def _subject_index(self) -> int:
        return self.get_field_index(Section.POLICY, FieldName.SUBJECT)

    def _remove_if_present(self, sec: str, ptype: str, field_index: int, value: str) -> bool:
        if not self.store.has_ptype(sec, ptype):
            return False
        return self._remove_filtered_policy(sec, ptype, field_index, [value])


__all__ = ["Enforcer"]
