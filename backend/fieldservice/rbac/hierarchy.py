"""Role hierarchy: named roles ordered by a unique integer priority.

A role with priority P holds every permission granted to any role with
priority <= P.  Lookups are case-insensitive; the stored names keep the
case they were configured with.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from types import MappingProxyType

from fieldservice.exceptions import PermissionConfigError, UnknownRoleError
from fieldservice.rbac.types import Role, normalize_role_name


class RoleHierarchy:
    """Immutable, validated set of roles."""

    def __init__(self, roles: Iterable[Role]):
        by_name: dict[str, Role] = {}
        by_priority: dict[int, Role] = {}

        for role in roles:
            key = normalize_role_name(role.name)
            if key is None:
                raise PermissionConfigError("Role names must be non-empty strings")
            if isinstance(role.priority, bool) or not isinstance(role.priority, int) or role.priority < 1:
                raise PermissionConfigError(f'Invalid priority for role "{role.name}"')
            if key in by_name:
                raise PermissionConfigError(
                    f'Duplicate role "{role.name}" (names are compared case-insensitively)'
                )
            if role.priority in by_priority:
                raise PermissionConfigError(
                    f"Duplicate priority {role.priority} - each role must have unique priority"
                )
            by_name[key] = role
            by_priority[role.priority] = role

        if not by_name:
            raise PermissionConfigError("At least one role must be defined")

        self._by_name = MappingProxyType(by_name)
        self._by_priority = MappingProxyType(by_priority)
        self._ordered = tuple(sorted(by_name.values(), key=lambda r: r.priority))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, role_name: str | None) -> Role | None:
        key = normalize_role_name(role_name)
        if key is None:
            return None
        return self._by_name.get(key)

    def priority_of(self, role_name: str) -> int:
        """Priority for ``role_name``; raises ``UnknownRoleError`` if it is not configured."""
        role = self.get(role_name)
        if role is None:
            raise UnknownRoleError(role_name)
        return role.priority

    def by_priority(self, priority: int) -> Role | None:
        return self._by_priority.get(priority)

    def meets_minimum(self, user_role: str | None, required_role: str | None) -> bool:
        """True when ``user_role`` is at or above ``required_role``.

        Returns ``False`` (never raises) when either side is empty or unknown.
        """
        user = self.get(user_role)
        required = self.get(required_role)
        if user is None or required is None:
            return False
        return user.priority >= required.priority

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def lowest(self) -> Role:
        return self._ordered[0]

    @property
    def highest(self) -> Role:
        return self._ordered[-1]

    @property
    def names(self) -> tuple[str, ...]:
        """Role names, lowest priority first."""
        return tuple(role.name for role in self._ordered)

    def __iter__(self) -> Iterator[Role]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, role_name: object) -> bool:
        return isinstance(role_name, str) and self.get(role_name) is not None

    def __repr__(self) -> str:
        chain = " -> ".join(f"{r.name}:{r.priority}" for r in self._ordered)
        return f"<RoleHierarchy {chain}>"
