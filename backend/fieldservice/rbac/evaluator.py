"""
Permission evaluator.

One threshold per (resource, operation): a role may perform the operation
iff its priority is at least the priority of the configured minimum role.
There are no per-action override lists.

Pure and side-effect free given the loaded ``PermissionConfig``; the same
instance is shared by every request.
"""
from __future__ import annotations

from typing import Any

from fieldservice.exceptions import UnknownOperationError, UnknownResourceError
from fieldservice.rbac.loader import PermissionConfig
from fieldservice.rbac.types import (
    CRUD_OPERATIONS,
    Operation,
    PermissionResult,
    Resource,
    RlsPolicy,
    Role,
    coerce_operation,
    coerce_resource,
    normalize_role_name,
)


class PermissionEvaluator:
    def __init__(self, config: PermissionConfig):
        self._config = config

    @property
    def config(self) -> PermissionConfig:
        return self._config

    # ------------------------------------------------------------------
    # Core checks
    # ------------------------------------------------------------------

    def has_permission(
        self,
        role_name: str | None,
        resource: Resource | str,
        operation: Operation | str,
    ) -> bool:
        """True iff ``role_name`` meets the minimum role for the pair.

        Null, empty or unknown roles give ``False``.  A resource or
        operation outside the closed sets raises ``UnknownResourceError``
        / ``UnknownOperationError``; a known resource that is not in the
        configuration gives ``False``.
        """
        resource = coerce_resource(resource)
        operation = coerce_operation(operation)

        minimum = self._config.get_minimum_role(resource, operation)
        if minimum is None:
            return False
        return self._config.hierarchy.meets_minimum(role_name, minimum.name)

    def check_permission(
        self,
        role_name: Any,
        resource: Resource | str,
        operation: Operation | str,
    ) -> PermissionResult:
        """Like :meth:`has_permission` but explains denials.  Never raises."""
        if normalize_role_name(role_name) is None:
            return PermissionResult.deny("No role assigned")

        role = self._config.hierarchy.get(role_name)
        if role is None:
            return PermissionResult.deny(f"Unknown role: {role_name}")

        try:
            resource = coerce_resource(resource)
        except UnknownResourceError:
            return PermissionResult.deny(f"Unknown resource: {resource}")
        try:
            operation = coerce_operation(operation)
        except UnknownOperationError:
            return PermissionResult.deny(f"Unknown operation: {operation}")

        minimum = self._config.get_minimum_role(resource, operation)
        if minimum is None:
            return PermissionResult.deny(
                f"Resource '{resource.value}' has no '{operation.value}' permission configured"
            )

        if role.priority >= minimum.priority:
            return PermissionResult.allow(minimum_required=minimum)

        return PermissionResult.deny(
            f"Role '{role_name}' does not have '{operation.value}' permission "
            f"for '{resource.value}' (requires '{minimum.name}')",
            minimum_required=minimum,
        )

    def get_allowed_operations(self, role_name: str | None, resource: Resource | str) -> list[Operation]:
        return [op for op in CRUD_OPERATIONS if self.has_permission(role_name, resource, op)]

    def can_access_resource(self, role_name: str | None, resource: Resource | str) -> bool:
        """Any access at all; for section visibility, not for gating actions."""
        return bool(self.get_allowed_operations(role_name, resource))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_minimum_role(self, resource: Resource | str, operation: Operation | str) -> Role | None:
        return self._config.get_minimum_role(resource, operation)

    def has_minimum_role(self, role_name: str | None, required_role: str | None) -> bool:
        return self._config.hierarchy.meets_minimum(role_name, required_role)

    def can_view_in_nav(self, role_name: str | None, resource: Resource | str) -> bool:
        rule = self._config.get_nav_visibility(resource)
        if rule is None:
            return False
        return self._config.hierarchy.meets_minimum(role_name, rule.minimum_role.name)

    def get_row_level_security(self, role_name: str | None, resource: Resource | str) -> RlsPolicy | None:
        return self._config.get_row_level_security(role_name, resource)

    def permission_matrix(self, role_name: str | None) -> dict[str, dict[str, Any]]:
        """Per-resource summary for one role, as served to the frontend."""
        matrix: dict[str, dict[str, Any]] = {}
        for resource in self._config.resources:
            policy = self.get_row_level_security(role_name, resource)
            matrix[resource.value] = {
                "operations": [op.value for op in self.get_allowed_operations(role_name, resource)],
                "navVisible": self.can_view_in_nav(role_name, resource),
                "rowLevelSecurity": policy.value if policy else None,
            }
        return matrix
