"""Value types for the permission engine.

Operations, resources and RLS policy names are closed sets (``str`` enums,
so they compare equal to their wire values).  Roles are *data*: they come
from the permission document and are validated at load time.
"""
from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping
from typing import Any

from fieldservice.exceptions import UnknownOperationError, UnknownResourceError


class Operation(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Evaluation order for get_allowed_operations()
CRUD_OPERATIONS: tuple[Operation, ...] = (
    Operation.CREATE,
    Operation.READ,
    Operation.UPDATE,
    Operation.DELETE,
)


class Resource(str, enum.Enum):
    # Table-backed entities
    USERS = "users"
    ROLES = "roles"
    CUSTOMERS = "customers"
    TECHNICIANS = "technicians"
    WORK_ORDERS = "work_orders"
    INVOICES = "invoices"
    CONTRACTS = "contracts"
    INVENTORY = "inventory"
    PREFERENCES = "preferences"
    SAVED_VIEWS = "saved_views"
    NOTIFICATIONS = "notifications"
    # Synthetic (navigation / system) resources
    DASHBOARD = "dashboard"
    ADMIN_PANEL = "admin_panel"
    AUDIT_LOGS = "audit_logs"
    SYSTEM_SETTINGS = "system_settings"


class RlsPolicy(str, enum.Enum):
    ALL_RECORDS = "all_records"
    PUBLIC_RESOURCE = "public_resource"
    OWN_RECORD_ONLY = "own_record_only"
    OWN_WORK_ORDERS_ONLY = "own_work_orders_only"
    OWN_INVOICES_ONLY = "own_invoices_only"
    OWN_CONTRACTS_ONLY = "own_contracts_only"
    ASSIGNED_WORK_ORDERS_ONLY = "assigned_work_orders_only"
    DENY_ALL = "deny_all"


def coerce_operation(value: Operation | str) -> Operation:
    """Return ``value`` as an :class:`Operation` or raise ``UnknownOperationError``."""
    if isinstance(value, Operation):
        return value
    try:
        return Operation(value)
    except ValueError:
        raise UnknownOperationError(value) from None


def coerce_resource(value: Resource | str) -> Resource:
    """Return ``value`` as a :class:`Resource` or raise ``UnknownResourceError``."""
    if isinstance(value, Resource):
        return value
    try:
        return Resource(value)
    except ValueError:
        raise UnknownResourceError(value) from None


def normalize_role_name(value: Any) -> str | None:
    """Case-fold a role name for lookup; ``None`` for empty or non-string input."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped:
        return None
    return stripped.casefold()


# ---------------------------------------------------------------------------
# Configuration values
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Role:
    name: str
    priority: int
    description: str = ""

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class PermissionRule:
    """Minimum role for one (resource, operation) pair.

    ``minimum_priority`` is read off the resolved role, so it cannot drift
    from the role table.
    """

    minimum_role: Role
    description: str = ""

    @property
    def minimum_priority(self) -> int:
        return self.minimum_role.priority

    def to_dict(self) -> dict[str, Any]:
        return {
            "minimumRole": self.minimum_role.name,
            "minimumPriority": self.minimum_priority,
            "description": self.description,
        }


@dataclasses.dataclass(frozen=True)
class ResourceRules:
    resource: Resource
    description: str
    permissions: Mapping[Operation, PermissionRule]
    # keyed by case-folded role name
    row_level_security: Mapping[str, RlsPolicy]
    nav_visibility: PermissionRule | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "permissions": {op.value: rule.to_dict() for op, rule in self.permissions.items()},
            "rowLevelSecurity": {role: policy.value for role, policy in self.row_level_security.items()},
            "navVisibility": self.nav_visibility.to_dict() if self.nav_visibility else None,
        }


# ---------------------------------------------------------------------------
# Evaluator output
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class PermissionResult:
    allowed: bool
    denial_reason: str | None = None
    minimum_required: Role | None = None

    @classmethod
    def allow(cls, minimum_required: Role | None = None) -> PermissionResult:
        return cls(allowed=True, minimum_required=minimum_required)

    @classmethod
    def deny(cls, reason: str, minimum_required: Role | None = None) -> PermissionResult:
        return cls(allowed=False, denial_reason=reason, minimum_required=minimum_required)

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "denialReason": self.denial_reason,
            "minimumRequired": self.minimum_required.name if self.minimum_required else None,
        }
