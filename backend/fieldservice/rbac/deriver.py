"""
Permission document derived from entity metadata.

The entity metadata modules are the source of truth; this module turns
them (plus a handful of synthetic navigation/system resources) into the
same JSON document shape a ``PERMISSIONS_FILE`` would contain.  The
result still goes through ``PermissionConfig.from_document`` validation.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from fieldservice.entities import ENTITY_METADATA, EntityMetadata
from fieldservice.rbac.types import CRUD_OPERATIONS

DOCUMENT_VERSION = "4.0.0-derived"

# ---------------------------------------------------------------------------
# Role hierarchy (lowest -> highest)
# ---------------------------------------------------------------------------

DEFAULT_ROLES: tuple[tuple[str, int, str], ...] = (
    ("client", 1, "Customers: own work orders, invoices and contracts"),
    ("technician", 2, "Field staff: assigned work orders, inventory"),
    ("dispatcher", 3, "Schedules and assigns work across all customers"),
    ("manager", 4, "Operations management, reporting, deletes"),
    ("admin", 5, "Full system access"),
)


# ---------------------------------------------------------------------------
# Synthetic resources (no backing table)
# ---------------------------------------------------------------------------

_ADMIN_ONLY_RLS = {
    "client": "deny_all",
    "technician": "deny_all",
    "dispatcher": "deny_all",
    "manager": "deny_all",
    "admin": "all_records",
}

_ADMIN_ONLY_OPS = {"create": "admin", "read": "admin", "update": "admin", "delete": "admin"}

SYNTHETIC_RESOURCES: dict[str, dict[str, Any]] = {
    "dashboard": {
        "description": "Main dashboard view - role-driven overview",
        "rls_policy": {
            "client": "own_record_only",
            "technician": "own_record_only",
            "dispatcher": "all_records",
            "manager": "all_records",
            "admin": "all_records",
        },
        "entity_permissions": {"create": "admin", "read": "client", "update": "admin", "delete": "admin"},
    },
    "admin_panel": {
        "description": "Admin control center - system health, sessions, audit logs",
        "rls_policy": _ADMIN_ONLY_RLS,
        "entity_permissions": _ADMIN_ONLY_OPS,
    },
    "audit_logs": {
        # Audit rows are written by the backend, never through the API.
        "description": "System audit trail and security events",
        "rls_policy": _ADMIN_ONLY_RLS,
        "entity_permissions": _ADMIN_ONLY_OPS,
    },
    "system_settings": {
        "description": "System-wide configuration (maintenance mode, feature flags)",
        "rls_policy": _ADMIN_ONLY_RLS,
        "entity_permissions": _ADMIN_ONLY_OPS,
    },
}


def _role_priorities(roles: Iterable[tuple[str, int, str]]) -> dict[str, int]:
    return {name.lower(): priority for name, priority, _ in roles}


def _build_permissions(
    entity_permissions: Mapping[str, str],
    priorities: Mapping[str, int],
    top_role: str,
) -> dict[str, dict[str, Any]]:
    permissions = {}
    for op in CRUD_OPERATIONS:
        if op.value in entity_permissions:
            role = entity_permissions[op.value]
            description = f"Entity-level override - {op.value} requires {role}"
        else:
            role = top_role
            description = f"Not declared - {op.value} defaults to {top_role}"
        permissions[op.value] = {
            "minimumRole": role,
            # Unknown roles are left for the validator to reject.
            "minimumPriority": priorities.get(str(role).lower()),
            "description": description,
        }
    return permissions


def _build_resource(
    description: str,
    entity_permissions: Mapping[str, str],
    rls_policy: Mapping[str, str],
    nav_visibility: str | None,
    priorities: Mapping[str, int],
    top_role: str,
) -> dict[str, Any]:
    return {
        "description": description,
        "permissions": _build_permissions(entity_permissions, priorities, top_role),
        "rowLevelSecurity": dict(rls_policy),
        "navVisibility": (
            {"minimumRole": nav_visibility, "description": "Explicit navVisibility"}
            if nav_visibility
            else None
        ),
    }


def derive_permission_document(
    entities: Iterable[EntityMetadata] | None = None,
    roles: Iterable[tuple[str, int, str]] = DEFAULT_ROLES,
    synthetic: Mapping[str, Mapping[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build the permission document from entity metadata and synthetic resources."""
    roles = tuple(roles)
    entities = ENTITY_METADATA.values() if entities is None else entities
    synthetic = SYNTHETIC_RESOURCES if synthetic is None else synthetic

    priorities = _role_priorities(roles)
    top_role = max(roles, key=lambda r: r[1])[0] if roles else "admin"

    resources: dict[str, Any] = {}
    for meta in entities:
        resources[meta.name] = _build_resource(
            meta.description or f"{meta.name} resource",
            meta.entity_permissions,
            meta.rls_policy,
            meta.nav_visibility,
            priorities,
            top_role,
        )

    for name, entry in synthetic.items():
        resources[name] = _build_resource(
            entry["description"],
            entry["entity_permissions"],
            entry["rls_policy"],
            entry.get("nav_visibility"),
            priorities,
            top_role,
        )

    return {
        "version": DOCUMENT_VERSION,
        "roles": {
            name: {"priority": priority, "description": description}
            for name, priority, description in roles
        },
        "resources": resources,
    }
