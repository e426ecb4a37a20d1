"""Permission document loading and validation.

The permission document is the artifact shared with the frontend::

    {
      "version": "4.0.0",
      "roles": {"admin": {"priority": 5, "description": "..."}, ...},
      "resources": {
        "work_orders": {
          "description": "...",
          "permissions": {"read": {"minimumRole": "client", "minimumPriority": 1}, ...},
          "rowLevelSecurity": {"client": "own_work_orders_only", ...},
          "navVisibility": {"minimumRole": "client"}
        }
      }
    }

Structure is checked with pydantic; cross references (roles, operations,
policies) are checked by ``PermissionConfig.from_document``.  Any failure
raises ``PermissionConfigError`` so the process refuses to start.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from fieldservice.exceptions import PermissionConfigError
from fieldservice.rbac.hierarchy import RoleHierarchy
from fieldservice.rbac.types import (
    CRUD_OPERATIONS,
    Operation,
    PermissionRule,
    Resource,
    ResourceRules,
    RlsPolicy,
    Role,
    coerce_operation,
    coerce_resource,
    normalize_role_name,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Document schema
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RoleEntry(_CamelModel):
    priority: StrictInt
    description: str = ""


class PermissionEntry(_CamelModel):
    minimum_role: str | None = Field(alias="minimumRole")
    # Recomputed from the role table; the input value is only compared.
    minimum_priority: StrictInt | None = Field(default=None, alias="minimumPriority")
    description: str = ""


class NavVisibilityEntry(_CamelModel):
    minimum_role: str = Field(alias="minimumRole")
    description: str = ""


class ResourceEntry(_CamelModel):
    description: str = ""
    permissions: dict[str, PermissionEntry]
    row_level_security: dict[str, str] = Field(default_factory=dict, alias="rowLevelSecurity")
    nav_visibility: NavVisibilityEntry | None = Field(default=None, alias="navVisibility")


class PermissionDocument(_CamelModel):
    version: str = "1.0.0"
    roles: dict[str, RoleEntry]
    resources: dict[str, ResourceEntry]


def parse_permission_document(data: Mapping[str, Any] | PermissionDocument) -> PermissionDocument:
    """Validate the document structure, raising ``PermissionConfigError`` on failure."""
    if isinstance(data, PermissionDocument):
        return data
    if not isinstance(data, Mapping):
        raise PermissionConfigError("Permission document must be a JSON object")
    try:
        return PermissionDocument.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise PermissionConfigError(f"Invalid permission document: {problems}") from exc


# ---------------------------------------------------------------------------
# Validated, immutable configuration
# ---------------------------------------------------------------------------


class PermissionConfig:
    """Read-only permission configuration built once at process start."""

    def __init__(
        self,
        hierarchy: RoleHierarchy,
        resources: Mapping[Resource, ResourceRules],
        version: str = "1.0.0",
        source: str = "<document>",
    ):
        self._hierarchy = hierarchy
        self._resources = MappingProxyType(dict(resources))
        self.version = version
        self.source = source

    @classmethod
    def from_document(
        cls,
        data: Mapping[str, Any] | PermissionDocument,
        source: str = "<document>",
    ) -> PermissionConfig:
        document = parse_permission_document(data)

        hierarchy = RoleHierarchy(
            Role(name=name, priority=entry.priority, description=entry.description)
            for name, entry in document.roles.items()
        )

        if not document.resources:
            raise PermissionConfigError("At least one resource must be defined")

        resources: dict[Resource, ResourceRules] = {}
        for resource_name, entry in document.resources.items():
            try:
                resource = Resource(resource_name)
            except ValueError:
                raise PermissionConfigError(f'Unknown resource "{resource_name}"') from None
            resources[resource] = _build_resource_rules(resource, entry, hierarchy)

        return cls(hierarchy, resources, version=document.version, source=source)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def hierarchy(self) -> RoleHierarchy:
        return self._hierarchy

    @property
    def resources(self) -> Mapping[Resource, ResourceRules]:
        return self._resources

    def rules_for(self, resource: Resource | str) -> ResourceRules | None:
        return self._resources.get(coerce_resource(resource))

    def get_rule(self, resource: Resource | str, operation: Operation | str) -> PermissionRule | None:
        operation = coerce_operation(operation)
        rules = self.rules_for(resource)
        if rules is None:
            return None
        return rules.permissions.get(operation)

    def get_minimum_role(self, resource: Resource | str, operation: Operation | str) -> Role | None:
        """Minimum role for the pair, or ``None`` when the resource is not configured."""
        rule = self.get_rule(resource, operation)
        return rule.minimum_role if rule else None

    def get_row_level_security(self, role_name: str | None, resource: Resource | str) -> RlsPolicy | None:
        rules = self.rules_for(resource)
        key = normalize_role_name(role_name)
        if rules is None or key is None:
            return None
        return rules.row_level_security.get(key)

    def get_role_priority(self, role_name: str | None) -> int | None:
        role = self._hierarchy.get(role_name)
        return role.priority if role else None

    def get_nav_visibility(self, resource: Resource | str) -> PermissionRule | None:
        """Explicit nav rule, falling back to the read rule."""
        rules = self.rules_for(resource)
        if rules is None:
            return None
        if rules.nav_visibility is not None:
            return rules.nav_visibility
        return rules.permissions.get(Operation.READ)

    def to_document(self) -> dict[str, Any]:
        """Serialise back to the shared JSON shape (with recomputed priorities)."""
        return {
            "version": self.version,
            "roles": {
                role.name: {"priority": role.priority, "description": role.description}
                for role in self._hierarchy
            },
            "resources": {
                resource.value: rules.to_dict() for resource, rules in self._resources.items()
            },
        }

    def __repr__(self) -> str:
        return (
            f"<PermissionConfig v{self.version} roles={len(self._hierarchy)} "
            f"resources={len(self._resources)} source={self.source!r}>"
        )


def _resolve_role(hierarchy: RoleHierarchy, role_name: str | None, where: str) -> Role:
    role = hierarchy.get(role_name)
    if role is None:
        raise PermissionConfigError(f'Invalid minimumRole "{role_name}" for {where}')
    return role


def _build_resource_rules(
    resource: Resource,
    entry: ResourceEntry,
    hierarchy: RoleHierarchy,
) -> ResourceRules:
    name = resource.value

    for op_name in entry.permissions:
        try:
            Operation(op_name)
        except ValueError:
            raise PermissionConfigError(f'Unknown operation "{op_name}" for resource "{name}"') from None

    permissions: dict[Operation, PermissionRule] = {}
    for op in CRUD_OPERATIONS:
        perm = entry.permissions.get(op.value)
        if perm is None:
            raise PermissionConfigError(f'Missing "{op.value}" permission for resource "{name}"')

        role = _resolve_role(hierarchy, perm.minimum_role, f"{name}.{op.value}")
        if perm.minimum_priority is not None and perm.minimum_priority != role.priority:
            logger.warning(
                "Ignoring minimumPriority=%s for %s.%s; role %r has priority %s",
                perm.minimum_priority, name, op.value, role.name, role.priority,
            )
        permissions[op] = PermissionRule(minimum_role=role, description=perm.description)

    row_level_security: dict[str, RlsPolicy] = {}
    for role_name, policy_name in entry.row_level_security.items():
        role = hierarchy.get(role_name)
        if role is None:
            raise PermissionConfigError(
                f'Unknown role "{role_name}" in rowLevelSecurity for resource "{name}"'
            )
        try:
            policy = RlsPolicy(policy_name)
        except ValueError:
            raise PermissionConfigError(
                f'Unknown RLS policy "{policy_name}" for {name}.{role_name}'
            ) from None
        row_level_security[normalize_role_name(role.name)] = policy

    nav_visibility = None
    if entry.nav_visibility is not None:
        nav_role = _resolve_role(hierarchy, entry.nav_visibility.minimum_role, f"{name}.navVisibility")
        nav_visibility = PermissionRule(minimum_role=nav_role, description=entry.nav_visibility.description)

    return ResourceRules(
        resource=resource,
        description=entry.description,
        permissions=MappingProxyType(permissions),
        row_level_security=MappingProxyType(row_level_security),
        nav_visibility=nav_visibility,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def load_permission_file(path: str | Path) -> PermissionConfig:
    """Read and validate a JSON permission document from disk."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PermissionConfigError(f"Cannot read permission file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise PermissionConfigError(f"Permission file {path} is not valid JSON: {exc}") from exc
    return PermissionConfig.from_document(raw, source=str(path))


def load_permission_config(permissions_file: str | Path | None = None) -> PermissionConfig:
    """Load the process-wide permission configuration.

    Uses ``permissions_file`` when given, otherwise derives the document
    from the entity metadata registry.
    """
    if permissions_file:
        config = load_permission_file(permissions_file)
    else:
        from fieldservice.rbac.deriver import derive_permission_document

        config = PermissionConfig.from_document(derive_permission_document(), source="entity-metadata")

    logger.info(
        "Permissions loaded from %s: %d roles (%s), %d resources",
        config.source,
        len(config.hierarchy),
        " -> ".join(config.hierarchy.names),
        len(config.resources),
    )
    return config
