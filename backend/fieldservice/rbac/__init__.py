"""Role-based access control: role hierarchy, permission config, evaluator."""
from fieldservice.rbac.evaluator import PermissionEvaluator
from fieldservice.rbac.hierarchy import RoleHierarchy
from fieldservice.rbac.loader import (
    PermissionConfig,
    load_permission_config,
    load_permission_file,
    parse_permission_document,
)
from fieldservice.rbac.types import (
    CRUD_OPERATIONS,
    Operation,
    PermissionResult,
    PermissionRule,
    Resource,
    ResourceRules,
    RlsPolicy,
    Role,
)

__all__ = [
    "CRUD_OPERATIONS",
    "Operation",
    "PermissionConfig",
    "PermissionEvaluator",
    "PermissionResult",
    "PermissionRule",
    "Resource",
    "ResourceRules",
    "RlsPolicy",
    "Role",
    "RoleHierarchy",
    "load_permission_config",
    "load_permission_file",
    "parse_permission_document",
]
