"""Metadata for user, role, customer and technician tables."""
from __future__ import annotations

from fieldservice.db.rls import RlsFieldConfig
from fieldservice.entities.base import EntityMetadata
from fieldservice.rbac.types import Resource

USERS = EntityMetadata(
    resource=Resource.USERS,
    table_name="users",
    description="Application users linked to Auth0 identities",
    # Clients can read users, but RLS narrows them to their own row.
    entity_permissions={
        "create": "admin",
        "read": "client",
        "update": "manager",
        "delete": "admin",
    },
    rls_policy={
        "client": "own_record_only",
        "technician": "own_record_only",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    nav_visibility="manager",
    rls_filter=RlsFieldConfig(own_record_field="id"),
    sensitive_fields=("auth0_id",),
    immutable_fields=("auth0_id",),
    searchable_fields=("email", "first_name", "last_name"),
    default_sort="email",
)

ROLES = EntityMetadata(
    resource=Resource.ROLES,
    table_name="roles",
    description="Role catalogue; priorities are fixed at deploy time",
    entity_permissions={
        "create": "admin",
        "read": "client",
        "update": "admin",
        "delete": "admin",
    },
    rls_policy={
        "client": "public_resource",
        "technician": "public_resource",
        "dispatcher": "public_resource",
        "manager": "public_resource",
        "admin": "public_resource",
    },
    nav_visibility="admin",
    immutable_fields=("name", "priority"),
    searchable_fields=("name", "description"),
    default_sort="priority",
)

CUSTOMERS = EntityMetadata(
    resource=Resource.CUSTOMERS,
    table_name="customers",
    description="Customer accounts",
    entity_permissions={
        "create": "dispatcher",
        "read": "client",
        "update": "client",
        "delete": "manager",
    },
    rls_policy={
        "client": "own_record_only",
        "technician": "all_records",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    searchable_fields=("email", "first_name", "last_name", "company_name", "phone"),
    default_sort="email",
)

TECHNICIANS = EntityMetadata(
    resource=Resource.TECHNICIANS,
    table_name="technicians",
    description="Field technicians and their availability",
    entity_permissions={
        "create": "manager",
        "read": "client",
        "update": "technician",
        "delete": "manager",
    },
    rls_policy={
        "client": "all_records",
        "technician": "all_records",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    nav_visibility="technician",
    searchable_fields=("first_name", "last_name", "license_number"),
    default_sort="last_name",
)
