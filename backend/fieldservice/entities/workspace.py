"""Per-user workspace tables: preferences, saved views, notifications."""
from __future__ import annotations

from fieldservice.db.rls import RlsFieldConfig
from fieldservice.entities.base import EntityMetadata
from fieldservice.rbac.types import Resource

PREFERENCES = EntityMetadata(
    resource=Resource.PREFERENCES,
    table_name="preferences",
    description="UI preferences, one row per user",
    entity_permissions={
        "create": "client",
        "read": "client",
        "update": "client",
        "delete": "admin",
    },
    rls_policy={
        "client": "own_record_only",
        "technician": "own_record_only",
        "dispatcher": "own_record_only",
        "manager": "own_record_only",
        "admin": "all_records",
    },
    rls_filter=RlsFieldConfig(own_record_field="user_id"),
    immutable_fields=("user_id",),
    jsonb_fields=("settings",),
    default_sort="user_id",
)

SAVED_VIEWS = EntityMetadata(
    resource=Resource.SAVED_VIEWS,
    table_name="saved_views",
    description="Saved table filters and column layouts",
    entity_permissions={
        "create": "client",
        "read": "client",
        "update": "client",
        "delete": "client",
    },
    rls_policy={
        "client": "own_record_only",
        "technician": "own_record_only",
        "dispatcher": "own_record_only",
        "manager": "own_record_only",
        "admin": "all_records",
    },
    rls_filter=RlsFieldConfig(own_record_field="user_id"),
    immutable_fields=("user_id",),
    jsonb_fields=("settings",),
    searchable_fields=("view_name",),
    default_sort="view_name",
)

NOTIFICATIONS = EntityMetadata(
    resource=Resource.NOTIFICATIONS,
    table_name="notifications",
    description="In-app notifications; even admins only see their own",
    # Notifications are created by the backend itself, so API creation is admin-only.
    entity_permissions={
        "create": "admin",
        "read": "client",
        "update": "client",
        "delete": "client",
    },
    rls_policy={
        "client": "own_record_only",
        "technician": "own_record_only",
        "dispatcher": "own_record_only",
        "manager": "own_record_only",
        "admin": "own_record_only",
    },
    rls_filter=RlsFieldConfig(own_record_field="user_id"),
    immutable_fields=("user_id", "title", "message"),
    default_sort="created_at",
)
