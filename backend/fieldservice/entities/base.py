"""Entity metadata: the single place each table declares its access rules.

The permission document is derived from these declarations (see
``rbac/deriver.py``), and the generic routes read the same objects for
RLS columns, sensitive fields and immutable fields.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Mapping

from fieldservice.db.identifiers import require_identifier
from fieldservice.db.rls import RlsFieldConfig
from fieldservice.rbac.types import Resource


@dataclasses.dataclass(frozen=True)
class EntityMetadata:
    resource: Resource
    table_name: str
    description: str = ""
    primary_key: str = "id"

    # operation -> minimum role name; missing operations default to the top role
    entity_permissions: Mapping[str, str] = dataclasses.field(default_factory=dict)
    # role name -> RLS policy name
    rls_policy: Mapping[str, str] = dataclasses.field(default_factory=dict)
    nav_visibility: str | None = None
    rls_filter: RlsFieldConfig = RlsFieldConfig()

    sensitive_fields: tuple[str, ...] = ()
    output_fields: tuple[str, ...] | None = None
    immutable_fields: tuple[str, ...] = ()
    jsonb_fields: tuple[str, ...] = ()
    searchable_fields: tuple[str, ...] = ()
    default_sort: str = "id"

    # Exposed through the generic /api/{resource} router
    routable: bool = True

    @property
    def name(self) -> str:
        return self.resource.value


def validate_entity_metadata(metadata: EntityMetadata) -> None:
    """Check every configured column/table name against the identifier allow-list.

    Raises ``UnsafeIdentifierError``; run once at startup.
    """
    where = metadata.name
    require_identifier(metadata.table_name, f"{where}.table_name")
    require_identifier(metadata.primary_key, f"{where}.primary_key")
    require_identifier(metadata.default_sort, f"{where}.default_sort")
    for attr in ("own_record_field", "customer_field", "assigned_field"):
        require_identifier(getattr(metadata.rls_filter, attr), f"{where}.rls_filter.{attr}")
    for group in ("sensitive_fields", "immutable_fields", "jsonb_fields", "searchable_fields"):
        for column in getattr(metadata, group):
            require_identifier(column, f"{where}.{group}")
    for column in metadata.output_fields or ():
        require_identifier(column, f"{where}.output_fields")
