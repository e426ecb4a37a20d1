from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from fieldservice.entities.base import EntityMetadata, validate_entity_metadata
from fieldservice.entities.operations import CONTRACTS, INVENTORY, INVOICES, WORK_ORDERS
from fieldservice.entities.people import CUSTOMERS, ROLES, TECHNICIANS, USERS
from fieldservice.entities.workspace import NOTIFICATIONS, PREFERENCES, SAVED_VIEWS
from fieldservice.exceptions import UnknownResourceError
from fieldservice.rbac.types import Resource, coerce_resource

ENTITY_METADATA: Mapping[Resource, EntityMetadata] = MappingProxyType({
    meta.resource: meta
    for meta in (
        # People
        USERS,
        ROLES,
        CUSTOMERS,
        TECHNICIANS,
        # Operations
        WORK_ORDERS,
        INVOICES,
        CONTRACTS,
        INVENTORY,
        # Workspace
        PREFERENCES,
        SAVED_VIEWS,
        NOTIFICATIONS,
    )
})


def get_entity(resource: Resource | str) -> EntityMetadata:
    """Metadata for a table-backed resource; raises ``UnknownResourceError`` otherwise."""
    resource = coerce_resource(resource)
    try:
        return ENTITY_METADATA[resource]
    except KeyError:
        raise UnknownResourceError(resource.value) from None


__all__ = [
    "ENTITY_METADATA",
    "EntityMetadata",
    "get_entity",
    "validate_entity_metadata",
]
