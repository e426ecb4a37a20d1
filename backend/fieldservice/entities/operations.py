"""Metadata for the work-order, billing and inventory tables."""
from __future__ import annotations

from fieldservice.db.rls import RlsFieldConfig
from fieldservice.entities.base import EntityMetadata
from fieldservice.rbac.types import Resource

WORK_ORDERS = EntityMetadata(
    resource=Resource.WORK_ORDERS,
    table_name="work_orders",
    description="Service jobs: customers see their own, technicians see assigned",
    entity_permissions={
        "create": "client",
        "read": "client",
        "update": "client",
        "delete": "manager",
    },
    rls_policy={
        "client": "own_work_orders_only",
        "technician": "assigned_work_orders_only",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    rls_filter=RlsFieldConfig(
        customer_field="customer_id",
        assigned_field="assigned_technician_id",
    ),
    immutable_fields=("work_order_number",),
    searchable_fields=("work_order_number", "name", "description"),
    default_sort="created_at",
)

INVOICES = EntityMetadata(
    resource=Resource.INVOICES,
    table_name="invoices",
    description="Customer invoices",
    entity_permissions={
        "create": "dispatcher",
        "read": "client",
        "update": "dispatcher",
        "delete": "manager",
    },
    rls_policy={
        "client": "own_invoices_only",
        "technician": "deny_all",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    immutable_fields=("invoice_number",),
    searchable_fields=("invoice_number",),
    default_sort="created_at",
)

CONTRACTS = EntityMetadata(
    resource=Resource.CONTRACTS,
    table_name="contracts",
    description="Service agreements",
    entity_permissions={
        "create": "manager",
        "read": "client",
        "update": "manager",
        "delete": "admin",
    },
    rls_policy={
        "client": "own_contracts_only",
        "technician": "deny_all",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    immutable_fields=("contract_number",),
    searchable_fields=("contract_number", "name"),
    default_sort="start_date",
)

INVENTORY = EntityMetadata(
    resource=Resource.INVENTORY,
    table_name="inventory",
    description="Parts and stock levels",
    entity_permissions={
        "create": "dispatcher",
        "read": "technician",
        "update": "technician",
        "delete": "manager",
    },
    rls_policy={
        "client": "deny_all",
        "technician": "all_records",
        "dispatcher": "all_records",
        "manager": "all_records",
        "admin": "all_records",
    },
    searchable_fields=("name", "sku", "description"),
    default_sort="name",
)
