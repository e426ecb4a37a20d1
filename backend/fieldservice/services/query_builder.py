"""
SQL composition for the generic entity routes.

Every builder returns SQL text with ``$N`` placeholders plus the parameter
list.  Values only ever travel as parameters; table and column names come
from entity metadata and are validated against the identifier allow-list.
The RLS fragment is ANDed in as one parenthesised expression and is left
out entirely when empty.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from fieldservice.db.identifiers import quote_identifier, require_identifier
from fieldservice.db.rls import RlsFilter
from fieldservice.db.update_helper import build_insert_clause, build_update_clause
from fieldservice.entities.base import EntityMetadata

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclasses.dataclass(frozen=True)
class Query:
    sql: str
    params: list[Any]


@dataclasses.dataclass(frozen=True)
class ListQuery:
    sql: str
    count_sql: str
    params: list[Any]
    # limit / offset appended after ``params`` for ``sql`` only
    page_params: list[Any]


def and_clauses(*clauses: str | None) -> str:
    """Join non-empty clauses with AND; empty string when nothing is left."""
    parts = [f"({clause})" for clause in clauses if clause]
    return " AND ".join(parts)


def like_pattern(term: str) -> str:
    """Substring ILIKE pattern for ``term`` with its wildcards taken literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _where(*clauses: str | None) -> str:
    combined = and_clauses(*clauses)
    return f" WHERE {combined}" if combined else ""


def _table(metadata: EntityMetadata) -> str:
    return quote_identifier(metadata.table_name)


def _pk(metadata: EntityMetadata) -> str:
    return require_identifier(metadata.primary_key, f"{metadata.name}.primary_key")


def _check_offset(rls_filter: RlsFilter, expected: int, what: str) -> None:
    # A filter built for the wrong offset would bind the user id to the wrong slot.
    if rls_filter.params and f"${expected + 1}" not in rls_filter.clause:
        raise ValueError(f"RLS filter for {what} must start at ${expected + 1}: {rls_filter.clause!r}")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def build_list_query(
    metadata: EntityMetadata,
    rls_filter: RlsFilter,
    search: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> ListQuery:
    """SELECT for a page of rows.

    With a search term, ``$1`` holds the ILIKE pattern and the RLS filter
    must have been built with ``param_offset=1``; otherwise it starts at 0.
    """
    params: list[Any] = []
    search_clause = ""
    if search and metadata.searchable_fields:
        params.append(like_pattern(search))
        search_clause = " OR ".join(
            f"{require_identifier(column, metadata.name)}::text ILIKE $1 ESCAPE '\\'"
            for column in metadata.searchable_fields
        )

    _check_offset(rls_filter, len(params), f"{metadata.name} list")
    params.extend(rls_filter.params)

    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    where = _where(search_clause, rls_filter.clause)
    sort = require_identifier(metadata.default_sort, f"{metadata.name}.default_sort")
    pk = _pk(metadata)
    order_by = sort if sort == pk else f"{sort}, {pk}"

    n = len(params)
    sql = (
        f"SELECT * FROM {_table(metadata)}{where} "
        f"ORDER BY {order_by} LIMIT ${n + 1} OFFSET ${n + 2}"
    )
    count_sql = f"SELECT COUNT(*) AS total FROM {_table(metadata)}{where}"
    return ListQuery(sql=sql, count_sql=count_sql, params=params, page_params=[limit, (page - 1) * limit])


def list_param_offset(metadata: EntityMetadata, search: str | None) -> int:
    """Offset the RLS filter must use for :func:`build_list_query`."""
    return 1 if search and metadata.searchable_fields else 0


def build_find_by_id_query(metadata: EntityMetadata, record_id: Any, rls_filter: RlsFilter) -> Query:
    """``$1`` is the id; build ``rls_filter`` with ``build_rls_filter_for_find_by_id``."""
    _check_offset(rls_filter, 1, f"{metadata.name} find-by-id")
    sql = f"SELECT * FROM {_table(metadata)}{_where(f'{_pk(metadata)} = $1', rls_filter.clause)}"
    return Query(sql=sql, params=[record_id, *rls_filter.params])


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def build_insert_query(metadata: EntityMetadata, data: Mapping[str, Any]) -> Query:
    clause = build_insert_clause(data, jsonb_fields=metadata.jsonb_fields)
    if not clause.values:
        return Query(sql=f"INSERT INTO {_table(metadata)} DEFAULT VALUES RETURNING *", params=[])
    sql = (
        f"INSERT INTO {_table(metadata)} ({clause.columns}) "
        f"VALUES ({clause.placeholders}) RETURNING *"
    )
    return Query(sql=sql, params=clause.values)


def build_update_query(
    metadata: EntityMetadata,
    record_id: Any,
    data: Mapping[str, Any],
    rls_filter: RlsFilter,
) -> Query | None:
    """UPDATE ... RETURNING *, or ``None`` when ``data`` is empty.

    SET values take ``$1..$k``, the id ``$k+1`` and the RLS filter must be
    built with ``param_offset=k+1`` (see :func:`update_param_offset`).
    """
    clause = build_update_clause(
        data,
        immutable_fields=metadata.immutable_fields,
        jsonb_fields=metadata.jsonb_fields,
    )
    if not clause.has_updates:
        return None

    id_slot = len(clause.values) + 1
    _check_offset(rls_filter, id_slot, f"{metadata.name} update")
    where = _where(f"{_pk(metadata)} = ${id_slot}", rls_filter.clause)
    sql = f"UPDATE {_table(metadata)} SET {clause.set_clause}{where} RETURNING *"
    return Query(sql=sql, params=[*clause.values, record_id, *rls_filter.params])


def update_param_offset(data: Mapping[str, Any]) -> int:
    return len(data) + 1


def build_delete_query(metadata: EntityMetadata, record_id: Any, rls_filter: RlsFilter) -> Query:
    """``$1`` is the id; the RLS filter uses offset 1 as for find-by-id."""
    _check_offset(rls_filter, 1, f"{metadata.name} delete")
    pk = _pk(metadata)
    sql = f"DELETE FROM {_table(metadata)}{_where(f'{pk} = $1', rls_filter.clause)} RETURNING {pk}"
    return Query(sql=sql, params=[record_id, *rls_filter.params])
