"""SET / VALUES clause builders for writes.

Writes are all-or-nothing: if any field is immutable (or not a valid
column name) the whole request is rejected with the offending field
names, rather than silently dropping them and applying the rest.
"""
from __future__ import annotations

import dataclasses
import json
from collections.abc import Iterable, Mapping
from typing import Any

from fieldservice.db.identifiers import is_safe_identifier
from fieldservice.exceptions import ImmutableFieldViolation, InvalidFieldError

UNIVERSAL_IMMUTABLE_FIELDS: tuple[str, ...] = ("id", "created_at")


@dataclasses.dataclass(frozen=True)
class UpdateClause:
    set_clause: str
    values: list[Any]

    @property
    def has_updates(self) -> bool:
        return bool(self.values)


@dataclasses.dataclass(frozen=True)
class InsertClause:
    columns: str
    placeholders: str
    values: list[Any]


def _check_field_names(data: Mapping[str, Any]) -> None:
    invalid = [key for key in data if not is_safe_identifier(key) or "." in key]
    if invalid:
        raise InvalidFieldError(invalid)


def _placeholder(index: int, column: str, jsonb_fields: frozenset[str]) -> str:
    return f"${index}::jsonb" if column in jsonb_fields else f"${index}"


def _bind_value(column: str, value: Any, jsonb_fields: frozenset[str]) -> Any:
    if column in jsonb_fields and value is not None and not isinstance(value, str):
        return json.dumps(value)
    return value


def build_update_clause(
    data: Mapping[str, Any],
    immutable_fields: Iterable[str] = (),
    param_offset: int = 0,
    jsonb_fields: Iterable[str] = (),
) -> UpdateClause:
    """Build ``col = $N, ...`` for an UPDATE.

    Raises ``ImmutableFieldViolation`` listing every immutable field the
    payload touches (universal ones included).
    """
    _check_field_names(data)

    blocked = set(UNIVERSAL_IMMUTABLE_FIELDS) | set(immutable_fields)
    violations = [key for key in data if key in blocked]
    if violations:
        raise ImmutableFieldViolation(violations)

    jsonb = frozenset(jsonb_fields)
    assignments = []
    values = []
    for index, (column, value) in enumerate(data.items(), start=param_offset + 1):
        assignments.append(f"{column} = {_placeholder(index, column, jsonb)}")
        values.append(_bind_value(column, value, jsonb))

    return UpdateClause(set_clause=", ".join(assignments), values=values)


def build_insert_clause(
    data: Mapping[str, Any],
    param_offset: int = 0,
    jsonb_fields: Iterable[str] = (),
) -> InsertClause:
    """Build the column list and ``$N`` placeholders for an INSERT.

    Entity-level immutable fields may be set on creation; only the
    universal ones (``id``, ``created_at``) are database-managed.
    """
    _check_field_names(data)

    violations = [key for key in data if key in UNIVERSAL_IMMUTABLE_FIELDS]
    if violations:
        raise ImmutableFieldViolation(violations)

    jsonb = frozenset(jsonb_fields)
    columns = list(data)
    placeholders = [
        _placeholder(index, column, jsonb)
        for index, column in enumerate(columns, start=param_offset + 1)
    ]
    values = [_bind_value(column, data[column], jsonb) for column in columns]
    return InsertClause(
        columns=", ".join(columns),
        placeholders=", ".join(placeholders),
        values=values,
    )
