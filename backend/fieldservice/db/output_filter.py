"""Sensitive-field stripping for API responses.

Removes credential-like fields from every record, plus the entity's own
``sensitive_fields``.  When the entity declares ``output_fields`` only
those are kept, and the sensitive set still wins over that whitelist.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

# Auth0 handles passwords, so there is no password column to strip.
ALWAYS_SENSITIVE: frozenset[str] = frozenset({
    "auth0_id",
    "refresh_token",
    "api_key",
    "api_secret",
    "secret_key",
    "private_key",
})


def always_sensitive_fields() -> list[str]:
    return sorted(ALWAYS_SENSITIVE)


def _sensitive_set(metadata: Any) -> frozenset[str]:
    extra = getattr(metadata, "sensitive_fields", None) or ()
    return ALWAYS_SENSITIVE | frozenset(extra)


def is_sensitive_field(field: str, metadata: Any = None) -> bool:
    return field in _sensitive_set(metadata)


def filter_output(record: Any, metadata: Any = None) -> Any:
    """Return a copy of ``record`` without sensitive fields.

    Lists are filtered element-wise; ``None`` and other non-mapping values
    pass through untouched.  The input is never mutated.
    """
    if isinstance(record, list):
        return filter_output_array(record, metadata)
    if not isinstance(record, Mapping):
        return record

    sensitive = _sensitive_set(metadata)
    # An empty whitelist means "no whitelist"
    whitelist = getattr(metadata, "output_fields", None) or None

    return {
        key: value
        for key, value in record.items()
        if key not in sensitive and (whitelist is None or key in whitelist)
    }


def filter_output_array(records: Any, metadata: Any = None) -> Any:
    if isinstance(records, Sequence) and not isinstance(records, (str, bytes, Mapping)):
        return [filter_output(record, metadata) for record in records]
    return filter_output(records, metadata)
