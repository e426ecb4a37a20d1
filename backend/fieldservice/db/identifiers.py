"""SQL identifier allow-list.

Column and table names are interpolated into SQL text, so they must come
from trusted configuration *and* match this pattern.  Values never go
through here; they always travel as bind parameters.
"""
from __future__ import annotations

import re
from typing import Any

from fieldservice.exceptions import UnsafeIdentifierError

# Unquoted PostgreSQL identifier, max 63 bytes
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]{0,62}")


def is_safe_identifier(name: Any) -> bool:
    """True for ``column`` or ``table.column`` built from allow-listed parts."""
    if not isinstance(name, str) or not name:
        return False
    parts = name.split(".")
    if len(parts) > 2:
        return False
    return all(_IDENTIFIER_RE.fullmatch(part) for part in parts)


def require_identifier(name: Any, context: str = "identifier") -> str:
    if not is_safe_identifier(name):
        raise UnsafeIdentifierError(f"Unsafe SQL identifier for {context}: {name!r}")
    return name


def quote_identifier(name: Any) -> str:
    """Double-quote each part of an allow-listed identifier."""
    require_identifier(name)
    return ".".join(f'"{part}"' for part in name.split("."))
