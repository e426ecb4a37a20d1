"""Exception hierarchy for the field-service API.

Every error carries a machine-readable ``code`` and an HTTP status so the
exception handler in ``main.py`` can render ``{"detail", "code"}`` without
each route building its own ``HTTPException``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fieldservice.rbac.types import PermissionResult


class FieldServiceError(Exception):
    """Base exception for the field-service API."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code}


# ---------------------------------------------------------------------------
# Startup-time (fatal)
# ---------------------------------------------------------------------------


class PermissionConfigError(FieldServiceError):
    """Raised when the permission document is structurally or semantically invalid."""

    code = "PERMISSION_CONFIG_INVALID"


class UnsafeIdentifierError(FieldServiceError):
    """Raised when configuration supplies a column/table name outside the allow-list."""

    code = "UNSAFE_IDENTIFIER"


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------


class UnknownRoleError(FieldServiceError):
    """Raised by strict role lookups.  Evaluator methods never raise this."""

    code = "UNKNOWN_ROLE"
    status_code = 403

    def __init__(self, role_name: Any):
        self.role_name = role_name
        super().__init__(f"Unknown role: {role_name}")


class UnknownResourceError(FieldServiceError):
    """Programmer error: resource name outside the closed set."""

    code = "UNKNOWN_RESOURCE"

    def __init__(self, resource: Any):
        self.resource = resource
        super().__init__(f"Unknown resource: {resource}")


class UnknownOperationError(FieldServiceError):
    """Programmer error: operation outside create/read/update/delete."""

    code = "UNKNOWN_OPERATION"

    def __init__(self, operation: Any):
        self.operation = operation
        super().__init__(f"Unknown operation: {operation}")


# ---------------------------------------------------------------------------
# Request-time
# ---------------------------------------------------------------------------


class PermissionDeniedError(FieldServiceError):
    """Raised by route gates when the evaluator denies an operation."""

    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str, result: PermissionResult | None = None):
        self.result = result
        super().__init__(message)


class ImmutableFieldViolation(FieldServiceError):
    """The write touched immutable fields; nothing was applied."""

    code = "IMMUTABLE_FIELD_VIOLATION"
    status_code = 400

    def __init__(self, fields: list[str]):
        self.fields = sorted(fields)
        super().__init__(f"Cannot modify immutable field(s): {', '.join(self.fields)}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.fields}


class InvalidFieldError(FieldServiceError):
    """The request body named a field that is not a valid column identifier."""

    code = "INVALID_FIELD"
    status_code = 400

    def __init__(self, fields: list[str]):
        self.fields = sorted(fields)
        super().__init__(f"Invalid field name(s): {', '.join(self.fields)}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.fields}


class RecordNotFoundError(FieldServiceError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, record_id: Any):
        self.resource = resource
        self.record_id = record_id
        super().__init__(f"{resource} record {record_id} not found")
