"""Authentication and authorization dependencies.

Provides:
- ``get_current_user()``: JWT -> ``{"user_id", "role"}``
- ``get_evaluator()``: the process-wide ``PermissionEvaluator``
- ``require_permission(resource, operation)`` and ``require_minimum_role(role)``
- ``get_rls_context()``: RLS policy for the caller on one resource

Identity comes from an external provider; the token is only decoded here
to read the user id and role claims.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from fieldservice.config import settings
from fieldservice.db.rls import RlsContext
from fieldservice.exceptions import PermissionDeniedError
from fieldservice.rbac.evaluator import PermissionEvaluator
from fieldservice.rbac.types import (
    Operation,
    PermissionResult,
    Resource,
    RlsPolicy,
    coerce_operation,
    coerce_resource,
    normalize_role_name,
)

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Current-user dependency
# ---------------------------------------------------------------------------


def _coerce_user_id(value: Any) -> Any:
    # Numeric ids arrive as strings in most tokens; the tables use integer keys.
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    """Decode the bearer token and return ``{"user_id", "role"}``.

    Raises ``HTTPException(401)`` when the token is missing, invalid or has
    no user id.  A missing role is *not* an authentication failure: the
    permission gate turns it into a "No role assigned" denial.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as exc:
        logger.warning("AUTH_INVALID_TOKEN path=%s error=%s", request.url.path, exc)
        raise credentials_exception

    user_id = payload.get(settings.JWT_USER_ID_CLAIM)
    if user_id is None:
        user_id = payload.get("sub")
    if user_id is None:
        logger.warning("AUTH_INVALID_TOKEN path=%s error=no user id claim", request.url.path)
        raise credentials_exception

    user = {
        "user_id": _coerce_user_id(user_id),
        "role": payload.get(settings.JWT_ROLE_CLAIM),
    }
    request.state.user = user
    return user


def get_evaluator(request: Request) -> PermissionEvaluator:
    return request.app.state.evaluator


# ---------------------------------------------------------------------------
# Permission-checking dependency factory
# ---------------------------------------------------------------------------


def _log_denial(event: str, user: dict[str, Any], request: Request, **details: Any) -> None:
    extra = " ".join(f"{key}={value}" for key, value in details.items())
    logger.warning(
        "%s user=%s role=%s path=%s %s",
        event, user.get("user_id"), user.get("role"), request.url.path, extra,
    )


def require_permission(resource: Resource | str, operation: Operation | str):
    """Return a FastAPI dependency that checks ``operation`` on ``resource``.

    Unknown resource/operation names fail here, when the route is wired.

    Usage::

        @router.delete("/{record_id}")
        async def delete_record(
            record_id: int,
            user: dict = Depends(require_permission("work_orders", "delete")),
        ):
            ...
    """
    resource = coerce_resource(resource)
    operation = coerce_operation(operation)

    async def _check_permission(
        request: Request,
        current_user: dict[str, Any] = Depends(get_current_user),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
    ) -> dict[str, Any]:
        result: PermissionResult = evaluator.check_permission(current_user.get("role"), resource, operation)
        if not result.allowed:
            event = (
                "AUTH_NO_ROLE"
                if normalize_role_name(current_user.get("role")) is None
                else "AUTH_INSUFFICIENT_PERMISSION"
            )
            _log_denial(
                event, current_user, request,
                resource=resource.value, operation=operation.value, reason=result.denial_reason,
            )
            raise PermissionDeniedError(result.denial_reason or "Forbidden", result)
        return current_user

    return _check_permission


def require_minimum_role(required_role: str):
    """Return a FastAPI dependency that admits ``required_role`` and above."""

    async def _check_role(
        request: Request,
        current_user: dict[str, Any] = Depends(get_current_user),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
    ) -> dict[str, Any]:
        if not evaluator.has_minimum_role(current_user.get("role"), required_role):
            _log_denial("AUTH_INSUFFICIENT_ROLE", current_user, request, required=required_role)
            raise PermissionDeniedError(f"Requires '{required_role}' role or higher")
        return current_user

    return _check_role


# ---------------------------------------------------------------------------
# Row-level security
# ---------------------------------------------------------------------------


def get_rls_context(
    evaluator: PermissionEvaluator,
    resource: Resource | str,
    user: dict[str, Any],
) -> RlsContext:
    """RLS context for the caller on ``resource``.

    A role with no policy configured for the resource gets ``deny_all``.
    """
    policy = evaluator.get_row_level_security(user.get("role"), resource)
    if policy is None:
        logger.warning(
            "No RLS policy for role %r on %s, denying access",
            user.get("role"), coerce_resource(resource).value,
        )
        policy = RlsPolicy.DENY_ALL
    return RlsContext(policy=policy, user_id=user.get("user_id"))
