"""Permission routes: the frontend reads its UI gating rules from here."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fieldservice.middleware.auth import get_current_user, get_evaluator
from fieldservice.rbac.evaluator import PermissionEvaluator

router = APIRouter(prefix="/api/permissions", tags=["permissions"])


@router.get("")
async def get_permission_document(
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    _user: dict = Depends(get_current_user),
):
    """The validated permission document (same shape as ``export-permissions``)."""
    return evaluator.config.to_document()


@router.get("/me")
async def get_my_permissions(
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    user: dict = Depends(get_current_user),
):
    role = user.get("role")
    role_entry = evaluator.config.hierarchy.get(role)
    return {
        "user_id": user["user_id"],
        "role": role,
        "priority": role_entry.priority if role_entry else None,
        "resources": evaluator.permission_matrix(role),
    }


@router.get("/check")
async def check_permission(
    resource: str = Query(...),
    operation: str = Query(...),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    user: dict = Depends(get_current_user),
):
    """Explain whether the caller may perform ``operation`` on ``resource``."""
    result = evaluator.check_permission(user.get("role"), resource, operation)
    return {"resource": resource, "operation": operation, **result.to_dict()}
