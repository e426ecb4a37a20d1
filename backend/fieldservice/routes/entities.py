"""Generic CRUD routes, one router per routable entity.

Each route is gated by ``require_permission`` first; reads, updates and
deletes then run with the caller's RLS context ANDed into the SQL, so
passing RBAC never means unfiltered rows.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fieldservice.database import get_db
from fieldservice.entities import ENTITY_METADATA, EntityMetadata
from fieldservice.middleware.auth import get_evaluator, get_rls_context, require_permission
from fieldservice.rbac.evaluator import PermissionEvaluator
from fieldservice.rbac.types import Operation
from fieldservice.services.entity_service import EntityService
from fieldservice.services.query_builder import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def build_entity_router(metadata: EntityMetadata) -> APIRouter:
    resource = metadata.resource
    router = APIRouter(prefix=f"/api/{metadata.name}", tags=[metadata.name])

    @router.get("")
    async def list_records(
        search: str | None = Query(None),
        page: int = Query(1, ge=1),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        db: AsyncSession = Depends(get_db),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
        user: dict = Depends(require_permission(resource, Operation.READ)),
    ):
        context = get_rls_context(evaluator, resource, user)
        return await EntityService(db, metadata).list(context, search=search, page=page, page_size=page_size)

    @router.get("/{record_id}")
    async def get_record(
        record_id: int,
        db: AsyncSession = Depends(get_db),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
        user: dict = Depends(require_permission(resource, Operation.READ)),
    ):
        context = get_rls_context(evaluator, resource, user)
        return await EntityService(db, metadata).get(record_id, context)

    @router.post("", status_code=201)
    async def create_record(
        body: dict[str, Any] = Body(...),
        db: AsyncSession = Depends(get_db),
        _user: dict = Depends(require_permission(resource, Operation.CREATE)),
    ):
        return await EntityService(db, metadata).create(body)

    @router.patch("/{record_id}")
    async def update_record(
        record_id: int,
        body: dict[str, Any] = Body(...),
        db: AsyncSession = Depends(get_db),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
        user: dict = Depends(require_permission(resource, Operation.UPDATE)),
    ):
        context = get_rls_context(evaluator, resource, user)
        return await EntityService(db, metadata).update(record_id, body, context)

    @router.delete("/{record_id}", status_code=204)
    async def delete_record(
        record_id: int,
        db: AsyncSession = Depends(get_db),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
        user: dict = Depends(require_permission(resource, Operation.DELETE)),
    ):
        context = get_rls_context(evaluator, resource, user)
        await EntityService(db, metadata).delete(record_id, context)
        return Response(status_code=204)

    return router


def entity_routers() -> list[APIRouter]:
    return [build_entity_router(meta) for meta in ENTITY_METADATA.values() if meta.routable]
