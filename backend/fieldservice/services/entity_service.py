"""Entity service: RLS-filtered CRUD over one metadata-described table."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fieldservice.database import fetch_all, fetch_one
from fieldservice.db.output_filter import filter_output, filter_output_array
from fieldservice.db.rls import (
    RlsContext,
    build_rls_filter,
    build_rls_filter_for_find_by_id,
)
from fieldservice.entities.base import EntityMetadata
from fieldservice.exceptions import RecordNotFoundError
from fieldservice.rbac.types import RlsPolicy
from fieldservice.services import query_builder

logger = logging.getLogger(__name__)


class EntityService:
    """Data access for one entity.

    Every read, update and delete ANDs the caller's RLS filter into the
    WHERE clause; a row hidden by RLS is reported exactly like a missing
    one.  Results go through the output filter before they are returned.
    Permission checks happen before the service is called.
    """

    def __init__(self, db: AsyncSession, metadata: EntityMetadata):
        self.db = db
        self.metadata = metadata

    def _context(self, context: RlsContext | None) -> RlsContext:
        # Unresolved RLS is the caller's bug; never run it unfiltered.
        if context is None:
            logger.warning("No RLS context for %s, denying access", self.metadata.name)
            return RlsContext(RlsPolicy.DENY_ALL)
        return context

    def _not_found(self, record_id: Any) -> RecordNotFoundError:
        return RecordNotFoundError(self.metadata.name, record_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(
        self,
        context: RlsContext | None,
        search: str | None = None,
        page: int = 1,
        page_size: int = query_builder.DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        rls = build_rls_filter(
            self._context(context),
            self.metadata,
            query_builder.list_param_offset(self.metadata, search),
        )
        query = query_builder.build_list_query(self.metadata, rls, search, page, page_size)

        total_row = await fetch_one(self.db, query.count_sql, query.params)
        rows = await fetch_all(self.db, query.sql, [*query.params, *query.page_params])
        return {
            "items": filter_output_array(rows, self.metadata),
            "total": int(total_row["total"]) if total_row else 0,
            "page": page,
            "page_size": page_size,
        }

    async def get(self, record_id: Any, context: RlsContext | None) -> dict[str, Any]:
        rls = build_rls_filter_for_find_by_id(self._context(context), self.metadata)
        query = query_builder.build_find_by_id_query(self.metadata, record_id, rls)
        row = await fetch_one(self.db, query.sql, query.params)
        if row is None:
            raise self._not_found(record_id)
        return filter_output(row, self.metadata)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        query = query_builder.build_insert_query(self.metadata, data)
        row = await fetch_one(self.db, query.sql, query.params)
        await self.db.commit()
        logger.info("Created %s record %s", self.metadata.name, (row or {}).get(self.metadata.primary_key))
        return filter_output(row, self.metadata)

    async def update(
        self,
        record_id: Any,
        data: Mapping[str, Any],
        context: RlsContext | None,
    ) -> dict[str, Any]:
        """Apply ``data`` to a visible row; immutable fields reject the whole write."""
        if not data:
            return await self.get(record_id, context)

        rls = build_rls_filter(
            self._context(context),
            self.metadata,
            query_builder.update_param_offset(data),
        )
        query = query_builder.build_update_query(self.metadata, record_id, data, rls)
        row = await fetch_one(self.db, query.sql, query.params)
        if row is None:
            raise self._not_found(record_id)
        await self.db.commit()
        return filter_output(row, self.metadata)

    async def delete(self, record_id: Any, context: RlsContext | None) -> None:
        rls = build_rls_filter_for_find_by_id(self._context(context), self.metadata)
        query = query_builder.build_delete_query(self.metadata, record_id, rls)
        row = await fetch_one(self.db, query.sql, query.params)
        if row is None:
            raise self._not_found(record_id)
        await self.db.commit()
        logger.info("Deleted %s record %s", self.metadata.name, record_id)
