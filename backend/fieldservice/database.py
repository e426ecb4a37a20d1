from collections.abc import AsyncGenerator, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fieldservice.config import settings

# ---------------------------------------------------------------------------
# Async engine & session (used by FastAPI at runtime)
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_size=20,
    max_overflow=10,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Raw SQL helpers
#
# Queries are composed with $N placeholders (asyncpg's native paramstyle)
# and passed straight to the driver, so the RLS clause and its parameters
# reach PostgreSQL exactly as they were built.
# ---------------------------------------------------------------------------


async def fetch_all(session: AsyncSession, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
    conn = await session.connection()
    result = await conn.exec_driver_sql(sql, tuple(params))
    return [dict(row) for row in result.mappings().all()]


async def fetch_one(session: AsyncSession, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
    rows = await fetch_all(session, sql, params)
    return rows[0] if rows else None


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
