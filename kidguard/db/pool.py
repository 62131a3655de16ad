"""
Connection pool holder and the FastAPI dependency that hands out connections.

The pool is created in the app lifespan (or by the test fixtures) and
registered here with set_db_pool.
"""

from typing import AsyncIterator, Optional

import asyncpg

db_pool: Optional[asyncpg.Pool] = None


def set_db_pool(pool: Optional[asyncpg.Pool]):
    """Set the global database pool used by request dependencies."""
    global db_pool
    db_pool = pool


def get_db_pool() -> asyncpg.Pool:
    """Return the registered pool, failing loudly if startup never ran."""
    if db_pool is None:
        raise RuntimeError("Database pool is not initialized")
    return db_pool


async def get_db() -> AsyncIterator[asyncpg.Connection]:
    """Yield one pooled connection for the duration of a request."""
    async with get_db_pool().acquire() as conn:
        yield conn
