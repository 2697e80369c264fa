"""
Async Postgres connection management for Confessio.

Uses psycopg3 async interface with connection pooling and pgvector
registered on every connection.

Usage:
    async with get_async_connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("SELECT * FROM works")
            rows = await cur.fetchall()
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, AsyncGenerator, Any

from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from pgvector.psycopg import register_vector_async

from confessio.config import config

logger = logging.getLogger(__name__)

# Global async pool
_async_pool: Optional[AsyncConnectionPool] = None
_pool_lock = asyncio.Lock()


async def _configure_connection(conn) -> None:
    """Configure a new connection (register pgvector)."""
    await register_vector_async(conn)


async def get_async_pool() -> AsyncConnectionPool:
    """
    Get or create the async connection pool.

    Safe under concurrent callers via asyncio.Lock.
    """
    global _async_pool

    if _async_pool is not None:
        return _async_pool

    async with _pool_lock:
        # Double-check after acquiring lock
        if _async_pool is not None:
            return _async_pool

        try:
            pool = AsyncConnectionPool(
                config.POSTGRES_DSN,
                min_size=config.PG_POOL_MIN,
                max_size=config.PG_POOL_MAX,
                kwargs={"row_factory": dict_row},
                configure=_configure_connection,
                open=False,  # Don't open immediately
            )
            await pool.open()
            _async_pool = pool
            logger.info(
                f"Async Postgres pool created (min={config.PG_POOL_MIN}, max={config.PG_POOL_MAX})"
            )

        except Exception as e:
            logger.error(f"Failed to create async pool: {e}")
            raise

    return _async_pool


@asynccontextmanager
async def get_async_connection() -> AsyncGenerator:
    """
    Get an async database connection from the pool.

    Usage:
        async with get_async_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
    """
    pool = await get_async_pool()

    async with pool.connection() as conn:
        yield conn


async def execute_query(query: str, params: Any = ()) -> list[dict]:
    """
    Run a read-only query and return its rows as dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters (tuple or dict)
    """
    async with get_async_connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def close_async_pool():
    """Close the async connection pool."""
    global _async_pool

    if _async_pool:
        await _async_pool.close()
        _async_pool = None
        logger.info("Async Postgres pool closed")
