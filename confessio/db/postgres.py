"""
Postgres connection management with pgvector support.

Uses psycopg3 with connection pooling. This sync pool serves the CLI's
stats and health commands; search runs on the async pool in
postgres_async.py.
"""

import logging
from contextlib import contextmanager
from typing import Optional, Any, Generator

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from pgvector.psycopg import register_vector

from confessio.config import config

logger = logging.getLogger(__name__)

# Global connection pool
_pool: Optional[ConnectionPool] = None

REQUIRED_TABLES = ("works", "content_chunks", "study_notes")


def get_pg_pool() -> ConnectionPool:
    """Get or create the small sync pool used by the CLI."""
    global _pool

    if _pool is None:
        logger.debug("Creating sync Postgres pool")
        _pool = ConnectionPool(
            config.POSTGRES_DSN,
            min_size=1,
            max_size=2,
            kwargs={"row_factory": dict_row},
            configure=_configure_connection,
        )

    return _pool


def _configure_connection(conn: psycopg.Connection) -> None:
    """Configure a new connection (register pgvector)."""
    register_vector(conn)


@contextmanager
def get_pg_connection() -> Generator[psycopg.Connection, None, None]:
    """Get a connection from the pool."""
    pool = get_pg_pool()
    with pool.connection() as conn:
        yield conn


def execute_query(query: str, params: Optional[tuple] = None) -> list[dict]:
    """Run a read-only query and return its rows."""
    with get_pg_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()


def get_stats() -> dict[str, int]:
    """Get corpus statistics from the database."""
    stats = {}

    queries = {
        "works": "SELECT COUNT(*) AS count FROM works",
        "chunks": "SELECT COUNT(*) AS count FROM content_chunks",
        "chunks_with_embeddings": "SELECT COUNT(*) AS count FROM content_chunks WHERE content_vector IS NOT NULL",
        "study_notes": "SELECT COUNT(*) AS count FROM study_notes",
        "notes_with_embeddings": "SELECT COUNT(*) AS count FROM study_notes WHERE note_vector IS NOT NULL",
    }

    with get_pg_connection() as conn:
        with conn.cursor() as cur:
            for name, query in queries.items():
                try:
                    cur.execute(query)
                    result = cur.fetchone()
                    stats[name] = result["count"] if result else 0
                except Exception as e:
                    logger.warning(f"Failed to get stat {name}: {e}")
                    conn.rollback()
                    stats[name] = 0

    return stats


def get_work_counts() -> list[dict]:
    """Chunk counts per catalogued work, largest first."""
    return execute_query(
        """
        SELECT w.acronym, w.title, w.type, w.boost_priority, COUNT(c.id) AS chunks
        FROM works w
        LEFT JOIN content_chunks c ON c.work_id = w.id
        GROUP BY w.id, w.acronym, w.title, w.type, w.boost_priority
        ORDER BY chunks DESC
        """
    )


def check_health() -> dict[str, Any]:
    """Check database health and return status."""
    result = {
        "status": "unknown",
        "connection": False,
        "pgvector": False,
        "tables": [],
    }

    try:
        with get_pg_connection() as conn:
            result["connection"] = True

            with conn.cursor() as cur:
                cur.execute(
                    "SELECT extversion FROM pg_extension WHERE extname = 'vector'"
                )
                row = cur.fetchone()
                if row:
                    result["pgvector"] = True
                    result["pgvector_version"] = row["extversion"]

                cur.execute(
                    """
                    SELECT tablename FROM pg_tables
                    WHERE schemaname = 'public'
                    AND tablename = ANY(%s)
                    """,
                    (list(REQUIRED_TABLES),),
                )
                result["tables"] = [row["tablename"] for row in cur.fetchall()]

        missing = set(REQUIRED_TABLES) - set(result["tables"])
        result["status"] = "healthy" if result["pgvector"] and not missing else "degraded"

    except Exception as e:
        result["status"] = "unhealthy"
        result["error"] = str(e)

    return result


def close_pool() -> None:
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.close()
        _pool = None
        logger.info("Postgres connection pool closed")
