"""
Async Neo4j connection management for Confessio.

The graph holds topic tags:

    (:Chunk {chunk_id})-[:TAGGED_WITH]->(:Topic {name})
    (:Chunk)-[:PART_OF]->(:Work {acronym, title})

Usage:
    async with get_async_session() as session:
        result = await session.run("MATCH (t:Topic) RETURN t.name AS name")
        records = await result.data()
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, AsyncGenerator, Any

from neo4j import AsyncGraphDatabase

from confessio.config import config

logger = logging.getLogger(__name__)

# Global async driver
_async_driver: Optional[Any] = None
_driver_lock = asyncio.Lock()


async def get_async_driver():
    """
    Get or create the async Neo4j driver.

    Safe under concurrent callers via asyncio.Lock.
    """
    global _async_driver

    if _async_driver is not None:
        return _async_driver

    async with _driver_lock:
        # Double-check after acquiring lock
        if _async_driver is not None:
            return _async_driver

        try:
            driver = AsyncGraphDatabase.driver(
                config.NEO4J_URI,
                auth=(config.NEO4J_USER, config.NEO4J_PASSWORD),
            )

            # Verify connectivity
            await driver.verify_connectivity()
            _async_driver = driver
            logger.info(f"Async Neo4j driver connected to {config.NEO4J_URI}")

        except Exception as e:
            logger.error(f"Failed to create async Neo4j driver: {e}")
            raise

    return _async_driver


@asynccontextmanager
async def get_async_session() -> AsyncGenerator:
    """
    Get an async Neo4j session.

    Usage:
        async with get_async_session() as session:
            result = await session.run("MATCH (n) RETURN n")
    """
    driver = await get_async_driver()
    async with driver.session() as session:
        yield session


async def execute_cypher(
    query: str,
    params: Optional[dict] = None,
) -> list[dict]:
    """
    Execute a Cypher query and return results.

    Args:
        query: Cypher query
        params: Query parameters

    Returns:
        List of record dicts
    """
    params = params or {}

    async with get_async_session() as session:
        result = await session.run(query, params)
        records = await result.data()
        return records


async def find_chunks_by_topics(
    topics: list[str],
    work_title: Optional[str] = None,
    limit: int = 5,
) -> list[dict]:
    """
    Find chunks tagged with any of the given topics.

    Args:
        topics: Topic names
        work_title: Optional case-insensitive substring of the work title
        limit: Maximum results

    Returns:
        List of {"chunk_id", "matched_topics"} dicts, most topics first
    """
    cypher = """
    MATCH (c:Chunk)-[:TAGGED_WITH]->(t:Topic)
    WHERE t.name IN $topics
    OPTIONAL MATCH (c)-[:PART_OF]->(w:Work)
    WITH c, w, count(DISTINCT t) AS matched_topics
    WHERE $work_title IS NULL OR toLower(w.title) CONTAINS toLower($work_title)
    RETURN c.chunk_id AS chunk_id, matched_topics
    ORDER BY matched_topics DESC, chunk_id
    LIMIT $limit
    """

    return await execute_cypher(
        cypher,
        {"topics": list(topics), "work_title": work_title, "limit": limit},
    )


async def count_topic_tags() -> list[dict]:
    """Number of tagged chunks per topic."""
    cypher = """
    MATCH (c:Chunk)-[:TAGGED_WITH]->(t:Topic)
    RETURN t.name AS topic, count(c) AS chunks
    ORDER BY chunks DESC
    """
    return await execute_cypher(cypher)


async def close_async_driver():
    """Close the async Neo4j driver."""
    global _async_driver

    if _async_driver:
        await _async_driver.close()
        _async_driver = None
        logger.info("Async Neo4j driver closed")
