"""
Database access for Confessio.

Sync Postgres (CLI stats and health):
    from confessio.db import check_health, get_stats, get_work_counts

Async drivers (search):
    from confessio.db.postgres_async import execute_query
    from confessio.db.neo4j_async import find_chunks_by_topics
"""

from .postgres import check_health, get_stats, get_work_counts

__all__ = [
    "check_health",
    "get_stats",
    "get_work_counts",
]
