"""
Storage-backed search backends.

Each backend wraps one external capability and knows nothing about
fusion or scoring policy:

- PgVectorBackend.search(query_embedding, top_k, filters)
      -> [(item_id, raw_similarity, row)]
- PostgresFullTextBackend.search(expression, top_k, filters)
      -> [(item_id, raw_rank, row)]
- Neo4jTopicBackend.search(topics, document_name, top_k)
      -> [row]  (unranked)
- PostgresContentStore.resolve_direct_reference(code, number, sub_number)
      -> row or None
- PostgresContentStore.resolve_note_reference(book, chapter, verse)
      -> row or None

Rows are dicts carrying a `kind` column ("chunk" or "note") so that
ContextItem.from_row() can build items uniformly.
"""

import logging
from typing import Optional

from confessio.models import ContentKind, MetadataFilter, make_item_id

logger = logging.getLogger(__name__)

FTS_LANGUAGE = "portuguese"

CHUNK_COLUMNS = """
    'chunk' AS kind,
    c.id,
    c.content,
    c.question,
    c.chapter_title,
    c.section_title,
    c.subsection_title,
    c.sub_subsection_title,
    c.chapter_number,
    c.section_number,
    w.title AS work_title,
    w.acronym AS work_acronym,
    w.type AS work_type,
    w.boost_priority
"""

NOTE_COLUMNS = """
    'note' AS kind,
    s.id,
    s.book,
    s.start_chapter,
    s.start_verse,
    s.end_chapter,
    s.end_verse,
    s.note_content
"""

CHUNK_DOCUMENT = (
    "c.content || ' ' || COALESCE(c.question, '') || ' ' || COALESCE(c.chapter_title, '')"
)
NOTE_DOCUMENT = "s.note_content || ' ' || s.book"


def row_item_id(row: dict) -> str:
    kind = ContentKind.BIBLICAL_NOTE if row.get("kind") == "note" else ContentKind.CONFESSIONAL_CHUNK
    return make_item_id(kind, row["id"])


def chunk_filter_clause(filters: Optional[MetadataFilter]) -> tuple[str, list]:
    """SQL conditions narrowing chunk queries to the filter."""
    if filters is None or filters.is_empty():
        return "", []

    conditions = []
    params = []
    if filters.document_code:
        conditions.append("LOWER(w.acronym) = LOWER(%s)")
        params.append(filters.document_code)
    if filters.chapter is not None:
        conditions.append("c.chapter_number = %s")
        params.append(filters.chapter)
    if filters.section is not None:
        conditions.append("c.section_number = %s")
        params.append(filters.section)

    if not conditions:
        return "", []
    return "AND " + " AND ".join(conditions), params


def note_filter_clause(filters: Optional[MetadataFilter]) -> tuple[str, list]:
    """SQL conditions narrowing study-note queries to the filter."""
    if filters is None or filters.is_empty():
        return "", []

    conditions = []
    params = []
    if filters.biblical_book:
        conditions.append("s.book = %s")
        params.append(filters.biblical_book)
    if filters.chapter is not None:
        conditions.append("s.start_chapter = %s")
        params.append(filters.chapter)
    if filters.section is not None:
        conditions.append("%s BETWEEN s.start_verse AND s.end_verse")
        params.append(filters.section)

    if not conditions:
        return "", []
    return "AND " + " AND ".join(conditions), params


# =============================================================================
# Vector search
# =============================================================================


class PgVectorBackend:
    """
    Cosine similarity over pgvector columns.

    Chunks are matched on both their content vector and their question
    vector; study notes on their note vector.
    """

    CHUNK_VECTOR_COLUMNS = ("content_vector", "question_vector")

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        filters: Optional[MetadataFilter] = None,
    ) -> list[tuple[str, float, dict]]:
        from confessio.db.postgres_async import execute_query

        hits = []

        chunk_clause, chunk_params = chunk_filter_clause(filters)
        for column in self.CHUNK_VECTOR_COLUMNS:
            rows = await execute_query(
                f"""
                SELECT {CHUNK_COLUMNS},
                    1 - (c.{column} <=> %s::vector) AS similarity
                FROM content_chunks c
                JOIN works w ON c.work_id = w.id
                WHERE c.{column} IS NOT NULL
                {chunk_clause}
                ORDER BY c.{column} <=> %s::vector
                LIMIT %s
                """,
                (query_embedding, *chunk_params, query_embedding, top_k),
            )
            hits.extend((row_item_id(r), float(r["similarity"]), r) for r in rows)

        note_clause, note_params = note_filter_clause(filters)
        rows = await execute_query(
            f"""
            SELECT {NOTE_COLUMNS},
                1 - (s.note_vector <=> %s::vector) AS similarity
            FROM study_notes s
            WHERE s.note_vector IS NOT NULL
            {note_clause}
            ORDER BY s.note_vector <=> %s::vector
            LIMIT %s
            """,
            (query_embedding, *note_params, query_embedding, top_k),
        )
        hits.extend((row_item_id(r), float(r["similarity"]), r) for r in rows)

        return hits


# =============================================================================
# Full-text search
# =============================================================================


class PostgresFullTextBackend:
    """Portuguese to_tsquery + ts_rank over chunks and study notes."""

    async def search(
        self,
        expression: str,
        top_k: int = 5,
        filters: Optional[MetadataFilter] = None,
    ) -> list[tuple[str, float, dict]]:
        from confessio.db.postgres_async import execute_query

        chunk_clause, chunk_params = chunk_filter_clause(filters)
        chunk_rows = await execute_query(
            f"""
            SELECT {CHUNK_COLUMNS},
                ts_rank(
                    to_tsvector('{FTS_LANGUAGE}', {CHUNK_DOCUMENT}),
                    to_tsquery('{FTS_LANGUAGE}', %s)
                ) AS rank
            FROM content_chunks c
            JOIN works w ON c.work_id = w.id
            WHERE to_tsvector('{FTS_LANGUAGE}', {CHUNK_DOCUMENT})
                  @@ to_tsquery('{FTS_LANGUAGE}', %s)
            {chunk_clause}
            ORDER BY rank DESC
            LIMIT %s
            """,
            (expression, expression, *chunk_params, top_k),
        )

        note_clause, note_params = note_filter_clause(filters)
        note_rows = await execute_query(
            f"""
            SELECT {NOTE_COLUMNS},
                ts_rank(
                    to_tsvector('{FTS_LANGUAGE}', {NOTE_DOCUMENT}),
                    to_tsquery('{FTS_LANGUAGE}', %s)
                ) AS rank
            FROM study_notes s
            WHERE to_tsvector('{FTS_LANGUAGE}', {NOTE_DOCUMENT})
                  @@ to_tsquery('{FTS_LANGUAGE}', %s)
            {note_clause}
            ORDER BY rank DESC
            LIMIT %s
            """,
            (expression, expression, *note_params, top_k),
        )

        return [
            (row_item_id(r), float(r["rank"]), r)
            for r in [*chunk_rows, *note_rows]
        ]


# =============================================================================
# Relational (topic tag) search
# =============================================================================


async def fetch_chunks_by_ids(chunk_ids: list) -> dict:
    """Chunk rows keyed by id."""
    from confessio.db.postgres_async import execute_query

    if not chunk_ids:
        return {}

    rows = await execute_query(
        f"""
        SELECT {CHUNK_COLUMNS}
        FROM content_chunks c
        JOIN works w ON c.work_id = w.id
        WHERE c.id = ANY(%s)
        """,
        (list(chunk_ids),),
    )
    return {row["id"]: row for row in rows}


class Neo4jTopicBackend:
    """
    Chunks sharing a topic tag with the question.

    Topic tags live in Neo4j; chunk content and work metadata are fetched
    from Postgres. Results are unranked.
    """

    async def search(
        self,
        topics: list[str],
        document_name: Optional[str] = None,
        top_k: int = 5,
    ) -> list[dict]:
        from confessio.db.neo4j_async import find_chunks_by_topics

        records = await find_chunks_by_topics(topics, work_title=document_name, limit=top_k)
        chunk_ids = [r["chunk_id"] for r in records if r.get("chunk_id") is not None]
        if not chunk_ids:
            return []

        rows = await fetch_chunks_by_ids(chunk_ids)
        return [rows[cid] for cid in chunk_ids if cid in rows]


# =============================================================================
# Direct reference lookup
# =============================================================================


class PostgresContentStore:
    """
    Resolves citations to a single unit: CFW 21.1 or CM 98 to a chunk,
    Romanos 3:21 to the study note whose verse range covers it.
    """

    async def resolve_direct_reference(
        self,
        code: str,
        number: int,
        sub_number: Optional[int] = None,
    ) -> Optional[dict]:
        from confessio.db.postgres_async import execute_query

        if sub_number is None:
            # Catechisms store the question number as the section number
            locator = """(
                (c.chapter_number = %s AND c.section_number IS NULL)
                OR (c.chapter_number IS NULL AND c.section_number = %s)
            )"""
            params = (code, number, number)
        else:
            locator = "c.chapter_number = %s AND c.section_number = %s"
            params = (code, number, sub_number)

        rows = await execute_query(
            f"""
            SELECT {CHUNK_COLUMNS}
            FROM content_chunks c
            JOIN works w ON c.work_id = w.id
            WHERE LOWER(w.acronym) = LOWER(%s)
              AND {locator}
            ORDER BY c.chapter_number IS NULL, c.id
            LIMIT 1
            """,
            params,
        )
        return rows[0] if rows else None

    async def resolve_note_reference(
        self,
        book: str,
        chapter: int,
        verse: int,
    ) -> Optional[dict]:
        from confessio.db.postgres_async import execute_query

        rows = await execute_query(
            f"""
            SELECT {NOTE_COLUMNS}
            FROM study_notes s
            WHERE LOWER(s.book) = LOWER(%s)
              AND (s.start_chapter < %s OR (s.start_chapter = %s AND s.start_verse <= %s))
              AND (s.end_chapter > %s OR (s.end_chapter = %s AND s.end_verse >= %s))
            ORDER BY s.start_chapter, s.start_verse
            LIMIT 1
            """,
            (book, chapter, chapter, verse, chapter, chapter, verse),
        )
        return rows[0] if rows else None
