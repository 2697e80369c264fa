"""
Search adapters: one per retrieval source.

Each adapter turns a question into a bounded list of ContextItem carrying an
adapter-local raw score. Adapters never raise: run() wraps search() in a
timeout and converts any failure into an empty AdapterResult with the error
recorded, so one broken source never takes down the others.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from confessio.config import config
from confessio.models import ContextItem, MetadataFilter
from confessio.search.query_analysis import LexicalQuery, keyword_overlap_score

logger = logging.getLogger(__name__)

LEXICAL_RANK_WEIGHT = 0.7
LEXICAL_OVERLAP_WEIGHT = 0.3
RELATIONAL_SCORE = 1.0


@dataclass
class AdapterResult:
    """Outcome of one adapter run."""

    source: str
    items: list[ContextItem] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_ms: float = 0.0
    skipped: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


def keep_max_score(items: list[ContextItem]) -> list[ContextItem]:
    """Collapse duplicate identities, keeping the highest score and first position."""
    best: dict[str, ContextItem] = {}
    for item in items:
        current = best.get(item.item_id)
        if current is None:
            best[item.item_id] = item
        elif item.score > current.score:
            best[item.item_id] = current.with_score(item.score)
    return list(best.values())


class SearchAdapter:
    """Base class: subclasses implement search(), callers use run()."""

    source = "base"

    def __init__(self, timeout_s: Optional[float] = None):
        self.timeout_s = timeout_s if timeout_s is not None else config.ADAPTER_TIMEOUT_S

    async def search(self, *args, **kwargs) -> list[ContextItem]:
        raise NotImplementedError

    async def run(self, *args, **kwargs) -> AdapterResult:
        start = time.time()
        try:
            items = await asyncio.wait_for(self.search(*args, **kwargs), timeout=self.timeout_s)
            error = None
        except asyncio.TimeoutError:
            items = []
            error = f"timed out after {self.timeout_s}s"
            logger.warning(f"{self.source} search {error}")
        except Exception as e:
            items = []
            error = f"{type(e).__name__}: {e}"
            logger.warning(f"{self.source} search failed: {error}")

        elapsed = (time.time() - start) * 1000
        logger.debug(f"{self.source} search returned {len(items)} items in {elapsed:.0f}ms")
        return AdapterResult(source=self.source, items=items, error=error, elapsed_ms=elapsed)


# =============================================================================
# Vector
# =============================================================================


class VectorSearchAdapter(SearchAdapter):
    """Embed the question and match it against stored chunk and note vectors."""

    source = "vector"

    def __init__(self, backend, embedder, top_k: int = None, timeout_s: Optional[float] = None):
        super().__init__(timeout_s)
        self.backend = backend
        self.embedder = embedder
        self.top_k = top_k or config.VECTOR_TOP_K

    async def search(
        self, question: str, filters: Optional[MetadataFilter] = None
    ) -> list[ContextItem]:
        embedding = await self.embedder.embed(question)
        if embedding is None:
            logger.debug("No query embedding, skipping vector search")
            return []

        hits = await self.backend.search(embedding, top_k=self.top_k, filters=filters)
        items = [ContextItem.from_row(row, similarity) for _, similarity, row in hits]
        return keep_max_score(items)


# =============================================================================
# Lexical
# =============================================================================


def clamp_rank(rank) -> float:
    if rank is None:
        return 0.0
    return max(0.0, min(float(rank), 1.0))


class LexicalSearchAdapter(SearchAdapter):
    """
    Full-text search with a single fallback.

    The OR-joined expression runs first at top_k per content kind; when it
    finds nothing the main term alone is retried at retry_top_k. Each hit is
    scored 0.7 * rank + 0.3 * keyword overlap against the original keywords.
    """

    source = "lexical"

    def __init__(
        self,
        backend,
        top_k: int = None,
        retry_top_k: int = None,
        timeout_s: Optional[float] = None,
    ):
        super().__init__(timeout_s)
        self.backend = backend
        self.top_k = top_k or config.LEXICAL_TOP_K
        self.retry_top_k = retry_top_k or config.LEXICAL_RETRY_TOP_K

    async def search(
        self, query: Optional[LexicalQuery], filters: Optional[MetadataFilter] = None
    ) -> list[ContextItem]:
        if query is None:
            return []

        hits = await self.backend.search(query.expression, top_k=self.top_k, filters=filters)

        if not hits and query.main_expression and query.main_expression != query.expression:
            logger.debug(f"Lexical search empty, retrying with main term: {query.main_term}")
            hits = await self.backend.search(
                query.main_expression, top_k=self.retry_top_k, filters=filters
            )

        items = []
        for _, rank, row in hits:
            item = ContextItem.from_row(row, 0.0)
            overlap = keyword_overlap_score(item.content, query.keywords)
            score = LEXICAL_RANK_WEIGHT * clamp_rank(rank) + LEXICAL_OVERLAP_WEIGHT * overlap
            items.append(item.with_score(score))

        return keep_max_score(items)


# =============================================================================
# Relational
# =============================================================================


class RelationalSearchAdapter(SearchAdapter):
    """Chunks tagged with a topic inferred from the question."""

    source = "relational"

    def __init__(self, backend, top_k: int = None, timeout_s: Optional[float] = None):
        super().__init__(timeout_s)
        self.backend = backend
        self.top_k = top_k or config.RELATIONAL_TOP_K

    async def search(
        self, topics: list[str], document_name: Optional[str] = None
    ) -> list[ContextItem]:
        if not topics:
            return []

        rows = await self.backend.search(topics, document_name=document_name, top_k=self.top_k)

        if not rows and document_name:
            logger.debug(f"No topic matches within '{document_name}', retrying unfiltered")
            rows = await self.backend.search(topics, document_name=None, top_k=self.top_k)

        items = [ContextItem.from_row(row, RELATIONAL_SCORE) for row in rows]
        return keep_max_score(items)
