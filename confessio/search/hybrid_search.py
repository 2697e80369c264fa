"""
Hybrid search for Confessio.

Combines:
1. Vector similarity (pgvector, Gemini embeddings)
2. Full-text search (PostgreSQL Portuguese tsvector)
3. Topic-tag retrieval (Neo4j)

The three sources run concurrently, each under its own timeout. Their
results are fused additively, boosted for document trust and trimmed to
the final top 5.
"""

import asyncio
import logging
import time
from typing import Optional

from confessio.config import config
from confessio.embeddings import get_embedder
from confessio.models import MetadataFilter, SearchResponse
from confessio.search.adapters import (
    AdapterResult,
    LexicalSearchAdapter,
    RelationalSearchAdapter,
    VectorSearchAdapter,
)
from confessio.search.backends import Neo4jTopicBackend, PgVectorBackend, PostgresFullTextBackend
from confessio.search.fusion import BoostEngine, ResultFuser, TopKSelector
from confessio.search.query_analysis import (
    KeywordExtractor,
    QueryBuilder,
    SynonymExpander,
    find_document_mention,
    infer_topics,
)
from confessio.telemetry import TelemetryLogger
from confessio.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)


async def _skipped(source: str) -> AdapterResult:
    return AdapterResult(source=source, skipped=True)


class HybridSearcher:
    """
    Hybrid search engine combining vector, full-text and topic retrieval.

    Usage:
        searcher = HybridSearcher()
        response = await searcher.search("O que é a justificação pela fé?")
        for item in response.results:
            print(f"{item.source}: {item.score:.3f}")
    """

    def __init__(
        self,
        vocabulary: Optional[Vocabulary] = None,
        vector_backend=None,
        lexical_backend=None,
        relational_backend=None,
        embedder=None,
        weights: Optional[dict] = None,
        timeout_s: Optional[float] = None,
    ):
        """
        Backends default to the Postgres/Neo4j implementations; tests pass
        in-memory fakes.
        """
        self.vocabulary = vocabulary or get_vocabulary()

        embedder = embedder or get_embedder()

        self.extractor = KeywordExtractor(self.vocabulary)
        self.query_builder = QueryBuilder(self.extractor, SynonymExpander(self.vocabulary))

        self.vector_adapter = VectorSearchAdapter(
            vector_backend or PgVectorBackend(), embedder, timeout_s=timeout_s
        )
        self.lexical_adapter = LexicalSearchAdapter(
            lexical_backend or PostgresFullTextBackend(), timeout_s=timeout_s
        )
        self.relational_adapter = RelationalSearchAdapter(
            relational_backend or Neo4jTopicBackend(), timeout_s=timeout_s
        )

        self.fuser = ResultFuser(weights)
        self.booster = BoostEngine(self.vocabulary)
        self.selector = TopKSelector()

    def document_name_for(self, question: str, filters: Optional[MetadataFilter]) -> Optional[str]:
        """Work title used to narrow topic search."""
        if filters is not None and filters.document_code:
            document = self.vocabulary.document(filters.document_code)
            if document is not None:
                return document.title
        mention = find_document_mention(question, self.vocabulary)
        return mention[1].title if mention else None

    async def search(
        self,
        question: str,
        n: int = None,
        filters: Optional[MetadataFilter] = None,
    ) -> SearchResponse:
        """
        Perform hybrid search.

        Args:
            question: Question text (already validated)
            n: Number of results to return (default and maximum 5)
            filters: Optional metadata filter for vector and full-text search

        Returns:
            SearchResponse; an empty result list means no relevant content
        """
        if n is None:
            n = config.FINAL_RESULT_COUNT
        n = min(n, config.FINAL_RESULT_COUNT)
        start_time = time.time()

        keywords = self.extractor.extract(question)
        lexical_query = self.query_builder.build(keywords, question)
        topics = infer_topics(question, self.vocabulary)
        document_name = self.document_name_for(question, filters)

        logger.debug(f"Keywords: {keywords} | topics: {topics} | document: {document_name}")

        with TelemetryLogger() as tl:
            tl.set_question(question, n_requested=n)
            tl.set_query_analysis(lexical_query.expression if lexical_query else None, topics)
            tl.set_filters(filters.to_dict() if filters else None)

            results = await asyncio.gather(
                self.vector_adapter.run(question, filters=filters),
                self.lexical_adapter.run(lexical_query, filters=filters)
                if lexical_query is not None
                else _skipped("lexical"),
                self.relational_adapter.run(topics, document_name=document_name)
                if topics
                else _skipped("relational"),
            )

            for result in results:
                tl.add_source_results(result.source, result.items, result.elapsed_ms, result.error)

            with tl.time("fusion"):
                fused = self.fuser.fuse({r.source: r.items for r in results})
                boosted = self.booster.boost(fused, keywords)
                selected = self.selector.select(boosted, k=n)

            tl.add_final_results(selected)

        response = SearchResponse(
            question=question,
            results=selected,
            filters=filters,
            failed_sources=[r.source for r in results if r.failed],
            search_time_ms=(time.time() - start_time) * 1000,
        )

        if response.no_relevant_content:
            logger.info(f"No relevant content for: {question!r}")
        elif response.average_score < config.LOW_CONFIDENCE_THRESHOLD:
            logger.warning(
                f"Low confidence results (avg {response.average_score:.3f}) for: {question!r}"
            )

        return response


async def search(question: str, n: int = None, **kwargs) -> SearchResponse:
    """
    Convenience function for hybrid search.

    Args:
        question: Question text
        n: Number of results
        **kwargs: Additional arguments for HybridSearcher.search()

    Returns:
        SearchResponse
    """
    searcher = HybridSearcher()
    return await searcher.search(question, n=n, **kwargs)
