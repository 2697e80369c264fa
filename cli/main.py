#!/usr/bin/env python3
"""
Confessio CLI.

Usage:
    confessio search "O que é a justificação pela fé?"
    confessio ask "Segundo a CFW 21.1, o que é a adoração?"
    confessio detect "O que o Breve Catecismo ensina sobre a oração?"
    confessio stats
    confessio health
"""

import asyncio
import json
import logging
import sys

import click

from confessio import __version__
from confessio.config import config
from confessio.security import (
    InputValidationError,
    validate_document_code,
    validate_integer_range,
    validate_search_query,
)


async def _close_connections():
    from confessio.db.neo4j_async import close_async_driver
    from confessio.db.postgres_async import close_async_pool

    await close_async_pool()
    await close_async_driver()


def run_async(coro):
    """Run a coroutine and release async pools afterwards."""

    async def runner():
        try:
            return await coro
        finally:
            await _close_connections()

    return asyncio.run(runner())


def fail(message: str):
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(verbose: bool):
    """Confessio - Reformed theology question answering."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ============================================================================
# Search Commands
# ============================================================================

@cli.command()
@click.argument("question")
@click.option("-n", "--num-results", default=5, help="Number of results (max 5)")
@click.option("-d", "--document", help="Restrict to a document code (CFW, CM, BC...)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def search(question: str, num_results: int, document: str, output_json: bool):
    """Search confessions, catechisms and study notes."""
    from confessio.models import MetadataFilter
    from confessio.search import HybridSearcher, MetadataFilterExtractor

    try:
        question = validate_search_query(question)
        num_results = validate_integer_range(num_results, 1, config.FINAL_RESULT_COUNT, name="num_results")
        document = validate_document_code(document)
    except InputValidationError as e:
        fail(str(e))

    async def run():
        searcher = HybridSearcher()
        if document:
            filters, search_text = MetadataFilter(document_code=document), question
        else:
            extractor = MetadataFilterExtractor(searcher.vocabulary, use_llm=False)
            filters, search_text = extractor.extract_fast(question)
        return await searcher.search(
            search_text, n=num_results, filters=None if filters.is_empty() else filters
        )

    response = run_async(run())

    if output_json:
        results = [
            {
                "item_id": item.item_id,
                "source": item.source,
                "kind": item.kind.value,
                "score": round(item.score, 4),
                "priority": item.boost_priority,
                "content": item.content[:500],
            }
            for item in response.results
        ]
        click.echo(json.dumps(
            {"results": results, "failed_sources": response.failed_sources},
            indent=2,
            ensure_ascii=False,
        ))
        return

    click.echo(f"\nFound {len(response.results)} results for: {question}")
    click.echo(f"Search time: {response.search_time_ms:.1f}ms")
    if response.failed_sources:
        click.echo(click.style(f"Failed sources: {', '.join(response.failed_sources)}", fg="yellow"))
    click.echo()

    for i, item in enumerate(response.results):
        click.echo(click.style(f"[{i+1}] {item.source}", fg="green", bold=True))
        click.echo(f"    Score: {item.score:.4f}  Priority: {item.boost_priority}")
        if item.question:
            click.echo(f"    Pergunta: {item.question}")
        click.echo(f"    {item.content_preview(300)}")
        click.echo()


@cli.command()
@click.argument("question")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def ask(question: str, output_json: bool):
    """Ask a question and get a grounded answer."""
    from confessio.answering import QuestionAnswerer

    try:
        result = run_async(QuestionAnswerer().answer(question))
    except InputValidationError as e:
        fail(str(e))

    if output_json:
        click.echo(json.dumps(
            {
                "answer": result.answer,
                "outcome": result.outcome.value,
                "references": [
                    {"number": r.number, "source": r.source, "preview": r.preview}
                    for r in result.references
                ],
            },
            indent=2,
            ensure_ascii=False,
        ))
        return

    if result.direct_reference:
        click.echo(click.style(f"\nReferência direta: {result.direct_reference.label}", fg="blue"))

    click.echo(click.style("\nResposta:", fg="green", bold=True))
    click.echo(result.answer)

    if result.references:
        click.echo(click.style("\nFontes:", fg="blue"))
        for ref in result.references:
            click.echo(f"  [{ref.number}] {ref.source}")


@cli.command()
@click.argument("question")
def detect(question: str):
    """Show how a question is analysed, without touching the database."""
    from confessio.search.direct_reference import DirectReferenceDetector
    from confessio.search.filters import MetadataFilterExtractor
    from confessio.search.query_analysis import (
        KeywordExtractor,
        QueryBuilder,
        SynonymExpander,
        infer_topics,
    )
    from confessio.vocabulary import get_vocabulary

    try:
        question = validate_search_query(question)
    except InputValidationError as e:
        fail(str(e))

    vocabulary = get_vocabulary()
    extractor = KeywordExtractor(vocabulary)
    keywords = extractor.extract(question)
    query = QueryBuilder(extractor, SynonymExpander(vocabulary)).build(keywords, question)
    reference = DirectReferenceDetector(vocabulary).detect(question)
    filters, search_text = MetadataFilterExtractor(vocabulary, use_llm=False).extract_fast(question)

    click.echo(f"\nQuestion:         {question}")
    click.echo(f"Direct reference: {reference.label if reference else '-'}")
    click.echo(f"Document filter:  {filters.document_code or '-'}")
    click.echo(f"Search text:      {search_text}")
    click.echo(f"Keywords:         {', '.join(keywords) or '-'}")
    click.echo(f"Lexical query:    {query.expression if query else '-'}")
    click.echo(f"Main term:        {query.main_term if query else '-'}")
    click.echo(f"Topics:           {', '.join(infer_topics(question, vocabulary)) or '-'}")


# ============================================================================
# Database Commands
# ============================================================================

@cli.command()
@click.option("--topics", is_flag=True, help="Include topic tag counts from Neo4j")
def stats(topics: bool):
    """Show corpus statistics."""
    from confessio.db.postgres import close_pool, get_stats, get_work_counts

    try:
        counts = get_stats()
        works = get_work_counts()
    finally:
        close_pool()

    click.echo("\nConfessio Statistics")
    click.echo("=" * 40)
    click.echo(f"Works:             {counts.get('works', 0):>15,}")
    click.echo(f"Chunks:            {counts.get('chunks', 0):>15,}")
    click.echo(f"Chunks embedded:   {counts.get('chunks_with_embeddings', 0):>15,}")
    click.echo(f"Study notes:       {counts.get('study_notes', 0):>15,}")
    click.echo(f"Notes embedded:    {counts.get('notes_with_embeddings', 0):>15,}")

    if works:
        click.echo("\nChunks per work:")
        for work in works:
            click.echo(f"  {work['acronym'] or '?':<6} {work['chunks']:>8,}  {work['title']}")

    if topics:
        from confessio.db.neo4j_async import count_topic_tags

        tags = run_async(count_topic_tags())
        click.echo("\nTagged chunks per topic:")
        for tag in tags:
            click.echo(f"  {tag['chunks']:>8,}  {tag['topic']}")


@cli.command()
def health():
    """Check configuration, Postgres and Neo4j."""
    from confessio.db.postgres import check_health, close_pool

    ok = True

    problems = config.validate()
    if problems:
        ok = False
        click.echo(click.style("Configuration:", fg="yellow"))
        for problem in problems:
            click.echo(f"  - {problem}")

    try:
        pg = check_health()
    finally:
        close_pool()

    color = "green" if pg["status"] == "healthy" else "red"
    click.echo(click.style(f"Postgres: {pg['status']}", fg=color))
    if pg.get("pgvector_version"):
        click.echo(f"  pgvector {pg['pgvector_version']}")
    if pg.get("error"):
        click.echo(f"  {pg['error']}")
    ok = ok and pg["status"] == "healthy"

    async def check_neo4j():
        from confessio.db.neo4j_async import get_async_driver

        await get_async_driver()

    try:
        run_async(check_neo4j())
        click.echo(click.style("Neo4j: healthy", fg="green"))
    except Exception as e:
        ok = False
        click.echo(click.style(f"Neo4j: unhealthy ({e})", fg="red"))

    if not ok:
        sys.exit(1)


# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
