#!/usr/bin/env python3
"""
Confessio MCP Server.

Provides tools for:
- Hybrid search over confessions, catechisms and study notes
- Grounded question answering with numbered references
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Make the confessio package importable when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from confessio.config import config

logging.basicConfig(level=config.LOG_LEVEL, stream=sys.stderr)
logger = logging.getLogger("confessio-mcp")

server = Server("confessio")


# ============================================================================
# Tool Definitions
# ============================================================================

TOOLS = [
    Tool(
        name="search_sources",
        description="""Search Reformed confessions, catechisms and Geneva Study Bible notes.

Combines semantic, full-text and topic search. Returns up to n passages
with citation labels such as "Catecismo Maior de Westminster - Pergunta 98".

Args:
    question: Question in Portuguese
    n: Number of results (default: 5, max: 20)
    document: Restrict to a document code such as CFW, CM or BC (optional)""",
        inputSchema={
            "type": "object",
            "properties": {
                "question": {"type": "string", "description": "Question in Portuguese"},
                "n": {"type": "integer", "default": 5, "minimum": 1, "maximum": 5},
                "document": {"type": "string", "description": "Document code"},
            },
            "required": ["question"],
        },
    ),
    Tool(
        name="ask_question",
        description="""Answer a theological question from the catalogued sources.

Direct citations ("CFW 21.1", "CM 98") are answered from that passage alone;
other questions go through hybrid search and grounded synthesis. The answer
is followed by numbered references.

Args:
    question: Question in Portuguese""",
        inputSchema={
            "type": "object",
            "properties": {
                "question": {"type": "string", "description": "Question in Portuguese"},
            },
            "required": ["question"],
        },
    ),
]


# ============================================================================
# Tool Handlers
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    from confessio.security import InputValidationError

    try:
        if name == "search_sources":
            return await handle_search_sources(arguments)
        elif name == "ask_question":
            return await handle_ask_question(arguments)
        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except InputValidationError as e:
        return [TextContent(type="text", text=f"Invalid input: {e}")]

    except Exception as e:
        logger.error(f"Tool {name} failed: {e}")
        return [TextContent(type="text", text=f"Error: {str(e)}")]


async def handle_search_sources(args: dict) -> list[TextContent]:
    """Handle search_sources tool."""
    from confessio.models import MetadataFilter
    from confessio.search import HybridSearcher, MetadataFilterExtractor
    from confessio.security import (
        validate_document_code,
        validate_integer_range,
        validate_search_query,
    )

    question = validate_search_query(args.get("question"))
    n = validate_integer_range(args.get("n", 5), 1, config.FINAL_RESULT_COUNT, name="n")
    document = validate_document_code(args.get("document"))

    searcher = HybridSearcher()
    if document:
        filters, search_text = MetadataFilter(document_code=document), question
    else:
        extractor = MetadataFilterExtractor(searcher.vocabulary, use_llm=False)
        filters, search_text = extractor.extract_fast(question)

    response = await searcher.search(
        search_text, n=n, filters=None if filters.is_empty() else filters
    )

    if response.no_relevant_content:
        from confessio.prompts import NO_RELEVANT_CONTENT_ANSWER

        return [TextContent(type="text", text=NO_RELEVANT_CONTENT_ANSWER)]

    output = f"Found {len(response.results)} results for: {question}\n\n"
    if response.failed_sources:
        output += f"Unavailable sources: {', '.join(response.failed_sources)}\n\n"

    for i, item in enumerate(response.results):
        output += f"## [{i+1}] {item.source}\n"
        if item.question:
            output += f"Pergunta: {item.question}\n"
        output += f"Score: {item.score:.4f}\n\n"
        output += f"{item.content_preview(500)}\n\n"
        output += "---\n\n"

    return [TextContent(type="text", text=output)]


async def handle_ask_question(args: dict) -> list[TextContent]:
    """Handle ask_question tool."""
    from confessio.answering import QuestionAnswerer

    result = await QuestionAnswerer().answer(args.get("question"))

    output = f"# {result.question}\n\n"
    if result.direct_reference:
        output += f"**Referência direta:** {result.direct_reference.label}\n\n"
    output += f"{result.answer}\n\n"

    if result.references:
        output += "## Fontes\n\n"
        for ref in result.references:
            output += f"[{ref.number}] {ref.source}\n"

    return [TextContent(type="text", text=output)]


# ============================================================================
# Main
# ============================================================================

async def main():
    """Run the MCP server."""
    from confessio.db.neo4j_async import close_async_driver
    from confessio.db.postgres_async import close_async_pool

    logger.info("Starting Confessio MCP server...")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await close_async_pool()
        await close_async_driver()


if __name__ == "__main__":
    asyncio.run(main())
