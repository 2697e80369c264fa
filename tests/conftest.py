"""
Pytest configuration and fixtures for Confessio tests.

External services are replaced by small in-memory fakes that record their
calls; coroutines are driven with asyncio.run().
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# Fake backends
# =============================================================================


class FakeVectorBackend:
    """Returns fixed (item_id, similarity, row) hits."""

    def __init__(self, hits=None, error=None, delay=0.0):
        self.hits = hits or []
        self.error = error
        self.delay = delay
        self.calls = []

    async def search(self, query_embedding, top_k=5, filters=None):
        self.calls.append({"embedding": query_embedding, "top_k": top_k, "filters": filters})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.hits)


class FakeLexicalBackend:
    """Returns hits keyed by query expression; unknown expressions return []."""

    def __init__(self, responses=None, error=None, delay=0.0):
        self.responses = responses or {}
        self.error = error
        self.delay = delay
        self.calls = []

    async def search(self, expression, top_k=5, filters=None):
        self.calls.append({"expression": expression, "top_k": top_k, "filters": filters})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.responses.get(expression, []))


class FakeRelationalBackend:
    """Returns rows keyed by document_name (None for the unfiltered search)."""

    def __init__(self, responses=None, error=None, delay=0.0):
        self.responses = responses or {}
        self.error = error
        self.delay = delay
        self.calls = []

    async def search(self, topics, document_name=None, top_k=5):
        self.calls.append({"topics": list(topics), "document_name": document_name, "top_k": top_k})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.responses.get(document_name, []))


class FakeEmbedder:
    def __init__(self, vector=(0.1, 0.2, 0.3), error=None):
        self.vector = list(vector) if vector is not None else None
        self.error = error
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.vector


class FakeGenerator:
    def __init__(self, answer="Resposta gerada."):
        self.answer = answer
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        return self.answer


class FakeContentStore:
    def __init__(self, row=None, error=None, note_row=None):
        self.row = row
        self.note_row = note_row
        self.error = error
        self.calls = []
        self.note_calls = []

    async def resolve_direct_reference(self, code, number, sub_number=None):
        self.calls.append((code, number, sub_number))
        if self.error:
            raise self.error
        return self.row

    async def resolve_note_reference(self, book, chapter, verse):
        self.note_calls.append((book, chapter, verse))
        if self.error:
            raise self.error
        return self.note_row


# =============================================================================
# Sample rows
# =============================================================================


def make_chunk_row(chunk_id=1, **overrides):
    row = {
        "kind": "chunk",
        "id": chunk_id,
        "content": f"Conteúdo do trecho {chunk_id} sobre a justificação.",
        "question": None,
        "chapter_title": None,
        "section_title": None,
        "subsection_title": None,
        "sub_subsection_title": None,
        "chapter_number": 11,
        "section_number": chunk_id,
        "work_title": "Confissão de Fé de Westminster",
        "work_acronym": "CFW",
        "work_type": "CONFISSAO",
        "boost_priority": 2,
    }
    row.update(overrides)
    return row


def make_note_row(note_id=1, **overrides):
    row = {
        "kind": "note",
        "id": note_id,
        "book": "Romanos",
        "start_chapter": 3,
        "start_verse": 21,
        "end_chapter": 3,
        "end_verse": 26,
        "note_content": f"Nota de estudo {note_id} sobre a justiça de Deus.",
    }
    row.update(overrides)
    return row


def vector_hit(row, similarity):
    prefix = "note" if row["kind"] == "note" else "chunk"
    return (f"{prefix}:{row['id']}", similarity, row)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def vocabulary():
    """Built-in vocabulary without any overlay."""
    from confessio.vocabulary import load_vocabulary

    return load_vocabulary()


@pytest.fixture
def chunk_row():
    return make_chunk_row


@pytest.fixture
def note_row():
    return make_note_row


@pytest.fixture
def make_item():
    """Factory for ContextItem with an explicit score."""
    from confessio.models import ContextItem

    def factory(kind="chunk", item_id=1, score=0.0, **overrides):
        if kind == "note":
            return ContextItem.from_note(make_note_row(item_id, **overrides), score)
        return ContextItem.from_chunk(make_chunk_row(item_id, **overrides), score)

    return factory


@pytest.fixture(autouse=True)
def telemetry_disabled(monkeypatch):
    """Keep tests from writing telemetry logs."""
    monkeypatch.delenv("CONFESSIO_TELEMETRY", raising=False)


# =============================================================================
# Pytest markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (require DB)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with -m 'not slow')"
    )
