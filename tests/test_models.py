"""
Tests for ContextItem construction and citation labels.
"""

import pytest

from conftest import make_chunk_row, make_note_row
from confessio.models import (
    MAX_BOOST_PRIORITY,
    ContentKind,
    ContextItem,
    MetadataFilter,
    SearchResponse,
    build_chunk_source,
    build_note_source,
    clamp_priority,
    make_item_id,
)


class TestChunkSource:
    """Tests for build_chunk_source()."""

    def test_catechism_uses_question_number(self):
        row = make_chunk_row(
            1,
            work_title="Catecismo Maior de Westminster",
            work_type="CATECISMO",
            chapter_number=None,
            section_number=98,
            chapter_title="Da Lei",
        )
        assert build_chunk_source(row) == "Catecismo Maior de Westminster - Pergunta 98"

    def test_title_path(self):
        row = make_chunk_row(
            1,
            chapter_title="Da Justificação",
            section_title="Seção I",
            subsection_title="Atos de graça",
        )
        assert build_chunk_source(row) == (
            "Confissão de Fé de Westminster - Da Justificação > Seção I > Atos de graça"
        )

    def test_chapter_and_section_numbers(self):
        row = make_chunk_row(1, chapter_number=11, section_number=1)
        assert build_chunk_source(row) == "Confissão de Fé de Westminster - Cap. 11, Seção 1"

    def test_bare_title(self):
        row = make_chunk_row(1, chapter_number=None, section_number=None)
        assert build_chunk_source(row) == "Confissão de Fé de Westminster"


class TestNoteSource:
    """Tests for build_note_source()."""

    def test_verse_range(self):
        assert build_note_source(make_note_row(1)) == "Bíblia de Genebra - Romanos 3:21-26"

    def test_single_verse(self):
        row = make_note_row(1, end_chapter=3, end_verse=21)
        assert build_note_source(row) == "Bíblia de Genebra - Romanos 3:21"

    def test_cross_chapter(self):
        row = make_note_row(1, end_chapter=4, end_verse=5)
        assert build_note_source(row) == "Bíblia de Genebra - Romanos 3:21-4:5"

    def test_missing_end(self):
        row = make_note_row(1, end_chapter=None, end_verse=None)
        assert build_note_source(row) == "Bíblia de Genebra - Romanos 3:21"


class TestContextItem:
    """Tests for ContextItem constructors."""

    def test_from_chunk(self):
        item = ContextItem.from_chunk(make_chunk_row(7, boost_priority=2, question="O que é?"), 0.5)

        assert item.item_id == "chunk:7"
        assert item.kind == ContentKind.CONFESSIONAL_CHUNK
        assert item.boost_priority == 2
        assert item.document_code == "CFW"
        assert item.question == "O que é?"
        assert item.score == 0.5

    def test_from_note_has_max_priority(self):
        item = ContextItem.from_note(make_note_row(3), 0.4)

        assert item.item_id == "note:3"
        assert item.is_note
        assert item.boost_priority == MAX_BOOST_PRIORITY
        assert item.content.startswith("Nota de estudo 3")

    def test_note_priority_cannot_drop(self):
        item = ContextItem.from_note(make_note_row(3), 0.4).with_priority(0)
        assert item.boost_priority == MAX_BOOST_PRIORITY

    def test_from_row_dispatches_on_kind(self):
        assert ContextItem.from_row(make_note_row(1), 0.1).is_note
        assert not ContextItem.from_row(make_chunk_row(1), 0.1).is_note

    def test_chunk_and_note_ids_never_collide(self):
        """A chunk and a note sharing a database id are different items."""
        chunk = ContextItem.from_chunk(make_chunk_row(1), 0.1)
        note = ContextItem.from_note(make_note_row(1), 0.1)
        assert chunk.item_id != note.item_id

    def test_out_of_range_priority_is_clamped(self):
        assert ContextItem.from_chunk(make_chunk_row(1, boost_priority=9), 0.1).boost_priority == 3
        assert ContextItem.from_chunk(make_chunk_row(1, boost_priority=None), 0.1).boost_priority == 0

    def test_with_score_is_a_copy(self):
        item = ContextItem.from_chunk(make_chunk_row(1), 0.1)
        rescored = item.with_score(0.9)
        assert item.score == 0.1
        assert rescored.score == 0.9

    def test_content_preview(self):
        item = ContextItem.from_chunk(make_chunk_row(1, content="abc" * 100), 0.1)
        assert item.content_preview(10) == "abcabcabca..."
        assert ContextItem.from_chunk(make_chunk_row(1, content="curto"), 0.1).content_preview() == "curto"


class TestHelpers:
    def test_make_item_id(self):
        assert make_item_id(ContentKind.BIBLICAL_NOTE, 5) == "note:5"
        assert make_item_id("chunk", 5) == "chunk:5"

    @pytest.mark.parametrize("value,expected", [(None, 0), (-1, 0), (2, 2), (7, 3)])
    def test_clamp_priority(self, value, expected):
        assert clamp_priority(value) == expected

    def test_metadata_filter(self):
        assert MetadataFilter().is_empty()
        assert not MetadataFilter(chapter=3).is_empty()
        assert MetadataFilter(document_code="CM").to_dict()["document_code"] == "CM"

    def test_search_response_average(self):
        items = [
            ContextItem.from_chunk(make_chunk_row(1), 0.4),
            ContextItem.from_chunk(make_chunk_row(2), 0.8),
        ]
        response = SearchResponse(question="q", results=items)
        assert response.average_score == pytest.approx(0.6)
        assert not response.no_relevant_content
        assert SearchResponse(question="q").no_relevant_content
