"""
Tests for metadata filter extraction.
"""

import asyncio

import pytest

from conftest import FakeGenerator
from confessio.models import MetadataFilter
from confessio.search.filters import (
    MetadataFilterExtractor,
    extract_json_object,
    remove_phrase,
)


class TestFastPath:
    """Vocabulary lookup of document names."""

    def test_common_name(self, vocabulary):
        extractor = MetadataFilterExtractor(vocabulary, use_llm=False)
        filters, text = extractor.extract_fast("O que o Catecismo Maior ensina sobre a ceia?")

        assert filters == MetadataFilter(document_code="CM")
        assert text == "O que o ensina sobre a ceia?"

    def test_acronym(self, vocabulary):
        extractor = MetadataFilterExtractor(vocabulary, use_llm=False)
        filters, text = extractor.extract_fast("A CFW fala sobre a lei?")

        assert filters.document_code == "CFW"
        assert text == "A fala sobre a lei?"

    def test_no_document(self, vocabulary):
        extractor = MetadataFilterExtractor(vocabulary, use_llm=False)
        filters, text = extractor.extract_fast("O que é a graça?")

        assert filters.is_empty()
        assert text == "O que é a graça?"


class TestLLMPath:
    """Optional Gemini-based extraction."""

    def test_not_used_when_disabled(self, vocabulary):
        generator = FakeGenerator('{"livro_biblico": "Romanos"}')
        extractor = MetadataFilterExtractor(vocabulary, generator=generator, use_llm=False)

        filters, _ = asyncio.run(extractor.extract("O que Paulo diz sobre a graça?"))

        assert filters.is_empty()
        assert generator.prompts == []

    def test_not_used_when_fast_path_hits(self, vocabulary):
        generator = FakeGenerator('{"livro_biblico": "Romanos"}')
        extractor = MetadataFilterExtractor(vocabulary, generator=generator, use_llm=True)

        filters, _ = asyncio.run(extractor.extract("O que a CFW diz sobre a graça?"))

        assert filters.document_code == "CFW"
        assert generator.prompts == []

    def test_parses_json_response(self, vocabulary):
        generator = FakeGenerator(
            'Claro! {"obra_acronimo": null, "livro_biblico": "Romanos", '
            '"capitulo": "8", "secao_ou_versiculo": 28} Espero ter ajudado.'
        )
        extractor = MetadataFilterExtractor(vocabulary, generator=generator, use_llm=True)

        filters, text = asyncio.run(extractor.extract("O que diz Romanos 8:28?"))

        assert filters == MetadataFilter(biblical_book="Romanos", chapter=8, section=28)
        assert text == "O que diz Romanos 8:28?"
        assert "CFW" in generator.prompts[0]

    def test_unknown_document_code_is_dropped(self, vocabulary):
        extractor = MetadataFilterExtractor(vocabulary, use_llm=True)
        filters = extractor.parse_llm_response('{"obra_acronimo": "XYZ", "capitulo": "três"}')
        assert filters.is_empty()

    def test_known_code_is_normalized(self, vocabulary):
        extractor = MetadataFilterExtractor(vocabulary, use_llm=True)
        assert extractor.parse_llm_response('{"obra_acronimo": "cfw"}').document_code == "CFW"

    @pytest.mark.parametrize("response", [
        "sem json aqui",
        "{quebrado",
        "[1, 2, 3]",
        "",
    ])
    def test_bad_responses_give_empty_filter(self, vocabulary, response):
        extractor = MetadataFilterExtractor(vocabulary, generator=FakeGenerator(response), use_llm=True)
        filters, _ = asyncio.run(extractor.extract("O que Paulo diz sobre a graça?"))
        assert filters.is_empty()


class TestHelpers:
    def test_extract_json_object(self):
        assert extract_json_object('texto {"a": 1} fim') == {"a": 1}
        assert extract_json_object("} {") is None
        assert extract_json_object(None) is None

    def test_remove_phrase(self):
        assert remove_phrase("Segundo a CFW, o que é?", "cfw") == "Segundo a , o que é?"
        assert remove_phrase("CFW", "cfw") == "CFW"
