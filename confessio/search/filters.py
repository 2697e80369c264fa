"""
Metadata filter extraction.

A question that names a catalogued work ("o que o Breve Catecismo diz
sobre a oração?") is narrowed to that work. The fast path is a vocabulary
lookup; an optional LLM path (CONFESSIO_USE_LLM_FILTERS=1) can also pick
out Bible books, chapters and sections.
"""

import json
import logging
import re
from typing import Optional

from confessio.config import config
from confessio.models import MetadataFilter
from confessio.prompts import METADATA_FILTER_PROMPT, format_prompt
from confessio.search.query_analysis import find_document_mention
from confessio.vocabulary import Vocabulary

logger = logging.getLogger(__name__)


def remove_phrase(text: str, phrase: str) -> str:
    """Drop a word-bounded phrase (any case) and tidy the whitespace."""
    pattern = re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)", re.IGNORECASE)
    cleaned = " ".join(pattern.sub(" ", text).split())
    return cleaned or text


def _to_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """Parse the text between the first '{' and the last '}'."""
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class MetadataFilterExtractor:
    """
    Usage:
        extractor = MetadataFilterExtractor(vocabulary)
        filters, search_text = await extractor.extract("O que o Catecismo Maior diz sobre a ceia?")
        # MetadataFilter(document_code="CM"), "O que o diz sobre a ceia?"
    """

    def __init__(self, vocabulary: Vocabulary, generator=None, use_llm: Optional[bool] = None):
        self.vocabulary = vocabulary
        self.generator = generator
        self.use_llm = config.USE_LLM_FILTERS if use_llm is None else use_llm

    def extract_fast(self, question: str) -> tuple[MetadataFilter, str]:
        mention = find_document_mention(question, self.vocabulary)
        if mention is None:
            return MetadataFilter(), question

        key, document = mention
        logger.debug(f"Document filter from question: {document.code} (matched '{key}')")
        return MetadataFilter(document_code=document.code), remove_phrase(question, key)

    def parse_llm_response(self, text: Optional[str]) -> MetadataFilter:
        data = extract_json_object(text)
        if data is None:
            logger.debug("Filter response had no JSON object")
            return MetadataFilter()

        code = data.get("obra_acronimo")
        if isinstance(code, str) and self.vocabulary.document(code) is not None:
            code = self.vocabulary.document(code).code
        else:
            code = None

        book = data.get("livro_biblico")
        book = book.strip() if isinstance(book, str) and book.strip() else None

        return MetadataFilter(
            document_code=code,
            biblical_book=book,
            chapter=_to_int(data.get("capitulo")),
            section=_to_int(data.get("secao_ou_versiculo")),
        )

    async def extract_with_llm(self, question: str) -> MetadataFilter:
        prompt = format_prompt(
            METADATA_FILTER_PROMPT,
            document_codes=", ".join(self.vocabulary.document_codes),
            question=question,
        )
        try:
            response = await self.generator.generate(prompt)
        except Exception as e:
            logger.warning(f"Filter extraction failed: {e}")
            return MetadataFilter()
        return self.parse_llm_response(response)

    async def extract(self, question: str) -> tuple[MetadataFilter, str]:
        """
        Returns:
            (filters, text to search with)
        """
        filters, search_text = self.extract_fast(question)
        if not filters.is_empty():
            return filters, search_text

        if self.use_llm and self.generator is not None:
            filters = await self.extract_with_llm(question)
            if not filters.is_empty():
                logger.info(f"LLM filters: {filters.to_dict()}")

        return filters, search_text
