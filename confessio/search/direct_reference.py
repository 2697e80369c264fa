"""
Direct citation detection.

Questions such as "Segundo a CFW 21.1, ..." or "O que diz o CM 98?" name a
catalogued document and a numeric locator. Questions such as "O que
significa Romanos 3:21?" cite a Bible verse, answered from the study note
covering it. Either can be answered from that single unit without running
hybrid search.

Document-code citations win over verse citations, and only the first
citation in a question is honoured.
"""

import logging
import re
from typing import Optional, Union

from confessio.models import DirectReference, VerseReference
from confessio.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

# Optional locator word between the code and the number
LOCATOR_PATTERN = r"(?:(?:pergunta|cap[ií]tulo|cap\.?|p\.?)\s*)?"


def build_reference_pattern(codes) -> re.Pattern:
    """
    Compile the citation pattern for the given document codes.

    Codes are tried longest first so "CFW" is never read as a shorter
    overlapping code.
    """
    ordered = sorted({c.upper() for c in codes}, key=len, reverse=True)
    if not ordered:
        raise ValueError("At least one document code is required")

    alternation = "|".join(re.escape(code) for code in ordered)
    return re.compile(
        rf"\b({alternation})\b[\s,]*{LOCATOR_PATTERN}(\d+)(?:[:.](\d+))?",
        re.IGNORECASE,
    )


def build_verse_pattern(books) -> re.Pattern:
    """
    Compile the Bible verse pattern: optional book number, book name,
    chapter, verse and an optional verse range ("1 Coríntios 13:4-7").
    """
    ordered = sorted({b.lower() for b in books}, key=len, reverse=True)
    if not ordered:
        raise ValueError("At least one Bible book is required")

    alternation = "|".join(re.escape(book) for book in ordered)
    return re.compile(
        rf"(?<!\w)(?:([1-3])\s*)?({alternation})\s+(\d{{1,3}})\s*[:.]\s*(\d{{1,3}})(?:\s*-\s*\d{{1,3}})?(?!\w)",
        re.IGNORECASE,
    )


def normalize_book_name(prefix: Optional[str], book: str) -> str:
    """'coríntios' with prefix '1' -> '1 Coríntios'."""
    name = book.lower().capitalize()
    return f"{prefix} {name}" if prefix else name


class DirectReferenceDetector:
    """
    Detect a document-code or Bible verse citation in a question.

    Usage:
        detector = DirectReferenceDetector(vocabulary)
        ref = detector.detect("Segundo a CFW 21.1, o que é a adoração?")
        # DirectReference(code="CFW", number=21, sub_number=1)
        ref = detector.detect("O que significa Romanos 3:21?")
        # VerseReference(book="Romanos", chapter=3, verse=21)
    """

    def __init__(self, vocabulary: Vocabulary):
        self.vocabulary = vocabulary
        self.pattern = build_reference_pattern(vocabulary.document_codes)
        self.verse_pattern = build_verse_pattern(vocabulary.bible_books)

    def detect(self, question: Optional[str]) -> Optional[Union[DirectReference, VerseReference]]:
        if not question:
            return None
        return self.detect_document(question) or self.detect_verse(question)

    def detect_document(self, question: str) -> Optional[DirectReference]:
        match = self.pattern.search(question)
        if match is None:
            return None

        code, number, sub_number = match.groups()
        reference = DirectReference(
            code=code.upper(),
            number=int(number),
            sub_number=int(sub_number) if sub_number is not None else None,
        )
        logger.debug(f"Direct reference detected: {reference.label}")
        return reference

    def detect_verse(self, question: str) -> Optional[VerseReference]:
        match = self.verse_pattern.search(question)
        if match is None:
            return None

        prefix, book, chapter, verse = match.groups()
        reference = VerseReference(
            book=normalize_book_name(prefix, book),
            chapter=int(chapter),
            verse=int(verse),
        )
        logger.debug(f"Verse reference detected: {reference.label}")
        return reference
