"""
Core data types for Confessio retrieval.

A single ContextItem type covers both confessional chunks and biblical
study notes; the `kind` field tells them apart so fusion, boosting and
selection are written once.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union

# Highest document trust priority; study notes always carry it
MAX_BOOST_PRIORITY = 3

NOTE_SOURCE_TITLE = "Bíblia de Genebra"
CATECHISM_TYPE = "CATECISMO"


class ContentKind(str, Enum):
    """Kind of retrievable unit."""

    CONFESSIONAL_CHUNK = "chunk"
    BIBLICAL_NOTE = "note"


def make_item_id(kind: ContentKind, source_id: Any) -> str:
    """Identity shared by every search path that can return the same unit."""
    return f"{ContentKind(kind).value}:{source_id}"


def clamp_priority(value: Optional[int]) -> int:
    if value is None:
        return 0
    return max(0, min(int(value), MAX_BOOST_PRIORITY))


def build_chunk_source(row: dict) -> str:
    """
    Build the citation label for a chunk row.

    Catechisms cite by question number, other works by their title path
    (chapter > section > subsection), falling back to chapter/section
    numbers and finally the bare work title.
    """
    title = row.get("work_title") or row.get("work_acronym") or "Obra desconhecida"

    if row.get("work_type") == CATECHISM_TYPE:
        number = row.get("section_number")
        if number is None:
            number = row.get("chapter_number")
        if number is not None:
            return f"{title} - Pergunta {number}"

    path = [
        row.get(key)
        for key in ("chapter_title", "section_title", "subsection_title", "sub_subsection_title")
        if row.get(key)
    ]
    if path:
        return f"{title} - {' > '.join(path)}"

    if row.get("chapter_number") is not None and row.get("section_number") is not None:
        return f"{title} - Cap. {row['chapter_number']}, Seção {row['section_number']}"

    return title


def build_note_source(row: dict) -> str:
    """Citation label for a study note: 'Bíblia de Genebra - Romanos 3:21-26'."""
    start_chapter = row.get("start_chapter")
    start_verse = row.get("start_verse")
    end_chapter = row.get("end_chapter", start_chapter)
    end_verse = row.get("end_verse", start_verse)

    source = f"{NOTE_SOURCE_TITLE} - {row.get('book')} {start_chapter}:{start_verse}"

    if end_chapter is None:
        end_chapter = start_chapter
    if end_verse is None:
        end_verse = start_verse

    if (start_chapter, start_verse) != (end_chapter, end_verse):
        if start_chapter == end_chapter:
            source += f"-{end_verse}"
        else:
            source += f"-{end_chapter}:{end_verse}"

    return source


@dataclass(frozen=True)
class ContextItem:
    """A retrieved unit of context with its current score."""

    item_id: str
    source: str
    content: str
    kind: ContentKind
    score: float = 0.0
    question: Optional[str] = None
    document_code: Optional[str] = None
    document_type: Optional[str] = None
    boost_priority: int = 0
    source_id: Any = None
    # Content heuristic bonus, used only to break score ties
    bonus: float = 0.0

    def __post_init__(self):
        if self.kind == ContentKind.BIBLICAL_NOTE and self.boost_priority != MAX_BOOST_PRIORITY:
            object.__setattr__(self, "boost_priority", MAX_BOOST_PRIORITY)

    @classmethod
    def from_chunk(cls, row: dict, score: float) -> "ContextItem":
        return cls(
            item_id=make_item_id(ContentKind.CONFESSIONAL_CHUNK, row["id"]),
            source=build_chunk_source(row),
            content=row.get("content") or "",
            kind=ContentKind.CONFESSIONAL_CHUNK,
            score=float(score),
            question=row.get("question") or None,
            document_code=row.get("work_acronym"),
            document_type=row.get("work_type"),
            boost_priority=clamp_priority(row.get("boost_priority")),
            source_id=row["id"],
        )

    @classmethod
    def from_note(cls, row: dict, score: float) -> "ContextItem":
        return cls(
            item_id=make_item_id(ContentKind.BIBLICAL_NOTE, row["id"]),
            source=build_note_source(row),
            content=row.get("note_content") or "",
            kind=ContentKind.BIBLICAL_NOTE,
            score=float(score),
            document_code="BG",
            document_type="NOTA_DE_ESTUDO",
            boost_priority=MAX_BOOST_PRIORITY,
            source_id=row["id"],
        )

    @classmethod
    def from_row(cls, row: dict, score: float) -> "ContextItem":
        """Dispatch on the row's `kind` column ('chunk' or 'note')."""
        if row.get("kind") == ContentKind.BIBLICAL_NOTE.value:
            return cls.from_note(row, score)
        return cls.from_chunk(row, score)

    @property
    def is_note(self) -> bool:
        return self.kind == ContentKind.BIBLICAL_NOTE

    def with_score(self, score: float) -> "ContextItem":
        return replace(self, score=float(score))

    def with_priority(self, priority: int) -> "ContextItem":
        return replace(self, boost_priority=clamp_priority(priority))

    def with_bonus(self, bonus: float) -> "ContextItem":
        return replace(self, bonus=float(bonus))

    def content_preview(self, max_length: int = 200) -> str:
        if len(self.content) <= max_length:
            return self.content
        return self.content[:max_length] + "..."


@dataclass(frozen=True)
class MetadataFilter:
    """Optional structured narrowing of a search."""

    document_code: Optional[str] = None
    biblical_book: Optional[str] = None
    chapter: Optional[int] = None
    section: Optional[int] = None

    def is_empty(self) -> bool:
        return (
            self.document_code is None
            and self.biblical_book is None
            and self.chapter is None
            and self.section is None
        )

    def to_dict(self) -> dict:
        return {
            "document_code": self.document_code,
            "biblical_book": self.biblical_book,
            "chapter": self.chapter,
            "section": self.section,
        }


@dataclass(frozen=True)
class DirectReference:
    """A citation found in the question, e.g. CFW 21.1."""

    code: str
    number: int
    sub_number: Optional[int] = None

    @property
    def label(self) -> str:
        if self.sub_number is None:
            return f"{self.code} {self.number}"
        return f"{self.code} {self.number}.{self.sub_number}"


@dataclass(frozen=True)
class VerseReference:
    """A Bible verse cited in the question, e.g. Romanos 3:21."""

    book: str
    chapter: int
    verse: int

    @property
    def label(self) -> str:
        return f"{self.book} {self.chapter}:{self.verse}"


@dataclass
class SearchResponse:
    """Response from hybrid search."""

    question: str
    results: list[ContextItem] = field(default_factory=list)
    filters: Optional[MetadataFilter] = None
    failed_sources: list[str] = field(default_factory=list)
    search_time_ms: float = 0.0

    @property
    def no_relevant_content(self) -> bool:
        return not self.results

    @property
    def average_score(self) -> float:
        if not self.results:
            return 0.0
        return sum(item.score for item in self.results) / len(self.results)


@dataclass(frozen=True)
class SourceReference:
    """A numbered citation returned alongside an answer."""

    number: int
    source: str
    preview: str
    item_id: str
    kind: ContentKind


class AnswerOutcome(str, Enum):
    ANSWERED = "answered"
    DIRECT_REFERENCE = "direct_reference"
    NO_RELEVANT_CONTENT = "no_relevant_content"
    GENERATION_FAILED = "generation_failed"


@dataclass
class QueryResult:
    """Final answer with its references."""

    question: str
    answer: str
    outcome: AnswerOutcome
    references: list[SourceReference] = field(default_factory=list)
    context: list[ContextItem] = field(default_factory=list)
    direct_reference: Optional[Union[DirectReference, VerseReference]] = None
