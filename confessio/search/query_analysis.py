"""
Query analysis for hybrid search.

Turns a free-form question into:
- a keyword list (KeywordExtractor)
- synonym expansions (SynonymExpander)
- one bounded OR-joined full-text query (QueryBuilder)
- inferred topics and document mentions for relational search

All lookups go through an immutable Vocabulary.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from confessio.vocabulary import DocumentInfo, Vocabulary

logger = logging.getLogger(__name__)

# Unicode-aware: \w matches accented letters
TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)

MIN_KEYWORD_LENGTH = 3
MAX_QUERY_KEYWORDS = 5
MAX_QUERY_TERMS = 8
MAIN_TERM_MIN_LENGTH = 5


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


class KeywordExtractor:
    """
    Normalize a question into lowercase, deduplicated keywords.

    Tokens of length <= 2, stopwords and purely numeric tokens are dropped.
    Known phrases ("espírito santo", "sola fide") contribute their parts.
    Extraction order is kept so callers can take "the first N" keywords.
    """

    def __init__(self, vocabulary: Vocabulary):
        self.vocabulary = vocabulary

    def is_valid(self, token: str) -> bool:
        return (
            len(token) >= MIN_KEYWORD_LENGTH
            and not token.isdigit()
            and not self.vocabulary.is_stopword(token)
        )

    def extract(self, question: Optional[str]) -> list[str]:
        if not question:
            return []

        text = question.lower()
        keywords: dict[str, None] = {}

        for token in TOKEN_PATTERN.findall(text):
            if self.is_valid(token):
                keywords.setdefault(token)

        for phrase, parts in self.vocabulary.phrases.items():
            if _contains_phrase(text, phrase):
                for part in parts:
                    if self.is_valid(part):
                        keywords.setdefault(part)

        return list(keywords)


class SynonymExpander:
    """Static synonym lookup; a miss returns an empty tuple."""

    def __init__(self, vocabulary: Vocabulary):
        self.vocabulary = vocabulary

    def expand(self, term: str) -> tuple:
        term = term.lower()
        return tuple(s for s in self.vocabulary.synonyms_for(term) if s != term)


@dataclass(frozen=True)
class LexicalQuery:
    """A bounded full-text query plus the terms it was built from."""

    keywords: tuple
    terms: tuple
    expression: str
    main_term: str

    @property
    def main_expression(self) -> str:
        return to_tsquery_term(self.main_term)


def to_tsquery_term(term: str) -> str:
    """Render one term as a to_tsquery operand; phrases become a <-> chain."""
    words = TOKEN_PATTERN.findall(term.lower())
    if not words:
        return ""
    if len(words) == 1:
        return words[0]
    return "(" + " <-> ".join(words) + ")"


def select_main_term(keywords: list[str]) -> Optional[str]:
    """Longest keyword over 4 characters, else the first keyword."""
    if not keywords:
        return None
    long_terms = [k for k in keywords if len(k) >= MAIN_TERM_MIN_LENGTH]
    if long_terms:
        return max(long_terms, key=len)
    return keywords[0]


class QueryBuilder:
    """
    Build one OR-joined lexical query from a keyword list.

    The first 5 valid keywords are kept, each is expanded with its synonyms,
    the combined list is deduplicated and capped at 8 terms. Keywords are
    placed before synonyms so the cap never drops an original keyword.
    Returns None when no keyword survives, meaning "skip lexical search".
    """

    def __init__(
        self,
        extractor: KeywordExtractor,
        expander: SynonymExpander,
        max_keywords: int = MAX_QUERY_KEYWORDS,
        max_terms: int = MAX_QUERY_TERMS,
    ):
        self.extractor = extractor
        self.expander = expander
        self.max_keywords = max_keywords
        self.max_terms = max_terms

    def build(self, keywords: list[str], question: Optional[str] = None) -> Optional[LexicalQuery]:
        """
        Args:
            keywords: Output of KeywordExtractor.extract()
            question: Original question, used only for logging

        Returns:
            LexicalQuery or None
        """
        valid = [k for k in dict.fromkeys(k.lower() for k in keywords) if self.extractor.is_valid(k)]
        selected = valid[: self.max_keywords]

        if not selected:
            logger.debug(f"No lexical query for question: {question!r}")
            return None

        terms: list[str] = list(selected)
        for keyword in selected:
            terms.extend(self.expander.expand(keyword))

        terms = list(dict.fromkeys(terms))[: self.max_terms]
        operands = [op for op in (to_tsquery_term(t) for t in terms) if op]

        query = LexicalQuery(
            keywords=tuple(valid),
            terms=tuple(terms),
            expression=" | ".join(dict.fromkeys(operands)),
            main_term=select_main_term(selected),
        )
        logger.debug(f"Lexical query: {query.expression}")
        return query


def count_occurrences(text: str, word: str) -> int:
    """Non-overlapping occurrences of word in text."""
    if not text or not word:
        return 0
    return text.count(word)


def keyword_overlap_score(content: Optional[str], keywords) -> float:
    """
    Keyword overlap in [0, 1]: fraction of keywords present in the content,
    multiplied by a density factor min(1 + 0.05 * occurrences, 2).
    """
    keywords = [k.lower() for k in keywords if k]
    if not content or not keywords:
        return 0.0

    content_lower = content.lower()
    matched = sum(1 for k in keywords if k in content_lower)
    base = matched / len(keywords)

    occurrences = sum(count_occurrences(content_lower, k) for k in keywords)
    density = min(1.0 + occurrences * 0.05, 2.0)

    return min(base * density, 1.0)


def infer_topics(question: Optional[str], vocabulary: Vocabulary) -> list[str]:
    """Topics whose trigger phrases appear in the question."""
    if not question:
        return []
    text = question.lower()
    return [
        topic
        for topic, triggers in vocabulary.topic_rules.items()
        if any(_contains_phrase(text, trigger) for trigger in triggers)
    ]


def find_document_mention(
    text: Optional[str], vocabulary: Vocabulary
) -> Optional[tuple[str, DocumentInfo]]:
    """
    Find the first catalogued document named in the text.

    Keys are tried longest first (full title, then common name, then
    acronym) and must match on word boundaries.

    Returns:
        (matched key, DocumentInfo) or None
    """
    if not text:
        return None
    lowered = text.lower()
    for key, code in vocabulary.document_lookup:
        if _contains_phrase(lowered, key):
            document = vocabulary.document(code)
            if document is not None:
                return key, document
    return None
