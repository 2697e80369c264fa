"""
Question answering for Confessio.

Ties the pipeline together:
1. Validate the question
2. Direct citation shortcut ("CFW 21.1", "CM 98", "Romanos 3:21")
3. Metadata filter + hybrid search
4. Grounded synthesis with Gemini, returned with numbered references
"""

import logging
from typing import Optional, Union

from confessio.config import config
from confessio.models import (
    AnswerOutcome,
    ContextItem,
    DirectReference,
    QueryResult,
    SourceReference,
    VerseReference,
)
from confessio.prompts import (
    DIRECT_REFERENCE_PROMPT,
    GENERATION_FALLBACK_ANSWER,
    NO_RELEVANT_CONTENT_ANSWER,
    NOTE_REFERENCE_PROMPT,
    SYNTHESIS_PROMPT,
    format_prompt,
)
from confessio.search.backends import PostgresContentStore
from confessio.search.direct_reference import DirectReferenceDetector
from confessio.search.filters import MetadataFilterExtractor
from confessio.search.hybrid_search import HybridSearcher
from confessio.security import validate_search_query
from confessio.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)

CONTEXT_CONTENT_LIMIT = 450
REFERENCE_PREVIEW_LENGTH = 200


class GeminiAnswerer:
    """
    Text generation with Gemini. Never raises: any failure, including a
    missing API key or an empty response, yields GENERATION_FALLBACK_ANSWER.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.3,
        max_output_tokens: int = 2048,
    ):
        self.model = model or config.GEMINI_MODEL
        self.api_key = api_key or config.GEMINI_API_KEY
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = None

    @property
    def client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            if not self.api_key:
                logger.warning("GEMINI_API_KEY not set, generation disabled")
                return None

            from google import genai

            self._client = genai.Client(api_key=self.api_key)

        return self._client

    async def generate(self, prompt: str) -> str:
        client = self.client
        if client is None:
            return GENERATION_FALLBACK_ANSWER

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_output_tokens,
                },
            )
            text = response.text
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            return GENERATION_FALLBACK_ANSWER

        if not text or not text.strip():
            logger.error("Generation returned an empty response")
            return GENERATION_FALLBACK_ANSWER

        return text.strip()


def build_context(items: list[ContextItem]) -> str:
    """One block per distinct source label, content limited to 450 characters."""
    blocks = []
    seen_sources = set()

    for item in items:
        if item.source in seen_sources:
            continue
        seen_sources.add(item.source)

        block = "--- Trecho de Fonte ---\n"
        if item.question:
            block += f"Tópico: {item.question}\n"
        block += f"Conteúdo: {item.content_preview(CONTEXT_CONTENT_LIMIT)}\n"
        blocks.append(block)

    return "\n".join(blocks)


def build_references(items: list[ContextItem]) -> list[SourceReference]:
    """References numbered from 1, one per distinct source label."""
    references = []
    seen_sources = set()

    for item in items:
        if item.source in seen_sources:
            continue
        seen_sources.add(item.source)
        references.append(
            SourceReference(
                number=len(references) + 1,
                source=item.source,
                preview=item.content_preview(REFERENCE_PREVIEW_LENGTH),
                item_id=item.item_id,
                kind=item.kind,
            )
        )

    return references


class QuestionAnswerer:
    """
    End-to-end answering.

    Usage:
        answerer = QuestionAnswerer()
        result = await answerer.answer("O que é a justificação pela fé?")
        print(result.answer)
        for ref in result.references:
            print(f"[{ref.number}] {ref.source}")
    """

    def __init__(
        self,
        searcher: Optional[HybridSearcher] = None,
        generator=None,
        content_store=None,
        vocabulary: Optional[Vocabulary] = None,
        filter_extractor: Optional[MetadataFilterExtractor] = None,
    ):
        self.vocabulary = vocabulary or get_vocabulary()
        self.searcher = searcher or HybridSearcher(vocabulary=self.vocabulary)
        self.generator = generator or GeminiAnswerer()
        self.content_store = content_store or PostgresContentStore()
        self.detector = DirectReferenceDetector(self.vocabulary)
        self.filter_extractor = filter_extractor or MetadataFilterExtractor(
            self.vocabulary, generator=self.generator
        )

    async def resolve_reference(
        self, reference: Union[DirectReference, VerseReference]
    ) -> Optional[ContextItem]:
        try:
            if isinstance(reference, VerseReference):
                row = await self.content_store.resolve_note_reference(
                    reference.book, reference.chapter, reference.verse
                )
            else:
                row = await self.content_store.resolve_direct_reference(
                    reference.code, reference.number, reference.sub_number
                )
        except Exception as e:
            logger.warning(f"Direct reference lookup failed for {reference.label}: {e}")
            return None

        if row is None:
            logger.info(f"Direct reference {reference.label} not found, using hybrid search")
            return None

        if isinstance(reference, VerseReference):
            return ContextItem.from_note(row, 1.0)
        return ContextItem.from_chunk(row, 1.0)

    def direct_prompt(
        self, question: str, reference: Union[DirectReference, VerseReference], item: ContextItem
    ) -> str:
        if isinstance(reference, VerseReference):
            return format_prompt(
                NOTE_REFERENCE_PROMPT,
                document=item.source,
                reference=reference.label,
                content=item.content,
                question=question,
            )

        document = self.vocabulary.document(reference.code)
        return format_prompt(
            DIRECT_REFERENCE_PROMPT,
            document=document.title if document else reference.code,
            reference=reference.label,
            content=item.content,
            question=question,
        )

    async def answer_direct(
        self,
        question: str,
        reference: Union[DirectReference, VerseReference],
        item: ContextItem,
    ) -> QueryResult:
        prompt = self.direct_prompt(question, reference, item)
        answer = await self.generator.generate(prompt)

        outcome = AnswerOutcome.DIRECT_REFERENCE
        if answer == GENERATION_FALLBACK_ANSWER:
            outcome = AnswerOutcome.GENERATION_FAILED

        return QueryResult(
            question=question,
            answer=answer,
            outcome=outcome,
            references=build_references([item]),
            context=[item],
            direct_reference=reference,
        )

    async def answer(self, question: str) -> QueryResult:
        """
        Answer a question.

        Raises:
            InputValidationError: If the question is not a non-empty string
                within the length limit. No other error escapes.
        """
        question = validate_search_query(question)

        reference = self.detector.detect(question)
        if reference is not None:
            item = await self.resolve_reference(reference)
            if item is not None:
                logger.info(f"Answering from direct reference {reference.label}")
                return await self.answer_direct(question, reference, item)

        filters, search_text = await self.filter_extractor.extract(question)
        response = await self.searcher.search(
            search_text, filters=None if filters.is_empty() else filters
        )

        if response.no_relevant_content:
            return QueryResult(
                question=question,
                answer=NO_RELEVANT_CONTENT_ANSWER,
                outcome=AnswerOutcome.NO_RELEVANT_CONTENT,
            )

        items = response.results
        prompt = format_prompt(SYNTHESIS_PROMPT, context=build_context(items), question=question)
        answer = await self.generator.generate(prompt)

        outcome = AnswerOutcome.ANSWERED
        if answer == GENERATION_FALLBACK_ANSWER:
            outcome = AnswerOutcome.GENERATION_FAILED

        return QueryResult(
            question=question,
            answer=answer,
            outcome=outcome,
            references=build_references(items),
            context=items,
        )
