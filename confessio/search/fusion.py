"""
Result fusion, boosting and final selection.

    adapters -> ResultFuser -> BoostEngine -> TopKSelector

Fusion is an additive weighted union keyed by item identity: an item found
by several sources accumulates weight x raw score from each of them, so
cross-source agreement outranks a strong single-source hit. Boosting never
changes the fused score: document priority and a small content-heuristic
bonus are recorded on each item and only break ties between equal scores.
"""

import logging
import re
from typing import Iterable, Mapping, Optional

from confessio.config import config
from confessio.models import MAX_BOOST_PRIORITY, ContextItem, clamp_priority
from confessio.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

EXACT_TERM_BONUS = 0.02
THEOLOGICAL_TERM_BONUS = 0.01
SCRIPTURE_BONUS = 0.01
MAX_HEURISTIC_BONUS = 0.04

DEDUP_PREFIX_LENGTH = 50

SCRIPTURE_REFERENCE_PATTERN = re.compile(r"\b\d{1,3}:\d{1,3}\b")


# =============================================================================
# Fusion
# =============================================================================


class ResultFuser:
    """
    Weighted additive union of per-source result lists.

    Usage:
        fuser = ResultFuser()
        fused = fuser.fuse({"vector": [...], "lexical": [...]})
    """

    def __init__(self, weights: Optional[Mapping[str, float]] = None):
        self.weights = dict(weights or config.SEARCH_WEIGHTS)

    def fuse(self, source_items: Mapping[str, Iterable[ContextItem]]) -> list[ContextItem]:
        """
        Args:
            source_items: Source name -> items with raw scores. Missing
                sources contribute nothing.

        Returns:
            Items with fused scores, in first-seen order across sources
            (vector, lexical, relational)
        """
        unknown = set(source_items) - set(self.weights)
        if unknown:
            raise ValueError(f"Unknown search sources: {sorted(unknown)}")

        items: dict[str, ContextItem] = {}
        scores: dict[str, float] = {}

        for source, weight in self.weights.items():
            raw_scores: dict[str, float] = {}
            for item in source_items.get(source) or ():
                items.setdefault(item.item_id, item)
                raw_scores[item.item_id] = max(item.score, raw_scores.get(item.item_id, float("-inf")))

            for item_id, raw in raw_scores.items():
                scores[item_id] = scores.get(item_id, 0.0) + weight * raw

        fused = [item.with_score(scores[item_id]) for item_id, item in items.items()]
        logger.debug(f"Fused {len(fused)} unique items")
        return fused


# =============================================================================
# Boosting
# =============================================================================


class BoostEngine:
    """
    Document-trust and content-heuristic score adjustment.

    Study notes always carry MAX_BOOST_PRIORITY; chunks keep the priority of
    their work. The heuristic bonus is capped at 0.04. Neither touches the
    fused score; TopKSelector uses them as tie-breakers, priority first.
    """

    def __init__(self, vocabulary: Vocabulary):
        self.vocabulary = vocabulary

    def priority_for(self, item: ContextItem) -> int:
        if item.is_note:
            return MAX_BOOST_PRIORITY
        return clamp_priority(item.boost_priority)

    def heuristic_bonus(self, item: ContextItem, keywords: Iterable[str] = ()) -> float:
        content = item.content.lower()
        if not content:
            return 0.0

        bonus = 0.0
        if any(re.search(rf"(?<!\w){re.escape(k.lower())}(?!\w)", content) for k in keywords if k):
            bonus += EXACT_TERM_BONUS
        if any(term in content for term in self.vocabulary.theological_terms):
            bonus += THEOLOGICAL_TERM_BONUS
        if SCRIPTURE_REFERENCE_PATTERN.search(content) or self.vocabulary.mentions_bible_book(content):
            bonus += SCRIPTURE_BONUS

        return min(bonus, MAX_HEURISTIC_BONUS)

    def boost(self, items: list[ContextItem], keywords: Iterable[str] = ()) -> list[ContextItem]:
        keywords = list(keywords)
        boosted = []
        for item in items:
            bonus = self.heuristic_bonus(item, keywords)
            boosted.append(item.with_priority(self.priority_for(item)).with_bonus(bonus))
        return boosted


# =============================================================================
# Selection
# =============================================================================


class TopKSelector:
    """
    Sort, deduplicate and truncate. Applying it twice changes nothing.

    Order is score, then priority, then heuristic bonus, then input order.
    k never exceeds config.FINAL_RESULT_COUNT.
    """

    def __init__(self, k: int = None):
        self.k = self._clamp(config.FINAL_RESULT_COUNT if k is None else k)

    @staticmethod
    def _clamp(k: int) -> int:
        return max(0, min(k, config.FINAL_RESULT_COUNT))

    def select(self, items: list[ContextItem], k: int = None) -> list[ContextItem]:
        k = self.k if k is None else self._clamp(k)
        if k == 0:
            return []

        ordered = sorted(
            items, key=lambda item: (-item.score, -item.boost_priority, -item.bonus)
        )

        selected = []
        seen_ids = set()
        seen_keys = set()
        for item in ordered:
            content_key = (item.source, item.content[:DEDUP_PREFIX_LENGTH])
            if item.item_id in seen_ids or content_key in seen_keys:
                continue
            seen_ids.add(item.item_id)
            seen_keys.add(content_key)
            selected.append(item)
            if len(selected) >= k:
                break

        return selected
