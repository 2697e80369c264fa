"""
Tests for result fusion, boosting and top-K selection.
"""

import pytest

from confessio.models import MAX_BOOST_PRIORITY, ContentKind, ContextItem
from confessio.search.fusion import (
    MAX_HEURISTIC_BONUS,
    BoostEngine,
    ResultFuser,
    TopKSelector,
)


def plain_item(item_id, score, priority=0, source=None, content=None, kind=ContentKind.CONFESSIONAL_CHUNK):
    """Item with content that triggers no boost heuristic."""
    return ContextItem(
        item_id=item_id,
        source=source or f"Obra - {item_id}",
        content=content or f"texto neutro {item_id}",
        kind=kind,
        score=score,
        boost_priority=priority,
    )


class TestResultFuser:
    """Tests for ResultFuser.fuse()."""

    def test_agreement_beats_single_source(self):
        """vector 0.9 + lexical 0.8 = 0.73 outranks vector-only 1.0 = 0.5."""
        fused = ResultFuser().fuse({
            "vector": [plain_item("chunk:1", 0.9), plain_item("chunk:2", 1.0)],
            "lexical": [plain_item("chunk:1", 0.8)],
        })
        scores = {item.item_id: item.score for item in fused}
        assert scores["chunk:1"] == pytest.approx(0.73)
        assert scores["chunk:2"] == pytest.approx(0.5)

    def test_three_sources(self):
        """Each source adds weight x raw."""
        fused = ResultFuser().fuse({
            "vector": [plain_item("chunk:1", 0.8)],
            "lexical": [plain_item("chunk:1", 0.6)],
            "relational": [plain_item("chunk:1", 1.0)],
        })
        assert fused[0].score == pytest.approx(0.5 * 0.8 + 0.35 * 0.6 + 0.15 * 1.0)

    def test_relational_only(self):
        fused = ResultFuser().fuse({"relational": [plain_item("chunk:7", 1.0)]})
        assert fused[0].score == pytest.approx(0.15)

    def test_duplicates_within_source_keep_max(self):
        """Repeated identities inside one list count once, at their maximum."""
        fused = ResultFuser().fuse({
            "vector": [plain_item("chunk:1", 0.4), plain_item("chunk:1", 0.9)],
        })
        assert len(fused) == 1
        assert fused[0].score == pytest.approx(0.45)

    def test_independent_of_call_order(self):
        """Dict order of the sources does not change scores or order."""
        vector = [plain_item("chunk:1", 0.7), plain_item("note:2", 0.6, kind=ContentKind.BIBLICAL_NOTE)]
        lexical = [plain_item("note:2", 0.9), plain_item("chunk:3", 0.5)]

        a = ResultFuser().fuse({"vector": vector, "lexical": lexical})
        b = ResultFuser().fuse({"lexical": lexical, "vector": vector})

        assert [(i.item_id, round(i.score, 9)) for i in a] == [(i.item_id, round(i.score, 9)) for i in b]

    def test_first_seen_order(self):
        """Output keeps first-seen order across vector, lexical, relational."""
        fused = ResultFuser().fuse({
            "relational": [plain_item("chunk:9", 1.0)],
            "lexical": [plain_item("chunk:5", 0.5)],
            "vector": [plain_item("chunk:1", 0.5)],
        })
        assert [i.item_id for i in fused] == ["chunk:1", "chunk:5", "chunk:9"]

    def test_empty_and_missing_sources(self):
        assert ResultFuser().fuse({}) == []
        assert ResultFuser().fuse({"vector": [], "lexical": None}) == []

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            ResultFuser().fuse({"graph": [plain_item("chunk:1", 1.0)]})

    def test_priority_survives_fusion(self, make_item):
        """Chunks keep their configured priority through fusion."""
        item = make_item("chunk", 1, score=0.5, boost_priority=1)
        fused = ResultFuser().fuse({"vector": [item]})
        assert fused[0].boost_priority == 1


class TestBoostEngine:
    """Tests for BoostEngine.boost()."""

    def test_notes_get_max_priority(self, vocabulary, make_item):
        """Every study note ends with the maximum priority."""
        note = make_item("note", 1, score=0.5)
        boosted = BoostEngine(vocabulary).boost([note])[0]
        assert boosted.boost_priority == MAX_BOOST_PRIORITY

    def test_note_priority_cannot_be_lowered(self):
        """Constructing a note with a lower priority still yields the maximum."""
        note = ContextItem(
            item_id="note:1", source="x", content="y",
            kind=ContentKind.BIBLICAL_NOTE, boost_priority=0,
        )
        assert note.boost_priority == MAX_BOOST_PRIORITY

    def test_score_is_unchanged(self, vocabulary):
        """Boosting records priority and bonus but keeps the fused score."""
        item = plain_item(
            "chunk:1", 0.5, priority=2,
            content="A justificação pela graça é ensinada em Romanos 3:24.",
        )
        boosted = BoostEngine(vocabulary).boost([item], ["justificação"])[0]
        assert boosted.score == 0.5
        assert boosted.boost_priority == 2
        assert boosted.bonus == pytest.approx(0.04)

    def test_heuristic_bonus_is_capped(self, vocabulary):
        """Exact term, theology and scripture together stay within 0.04."""
        item = plain_item(
            "chunk:1", 0.0,
            content="A justificação pela graça é ensinada em Romanos 3:24.",
        )
        engine = BoostEngine(vocabulary)
        bonus = engine.heuristic_bonus(item, ["justificação"])
        assert bonus == pytest.approx(0.04)
        assert bonus <= MAX_HEURISTIC_BONUS

    def test_neutral_content_has_no_bonus(self, vocabulary):
        boosted = BoostEngine(vocabulary).boost([plain_item("chunk:1", 0.5)], ["graça"])[0]
        assert boosted.bonus == 0.0

    def test_boost_never_inverts_agreement(self, vocabulary):
        """A fully boosted single-source hit stays below an unboosted agreement hit."""
        agreed = plain_item("chunk:1", 0.73, priority=0)
        single = plain_item(
            "chunk:2", 0.5, priority=3,
            content="A justificação pela graça é ensinada em Romanos 3:24.",
        )
        boosted = BoostEngine(vocabulary).boost([agreed, single], ["justificação"])
        selected = TopKSelector().select(boosted)
        assert selected[0].item_id == "chunk:1"

    def test_boost_never_inverts_a_narrow_agreement_gap(self, vocabulary):
        """
        vector 0.5 + relational 1.0 fuses to 0.40; a study note found only by
        vector at 0.79 fuses to 0.395. The note keeps second place despite
        maximum priority and every content heuristic.
        """
        agreed = plain_item("chunk:1", 0.5)
        note = plain_item(
            "note:2", 0.79, kind=ContentKind.BIBLICAL_NOTE,
            content="A justificação pela graça é ensinada em Romanos 3:24.",
        )
        fused = ResultFuser().fuse({
            "vector": [agreed, note],
            "relational": [plain_item("chunk:1", 1.0)],
        })
        boosted = BoostEngine(vocabulary).boost(fused, ["justificação"])
        selected = TopKSelector().select(boosted)

        assert [i.item_id for i in selected] == ["chunk:1", "note:2"]
        assert selected[0].score == pytest.approx(0.40)
        assert selected[1].score == pytest.approx(0.395)

    def test_bonus_breaks_ties_after_priority(self, vocabulary):
        """Among equal scores and priorities the heuristic bonus decides."""
        plain = plain_item("chunk:1", 0.4, priority=1)
        matching = plain_item("chunk:2", 0.4, priority=1, content="Sobre a graça de Deus.")
        higher = plain_item("chunk:3", 0.4, priority=2)
        boosted = BoostEngine(vocabulary).boost([plain, matching, higher], ["graça"])
        selected = TopKSelector().select(boosted)
        assert [i.item_id for i in selected] == ["chunk:3", "chunk:2", "chunk:1"]

    def test_priority_is_monotone(self, vocabulary):
        """For equal scores a higher priority never ends lower."""
        items = [plain_item(f"chunk:{p}", 0.4, priority=p) for p in range(4)]
        boosted = BoostEngine(vocabulary).boost(items)
        selected = TopKSelector().select(boosted)
        assert [i.boost_priority for i in selected] == [3, 2, 1, 0]


class TestTopKSelector:
    """Tests for TopKSelector.select()."""

    def test_truncates_to_five_sorted(self):
        """At most 5 items, sorted by non-increasing score."""
        items = [plain_item(f"chunk:{i}", i / 10) for i in range(10)]
        selected = TopKSelector().select(items)
        assert len(selected) == 5
        scores = [i.score for i in selected]
        assert scores == sorted(scores, reverse=True)
        assert selected[0].item_id == "chunk:9"

    def test_ties_by_priority_then_input_order(self):
        items = [
            plain_item("chunk:1", 0.5, priority=1),
            plain_item("chunk:2", 0.5, priority=2),
            plain_item("chunk:3", 0.5, priority=1),
        ]
        selected = TopKSelector().select(items)
        assert [i.item_id for i in selected] == ["chunk:2", "chunk:1", "chunk:3"]

    def test_dedupes_identity(self):
        items = [plain_item("chunk:1", 0.9), plain_item("chunk:1", 0.3)]
        selected = TopKSelector().select(items)
        assert len(selected) == 1
        assert selected[0].score == 0.9

    def test_dedupes_source_and_content_prefix(self):
        """Same source label and same first 50 characters count as duplicates."""
        prefix = "x" * 50
        items = [
            plain_item("chunk:1", 0.9, source="CFW - Cap. 1", content=prefix + " fim A"),
            plain_item("chunk:2", 0.8, source="CFW - Cap. 1", content=prefix + " fim B"),
            plain_item("chunk:3", 0.7, source="CFW - Cap. 2", content=prefix + " fim C"),
        ]
        selected = TopKSelector().select(items)
        assert [i.item_id for i in selected] == ["chunk:1", "chunk:3"]

    def test_idempotent(self):
        """Selecting twice gives the same result."""
        items = [plain_item(f"chunk:{i % 7}", (i * 37 % 11) / 10, priority=i % 4) for i in range(20)]
        selector = TopKSelector()
        once = selector.select(items)
        assert selector.select(once) == once

    def test_custom_k(self):
        items = [plain_item(f"chunk:{i}", i / 10) for i in range(10)]
        assert len(TopKSelector().select(items, k=3)) == 3

    def test_k_never_exceeds_five(self):
        items = [plain_item(f"chunk:{i}", i / 100) for i in range(15)]
        assert len(TopKSelector().select(items, k=20)) == 5
        assert len(TopKSelector(k=20).select(items)) == 5

    def test_zero_k(self):
        """An explicit k=0 selects nothing rather than the default."""
        items = [plain_item("chunk:1", 0.5)]
        assert TopKSelector().select(items, k=0) == []
        assert TopKSelector(k=0).select(items) == []

    def test_empty(self):
        assert TopKSelector().select([]) == []
