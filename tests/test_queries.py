"""Tests for marginals, most-likely hand, confidence and the debug snapshot."""

from __future__ import annotations

import math

import pytest

from catan_tracker.engine.hand import Hand
from catan_tracker.engine.marginals import (
    compute_confidence,
    compute_marginals,
    max_entropy,
    most_likely_world,
)
from catan_tracker.engine.cards import RESOURCES
from catan_tracker.engine.tracker import CardTracker, TrackerConfig
from catan_tracker.engine.world import World
from tests.conftest import hand, tracker_with


def _binary_entropy(p: float) -> float:
    return -(p * math.log2(p) + (1 - p) * math.log2(1 - p))


@pytest.fixture
def simple_steal() -> CardTracker:
    """Player 1 stole one card from player 2, who held 2 wood and 1 brick."""
    t = tracker_with({2: {'wood': 2, 'brick': 1}})
    t.process_steal(1, 2)
    return t


# ─── Marginals ────────────────────────────────────────────────────────────────

class TestMarginals:
    def test_thief_expectation(self, simple_steal):
        m = simple_steal.marginals(1)
        assert m['wood'].expected == pytest.approx(2 / 3)
        assert m['brick'].expected == pytest.approx(1 / 3)
        assert m['ore'].expected == 0.0

    def test_victim_expectation(self, simple_steal):
        m = simple_steal.marginals(2)
        assert m['wood'].expected == pytest.approx(4 / 3)
        assert m['brick'].expected == pytest.approx(2 / 3)

    def test_range(self, simple_steal):
        m = simple_steal.marginals(1)['wood']
        assert (m.min, m.max) == (0, 1)

    def test_distribution(self, simple_steal):
        dist = simple_steal.marginals(1)['wood'].distribution
        assert dist == pytest.approx({0: 1 / 3, 1: 2 / 3})
        assert list(dist) == [0, 1]

    def test_total_is_certain(self, simple_steal):
        total = simple_steal.marginals(1).total
        assert total.expected == pytest.approx(1.0)
        assert (total.min, total.max) == (1, 1)

    def test_expected_hand(self, simple_steal):
        expected = simple_steal.marginals(1).expected_hand()
        assert list(expected) == list(RESOURCES)
        assert sum(expected.values()) == pytest.approx(1.0)

    def test_base_variant_has_no_subtotals(self, simple_steal):
        m = simple_steal.marginals(1)
        assert m.base_total is None
        assert m.extended_total is None

    def test_extended_subtotals(self):
        t = CardTracker(2, extended=True)
        t.process_production({1: {'wood': 2, 'paper': 1}})
        m = t.marginals(1)
        assert m.base_total == pytest.approx(2.0)
        assert m.extended_total == pytest.approx(1.0)

    def test_empty_collection(self):
        m = compute_marginals([], 1, RESOURCES)
        assert m['wood'].expected == 0.0
        assert m.total.expected == 0.0

    def test_bad_player(self, simple_steal):
        with pytest.raises(ValueError):
            simple_steal.marginals(5)


# ─── Most likely hand ─────────────────────────────────────────────────────────

class TestMostLikely:
    def test_picks_highest_probability(self, simple_steal):
        assert simple_steal.most_likely_hand(1) == hand(wood=1)

    def test_first_wins_ties(self):
        t = tracker_with({2: {'wood': 1, 'brick': 1}})
        t.process_steal(1, 2)
        assert t.most_likely_hand(1) == hand(wood=1)

    def test_deterministic_state(self):
        t = tracker_with({3: {'ore': 2}})
        assert t.most_likely_hand(3) == hand(ore=2)
        assert t.most_likely_hand(1) == Hand.empty()

    def test_empty_collection_raises(self):
        with pytest.raises(ValueError):
            most_likely_world([])


# ─── Confidence ───────────────────────────────────────────────────────────────

class TestConfidence:
    def test_certain_hand_is_one(self, tracker):
        tracker.process_production({1: {'wood': 3}})
        assert tracker.confidence(1) == pytest.approx(1.0)

    def test_uncertain_hand_below_one(self, simple_steal):
        h = _binary_entropy(1 / 3)
        expected = 1 - 2 * h / (5 * math.log2(10))
        assert simple_steal.confidence(1) == pytest.approx(expected)
        assert simple_steal.confidence(2) == pytest.approx(expected)

    def test_unaffected_player_is_certain(self, simple_steal):
        assert simple_steal.confidence(3) == pytest.approx(1.0)

    def test_configurable_ceiling(self):
        t = tracker_with({2: {'wood': 1, 'brick': 1}}, config=TrackerConfig(confidence_ceiling=4))
        t.process_steal(1, 2)
        assert t.confidence(1) == pytest.approx(1 - 2.0 / (5 * 2.0))

    def test_in_unit_interval(self):
        worlds = [
            World.initial(1).with_hand(1, hand(wood=i, brick=4 - i)).with_probability(0.2)
            for i in range(5)
        ]
        c = compute_confidence(worlds, 1, RESOURCES, ceiling=2)
        assert 0.0 <= c <= 1.0

    def test_max_entropy(self):
        assert max_entropy(5, 10) == pytest.approx(5 * math.log2(10))
        assert max_entropy(8, 10) == pytest.approx(8 * math.log2(10))


# ─── Debug snapshot ───────────────────────────────────────────────────────────

class TestDebugSnapshot:
    def test_summary_fields(self, simple_steal):
        simple_steal.next_turn()
        snap = simple_steal.debug_snapshot()
        assert snap.turn == 1
        assert snap.world_count == 2
        assert snap.known_totals == {}
        assert snap.bank is None
        assert snap.recoveries == 0

    def test_top_worlds_sorted(self, simple_steal):
        probs = [p for p, _ in simple_steal.debug_snapshot().top_worlds]
        assert probs == sorted(probs, reverse=True)
        assert probs == pytest.approx([2 / 3, 1 / 3])

    def test_top_worlds_content(self, simple_steal):
        _, hands = simple_steal.debug_snapshot().top_worlds[0]
        assert hands[1]['wood'] == 1
        assert hands[2] == hand(wood=1, brick=1).to_dict()

    def test_top_k(self, simple_steal):
        assert len(simple_steal.debug_snapshot(top_k=1).top_worlds) == 1

    def test_default_size_from_config(self):
        t = tracker_with({2: {'wood': 1, 'brick': 1, 'ore': 1}}, config=TrackerConfig(snapshot_size=2))
        t.process_steal(1, 2)
        assert len(t.debug_snapshot().top_worlds) == 2

    def test_snapshot_is_detached(self, simple_steal):
        simple_steal.set_known_total(1, 1)
        snap = simple_steal.debug_snapshot()
        snap.known_totals[1] = 99
        assert simple_steal.known_totals == {1: 1}

    def test_negative_top_k_rejected(self, simple_steal):
        with pytest.raises(ValueError, match="top_k"):
            simple_steal.debug_snapshot(top_k=-1)

    def test_zero_top_k(self, simple_steal):
        assert simple_steal.debug_snapshot(top_k=0).top_worlds == []
