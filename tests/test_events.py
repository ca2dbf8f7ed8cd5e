"""Tests for catan_tracker/engine/events.py — event records, dispatch and replay."""

from __future__ import annotations

import pytest

from catan_tracker.engine.events import EventKind, TrackerEvent, apply_event, replay_events
from catan_tracker.engine.tracker import CardTracker, TrackerConfig
from tests.conftest import hand


def _played() -> CardTracker:
    t = CardTracker(3)
    t.process_production({1: {'wood': 2}, 2: {'brick': 1, 'ore': 2}})
    t.process_steal(1, 2)
    t.next_turn()
    t.process_known_steal(3, 1, 'wood')
    t.process_monopoly(3, 'ore', {2: 1})
    t.set_known_totals({1: 2, 2: 1, 3: 2})
    t.next_turn()
    t.process_multi_gift(1, {3: {'wood': 1}})
    t.process_double_steal(2, 1)
    return t


class TestTrackerEvent:
    def test_equality(self):
        a = TrackerEvent(EventKind.STEAL, 3, {'thief': 1, 'victim': 2})
        b = TrackerEvent(EventKind.STEAL, 3, {'thief': 1, 'victim': 2})
        assert a == b

    def test_default_data(self):
        assert TrackerEvent(EventKind.RECOVERY, 0).data == {}


class TestApplyEvent:
    def test_dispatches_to_handler(self, tracker):
        apply_event(tracker, TrackerEvent(EventKind.PRODUCTION, 0, {'productions': {1: {'wood': 1}}}))
        assert tracker.worlds[0].get_hand(1) == hand(wood=1)

    def test_recovery_is_ignored(self, tracker):
        apply_event(tracker, TrackerEvent(EventKind.RECOVERY, 0, {'cause': 'BUILD'}))
        assert tracker.events == ()

    def test_missing_field_raises(self, tracker):
        with pytest.raises(ValueError, match="Malformed STEAL"):
            apply_event(tracker, TrackerEvent(EventKind.STEAL, 0, {'thief': 1}))

    def test_extra_field_raises(self, tracker):
        with pytest.raises(ValueError, match="Malformed BUILD"):
            apply_event(tracker, TrackerEvent(EventKind.BUILD, 0, {'player': 1, 'building': 'road', 'free': True}))

    def test_handler_errors_propagate(self, tracker):
        with pytest.raises(ValueError, match="Unknown building type"):
            apply_event(tracker, TrackerEvent(EventKind.BUILD, 0, {'player': 1, 'building': 'castle'}))

    @pytest.mark.parametrize('kind', [k for k in EventKind if k is not EventKind.RECOVERY])
    def test_every_kind_is_dispatchable(self, tracker, kind):
        with pytest.raises(ValueError, match="Malformed"):
            apply_event(tracker, TrackerEvent(kind, 0, {'bogus': 1}))


class TestReplay:
    def test_reproduces_worlds(self):
        played = _played()
        replayed = replay_events(played.events, 3)
        assert [w.key() for w in replayed.worlds] == [w.key() for w in played.worlds]
        assert [w.probability for w in replayed.worlds] == pytest.approx(
            [w.probability for w in played.worlds]
        )

    def test_reproduces_log(self):
        played = _played()
        replayed = replay_events(played.events, 3)
        assert replayed.events == played.events
        assert replayed.turn == played.turn
        assert replayed.known_totals == played.known_totals

    def test_recovery_records_are_regenerated(self):
        t = CardTracker(2)
        t.process_build(1, 'road')
        replayed = replay_events(t.events, 2)
        assert replayed.recoveries == 1
        assert replayed.events == t.events

    def test_corrected_log(self):
        t = CardTracker(2)
        t.process_production({1: {'wood': 1}})
        t.process_build(1, 'road')
        assert t.recoveries == 1

        corrected = [
            TrackerEvent(EventKind.PRODUCTION, 0, {'productions': {1: {'wood': 1, 'brick': 1}}}),
            t.events[1],
        ]
        fixed = replay_events(corrected, 2)
        assert fixed.recoveries == 0
        assert fixed.worlds[0].get_hand(1) == hand()

    def test_config_passed_through(self):
        replayed = replay_events([], 2, config=TrackerConfig(max_worlds=3))
        assert replayed.config.max_worlds == 3

    def test_extended(self):
        events = [TrackerEvent(EventKind.GRANT, 0, {'player': 1, 'cards': {'coin': 1}})]
        replayed = replay_events(events, 2, extended=True)
        assert replayed.worlds[0].get_hand(1).get('coin') == 1
