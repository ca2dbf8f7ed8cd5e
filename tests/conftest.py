"""
Shared pytest fixtures and helpers for card tracker tests.

Provides convenience builders for hands and for trackers whose players
start from known holdings.
"""

from __future__ import annotations

import pytest

from catan_tracker.engine.hand import Hand
from catan_tracker.engine.tracker import CardTracker


def hand(extended: bool = False, **cards: int) -> Hand:
    """Build a Hand from keyword counts.

    Examples:
        >>> hand(wood=2, ore=1).counts
        (2, 0, 0, 0, 1)
    """
    return Hand.from_dict(cards, extended)


def tracker_with(holdings: dict[int, dict[str, int]], player_count: int = 4, **kwargs) -> CardTracker:
    """Return a tracker whose players start with *holdings* (via one production)."""
    tracker = CardTracker(player_count, **kwargs)
    if holdings:
        tracker.process_production(holdings)
    return tracker


def assert_distribution(tracker: CardTracker) -> None:
    """Probabilities sum to 1 and every hand in every World is non-negative."""
    assert tracker.world_count >= 1
    assert tracker.total_probability == pytest.approx(1.0)
    for world in tracker.worlds:
        assert all(h.is_valid() for h in world.hands), f"Negative hand in {world}"


@pytest.fixture
def tracker() -> CardTracker:
    """A fresh four-player base-game tracker."""
    return CardTracker(4)


@pytest.fixture
def h():
    """Expose the hand() helper as a fixture for convenience."""
    return hand
