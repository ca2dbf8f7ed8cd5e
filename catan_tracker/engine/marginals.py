"""
Queries over a World distribution: marginals, most-likely hand, confidence.

All functions are read-only views of a probability-weighted collection of
Worlds. Counts for one player are gathered into a (n_worlds, n_card_types)
integer matrix and reduced with the probability vector.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .cards import NUM_RESOURCES
from .hand import Hand
from .world import World


# ─── Result types ─────────────────────────────────────────────────────────────

@dataclass
class CardMarginal:
    """Summary of one card type for one player across all Worlds.

    Attributes:
        expected:     Probability-weighted mean count.
        min:          Smallest count seen in any surviving World.
        max:          Largest count seen in any surviving World.
        distribution: count -> total probability of Worlds with that count.
    """
    expected: float
    min: int
    max: int
    distribution: dict[int, float]


@dataclass
class TotalMarginal:
    expected: float
    min: int
    max: int


@dataclass
class HandMarginals:
    """Per-card marginals for one player plus hand-size summaries.

    base_total / extended_total are the expected resource and commodity
    subtotals; both are None in the base variant.
    """
    player: int
    cards: dict[str, CardMarginal]
    total: TotalMarginal
    base_total: float | None = None
    extended_total: float | None = None

    def __getitem__(self, card: str) -> CardMarginal:
        return self.cards[card]

    def expected_hand(self) -> dict[str, float]:
        return {card: m.expected for card, m in self.cards.items()}


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _count_matrix(worlds: Sequence[World], player: int, n_types: int) -> np.ndarray:
    """Return an int64 array of shape (n_worlds, n_types) for *player*."""
    if not worlds:
        return np.zeros((0, n_types), dtype=np.int64)
    return np.array([w.get_hand(player).counts[:n_types] for w in worlds], dtype=np.int64)


def _probabilities(worlds: Sequence[World]) -> np.ndarray:
    return np.fromiter((w.probability for w in worlds), dtype=np.float64, count=len(worlds))


def _distribution(column: np.ndarray, probs: np.ndarray) -> dict[int, float]:
    """Probability mass per observed count, keys in ascending order."""
    values, inverse = np.unique(column, return_inverse=True)
    mass = np.bincount(inverse.ravel(), weights=probs, minlength=len(values))
    return {int(v): float(m) for v, m in zip(values, mass)}


# ─── Public queries ───────────────────────────────────────────────────────────

def compute_marginals(
    worlds: Sequence[World],
    player: int,
    card_types: Sequence[str],
) -> HandMarginals:
    """Compute per-card and total marginals for *player*.

    An empty collection yields zero expectations and 0..0 ranges.
    """
    counts = _count_matrix(worlds, player, len(card_types))
    probs = _probabilities(worlds)

    cards: dict[str, CardMarginal] = {}
    for i, card in enumerate(card_types):
        column = counts[:, i]
        if column.size == 0:
            cards[card] = CardMarginal(0.0, 0, 0, {})
            continue
        cards[card] = CardMarginal(
            expected=float(probs @ column),
            min=int(column.min()),
            max=int(column.max()),
            distribution=_distribution(column, probs),
        )

    totals = counts.sum(axis=1)
    if totals.size == 0:
        total = TotalMarginal(0.0, 0, 0)
    else:
        total = TotalMarginal(float(probs @ totals), int(totals.min()), int(totals.max()))

    marginals = HandMarginals(player=player, cards=cards, total=total)
    if len(card_types) > NUM_RESOURCES:
        marginals.base_total = float(probs @ counts[:, :NUM_RESOURCES].sum(axis=1)) if totals.size else 0.0
        marginals.extended_total = float(probs @ counts[:, NUM_RESOURCES:].sum(axis=1)) if totals.size else 0.0
    return marginals


def most_likely_world(worlds: Sequence[World]) -> World:
    """Return the highest-probability World; the first one wins ties.

    Raises:
        ValueError: If *worlds* is empty.
    """
    if not worlds:
        raise ValueError("Cannot pick a most likely world from an empty collection.")
    best = worlds[0]
    for world in worlds:
        if world.probability > best.probability:
            best = world
    return best


def most_likely_hand(worlds: Sequence[World], player: int) -> Hand:
    return most_likely_world(worlds).get_hand(player)


def max_entropy(n_types: int, ceiling: int) -> float:
    """Entropy (bits) of n_types independent uniform counts over *ceiling* values.

    Examples:
        >>> round(max_entropy(5, 10), 3)
        16.61
    """
    return n_types * math.log2(ceiling)


def compute_confidence(
    worlds: Sequence[World],
    player: int,
    card_types: Sequence[str],
    ceiling: int = 10,
) -> float:
    """Return a 0..1 concentration score for *player*'s hand.

    Sums the Shannon entropy of each card type's count distribution and
    compares it with max_entropy(); 1.0 means every card count is certain.

        confidence = clamp(1 - entropy / max_entropy, 0, 1)
    """
    counts = _count_matrix(worlds, player, len(card_types))
    probs = _probabilities(worlds)

    entropy = 0.0
    for i in range(len(card_types)):
        mass = np.array(list(_distribution(counts[:, i], probs).values()), dtype=np.float64)
        mass = mass[mass > 0]
        entropy -= float(np.sum(mass * np.log2(mass)))

    limit = max_entropy(len(card_types), ceiling)
    return min(1.0, max(0.0, 1.0 - entropy / limit))
