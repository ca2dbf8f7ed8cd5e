"""
Immutable hand of cards for one player.

A Hand is a fixed-width tuple of integer counts in canonical card order
(see cards.py): 5 components in the base game, 8 in the extended variant.
Every operation returns a new Hand; the receiver is never touched.

Arithmetic is unchecked on purpose: subtract() may produce a negative
component. Validity is a separate predicate (is_valid) that the tracker
checks before it keeps a hypothesis.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .cards import CARD_INDEX, NUM_RESOURCES, card_types


@dataclass(frozen=True)
class Hand:
    """Card counts for one player.

    Frozen (hashable) so hands and the worlds built from them can be used as
    dictionary keys when merging identical hypotheses.
    """
    counts: tuple[int, ...]
    extended: bool = False

    @classmethod
    def empty(cls, extended: bool = False) -> Hand:
        """Return a hand with zero cards of every type.

        Examples:
            >>> Hand.empty().counts
            (0, 0, 0, 0, 0)
        """
        return cls((0,) * len(card_types(extended)), extended)

    @classmethod
    def from_dict(cls, cards: Mapping[str, int], extended: bool = False) -> Hand:
        """Build a hand from a {card_type: count} mapping; missing types are 0.

        Examples:
            >>> Hand.from_dict({'wood': 2, 'ore': 1}).counts
            (2, 0, 0, 0, 1)
        """
        return cls(tuple(int(cards.get(card, 0)) for card in card_types(extended)), extended)

    def get(self, card: str) -> int:
        """Return the count for *card*, or 0 if the type is not in this variant."""
        idx = CARD_INDEX.get(card)
        if idx is None or idx >= len(self.counts):
            return 0
        return self.counts[idx]

    def add(self, card: str, amount: int = 1) -> Hand:
        """Return a new hand with *amount* added to *card* (may be negative).

        Unknown card types leave the hand unchanged.

        Examples:
            >>> Hand.empty().add('brick', 3).get('brick')
            3
        """
        idx = CARD_INDEX.get(card)
        if idx is None or idx >= len(self.counts):
            return self
        counts = list(self.counts)
        counts[idx] += amount
        return Hand(tuple(counts), self.extended)

    def subtract(self, card: str, amount: int = 1) -> Hand:
        return self.add(card, -amount)

    def add_cards(self, cards: Mapping[str, int]) -> Hand:
        """Return a new hand with every amount in *cards* added."""
        hand = self
        for card, amount in cards.items():
            hand = hand.add(card, amount)
        return hand

    def subtract_cards(self, cards: Mapping[str, int]) -> Hand:
        """Return a new hand with every amount in *cards* removed (unchecked)."""
        hand = self
        for card, amount in cards.items():
            hand = hand.subtract(card, amount)
        return hand

    def can_afford(self, cards: Mapping[str, int]) -> bool:
        """Return True if the hand holds at least every amount in *cards*.

        Examples:
            >>> Hand.from_dict({'wood': 1, 'brick': 1}).can_afford({'wood': 1, 'brick': 1})
            True
            >>> Hand.from_dict({'wood': 1}).can_afford({'wood': 1, 'brick': 1})
            False
        """
        return all(self.get(card) >= amount for card, amount in cards.items())

    def total(self) -> int:
        return sum(self.counts)

    def total_base(self) -> int:
        """Sum of the five base resources."""
        return sum(self.counts[:NUM_RESOURCES])

    def total_extended(self) -> int:
        """Sum of the commodities (always 0 in the base variant)."""
        return sum(self.counts[NUM_RESOURCES:])

    def is_valid(self) -> bool:
        """Return True iff no component is negative."""
        return all(c >= 0 for c in self.counts)

    def key(self) -> tuple[int, ...]:
        """Canonical, order-stable key for hashing and merging."""
        return self.counts

    def stealable_types(self) -> list[str]:
        """Card types with a positive count, in canonical order."""
        return [card for card in card_types(self.extended) if self.get(card) > 0]

    def to_dict(self) -> dict[str, int]:
        """Structured {card_type: count} view for reporting.

        Examples:
            >>> Hand.from_dict({'sheep': 2}).to_dict()
            {'wood': 0, 'brick': 0, 'sheep': 2, 'wheat': 0, 'ore': 0}
        """
        return {card: self.counts[i] for i, card in enumerate(card_types(self.extended))}

    def __str__(self) -> str:
        held = [f"{count} {card}" for card, count in self.to_dict().items() if count]
        return ', '.join(held) if held else 'empty'
