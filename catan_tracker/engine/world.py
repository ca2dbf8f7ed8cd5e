"""
One hypothesis about the hidden game state.

A World assigns a Hand to every player (ids 1..N) and carries the probability
of that assignment. The tracker's collection of Worlds is a discrete
probability distribution over the hidden state.

Worlds are frozen. Event handlers never edit a World; they derive successors
with with_hand() / with_probability(), so no Hand is ever shared mutably
between two hypotheses.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping

from .cards import supply
from .hand import Hand


@dataclass(frozen=True)
class Constraints:
    """Externally observed facts every surviving World must agree with.

    Attributes:
        known_totals: player id -> exact number of cards in that player's hand.
        bank:         card type -> cards left in the bank, or None when the bank
                      is not visible. Only the listed card types are checked.
    """
    known_totals: Mapping[int, int] = field(default_factory=dict)
    bank: Mapping[str, int] | None = None


@dataclass(frozen=True)
class World:
    """Hands for players 1..N (player p at index p-1) plus a probability.

    Equality and hashing cover the hands only, so two Worlds describing the
    same assignment compare equal whatever their weights.
    """
    hands: tuple[Hand, ...]
    probability: float = field(default=1.0, compare=False)

    @classmethod
    def initial(cls, player_count: int, extended: bool = False) -> World:
        """Return the all-empty World with probability 1.

        Examples:
            >>> w = World.initial(3)
            >>> w.player_count, w.probability
            (3, 1.0)
        """
        return cls(tuple(Hand.empty(extended) for _ in range(player_count)), 1.0)

    @property
    def player_count(self) -> int:
        return len(self.hands)

    def clone(self) -> World:
        """Return an independent copy with the same hands and probability."""
        return World(tuple(Hand(h.counts, h.extended) for h in self.hands), self.probability)

    def get_hand(self, player: int) -> Hand:
        """Return the hand of *player* (1-based).

        Raises:
            ValueError: If the player id is outside 1..player_count.
        """
        if not 1 <= player <= len(self.hands):
            raise ValueError(f"Player id must be in 1..{len(self.hands)}; got {player}")
        return self.hands[player - 1]

    def with_hand(self, player: int, hand: Hand) -> World:
        """Return a copy of this World with *player*'s hand replaced."""
        self.get_hand(player)
        hands = list(self.hands)
        hands[player - 1] = hand
        return World(tuple(hands), self.probability)

    def with_probability(self, probability: float) -> World:
        return replace(self, probability=probability)

    def card_total(self, card: str) -> int:
        """Number of *card* held across all players."""
        return sum(hand.get(card) for hand in self.hands)

    def is_valid(self, constraints: Constraints | None = None) -> bool:
        """Check hand validity and, if given, the external constraints.

        A World is valid when every hand is non-negative, every known total
        matches the player's hand total, and for every card type in the bank
        mapping: (cards held by all players) + bank[card] == supply(card).
        """
        if not all(hand.is_valid() for hand in self.hands):
            return False
        if constraints is None:
            return True

        for player, count in constraints.known_totals.items():
            if self.get_hand(player).total() != count:
                return False

        if constraints.bank is not None:
            for card, in_bank in constraints.bank.items():
                if self.card_total(card) + in_bank != supply(card):
                    return False

        return True

    def key(self) -> tuple[tuple[int, ...], ...]:
        """Canonical key: hand keys in player order 1..N."""
        return tuple(hand.key() for hand in self.hands)

    def to_dict(self) -> dict[int, dict[str, int]]:
        return {player: hand.to_dict() for player, hand in enumerate(self.hands, start=1)}

    def __str__(self) -> str:
        parts = [
            f"{player}:{','.join(str(c) for c in hand.counts)}"
            for player, hand in enumerate(self.hands, start=1)
        ]
        return f"{'|'.join(parts)} (p={self.probability:.4f})"
