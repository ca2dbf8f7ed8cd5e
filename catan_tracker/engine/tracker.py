"""
Probabilistic tracker of every player's hidden hand.

The tracker keeps an ordered collection of Worlds (hypotheses about all
hands) whose probabilities sum to 1, and updates it from a strictly ordered
stream of observed events:

    deterministic events  production, build, trades, discard, monopoly,
                          year of plenty, wedding, spy with a known card.
                          Applied identically to every World; Worlds that
                          cannot explain the event are dropped.
    branching events      steal (and the double steal of Master Merchant).
                          Each World splits into one child per card type the
                          victim could have lost, followed by merge-and-prune.
    constraints           known hand totals and visible bank contents.
                          Worlds that disagree are dropped.

Recovery: if an event or constraint eliminates every World the tracker does
not raise. It falls back to a single World (the prior first World for events,
a freshly zeroed World for constraints), logs a warning, appends a RECOVERY
record to the event log and counts it in `recoveries`. After an event
fallback the stored known totals and bank are left unshifted, matching the
kept World; after a constraint fallback any stored fact the zeroed World
violates is forgotten. Either way later consistent observations apply
cleanly. The fallback discards information, so callers that need strict
soundness should watch that count.

The tracker is not thread-safe; all calls must be issued in game order by a
single caller.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, replace
from typing import Callable, Mapping

from .cards import building_cost, card_types, cards_total, supply, validate_card, validate_cards
from .events import EventKind, TrackerEvent
from .hand import Hand
from .marginals import HandMarginals, compute_confidence, compute_marginals, most_likely_hand
from .transitions import (
    collect,
    exchange,
    gift,
    merge_and_prune,
    move_card,
    pay,
    produce,
    renormalize,
    steal_branches,
    total_probability,
    trade,
)
from .world import Constraints, World

logger = logging.getLogger(__name__)

Transition = Callable[[World], "World | None"]


# ─── Configuration ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TrackerConfig:
    """Tuning knobs for the tracker.

    Attributes:
        max_worlds:         Hard cap on retained Worlds after a branching event.
        prune_threshold:    Worlds below this probability are dropped after a
                            branching event.
        confidence_ceiling: Assumed maximum count per card type when
                            normalising entropy in confidence().
        snapshot_size:      Default number of Worlds listed by debug_snapshot().
    """
    max_worlds: int = 1000
    prune_threshold: float = 0.0001
    confidence_ceiling: int = 10
    snapshot_size: int = 5

    def __post_init__(self) -> None:
        if self.max_worlds < 1:
            raise ValueError(f"max_worlds must be >= 1; got {self.max_worlds}")
        if not 0.0 <= self.prune_threshold < 1.0:
            raise ValueError(f"prune_threshold must be in [0, 1); got {self.prune_threshold}")
        if self.confidence_ceiling < 2:
            raise ValueError(f"confidence_ceiling must be >= 2; got {self.confidence_ceiling}")
        if self.snapshot_size < 0:
            raise ValueError(f"snapshot_size must be >= 0; got {self.snapshot_size}")


@dataclass
class DebugSnapshot:
    """Point-in-time summary of the tracker for logging and inspection."""
    turn: int
    world_count: int
    known_totals: dict[int, int]
    bank: dict[str, int] | None
    recoveries: int
    top_worlds: list[tuple[float, dict[int, dict[str, int]]]]


# ─── Tracker ──────────────────────────────────────────────────────────────────

class CardTracker:
    """Belief state over all players' hands, driven by observed events.

    Args:
        player_count:    Number of players; ids are 1..player_count.
        extended:        True for the Cities & Knights variant (commodities).
        config:          TrackerConfig; defaults are used when None.
        max_worlds:      Overrides config.max_worlds when given.
        prune_threshold: Overrides config.prune_threshold when given.

    Raises:
        ValueError: If player_count is not a positive integer.
    """

    def __init__(
        self,
        player_count: int,
        extended: bool = False,
        config: TrackerConfig | None = None,
        max_worlds: int | None = None,
        prune_threshold: float | None = None,
    ) -> None:
        if isinstance(player_count, bool) or not isinstance(player_count, numbers.Integral) or player_count < 1:
            raise ValueError(f"player_count must be a positive integer; got {player_count!r}")

        config = config or TrackerConfig()
        overrides = {}
        if max_worlds is not None:
            overrides['max_worlds'] = max_worlds
        if prune_threshold is not None:
            overrides['prune_threshold'] = prune_threshold
        self.config: TrackerConfig = replace(config, **overrides) if overrides else config

        self._player_count = int(player_count)
        self._extended = extended
        self._card_types = card_types(extended)

        self._worlds: list[World] = [World.initial(self._player_count, extended)]
        self._known_totals: dict[int, int] = {}
        self._bank: dict[str, int] | None = None
        self._events: list[TrackerEvent] = []
        self._turn = 0
        self.recoveries = 0

    # ── Read-only state ───────────────────────────────────────────────────────

    @property
    def player_count(self) -> int:
        return self._player_count

    @property
    def extended(self) -> bool:
        return self._extended

    @property
    def card_types(self) -> tuple[str, ...]:
        return self._card_types

    @property
    def worlds(self) -> tuple[World, ...]:
        return tuple(self._worlds)

    @property
    def world_count(self) -> int:
        return len(self._worlds)

    @property
    def total_probability(self) -> float:
        return total_probability(self._worlds)

    @property
    def turn(self) -> int:
        return self._turn

    @property
    def events(self) -> tuple[TrackerEvent, ...]:
        return tuple(self._events)

    @property
    def known_totals(self) -> dict[int, int]:
        return dict(self._known_totals)

    @property
    def bank(self) -> dict[str, int] | None:
        return dict(self._bank) if self._bank is not None else None

    def next_turn(self) -> None:
        self._turn += 1

    # ── Deterministic events ──────────────────────────────────────────────────

    def process_production(self, productions: Mapping[int, Mapping[str, int]]) -> None:
        """Dice production: {player: {card: amount}}. Applies to every World."""
        checked = {self._player(p): self._cards(cards) for p, cards in productions.items()}
        self._log(EventKind.PRODUCTION, productions=checked)

        self._worlds = renormalize([produce(w, checked) for w in self._worlds])

        for player, cards in checked.items():
            self._shift_bank(cards, -1)
            self._shift_known_total(player, cards_total(cards))

    def process_build(self, player: int, building: str) -> None:
        """A purchase. Only Worlds where *player* can pay the cost survive.

        Raises:
            ValueError: If *building* is not a known construction kind.
        """
        cost = building_cost(building)
        player = self._player(player)
        self._log(EventKind.BUILD, player=player, building=building)

        if not self._filter(EventKind.BUILD, lambda w: pay(w, player, cost)):
            return

        self._shift_bank(cost, +1)
        self._shift_known_total(player, -cards_total(cost))

    def process_bank_trade(
        self,
        player: int,
        give: Mapping[str, int],
        receive: Mapping[str, int],
    ) -> None:
        """Trade with the bank or a port."""
        player = self._player(player)
        give, receive = self._cards(give), self._cards(receive)
        self._log(EventKind.BANK_TRADE, player=player, give=give, receive=receive)

        if not self._filter(EventKind.BANK_TRADE, lambda w: exchange(w, player, give, receive)):
            return

        self._shift_bank(give, +1)
        self._shift_bank(receive, -1)
        self._shift_known_total(player, cards_total(receive) - cards_total(give))

    def process_player_trade(
        self,
        player_a: int,
        give_a: Mapping[str, int],
        player_b: int,
        give_b: Mapping[str, int],
    ) -> None:
        """*player_a* gives *give_a* to *player_b* and receives *give_b*."""
        player_a, player_b = self._player(player_a), self._player(player_b)
        if player_a == player_b:
            raise ValueError(f"A player cannot trade with themselves (player {player_a})")
        give_a, give_b = self._cards(give_a), self._cards(give_b)
        self._log(EventKind.PLAYER_TRADE, player_a=player_a, give_a=give_a, player_b=player_b, give_b=give_b)

        if not self._filter(EventKind.PLAYER_TRADE, lambda w: trade(w, player_a, give_a, player_b, give_b)):
            return

        delta = cards_total(give_b) - cards_total(give_a)
        self._shift_known_total(player_a, delta)
        self._shift_known_total(player_b, -delta)

    def process_discard(self, player: int, cards: Mapping[str, int]) -> None:
        """Discard on a rolled seven; the discarded cards are visible."""
        player = self._player(player)
        cards = self._cards(cards)
        self._log(EventKind.DISCARD, player=player, cards=cards)

        if not self._filter(EventKind.DISCARD, lambda w: pay(w, player, cards)):
            return

        self._shift_bank(cards, +1)
        self._shift_known_total(player, -cards_total(cards))

    def process_monopoly(self, collector: int, card: str, taken_from: Mapping[int, int]) -> None:
        """Monopoly: *collector* takes the stated amount of *card* from each victim."""
        collector = self._player(collector)
        card = validate_card(card, self._extended)
        amounts = {}
        for victim, amount in taken_from.items():
            victim = self._player(victim)
            if victim == collector:
                raise ValueError(f"Monopoly collector {collector} cannot also be a victim")
            amounts[victim] = self._cards({card: amount}).get(card, 0)
        self._log(EventKind.MONOPOLY, collector=collector, card=card, taken_from=amounts)

        if not self._filter(EventKind.MONOPOLY, lambda w: collect(w, collector, card, amounts)):
            return

        for victim, amount in amounts.items():
            self._shift_known_total(victim, -amount)
        self._shift_known_total(collector, sum(amounts.values()))

    def process_grant(self, player: int, cards: Mapping[str, int]) -> None:
        """Year of Plenty: *player* takes *cards* from the bank. Never filters."""
        player = self._player(player)
        cards = self._cards(cards)
        self._log(EventKind.GRANT, player=player, cards=cards)

        self._worlds = renormalize([
            w.with_hand(player, w.get_hand(player).add_cards(cards)) for w in self._worlds
        ])

        self._shift_bank(cards, -1)
        self._shift_known_total(player, cards_total(cards))

    def process_multi_gift(self, receiver: int, gifts: Mapping[int, Mapping[str, int]]) -> None:
        """Wedding: each giver hands the stated cards to *receiver*.

        A World where any single giver falls short is dropped entirely.
        """
        receiver = self._player(receiver)
        checked = {}
        for giver, cards in gifts.items():
            giver = self._player(giver)
            if giver == receiver:
                raise ValueError(f"Gift receiver {receiver} cannot also be a giver")
            checked[giver] = self._cards(cards)
        self._log(EventKind.MULTI_GIFT, receiver=receiver, gifts=checked)

        if not self._filter(EventKind.MULTI_GIFT, lambda w: gift(w, receiver, checked)):
            return

        for giver, cards in checked.items():
            self._shift_known_total(giver, -cards_total(cards))
        self._shift_known_total(receiver, sum(cards_total(c) for c in checked.values()))

    def process_known_steal(self, thief: int, victim: int, card: str) -> None:
        """A steal whose card is visible (Spy): a deterministic one-card move."""
        thief, victim = self._steal_parties(thief, victim)
        card = validate_card(card, self._extended)
        self._log(EventKind.KNOWN_STEAL, thief=thief, victim=victim, card=card)

        if not self._filter(EventKind.KNOWN_STEAL, lambda w: move_card(w, thief, victim, card)):
            return

        self._shift_known_total(victim, -1)
        self._shift_known_total(thief, +1)

    # ── Branching events ──────────────────────────────────────────────────────

    def process_steal(self, thief: int, victim: int) -> None:
        """Robber or knight steal of one unseen card."""
        thief, victim = self._steal_parties(thief, victim)
        self._log(EventKind.STEAL, thief=thief, victim=victim)
        self._steal(thief, victim)

    def process_double_steal(self, thief: int, victim: int) -> None:
        """Master Merchant: two unseen cards, stolen one after the other."""
        thief, victim = self._steal_parties(thief, victim)
        self._log(EventKind.DOUBLE_STEAL, thief=thief, victim=victim)
        self._steal(thief, victim)
        self._steal(thief, victim)

    def _steal(self, thief: int, victim: int) -> None:
        before = len(self._worlds)
        children = [child for w in self._worlds for child in steal_branches(w, thief, victim)]
        self._worlds = merge_and_prune(
            children,
            self.config.prune_threshold,
            self.config.max_worlds,
        )
        logger.debug(
            "Steal %d<-%d: %d worlds -> %d branches -> %d kept",
            thief, victim, before, len(children), len(self._worlds),
        )

        if victim in self._known_totals:
            if self._known_totals[victim] > 0:
                self._known_totals[victim] -= 1
                self._shift_known_total(thief, +1)
        elif thief in self._known_totals:
            # Whether a card moved at all is uncertain
            del self._known_totals[thief]

    # ── Constraints ───────────────────────────────────────────────────────────

    def set_known_total(self, player: int, count: int) -> None:
        """Record that *player* holds exactly *count* cards and filter Worlds."""
        self.set_known_totals({player: count})

    def set_known_totals(self, totals: Mapping[int, int]) -> None:
        """Record several exact hand totals at once, then filter Worlds once."""
        checked = {}
        for player, count in totals.items():
            player = self._player(player)
            if isinstance(count, bool) or not isinstance(count, numbers.Integral) or count < 0:
                raise ValueError(f"Known total must be a non-negative integer; got {count!r}")
            checked[player] = int(count)
        self._log(EventKind.KNOWN_TOTALS, totals=checked)

        self._known_totals.update(checked)
        self._apply_constraints(EventKind.KNOWN_TOTALS)

    def set_known_bank(self, bank: Mapping[str, int]) -> None:
        """Record the visible bank contents ({card: remaining}) and filter Worlds."""
        checked = validate_cards(bank, self._extended, keep_zero=True)
        for card, amount in checked.items():
            if amount > supply(card):
                raise ValueError(f"Bank cannot hold {amount} {card}; supply is {supply(card)}")
        self._log(EventKind.KNOWN_BANK, bank=checked)

        self._bank = dict(checked)
        self._apply_constraints(EventKind.KNOWN_BANK)

    def constraints(self) -> Constraints:
        return Constraints(dict(self._known_totals), self.bank)

    # ── Queries ───────────────────────────────────────────────────────────────

    def marginals(self, player: int) -> HandMarginals:
        return compute_marginals(self._worlds, self._player(player), self._card_types)

    def most_likely_hand(self, player: int) -> Hand:
        return most_likely_hand(self._worlds, self._player(player))

    def confidence(self, player: int) -> float:
        return compute_confidence(
            self._worlds,
            self._player(player),
            self._card_types,
            self.config.confidence_ceiling,
        )

    def debug_snapshot(self, top_k: int | None = None) -> DebugSnapshot:
        """Summarise turn, world count, constraints and the most probable Worlds.

        Raises:
            ValueError: If top_k is negative.
        """
        k = self.config.snapshot_size if top_k is None else top_k
        if k < 0:
            raise ValueError(f"top_k must be >= 0; got {k}")
        ranked = sorted(self._worlds, key=lambda w: w.probability, reverse=True)[:k]
        return DebugSnapshot(
            turn=self._turn,
            world_count=len(self._worlds),
            known_totals=dict(self._known_totals),
            bank=self.bank,
            recoveries=self.recoveries,
            top_worlds=[(w.probability, w.to_dict()) for w in ranked],
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _player(self, player: int) -> int:
        if isinstance(player, bool) or not isinstance(player, numbers.Integral):
            raise ValueError(f"Player id must be an integer; got {player!r}")
        if not 1 <= player <= self._player_count:
            raise ValueError(f"Player id must be in 1..{self._player_count}; got {player}")
        return int(player)

    def _cards(self, cards: Mapping[str, int]) -> dict[str, int]:
        return validate_cards(cards, self._extended)

    def _steal_parties(self, thief: int, victim: int) -> tuple[int, int]:
        thief, victim = self._player(thief), self._player(victim)
        if thief == victim:
            raise ValueError(f"A player cannot steal from themselves (player {thief})")
        return thief, victim

    def _log(self, kind: EventKind, **data) -> None:
        self._events.append(TrackerEvent(kind, self._turn, data))

    def _filter(self, kind: EventKind, transition: Transition) -> bool:
        """Apply *transition* to every World, dropping those that return None.

        Returns False when nothing survived and the prior first World was kept
        instead. That World never saw the event, so callers must not shift the
        stored constraints by the event's delta.
        """
        survivors = []
        for world in self._worlds:
            successor = transition(world)
            if successor is not None:
                survivors.append(successor)

        if not survivors:
            self._recover(kind, self._worlds[0].with_probability(1.0), 'prior_world')
            return False
        self._worlds = renormalize(survivors)
        return True

    def _apply_constraints(self, kind: EventKind) -> None:
        constraints = self.constraints()
        survivors = [w for w in self._worlds if w.is_valid(constraints)]

        if survivors:
            self._worlds = renormalize(survivors)
            return

        fallback = World.initial(self._player_count, self._extended)
        self._recover(kind, fallback, 'zeroed_world')
        self._drop_contradicted(fallback)

    def _drop_contradicted(self, world: World) -> None:
        """Forget stored known totals and bank entries that *world* violates."""
        stale = [p for p, count in self._known_totals.items() if world.get_hand(p).total() != count]
        for player in stale:
            del self._known_totals[player]

        dropped_cards: list[str] = []
        if self._bank is not None:
            dropped_cards = [c for c, n in self._bank.items() if world.card_total(c) + n != supply(c)]
            for card in dropped_cards:
                del self._bank[card]
            if not self._bank:
                self._bank = None

        if stale or dropped_cards:
            logger.warning(
                "Dropped constraints contradicting the fallback world: totals for players %s, bank for %s",
                stale, dropped_cards,
            )

    def _recover(self, kind: EventKind, fallback: World, strategy: str) -> None:
        logger.warning(
            "No world is consistent with %s at turn %d; falling back to %s",
            kind.name, self._turn, strategy.replace('_', ' '),
        )
        self.recoveries += 1
        self._events.append(TrackerEvent(
            EventKind.RECOVERY,
            self._turn,
            {'cause': kind.name, 'fallback': strategy, 'discarded_worlds': len(self._worlds)},
        ))
        self._worlds = [fallback]

    def _shift_bank(self, cards: Mapping[str, int], sign: int) -> None:
        if self._bank is None:
            return
        for card, amount in cards.items():
            if card in self._bank:
                self._bank[card] += sign * amount

    def _shift_known_total(self, player: int, delta: int) -> None:
        if player in self._known_totals:
            self._known_totals[player] += delta
