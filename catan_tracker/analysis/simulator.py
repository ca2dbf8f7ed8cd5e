"""
Ground-truth game simulator for validating the card tracker.

Generates random base-game event streams while keeping the true hand of
every player. Steal events are emitted without the stolen card (exactly what
an observer sees), and the public card count of every player is recorded
after each event, as it is always visible at the table.

evaluate_tracker() replays a simulated game into a CardTracker, applying the
public counts after every event, and measures how far the tracker's
expected hands are from the truth.

Key invariants checked by the test-suite:
    - with pruning disabled the true hand always lies inside the tracker's
      [min, max] range for every card type;
    - the tracker never needs a recovery on a consistent event stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from catan_tracker.engine.cards import BUILDING_COSTS, RESOURCES, TOTAL_PER_RESOURCE
from catan_tracker.engine.events import EventKind, TrackerEvent, apply_event
from catan_tracker.engine.hand import Hand
from catan_tracker.engine.tracker import CardTracker, TrackerConfig

# Constructions available in the base game
BASE_BUILDINGS: tuple[str, ...] = ('road', 'settlement', 'city', 'devCard')

# A player above this many cards discards half on a rolled seven
DISCARD_LIMIT: int = 7


# ─── Configuration / result types ─────────────────────────────────────────────

@dataclass
class EventWeights:
    """Relative frequency of each random (non-production) event."""
    production: float = 0.5
    build: float = 0.2
    trade: float = 0.15
    steal: float = 0.1
    discard: float = 0.05
    monopoly: float = 0.02
    grant: float = 0.02


@dataclass
class StealRecord:
    """Hidden truth behind one steal event."""
    turn: int
    thief: int
    victim: int
    card: str


@dataclass
class SimulatedGame:
    """A finished simulation.

    Attributes:
        player_count:  Number of players (ids 1..player_count).
        events:        Observable event stream, in order.
        card_counts:   Public {player: hand size} after each event
                       (same length as events).
        hands:         True final hand of every player.
        bank:          True final bank contents.
        steal_history: What was actually taken in each steal.
    """
    player_count: int
    events: list[TrackerEvent]
    card_counts: list[dict[int, int]]
    hands: dict[int, Hand]
    bank: dict[str, int]
    steal_history: list[StealRecord] = field(default_factory=list)


@dataclass
class PlayerAccuracy:
    actual: dict[str, int]
    expected: dict[str, float]
    errors: dict[str, float]
    within_range: bool
    confidence: float


@dataclass
class AccuracyResult:
    """Comparison of the tracker's beliefs with the simulated truth.

    Attributes:
        n_events:         Events fed to the tracker.
        n_steals:         Steal events among them.
        n_worlds:         Worlds retained at the end.
        total_error:      Sum over players and card types of |actual - expected|.
        mean_abs_error:   total_error / (players * card types).
        all_within_range: True if every true count lies in the tracked [min, max].
        recoveries:       Times the tracker had to fall back to a single World.
        players:          Per-player breakdown.
    """
    n_events: int
    n_steals: int
    n_worlds: int
    total_error: float
    mean_abs_error: float
    all_within_range: bool
    recoveries: int
    players: dict[int, PlayerAccuracy]

    def __str__(self) -> str:
        return (
            f"Events: {self.n_events} | Steals: {self.n_steals} | "
            f"Worlds: {self.n_worlds} | MAE: {self.mean_abs_error:.3f} | "
            f"In range: {'yes' if self.all_within_range else 'NO'} | "
            f"Recoveries: {self.recoveries}"
        )


@dataclass
class AccuracySummary:
    """Aggregate of evaluate_tracker() over many simulated games."""
    n_games: int
    mean_abs_error: float
    within_range_rate: float
    mean_worlds: float
    max_worlds: int
    recoveries: int
    results: list[AccuracyResult] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"Games: {self.n_games} | MAE: {self.mean_abs_error:.3f} | "
            f"In range: {self.within_range_rate * 100:.1f}% | "
            f"Worlds: mean {self.mean_worlds:.1f}, max {self.max_worlds} | "
            f"Recoveries: {self.recoveries}"
        )


# ─── Ground-truth game ────────────────────────────────────────────────────────

class GroundTruthGame:
    """Random base-game simulation that knows every player's real hand.

    Args:
        player_count: Number of players.
        seed:         Seed for the NumPy generator; None for a non-deterministic run.
        weights:      Relative event frequencies for generate_random_event().
    """

    def __init__(
        self,
        player_count: int = 4,
        seed: int | None = None,
        weights: EventWeights | None = None,
    ) -> None:
        self.player_count = player_count
        self.weights = weights or EventWeights()
        self.rng = np.random.default_rng(seed)

        self.hands: dict[int, Hand] = {p: Hand.empty() for p in self.players}
        self.bank: dict[str, int] = {r: TOTAL_PER_RESOURCE for r in RESOURCES}

        self.events: list[TrackerEvent] = []
        self.card_counts: list[dict[int, int]] = []
        self.steal_history: list[StealRecord] = []
        self.turn = 0

    @property
    def players(self) -> list[int]:
        return list(range(1, self.player_count + 1))

    def card_count(self, player: int) -> int:
        return self.hands[player].total()

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _push(self, kind: EventKind, **data) -> TrackerEvent:
        event = TrackerEvent(kind, self.turn, data)
        self.events.append(event)
        self.card_counts.append({p: self.card_count(p) for p in self.players})
        return event

    def _shuffled_players(self) -> list[int]:
        return [int(p) for p in self.rng.permutation(self.players)]

    def _choice(self, options: list[str] | tuple[str, ...]) -> str:
        return options[int(self.rng.integers(len(options)))]

    def _pick_card(self, player: int) -> str | None:
        """Draw one card type from *player*'s hand, weighted by count."""
        hand = self.hands[player]
        total = hand.total()
        if total == 0:
            return None
        counts = np.array(hand.counts, dtype=np.float64)
        return RESOURCES[int(self.rng.choice(len(RESOURCES), p=counts / total))]

    def _gain(self, player: int, cards: dict[str, int], from_bank: bool) -> None:
        self.hands[player] = self.hands[player].add_cards(cards)
        if from_bank:
            for card, amount in cards.items():
                self.bank[card] -= amount

    def _lose(self, player: int, cards: dict[str, int], to_bank: bool) -> None:
        self.hands[player] = self.hands[player].subtract_cards(cards)
        if to_bank:
            for card, amount in cards.items():
                self.bank[card] += amount

    # ── Event generators ──────────────────────────────────────────────────────

    def generate_production(self) -> TrackerEvent | None:
        """Each player has a 30% chance of 1–3 of each resource (bank permitting)."""
        productions: dict[int, dict[str, int]] = {}
        for player in self.players:
            cards: dict[str, int] = {}
            for resource in RESOURCES:
                if self.bank[resource] > 0 and self.rng.random() < 0.3:
                    amount = min(int(self.rng.integers(1, 4)), self.bank[resource])
                    cards[resource] = amount
                    self.bank[resource] -= amount
            if cards:
                self.hands[player] = self.hands[player].add_cards(cards)
                productions[player] = cards

        if not productions:
            return None
        return self._push(EventKind.PRODUCTION, productions=productions)

    def generate_build(self) -> TrackerEvent | None:
        for player in self._shuffled_players():
            options = [b for b in BASE_BUILDINGS if self.hands[player].can_afford(BUILDING_COSTS[b])]
            if not options:
                continue
            building = self._choice(options)
            self._lose(player, BUILDING_COSTS[building], to_bank=True)
            return self._push(EventKind.BUILD, player=player, building=building)
        return None

    def generate_bank_trade(self) -> TrackerEvent | None:
        """A 4:1 trade with the bank."""
        for player in self._shuffled_players():
            hand = self.hands[player]
            can_give = [r for r in RESOURCES if hand.get(r) >= 4]
            if not can_give:
                continue
            give_card = self._choice(can_give)
            can_receive = [r for r in RESOURCES if r != give_card and self.bank[r] > 0]
            if not can_receive:
                continue
            receive_card = self._choice(can_receive)

            give, receive = {give_card: 4}, {receive_card: 1}
            self._lose(player, give, to_bank=True)
            self._gain(player, receive, from_bank=True)
            return self._push(EventKind.BANK_TRADE, player=player, give=give, receive=receive)
        return None

    def generate_player_trade(self) -> TrackerEvent | None:
        """A one-for-one swap between two random players."""
        if self.player_count < 2:
            return None
        player_a, player_b = self._shuffled_players()[:2]
        can_give_a = self.hands[player_a].stealable_types()
        can_give_b = self.hands[player_b].stealable_types()
        if not can_give_a or not can_give_b:
            return None

        give_a = {self._choice(can_give_a): 1}
        give_b = {self._choice(can_give_b): 1}
        self._lose(player_a, give_a, to_bank=False)
        self._gain(player_b, give_a, from_bank=False)
        self._lose(player_b, give_b, to_bank=False)
        self._gain(player_a, give_b, from_bank=False)
        return self._push(
            EventKind.PLAYER_TRADE,
            player_a=player_a, give_a=give_a, player_b=player_b, give_b=give_b,
        )

    def generate_steal(self) -> TrackerEvent | None:
        """Steal one random card. The card is recorded in steal_history only."""
        with_cards = [p for p in self.players if self.card_count(p) > 0]
        if len(with_cards) < 2:
            return None
        thief = int(self.rng.integers(1, self.player_count + 1))
        victims = [p for p in with_cards if p != thief]
        if not victims:
            return None
        victim = victims[int(self.rng.integers(len(victims)))]
        card = self._pick_card(victim)
        if card is None:
            return None

        self._lose(victim, {card: 1}, to_bank=False)
        self._gain(thief, {card: 1}, from_bank=False)
        self.steal_history.append(StealRecord(self.turn, thief, victim, card))
        return self._push(EventKind.STEAL, thief=thief, victim=victim)

    def generate_discard(self) -> list[TrackerEvent]:
        """Seven rolled: every player above DISCARD_LIMIT discards half, at random."""
        events = []
        for player in self.players:
            total = self.card_count(player)
            if total <= DISCARD_LIMIT:
                continue
            discarded: dict[str, int] = {}
            for _ in range(total // 2):
                card = self._pick_card(player)
                discarded[card] = discarded.get(card, 0) + 1
                self._lose(player, {card: 1}, to_bank=True)
            events.append(self._push(EventKind.DISCARD, player=player, cards=discarded))
        return events

    def generate_monopoly(self) -> TrackerEvent | None:
        collector = int(self.rng.integers(1, self.player_count + 1))
        card = self._choice(RESOURCES)
        taken_from: dict[int, int] = {}
        for player in self.players:
            amount = self.hands[player].get(card)
            if player == collector or amount == 0:
                continue
            taken_from[player] = amount
            self._lose(player, {card: amount}, to_bank=False)
            self._gain(collector, {card: amount}, from_bank=False)

        if not taken_from:
            return None
        return self._push(EventKind.MONOPOLY, collector=collector, card=card, taken_from=taken_from)

    def generate_grant(self) -> TrackerEvent | None:
        """Year of Plenty: up to two cards from the bank."""
        player = int(self.rng.integers(1, self.player_count + 1))
        cards: dict[str, int] = {}
        for _ in range(2):
            available = [r for r in RESOURCES if self.bank[r] > 0]
            if not available:
                break
            card = self._choice(available)
            cards[card] = cards.get(card, 0) + 1
            self._gain(player, {card: 1}, from_bank=True)

        if not cards:
            return None
        return self._push(EventKind.GRANT, player=player, cards=cards)

    def generate_random_event(self) -> None:
        w = self.weights
        generators = [
            (w.production, self.generate_production),
            (w.build, self.generate_build),
            (w.trade, self._generate_trade),
            (w.steal, self.generate_steal),
            (w.discard, self.generate_discard),
            (w.monopoly, self.generate_monopoly),
            (w.grant, self.generate_grant),
        ]
        weights = np.array([weight for weight, _ in generators], dtype=np.float64)
        idx = int(self.rng.choice(len(generators), p=weights / weights.sum()))
        generators[idx][1]()

    def _generate_trade(self) -> TrackerEvent | None:
        if self.rng.random() < 0.5:
            return self.generate_bank_trade()
        return self.generate_player_trade()

    # ── Driver ────────────────────────────────────────────────────────────────

    def simulate(self, n_turns: int = 50) -> SimulatedGame:
        """Play *n_turns* turns: production, then 0–2 random events per turn."""
        for t in range(n_turns):
            self.turn = t
            self.generate_production()
            for _ in range(int(self.rng.integers(0, 3))):
                self.generate_random_event()

        return SimulatedGame(
            player_count=self.player_count,
            events=list(self.events),
            card_counts=list(self.card_counts),
            hands=dict(self.hands),
            bank=dict(self.bank),
            steal_history=list(self.steal_history),
        )


def simulate_game(
    player_count: int = 4,
    n_turns: int = 30,
    seed: int | None = 42,
    weights: EventWeights | None = None,
) -> SimulatedGame:
    """Convenience wrapper: build a GroundTruthGame and run it."""
    return GroundTruthGame(player_count, seed=seed, weights=weights).simulate(n_turns)


# ─── Evaluation ───────────────────────────────────────────────────────────────

def evaluate_tracker(
    game: SimulatedGame,
    config: TrackerConfig | None = None,
    track_bank: bool = False,
) -> AccuracyResult:
    """Feed *game* to a fresh tracker and compare its beliefs with the truth.

    Args:
        game:       Output of simulate_game().
        config:     Tracker configuration (defaults if None).
        track_bank: If True, start the tracker with a visible full bank so
                    bank conservation is enforced throughout.

    Returns:
        AccuracyResult for the final state of the game.
    """
    tracker = CardTracker(game.player_count, config=config)
    if track_bank:
        tracker.set_known_bank({r: TOTAL_PER_RESOURCE for r in RESOURCES})

    for event, counts in zip(game.events, game.card_counts):
        while tracker.turn < event.turn:
            tracker.next_turn()
        apply_event(tracker, event)
        tracker.set_known_totals(counts)

    players: dict[int, PlayerAccuracy] = {}
    total_error = 0.0
    all_within_range = True
    for player in range(1, game.player_count + 1):
        marginals = tracker.marginals(player)
        actual = game.hands[player].to_dict()
        errors = {r: abs(actual[r] - marginals[r].expected) for r in RESOURCES}
        within = all(marginals[r].min <= actual[r] <= marginals[r].max for r in RESOURCES)

        players[player] = PlayerAccuracy(
            actual=actual,
            expected=marginals.expected_hand(),
            errors=errors,
            within_range=within,
            confidence=tracker.confidence(player),
        )
        total_error += sum(errors.values())
        all_within_range = all_within_range and within

    return AccuracyResult(
        n_events=len(game.events),
        n_steals=len(game.steal_history),
        n_worlds=tracker.world_count,
        total_error=total_error,
        mean_abs_error=total_error / (game.player_count * len(RESOURCES)),
        all_within_range=all_within_range,
        recoveries=tracker.recoveries,
        players=players,
    )


def run_many(
    n_games: int = 20,
    player_count: int = 4,
    n_turns: int = 30,
    seed: int = 0,
    config: TrackerConfig | None = None,
) -> AccuracySummary:
    """Simulate and evaluate *n_games* games with seeds seed, seed+1, ...

    Raises:
        ValueError: If n_games < 1.
    """
    if n_games < 1:
        raise ValueError(f"n_games must be >= 1; got {n_games}")
    results = [
        evaluate_tracker(simulate_game(player_count, n_turns, seed=seed + i), config=config)
        for i in range(n_games)
    ]
    worlds = np.array([r.n_worlds for r in results], dtype=np.float64)
    return AccuracySummary(
        n_games=n_games,
        mean_abs_error=float(np.mean([r.mean_abs_error for r in results])),
        within_range_rate=sum(r.all_within_range for r in results) / n_games,
        mean_worlds=float(worlds.mean()),
        max_worlds=int(worlds.max()),
        recoveries=sum(r.recoveries for r in results),
        results=results,
    )


# ─── Entry point ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    print("Card tracker validation: 50 simulated games, 4 players, 30 turns\n")
    summary = run_many(n_games=50)
    print(summary)
    for i, result in enumerate(summary.results[:5]):
        print(f"  game {i}: {result}")
