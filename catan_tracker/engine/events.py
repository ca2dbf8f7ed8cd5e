"""
Event log records and replay.

Every tracker handler appends one TrackerEvent before it touches the World
collection. Events cannot be undone, so the only way to recover from a
mis-recorded event is to correct the log and replay it into a fresh tracker
with replay_events().

RECOVERY records mark the points where the tracker had to discard its whole
belief state. They describe what the tracker did, not what happened in the
game, so replay skips them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Iterable, Mapping

if TYPE_CHECKING:
    from .tracker import CardTracker, TrackerConfig


class EventKind(Enum):
    PRODUCTION = auto()
    BUILD = auto()
    BANK_TRADE = auto()
    PLAYER_TRADE = auto()
    STEAL = auto()
    DOUBLE_STEAL = auto()   # Master Merchant: two unseen cards
    KNOWN_STEAL = auto()    # Spy: the stolen card is visible
    DISCARD = auto()
    MONOPOLY = auto()
    GRANT = auto()          # Year of Plenty
    MULTI_GIFT = auto()     # Wedding
    KNOWN_TOTALS = auto()
    KNOWN_BANK = auto()
    RECOVERY = auto()


@dataclass(frozen=True)
class TrackerEvent:
    """One entry of the append-only event log.

    Attributes:
        kind: What happened.
        turn: Tracker turn counter when the event was applied.
        data: Handler keyword arguments (see _DISPATCH) or, for RECOVERY,
              a description of the fallback taken.
    """
    kind: EventKind
    turn: int
    data: Mapping[str, Any] = field(default_factory=dict)


# kind -> (tracker method, keyword fields)
_DISPATCH: dict[EventKind, tuple[str, tuple[str, ...]]] = {
    EventKind.PRODUCTION: ('process_production', ('productions',)),
    EventKind.BUILD: ('process_build', ('player', 'building')),
    EventKind.BANK_TRADE: ('process_bank_trade', ('player', 'give', 'receive')),
    EventKind.PLAYER_TRADE: ('process_player_trade', ('player_a', 'give_a', 'player_b', 'give_b')),
    EventKind.STEAL: ('process_steal', ('thief', 'victim')),
    EventKind.DOUBLE_STEAL: ('process_double_steal', ('thief', 'victim')),
    EventKind.KNOWN_STEAL: ('process_known_steal', ('thief', 'victim', 'card')),
    EventKind.DISCARD: ('process_discard', ('player', 'cards')),
    EventKind.MONOPOLY: ('process_monopoly', ('collector', 'card', 'taken_from')),
    EventKind.GRANT: ('process_grant', ('player', 'cards')),
    EventKind.MULTI_GIFT: ('process_multi_gift', ('receiver', 'gifts')),
    EventKind.KNOWN_TOTALS: ('set_known_totals', ('totals',)),
    EventKind.KNOWN_BANK: ('set_known_bank', ('bank',)),
}


def apply_event(tracker: CardTracker, event: TrackerEvent) -> None:
    """Feed one logged event to *tracker*. RECOVERY records are ignored.

    Raises:
        ValueError: If the record's fields do not match its kind.
    """
    if event.kind is EventKind.RECOVERY:
        return
    method, fields = _DISPATCH[event.kind]
    if set(event.data) != set(fields):
        raise ValueError(
            f"Malformed {event.kind.name} event: expected fields {sorted(fields)}, "
            f"got {sorted(event.data)}"
        )
    getattr(tracker, method)(**{name: event.data[name] for name in fields})


def replay_events(
    events: Iterable[TrackerEvent],
    player_count: int,
    extended: bool = False,
    config: TrackerConfig | None = None,
) -> CardTracker:
    """Build a fresh tracker and apply *events* in order.

    The turn counter is advanced to each record's turn before it is applied,
    so the replayed log carries the same turn numbers as the recorded one.
    """
    from .tracker import CardTracker

    tracker = CardTracker(player_count, extended=extended, config=config)
    for event in events:
        while tracker.turn < event.turn:
            tracker.next_turn()
        apply_event(tracker, event)
    return tracker
