"""
Card-type constants, supply totals, and building costs.

Card types are plain strings in a fixed canonical order:
    base resources:  wood, brick, sheep, wheat, ore      (indices 0–4)
    commodities:     cloth, coin, paper                  (indices 5–7)

Commodities exist only in the extended (Cities & Knights) variant. Each one
is produced as a byproduct of a single base resource, and only by cities.

Event payloads use {card_type: amount} mappings. They are checked against
the active variant here, at the engine boundary, so hand arithmetic further
down never has to care about malformed input.
"""

from __future__ import annotations

import numbers
from typing import Mapping

RESOURCES: tuple[str, ...] = ('wood', 'brick', 'sheep', 'wheat', 'ore')
COMMODITIES: tuple[str, ...] = ('cloth', 'coin', 'paper')
ALL_CARD_TYPES: tuple[str, ...] = RESOURCES + COMMODITIES

CARD_INDEX: dict[str, int] = {card: i for i, card in enumerate(ALL_CARD_TYPES)}

NUM_RESOURCES: int = len(RESOURCES)

# Total ever in circulation (all hands + bank)
TOTAL_PER_RESOURCE: int = 19
TOTAL_PER_COMMODITY: int = 12

BUILDING_COSTS: dict[str, dict[str, int]] = {
    'road': {'wood': 1, 'brick': 1},
    'settlement': {'wood': 1, 'brick': 1, 'sheep': 1, 'wheat': 1},
    'city': {'wheat': 2, 'ore': 3},
    'devCard': {'sheep': 1, 'wheat': 1, 'ore': 1},
    # Cities & Knights
    'cityWall': {'brick': 2},
    'knight': {'sheep': 1, 'ore': 1},
    'strongKnight': {'sheep': 1, 'ore': 1},
    'mightyKnight': {'sheep': 1, 'ore': 1},
}


def card_types(extended: bool = False) -> tuple[str, ...]:
    """Return the card types of a variant in canonical order.

    Examples:
        >>> card_types()
        ('wood', 'brick', 'sheep', 'wheat', 'ore')
        >>> len(card_types(extended=True))
        8
    """
    return ALL_CARD_TYPES if extended else RESOURCES


def is_commodity(card: str) -> bool:
    return card in COMMODITIES


def supply(card: str) -> int:
    """Return the fixed global supply of a card type.

    Raises:
        ValueError: If the card type is unknown.

    Examples:
        >>> supply('ore')
        19
        >>> supply('coin')
        12
    """
    if card in RESOURCES:
        return TOTAL_PER_RESOURCE
    if is_commodity(card):
        return TOTAL_PER_COMMODITY
    raise ValueError(f"Unknown card type: {card!r}")


def building_cost(kind: str) -> dict[str, int]:
    """Return the cost of a construction kind.

    Raises:
        ValueError: If the kind is not in BUILDING_COSTS. An unknown kind is a
                    caller error and must never be treated as a free build.

    Examples:
        >>> building_cost('road')
        {'wood': 1, 'brick': 1}
    """
    try:
        return dict(BUILDING_COSTS[kind])
    except KeyError:
        raise ValueError(f"Unknown building type: {kind!r}") from None


def validate_card(card: str, extended: bool = False) -> str:
    """Return *card* if it belongs to the variant, else raise ValueError."""
    if card not in card_types(extended):
        variant = "extended" if extended else "base"
        raise ValueError(f"Unknown card type for the {variant} variant: {card!r}")
    return card


def validate_cards(
    cards: Mapping[str, int],
    extended: bool = False,
    keep_zero: bool = False,
) -> dict[str, int]:
    """Check a {card_type: amount} mapping and return a plain-dict copy.

    Amounts must be non-negative integers. Zero amounts are dropped unless
    keep_zero is set (a bank snapshot where 0 is meaningful).

    Raises:
        ValueError: On an unknown card type or a negative / non-integer amount.

    Examples:
        >>> validate_cards({'wood': 2, 'ore': 0})
        {'wood': 2}
    """
    checked: dict[str, int] = {}
    for card, amount in cards.items():
        validate_card(card, extended)
        if isinstance(amount, bool) or not isinstance(amount, numbers.Integral):
            raise ValueError(f"Card amount must be an integer; got {amount!r} for {card!r}")
        if amount < 0:
            raise ValueError(f"Card amount must be non-negative; got {amount} for {card!r}")
        if amount or keep_zero:
            checked[card] = int(amount)
    return checked


def cards_total(cards: Mapping[str, int]) -> int:
    """Sum the amounts of a {card_type: amount} mapping."""
    return sum(cards.values())
