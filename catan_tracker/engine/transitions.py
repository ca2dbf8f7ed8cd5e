"""
Pure event transitions over Worlds, plus distribution bookkeeping.

Each deterministic transition maps one World to its successor, or to None
when the World cannot explain the observed event (a player would have to
give away cards they do not hold). The tracker drops None results; that
filtering is how fully observed events act as proof-of-existence constraints.

steal_branches() is the only branching step: World -> list of Worlds, one
child per card type the victim could have lost, weighted by how many of that
type the victim holds.

renormalize() and merge_and_prune() operate on whole collections and bound
both floating-point drift and the number of hypotheses.
"""

from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np

from .world import World

# A sum this close to 1 is left alone by renormalize()
_NORMALIZED_TOLERANCE: float = 1e-12


# ─── Deterministic transitions ────────────────────────────────────────────────

def produce(world: World, productions: Mapping[int, Mapping[str, int]]) -> World:
    """Add produced cards to each named player. Never fails."""
    for player, cards in productions.items():
        world = world.with_hand(player, world.get_hand(player).add_cards(cards))
    return world


def pay(world: World, player: int, cards: Mapping[str, int]) -> World | None:
    """Remove *cards* from *player*, or None if the hand cannot cover them.

    Used for builds (cost) and discards.
    """
    hand = world.get_hand(player)
    if not hand.can_afford(cards):
        return None
    return world.with_hand(player, hand.subtract_cards(cards))


def exchange(
    world: World,
    player: int,
    give: Mapping[str, int],
    receive: Mapping[str, int],
) -> World | None:
    """Bank or port trade: subtract *give* (checked), then add *receive*."""
    paid = pay(world, player, give)
    if paid is None:
        return None
    return paid.with_hand(player, paid.get_hand(player).add_cards(receive))


def trade(
    world: World,
    player_a: int,
    give_a: Mapping[str, int],
    player_b: int,
    give_b: Mapping[str, int],
) -> World | None:
    """Player-to-player trade. Both sides are checked before either applies."""
    hand_a = world.get_hand(player_a)
    hand_b = world.get_hand(player_b)
    if not hand_a.can_afford(give_a) or not hand_b.can_afford(give_b):
        return None

    hand_a = hand_a.subtract_cards(give_a).add_cards(give_b)
    hand_b = hand_b.subtract_cards(give_b).add_cards(give_a)
    return world.with_hand(player_a, hand_a).with_hand(player_b, hand_b)


def collect(
    world: World,
    collector: int,
    card: str,
    taken_from: Mapping[int, int],
) -> World | None:
    """Monopoly: move the stated amount of *card* from each victim to *collector*.

    Any victim holding fewer than the stated amount rules the World out.
    """
    for victim, amount in taken_from.items():
        hand = world.get_hand(victim)
        if hand.get(card) < amount:
            return None
        world = world.with_hand(victim, hand.subtract(card, amount))
        world = world.with_hand(collector, world.get_hand(collector).add(card, amount))
    return world


def gift(
    world: World,
    receiver: int,
    gifts: Mapping[int, Mapping[str, int]],
) -> World | None:
    """Multi-party gift (wedding). All-or-nothing: one short giver voids the World."""
    for giver, cards in gifts.items():
        hand = world.get_hand(giver)
        if not hand.can_afford(cards):
            return None
        world = world.with_hand(giver, hand.subtract_cards(cards))
        world = world.with_hand(receiver, world.get_hand(receiver).add_cards(cards))
    return world


def move_card(world: World, thief: int, victim: int, card: str) -> World | None:
    """Steal with a known outcome: one *card* from *victim* to *thief*."""
    victim_hand = world.get_hand(victim)
    if victim_hand.get(card) < 1:
        return None
    world = world.with_hand(victim, victim_hand.subtract(card))
    return world.with_hand(thief, world.get_hand(thief).add(card))


# ─── Branching transition ─────────────────────────────────────────────────────

def steal_branches(world: World, thief: int, victim: int) -> list[World]:
    """Expand one World into every possible outcome of an unseen steal.

    If the victim holds no cards nothing can move and the World is returned
    unchanged as the only child. Otherwise each card type with count c out of
    a hand total t yields a child with probability p * c / t in which exactly
    one card of that type has moved from victim to thief.

    Examples:
        >>> from catan_tracker.engine.hand import Hand
        >>> w = World.initial(2).with_hand(2, Hand.from_dict({'wood': 2, 'brick': 1}))
        >>> [round(c.probability, 3) for c in steal_branches(w, 1, 2)]
        [0.667, 0.333]
    """
    victim_hand = world.get_hand(victim)
    total = victim_hand.total()
    if total == 0:
        return [world]

    thief_hand = world.get_hand(thief)
    children: list[World] = []
    for card in victim_hand.stealable_types():
        child = world.with_hand(victim, victim_hand.subtract(card))
        child = child.with_hand(thief, thief_hand.add(card))
        children.append(child.with_probability(world.probability * victim_hand.get(card) / total))
    return children


# ─── Distribution bookkeeping ─────────────────────────────────────────────────

def total_probability(worlds: Sequence[World]) -> float:
    return float(np.sum([w.probability for w in worlds])) if worlds else 0.0


def renormalize(worlds: Sequence[World]) -> list[World]:
    """Rescale probabilities so they sum to 1.

    Left unchanged when the sum is already within tolerance of 1, and when
    the sum is not positive (nothing meaningful to rescale).
    """
    if not worlds:
        return []
    probs = np.fromiter((w.probability for w in worlds), dtype=np.float64, count=len(worlds))
    total = float(probs.sum())
    if total <= 0.0 or abs(total - 1.0) <= _NORMALIZED_TOLERANCE:
        return list(worlds)
    probs /= total
    return [w.with_probability(float(p)) for w, p in zip(worlds, probs)]


def merge_worlds(worlds: Sequence[World]) -> list[World]:
    """Combine Worlds with identical hands, summing their probabilities.

    The merged collection keeps first-seen order.
    """
    merged: dict[tuple[tuple[int, ...], ...], World] = {}
    for world in worlds:
        key = world.key()
        seen = merged.get(key)
        if seen is None:
            merged[key] = world
        else:
            merged[key] = seen.with_probability(seen.probability + world.probability)
    return list(merged.values())


def merge_and_prune(
    worlds: Sequence[World],
    prune_threshold: float,
    max_worlds: int,
) -> list[World]:
    """Merge duplicates, drop improbable Worlds, cap the count, renormalize.

    Order of operations:
        1. merge identical Worlds and renormalize;
        2. drop Worlds with probability below *prune_threshold* (skipped if it
           would drop every World);
        3. if more than *max_worlds* remain, keep the most probable ones
           (stable on ties);
        4. renormalize again.
    """
    result = renormalize(merge_worlds(worlds))

    kept = [w for w in result if w.probability >= prune_threshold]
    if not kept:
        kept = result

    if len(kept) > max_worlds:
        kept = sorted(kept, key=lambda w: w.probability, reverse=True)[:max_worlds]

    return renormalize(kept)
