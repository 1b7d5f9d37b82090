"""
Floor reorganization and audit fines.

When a floor is audited it is broken down greedily into legal groups, one
category at a time in a fixed priority order. Whatever cannot be absorbed
is the leftover, which drives the fine and is confiscated.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from rheinhessen.core.cards import Card, raw_value, sort_cards, remove_cards
from rheinhessen.core.constants import (
    WHEEL_RANKS, INTERNAL_FINE_MULTIPLIER, EXTERNAL_FINE_MULTIPLIER
)
from rheinhessen.core.hands import is_legal_exact
from rheinhessen.core.scoring import round_half_up


@dataclass(frozen=True)
class ReorganizeResult:
    """
    Result of reorganizing a floor.

    `kept` and `leftover` partition the input exactly. `groups` lists the
    extracted legal groups in extraction order; their concatenation is `kept`.
    """
    kept: Tuple[Card, ...]
    leftover: Tuple[Card, ...]
    groups: Tuple[Tuple[Card, ...], ...]


def _rank_groups(cards: Sequence[Card]) -> Dict[int, List[Card]]:
    # Keyed in order of first appearance
    groups: Dict[int, List[Card]] = {}
    for card in cards:
        groups.setdefault(card.rank, []).append(card)
    return groups


def find_straight(cards: Sequence[Card]) -> Optional[List[Card]]:
    """Find the lowest straight (wheel last) among the cards."""
    if len(cards) < 5:
        return None

    ordered = sort_cards(cards)
    for start in range(len(ordered) - 4):
        candidate = [ordered[start]]
        current = ordered[start].rank
        for card in ordered[start + 1:]:
            if len(candidate) == 5:
                break
            if card.rank == current + 1:
                candidate.append(card)
                current = card.rank
        if len(candidate) == 5 and is_legal_exact(candidate):
            return candidate

    by_rank = _rank_groups(ordered)
    if all(rank in by_rank for rank in WHEEL_RANKS):
        wheel = [by_rank[rank][0] for rank in WHEEL_RANKS]
        if is_legal_exact(wheel):
            return wheel
    return None


def find_quads(cards: Sequence[Card]) -> Optional[List[Card]]:
    for group in _rank_groups(cards).values():
        if len(group) >= 4:
            return group[:4]
    return None


def find_full_house(cards: Sequence[Card]) -> Optional[List[Card]]:
    trips: Optional[List[Card]] = None
    pair: Optional[List[Card]] = None
    for group in _rank_groups(cards).values():
        if len(group) >= 3 and trips is None:
            trips = group[:3]
        elif len(group) >= 2 and pair is None:
            pair = group[:2]
    if trips and pair:
        return trips + pair
    return None


def find_trips(cards: Sequence[Card]) -> Optional[List[Card]]:
    for group in _rank_groups(cards).values():
        if len(group) >= 3:
            return group[:3]
    return None


def find_two_pair(cards: Sequence[Card]) -> Optional[List[Card]]:
    pairs = [group[:2] for group in _rank_groups(cards).values() if len(group) >= 2]
    if len(pairs) >= 2:
        return pairs[0] + pairs[1]
    return None


def find_pair(cards: Sequence[Card]) -> Optional[List[Card]]:
    for group in _rank_groups(cards).values():
        if len(group) >= 2:
            return group[:2]
    return None


def find_flush(cards: Sequence[Card]) -> Optional[List[Card]]:
    suits: Dict[object, List[Card]] = {}
    for card in cards:
        suits.setdefault(card.suit, []).append(card)
    for group in suits.values():
        if len(group) >= 5:
            return group[:5]
    return None


# Extraction priority. Reordering changes audit outcomes.
REORGANIZE_PRIORITY: List[Tuple[str, int, Callable[[Sequence[Card]], Optional[List[Card]]]]] = [
    ("straight", 5, find_straight),
    ("quads", 4, find_quads),
    ("full-house", 5, find_full_house),
    ("trips", 3, find_trips),
    ("two-pair", 4, find_two_pair),
    ("pair", 2, find_pair),
    ("flush", 5, find_flush),
]


def reorganize_greedy(cards: Sequence[Card]) -> ReorganizeResult:
    """
    Greedily break a pile of cards into legal groups.

    Each category in `REORGANIZE_PRIORITY` is extracted repeatedly until it
    no longer matches, then the next category is tried. The result is
    deterministic but not necessarily the partition that keeps the most cards.

    Args:
        cards: Unordered pile, typically a player's floor

    Returns:
        ReorganizeResult with kept cards, leftover cards and the groups found
    """
    remaining: Tuple[Card, ...] = tuple(cards)
    kept: List[Card] = []
    groups: List[Tuple[Card, ...]] = []

    for _name, min_cards, finder in REORGANIZE_PRIORITY:
        while len(remaining) >= min_cards:
            group = finder(remaining)
            if not group:
                break
            kept.extend(group)
            groups.append(tuple(group))
            remaining = remove_cards(remaining, group)

    return ReorganizeResult(kept=tuple(kept), leftover=remaining, groups=tuple(groups))


def estimate_fine(floor: Sequence[Card]) -> int:
    """Raw value of the leftover a floor would leave after reorganization."""
    if not floor:
        return 0
    return raw_value(reorganize_greedy(floor).leftover)


def internal_fine(leftover: Sequence[Card]) -> int:
    """Points moved from target to auditor by an internal audit."""
    return round_half_up(INTERNAL_FINE_MULTIPLIER * raw_value(leftover))


def external_fine(leftover: Sequence[Card]) -> int:
    """Points each player loses in an external audit, before the trigger penalty."""
    return EXTERNAL_FINE_MULTIPLIER * raw_value(leftover)
