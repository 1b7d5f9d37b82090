"""
Hand classification and hand search.

The classifier decides whether an exact group of cards is one of the legal
shapes (pair, two pair, trips, quads, straight, flush, full house, straight
flush) and names its type. The search helpers look inside a hand for the
best legal play, the best illegal play that stays below the spike threshold,
and the cheapest hand that can fund an internal audit.
"""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from rheinhessen.core.cards import Card, raw_value, sort_cards, card_value
from rheinhessen.core.constants import (
    Suit, SUIT_ORDER, WHEEL_RANKS, SAFE_ILLEGAL_MAX, INTERNAL_AUDIT_MIN_TAXED
)
from rheinhessen.core.scoring import (
    ProductionResult, score_legal, score_illegal, calculate_taxed_value
)


class HandType(Enum):
    """Names of the legal hand shapes, plus the ILLEGAL sentinel."""
    PAIR = "pair"
    TWO_PAIR = "two-pair"
    TRIPS = "trips"
    STRAIGHT = "straight"
    FLUSH = "flush"
    FULL_HOUSE = "full-house"
    QUADS = "quads"
    STRAIGHT_FLUSH = "straight-flush"
    ILLEGAL = "illegal"


# Hand types that can fund an internal audit (trips or better)
AUDIT_HAND_TYPES: FrozenSet[HandType] = frozenset({
    HandType.TRIPS,
    HandType.STRAIGHT,
    HandType.FLUSH,
    HandType.FULL_HOUSE,
    HandType.QUADS,
    HandType.STRAIGHT_FLUSH,
})


@dataclass(frozen=True)
class PlayOption:
    """A concrete group of cards from a hand, with its raw value and type."""
    cards: Tuple[Card, ...]
    raw: int
    hand_type: HandType

    @classmethod
    def of(cls, cards: Sequence[Card]) -> 'PlayOption':
        return cls(cards=tuple(cards), raw=raw_value(cards), hand_type=get_hand_type(cards))

    @property
    def is_legal(self) -> bool:
        return self.hand_type is not HandType.ILLEGAL

    def __len__(self) -> int:
        return len(self.cards)


def _ranks(cards: Sequence[Card]) -> List[int]:
    return sorted(card.rank for card in cards)


def _is_pair(cards: Sequence[Card]) -> bool:
    return len(cards) == 2 and cards[0].rank == cards[1].rank


def _is_trips(cards: Sequence[Card]) -> bool:
    return len(cards) == 3 and len({card.rank for card in cards}) == 1


def _is_quads(cards: Sequence[Card]) -> bool:
    return len(cards) == 4 and len({card.rank for card in cards}) == 1


def _is_two_pair(cards: Sequence[Card]) -> bool:
    if len(cards) != 4:
        return False
    ranks = _ranks(cards)
    return ranks[0] == ranks[1] and ranks[2] == ranks[3] and ranks[0] != ranks[2]


def _is_straight(cards: Sequence[Card]) -> bool:
    if len(cards) != 5:
        return False
    ranks = _ranks(cards)
    if ranks == WHEEL_RANKS:
        return True
    return all(ranks[i] == ranks[i - 1] + 1 for i in range(1, 5))


def _is_flush(cards: Sequence[Card]) -> bool:
    return len(cards) == 5 and len({card.suit for card in cards}) == 1


def _is_full_house(cards: Sequence[Card]) -> bool:
    if len(cards) != 5:
        return False
    return sorted(Counter(card.rank for card in cards).values()) == [2, 3]


def is_legal_exact(cards: Sequence[Card]) -> bool:
    """
    Check whether exactly these cards (not a subset) form a legal hand.

    Legal shapes are a pair (2 cards), trips (3), two pair or quads (4), and
    a straight, flush, full house or straight flush (5). No other card count
    is ever legal.

    Args:
        cards: Cards to classify, in any order

    Returns:
        True if the group is legal
    """
    n = len(cards)
    if n == 2:
        return _is_pair(cards)
    if n == 3:
        return _is_trips(cards)
    if n == 4:
        return _is_two_pair(cards) or _is_quads(cards)
    if n == 5:
        return _is_straight(cards) or _is_flush(cards) or _is_full_house(cards)
    return False


def get_hand_type(cards: Sequence[Card]) -> HandType:
    """
    Name the legal shape formed by exactly these cards.

    Returns:
        The HandType, or HandType.ILLEGAL for anything that is not legal
    """
    n = len(cards)
    if n == 2 and _is_pair(cards):
        return HandType.PAIR
    if n == 3 and _is_trips(cards):
        return HandType.TRIPS
    if n == 4:
        if _is_two_pair(cards):
            return HandType.TWO_PAIR
        if _is_quads(cards):
            return HandType.QUADS
    if n == 5:
        straight = _is_straight(cards)
        flush = _is_flush(cards)
        if straight and flush:
            return HandType.STRAIGHT_FLUSH
        if _is_full_house(cards):
            return HandType.FULL_HOUSE
        if flush:
            return HandType.FLUSH
        if straight:
            return HandType.STRAIGHT
    return HandType.ILLEGAL


def qualifies_for_audit(cards: Sequence[Card]) -> bool:
    """Check that cards are legal, trips or better, and meet the taxed-value minimum."""
    if get_hand_type(cards) not in AUDIT_HAND_TYPES:
        return False
    return calculate_taxed_value(raw_value(cards)) >= INTERNAL_AUDIT_MIN_TAXED


def group_by_rank(cards: Sequence[Card]) -> Dict[int, List[Card]]:
    """Group cards by rank, ranks ascending, cards in suit order within a rank."""
    groups: Dict[int, List[Card]] = {}
    for card in sort_cards(cards):
        groups.setdefault(card.rank, []).append(card)
    return groups


def group_by_suit(cards: Sequence[Card]) -> Dict[Suit, List[Card]]:
    """Group cards by suit in suit order, cards ascending by rank within a suit."""
    groups: Dict[Suit, List[Card]] = {suit: [] for suit in SUIT_ORDER}
    for card in sort_cards(cards):
        groups[card.suit].append(card)
    return {suit: group for suit, group in groups.items() if group}


def _straight_windows() -> List[List[int]]:
    windows = [list(range(low, low + 5)) for low in range(2, 11)]
    windows.append(list(WHEEL_RANKS))
    return windows


def legal_candidates(hand: Sequence[Card]) -> List[Tuple[Card, ...]]:
    """
    Enumerate representative legal groups that can be assembled from a hand.

    One group is produced per distinct rank combination (per suit for
    flushes, where both the highest and the lowest five cards are offered).
    Order: pairs, trips, quads, two pairs, full houses, straights, straight
    flushes, flushes.

    Args:
        hand: Cards held

    Returns:
        List of card tuples, each exactly legal
    """
    by_rank = group_by_rank(hand)
    by_suit = group_by_suit(hand)
    candidates: List[Tuple[Card, ...]] = []

    pair_ranks = [rank for rank, group in by_rank.items() if len(group) >= 2]
    trip_ranks = [rank for rank, group in by_rank.items() if len(group) >= 3]

    for rank in pair_ranks:
        candidates.append(tuple(by_rank[rank][:2]))
    for rank in trip_ranks:
        candidates.append(tuple(by_rank[rank][:3]))
    for rank, group in by_rank.items():
        if len(group) >= 4:
            candidates.append(tuple(group[:4]))

    for i, low in enumerate(pair_ranks):
        for high in pair_ranks[i + 1:]:
            candidates.append(tuple(by_rank[low][:2] + by_rank[high][:2]))

    for trips in trip_ranks:
        for pair in pair_ranks:
            if pair != trips:
                candidates.append(tuple(by_rank[trips][:3] + by_rank[pair][:2]))

    windows = _straight_windows()
    for window in windows:
        if all(rank in by_rank for rank in window):
            candidates.append(tuple(by_rank[rank][0] for rank in window))

    for suit_cards in by_suit.values():
        if len(suit_cards) < 5:
            continue
        suited = group_by_rank(suit_cards)
        for window in windows:
            if all(rank in suited for rank in window):
                candidates.append(tuple(suited[rank][0] for rank in window))
        by_value = sorted(suit_cards, key=card_value)
        low_five = tuple(by_value[:5])
        high_five = tuple(by_value[-5:])
        candidates.append(high_five)
        if low_five != high_five:
            candidates.append(low_five)

    return [group for group in candidates if is_legal_exact(group)]


def best_legal(hand: Sequence[Card]) -> Optional[PlayOption]:
    """
    Find the legal group in a hand with the highest raw value.

    Ties keep the first group found in `legal_candidates` order.

    Returns:
        The best PlayOption, or None if the hand holds no legal group
    """
    best: Optional[PlayOption] = None
    for group in legal_candidates(hand):
        raw = raw_value(group)
        if best is None or raw > best.raw:
            best = PlayOption(cards=group, raw=raw, hand_type=get_hand_type(group))
    return best


def best_safe_illegal(hand: Sequence[Card], ceiling: int = SAFE_ILLEGAL_MAX) -> PlayOption:
    """
    Find the illegal group with the highest raw value not above `ceiling`.

    Uses a depth-first branch-and-bound over cards sorted by value, stopping
    early once the ceiling itself is reached. A single card is always
    illegal, so a non-empty hand always yields a non-empty option.

    Args:
        hand: Cards held
        ceiling: Largest raw value allowed (defaults to just below a spike)

    Returns:
        PlayOption; its cards are empty only when the hand is empty
    """
    cards = sorted(hand, key=lambda c: (-card_value(c), c.rank, SUIT_ORDER.index(c.suit)))
    values = [card_value(card) for card in cards]
    suffix = [0] * (len(values) + 1)
    for i in range(len(values) - 1, -1, -1):
        suffix[i] = suffix[i + 1] + values[i]

    best_cards: List[Card] = []
    best_raw = 0
    chosen: List[Card] = []

    def search(start: int, total: int) -> bool:
        nonlocal best_cards, best_raw
        if chosen and total > best_raw and not is_legal_exact(chosen):
            best_cards = list(chosen)
            best_raw = total
            if best_raw == ceiling:
                return True
        for j in range(start, len(cards)):
            if total + suffix[j] <= best_raw:
                break
            if total + values[j] > ceiling:
                continue
            chosen.append(cards[j])
            if search(j + 1, total + values[j]):
                return True
            chosen.pop()
        return False

    search(0, 0)

    if not best_cards and cards:
        lowest = sort_cards(cards)[0]
        best_cards = [lowest]
        best_raw = card_value(lowest)

    return PlayOption(cards=tuple(best_cards), raw=best_raw, hand_type=HandType.ILLEGAL)


def find_audit_hand(hand: Sequence[Card]) -> Optional[PlayOption]:
    """
    Find the cheapest held group that can fund an internal audit.

    The group must be exactly legal, trips or better, and have a taxed
    value of at least the audit minimum. Among qualifying groups the lowest
    raw value is spent; ties keep the first found.

    Returns:
        PlayOption, or None if nothing in the hand qualifies
    """
    cheapest: Optional[PlayOption] = None
    for group in legal_candidates(hand):
        if not qualifies_for_audit(group):
            continue
        raw = raw_value(group)
        if cheapest is None or raw < cheapest.raw:
            cheapest = PlayOption(cards=group, raw=raw, hand_type=get_hand_type(group))
    return cheapest


@dataclass(frozen=True)
class HandAnalysis:
    """
    Summary of the production options a hand offers at a given audit track.

    `legal` is the best legal group, `safe` the best non-spiking illegal
    group, and `dump` the whole hand played as one illegal production.
    """
    legal: Optional[PlayOption]
    legal_points: int
    safe: PlayOption
    safe_result: ProductionResult
    dump: PlayOption
    dump_result: ProductionResult
    audit_hand: Optional[PlayOption]

    @property
    def safe_points(self) -> int:
        return self.safe_result.points if self.safe.cards else 0

    @property
    def dump_points(self) -> int:
        return self.dump_result.points


def analyze_hand(hand: Sequence[Card], audit_track: int, escalating: bool = True) -> HandAnalysis:
    """
    Evaluate the legal, safe-illegal and dump options of a hand.

    Args:
        hand: Cards held
        audit_track: Current audit track level
        escalating: Whether the +2 escalation rule is active

    Returns:
        HandAnalysis
    """
    legal = best_legal(hand)
    safe = best_safe_illegal(hand)
    dump = PlayOption.of(hand)
    return HandAnalysis(
        legal=legal,
        legal_points=score_legal(legal.raw) if legal else 0,
        safe=safe,
        safe_result=score_illegal(safe.raw, audit_track, escalating),
        dump=dump,
        dump_result=score_illegal(dump.raw, audit_track, escalating),
        audit_hand=find_audit_hand(hand),
    )
