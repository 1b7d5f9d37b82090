"""
Cards and decks for the Rheinhessen card game.

This module defines the card data structure, the composite 208-card deck
built from four standard decks, a seeded Fisher-Yates shuffle, and the point
value lookups used by scoring.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import random

from rheinhessen.core.constants import (
    Suit, SUIT_ORDER, RANKS, RANK_LABELS, ACE, NUM_DECKS
)


@dataclass(frozen=True)
class Card:
    """
    Represents a single physical card.

    Four decks are merged, so the same rank and suit can appear up to four
    times; the deck index keeps each copy distinct.
    """
    id: str  # Unique identifier, e.g. "14S0"
    rank: int  # 2-14 (11=J, 12=Q, 13=K, 14=A)
    suit: Suit
    deck: int  # Source deck index (0-3)

    def __post_init__(self):
        """Validate the card after initialization."""
        if self.rank not in RANKS:
            raise ValueError(f"Card rank ({self.rank}) must be between 2 and 14")
        if not 0 <= self.deck < NUM_DECKS:
            raise ValueError(f"Card deck index ({self.deck}) must be between 0 and {NUM_DECKS - 1}")

    @property
    def value(self) -> int:
        """Point value of this card."""
        return card_value(self)

    @property
    def label(self) -> str:
        """Short display label such as 'QH'."""
        return f"{RANK_LABELS[self.rank]}{self.suit.value}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the card to a dictionary for serialization."""
        return {
            "id": self.id,
            "rank": self.rank,
            "suit": self.suit.value,
            "deck": self.deck,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Card':
        """Create a card from its dictionary representation."""
        return cls(
            id=data["id"],
            rank=data["rank"],
            suit=Suit(data["suit"]),
            deck=data["deck"],
        )

    def __str__(self) -> str:
        return self.label


def make_card(rank: int, suit: Union[Suit, str], deck: int = 0) -> Card:
    """
    Create a card with the canonical id.

    Args:
        rank: Card rank (2-14)
        suit: Suit enum or its one-letter code
        deck: Source deck index

    Returns:
        Card object
    """
    suit = Suit(suit) if isinstance(suit, str) else suit
    return Card(id=f"{rank}{suit.value}{deck}", rank=rank, suit=suit, deck=deck)


def make_deck() -> List[Card]:
    """
    Create the composite deck of four standard decks (208 cards).

    Cards are produced in a fixed order (deck, suit, rank) so that shuffling
    with a seed is reproducible.

    Returns:
        List of Card objects
    """
    cards = []
    for deck_idx in range(NUM_DECKS):
        for suit in SUIT_ORDER:
            for rank in RANKS:
                cards.append(make_card(rank, suit, deck_idx))
    return cards


def shuffle_cards(cards: Sequence[Card], seed: Optional[Union[int, str]] = None) -> List[Card]:
    """
    Shuffle cards with a Fisher-Yates permutation.

    The same seed always yields the same order. The input is not modified.

    Args:
        cards: Cards to shuffle
        seed: Optional seed; None uses fresh system randomness

    Returns:
        New shuffled list
    """
    rng = random.Random(seed)
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def card_value(card: Card) -> int:
    """Point value of a card: face value for 2-10, 11 for an Ace, 10 for J/Q/K."""
    if card.rank <= 10:
        return card.rank
    if card.rank == ACE:
        return 11
    return 10


def raw_value(cards: Iterable[Card]) -> int:
    """Sum of the point values of the given cards."""
    return sum(card_value(card) for card in cards)


def sort_cards(cards: Iterable[Card]) -> List[Card]:
    """Sort cards by rank, then by suit order."""
    return sorted(cards, key=lambda c: (c.rank, SUIT_ORDER.index(c.suit)))


def card_ids(cards: Iterable[Card]) -> List[str]:
    """Ids of the given cards, in order."""
    return [card.id for card in cards]


def remove_cards(cards: Sequence[Card], to_remove: Iterable[Card]) -> Tuple[Card, ...]:
    """Return the cards without any card whose id is in `to_remove`."""
    removed_ids = {card.id for card in to_remove}
    return tuple(card for card in cards if card.id not in removed_ids)


def holds_all(cards: Sequence[Card], wanted: Iterable[Card]) -> bool:
    """Check that every wanted card (by id) is present in `cards`, without repeats."""
    held_ids = {card.id for card in cards}
    wanted_ids = [card.id for card in wanted]
    return len(wanted_ids) == len(set(wanted_ids)) and all(cid in held_ids for cid in wanted_ids)


def format_cards(cards: Iterable[Card]) -> str:
    """Readable representation of a group of cards, e.g. '7S 7H 9D'."""
    return " ".join(card.label for card in sort_cards(cards))
