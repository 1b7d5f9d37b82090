"""
Constants for the Rheinhessen card game.

This module defines all the game constants used throughout the rules engine,
including suits, ranks, deck composition, scoring rates, audit thresholds and
match defaults.
"""
from enum import Enum
from typing import Dict, Final, List


class Suit(Enum):
    """Enum representing the four card suits."""
    SPADES = "S"
    HEARTS = "H"
    DIAMONDS = "D"
    CLUBS = "C"


# Suit order used for sorting (S < H < D < C)
SUIT_ORDER: Final[List[Suit]] = [Suit.SPADES, Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS]

# Ranks 2-14, where 11=J, 12=Q, 13=K, 14=A
RANKS: Final[List[int]] = list(range(2, 15))
ACE: Final[int] = 14
KING: Final[int] = 13
QUEEN: Final[int] = 12
JACK: Final[int] = 11

# Rank labels for display
RANK_LABELS: Final[Dict[int, str]] = {
    2: "2", 3: "3", 4: "4", 5: "5", 6: "6", 7: "7", 8: "8", 9: "9",
    10: "10", 11: "J", 12: "Q", 13: "K", 14: "A",
}

# Ace-low straight (the wheel)
WHEEL_RANKS: Final[List[int]] = [2, 3, 4, 5, 14]

# Deck composition
NUM_DECKS: Final[int] = 4  # Four standard decks are merged
DECK_SIZE: Final[int] = NUM_DECKS * len(SUIT_ORDER) * len(RANKS)  # 208

# Table setup
NUM_PLAYERS: Final[int] = 4
HAND_SIZE: Final[int] = 7  # Cards dealt to each seat at match start
CARDS_PER_DRAW: Final[int] = 2

# Legal scoring: round(raw * 0.70 + 8)
LEGAL_RATE: Final[float] = 0.70
COMPLIANCE_BONUS: Final[int] = 8

# Illegal scoring: round(raw * 0.60), minus kickback on a spike
ILLEGAL_RATE: Final[float] = 0.60
SPIKE_THRESHOLD: Final[int] = 27  # raw >= 27 is a spike
ESCALATION_SPIKE_THRESHOLD: Final[int] = 25  # raw needed for the +2 tick rule
ESCALATION_TRACK_LEVEL: Final[int] = 3  # track level where +2 ticks apply
KICKBACK: Final[int] = 5

# Largest illegal raw value that never spikes
SAFE_ILLEGAL_MAX: Final[int] = SPIKE_THRESHOLD - 1

# Audit track
MAX_AUDIT_TRACK: Final[int] = 5

# Internal audits
INTERNAL_AUDIT_MIN_TAXED: Final[int] = 12
INTERNAL_FINE_MULTIPLIER: Final[float] = 1.5

# External audits
EXTERNAL_FINE_MULTIPLIER: Final[int] = 2
EXTERNAL_TRIGGER_PENALTY: Final[int] = 20

# Victory conditions
TARGET_SCORE: Final[int] = 300
