"""
Player representation for the Rheinhessen card game.

This module defines the per-seat state: hand, floor, floor groups, score and
production statistics, plus the persona tag naming who makes the seat's
decisions. Player states are immutable; engine operations return updated
copies built with `dataclasses.replace`.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from rheinhessen.core.cards import Card, raw_value, remove_cards


class Persona(Enum):
    """Who decides for a seat."""
    HUMAN = "Human"
    AGGRESSIVE = "Aggro"
    BALANCED = "Balanced"
    CONSERVATIVE = "Conservative"
    OPPORTUNIST = "Opportunist"
    LEARNER = "Learner"

    @property
    def is_ai(self) -> bool:
        return self is not Persona.HUMAN


@dataclass(frozen=True)
class PlayerStats:
    """Production and audit counters for one seat."""
    legal: int = 0
    illegal: int = 0
    spikes: int = 0
    internals_done: int = 0
    internals_received: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "legal": self.legal,
            "illegal": self.illegal,
            "spikes": self.spikes,
            "internals_done": self.internals_done,
            "internals_received": self.internals_received,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> 'PlayerStats':
        return cls(**data)


@dataclass(frozen=True)
class PlayerState:
    """
    State of one seat at the table.

    `floor` holds every card the player has produced and not yet lost to an
    audit. `floor_groups` records the same cards grouped by production event
    (or by legal group after a reorganization).
    """
    id: int  # Seat index (0-3)
    name: str
    persona: Persona
    agent_name: Optional[str] = None  # Registry name for LEARNER seats
    hand: Tuple[Card, ...] = ()
    floor: Tuple[Card, ...] = ()
    floor_groups: Tuple[Tuple[Card, ...], ...] = ()
    score: int = 0
    stats: PlayerStats = field(default_factory=PlayerStats)

    def __post_init__(self):
        """Validate the player state after initialization."""
        if self.persona is Persona.LEARNER and not self.agent_name:
            raise ValueError(f"Learner seat {self.id} needs an agent name")

    @property
    def floor_raw(self) -> int:
        """Raw value of everything on the floor (exposure to audits)."""
        return raw_value(self.floor)

    def with_hand(self, hand: Sequence[Card]) -> 'PlayerState':
        return replace(self, hand=tuple(hand))

    def produce(self, cards: Sequence[Card], points: int, stats: PlayerStats) -> 'PlayerState':
        """
        Move cards from hand to floor as a new floor group.

        Args:
            cards: Cards produced (must be held)
            points: Points awarded for the production
            stats: Updated statistics

        Returns:
            Updated player state
        """
        group = tuple(cards)
        return replace(
            self,
            hand=remove_cards(self.hand, group),
            floor=self.floor + group,
            floor_groups=self.floor_groups + (group,),
            score=self.score + points,
            stats=stats,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the player state to a dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "persona": self.persona.value,
            "agent_name": self.agent_name,
            "hand": [card.to_dict() for card in self.hand],
            "floor": [card.to_dict() for card in self.floor],
            "floor_groups": [[card.to_dict() for card in group] for group in self.floor_groups],
            "score": self.score,
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlayerState':
        """Create a player state from its dictionary representation."""
        return cls(
            id=data["id"],
            name=data["name"],
            persona=Persona(data["persona"]),
            agent_name=data.get("agent_name"),
            hand=tuple(Card.from_dict(c) for c in data["hand"]),
            floor=tuple(Card.from_dict(c) for c in data["floor"]),
            floor_groups=tuple(
                tuple(Card.from_dict(c) for c in group) for group in data["floor_groups"]
            ),
            score=data["score"],
            stats=PlayerStats.from_dict(data["stats"]),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.persona.value}): {self.score} pts, {len(self.hand)} cards"
