"""
Decision records for the Rheinhessen card game.

A decision is the only thing that passes from a decision source (a human
interface, a persona heuristic or a learning agent) to the match engine. It
holds one production (legal, illegal or pass, with its cards) and optionally
an internal audit order against another seat.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from rheinhessen.core.cards import Card, format_cards


class ProductionKind(Enum):
    """Kind of production a player makes on their turn."""
    LEGAL = "legal"
    ILLEGAL = "illegal"
    PASS = "pass"


@dataclass(frozen=True)
class Production:
    """A production: cards played to the floor (empty for a pass)."""
    kind: ProductionKind
    cards: Tuple[Card, ...] = ()

    def __post_init__(self):
        """Validate the production."""
        if self.kind is ProductionKind.PASS and self.cards:
            raise ValueError("A pass cannot carry cards")
        if self.kind is not ProductionKind.PASS and not self.cards:
            raise ValueError(f"A {self.kind.value} production needs at least one card")

    @classmethod
    def legal(cls, cards: Sequence[Card]) -> Production:
        return cls(ProductionKind.LEGAL, tuple(cards))

    @classmethod
    def illegal(cls, cards: Sequence[Card]) -> Production:
        return cls(ProductionKind.ILLEGAL, tuple(cards))

    @classmethod
    def passing(cls) -> Production:
        return cls(ProductionKind.PASS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "cards": [card.to_dict() for card in self.cards],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Production:
        return cls(
            kind=ProductionKind(data["kind"]),
            cards=tuple(Card.from_dict(c) for c in data.get("cards", [])),
        )

    def __str__(self) -> str:
        if self.kind is ProductionKind.PASS:
            return "pass"
        return f"{self.kind.value} [{format_cards(self.cards)}]"


@dataclass(frozen=True)
class AuditOrder:
    """
    An internal audit against another seat.

    When `cards` is empty the engine picks a qualifying hand from the
    auditor's hand itself.
    """
    target_id: int
    cards: Tuple[Card, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "cards": [card.to_dict() for card in self.cards],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AuditOrder:
        return cls(
            target_id=data["target_id"],
            cards=tuple(Card.from_dict(c) for c in data.get("cards", [])),
        )


@dataclass(frozen=True)
class Decision:
    """
    A full turn decision.

    The audit, if any, is resolved before the production.
    """
    production: Production
    audit: Optional[AuditOrder] = None

    @classmethod
    def passing(cls, audit: Optional[AuditOrder] = None) -> Decision:
        return cls(Production.passing(), audit)

    @property
    def is_pass(self) -> bool:
        return self.production.kind is ProductionKind.PASS and self.audit is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the decision to a dictionary for serialization."""
        return {
            "production": self.production.to_dict(),
            "audit": self.audit.to_dict() if self.audit else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Decision:
        """Create a decision from its dictionary representation."""
        audit = data.get("audit")
        return cls(
            production=Production.from_dict(data["production"]),
            audit=AuditOrder.from_dict(audit) if audit else None,
        )

    def __str__(self) -> str:
        text = str(self.production)
        if self.audit:
            text = f"audit seat {self.audit.target_id}, then {text}"
        return text
