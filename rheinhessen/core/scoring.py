"""
Scoring formulas for productions.

Legal productions earn a fixed share of their raw value plus a compliance
bonus. Illegal productions earn a smaller share, and large ones ("spikes")
pay a kickback and push the shared audit track forward.
"""
from dataclasses import dataclass
import math

from rheinhessen.core.constants import (
    LEGAL_RATE, COMPLIANCE_BONUS, ILLEGAL_RATE, SPIKE_THRESHOLD,
    ESCALATION_SPIKE_THRESHOLD, ESCALATION_TRACK_LEVEL, KICKBACK
)


@dataclass(frozen=True)
class ProductionResult:
    """Outcome of scoring an illegal production."""
    points: int
    ticks_added: int
    kickback: int

    @property
    def is_spike(self) -> bool:
        return self.ticks_added > 0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounded up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def score_legal(raw: int) -> int:
    """Points for a legal production: 70% of raw plus the compliance bonus."""
    return round_half_up(raw * LEGAL_RATE + COMPLIANCE_BONUS)


def calculate_taxed_value(raw: int) -> int:
    """
    Taxed value of a hand, the qualification metric for internal audits.

    Uses the same formula as legal scoring.
    """
    return score_legal(raw)


def spike_ticks(raw: int, audit_track: int, escalating: bool = True) -> int:
    """
    Audit track ticks caused by an illegal production.

    Args:
        raw: Raw value of the production
        audit_track: Current audit track level
        escalating: Whether the +2 escalation rule is active

    Returns:
        0 below the spike threshold, otherwise 1 or 2
    """
    if raw < SPIKE_THRESHOLD:
        return 0
    if escalating and audit_track >= ESCALATION_TRACK_LEVEL and raw >= ESCALATION_SPIKE_THRESHOLD:
        return 2
    return 1


def score_illegal(raw: int, audit_track: int, escalating: bool = True) -> ProductionResult:
    """
    Score an illegal production.

    Args:
        raw: Raw value of the production
        audit_track: Current audit track level
        escalating: Whether the +2 escalation rule is active

    Returns:
        ProductionResult with points, ticks added and kickback
    """
    points = raw * ILLEGAL_RATE
    ticks_added = spike_ticks(raw, audit_track, escalating)
    kickback = 0

    if ticks_added > 0:
        kickback = KICKBACK
        points -= kickback

    return ProductionResult(
        points=round_half_up(points),
        ticks_added=ticks_added,
        kickback=kickback,
    )
