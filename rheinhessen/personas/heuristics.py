"""
Heuristic opponents.

Each persona looks at the same three production options (best legal group,
best non-spiking illegal group, whole-hand dump) and at audit profitability,
then applies its own thresholds. All personas are deterministic.
"""
from dataclasses import dataclass
from typing import Optional

from rheinhessen.core.actions import AuditOrder, Decision, Production
from rheinhessen.core.audits import estimate_fine
from rheinhessen.core.game import MatchState
from rheinhessen.core.hands import HandAnalysis, PlayOption, analyze_hand

# Audit cost is estimated as this share of the spent hand's raw value
AUDIT_COST_RATE = 0.7

# Aggressive: minimum net gain before auditing
AGGRO_MIN_AUDIT_NET = 10

# Balanced: track level that favours legal play, and the tolerances used
BALANCED_CAUTION_TRACK = 4
BALANCED_CAUTION_RATIO = 0.9
BALANCED_LEGAL_TOLERANCE = 2

# Conservative
CONSERVATIVE_CAUTION_TRACK = 3
CONSERVATIVE_SAFE_MARGIN = 1.25
CONSERVATIVE_DUMP_LEAD = 4
CONSERVATIVE_LEGAL_RATIO = 0.9

# Opportunist
OPPORTUNIST_RISKY_TRACK = 3
OPPORTUNIST_RISKY_NET = -2
OPPORTUNIST_LEGAL_TOLERANCE = 4
OPPORTUNIST_DUMP_LEAD = 6


@dataclass(frozen=True)
class AuditOpportunity:
    """An audit a seat could run right now."""
    target_id: int
    hand: PlayOption
    fine: int

    @property
    def cost(self) -> float:
        return self.hand.raw * AUDIT_COST_RATE

    @property
    def net(self) -> float:
        return self.fine - self.cost

    def order(self) -> AuditOrder:
        return AuditOrder(target_id=self.target_id, cards=self.hand.cards)


def find_best_audit_target(state: MatchState, player_id: int) -> Optional[int]:
    """
    Opponent whose floor would leave the largest leftover.

    Opponents with an empty floor, or whose floor reorganizes completely,
    are never chosen. Ties keep the lowest seat.
    """
    best_target = None
    best_fine = 0
    for player in state.opponents(player_id):
        if not player.floor:
            continue
        fine = estimate_fine(player.floor)
        if fine > best_fine:
            best_fine = fine
            best_target = player.id
    return best_target


def find_audit_opportunity(state: MatchState, player_id: int,
                           analysis: HandAnalysis) -> Optional[AuditOpportunity]:
    """Pair the seat's qualifying audit hand with the best target, if both exist."""
    if analysis.audit_hand is None:
        return None
    target = find_best_audit_target(state, player_id)
    if target is None:
        return None
    return AuditOpportunity(
        target_id=target,
        hand=analysis.audit_hand,
        fine=estimate_fine(state.get_player(target).floor),
    )


def max_opponent_score(state: MatchState, player_id: int) -> int:
    return max(player.score for player in state.opponents(player_id))


def _analyze(state: MatchState, player_id: int) -> HandAnalysis:
    return analyze_hand(state.get_player(player_id).hand, state.audit_track, state.options.escalating)


def _legal(analysis: HandAnalysis) -> Decision:
    return Decision(Production.legal(analysis.legal.cards))


def _safe(analysis: HandAnalysis) -> Decision:
    return Decision(Production.illegal(analysis.safe.cards))


def _dump(analysis: HandAnalysis) -> Decision:
    return Decision(Production.illegal(analysis.dump.cards))


def decide_aggressive(state: MatchState, player_id: int) -> Decision:
    """
    Aggressive persona.

    Audits when the expected net gain is at least 10, dumps the whole hand
    whenever that scores best, and otherwise takes the higher of legal and
    safe.
    """
    analysis = _analyze(state, player_id)
    legal_points = analysis.legal_points
    safe_points = analysis.safe_points

    opportunity = find_audit_opportunity(state, player_id, analysis)
    if opportunity and opportunity.net >= AGGRO_MIN_AUDIT_NET:
        return Decision.passing(opportunity.order())

    if analysis.dump.cards and analysis.dump_points > max(legal_points, safe_points):
        return _dump(analysis)

    if analysis.legal and legal_points >= safe_points:
        return _legal(analysis)

    if analysis.safe.cards:
        return _safe(analysis)

    return Decision.passing()


def decide_balanced(state: MatchState, player_id: int) -> Decision:
    """
    Balanced persona.

    Leans legal: plays legal when within 2 points of the best option, or
    within 10% of safe when the audit track is at 4.
    """
    analysis = _analyze(state, player_id)
    legal_points = analysis.legal_points
    safe_points = analysis.safe_points

    if state.audit_track == BALANCED_CAUTION_TRACK:
        if analysis.legal and legal_points >= safe_points * BALANCED_CAUTION_RATIO:
            return _legal(analysis)

    best_points = max(legal_points, safe_points)
    if analysis.legal and legal_points >= best_points - BALANCED_LEGAL_TOLERANCE:
        return _legal(analysis)

    if analysis.safe.cards and safe_points > legal_points:
        return _safe(analysis)

    if analysis.legal:
        return _legal(analysis)

    return Decision.passing()


def decide_conservative(state: MatchState, player_id: int) -> Decision:
    """
    Conservative persona.

    Prefers legal play, especially once the track reaches 3, and only dumps
    when it is the best option and the seat already leads by 4 or more.
    """
    analysis = _analyze(state, player_id)
    player = state.get_player(player_id)
    legal_points = analysis.legal_points
    safe_points = analysis.safe_points

    if state.audit_track >= CONSERVATIVE_CAUTION_TRACK:
        if analysis.legal and safe_points < legal_points * CONSERVATIVE_SAFE_MARGIN:
            return _legal(analysis)

    leading_by = player.score - max_opponent_score(state, player_id)
    if (analysis.dump.cards and analysis.dump_points > max(legal_points, safe_points)
            and leading_by >= CONSERVATIVE_DUMP_LEAD):
        return _dump(analysis)

    if analysis.legal and legal_points >= safe_points * CONSERVATIVE_LEGAL_RATIO:
        return _legal(analysis)

    if analysis.safe.cards:
        return _safe(analysis)

    return Decision.passing()


def decide_opportunist(state: MatchState, player_id: int) -> Decision:
    """
    Opportunist persona.

    Audits whenever the expected net is non-negative (or at least -2 once
    the track reaches 3). Otherwise plays legal when close to the best
    option and dumps only early in the track while well ahead.
    """
    analysis = _analyze(state, player_id)
    player = state.get_player(player_id)
    legal_points = analysis.legal_points
    safe_points = analysis.safe_points
    dump_points = analysis.dump_points if analysis.dump.cards else 0

    opportunity = find_audit_opportunity(state, player_id, analysis)
    if opportunity:
        net = opportunity.net
        if net >= 0 or (state.audit_track >= OPPORTUNIST_RISKY_TRACK and net >= OPPORTUNIST_RISKY_NET):
            return Decision.passing(opportunity.order())

    best_points = max(legal_points, safe_points, dump_points)
    if analysis.legal and legal_points >= best_points - OPPORTUNIST_LEGAL_TOLERANCE:
        return _legal(analysis)

    leading_by = player.score - max_opponent_score(state, player_id)
    if (analysis.dump.cards and state.audit_track < OPPORTUNIST_RISKY_TRACK
            and leading_by >= OPPORTUNIST_DUMP_LEAD and dump_points == best_points):
        return _dump(analysis)

    if analysis.safe.cards and safe_points >= legal_points:
        return _safe(analysis)

    if analysis.legal:
        return _legal(analysis)

    return Decision.passing()
