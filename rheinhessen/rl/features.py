"""
Feature extraction for the Q-learning agents.

A seat's view of the match is summarised as a fixed set of numeric features
(hand composition, legal and illegal options, position, opponents, audit
dynamics, audit profitability, game phase and strategic flags). A subset of
them is bucketed into a short string key that indexes the Q-table.
"""
from collections import Counter
from dataclasses import dataclass, fields
from typing import List, Optional, Sequence, Tuple
import math

import numpy as np

from rheinhessen.core.audits import reorganize_greedy, internal_fine
from rheinhessen.core.cards import raw_value
from rheinhessen.core.constants import (
    ACE, KING, QUEEN, MAX_AUDIT_TRACK, NUM_PLAYERS, CARDS_PER_DRAW, SPIKE_THRESHOLD, KICKBACK
)
from rheinhessen.core.game import MatchState
from rheinhessen.core.hands import AUDIT_HAND_TYPES, HandType, best_legal, best_safe_illegal, find_audit_hand, legal_candidates
from rheinhessen.core.scoring import calculate_taxed_value, round_half_up, spike_ticks
from rheinhessen.personas.heuristics import AUDIT_COST_RATE

# Score that counts as "about to win"
LEADER_NEAR_WIN = 250

# Lowest raw value of a safe illegal play worth crediting
SAFE_RANGE_LOW = 20

# Codes for the most recent action of an opponent
RECENT_ACTION_CODES = {"pass": 0, "legal": 1, "illegal": 2, "audit": 3}


@dataclass(frozen=True)
class TurnRecord:
    """One turn as seen by an agent, for opponent modelling."""
    turn_number: int
    player_id: int
    action: str  # 'pass', 'legal', 'illegal' or 'audit'
    score_change: int
    audit_ticks_added: int

    def to_dict(self):
        return dict(self.__dict__)


@dataclass(frozen=True)
class StateFeatures:
    """Numeric summary of a match from one seat's point of view."""
    # Hand composition
    hand_size: int
    num_pairs: int
    num_trips: int
    flush_draw: int  # Cards missing from the longest suit to make five
    highest_rank: int
    lowest_rank: int
    suit_diversity: int
    has_ace: bool
    has_king: bool

    # Legal options
    has_legal: bool
    has_trips_plus: bool
    has_straight: bool
    has_flush: bool
    has_full_house: bool
    best_legal_raw: int
    best_legal_taxed: int
    num_legal_options: int

    # Illegal options
    best_safe_raw: int
    best_dump_raw: int
    would_trigger_external: bool
    ticks_would_add: int
    kickback_amount: int

    # Position
    my_score: int
    my_score_rank: int
    points_behind_leader: int
    points_ahead_of_last: int
    my_floor_crime: int
    my_floor_card_count: int
    my_production_count: int

    # Opponents, in seat order
    opp1_score: int
    opp1_floor_crime: int
    opp1_hand_size: int
    opp1_recent_action: int
    opp2_score: int
    opp2_floor_crime: int
    opp2_hand_size: int
    opp2_recent_action: int
    opp3_score: int
    opp3_floor_crime: int
    opp3_hand_size: int
    opp3_recent_action: int

    # Audit dynamics
    audit_track: int
    audit_momentum: int
    turns_until_external: int
    last_audit_turns_ago: int
    highest_crime_floor: int
    crime_floor_owner: int
    total_table_crime: int
    external_risk: float

    # Audit profitability
    has_valid_audit_hand: bool
    my_audit_hand_value: int
    my_vulnerability: int
    opp1_hanging_value: float
    opp2_hanging_value: float
    opp3_hanging_value: float
    best_audit_target: int
    max_hanging_value: float
    total_hanging_value: float
    audit_profit_ratio: float

    # Game phase
    turn_number: int
    deck_remaining: int
    estimated_turns_left: int
    game_phase: int  # 0=early, 1=mid, 2=late, 3=final
    scoring_pace: float
    is_endgame: bool

    # Strategic indicators
    can_block_leader: bool
    can_escape_bottom: bool
    should_dump: bool
    should_race: bool
    should_defend: bool
    audit_value_ratio: float
    score_gap: int
    volatility: float
    leader_score: int

    # Card counting
    aces_played: int
    kings_played: int
    queens_played: int

    def to_vector(self) -> np.ndarray:
        """All features as a float vector, in field order."""
        return np.array([float(getattr(self, f.name)) for f in fields(self)], dtype=np.float32)

    @classmethod
    def feature_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


def _recent_action(history: Sequence[TurnRecord], player_id: int) -> int:
    for record in reversed(history):
        if record.player_id == player_id:
            return RECENT_ACTION_CODES.get(record.action, 0)
    return 0


def extract_features(
    state: MatchState,
    player_id: int,
    history: Sequence[TurnRecord] = ()
) -> StateFeatures:
    """
    Extract the features of a match from one seat's point of view.

    Args:
        state: Current match state
        player_id: Seat whose view is extracted
        history: Recent turns, oldest first

    Returns:
        StateFeatures
    """
    player = state.get_player(player_id)
    opponents = state.opponents(player_id)
    hand = player.hand
    history = list(history)

    # Hand composition
    rank_counts = Counter(card.rank for card in hand)
    suit_counts = Counter(card.suit for card in hand)
    ranks = [card.rank for card in hand]
    highest_rank = max(ranks) if ranks else 0
    lowest_rank = min(ranks) if ranks else 0

    # Legal options
    legal = best_legal(hand)
    legal_type = legal.hand_type if legal else HandType.ILLEGAL
    has_trips_plus = legal_type in AUDIT_HAND_TYPES
    best_legal_raw = legal.raw if legal else 0

    # Illegal options
    safe = best_safe_illegal(hand)
    dump_raw = raw_value(hand)
    ticks = spike_ticks(dump_raw, state.audit_track, state.options.escalating)

    # Position (stable sort keeps seat order on ties)
    ranking = sorted(state.players, key=lambda p: -p.score)
    my_rank = next(i for i, p in enumerate(ranking) if p.id == player_id) + 1
    leader = ranking[0]
    last = ranking[-1]

    # Audit dynamics
    recent = history[-4:]
    momentum = sum(record.audit_ticks_added for record in recent)
    turns_until_external = max(0, math.ceil((MAX_AUDIT_TRACK - state.audit_track) / max(0.5, momentum)))
    last_audit_turns_ago = 99
    for offset, record in enumerate(reversed(history)):
        if record.action == "audit":
            last_audit_turns_ago = offset + 1
            break

    floor_crimes = [raw_value(opp.floor) for opp in opponents]
    highest_crime = max(floor_crimes + [0])
    crime_owner = -1
    for opp, crime in zip(opponents, floor_crimes):
        if crime == highest_crime:
            crime_owner = opp.id
            break
    my_crime = raw_value(player.floor)
    total_crime = sum(floor_crimes) + my_crime

    # Audit profitability
    audit_hand = find_audit_hand(hand)
    audit_cost = audit_hand.raw * AUDIT_COST_RATE if audit_hand else 0.0
    hanging = []
    for opp in opponents:
        if audit_hand is None:
            hanging.append(0.0)
        else:
            hanging.append(internal_fine(reorganize_greedy(opp.floor).leftover) - audit_cost)

    best_target = -1
    best_value = -999.0
    for opp, value in zip(opponents, hanging):
        if value > best_value:
            best_value = value
            best_target = opp.id
    if best_value <= -10:
        best_target = -1

    max_hanging = max([0.0] + hanging)
    total_hanging = sum(max(0.0, value) for value in hanging)

    # Game phase
    turn_number = state.turn_count
    estimated_turns_left = len(state.deck) // (CARDS_PER_DRAW * NUM_PLAYERS)
    if estimated_turns_left > 15:
        phase = 0
    elif estimated_turns_left > 8:
        phase = 1
    elif estimated_turns_left > 3:
        phase = 2
    else:
        phase = 3

    # Strategic indicators
    points_behind = max(0, leader.score - player.score)
    points_ahead = max(0, player.score - last.score)
    recent_changes = np.array([record.score_change for record in recent], dtype=np.float64)
    volatility = float(np.sqrt(np.mean(recent_changes ** 2))) if len(recent_changes) else 0.0

    floors = [card for p in state.players for card in p.floor]

    padded = list(opponents) + [None] * (NUM_PLAYERS - 1 - len(opponents))
    opp1, opp2, opp3 = padded[:3]

    def opp_value(opp, getter):
        return getter(opp) if opp is not None else 0

    return StateFeatures(
        hand_size=len(hand),
        num_pairs=sum(1 for count in rank_counts.values() if count == 2),
        num_trips=sum(1 for count in rank_counts.values() if count == 3),
        flush_draw=max(0, 5 - max(suit_counts.values(), default=0)),
        highest_rank=highest_rank,
        lowest_rank=lowest_rank,
        suit_diversity=len(suit_counts),
        has_ace=ACE in rank_counts,
        has_king=KING in rank_counts,

        has_legal=legal is not None,
        has_trips_plus=has_trips_plus,
        has_straight=legal_type in (HandType.STRAIGHT, HandType.STRAIGHT_FLUSH),
        has_flush=legal_type in (HandType.FLUSH, HandType.STRAIGHT_FLUSH),
        has_full_house=legal_type is HandType.FULL_HOUSE,
        best_legal_raw=best_legal_raw,
        best_legal_taxed=calculate_taxed_value(best_legal_raw) if legal else 0,
        num_legal_options=len(legal_candidates(hand)),

        best_safe_raw=safe.raw,
        best_dump_raw=dump_raw,
        would_trigger_external=state.audit_track + ticks >= MAX_AUDIT_TRACK,
        ticks_would_add=ticks,
        kickback_amount=KICKBACK if dump_raw >= SPIKE_THRESHOLD else 0,

        my_score=player.score,
        my_score_rank=my_rank,
        points_behind_leader=points_behind,
        points_ahead_of_last=points_ahead,
        my_floor_crime=my_crime,
        my_floor_card_count=len(player.floor),
        my_production_count=len(player.floor_groups),

        opp1_score=opp_value(opp1, lambda o: o.score),
        opp1_floor_crime=opp_value(opp1, lambda o: raw_value(o.floor)),
        opp1_hand_size=opp_value(opp1, lambda o: len(o.hand)),
        opp1_recent_action=opp_value(opp1, lambda o: _recent_action(history, o.id)),
        opp2_score=opp_value(opp2, lambda o: o.score),
        opp2_floor_crime=opp_value(opp2, lambda o: raw_value(o.floor)),
        opp2_hand_size=opp_value(opp2, lambda o: len(o.hand)),
        opp2_recent_action=opp_value(opp2, lambda o: _recent_action(history, o.id)),
        opp3_score=opp_value(opp3, lambda o: o.score),
        opp3_floor_crime=opp_value(opp3, lambda o: raw_value(o.floor)),
        opp3_hand_size=opp_value(opp3, lambda o: len(o.hand)),
        opp3_recent_action=opp_value(opp3, lambda o: _recent_action(history, o.id)),

        audit_track=state.audit_track,
        audit_momentum=momentum,
        turns_until_external=turns_until_external,
        last_audit_turns_ago=last_audit_turns_ago,
        highest_crime_floor=highest_crime,
        crime_floor_owner=crime_owner,
        total_table_crime=total_crime,
        external_risk=min(1.0, state.audit_track / MAX_AUDIT_TRACK),

        has_valid_audit_hand=audit_hand is not None,
        my_audit_hand_value=calculate_taxed_value(audit_hand.raw) if audit_hand else 0,
        my_vulnerability=internal_fine(reorganize_greedy(player.floor).leftover),
        opp1_hanging_value=hanging[0] if len(hanging) > 0 else 0.0,
        opp2_hanging_value=hanging[1] if len(hanging) > 1 else 0.0,
        opp3_hanging_value=hanging[2] if len(hanging) > 2 else 0.0,
        best_audit_target=best_target,
        max_hanging_value=max_hanging,
        total_hanging_value=total_hanging,
        audit_profit_ratio=max_hanging / audit_cost if audit_cost > 0 else 0.0,

        turn_number=turn_number,
        deck_remaining=len(state.deck),
        estimated_turns_left=estimated_turns_left,
        game_phase=phase,
        scoring_pace=total_crime / turn_number if turn_number > 0 else 0.0,
        is_endgame=estimated_turns_left < 5,

        can_block_leader=has_trips_plus and leader.id != player_id and raw_value(leader.floor) >= 15,
        can_escape_bottom=my_rank == NUM_PLAYERS and best_legal_raw * AUDIT_COST_RATE > points_behind / 2,
        should_dump=len(hand) > 10 and not has_trips_plus,
        should_race=points_behind > 30 and estimated_turns_left < 10,
        should_defend=my_rank == 1 and points_ahead > 20,
        audit_value_ratio=my_crime / highest_crime if highest_crime > 0 else 1.0,
        score_gap=leader.score - last.score,
        volatility=volatility,
        leader_score=max(opp.score for opp in opponents) if opponents else 0,

        aces_played=sum(1 for card in floors if card.rank == ACE),
        kings_played=sum(1 for card in floors if card.rank == KING),
        queens_played=sum(1 for card in floors if card.rank == QUEEN),
    )


def discretize(value: float, buckets: Sequence[float]) -> int:
    """Index of the first bucket bound that `value` does not exceed (len(buckets) if none)."""
    return int(np.digitize(value, buckets, right=True))


def audit_roi(features: StateFeatures) -> float:
    """Best hanging value relative to the taxed value of the audit hand."""
    if features.has_valid_audit_hand and features.my_audit_hand_value > 0:
        return features.max_hanging_value / features.my_audit_hand_value
    return 0.0


def importance_signals(features: StateFeatures, reward: float) -> List[Tuple[str, float]]:
    """
    Strategic signals present in a state, each paired with the reward it is credited.

    Used to build a running picture of which situations precede high rewards.
    Triggering the external audit is always credited as a loss.
    """
    signals = []
    if features.has_trips_plus:
        signals.append(("has_trips_plus", reward))
    if features.has_valid_audit_hand:
        signals.append(("can_audit", reward))
    if features.would_trigger_external:
        signals.append(("would_trigger_external", -abs(reward)))
    if features.best_dump_raw >= SPIKE_THRESHOLD:
        signals.append(("has_spike_option", reward))
    if SAFE_RANGE_LOW <= features.best_safe_raw <= SPIKE_THRESHOLD - 1:
        signals.append(("optimal_safe_range", reward))
    if features.my_score_rank == 1:
        signals.append(("in_lead", reward))
    if features.points_behind_leader > 30:
        signals.append(("far_behind", reward * 0.5))
    if max(features.opp1_score, features.opp2_score, features.opp3_score) >= LEADER_NEAR_WIN:
        signals.append(("leader_near_win", reward * 2))
    if features.audit_track >= MAX_AUDIT_TRACK - 1:
        signals.append(("near_external", reward * 0.8))
    roi = audit_roi(features)
    if roi > 1:
        signals.append(("profitable_audit_roi", reward))
    elif roi < -0.5:
        signals.append(("lossy_audit_roi", reward * 0.5))
    return signals


def state_key(features: StateFeatures) -> str:
    """
    Bucket the decision-relevant features into a Q-table key.

    The key has 25 parts joined with '-', covering position, hand quality,
    audit dynamics, opponents and game phase.
    """
    def b(flag: bool) -> int:
        return 1 if flag else 0

    near_external = 0
    if features.audit_track >= 4:
        near_external += 1
    if features.audit_track >= 3:
        for crime in (features.opp1_floor_crime, features.opp2_floor_crime, features.opp3_floor_crime):
            if crime > SPIKE_THRESHOLD:
                near_external += 1

    parts = [
        # Position
        discretize(features.my_score, [100, 200]),
        features.my_score_rank,
        b(features.points_behind_leader > 30),
        b(features.leader_score >= LEADER_NEAR_WIN),

        # Hand quality
        b(features.has_legal),
        b(features.best_legal_raw > 30),
        b(features.has_trips_plus),
        b(features.best_safe_raw >= 20),
        b(features.best_dump_raw >= SPIKE_THRESHOLD),

        # Audit dynamics
        min(features.audit_track, 4),
        b(features.would_trigger_external),
        b(features.has_valid_audit_hand),
        discretize(audit_roi(features), [-1, 0, 1]),
        min(near_external, 3),
        discretize(features.my_floor_crime, [30]),

        # Opponents
        discretize(features.opp1_score, [100, 200]),
        discretize(features.opp1_floor_crime, [15, 30, 50]),
        discretize(features.opp2_score, [100, 200]),
        discretize(features.opp2_floor_crime, [15, 30, 50]),
        discretize(features.opp3_score, [100, 200]),
        discretize(features.opp3_floor_crime, [15, 30, 50]),
        features.best_audit_target,

        # Game context
        features.game_phase,
        b(features.is_endgame),
        b(features.can_block_leader),
    ]
    return "-".join(str(part) for part in parts)
