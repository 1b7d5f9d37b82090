"""
Rheinhessen Core Package

This package contains the rules engine for Rheinhessen, including:
- Cards, the composite deck and the seeded shuffle
- Hand classification and hand search
- Scoring formulas
- Floor reorganization for audits
- Match state and the turn state machine

All core components can be imported directly from this package.
"""

# Match and match state
from rheinhessen.core.game import (
    Match, MatchState, MatchOptions, SeatSpec, DEFAULT_SEATS,
    TurnPhase, TurnOutcome, AuditRejection, EndCheck,
    create_match, start_turn, apply_production, apply_external_audit,
    check_audit_hand, apply_internal_audit, end_check, advance_turn, play_turn
)

# Players
from rheinhessen.core.player import Persona, PlayerState, PlayerStats

# Cards
from rheinhessen.core.cards import (
    Card, make_card, make_deck, shuffle_cards,
    card_value, raw_value, sort_cards, remove_cards, holds_all, format_cards
)

# Hands, scoring and audits
from rheinhessen.core.hands import (
    HandType, PlayOption, HandAnalysis, AUDIT_HAND_TYPES,
    is_legal_exact, get_hand_type, qualifies_for_audit,
    legal_candidates, best_legal, best_safe_illegal, find_audit_hand, analyze_hand
)
from rheinhessen.core.scoring import (
    ProductionResult, round_half_up, score_legal, score_illegal,
    calculate_taxed_value, spike_ticks
)
from rheinhessen.core.audits import (
    ReorganizeResult, reorganize_greedy, estimate_fine, internal_fine, external_fine
)

# Decisions
from rheinhessen.core.actions import ProductionKind, Production, AuditOrder, Decision

# Errors
from rheinhessen.core.errors import RheinhessenError, InvalidActionError

# Constants
from rheinhessen.core.constants import (
    Suit, NUM_PLAYERS, DECK_SIZE, HAND_SIZE, MAX_AUDIT_TRACK, TARGET_SCORE
)

__all__ = [
    # Match
    'Match', 'MatchState', 'MatchOptions', 'SeatSpec', 'DEFAULT_SEATS',
    'TurnPhase', 'TurnOutcome', 'AuditRejection', 'EndCheck',
    'create_match', 'start_turn', 'apply_production', 'apply_external_audit',
    'check_audit_hand', 'apply_internal_audit', 'end_check', 'advance_turn', 'play_turn',

    # Players
    'Persona', 'PlayerState', 'PlayerStats',

    # Cards
    'Card', 'make_card', 'make_deck', 'shuffle_cards',
    'card_value', 'raw_value', 'sort_cards', 'remove_cards', 'holds_all', 'format_cards',

    # Hands, scoring and audits
    'HandType', 'PlayOption', 'HandAnalysis', 'AUDIT_HAND_TYPES',
    'is_legal_exact', 'get_hand_type', 'qualifies_for_audit',
    'legal_candidates', 'best_legal', 'best_safe_illegal', 'find_audit_hand', 'analyze_hand',
    'ProductionResult', 'round_half_up', 'score_legal', 'score_illegal',
    'calculate_taxed_value', 'spike_ticks',
    'ReorganizeResult', 'reorganize_greedy', 'estimate_fine', 'internal_fine', 'external_fine',

    # Decisions
    'ProductionKind', 'Production', 'AuditOrder', 'Decision',

    # Errors
    'RheinhessenError', 'InvalidActionError',

    # Constants
    'Suit', 'NUM_PLAYERS', 'DECK_SIZE', 'HAND_SIZE', 'MAX_AUDIT_TRACK', 'TARGET_SCORE'
]
