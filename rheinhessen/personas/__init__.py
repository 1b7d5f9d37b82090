"""
Heuristic personas and decision dispatch for Rheinhessen.
"""

from rheinhessen.personas.heuristics import (
    AUDIT_COST_RATE, AuditOpportunity,
    decide_aggressive, decide_balanced, decide_conservative, decide_opportunist,
    find_best_audit_target, find_audit_opportunity, max_opponent_score
)
from rheinhessen.personas.dispatch import (
    PERSONA_POLICIES, FALLBACK_POLICY, PersonaPolicy,
    decide, persona_callback, seat_personas
)

__all__ = [
    'AUDIT_COST_RATE', 'AuditOpportunity',
    'decide_aggressive', 'decide_balanced', 'decide_conservative', 'decide_opportunist',
    'find_best_audit_target', 'find_audit_opportunity', 'max_opponent_score',
    'PERSONA_POLICIES', 'FALLBACK_POLICY', 'PersonaPolicy',
    'decide', 'persona_callback', 'seat_personas'
]
