"""
Decision dispatch by persona.

Every non-human seat gets its decisions from the policy registered for its
persona. Learner seats look their agent up by name in an explicit registry
owned by the caller; without one they fall back to the Balanced persona so
the match can always continue.
"""
from typing import Any, Callable, Dict, Optional
import logging

from rheinhessen.core.actions import Decision
from rheinhessen.core.game import Match, MatchState
from rheinhessen.core.player import Persona
from rheinhessen.personas.heuristics import (
    decide_aggressive, decide_balanced, decide_conservative, decide_opportunist
)

logger = logging.getLogger(__name__)

PersonaPolicy = Callable[[MatchState, int], Decision]

PERSONA_POLICIES: Dict[Persona, PersonaPolicy] = {
    Persona.AGGRESSIVE: decide_aggressive,
    Persona.BALANCED: decide_balanced,
    Persona.CONSERVATIVE: decide_conservative,
    Persona.OPPORTUNIST: decide_opportunist,
}

# Used for learner seats when no agent can be found
FALLBACK_POLICY: PersonaPolicy = decide_balanced


def decide(state: MatchState, player_id: int, registry: Optional[Any] = None) -> Decision:
    """
    Get the decision for a seat from its persona.

    Args:
        state: Current match state
        player_id: Seat to decide for
        registry: Agent registry (anything with `get_or_create(name)`)
            used for learner seats

    Returns:
        Decision; human seats always get a pass
    """
    player = state.get_player(player_id)

    if player.persona is Persona.HUMAN:
        return Decision.passing()

    if player.persona is Persona.LEARNER:
        if registry is None:
            logger.warning("No agent registry for learner seat %d (%s); using Balanced",
                           player_id, player.agent_name)
            return FALLBACK_POLICY(state, player_id)
        agent = registry.get_or_create(player.agent_name)
        return agent.choose_action(state, player_id)

    return PERSONA_POLICIES[player.persona](state, player_id)


def persona_callback(registry: Optional[Any] = None) -> PersonaPolicy:
    """Decision callback suitable for `Match.register_agent`."""
    def callback(state: MatchState, player_id: int) -> Decision:
        return decide(state, player_id, registry)
    return callback


def seat_personas(match: Match, registry: Optional[Any] = None) -> None:
    """Register persona decisions for every AI seat of a match."""
    callback = persona_callback(registry)
    for player in match.state.players:
        if player.persona.is_ai:
            match.register_agent(player.id, callback)
