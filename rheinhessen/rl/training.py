"""
Training loop for the Q-learning agents.

This module provides:

1. Seeding helpers for reproducible runs
2. run_episode, which plays one match with learners seated and applies the
   temporal-difference updates
3. train_agents, which runs many episodes with a progress bar and returns
   summary statistics

Learners are updated at their own next decision point, so the reward for an
action covers everything that happened until the seat acts again (including
audits by other seats). Pending updates are flushed as terminal updates when
the match ends.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging
import random

import numpy as np
from tqdm import tqdm

from rheinhessen.core.actions import Decision, ProductionKind
from rheinhessen.core.cards import raw_value
from rheinhessen.core.constants import NUM_PLAYERS
from rheinhessen.core.game import (
    MatchOptions, MatchState, SeatSpec, TurnPhase, create_match, play_turn, start_turn
)
from rheinhessen.core.player import Persona
from rheinhessen.core.scoring import spike_ticks
from rheinhessen.personas.dispatch import decide
from rheinhessen.rl.agents import AgentRegistry, LearnerAction, QLearningAgent, action_to_decision
from rheinhessen.rl.config import TrainingConfig

logger = logging.getLogger(__name__)


def set_seed(seed: int) -> None:
    """
    Set random seed for reproducibility.

    Args:
        seed: Random seed
    """
    random.seed(seed)
    np.random.seed(seed)


@dataclass
class EpisodeResult:
    """Outcome of one training match."""
    winner_id: int
    winner_name: str
    seat_names: List[str]
    scores: List[int]
    turns: int
    hit_turn_cap: bool = False
    rewards: Dict[str, float] = field(default_factory=dict)
    """Total reward collected per learner name"""

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


def _pick_names(rng: random.Random, names: Sequence[str], count: int) -> List[str]:
    if len(names) >= count:
        return rng.sample(list(names), count)
    return [names[idx % len(names)] for idx in range(count)]


def seat_learners(
    rng: random.Random,
    agent_names: Sequence[str],
    mode: str = "self-play",
    opponents: Sequence[str] = ("Aggro", "Opportunist")
) -> List[SeatSpec]:
    """
    Seat specifications for a training match, in shuffled seat order.

    Self-play seats four learners; mixed mode seats two learners and the two
    given personas.
    """
    if mode == "self-play":
        seats = [SeatSpec(name, Persona.LEARNER, name) for name in _pick_names(rng, agent_names, NUM_PLAYERS)]
    elif mode == "mixed":
        seats = [SeatSpec(name, Persona.LEARNER, name) for name in _pick_names(rng, agent_names, 2)]
        for value in opponents:
            persona = Persona(value)
            seats.append(SeatSpec(f"{persona.value} Bot", persona))
    else:
        raise ValueError(f"Unknown training mode: {mode}")

    rng.shuffle(seats)
    return seats


def _turn_label(decision: Decision, audit_accepted: bool) -> str:
    if decision.audit is not None and audit_accepted:
        return "audit"
    return decision.production.kind.value


def run_episode(
    registry: AgentRegistry,
    agent_names: Sequence[str],
    mode: str = "self-play",
    opponents: Sequence[str] = ("Aggro", "Opportunist"),
    seed: Optional[int] = None,
    max_turns: int = 200,
    target_score: int = 300
) -> EpisodeResult:
    """
    Play one training match and update every seated learner.

    Args:
        registry: Agents by name; missing names are created
        agent_names: Learners to choose the seats from
        mode: 'self-play' or 'mixed'
        opponents: Persona values seated in mixed mode
        seed: Seed for the deal, the seating and the first seat
        max_turns: Turn cap; at the cap the highest score wins
        target_score: Score that wins the match

    Returns:
        EpisodeResult
    """
    rng = random.Random(seed)
    seats = seat_learners(rng, agent_names, mode, opponents)
    options = MatchOptions(target_score=target_score, randomize_start=True)
    state = start_turn(create_match(seed, options, seats))

    learners: Dict[int, QLearningAgent] = {}
    for player in state.players:
        if player.persona is Persona.LEARNER:
            learners[player.id] = registry.get_or_create(player.agent_name)
    agents = list({id(agent): agent for agent in learners.values()}.values())
    for agent in agents:
        agent.start_game()

    rewards: Dict[str, float] = {agent.name: 0.0 for agent in agents}
    pending: Dict[int, Tuple[MatchState, LearnerAction]] = {}

    while not state.is_over and state.turn_count < max_turns:
        player_id = state.turn_idx
        agent = learners.get(player_id)

        if agent is not None:
            if player_id in pending:
                prev_state, prev_action = pending.pop(player_id)
                rewards[agent.name] += agent.learn(prev_state, prev_action, state, player_id)
            features = agent.features(state, player_id)
            action = agent.select_action(state, player_id, features)
            decision = action_to_decision(action, features, state, player_id)
            pending[player_id] = (state, action)
        else:
            decision = decide(state, player_id, registry)

        outcome = play_turn(state, decision)
        if not outcome.accepted:
            logger.warning("Seat %d's decision %s was rejected; passing instead", player_id, decision)
            decision = Decision.passing()
            outcome = play_turn(state, decision)
            if agent is not None:
                pending[player_id] = (state, LearnerAction.PASS)

        ticks = 0
        if decision.production.kind is ProductionKind.ILLEGAL:
            ticks = spike_ticks(raw_value(decision.production.cards), state.audit_track,
                                state.options.escalating)
        score_change = outcome.state.get_player(player_id).score - state.get_player(player_id).score
        label = _turn_label(decision, outcome.audit_rejection is None)
        for learner in agents:
            learner.record_turn(state.turn_count, player_id, label, score_change, ticks)

        state = outcome.state

    hit_turn_cap = not state.is_over
    if hit_turn_cap:
        # Stable max keeps the lowest seat on ties
        leader = max(state.players, key=lambda p: p.score)
        logger.debug("Turn cap of %d reached, %s wins on score", max_turns, leader.name)
        state = replace(state, winner_id=leader.id, phase=TurnPhase.MATCH_OVER)

    for player_id, (prev_state, prev_action) in pending.items():
        agent = learners[player_id]
        rewards[agent.name] += agent.learn(prev_state, prev_action, state, player_id)

    for player_id, agent in learners.items():
        agent.record_game(state, player_id)
    for agent in agents:
        agent.update_exploration()

    winner = state.get_player(state.winner_id)
    return EpisodeResult(
        winner_id=winner.id,
        winner_name=winner.agent_name or winner.name,
        seat_names=[p.agent_name or p.name for p in state.players],
        scores=state.scores,
        turns=state.turn_count,
        hit_turn_cap=hit_turn_cap,
        rewards=rewards,
    )


@dataclass
class TrainingSummary:
    """Statistics of a training run."""
    episodes: int
    wins: Dict[str, int]
    games: Dict[str, int]
    mean_scores: Dict[str, float]
    mean_rewards: Dict[str, float]
    mean_turns: float
    turn_cap_hits: int
    epsilons: Dict[str, float]
    state_counts: Dict[str, int]

    def win_rate(self, name: str) -> float:
        games = self.games.get(name, 0)
        return self.wins.get(name, 0) / games if games else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


def train_agents(
    config: TrainingConfig,
    registry: Optional[AgentRegistry] = None,
    progress: bool = True
) -> Tuple[AgentRegistry, TrainingSummary]:
    """
    Train agents over many episodes.

    Args:
        config: Training configuration
        registry: Agents to train (a new registry if None)
        progress: Whether to show a progress bar

    Returns:
        Tuple of (registry, training summary)
    """
    registry = registry if registry is not None else AgentRegistry()
    if config.seed is not None:
        set_seed(config.seed)
    episode_rng = random.Random(config.seed)

    for idx, name in enumerate(config.agent_names):
        agent = registry.get_or_create(name)
        if config.seed is not None and agent.config.seed is None:
            agent.reseed(config.seed * 1000 + idx)

    wins: Dict[str, int] = {}
    games: Dict[str, int] = {}
    scores: Dict[str, List[int]] = {}
    rewards: Dict[str, List[float]] = {}
    turns: List[int] = []
    cap_hits = 0

    pbar = tqdm(range(1, config.episodes + 1), desc=f"Training ({config.mode})", disable=not progress)
    for episode in pbar:
        seed = episode_rng.randrange(2 ** 31) if config.seed is not None else None
        result = run_episode(
            registry,
            config.agent_names,
            mode=config.mode,
            opponents=config.opponents,
            seed=seed,
            max_turns=config.max_turns,
            target_score=config.target_score,
        )

        for name, score in zip(result.seat_names, result.scores):
            games[name] = games.get(name, 0) + 1
            scores.setdefault(name, []).append(score)
        wins[result.winner_name] = wins.get(result.winner_name, 0) + 1
        for name, reward in result.rewards.items():
            rewards.setdefault(name, []).append(reward)
        turns.append(result.turns)
        cap_hits += int(result.hit_turn_cap)

        pbar.set_postfix({
            "winner": result.winner_name,
            "turns": result.turns,
            "mean_turns": f"{np.mean(turns):.1f}",
        })

        if config.save_dir and config.save_interval > 0 and episode % config.save_interval == 0:
            registry.save(config.save_dir)

    pbar.close()

    if config.save_dir:
        saved = registry.save(config.save_dir)
        logger.info("Saved %d agents to %s", len(saved), config.save_dir)

    summary = TrainingSummary(
        episodes=config.episodes,
        wins=wins,
        games=games,
        mean_scores={name: float(np.mean(values)) for name, values in scores.items()},
        mean_rewards={name: float(np.mean(values)) for name, values in rewards.items()},
        mean_turns=float(np.mean(turns)) if turns else 0.0,
        turn_cap_hits=cap_hits,
        epsilons={agent.name: agent.epsilon for agent in registry},
        state_counts={agent.name: len(agent.q_table) for agent in registry},
    )
    return registry, summary
