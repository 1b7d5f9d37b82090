"""
Reinforcement Learning package for Rheinhessen.

This package provides tabular Q-learning agents and their training loop:

1. Agent, reward and training configurations, with named agent variants
2. Feature extraction and the bucketed Q-table state key
3. QLearningAgent and the AgentRegistry that owns named agents
4. Self-play and mixed training episodes with TD updates

Agents plug into a match through `rheinhessen.personas.decide` (learner
seats) or directly through `QLearningAgent.register_with_game`.
"""

from rheinhessen.rl.config import (
    RewardWeights, AgentConfig, TrainingConfig,
    NAMED_AGENT_CONFIGS, AGENT_CONFIG_FAMILIES, DEFAULT_AGENT_NAMES, HEURISTIC_PERSONAS,
    get_agent_config, DEFAULT_AGENT_CONFIG, DEFAULT_TRAINING_CONFIG
)
from rheinhessen.rl.features import (
    TurnRecord, StateFeatures, extract_features, discretize, audit_roi, state_key
)
from rheinhessen.rl.agents import (
    LearnerAction, AgentStats, QLearningAgent, AgentRegistry,
    available_actions, heuristic_value, action_to_decision
)
from rheinhessen.rl.training import (
    EpisodeResult, TrainingSummary,
    set_seed, seat_learners, run_episode, train_agents
)


def create_agent(name="Balanced", config=None):
    """Create a Q-learning agent from a named or custom configuration."""
    return QLearningAgent(config or get_agent_config(name))


__all__ = [
    'RewardWeights', 'AgentConfig', 'TrainingConfig',
    'NAMED_AGENT_CONFIGS', 'AGENT_CONFIG_FAMILIES', 'DEFAULT_AGENT_NAMES', 'HEURISTIC_PERSONAS',
    'get_agent_config', 'DEFAULT_AGENT_CONFIG', 'DEFAULT_TRAINING_CONFIG',
    'TurnRecord', 'StateFeatures', 'extract_features', 'discretize', 'audit_roi', 'state_key',
    'LearnerAction', 'AgentStats', 'QLearningAgent', 'AgentRegistry',
    'available_actions', 'heuristic_value', 'action_to_decision',
    'EpisodeResult', 'TrainingSummary',
    'set_seed', 'seat_learners', 'run_episode', 'train_agents',
    'create_agent'
]
