"""
Configuration classes for the Q-learning agents.

This module provides dataclasses for the shaped reward weights, the agent
hyperparameters and the training process. Each configuration class includes
validation and sensible defaults, plus the table of named agent variants.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Persona values that may be seated as training opponents
HEURISTIC_PERSONAS = ["Aggro", "Balanced", "Conservative", "Opportunist"]


@dataclass
class RewardWeights:
    """
    Weights of the shaped reward.

    Positive values reward, negative values punish. With `sparse` set, only
    the end of the match is rewarded (`win_game` or `lose_game`).
    """
    # Core scoring
    point_gain: float = 1.0
    """Reward per point gained between decisions"""

    win_game: float = 300.0
    """Reward for winning the match"""

    lose_game: float = 0.0
    """Reward for losing (used by sparse reward schemes)"""

    # Final position
    position_2nd: float = 50.0
    position_3rd: float = 10.0
    position_4th: float = 0.0

    lead_maintenance: float = 0.5
    """Reward per point of lead while in first place"""

    # Audit track management
    cause_external: float = -50.0
    """Penalty for filling the audit track"""

    avoid_external: float = 10.0
    """Reward for playing legal while the track is high"""

    spike: float = -5.0
    """Reward per audit tick added"""

    optimal_safe: float = 20.0
    """Reward for illegal plays in the 20-26 raw range"""

    # Internal audits
    successful_audit: float = 60.0
    block_leader_audit: float = 80.0
    prevent_win: float = 100.0
    holding_audit_cards: float = 15.0
    profitable_roi: float = 30.0

    # Hand management
    clean_production: float = 5.0
    strategic_pass: float = 8.0
    mega_hand_bonus: float = 25.0
    hand_building: float = 12.0

    sparse: bool = False
    """Only reward the end of the match"""

    def to_dict(self) -> Dict[str, Any]:
        """Convert the weights to a dictionary."""
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RewardWeights':
        """Create weights from a dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class AgentConfig:
    """
    Configuration for a tabular Q-learning agent.
    """
    name: str = "Learner"
    """Display name, also the registry key"""

    epsilon: float = 0.3
    """Initial exploration rate"""

    alpha: float = 0.15
    """Learning rate"""

    gamma: float = 0.97
    """Discount factor for future rewards"""

    epsilon_floor: float = 0.05
    """Lowest exploration rate reached by decay"""

    epsilon_decay: float = 0.995
    """Per-episode geometric decay of the exploration rate"""

    max_states: int = 20000
    """Q-table capacity in states"""

    eviction_fraction: float = 0.05
    """Share of least recently used states dropped when the table is full"""

    history_size: int = 100
    """Number of recent turns remembered for opponent modelling"""

    seed: Optional[int] = None
    """Seed for exploration randomness"""

    rewards: RewardWeights = field(default_factory=RewardWeights)
    """Shaped reward weights"""

    def __post_init__(self):
        """Validate configuration parameters."""
        if not self.name:
            raise ValueError("name must not be empty")

        if not 0 <= self.epsilon <= 1:
            raise ValueError("epsilon must be in [0, 1]")

        if not 0 <= self.epsilon_floor <= 1:
            raise ValueError("epsilon_floor must be in [0, 1]")

        if self.alpha <= 0 or self.alpha > 1:
            raise ValueError("alpha must be in (0, 1]")

        if self.gamma < 0 or self.gamma > 1:
            raise ValueError("gamma must be in [0, 1]")

        if self.epsilon_decay <= 0 or self.epsilon_decay > 1:
            raise ValueError("epsilon_decay must be in (0, 1]")

        if self.max_states <= 0:
            raise ValueError("max_states must be positive")

        if not 0 < self.eviction_fraction <= 1:
            raise ValueError("eviction_fraction must be in (0, 1]")

        if self.history_size <= 0:
            raise ValueError("history_size must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        data = {k: v for k, v in self.__dict__.items() if k != "rewards"}
        data["rewards"] = self.rewards.to_dict()
        return data

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'AgentConfig':
        """Create configuration from dictionary."""
        data = {k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__}
        if isinstance(data.get("rewards"), dict):
            data["rewards"] = RewardWeights.from_dict(data["rewards"])
        return cls(**data)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'AgentConfig':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)


def _explorer(name: str) -> AgentConfig:
    return AgentConfig(name=name, epsilon=0.4, alpha=0.15, gamma=0.92,
                       rewards=RewardWeights(point_gain=0.8, win_game=80, successful_audit=30))


def _conservative(name: str) -> AgentConfig:
    return AgentConfig(name=name, epsilon=0.2, alpha=0.1, gamma=0.97,
                       rewards=RewardWeights(point_gain=1.2, spike=-10, cause_external=-40))


def _balanced(name: str) -> AgentConfig:
    return AgentConfig(name=name, epsilon=0.3, alpha=0.12, gamma=0.95)


def _aggressive(name: str) -> AgentConfig:
    return AgentConfig(name=name, epsilon=0.25, alpha=0.18, gamma=0.90,
                       rewards=RewardWeights(point_gain=1.5, win_game=150, position_2nd=30, spike=2))


def _warzone(name: str) -> AgentConfig:
    return AgentConfig(name=name, epsilon=0.95, gamma=0.95)


def _pure_warzone(name: str) -> AgentConfig:
    return AgentConfig(name=name, epsilon=1.0, alpha=0.1, gamma=0.98,
                       rewards=RewardWeights(win_game=1000, lose_game=-1000, sparse=True))


# Named agent variants
NAMED_AGENT_CONFIGS: Dict[str, Callable[[str], AgentConfig]] = {
    "Explorer": _explorer,
    "Conservative": _conservative,
    "Balanced": _balanced,
    "Aggressive": _aggressive,
}

# Families recognised by name prefix, e.g. "Warzone-3"
AGENT_CONFIG_FAMILIES: Dict[str, Callable[[str], AgentConfig]] = {
    "PureWarzone": _pure_warzone,
    "Warzone": _warzone,
}

DEFAULT_AGENT_NAMES: List[str] = ["Explorer", "Conservative", "Balanced", "Aggressive"]


def get_agent_config(name: str) -> AgentConfig:
    """
    Look up the configuration for a named agent.

    Exact names are tried first, then the `PureWarzone-*` and `Warzone-*`
    families. Anything else gets the Balanced configuration under the
    requested name.

    Args:
        name: Agent name

    Returns:
        AgentConfig carrying `name`
    """
    if name in NAMED_AGENT_CONFIGS:
        return NAMED_AGENT_CONFIGS[name](name)

    for prefix, builder in AGENT_CONFIG_FAMILIES.items():
        if name.startswith(prefix):
            return builder(name)

    logger.warning("No config found for agent %r, using the Balanced defaults", name)
    return _balanced(name)


@dataclass
class TrainingConfig:
    """
    Configuration for the training process.
    """
    episodes: int = 100
    """Number of matches to play"""

    max_turns: int = 200
    """Turn cap per match; the leader wins when it is hit"""

    mode: str = "self-play"
    """'self-play' (four learners) or 'mixed' (two learners, two personas)"""

    agent_names: List[str] = field(default_factory=lambda: list(DEFAULT_AGENT_NAMES))
    """Learners taking part"""

    opponents: List[str] = field(default_factory=lambda: ["Aggro", "Opportunist"])
    """Persona values seated in mixed mode"""

    target_score: int = 300
    """Score that wins a match"""

    seed: Optional[int] = None
    """Random seed for reproducibility"""

    save_interval: int = 0
    """How often to save agent knowledge (in episodes, 0 = only at the end)"""

    save_dir: Optional[str] = None
    """Directory for saved agent knowledge (None disables saving)"""

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.episodes <= 0:
            raise ValueError("episodes must be positive")

        if self.max_turns <= 0:
            raise ValueError("max_turns must be positive")

        if self.mode not in ["self-play", "mixed"]:
            raise ValueError("mode must be one of: self-play, mixed")

        if not self.agent_names:
            raise ValueError("agent_names must not be empty")

        if self.mode == "mixed" and len(self.opponents) != 2:
            raise ValueError("mixed mode needs exactly two persona opponents")

        unknown = [name for name in self.opponents if name not in HEURISTIC_PERSONAS]
        if unknown:
            raise ValueError(f"opponents must be heuristic personas ({HEURISTIC_PERSONAS}), got {unknown}")

        if self.save_interval < 0:
            raise ValueError("save_interval must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {k: v for k, v in self.__dict__.items()}

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'TrainingConfig':
        """Create configuration from dictionary."""
        return cls(**{k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__})


# Default configurations
DEFAULT_AGENT_CONFIG = AgentConfig()
DEFAULT_TRAINING_CONFIG = TrainingConfig()
