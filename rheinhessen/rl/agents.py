"""
Tabular Q-learning agents for Rheinhessen.

This module provides:

1. LearnerAction, the small closed action set of the learning agents
2. QLearningAgent, an epsilon-greedy agent over a bucketed state key with
   shaped rewards and one-step temporal-difference updates
3. AgentRegistry, an explicit name -> agent map owned by the caller

Agents can be saved and loaded as JSON knowledge records that restore their
decision behaviour exactly.
"""
from collections import OrderedDict, deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Tuple, Union
import json
import logging
import random

import numpy as np

from rheinhessen.core.actions import AuditOrder, Decision, Production
from rheinhessen.core.cards import raw_value
from rheinhessen.core.constants import MAX_AUDIT_TRACK, SAFE_ILLEGAL_MAX, SPIKE_THRESHOLD
from rheinhessen.core.game import Match, MatchState
from rheinhessen.core.hands import analyze_hand, best_legal, best_safe_illegal, find_audit_hand
from rheinhessen.core.scoring import calculate_taxed_value
from rheinhessen.rl.config import AgentConfig, get_agent_config
from rheinhessen.rl.features import (
    LEADER_NEAR_WIN, StateFeatures, TurnRecord, audit_roi, extract_features, importance_signals,
    state_key
)

logger = logging.getLogger(__name__)

# Raw value from which a legal play is worth taking
MIN_LEGAL_RAW = 15

# Rewards above this feed the feature importance statistics
IMPORTANCE_MIN_REWARD = 10

# Observations a signal needs before it is reported
IMPORTANCE_MIN_COUNT = 10

# Lower bound of the preferred safe illegal range
MIN_SAFE_RAW = 20


class LearnerAction(Enum):
    """Actions available to a learning agent, in tie-break order."""
    PLAY_LEGAL = "play-legal"
    PLAY_SAFE = "play-safe"
    PLAY_DUMP = "play-dump"
    AUDIT_HIGHEST = "audit-highest"
    PASS = "pass"


ACTION_ORDER: Dict[LearnerAction, int] = {action: idx for idx, action in enumerate(LearnerAction)}


def available_actions(features: StateFeatures, state: MatchState, player_id: int) -> List[LearnerAction]:
    """
    Actions the agent may pick in a state. Never empty.

    Args:
        features: Features of `state` for `player_id`
        state: Current match state
        player_id: Deciding seat

    Returns:
        Available actions, in LearnerAction order
    """
    actions = []

    if features.has_legal and features.best_legal_raw > MIN_LEGAL_RAW:
        actions.append(LearnerAction.PLAY_LEGAL)

    if MIN_SAFE_RAW <= features.best_safe_raw <= SAFE_ILLEGAL_MAX and not features.would_trigger_external:
        actions.append(LearnerAction.PLAY_SAFE)

    desperate = features.points_behind_leader > 50 and features.is_endgame
    if (features.best_dump_raw >= SPIKE_THRESHOLD
            and (desperate or features.audit_track <= 2)
            and not features.would_trigger_external):
        actions.append(LearnerAction.PLAY_DUMP)

    if features.has_valid_audit_hand and any(opp.floor for opp in state.opponents(player_id)):
        actions.append(LearnerAction.AUDIT_HIGHEST)

    weak_hand = features.hand_size <= 4 and not features.has_legal
    building = features.num_pairs == 1 and features.hand_size < 8
    if weak_hand or building or (not features.has_legal and features.best_safe_raw < 15):
        actions.append(LearnerAction.PASS)

    if not actions:
        actions.append(LearnerAction.PASS)
    return actions


def heuristic_value(action: LearnerAction, features: StateFeatures, state: MatchState,
                    player_id: int) -> float:
    """Expected immediate value of an action, used to break ties between equal Q-values."""
    if action is LearnerAction.PLAY_LEGAL:
        return float(calculate_taxed_value(features.best_legal_raw)) if features.has_legal else 0.0
    if action in (LearnerAction.PLAY_SAFE, LearnerAction.PLAY_DUMP):
        analysis = analyze_hand(state.get_player(player_id).hand, state.audit_track,
                                state.options.escalating)
        if action is LearnerAction.PLAY_SAFE:
            return float(analysis.safe_points)
        return float(analysis.dump_points)
    if action is LearnerAction.AUDIT_HIGHEST:
        return features.max_hanging_value
    return 0.0


def action_to_decision(action: LearnerAction, features: StateFeatures, state: MatchState,
                       player_id: int) -> Decision:
    """
    Turn a learner action into a concrete decision.

    Audits target the most profitable opponent, or the opponent with the most
    crime on their floor when no audit looks profitable, and are paired with
    a pass. Actions that cannot be carried out become a pass.
    """
    hand = state.get_player(player_id).hand

    if action is LearnerAction.PLAY_LEGAL:
        legal = best_legal(hand)
        if legal is not None:
            return Decision(Production.legal(legal.cards))

    elif action is LearnerAction.PLAY_SAFE:
        safe = best_safe_illegal(hand)
        if safe.cards:
            return Decision(Production.illegal(safe.cards))

    elif action is LearnerAction.PLAY_DUMP:
        if hand:
            return Decision(Production.illegal(hand))

    elif action is LearnerAction.AUDIT_HIGHEST:
        audit_hand = find_audit_hand(hand)
        target = features.best_audit_target
        if target < 0:
            candidates = [opp for opp in state.opponents(player_id) if opp.floor]
            if candidates:
                target = max(candidates, key=lambda opp: raw_value(opp.floor)).id
        if audit_hand is not None and target >= 0:
            return Decision.passing(AuditOrder(target_id=target, cards=audit_hand.cards))

    return Decision.passing()


def _final_position(state: MatchState, player_id: int) -> int:
    ranking = sorted(state.players, key=lambda p: -p.score)
    return next(idx for idx, p in enumerate(ranking) if p.id == player_id) + 1


def _rng_state_to_list(rng: random.Random) -> List[Any]:
    version, internal, gauss_next = rng.getstate()
    return [version, list(internal), gauss_next]


def _rng_state_from_list(data: List[Any]) -> Tuple[Any, ...]:
    version, internal, gauss_next = data
    return (version, tuple(internal), gauss_next)


@dataclass
class AgentStats:
    """Training statistics of an agent."""
    games_played: int = 0
    games_won: int = 0
    total_score: int = 0
    episodes_completed: int = 0

    @property
    def avg_score(self) -> float:
        return self.total_score / self.games_played if self.games_played else 0.0

    @property
    def win_rate(self) -> float:
        return self.games_won / self.games_played if self.games_played else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games_played": self.games_played,
            "games_won": self.games_won,
            "total_score": self.total_score,
            "avg_score": self.avg_score,
            "win_rate": self.win_rate,
            "episodes_completed": self.episodes_completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentStats':
        return cls(
            games_played=data.get("games_played", 0),
            games_won=data.get("games_won", 0),
            total_score=data.get("total_score", 0),
            episodes_completed=data.get("episodes_completed", 0),
        )


class QLearningAgent:
    """
    Epsilon-greedy tabular Q-learning agent.

    The Q-table maps a bucketed state key to a value per LearnerAction. It is
    kept in least-recently-used order and trimmed when it reaches the
    configured capacity.
    """

    def __init__(self, config: Optional[AgentConfig] = None):
        """
        Initialize the agent.

        Args:
            config: Agent configuration (defaults to AgentConfig())
        """
        self.config = config or AgentConfig()
        self.q_table: 'OrderedDict[str, Dict[str, float]]' = OrderedDict()
        self.epsilon = self.config.epsilon
        self.stats = AgentStats()
        self.history: Deque[TurnRecord] = deque(maxlen=self.config.history_size)
        self.rng = random.Random(self.config.seed)
        self._previous_action: Dict[int, LearnerAction] = {}
        self.feature_rewards: Dict[str, float] = {}
        self.feature_counts: Dict[str, int] = {}

    @property
    def name(self) -> str:
        return self.config.name

    # Q-table access

    def get_q(self, key: str, action: LearnerAction) -> float:
        """Stored value of an action in a state (0 when unknown)."""
        values = self.q_table.get(key)
        if values is None:
            return 0.0
        self.q_table.move_to_end(key)
        return values.get(action.value, 0.0)

    def set_q(self, key: str, action: LearnerAction, value: float) -> None:
        """Store the value of an action, evicting old states if the table is full."""
        if key not in self.q_table:
            if len(self.q_table) >= self.config.max_states:
                self._evict()
            self.q_table[key] = {}
        self.q_table.move_to_end(key)
        self.q_table[key][action.value] = value

    def _evict(self) -> None:
        count = max(1, int(self.config.max_states * self.config.eviction_fraction))
        for _ in range(min(count, len(self.q_table))):
            self.q_table.popitem(last=False)
        logger.debug("%s evicted %d states from its Q-table", self.name, count)

    # Acting

    def features(self, state: MatchState, player_id: int) -> StateFeatures:
        return extract_features(state, player_id, self.history)

    def select_action(self, state: MatchState, player_id: int,
                      features: Optional[StateFeatures] = None) -> LearnerAction:
        """
        Pick an action for a seat.

        With probability epsilon a uniformly random available action is
        taken. Otherwise the action with the highest Q-value wins, ties going
        to the higher heuristic value and then to the earlier action.

        Args:
            state: Current match state (the seat has drawn)
            player_id: Deciding seat
            features: Precomputed features of `state`, if available

        Returns:
            Selected action
        """
        features = features or self.features(state, player_id)
        actions = available_actions(features, state, player_id)

        if self.rng.random() < self.epsilon:
            return self.rng.choice(actions)

        key = state_key(features)

        def rank(action: LearnerAction) -> Tuple[float, float, int]:
            return (
                self.get_q(key, action),
                heuristic_value(action, features, state, player_id),
                -ACTION_ORDER[action],
            )

        return max(actions, key=rank)

    def choose_action(self, state: MatchState, player_id: int) -> Decision:
        """Pick an action and turn it into a Decision."""
        features = self.features(state, player_id)
        action = self.select_action(state, player_id, features)
        return action_to_decision(action, features, state, player_id)

    def get_action_callback(self) -> Callable[[MatchState, int], Decision]:
        """Decision callback suitable for `Match.register_agent`."""
        return self.choose_action

    def register_with_game(self, match: Match, player_id: int) -> None:
        match.register_agent(player_id, self.get_action_callback())

    # Learning

    def compute_reward(self, prev_state: MatchState, action: LearnerAction,
                       new_state: MatchState, player_id: int,
                       prev_features: Optional[StateFeatures] = None) -> float:
        """
        Shaped reward for the step from `prev_state` to `new_state`.

        Args:
            prev_state: State in which the action was chosen
            action: Action taken
            new_state: State at the seat's next decision point, or the final state
            player_id: Acting seat
            prev_features: Features of `prev_state`, if already computed

        Returns:
            Reward
        """
        weights = self.config.rewards
        prev = prev_features or self.features(prev_state, player_id)
        me_before = prev_state.get_player(player_id)
        me_after = new_state.get_player(player_id)
        gain = me_after.score - me_before.score

        if weights.sparse:
            if not new_state.is_over:
                return 0.0
            return weights.win_game if new_state.winner_id == player_id else weights.lose_game

        reward = weights.point_gain * gain

        own_ticks = prev.ticks_would_add if action is LearnerAction.PLAY_DUMP else 0
        if own_ticks > 0 and prev.audit_track + own_ticks >= MAX_AUDIT_TRACK:
            reward += weights.cause_external
        elif prev.audit_track >= 3 and action is LearnerAction.PLAY_LEGAL:
            reward += weights.avoid_external
        reward += weights.spike * own_ticks

        if action is LearnerAction.PLAY_LEGAL:
            reward += weights.clean_production
            if gain > 0 and (prev.has_full_house or prev.has_flush or prev.has_straight):
                reward += weights.mega_hand_bonus

        if action is LearnerAction.PLAY_SAFE and MIN_SAFE_RAW <= prev.best_safe_raw <= SAFE_ILLEGAL_MAX:
            reward += weights.optimal_safe

        best_opponent = max(opp.score for opp in new_state.opponents(player_id))
        if me_after.score > best_opponent:
            reward += weights.lead_maintenance * (me_after.score - best_opponent)

        if action is LearnerAction.PASS and (prev.hand_size <= 3 or not prev.has_legal):
            reward += weights.strategic_pass

        if (action is not LearnerAction.PASS and gain > 20
                and self._previous_action.get(player_id) is LearnerAction.PASS):
            reward += weights.hand_building

        if action in (LearnerAction.PASS, LearnerAction.PLAY_SAFE):
            held = find_audit_hand(me_after.hand)
            if held is not None and calculate_taxed_value(held.raw) <= 15:
                reward += weights.holding_audit_cards

        if action is LearnerAction.AUDIT_HIGHEST and gain > 10:
            reward += weights.successful_audit
            if audit_roi(prev) > 1:
                reward += weights.profitable_roi
            leader = max(prev_state.players, key=lambda p: p.score)
            if leader.id != player_id and leader.id == prev.best_audit_target:
                reward += weights.block_leader_audit
                if leader.score >= LEADER_NEAR_WIN:
                    reward += weights.prevent_win

        if new_state.is_over:
            if new_state.winner_id == player_id:
                reward += weights.win_game
            else:
                position = _final_position(new_state, player_id)
                reward += {2: weights.position_2nd, 3: weights.position_3rd}.get(position, weights.position_4th)

        return reward

    def learn(self, prev_state: MatchState, action: LearnerAction, new_state: MatchState,
              player_id: int) -> float:
        """
        One-step temporal-difference update for an action taken in `prev_state`.

        Args:
            prev_state: State in which the action was chosen
            action: Action taken
            new_state: State at the seat's next decision point, or the final state
            player_id: Acting seat

        Returns:
            The reward used for the update
        """
        prev_features = self.features(prev_state, player_id)
        reward = self.compute_reward(prev_state, action, new_state, player_id, prev_features)
        if reward > IMPORTANCE_MIN_REWARD:
            self.track_feature_importance(prev_features, reward)
        key = state_key(prev_features)
        current = self.get_q(key, action)

        if new_state.is_over:
            target = reward
        else:
            next_features = self.features(new_state, player_id)
            next_key = state_key(next_features)
            best_next = 0.0
            for next_action in available_actions(next_features, new_state, player_id):
                best_next = max(best_next, self.get_q(next_key, next_action))
            target = reward + self.config.gamma * best_next

        self.set_q(key, action, current + self.config.alpha * (target - current))
        self._previous_action[player_id] = action
        return reward

    def track_feature_importance(self, features: StateFeatures, reward: float) -> None:
        """Fold a reward into the running mean of every signal present in `features`."""
        for name, credit in importance_signals(features, reward):
            count = self.feature_counts.get(name, 0)
            mean = self.feature_rewards.get(name, 0.0)
            self.feature_rewards[name] = (mean * count + credit) / (count + 1)
            self.feature_counts[name] = count + 1

    def get_feature_importance(self, min_count: int = IMPORTANCE_MIN_COUNT) -> List[Tuple[str, float]]:
        """Signals seen more than `min_count` times, by mean credited reward, highest first."""
        ranked = [
            (name, mean) for name, mean in self.feature_rewards.items()
            if self.feature_counts.get(name, 0) > min_count
        ]
        return sorted(ranked, key=lambda item: -item[1])

    # Episode bookkeeping

    def start_game(self) -> None:
        """Forget the turn history of the previous match."""
        self.history.clear()
        self._previous_action.clear()

    def record_turn(self, turn_number: int, player_id: int, action: str,
                    score_change: int, audit_ticks_added: int) -> None:
        """Remember a turn played by any seat."""
        self.history.append(TurnRecord(turn_number, player_id, action, score_change, audit_ticks_added))

    def record_game(self, state: MatchState, player_id: int) -> None:
        """Add a finished match to the statistics."""
        self.stats.games_played += 1
        self.stats.total_score += state.get_player(player_id).score
        if state.winner_id == player_id:
            self.stats.games_won += 1

    def update_exploration(self) -> float:
        """Count a completed episode and decay epsilon toward its floor."""
        self.stats.episodes_completed += 1
        self.epsilon = max(
            self.config.epsilon_floor,
            self.config.epsilon * self.config.epsilon_decay ** self.stats.episodes_completed
        )
        return self.epsilon

    def reseed(self, seed: int) -> None:
        """Restart the exploration randomness from `seed`."""
        self.rng = random.Random(seed)

    def reset(self) -> None:
        """Forget everything learned."""
        self.q_table.clear()
        self.epsilon = self.config.epsilon
        self.stats = AgentStats()
        self.rng = random.Random(self.config.seed)
        self.feature_rewards.clear()
        self.feature_counts.clear()
        self.start_game()

    # Knowledge

    def insights(self) -> List[str]:
        """Human-readable summary of what the agent has learned."""
        lines = [
            f"{self.name}: {len(self.q_table)} states learned, epsilon {self.epsilon:.3f}",
            f"Games: {self.stats.games_played}, wins: {self.stats.games_won} "
            f"({self.stats.win_rate:.1%}), average score: {self.stats.avg_score:.1f}",
        ]
        if not self.q_table:
            return lines

        preferred = {action: 0 for action in LearnerAction}
        for values in self.q_table.values():
            if values:
                best = max(values, key=values.get)
                preferred[LearnerAction(best)] += 1

        for action in LearnerAction:
            values = [v[action.value] for v in self.q_table.values() if action.value in v]
            if not values:
                continue
            lines.append(
                f"  {action.value}: preferred in {preferred[action]} states, "
                f"mean Q {np.mean(values):.2f}, max Q {np.max(values):.2f}"
            )

        top = self.get_feature_importance()[:5]
        if top:
            lines.append("Signals before high rewards:")
            lines.extend(f"  {name}: {mean:+.1f}" for name, mean in top)
        return lines

    def export_knowledge(self) -> Dict[str, Any]:
        """Serializable record of everything the agent learned plus its configuration and exploration state."""
        return {
            "q_table": {key: dict(values) for key, values in self.q_table.items()},
            "epsilon": self.epsilon,
            "stats": self.stats.to_dict(),
            "config": self.config.to_dict(),
            "rng_state": _rng_state_to_list(self.rng),
            "feature_importance": {
                name: {"mean": mean, "count": self.feature_counts[name]}
                for name, mean in self.feature_rewards.items()
            },
            "metadata": {"state_count": len(self.q_table)},
        }

    def import_knowledge(self, knowledge: Dict[str, Any]) -> None:
        """Restore a record written by `export_knowledge`."""
        if "config" in knowledge:
            self.config = AgentConfig.from_dict(knowledge["config"])
            self.history = deque(self.history, maxlen=self.config.history_size)
        self.q_table = OrderedDict(
            (key, {action: float(value) for action, value in values.items()})
            for key, values in knowledge.get("q_table", {}).items()
        )
        self.epsilon = knowledge.get("epsilon", self.config.epsilon)
        self.stats = AgentStats.from_dict(knowledge.get("stats", {}))
        self.rng = random.Random(self.config.seed)
        if knowledge.get("rng_state") is not None:
            self.rng.setstate(_rng_state_from_list(knowledge["rng_state"]))
        importance = knowledge.get("feature_importance", {})
        self.feature_rewards = {name: float(entry["mean"]) for name, entry in importance.items()}
        self.feature_counts = {name: int(entry["count"]) for name, entry in importance.items()}
        logger.info("%s imported %d states", self.name, len(self.q_table))

    def save(self, path: Union[str, Path]) -> None:
        """Save the agent's knowledge to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.export_knowledge(), f)

    def load(self, path: Union[str, Path]) -> None:
        """Load knowledge from a JSON file written by `save`."""
        with open(path, 'r') as f:
            self.import_knowledge(json.load(f))

    @classmethod
    def from_knowledge(cls, knowledge: Dict[str, Any]) -> 'QLearningAgent':
        agent = cls(AgentConfig.from_dict(knowledge["config"]) if "config" in knowledge else None)
        agent.import_knowledge(knowledge)
        return agent

    def __repr__(self) -> str:
        return f"QLearningAgent(name={self.name!r}, states={len(self.q_table)}, epsilon={self.epsilon:.3f})"


class AgentRegistry:
    """
    Named learning agents, owned by whoever runs training or play.

    Unknown names are created on demand from the named configurations,
    falling back to the Balanced configuration.
    """

    def __init__(self, agents: Optional[List[QLearningAgent]] = None):
        self._agents: Dict[str, QLearningAgent] = {}
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: QLearningAgent) -> None:
        self._agents[agent.name] = agent

    def get(self, name: str) -> Optional[QLearningAgent]:
        return self._agents.get(name)

    def get_or_create(self, name: str) -> QLearningAgent:
        """Return the agent called `name`, creating it if needed."""
        agent = self._agents.get(name)
        if agent is None:
            agent = QLearningAgent(get_agent_config(name))
            self._agents[name] = agent
            logger.debug("Created agent %s", name)
        return agent

    def names(self) -> List[str]:
        return list(self._agents)

    def export_all(self) -> Dict[str, Dict[str, Any]]:
        return {name: agent.export_knowledge() for name, agent in self._agents.items()}

    def import_all(self, knowledge: Dict[str, Dict[str, Any]]) -> None:
        for name, record in knowledge.items():
            self.get_or_create(name).import_knowledge(record)

    def save(self, directory: Union[str, Path]) -> List[Path]:
        """Save every agent to `<directory>/<name>.json`."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for name, agent in self._agents.items():
            path = directory / f"{name}.json"
            agent.save(path)
            paths.append(path)
        return paths

    def load(self, directory: Union[str, Path]) -> List[str]:
        """Load every `*.json` knowledge file in `directory`."""
        loaded = []
        for path in sorted(Path(directory).glob("*.json")):
            agent = self.get_or_create(path.stem)
            agent.load(path)
            loaded.append(path.stem)
        return loaded

    def __contains__(self, name: str) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[QLearningAgent]:
        return iter(self._agents.values())
