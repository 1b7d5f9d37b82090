"""
Match state and flow management for Rheinhessen.

This module defines the rules engine:
- MatchOptions: Per-match settings (target score, escalation, dealing)
- MatchState: Immutable snapshot of a whole match
- Pure turn operations: create_match, start_turn, apply_production,
  apply_internal_audit, apply_external_audit, end_check, advance_turn and
  play_turn, each returning a new state (or None for a rejected action)
- Match: Stateful manager that seats decision callbacks and runs turns

A turn is: draw, optional internal audit, production, end check, advance.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple
import json
import logging
import random

from rheinhessen.core.constants import (
    NUM_PLAYERS, HAND_SIZE, CARDS_PER_DRAW, DECK_SIZE, MAX_AUDIT_TRACK,
    TARGET_SCORE, EXTERNAL_TRIGGER_PENALTY, INTERNAL_AUDIT_MIN_TAXED
)
from rheinhessen.core.cards import (
    Card, make_deck, shuffle_cards, raw_value, holds_all, remove_cards, format_cards
)
from rheinhessen.core.hands import AUDIT_HAND_TYPES, is_legal_exact, get_hand_type, find_audit_hand
from rheinhessen.core.scoring import score_legal, score_illegal, calculate_taxed_value
from rheinhessen.core.audits import reorganize_greedy, internal_fine, external_fine
from rheinhessen.core.player import Persona, PlayerState
from rheinhessen.core.actions import Decision, Production, ProductionKind
from rheinhessen.core.errors import InvalidActionError

logger = logging.getLogger(__name__)


class TurnPhase(Enum):
    """Where the current seat is within its turn."""
    AWAITING_DRAW = "awaiting-draw"
    AWAITING_ACTION = "awaiting-action"
    MATCH_OVER = "match-over"


class AuditRejection(Enum):
    """Reasons an internal audit is refused."""
    INVALID_TARGET = "invalid-target"
    NO_QUALIFYING_HAND = "no-qualifying-hand"
    NOT_LEGAL = "not-legal"
    BELOW_TRIPS = "below-trips"
    TAXED_TOO_LOW = "taxed-too-low"
    CARDS_NOT_HELD = "cards-not-held"


@dataclass(frozen=True)
class MatchOptions:
    """Settings fixed for the whole match."""
    target_score: int = TARGET_SCORE
    """Score that wins the match immediately."""

    escalating: bool = True
    """Whether big spikes add two audit ticks once the track is high."""

    randomize_start: bool = False
    """Pick the first seat at random (seeded) instead of seat 0."""

    hand_size: int = HAND_SIZE
    """Cards dealt to each seat at the start."""

    def __post_init__(self):
        """Validate the options."""
        if self.target_score <= 0:
            raise ValueError(f"Target score ({self.target_score}) must be positive")
        if self.hand_size < 0 or self.hand_size * NUM_PLAYERS > DECK_SIZE:
            raise ValueError(f"Hand size ({self.hand_size}) cannot be dealt from a {DECK_SIZE}-card deck")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_score": self.target_score,
            "escalating": self.escalating,
            "randomize_start": self.randomize_start,
            "hand_size": self.hand_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MatchOptions:
        return cls(**data)


@dataclass(frozen=True)
class SeatSpec:
    """Name and decision source for a seat at match creation."""
    name: str
    persona: Persona
    agent_name: Optional[str] = None


DEFAULT_SEATS: Tuple[SeatSpec, ...] = (
    SeatSpec("You", Persona.HUMAN),
    SeatSpec("Aggro Bot", Persona.AGGRESSIVE),
    SeatSpec("Balanced Bot", Persona.BALANCED),
    SeatSpec("Conservative Bot", Persona.CONSERVATIVE),
)


@dataclass(frozen=True)
class MatchState:
    """
    Complete, immutable representation of a match.

    Every card of the composite deck is in exactly one place: a hand, a
    floor, the deck, the discard pile (spent on internal audits) or the
    confiscated pile (leftover removed by audits).
    """
    players: Tuple[PlayerState, ...]
    deck: Tuple[Card, ...]
    discard: Tuple[Card, ...] = ()
    confiscated: Tuple[Card, ...] = ()
    audit_track: int = 0
    turn_idx: int = 0
    end_round_seat: Optional[int] = None  # Seat that completes the final lap after deck-out
    winner_id: Optional[int] = None
    options: MatchOptions = field(default_factory=MatchOptions)
    phase: TurnPhase = TurnPhase.AWAITING_DRAW
    turn_count: int = 0
    external_audits: int = 0  # External audits run so far

    @property
    def current_player(self) -> PlayerState:
        return self.players[self.turn_idx]

    @property
    def is_over(self) -> bool:
        return self.winner_id is not None

    @property
    def scores(self) -> List[int]:
        return [player.score for player in self.players]

    def get_player(self, player_id: int) -> PlayerState:
        return self.players[player_id]

    def opponents(self, player_id: int) -> List[PlayerState]:
        return [player for player in self.players if player.id != player_id]

    def with_player(self, player: PlayerState) -> MatchState:
        """Return a copy with one player state swapped in."""
        players = tuple(player if p.id == player.id else p for p in self.players)
        return replace(self, players=players)

    def all_cards(self) -> List[Card]:
        """Every card in the match, wherever it is."""
        cards: List[Card] = list(self.deck) + list(self.discard) + list(self.confiscated)
        for player in self.players:
            cards.extend(player.hand)
            cards.extend(player.floor)
        return cards

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the match state to a dictionary for serialization.

        Returns:
            Dictionary representation of the match state
        """
        return {
            "players": [player.to_dict() for player in self.players],
            "deck": [card.to_dict() for card in self.deck],
            "discard": [card.to_dict() for card in self.discard],
            "confiscated": [card.to_dict() for card in self.confiscated],
            "audit_track": self.audit_track,
            "turn_idx": self.turn_idx,
            "end_round_seat": self.end_round_seat,
            "winner_id": self.winner_id,
            "options": self.options.to_dict(),
            "phase": self.phase.value,
            "turn_count": self.turn_count,
            "external_audits": self.external_audits,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MatchState:
        """
        Create a match state from a dictionary representation.

        Args:
            data: Dictionary produced by `to_dict`

        Returns:
            MatchState object
        """
        return cls(
            players=tuple(PlayerState.from_dict(p) for p in data["players"]),
            deck=tuple(Card.from_dict(c) for c in data["deck"]),
            discard=tuple(Card.from_dict(c) for c in data["discard"]),
            confiscated=tuple(Card.from_dict(c) for c in data.get("confiscated", [])),
            audit_track=data["audit_track"],
            turn_idx=data["turn_idx"],
            end_round_seat=data.get("end_round_seat"),
            winner_id=data.get("winner_id"),
            options=MatchOptions.from_dict(data["options"]),
            phase=TurnPhase(data.get("phase", TurnPhase.AWAITING_DRAW.value)),
            turn_count=data.get("turn_count", 0),
            external_audits=data.get("external_audits", 0),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> MatchState:
        return cls.from_dict(json.loads(json_str))


def create_match(
    seed: Optional[Any] = None,
    options: Optional[MatchOptions] = None,
    seats: Optional[Sequence[SeatSpec]] = None
) -> MatchState:
    """
    Create a new match with a freshly shuffled deck and dealt hands.

    Args:
        seed: Shuffle seed; the same seed always deals the same match
        options: Match options (defaults to MatchOptions())
        seats: Four seat specifications (defaults to DEFAULT_SEATS)

    Returns:
        Initial MatchState, awaiting the first draw
    """
    options = options or MatchOptions()
    seats = tuple(seats) if seats is not None else DEFAULT_SEATS
    if len(seats) != NUM_PLAYERS:
        raise ValueError(f"A match needs exactly {NUM_PLAYERS} seats, got {len(seats)}")

    deck = shuffle_cards(make_deck(), seed)

    players = []
    for seat_id, seat in enumerate(seats):
        start = seat_id * options.hand_size
        players.append(PlayerState(
            id=seat_id,
            name=seat.name,
            persona=seat.persona,
            agent_name=seat.agent_name,
            hand=tuple(deck[start:start + options.hand_size]),
        ))

    turn_idx = 0
    if options.randomize_start:
        turn_idx = random.Random(seed).randrange(NUM_PLAYERS)

    return MatchState(
        players=tuple(players),
        deck=tuple(deck[NUM_PLAYERS * options.hand_size:]),
        turn_idx=turn_idx,
        options=options,
    )


def start_turn(state: MatchState) -> MatchState:
    """
    Draw for the current seat.

    Two cards are drawn from the head of the deck. If fewer than two remain
    nothing is drawn, and the first time this happens the seat three turns
    ahead (the one before the current seat) is recorded as the last seat to
    play.
    """
    if state.is_over or state.phase is not TurnPhase.AWAITING_DRAW:
        return state

    if len(state.deck) >= CARDS_PER_DRAW:
        drawn = state.deck[:CARDS_PER_DRAW]
        player = state.current_player
        state = state.with_player(player.with_hand(player.hand + drawn))
        state = replace(state, deck=state.deck[CARDS_PER_DRAW:])
    elif state.end_round_seat is None:
        end_seat = (state.turn_idx + NUM_PLAYERS - 1) % NUM_PLAYERS
        logger.info("Deck exhausted; final lap ends at seat %d", end_seat)
        state = replace(state, end_round_seat=end_seat)

    return replace(state, phase=TurnPhase.AWAITING_ACTION)


def apply_production(
    state: MatchState,
    player_id: int,
    production: Production
) -> Optional[MatchState]:
    """
    Apply a production for a player.

    Args:
        state: Current match state
        player_id: Seat producing
        production: What to produce

    Returns:
        New state, or None if the cards are not all held or a legal claim is
        not an exactly legal hand
    """
    if production.kind is ProductionKind.PASS:
        return state

    player = state.get_player(player_id)
    cards = production.cards
    if not holds_all(player.hand, cards):
        logger.debug("Seat %d tried to produce cards it does not hold", player_id)
        return None

    raw = raw_value(cards)

    if production.kind is ProductionKind.LEGAL:
        if not is_legal_exact(cards):
            logger.debug("Seat %d claimed an illegal group as legal: %s", player_id, format_cards(cards))
            return None
        stats = replace(player.stats, legal=player.stats.legal + 1)
        return state.with_player(player.produce(cards, score_legal(raw), stats))

    result = score_illegal(raw, state.audit_track, state.options.escalating)
    stats = replace(
        player.stats,
        illegal=player.stats.illegal + 1,
        spikes=player.stats.spikes + (1 if result.is_spike else 0),
    )
    state = state.with_player(player.produce(cards, result.points, stats))

    if result.ticks_added:
        track = min(state.audit_track + result.ticks_added, MAX_AUDIT_TRACK)
        state = replace(state, audit_track=track)
        if track >= MAX_AUDIT_TRACK:
            return apply_external_audit(state, player_id)

    return state


def apply_external_audit(state: MatchState, trigger_id: int) -> MatchState:
    """
    Run an external audit across every floor.

    Each floor is reorganized; each player loses twice the raw value of their
    leftover (the trigger also loses a flat penalty), with scores clamped at
    zero. Leftover cards leave the game and the audit track resets.

    Args:
        state: Current match state
        trigger_id: Seat whose production filled the track

    Returns:
        New state
    """
    players = []
    confiscated = list(state.confiscated)

    for player in state.players:
        reorganized = reorganize_greedy(player.floor)
        fine = external_fine(reorganized.leftover)
        if player.id == trigger_id:
            fine += EXTERNAL_TRIGGER_PENALTY
        players.append(replace(
            player,
            floor=reorganized.kept,
            floor_groups=reorganized.groups,
            score=max(0, player.score - fine),
        ))
        confiscated.extend(reorganized.leftover)

    logger.info("External audit triggered by seat %d; %d cards confiscated",
                trigger_id, len(confiscated) - len(state.confiscated))

    return replace(
        state,
        players=tuple(players),
        confiscated=tuple(confiscated),
        audit_track=0,
        external_audits=state.external_audits + 1,
    )


def check_audit_hand(
    state: MatchState,
    accuser_id: int,
    target_id: int,
    cards: Sequence[Card] = ()
) -> Optional[AuditRejection]:
    """
    Check whether an internal audit would be accepted.

    With no cards, the accuser's hand is searched for a qualifying group.

    Returns:
        None if the audit is allowed, otherwise the reason it is refused
    """
    if target_id == accuser_id or not 0 <= target_id < len(state.players):
        return AuditRejection.INVALID_TARGET

    if not cards:
        if find_audit_hand(state.get_player(accuser_id).hand) is None:
            return AuditRejection.NO_QUALIFYING_HAND
        return None

    if not is_legal_exact(cards):
        return AuditRejection.NOT_LEGAL
    if get_hand_type(cards) not in AUDIT_HAND_TYPES:
        return AuditRejection.BELOW_TRIPS
    if calculate_taxed_value(raw_value(cards)) < INTERNAL_AUDIT_MIN_TAXED:
        return AuditRejection.TAXED_TOO_LOW
    if not holds_all(state.get_player(accuser_id).hand, cards):
        return AuditRejection.CARDS_NOT_HELD
    return None


def apply_internal_audit(
    state: MatchState,
    accuser_id: int,
    target_id: int,
    cards: Sequence[Card] = ()
) -> Optional[MatchState]:
    """
    Spend a qualifying hand to audit one opponent's floor.

    The spent cards go to the discard pile. The target's floor is
    reorganized, its leftover is confiscated, and 1.5 times the leftover raw
    value moves from the target's score to the accuser's.

    Args:
        state: Current match state
        accuser_id: Seat performing the audit
        target_id: Seat being audited
        cards: Cards to spend; empty lets the engine pick the cheapest
            qualifying group from the accuser's hand

    Returns:
        New state, or None if the audit is refused (state is untouched)
    """
    rejection = check_audit_hand(state, accuser_id, target_id, cards)
    if rejection is not None:
        logger.debug("Internal audit by seat %d on seat %d refused: %s",
                     accuser_id, target_id, rejection.value)
        return None

    accuser = state.get_player(accuser_id)
    target = state.get_player(target_id)
    if not cards:
        cards = find_audit_hand(accuser.hand).cards
    spent = tuple(cards)

    reorganized = reorganize_greedy(target.floor)
    fine = internal_fine(reorganized.leftover)

    accuser = replace(
        accuser,
        hand=remove_cards(accuser.hand, spent),
        score=accuser.score + fine,
        stats=replace(accuser.stats, internals_done=accuser.stats.internals_done + 1),
    )
    target = replace(
        target,
        floor=reorganized.kept,
        floor_groups=reorganized.groups,
        score=target.score - fine,
        stats=replace(target.stats, internals_received=target.stats.internals_received + 1),
    )

    logger.debug("Seat %d audited seat %d for %d points", accuser_id, target_id, fine)

    state = state.with_player(accuser).with_player(target)
    return replace(
        state,
        discard=state.discard + spent,
        confiscated=state.confiscated + reorganized.leftover,
    )


class EndCheck(NamedTuple):
    """Result of an end-of-turn check."""
    over: bool
    winner_id: Optional[int] = None


def end_check(state: MatchState) -> EndCheck:
    """
    Check whether the match has ended.

    The first seat (in seat order) at or above the target score wins. Failing
    that, once the recorded end-of-round seat has played, the highest score
    wins, ties going to the lowest seat.
    """
    for player in state.players:
        if player.score >= state.options.target_score:
            return EndCheck(True, player.id)

    if state.end_round_seat is not None and state.turn_idx == state.end_round_seat:
        leader = max(state.players, key=lambda p: p.score)
        return EndCheck(True, leader.id)

    return EndCheck(False)


def advance_turn(state: MatchState) -> MatchState:
    """Pass the turn to the next seat."""
    return replace(
        state,
        turn_idx=(state.turn_idx + 1) % NUM_PLAYERS,
        turn_count=state.turn_count + 1,
        phase=TurnPhase.AWAITING_DRAW,
    )


@dataclass(frozen=True)
class TurnOutcome:
    """
    Result of playing one decision.

    When `accepted` is False the production was refused and `state` is the
    unchanged input state. A refused audit alone does not stop the
    production; it is reported in `audit_rejection`.
    """
    state: MatchState
    decision: Decision
    accepted: bool = True
    audit_rejection: Optional[AuditRejection] = None
    points: int = 0
    external_audit: bool = False
    events: Tuple[str, ...] = ()


def play_turn(state: MatchState, decision: Decision) -> TurnOutcome:
    """
    Resolve the current seat's decision and move on to the next turn.

    Order: internal audit (if any), production, end check, then either the
    winner is recorded or the turn advances and the next seat draws.

    Args:
        state: Match state with the current seat awaiting its action
        decision: The current seat's decision

    Returns:
        TurnOutcome
    """
    if state.is_over:
        return TurnOutcome(state=state, decision=decision, accepted=False)

    start = start_turn(state)
    player_id = start.turn_idx
    name = start.current_player.name
    events: List[str] = []
    audit_rejection = None
    current = start

    if decision.audit is not None:
        audited = apply_internal_audit(current, player_id, decision.audit.target_id, decision.audit.cards)
        if audited is None:
            audit_rejection = check_audit_hand(current, player_id, decision.audit.target_id,
                                               decision.audit.cards)
            events.append(f"{name}'s audit was rejected ({audit_rejection.value})")
        else:
            gained = audited.get_player(player_id).score - current.get_player(player_id).score
            target_name = audited.get_player(decision.audit.target_id).name
            events.append(f"{name} audited {target_name} for {gained} points")
            current = audited

    before = current
    produced = apply_production(current, player_id, decision.production)
    if produced is None:
        return TurnOutcome(
            state=state,
            decision=decision,
            accepted=False,
            events=(f"{name}'s {decision.production.kind.value} production was rejected",),
        )
    current = produced

    points = current.get_player(player_id).score - before.get_player(player_id).score
    external = current.external_audits > before.external_audits
    if decision.production.kind is ProductionKind.PASS:
        events.append(f"{name} passed")
    else:
        events.append(f"{name} played {decision.production} for {points} points")
    if external:
        events.append(f"External audit triggered by {name}")

    result = end_check(current)
    if result.over:
        winner = current.get_player(result.winner_id)
        logger.info("Match over after %d turns: %s wins with %d", current.turn_count + 1,
                    winner.name, winner.score)
        events.append(f"{winner.name} wins with {winner.score} points")
        current = replace(current, winner_id=result.winner_id, phase=TurnPhase.MATCH_OVER,
                          turn_count=current.turn_count + 1)
    else:
        current = start_turn(advance_turn(current))

    return TurnOutcome(
        state=current,
        decision=decision,
        accepted=True,
        audit_rejection=audit_rejection,
        points=points,
        external_audit=external,
        events=tuple(events),
    )


DecisionCallback = Callable[[MatchState, int], Decision]


class Match:
    """
    Manager for match flow.

    Holds the current MatchState, the decision callbacks for each seat, the
    history of states and a readable turn log.
    """
    def __init__(
        self,
        seed: Optional[Any] = None,
        options: Optional[MatchOptions] = None,
        seats: Optional[Sequence[SeatSpec]] = None
    ):
        """
        Initialize a new match.

        Args:
            seed: Shuffle seed for reproducibility
            options: Match options
            seats: Seat specifications (defaults to DEFAULT_SEATS)
        """
        self.seed = seed
        self.options = options or MatchOptions()
        self.seats = tuple(seats) if seats is not None else DEFAULT_SEATS
        self.agent_callbacks: Dict[int, DecisionCallback] = {}
        self.reset()

    def reset(self) -> MatchState:
        """Deal a new match with the same seed, options and seats."""
        self.state = start_turn(create_match(self.seed, self.options, self.seats))
        self.history: List[MatchState] = [self.state]
        self.turn_log: List[str] = []
        return self.state

    def register_agent(self, player_id: int, agent_callback: DecisionCallback) -> None:
        """
        Register a decision source for a seat.

        The callback takes the match state and the seat id and returns a
        Decision.
        """
        self.agent_callbacks[player_id] = agent_callback

    def step(self, decision: Optional[Decision] = None) -> Tuple[MatchState, bool]:
        """
        Play one turn.

        If no decision is given, the current seat's registered callback is
        asked for one.

        Returns:
            Tuple of (new match state, whether the match is over)

        Raises:
            InvalidActionError: If no decision is available or it is rejected
        """
        if self.state.is_over:
            return self.state, True

        player_id = self.state.turn_idx
        if decision is None:
            callback = self.agent_callbacks.get(player_id)
            if callback is None:
                raise InvalidActionError(f"No decision given and no agent registered for seat {player_id}",
                                         player_id)
            decision = callback(self.state, player_id)

        outcome = play_turn(self.state, decision)
        if not outcome.accepted:
            raise InvalidActionError(f"Decision rejected for seat {player_id}: {decision}", player_id)

        self.turn_log.extend(outcome.events)
        self.state = outcome.state
        self.history.append(self.state)
        return self.state, self.state.is_over

    def run(self, max_turns: int = 200) -> MatchState:
        """
        Run the match until it ends or `max_turns` turns have been played.

        Every seat needs a registered callback.
        """
        for seat_id in range(NUM_PLAYERS):
            if seat_id not in self.agent_callbacks:
                raise InvalidActionError(f"No agent registered for seat {seat_id}", seat_id)

        while not self.state.is_over and self.state.turn_count < max_turns:
            self.step()

        return self.state

    def get_winner(self) -> Optional[int]:
        return self.state.winner_id

    def get_scores(self) -> List[int]:
        return self.state.scores

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get statistics about the match.

        Returns:
            Dictionary of match statistics
        """
        stats: Dict[str, Any] = {
            "turns": self.state.turn_count,
            "audit_track": self.state.audit_track,
            "deck_remaining": len(self.state.deck),
            "confiscated": len(self.state.confiscated),
        }
        if self.state.is_over:
            winner = self.state.get_player(self.state.winner_id)
            stats["winner"] = winner.id
            stats["winner_name"] = winner.name
            stats["winner_score"] = winner.score
        for player in self.state.players:
            stats[f"player_{player.id}_score"] = player.score
            for key, value in player.stats.to_dict().items():
                stats[f"player_{player.id}_{key}"] = value
        return stats

    def save(self, filename: str) -> None:
        """Save the current match state to a JSON file."""
        with open(filename, 'w') as f:
            f.write(self.state.to_json())

    @classmethod
    def load(cls, filename: str) -> Match:
        """Load a match from a JSON file written by `save`."""
        with open(filename, 'r') as f:
            state = MatchState.from_json(f.read())
        match = cls(options=state.options, seats=[
            SeatSpec(p.name, p.persona, p.agent_name) for p in state.players
        ])
        match.state = state
        match.history = [state]
        return match

    def __str__(self) -> str:
        state = self.state
        result = f"Rheinhessen Match (Turn: {state.turn_count}, Audit track: {state.audit_track}/{MAX_AUDIT_TRACK}, " \
                 f"Deck: {len(state.deck)})\n"
        for player in state.players:
            marker = " <" if player.id == state.turn_idx and not state.is_over else ""
            result += f"  {player}{marker}\n"
            if player.floor:
                result += f"    Floor: {format_cards(player.floor)}\n"
        if state.is_over:
            winner = state.get_player(state.winner_id)
            result += f"Winner: {winner.name} with {winner.score} points\n"
        return result
