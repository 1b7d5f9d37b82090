#!/usr/bin/env python
"""
Tests for the heuristic personas and decision dispatch.
"""
import unittest
from collections import Counter
from dataclasses import replace

from rheinhessen.core.actions import Decision, ProductionKind
from rheinhessen.core.cards import make_card
from rheinhessen.core.game import (
    Match, SeatSpec, TurnPhase, create_match, play_turn
)
from rheinhessen.core.hands import analyze_hand, is_legal_exact
from rheinhessen.core.player import Persona
from rheinhessen.personas import (
    decide, decide_aggressive, decide_balanced, decide_conservative, decide_opportunist,
    find_audit_opportunity, find_best_audit_target, seat_personas
)

RANK_CODES = {"J": 11, "Q": 12, "K": 13, "A": 14}

AI_SEATS = (
    SeatSpec("Aggro Bot", Persona.AGGRESSIVE),
    SeatSpec("Balanced Bot", Persona.BALANCED),
    SeatSpec("Conservative Bot", Persona.CONSERVATIVE),
    SeatSpec("Opportunist Bot", Persona.OPPORTUNIST),
)


def cards(*labels):
    """Build cards from labels like '7S' or 'QH'; repeated labels get new deck indices."""
    seen = Counter()
    result = []
    for label in labels:
        rank_part, suit = label[:-1], label[-1]
        rank = RANK_CODES.get(rank_part) or int(rank_part)
        result.append(make_card(rank, suit, seen[label]))
        seen[label] += 1
    return result


def make_state(hands=None, floors=None, scores=None, seats=None, **changes):
    """A hand-built match state with seat 0 to act."""
    hands = hands or {}
    floors = floors or {}
    scores = scores or {}
    state = create_match(seed=11, seats=seats)
    players = tuple(
        replace(
            player,
            hand=tuple(hands.get(player.id, ())),
            floor=tuple(floors.get(player.id, ())),
            score=scores.get(player.id, 0),
        )
        for player in state.players
    )
    changes.setdefault("phase", TurnPhase.AWAITING_ACTION)
    return replace(state, players=players, **changes)


class StubAgent:
    def __init__(self):
        self.calls = []

    def choose_action(self, state, player_id):
        self.calls.append(player_id)
        return Decision.passing()


class StubRegistry:
    def __init__(self):
        self.agent = StubAgent()
        self.requested = []

    def get_or_create(self, name):
        self.requested.append(name)
        return self.agent


class TestAuditTargeting(unittest.TestCase):
    """Test case for picking audit targets."""

    def test_best_target_has_largest_leftover(self):
        state = make_state(floors={
            1: cards("7S", "7H"),
            2: cards("2C", "9D"),
            3: cards("5C", "8D"),
        })
        self.assertEqual(find_best_audit_target(state, 0), 3)
        self.assertEqual(find_best_audit_target(state, 3), 2)

    def test_no_target_without_leftover(self):
        state = make_state(floors={1: cards("7S", "7H")})
        self.assertIsNone(find_best_audit_target(state, 0))
        self.assertIsNone(find_best_audit_target(make_state(), 0))

    def test_opportunity_needs_an_audit_hand(self):
        state = make_state(hands={0: cards("KS", "QH")}, floors={1: cards("10S", "9H", "AS")})
        analysis = analyze_hand(state.players[0].hand, state.audit_track)
        self.assertIsNone(find_audit_opportunity(state, 0, analysis))

    def test_opportunity_net(self):
        state = make_state(hands={0: cards("2S", "2H", "2D")}, floors={1: cards("10S", "9H", "AS")})
        analysis = analyze_hand(state.players[0].hand, state.audit_track)
        opportunity = find_audit_opportunity(state, 0, analysis)
        self.assertEqual(opportunity.target_id, 1)
        self.assertEqual(opportunity.fine, 30)
        self.assertAlmostEqual(opportunity.net, 30 - 6 * 0.7)


class TestPersonas(unittest.TestCase):
    """Test case for the individual persona policies."""

    def setUp(self):
        self.audit_state = make_state(
            hands={0: cards("2S", "2H", "2D")},
            floors={1: cards("10S", "9H", "AS")},
        )

    def test_aggressive_audits_profitable_floor(self):
        decision = decide_aggressive(self.audit_state, 0)
        self.assertIsNotNone(decision.audit)
        self.assertEqual(decision.audit.target_id, 1)
        self.assertEqual(decision.production.kind, ProductionKind.PASS)
        self.assertEqual(len(decision.audit.cards), 3)

    def test_opportunist_audits_profitable_floor(self):
        decision = decide_opportunist(self.audit_state, 0)
        self.assertIsNotNone(decision.audit)
        self.assertEqual(decision.audit.target_id, 1)

    def test_audit_decision_is_accepted(self):
        outcome = play_turn(self.audit_state, decide_aggressive(self.audit_state, 0))
        self.assertTrue(outcome.accepted)
        self.assertIsNone(outcome.audit_rejection)
        self.assertEqual(outcome.state.players[0].score, 45)  # round_half_up(1.5 * 30)

    def test_conservative_plays_legal_at_high_track(self):
        state = make_state(hands={0: cards("KS", "KH", "3D")}, audit_track=3)
        decision = decide_conservative(state, 0)
        self.assertEqual(decision.production.kind, ProductionKind.LEGAL)
        self.assertEqual([c.label for c in decision.production.cards], ["KS", "KH"])

    def test_balanced_plays_safe_without_legal(self):
        state = make_state(hands={0: cards("10S", "9H", "7D")})
        decision = decide_balanced(state, 0)
        self.assertEqual(decision.production.kind, ProductionKind.ILLEGAL)
        self.assertEqual(len(decision.production.cards), 3)
        self.assertIsNone(decision.audit)

    def test_empty_hand_passes(self):
        state = make_state()
        for policy in (decide_aggressive, decide_balanced, decide_conservative, decide_opportunist):
            with self.subTest(policy.__name__):
                self.assertTrue(policy(state, 0).is_pass)


class TestDispatch(unittest.TestCase):
    """Test case for persona dispatch."""

    def setUp(self):
        self.learner_seats = (
            SeatSpec("You", Persona.HUMAN),
            SeatSpec("Learner", Persona.LEARNER, "alpha"),
            SeatSpec("Balanced Bot", Persona.BALANCED),
            SeatSpec("Conservative Bot", Persona.CONSERVATIVE),
        )
        self.state = make_state(
            hands={0: cards("KS", "KH"), 1: cards("10S", "9H", "7D")},
            seats=self.learner_seats,
        )

    def test_human_seat_passes(self):
        self.assertTrue(decide(self.state, 0).is_pass)

    def test_learner_without_registry_falls_back(self):
        with self.assertLogs("rheinhessen.personas.dispatch", level="WARNING"):
            decision = decide(self.state, 1)
        self.assertEqual(decision, decide_balanced(self.state, 1))

    def test_learner_uses_registry(self):
        registry = StubRegistry()
        decision = decide(self.state, 1, registry)
        self.assertTrue(decision.is_pass)
        self.assertEqual(registry.requested, ["alpha"])
        self.assertEqual(registry.agent.calls, [1])

    def test_seat_personas_skips_human(self):
        match = Match(seed=2)
        seat_personas(match)
        self.assertEqual(sorted(match.agent_callbacks), [1, 2, 3])

    def test_persona_decisions_are_always_accepted(self):
        for seed in range(3):
            match = Match(seed=seed, seats=AI_SEATS)
            seat_personas(match)
            while not match.state.is_over and match.state.turn_count < 300:
                state = match.state
                decision = decide(state, state.turn_idx)
                if decision.production.kind is ProductionKind.LEGAL:
                    self.assertTrue(is_legal_exact(decision.production.cards))
                outcome = play_turn(state, decision)
                self.assertTrue(outcome.accepted)
                match.step(decision)
            self.assertTrue(match.state.is_over)


if __name__ == "__main__":
    unittest.main()
