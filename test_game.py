#!/usr/bin/env python
"""
Test script for the Rheinhessen match engine.

This script tests the turn state machine:
1. Match creation, dealing and the seeded first seat
2. Drawing and the deck-out end-of-round marker
3. Productions, spikes and the external audit cascade
4. Internal audits, accepted and rejected
5. End checks, the tie-break and full matches between personas
6. Serialization and the stateful Match wrapper
"""
import os
import random
import tempfile
import unittest
from collections import Counter
from dataclasses import replace

import rheinhessen
from rheinhessen.core.actions import AuditOrder, Decision, Production
from rheinhessen.core.cards import make_card
from rheinhessen.core.constants import DECK_SIZE, HAND_SIZE, MAX_AUDIT_TRACK, NUM_PLAYERS, TARGET_SCORE
from rheinhessen.core.errors import InvalidActionError
from rheinhessen.core.game import (
    AuditRejection, DEFAULT_SEATS, Match, MatchOptions, MatchState, SeatSpec, TurnPhase,
    apply_internal_audit, apply_production, check_audit_hand, create_match, end_check,
    play_turn, start_turn
)
from rheinhessen.core.player import Persona
from rheinhessen.core.scoring import score_legal
from rheinhessen.personas.dispatch import seat_personas

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


def make_state(hands=None, floors=None, scores=None, **changes):
    """
    A hand-built match state with seat 0 to act.

    Args:
        hands: Hands by seat (unlisted seats keep an empty hand)
        floors: Floors by seat
        scores: Scores by seat
        changes: Extra MatchState fields to replace
    """
    hands = hands or {}
    floors = floors or {}
    scores = scores or {}
    state = create_match(seed=7)
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


class TestMatchCreation(unittest.TestCase):
    """Test case for creating and dealing a match."""

    def test_deal(self):
        state = create_match(seed=1)
        self.assertEqual(len(state.players), NUM_PLAYERS)
        for player in state.players:
            self.assertEqual(len(player.hand), HAND_SIZE)
            self.assertEqual(player.score, 0)
        self.assertEqual(len(state.deck), DECK_SIZE - NUM_PLAYERS * HAND_SIZE)
        self.assertEqual(state.turn_idx, 0)
        self.assertEqual(state.phase, TurnPhase.AWAITING_DRAW)
        self.assertEqual([p.persona for p in state.players], [s.persona for s in DEFAULT_SEATS])

    def test_same_seed_same_deal(self):
        self.assertEqual(create_match(seed=5), create_match(seed=5))
        self.assertNotEqual(create_match(seed=5).deck, create_match(seed=6).deck)

    def test_randomized_first_seat(self):
        options = MatchOptions(randomize_start=True)
        for seed in range(10):
            state = create_match(seed=seed, options=options)
            self.assertEqual(state.turn_idx, random.Random(seed).randrange(NUM_PLAYERS))

    def test_invalid_setup(self):
        with self.assertRaises(ValueError):
            create_match(seats=DEFAULT_SEATS[:3])
        with self.assertRaises(ValueError):
            MatchOptions(target_score=0)
        with self.assertRaises(ValueError):
            MatchOptions(hand_size=60)
        with self.assertRaises(ValueError):
            create_match(seats=[SeatSpec("Learner", Persona.LEARNER), *DEFAULT_SEATS[1:]])

    def test_package_level_defaults(self):
        self.assertIs(rheinhessen.Match, Match)
        self.assertIs(rheinhessen.MatchOptions, MatchOptions)
        options = rheinhessen.MatchOptions()
        self.assertEqual(options.target_score, TARGET_SCORE)
        self.assertEqual(options.hand_size, HAND_SIZE)


class TestDrawing(unittest.TestCase):
    """Test case for the draw step and deck-out."""

    def test_draw_two(self):
        state = create_match(seed=2)
        drawn = start_turn(state)
        self.assertEqual(len(drawn.players[0].hand), HAND_SIZE + 2)
        self.assertEqual(drawn.players[0].hand[-2:], state.deck[:2])
        self.assertEqual(len(drawn.deck), len(state.deck) - 2)
        self.assertEqual(drawn.phase, TurnPhase.AWAITING_ACTION)

    def test_draw_only_once_per_turn(self):
        drawn = start_turn(create_match(seed=2))
        self.assertIs(start_turn(drawn), drawn)

    def test_deck_out_records_end_seat(self):
        state = make_state(hands={2: cards("5S")}, deck=tuple(cards("9C")), turn_idx=2,
                           phase=TurnPhase.AWAITING_DRAW)
        drawn = start_turn(state)
        self.assertEqual(drawn.end_round_seat, 1)
        self.assertEqual(len(drawn.players[2].hand), 1)
        self.assertEqual(len(drawn.deck), 1)

        later = start_turn(replace(drawn, turn_idx=3, phase=TurnPhase.AWAITING_DRAW))
        self.assertEqual(later.end_round_seat, 1)


class TestProduction(unittest.TestCase):
    """Test case for legal and illegal productions."""

    def test_legal_production(self):
        pair = cards("KS", "KH")
        state = make_state(hands={0: pair + cards("3D")})
        after = apply_production(state, 0, Production.legal(pair))
        player = after.players[0]
        self.assertEqual(player.score, score_legal(20))
        self.assertEqual([c.label for c in player.hand], ["3D"])
        self.assertEqual(player.floor, tuple(pair))
        self.assertEqual(player.floor_groups, (tuple(pair),))
        self.assertEqual(player.stats.legal, 1)
        self.assertEqual(after.audit_track, 0)

    def test_rejected_productions(self):
        hand = cards("KS", "QH", "3D")
        state = make_state(hands={0: hand})
        self.assertIsNone(apply_production(state, 0, Production.legal(hand[:2])))
        self.assertIsNone(apply_production(state, 0, Production.illegal(cards("9C"))))

    def test_pass_changes_nothing(self):
        state = make_state(hands={0: cards("KS")})
        self.assertEqual(apply_production(state, 0, Production.passing()), state)

    def test_spike_adds_tick(self):
        hand = cards("10S", "9H", "8D")
        state = make_state(hands={0: hand}, audit_track=2)
        after = apply_production(state, 0, Production.illegal(hand))
        self.assertEqual(after.audit_track, 3)
        self.assertEqual(after.players[0].score, 11)
        self.assertEqual(after.players[0].stats.spikes, 1)

    def test_spike_at_track_three_triggers_external_audit(self):
        hand = cards("10S", "9H", "8D")
        state = make_state(
            hands={0: hand},
            floors={1: cards("7S", "7H"), 2: cards("2C", "9D")},
            scores={1: 50, 2: 30, 3: 40},
            audit_track=3,
        )
        after = apply_production(state, 0, Production.illegal(hand))
        self.assertEqual(after.audit_track, 0)
        # Trigger: 11 points, then 2 * 27 + 20 from the whole floor, clamped at zero
        self.assertEqual(after.players[0].score, 0)
        self.assertEqual(after.players[0].floor, ())
        self.assertEqual(after.players[1].score, 50)
        self.assertEqual(len(after.players[1].floor), 2)
        self.assertEqual(after.players[2].score, 8)
        self.assertEqual(after.players[2].floor, ())
        self.assertEqual(after.players[3].score, 40)
        self.assertEqual(sorted(c.label for c in after.confiscated), ["10S", "2C", "8D", "9D", "9H"])

    def test_play_turn_reports_external_audit(self):
        hand = cards("10S", "9H", "8D")
        state = make_state(hands={0: hand}, floors={2: cards("2C", "9D")}, audit_track=3)
        outcome = play_turn(state, Decision(Production.illegal(hand)))
        self.assertTrue(outcome.external_audit)
        self.assertEqual(outcome.state.external_audits, 1)
        self.assertIn("External audit triggered by", " ".join(outcome.events))
        self.assertEqual(MatchState.from_dict(outcome.state.to_dict()).external_audits, 1)

        quiet = play_turn(replace(state, audit_track=2), Decision(Production.illegal(hand)))
        self.assertFalse(quiet.external_audit)
        self.assertEqual(quiet.state.external_audits, 0)
        self.assertEqual(quiet.state.audit_track, 3)

    def test_escalation_off_adds_single_tick(self):
        hand = cards("10S", "9H", "8D")
        state = make_state(hands={0: hand}, audit_track=3, options=MatchOptions(escalating=False))
        after = apply_production(state, 0, Production.illegal(hand))
        self.assertEqual(after.audit_track, 4)


class TestInternalAudit(unittest.TestCase):
    """Test case for internal audits."""

    def setUp(self):
        self.trips = cards("4S", "4H", "4D")
        self.state = make_state(
            hands={0: self.trips + cards("9C", "KS", "KH")},
            floors={2: cards("2C", "9D", "7S", "7H")},
            scores={0: 10, 2: 40},
        )

    def test_successful_audit(self):
        after = apply_internal_audit(self.state, 0, 2, self.trips)
        accuser, target = after.players[0], after.players[2]
        self.assertEqual(accuser.score, 10 + 17)
        self.assertEqual(target.score, 40 - 17)
        self.assertEqual([c.label for c in accuser.hand], ["9C", "KS", "KH"])
        self.assertEqual([c.label for c in target.floor], ["7S", "7H"])
        self.assertEqual(after.discard, tuple(self.trips))
        self.assertEqual(sorted(c.label for c in after.confiscated), ["2C", "9D"])
        self.assertEqual(accuser.stats.internals_done, 1)
        self.assertEqual(target.stats.internals_received, 1)

    def test_engine_picks_cheapest_hand(self):
        after = apply_internal_audit(self.state, 0, 2)
        self.assertEqual(sorted(c.id for c in after.discard), sorted(c.id for c in self.trips))

    def test_pair_is_rejected_without_changes(self):
        pair = [c for c in self.state.players[0].hand if c.rank == 13]
        self.assertIsNone(apply_internal_audit(self.state, 0, 2, pair))
        self.assertEqual(check_audit_hand(self.state, 0, 2, pair), AuditRejection.BELOW_TRIPS)

        outcome = play_turn(self.state, Decision.passing(AuditOrder(target_id=2, cards=tuple(pair))))
        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.audit_rejection, AuditRejection.BELOW_TRIPS)
        for seat in (0, 2):
            before, after = self.state.players[seat], outcome.state.players[seat]
            self.assertEqual(before.score, after.score)
            self.assertEqual(before.hand, after.hand)
            self.assertEqual(before.floor, after.floor)

    def test_rejection_reasons(self):
        state = self.state
        self.assertEqual(check_audit_hand(state, 0, 0, self.trips), AuditRejection.INVALID_TARGET)
        self.assertEqual(check_audit_hand(state, 0, 7, self.trips), AuditRejection.INVALID_TARGET)
        self.assertEqual(check_audit_hand(state, 0, 2, cards("4S", "9C")), AuditRejection.NOT_LEGAL)
        self.assertEqual(check_audit_hand(state, 0, 2, cards("5S", "5H", "5D")),
                         AuditRejection.CARDS_NOT_HELD)
        self.assertEqual(check_audit_hand(state, 1, 2), AuditRejection.NO_QUALIFYING_HAND)
        self.assertIsNone(check_audit_hand(state, 0, 2, self.trips))


class TestEndCheck(unittest.TestCase):
    """Test case for the end of the match."""

    def test_target_score_wins(self):
        state = make_state(scores={1: 310, 2: 305})
        self.assertEqual(end_check(state), (True, 1))

    def test_not_over(self):
        state = make_state(scores={0: 120}, end_round_seat=3, turn_idx=1)
        self.assertFalse(end_check(state).over)

    def test_tie_break_goes_to_lowest_seat(self):
        state = make_state(scores={0: 50, 1: 80, 2: 80, 3: 10}, end_round_seat=1, turn_idx=1)
        self.assertEqual(end_check(state), (True, 1))

    def test_winning_turn_ends_match(self):
        pair = cards("AS", "AH")
        state = make_state(hands={0: pair}, scores={0: 290})
        outcome = play_turn(state, Decision(Production.legal(pair)))
        self.assertTrue(outcome.state.is_over)
        self.assertEqual(outcome.state.winner_id, 0)
        self.assertEqual(outcome.state.phase, TurnPhase.MATCH_OVER)


class TestPlayTurn(unittest.TestCase):
    """Test case for whole turns."""

    def test_turn_advances_and_next_seat_draws(self):
        state = start_turn(create_match(seed=3))
        hand = state.players[0].hand
        outcome = play_turn(state, Decision(Production.illegal(hand[:1])))
        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.state.turn_idx, 1)
        self.assertEqual(outcome.state.turn_count, 1)
        self.assertEqual(len(outcome.state.players[1].hand), HAND_SIZE + 2)
        self.assertEqual(outcome.state.phase, TurnPhase.AWAITING_ACTION)

    def test_rejected_production_returns_input_state(self):
        state = start_turn(create_match(seed=3))
        outcome = play_turn(state, Decision(Production.illegal(state.players[1].hand[:1])))
        self.assertFalse(outcome.accepted)
        self.assertIs(outcome.state, state)


class TestFullMatches(unittest.TestCase):
    """Test case for complete matches between personas."""

    def test_invariants_over_full_matches(self):
        for seed in range(3):
            match = Match(seed=seed, seats=AI_SEATS)
            seat_personas(match)
            final = match.run(max_turns=400)
            self.assertTrue(final.is_over)
            self.assertIn(final.winner_id, range(NUM_PLAYERS))
            for state in match.history:
                ids = [card.id for card in state.all_cards()]
                self.assertEqual(len(ids), DECK_SIZE)
                self.assertEqual(len(set(ids)), DECK_SIZE)
                self.assertGreaterEqual(state.audit_track, 0)
                self.assertLess(state.audit_track, MAX_AUDIT_TRACK)
            self.assertTrue(match.turn_log)


class TestSerialization(unittest.TestCase):

    def test_json_round_trip(self):
        match = Match(seed=4, seats=AI_SEATS)
        seat_personas(match)
        for _ in range(30):
            match.step()
        state = match.state
        self.assertEqual(MatchState.from_json(state.to_json()), state)

    def test_decision_round_trip(self):
        decision = Decision(Production.illegal(cards("9C", "2D")),
                            AuditOrder(target_id=3, cards=tuple(cards("4S", "4H", "4D"))))
        self.assertEqual(Decision.from_dict(decision.to_dict()), decision)

    def test_match_save_load(self):
        match = Match(seed=8, seats=AI_SEATS)
        seat_personas(match)
        for _ in range(10):
            match.step()
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "match.json")
            match.save(path)
            loaded = Match.load(path)
        self.assertEqual(loaded.state, match.state)


class TestMatchWrapper(unittest.TestCase):
    """Test case for the stateful Match wrapper."""

    def test_step_without_agent_raises(self):
        match = Match(seed=1)
        with self.assertRaises(InvalidActionError):
            match.step()

    def test_run_needs_every_seat(self):
        match = Match(seed=1)
        seat_personas(match)
        with self.assertRaises(InvalidActionError):
            match.run()

    def test_rejected_decision_raises(self):
        match = Match(seed=1)
        with self.assertRaises(InvalidActionError):
            match.step(Decision(Production.illegal(match.state.players[1].hand[:1])))

    def test_human_seat_with_callback(self):
        match = Match(seed=1)
        seat_personas(match)
        match.register_agent(0, lambda state, player_id: Decision.passing())
        final = match.run(max_turns=20)
        self.assertEqual(final.turn_count, 20)
        stats = match.get_statistics()
        self.assertEqual(stats["turns"], 20)
        self.assertEqual(len(match.get_scores()), NUM_PLAYERS)


if __name__ == "__main__":
    unittest.main()
