#!/usr/bin/env python
"""
Tests for the scoring formulas and spike thresholds.
"""
import unittest

from rheinhessen.core.constants import KICKBACK, MAX_AUDIT_TRACK, SPIKE_THRESHOLD
from rheinhessen.core.scoring import (
    calculate_taxed_value, round_half_up, score_illegal, score_legal, spike_ticks
)


class TestRounding(unittest.TestCase):

    def test_halves_round_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(11.2), 11)
        self.assertEqual(round_half_up(-0.5), 0)


class TestLegalScoring(unittest.TestCase):
    """Test case for legal scoring and the taxed value."""

    def test_legal_formula(self):
        self.assertEqual(score_legal(0), 8)
        self.assertEqual(score_legal(20), 22)
        self.assertEqual(score_legal(30), 29)
        self.assertEqual(score_legal(25), 26)  # 25.5 rounds up

    def test_taxed_value_matches_legal_scoring(self):
        for raw in range(0, 120):
            self.assertEqual(calculate_taxed_value(raw), score_legal(raw))


class TestIllegalScoring(unittest.TestCase):
    """Test case for illegal scoring, kickback and ticks."""

    def test_below_threshold_never_ticks(self):
        for raw in range(0, SPIKE_THRESHOLD):
            for track in range(0, MAX_AUDIT_TRACK + 1):
                result = score_illegal(raw, track)
                self.assertEqual(result.ticks_added, 0)
                self.assertEqual(result.kickback, 0)
                self.assertFalse(result.is_spike)

    def test_plain_illegal_points(self):
        self.assertEqual(score_illegal(20, 0).points, 12)
        self.assertEqual(score_illegal(26, 4).points, 16)

    def test_spike_adds_one_tick_below_escalation(self):
        result = score_illegal(30, 0)
        self.assertEqual(result.points, 13)
        self.assertEqual(result.ticks_added, 1)
        self.assertEqual(result.kickback, KICKBACK)

    def test_threshold_at_track_three_escalates(self):
        result = score_illegal(27, 3)
        self.assertEqual(result.points, 11)
        self.assertEqual(result.ticks_added, 2)
        self.assertEqual(result.kickback, 5)

    def test_escalation_by_track(self):
        for track in range(0, MAX_AUDIT_TRACK + 1):
            expected = 2 if track >= 3 else 1
            self.assertEqual(score_illegal(40, track).ticks_added, expected)

    def test_escalation_can_be_disabled(self):
        self.assertEqual(spike_ticks(27, 3, escalating=False), 1)
        self.assertEqual(score_illegal(27, 4, escalating=False).ticks_added, 1)


if __name__ == "__main__":
    unittest.main()
