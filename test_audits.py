#!/usr/bin/env python
"""
Tests for greedy floor reorganization and audit fines.
"""
import unittest
from collections import Counter

from rheinhessen.core.audits import (
    REORGANIZE_PRIORITY, estimate_fine, external_fine, internal_fine, reorganize_greedy
)
from rheinhessen.core.cards import make_card, make_deck, raw_value, shuffle_cards
from rheinhessen.core.hands import is_legal_exact

RANK_CODES = {"J": 11, "Q": 12, "K": 13, "A": 14}


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


class TestReorganizeGreedy(unittest.TestCase):
    """Test case for the greedy reorganizer."""

    def test_keeps_all_cards_of_perfect_floor(self):
        floor = cards("7S", "7H", "9D", "9C", "3S", "3H", "3D")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 7)
        self.assertEqual(result.leftover, ())

    def test_pairs_of_same_rank_and_pair_of_sevens(self):
        floor = cards("9S", "9H", "9S", "9H", "7D", "7C", "7D")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 7)
        self.assertEqual(result.leftover, ())

    def test_leftover_of_unmatched_cards(self):
        floor = cards("7S", "7H", "9D", "10C", "JS")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 2)
        self.assertEqual(len(result.leftover), 3)

    def test_straight_before_pairs(self):
        floor = cards("3S", "4H", "5D", "6C", "7S", "3H", "4D")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 5)
        self.assertEqual(len(result.leftover), 2)
        self.assertEqual(len(result.groups), 1)

    def test_quads_then_pair(self):
        floor = cards("5S", "5H", "5D", "5C", "8S", "8H")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 6)
        self.assertEqual([len(group) for group in result.groups], [4, 2])

    def test_full_house_leaves_single(self):
        floor = cards("10S", "10H", "10D", "3C", "3S", "7H")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 5)
        self.assertEqual([c.label for c in result.leftover], ["7H"])

    def test_flush_is_found(self):
        floor = cards("2H", "5H", "7H", "9H", "JH", "3S", "4D")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 5)
        self.assertEqual(len(result.leftover), 2)

    def test_wheel_with_extra_ace(self):
        floor = cards("AS", "2H", "3D", "4C", "5S", "AH")
        result = reorganize_greedy(floor)
        self.assertEqual(len(result.kept), 5)
        self.assertEqual([c.label for c in result.leftover], ["AH"])

    def test_empty_floor(self):
        result = reorganize_greedy([])
        self.assertEqual(result.kept, ())
        self.assertEqual(result.leftover, ())
        self.assertEqual(result.groups, ())

    def test_partition_property(self):
        deck = shuffle_cards(make_deck(), seed=99)
        for size in (3, 8, 15, 24, 40):
            for offset in (0, 50, 100):
                floor = deck[offset:offset + size]
                result = reorganize_greedy(floor)
                combined = [c.id for c in result.kept] + [c.id for c in result.leftover]
                self.assertEqual(len(combined), len(set(combined)))
                self.assertEqual(sorted(combined), sorted(c.id for c in floor))
                regrouped = [c.id for group in result.groups for c in group]
                self.assertEqual(regrouped, [c.id for c in result.kept])
                for group in result.groups:
                    self.assertTrue(is_legal_exact(group))

    def test_priority_order(self):
        names = [name for name, _min_cards, _finder in REORGANIZE_PRIORITY]
        self.assertEqual(names, ["straight", "quads", "full-house", "trips", "two-pair", "pair", "flush"])


class TestFines(unittest.TestCase):

    def test_fines(self):
        leftover = cards("9D", "10C", "JS")
        self.assertEqual(raw_value(leftover), 29)
        self.assertEqual(internal_fine(leftover), 44)  # 43.5 rounds up
        self.assertEqual(external_fine(leftover), 58)

    def test_estimate_fine(self):
        self.assertEqual(estimate_fine(cards("7S", "7H", "9D")), 9)
        self.assertEqual(estimate_fine([]), 0)


if __name__ == "__main__":
    unittest.main()
