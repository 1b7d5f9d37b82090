#!/usr/bin/env python
"""
Tests for cards and the composite deck.

Covers deck construction, the seeded shuffle, point values and the small
card-list helpers used by the engine.
"""
import unittest
from collections import Counter

from rheinhessen.core.cards import (
    Card, make_card, make_deck, shuffle_cards, card_value, raw_value,
    sort_cards, card_ids, remove_cards, holds_all, format_cards
)
from rheinhessen.core.constants import Suit, DECK_SIZE, NUM_DECKS


class TestDeck(unittest.TestCase):
    """Test case for deck construction and shuffling."""

    def test_deck_has_208_distinct_cards(self):
        deck = make_deck()
        self.assertEqual(len(deck), DECK_SIZE)
        self.assertEqual(len({card.id for card in deck}), DECK_SIZE)

    def test_each_rank_and_suit_appears_once_per_deck(self):
        counts = Counter((card.rank, card.suit) for card in make_deck())
        self.assertEqual(len(counts), 52)
        self.assertTrue(all(count == NUM_DECKS for count in counts.values()))

    def test_same_seed_same_order(self):
        deck = make_deck()
        first = shuffle_cards(deck, seed=42)
        second = shuffle_cards(deck, seed=42)
        self.assertEqual(card_ids(first), card_ids(second))

    def test_different_seeds_differ(self):
        deck = make_deck()
        self.assertNotEqual(card_ids(shuffle_cards(deck, seed=1)), card_ids(shuffle_cards(deck, seed=2)))

    def test_shuffle_is_a_permutation_and_leaves_input_alone(self):
        deck = make_deck()
        original = card_ids(deck)
        shuffled = shuffle_cards(deck, seed="match-7")
        self.assertEqual(card_ids(deck), original)
        self.assertEqual(sorted(card_ids(shuffled)), sorted(original))


class TestCards(unittest.TestCase):
    """Test case for card values and helpers."""

    def test_card_values(self):
        for rank in range(2, 11):
            self.assertEqual(card_value(make_card(rank, Suit.SPADES)), rank)
        for rank in (11, 12, 13):
            self.assertEqual(card_value(make_card(rank, Suit.HEARTS)), 10)
        self.assertEqual(card_value(make_card(14, Suit.CLUBS)), 11)

    def test_raw_value(self):
        cards = [make_card(14, "S"), make_card(13, "H"), make_card(2, "D")]
        self.assertEqual(raw_value(cards), 23)
        self.assertEqual(raw_value([]), 0)

    def test_make_card_id_and_label(self):
        card = make_card(12, "H", 3)
        self.assertEqual(card.id, "12H3")
        self.assertEqual(card.label, "QH")
        self.assertEqual(card.value, 10)

    def test_invalid_card_rejected(self):
        with self.assertRaises(ValueError):
            Card(id="1S0", rank=1, suit=Suit.SPADES, deck=0)
        with self.assertRaises(ValueError):
            make_card(5, "S", NUM_DECKS)

    def test_card_dict_round_trip(self):
        card = make_card(7, "C", 2)
        self.assertEqual(Card.from_dict(card.to_dict()), card)

    def test_sort_cards_by_rank_then_suit(self):
        cards = [make_card(9, "C"), make_card(3, "D"), make_card(9, "S")]
        self.assertEqual([c.label for c in sort_cards(cards)], ["3D", "9S", "9C"])
        self.assertEqual(format_cards(cards), "3D 9S 9C")

    def test_remove_cards_by_id(self):
        a, b, c = make_card(5, "S"), make_card(5, "S", 1), make_card(8, "H")
        self.assertEqual(remove_cards((a, b, c), [b]), (a, c))

    def test_holds_all(self):
        a, b = make_card(5, "S"), make_card(5, "S", 1)
        self.assertTrue(holds_all([a, b], [b]))
        self.assertFalse(holds_all([a], [b]))
        self.assertFalse(holds_all([a, b], [a, a]))


if __name__ == "__main__":
    unittest.main()
