#!/usr/bin/env python3
"""
Unit tests for score tokens and score colours.

Run with:
    python -m pytest tests/test_score_codec.py
"""
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services import score_codec
from app.services.score_codec import (
    BASE_SCORE_OPTIONS, SCORE_OPTIONS, change_base, compose_score,
    is_terminal_grade, is_valid_score, next_modifier, parse_score,
    supports_modifier, toggle_modifier,
)
from app.services.score_colors import ScoreColors


class TestParseScore(unittest.TestCase):

    def test_bare_digit(self):
        self.assertEqual(parse_score('7'), ('7', ''))

    def test_plus_and_minus(self):
        self.assertEqual(parse_score('7+'), ('7', '+'))
        self.assertEqual(parse_score('3-'), ('3', '-'))

    def test_two_digit_bases(self):
        self.assertEqual(parse_score('10'), ('10', ''))
        self.assertEqual(parse_score('11'), ('11', ''))

    def test_malformed_defaults_to_five(self):
        for token in ('', None, 'abc', '7++', '+7', '123', ' 7', '7 ', '7.5', '-'):
            with self.subTest(token=token):
                self.assertEqual(parse_score(token), ('5', ''))

    def test_parse_then_compose_is_identity(self):
        for token in SCORE_OPTIONS:
            with self.subTest(token=token):
                self.assertEqual(compose_score(*parse_score(token)), token)


class TestComposeScore(unittest.TestCase):

    def test_empty_modifier_yields_bare_base(self):
        self.assertEqual(compose_score('8', ''), '8')
        self.assertEqual(compose_score('8', None), '8')

    def test_with_modifier(self):
        self.assertEqual(compose_score('8', '-'), '8-')


class TestSupportsModifier(unittest.TestCase):

    def test_one_through_nine(self):
        for base in range(1, 10):
            self.assertTrue(supports_modifier(str(base)))

    def test_terminal_grades(self):
        for base in ('0', '10', '11'):
            self.assertFalse(supports_modifier(base))

    def test_non_numeric(self):
        for base in ('', None, 'x', '5+'):
            self.assertFalse(supports_modifier(base))

    def test_terminal_grade_helper(self):
        self.assertTrue(is_terminal_grade('0'))
        self.assertTrue(is_terminal_grade('11'))
        self.assertFalse(is_terminal_grade('9'))


class TestModifierCycle(unittest.TestCase):

    def test_three_toggles_return_to_empty(self):
        seen = ['']
        for _ in range(3):
            seen.append(next_modifier(seen[-1], '6'))
        self.assertEqual(seen, ['', '+', '-', ''])

    def test_no_modifier_for_terminal_base(self):
        self.assertEqual(next_modifier('', '10'), '')

    def test_toggle_modifier_on_token(self):
        self.assertEqual(toggle_modifier('6'), '6+')
        self.assertEqual(toggle_modifier('6+'), '6-')
        self.assertEqual(toggle_modifier('6-'), '6')
        self.assertEqual(toggle_modifier('0'), '0')


class TestChangeBase(unittest.TestCase):

    def test_keeps_modifier_when_supported(self):
        self.assertEqual(change_base('4+', '8'), '8+')

    def test_drops_modifier_for_terminal_grade(self):
        self.assertEqual(change_base('9+', '10'), '10')

    def test_from_missing_score(self):
        self.assertEqual(change_base(None, '2'), '2')


class TestIsValidScore(unittest.TestCase):

    def test_all_options_valid(self):
        for token in SCORE_OPTIONS:
            self.assertTrue(is_valid_score(token), token)

    def test_rejects(self):
        for token in ('', None, '12', '10+', '0-', '11+', '05', 'x'):
            with self.subTest(token=token):
                self.assertFalse(is_valid_score(token))

    def test_option_lists(self):
        self.assertEqual(BASE_SCORE_OPTIONS[0], '0')
        self.assertEqual(BASE_SCORE_OPTIONS[-1], '11')
        self.assertEqual(len(SCORE_OPTIONS), 30)
        self.assertEqual(score_codec.DEFAULT_SCORE, '5')


# ===========================================================================
# Colours
# ===========================================================================

COLOR_ROWS = [
    {'score': '5', 'hex_color_light': '#FFFFFF', 'hex_color_dark': '#4A5568', 'color_name': 'white'},
    {'score': '4', 'hex_color_light': '#ECC94B', 'hex_color_dark': '#D69E2E', 'color_name': 'yellow'},
    {'score': '9+', 'hex_color_light': '#3182CE', 'hex_color_dark': '#2B6CB0', 'color_name': 'blue'},
]


class TestScoreColors(unittest.TestCase):

    def setUp(self):
        self.colors = ScoreColors(COLOR_ROWS)

    def test_background_by_theme(self):
        self.assertEqual(self.colors.background('9+'), '#3182CE')
        self.assertEqual(self.colors.background('9+', is_dark=True), '#2B6CB0')

    def test_unknown_token_falls_back(self):
        self.assertEqual(self.colors.background('7'), '#F8F9FA')
        self.assertEqual(self.colors.background('7', is_dark=True), '#4A5568')
        self.assertEqual(self.colors.text('7'), '#333333')
        self.assertEqual(self.colors.text('7', is_dark=True), '#E2E8F0')

    def test_white_uses_theme_text(self):
        self.assertEqual(self.colors.text('5'), '#333333')
        self.assertEqual(self.colors.text('5', is_dark=True), '#E2E8F0')

    def test_yellow_uses_dark_text(self):
        self.assertEqual(self.colors.text('4'), '#1A202C')
        self.assertEqual(self.colors.text('4', is_dark=True), '#1A202C')

    def test_other_colours_use_white_text(self):
        self.assertEqual(self.colors.text('9+'), '#FFFFFF')

    def test_lookup_is_exact(self):
        self.assertIn('9+', self.colors)
        self.assertNotIn('9', self.colors)


if __name__ == '__main__':
    unittest.main()
