"""
Tests for quote_locator.py
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from quote_locator import locate, locate_in_text, split_quote, WordSpan

VERSE = ["In", "the", "beginning", "was", "the", "Word"]
DASH = chr(0x2014)


class TestSinglePartQuotes(unittest.TestCase):

    def test_first_occurrence(self):
        match = locate(VERSE, "the", 1)
        self.assertEqual(match.indices, (1,))

    def test_second_occurrence(self):
        match = locate(VERSE, "the", 2)
        self.assertEqual(match.spans, (WordSpan(4, 5),))
        self.assertEqual(match.start, 4)

    def test_missing_occurrence(self):
        self.assertIsNone(locate(VERSE, "the", 3))

    def test_multi_word_part(self):
        match = locate(VERSE, "was the Word", 1)
        self.assertEqual(match.indices, (3, 4, 5))

    def test_punctuation_and_case_are_ignored(self):
        words = ["God", "said,", "“Let", "there", "be", "light.”"]
        match = locate(words, "let there be light", 1)
        self.assertEqual(match.indices, (2, 3, 4, 5))

    def test_not_found(self):
        self.assertIsNone(locate(VERSE, "darkness", 1))

    def test_dash_joined_words_are_separate(self):
        words = ("and the LORD" + DASH + "he is God").split()
        self.assertEqual(locate(words, "LORD", 1).indices, (2,))
        self.assertEqual(locate(words, "he is God", 1).indices, (3, 4, 5))
        self.assertEqual(locate(words, "LORD" + DASH + "he", 1).indices, (2, 3))


    def test_empty_inputs(self):
        self.assertIsNone(locate([], "the", 1))
        self.assertIsNone(locate(VERSE, "", 1))
        self.assertIsNone(locate(VERSE, " & ", 1))


class TestMultiPartQuotes(unittest.TestCase):

    TOKENS = ["A", "B", "C", "D", "B", "E"]

    def test_discontinuous_quote(self):
        match = locate(self.TOKENS, "B & E", 1)
        self.assertEqual(match.indices, (1, 5))

    def test_later_part_missing_fails_whole_lookup(self):
        self.assertIsNone(locate(self.TOKENS, "B & Z", 1))

    def test_occurrence_applies_to_first_part(self):
        match = locate(self.TOKENS, "B & E", 2)
        self.assertEqual(match.indices, (4, 5))

    def test_no_backtracking(self):
        # Second "B" is chosen; "C" only occurs before it
        self.assertIsNone(locate(self.TOKENS, "B & C", 2))

    def test_later_part_searched_from_end_of_previous(self):
        match = locate(["x", "y", "x", "y"], "x & x", 1)
        self.assertEqual(match.indices, (0, 2))

    def test_split_quote_drops_empty_parts(self):
        self.assertEqual(split_quote("Beginning & , & The Word"), [["beginning"], ["the", "word"]])


class TestLocateInText(unittest.TestCase):

    def test_tokenizes_on_whitespace(self):
        match = locate_in_text("In the  beginning was the Word", "the Word", 1)
        self.assertEqual(match.indices, (4, 5))


if __name__ == '__main__':
    unittest.main()
