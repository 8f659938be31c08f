"""
Tests for usfm_verses.py
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from usfm_verses import extract_verse_text, strip_markup, tokenize_verse
from quote_locator import locate

SAMPLE_USFM = r'''\id GEN EN_ULT en_English_ltr unfoldingWord Literal Text
\usfm 3.0
\h Genesis
\toc1 The Book of Genesis
\mt Genesis

\c 1
\p
\v 1 \zaln-s |x-strong="b:H7225" x-lemma="rosh" x-morph="He,R:Ncfsa" x-occurrence="1" x-occurrences="1" x-content="bereshit"\*\w In|x-occurrence="1" x-occurrences="1"\w*
\w the|x-occurrence="1" x-occurrences="2"\w*
\w beginning|x-occurrence="1" x-occurrences="1"\w*\zaln-e\*,
\w God|x-occurrence="1" x-occurrences="1"\w* \w created|x-occurrence="1" x-occurrences="1"\w*\f + \ft Or: made \f*.
\v 2 Now the earth \x - \xo 1:2 \xt Jer 4:23\x* was formless.
\v 3-4 Bridge text here.
\v 5
\c 2
\s1 The seventh day
\p
\v 1 Thus the heavens were \+w finished|x-occurrence="1"\+w*.
'''


class TestExtractVerseText(unittest.TestCase):

    def setUp(self):
        self.verses = extract_verse_text(SAMPLE_USFM)

    def test_aligned_words_are_kept(self):
        self.assertEqual(self.verses["1:1"], "In the beginning, God created.")

    def test_cross_references_are_dropped(self):
        self.assertEqual(self.verses["1:2"], "Now the earth was formless.")

    def test_verse_bridge_covers_each_verse(self):
        self.assertEqual(self.verses["1:3"], "Bridge text here.")
        self.assertEqual(self.verses["1:4"], "Bridge text here.")

    def test_empty_verse_is_omitted(self):
        self.assertNotIn("1:5", self.verses)

    def test_headings_and_front_matter_are_ignored(self):
        self.assertEqual(self.verses["2:1"], "Thus the heavens were finished.")
        for text in self.verses.values():
            self.assertNotIn("Genesis", text)
            self.assertNotIn("seventh", text)

    def test_keys(self):
        self.assertEqual(sorted(self.verses), ["1:1", "1:2", "1:3", "1:4", "2:1"])

    def test_empty_input(self):
        self.assertEqual(extract_verse_text(""), {})
        self.assertEqual(extract_verse_text(None), {})

    def test_self_closing_markers_leave_no_residue(self):
        usfm = '\\c 1\n\\v 1 In the beginning\n\\ts\\*\n\\v 2 Now the earth \\qt-s |who="x"\\* said\\qt-e\\*'
        verses = extract_verse_text(usfm)
        self.assertEqual(verses, {"1:1": "In the beginning", "1:2": "Now the earth said"})
        match = locate(tokenize_verse(verses["1:2"]), "the earth said", 1)
        self.assertEqual(match.indices, (1, 2, 3))


class TestHelpers(unittest.TestCase):

    def test_strip_markup(self):
        self.assertEqual(strip_markup(r'\q1 \w Hello|x-occurrence="1"\w* , world'), "Hello, world")

    def test_tokenize_verse(self):
        self.assertEqual(tokenize_verse("In  the beginning"), ["In", "the", "beginning"])
        self.assertEqual(tokenize_verse(""), [])
        self.assertEqual(tokenize_verse(None), [])

    def test_tokenize_verse_splits_dashes(self):
        self.assertEqual(tokenize_verse("the LORD" + chr(0x2014) + "he said"), ["the", "LORD", "he", "said"])


if __name__ == '__main__':
    unittest.main()
