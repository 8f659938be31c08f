"""
Tests for text_normalizer.py

Verifies that:
- Loose mode strips Hebrew points and odd spaces but keeps punctuation
- Strict mode also removes punctuation and case
- Both modes are idempotent
- Field-level helpers (TWLink, GLQuote, occurrence) behave on blank input
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from text_normalizer import (
    normalize,
    normalize_loose,
    normalize_strict,
    strict_words,
    normalize_tw_link,
    normalize_gl_quote,
    normalize_occurrence,
    parse_occurrence,
    LOOSE,
    STRICT,
)

# bereshit with and without points
BERESHIT_PLAIN = ''.join(chr(c) for c in (0x05D1, 0x05E8, 0x05D0, 0x05E9, 0x05D9, 0x05EA))
BERESHIT_POINTED = ''.join(chr(c) for c in (
    0x05D1, 0x05B0, 0x05BC, 0x05E8, 0x05B5, 0x05D0, 0x05E9, 0x05C1, 0x05B4, 0x05D9, 0x05EA,
))
MAQAF = chr(0x05BE)
EM_SPACE = chr(0x2003)
NARROW_NBSP = chr(0x202F)
BOM = chr(0xFEFF)


class TestLooseNormalization(unittest.TestCase):

    def test_removes_hebrew_points(self):
        self.assertEqual(normalize_loose(BERESHIT_POINTED), BERESHIT_PLAIN)

    def test_removes_maqaf(self):
        self.assertEqual(normalize_loose(BERESHIT_PLAIN + MAQAF + BERESHIT_PLAIN),
                         BERESHIT_PLAIN + BERESHIT_PLAIN)

    def test_special_spaces_become_single_space(self):
        text = f"  in{EM_SPACE}the{NARROW_NBSP}{NARROW_NBSP}beginning{BOM} "
        self.assertEqual(normalize_loose(text), "in the beginning")

    def test_keeps_punctuation_and_case(self):
        self.assertEqual(normalize_loose("God's  Word!"), "God's Word!")

    def test_blank_input(self):
        self.assertEqual(normalize_loose(''), '')
        self.assertEqual(normalize_loose(None), '')
        self.assertEqual(normalize_loose('   '), '')


class TestStrictNormalization(unittest.TestCase):

    def test_removes_punctuation_and_lowercases(self):
        self.assertEqual(normalize_strict("God's, Word!"), "gods word")

    def test_punctuation_between_spaces_collapses(self):
        self.assertEqual(normalize_strict("light , and darkness"), "light and darkness")

    def test_keeps_hebrew_and_greek_letters(self):
        self.assertEqual(normalize_strict(BERESHIT_POINTED + '.'), BERESHIT_PLAIN)
        logos = ''.join(chr(c) for c in (0x039B, 0x03CC, 0x03B3, 0x03BF, 0x03C2))
        self.assertEqual(normalize_strict(logos + ','), logos.lower())

    def test_strict_words(self):
        self.assertEqual(strict_words("The  LORD, God"), ["the", "lord", "god"])
        self.assertEqual(strict_words(" , "), [])


class TestIdempotence(unittest.TestCase):

    SAMPLES = [
        "In the beginning, God created",
        BERESHIT_POINTED + MAQAF + " " + BERESHIT_POINTED,
        f"a{EM_SPACE},{NARROW_NBSP}b ; C",
        "  ",
        "ÅNGSTRÖM's  İstanbul",
    ]

    def test_loose_idempotent(self):
        for sample in self.SAMPLES:
            once = normalize(sample, LOOSE)
            self.assertEqual(normalize(once, LOOSE), once, repr(sample))

    def test_strict_idempotent(self):
        for sample in self.SAMPLES:
            once = normalize(sample, STRICT)
            self.assertEqual(normalize(once, STRICT), once, repr(sample))

    def test_unknown_mode_raises(self):
        with self.assertRaises(ValueError):
            normalize("text", "fuzzy")


class TestFieldNormalizers(unittest.TestCase):

    def test_tw_link_prefix_and_case(self):
        self.assertEqual(normalize_tw_link("  rc://*/tw/dict/bible/KT/God "), "kt/god")
        self.assertEqual(normalize_tw_link("rc://en/tw/dict/bible/other/creation"), "other/creation")
        self.assertEqual(normalize_tw_link(None), "")

    def test_gl_quote(self):
        self.assertEqual(normalize_gl_quote("  In   the Beginning "), "in the beginning")

    def test_normalize_occurrence_fallback(self):
        self.assertEqual(normalize_occurrence(' 2 '), '2')
        self.assertEqual(normalize_occurrence('  ', '3'), '3')
        self.assertEqual(normalize_occurrence(None), '1')

    def test_parse_occurrence(self):
        self.assertEqual(parse_occurrence('3'), 3)
        self.assertEqual(parse_occurrence(' 2 '), 2)
        self.assertEqual(parse_occurrence(''), 1)
        self.assertEqual(parse_occurrence('abc'), 1)
        self.assertEqual(parse_occurrence('0'), 1)
        self.assertEqual(parse_occurrence('-1'), 1)
        self.assertEqual(parse_occurrence(None), 1)


if __name__ == '__main__':
    unittest.main()
