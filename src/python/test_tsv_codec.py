"""
Tests for tsv_codec.py and the reference comparator in twl_model.py
"""

import sys
import os
import random
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from twl_model import (
    TWLTable,
    CORE_COLUMNS,
    GL_COLUMNS,
    DISAMBIGUATION_COLUMNS,
    MERGE_STATUS,
    compare_references,
    parse_reference,
    reference_sort_key,
    make_row,
    default_header,
)
from tsv_codec import (
    has_header,
    parse,
    parse_auto,
    serialize,
    schema_problems,
    validate_schema,
    normalize_column_count,
    ensure_unique_ids,
    add_gl_quote_columns,
    strip_column,
    align_columns,
    to_commit_text,
    ID_PATTERN,
)

HEADER_6 = '\t'.join(CORE_COLUMNS)
HEADER_10 = '\t'.join(DISAMBIGUATION_COLUMNS)


def tsv(*lines):
    return '\n'.join(lines)


class TestReferenceComparator(unittest.TestCase):

    def test_numeric_verse_order(self):
        self.assertLess(compare_references("1:2", "1:10"), 0)
        self.assertGreater(compare_references("2:1", "1:99"), 0)
        self.assertEqual(compare_references("3:4", "3:4"), 0)

    def test_non_numeric_parts_are_zero(self):
        self.assertEqual(parse_reference("front:intro"), (0, 0))
        self.assertEqual(parse_reference("1:intro"), (1, 0))
        self.assertEqual(parse_reference("5"), (5, 0))
        self.assertLess(compare_references("1:intro", "1:1"), 0)

    def test_sort_key_is_stable(self):
        rows = ["1:10", "1:2", "1:2", "front:intro", "2:1"]
        tagged = list(enumerate(rows))
        ordered = sorted(tagged, key=lambda item: reference_sort_key(item[1]))
        self.assertEqual([i for i, _ in ordered], [3, 1, 2, 0, 4])


class TestHeaderDetection(unittest.TestCase):

    def test_has_header(self):
        self.assertTrue(has_header(tsv(HEADER_6, "1:1\tab12\tkeyterm\tx\t1\tlink")))
        self.assertFalse(has_header("1:1\tab12\tkeyterm\tx\t1\tlink"))
        self.assertFalse(has_header(""))

    def test_has_header_ignores_bom(self):
        self.assertTrue(has_header(chr(0xFEFF) + HEADER_6))


class TestParseSerialize(unittest.TestCase):

    def test_parse_with_header(self):
        table = parse(tsv(HEADER_6, "1:1\tab12\tkeyterm\tword\t1\trc://*/tw/dict/bible/kt/god"))
        self.assertEqual(table.headers, CORE_COLUMNS)
        self.assertEqual(len(table.rows), 1)
        self.assertEqual(table.rows[0].reference, "1:1")
        self.assertEqual(table.rows[0].tw_link, "rc://*/tw/dict/bible/kt/god")

    def test_parse_without_header_assumes_layout(self):
        table = parse("1:1\tab12\t\tword\t1\tlink", expect_header=False)
        self.assertEqual(table.headers, CORE_COLUMNS)
        self.assertEqual(len(table.rows), 1)

    def test_parse_auto(self):
        self.assertEqual(len(parse_auto(tsv(HEADER_6, "1:1\ta\tb\tc\t1\tl")).rows), 1)
        self.assertEqual(len(parse_auto("1:1\ta\tb\tc\t1\tl").rows), 1)

    def test_crlf_and_blank_lines(self):
        text = HEADER_6 + "\r\n1:1\tab12\t\tword\t1\tlink\r\n\r\n1:2\tcd34\t\tother\t1\tlink\r\n"
        table = parse(text)
        self.assertEqual(len(table.rows), 2)
        self.assertEqual(table.rows[1].tw_link, "link")

    def test_empty_text(self):
        self.assertEqual(parse("").headers, tuple())
        self.assertEqual(parse("", expect_header=False).headers, CORE_COLUMNS)

    def test_deleted_prefix_becomes_flag(self):
        table = parse(tsv(HEADER_6, "DELETED 1:1\tab12\t\tword\t1\tlink"))
        row = table.rows[0]
        self.assertTrue(row.deleted)
        self.assertEqual(row.reference, "1:1")
        self.assertIn("DELETED 1:1", serialize(table))

    def test_done_prefix_only_in_disambiguation_column(self):
        text = tsv(HEADER_10, "1:1\tab12\t\tword\t1\tlink\tgod\t1\tDONE kt/god\tctx")
        row = parse(text).rows[0]
        self.assertTrue(row.disambiguation_resolved)
        self.assertEqual(row.disambiguation, "kt/god")

        plain = parse(tsv(HEADER_6, "1:1\tab12\tDONE\tDONE word\t1\tlink")).rows[0]
        self.assertFalse(plain.disambiguation_resolved)
        self.assertEqual(plain.orig_words, "DONE word")

    def test_round_trip(self):
        text = tsv(
            HEADER_10,
            "1:1\tab12\tkeyterm\tword\t1\trc://*/tw/dict/bible/kt/god\tGod\t1\t(kt/god, kt/falsegod)\t",
            "DELETED 1:2\tcd34\t\tother\t2\tlink\tthing\t1\tDONE kt/thing\tsome context",
            "1:3\tef56\t\t\t\t\t\t\t\t",
        )
        table = parse(text)
        self.assertEqual(serialize(table), text)
        self.assertEqual(parse(serialize(table)), table)

    def test_parse_keeps_row_widths(self):
        table = parse(tsv(HEADER_6, "1:1\tab12", "1:2\ta\tb\tc\t1\tl\textra"))
        self.assertEqual(len(table.rows[0].cells), 2)
        self.assertEqual(len(table.rows[1].cells), 7)


class TestValidation(unittest.TestCase):

    def test_known_layouts_are_valid(self):
        for header in (CORE_COLUMNS, GL_COLUMNS, DISAMBIGUATION_COLUMNS,
                       DISAMBIGUATION_COLUMNS + (MERGE_STATUS,)):
            table = TWLTable(headers=header, rows=(make_row([''] * len(header)),))
            self.assertTrue(validate_schema(table), header)

    def test_illegal_column_count(self):
        header = CORE_COLUMNS + ('Extra',)
        problems = schema_problems(TWLTable(headers=header))
        self.assertEqual(len(problems), 1)
        self.assertIn("7 columns", problems[0])

    def test_wrong_column_names(self):
        header = CORE_COLUMNS + ('Quote', 'GLOccurrence')
        self.assertFalse(validate_schema(TWLTable(headers=header)))

    def test_row_width_mismatch_fails(self):
        table = parse(tsv(HEADER_6, "1:1\tab12\t\tword\t1"))
        problems = schema_problems(table)
        self.assertEqual(problems, ["Row 1 has 5 columns; header has 6"])

    def test_normalize_column_count(self):
        table = parse(tsv(HEADER_6, "1:1\tab12", "1:2\ta\tb\tc\t1\tl\textra"))
        fixed = normalize_column_count(table)
        self.assertEqual([len(r.cells) for r in fixed.rows], [6, 6])
        self.assertEqual(fixed.rows[0].cells, ("1:1", "ab12", "", "", "", ""))
        self.assertTrue(validate_schema(fixed))

    def test_default_header(self):
        self.assertEqual(default_header(8), GL_COLUMNS)
        self.assertEqual(default_header(3), CORE_COLUMNS[:3])
        self.assertEqual(len(default_header(7)), 7)


class TestTableUtilities(unittest.TestCase):

    def test_ensure_unique_ids(self):
        table = parse(tsv(
            HEADER_6,
            "1:1\tabcd\t\ta\t1\tl",
            "1:2\tabcd\t\tb\t1\tl",
            "1:3\tXYZ1\t\tc\t1\tl",
            "1:4\tef12\t\td\t1\tl",
        ))
        fixed = ensure_unique_ids(table, rng=random.Random(7))
        ids = [row.cells[1] for row in fixed.rows]
        self.assertEqual(ids[0], "abcd")
        self.assertEqual(ids[3], "ef12")
        self.assertEqual(len(set(ids)), 4)
        for value in ids:
            self.assertRegex(value, ID_PATTERN)

    def test_add_gl_quote_columns(self):
        table = parse(tsv(HEADER_6, "1:1\tab12\tkt\tword\t2\tlink"))
        widened = add_gl_quote_columns(table)
        self.assertEqual(widened.headers, GL_COLUMNS)
        self.assertEqual(widened.rows[0].cells, ("1:1", "ab12", "kt", "word", "2", "link", "word", "2"))
        self.assertIs(add_gl_quote_columns(widened), widened)

    def test_strip_column(self):
        header = GL_COLUMNS + (MERGE_STATUS,)
        table = TWLTable(headers=header, rows=(make_row([str(i) for i in range(9)]),))
        stripped = strip_column(table, MERGE_STATUS)
        self.assertEqual(stripped.headers, GL_COLUMNS)
        self.assertEqual(len(stripped.rows[0].cells), 8)
        self.assertIs(strip_column(stripped, MERGE_STATUS), stripped)

    def test_align_columns_moves_cells_by_name(self):
        header = GL_COLUMNS + (MERGE_STATUS,)
        table = TWLTable(headers=header, rows=(make_row([str(i) for i in range(9)], deleted=True),))
        aligned = align_columns(table, DISAMBIGUATION_COLUMNS + (MERGE_STATUS,))
        self.assertEqual(aligned.rows[0].cells, tuple(str(i) for i in range(8)) + ('', '', '8'))
        self.assertTrue(aligned.rows[0].deleted)

        narrowed = align_columns(table, CORE_COLUMNS)
        self.assertEqual(narrowed.headers, CORE_COLUMNS)
        self.assertEqual(narrowed.rows[0].cells, tuple(str(i) for i in range(6)))

    def test_commit_text_skips_deleted_rows(self):

        table = parse(tsv(
            HEADER_10,
            "1:1\tab12\t\tword\t1\tlink\tgl\t1\t\t",
            "DELETED 1:2\tcd34\t\tother\t1\tlink\tgl\t1\t\t",
        ))
        self.assertEqual(to_commit_text(table), tsv(HEADER_6, "1:1\tab12\t\tword\t1\tlink"))


if __name__ == '__main__':
    unittest.main()
