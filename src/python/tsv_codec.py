"""
TSV codec for TWL tables

Converts between tab-separated TWL text and TWLTable, validates the fixed
column layouts, and provides the table utilities applied around a merge
(unique IDs, GLQuote columns, commit export).

Parsing never drops cells: rows keep the width they had in the text, even
when it disagrees with the header. Call normalize_column_count() before any
index-based processing.
"""

import random
import re
from typing import List, Optional, Sequence

from twl_model import (
    TWLRow,
    TWLTable,
    KNOWN_HEADERS,
    LEGAL_COLUMN_COUNTS,
    CORE_COLUMNS,
    DELETED_PREFIX,
    DONE_PREFIX,
    REFERENCE,
    ID,
    TAGS,
    ORIG_WORDS,
    OCCURRENCE,
    TW_LINK,
    GL_QUOTE,
    GL_OCCURRENCE,
    DISAMBIGUATION,
    default_header,
)


BOM = chr(0xFEFF)


# ============================================================================
# LINE HANDLING
# ============================================================================

def _split_lines(text: str) -> List[str]:
    """Non-empty lines, with a trailing carriage return removed."""
    if not text:
        return []
    lines = []
    for line in text.split('\n'):
        if line.endswith('\r'):
            line = line[:-1]
        if line:
            lines.append(line)
    return lines


def _clean_header(name: str) -> str:
    return name.replace(BOM, '').strip()


def has_header(text: str) -> bool:
    """True when the first line starts with the Reference, ID, Tags columns."""
    lines = _split_lines(text)
    if not lines:
        return False
    first = [_clean_header(c) for c in lines[0].split('\t')]
    return len(first) >= 3 and first[:3] == [REFERENCE, ID, TAGS]


# ============================================================================
# PARSE / SERIALIZE
# ============================================================================

def _decode_row(cells: List[str], disambiguation_index: int) -> TWLRow:
    """Turn in-band prefixes into row flags."""
    deleted = False
    resolved = False
    if cells and cells[0].startswith(DELETED_PREFIX):
        cells[0] = cells[0][len(DELETED_PREFIX):]
        deleted = True
    if 0 <= disambiguation_index < len(cells) and cells[disambiguation_index].startswith(DONE_PREFIX):
        cells[disambiguation_index] = cells[disambiguation_index][len(DONE_PREFIX):]
        resolved = True
    return TWLRow(cells=tuple(cells), deleted=deleted, disambiguation_resolved=resolved)


def _encode_row(row: TWLRow, disambiguation_index: int) -> List[str]:
    cells = list(row.cells)
    if row.deleted and cells:
        cells[0] = DELETED_PREFIX + cells[0]
    if row.disambiguation_resolved and 0 <= disambiguation_index < len(cells):
        cells[disambiguation_index] = DONE_PREFIX + cells[disambiguation_index]
    return cells


def parse(text: str, expect_header: bool = True) -> TWLTable:
    """Parse TSV text into a table.

    Without a header line the standard header for the first row's width is
    assumed (see twl_model.default_header).
    """
    lines = _split_lines(text)
    if not lines:
        return TWLTable(headers=tuple() if expect_header else CORE_COLUMNS)

    if expect_header:
        headers = tuple(_clean_header(c) for c in lines[0].split('\t'))
        body = lines[1:]
    else:
        headers = default_header(len(lines[0].split('\t')))
        body = lines

    disambiguation_index = headers.index(DISAMBIGUATION) if DISAMBIGUATION in headers else -1
    rows = tuple(_decode_row(line.split('\t'), disambiguation_index) for line in body)
    return TWLTable(headers=headers, rows=rows)


def parse_auto(text: str) -> TWLTable:
    """Parse text that may or may not start with a header line."""
    return parse(text, expect_header=has_header(text))


def serialize(table: TWLTable) -> str:
    """Header line plus one line per row, joined with newlines."""
    disambiguation_index = table.column_index(DISAMBIGUATION)
    lines = ['\t'.join(table.headers)]
    lines.extend('\t'.join(_encode_row(row, disambiguation_index)) for row in table.rows)
    return '\n'.join(lines)


# ============================================================================
# VALIDATION
# ============================================================================

def schema_problems(table: TWLTable) -> List[str]:
    """Describe every way the table departs from the fixed TWL layouts."""
    problems = []
    width = len(table.headers)
    if width not in LEGAL_COLUMN_COUNTS:
        problems.append(f"Header has {width} columns; expected one of {', '.join(map(str, LEGAL_COLUMN_COUNTS))}")
    elif tuple(table.headers) not in KNOWN_HEADERS:
        expected = [h for h in KNOWN_HEADERS if len(h) == width]
        problems.append(
            f"Unrecognized header {list(table.headers)}; expected "
            + ' or '.join(str(list(h)) for h in expected)
        )
    for number, row in enumerate(table.rows, start=1):
        if len(row.cells) != width:
            problems.append(f"Row {number} has {len(row.cells)} columns; header has {width}")
    return problems


def validate_schema(table: TWLTable) -> bool:
    """True when the header is a known layout and every row matches its width."""
    return not schema_problems(table)


def normalize_column_count(table: TWLTable) -> TWLTable:
    """Pad short rows with '' and truncate long rows to the header width."""
    width = len(table.headers)
    return table.with_rows([row.fitted(width) for row in table.rows])


# ============================================================================
# TABLE UTILITIES
# ============================================================================

ID_PATTERN = re.compile(r'^[a-z][a-z0-9]{3}$')
ID_FIRST_CHARS = 'abcdefghijklmnopqrstuvwxyz'
ID_OTHER_CHARS = 'abcdefghijklmnopqrstuvwxyz0123456789'


def _generate_id(used: set, rng: random.Random) -> str:
    while True:
        new_id = rng.choice(ID_FIRST_CHARS) + ''.join(rng.choice(ID_OTHER_CHARS) for _ in range(3))
        if new_id not in used:
            return new_id


def ensure_unique_ids(table: TWLTable, rng: Optional[random.Random] = None) -> TWLTable:
    """Replace malformed or repeated IDs with fresh ones."""
    id_index = table.column_index(ID)
    if id_index == -1:
        return table
    rng = rng or random.Random()
    used = set()
    rows = []
    for row in table.rows:
        if len(row.cells) <= id_index:
            rows.append(row)
            continue
        current = row.cells[id_index]
        if not ID_PATTERN.match(current) or current in used:
            current = _generate_id(used, rng)
            row = row.with_cell(id_index, current)
        used.add(current)
        rows.append(row)
    return table.with_rows(rows)


def add_gl_quote_columns(table: TWLTable) -> TWLTable:
    """Insert GLQuote / GLOccurrence after TWLink, seeded from OrigWords / Occurrence."""
    if table.has_column(GL_QUOTE):
        return table
    orig_index = table.column_index(ORIG_WORDS)
    occurrence_index = table.column_index(OCCURRENCE)
    link_index = table.column_index(TW_LINK)
    if -1 in (orig_index, occurrence_index, link_index):
        return table

    headers = table.headers[:link_index + 1] + (GL_QUOTE, GL_OCCURRENCE) + table.headers[link_index + 1:]
    rows = []
    for row in table.rows:
        if len(row.cells) <= max(orig_index, occurrence_index, link_index):
            rows.append(row)
            continue
        cells = row.cells[:link_index + 1] + (row.cells[orig_index], row.cells[occurrence_index]) + row.cells[link_index + 1:]
        rows.append(row.with_cells(cells))
    return TWLTable(headers=headers, rows=tuple(rows))


def strip_column(table: TWLTable, name: str) -> TWLTable:
    """Remove the named column from the header and every row."""
    index = table.column_index(name)
    if index == -1:
        return table
    headers = table.headers[:index] + table.headers[index + 1:]
    rows = [row.with_cells(row.cells[:index] + row.cells[index + 1:]) for row in table.rows]
    return TWLTable(headers=headers, rows=tuple(rows))


def align_columns(table: TWLTable, headers: Sequence[str]) -> TWLTable:
    """Lay every row out under `headers`, moving cells by column name.

    Columns missing from the table come out blank; columns not named in
    `headers` are dropped.
    """
    headers = tuple(headers)
    if table.headers == headers:
        return normalize_column_count(table)
    sources = [table.column_index(name) for name in headers]
    rows = [row.with_cells(tuple(row.cell(i) if i >= 0 else '' for i in sources)) for row in table.rows]
    return TWLTable(headers=headers, rows=tuple(rows))


def to_commit_text(table: TWLTable) -> str:
    """The six core columns of every live row, as committed upstream."""
    core = len(CORE_COLUMNS)
    lines = ['\t'.join(table.headers[:core])]
    for row in table.rows:
        if row.deleted:
            continue
        lines.append('\t'.join(row.cells[:core]))
    return '\n'.join(lines)
