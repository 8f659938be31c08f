"""
TWL Model - rows, tables and the identities used to match them

A TWL table is a header (the ordered column names) plus an ordered sequence of
rows. Rows are immutable records: the in-band text conventions used in the TSV
files ("DELETED " in front of the Reference, "DONE " in front of the
Disambiguation) are decoded into explicit flags by the codec and re-applied
only when the table is serialized again. Nothing in here mutates a table;
every transformation returns a new one.
"""

import re
from dataclasses import dataclass, field, replace
from functools import cmp_to_key
from typing import List, Optional, Sequence, Tuple

from text_normalizer import (
    normalize_loose,
    normalize_tw_link,
    normalize_gl_quote,
    normalize_occurrence,
)


# ============================================================================
# SCHEMA
# ============================================================================

REFERENCE = 'Reference'
ID = 'ID'
TAGS = 'Tags'
ORIG_WORDS = 'OrigWords'
OCCURRENCE = 'Occurrence'
TW_LINK = 'TWLink'
GL_QUOTE = 'GLQuote'
GL_OCCURRENCE = 'GLOccurrence'
DISAMBIGUATION = 'Disambiguation'
CONTEXT = 'Context'
MERGE_STATUS = 'Merge Status'
ALREADY_EXISTS = 'Already Exists'

CORE_COLUMNS = (REFERENCE, ID, TAGS, ORIG_WORDS, OCCURRENCE, TW_LINK)
GL_COLUMNS = CORE_COLUMNS + (GL_QUOTE, GL_OCCURRENCE)
DISAMBIGUATION_COLUMNS = GL_COLUMNS + (DISAMBIGUATION, CONTEXT)

# Column positions fixed by the schema
REFERENCE_INDEX = 0
ID_INDEX = 1
ORIG_WORDS_INDEX = 3
OCCURRENCE_INDEX = 4
TW_LINK_INDEX = 5
GL_QUOTE_INDEX = 6
GL_OCCURRENCE_INDEX = 7
DISAMBIGUATION_INDEX = 8
CONTEXT_INDEX = 9

# Every header shape the validator accepts
KNOWN_HEADERS = (
    CORE_COLUMNS,
    GL_COLUMNS,
    GL_COLUMNS + (MERGE_STATUS,),
    GL_COLUMNS + (ALREADY_EXISTS,),
    DISAMBIGUATION_COLUMNS,
    DISAMBIGUATION_COLUMNS + (MERGE_STATUS,),
    DISAMBIGUATION_COLUMNS + (ALREADY_EXISTS,),
)

LEGAL_COLUMN_COUNTS = (6, 8, 9, 10, 11)

DELETED_PREFIX = 'DELETED '
DONE_PREFIX = 'DONE '


class SchemaError(ValueError):
    """Raised when a table does not match any recognized header shape."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or [message]


def default_header(column_count: int) -> Tuple[str, ...]:
    """Header to assume for header-less input with the given width."""
    for header in KNOWN_HEADERS:
        if len(header) == column_count:
            return header
    if column_count <= len(CORE_COLUMNS):
        return CORE_COLUMNS[:column_count]
    extra = tuple(f"Column {i + 1}" for i in range(len(CORE_COLUMNS), column_count))
    return CORE_COLUMNS + extra


# ============================================================================
# MERGE STATUS
# ============================================================================

class MergeStatus:
    """Provenance markers written to the Merge Status column."""
    NEW = 'NEW'
    OLD = 'OLD'
    MERGED = 'MERGED'

    PRIORITY = {MERGED: 3, NEW: 2, OLD: 1}

    @classmethod
    def priority(cls, status: str) -> int:
        """Dedup preference: MERGED > NEW > OLD > none."""
        return cls.PRIORITY.get((status or '').strip().upper(), 0)


# ============================================================================
# ROWS AND TABLES
# ============================================================================

@dataclass(frozen=True)
class TWLRow:
    """One TWL record.

    cells[0] never carries the "DELETED " prefix and the Disambiguation cell
    never carries "DONE "; those conventions live in the two flags.
    """
    cells: Tuple[str, ...]
    deleted: bool = False
    disambiguation_resolved: bool = False

    def cell(self, index: int) -> str:
        """Cell text, or '' when the row is too short."""
        if 0 <= index < len(self.cells):
            return self.cells[index]
        return ''

    @property
    def reference(self) -> str:
        return self.cell(REFERENCE_INDEX)

    @property
    def orig_words(self) -> str:
        return self.cell(ORIG_WORDS_INDEX)

    @property
    def occurrence(self) -> str:
        return self.cell(OCCURRENCE_INDEX)

    @property
    def tw_link(self) -> str:
        return self.cell(TW_LINK_INDEX)

    @property
    def gl_quote(self) -> str:
        return self.cell(GL_QUOTE_INDEX)

    @property
    def gl_occurrence(self) -> str:
        return self.cell(GL_OCCURRENCE_INDEX)

    @property
    def disambiguation(self) -> str:
        return self.cell(DISAMBIGUATION_INDEX)

    def with_cell(self, index: int, value: str) -> 'TWLRow':
        """Copy of the row with one cell replaced (padding with '' if needed)."""
        cells = list(self.cells)
        while len(cells) <= index:
            cells.append('')
        cells[index] = value
        return replace(self, cells=tuple(cells))

    def with_cells(self, cells: Sequence[str]) -> 'TWLRow':
        return replace(self, cells=tuple(cells))

    def appended(self, *values: str) -> 'TWLRow':
        return replace(self, cells=self.cells + tuple(values))

    def fitted(self, width: int) -> 'TWLRow':
        """Copy padded with '' or truncated to exactly `width` cells."""
        cells = self.cells[:width]
        if len(cells) < width:
            cells = cells + ('',) * (width - len(cells))
        return replace(self, cells=cells)

    def filled_count(self) -> int:
        """Number of non-blank cells (row completeness)."""
        return sum(1 for c in self.cells if c and c.strip())


def make_row(cells: Sequence[str], deleted: bool = False, resolved: bool = False) -> TWLRow:
    return TWLRow(cells=tuple(cells), deleted=deleted, disambiguation_resolved=resolved)


@dataclass(frozen=True)
class TWLTable:
    """Header plus rows. Immutable; see the codec for text conversion."""
    headers: Tuple[str, ...]
    rows: Tuple[TWLRow, ...] = field(default_factory=tuple)

    def column_index(self, name: str) -> int:
        """Index of the named column, or -1."""
        try:
            return self.headers.index(name)
        except ValueError:
            return -1

    def has_column(self, name: str) -> bool:
        return name in self.headers

    def value(self, row: TWLRow, name: str) -> str:
        """Cell of `row` under the named column ('' if absent)."""
        index = self.column_index(name)
        return row.cell(index) if index >= 0 else ''

    def merge_status(self, row: TWLRow) -> str:
        return self.value(row, MERGE_STATUS).strip().upper()

    def with_rows(self, rows: Sequence[TWLRow]) -> 'TWLTable':
        return TWLTable(headers=self.headers, rows=tuple(rows))

    def __len__(self) -> int:
        return len(self.rows)


# ============================================================================
# REFERENCE COMPARATOR
# ============================================================================

_LEADING_INT = re.compile(r'\s*([+-]?\d+)')


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text or '')
    return int(match.group(1)) if match else 0


def parse_reference(reference: str) -> Tuple[int, int]:
    """Parse "chapter:verse"; missing or non-numeric parts become 0."""
    parts = (reference or '').split(':')
    chapter = _leading_int(parts[0])
    verse = _leading_int(parts[1]) if len(parts) > 1 else 0
    return chapter, verse


def compare_references(ref_a: str, ref_b: str) -> int:
    """Numeric chapter-then-verse comparison returning -1, 0 or 1."""
    a = parse_reference(ref_a)
    b = parse_reference(ref_b)
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


reference_sort_key = cmp_to_key(compare_references)


# ============================================================================
# ROW IDENTITY
# ============================================================================

@dataclass(frozen=True)
class RowKey:
    """Order-independent identity of the annotation target a row describes.

    `words` holds the loose-normalized OrigWords, or when OrigWords is blank
    the normalized GLQuote joined with its GLOccurrence (kind == 'quote').
    """
    reference: str
    kind: str
    words: str
    occurrence: str
    tw_link: str

    def without_link(self) -> 'RowKey':
        """Key used to find merge candidates, which may differ only by TWLink."""
        return replace(self, tw_link='')


def row_key(row: TWLRow) -> RowKey:
    """Build the RowKey of a row laid out in the fixed schema."""
    reference = row.reference.strip()
    occurrence = normalize_occurrence(row.occurrence, '1')
    tw_link = normalize_tw_link(row.tw_link)
    orig_words = normalize_loose(row.orig_words)
    if orig_words:
        return RowKey(reference, 'source', orig_words, occurrence, tw_link)
    gl_quote = normalize_gl_quote(row.gl_quote)
    gl_occurrence = normalize_occurrence(row.gl_occurrence, occurrence)
    return RowKey(reference, 'quote', f"{gl_quote}|{gl_occurrence}", occurrence, tw_link)
