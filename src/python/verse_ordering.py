"""
Verse Reconciler - deduplicates and orders TWL rows within each verse

Rows are grouped by verse reference (first-seen order of verses is kept).
Inside a verse:

  1. Rows sharing a RowKey are true duplicates. One survivor is kept: the
     best Merge Status (MERGED > NEW > OLD > none), then the most filled-in
     cells, then the earliest row.
  2. Survivors are ordered by where their quote starts in the reference
     translation's verse text (GLQuote/GLOccurrence, or OrigWords/Occurrence
     when the GLQuote is blank). Rows whose quote cannot be located, or whose
     verse text is unavailable, go after the located rows in their original
     order.

Without any verse text the reconciler still deduplicates ("dedupe-only"
mode); this is what the pipeline falls back to when the verse-text fetch
fails.
"""

import sys
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from twl_model import (
    TWLRow,
    TWLTable,
    MergeStatus,
    RowKey,
    GL_QUOTE,
    GL_OCCURRENCE,
    row_key,
)
from text_normalizer import normalize_occurrence, parse_occurrence
from quote_locator import locate

VerseTexts = Mapping[str, Union[str, Sequence[str]]]

ORDERED = 'ordered'
DEDUPE_ONLY = 'dedupe-only'


def _debug_log(message: str, debug: bool = False, prefix: str = "[VERSE-ORDER]"):
    """Print debug message if debug mode is enabled."""
    if debug:
        print(f"{prefix} {message}", file=sys.stderr, flush=True)


@dataclass
class ReconcileReport:
    """What a reconcile pass did."""
    mode: str
    verse_count: int = 0
    duplicates_removed: int = 0
    reordered_verses: int = 0
    unlocated_rows: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            'mode': self.mode,
            'verseCount': self.verse_count,
            'duplicatesRemoved': self.duplicates_removed,
            'reorderedVerses': self.reordered_verses,
            'unlocatedRows': self.unlocated_rows,
        }


# ============================================================================
# DEDUPLICATION
# ============================================================================

def _preference(table: TWLTable, row: TWLRow, position: int) -> Tuple[int, int, int]:
    """Sort key where the smallest value is the preferred duplicate."""
    return (-MergeStatus.priority(table.merge_status(row)), -row.filled_count(), position)


def dedupe_verse(table: TWLTable, rows: Sequence[TWLRow]) -> List[TWLRow]:
    """Collapse rows sharing a RowKey, keeping the survivors in their original order."""
    buckets: Dict[RowKey, List[int]] = {}
    for position, row in enumerate(rows):
        buckets.setdefault(row_key(row), []).append(position)

    keep = set()
    for positions in buckets.values():
        best = min(positions, key=lambda p: _preference(table, rows[p], p))
        keep.add(best)
    return [row for position, row in enumerate(rows) if position in keep]


def group_by_verse(rows: Sequence[TWLRow]) -> Dict[str, List[TWLRow]]:
    """Rows per reference, in first-seen reference order."""
    groups: Dict[str, List[TWLRow]] = {}
    for row in rows:
        groups.setdefault(row.reference.strip(), []).append(row)
    return groups


# ============================================================================
# ORDERING
# ============================================================================

def _verse_words(verse_texts: Optional[VerseTexts], reference: str) -> Optional[Sequence[str]]:
    if not verse_texts:
        return None
    verse = verse_texts.get(reference)
    if not verse:
        return None
    if isinstance(verse, str):
        return verse.split()
    return verse


def quote_position(table: TWLTable, row: TWLRow, words: Optional[Sequence[str]]) -> Optional[int]:
    """Index of the first word of the row's quote in `words`, or None."""
    if not words:
        return None
    quote = table.value(row, GL_QUOTE).strip()
    if quote:
        occurrence = normalize_occurrence(table.value(row, GL_OCCURRENCE), row.occurrence)
    else:
        quote = row.orig_words.strip()
        occurrence = row.occurrence
    if not quote:
        return None
    match = locate(words, quote, parse_occurrence(occurrence))
    return match.start if match else None


def order_verse(table: TWLTable, rows: Sequence[TWLRow], words: Optional[Sequence[str]]) -> Tuple[List[TWLRow], int]:
    """Rows sorted by quote position; returns (rows, number of unlocated rows)."""
    positions = [quote_position(table, row, words) for row in rows]

    def sort_key(index: int):
        position = positions[index]
        if position is None:
            return (1, 0, index)
        return (0, position, index)

    order = sorted(range(len(rows)), key=sort_key)
    unlocated = sum(1 for p in positions if p is None)
    return [rows[i] for i in order], unlocated


# ============================================================================
# ENTRY POINTS
# ============================================================================

def reconcile_with_report(table: TWLTable, verse_texts: Optional[VerseTexts] = None,
                          debug: bool = False) -> Tuple[TWLTable, ReconcileReport]:
    """Deduplicate and reorder every verse group; also report what changed."""
    mode = ORDERED if verse_texts else DEDUPE_ONLY
    report = ReconcileReport(mode=mode)
    if mode == DEDUPE_ONLY:
        _debug_log("No verse text available, running dedupe-only", debug)

    groups = group_by_verse(table.rows)
    report.verse_count = len(groups)
    result: List[TWLRow] = []

    for reference, rows in groups.items():
        survivors = dedupe_verse(table, rows)
        removed = len(rows) - len(survivors)
        if removed:
            report.duplicates_removed += removed
            _debug_log(f"Removed {removed} duplicate row(s) in {reference}", debug)

        words = _verse_words(verse_texts, reference)
        if words is None:
            if mode == ORDERED:
                _debug_log(f"No verse text for {reference}; keeping deduped order", debug)
            report.unlocated_rows += len(survivors)
            result.extend(survivors)
            continue

        ordered, unlocated = order_verse(table, survivors, words)
        report.unlocated_rows += unlocated
        if ordered != survivors:
            report.reordered_verses += 1
            _debug_log(f"Reordered {reference}: {len(ordered)} rows", debug)
        result.extend(ordered)

    _debug_log(f"{report.reordered_verses} verse(s) reordered, {report.duplicates_removed} duplicate(s) removed", debug)
    return table.with_rows(result), report


def reconcile(table: TWLTable, verse_texts: Optional[VerseTexts] = None, debug: bool = False) -> TWLTable:
    """Deduplicate rows per verse and order them by quote position in the verse text."""
    reconciled, _ = reconcile_with_report(table, verse_texts, debug=debug)
    return reconciled
