"""
TWL Merger - reconciles a freshly generated TWL with an existing one

Two strategies, one per kind of existing TWL:

  interleave (Strategy A)
      For plain 6-column existing TWLs. Both tables are walked in reference
      order with two cursors; an existing row whose (Reference, OrigWords,
      Occurrence) matches a generated row donates its first six cells to it.
      Output gains an "Already Exists" column holding 'x' for rows that came
      from (or matched) the existing table.

  keyed (Strategy B)
      For the disambiguated / GLQuote workflow. Existing rows are bucketed by
      their row key (without TWLink). A generated row claims a candidate whose
      TWLink matches, or failing that one whose article is listed in the
      generated row's Disambiguation cell. Output gains a "Merge Status"
      column: MERGED, NEW or OLD.

Existing rows are first laid out under the generated header by column name,
with any status column from an earlier merge dropped. Soft-deleted rows never
take part in matching; they are carried through.
Both functions are pure: the input tables are not modified.
"""

import sys
from dataclasses import replace
from typing import Dict, List, Optional, Set

from twl_model import (
    TWLRow,
    TWLTable,
    MergeStatus,
    RowKey,
    CORE_COLUMNS,
    CONTEXT,
    DISAMBIGUATION,
    MERGE_STATUS,
    ALREADY_EXISTS,
    compare_references,
    reference_sort_key,
    row_key,
)
from text_normalizer import normalize_tw_link
from tsv_codec import align_columns, normalize_column_count, strip_column
from disambiguation import parse_options, article_from_link, merge_options

KEYED = 'keyed'
INTERLEAVE = 'interleave'
MERGE_STRATEGIES = (KEYED, INTERLEAVE)

EXISTS_MARK = 'x'
OLD_CONTEXT_PLACEHOLDER = 'N/A'

CORE_WIDTH = len(CORE_COLUMNS)


def _debug_log(message: str, debug: bool = False, prefix: str = "[MERGE]"):
    """Print debug message if debug mode is enabled."""
    if debug:
        print(f"{prefix} {message}", file=sys.stderr, flush=True)


def _with_core_from(target: TWLRow, donor: TWLRow) -> TWLRow:
    """Copy of `target` whose first six cells come from `donor`."""
    core = donor.fitted(CORE_WIDTH).cells
    return target.with_cells(core + target.cells[CORE_WIDTH:])


def _prepare_generated(generated: TWLTable) -> TWLTable:
    """Drop markers left by an earlier merge and square up the rows."""
    generated = strip_column(generated, MERGE_STATUS)
    generated = strip_column(generated, ALREADY_EXISTS)
    return normalize_column_count(generated)


def _prepare_existing(existing: TWLTable, headers) -> TWLTable:
    """Drop markers left by an earlier merge and lay the rows out under `headers`."""
    existing = strip_column(existing, MERGE_STATUS)
    existing = strip_column(existing, ALREADY_EXISTS)
    return align_columns(existing, headers)


# ============================================================================
# STRATEGY A: REFERENCE-INTERLEAVE MERGE
# ============================================================================

def _same_target(existing: TWLRow, generated: TWLRow) -> bool:
    return (existing.reference == generated.reference
            and existing.orig_words == generated.orig_words
            and existing.occurrence == generated.occurrence)


def merge_interleave(generated: TWLTable, existing: TWLTable, debug: bool = False) -> TWLTable:
    """Interleave existing rows into the generated sequence by reference.

    Both tables are expected to be sorted by reference already. When the
    existing table has no rows the generated table is returned unchanged.
    """
    if not existing.rows:
        return generated

    generated = _prepare_generated(generated)
    existing = _prepare_existing(existing, generated.headers)
    width = len(generated.headers)
    headers = generated.headers + (ALREADY_EXISTS,)
    generated_rows = generated.rows
    merged: List[TWLRow] = []
    pointer = 0
    matched = 0

    for existing_row in existing.rows:
        existing_ref = existing_row.reference

        # Generated rows that sort before this existing row
        while pointer < len(generated_rows) and compare_references(generated_rows[pointer].reference, existing_ref) < 0:
            merged.append(generated_rows[pointer].appended(''))
            pointer += 1

        match_index: Optional[int] = None
        if not existing_row.deleted:
            probe = pointer
            while probe < len(generated_rows):
                candidate = generated_rows[probe]
                order = compare_references(candidate.reference, existing_ref)
                if order > 0:
                    break
                if order == 0 and not candidate.deleted and _same_target(existing_row, candidate):
                    match_index = probe
                    break
                probe += 1

        if match_index is None:
            merged.append(existing_row.fitted(width).appended(EXISTS_MARK))
            continue

        while pointer < match_index:
            merged.append(generated_rows[pointer].appended(''))
            pointer += 1
        merged.append(_with_core_from(generated_rows[match_index], existing_row).appended(EXISTS_MARK))
        pointer += 1
        matched += 1

    for row in generated_rows[pointer:]:
        merged.append(row.appended(''))

    _debug_log(f"interleave: {matched} matched, {len(existing.rows) - matched} existing-only, "
               f"{len(generated_rows) - matched} generated-only", debug)
    return TWLTable(headers=headers, rows=tuple(merged))


# ============================================================================
# STRATEGY B: KEYED THREE-WAY MERGE
# ============================================================================

def _candidate_buckets(rows) -> Dict[RowKey, List[int]]:
    """Existing row positions per match key, in table order; deleted rows excluded."""
    buckets: Dict[RowKey, List[int]] = {}
    for position, row in enumerate(rows):
        if row.deleted:
            continue
        buckets.setdefault(row_key(row).without_link(), []).append(position)
    return buckets


def _claim_matches(generated: TWLTable, existing_rows) -> Dict[int, int]:
    """Pair generated rows with existing rows (generated position -> existing position).

    Exact TWLink matches are settled for every generated row before any
    Disambiguation-option match is tried, so an option match can never take
    an existing row away from the row that carries its exact link.
    """
    buckets = _candidate_buckets(existing_rows)
    consumed: Set[int] = set()
    pairs: Dict[int, int] = {}
    disambiguation_index = generated.column_index(DISAMBIGUATION)

    keys = {}
    for position, row in enumerate(generated.rows):
        if not row.deleted:
            keys[position] = row_key(row).without_link()

    # Pass 1: same TWLink
    for position, key in keys.items():
        link = normalize_tw_link(generated.rows[position].tw_link)
        for candidate in buckets.get(key, []):
            if candidate not in consumed and normalize_tw_link(existing_rows[candidate].tw_link) == link:
                pairs[position] = candidate
                consumed.add(candidate)
                break

    # Pass 2: existing article is one of the generated row's options
    if disambiguation_index >= 0:
        for position, key in keys.items():
            if position in pairs:
                continue
            options = parse_options(generated.rows[position].cell(disambiguation_index))
            if not options:
                continue
            for candidate in buckets.get(key, []):
                if candidate not in consumed and article_from_link(existing_rows[candidate].tw_link) in options:
                    pairs[position] = candidate
                    consumed.add(candidate)
                    break

    return pairs


def _merged_row(generated_row: TWLRow, existing_row: TWLRow, disambiguation_index: int) -> TWLRow:
    row = _with_core_from(generated_row, existing_row)
    if disambiguation_index >= 0:
        cell = merge_options(generated_row.cell(disambiguation_index), generated_row.tw_link, existing_row.tw_link)
        row = row.with_cell(disambiguation_index, cell)
        # A choice already resolved upstream stays resolved while the link is unchanged
        if existing_row.disambiguation_resolved and \
                normalize_tw_link(existing_row.tw_link) == normalize_tw_link(generated_row.tw_link):
            row = replace(row, disambiguation_resolved=True)
    return row.appended(MergeStatus.MERGED)



def _old_row(existing_row: TWLRow, width: int, context_index: int) -> TWLRow:
    row = existing_row.fitted(width)
    if context_index >= 0 and not row.cell(context_index).strip():
        row = row.with_cell(context_index, OLD_CONTEXT_PLACEHOLDER)
    return row.appended(MergeStatus.OLD)


def merge_keyed(generated: TWLTable, existing: TWLTable, debug: bool = False) -> TWLTable:
    """Keyed three-way merge producing MERGED / NEW / OLD rows.

    Unclaimed existing rows are placed by reference among the processed
    generated rows, ahead of generated rows with the same reference.
    """
    generated = _prepare_generated(generated)
    if not generated.rows and not existing.rows:
        return generated
    existing = _prepare_existing(existing, generated.headers)

    width = len(generated.headers)
    headers = generated.headers + (MERGE_STATUS,)
    disambiguation_index = generated.column_index(DISAMBIGUATION)
    context_index = generated.column_index(CONTEXT)
    existing_rows = existing.rows

    pairs = _claim_matches(generated, existing_rows)

    processed: List[TWLRow] = []
    for position, row in enumerate(generated.rows):
        if position in pairs:
            processed.append(_merged_row(row, existing_rows[pairs[position]], disambiguation_index))
        else:
            processed.append(row.appended(MergeStatus.NEW))

    consumed = set(pairs.values())
    leftovers = [row for position, row in enumerate(existing_rows) if position not in consumed]
    # sorted() is stable, so rows sharing a reference keep their table order
    leftovers = sorted(leftovers, key=lambda r: reference_sort_key(r.reference))
    old_rows = [_old_row(row, width, context_index) for row in leftovers]

    merged: List[TWLRow] = []
    g = 0
    o = 0
    while g < len(processed) and o < len(old_rows):
        if compare_references(old_rows[o].reference, processed[g].reference) <= 0:
            merged.append(old_rows[o])
            o += 1
        else:
            merged.append(processed[g])
            g += 1
    merged.extend(old_rows[o:])
    merged.extend(processed[g:])

    _debug_log(f"keyed: {len(pairs)} MERGED, {len(processed) - len(pairs)} NEW, {len(old_rows)} OLD", debug)
    return TWLTable(headers=headers, rows=tuple(merged))


def merge_tables(generated: TWLTable, existing: TWLTable, strategy: str = KEYED, debug: bool = False) -> TWLTable:
    """Merge with the named strategy ('keyed' or 'interleave')."""
    if strategy == KEYED:
        return merge_keyed(generated, existing, debug=debug)
    if strategy == INTERLEAVE:
        return merge_interleave(generated, existing, debug=debug)
    raise ValueError(f"Unknown merge strategy: {strategy}")
