"""
TWL Pipeline - generated TWL in, reconciled TWL out

Runs the whole chain for one book:

  parse -> validate -> add GLQuote columns -> merge with the existing TWL
  -> drop unlinked words -> soft-delete marked rows -> reconcile verses
  -> (optional) repair IDs

Verse text is optional. When none is supplied and a Door43Client is given,
the ULT text of the book is fetched; if that fails the reconciler runs in
dedupe-only mode and the build still succeeds.
"""

import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from twl_model import TWLTable, SchemaError
from tsv_codec import (
    parse_auto,
    serialize,
    schema_problems,
    normalize_column_count,
    add_gl_quote_columns,
    ensure_unique_ids,
    to_commit_text,
)
from twl_merger import KEYED, MERGE_STRATEGIES, merge_tables
from row_markers import UnlinkedWord, DeletedRowMarker, filter_unlinked_words, apply_deleted_rows
from verse_ordering import VerseTexts, ReconcileReport, reconcile_with_report, DEDUPE_ONLY
from door43_client import DCS_HOST, Door43Client

ProgressCallback = Callable[[int, str], None]


@dataclass
class PipelineConfig:
    """Configuration for a TWL build."""
    merge_strategy: str = KEYED
    reorder_by_verse: bool = True
    add_gl_quote_columns: bool = True
    ensure_unique_ids: bool = False
    dcs_host: str = DCS_HOST
    debug: bool = False


@dataclass
class BuildResult:
    """Output of build_twl()."""
    table: TWLTable
    report: ReconcileReport
    merged: bool = False

    @property
    def tsv(self) -> str:
        return serialize(self.table)

    @property
    def commit_tsv(self) -> str:
        return to_commit_text(self.table)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tsv': self.tsv,
            'rowCount': len(self.table.rows),
            'merged': self.merged,
            'reconcile': self.report.to_dict(),
        }


def _debug_log(message: str, debug: bool = False, prefix: str = "[PIPELINE]"):
    """Print debug message if debug mode is enabled."""
    if debug:
        print(f"{prefix} {message}", file=sys.stderr, flush=True)


def load_table(text: str, label: str = "table", validate: bool = True) -> TWLTable:
    """Parse TSV text (with or without a header line).

    With validate=True a table whose header or row widths do not fit a known
    TWL layout raises SchemaError. Otherwise rows are padded or truncated to
    the header width.
    """
    table = parse_auto(text or '')
    if validate:
        problems = schema_problems(table)
        if problems:
            raise SchemaError(f"Invalid {label}: {problems[0]}", problems)
        return table
    return normalize_column_count(table)


def build_twl(
    generated_text: str,
    existing_text: Optional[str] = None,
    verse_texts: Optional[VerseTexts] = None,
    unlinked_words: Optional[Iterable[UnlinkedWord]] = None,
    deleted_rows: Optional[Iterable[DeletedRowMarker]] = None,
    config: Optional[PipelineConfig] = None,
    book: Optional[str] = None,
    client: Optional[Door43Client] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> BuildResult:
    """
    Build the reconciled TWL for one book.

    Args:
        generated_text: Freshly generated TWL (6, 8 or 10 columns)
        existing_text: Current TWL to merge with; None or blank skips the merge
        verse_texts: "chapter:verse" -> verse text (or word list)
        unlinked_words: Word/link pairs to drop from the output
        deleted_rows: Markers for rows to soft-delete
        config: Build options (defaults to PipelineConfig())
        book: Book code used to fetch verse text when verse_texts is None
        client: Door43 client used for that fetch
        progress_callback: Optional callback(percent, message)

    Returns:
        BuildResult with the final table and the reconcile report

    Raises:
        SchemaError: when either input does not fit a TWL layout
        ValueError: for an unknown merge strategy
    """
    config = config or PipelineConfig()
    debug = config.debug

    def report_progress(percent: int, message: str):
        _debug_log(f"{percent}% {message}", debug)
        if progress_callback:
            progress_callback(percent, message)

    if config.merge_strategy not in MERGE_STRATEGIES:
        raise ValueError(f"Unknown merge strategy: {config.merge_strategy}")

    report_progress(0, "Parsing generated TWL...")
    # Generated rows are squared up rather than rejected; the header must still be valid
    generated = load_table(generated_text, "generated TWL", validate=False)
    problems = schema_problems(generated)
    if problems:
        raise SchemaError(f"Invalid generated TWL: {problems[0]}", problems)

    existing = None
    if existing_text and existing_text.strip():
        report_progress(10, "Validating existing TWL...")
        existing = load_table(existing_text, "existing TWL", validate=True)

    if config.add_gl_quote_columns:
        generated = add_gl_quote_columns(generated)
        if existing is not None and len(existing.headers) < len(generated.headers):
            existing = add_gl_quote_columns(existing)

    table = generated
    merged = False
    if existing is not None:
        report_progress(25, f"Merging with existing TWL ({config.merge_strategy})...")
        table = merge_tables(generated, existing, strategy=config.merge_strategy, debug=debug)
        merged = True

    report_progress(45, "Applying unlinked words and deleted rows...")
    table = filter_unlinked_words(table, unlinked_words or [])
    table = apply_deleted_rows(table, deleted_rows or [])

    if config.reorder_by_verse and verse_texts is None and book and client is not None:
        report_progress(55, f"Fetching verse text for {book}...")
        verse_texts = client.fetch_verse_texts(book)
        if verse_texts is None:
            print(f"  ⚠ Verse text for {book} unavailable; rows will be deduplicated but not reordered",
                  file=sys.stderr)

    report_progress(75, "Reconciling verses...")
    table, report = reconcile_with_report(
        table,
        verse_texts if config.reorder_by_verse else None,
        debug=debug,
    )
    if report.mode == DEDUPE_ONLY:
        _debug_log("Reconciled in dedupe-only mode", debug)

    if config.ensure_unique_ids:
        table = ensure_unique_ids(table)

    report_progress(100, f"✓ Built {len(table.rows)} rows")
    return BuildResult(table=table, report=report, merged=merged)
