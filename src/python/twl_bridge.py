#!/usr/bin/env python3
"""
TWL Python Bridge

JSON-based subprocess interface for the TWL editor:
1. Validate pasted TWL content
2. Merge a generated TWL with an existing one
3. Reconcile (deduplicate and order) a TWL against verse text
4. Run the full build for a book, fetching verse text from Door43 if needed

Protocol: Reads one JSON command from stdin, writes JSON lines to stdout.
Progress updates are sent as {"type": "progress", ...}; the answer is a single
{"type": "result", ...} or {"type": "error", ...} line. Diagnostics go to
stderr so stdout stays machine-readable.
"""

import sys
import json
import traceback
from typing import Optional, Dict, Any, List

from twl_model import SchemaError
from tsv_codec import parse_auto, serialize, schema_problems
from twl_merger import KEYED, merge_tables
from verse_ordering import reconcile_with_report
from quote_locator import locate
from usfm_verses import extract_verse_text, tokenize_verse
from text_normalizer import parse_occurrence
from row_markers import UnlinkedWord, DeletedRowMarker
from door43_client import Door43Client, DCS_HOST, DEFAULT_BRANCH
from twl_pipeline import PipelineConfig, build_twl, load_table

BUILD_STAGE = 1
BUILD_STAGE_NAME = "Building TWL"

# ============================================================================
# PROGRESS REPORTING
# ============================================================================

def _emit(message_type: str, **fields):
    """Write one JSON line to stdout."""
    print(json.dumps({"type": message_type, **fields}, ensure_ascii=False), flush=True)


def emit_progress(stage: int, stage_name: str, percent: int, message: str = ""):
    """Progress line for a long-running command."""
    _emit("progress", stage=stage, stageName=stage_name, percent=percent, message=message)


def emit_error(error: str, stage: Optional[int] = None):
    _emit("error", error=error, stage=stage)


def emit_result(data: Dict[str, Any]):
    _emit("result", **data)


# ============================================================================
# COMMAND HELPERS
# ============================================================================

def _verse_texts_from(command: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """verseTexts map, or verses extracted from a 'usfm' field."""
    verse_texts = command.get('verseTexts')
    if verse_texts:
        return verse_texts
    usfm = command.get('usfm')
    if usfm:
        return extract_verse_text(usfm) or None
    return None


def _unlinked_words_from(items: Optional[List[Dict[str, Any]]]) -> List[UnlinkedWord]:
    return [UnlinkedWord.from_dict(item) for item in (items or [])]


def _deleted_rows_from(items: Optional[List[Dict[str, Any]]]) -> List[DeletedRowMarker]:
    return [DeletedRowMarker.from_dict(item) for item in (items or [])]


def _config_from(command: Dict[str, Any]) -> PipelineConfig:
    return PipelineConfig(
        merge_strategy=command.get('strategy', KEYED),
        reorder_by_verse=command.get('reorderByVerse', True),
        add_gl_quote_columns=command.get('addGLQuoteColumns', True),
        ensure_unique_ids=command.get('ensureUniqueIds', False),
        dcs_host=command.get('dcsHost', DCS_HOST),
        debug=command.get('debug', False),
    )


# ============================================================================
# COMMANDS
# ============================================================================

def validate_tsv(text: str) -> Dict[str, Any]:
    table = parse_auto(text)
    problems = schema_problems(table)
    return {
        'valid': not problems,
        'problems': problems,
        'columns': list(table.headers),
        'rowCount': len(table.rows),
    }


def merge_tsv(generated_text: str, existing_text: str, strategy: str = KEYED,
              debug: bool = False) -> Dict[str, Any]:
    generated = load_table(generated_text, "generated TWL", validate=False)
    existing = load_table(existing_text, "existing TWL", validate=True)
    merged = merge_tables(generated, existing, strategy=strategy, debug=debug)
    return {'tsv': serialize(merged), 'rowCount': len(merged.rows)}


def reconcile_tsv(text: str, verse_texts: Optional[Dict[str, str]], debug: bool = False) -> Dict[str, Any]:
    table = load_table(text, "TWL", validate=False)
    reconciled, report = reconcile_with_report(table, verse_texts, debug=debug)
    return {'tsv': serialize(reconciled), 'reconcile': report.to_dict()}


def run_build(command: Dict[str, Any]) -> Dict[str, Any]:
    config = _config_from(command)
    book = command.get('book')
    client = Door43Client(host=config.dcs_host) if book else None

    def build_progress_callback(percent: int, message: str):
        emit_progress(BUILD_STAGE, BUILD_STAGE_NAME, percent, message)

    existing_text = command.get('existing')
    if existing_text is None and book and command.get('fetchExisting'):
        existing_text = client.fetch_twl_tsv(book, command.get('branch', DEFAULT_BRANCH))
        if existing_text is None:
            return {'error': f"Could not fetch existing TWL for {book}"}

    result = build_twl(
        command['generated'],
        existing_text=existing_text,
        verse_texts=_verse_texts_from(command),
        unlinked_words=_unlinked_words_from(command.get('unlinkedWords')),
        deleted_rows=_deleted_rows_from(command.get('deletedRows')),
        config=config,
        book=book,
        client=client,
        progress_callback=build_progress_callback,
    )
    data = result.to_dict()
    if command.get('includeCommitText'):
        data['commitTsv'] = result.commit_tsv
    return data


def locate_quote(verse_text: str, quote: str, occurrence: int = 1) -> Dict[str, Any]:
    match = locate(tokenize_verse(verse_text), quote, occurrence)
    return {'indices': list(match.indices) if match else None}


def handle_command(command: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle a command from the editor.

    Commands:
        - validate: Check pasted TWL text against the known layouts
        - merge: Merge generated and existing TWL text
        - reconcile: Deduplicate and order a TWL by verse text
        - build: Full pipeline for one book
        - locate_quote: Word indices of a quote in a verse
        - fetch_branches: Branch names of the TWL repository
        - fetch_twl: Existing TWL text of a book on a branch
        - check_dependencies: Check if all required packages are installed
    """
    cmd = command.get('command', '')

    try:
        if cmd == 'check_dependencies':
            return check_dependencies()

        elif cmd == 'validate':
            text = command.get('text')
            if text is None:
                return {'error': 'text is required'}
            return validate_tsv(text)

        elif cmd == 'merge':
            if command.get('generated') is None:
                return {'error': 'generated is required'}
            if command.get('existing') is None:
                return {'error': 'existing is required'}
            return merge_tsv(command['generated'], command['existing'],
                             strategy=command.get('strategy', KEYED),
                             debug=command.get('debug', False))

        elif cmd == 'reconcile':
            if command.get('tsv') is None:
                return {'error': 'tsv is required'}
            return reconcile_tsv(command['tsv'], _verse_texts_from(command),
                                 debug=command.get('debug', False))

        elif cmd == 'build':
            if command.get('generated') is None:
                return {'error': 'generated is required'}
            return run_build(command)

        elif cmd == 'locate_quote':
            if command.get('verseText') is None:
                return {'error': 'verseText is required'}
            if not command.get('quote'):
                return {'error': 'quote is required'}
            return locate_quote(command['verseText'], command['quote'],
                                parse_occurrence(command.get('occurrence', 1)))

        elif cmd == 'fetch_branches':
            branches = Door43Client(host=command.get('dcsHost', DCS_HOST)).fetch_branches()
            if branches is None:
                return {'error': 'Could not fetch branches'}
            return {'branches': branches}

        elif cmd == 'fetch_twl':
            book = command.get('book')
            if not book:
                return {'error': 'book is required'}
            client = Door43Client(host=command.get('dcsHost', DCS_HOST))
            tsv = client.fetch_twl_tsv(book, command.get('branch', DEFAULT_BRANCH))
            if tsv is None:
                return {'error': f"Could not fetch TWL for {book}"}
            return {'tsv': tsv}

        else:
            return {'error': f'Unknown command: {cmd}'}

    except SchemaError as e:
        return {'error': str(e), 'problems': e.problems}
    except ValueError as e:
        return {'error': str(e)}


def check_dependencies() -> Dict[str, Any]:
    """Check if all required Python packages are installed."""
    deps: Dict[str, Any] = {
        'requests': False,
    }

    try:
        import requests
        deps['requests'] = True
        deps['requests_version'] = str(requests.__version__)
    except ImportError:
        pass

    all_installed = all(deps.get(k, False) for k in ['requests'])

    return {
        'dependencies': deps,
        'all_installed': all_installed,
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main():
    """Read one JSON command from stdin and answer with JSON lines on stdout."""
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, 'reconfigure'):
            stream.reconfigure(encoding='utf-8')  # type: ignore[union-attr]

    raw = sys.stdin.read()
    if not raw.strip():
        emit_error("No input provided")
        return
    try:
        command = json.loads(raw)
    except json.JSONDecodeError as e:
        emit_error(f"Invalid JSON input: {e}")
        return
    if not isinstance(command, dict):
        emit_error("Command must be a JSON object")
        return

    try:
        emit_result(handle_command(command))
    except Exception as e:
        emit_error(f"Command {command.get('command')!r} failed: {e}\n{traceback.format_exc()}")


if __name__ == "__main__":
    main()
