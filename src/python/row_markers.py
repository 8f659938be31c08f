"""
Unlinked words and deleted-row markers

Two kinds of translator decisions outlive a single TWL file and are applied
to every freshly built table:

  UnlinkedWord     - "this OrigWords should never be linked to this TWLink";
                     matching rows are removed from the table.
  DeletedRowMarker - "this row (reference, OrigWords, occurrence) was
                     deleted"; matching rows are soft-deleted so they are
                     still visible but never committed.

MarkerStore keeps both lists in a JSON file.
"""

import json
import sys
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from twl_model import TWLTable, MergeStatus, DELETED_PREFIX, ORIG_WORDS, OCCURRENCE, TW_LINK
from text_normalizer import normalize_loose


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class UnlinkedWord:
    orig_words: str
    tw_link: str
    book: str = ''
    reference: str = ''
    gl_quote: str = ''
    date_added: str = ''
    removed: bool = False
    id: str = ''

    @property
    def identity(self):
        return (normalize_loose(self.orig_words), self.tw_link.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'book': self.book,
            'reference': self.reference,
            'origWords': self.orig_words,
            'twLink': self.tw_link,
            'glQuote': self.gl_quote,
            'dateAdded': self.date_added,
            'removed': self.removed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UnlinkedWord':
        return cls(
            orig_words=data.get('origWords', ''),
            tw_link=data.get('twLink', ''),
            book=data.get('book', ''),
            reference=data.get('reference', ''),
            gl_quote=data.get('glQuote', ''),
            date_added=data.get('dateAdded', ''),
            removed=bool(data.get('removed', False)),
            id=data.get('id', ''),
        )


@dataclass(frozen=True)
class DeletedRowMarker:
    book: str
    reference: str
    orig_words: str
    occurrence: str

    @property
    def sort_key(self) -> str:
        """"<reference>|<normalized OrigWords>|<occurrence>"."""
        return f"{self.reference.strip()}|{normalize_loose(self.orig_words)}|{str(self.occurrence).strip()}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'book': self.book,
            'reference': self.reference,
            'origWords': self.orig_words,
            'normalizedOrigWords': normalize_loose(self.orig_words),
            'occurrence': self.occurrence,
            'sortKey': self.sort_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeletedRowMarker':
        return cls(
            book=(data.get('book') or '').strip().lower(),
            reference=data.get('reference', ''),
            orig_words=data.get('origWords') or data.get('normalizedOrigWords', ''),
            occurrence=str(data.get('occurrence', '')),
        )


# ============================================================================
# APPLYING MARKERS TO A TABLE
# ============================================================================

def filter_unlinked_words(table: TWLTable, words: Iterable[UnlinkedWord]) -> TWLTable:
    """Drop rows whose (OrigWords, TWLink) pair was unlinked."""
    active = {word.identity for word in words if not word.removed}
    if not active:
        return table
    orig_index = table.column_index(ORIG_WORDS)
    link_index = table.column_index(TW_LINK)
    if orig_index == -1 or link_index == -1:
        return table

    kept = [
        row for row in table.rows
        if (normalize_loose(row.cell(orig_index)), row.cell(link_index).strip()) not in active
    ]
    return table.with_rows(kept)


def apply_deleted_rows(table: TWLTable, markers: Iterable[DeletedRowMarker]) -> TWLTable:
    """Soft-delete rows matching a marker.

    Rows that are already deleted, or that came out of a merge as MERGED or
    OLD, are left as they are.
    """
    keys = {marker.sort_key for marker in markers}
    if not keys:
        return table
    orig_index = table.column_index(ORIG_WORDS)
    occurrence_index = table.column_index(OCCURRENCE)
    if orig_index == -1 or occurrence_index == -1:
        return table

    rows = []
    for row in table.rows:
        key = f"{row.reference.strip()}|{normalize_loose(row.cell(orig_index))}|{row.cell(occurrence_index).strip()}"
        status = table.merge_status(row)
        if key in keys and not row.deleted and status not in (MergeStatus.MERGED, MergeStatus.OLD):
            row = replace(row, deleted=True)
        rows.append(row)
    return table.with_rows(rows)


# ============================================================================
# PERSISTENCE
# ============================================================================

class MarkerStore:
    """JSON file holding unlinked words and deleted-row markers."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if self.path.exists():
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                return {
                    'unlinkedWords': list(data.get('unlinkedWords', [])),
                    'deletedRows': list(data.get('deletedRows', [])),
                }
            except (json.JSONDecodeError, IOError, AttributeError):
                print(f"  ⚠ Could not read marker store {self.path}; starting empty", file=sys.stderr)
        return {'unlinkedWords': [], 'deletedRows': []}

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)

    # -- unlinked words ------------------------------------------------------

    def unlinked_words(self) -> List[UnlinkedWord]:
        return [UnlinkedWord.from_dict(item) for item in self._data['unlinkedWords']]

    def add_unlinked_word(self, book: str, reference: str, orig_words: str,
                          tw_link: str, gl_quote: str = '') -> UnlinkedWord:
        """Record an unlinked word; an existing pair is returned (and reactivated if removed)."""
        candidate = UnlinkedWord(orig_words=orig_words, tw_link=tw_link)
        items = self._data['unlinkedWords']
        for index, item in enumerate(items):
            stored = UnlinkedWord.from_dict(item)
            if stored.identity == candidate.identity:
                if stored.removed:
                    stored = replace(stored, removed=False)
                    items[index] = stored.to_dict()
                    self._save()
                return stored

        word = UnlinkedWord(
            orig_words=orig_words,
            tw_link=tw_link,
            book=book,
            reference=reference[len(DELETED_PREFIX):] if reference.startswith(DELETED_PREFIX) else reference,
            gl_quote=gl_quote,
            date_added=_timestamp(),
            id=uuid.uuid4().hex,
        )
        items.append(word.to_dict())
        self._save()
        return word

    def remove_unlinked_word(self, orig_words: str, tw_link: str) -> Optional[UnlinkedWord]:
        """Mark a pair as removed; None when it was never recorded."""
        target = UnlinkedWord(orig_words=orig_words, tw_link=tw_link).identity
        items = self._data['unlinkedWords']
        for index, item in enumerate(items):
            stored = UnlinkedWord.from_dict(item)
            if stored.identity == target:
                stored = replace(stored, removed=True)
                items[index] = stored.to_dict()
                self._save()
                return stored
        return None

    # -- deleted rows --------------------------------------------------------

    def deleted_rows(self, book: str) -> List[DeletedRowMarker]:
        code = (book or '').strip().lower()
        markers = [DeletedRowMarker.from_dict(item) for item in self._data['deletedRows']]
        return [marker for marker in markers if marker.book == code]

    def add_deleted_row(self, book: str, reference: str, orig_words: str, occurrence: str) -> DeletedRowMarker:
        marker = DeletedRowMarker(book=book.strip().lower(), reference=reference,
                                  orig_words=orig_words, occurrence=str(occurrence).strip())
        for existing in self.deleted_rows(book):
            if existing.sort_key == marker.sort_key:
                return existing
        self._data['deletedRows'].append(marker.to_dict())
        self._save()
        return marker

    def remove_deleted_row(self, book: str, reference: str, orig_words: str, occurrence: str) -> bool:
        """Forget a marker (undelete); True when one was removed."""
        target = DeletedRowMarker(book=book.strip().lower(), reference=reference,
                                  orig_words=orig_words, occurrence=str(occurrence))
        items = self._data['deletedRows']
        for index, item in enumerate(items):
            stored = DeletedRowMarker.from_dict(item)
            if stored.book == target.book and stored.sort_key == target.sort_key:
                del items[index]
                self._save()
                return True
        return False
