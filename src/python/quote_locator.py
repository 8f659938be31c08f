"""
Quote Locator

Finds a TWL quote inside the words of a verse. A quote is one or more parts
joined with " & " (a discontinuous quote). Every verse word and every quote
part is compared in strict normalization, so punctuation, case, Hebrew points
and odd spacing do not prevent a match. Words joined by an en or em dash are
compared as separate words.

Occurrence semantics:
  - single part: the occurrence-th contiguous match, counted left to right
  - several parts: the occurrence applies to the FIRST part only; each later
    part is the first contiguous match at or after the end of the previous
    part (any number of words may sit in between)

There is no backtracking. If a later part cannot be found after the chosen
occurrence of the first part, the whole lookup fails; partial matches are
never returned.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from text_normalizer import normalize_strict, strict_words, split_dashes

QUOTE_PART_SEPARATOR = ' & '


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class WordSpan:
    """Half-open range [start, end) of verse word indices."""
    start: int
    end: int

    @property
    def indices(self) -> Tuple[int, ...]:
        return tuple(range(self.start, self.end))


@dataclass(frozen=True)
class QuoteMatch:
    """Where a quote was found: one span per quote part, in verse order."""
    spans: Tuple[WordSpan, ...]

    @property
    def start(self) -> int:
        return self.spans[0].start

    @property
    def indices(self) -> Tuple[int, ...]:
        result: List[int] = []
        for span in self.spans:
            result.extend(span.indices)
        return tuple(result)


# ============================================================================
# MATCHING
# ============================================================================

def split_quote(quote: str) -> List[List[str]]:
    """Quote parts as lists of strictly-normalized words; empty parts are dropped."""
    parts = []
    for part in (quote or '').split(QUOTE_PART_SEPARATOR):
        words = strict_words(' '.join(split_dashes(part.split())))
        if words:
            parts.append(words)
    return parts


def _matches_at(words: Sequence[str], part: Sequence[str], position: int) -> bool:
    if position + len(part) > len(words):
        return False
    for offset, quote_word in enumerate(part):
        if words[position + offset] != quote_word:
            return False
    return True


def find_occurrence(words: Sequence[str], part: Sequence[str], occurrence: int) -> Optional[WordSpan]:
    """Span of the occurrence-th contiguous match of `part`, or None."""
    if not part:
        return None
    count = 0
    for position in range(len(words) - len(part) + 1):
        if _matches_at(words, part, position):
            count += 1
            if count == occurrence:
                return WordSpan(position, position + len(part))
    return None


def find_first_from(words: Sequence[str], part: Sequence[str], cursor: int) -> Optional[WordSpan]:
    """First contiguous match of `part` starting at or after `cursor`."""
    for position in range(cursor, len(words) - len(part) + 1):
        if _matches_at(words, part, position):
            return WordSpan(position, position + len(part))
    return None


def locate(verse_words: Sequence[str], quote: str, occurrence: int = 1) -> Optional[QuoteMatch]:
    """Locate `quote` in `verse_words`; None means "not found".

    Args:
        verse_words: The verse as a sequence of whitespace-separated tokens;
            dash-joined tokens count as separate words
        quote: Quote text, parts separated by " & "
        occurrence: 1-based occurrence of the (first part of the) quote

    Returns:
        QuoteMatch with one WordSpan per part, or None
    """
    if not verse_words or not quote:
        return None

    parts = split_quote(quote)
    if not parts:
        return None

    words = [normalize_strict(w) for w in split_dashes(verse_words)]

    first = find_occurrence(words, parts[0], occurrence)
    if first is None:
        return None

    spans = [first]
    cursor = first.end
    for part in parts[1:]:
        span = find_first_from(words, part, cursor)
        if span is None:
            return None
        spans.append(span)
        cursor = span.end

    return QuoteMatch(spans=tuple(spans))


def locate_in_text(verse_text: str, quote: str, occurrence: int = 1) -> Optional[QuoteMatch]:
    """Convenience wrapper that tokenizes the verse text on whitespace."""
    return locate((verse_text or '').split(), quote, occurrence)
