"""
USFM verse text extraction.

Turns an aligned USFM book (such as the unfoldingWord Literal Text) into a
plain-text lookup of "chapter:verse" -> verse text, which is what the verse
reconciler consumes. Alignment milestones, footnotes, cross references and
all other markers are dropped; only the words that would be read are kept.
"""

import re
from typing import Dict, List, Optional

from text_normalizer import split_dashes

# \w word|x-occurrence="1" x-occurrences="1"\w*  (also nested +w)
WORD_PATTERN = re.compile(r'\\\+?w\s+([^|\\]*?)(?:\|[^\\]*?)?\\\+?w\*')

# Milestones and other self-closing markers: \zaln-s |x-strong="..."\*  \zaln-e\*
# \k-s ...\*  \qt-s |who="..."\*  \qt-e\*  \ts\*
MILESTONE_PATTERN = re.compile(r'\\[a-z0-9]+(?:-[se])?\b[^\\]*?\\\*')

# Notes whose text is not part of the verse
NOTE_PATTERN = re.compile(r'\\(f|fe|x)\s.*?\\\1\*', re.DOTALL)

# Markers whose whole line is not verse text (headings, titles, ids)
NON_TEXT_LINE_PATTERN = re.compile(r'^\\(?:id|ide|h|toc\d?|mt\d?|ms\d?|mr|s\d?|sr|r|d|cl|cp|rem|usfm|sts)\b.*$', re.MULTILINE)

CHAPTER_PATTERN = re.compile(r'\\c\s+(\d+)')
VERSE_PATTERN = re.compile(r'\\v\s+(\d+)(?:-(\d+))?\s*')

# Any remaining marker, with an optional closing asterisk
MARKER_PATTERN = re.compile(r'\\\+?[a-z]+\d*\*?')

SPACE_BEFORE_PUNCTUATION = re.compile(r'\s+([,.;:!?])')


def strip_markup(text: str) -> str:
    """Plain text of a USFM fragment."""
    text = NOTE_PATTERN.sub(' ', text)
    text = MILESTONE_PATTERN.sub('', text)
    text = WORD_PATTERN.sub(r'\1', text)
    text = MARKER_PATTERN.sub(' ', text)
    text = re.sub(r'\s+', ' ', text)
    text = SPACE_BEFORE_PUNCTUATION.sub(r'\1', text)
    return text.strip()


def _add_verse(verses: Dict[str, str], chapter: str, start: str, end: Optional[str], text: str):
    if not text:
        return
    first = int(start)
    last = int(end) if end else first
    if last < first:
        last = first
    for verse in range(first, last + 1):
        verses[f"{int(chapter)}:{verse}"] = text


def extract_verse_text(usfm: str) -> Dict[str, str]:
    """Map every "chapter:verse" of a USFM book to its plain text.

    A verse bridge (\\v 4-5) assigns the same text to each verse it covers.
    Front matter and empty verses are skipped.
    """
    verses: Dict[str, str] = {}
    if not usfm:
        return verses

    body = NON_TEXT_LINE_PATTERN.sub('', usfm)
    chapter: Optional[str] = None
    verse_start: Optional[str] = None
    verse_end: Optional[str] = None
    buffer: List[str] = []

    token_pattern = re.compile(r'\\c\s+\d+|\\v\s+\d+(?:-\d+)?\s*')
    position = 0
    for match in token_pattern.finditer(body):
        if chapter is not None and verse_start is not None:
            buffer.append(body[position:match.start()])
        marker = match.group(0)
        if marker.startswith('\\c'):
            if chapter is not None and verse_start is not None:
                _add_verse(verses, chapter, verse_start, verse_end, strip_markup(''.join(buffer)))
            chapter = CHAPTER_PATTERN.match(marker).group(1)
            verse_start = verse_end = None
        else:
            if chapter is not None and verse_start is not None:
                _add_verse(verses, chapter, verse_start, verse_end, strip_markup(''.join(buffer)))
            verse_match = VERSE_PATTERN.match(marker)
            verse_start, verse_end = verse_match.group(1), verse_match.group(2)
            if chapter is None:
                chapter = '1'
        buffer = []
        position = match.end()

    if chapter is not None and verse_start is not None:
        buffer.append(body[position:])
        _add_verse(verses, chapter, verse_start, verse_end, strip_markup(''.join(buffer)))

    return verses


def tokenize_verse(text: str) -> List[str]:
    """Words of a verse as the quote locator counts them (whitespace and dashes)."""
    return split_dashes((text or '').split())
