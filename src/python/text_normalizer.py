"""
Text Normalizer for TWL matching

Every comparison of original-language or gateway-language text in this project
goes through one of two normalization modes:

  loose  - strips Hebrew cantillation / vowel points, turns the special Unicode
           spaces into ASCII spaces, collapses whitespace runs and trims.
           Used for OrigWords identity (row keys, unlink and delete markers).
  strict - loose, then removes punctuation (keeping Hebrew, Greek and word
           characters) and lower-cases. Used for word-by-word quote matching.

Both modes are idempotent: normalize(normalize(x)) == normalize(x).
"""

import re
from typing import List

# ============================================================================
# CHARACTER CLASSES
# ============================================================================

# Hebrew cantillation marks (0591-05BD), the remaining points (05BF-05C7)
# and maqaf / paseq / sof pasuq / nun hafukha
HEBREW_MARKS_PATTERN = re.compile(r'[\u0591-\u05BD\u05BF-\u05C7\u05BE\u05C0\u05C3\u05C6]')

# En quad .. RTL mark, line/paragraph separators .. narrow no-break space, BOM
SPECIAL_SPACES_PATTERN = re.compile(r'[\u2000-\u200F\u2028-\u202F\uFEFF]')

WHITESPACE_PATTERN = re.compile(r'\s+')

# En dash and em dash join words in the ULT, as in "LORD" + dash + "he"
DASH_PATTERN = re.compile(r'[\u2013\u2014]')

# Anything that is not a word character, whitespace, Greek, Greek Extended or Hebrew
PUNCTUATION_PATTERN = re.compile(r'[^\w\s\u0370-\u03FF\u1F00-\u1FFF\u0590-\u05FF]')

LOOSE = 'loose'
STRICT = 'strict'

# ============================================================================
# NORMALIZATION MODES
# ============================================================================

def normalize_loose(text: str) -> str:
    """Remove Hebrew marks and collapse every kind of space to a single ASCII space."""
    if not text:
        return ''
    text = HEBREW_MARKS_PATTERN.sub('', text)
    text = SPECIAL_SPACES_PATTERN.sub(' ', text)
    text = WHITESPACE_PATTERN.sub(' ', text)
    return text.strip()


def normalize_strict(text: str) -> str:
    """Loose normalization plus punctuation removal and lower-casing."""
    text = normalize_loose(text)
    if not text:
        return ''
    # Lower-case first: some capitals lower to a letter plus a combining mark
    text = PUNCTUATION_PATTERN.sub('', text.lower())
    # Removing punctuation can leave double spaces ("a , b")
    text = WHITESPACE_PATTERN.sub(' ', text)
    return text.strip()


def normalize(text: str, mode: str = LOOSE) -> str:
    """Normalize text in the named mode ('loose' or 'strict')."""
    if mode == LOOSE:
        return normalize_loose(text)
    if mode == STRICT:
        return normalize_strict(text)
    raise ValueError(f"Unknown normalization mode: {mode}")


def strict_words(text: str) -> List[str]:
    """Split strictly-normalized text into its words."""
    normalized = normalize_strict(text)
    return normalized.split() if normalized else []


def split_dashes(tokens: List[str]) -> List[str]:
    """Break dash-joined tokens into separate words, dropping empty pieces."""
    words = []
    for token in tokens:
        words.extend(piece for piece in DASH_PATTERN.split(token) if piece)
    return words


# ============================================================================
# FIELD-LEVEL NORMALIZERS
# ============================================================================

TW_LINK_PREFIX_PATTERN = re.compile(r'^rc://[^/]*/tw/dict/bible/')


def normalize_tw_link(tw_link: str) -> str:
    """Strip the rc://*/tw/dict/bible/ prefix and case-fold a TWLink."""
    return TW_LINK_PREFIX_PATTERN.sub('', (tw_link or '').strip()).strip().lower()


def normalize_gl_quote(gl_quote: str) -> str:
    """Lower-case a gateway-language quote and collapse its whitespace."""
    return WHITESPACE_PATTERN.sub(' ', (gl_quote or '').strip().lower())


def normalize_occurrence(value: str, fallback: str = '1') -> str:
    """Trimmed occurrence text; blank values become the fallback."""
    normalized = str(value if value is not None else '').strip()
    return normalized or fallback


def parse_occurrence(value: str) -> int:
    """Occurrence as a positive integer; blank, non-numeric or <= 0 become 1."""
    match = re.match(r'\s*(\d+)', str(value if value is not None else ''))
    if not match:
        return 1
    number = int(match.group(1))
    return number if number >= 1 else 1
