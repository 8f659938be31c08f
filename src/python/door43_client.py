"""
Door43 Content Service client

Fetches the unfoldingWord Literal Text (USFM) and the existing Translation
Word Lists from git.door43.org through the Gitea contents API. Verse text is
cached in a JSON file next to this module (or in $TWL_CACHE_DIR); TWL files
are always fetched fresh because they change on every branch.

Failures never raise: every fetch prints a warning and returns None, and the
caller decides how to degrade (the pipeline falls back to dedupe-only).
"""

import base64
import binascii
import json
import os
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

import requests

from usfm_verses import extract_verse_text

# ============================================================================
# CONFIGURATION
# ============================================================================

DCS_HOST = "https://git.door43.org"
DCS_OWNER = "unfoldingWord"
ULT_REPO = "en_ult"
TWL_REPO = "en_twl"
DEFAULT_BRANCH = "master"

API_TIMEOUT = 15
API_RATE_LIMIT_DELAY = 0.25


def get_cache_file() -> Path:
    """Verse cache location; $TWL_CACHE_DIR overrides the module directory."""
    cache_dir = os.environ.get('TWL_CACHE_DIR')
    if cache_dir:
        return Path(cache_dir) / "door43_cache.json"
    return Path(__file__).parent / "door43_cache.json"


# USFM file numbers used in the en_ult repository (no 40: NT starts at 41)
BOOK_USFM_NUMBERS = {
    'GEN': 1, 'EXO': 2, 'LEV': 3, 'NUM': 4, 'DEU': 5, 'JOS': 6, 'JDG': 7,
    'RUT': 8, '1SA': 9, '2SA': 10, '1KI': 11, '2KI': 12, '1CH': 13, '2CH': 14,
    'EZR': 15, 'NEH': 16, 'EST': 17, 'JOB': 18, 'PSA': 19, 'PRO': 20,
    'ECC': 21, 'SNG': 22, 'ISA': 23, 'JER': 24, 'LAM': 25, 'EZK': 26,
    'DAN': 27, 'HOS': 28, 'JOL': 29, 'AMO': 30, 'OBA': 31, 'JON': 32,
    'MIC': 33, 'NAM': 34, 'HAB': 35, 'ZEP': 36, 'HAG': 37, 'ZEC': 38,
    'MAL': 39,
    'MAT': 41, 'MRK': 42, 'LUK': 43, 'JHN': 44, 'ACT': 45, 'ROM': 46,
    '1CO': 47, '2CO': 48, 'GAL': 49, 'EPH': 50, 'PHP': 51, 'COL': 52,
    '1TH': 53, '2TH': 54, '1TI': 55, '2TI': 56, 'TIT': 57, 'PHM': 58,
    'HEB': 59, 'JAS': 60, '1PE': 61, '2PE': 62, '1JN': 63, '2JN': 64,
    '3JN': 65, 'JUD': 66, 'REV': 67,
}


def usfm_file_name(book_code: str) -> Optional[str]:
    """'gen' -> '01-GEN.usfm'; None for an unknown book."""
    code = (book_code or '').strip().upper()
    number = BOOK_USFM_NUMBERS.get(code)
    if number is None:
        return None
    return f"{number:02d}-{code}.usfm"


def decode_content(encoded: str) -> str:
    """Decode the base64 'content' field of a contents API response as UTF-8."""
    cleaned = ''.join(encoded.split())
    return base64.b64decode(cleaned).decode('utf-8')


# ============================================================================
# CLIENT
# ============================================================================

class Door43Client:
    """Client for the Door43 contents API with caching and rate limiting."""

    def __init__(self, host: str = DCS_HOST, owner: str = DCS_OWNER,
                 cache_file: Optional[Path] = None, use_cache: bool = True):
        self.host = host.rstrip('/')
        self.owner = owner
        self.cache_file = cache_file or get_cache_file()
        self.use_cache = use_cache
        self.cache: Dict[str, Dict[str, str]] = self._load_cache() if use_cache else {}
        self.last_request_time = 0.0

    def _load_cache(self) -> Dict[str, Dict[str, str]]:
        """Load cached verse texts from file."""
        if self.cache_file.exists():
            try:
                with open(self.cache_file, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError):
                return {}
        return {}

    def _save_cache(self):
        try:
            with open(self.cache_file, 'w', encoding='utf-8') as f:
                json.dump(self.cache, f, indent=2, ensure_ascii=False)
        except IOError as e:
            print(f"  ⚠ Could not write cache {self.cache_file}: {e}", file=sys.stderr)

    def clear_cache(self):
        """Clear the in-memory cache (but keep the file for next session)."""
        self.cache = {}

    def _rate_limit(self):
        elapsed = time.time() - self.last_request_time
        if elapsed < API_RATE_LIMIT_DELAY:
            time.sleep(API_RATE_LIMIT_DELAY - elapsed)
        self.last_request_time = time.time()

    def _repo_url(self, repo: str) -> str:
        return f"{self.host}/api/v1/repos/{self.owner}/{repo}"

    def _get_json(self, url: str, params: Optional[dict] = None, label: str = ''):
        """GET a JSON document; None (with a warning) on any failure."""
        self._rate_limit()
        try:
            response = requests.get(url, params=params, timeout=API_TIMEOUT)
            if response.status_code != 200:
                print(f"  ⚠ HTTP {response.status_code} for {label or url}", file=sys.stderr)
                return None
            return response.json()
        except requests.RequestException as e:
            print(f"  ⚠ Request error for {label or url}: {e}", file=sys.stderr)
        except ValueError as e:
            print(f"  ⚠ Invalid JSON for {label or url}: {e}", file=sys.stderr)
        return None

    def _fetch_file(self, repo: str, path: str, branch: str) -> Optional[str]:
        data = self._get_json(f"{self._repo_url(repo)}/contents/{path}",
                              params={'ref': branch}, label=f"{repo}/{path}@{branch}")
        if not isinstance(data, dict) or not data.get('content'):
            if data is not None:
                print(f"  ⚠ No content in {repo}/{path}@{branch}", file=sys.stderr)
            return None
        try:
            return decode_content(data['content'])
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            print(f"  ⚠ Could not decode {repo}/{path}: {e}", file=sys.stderr)
            return None

    def fetch_ult_usfm(self, book_code: str) -> Optional[str]:
        """USFM text of one book of the ULT (master branch)."""
        file_name = usfm_file_name(book_code)
        if not file_name:
            print(f"  ⚠ Unknown book: {book_code}", file=sys.stderr)
            return None
        return self._fetch_file(ULT_REPO, file_name, DEFAULT_BRANCH)

    def fetch_twl_tsv(self, book_code: str, branch: str = DEFAULT_BRANCH) -> Optional[str]:
        """Existing TWL TSV of one book on the given branch."""
        code = (book_code or '').strip().upper()
        if code not in BOOK_USFM_NUMBERS:
            print(f"  ⚠ Unknown book: {book_code}", file=sys.stderr)
            return None
        return self._fetch_file(TWL_REPO, f"twl_{code}.tsv", branch or DEFAULT_BRANCH)

    def fetch_branches(self) -> Optional[List[str]]:
        """Sorted branch names of the TWL repository."""
        data = self._get_json(f"{self._repo_url(TWL_REPO)}/branches", label=f"{TWL_REPO} branches")
        if not isinstance(data, list):
            return None
        return sorted(item['name'] for item in data if isinstance(item, dict) and item.get('name'))

    def fetch_verse_texts(self, book_code: str) -> Optional[Dict[str, str]]:
        """"chapter:verse" -> ULT verse text for one book, cached between runs."""
        code = (book_code or '').strip().upper()
        cache_key = f"{ULT_REPO}/{code}"
        if self.use_cache and cache_key in self.cache:
            return self.cache[cache_key]

        usfm = self.fetch_ult_usfm(code)
        if usfm is None:
            return None
        verses = extract_verse_text(usfm)
        if not verses:
            print(f"  ⚠ No verses found in {code} USFM", file=sys.stderr)
            return None

        if self.use_cache:
            self.cache[cache_key] = verses
            self._save_cache()
        return verses
