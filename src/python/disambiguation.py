"""
Disambiguation cell handling.

An undecided row lists its candidate articles as "(kt/god, kt/falsegod)".
Once a translator settles on one, the cell may hold plain text and the row is
marked resolved (written as a "DONE " prefix by the codec).
"""

import re
from dataclasses import dataclass, replace
from typing import List

from twl_model import TWLTable, TW_LINK, DISAMBIGUATION

TW_LINK_BASE = 'rc://*/tw/dict/bible/'

_OPTIONS_PATTERN = re.compile(r'^\(([^)]+)\)$')


@dataclass(frozen=True)
class DisambiguationChoice:
    options: List[str]
    selected_index: int
    current_option: str

    @property
    def is_choice(self) -> bool:
        return len(self.options) >= 2


def parse_options(cell: str) -> List[str]:
    """'(a, b)' -> ['a', 'b']; anything else -> []."""
    match = _OPTIONS_PATTERN.match((cell or '').strip())
    if not match:
        return []
    return [opt.strip() for opt in match.group(1).split(',') if opt.strip()]


def format_options(options: List[str]) -> str:
    return f"({', '.join(options)})"


def article_from_link(tw_link: str) -> str:
    """Last two path segments of a TWLink, e.g. 'kt/god'."""
    segments = [s for s in (tw_link or '').strip().split('/') if s]
    return '/'.join(segments[-2:])


def link_for_article(article: str) -> str:
    return TW_LINK_BASE + article.strip()


def describe_choice(cell: str, current_link: str) -> DisambiguationChoice:
    """Which option of the cell the current TWLink points at (-1 if none)."""
    options = parse_options(cell)
    if len(options) < 2:
        return DisambiguationChoice(options=options, selected_index=-1, current_option=cell or '')
    current = article_from_link(current_link) if current_link else ''
    selected = options.index(current) if current in options else -1
    return DisambiguationChoice(
        options=options,
        selected_index=selected,
        current_option=options[selected] if selected != -1 else '',
    )


def merge_options(generated_cell: str, generated_link: str, existing_link: str) -> str:
    """Union of the generated candidates with the existing row's article.

    The existing article goes to the front of the list when it differs from
    the generated choice; the cell is left alone when the links agree.
    """
    if (generated_link or '').strip() == (existing_link or '').strip():
        return generated_cell
    existing_article = article_from_link(existing_link)
    options = parse_options(generated_cell) or [article_from_link(generated_link)]
    options = [opt for opt in options if opt and opt != existing_article]
    if existing_article:
        options.insert(0, existing_article)
    return format_options(options)


def choose_option(table: TWLTable, row_index: int, article: str, resolve: bool = False) -> TWLTable:
    """Point one row's TWLink at the chosen article; optionally mark it resolved."""
    link_index = table.column_index(TW_LINK)
    rows = list(table.rows)
    row = rows[row_index].with_cell(link_index, link_for_article(article))
    if resolve and table.has_column(DISAMBIGUATION):
        row = replace(row, disambiguation_resolved=True)
    rows[row_index] = row
    return table.with_rows(rows)
