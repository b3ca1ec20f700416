"""
Word-frequency clustering and filtering over harvested keywords.
"""

import re
from collections import Counter
from collections.abc import Iterable

from .models import KeywordRecord

STOP_WORDS = frozenset(
    [
        "the", "is", "in", "how", "what", "best", "vs", "or",
        "در", "با", "از", "که", "به", "برای", "دانلود", "خرید",
    ]
)
WORD_SPLIT_PATTERN = re.compile(r"[\s-]+")


def _is_number(word: str) -> bool:
    try:
        float(word)
    except ValueError:
        return False
    return True


def word_clusters(records: Iterable[KeywordRecord], limit: int = 20) -> list[tuple[str, int]]:
    """
    Most frequent words across keywords, as ``(word, count)`` pairs.

    Words shorter than three characters, stop words and numbers are ignored.
    Ties keep first-seen order.
    """
    counts: Counter[str] = Counter()
    for record in records:
        for word in WORD_SPLIT_PATTERN.split(record.keyword):
            if len(word) > 2 and word not in STOP_WORDS and not _is_number(word):
                counts[word] += 1
    return counts.most_common(limit)


def filter_records(
    records: Iterable[KeywordRecord],
    parent: str | None = None,
    cluster: str | None = None,
    text: str | None = None,
) -> list[KeywordRecord]:
    """Keep records matching every given filter (parent query, cluster word, substring)."""
    needle = text.lower() if text else None
    result = []
    for record in records:
        if parent and record.parent_query != parent:
            continue
        if cluster and cluster not in record.keyword:
            continue
        if needle and needle not in record.keyword.lower():
            continue
        result.append(record)
    return result
