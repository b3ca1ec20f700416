"""
CSV and plain-text export of harvested keywords.
"""

import csv
import io
from collections.abc import Iterable

from .models import KeywordRecord

CSV_HEADER = "Keyword,Tag,Source,Parent"
SOURCE_SEPARATOR = "|"
FORMULA_PREFIXES = ("=", "+", "-", "@")


def select_records(
    records: Iterable[KeywordRecord],
    selected_ids: Iterable[str] | None = None,
) -> list[KeywordRecord]:
    """The selected records, or all of them when nothing is selected."""
    records = list(records)
    wanted = set(selected_ids or ())
    if not wanted:
        return records
    return [r for r in records if r.id in wanted]


def escape_formula(value: str) -> str:
    """Prefix cells a spreadsheet would evaluate as a formula."""
    if value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def to_csv(
    records: Iterable[KeywordRecord],
    selected_ids: Iterable[str] | None = None,
    escape_formulas: bool = False,
) -> str:
    """
    Render records as CSV.

    Header ``Keyword,Tag,Source,Parent``; every row field is double-quoted
    with inner quotes doubled; sources are joined with ``|``.
    """
    buf = io.StringIO()
    buf.write(CSV_HEADER + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in select_records(records, selected_ids):
        row = [
            record.keyword,
            record.tag,
            SOURCE_SEPARATOR.join(record.sources),
            record.parent_query,
        ]
        if escape_formulas:
            row = [escape_formula(cell) for cell in row]
        writer.writerow(row)
    return buf.getvalue().rstrip("\n")


def to_text(
    records: Iterable[KeywordRecord],
    selected_ids: Iterable[str] | None = None,
) -> str:
    """One keyword per line, for the clipboard."""
    return "\n".join(r.keyword for r in select_records(records, selected_ids))
