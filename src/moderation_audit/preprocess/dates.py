from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

DATE_RE = re.compile(r"([0-9]{4})[.\-/年]([0-9]{1,2})[.\-/月]([0-9]{1,2})")


def extract_date(value: str | None) -> str | None:
    """Return the first ``YYYY-MM-DD`` key found in ``value``, or ``None``.

    Year, month and day may be separated by ``.``, ``-``, ``/`` or the
    ``年``/``月`` markers. No calendar validation is applied.
    """
    if not value:
        return None
    match = DATE_RE.search(str(value))
    if match is None:
        return None
    year, month, day = match.groups()
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def row_date(row: Mapping[str, str], column: str) -> str | None:
    return extract_date(row.get(column))


def count_rows_by_date(rows: Iterable[Mapping[str, str]], column: str) -> dict[str, int]:
    """Row counts per extracted date, ascending by date key."""
    counts: dict[str, int] = {}
    for row in rows:
        key = row_date(row, column)
        if key is not None:
            counts[key] = counts.get(key, 0) + 1
    return dict(sorted(counts.items()))


def collect_dates(rows: Iterable[Mapping[str, str]], column: str) -> list[str]:
    return list(count_rows_by_date(rows, column))


def format_date_label(date_key: str) -> str:
    """``2024-03-01`` -> ``3.1`` for column headers."""
    _, month, day = date_key.split("-")
    return f"{int(month)}.{int(day)}"
