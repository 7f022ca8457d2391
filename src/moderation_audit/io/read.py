from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from moderation_audit.config import AppConfig, ColumnsConfig

LOGGER = logging.getLogger(__name__)


def missing_key_columns(columns: Iterable[str], config: ColumnsConfig) -> list[str]:
    """Key columns absent from a header; a full miss usually means the wrong encoding."""
    present = set(columns)
    return [
        column
        for column in (config.review_time, config.sync_machine_status)
        if column not in present
    ]


def load_rows(
    csv_path: Path,
    encoding: str = "utf-8-sig",
    max_rows: int | None = None,
) -> list[dict[str, str]]:
    """Read a delimited export into rows of column name -> string value."""
    try:
        df = pd.read_csv(
            csv_path,
            encoding=encoding,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            nrows=None if max_rows is None else max_rows + 1,
        )
    except UnicodeDecodeError as exc:
        raise ValueError(
            f"Could not decode {csv_path.name} as {encoding}; try --encoding gbk"
        ) from exc
    except pd.errors.EmptyDataError:
        return []

    if max_rows is not None and len(df) > max_rows:
        raise ValueError(f"{csv_path.name} has more than {max_rows} rows (input.max_rows)")
    return df.to_dict(orient="records")


def load_records(csv_path: Path, config: AppConfig) -> list[dict[str, str]]:
    rows = load_rows(
        csv_path,
        encoding=config.input.encoding,
        max_rows=config.input.max_rows,
    )
    if rows:
        missing = missing_key_columns(rows[0].keys(), config.columns)
        if missing:
            LOGGER.warning(
                "Key column(s) not found in %s: %s. Check the file encoding (try gbk).",
                csv_path.name,
                ", ".join(missing),
            )
    LOGGER.info("Loaded %d rows from %s", len(rows), csv_path)
    return rows
