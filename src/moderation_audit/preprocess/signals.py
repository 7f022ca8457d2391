from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from moderation_audit.config import AnalysisConfig


class HumanStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    VIOLATION = "violation"
    OTHER_SENT = "other_sent"


@dataclass(frozen=True)
class RowSignals:
    machine_rejected: bool
    human_status: HumanStatus
    strategies: tuple[str, ...]
    tags: tuple[str, ...]

    @property
    def is_human_sent(self) -> bool:
        return self.human_status is not HumanStatus.NONE


@lru_cache(maxsize=8)
def _tag_split_re(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _cell(row: Mapping[str, str], column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


def classify_human_status(value: str, config: AnalysisConfig) -> HumanStatus:
    if not value:
        return HumanStatus.NONE
    if value == config.status.reject:
        return HumanStatus.VIOLATION
    if value == config.status.pending:
        return HumanStatus.PENDING
    return HumanStatus.OTHER_SENT


def split_strategies(raw: str, config: AnalysisConfig) -> tuple[str, ...]:
    """Split a hit-strategy cell into display names, keeping repeats and order."""
    names: list[str] = []
    for token in raw.split(config.strategy_delimiter):
        code = token.strip()
        if not code:
            continue
        names.append(config.strategy_names.get(code, code))
    return tuple(names)


def split_tags(raw: str, config: AnalysisConfig) -> tuple[str, ...]:
    """Split a human-tag cell into canonical tags, deduplicated in first-seen order."""
    stop_words = set(config.tag_stop_words)
    unique: dict[str, None] = {}
    for token in _tag_split_re(config.tag_split_pattern).split(raw):
        tag = token.strip()
        if not tag or tag in stop_words:
            continue
        unique[config.tag_merge.get(tag, tag)] = None
    return tuple(unique)


def classify_row(row: Mapping[str, str], config: AnalysisConfig) -> RowSignals:
    columns = config.columns
    reject = config.status.reject
    machine_rejected = (
        _cell(row, columns.sync_machine_status) == reject
        or _cell(row, columns.async_machine_status) == reject
    )
    human_status = classify_human_status(_cell(row, columns.human_status), config)

    raw_strategies = _cell(row, columns.sync_strategies) or _cell(row, columns.async_strategies)
    strategies = split_strategies(raw_strategies, config) if raw_strategies else ()

    tags: tuple[str, ...] = ()
    if human_status is HumanStatus.VIOLATION:
        tags = split_tags(_cell(row, columns.human_tags), config)

    return RowSignals(
        machine_rejected=machine_rejected,
        human_status=human_status,
        strategies=strategies,
        tags=tags,
    )
