from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import pandas as pd

from moderation_audit.config import AnalysisConfig
from moderation_audit.features.aggregates import (
    BasicStats,
    aggregate_partition,
    merge_strategy_tables,
    merge_tag_tables,
)
from moderation_audit.preprocess.dates import row_date

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyAverages:
    total_rows: float
    machine_reject_count: float
    recall_count: float
    human_violation_count: float
    black_sample_total: float
    recall_rate: float
    precision: float
    risk_level: float


@dataclass(frozen=True)
class WeeklyRollup:
    dates: tuple[str, ...]
    daily: Mapping[str, BasicStats]
    total: BasicStats
    averages: DailyAverages
    strategies: pd.DataFrame
    tags: pd.DataFrame
    dropped_dates: tuple[str, ...] = ()


def partition_rows_by_date(
    rows: Iterable[Mapping[str, str]],
    column: str,
) -> dict[str, list[Mapping[str, str]]]:
    """Group rows by extracted date key; rows without a parsable date are left out."""
    partitions: dict[str, list[Mapping[str, str]]] = {}
    for row in rows:
        key = row_date(row, column)
        if key is not None:
            partitions.setdefault(key, []).append(row)
    return partitions


def filter_noise_dates(daily_counts: Mapping[str, int], config: AnalysisConfig) -> list[str]:
    """Drop stray low-volume dates once the busiest day is large enough to judge them by.

    With a single date, or a peak at or below ``noise_min_peak_volume`` rows, every
    date is kept. Otherwise dates with ``count <= max(noise_floor, peak * noise_ratio)``
    are dropped.
    """
    dates = list(daily_counts)
    if len(dates) <= 1:
        return dates
    max_volume = max(daily_counts.values())
    if max_volume <= config.noise_min_peak_volume:
        return dates
    threshold = max(config.noise_floor, max_volume * config.noise_ratio)
    return [date for date in dates if daily_counts[date] > threshold]


def build_weekly_rollup(
    rows: Sequence[Mapping[str, str]],
    dates: Sequence[str],
    config: AnalysisConfig,
) -> WeeklyRollup | None:
    partitions = partition_rows_by_date(rows, config.columns.review_time)
    ordered_dates = sorted(dates)
    daily_counts = {date: len(partitions.get(date, [])) for date in ordered_dates}
    retained = filter_noise_dates(daily_counts, config)
    retained_set = set(retained)
    dropped = tuple(date for date in ordered_dates if date not in retained_set)
    if dropped:
        LOGGER.info(
            "Dropped %d low-volume date(s) from weekly rollup: %s",
            len(dropped),
            ", ".join(f"{date} ({daily_counts[date]} rows)" for date in dropped),
        )
    if not retained:
        LOGGER.info("No dates retained for weekly rollup")
        return None

    daily: dict[str, BasicStats] = {}
    total = BasicStats()
    sum_recall_rate = 0.0
    sum_precision = 0.0
    sum_risk_level = 0.0
    strategy_tables: list[pd.DataFrame] = []
    tag_tables: list[pd.DataFrame] = []

    for date in retained:
        partition = aggregate_partition(partitions.get(date, []), config)
        stats = partition.basic
        daily[date] = stats
        total = total + stats
        sum_recall_rate += stats.recall_rate
        sum_precision += stats.precision
        sum_risk_level += stats.risk_level
        strategy_tables.append(partition.strategies)
        tag_tables.append(partition.tags)

    day_count = len(retained) or 1
    averages = DailyAverages(
        total_rows=total.total_rows / day_count,
        machine_reject_count=total.machine_reject_count / day_count,
        recall_count=total.recall_count / day_count,
        human_violation_count=total.human_violation_count / day_count,
        black_sample_total=total.black_sample_total / day_count,
        recall_rate=sum_recall_rate / day_count,
        precision=sum_precision / day_count,
        risk_level=sum_risk_level / day_count,
    )
    LOGGER.info("Weekly rollup over %d date(s): %d rows", len(retained), total.total_rows)
    return WeeklyRollup(
        dates=tuple(retained),
        daily=daily,
        total=total,
        averages=averages,
        strategies=merge_strategy_tables(strategy_tables),
        tags=merge_tag_tables(tag_tables),
        dropped_dates=dropped,
    )
