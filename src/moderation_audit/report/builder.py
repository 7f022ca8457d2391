from __future__ import annotations

import logging

from moderation_audit.features.aggregates import aggregate_partition, rank_strategies, rank_tags
from moderation_audit.features.rollup import build_weekly_rollup
from moderation_audit.preprocess.dates import collect_dates, row_date
from moderation_audit.report.contracts import (
    ReportData,
    ReportRequest,
    SingleReport,
    WeeklyReport,
)

LOGGER = logging.getLogger(__name__)


def _build_single_report(request: ReportRequest) -> SingleReport | None:
    config = request.config
    column = config.columns.review_time
    day_rows = [row for row in request.rows if row_date(row, column) == request.selection]
    if not day_rows:
        LOGGER.info("No rows matched date %s", request.selection)
        return None

    partition = aggregate_partition(day_rows, config)
    tags = tuple(rank_tags(partition.tags, config.top_tags))
    return SingleReport(
        date_label=request.selection,
        stats=partition.basic,
        strategies=tuple(rank_strategies(partition.strategies)),
        tags=tags,
        total_tag_count=sum(tag.count for tag in tags),
        black_sample_formula=config.black_sample_formula,
    )


def _build_weekly_report(request: ReportRequest) -> WeeklyReport | None:
    config = request.config
    dates = collect_dates(request.rows, config.columns.review_time)
    if not dates:
        LOGGER.info("No parsable dates in %d rows", len(request.rows))
        return None

    rollup = build_weekly_rollup(request.rows, dates, config)
    if rollup is None:
        return None

    tags = tuple(rank_tags(rollup.tags, config.top_tags))
    return WeeklyReport(
        dates=rollup.dates,
        daily_stats=rollup.daily,
        total_stats=rollup.total,
        averages=rollup.averages,
        strategies=tuple(rank_strategies(rollup.strategies)),
        tags=tags,
        total_tag_count=sum(tag.count for tag in tags),
        dropped_dates=rollup.dropped_dates,
    )


def build_report(request: ReportRequest) -> ReportData | None:
    """Build the report for one request, or ``None`` when no rows survive selection."""
    if not request.rows:
        return None
    if request.is_weekly:
        return _build_weekly_report(request)
    return _build_single_report(request)
