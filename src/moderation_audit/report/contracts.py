from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Union

from moderation_audit.config import AnalysisConfig
from moderation_audit.features.aggregates import BasicStats, StrategyStats, TagCount
from moderation_audit.features.rollup import DailyAverages

WEEKLY_SELECTION = "ALL_WEEKLY_REPORT"
WEEKLY_LABEL = "整体周报"

ReportMode = Literal["single", "weekly"]


@dataclass(frozen=True)
class ReportRequest:
    """Everything one report-generation call needs; nothing is read from global state."""

    rows: tuple[Mapping[str, str], ...]
    selection: str = WEEKLY_SELECTION
    config: AnalysisConfig = field(default_factory=AnalysisConfig)

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Mapping[str, str]],
        selection: str | None = None,
        config: AnalysisConfig | None = None,
    ) -> ReportRequest:
        return cls(
            rows=tuple(rows),
            selection=selection or WEEKLY_SELECTION,
            config=config or AnalysisConfig(),
        )

    @property
    def is_weekly(self) -> bool:
        return self.selection == WEEKLY_SELECTION


@dataclass(frozen=True)
class SingleReport:
    date_label: str
    stats: BasicStats
    strategies: tuple[StrategyStats, ...]
    tags: tuple[TagCount, ...]
    total_tag_count: int
    black_sample_formula: str = "machine_reject"
    mode: ReportMode = "single"

    @property
    def scope_stats(self) -> BasicStats:
        return self.stats


@dataclass(frozen=True)
class WeeklyReport:
    dates: tuple[str, ...]
    daily_stats: Mapping[str, BasicStats]
    total_stats: BasicStats
    averages: DailyAverages
    strategies: tuple[StrategyStats, ...]
    tags: tuple[TagCount, ...]
    total_tag_count: int
    dropped_dates: tuple[str, ...] = ()
    date_label: str = WEEKLY_LABEL
    mode: ReportMode = "weekly"

    @property
    def scope_stats(self) -> BasicStats:
        return self.total_stats


ReportData = Union[SingleReport, WeeklyReport]


def report_to_dict(report: ReportData) -> dict[str, Any]:
    """JSON-ready view of a report for the summary artifact."""
    payload = asdict(report)
    payload["scope_stats"] = asdict(report.scope_stats)
    return payload
