from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import pandas as pd

from moderation_audit.config import AnalysisConfig
from moderation_audit.preprocess.signals import HumanStatus, classify_row

SIGNAL_COLUMNS = [
    "machine_rejected",
    "is_human_sent",
    "is_pending",
    "is_violation",
    "strategies",
    "tags",
]
STRATEGY_COUNT_COLUMNS = [
    "hit_count",
    "human_review_count",
    "pending_count",
    "violation_count",
]
STRATEGY_COLUMNS = ["name", *STRATEGY_COUNT_COLUMNS]
STRATEGY_DTYPES = {column: "int64" for column in STRATEGY_COUNT_COLUMNS}
TAG_COLUMNS = ["name", "count"]


def _percent(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


@dataclass(frozen=True)
class BasicStats:
    total_rows: int = 0
    machine_reject_count: int = 0
    recall_count: int = 0
    human_violation_count: int = 0
    black_sample_total: int = 0

    @property
    def recall_rate(self) -> float:
        return _percent(self.recall_count, self.total_rows)

    @property
    def precision(self) -> float:
        return _percent(self.human_violation_count, self.recall_count)

    @property
    def risk_level(self) -> float:
        return _percent(self.black_sample_total, self.total_rows)

    def __add__(self, other: BasicStats) -> BasicStats:
        return BasicStats(
            total_rows=self.total_rows + other.total_rows,
            machine_reject_count=self.machine_reject_count + other.machine_reject_count,
            recall_count=self.recall_count + other.recall_count,
            human_violation_count=self.human_violation_count + other.human_violation_count,
            black_sample_total=self.black_sample_total + other.black_sample_total,
        )


@dataclass(frozen=True)
class StrategyStats:
    name: str
    hit_count: int
    human_review_count: int
    pending_count: int
    violation_count: int


@dataclass(frozen=True)
class TagCount:
    name: str
    count: int


@dataclass(frozen=True)
class PartitionStats:
    basic: BasicStats
    strategies: pd.DataFrame
    tags: pd.DataFrame


def empty_strategy_table() -> pd.DataFrame:
    frame = pd.DataFrame(columns=STRATEGY_COLUMNS)
    return frame.astype(STRATEGY_DTYPES)


def empty_tag_table() -> pd.DataFrame:
    return pd.DataFrame(columns=TAG_COLUMNS).astype({"count": "int64"})


def build_signal_frame(rows: Iterable[Mapping[str, str]], config: AnalysisConfig) -> pd.DataFrame:
    records = []
    for row in rows:
        signals = classify_row(row, config)
        records.append(
            {
                "machine_rejected": signals.machine_rejected,
                "is_human_sent": signals.is_human_sent,
                "is_pending": signals.human_status is HumanStatus.PENDING,
                "is_violation": signals.human_status is HumanStatus.VIOLATION,
                "strategies": list(signals.strategies),
                "tags": list(signals.tags),
            }
        )
    return pd.DataFrame(records, columns=SIGNAL_COLUMNS)


def build_basic_stats(signals: pd.DataFrame, config: AnalysisConfig) -> BasicStats:
    machine_reject_count = int(signals["machine_rejected"].astype(bool).sum())
    recall_count = int(signals["is_human_sent"].astype(bool).sum())
    human_violation_count = int(signals["is_violation"].astype(bool).sum())
    if config.black_sample_formula == "recall":
        black_sample_total = recall_count + human_violation_count
    else:
        black_sample_total = machine_reject_count + human_violation_count
    return BasicStats(
        total_rows=int(len(signals)),
        machine_reject_count=machine_reject_count,
        recall_count=recall_count,
        human_violation_count=human_violation_count,
        black_sample_total=black_sample_total,
    )


def build_strategy_table(signals: pd.DataFrame) -> pd.DataFrame:
    """One row per strategy in first-hit order; a strategy named twice in a row counts twice."""
    if signals.empty:
        return empty_strategy_table()

    exploded = signals[["strategies", "is_human_sent", "is_pending", "is_violation"]].explode(
        "strategies"
    )
    exploded = exploded.dropna(subset=["strategies"])
    if exploded.empty:
        return empty_strategy_table()

    flags = exploded[["is_human_sent", "is_pending", "is_violation"]].astype(bool).astype("int64")
    flags["name"] = exploded["strategies"].astype(str).to_numpy()
    grouped = (
        flags.groupby("name", sort=False)
        .agg(
            hit_count=("is_human_sent", "size"),
            human_review_count=("is_human_sent", "sum"),
            pending_count=("is_pending", "sum"),
            violation_count=("is_violation", "sum"),
        )
        .reset_index()
    )
    return grouped[STRATEGY_COLUMNS].astype(STRATEGY_DTYPES)


def build_tag_table(signals: pd.DataFrame) -> pd.DataFrame:
    """Violation-row counts per tag in first-seen order."""
    if signals.empty:
        return empty_tag_table()

    tags = signals["tags"].explode().dropna()
    if tags.empty:
        return empty_tag_table()

    tags = tags.astype(str)
    counts = tags.groupby(tags, sort=False).size()
    table = pd.DataFrame({"name": counts.index.astype(str), "count": counts.to_numpy()})
    return table.astype({"count": "int64"})


def aggregate_partition(
    rows: Iterable[Mapping[str, str]],
    config: AnalysisConfig,
) -> PartitionStats:
    signals = build_signal_frame(rows, config)
    return PartitionStats(
        basic=build_basic_stats(signals, config),
        strategies=build_strategy_table(signals),
        tags=build_tag_table(signals),
    )


def merge_strategy_tables(tables: Iterable[pd.DataFrame]) -> pd.DataFrame:
    frames = [table for table in tables if not table.empty]
    if not frames:
        return empty_strategy_table()
    combined = pd.concat(frames, ignore_index=True)
    merged = combined.groupby("name", sort=False)[STRATEGY_COUNT_COLUMNS].sum().reset_index()
    return merged[STRATEGY_COLUMNS].astype(STRATEGY_DTYPES)


def merge_tag_tables(tables: Iterable[pd.DataFrame]) -> pd.DataFrame:
    frames = [table for table in tables if not table.empty]
    if not frames:
        return empty_tag_table()
    combined = pd.concat(frames, ignore_index=True)
    merged = combined.groupby("name", sort=False)["count"].sum().reset_index()
    return merged[TAG_COLUMNS].astype({"count": "int64"})


def rank_strategies(table: pd.DataFrame) -> list[StrategyStats]:
    ranked = table.sort_values("hit_count", ascending=False, kind="mergesort")
    return [
        StrategyStats(
            name=str(record["name"]),
            hit_count=int(record["hit_count"]),
            human_review_count=int(record["human_review_count"]),
            pending_count=int(record["pending_count"]),
            violation_count=int(record["violation_count"]),
        )
        for record in ranked.to_dict(orient="records")
    ]


def rank_tags(table: pd.DataFrame, top_n: int) -> list[TagCount]:
    ranked = table.sort_values("count", ascending=False, kind="mergesort").head(top_n)
    return [
        TagCount(name=str(record["name"]), count=int(record["count"]))
        for record in ranked.to_dict(orient="records")
    ]
