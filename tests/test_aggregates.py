from __future__ import annotations

import pandas as pd

from moderation_audit.config import AnalysisConfig
from moderation_audit.features.aggregates import (
    aggregate_partition,
    merge_strategy_tables,
    merge_tag_tables,
    rank_strategies,
    rank_tags,
)

CONFIG = AnalysisConfig()


def _scenario_rows() -> list[dict[str, str]]:
    return [
        {
            "异步机审入审时间": "2024-03-01 09:00:00",
            "同步机审状态": "拒绝",
            "人审状态": "拒绝",
            "同步机审命中策略": "s1",
            "人审标签": "t1",
        },
        {
            "异步机审入审时间": "2024-03-01 10:00:00",
            "同步机审状态": "通过",
            "人审状态": "待审",
            "同步机审命中策略": "s1&&s2",
        },
        {
            "异步机审入审时间": "2024-03-01 11:00:00",
            "同步机审状态": "通过",
            "人审状态": "",
        },
    ]


def test_aggregate_partition_matches_reference_scenario() -> None:
    result = aggregate_partition(_scenario_rows(), CONFIG)

    assert result.basic.total_rows == 3
    assert result.basic.machine_reject_count == 1
    assert result.basic.recall_count == 2
    assert result.basic.human_violation_count == 1
    assert result.basic.black_sample_total == 2

    strategies = result.strategies.set_index("name")
    assert strategies.loc["s1"].tolist() == [2, 2, 1, 1]
    assert strategies.loc["s2"].tolist() == [1, 1, 1, 0]
    assert result.tags.to_dict(orient="records") == [{"name": "t1", "count": 1}]


def test_black_sample_total_is_machine_rejects_plus_violations() -> None:
    rows = [
        {"同步机审状态": "拒绝", "人审状态": "拒绝"},
        {"异步机审状态": "拒绝"},
        {"人审状态": "拒绝"},
        {"人审状态": "通过"},
        {},
    ]

    basic = aggregate_partition(rows, CONFIG).basic

    assert basic.black_sample_total == basic.machine_reject_count + basic.human_violation_count
    assert basic.black_sample_total == 4


def test_recall_black_sample_formula_is_selectable() -> None:
    rows = [{"人审状态": "通过"}, {"人审状态": "拒绝"}, {"同步机审状态": "拒绝"}]

    basic = aggregate_partition(rows, AnalysisConfig(black_sample_formula="recall")).basic

    assert basic.black_sample_total == basic.recall_count + basic.human_violation_count == 3


def test_strategy_counts_respect_review_bounds() -> None:
    rows = [
        {"同步机审命中策略": "s1&&s1", "人审状态": "通过"},
        {"同步机审命中策略": "s1", "人审状态": "待审"},
        {"同步机审命中策略": "s2", "人审状态": "拒绝"},
        {"异步机审命中策略": "s2&&s3"},
    ]

    table = aggregate_partition(rows, CONFIG).strategies

    assert table["name"].tolist() == ["s1", "s2", "s3"]
    assert table.set_index("name").loc["s1", "hit_count"] == 3
    assert (table["pending_count"] <= table["human_review_count"]).all()
    assert (table["violation_count"] <= table["human_review_count"]).all()


def test_tag_counted_once_per_row() -> None:
    rows = [{"人审状态": "拒绝", "人审标签": "A&&A&&B"}]

    tags = aggregate_partition(rows, CONFIG).tags

    assert tags.to_dict(orient="records") == [
        {"name": "A", "count": 1},
        {"name": "B", "count": 1},
    ]


def test_aggregate_partition_handles_empty_input() -> None:
    result = aggregate_partition([], CONFIG)

    assert result.basic.total_rows == 0
    assert result.basic.recall_rate == 0.0
    assert result.basic.precision == 0.0
    assert result.strategies.empty
    assert result.tags.empty
    assert rank_strategies(result.strategies) == []
    assert rank_tags(result.tags, 35) == []


def test_merge_tables_sum_per_key_in_first_seen_order() -> None:
    day_one = aggregate_partition(
        [{"同步机审命中策略": "s1", "人审状态": "拒绝", "人审标签": "A"}], CONFIG
    )
    day_two = aggregate_partition(
        [
            {"同步机审命中策略": "s2&&s1", "人审状态": "拒绝", "人审标签": "B&&A"},
        ],
        CONFIG,
    )

    strategies = merge_strategy_tables([day_one.strategies, day_two.strategies])
    tags = merge_tag_tables([day_one.tags, day_two.tags])

    assert strategies["name"].tolist() == ["s1", "s2"]
    assert strategies.set_index("name").loc["s1", "violation_count"] == 2
    assert tags.to_dict(orient="records") == [
        {"name": "A", "count": 2},
        {"name": "B", "count": 1},
    ]


def test_rank_strategies_is_stable_for_ties() -> None:
    table = pd.DataFrame(
        {
            "name": ["low", "tie_first", "high", "tie_second"],
            "hit_count": [1, 5, 9, 5],
            "human_review_count": [0, 0, 0, 0],
            "pending_count": [0, 0, 0, 0],
            "violation_count": [0, 0, 0, 0],
        }
    )

    ranked = rank_strategies(table)

    assert [item.name for item in ranked] == ["high", "tie_first", "tie_second", "low"]


def test_rank_tags_keeps_top_n_by_count() -> None:
    table = pd.DataFrame(
        {"name": [f"tag{count}" for count in range(1, 41)], "count": list(range(1, 41))}
    )

    ranked = rank_tags(table, 35)

    assert len(ranked) == 35
    assert ranked[0].count == 40
    assert ranked[-1].count == 6
    assert sum(item.count for item in ranked) == sum(range(6, 41))
