from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from moderation_audit.features.aggregates import BasicStats
from moderation_audit.preprocess.dates import format_date_label
from moderation_audit.report.contracts import ReportData, SingleReport, WeeklyReport

REPORT_TITLE = "慧播星风控周报"
BASIC_HEADING = "### 一、基本统计分析工作"
BASIC_DESCRIPTION = "包括但不限于送审量级、策略召回量级、违规量级、大盘风险水位（违规量级/送审量级）等"
STRATEGY_HEADING = "### 二、策略情况"
STRATEGY_DESCRIPTION = "(策略召回量级/送审量级)、策略精确率（违规量级/策略召回量级）"
TAG_HEADING = "### 三、大盘风险分布"
TAG_DESCRIPTION = (
    "(by标签统计量级、违规标签占比：违规标签a/总违规量级、违规标签风险水位：违规标签a/送审量级)"
)

BLACK_SAMPLE_REMARKS = {
    "machine_reject": "机审拒绝+人审违规",
    "recall": "策略召回+人审违规",
}


@dataclass(frozen=True)
class BasicRow:
    label: str
    field: str
    denominator: str | None = None
    average_field: str | None = None
    average_decimals: int = 2


# Average precision per row mirrors the long-standing weekly report layout.
BASIC_ROWS = (
    BasicRow("送审量级", "total_rows", average_field="total_rows"),
    BasicRow(
        "机审拒绝",
        "machine_reject_count",
        average_field="machine_reject_count",
        average_decimals=3,
    ),
    BasicRow("策略召回量级（送人审）", "recall_count", average_field="recall_count"),
    BasicRow("策略总命中率", "recall_count", "total_rows", average_field="recall_rate"),
    BasicRow("人审判定违规量级", "human_violation_count", average_field="human_violation_count"),
    BasicRow("策略总精确率", "human_violation_count", "recall_count", average_field="precision"),
    BasicRow(
        "黑样本总数",
        "black_sample_total",
        average_field="black_sample_total",
        average_decimals=0,
    ),
    BasicRow("大盘风险水位", "black_sample_total", "total_rows", average_field="risk_level"),
)


@dataclass(frozen=True)
class ReportTable:
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    bold_first_column: bool = False
    summary_row: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ReportSection:
    heading: str
    description: str
    table: ReportTable
    subheading: str | None = None
    notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReportView:
    title: str
    mode: str
    date_label: str
    sections: tuple[ReportSection, ...]


def format_decimal(value: float, decimals: int = 2) -> str:
    """Fixed-point text, rounding the exact binary value half-up."""
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_percent(numerator: float, denominator: float, decimals: int = 2) -> str:
    if denominator == 0:
        return format_decimal(0, decimals)
    return format_decimal(numerator / denominator * 100, decimals)


def _basic_cell(stats: BasicStats, row: BasicRow) -> str:
    value = getattr(stats, row.field)
    if row.denominator is None:
        return str(value)
    return f"{format_percent(value, getattr(stats, row.denominator), 2)}%"


def _single_basic_table(report: SingleReport) -> ReportTable:
    remark = BLACK_SAMPLE_REMARKS.get(report.black_sample_formula, "")
    rows = tuple(
        (
            row.label,
            _basic_cell(report.stats, row),
            remark if row.field == "black_sample_total" and row.denominator is None else "",
        )
        for row in BASIC_ROWS
    )
    return ReportTable(headers=("指标", "数值", "备注"), rows=rows, bold_first_column=True)


def _weekly_basic_table(report: WeeklyReport) -> ReportTable:
    headers = ("指标", *(format_date_label(date) for date in report.dates), "总计", "7天日均")
    rows = []
    for row in BASIC_ROWS:
        cells = [row.label]
        cells.extend(_basic_cell(report.daily_stats[date], row) for date in report.dates)
        cells.append(_basic_cell(report.total_stats, row))
        average = getattr(report.averages, row.average_field or row.field)
        if row.denominator is None:
            cells.append(format_decimal(average, row.average_decimals))
        else:
            cells.append(f"{format_decimal(average, 2)}%")
        rows.append(tuple(cells))
    return ReportTable(headers=headers, rows=tuple(rows), bold_first_column=True)


def _strategy_table(report: ReportData) -> ReportTable:
    total_rows = report.scope_stats.total_rows
    rows = tuple(
        (
            strategy.name,
            str(strategy.hit_count),
            f"{format_percent(strategy.hit_count, total_rows, 4)}%",
            f"{strategy.human_review_count}\n(待审：{strategy.pending_count})",
            str(strategy.violation_count),
            f"{format_percent(strategy.violation_count, strategy.human_review_count, 2)}%",
        )
        for strategy in report.strategies
    )
    return ReportTable(
        headers=(
            "策略名称",
            "策略命中数量",
            "策略命中率",
            "送人审(含待审)",
            "策略下违规数量",
            "策略精确率",
        ),
        rows=rows,
    )


def _tag_table(report: ReportData) -> ReportTable:
    scope = report.scope_stats
    rows = []
    risk_sum = 0.0
    for tag in report.tags:
        risk_value = tag.count / scope.total_rows * 100 if scope.total_rows else 0.0
        risk_sum += risk_value
        rows.append(
            (
                tag.name,
                str(tag.count),
                f"{format_percent(tag.count, scope.human_violation_count, 4)}%",
                f"{format_decimal(risk_value, 4)}%",
            )
        )
    return ReportTable(
        headers=("人审标签", "数量", "违规标签占比", "风险水位"),
        rows=tuple(rows),
        summary_row=(
            "汇总",
            str(report.total_tag_count),
            "100.00%",
            f"{format_decimal(risk_sum, 4)}%",
        ),
    )


def build_report_view(report: ReportData) -> ReportView:
    """Display structure shared by the markdown and HTML renderers."""
    scope = report.scope_stats
    black_samples = scope.machine_reject_count + scope.human_violation_count
    if isinstance(report, WeeklyReport):
        basic_table = _weekly_basic_table(report)
    else:
        basic_table = _single_basic_table(report)

    sections = (
        ReportSection(
            heading=BASIC_HEADING,
            subheading=f"[{report.date_label}] 大盘情况",
            description=BASIC_DESCRIPTION,
            table=basic_table,
        ),
        ReportSection(
            heading=STRATEGY_HEADING,
            description=STRATEGY_DESCRIPTION,
            table=_strategy_table(report),
        ),
        ReportSection(
            heading=TAG_HEADING,
            description=TAG_DESCRIPTION,
            notes=(
                f"人审违规数量：{scope.human_violation_count}",
                f"机审拒绝+人审违规数量：{black_samples}",
            ),
            table=_tag_table(report),
        ),
    )
    return ReportView(
        title=REPORT_TITLE,
        mode=report.mode,
        date_label=report.date_label,
        sections=sections,
    )


def _markdown_cell(value: str, bold: bool = False) -> str:
    text = value.replace("\n", "<br>")
    if bold and text:
        return f"**{text}**"
    return text


def _markdown_row(cells: tuple[str, ...] | list[str]) -> str:
    return "|" + "".join(f" {cell} |" if cell else " |" for cell in cells)


def _markdown_table(table: ReportTable) -> list[str]:
    lines = [
        _markdown_row(table.headers),
        _markdown_row([":---"] * len(table.headers)),
    ]
    for row in table.rows:
        cells = [
            _markdown_cell(cell, bold=table.bold_first_column and index == 0)
            for index, cell in enumerate(row)
        ]
        lines.append(_markdown_row(cells))
    if table.summary_row is not None:
        lines.append(_markdown_row([_markdown_cell(cell, bold=True) for cell in table.summary_row]))
    return lines


def _markdown_section(section: ReportSection) -> str:
    header_lines = [section.heading]
    if section.subheading:
        header_lines.append(f"**{section.subheading}**")
    header_lines.append(f"*{section.description}*")
    header_lines.extend(f"*   {note}" for note in section.notes)
    return "\n".join(header_lines) + "\n\n" + "\n".join(_markdown_table(section.table))


def render_markdown(report: ReportData) -> str:
    view = build_report_view(report)
    return "\n\n".join(_markdown_section(section) for section in view.sections)


def _template_env() -> Environment:
    templates_path = Path(__file__).resolve().parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(templates_path)),
        autoescape=select_autoescape(enabled_extensions=("html", "xml", "j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_html(report: ReportData, generated_at: str | None = None) -> str:
    template = _template_env().get_template("report.html.j2")
    return template.render(
        view=build_report_view(report),
        generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
    )
