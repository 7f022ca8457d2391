from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from moderation_audit.config import AppConfig, OutputsConfig
from moderation_audit.io.read import load_records
from moderation_audit.io.write import write_summary, write_text
from moderation_audit.paths import build_output_paths
from moderation_audit.report.builder import build_report
from moderation_audit.report.contracts import ReportData, ReportRequest, report_to_dict
from moderation_audit.report.render import render_html, render_markdown

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedReport:
    report: ReportData
    markdown: str


@dataclass(frozen=True)
class ReportOutputs:
    generated: GeneratedReport
    paths: dict[str, Path] = field(default_factory=dict)


def generate_report(request: ReportRequest) -> GeneratedReport | None:
    report = build_report(request)
    if report is None:
        return None
    return GeneratedReport(report=report, markdown=render_markdown(report))


def write_report_outputs(
    generated: GeneratedReport,
    out_dir: Path,
    outputs: OutputsConfig,
) -> dict[str, Path]:
    paths = build_output_paths(out_dir)
    written: dict[str, Path] = {}
    if outputs.markdown:
        written["markdown"] = write_text(generated.markdown, paths.markdown)
    if outputs.html:
        written["html"] = write_text(render_html(generated.report), paths.html)
    if outputs.summary_json:
        written["summary"] = write_summary(report_to_dict(generated.report), paths.report_data)
    for name, path in written.items():
        LOGGER.info("Wrote %s: %s", name, path)
    return written


def run_report(
    rows: Sequence[Mapping[str, str]],
    out_dir: Path,
    config: AppConfig,
    *,
    selection: str | None = None,
) -> ReportOutputs | None:
    request = ReportRequest.from_rows(rows, selection=selection, config=config.analysis())
    generated = generate_report(request)
    if generated is None:
        return None
    return ReportOutputs(
        generated=generated,
        paths=write_report_outputs(generated, out_dir=out_dir, outputs=config.outputs),
    )


def run_all(
    csv_path: Path,
    out_dir: Path,
    config: AppConfig,
    *,
    selection: str | None = None,
) -> ReportOutputs | None:
    rows = load_records(csv_path=csv_path, config=config)
    return run_report(rows, out_dir=out_dir, config=config, selection=selection)
