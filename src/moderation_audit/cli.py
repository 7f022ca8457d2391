from __future__ import annotations

from pathlib import Path
from typing import Literal

import typer

from moderation_audit.config import DEFAULT_CONFIG_PATH, AppConfig, InputConfig, load_config
from moderation_audit.features.rollup import filter_noise_dates
from moderation_audit.io.read import load_records
from moderation_audit.logging import configure_logging
from moderation_audit.pipeline.run_all import run_all
from moderation_audit.preprocess.dates import count_rows_by_date, extract_date
from moderation_audit.report.contracts import WEEKLY_SELECTION

app = typer.Typer(no_args_is_help=True, add_completion=False)

Encoding = Literal["utf-8", "utf-8-sig", "gbk", "gb18030"]


def _load_app_config(config_path: Path | None) -> AppConfig:
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return AppConfig()
        config_path = DEFAULT_CONFIG_PATH
    return load_config(config_path)


def _apply_encoding_override(cfg: AppConfig, encoding: str | None) -> None:
    if encoding is None:
        return
    cfg.input = InputConfig.model_validate({**cfg.input.model_dump(), "encoding": encoding})


def _normalize_selection(date: str | None) -> str:
    if date is None or date == WEEKLY_SELECTION:
        return WEEKLY_SELECTION
    key = extract_date(date)
    if key is None:
        raise typer.BadParameter(f"Unrecognized date: {date!r}. Use YYYY-MM-DD.")
    return key


@app.command()
def dates(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    config: Path | None = typer.Option(
        None,
        exists=True,
        readable=True,
        resolve_path=True,
        help="Defaults to configs/default.yaml when present.",
    ),
    encoding: Encoding | None = typer.Option(None, help="Override input.encoding."),
) -> None:
    """List the dates found in an export with row counts and weekly-rollup status."""
    configure_logging()
    cfg = _load_app_config(config)
    _apply_encoding_override(cfg, encoding)
    try:
        analysis = cfg.analysis()
        rows = load_records(csv_path=csv, config=cfg)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    daily_counts = count_rows_by_date(rows, cfg.columns.review_time)
    if not daily_counts:
        typer.echo("No parsable dates found.")
        raise typer.Exit(code=1)

    retained = set(filter_noise_dates(daily_counts, analysis))
    for date, count in daily_counts.items():
        status = "retained" if date in retained else "dropped (low volume)"
        typer.echo(f"- {date}: {count} rows, {status}")


@app.command()
def report(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    config: Path | None = typer.Option(
        None,
        exists=True,
        readable=True,
        resolve_path=True,
        help="Defaults to configs/default.yaml when present.",
    ),
    date: str | None = typer.Option(
        None,
        help="Single-day report for this date (YYYY-MM-DD). Omit for the weekly rollup.",
    ),
    encoding: Encoding | None = typer.Option(None, help="Override input.encoding."),
    stdout: bool = typer.Option(False, help="Also print the markdown report."),
) -> None:
    """Render the markdown/HTML report for one day or the whole export."""
    configure_logging()
    cfg = _load_app_config(config)
    _apply_encoding_override(cfg, encoding)
    selection = _normalize_selection(date)
    try:
        outputs = run_all(csv_path=csv, out_dir=out, config=cfg, selection=selection)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if outputs is None:
        typer.echo("No report: no rows left for the selected date range.")
        raise typer.Exit(code=1)

    if stdout:
        typer.echo(outputs.generated.markdown)
    typer.echo(f"Report complete ({outputs.generated.report.date_label}).")
    for name, path in outputs.paths.items():
        typer.echo(f"- {name}: {path}")


if __name__ == "__main__":
    app()
