from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from moderation_audit.cli import app

EXPORT_LINES = [
    "异步机审入审时间,同步机审状态,人审状态,同步机审命中策略,人审标签",
    "2024-03-01 09:00:00,拒绝,拒绝,s1,涉政",
    "2024-03-01 10:00:00,通过,待审,s1&&s2,",
    "2024-03-02 08:00:00,拒绝,,,",
]


def _write_export(tmp_path: Path) -> Path:
    csv_path = tmp_path / "export.csv"
    csv_path.write_text("\n".join(EXPORT_LINES), encoding="utf-8")
    return csv_path


def test_cli_help() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "dates" in result.stdout
    assert "report" in result.stdout


def test_report_command_writes_weekly_outputs(tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)
    out_dir = tmp_path / "out"

    runner = CliRunner()
    result = runner.invoke(app, ["report", "--csv", str(csv_path), "--out", str(out_dir)])

    assert result.exit_code == 0, result.output
    assert "Report complete (整体周报)." in result.stdout
    markdown = (out_dir / "report.md").read_text(encoding="utf-8")
    assert markdown.startswith("### 一、基本统计分析工作\n**[整体周报] 大盘情况**")
    assert "| 指标 | 3.1 | 3.2 | 总计 | 7天日均 |" in markdown
    assert (out_dir / "report.html").exists()
    payload = json.loads((out_dir / "summary" / "report_data.json").read_text(encoding="utf-8"))
    assert payload["mode"] == "weekly"
    assert payload["dates"] == ["2024-03-01", "2024-03-02"]


def test_report_command_single_day(tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)
    out_dir = tmp_path / "out"

    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "report",
            "--csv",
            str(csv_path),
            "--out",
            str(out_dir),
            "--date",
            "2024/3/1",
            "--stdout",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Report complete (2024-03-01)." in result.stdout
    assert "**[2024-03-01] 大盘情况**" in result.stdout
    assert "| **送审量级** | 2 | |" in result.stdout


def test_report_command_exits_when_date_has_no_rows(tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["report", "--csv", str(csv_path), "--out", str(tmp_path / "out"), "--date", "2024-03-09"],
    )

    assert result.exit_code == 1
    assert "No report" in result.stdout
    assert not (tmp_path / "out" / "report.md").exists()


def test_report_command_rejects_unparsable_date(tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)

    runner = CliRunner()
    result = runner.invoke(app, ["report", "--csv", str(csv_path), "--date", "last week"])

    assert result.exit_code == 2


def test_report_command_forwards_selection_and_encoding(monkeypatch, tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)
    captured: dict[str, object] = {}

    def _fake_run_all(csv_path: Path, out_dir: Path, config, *, selection: str):
        captured["csv_path"] = csv_path
        captured["encoding"] = config.input.encoding
        captured["selection"] = selection
        return None

    monkeypatch.setattr("moderation_audit.cli.run_all", _fake_run_all)

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["report", "--csv", str(csv_path), "--date", "2024年3月2日", "--encoding", "gbk"],
    )

    assert result.exit_code == 1
    assert captured == {
        "csv_path": csv_path.resolve(),
        "encoding": "gbk",
        "selection": "2024-03-02",
    }


def test_dates_command_lists_counts(tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)

    runner = CliRunner()
    result = runner.invoke(app, ["dates", "--csv", str(csv_path)])

    assert result.exit_code == 0, result.output
    assert "- 2024-03-01: 2 rows, retained" in result.stdout
    assert "- 2024-03-02: 1 rows, retained" in result.stdout


def test_dates_command_marks_low_volume_dates(tmp_path: Path) -> None:
    csv_path = tmp_path / "export.csv"
    lines = [EXPORT_LINES[0], *("2024-03-01 09:00:00,通过,,," for _ in range(150))]
    lines.append("2024-03-02 09:00:00,通过,,,")
    csv_path.write_text("\n".join(lines), encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["dates", "--csv", str(csv_path)])

    assert result.exit_code == 0, result.output
    assert "- 2024-03-01: 150 rows, retained" in result.stdout
    assert "- 2024-03-02: 1 rows, dropped (low volume)" in result.stdout


def test_report_command_loads_default_config_from_working_directory(
    monkeypatch, tmp_path: Path
) -> None:
    csv_path = _write_export(tmp_path)
    configs_dir = tmp_path / "configs"
    configs_dir.mkdir()
    (configs_dir / "strategy_names.csv").write_text("code,name\ns1,策略一\n", encoding="utf-8")
    (configs_dir / "default.yaml").write_text(
        "mappings:\n  strategy_names_path: strategy_names.csv\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["report", "--csv", str(csv_path), "--out", str(tmp_path / "out"), "--stdout"],
    )

    assert result.exit_code == 0, result.output
    assert "| 策略一 | 2 |" in result.stdout


def test_report_command_uses_builtin_defaults_without_config_file(
    monkeypatch, tmp_path: Path
) -> None:
    csv_path = _write_export(tmp_path)
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["report", "--csv", str(csv_path), "--out", str(tmp_path / "out"), "--stdout"],
    )

    assert result.exit_code == 0, result.output
    assert "| s1 | 2 |" in result.stdout


def test_dates_command_reports_missing_mapping_table(tmp_path: Path) -> None:
    csv_path = _write_export(tmp_path)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("mappings:\n  tag_merge_path: missing.csv\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(
        app, ["dates", "--csv", str(csv_path), "--config", str(config_path)]
    )

    assert result.exit_code == 2
    assert "Mapping table not found" in result.output
