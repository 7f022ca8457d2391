from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class OutputPaths:
    root: Path
    summary: Path

    @property
    def markdown(self) -> Path:
        return self.root / "report.md"

    @property
    def html(self) -> Path:
        return self.root / "report.html"

    @property
    def report_data(self) -> Path:
        return self.summary / "report_data.json"


def build_output_paths(out_dir: Path) -> OutputPaths:
    paths = OutputPaths(
        root=out_dir,
        summary=out_dir / "summary",
    )
    for path in (paths.root, paths.summary):
        path.mkdir(parents=True, exist_ok=True)
    return paths
