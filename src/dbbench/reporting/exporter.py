"""
报告渲染与结果持久化
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Union

from ..data_models.results import (
    AGGREGATION_QUERIES, CANONICAL_OPERATIONS, AggregationReport,
    BenchmarkReport, ScaleResults, TimingRecord,
)


class ReportFormatter:
    """对比表：每个操作一行，每个 阶段/后端 一列，单位毫秒"""

    def _table(self, title: str, row_names: List[str], row_labels: List[str],
               columns: Dict[str, TimingRecord]) -> str:
        headers = ["Operation"] + list(columns)
        rows = [headers]
        for name, label in zip(row_names, row_labels):
            rows.append([label] + [f"{record.as_row()[name]:.2f}" for record in columns.values()])

        widths = [max(len(row[i]) for row in rows) for i in range(len(headers))]
        lines = [title]
        for index, row in enumerate(rows):
            lines.append(" | ".join(
                cell.ljust(widths[i]) if i == 0 else cell.rjust(widths[i])
                for i, cell in enumerate(row)
            ))
            if index == 0:
                lines.append("-+-".join("-" * width for width in widths))
        return "\n".join(lines)

    def render_scale(self, results: ScaleResults) -> str:
        return self._table(
            f"Scale {results.scale} (ms)",
            [op.value for op in CANONICAL_OPERATIONS],
            [op.label for op in CANONICAL_OPERATIONS],
            results.columns(),
        )

    def render_aggregation(self, report: AggregationReport) -> str:
        names = [query.value for query in AGGREGATION_QUERIES]
        return self._table(f"Aggregation, scale {report.scale} (ms)", names, names, report.backends)

    def render(self, report: BenchmarkReport) -> str:
        sections = [self.render_scale(report.scales[scale]) for scale in sorted(report.scales)]
        if report.aggregation is not None:
            sections.append(self.render_aggregation(report.aggregation))
        return "\n\n".join(sections)


class ResultExporter:
    """结果工件：JSON，先写临时文件再原子替换"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def to_dict(self, report: BenchmarkReport) -> dict:
        return report.model_dump(mode="json", by_alias=True)

    def write(self, report: BenchmarkReport) -> Path:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".results-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(self.to_dict(report), f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        return self.path

    def load(self) -> BenchmarkReport:
        with open(self.path) as f:
            return BenchmarkReport.model_validate(json.load(f))
