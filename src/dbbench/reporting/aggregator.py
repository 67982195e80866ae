"""
结果聚合
把逐阶段、逐后端的测量合并为每个规模一份结构化结果
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from ..data_models.results import (
    AggregationReport, AggregationResults, OperationResults, ScaleResults,
)


@dataclass(frozen=True)
class PhaseResult:
    """一个后端变体在一个阶段内的测量"""
    scale: int
    phase: str
    backend: str
    results: OperationResults


class ResultAggregator:
    """结果聚合器"""

    def merge(self, phase_results: Iterable[PhaseResult]) -> Dict[int, ScaleResults]:
        """按 规模 -> 阶段 -> 后端 合并，同一组合重复出现视为错误"""
        merged: Dict[int, ScaleResults] = {}
        for item in phase_results:
            scale_results = merged.setdefault(item.scale, ScaleResults(scale=item.scale))
            backends = scale_results.phases.setdefault(item.phase, {})
            if item.backend in backends:
                raise ValueError(
                    f"Duplicate result for scale={item.scale} phase={item.phase} backend={item.backend}"
                )
            backends[item.backend] = item.results
        return merged

    def merge_aggregation(self, scale: int,
                          results: Iterable[Tuple[str, AggregationResults]]) -> AggregationReport:
        report = AggregationReport(scale=scale)
        for backend, aggregation in results:
            if backend in report.backends:
                raise ValueError(f"Duplicate aggregation result for backend={backend}")
            report.backends[backend] = aggregation
        return report
