"""
基准运行器
按规模依次执行 basic / relational / indexed 阶段，最后执行一次聚合阶段。
所有操作严格串行；每个阶段开始前所有后端必须为空。
"""
from typing import Dict, List, Optional, Sequence, Tuple

from ..adapters.base import AggregationQueries, BackendAdapter
from ..adapters.errors import (
    CleanupFailureError, ErrorKind, as_benchmark_error,
)
from ..data_models.records import Dataset, Variant
from ..data_models.results import (
    AGGREGATION_QUERIES, CANONICAL_OPERATIONS, AggregationReport,
    AggregationResults, BenchmarkReport, OperationKind, OperationResults,
)
from ..generation.dataset import DatasetGenerator
from ..monitoring.environment import environment_snapshot
from ..reporting.aggregator import PhaseResult, ResultAggregator
from ..reporting.reporter import Reporter
from .state import PHASE_ORDER, PHASE_STATES, RunnerState, StateMachine


class BenchmarkRunner:
    """基准运行器"""

    def __init__(self, adapters: Sequence[BackendAdapter],
                 generator: Optional[DatasetGenerator] = None,
                 reporter: Optional[Reporter] = None,
                 aggregator: Optional[ResultAggregator] = None,
                 aggregation_scale: Optional[int] = 1000):
        if not adapters:
            raise ValueError("At least one backend adapter is required")
        self.adapters = list(adapters)
        self.generator = generator or DatasetGenerator()
        self.reporter = reporter or Reporter()
        self.aggregator = aggregator or ResultAggregator()
        # None 表示跳过聚合阶段
        self.aggregation_scale = aggregation_scale
        self.machine = StateMachine()
        # 执行顺序记录：(规模, 阶段, 后端, 操作)
        self.timeline: List[Tuple[int, str, str, str]] = []

    @property
    def state(self) -> RunnerState:
        return self.machine.state

    def adapters_for(self, variant: Variant) -> List[BackendAdapter]:
        return [adapter for adapter in self.adapters if adapter.participates_in(variant)]

    def run(self, scales: Sequence[int]) -> BenchmarkReport:
        """完整运行，任何致命错误都会中止并向上抛出，不产生部分结果"""
        if not scales:
            raise ValueError("At least one scale is required")
        if len(set(scales)) != len(scales):
            raise ValueError(f"Duplicate scales: {list(scales)}")

        self.machine = StateMachine()
        self.timeline = []
        environment = environment_snapshot()
        self.reporter.run_started(scales, environment)

        phase_results: List[PhaseResult] = []
        aggregation: Optional[AggregationReport] = None
        try:
            self._connect()
            for scale in scales:
                self.reporter.scale_started(scale)
                for variant in PHASE_ORDER:
                    phase_results.extend(self._run_phase(scale, variant))

            if self.aggregation_scale is not None:
                aggregation = self._run_aggregation(self.aggregation_scale)
            self._reset_all()
            self.machine.transition(RunnerState.DONE)
        except Exception as e:
            error = as_benchmark_error(e)
            if not self.machine.finished:
                self.machine.transition(RunnerState.ABORTED)
            self.reporter.aborted(error)
            if error is e:
                raise
            raise error from e
        finally:
            self._disconnect()

        report = BenchmarkReport(
            environment=environment,
            scales=self.aggregator.merge(phase_results),
            aggregation=aggregation,
        )
        self.reporter.finished()
        return report

    # 连接只在整个运行开始和结束时各处理一次
    def _connect(self):
        for adapter in self.adapters:
            adapter.connect()

    def _disconnect(self):
        for adapter in self.adapters:
            adapter.disconnect()

    def _reset_all(self):
        """清空所有后端并确认每种实体计数为 0"""
        for adapter in self.adapters:
            try:
                adapter.reset_state()
                leftovers = {name: count for name, count in adapter.count_entities().items() if count}
            except Exception as e:
                error = as_benchmark_error(e, context=f"reset {adapter.backend}")
                if error.kind == ErrorKind.UNCLASSIFIED:
                    raise CleanupFailureError(error.message, cause=e) from e
                if error is e:
                    raise
                raise error from e
            if leftovers:
                raise CleanupFailureError(f"{adapter.backend} not empty after reset: {leftovers}")
        self.reporter.cleanup_verified()

    def _generate(self, scale: int, variant: Variant) -> Dataset:
        dataset = self.generator.generate(scale, variant)
        self.machine.transition(RunnerState.DATA_GENERATED)
        self.reporter.dataset_generated(variant.value, dataset.summary(), dataset.like_attempts)
        return dataset

    def _run_phase(self, scale: int, variant: Variant) -> List[PhaseResult]:
        self._reset_all()
        dataset = self._generate(scale, variant)
        self.machine.transition(PHASE_STATES[variant])

        results: List[PhaseResult] = []
        for adapter in self.adapters_for(variant):
            self.reporter.phase_started(variant.value, adapter.backend)
            adapter.configure_indexes()
            timings: Dict[str, float] = {}
            for operation in CANONICAL_OPERATIONS:
                timings[operation.value] = self._execute(adapter, operation, dataset, scale, variant)
            results.append(PhaseResult(
                scale=scale,
                phase=variant.value,
                backend=adapter.backend,
                results=OperationResults.from_timings(timings),
            ))
        return results

    def _execute(self, adapter: BackendAdapter, operation: OperationKind,
                 dataset: Dataset, scale: int, variant: Variant) -> float:
        elapsed_ms = adapter.execute(operation, dataset)
        self.timeline.append((scale, variant.value, adapter.backend, operation.value))
        self.reporter.operation_timed(operation, elapsed_ms)
        if operation == OperationKind.WRITES and adapter.skipped_likes:
            self.reporter.duplicates_skipped(adapter.backend, adapter.skipped_likes)
        return elapsed_ms

    def _run_aggregation(self, scale: int) -> AggregationReport:
        """聚合阶段：不计时地载入 relational 形态数据，每个后端各执行一次五项查询"""
        self._reset_all()
        dataset = self._generate(scale, Variant.RELATIONAL)
        self.machine.transition(RunnerState.AGGREGATION_RUNNING)
        self.reporter.aggregation_started(scale)

        measured: List[Tuple[str, AggregationResults]] = []
        for adapter in self.adapters:
            if not isinstance(adapter, AggregationQueries):
                continue
            self.reporter.phase_started("aggregation", adapter.backend)
            adapter.configure_indexes()
            adapter.load(dataset)
            timings: Dict[str, float] = {}
            for query in AGGREGATION_QUERIES:
                elapsed_ms = adapter.execute_aggregation(query)
                self.timeline.append((scale, "aggregation", adapter.backend, query.value))
                self.reporter.query_timed(query.value, elapsed_ms)
                timings[query.value] = elapsed_ms
            measured.append((adapter.backend, AggregationResults.from_timings(timings)))
        return self.aggregator.merge_aggregation(scale, measured)
