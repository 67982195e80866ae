"""
进度输出
显式传入运行器的输出对象，替代全局 print，测试中可捕获输出
"""
import sys
from typing import Any, Dict, Optional, TextIO

from ..data_models.results import OperationKind


class Reporter:
    """基准进度报告器"""

    def __init__(self, stream: Optional[TextIO] = None, verbose: bool = True):
        self.stream = stream if stream is not None else sys.stdout
        self.verbose = verbose

    def emit(self, message: str = ""):
        print(message, file=self.stream, flush=True)

    def _detail(self, message: str):
        if self.verbose:
            self.emit(message)

    def run_started(self, scales, environment: Dict[str, Any]):
        self.emit(f"🚀 启动基准测试，规模: {', '.join(str(s) for s in scales)}")
        self._detail(
            f"  环境: {environment.get('platform')} | Python {environment.get('python_version')} | "
            f"CPU {environment.get('cpu_count')} | 内存 {environment.get('memory_total_mb')}MB"
        )

    def scale_started(self, scale: int):
        self.emit(f"\nRunning tests with scale: {scale}")

    def dataset_generated(self, variant: str, summary: Dict[str, int], like_attempts: int):
        self._detail(
            f"  数据集[{variant}]: {summary['users']} users, {summary['posts']} posts, "
            f"{summary['likes']}/{like_attempts} likes"
        )

    def phase_started(self, variant: str, backend: str):
        self.emit("------------------------")
        self.emit(f"{backend} ({variant})")
        self.emit("------------------------")

    def operation_timed(self, operation: OperationKind, elapsed_ms: float):
        self.emit(f"{OperationKind(operation).label}: {elapsed_ms:.2f}ms")

    def query_timed(self, name: str, elapsed_ms: float):
        self.emit(f"{name}: {elapsed_ms:.2f}ms")

    def duplicates_skipped(self, backend: str, skipped: int):
        self.emit(f"⚠️  {backend}: Some likes were skipped due to duplicates ({skipped})")

    def cleanup_verified(self):
        self._detail("✅ 所有后端已清空")

    def aggregation_started(self, scale: int):
        self.emit(f"\n📊 聚合查询（规模 {scale}）")

    def artifact_written(self, path: str):
        self.emit(f"💾 结果已写入 {path}")

    def aborted(self, error: Exception):
        self.emit(f"❌ 基准运行中止: {error}")

    def finished(self):
        self.emit("🎉 基准测试完成")
