"""
操作计时
单调高精度计时器，返回毫秒
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Tuple


@dataclass
class Stopwatch:
    """上下文计时器"""
    start: float = 0.0
    end: float = 0.0
    elapsed_ms: float = field(default=0.0, init=False)

    def __enter__(self) -> "Stopwatch":
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.end = time.perf_counter()
        self.elapsed_ms = (self.end - self.start) * 1000
        return False


def measure(fn: Callable[[], Any]) -> Tuple[Any, float]:
    """执行 fn 并返回 (结果, 毫秒)"""
    with Stopwatch() as watch:
        result = fn()
    return result, watch.elapsed_ms
