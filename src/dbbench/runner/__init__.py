"""
运行器包
"""

from .state import *
from .benchmark import *

__all__ = [
    "RunnerState",
    "StateMachine",
    "PHASE_ORDER",
    "BenchmarkRunner",
]
