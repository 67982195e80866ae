"""
监控包
操作计时与运行环境快照
"""

from .timing import *
from .environment import *

__all__ = [
    "Stopwatch",
    "measure",
    "environment_snapshot",
]
