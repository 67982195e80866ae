"""
报告包
进度输出、结果聚合、表格渲染与结果工件
"""

from .reporter import *
from .aggregator import *
from .exporter import *

__all__ = [
    "Reporter",
    "PhaseResult",
    "ResultAggregator",
    "ReportFormatter",
    "ResultExporter",
]
