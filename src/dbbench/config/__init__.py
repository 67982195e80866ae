"""
配置包
"""

from .settings import *

__all__ = [
    "DatabaseSettings",
    "BenchmarkSettings",
    "Settings",
    "settings",
]
