"""
数据生成包
"""

from .dataset import *

__all__ = [
    "DatasetGenerator",
    "DEFAULT_LIKE_DENSITY",
]
