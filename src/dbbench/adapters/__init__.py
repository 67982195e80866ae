"""
后端适配器包
同一组规范操作在关系型与文档型后端上的实现
"""

from .errors import *
from .base import *
from .relational import *
from .document import *

__all__ = [
    # 错误分类
    "ErrorKind",
    "BenchmarkError",
    "DuplicateKeyError",
    "ConnectionFailureError",
    "CleanupFailureError",
    "UnclassifiedBackendError",
    "StateTransitionError",
    "classify_error",
    "as_benchmark_error",

    # 适配器
    "BackendAdapter",
    "AggregationQueries",
    "RelationalAdapter",
    "MongoStore",
    "DocumentAdapter",
    "LookupDocumentAdapter",
    "FlatDocumentAdapter",
    "JoinDocumentAdapter",
    "IndexedDocumentAdapter",
]
