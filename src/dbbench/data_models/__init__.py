"""
数据模型包
基准数据集记录、关系型表结构、文档集合定义与结果记录
"""

from .base import *
from .records import *
from .relational import *
from .document import *
from .results import *

__all__ = [
    # 基础模型
    "BaseModel",
    "Entity",
    "ValueObject",
    "DomainError",
    "SQLAlchemyBase",

    # 数据集记录
    "BENCHMARK_SCALES",
    "Variant",
    "UserRole",
    "PostStatus",
    "UserRecord",
    "PostRecord",
    "LikeRecord",
    "FollowRecord",
    "Dataset",

    # 关系型模型
    "User",
    "Post",
    "Like",
    "Follow",

    # 结果记录
    "OperationKind",
    "AggregationKind",
    "CANONICAL_OPERATIONS",
    "AGGREGATION_QUERIES",
    "OperationResults",
    "AggregationResults",
    "ScaleResults",
    "AggregationReport",
    "BenchmarkReport",
]
