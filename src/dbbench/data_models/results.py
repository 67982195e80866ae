"""
基准结果模型
每种结果形态一个带标签的记录类型，构造时校验耗时字段
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Mapping, Optional, Tuple

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base import BaseModel, ValueObject


class OperationKind(str, Enum):
    """规范操作"""
    WRITES = "writes"
    SIMPLE_READ = "simpleRead"
    FILTERED_READ = "filteredRead"
    PROJECTED_READ = "projectedRead"
    SORTED_READ = "sortedRead"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def label(self) -> str:
        return OPERATION_LABELS[self.value]


# 阶段内固定执行顺序
CANONICAL_OPERATIONS: Tuple[OperationKind, ...] = tuple(OperationKind)

OPERATION_LABELS = {
    "writes": "Writes",
    "simpleRead": "Simple Read",
    "filteredRead": "Filtered Read",
    "projectedRead": "Projected Read",
    "sortedRead": "Sorted Read",
    "update": "Update",
    "delete": "Delete",
}


class AggregationKind(str, Enum):
    """分析型聚合查询"""
    POSTS_PER_USER = "postsPerUser"
    AVG_LIKES_PER_POST = "avgLikesPerPost"
    MOST_ACTIVE_USERS = "mostActiveUsers"
    MOST_LIKED_POSTS = "mostLikedPosts"
    USER_ENGAGEMENT = "userEngagement"


AGGREGATION_QUERIES: Tuple[AggregationKind, ...] = tuple(AggregationKind)


# 毫秒耗时：非负、有限
Duration = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class TimingRecord(ValueObject):
    """耗时记录基类 - 字段名序列化为驼峰形式"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_timings(cls, timings: Mapping[str, float]):
        """由 {驼峰操作名: 毫秒} 构造，缺失字段会被拒绝"""
        return cls.model_validate({str(getattr(k, "value", k)): v for k, v in timings.items()})

    def as_row(self) -> Dict[str, float]:
        return self.model_dump(by_alias=True)


class OperationResults(TimingRecord):
    """一个后端变体在一个阶段内的七项操作耗时"""
    writes: Duration
    simple_read: Duration
    filtered_read: Duration
    projected_read: Duration
    sorted_read: Duration
    update: Duration
    delete: Duration


class AggregationResults(TimingRecord):
    """一个后端的五项聚合查询耗时"""
    posts_per_user: Duration
    avg_likes_per_post: Duration
    most_active_users: Duration
    most_liked_posts: Duration
    user_engagement: Duration


class ScaleResults(BaseModel):
    """单个规模的结果：阶段 -> 后端 -> OperationResults"""
    scale: int
    phases: Dict[str, Dict[str, OperationResults]] = Field(default_factory=dict)

    def columns(self) -> Dict[str, OperationResults]:
        """按 "阶段/后端" 展平，便于逐操作对比"""
        return {
            f"{phase}/{backend}": results
            for phase, backends in self.phases.items()
            for backend, results in backends.items()
        }


class AggregationReport(BaseModel):
    """聚合阶段结果：后端 -> AggregationResults"""
    scale: int
    backends: Dict[str, AggregationResults] = Field(default_factory=dict)


class BenchmarkReport(BaseModel):
    """完整运行结果，即持久化工件的内容"""
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    environment: Dict[str, Any] = Field(default_factory=dict)
    scales: Dict[int, ScaleResults] = Field(default_factory=dict)
    aggregation: Optional[AggregationReport] = None
