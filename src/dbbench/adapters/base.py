"""
后端适配器接口
所有后端/变体以同一组规范操作暴露，计时由基类统一完成
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, TypeVar

from ..data_models.records import Dataset, PostStatus, Variant
from ..data_models.results import AggregationKind, OperationKind
from ..monitoring.timing import measure


T = TypeVar("T")

# update 把所有 active 帖子改为 trending；delete 删除 archived 帖子及其点赞
UPDATE_FROM_STATUS = PostStatus.ACTIVE.value
UPDATE_TO_STATUS = PostStatus.TRENDING.value
DELETE_STATUS = PostStatus.ARCHIVED.value

# 大批量写入的分块大小
INSERT_CHUNK_SIZE = 1000


def chunked(items: Sequence[T], size: int = INSERT_CHUNK_SIZE) -> Iterable[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BackendAdapter(ABC):
    """后端适配器基类"""

    # 后端名称（报告中的列）
    backend: str = ""
    # 参与的阶段
    variants: FrozenSet[Variant] = frozenset()

    def __init__(self, top_n: int = 10):
        self.top_n = top_n
        # 最近一次写入中因重复键被跳过的点赞数
        self.skipped_likes = 0
        self._operations: Dict[OperationKind, Callable[[Dataset], Any]] = {
            OperationKind.WRITES: self.writes,
            OperationKind.SIMPLE_READ: self.simple_read,
            OperationKind.FILTERED_READ: self.filtered_read,
            OperationKind.PROJECTED_READ: self.projected_read,
            OperationKind.SORTED_READ: self.sorted_read,
            OperationKind.UPDATE: self.update,
            OperationKind.DELETE: self.delete,
        }

    @property
    def name(self) -> str:
        return self.backend

    def participates_in(self, variant: Variant) -> bool:
        return Variant(variant) in self.variants

    @property
    def supports_aggregation(self) -> bool:
        """只有实现了 AggregationQueries 的适配器参与聚合阶段"""
        return isinstance(self, AggregationQueries)

    # 生命周期
    @abstractmethod
    def connect(self):
        """建立连接（重复调用无副作用）"""

    @abstractmethod
    def disconnect(self):
        """关闭连接"""

    @abstractmethod
    def reset_state(self):
        """清空所有实体"""

    @abstractmethod
    def count_entities(self) -> Dict[str, int]:
        """每种实体的当前数量"""

    def configure_indexes(self):
        """按变体配置索引，默认无操作"""

    # 计时执行
    def run_operation(self, operation: OperationKind, dataset: Dataset) -> Any:
        """执行操作并返回查询结果（不计时）"""
        return self._operations[OperationKind(operation)](dataset)

    def execute(self, operation: OperationKind, dataset: Dataset) -> float:
        """执行规范操作并返回毫秒耗时，查询结果被丢弃"""
        _, elapsed_ms = measure(lambda: self.run_operation(operation, dataset))
        return elapsed_ms

    def load(self, dataset: Dataset):
        """不计时地写入数据集（聚合阶段准备数据）"""
        self.writes(dataset)

    # 规范操作
    @abstractmethod
    def writes(self, dataset: Dataset) -> int:
        """写入用户、帖子和点赞，返回跳过的重复点赞数"""

    @abstractmethod
    def simple_read(self, dataset: Dataset) -> List[Any]:
        """全部帖子，带作者与点赞"""

    @abstractmethod
    def filtered_read(self, dataset: Dataset) -> List[Any]:
        """status=active 且至少一个点赞的帖子，展开方式同 simple_read"""

    @abstractmethod
    def projected_read(self, dataset: Dataset) -> List[Any]:
        """同 filtered_read 过滤，只取 title、created_at、作者用户名、点赞数"""

    @abstractmethod
    def sorted_read(self, dataset: Dataset) -> List[Any]:
        """同 projected_read，按 created_at 降序、title 升序"""

    @abstractmethod
    def update(self, dataset: Dataset) -> int:
        """批量更新，返回受影响数量"""

    @abstractmethod
    def delete(self, dataset: Dataset) -> int:
        """批量删除，返回删除的帖子数"""

    def __repr__(self):
        return f"<{self.__class__.__name__}(backend={self.backend})>"


# 聚合查询与方法名的对应
AGGREGATION_METHODS: Dict[AggregationKind, str] = {
    AggregationKind.POSTS_PER_USER: "posts_per_user",
    AggregationKind.AVG_LIKES_PER_POST: "avg_likes_per_post",
    AggregationKind.MOST_ACTIVE_USERS: "most_active_users",
    AggregationKind.MOST_LIKED_POSTS: "most_liked_posts",
    AggregationKind.USER_ENGAGEMENT: "user_engagement",
}


class AggregationQueries(ABC):
    """聚合阶段的五项分析查询，与 BackendAdapter 组合使用"""

    @abstractmethod
    def posts_per_user(self) -> List[Any]:
        """每个用户的帖子数"""

    @abstractmethod
    def avg_likes_per_post(self) -> Optional[float]:
        """全部帖子的平均点赞数，没有帖子时为 None"""

    @abstractmethod
    def most_active_users(self) -> List[Any]:
        """发帖最多的 top_n 个用户"""

    @abstractmethod
    def most_liked_posts(self) -> List[Any]:
        """点赞最多的 top_n 个帖子"""

    @abstractmethod
    def user_engagement(self) -> List[Any]:
        """每个用户的发帖数、收到的点赞数与给出的点赞数"""

    def run_aggregation(self, query: AggregationKind) -> Any:
        return getattr(self, AGGREGATION_METHODS[AggregationKind(query)])()

    def execute_aggregation(self, query: AggregationKind) -> float:
        _, elapsed_ms = measure(lambda: self.run_aggregation(query))
        return elapsed_ms
