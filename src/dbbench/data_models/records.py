"""
基准数据集模型
生成器产出的用户、帖子、点赞、关注记录，两种后端共享同一组标识符
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Tuple

from pydantic import Field

from .base import BaseModel, Entity


# 基准规模（帖子数）
BENCHMARK_SCALES: Tuple[int, ...] = (100, 1000, 30000)


class Variant(str, Enum):
    """数据集形态 / 后端配置变体"""
    BASIC = "basic"
    RELATIONAL = "relational"
    INDEXED = "indexed"


class UserRole(str, Enum):
    """用户角色"""
    USER = "user"
    MODERATOR = "moderator"


class PostStatus(str, Enum):
    """帖子状态"""
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"
    TRENDING = "trending"


# 生成时可选的状态，trending 只由 update 操作产生
GENERATED_STATUSES: Tuple[PostStatus, ...] = (
    PostStatus.ACTIVE,
    PostStatus.DRAFT,
    PostStatus.ARCHIVED,
)


class UserRecord(Entity):
    """用户"""
    username: str
    role: UserRole


class PostRecord(Entity):
    """帖子"""
    title: str
    body: str
    status: PostStatus
    user_id: str


class LikeRecord(BaseModel):
    """点赞 - (post_id, user_id) 复合键"""
    post_id: str
    user_id: str

    @property
    def key(self) -> Tuple[str, str]:
        return (self.post_id, self.user_id)


class FollowRecord(BaseModel):
    """关注关系"""
    following_user_id: str
    followed_user_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Dataset(BaseModel):
    """一次阶段运行所用的完整数据集"""
    scale: int
    variant: Variant
    users: List[UserRecord]
    posts: List[PostRecord]
    likes: List[LikeRecord] = Field(default_factory=list)
    follows: List[FollowRecord] = Field(default_factory=list)
    # 去重之前生成的点赞候选数量
    like_attempts: int = 0

    def like_counts(self) -> Dict[str, int]:
        """每个帖子的点赞数"""
        counts: Dict[str, int] = {post.id: 0 for post in self.posts}
        for like in self.likes:
            counts[like.post_id] += 1
        return counts

    def users_by_id(self) -> Dict[str, UserRecord]:
        return {user.id: user for user in self.users}

    def summary(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "posts": len(self.posts),
            "likes": len(self.likes),
            "follows": len(self.follows),
        }
