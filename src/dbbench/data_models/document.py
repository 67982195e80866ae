"""
文档型数据模型
集合名、记录到文档的转换以及各变体的索引定义
"""
from typing import Any, Dict, List, Optional
from pymongo import ASCENDING, DESCENDING

from .records import LikeRecord, PostRecord, UserRecord


USERS = "users"
POSTS = "posts"
LIKES = "likes"
FOLLOWS = "follows"

COLLECTIONS = (LIKES, FOLLOWS, POSTS, USERS)


def user_document(user: UserRecord) -> Dict[str, Any]:
    """用户文档"""
    return {
        "_id": user.id,
        "username": user.username,
        "role": user.role,
        "created_at": user.created_at,
    }


def post_document(post: PostRecord, author: Optional[UserRecord] = None,
                  like_count: Optional[int] = None) -> Dict[str, Any]:
    """帖子文档 - 传入作者时内嵌作者信息与点赞数（扁平形态）"""
    doc = {
        "_id": post.id,
        "title": post.title,
        "body": post.body,
        "status": post.status,
        "created_at": post.created_at,
        "user_id": post.user_id,
    }
    if author is not None:
        # 冗余存储，避免跨集合关联查询
        doc["user"] = {"_id": author.id, "username": author.username, "role": author.role}
    if like_count is not None:
        doc["like_count"] = like_count
    return doc


def like_document(like: LikeRecord) -> Dict[str, Any]:
    """点赞文档"""
    return {"post_id": like.post_id, "user_id": like.user_id}


# 所有变体都需要的约束索引
REQUIRED_INDEXES = {
    LIKES: [
        {"keys": [("post_id", ASCENDING), ("user_id", ASCENDING)],
         "name": "uq_like_post_user", "unique": True},
    ],
    USERS: [
        {"keys": [("username", ASCENDING)], "name": "uq_username", "unique": True},
    ],
}

# 排序读取所用索引名，索引变体通过 hint 显式指定
POST_STATUS_INDEX = "idx_post_status_created_title"

# 索引变体预先声明的性能索引
PERFORMANCE_INDEXES = {
    POSTS: [
        {"keys": [("status", ASCENDING), ("created_at", DESCENDING), ("title", ASCENDING)],
         "name": POST_STATUS_INDEX},
        {"keys": [("user_id", ASCENDING)], "name": "idx_post_user"},
    ],
    LIKES: [
        {"keys": [("user_id", ASCENDING)], "name": "idx_like_user"},
    ],
}


def index_plan(include_performance: bool) -> Dict[str, List[Dict[str, Any]]]:
    """合并约束索引与（可选的）性能索引"""
    plan: Dict[str, List[Dict[str, Any]]] = {name: list(specs) for name, specs in REQUIRED_INDEXES.items()}
    if include_performance:
        for name, specs in PERFORMANCE_INDEXES.items():
            plan.setdefault(name, []).extend(specs)
    return plan
