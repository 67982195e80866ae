"""
文档型后端适配器
basic 变体按集合扁平访问；relational 变体用 $lookup 管道复现关系型语义；
indexed 变体与 relational 语义相同，但预先声明索引并在读取时显式指定索引
"""
from collections import defaultdict
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo import errors as mongo_errors
from pymongo.database import Database

from ..data_models.document import (
    COLLECTIONS, LIKES, POST_STATUS_INDEX, POSTS, USERS,
    index_plan, like_document, post_document, user_document,
)
from ..data_models.records import Dataset, PostStatus, Variant
from .base import (
    DELETE_STATUS, UPDATE_FROM_STATUS, UPDATE_TO_STATUS, AggregationQueries, BackendAdapter,
)
from .errors import ConnectionFailureError, UnclassifiedBackendError, is_duplicate_bulk_error


ACTIVE = PostStatus.ACTIVE.value


class MongoStore:
    """MongoDB 连接，三个文档型适配器共享同一连接"""

    def __init__(self, url: str, db_name: str, client: Optional[MongoClient] = None,
                 connect_timeout_ms: int = 5000):
        self.url = url
        self.db_name = db_name
        self.connect_timeout_ms = connect_timeout_ms
        self.client = client
        self._owns_client = client is None
        self.db: Optional[Database] = None

    @property
    def connected(self) -> bool:
        return self.db is not None

    def connect(self):
        if self.connected:
            return
        try:
            if self.client is None:
                self.client = MongoClient(self.url, serverSelectionTimeoutMS=self.connect_timeout_ms)
            self.client.admin.command("ping")
        except mongo_errors.PyMongoError as e:
            raise ConnectionFailureError(f"Cannot connect to document backend: {e}", cause=e)
        self.db = self.client[self.db_name]

    def disconnect(self):
        if self.client is not None and self._owns_client:
            self.client.close()
            self.client = None
        self.db = None

    def collection(self, name: str):
        if self.db is None:
            raise ConnectionFailureError("Document backend is not connected")
        return self.db[name]


class DocumentAdapter(BackendAdapter):
    """文档型适配器基类"""

    backend = "mongo"
    # 是否声明性能索引
    include_performance_indexes = False

    def __init__(self, store: MongoStore, top_n: int = 10):
        super().__init__(top_n=top_n)
        self.store = store

    @property
    def variant(self) -> Variant:
        return next(iter(self.variants))

    @property
    def users(self):
        return self.store.collection(USERS)

    @property
    def posts(self):
        return self.store.collection(POSTS)

    @property
    def likes(self):
        return self.store.collection(LIKES)

    # 生命周期
    def connect(self):
        self.store.connect()

    def disconnect(self):
        self.store.disconnect()

    def reset_state(self):
        """清空所有集合并删除二级索引（_id 索引保留）"""
        for name in COLLECTIONS:
            collection = self.store.collection(name)
            collection.delete_many({})
            collection.drop_indexes()

    def count_entities(self) -> Dict[str, int]:
        return {name: self.store.collection(name).count_documents({}) for name in COLLECTIONS}

    def configure_indexes(self):
        for name, specs in index_plan(self.include_performance_indexes).items():
            collection = self.store.collection(name)
            for spec in specs:
                collection.create_index(spec["keys"], name=spec["name"], unique=spec.get("unique", False))

    # 写入
    def _post_documents(self, dataset: Dataset) -> List[Dict[str, Any]]:
        return [post_document(post) for post in dataset.posts]

    def writes(self, dataset: Dataset) -> int:
        if dataset.users:
            self.users.insert_many([user_document(user) for user in dataset.users])
        if dataset.posts:
            self.posts.insert_many(self._post_documents(dataset))
        self.skipped_likes = self._insert_likes([like_document(like) for like in dataset.likes])
        return self.skipped_likes

    def _insert_likes(self, docs: List[Dict[str, Any]]) -> int:
        """无序批量插入，只跳过重复键的文档，返回跳过数量"""
        if not docs:
            return 0
        try:
            self.likes.insert_many(docs, ordered=False)
        except mongo_errors.BulkWriteError as e:
            if not is_duplicate_bulk_error(e):
                raise UnclassifiedBackendError(f"Like insert failed: {e.details}", cause=e)
            return len(e.details.get("writeErrors", []))
        return 0

    # 变更（各变体相同）
    def update(self, dataset: Dataset) -> int:
        result = self.posts.update_many(
            {"status": UPDATE_FROM_STATUS},
            {"$set": {"status": UPDATE_TO_STATUS}},
        )
        return result.modified_count

    def delete(self, dataset: Dataset) -> int:
        archived_ids = [doc["_id"] for doc in self.posts.find({"status": DELETE_STATUS}, {"_id": 1})]
        self.likes.delete_many({"post_id": {"$in": archived_ids}})
        return self.posts.delete_many({"status": DELETE_STATUS}).deleted_count


class FlatDocumentAdapter(DocumentAdapter):
    """basic 变体：作者信息与点赞数内嵌在帖子中，按集合分别读取，无跨集合关联"""

    variants = frozenset({Variant.BASIC})

    def _post_documents(self, dataset: Dataset) -> List[Dict[str, Any]]:
        authors = dataset.users_by_id()
        like_counts = dataset.like_counts()
        return [
            post_document(post, author=authors[post.user_id], like_count=like_counts[post.id])
            for post in dataset.posts
        ]

    def _attach_likes(self, posts: List[Dict[str, Any]], like_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        likes_by_post: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for like in self.likes.find(like_filter):
            likes_by_post[like["post_id"]].append(like)
        for post in posts:
            post["likes"] = likes_by_post.get(post["_id"], [])
        return posts

    def _liked_active_filter(self) -> Dict[str, Any]:
        return {"status": ACTIVE, "like_count": {"$gt": 0}}

    def _projection(self) -> Dict[str, int]:
        return {"title": 1, "created_at": 1, "user.username": 1, "like_count": 1}

    def simple_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        return self._attach_likes(list(self.posts.find({})), {})

    def filtered_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        posts = list(self.posts.find(self._liked_active_filter()))
        ids = [post["_id"] for post in posts]
        return self._attach_likes(posts, {"post_id": {"$in": ids}})

    def projected_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        return list(self.posts.find(self._liked_active_filter(), self._projection()))

    def sorted_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        cursor = self.posts.find(self._liked_active_filter(), self._projection()).sort(
            [("created_at", DESCENDING), ("title", ASCENDING)]
        )
        return list(cursor)


class LookupDocumentAdapter(DocumentAdapter):
    """规范化集合，用 $lookup 管道复现关系型适配器的读取语义"""

    # 过滤/投影/排序读取显式指定的索引
    read_hint: Optional[str] = None

    def _aggregate(self, collection, pipeline: List[Dict[str, Any]], hinted: bool = False) -> List[Dict[str, Any]]:
        options = {"hint": self.read_hint} if hinted and self.read_hint else {}
        return list(collection.aggregate(pipeline, **options))

    def _expand_stages(self) -> List[Dict[str, Any]]:
        return [
            {"$lookup": {"from": USERS, "localField": "user_id", "foreignField": "_id", "as": "user"}},
            {"$lookup": {"from": LIKES, "localField": "_id", "foreignField": "post_id", "as": "likes"}},
            {"$unwind": "$user"},
        ]

    def _filtered_pipeline(self) -> List[Dict[str, Any]]:
        return (
            [{"$match": {"status": ACTIVE}}]
            + self._expand_stages()
            # 至少有一个点赞
            + [{"$match": {"likes": {"$ne": []}}}]
        )

    def _projected_pipeline(self) -> List[Dict[str, Any]]:
        return self._filtered_pipeline() + [
            {"$project": {
                "title": 1,
                "created_at": 1,
                "user.username": 1,
                "like_count": {"$size": "$likes"},
            }},
        ]

    def simple_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        return self._aggregate(self.posts, self._expand_stages())

    def filtered_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        return self._aggregate(self.posts, self._filtered_pipeline(), hinted=True)

    def projected_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        return self._aggregate(self.posts, self._projected_pipeline(), hinted=True)

    def sorted_read(self, dataset: Dataset) -> List[Dict[str, Any]]:
        pipeline = self._projected_pipeline() + [{"$sort": {"created_at": -1, "title": 1}}]
        return self._aggregate(self.posts, pipeline, hinted=True)


class JoinDocumentAdapter(LookupDocumentAdapter, AggregationQueries):
    """relational 变体：$lookup 读取，并参与聚合阶段"""

    variants = frozenset({Variant.RELATIONAL})

    # 聚合查询
    def posts_per_user(self) -> List[Dict[str, Any]]:
        return self._aggregate(self.posts, [
            {"$group": {"_id": "$user_id", "post_count": {"$sum": 1}}},
        ])

    def avg_likes_per_post(self) -> Optional[float]:
        result = self._aggregate(self.posts, [
            {"$lookup": {"from": LIKES, "localField": "_id", "foreignField": "post_id", "as": "likes"}},
            {"$project": {"like_count": {"$size": "$likes"}}},
            {"$group": {"_id": None, "avg_likes": {"$avg": "$like_count"}}},
        ])
        return result[0]["avg_likes"] if result else None

    def most_active_users(self) -> List[Dict[str, Any]]:
        return self._aggregate(self.posts, [
            {"$group": {"_id": "$user_id", "post_count": {"$sum": 1}}},
            {"$sort": {"post_count": -1, "_id": 1}},
            {"$limit": self.top_n},
            {"$lookup": {"from": USERS, "localField": "_id", "foreignField": "_id", "as": "user"}},
            {"$unwind": "$user"},
            {"$project": {"_id": 0, "username": "$user.username", "post_count": 1}},
        ])

    def most_liked_posts(self) -> List[Dict[str, Any]]:
        return self._aggregate(self.likes, [
            {"$group": {"_id": "$post_id", "like_count": {"$sum": 1}}},
            {"$sort": {"like_count": -1, "_id": 1}},
            {"$limit": self.top_n},
            {"$lookup": {"from": POSTS, "localField": "_id", "foreignField": "_id", "as": "post"}},
            {"$unwind": "$post"},
            {"$project": {"title": "$post.title", "like_count": 1}},
        ])

    def user_engagement(self) -> List[Dict[str, Any]]:
        return self._aggregate(self.users, [
            {"$lookup": {"from": POSTS, "localField": "_id", "foreignField": "user_id", "as": "posts"}},
            {"$lookup": {"from": LIKES, "localField": "_id", "foreignField": "user_id", "as": "likes_given"}},
            {"$lookup": {"from": LIKES, "localField": "posts._id", "foreignField": "post_id", "as": "likes_received"}},
            {"$project": {
                "_id": 0,
                "username": 1,
                "posts_written": {"$size": "$posts"},
                "likes_received": {"$size": "$likes_received"},
                "likes_given": {"$size": "$likes_given"},
            }},
        ])


class IndexedDocumentAdapter(LookupDocumentAdapter):
    """indexed 变体：与 relational 读取语义相同，预声明索引并显式指定索引，不参与聚合阶段"""

    variants = frozenset({Variant.INDEXED})
    include_performance_indexes = True
    read_hint = POST_STATUS_INDEX
