"""
关系型后端适配器
通过 SQLAlchemy ORM 以显式实体关系（关联/连接）执行规范操作，参与 basic 与 relational 阶段
"""
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, delete as sa_delete, desc, func, insert, select, text
from sqlalchemy import update as sa_update
from sqlalchemy import exc as sa_errors
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from ..data_models.base import SQLAlchemyBase
from ..data_models.records import Dataset, PostStatus, Variant
from ..data_models.relational import RELATIONAL_TABLES, Like, Post, User
from .base import (
    DELETE_STATUS, UPDATE_FROM_STATUS, UPDATE_TO_STATUS,
    AggregationQueries, BackendAdapter, chunked,
)
from .errors import (
    ConnectionFailureError, ErrorKind, UnclassifiedBackendError, classify_error,
)


# 支持 ON CONFLICT DO NOTHING 的方言
CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (url.rstrip("/") == "sqlite:" or ":memory:" in url)


class RelationalAdapter(BackendAdapter, AggregationQueries):
    """关系型后端（PostgreSQL，测试中可用 SQLite）"""

    backend = "postgres"
    variants = frozenset({Variant.BASIC, Variant.RELATIONAL})

    def __init__(self, url: str, top_n: int = 10, engine: Optional[Engine] = None,
                 connect_timeout_ms: int = 5000):
        super().__init__(top_n=top_n)
        self.url = url
        self.connect_timeout_ms = connect_timeout_ms
        self.engine: Optional[Engine] = engine
        self.session_factory: Optional[sessionmaker] = None

    # 生命周期
    def connect(self):
        if self.session_factory is not None:
            return
        try:
            if self.engine is None:
                self.engine = self._create_engine()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            SQLAlchemyBase.metadata.create_all(self.engine)
        except sa_errors.SQLAlchemyError as e:
            self.engine = None
            raise ConnectionFailureError(f"Cannot connect to relational backend: {e}", cause=e)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def disconnect(self):
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.session_factory = None

    def _create_engine(self) -> Engine:
        if _is_sqlite_memory(self.url):
            # 内存库需要单连接共享
            return create_engine(
                self.url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        connect_args = {}
        if self.url.startswith("postgresql"):
            connect_args["connect_timeout"] = max(1, self.connect_timeout_ms // 1000)
        return create_engine(self.url, pool_pre_ping=True, connect_args=connect_args)

    def _session(self) -> Session:
        if self.session_factory is None:
            raise ConnectionFailureError("Relational backend is not connected")
        return self.session_factory()

    def reset_state(self):
        with self._session() as session, session.begin():
            for model in RELATIONAL_TABLES:
                session.execute(sa_delete(model))

    def count_entities(self) -> Dict[str, int]:
        with self._session() as session:
            return {
                model.__tablename__: session.scalar(select(func.count()).select_from(model))
                for model in RELATIONAL_TABLES
            }

    # 写入
    def writes(self, dataset: Dataset) -> int:
        users = [
            {"id": u.id, "username": u.username, "role": u.role, "created_at": u.created_at}
            for u in dataset.users
        ]
        posts = [
            {"id": p.id, "title": p.title, "body": p.body, "status": p.status,
             "created_at": p.created_at, "user_id": p.user_id}
            for p in dataset.posts
        ]
        likes = [{"post_id": l.post_id, "user_id": l.user_id} for l in dataset.likes]

        with self._session() as session, session.begin():
            if users:
                session.execute(insert(User), users)
            if posts:
                session.execute(insert(Post), posts)
            self.skipped_likes = self._insert_ignoring_duplicates(session, likes)
        return self.skipped_likes

    def _insert_ignoring_duplicates(self, session: Session, rows: Sequence[Dict[str, Any]]) -> int:
        """插入点赞，违反唯一约束的行被跳过，返回跳过数量"""
        if not rows:
            return 0

        conflict_insert = CONFLICT_INSERTS.get(session.get_bind().dialect.name)
        inserted = 0
        if conflict_insert is not None:
            for chunk in chunked(rows):
                result = session.execute(
                    conflict_insert(Like.__table__).values(list(chunk)).on_conflict_do_nothing()
                )
                inserted += max(result.rowcount, 0)
            return len(rows) - inserted

        # 其他方言：逐行写入，只容忍重复键
        for row in rows:
            try:
                with session.begin_nested():
                    session.execute(insert(Like.__table__).values(**row))
                inserted += 1
            except sa_errors.IntegrityError as e:
                if classify_error(e) != ErrorKind.DUPLICATE_KEY:
                    raise UnclassifiedBackendError(f"Like insert failed: {e}", cause=e)
        return len(rows) - inserted

    # 读取
    def _expanded_posts(self):
        return select(Post).options(selectinload(Post.author), selectinload(Post.likes))

    def _projected_posts(self):
        like_count = func.count(Like.user_id).label("like_count")
        return (
            select(Post.title, Post.created_at, User.username, like_count)
            .join(Post.author)
            # 内连接：只保留至少有一个点赞的帖子
            .join(Post.likes)
            .where(Post.status == PostStatus.ACTIVE.value)
            .group_by(Post.id, Post.title, Post.created_at, User.username)
        )

    def simple_read(self, dataset: Dataset) -> List[Post]:
        with self._session() as session:
            return list(session.scalars(self._expanded_posts()).all())

    def filtered_read(self, dataset: Dataset) -> List[Post]:
        stmt = self._expanded_posts().where(
            Post.status == PostStatus.ACTIVE.value,
            Post.likes.any(),
        )
        with self._session() as session:
            return list(session.scalars(stmt).all())

    def projected_read(self, dataset: Dataset) -> List[Any]:
        with self._session() as session:
            return list(session.execute(self._projected_posts()).all())

    def sorted_read(self, dataset: Dataset) -> List[Any]:
        stmt = self._projected_posts().order_by(Post.created_at.desc(), Post.title.asc())
        with self._session() as session:
            return list(session.execute(stmt).all())

    # 变更
    def update(self, dataset: Dataset) -> int:
        stmt = (
            sa_update(Post)
            .where(Post.status == UPDATE_FROM_STATUS)
            .values(status=UPDATE_TO_STATUS)
            .execution_options(synchronize_session=False)
        )
        with self._session() as session, session.begin():
            return session.execute(stmt).rowcount

    def delete(self, dataset: Dataset) -> int:
        archived = select(Post.id).where(Post.status == DELETE_STATUS)
        with self._session() as session, session.begin():
            session.execute(
                sa_delete(Like)
                .where(Like.post_id.in_(archived))
                .execution_options(synchronize_session=False)
            )
            return session.execute(
                sa_delete(Post)
                .where(Post.status == DELETE_STATUS)
                .execution_options(synchronize_session=False)
            ).rowcount

    # 聚合查询
    def posts_per_user(self) -> List[Any]:
        stmt = (
            select(Post.user_id, func.count(Post.id).label("post_count"))
            .group_by(Post.user_id)
        )
        with self._session() as session:
            return list(session.execute(stmt).all())

    def avg_likes_per_post(self) -> Optional[float]:
        per_post = (
            select(Post.id, func.count(Like.user_id).label("like_count"))
            .outerjoin(Post.likes)
            .group_by(Post.id)
            .subquery()
        )
        with self._session() as session:
            value = session.scalar(select(func.avg(per_post.c.like_count)))
        return float(value) if value is not None else None

    def most_active_users(self) -> List[Any]:
        post_count = func.count(Post.id).label("post_count")
        stmt = (
            select(User.username, post_count)
            .join(User.posts)
            .group_by(User.id, User.username)
            .order_by(desc("post_count"), User.id)
            .limit(self.top_n)
        )
        with self._session() as session:
            return list(session.execute(stmt).all())

    def most_liked_posts(self) -> List[Any]:
        like_count = func.count(Like.user_id).label("like_count")
        stmt = (
            select(Post.id, Post.title, like_count)
            .join(Post.likes)
            .group_by(Post.id, Post.title)
            .order_by(desc("like_count"), Post.id)
            .limit(self.top_n)
        )
        with self._session() as session:
            return list(session.execute(stmt).all())

    def user_engagement(self) -> List[Any]:
        posts_written = (
            select(Post.user_id.label("user_id"), func.count(Post.id).label("posts_written"))
            .group_by(Post.user_id)
            .subquery()
        )
        likes_received = (
            select(Post.user_id.label("user_id"), func.count(Like.user_id).label("likes_received"))
            .join(Like, Like.post_id == Post.id)
            .group_by(Post.user_id)
            .subquery()
        )
        likes_given = (
            select(Like.user_id.label("user_id"), func.count(Like.post_id).label("likes_given"))
            .group_by(Like.user_id)
            .subquery()
        )
        stmt = (
            select(
                User.username,
                func.coalesce(posts_written.c.posts_written, 0).label("posts_written"),
                func.coalesce(likes_received.c.likes_received, 0).label("likes_received"),
                func.coalesce(likes_given.c.likes_given, 0).label("likes_given"),
            )
            .select_from(User)
            .outerjoin(posts_written, posts_written.c.user_id == User.id)
            .outerjoin(likes_received, likes_received.c.user_id == User.id)
            .outerjoin(likes_given, likes_given.c.user_id == User.id)
        )
        with self._session() as session:
            return list(session.execute(stmt).all())
