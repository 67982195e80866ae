"""
测试配置与共享夹具

关系型适配器运行在 SQLite 内存库上，文档型适配器运行在 mongomock 上。

Usage:
    pytest tests/                    # 全部测试
    pytest tests/ --quick            # 跳过慢测试（30000 规模）
"""
import io
import uuid
from datetime import datetime, timedelta

import mongomock
import pytest

from dbbench.adapters import (
    FlatDocumentAdapter, IndexedDocumentAdapter, JoinDocumentAdapter,
    MongoStore, RelationalAdapter,
)
from dbbench.data_models import (
    Dataset, LikeRecord, PostRecord, UserRecord, Variant,
)
from dbbench.generation import DatasetGenerator
from dbbench.reporting import Reporter


def pytest_addoption(parser):
    """自定义命令行选项"""
    parser.addoption(
        "--quick",
        action="store_true",
        default=False,
        help="Skip slow tests",
    )


def pytest_collection_modifyitems(config, items):
    """--quick 时跳过慢测试"""
    if config.getoption("--quick"):
        skip_slow = pytest.mark.skip(reason="Skipped with --quick")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


# =============================================================================
# 数据集
# =============================================================================

@pytest.fixture
def generator():
    return DatasetGenerator()


@pytest.fixture
def relational_dataset(generator) -> Dataset:
    return generator.generate(100, Variant.RELATIONAL)


@pytest.fixture
def basic_dataset(generator) -> Dataset:
    return generator.generate(100, Variant.BASIC)


def make_dataset(statuses, likes_per_post=1, variant=Variant.RELATIONAL) -> Dataset:
    """手工构造的小数据集，状态和时间可控"""
    users = [
        UserRecord(username=f"user_{i}", role="user", created_at=datetime(2024, 1, 1))
        for i in range(3)
    ]
    base = datetime(2024, 6, 1)
    posts = [
        PostRecord(
            title=f"post {i:02d}",
            body="body",
            status=status,
            created_at=base + timedelta(days=i // 2),
            user_id=users[i % len(users)].id,
        )
        for i, status in enumerate(statuses)
    ]
    likes = [
        LikeRecord(post_id=post.id, user_id=users[j].id)
        for post in posts
        for j in range(min(likes_per_post, len(users)))
    ]
    return Dataset(scale=100, variant=variant, users=users, posts=posts, likes=likes)


@pytest.fixture
def dataset_factory():
    return make_dataset


# =============================================================================
# 后端
# =============================================================================

@pytest.fixture
def relational_adapter():
    adapter = RelationalAdapter("sqlite://")
    adapter.connect()
    yield adapter
    adapter.disconnect()


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def mongo_store(mongo_client):
    store = MongoStore("mongodb://localhost:27017", f"bench_{uuid.uuid4().hex[:8]}", client=mongo_client)
    store.connect()
    yield store
    store.disconnect()


@pytest.fixture
def flat_adapter(mongo_store):
    adapter = FlatDocumentAdapter(mongo_store)
    adapter.configure_indexes()
    return adapter


@pytest.fixture
def join_adapter(mongo_store):
    adapter = JoinDocumentAdapter(mongo_store)
    adapter.configure_indexes()
    return adapter


@pytest.fixture
def indexed_adapter(mongo_store):
    adapter = IndexedDocumentAdapter(mongo_store)
    adapter.configure_indexes()
    return adapter


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def reporter(output):
    return Reporter(stream=output)
