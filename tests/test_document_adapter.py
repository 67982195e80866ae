"""
文档型适配器测试（mongomock）
"""
import math

import pytest
from pymongo import errors as mongo_errors

from dbbench.adapters import (
    AggregationQueries, ConnectionFailureError, FlatDocumentAdapter, JoinDocumentAdapter, MongoStore,
)
from dbbench.data_models import CANONICAL_OPERATIONS, LikeRecord, OperationKind, Variant
from dbbench.data_models.document import POST_STATUS_INDEX


@pytest.fixture(params=["flat", "join", "indexed"])
def document_adapter(request):
    return request.getfixturevalue(f"{request.param}_adapter")


def _post_ids(docs):
    return {doc["_id"] for doc in docs}


def test_each_variant_has_one_phase(flat_adapter, join_adapter, indexed_adapter):
    assert flat_adapter.variants == {Variant.BASIC}
    assert join_adapter.variants == {Variant.RELATIONAL}
    assert indexed_adapter.variants == {Variant.INDEXED}
    assert join_adapter.supports_aggregation
    assert not flat_adapter.supports_aggregation
    assert not indexed_adapter.supports_aggregation


def test_writes_persist_dataset(document_adapter, relational_dataset):
    assert document_adapter.writes(relational_dataset) == 0
    counts = document_adapter.count_entities()
    assert counts["users"] == 10
    assert counts["posts"] == 100
    assert counts["likes"] == len(relational_dataset.likes)
    assert counts["follows"] == 0


def test_flat_posts_embed_author_and_like_count(flat_adapter, relational_dataset):
    flat_adapter.writes(relational_dataset)
    expected = relational_dataset.like_counts()
    doc = flat_adapter.posts.find_one({})
    assert doc["user"]["username"]
    assert doc["like_count"] == expected[doc["_id"]]


def test_duplicate_likes_are_skipped(document_adapter, dataset_factory):
    dataset = dataset_factory(["active", "draft"])
    dataset.likes = dataset.likes + [LikeRecord(post_id=dataset.posts[0].id, user_id=dataset.users[0].id)]

    assert document_adapter.writes(dataset) == 1
    assert document_adapter.count_entities()["likes"] == 2


def test_reset_state_empties_collections_and_drops_indexes(indexed_adapter, relational_dataset):
    indexed_adapter.writes(relational_dataset)
    assert POST_STATUS_INDEX in indexed_adapter.posts.index_information()

    indexed_adapter.reset_state()

    assert set(indexed_adapter.count_entities().values()) == {0}
    assert POST_STATUS_INDEX not in indexed_adapter.posts.index_information()


def test_only_indexed_variant_declares_performance_indexes(join_adapter, relational_dataset):
    join_adapter.writes(relational_dataset)
    assert POST_STATUS_INDEX not in join_adapter.posts.index_information()
    assert "uq_like_post_user" in join_adapter.likes.index_information()


def test_simple_read_expands_author_and_likes(document_adapter, relational_dataset):
    document_adapter.writes(relational_dataset)
    posts = document_adapter.simple_read(relational_dataset)
    expected = relational_dataset.like_counts()

    assert len(posts) == 100
    for post in posts:
        assert post["user"]["username"]
        assert len(post["likes"]) == expected[post["_id"]]


def test_filtered_read_is_subset_of_simple_read(document_adapter, relational_dataset):
    document_adapter.writes(relational_dataset)
    simple = {doc["_id"]: doc for doc in document_adapter.simple_read(relational_dataset)}
    filtered = document_adapter.filtered_read(relational_dataset)

    expected = {pid for pid, doc in simple.items() if doc["status"] == "active" and doc["likes"]}
    assert _post_ids(filtered) == expected
    assert all(doc["likes"] for doc in filtered)


def test_projected_read_narrows_output(join_adapter, dataset_factory):
    dataset = dataset_factory(["active", "active", "draft"], likes_per_post=2)
    join_adapter.writes(dataset)
    docs = join_adapter.projected_read(dataset)

    assert len(docs) == 2
    for doc in docs:
        assert set(doc) == {"_id", "title", "created_at", "user", "like_count"}
        assert set(doc["user"]) == {"username"}
        assert doc["like_count"] == 2


def test_flat_projected_read_narrows_output(flat_adapter, dataset_factory):
    dataset = dataset_factory(["active", "active", "draft"], likes_per_post=2)
    flat_adapter.writes(dataset)
    docs = flat_adapter.projected_read(dataset)

    assert len(docs) == 2
    for doc in docs:
        assert set(doc) == {"_id", "title", "created_at", "user", "like_count"}
        assert doc["like_count"] == 2


def test_sorted_read_order(document_adapter, dataset_factory):
    dataset = dataset_factory(["active"] * 6)
    document_adapter.writes(dataset)
    docs = document_adapter.sorted_read(dataset)

    assert len(docs) == 6
    for prev, cur in zip(docs, docs[1:]):
        assert prev["created_at"] >= cur["created_at"]
        if prev["created_at"] == cur["created_at"]:
            assert prev["title"] <= cur["title"]


def test_update_with_no_active_posts(document_adapter, dataset_factory):
    dataset = dataset_factory(["draft", "archived"])
    document_adapter.writes(dataset)

    elapsed = document_adapter.execute(OperationKind.UPDATE, dataset)

    assert math.isfinite(elapsed) and elapsed >= 0
    assert document_adapter.posts.count_documents({"status": "active"}) == 0


def test_update_moves_active_to_trending(document_adapter, relational_dataset):
    document_adapter.writes(relational_dataset)
    active = sum(1 for post in relational_dataset.posts if post.status == "active")

    assert document_adapter.update(relational_dataset) == active
    assert document_adapter.posts.count_documents({"status": "trending"}) == active


def test_delete_removes_archived_posts_and_their_likes(document_adapter, dataset_factory):
    dataset = dataset_factory(["archived", "active", "archived"], likes_per_post=2)
    document_adapter.writes(dataset)

    assert document_adapter.delete(dataset) == 2
    counts = document_adapter.count_entities()
    assert counts["posts"] == 1
    assert counts["likes"] == 2


def test_execute_every_operation(document_adapter, relational_dataset):
    timings = {op: document_adapter.execute(op, relational_dataset) for op in CANONICAL_OPERATIONS}
    assert timings[OperationKind.WRITES] > 0
    assert all(math.isfinite(ms) and ms >= 0 for ms in timings.values())


def test_join_aggregation_queries(join_adapter, dataset_factory):
    dataset = dataset_factory(["active", "draft", "archived", "active"], likes_per_post=2)
    join_adapter.writes(dataset)

    per_user = {doc["_id"]: doc["post_count"] for doc in join_adapter.posts_per_user()}
    assert sum(per_user.values()) == 4
    assert join_adapter.avg_likes_per_post() == pytest.approx(2.0)

    most_active = join_adapter.most_active_users()
    assert most_active[0]["username"] == "user_0"
    assert most_active[0]["post_count"] == 2

    most_liked = join_adapter.most_liked_posts()
    assert len(most_liked) == 4
    assert all(doc["like_count"] == 2 for doc in most_liked)

    engagement = {doc["username"]: doc for doc in join_adapter.user_engagement()}
    assert engagement["user_0"]["posts_written"] == 2
    assert engagement["user_0"]["likes_given"] == 4


def test_only_join_variant_implements_aggregation(flat_adapter, join_adapter, indexed_adapter):
    assert isinstance(join_adapter, AggregationQueries)
    assert not isinstance(flat_adapter, AggregationQueries)
    assert not isinstance(indexed_adapter, AggregationQueries)
    assert not hasattr(flat_adapter, "posts_per_user")
    assert not hasattr(indexed_adapter, "run_aggregation")


def test_projected_rows_share_shape_across_document_variants(flat_adapter, join_adapter, dataset_factory):
    dataset = dataset_factory(["active", "draft"], likes_per_post=2)
    flat_adapter.writes(dataset)
    flat_docs = flat_adapter.projected_read(dataset)
    flat_adapter.reset_state()
    join_adapter.configure_indexes()
    join_adapter.writes(dataset)
    join_docs = join_adapter.projected_read(dataset)

    assert [set(doc) for doc in flat_docs] == [set(doc) for doc in join_docs]
    assert [doc["like_count"] for doc in flat_docs] == [doc["like_count"] for doc in join_docs]


class _UnreachableAdmin:
    def command(self, name):
        raise mongo_errors.ServerSelectionTimeoutError("no servers")


class _UnreachableClient:
    admin = _UnreachableAdmin()


def test_store_connect_failure_is_classified():
    store = MongoStore("mongodb://localhost:1", "bench", client=_UnreachableClient())
    with pytest.raises(ConnectionFailureError):
        store.connect()
    assert not store.connected


def test_adapters_share_one_store(mongo_store):
    flat = FlatDocumentAdapter(mongo_store)
    join = JoinDocumentAdapter(mongo_store)
    flat.connect()
    join.connect()
    assert flat.store is join.store
    assert mongo_store.connected
