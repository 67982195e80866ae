"""
关系型适配器测试（SQLite 内存库）
"""
import math

import pytest

from dbbench.adapters import AggregationQueries, ConnectionFailureError, RelationalAdapter
from dbbench.data_models import (
    AGGREGATION_QUERIES, CANONICAL_OPERATIONS, LikeRecord, OperationKind, Variant,
)


def test_participates_in_basic_and_relational(relational_adapter):
    assert relational_adapter.participates_in(Variant.BASIC)
    assert relational_adapter.participates_in(Variant.RELATIONAL)
    assert not relational_adapter.participates_in(Variant.INDEXED)


def test_writes_persist_dataset(relational_adapter, relational_dataset):
    skipped = relational_adapter.writes(relational_dataset)
    counts = relational_adapter.count_entities()
    assert skipped == 0
    assert counts["users"] == 10
    assert counts["posts"] == 100
    assert counts["likes"] == len(relational_dataset.likes)
    # 关注关系不参与写入
    assert counts["follows"] == 0


def test_duplicate_likes_are_skipped(relational_adapter, dataset_factory):
    dataset = dataset_factory(["active", "draft"])
    duplicate = LikeRecord(post_id=dataset.posts[0].id, user_id=dataset.users[0].id)
    dataset.likes = dataset.likes + [duplicate]

    skipped = relational_adapter.writes(dataset)

    assert skipped == 1
    assert relational_adapter.skipped_likes == 1
    assert relational_adapter.count_entities()["likes"] == 2


def test_reset_state_empties_every_table(relational_adapter, relational_dataset):
    relational_adapter.writes(relational_dataset)
    relational_adapter.reset_state()
    assert set(relational_adapter.count_entities().values()) == {0}


def test_simple_read_expands_author_and_likes(relational_adapter, relational_dataset):
    relational_adapter.writes(relational_dataset)
    posts = relational_adapter.simple_read(relational_dataset)
    assert len(posts) == 100
    expected = relational_dataset.like_counts()
    for post in posts:
        assert post.author.username
        assert len(post.likes) == expected[post.id]


def test_filtered_read_is_subset_of_simple_read(relational_adapter, relational_dataset):
    relational_adapter.writes(relational_dataset)
    simple = {post.id: post for post in relational_adapter.simple_read(relational_dataset)}
    filtered = relational_adapter.filtered_read(relational_dataset)

    assert {post.id for post in filtered} <= set(simple)
    assert all(post.status == "active" and post.likes for post in filtered)
    expected = {pid for pid, post in simple.items() if post.status == "active" and post.likes}
    assert {post.id for post in filtered} == expected


def test_projected_read_narrows_output(relational_adapter, dataset_factory):
    dataset = dataset_factory(["active", "active", "draft"], likes_per_post=2)
    relational_adapter.writes(dataset)
    rows = relational_adapter.projected_read(dataset)

    assert len(rows) == 2
    for row in rows:
        assert set(row._fields) == {"title", "created_at", "username", "like_count"}
        assert row.like_count == 2


def test_projected_read_excludes_posts_without_likes(relational_adapter, dataset_factory):
    dataset = dataset_factory(["active", "active"], likes_per_post=0)
    relational_adapter.writes(dataset)
    assert relational_adapter.projected_read(dataset) == []


def test_sorted_read_order(relational_adapter, dataset_factory):
    # 相邻两个帖子的 created_at 相同，用 title 决定顺序
    dataset = dataset_factory(["active"] * 6)
    relational_adapter.writes(dataset)
    rows = relational_adapter.sorted_read(dataset)

    assert len(rows) == 6
    for prev, cur in zip(rows, rows[1:]):
        assert prev.created_at >= cur.created_at
        if prev.created_at == cur.created_at:
            assert prev.title <= cur.title


def test_update_moves_active_to_trending(relational_adapter, relational_dataset):
    relational_adapter.writes(relational_dataset)
    active = sum(1 for post in relational_dataset.posts if post.status == "active")

    assert relational_adapter.update(relational_dataset) == active
    assert relational_adapter.filtered_read(relational_dataset) == []


def test_update_with_no_active_posts_is_still_timed(relational_adapter, dataset_factory):
    dataset = dataset_factory(["draft", "archived"])
    relational_adapter.writes(dataset)

    elapsed = relational_adapter.execute(OperationKind.UPDATE, dataset)

    assert elapsed >= 0 and math.isfinite(elapsed)
    assert relational_adapter.run_operation(OperationKind.FILTERED_READ, dataset) == []


def test_delete_removes_archived_posts_and_their_likes(relational_adapter, dataset_factory):
    dataset = dataset_factory(["archived", "active", "archived"], likes_per_post=2)
    relational_adapter.writes(dataset)

    assert relational_adapter.delete(dataset) == 2
    counts = relational_adapter.count_entities()
    assert counts["posts"] == 1
    assert counts["likes"] == 2


def test_execute_every_operation_in_order(relational_adapter, relational_dataset):
    timings = {op: relational_adapter.execute(op, relational_dataset) for op in CANONICAL_OPERATIONS}
    assert timings[OperationKind.WRITES] > 0
    assert all(math.isfinite(ms) and ms >= 0 for ms in timings.values())


def test_aggregation_queries(relational_adapter, dataset_factory):
    dataset = dataset_factory(["active", "draft", "archived", "active"], likes_per_post=2)
    relational_adapter.writes(dataset)

    per_user = {row.user_id: row.post_count for row in relational_adapter.posts_per_user()}
    assert sum(per_user.values()) == 4

    assert relational_adapter.avg_likes_per_post() == pytest.approx(2.0)

    most_active = relational_adapter.most_active_users()
    assert most_active[0].username == "user_0"
    assert most_active[0].post_count == 2

    most_liked = relational_adapter.most_liked_posts()
    assert len(most_liked) == 4
    assert all(row.like_count == 2 for row in most_liked)

    engagement = {row.username: row for row in relational_adapter.user_engagement()}
    assert engagement["user_0"].posts_written == 2
    assert engagement["user_0"].likes_received == 4
    assert engagement["user_0"].likes_given == 4
    assert engagement["user_2"].likes_given == 0


def test_execute_aggregation_returns_duration(relational_adapter, relational_dataset):
    relational_adapter.load(relational_dataset)
    for query in AGGREGATION_QUERIES:
        assert relational_adapter.execute_aggregation(query) >= 0


def test_connect_failure_is_classified(tmp_path):
    adapter = RelationalAdapter(f"sqlite:///{tmp_path}/missing/dir/bench.db")
    with pytest.raises(ConnectionFailureError):
        adapter.connect()


def test_operations_require_connection():
    adapter = RelationalAdapter("sqlite://")
    with pytest.raises(ConnectionFailureError):
        adapter.count_entities()


class _PostsPerUserOnly(AggregationQueries):
    def posts_per_user(self):
        return []


def test_aggregation_capability_is_a_type(relational_adapter):
    assert isinstance(relational_adapter, AggregationQueries)
    assert relational_adapter.supports_aggregation
    # 五项查询缺一不可
    with pytest.raises(TypeError):
        _PostsPerUserOnly()
