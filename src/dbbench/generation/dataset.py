"""
基准数据集生成器
按规模和变体生成满足引用完整性的用户、帖子、点赞与关注记录

注意：随机源未设置种子，同一规模的两次运行不会产生相同的数据。
"""
import math
import string
from typing import Dict, List, Mapping, Optional, Set, Tuple

from faker import Faker

from ..data_models.base import ValidationError
from ..data_models.records import (
    BENCHMARK_SCALES, GENERATED_STATUSES, Dataset, FollowRecord,
    LikeRecord, PostRecord, UserRecord, UserRole, Variant,
)


# 点赞候选数 = 规模 × 密度
DEFAULT_LIKE_DENSITY: Dict[str, float] = {
    Variant.BASIC.value: 0.5,
    Variant.RELATIONAL.value: 5.0,
    Variant.INDEXED.value: 5.0,
}

SUFFIX_ALPHABET = string.ascii_letters + string.digits + "_-"


class DatasetGenerator:
    """数据集生成器 - 只在内存中产出记录，不做任何持久化"""

    def __init__(self, like_density: Optional[Mapping[str, float]] = None,
                 faker: Optional[Faker] = None):
        self.like_density = dict(DEFAULT_LIKE_DENSITY)
        if like_density:
            self.like_density.update(like_density)
        self.fake = faker or Faker()

    def generate(self, scale: int, variant: Variant) -> Dataset:
        """生成数据集：先用户，再帖子，最后点赞（引用均指向已生成的父记录）"""
        if scale not in BENCHMARK_SCALES:
            raise ValidationError(f"Unsupported scale {scale}, expected one of {BENCHMARK_SCALES}")
        variant = Variant(variant)

        users = self.generate_users(scale // 10)
        posts = self.generate_posts(scale, users)
        like_attempts = math.floor(scale * self.like_density.get(variant.value, 0))
        likes = self.generate_likes(like_attempts, posts, users)
        follows = self.generate_follows(len(users), users)

        return Dataset(
            scale=scale,
            variant=variant,
            users=users,
            posts=posts,
            likes=likes,
            follows=follows,
            like_attempts=like_attempts,
        )

    def generate_users(self, count: int) -> List[UserRecord]:
        """用户名通过冲突重试保证唯一"""
        usernames: Set[str] = set()
        while len(usernames) < count:
            usernames.add(self._username())

        roles = [role.value for role in UserRole]
        return [
            UserRecord(
                username=username,
                role=self.fake.random_element(roles),
                created_at=self.fake.date_time_between(start_date="-1y", end_date="now"),
            )
            for username in usernames
        ]

    def generate_posts(self, count: int, users: List[UserRecord]) -> List[PostRecord]:
        if count and not users:
            raise ValidationError("Posts require at least one user")

        statuses = [status.value for status in GENERATED_STATUSES]
        return [
            PostRecord(
                title=self.fake.sentence(),
                body="\n".join(self.fake.paragraphs()),
                status=self.fake.random_element(statuses),
                created_at=self.fake.date_time_between(start_date="-1y", end_date="now"),
                user_id=self.fake.random_element(users).id,
            )
            for _ in range(count)
        ]

    def generate_likes(self, attempts: int, posts: List[PostRecord],
                       users: List[UserRecord]) -> List[LikeRecord]:
        """生成点赞候选并按 (post, user) 去重"""
        if not posts or not users:
            return []

        seen: Set[Tuple[str, str]] = set()
        likes: List[LikeRecord] = []
        for _ in range(attempts):
            key = (self.fake.random_element(posts).id, self.fake.random_element(users).id)
            if key in seen:
                continue
            seen.add(key)
            likes.append(LikeRecord(post_id=key[0], user_id=key[1]))
        return likes

    def generate_follows(self, attempts: int, users: List[UserRecord]) -> List[FollowRecord]:
        """关注关系只为模式完整而生成，不参与基准操作"""
        if len(users) < 2:
            return []

        seen: Set[Tuple[str, str]] = set()
        follows: List[FollowRecord] = []
        for _ in range(attempts):
            follower, followed = self.fake.random_elements(users, length=2, unique=True)
            key = (follower.id, followed.id)
            if key in seen:
                continue
            seen.add(key)
            follows.append(FollowRecord(
                following_user_id=follower.id,
                followed_user_id=followed.id,
                created_at=self.fake.date_time_between(start_date="-1y", end_date="now"),
            ))
        return follows

    def _username(self) -> str:
        suffix = self.fake.lexify(text="??????", letters=SUFFIX_ALPHABET)
        return f"{self.fake.user_name()}_{suffix}"
