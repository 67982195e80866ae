"""
关系型数据模型
users / posts / likes / follows 四张表，外键关系与唯一约束
"""
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Text,
    ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import SQLAlchemyBase


class User(SQLAlchemyBase):
    """用户表"""
    __tablename__ = "users"

    # 主键（UUID字符串，由数据生成器分配）
    id = Column(String(36), primary_key=True)

    username = Column(String(100), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # 关系
    posts = relationship("Post", back_populates="author")
    likes = relationship("Like", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"


class Post(SQLAlchemyBase):
    """帖子表"""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True)

    # 外键
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)

    title = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # 关系
    author = relationship("User", back_populates="posts")
    likes = relationship("Like", back_populates="post")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'draft', 'archived', 'trending')",
            name='check_post_status',
        ),
    )

    def __repr__(self):
        return f"<Post(id={self.id}, title='{self.title[:50]}...')>"


class Like(SQLAlchemyBase):
    """点赞表 - 复合主键即唯一约束，每个 (post, user) 至多一条"""
    __tablename__ = "likes"

    post_id = Column(String(36), ForeignKey('posts.id'), primary_key=True)
    user_id = Column(String(36), ForeignKey('users.id'), primary_key=True)

    # 关系
    user = relationship("User", back_populates="likes")
    post = relationship("Post", back_populates="likes")

    __table_args__ = (
        Index('idx_like_user', 'user_id'),
    )

    def __repr__(self):
        return f"<Like(post={self.post_id}, user={self.user_id})>"


class Follow(SQLAlchemyBase):
    """关注关系表"""
    __tablename__ = "follows"

    # 复合主键
    following_user_id = Column(String(36), ForeignKey('users.id'), primary_key=True)
    followed_user_id = Column(String(36), ForeignKey('users.id'), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # 约束
    __table_args__ = (
        CheckConstraint('following_user_id != followed_user_id', name='check_no_self_follow'),
    )

    def __repr__(self):
        return f"<Follow(following={self.following_user_id}, followed={self.followed_user_id})>"


# 清空顺序（先子表后父表）
RELATIONAL_TABLES = (Like, Follow, Post, User)
