"""
SQLAlchemy ORM models for TiDB.

Tables:
  users                 — user profiles (author summaries for the feed)
  friendships           — social graph edges (requester ↔ recipient)
  community_memberships — which communities a user has joined
  posts                 — bulletins; reposts point at their original
  post_tags             — tag set of each post
  post_likes            — user × post likes
  comments              — top-level comments on a post
  interactions          — append-only engagement log (view/like/...)

Engagement counts on Post are not stored: they are correlated COUNT(*)
subqueries over post_likes, comments and reposts, loaded with the row.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.orm import Mapped, aliased, column_property, mapped_column, relationship

from bulletin_feed.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    profile_picture: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Friendship(Base):
    __tablename__ = "friendships"

    friendship_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    requester_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("requester_id", "recipient_id", name="uq_friendship_pair"),
        Index("idx_friendship_requester", "requester_id"),
        Index("idx_friendship_recipient", "recipient_id"),
    )


class CommunityMembership(Base):
    __tablename__ = "community_memberships"

    community_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )

    __table_args__ = (Index("idx_membership_user", "user_id"),)


class PostTag(Base):
    __tablename__ = "post_tags"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(100), primary_key=True)

    __table_args__ = (Index("idx_post_tags_tag", "tag"),)


class PostLike(Base):
    __tablename__ = "post_likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    comment_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_comments_post", "post_id"),)


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), default="text", nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text)
    media_url: Mapped[Optional[str]] = mapped_column(String(500))
    # Non-null only for reposts; always points at a non-repost original
    repost_of_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("posts.post_id")
    )
    community_id: Mapped[Optional[str]] = mapped_column(String(36))
    approved: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    author = relationship("User", lazy="joined")
    tag_rows = relationship("PostTag", lazy="selectin", cascade="all, delete-orphan")
    tags: AssociationProxy[list[str]] = association_proxy(
        "tag_rows", "tag", creator=lambda tag: PostTag(tag=tag)
    )

    like_count = column_property(
        select(func.count(PostLike.user_id))
        .where(PostLike.post_id == post_id)
        .correlate_except(PostLike)
        .scalar_subquery()
    )
    comment_count = column_property(
        select(func.count(Comment.comment_id))
        .where(Comment.post_id == post_id)
        .correlate_except(Comment)
        .scalar_subquery()
    )

    __table_args__ = (
        Index("idx_posts_user_created", "user_id", "created_at"),
        Index("idx_posts_created", "created_at"),
        Index("idx_posts_repost_of", "repost_of_id"),
        Index("idx_posts_community", "community_id", "approved"),
    )


_Repost = aliased(Post)

# Self-referential count has to be attached after the class exists
Post.repost_count = column_property(
    select(func.count(_Repost.post_id))
    .where(_Repost.repost_of_id == Post.post_id)
    .correlate_except(_Repost)
    .scalar_subquery()
)


class Interaction(Base):
    __tablename__ = "interactions"

    interaction_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_interactions_user", "user_id", "created_at"),)
