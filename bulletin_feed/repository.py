"""
Read/write helpers over the relational store.

The ranking engine only reads posts, friendships and community memberships;
the one thing it writes here is the append-only interaction log.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Collection, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin_feed.models import (
    CommunityMembership,
    Friendship,
    Interaction,
    Post,
    PostTag,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostQuery:
    """
    Filter for find_posts().

    reposts: True → only reposts, False → only originals, None → both.
    outside_communities: only posts that belong to no community.
    """
    since: Optional[datetime] = None
    limit: Optional[int] = None
    tags: Optional[Collection[str]] = None
    author_ids: Optional[Collection[str]] = None
    community_ids: Optional[Collection[str]] = None
    reposts: Optional[bool] = None
    outside_communities: bool = False
    approved_only: bool = True


def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


async def find_posts(db: AsyncSession, query: PostQuery) -> list[Post]:
    """Posts matching the filter, newest first, capped at query.limit."""
    stmt = select(Post)

    if query.since is not None:
        stmt = stmt.where(Post.created_at >= query.since)
    if query.tags is not None:
        stmt = stmt.where(
            Post.post_id.in_(
                select(PostTag.post_id).where(PostTag.tag.in_(list(query.tags)))
            )
        )
    if query.author_ids is not None:
        stmt = stmt.where(Post.user_id.in_(list(query.author_ids)))
    if query.community_ids is not None:
        stmt = stmt.where(Post.community_id.in_(list(query.community_ids)))
    if query.reposts is True:
        stmt = stmt.where(Post.repost_of_id.is_not(None))
    elif query.reposts is False:
        stmt = stmt.where(Post.repost_of_id.is_(None))
    if query.outside_communities:
        stmt = stmt.where(Post.community_id.is_(None))
    if query.approved_only:
        stmt = stmt.where(Post.approved.is_(True))

    stmt = stmt.order_by(Post.created_at.desc(), Post.post_id)
    if query.limit is not None:
        stmt = stmt.limit(query.limit)

    rows = await db.execute(stmt)
    return list(rows.scalars().unique().all())


async def get_post(db: AsyncSession, post_id: str) -> Optional[Post]:
    return await db.get(Post, post_id)


async def user_exists(db: AsyncSession, user_id: str) -> bool:
    return await db.get(User, user_id) is not None


async def find_original_post(
    db: AsyncSession, post: Post, max_hops: int = 32
) -> Post:
    """
    Follow repost_of links until a non-repost is reached.

    Reposts are only ever created against originals, but the store does not
    enforce it, so the walk is bounded and tracks visited ids. On a cycle, a
    dangling link or too many hops the last post reached is returned.
    """
    current = post
    visited = {post.post_id}
    for _ in range(max_hops):
        if current.repost_of_id is None:
            return current
        if current.repost_of_id in visited:
            logger.warning("Repost cycle detected at post %s", current.post_id)
            return current
        parent = await db.get(Post, current.repost_of_id)
        if parent is None:
            logger.warning(
                "Post %s reposts missing post %s", current.post_id, current.repost_of_id
            )
            return current
        visited.add(parent.post_id)
        current = parent

    if current.repost_of_id is not None:
        logger.warning(
            "Repost chain from %s exceeded %d hops", post.post_id, max_hops
        )
    return current


# ─────────────────────────── Social graph ─────────────────────────────────

async def get_accepted_friend_ids(db: AsyncSession, user_id: str) -> list[str]:
    """Other endpoint of every accepted friendship the user is part of."""
    rows = await db.execute(
        select(Friendship.requester_id, Friendship.recipient_id).where(
            Friendship.status == "accepted",
            or_(
                Friendship.requester_id == user_id,
                Friendship.recipient_id == user_id,
            ),
        )
    )
    friend_ids: list[str] = []
    for requester_id, recipient_id in rows.all():
        other = recipient_id if requester_id == user_id else requester_id
        if other != user_id and other not in friend_ids:
            friend_ids.append(other)
    return friend_ids


async def get_community_ids(db: AsyncSession, user_id: str) -> list[str]:
    rows = await db.execute(
        select(CommunityMembership.community_id).where(
            CommunityMembership.user_id == user_id
        )
    )
    return [r[0] for r in rows.all()]


# ─────────────────────────── Interaction log ──────────────────────────────

async def log_interaction(
    db: AsyncSession, user_id: str, post_id: str, interaction_type: str
) -> Interaction:
    """Append one row to the interaction log (flushed, not committed)."""
    interaction = Interaction(user_id=user_id, post_id=post_id, type=interaction_type)
    db.add(interaction)
    await db.flush()
    return interaction
