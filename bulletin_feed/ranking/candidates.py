"""
Candidate generation — one generator per source.

  Source    │ Pulls                                       │ Scored by
  ──────────┼─────────────────────────────────────────────┼──────────────────
  interest  │ posts tagged with the user's top-15 tags     │ interest_score
            │ (last 21 days)                              │
  friend    │ posts by accepted friends + the user        │ friend_score
            │ (last 4 days)                               │
  trending  │ original posts sitewide (window per caller) │ trending_score

Each generator is read-only and independent of the others, so the composer
can run them concurrently. Results are sorted by score, highest first.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bulletin_feed.clients.redis_client import get_interest_profile
from bulletin_feed.models import Post, utcnow
from bulletin_feed.ranking.config import RankingConfig
from bulletin_feed.ranking.scoring import (
    friend_score,
    interest_score,
    top_tags,
    trending_score,
)
from bulletin_feed.repository import (
    PostQuery,
    find_posts,
    get_accepted_friend_ids,
    window_start,
)

logger = logging.getLogger(__name__)

SOURCE_INTEREST = "interest"
SOURCE_FRIEND = "friend"
SOURCE_TRENDING = "trending"


@dataclass
class ScoredCandidate:
    """A post under consideration for one feed request. Never persisted."""
    post: Post
    score: float
    source: str

    @property
    def post_id(self) -> str:
        return self.post.post_id


def _ranked(candidates: list[ScoredCandidate]) -> list[ScoredCandidate]:
    # sort() is stable: equal scores keep the store's newest-first order
    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates


class CandidateGenerator:
    source: str = ""

    def __init__(self, config: RankingConfig) -> None:
        self.config = config

    async def generate(
        self, db: AsyncSession, user_id: str, now: Optional[datetime] = None
    ) -> list[ScoredCandidate]:
        raise NotImplementedError


class InterestCandidateGenerator(CandidateGenerator):
    source = SOURCE_INTEREST

    async def generate(
        self, db: AsyncSession, user_id: str, now: Optional[datetime] = None
    ) -> list[ScoredCandidate]:
        now = now or utcnow()
        profile = await get_interest_profile(user_id)
        top_weights = top_tags(profile, self.config.interest_top_tags)
        if not top_weights:
            return []

        posts = await find_posts(
            db,
            PostQuery(
                since=window_start(self.config.interest_window_days, now),
                limit=self.config.interest_candidate_limit,
                tags=list(top_weights),
            ),
        )
        logger.debug(
            "Interest candidates for %s: %d posts over %d tags",
            user_id, len(posts), len(top_weights),
        )
        return _ranked(
            [
                ScoredCandidate(
                    post=p,
                    score=interest_score(
                        p.tags, top_weights, p.created_at,
                        p.like_count, p.repost_count, now, self.config,
                    ),
                    source=self.source,
                )
                for p in posts
            ]
        )


class FriendCandidateGenerator(CandidateGenerator):
    source = SOURCE_FRIEND

    async def generate(
        self, db: AsyncSession, user_id: str, now: Optional[datetime] = None
    ) -> list[ScoredCandidate]:
        now = now or utcnow()
        friend_ids = await get_accepted_friend_ids(db, user_id)
        if not friend_ids:
            return []

        posts = await find_posts(
            db,
            PostQuery(
                since=window_start(self.config.friend_window_days, now),
                limit=self.config.friend_candidate_limit,
                author_ids=[*friend_ids, user_id],
            ),
        )
        return _ranked(
            [
                ScoredCandidate(
                    post=p,
                    score=friend_score(
                        p.created_at, p.like_count, p.repost_count,
                        p.comment_count, now, self.config,
                    ),
                    source=self.source,
                )
                for p in posts
            ]
        )


class TrendingCandidateGenerator(CandidateGenerator):
    """
    Sitewide originals scored by decayed engagement.

    window_days and limit differ per call site; min_score is only set by
    callers that threshold (the standalone trending feed and My Mix).
    """
    source = SOURCE_TRENDING

    def __init__(
        self,
        config: RankingConfig,
        window_days: int,
        min_score: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> None:
        super().__init__(config)
        self.window_days = window_days
        self.min_score = min_score
        self.limit = limit or config.trending_candidate_limit

    async def generate(
        self, db: AsyncSession, user_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> list[ScoredCandidate]:
        now = now or utcnow()
        posts = await find_posts(
            db,
            PostQuery(
                since=window_start(self.window_days, now),
                limit=self.limit,
                reposts=False,
            ),
        )
        scored = [
            ScoredCandidate(
                post=p,
                score=trending_score(
                    p.like_count, p.repost_count, p.comment_count,
                    p.created_at, now, self.config,
                ),
                source=self.source,
            )
            for p in posts
        ]
        if self.min_score is not None:
            scored = [c for c in scored if c.score >= self.min_score]
        return _ranked(scored)
