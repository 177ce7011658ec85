"""
Feed composition: turns per-source candidate lists into a served feed.

For You
  1. Run the interest, friend and trending generators concurrently, each in
     its own session and under its own timeout.
  2. Dedupe by post id — first occurrence wins, interest → friend → trending.
  3. Blend under slot budgets (25 interest / 15 friend / 15 trending of 50).
     Unused interest slots can go to friend and trending; unused friend
     slots only reach trending through its own min(target, remaining).
  4. Nothing to blend → the 50 most recent posts sitewide, unshuffled.
  5. Otherwise shuffle so same-source items are not clustered.

Trending (standalone)
  4-day window, score ≥ 5, shuffle the whole filtered set, then paginate.

My Mix
  Recent originals + friends' originals + friends' reposts + thresholded
  trending + joined-community posts, deduped, shuffled, paginated.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, Sequence, TypeVar

from opentelemetry import trace
from sqlalchemy.ext.asyncio import async_sessionmaker

from bulletin_feed.models import Post, utcnow
from bulletin_feed.ranking.candidates import (
    CandidateGenerator,
    FriendCandidateGenerator,
    InterestCandidateGenerator,
    ScoredCandidate,
    TrendingCandidateGenerator,
)
from bulletin_feed.ranking.config import RankingConfig
from bulletin_feed.ranking.scoring import fisher_yates_shuffle
from bulletin_feed.repository import (
    PostQuery,
    find_posts,
    get_accepted_friend_ids,
    get_community_ids,
    window_start,
)
from bulletin_feed.telemetry import FEED_CANDIDATES_TOTAL, GENERATOR_TIMEOUTS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int
    has_more: bool


def normalize_page(page: Optional[int], limit: Optional[int], config: RankingConfig) -> tuple[int, int]:
    """page ≥ 1 (default 1); limit clamped to [1, max_page_size] (default 10)."""
    page = max(page or 1, 1)
    limit = min(max(limit or config.default_page_size, 1), config.max_page_size)
    return page, limit


def paginate(items: Sequence[T], page: int, limit: int) -> Page[T]:
    skip = (page - 1) * limit
    sliced = list(items[skip: skip + limit])
    return Page(
        items=sliced,
        page=page,
        limit=limit,
        total=len(items),
        has_more=skip + len(sliced) < len(items),
    )


def dedupe_candidates(
    *sources: list[ScoredCandidate],
) -> list[list[ScoredCandidate]]:
    """Drop posts already seen in an earlier source (or earlier in the same one)."""
    seen: set[str] = set()
    deduped: list[list[ScoredCandidate]] = []
    for candidates in sources:
        kept: list[ScoredCandidate] = []
        for c in candidates:
            if c.post_id in seen:
                continue
            seen.add(c.post_id)
            kept.append(c)
        deduped.append(kept)
    return deduped


def dedupe_posts(*sources: list[Post]) -> list[Post]:
    seen: set[str] = set()
    unique: list[Post] = []
    for posts in sources:
        for p in posts:
            if p.post_id not in seen:
                seen.add(p.post_id)
                unique.append(p)
    return unique


def blend(
    interest: list[ScoredCandidate],
    friend: list[ScoredCandidate],
    trending: list[ScoredCandidate],
    config: RankingConfig,
) -> list[ScoredCandidate]:
    """Fill the For You budget from already-deduped, score-sorted lists."""
    total = config.for_you_total

    from_interest = interest[: config.interest_target]
    remaining = total - len(from_interest)

    from_friend = friend[: min(config.friend_target, remaining)]
    remaining = total - len(from_interest) - len(from_friend)

    from_trending = trending[: min(config.trending_target, remaining)]

    return [*from_interest, *from_friend, *from_trending]


class FeedComposer:
    def __init__(
        self,
        sessions: async_sessionmaker,
        config: RankingConfig,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.sessions = sessions
        self.config = config
        self.rng = rng or random.Random()
        self.interest = InterestCandidateGenerator(config)
        self.friend = FriendCandidateGenerator(config)
        self.trending = TrendingCandidateGenerator(
            config, window_days=config.for_you_trending_window_days
        )

    async def _generate(
        self, generator: CandidateGenerator, user_id: str, now: datetime
    ) -> list[ScoredCandidate]:
        async def run() -> list[ScoredCandidate]:
            async with self.sessions() as db:
                return await generator.generate(db, user_id, now)

        with tracer.start_as_current_span(f"generate_{generator.source}") as span:
            try:
                candidates = await asyncio.wait_for(
                    run(), timeout=self.config.generator_timeout_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "%s generator timed out after %.1fs for user %s, serving without it",
                    generator.source, self.config.generator_timeout_seconds, user_id,
                )
                GENERATOR_TIMEOUTS_TOTAL.labels(source=generator.source).inc()
                span.set_attribute("generator.timed_out", True)
                return []

            span.set_attribute("generator.candidates", len(candidates))
            FEED_CANDIDATES_TOTAL.labels(source=generator.source).inc(len(candidates))
            return candidates

    async def for_you(self, user_id: str, now: Optional[datetime] = None) -> list[Post]:
        now = now or utcnow()
        with tracer.start_as_current_span("compose_for_you") as span:
            span.set_attribute("user.id", user_id)

            interest, friend, trending = await asyncio.gather(
                self._generate(self.interest, user_id, now),
                self._generate(self.friend, user_id, now),
                self._generate(self.trending, user_id, now),
            )
            interest, friend, trending = dedupe_candidates(interest, friend, trending)
            combined = blend(interest, friend, trending, self.config)

            if not combined:
                span.set_attribute("feed.fallback", True)
                logger.info("No candidates for %s, serving most recent posts", user_id)
                async with self.sessions() as db:
                    return await find_posts(db, PostQuery(limit=self.config.for_you_total))

            fisher_yates_shuffle(combined, self.rng)
            span.set_attribute("feed.posts_returned", len(combined))
            return [c.post for c in combined]

    async def trending_page(
        self, page: int, limit: int, now: Optional[datetime] = None
    ) -> Page[Post]:
        now = now or utcnow()
        generator = TrendingCandidateGenerator(
            self.config,
            window_days=self.config.trending_window_days,
            min_score=self.config.trending_min_score,
        )
        with tracer.start_as_current_span("compose_trending") as span:
            async with self.sessions() as db:
                candidates = await generator.generate(db, None, now)
            FEED_CANDIDATES_TOTAL.labels(source=generator.source).inc(len(candidates))
            span.set_attribute("trending.above_threshold", len(candidates))

            posts = fisher_yates_shuffle([c.post for c in candidates], self.rng)
            return paginate(posts, page, limit)

    async def my_mix(
        self, user_id: str, page: int, limit: int, now: Optional[datetime] = None
    ) -> Page[Post]:
        now = now or utcnow()
        cap = self.config.my_mix_source_limit
        since = window_start(self.config.my_mix_window_days, now)
        trending = TrendingCandidateGenerator(
            self.config,
            window_days=self.config.my_mix_trending_window_days,
            min_score=self.config.trending_min_score,
            limit=cap,
        )

        with tracer.start_as_current_span("compose_my_mix") as span:
            span.set_attribute("user.id", user_id)
            async with self.sessions() as db:
                friend_ids = await get_accepted_friend_ids(db, user_id)
                community_ids = await get_community_ids(db, user_id)

                recent = await find_posts(
                    db,
                    PostQuery(since=since, limit=cap, reposts=False, outside_communities=True),
                )
                friends_originals: list[Post] = []
                friends_reposts: list[Post] = []
                if friend_ids:
                    friends_originals = await find_posts(
                        db,
                        PostQuery(
                            since=since, limit=cap, author_ids=friend_ids,
                            reposts=False, outside_communities=True,
                        ),
                    )
                    friends_reposts = await find_posts(
                        db,
                        PostQuery(
                            since=since, limit=cap, author_ids=friend_ids,
                            reposts=True, outside_communities=True,
                        ),
                    )
                trending_posts = [c.post for c in await trending.generate(db, user_id, now)]
                community_posts: list[Post] = []
                if community_ids:
                    community_posts = await find_posts(
                        db,
                        PostQuery(
                            since=since, limit=cap, community_ids=community_ids, reposts=False,
                        ),
                    )

            mix = dedupe_posts(
                recent, friends_originals, friends_reposts, trending_posts, community_posts
            )
            span.set_attribute("my_mix.unique_posts", len(mix))
            fisher_yates_shuffle(mix, self.rng)
            return paginate(mix, page, limit)
