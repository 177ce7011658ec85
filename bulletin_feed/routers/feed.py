"""
Feed endpoints:
  GET /feed/for-you/{user_id}  — personalized blend (≤ 50 posts)
  GET /feed/trending           — thresholded, shuffled, paginated trending
  GET /feed/my-mix/{user_id}   — shuffled mix of recent/friend/trending/community

For You pipeline:

  Stage 1 │ Candidate Generation (concurrent, one session each, time-boxed)
  ────────┼──────────────────────────────────────────────────────────────
          │  Interest  — posts tagged with the user's top tags (Redis profile)
          │  Friend    — recent posts from accepted friends + self
          │  Trending  — decayed-engagement originals, 21-day window

  Stage 2 │ Dedupe & Blend
  ────────┼──────────────────────────────────────────────────────────────
          │  First occurrence wins (interest → friend → trending).
          │  Slot budgets 25 / 15 / 15 of 50, asymmetric backfill.

  Stage 3 │ Shuffle & Hydrate
  ────────┼──────────────────────────────────────────────────────────────
          │  Fisher–Yates shuffle, strip scores, attach author summary.
          │  Empty blend → most recent posts sitewide instead.
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin_feed.database import get_db
from bulletin_feed.dependencies import get_composer, get_ranking_config
from bulletin_feed.models import Post
from bulletin_feed.ranking.composer import FeedComposer, Page, normalize_page
from bulletin_feed.ranking.config import RankingConfig
from bulletin_feed.repository import user_exists
from bulletin_feed.schemas import AuthorSummary, FeedPage, FeedPost
from bulletin_feed.telemetry import FEED_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_feed_post(post: Post) -> FeedPost:
    author = AuthorSummary.model_validate(post.author) if post.author else None
    return FeedPost(
        post_id=post.post_id,
        user_id=post.user_id,
        author=author,
        type=post.type,
        content=post.content,
        media_url=post.media_url,
        tags=sorted(post.tags),
        like_count=post.like_count or 0,
        repost_count=post.repost_count or 0,
        comment_count=post.comment_count or 0,
        repost_of_id=post.repost_of_id,
        community_id=post.community_id,
        created_at=post.created_at,
    )


def _build_feed_page(page: Page[Post]) -> FeedPage:
    return FeedPage(
        items=[_build_feed_post(p) for p in page.items],
        page=page.page,
        limit=page.limit,
        total=page.total,
        has_more=page.has_more,
    )


async def _require_user(db: AsyncSession, user_id: str) -> None:
    if not await user_exists(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")


@router.get("/for-you/{user_id}", response_model=list[FeedPost])
async def get_for_you(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    composer: FeedComposer = Depends(get_composer),
):
    start_time = time.time()

    with tracer.start_as_current_span("get_for_you") as span:
        span.set_attribute("user.id", user_id)
        await _require_user(db, user_id)

        posts = await composer.for_you(user_id)

        latency_ms = (time.time() - start_time) * 1000
        FEED_LATENCY.labels(endpoint="for_you").observe(latency_ms / 1000)
        span.set_attribute("feed.latency_ms", latency_ms)
        logger.info(
            "For You for %s: %d posts in %.1fms", user_id, len(posts), latency_ms
        )
        return [_build_feed_post(p) for p in posts]


@router.get("/trending", response_model=FeedPage)
async def get_trending(
    page: Optional[int] = Query(None, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size (max 50)"),
    composer: FeedComposer = Depends(get_composer),
    config: RankingConfig = Depends(get_ranking_config),
):
    start_time = time.time()
    page, limit = normalize_page(page, limit, config)

    result = await composer.trending_page(page, limit)

    FEED_LATENCY.labels(endpoint="trending").observe(time.time() - start_time)
    return _build_feed_page(result)


@router.get("/my-mix/{user_id}", response_model=FeedPage)
async def get_my_mix(
    user_id: str,
    page: Optional[int] = Query(None, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size (max 50)"),
    db: AsyncSession = Depends(get_db),
    composer: FeedComposer = Depends(get_composer),
    config: RankingConfig = Depends(get_ranking_config),
):
    start_time = time.time()
    await _require_user(db, user_id)
    page, limit = normalize_page(page, limit, config)

    result = await composer.my_mix(user_id, page, limit)

    FEED_LATENCY.labels(endpoint="my_mix").observe(time.time() - start_time)
    return _build_feed_page(result)
