"""
Interaction endpoints:
  POST /interactions                      — log a view/like/repost/comment/click
  GET  /interactions/interests/{user_id}  — the user's tag interest profile

Logging an interaction:

1. Validate the user and the post exist.
2. Attribute likes and reposts to the repost chain's original post.
3. Append the interaction row (the primary effect).
4. Best effort: bump the user's interest profile in Redis.
5. Best effort: emit an 'interactions' Kafka event.

Steps 4 and 5 never fail the request; their errors are logged and counted.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin_feed.clients.kafka_producer import publish_interaction
from bulletin_feed.clients.redis_client import get_interest_profile
from bulletin_feed.database import get_db
from bulletin_feed.dependencies import get_profile_updater, get_ranking_config
from bulletin_feed.ranking.config import RankingConfig
from bulletin_feed.ranking.interests import InterestProfileUpdater
from bulletin_feed.ranking.scoring import top_tags
from bulletin_feed.repository import (
    find_original_post,
    get_post,
    log_interaction,
    user_exists,
)
from bulletin_feed.schemas import (
    InteractionCreate,
    InteractionResponse,
    InterestProfileResponse,
    TagWeight,
)
from bulletin_feed.telemetry import (
    INTERACTION_PUBLISH_ERRORS_TOTAL,
    INTERACTIONS_TOTAL,
    INTEREST_UPDATE_ERRORS_TOTAL,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)

# Engagement that counts toward the original rather than the repost
ATTRIBUTED_TO_ORIGINAL = {"like", "repost"}
# Metric label values; anything else is counted as "other"
TRACKED_TYPES = {"view", "like", "repost", "comment", "click"}


@router.post("", response_model=InteractionResponse, status_code=status.HTTP_201_CREATED)
async def create_interaction(
    body: InteractionCreate,
    db: AsyncSession = Depends(get_db),
    updater: InterestProfileUpdater = Depends(get_profile_updater),
    config: RankingConfig = Depends(get_ranking_config),
):
    with tracer.start_as_current_span("create_interaction") as span:
        span.set_attribute("user.id", body.user_id)
        span.set_attribute("interaction.type", body.type)

        if not await user_exists(db, body.user_id):
            raise HTTPException(status_code=404, detail="User not found")
        post = await get_post(db, body.post_id)
        if not post:
            raise HTTPException(status_code=404, detail="Post not found")

        if body.type in ATTRIBUTED_TO_ORIGINAL:
            post = await find_original_post(db, post, max_hops=config.max_repost_hops)
        span.set_attribute("post.id", post.post_id)

        interaction = await log_interaction(db, body.user_id, post.post_id, body.type)
        INTERACTIONS_TOTAL.labels(
            type=body.type if body.type in TRACKED_TYPES else "other"
        ).inc()

        profile_updated = False
        try:
            updated = await updater.record(db, body.user_id, post.post_id, body.type)
            profile_updated = updated is not None
        except Exception as exc:
            logger.warning(
                "Interest profile update failed for user %s on %s: %s",
                body.user_id, post.post_id, exc,
            )
            INTEREST_UPDATE_ERRORS_TOTAL.inc()

        try:
            await publish_interaction(
                interaction.interaction_id, body.user_id, post.post_id, body.type
            )
        except Exception as exc:
            logger.warning("Interaction event not published: %s", exc)
            INTERACTION_PUBLISH_ERRORS_TOTAL.inc()

        logger.info(
            "Interaction %s: %s %s %s",
            interaction.interaction_id, body.user_id, body.type, post.post_id,
        )
        return InteractionResponse(
            interaction_id=interaction.interaction_id,
            user_id=interaction.user_id,
            post_id=interaction.post_id,
            type=body.type,
            created_at=interaction.created_at,
            profile_updated=profile_updated,
        )


@router.get("/interests/{user_id}", response_model=InterestProfileResponse)
async def get_interests(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    config: RankingConfig = Depends(get_ranking_config),
):
    if not await user_exists(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")

    profile = await get_interest_profile(user_id)
    ranked = top_tags(profile, len(profile))
    return InterestProfileResponse(
        user_id=user_id,
        tags=[TagWeight(tag=t, weight=w) for t, w in ranked.items()],
        top_tags=list(top_tags(profile, config.interest_top_tags)),
    )
