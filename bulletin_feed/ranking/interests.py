"""
Interest profile updates.

Every interaction adds a fixed per-type weight to each tag of the post the
user engaged with:

    view 0.5 · like 3 · repost 4 · comment 4 · anything else 1

Weights are clamped at 200 per tag and never decrease. There is no time
decay; a tag the user stopped caring about keeps its weight.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bulletin_feed.clients.redis_client import update_interest_weights
from bulletin_feed.ranking.config import RankingConfig
from bulletin_feed.repository import get_post, user_exists

logger = logging.getLogger(__name__)


def apply_interaction(
    current: dict[str, float],
    tags: list[str],
    interaction_type: str,
    config: RankingConfig,
) -> dict[str, float]:
    """New weights for tags after one interaction (pure, clamp-on-write)."""
    increment = config.interaction_weight(interaction_type)
    return {
        tag: min(config.max_tag_weight, current.get(tag, 0.0) + increment)
        for tag in tags
    }


class InterestProfileUpdater:
    def __init__(self, config: RankingConfig) -> None:
        self.config = config

    async def record(
        self,
        db: AsyncSession,
        user_id: str,
        post_id: str,
        interaction_type: str,
    ) -> Optional[dict[str, float]]:
        """
        Bump the user's weight for every tag on the post.

        Returns the updated tag weights, or None when there was nothing to do
        (unknown user, unknown post, untagged post).
        """
        if not await user_exists(db, user_id):
            logger.debug("Interest update skipped: unknown user %s", user_id)
            return None
        post = await get_post(db, post_id)
        if post is None:
            logger.debug("Interest update skipped: unknown post %s", post_id)
            return None
        tags = sorted(set(post.tags))
        if not tags:
            return None

        updated = await update_interest_weights(
            user_id,
            tags,
            lambda current: apply_interaction(current, tags, interaction_type, self.config),
        )
        logger.debug(
            "Interest profile for %s updated by %s on %s: %s",
            user_id, interaction_type, post_id, updated,
        )
        return updated
