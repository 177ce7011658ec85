"""
Pure scoring helpers — no I/O, no framework imports.

Score formulas:
  interest  = Σ weight(tag ∈ post.tags ∩ top_tags)
              + max(0, 15 − age_h) + ln(1 + likes + reposts)
  friend    = max(0, 24 − age_h) + ln(1 + likes + reposts + comments)
  trending  = (3·likes + 2·reposts + 2·comments + 0·views) / (age_h + 2) ^ 1.2

Timestamps are naive UTC, as stored by the ORM.
"""
import math
import random
from datetime import datetime
from typing import Iterable, MutableSequence, Optional, TypeVar

from bulletin_feed.ranking.config import RankingConfig

T = TypeVar("T")


def age_hours(created_at: datetime, now: datetime) -> float:
    """Hours elapsed since created_at, never negative."""
    return max(0.0, (now - created_at).total_seconds() / 3600.0)


def recency_bonus(hours: float, taper_hours: float) -> float:
    """Linear taper from taper_hours down to 0; no negative contribution."""
    return max(0.0, taper_hours - hours)


def popularity_bonus(*counts: int) -> float:
    return math.log1p(sum(counts))


def tag_affinity(post_tags: Iterable[str], top_weights: dict[str, float]) -> float:
    """Sum of the user's weight for every post tag that is a top tag."""
    return sum(top_weights[tag] for tag in set(post_tags) if tag in top_weights)


def top_tags(profile: dict[str, float], n: int) -> dict[str, float]:
    """The n highest-weighted tags (ties broken alphabetically)."""
    ranked = sorted(profile.items(), key=lambda item: (-item[1], item[0]))
    return dict(ranked[:n])


def interest_score(
    post_tags: Iterable[str],
    top_weights: dict[str, float],
    created_at: datetime,
    likes: int,
    reposts: int,
    now: datetime,
    config: RankingConfig,
) -> float:
    hours = age_hours(created_at, now)
    return (
        tag_affinity(post_tags, top_weights)
        + recency_bonus(hours, config.interest_recency_hours)
        + popularity_bonus(likes, reposts)
    )


def friend_score(
    created_at: datetime,
    likes: int,
    reposts: int,
    comments: int,
    now: datetime,
    config: RankingConfig,
) -> float:
    hours = age_hours(created_at, now)
    return recency_bonus(hours, config.friend_recency_hours) + popularity_bonus(
        likes, reposts, comments
    )


def trending_score(
    likes: int,
    reposts: int,
    comments: int,
    created_at: datetime,
    now: datetime,
    config: RankingConfig,
    views: int = 0,
) -> float:
    """
    Decayed engagement score.

    The age offset keeps brand-new posts from dividing by ~0; the exponent
    (> 1) makes the decay super-linear, so a post needs steadily more
    engagement to stay above the trending threshold as it ages.
    """
    raw = (
        config.trending_like_weight * likes
        + config.trending_repost_weight * reposts
        + config.trending_comment_weight * comments
        + config.trending_view_weight * views
    )
    hours = abs((now - created_at).total_seconds()) / 3600.0
    return raw / math.pow(hours + config.trending_age_offset_hours, config.trending_decay_exponent)


def fisher_yates_shuffle(
    items: MutableSequence[T], rng: Optional[random.Random] = None
) -> MutableSequence[T]:
    """Shuffle items in place (Fisher–Yates) and return them."""
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items
