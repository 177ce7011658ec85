"""
Tuning constants for feed ranking.

Everything lives on one frozen dataclass that is handed to each generator and
to the composer at construction, so a deployment (or a test) can swap in its
own values without touching module state.

The trending windows are separate per call site: the For You
bucket looks back 21 days while My Mix and the standalone trending endpoint
look back 4.
"""
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DEFAULT_INTERACTION_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "view": 0.5,
        "like": 3.0,
        "repost": 4.0,
        "comment": 4.0,
    }
)


def _slots(total: int, share: float) -> int:
    # floor, tolerant of float noise (50 * 0.3 must give 15)
    return math.floor(total * share + 1e-9)


@dataclass(frozen=True)
class RankingConfig:
    # ── Interest generator ───────────────────────────────────────────────
    interest_window_days: int = 21
    interest_top_tags: int = 15
    interest_candidate_limit: int = 500
    interest_recency_hours: float = 15.0

    # ── Friend generator ─────────────────────────────────────────────────
    friend_window_days: int = 4
    friend_candidate_limit: int = 200
    friend_recency_hours: float = 24.0

    # ── Trending generator ───────────────────────────────────────────────
    for_you_trending_window_days: int = 21
    trending_window_days: int = 4
    my_mix_trending_window_days: int = 4
    trending_candidate_limit: int = 500
    trending_like_weight: float = 3.0
    trending_repost_weight: float = 2.0
    trending_comment_weight: float = 2.0
    trending_view_weight: float = 0.0
    trending_age_offset_hours: float = 2.0
    trending_decay_exponent: float = 1.2
    trending_min_score: float = 5.0

    # ── For You blend ────────────────────────────────────────────────────
    for_you_total: int = 50
    interest_share: float = 0.5
    friend_share: float = 0.3
    # A slot count, not a share: 15 of the 50
    trending_slots: int = 15
    generator_timeout_seconds: float = 2.0

    # ── My Mix ───────────────────────────────────────────────────────────
    my_mix_window_days: int = 4
    my_mix_source_limit: int = 200

    # ── Pagination ───────────────────────────────────────────────────────
    default_page_size: int = 10
    max_page_size: int = 50

    # ── Interest profile ─────────────────────────────────────────────────
    interaction_weights: Mapping[str, float] = field(
        default_factory=lambda: DEFAULT_INTERACTION_WEIGHTS
    )
    default_interaction_weight: float = 1.0
    max_tag_weight: float = 200.0

    # ── Repost chains ────────────────────────────────────────────────────
    max_repost_hops: int = 32

    @property
    def interest_target(self) -> int:
        return _slots(self.for_you_total, self.interest_share)

    @property
    def friend_target(self) -> int:
        return _slots(self.for_you_total, self.friend_share)

    @property
    def trending_target(self) -> int:
        return min(self.trending_slots, self.for_you_total)

    def interaction_weight(self, interaction_type: str) -> float:
        return self.interaction_weights.get(
            interaction_type, self.default_interaction_weight
        )

    @classmethod
    def from_settings(cls, settings) -> "RankingConfig":
        return cls(
            for_you_total=settings.for_you_total,
            generator_timeout_seconds=settings.ranking_generator_timeout_seconds,
        )
