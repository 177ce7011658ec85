"""Tests for the interest, friend and trending candidate generators."""

import pytest

from bulletin_feed.clients.redis_client import save_interest_profile
from bulletin_feed.ranking.candidates import (
    FriendCandidateGenerator,
    InterestCandidateGenerator,
    TrendingCandidateGenerator,
)
from bulletin_feed.ranking.config import RankingConfig

pytestmark = pytest.mark.asyncio

CONFIG = RankingConfig()


async def test_interest_ranks_heavier_tag_first(seed, sessions, fake_redis):
    """Weights {music: 50, art: 10}: the music post outranks the art post."""
    user = await seed.user("listener")
    author = await seed.user("author")
    art = await seed.post(author, tags=["art"])
    music = await seed.post(author, tags=["music"])
    await save_interest_profile(user, {"music": 50, "art": 10})

    async with sessions() as db:
        candidates = await InterestCandidateGenerator(CONFIG).generate(db, user)

    assert [c.post_id for c in candidates] == [music, art]
    assert candidates[0].score == pytest.approx(65.0, abs=0.01)
    assert candidates[1].score == pytest.approx(25.0, abs=0.01)
    assert {c.source for c in candidates} == {"interest"}


async def test_interest_without_profile_is_empty(seed, sessions, fake_redis):
    user = await seed.user("newcomer")
    author = await seed.user("author")
    await seed.post(author, tags=["music"])

    async with sessions() as db:
        assert await InterestCandidateGenerator(CONFIG).generate(db, user) == []


async def test_interest_respects_window_and_top_tags(seed, sessions, fake_redis):
    user = await seed.user("listener")
    author = await seed.user("author")
    await seed.post(author, tags=["music"], hours_ago=22 * 24)
    fresh = await seed.post(author, tags=["music"], hours_ago=2)
    await seed.post(author, tags=["knitting"])
    await save_interest_profile(user, {"music": 30, "knitting": 1})

    config = RankingConfig(interest_top_tags=1)
    async with sessions() as db:
        candidates = await InterestCandidateGenerator(config).generate(db, user)

    assert [c.post_id for c in candidates] == [fresh]


async def test_interest_counts_each_matching_tag(seed, sessions, fake_redis):
    user = await seed.user("listener")
    author = await seed.user("author")
    both = await seed.post(author, tags=["music", "art"], hours_ago=48)
    await save_interest_profile(user, {"music": 50, "art": 10})

    async with sessions() as db:
        (candidate,) = await InterestCandidateGenerator(CONFIG).generate(db, user)

    assert candidate.post_id == both
    assert candidate.score == pytest.approx(60.0)


async def test_friend_generator_without_friends_is_empty(seed, sessions):
    loner = await seed.user("loner")
    await seed.post(loner)

    async with sessions() as db:
        assert await FriendCandidateGenerator(CONFIG).generate(db, loner) == []


async def test_friend_generator_includes_self_and_accepted_friends(seed, sessions):
    me = await seed.user("me")
    friend = await seed.user("friend")
    stranger = await seed.user("stranger")
    pending = await seed.user("pending")
    await seed.friends(friend, me)
    await seed.friends(me, pending, status="pending")

    mine = await seed.post(me, hours_ago=3)
    theirs = await seed.post(friend, hours_ago=1)
    await seed.post(friend, hours_ago=5 * 24)
    await seed.post(stranger)
    await seed.post(pending)

    async with sessions() as db:
        candidates = await FriendCandidateGenerator(CONFIG).generate(db, me)

    assert [c.post_id for c in candidates] == [theirs, mine]
    assert candidates[0].score == pytest.approx(23.0, abs=0.01)


async def test_friend_generator_rewards_engagement(seed, sessions):
    me = await seed.user("me")
    friend = await seed.user("friend")
    await seed.friends(me, friend)
    quiet = await seed.post(friend, hours_ago=1)
    busy = await seed.post(friend, hours_ago=1, likes=2, comments=3)

    async with sessions() as db:
        candidates = await FriendCandidateGenerator(CONFIG).generate(db, me)

    assert [c.post_id for c in candidates] == [busy, quiet]


async def test_trending_only_scores_originals_in_window(seed, sessions):
    author = await seed.user("author")
    other = await seed.user("other")
    hot = await seed.post(author, likes=4, hours_ago=1)
    warm = await seed.post(author, likes=1, hours_ago=1)
    await seed.repost(other, hot)
    await seed.post(author, likes=4, hours_ago=5 * 24)

    async with sessions() as db:
        candidates = await TrendingCandidateGenerator(CONFIG, window_days=4).generate(db)

    assert [c.post_id for c in candidates] == [hot, warm]
    assert candidates[0].score > candidates[1].score


async def test_trending_threshold_filters_weak_posts(seed, sessions):
    author = await seed.user("author")
    hot = await seed.post(author, likes=4)
    await seed.post(author, likes=1)
    await seed.post(author)

    async with sessions() as db:
        candidates = await TrendingCandidateGenerator(
            CONFIG, window_days=4, min_score=CONFIG.trending_min_score
        ).generate(db)

    assert [c.post_id for c in candidates] == [hot]
    assert all(c.score >= 5 for c in candidates)


async def test_trending_window_differs_per_call_site(seed, sessions):
    author = await seed.user("author")
    older = await seed.post(author, likes=1, hours_ago=10 * 24)

    async with sessions() as db:
        short = await TrendingCandidateGenerator(
            CONFIG, window_days=CONFIG.trending_window_days
        ).generate(db)
        long = await TrendingCandidateGenerator(
            CONFIG, window_days=CONFIG.for_you_trending_window_days
        ).generate(db)

    assert short == []
    assert [c.post_id for c in long] == [older]
