"""Pytest fixtures for the bulletin feed test suite."""

import os

# Must be set before bulletin_feed is imported: local SQLite engine,
# no Kafka producer, no OTLP exporter.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("KAFKA_ENABLED", "false")
os.environ.setdefault("OTEL_ENABLED", "false")

from datetime import timedelta
from typing import Iterable, Optional

import pytest
from fakeredis import FakeAsyncRedis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bulletin_feed.clients import redis_client
from bulletin_feed.database import Base, get_sessionmaker
from bulletin_feed.models import (
    Comment,
    CommunityMembership,
    Friendship,
    Post,
    PostLike,
    User,
    utcnow,
)


@pytest.fixture(scope="function")
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_feed.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def sessions(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def fake_redis(monkeypatch):
    """Swap the module-level Redis client for an in-process fake."""
    client = FakeAsyncRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "_redis", client)
    yield client
    await client.aclose()


@pytest.fixture
async def test_client(sessions, fake_redis):
    """httpx AsyncClient bound to the app, with the test database wired in."""
    from httpx import ASGITransport, AsyncClient
    from bulletin_feed.main import app

    app.dependency_overrides[get_sessionmaker] = lambda: sessions
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class Seeder:
    """Writes users, posts and edges straight into the test database."""

    def __init__(self, sessions: async_sessionmaker) -> None:
        self.sessions = sessions
        self._likers: list[str] = []

    async def user(self, username: str, display_name: Optional[str] = None) -> str:
        async with self.sessions() as db:
            user = User(username=username, display_name=display_name or username.title())
            db.add(user)
            await db.commit()
            return user.user_id

    async def _liker_ids(self, n: int) -> list[str]:
        while len(self._likers) < n:
            self._likers.append(await self.user(f"liker_{len(self._likers)}"))
        return self._likers[:n]

    async def post(
        self,
        author_id: str,
        *,
        hours_ago: float = 0.0,
        tags: Iterable[str] = (),
        likes: int = 0,
        comments: int = 0,
        repost_of: Optional[str] = None,
        community_id: Optional[str] = None,
        approved: bool = True,
        content: str = "hello",
    ) -> str:
        liker_ids = await self._liker_ids(likes)
        async with self.sessions() as db:
            post = Post(
                user_id=author_id,
                type="text",
                content=content,
                created_at=utcnow() - timedelta(hours=hours_ago),
                repost_of_id=repost_of,
                community_id=community_id,
                approved=approved,
            )
            post.tags = list(tags)
            db.add(post)
            await db.flush()
            for liker_id in liker_ids:
                db.add(PostLike(user_id=liker_id, post_id=post.post_id))
            for i in range(comments):
                db.add(Comment(post_id=post.post_id, user_id=author_id, text=f"comment {i}"))
            await db.commit()
            return post.post_id

    async def repost(self, user_id: str, original_id: str, *, hours_ago: float = 0.0) -> str:
        return await self.post(user_id, hours_ago=hours_ago, repost_of=original_id)

    async def friends(self, a: str, b: str, status: str = "accepted") -> None:
        async with self.sessions() as db:
            db.add(Friendship(requester_id=a, recipient_id=b, status=status))
            await db.commit()

    async def join(self, user_id: str, community_id: str) -> None:
        async with self.sessions() as db:
            db.add(CommunityMembership(community_id=community_id, user_id=user_id))
            await db.commit()


@pytest.fixture
def seed(sessions):
    return Seeder(sessions)
