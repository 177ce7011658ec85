"""FastAPI dependencies shared by the routers."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from bulletin_feed.config import settings
from bulletin_feed.database import get_sessionmaker
from bulletin_feed.ranking.composer import FeedComposer
from bulletin_feed.ranking.config import RankingConfig
from bulletin_feed.ranking.interests import InterestProfileUpdater

ranking_config = RankingConfig.from_settings(settings)


def get_ranking_config() -> RankingConfig:
    return ranking_config


def get_composer(
    sessions: async_sessionmaker = Depends(get_sessionmaker),
    config: RankingConfig = Depends(get_ranking_config),
) -> FeedComposer:
    return FeedComposer(sessions, config)


def get_profile_updater(
    config: RankingConfig = Depends(get_ranking_config),
) -> InterestProfileUpdater:
    return InterestProfileUpdater(config)
