"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
Ranking scores never leave the service: no response carries them.
"""
from datetime import datetime
from typing import Annotated, Optional
from pydantic import BaseModel, Field

# Free-form: types without a configured weight count 1 toward interests
InteractionType = Annotated[str, Field(min_length=1, max_length=16)]


# ──────────────────────────── Feed ────────────────────────────────────────

class AuthorSummary(BaseModel):
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True


class FeedPost(BaseModel):
    """A post as served in a feed, with a lightweight author summary."""
    post_id: str
    user_id: str
    author: Optional[AuthorSummary] = None
    type: str
    content: Optional[str] = None
    media_url: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    like_count: int = 0
    repost_count: int = 0
    comment_count: int = 0
    repost_of_id: Optional[str] = None
    community_id: Optional[str] = None
    created_at: datetime


class FeedPage(BaseModel):
    items: list[FeedPost]
    page: int
    limit: int
    total: int
    has_more: bool = Field(alias="hasMore")

    class Config:
        populate_by_name = True


# ──────────────────────────── Interactions ────────────────────────────────

class InteractionCreate(BaseModel):
    user_id: str
    post_id: str
    type: InteractionType


class InteractionResponse(BaseModel):
    interaction_id: str
    user_id: str
    # The post the interaction was attributed to (the original, for
    # likes and reposts of a repost)
    post_id: str
    type: InteractionType
    created_at: datetime
    profile_updated: bool


class TagWeight(BaseModel):
    tag: str
    weight: float


class InterestProfileResponse(BaseModel):
    user_id: str
    tags: list[TagWeight]
    top_tags: list[str]
