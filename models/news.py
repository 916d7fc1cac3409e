"""News item model shared by the feed parser and the search boundary."""

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class NewsCategory(str, Enum):
    """Editorial category of a news item."""

    AI = "AI"
    TECH = "Tech"
    STARTUP = "Startup"
    FUNDING = "Funding"
    RESEARCH = "Research"


class NewsItem(BaseModel):
    """A single news item, normalized from any upstream news source.

    Items are regenerated on every refresh of their section and are only
    persisted when the user saves them (as a SavedItem copy).

    Example:
        >>> item = NewsItem(
        ...     id="venturebeat-ai-0",
        ...     title="New open-weights model tops the leaderboard",
        ...     source="VentureBeat AI",
        ...     url="https://venturebeat.com/ai/...",
        ...     published_at=datetime.now(timezone.utc),
        ...     category=NewsCategory.AI,
        ... )
    """

    id: str = Field(description="Unique item id")
    title: str = Field(description="Headline")
    summary: str = Field(default="", description="Plain-text summary")
    source: str = Field(description="Human-readable source name")
    url: str = Field(default="#", description="Article URL")
    published_at: datetime = Field(description="Publication timestamp (UTC)")
    category: NewsCategory = Field(description="Editorial category")
    author: str | None = None
    read_time: str | None = Field(default=None, description="e.g. '3 min read'")
    tags: list[str] = Field(default_factory=list)
    image_url: str | None = None

    @field_validator("published_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        """Naive timestamps are taken as UTC; aware ones are converted."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def __str__(self) -> str:
        return f"NewsItem({self.id}, '{self.title[:50]}')"


def estimate_read_time(text: str) -> str:
    """Rough reading time at ~200 characters per minute, minimum one minute."""
    minutes = max(1, math.ceil(len(text or "") / 200))
    return f"{minutes} min read"
