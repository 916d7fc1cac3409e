"""User-owned state: preferences and saved items.

Both are persisted by storage.Storage and mirrored into the dashboard
state. A SavedItem copies the display fields of whatever was saved and
refers back to the original entity by id only.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from models.creative import CreativeContent, creative_summary, creative_title
from models.crypto import CryptoAsset
from models.news import NewsItem
from models.tool import AITool


class CategoryToggles(BaseModel):
    ai_news: bool = True
    startup_news: bool = True
    crypto: bool = True
    creative: bool = True


class SourceLists(BaseModel):
    trusted: list[str] = Field(default_factory=list)
    blocked: list[str] = Field(default_factory=list)


class NotificationSettings(BaseModel):
    new_content: bool = True
    price_alerts: bool = False


class UserPreferences(BaseModel):
    """Per-client preferences, created with these defaults on first load."""

    theme: Literal["light", "dark"] = "dark"
    refresh_frequency: Literal["hourly", "daily", "weekly"] = "daily"
    categories: CategoryToggles = Field(default_factory=CategoryToggles)
    sources: SourceLists = Field(default_factory=SourceLists)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


SavedType = Literal["news", "tool", "crypto", "creative"]
ReadStatus = Literal["read", "unread"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SavedItem(BaseModel):
    """A user-saved copy of any dashboard entity."""

    id: str
    type: SavedType
    title: str
    summary: str = ""
    source: str = ""
    url: str | None = None
    image_url: str | None = None
    date_saved: datetime = Field(default_factory=_now)
    read_status: ReadStatus = "unread"
    section: str

    @classmethod
    def from_news(cls, item: NewsItem, section: str) -> "SavedItem":
        return cls(
            id=item.id,
            type="news",
            title=item.title,
            summary=item.summary,
            source=item.source,
            url=item.url,
            image_url=item.image_url,
            section=section,
        )

    @classmethod
    def from_tool(cls, tool: AITool) -> "SavedItem":
        return cls(
            id=tool.id,
            type="tool",
            title=tool.name,
            summary=tool.description,
            source=tool.category.value,
            url=tool.url,
            section="ai-tools",
        )

    @classmethod
    def from_crypto(cls, asset: CryptoAsset) -> "SavedItem":
        return cls(
            id=asset.id,
            type="crypto",
            title=f"{asset.name} ({asset.symbol})",
            summary=f"Grade {asset.buy_grade}: {asset.grade_reasoning}",
            source="CoinGecko",
            section="crypto-data",
        )

    @classmethod
    def from_creative(cls, item: CreativeContent) -> "SavedItem":
        return cls(
            id=item.id,
            type="creative",
            title=creative_title(item),
            summary=creative_summary(item),
            source=getattr(item, "source", None) or item.category,
            url=getattr(item, "url", None),
            image_url=getattr(item, "image_url", None),
            section="creative-content",
        )
