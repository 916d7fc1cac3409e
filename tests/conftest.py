"""Shared fixtures: in-memory storage, test config and model builders."""

from datetime import datetime, timedelta, timezone

import pytest

from config import Config
from models.crypto import CryptoAsset
from models.news import NewsCategory, NewsItem
from models.tool import AITool, ToolCategory
from storage import Storage

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance_hours(self, hours: float) -> None:
        self.now += int(hours * 60 * 60 * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(clock):
    store = Storage(":memory:", clock=clock)
    yield store
    store.close()


@pytest.fixture
def config(tmp_path):
    return Config(
        storage_path=tmp_path / "test.db",
        log_dir=tmp_path / "log",
        section_timeout=5,
        alerts_file="",
        webhook_url="",
    )


def make_news(
    item_id: str,
    title: str,
    hours_ago: float = 0,
    source: str = "TechCrunch AI",
    category: NewsCategory = NewsCategory.AI,
) -> NewsItem:
    return NewsItem(
        id=item_id,
        title=title,
        summary=f"Summary of {title}",
        source=source,
        url=f"https://example.com/{item_id}",
        published_at=BASE_TIME - timedelta(hours=hours_ago),
        category=category,
    )


def make_asset(
    asset_id: str = "bitcoin",
    market_cap: float = 150e9,
    change_24h: float = 12.0,
    volume_24h: float = 6e9,
    market_cap_rank: int | None = 3,
    price: float = 100.0,
) -> CryptoAsset:
    return CryptoAsset(
        id=asset_id,
        symbol=asset_id[:3].upper(),
        name=asset_id.title(),
        price=price,
        change_24h=change_24h,
        market_cap=market_cap,
        volume_24h=volume_24h,
        market_cap_rank=market_cap_rank,
        last_updated=BASE_TIME,
    )


def make_tool(
    tool_id: str,
    stars: int,
    category: ToolCategory = ToolCategory.TEXT_GENERATION,
) -> AITool:
    return AITool(
        id=tool_id,
        name=tool_id.title(),
        category=category,
        url=f"https://github.com/{tool_id}",
        grades={
            "Barrier to Entry": "B+",
            "Cost": "A",
            "Efficiency": "B",
            "Speed": "A",
            "Community": "B",
        },
        stars=stars,
    )
