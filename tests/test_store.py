"""Tests for the dashboard reducer and the refresh sequence."""

import asyncio
import json
from dataclasses import FrozenInstanceError, replace
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from clients.creative import CREATIVE_LIBRARY, CreativeClient
from models.preferences import CategoryToggles, NotificationSettings, SavedItem, UserPreferences
from models.result import FetchResult
from models.tool import ToolCategory
from store import (
    AddSavedItem,
    DashboardState,
    DashboardStore,
    RemoveSavedItem,
    Section,
    SetContent,
    SetError,
    SetLoading,
    UpdateReadStatus,
    error_message,
    reduce,
    timeout_message,
)
from tests.conftest import make_asset, make_news, make_tool


def saved(item_id: str, title: str = "Title") -> SavedItem:
    return SavedItem(id=item_id, type="news", title=title, section="ai-news")


class TestReducer:
    def test_returns_new_state(self):
        state = DashboardState()
        after = reduce(state, SetLoading(Section.AI_NEWS, True))

        assert after.status[Section.AI_NEWS].loading is True
        assert state.status[Section.AI_NEWS].loading is False
        assert after.status[Section.CRYPTO_DATA] is state.status[Section.CRYPTO_DATA]

    def test_state_is_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DashboardState().ai_news = ()

    def test_set_error_and_clear(self):
        state = reduce(DashboardState(), SetError(Section.AI_NEWS, "Failed to load AI news"))
        assert state.status[Section.AI_NEWS].error == "Failed to load AI news"
        assert reduce(state, SetError(Section.AI_NEWS, None)).status[Section.AI_NEWS].error is None

    def test_set_content_replaces_wholesale(self):
        state = reduce(DashboardState(), SetContent(Section.AI_NEWS, (make_news("a", "One"),)))
        state = reduce(state, SetContent(Section.AI_NEWS, (make_news("b", "Two"),)))
        assert [item.id for item in state.ai_news] == ["b"]

    def test_tools_grouped_by_category(self):
        tools = (
            make_tool("a", 10),
            make_tool("b", 5, ToolCategory.PRODUCTIVITY),
            make_tool("c", 1),
        )
        state = reduce(DashboardState(), SetContent(Section.AI_TOOLS, tools, emerging=(make_tool("e", 1),)))

        assert [tool.id for tool in state.ai_tools["Text Generation"]] == ["a", "c"]
        assert [tool.id for tool in state.ai_tools["Productivity"]] == ["b"]
        assert [tool.id for tool in state.emerging_tools] == ["e"]
        assert len(state.section_items(Section.AI_TOOLS)) == 3

    def test_saved_items_prepend_and_replace(self):
        state = reduce(DashboardState(), AddSavedItem(saved("a", "Old")))
        state = reduce(state, AddSavedItem(saved("b")))
        state = reduce(state, AddSavedItem(saved("a", "New")))

        assert [item.id for item in state.saved_items] == ["b", "a"]
        assert state.saved_items[1].title == "New"

    def test_remove_and_read_status(self):
        state = reduce(DashboardState(), AddSavedItem(saved("a")))
        state = reduce(state, UpdateReadStatus("a", "read"))
        assert state.saved_items[0].read_status == "read"
        assert reduce(state, RemoveSavedItem("a")).saved_items == ()

    def test_unknown_action_rejected(self):
        with pytest.raises(TypeError):
            reduce(DashboardState(), object())


def ok(items, source="RSS"):
    return FetchResult(items=list(items), source=source)


@pytest.fixture
def clients():
    news = SimpleNamespace(
        fetch_ai_news=AsyncMock(return_value=ok([make_news("ai-1", "Model release")])),
        fetch_startup_news=AsyncMock(return_value=ok([make_news("st-1", "Seed round closes")])),
        fetch_crypto_news=AsyncMock(return_value=ok([make_news("cr-1", "Bitcoin ETF flows")])),
    )
    prices = SimpleNamespace(fetch_top_assets=AsyncMock(return_value=ok([make_asset()], "CoinGecko")))
    repos = SimpleNamespace(
        fetch_tools=AsyncMock(return_value=ok([make_tool("ollama-ollama", 90_000)], "GitHub")),
        discover_emerging_tools=AsyncMock(return_value=ok([make_tool("emerging", 10)], "Curated")),
    )
    return SimpleNamespace(news=news, prices=prices, repos=repos, creative=CreativeClient())


@pytest.fixture
def store(clients, storage, config):
    return DashboardStore(clients.news, clients.prices, clients.repos, clients.creative, storage, config)


class TestRefreshSequence:
    @pytest.mark.asyncio
    async def test_success_sets_content_and_timestamp(self, store, clients):
        assert await store.refresh_ai_news() is True

        status = store.state.status[Section.AI_NEWS]
        assert [item.id for item in store.state.ai_news] == ["ai-1"]
        assert status.error is None
        assert status.loading is False
        assert status.last_updated == clients.news.fetch_ai_news.return_value.last_updated
        clients.news.fetch_ai_news.assert_awaited_once_with(blocked=[])

    @pytest.mark.asyncio
    async def test_success_is_cached(self, store, storage):
        await store.refresh_crypto_news()
        cached = storage.get_cached_content("crypto-news")
        assert [item["id"] for item in cached["items"]] == ["cr-1"]

    @pytest.mark.asyncio
    async def test_loading_visible_during_fetch(self, store, clients):
        seen = {}

        async def fetch(blocked):
            status = store.state.status[Section.AI_NEWS]
            seen.update(loading=status.loading, error=status.error)
            return ok([make_news("x", "Seen")])

        store.dispatch(SetError(Section.AI_NEWS, "stale"))
        clients.news.fetch_ai_news.side_effect = fetch
        await store.refresh_ai_news()

        assert seen == {"loading": True, "error": None}

    @pytest.mark.asyncio
    async def test_exception_sets_error(self, store, clients, caplog):
        clients.news.fetch_ai_news.side_effect = RuntimeError("connection reset")

        assert await store.refresh_ai_news() is False
        status = store.state.status[Section.AI_NEWS]
        assert status.error == "Failed to load AI news"
        assert status.loading is False
        assert status.last_updated is None
        assert "Refresh failed" in caplog.text

    @pytest.mark.asyncio
    async def test_fallback_sets_content_and_error(self, store, clients, storage):
        clients.prices.fetch_top_assets.return_value = FetchResult.fallback([make_asset()], "HTTP 429")

        assert await store.refresh_crypto_data() is False
        status = store.state.status[Section.CRYPTO_DATA]
        assert len(store.state.crypto_data) == 1
        assert status.error == error_message(Section.CRYPTO_DATA)
        assert status.last_updated is None
        assert storage.get_cached_content("crypto-data") is None

    @pytest.mark.asyncio
    async def test_timeout_sets_timeout_message(self, clients, storage, config):
        async def hang(blocked):
            await asyncio.sleep(5)

        clients.news.fetch_ai_news.side_effect = hang
        store = DashboardStore(
            clients.news, clients.prices, clients.repos, clients.creative, storage,
            replace(config, section_timeout=0.05),
        )

        assert await store.refresh_ai_news() is False
        status = store.state.status[Section.AI_NEWS]
        assert status.error == "AI news refresh timed out"
        assert status.error == timeout_message(Section.AI_NEWS)
        assert status.loading is False

    @pytest.mark.asyncio
    async def test_blocked_sources_passed_through(self, store, clients):
        prefs = UserPreferences()
        prefs.sources.blocked.append("Spam Daily")
        store.update_preferences(prefs)
        await store.refresh_startup_news()
        clients.news.fetch_startup_news.assert_awaited_once_with(blocked=["Spam Daily"])


class TestRefreshAll:
    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, store, clients):
        clients.news.fetch_ai_news.side_effect = RuntimeError("boom")

        state = await store.refresh_all()

        assert state.status[Section.AI_NEWS].error == "Failed to load AI news"
        assert state.ai_news == ()
        assert len(state.crypto_data) == 1
        assert state.status[Section.CRYPTO_DATA].error is None
        assert len(state.creative_content) == len(CREATIVE_LIBRARY)
        assert all(not status.loading for status in state.status.values())

    @pytest.mark.asyncio
    async def test_toggles_do_not_limit_refresh_all(self, store, clients):
        store.update_preferences(UserPreferences(categories=CategoryToggles(crypto=False)))

        await store.refresh_all()

        clients.prices.fetch_top_assets.assert_awaited_once()
        clients.news.fetch_crypto_news.assert_awaited_once()
        clients.news.fetch_startup_news.assert_awaited_once()
        clients.news.fetch_ai_news.assert_awaited_once()
        clients.repos.fetch_tools.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_section_by_name(self, store):
        assert await store.refresh_section("creative-content") is True
        with pytest.raises(ValueError):
            await store.refresh_section("weather")


class TestToolsRefresh:
    @pytest.mark.asyncio
    async def test_emerging_and_previous_ranks(self, store, clients, config):
        await store.refresh_ai_tools()
        clients.repos.fetch_tools.assert_awaited_with(limit=config.tools_limit, previous={})
        assert [tool.id for tool in store.state.emerging_tools] == ["emerging"]

        await store.refresh_ai_tools()
        clients.repos.fetch_tools.assert_awaited_with(
            limit=config.tools_limit, previous={"ollama-ollama": 1},
        )


class TestNotifications:
    @pytest.mark.asyncio
    async def test_price_alerts_written(self, clients, storage, config, tmp_path):
        alerts = tmp_path / "alerts.jsonl"
        store = DashboardStore(
            clients.news, clients.prices, clients.repos, clients.creative, storage,
            replace(config, alerts_file=str(alerts)),
        )
        store.update_preferences(UserPreferences(notifications=NotificationSettings(price_alerts=True)))

        await store.refresh_crypto_data()

        event = json.loads(alerts.read_text().splitlines()[0])
        assert event["type"] == "price_alert"
        assert event["id"] == "bitcoin"

    @pytest.mark.asyncio
    async def test_new_content_only_after_first_load(self, clients, storage, config, tmp_path):
        alerts = tmp_path / "alerts.jsonl"
        store = DashboardStore(
            clients.news, clients.prices, clients.repos, clients.creative, storage,
            replace(config, alerts_file=str(alerts)),
        )

        await store.refresh_ai_news()
        assert not alerts.exists()

        clients.news.fetch_ai_news.return_value = ok([
            make_news("ai-2", "Brand new story"),
            make_news("ai-1", "Model release"),
        ])
        await store.refresh_ai_news()

        event = json.loads(alerts.read_text().splitlines()[0])
        assert event["type"] == "new_content"
        assert event["section"] == "ai-news"
        assert [item["id"] for item in event["items"]] == ["ai-2"]


class TestUserState:
    def test_save_writes_through(self, store, storage):
        assert store.save(saved("a")) is True
        assert store.is_saved("a")
        assert storage.is_article_saved("a")

        store.remove("a")
        assert not store.is_saved("a")
        assert not storage.is_article_saved("a")

    def test_failed_write_still_updates_state(self, store, storage):
        storage.close()
        assert store.save(saved("a")) is False
        assert store.is_saved("a")

    def test_mark_read(self, store, storage):
        store.save(saved("a"))
        store.mark_read("a")
        assert store.state.saved_items[0].read_status == "read"
        assert storage.get_saved_articles()[0].read_status == "read"

    def test_preferences_persisted(self, store, storage):
        store.update_preferences(UserPreferences(theme="light"))
        assert store.state.preferences.theme == "light"
        assert storage.get_user_preferences().theme == "light"


class TestLoad:
    @pytest.mark.asyncio
    async def test_restores_cached_sections(self, store, clients, storage, config):
        store.save(saved("a"))
        await store.refresh_ai_news()
        await store.refresh_creative_content()
        await store.refresh_ai_tools()
        expected = store.state

        fresh = DashboardStore(clients.news, clients.prices, clients.repos, clients.creative, storage, config)
        state = fresh.load()

        assert state.ai_news == expected.ai_news
        assert state.creative_content == expected.creative_content
        assert state.emerging_tools == expected.emerging_tools
        assert state.status[Section.AI_NEWS].last_updated == expected.status[Section.AI_NEWS].last_updated
        assert [item.id for item in state.saved_items] == ["a"]
        assert state.crypto_data == ()

    def test_unreadable_cache_skipped(self, store, storage):
        storage.cache_content("ai-news", {"items": [{"id": "x"}], "last_updated": "2024-01-01T00:00:00"})
        state = store.load()
        assert state.ai_news == ()
        assert state.status[Section.AI_NEWS].last_updated is None


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_shape(self, store):
        await store.refresh_all()
        snap = store.snapshot(titles=2)

        assert set(snap["sections"]) == {section.value for section in Section}
        assert snap["sections"]["ai-news"]["top"] == ["Model release"]
        assert snap["sections"]["ai-tools"]["emerging"] == ["Emerging"]
        assert snap["sections"]["creative-content"]["top"][1] == "Quote by Robert Greene"
        assert json.dumps(snap)
