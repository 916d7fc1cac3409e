"""Dashboard state: immutable snapshot, pure reducer and the I/O layer.

DashboardState:
    Frozen snapshot of every section's content, the saved items, the
    preferences and a SectionStatus (loading, error, last_updated) for
    each of the six sections.

reduce(state, action):
    Pure transition function over the action dataclasses below. It never
    performs I/O and always returns a new state.

DashboardStore:
    Runs section refreshes against the upstream clients, persists user
    state through Storage and dispatches actions.

Refresh Sequence (per section):
    loading=True -> error=None -> fetch (bounded by SECTION_TIMEOUT)
    -> content or error -> loading=False

    A fallback result sets both content and error. last_updated is only
    stamped, and the content only cached, on a clean success.
    Overlapping refreshes of one section are not serialized: the last
    to finish wins.

Error Handling Strategy:
    - Any exception escaping a client becomes the section error string
    - Timeouts become "<Section> refresh timed out"
    - Storage write failures are logged; in-memory state still changes
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Union

from pydantic import TypeAdapter

from clients.creative import CreativeClient
from clients.news import NewsClient
from clients.prices import PriceClient
from clients.repos import RepositoryClient
from config import Config
from models.creative import CreativeContent, creative_list_adapter, creative_title
from models.crypto import CryptoAsset
from models.news import NewsItem
from models.preferences import ReadStatus, SavedItem, UserPreferences
from models.result import FetchResult
from models.tool import AITool
from notifications import notify_new_content, notify_price_alerts
from observability.tracing import trace_operation
from storage import Storage

logger = logging.getLogger(__name__)


class Section(str, Enum):
    """Independently refreshable slice of the dashboard."""

    AI_NEWS = "ai-news"
    STARTUP_NEWS = "startup-news"
    CRYPTO_NEWS = "crypto-news"
    AI_TOOLS = "ai-tools"
    CRYPTO_DATA = "crypto-data"
    CREATIVE_CONTENT = "creative-content"


NEWS_SECTIONS = (Section.AI_NEWS, Section.STARTUP_NEWS, Section.CRYPTO_NEWS)
CONTENT_SECTIONS = NEWS_SECTIONS + (Section.CREATIVE_CONTENT,)

SECTION_LABELS = {
    Section.AI_NEWS: "AI news",
    Section.STARTUP_NEWS: "startup news",
    Section.CRYPTO_NEWS: "crypto news",
    Section.AI_TOOLS: "AI tools",
    Section.CRYPTO_DATA: "crypto data",
    Section.CREATIVE_CONTENT: "creative content",
}

# Preference toggle governing each section; AI tools has none
SECTION_TOGGLES = {
    Section.AI_NEWS: "ai_news",
    Section.STARTUP_NEWS: "startup_news",
    Section.CRYPTO_NEWS: "crypto",
    Section.CRYPTO_DATA: "crypto",
    Section.CREATIVE_CONTENT: "creative",
}

# State attribute holding each list-shaped section
_SECTION_FIELDS = {
    Section.AI_NEWS: "ai_news",
    Section.STARTUP_NEWS: "startup_news",
    Section.CRYPTO_NEWS: "crypto_news",
    Section.CRYPTO_DATA: "crypto_data",
    Section.CREATIVE_CONTENT: "creative_content",
}

_news_list = TypeAdapter(list[NewsItem])
_tool_list = TypeAdapter(list[AITool])
_asset_list = TypeAdapter(list[CryptoAsset])


def error_message(section: Section) -> str:
    return f"Failed to load {SECTION_LABELS[section]}"


def timeout_message(section: Section) -> str:
    label = SECTION_LABELS[section]
    return f"{label[0].upper()}{label[1:]} refresh timed out"


def section_enabled(preferences: UserPreferences, section: Section) -> bool:
    toggle = SECTION_TOGGLES.get(section)
    return toggle is None or getattr(preferences.categories, toggle)


# === State ===


@dataclass(frozen=True)
class SectionStatus:
    loading: bool = False
    error: str | None = None
    last_updated: datetime | None = None


def _initial_status() -> Mapping[Section, SectionStatus]:
    return {section: SectionStatus() for section in Section}


@dataclass(frozen=True)
class DashboardState:
    """Immutable dashboard snapshot. Collections are tuples."""

    ai_news: tuple[NewsItem, ...] = ()
    startup_news: tuple[NewsItem, ...] = ()
    crypto_news: tuple[NewsItem, ...] = ()
    ai_tools: Mapping[str, tuple[AITool, ...]] = field(default_factory=dict)
    emerging_tools: tuple[AITool, ...] = ()
    crypto_data: tuple[CryptoAsset, ...] = ()
    creative_content: tuple[CreativeContent, ...] = ()
    saved_items: tuple[SavedItem, ...] = ()
    preferences: UserPreferences = field(default_factory=UserPreferences)
    status: Mapping[Section, SectionStatus] = field(default_factory=_initial_status)

    def section_items(self, section: Section) -> tuple:
        if section == Section.AI_TOOLS:
            return tuple(tool for tools in self.ai_tools.values() for tool in tools)
        return getattr(self, _SECTION_FIELDS[section])


# === Actions ===


@dataclass(frozen=True)
class SetLoading:
    section: Section
    loading: bool


@dataclass(frozen=True)
class SetError:
    section: Section
    error: str | None


@dataclass(frozen=True)
class SetContent:
    """Replace a section's content. For AI tools, `emerging` is also replaced."""

    section: Section
    items: tuple
    emerging: tuple = ()


@dataclass(frozen=True)
class SetLastUpdated:
    section: Section
    at: datetime


@dataclass(frozen=True)
class SetSavedItems:
    items: tuple[SavedItem, ...]


@dataclass(frozen=True)
class AddSavedItem:
    item: SavedItem


@dataclass(frozen=True)
class RemoveSavedItem:
    item_id: str


@dataclass(frozen=True)
class UpdateReadStatus:
    item_id: str
    status: ReadStatus


@dataclass(frozen=True)
class UpdatePreferences:
    preferences: UserPreferences


Action = Union[
    SetLoading, SetError, SetContent, SetLastUpdated, SetSavedItems,
    AddSavedItem, RemoveSavedItem, UpdateReadStatus, UpdatePreferences,
]


def _with_status(state: DashboardState, section: Section, **changes: Any) -> DashboardState:
    status = dict(state.status)
    status[section] = replace(status[section], **changes)
    return replace(state, status=status)


def _group_tools(tools: tuple[AITool, ...]) -> dict[str, tuple[AITool, ...]]:
    grouped: dict[str, list[AITool]] = {}
    for tool in tools:
        grouped.setdefault(tool.category.value, []).append(tool)
    return {category: tuple(members) for category, members in grouped.items()}


def reduce(state: DashboardState, action: Action) -> DashboardState:
    """Apply one action. Pure: no I/O, input state is never modified."""
    if isinstance(action, SetLoading):
        return _with_status(state, action.section, loading=action.loading)
    if isinstance(action, SetError):
        return _with_status(state, action.section, error=action.error)
    if isinstance(action, SetLastUpdated):
        return _with_status(state, action.section, last_updated=action.at)
    if isinstance(action, SetContent):
        if action.section == Section.AI_TOOLS:
            return replace(
                state,
                ai_tools=_group_tools(tuple(action.items)),
                emerging_tools=tuple(action.emerging),
            )
        return replace(state, **{_SECTION_FIELDS[action.section]: tuple(action.items)})
    if isinstance(action, SetSavedItems):
        return replace(state, saved_items=tuple(action.items))
    if isinstance(action, AddSavedItem):
        saved = list(state.saved_items)
        for index, existing in enumerate(saved):
            if existing.id == action.item.id:
                saved[index] = action.item
                break
        else:
            saved.insert(0, action.item)
        return replace(state, saved_items=tuple(saved))
    if isinstance(action, RemoveSavedItem):
        return replace(
            state,
            saved_items=tuple(item for item in state.saved_items if item.id != action.item_id),
        )
    if isinstance(action, UpdateReadStatus):
        return replace(state, saved_items=tuple(
            item.model_copy(update={"read_status": action.status}) if item.id == action.item_id else item
            for item in state.saved_items
        ))
    if isinstance(action, UpdatePreferences):
        return replace(state, preferences=action.preferences)
    raise TypeError(f"Unknown action: {type(action).__name__}")


# === Store ===

Fetcher = Callable[[], Awaitable[FetchResult]]


class DashboardStore:
    """Owns the current DashboardState and every operation that changes it.

    Example:
        >>> store = DashboardStore(news, prices, repos, creative, storage, config)
        >>> store.load()
        >>> await store.refresh_all()
        >>> store.state.status[Section.CRYPTO_DATA].error
    """

    def __init__(
        self,
        news: NewsClient,
        prices: PriceClient,
        repos: RepositoryClient,
        creative: CreativeClient,
        storage: Storage,
        config: Config,
    ):
        self.news = news
        self.prices = prices
        self.repos = repos
        self.creative = creative
        self.storage = storage
        self.config = config
        self._state = DashboardState()

    @property
    def state(self) -> DashboardState:
        return self._state

    def dispatch(self, action: Action) -> DashboardState:
        self._state = reduce(self._state, action)
        return self._state

    # === Loading persisted state ===

    def load(self) -> DashboardState:
        """Restore preferences, saved items and unexpired cached section content."""
        self.dispatch(UpdatePreferences(self.storage.get_user_preferences()))
        self.dispatch(SetSavedItems(tuple(self.storage.get_saved_articles())))

        restored = 0
        for section in Section:
            cached = self.storage.get_cached_content(section.value)
            if cached is None:
                continue
            try:
                items, emerging = self._decode_section(section, cached["items"], cached.get("emerging", []))
                updated = datetime.fromisoformat(cached["last_updated"])
            except (KeyError, TypeError, ValueError) as e:
                # ValidationError is a ValueError
                logger.warning("Cached section unreadable | section=%s error=%s", section.value, e)
                continue
            self.dispatch(SetContent(section, items, emerging))
            self.dispatch(SetLastUpdated(section, updated))
            restored += 1

        logger.info(
            "State loaded | saved=%d sections_from_cache=%d",
            len(self._state.saved_items), restored,
        )
        return self._state

    @staticmethod
    def _decode_section(section: Section, items: Any, emerging: Any) -> tuple[tuple, tuple]:
        if section in NEWS_SECTIONS:
            return tuple(_news_list.validate_python(items)), ()
        if section == Section.AI_TOOLS:
            return tuple(_tool_list.validate_python(items)), tuple(_tool_list.validate_python(emerging))
        if section == Section.CRYPTO_DATA:
            return tuple(_asset_list.validate_python(items)), ()
        return tuple(creative_list_adapter.validate_python(items)), ()

    def _cache_section(self, section: Section, items: tuple, emerging: tuple, updated: datetime) -> None:
        if section == Section.CREATIVE_CONTENT:
            encoded = creative_list_adapter.dump_python(list(items), mode="json")
        else:
            encoded = [item.model_dump(mode="json") for item in items]
        payload = {
            "items": encoded,
            "emerging": [tool.model_dump(mode="json") for tool in emerging],
            "last_updated": updated.isoformat(),
        }
        self.storage.cache_content(section.value, payload, self.config.content_cache_hours)

    # === Refresh ===

    async def _refresh(
        self,
        section: Section,
        fetch: Fetcher,
        extra: Fetcher | None = None,
    ) -> FetchResult | None:
        """Run one section refresh through the standard sequence.

        Args:
            section: Section being refreshed
            fetch: Client call producing the section content
            extra: Optional second call run alongside (emerging tools)

        Returns:
            The client's result, or None when the refresh failed
        """
        async def load() -> tuple[FetchResult, tuple]:
            if extra is None:
                return await fetch(), ()
            main, more = await asyncio.gather(fetch(), extra())
            return main, tuple(more.items)

        self.dispatch(SetLoading(section, True))
        self.dispatch(SetError(section, None))
        with trace_operation("refresh_section", {"section": section.value}) as span:
            try:
                result, emerging = await asyncio.wait_for(load(), timeout=self.config.section_timeout)
                self.dispatch(SetContent(section, tuple(result.items), emerging))
                if result.error:
                    self.dispatch(SetError(section, error_message(section)))
                else:
                    self.dispatch(SetLastUpdated(section, result.last_updated))
                    self._cache_section(section, tuple(result.items), emerging, result.last_updated)
            except asyncio.TimeoutError:
                logger.error("Refresh timed out | section=%s timeout=%ds", section.value, self.config.section_timeout)
                self.dispatch(SetError(section, timeout_message(section)))
                span["outcome"] = "timeout"
                return None
            except Exception as e:
                logger.error("Refresh failed | section=%s error=%s", section.value, e, exc_info=True)
                self.dispatch(SetError(section, error_message(section)))
                span["outcome"] = "error"
                return None
            finally:
                self.dispatch(SetLoading(section, False))

            span["items"] = len(result.items)
            span["source"] = result.source
            if result.error:
                logger.warning(
                    "Refresh served fallback | section=%s source=%s error=%s",
                    section.value, result.source, result.error,
                )
                span["outcome"] = "fallback"
            else:
                logger.info(
                    "Refresh complete | section=%s items=%d source=%s",
                    section.value, len(result.items), result.source,
                )
                span["outcome"] = "ok"
            return result

    async def _refresh_news(self, section: Section, fetch: Callable[..., Awaitable[FetchResult]]) -> bool:
        before = {item.id for item in self._state.section_items(section)}
        blocked = list(self._state.preferences.sources.blocked)
        result = await self._refresh(section, lambda: fetch(blocked=blocked))
        if result is None or result.error:
            return False

        if self._state.preferences.notifications.new_content and before:
            fresh = [item for item in result.items if item.id not in before]
            await notify_new_content(section.value, fresh, self.config)
        return True

    async def refresh_ai_news(self) -> bool:
        return await self._refresh_news(Section.AI_NEWS, self.news.fetch_ai_news)

    async def refresh_startup_news(self) -> bool:
        return await self._refresh_news(Section.STARTUP_NEWS, self.news.fetch_startup_news)

    async def refresh_crypto_news(self) -> bool:
        return await self._refresh_news(Section.CRYPTO_NEWS, self.news.fetch_crypto_news)

    async def refresh_ai_tools(self) -> bool:
        previous = {tool.id: tool.rank for tool in self._state.section_items(Section.AI_TOOLS)}
        result = await self._refresh(
            Section.AI_TOOLS,
            lambda: self.repos.fetch_tools(limit=self.config.tools_limit, previous=previous),
            extra=self.repos.discover_emerging_tools,
        )
        return result is not None and not result.error

    async def refresh_crypto_data(self) -> bool:
        result = await self._refresh(
            Section.CRYPTO_DATA,
            lambda: self.prices.fetch_top_assets(limit=self.config.crypto_limit),
        )
        if result is None or result.error:
            return False
        if self._state.preferences.notifications.price_alerts:
            await notify_price_alerts(result.items, self.config)
        return True

    async def refresh_creative_content(self) -> bool:
        result = await self._refresh(Section.CREATIVE_CONTENT, self.creative.fetch_content)
        return result is not None and not result.error

    async def refresh_section(self, section: Section | str) -> bool:
        """Refresh one section by enum member or name (e.g. "crypto-data")."""
        section = Section(section)
        refreshers = {
            Section.AI_NEWS: self.refresh_ai_news,
            Section.STARTUP_NEWS: self.refresh_startup_news,
            Section.CRYPTO_NEWS: self.refresh_crypto_news,
            Section.AI_TOOLS: self.refresh_ai_tools,
            Section.CRYPTO_DATA: self.refresh_crypto_data,
            Section.CREATIVE_CONTENT: self.refresh_creative_content,
        }
        return await refreshers[section]()

    async def refresh_all(self) -> DashboardState:
        """Refresh all six sections concurrently; failures stay per section."""
        sections = list(Section)
        results = await asyncio.gather(*(self.refresh_section(s) for s in sections), return_exceptions=True)

        ok = 0
        for section, result in zip(sections, results):
            if isinstance(result, Exception):
                logger.error("Refresh crashed | section=%s error=%s", section.value, result)
            elif result:
                ok += 1
        logger.info("Refresh all complete | ok=%d failed=%d", ok, len(sections) - ok)
        return self._state

    async def cleanup_cache(self) -> int:
        return self.storage.clear_expired_cache()

    # === User state (write-through) ===

    def save(self, item: SavedItem) -> bool:
        """Persist and add a saved item. State changes even if the write fails."""
        ok = self.storage.save_article(item)
        if not ok:
            logger.warning("Saved item not persisted | id=%s", item.id)
        self.dispatch(AddSavedItem(item))
        return ok

    def remove(self, item_id: str) -> bool:
        ok = self.storage.remove_saved_article(item_id)
        if not ok:
            logger.warning("Saved item removal not persisted | id=%s", item_id)
        self.dispatch(RemoveSavedItem(item_id))
        return ok

    def is_saved(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self._state.saved_items)

    def mark_read(self, item_id: str, status: ReadStatus = "read") -> bool:
        ok = self.storage.update_read_status(item_id, status)
        self.dispatch(UpdateReadStatus(item_id, status))
        return ok

    def update_preferences(self, preferences: UserPreferences) -> bool:
        ok = self.storage.set_user_preferences(preferences)
        if not ok:
            logger.warning("Preferences not persisted")
        self.dispatch(UpdatePreferences(preferences))
        return ok

    # === Presentation ===

    def snapshot(self, titles: int = 5) -> dict[str, Any]:
        """JSON-ready summary of the current state."""
        state = self._state
        sections = {}
        for section in Section:
            status = state.status[section]
            items = state.section_items(section)
            sections[section.value] = {
                "items": len(items),
                "loading": status.loading,
                "error": status.error,
                "last_updated": status.last_updated.isoformat() if status.last_updated else None,
                "top": [_display_title(item) for item in items[:titles]],
            }
        sections[Section.AI_TOOLS.value]["emerging"] = [tool.name for tool in state.emerging_tools]
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "sections": sections,
            "saved_items": len(state.saved_items),
            "unread": sum(1 for item in state.saved_items if item.read_status == "unread"),
            "preferences": state.preferences.model_dump(mode="json"),
        }


def _display_title(item: Any) -> str:
    if isinstance(item, CryptoAsset):
        return f"#{item.rank} {item.symbol} {item.price:,.2f} ({item.buy_grade})"
    if isinstance(item, AITool):
        return f"#{item.rank} {item.name}"
    if isinstance(item, NewsItem):
        return item.title
    return creative_title(item)
