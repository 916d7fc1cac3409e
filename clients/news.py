"""News boundary: RSS feeds per topic plus an optional search API.

Topics are "ai", "startup" and "crypto". Each topic has a fixed set of
feeds (see clients.feeds.FEEDS_BY_TOPIC) and a default item cap.

Flow for one topic:
    1. Search API (only when an API key is configured)
    2. RSS feeds when search is disabled or its transport fails
    3. Deduplicate, sort newest first, drop blocked sources, cap
    4. Fallback items when nothing usable came back

Error Handling Strategy:
    - Transport failures never propagate; they end in fallback content
    - Non-JSON search content becomes one synthetic item
    - Search records that fail validation are skipped with a warning
"""

import json
import logging
from datetime import datetime, timezone
from hashlib import sha256
from typing import Any, Iterable

from pydantic import ValidationError

from clients.http import ApiClient, ApiError
from clients.feeds import FEEDS_BY_TOPIC, fetch_topic_feeds
from models.news import NewsCategory, NewsItem, estimate_read_time
from models.result import FetchResult
from ranking import dedupe_and_sort

logger = logging.getLogger(__name__)

TOPIC_LIMITS = {"ai": 20, "startup": 20, "crypto": 10}

SEARCH_BASE_URL = "https://api.perplexity.ai"
SEARCH_MODEL = "llama-3.1-sonar-small-128k-online"

SEARCH_QUERIES = {
    "ai": "Latest AI news, machine learning breakthroughs, and artificial intelligence developments",
    "startup": "Recent tech startup funding rounds, acquisitions, and new company launches",
    "crypto": "Latest cryptocurrency news, blockchain developments, and digital asset market updates",
}

SEARCH_CATEGORIES = {
    "ai": NewsCategory.AI,
    "startup": NewsCategory.STARTUP,
    "crypto": NewsCategory.TECH,
}

FALLBACK_CATEGORIES = {
    "ai": NewsCategory.AI,
    "startup": NewsCategory.STARTUP,
}

SEARCH_SYSTEM_PROMPT = (
    "You are a tech news curator. Return exactly {limit} recent news items in valid JSON format. "
    'Use this exact structure: {{"items": [{{"title": "string", "summary": "string", '
    '"source": "string", "url": "string", "publishedAt": "ISO date string"}}]}}. '
    "Focus on recent, high-quality news from reputable tech sources. "
    "Each summary should be 2-3 sentences. Make sure URLs are real and working."
)

PLACEHOLDER_SUMMARY = "Stay tuned for the latest developments in this rapidly evolving space."
FALLBACK_SUMMARY = (
    "We're currently updating our news sources. Please check back shortly for the latest updates."
)
MAX_FALLBACK_ITEMS = 3


def _now() -> datetime:
    return datetime.now(timezone.utc)


def fallback_news(topic: str, limit: int) -> list[NewsItem]:
    """Deterministic placeholder items shown when a topic cannot be fetched."""
    category = FALLBACK_CATEGORIES.get(topic, NewsCategory.TECH)
    published = _now()
    return [
        NewsItem(
            id=f"fallback-{topic}-{index}",
            title=f"{topic.upper()} Technology Update",
            summary=FALLBACK_SUMMARY,
            source="CyberPress",
            url="#",
            published_at=published,
            category=category,
            read_time="2 min read",
        )
        for index in range(min(limit, MAX_FALLBACK_ITEMS))
    ]


def filter_blocked(items: Iterable[NewsItem], blocked: Iterable[str]) -> list[NewsItem]:
    """Drop items whose source is on the blocked list (case-insensitive)."""
    blocked_lower = {source.lower() for source in blocked}
    if not blocked_lower:
        return list(items)
    return [item for item in items if item.source.lower() not in blocked_lower]


def parse_search_content(content: str, topic: str, limit: int) -> list[NewsItem]:
    """Convert the search model's reply into NewsItem objects.

    Args:
        content: Assistant message content, expected to be a JSON document
        topic: Requested topic (selects category and id prefix)
        limit: Maximum number of items

    Returns:
        Parsed items. Non-JSON content yields a single synthetic item;
        JSON without an "items" array yields an empty list.
    """
    category = SEARCH_CATEGORIES.get(topic, NewsCategory.TECH)
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        logger.warning("Search content is not JSON | topic=%s chars=%d", topic, len(content or ""))
        data = {"items": [{
            "title": f"Latest {category.value} Updates",
            "summary": PLACEHOLDER_SUMMARY,
            "source": "Tech News",
            "url": "#",
        }]}

    raw_items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(raw_items, list):
        logger.warning("Search content has no items array | topic=%s", topic)
        return []

    items = []
    for index, raw in enumerate(raw_items[:limit]):
        if not isinstance(raw, dict):
            continue
        summary = raw.get("summary") or "Latest developments in technology and innovation."
        url = raw.get("url") or "#"
        title = raw.get("title") or f"{category.value} News Update {index + 1}"
        try:
            items.append(NewsItem(
                id=f"{topic}-{sha256((url if url != '#' else title).encode()).hexdigest()[:12]}",
                title=title,
                summary=summary,
                source=raw.get("source") or "Tech News",
                url=url,
                published_at=raw.get("publishedAt") or _now(),
                category=category,
                read_time=estimate_read_time(summary),
            ))
        except ValidationError as e:
            logger.warning("Skipping invalid search item | topic=%s index=%d errors=%d", topic, index, e.error_count())
    return items


class NewsClient:
    """Fetches normalized news for a topic.

    Example:
        >>> client = NewsClient(api)
        >>> result = await client.fetch_topic("ai")
        >>> result.source
        'RSS'
    """

    def __init__(
        self,
        api: ApiClient,
        search_api_key: str = "",
        search_api: ApiClient | None = None,
    ):
        """Create a news client.

        Args:
            api: Shared client used for feed downloads
            search_api_key: Enables the search boundary when non-empty
            search_api: Client for the search API (built from the key when omitted)
        """
        self.api = api
        self.search_api_key = search_api_key
        self.search_api = search_api
        if search_api_key and search_api is None:
            self.search_api = ApiClient(
                SEARCH_BASE_URL,
                headers={"Authorization": f"Bearer {search_api_key}"},
                timeout=api.timeout,
            )

    @property
    def search_enabled(self) -> bool:
        return bool(self.search_api_key) and self.search_api is not None

    async def _search(self, topic: str, limit: int) -> list[NewsItem]:
        """Query the search API. Raises ApiError on transport or shape failures."""
        payload: dict[str, Any] = {
            "model": SEARCH_MODEL,
            "messages": [
                {"role": "system", "content": SEARCH_SYSTEM_PROMPT.format(limit=limit)},
                {"role": "user", "content": SEARCH_QUERIES.get(topic, "Technology news and innovations")},
            ],
            "temperature": 0.2,
            "max_tokens": 3000,
            "return_images": False,
            "return_related_questions": False,
            "search_recency_filter": "week",
        }
        response = await self.search_api.post("/chat/completions", data=payload)
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ApiError("Invalid response structure from search API") from e
        return parse_search_content(content, topic, limit)

    async def fetch_topic(
        self,
        topic: str,
        limit: int | None = None,
        blocked: Iterable[str] = (),
    ) -> FetchResult[NewsItem]:
        """Fetch, deduplicate, filter and cap the news for one topic.

        Args:
            topic: "ai", "startup" or "crypto"
            limit: Item cap (defaults to TOPIC_LIMITS[topic])
            blocked: Source names to drop

        Returns:
            FetchResult; on total failure a fallback result with error set
        """
        if topic not in FEEDS_BY_TOPIC:
            raise ValueError(f"Unknown news topic: {topic}")
        limit = limit or TOPIC_LIMITS[topic]
        blocked = list(blocked)

        items: list[NewsItem] = []
        source = "RSS"
        if self.search_enabled:
            try:
                items = await self._search(topic, limit)
                source = "Perplexity"
            except ApiError as e:
                logger.warning("Search failed, using feeds | topic=%s error=%s", topic, e)

        if source == "RSS":
            items = await fetch_topic_feeds(self.api, FEEDS_BY_TOPIC[topic])

        items = filter_blocked(dedupe_and_sort(items), blocked)[:limit]

        if not items:
            logger.error("News unavailable, serving fallback | topic=%s", topic)
            return FetchResult.fallback(
                fallback_news(topic, limit),
                error=f"No {topic} news available from upstream sources",
            )

        logger.info("News fetched | topic=%s source=%s items=%d", topic, source, len(items))
        return FetchResult(items=items, source=source)

    async def fetch_ai_news(self, limit: int | None = None, blocked: Iterable[str] = ()) -> FetchResult[NewsItem]:
        return await self.fetch_topic("ai", limit, blocked)

    async def fetch_startup_news(self, limit: int | None = None, blocked: Iterable[str] = ()) -> FetchResult[NewsItem]:
        return await self.fetch_topic("startup", limit, blocked)

    async def fetch_crypto_news(self, limit: int | None = None, blocked: Iterable[str] = ()) -> FetchResult[NewsItem]:
        return await self.fetch_topic("crypto", limit, blocked)

    async def close(self) -> None:
        if self.search_api is not None:
            await self.search_api.close()
