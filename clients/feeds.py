"""Async RSS feed fetching and parsing into NewsItem objects.

Feeds are grouped by topic. All feeds of a topic are fetched
concurrently through the shared ApiClient and parsed with feedparser.

Error Handling Strategy:
    - Individual feed failures don't affect other feeds
    - Transport errors are logged at WARNING and yield no items
    - Malformed feeds (feedparser "bozo") are parsed best-effort
    - Entries without titles are skipped
"""

import asyncio
import html
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import sha256

import feedparser

from clients.http import ApiClient, ApiError, BROWSER_USER_AGENT
from models.news import NewsCategory, NewsItem, estimate_read_time

logger = logging.getLogger(__name__)

_TAG_PATTERN = re.compile(r"<[^>]+>")
_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

SUMMARY_MAX_CHARS = 400


@dataclass(frozen=True)
class FeedSource:
    """A named RSS/Atom feed and the category its items get."""
    name: str
    url: str
    category: NewsCategory


FEEDS_BY_TOPIC: dict[str, list[FeedSource]] = {
    "ai": [
        FeedSource("MIT Technology Review", "https://www.technologyreview.com/feed/", NewsCategory.TECH),
        FeedSource("VentureBeat AI", "https://venturebeat.com/category/ai/feed/", NewsCategory.AI),
        FeedSource("TechCrunch AI", "https://techcrunch.com/category/artificial-intelligence/feed/", NewsCategory.AI),
    ],
    "startup": [
        FeedSource("TechCrunch Startups", "https://techcrunch.com/category/startups/feed/", NewsCategory.STARTUP),
        FeedSource("Y Combinator", "https://blog.ycombinator.com/feed", NewsCategory.STARTUP),
        FeedSource("First Round Review", "https://review.firstround.com/feed", NewsCategory.STARTUP),
    ],
    "crypto": [
        FeedSource("CoinDesk", "https://www.coindesk.com/arc/outboundfeeds/rss/", NewsCategory.TECH),
        FeedSource("Cointelegraph", "https://cointelegraph.com/rss", NewsCategory.TECH),
    ],
}


def _slug(text: str) -> str:
    return _SLUG_PATTERN.sub("-", text.lower()).strip("-")


def _clean_text(raw: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    """Strip HTML tags and entities, collapse whitespace, truncate on a word."""
    text = html.unescape(_TAG_PATTERN.sub(" ", raw or ""))
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_chars:
        text = text[:max_chars].rsplit(" ", 1)[0] + "..."
    return text


def _parse_date(entry: dict) -> datetime | None:
    """Publication date from published, updated or created fields (UTC)."""
    for field in ("published_parsed", "updated_parsed", "created_parsed"):
        time_tuple = entry.get(field)
        if time_tuple:
            try:
                return datetime(*time_tuple[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _image_url(entry: dict) -> str | None:
    for field in ("media_content", "media_thumbnail"):
        media = entry.get(field) or []
        if media and media[0].get("url"):
            return media[0]["url"]
    for link in entry.get("links", []):
        if link.get("rel") == "enclosure" and str(link.get("type", "")).startswith("image/"):
            return link.get("href")
    return None


def _item_id(source: FeedSource, entry: dict, title: str) -> str:
    """Stable id so saved items still match after the next refresh."""
    key = entry.get("id") or entry.get("link") or title
    return f"{_slug(source.name)}-{sha256(key.encode()).hexdigest()[:12]}"


def parse_feed_content(content: str, source: FeedSource) -> list[NewsItem]:
    """Parse feed XML into NewsItem objects.

    Args:
        content: Raw RSS/Atom document
        source: Feed the document came from

    Returns:
        Items in feed order (may be empty)
    """
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        logger.warning("Feed %s: unparseable (%s)", source.name, feed.get("bozo_exception"))
        return []

    items = []
    for entry in feed.entries:
        title = _clean_text(entry.get("title", ""), max_chars=300)
        if not title:
            continue

        published = _parse_date(entry)
        if published is None:
            published = datetime.now(timezone.utc)
            logger.debug("Feed entry missing date, using current time: %s", title[:50])

        summary = _clean_text(entry.get("summary", "") or entry.get("description", ""))
        tags = [t.get("term") for t in entry.get("tags", []) if t.get("term")]

        items.append(NewsItem(
            id=_item_id(source, entry, title),
            title=title,
            summary=summary,
            source=source.name,
            url=entry.get("link", "") or source.url,
            published_at=published,
            category=source.category,
            author=entry.get("author") or None,
            read_time=estimate_read_time(summary),
            tags=tags[:5],
            image_url=_image_url(entry),
        ))

    return items


async def fetch_feed(api: ApiClient, source: FeedSource) -> list[NewsItem]:
    """Fetch and parse one feed. Returns an empty list on any failure."""
    try:
        content = await api.get_text(source.url, headers={"User-Agent": BROWSER_USER_AGENT})
    except ApiError as e:
        logger.warning("Feed %s: %s", source.name, e)
        return []
    return parse_feed_content(content, source)


async def fetch_topic_feeds(api: ApiClient, sources: list[FeedSource]) -> list[NewsItem]:
    """Fetch all feeds of a topic concurrently and concatenate their items.

    Items keep feed order, then entry order within each feed.
    """
    results = await asyncio.gather(*(fetch_feed(api, s) for s in sources), return_exceptions=True)

    items: list[NewsItem] = []
    errors = 0
    for source, result in zip(sources, results):
        if isinstance(result, Exception):
            logger.warning("Feed error %s: %s (%s)", source.name, result, type(result).__name__)
            errors += 1
        else:
            items.extend(result)
            logger.debug("Feed %s: %d items", source.name, len(result))

    logger.info("Feeds fetched | items=%d feeds=%d errors=%d", len(items), len(sources), errors)
    return items
