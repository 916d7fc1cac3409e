"""Notifications for price moves and newly arrived content.

Two kinds of events are produced by the dashboard store:
- price_alert: an asset moved at least PRICE_ALERT_THRESHOLD percent in 24h
- new_content: a news section refresh brought items not seen before

Each event is delivered to every configured sink:
- Webhook POST (JSON payload)
- JSONL alerts file (one JSON object per line)

All delivery functions are async and fail gracefully (errors are logged
but don't affect other sinks or the refresh that triggered them).
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import aiohttp

from config import Config
from models.crypto import CryptoAsset
from models.news import NewsItem

logger = logging.getLogger(__name__)

MAX_LISTED_ITEMS = 5


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def price_alert_payload(asset: CryptoAsset, threshold: float) -> dict[str, Any]:
    direction = "up" if asset.change_24h > 0 else "down"
    return {
        "type": "price_alert",
        "timestamp": _timestamp(),
        "id": asset.id,
        "symbol": asset.symbol,
        "price": asset.price,
        "change_24h": asset.change_24h,
        "threshold": threshold,
        "message": f"{asset.symbol} is {direction} {abs(asset.change_24h):.1f}% in 24h",
        "grade": asset.buy_grade,
    }


def new_content_payload(section: str, items: list[NewsItem]) -> dict[str, Any]:
    return {
        "type": "new_content",
        "timestamp": _timestamp(),
        "section": section,
        "count": len(items),
        "items": [
            {"id": item.id, "title": item.title, "source": item.source, "url": item.url}
            for item in items[:MAX_LISTED_ITEMS]
        ],
    }


async def send_webhook(payload: dict[str, Any], url: str) -> bool:
    """Send notification via webhook POST."""
    if not url:
        return True

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url, json=payload, timeout=aiohttp.ClientTimeout(total=10)
            ) as resp:
                if resp.status < 300:
                    logger.debug("Webhook sent | type=%s", payload.get("type"))
                    return True
                logger.warning("Webhook failed | status=%d type=%s", resp.status, payload.get("type"))
                return False
    except asyncio.TimeoutError:
        logger.warning("Webhook timeout | url=%s type=%s", url[:50], payload.get("type"))
        return False
    except aiohttp.ClientError as e:
        logger.error("Webhook error: %s (%s)", e, type(e).__name__, exc_info=True)
        return False


async def append_alerts_file(payload: dict[str, Any], filepath: str) -> bool:
    """Append one event to a JSONL file."""
    if not filepath:
        return True

    try:
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Warn if file is getting large (> 100MB)
        if path.exists():
            size_mb = path.stat().st_size / (1024 * 1024)
            if size_mb > 100:
                logger.warning("Alerts file large | size=%.1fMB path=%s", size_mb, filepath)

        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.error("Alerts file error: %s (%s)", e, type(e).__name__, exc_info=True)
        return False


async def deliver(payload: dict[str, Any], config: Config) -> bool:
    """Send one event to every configured sink. True when all succeeded."""
    webhook_ok, file_ok = await asyncio.gather(
        send_webhook(payload, config.webhook_url),
        append_alerts_file(payload, config.alerts_file),
    )
    return webhook_ok and file_ok


def price_movers(assets: Iterable[CryptoAsset], threshold: float) -> list[CryptoAsset]:
    """Assets whose absolute 24h change is at least threshold percent."""
    return [asset for asset in assets if abs(asset.change_24h) >= threshold]


async def notify_price_alerts(assets: Iterable[CryptoAsset], config: Config) -> int:
    """Deliver one alert per mover.

    Returns:
        Number of alerts produced
    """
    movers = price_movers(assets, config.price_alert_threshold)
    if not movers:
        return 0

    payloads = [price_alert_payload(asset, config.price_alert_threshold) for asset in movers]
    results = await asyncio.gather(*(deliver(p, config) for p in payloads))
    failed = sum(1 for ok in results if not ok)
    logger.info("Price alerts | alerts=%d failed=%d", len(payloads), failed)
    return len(payloads)


async def notify_new_content(section: str, items: list[NewsItem], config: Config) -> bool:
    """Deliver a single new-content event for a section (no-op when empty)."""
    if not items:
        return True
    ok = await deliver(new_content_payload(section, items), config)
    logger.info("New content | section=%s items=%d ok=%s", section, len(items), ok)
    return ok
