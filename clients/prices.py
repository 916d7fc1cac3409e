"""Price boundary: top crypto assets from CoinGecko, graded and ranked.

Each upstream coin record is normalized into a CryptoAsset:
    - symbol upper-cased, null numeric fields read as 0
    - hourly price history rebuilt from the 7-day sparkline, ending now
    - RSI, MACD signal, MA50 and volume tier computed with numpy
    - coarse risk levels from the 24h change and volume

Grades, reasoning and target price are computed fields on CryptoAsset,
so nothing here assigns them.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import numpy as np
from pydantic import ValidationError

from clients.http import ApiClient, ApiError
from models.crypto import CryptoAsset, Indicators, Level, PricePoint, RiskAssessment
from models.result import FetchResult
from ranking import assign_ranks

logger = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"

RSI_PERIOD = 14
MA_WINDOW = 50
EMA_FAST = 12
EMA_SLOW = 26


def compute_rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> float:
    """Relative strength index over the last `period` price changes.

    Returns 50 (neutral) when there are fewer than period + 1 prices and
    100 when the window has no losses.
    """
    if len(prices) < period + 1:
        return 50.0
    deltas = np.diff(np.asarray(prices, dtype=float))[-period:]
    avg_gain = np.clip(deltas, 0, None).sum() / period
    avg_loss = np.clip(-deltas, 0, None).sum() / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return round(float(100 - 100 / (1 + rs)), 2)


def _ema(values: np.ndarray, span: int) -> float:
    alpha = 2 / (span + 1)
    ema = values[0]
    for value in values[1:]:
        ema = alpha * value + (1 - alpha) * ema
    return float(ema)


def macd_signal(prices: Sequence[float]) -> str:
    """Bullish when EMA12 is above EMA26, Bearish when below."""
    if len(prices) < EMA_SLOW:
        return "Neutral"
    values = np.asarray(prices, dtype=float)
    diff = _ema(values, EMA_FAST) - _ema(values, EMA_SLOW)
    if diff > 0:
        return "Bullish"
    if diff < 0:
        return "Bearish"
    return "Neutral"


def moving_average(prices: Sequence[float], window: int = MA_WINDOW, default: float = 0.0) -> float:
    if not prices:
        return default
    return round(float(np.mean(np.asarray(prices[-window:], dtype=float))), 2)


def volume_tier(volume: float) -> str:
    if volume > 5e9:
        return "Very High"
    if volume > 1e9:
        return "High"
    if volume > 1e8:
        return "Medium"
    return "Low"


def assess_risk(change_24h: float, volume_24h: float) -> RiskAssessment:
    volatility: Level = "High" if abs(change_24h) > 10 else "Medium" if abs(change_24h) > 5 else "Low"
    liquidity: Level = "High" if volume_24h > 1e9 else "Medium" if volume_24h > 1e8 else "Low"
    return RiskAssessment(volatility=volatility, liquidity=liquidity, correlation="Medium")


def price_history(sparkline: Sequence[float], now: datetime) -> list[PricePoint]:
    """Hourly points, the last one stamped `now`."""
    count = len(sparkline)
    return [
        PricePoint(timestamp=now - timedelta(hours=count - 1 - index), price=price)
        for index, price in enumerate(sparkline)
    ]


def normalize_coin(raw: dict[str, Any], now: datetime | None = None) -> CryptoAsset:
    """Build a CryptoAsset from one coins/markets record.

    Raises:
        ValidationError: When required fields are missing or malformed
    """
    now = now or datetime.now(timezone.utc)
    sparkline = [p for p in (raw.get("sparkline_in_7d") or {}).get("price") or [] if p is not None]
    price = raw.get("current_price")
    change = raw.get("price_change_percentage_24h") or 0.0
    volume = raw.get("total_volume") or 0.0

    return CryptoAsset(
        id=raw.get("id"),
        symbol=str(raw.get("symbol") or "").upper(),
        name=raw.get("name"),
        price=price,
        change_24h=change,
        change_value_24h=raw.get("price_change_24h") or 0.0,
        market_cap=raw.get("market_cap") or 0.0,
        volume_24h=volume,
        market_cap_rank=raw.get("market_cap_rank"),
        last_updated=now,
        price_history=price_history(sparkline, now),
        indicators=Indicators(
            rsi=compute_rsi(sparkline),
            macd=macd_signal(sparkline),
            ma50=moving_average(sparkline, default=price if isinstance(price, (int, float)) else 0.0),
            volume=volume_tier(volume),
        ),
        risk_assessment=assess_risk(change, volume),
    )


def unique_symbols(ranked: list[CryptoAsset]) -> list[CryptoAsset]:
    """Keep the highest-ranked asset per symbol and close the rank gaps."""
    seen: set[str] = set()
    unique = []
    for asset in ranked:
        if asset.symbol in seen:
            logger.warning("Dropping duplicate symbol | symbol=%s id=%s", asset.symbol, asset.id)
            continue
        seen.add(asset.symbol)
        unique.append(asset)
    if len(unique) == len(ranked):
        return ranked
    return assign_ranks(unique, key=lambda asset: asset.market_cap)


def fallback_assets() -> list[CryptoAsset]:
    """Single placeholder asset with fixed metrics."""
    return [CryptoAsset(
        id="bitcoin",
        symbol="BTC",
        name="Bitcoin",
        price=67420.50,
        change_24h=2.4,
        change_value_24h=1580.30,
        market_cap=1_320_000_000_000,
        volume_24h=28_000_000_000,
        market_cap_rank=1,
        rank=1,
        last_updated=datetime.now(timezone.utc),
        indicators=Indicators(rsi=58.2, macd="Bullish", ma50=63840, volume="High"),
        risk_assessment=RiskAssessment(volatility="Medium", liquidity="High", correlation="Low"),
    )]


class PriceClient:
    """Fetches and normalizes the top assets by market cap.

    Example:
        >>> async with ApiClient(COINGECKO_BASE_URL) as api:
        ...     result = await PriceClient(api).fetch_top_assets(limit=10)
    """

    def __init__(self, api: ApiClient, api_key: str = ""):
        self.api = api
        self.api_key = api_key

    async def _fetch_markets(self, limit: int) -> list[dict[str, Any]]:
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": str(limit),
            "page": "1",
            "sparkline": "true",
            "price_change_percentage": "24h",
        }
        headers = {"X-CG-Demo-API-Key": self.api_key} if self.api_key else None
        data = await self.api.get_cached(
            f"coins:markets:{limit}",
            lambda: self.api.get("/coins/markets", params=params, headers=headers),
        )
        if not isinstance(data, list):
            raise ApiError("Unexpected coins/markets payload")
        return data

    async def fetch_top_assets(self, limit: int = 10) -> FetchResult[CryptoAsset]:
        """Top `limit` assets, ranked 1..N by market cap.

        Returns:
            FetchResult; on failure a fallback result with one placeholder asset
        """
        try:
            records = await self._fetch_markets(limit)
        except ApiError as e:
            logger.error("Price fetch failed, serving fallback | error=%s", e)
            return FetchResult.fallback(fallback_assets(), error=f"Price API unavailable: {e}")

        now = datetime.now(timezone.utc)
        assets = []
        for raw in records:
            if not isinstance(raw, dict):
                continue
            try:
                assets.append(normalize_coin(raw, now))
            except ValidationError as e:
                logger.warning("Skipping invalid coin | id=%s errors=%d", raw.get("id"), e.error_count())

        if not assets:
            logger.error("Price API returned no usable assets, serving fallback")
            return FetchResult.fallback(fallback_assets(), error="Price API returned no assets")

        ranked = unique_symbols(assign_ranks(assets, key=lambda asset: asset.market_cap))
        logger.info("Prices fetched | assets=%d skipped=%d", len(ranked), len(records) - len(ranked))
        return FetchResult(items=ranked, source="CoinGecko", last_updated=now)
