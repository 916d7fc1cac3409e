"""Pydantic models for the CyberPress dashboard core.

NewsItem:
    Normalized news entry from RSS feeds or the search boundary.

CryptoAsset:
    Graded asset snapshot; grade, reasoning and target price are computed.

AITool:
    Tool with per-category rank, rank change and five letter grades.

CreativeContent:
    Tagged union of image, quote, concept and video variants.

UserPreferences / SavedItem:
    User-owned state persisted by storage.Storage.

FetchResult:
    Envelope returned by every upstream client (items + source + error).

Example:
    >>> from models import NewsItem, NewsCategory, SavedItem
    >>> saved = SavedItem.from_news(item, section="ai-news")
"""

from models.news import NewsItem, NewsCategory, estimate_read_time
from models.crypto import CryptoAsset, Indicators, PricePoint, RiskAssessment
from models.tool import AITool, ToolCategory
from models.creative import (
    CreativeContent,
    ImageContent,
    QuoteContent,
    ConceptContent,
    VideoContent,
    creative_adapter,
    creative_list_adapter,
)
from models.preferences import UserPreferences, SavedItem
from models.result import FetchResult, FALLBACK_SOURCE

__all__ = [
    "NewsItem",
    "NewsCategory",
    "estimate_read_time",
    "CryptoAsset",
    "Indicators",
    "PricePoint",
    "RiskAssessment",
    "AITool",
    "ToolCategory",
    "CreativeContent",
    "ImageContent",
    "QuoteContent",
    "ConceptContent",
    "VideoContent",
    "creative_adapter",
    "creative_list_adapter",
    "UserPreferences",
    "SavedItem",
    "FetchResult",
    "FALLBACK_SOURCE",
]
