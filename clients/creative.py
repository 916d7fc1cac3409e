"""Creative boundary: a curated, deterministic inspiration library."""

import logging
from datetime import datetime, timezone

from models.creative import (
    ConceptContent,
    CreativeContent,
    ImageContent,
    QuoteContent,
    VideoContent,
)
from models.result import FetchResult

logger = logging.getLogger(__name__)

_CURATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)

CREATIVE_LIBRARY: list[CreativeContent] = [
    ImageContent(
        id="creative-1",
        title="AI-Generated Art Trends",
        description="Latest trends in AI-generated artwork",
        image_url="https://images.unsplash.com/photo-1526374965328-7f61d4dc18c5",
        source="Unsplash",
        category="Design",
        created_at=_CURATED_AT,
    ),
    QuoteContent(
        id="creative-2",
        content="The future belongs to those who learn more skills and combine them in creative ways.",
        author="Robert Greene",
        category="Innovation",
        created_at=_CURATED_AT,
    ),
    ConceptContent(
        id="creative-3",
        title="Generative Interfaces",
        description="Interfaces that assemble themselves around the task at hand instead of fixed screens.",
        tags=["design", "ux", "generative"],
        category="Design",
        created_at=_CURATED_AT,
    ),
    VideoContent(
        id="creative-4",
        title="Text-to-Video in Practice",
        description="A walkthrough of prompt-driven video generation workflows.",
        url="https://runwayml.com/research",
        source="Runway",
        category="Video",
        created_at=_CURATED_AT,
    ),
    QuoteContent(
        id="creative-5",
        content="Creativity is intelligence having fun.",
        author="Albert Einstein",
        category="Innovation",
        created_at=_CURATED_AT,
    ),
]


class CreativeClient:
    """Serves the curated creative library."""

    def __init__(self, library: list[CreativeContent] | None = None):
        self.library = library if library is not None else CREATIVE_LIBRARY

    async def fetch_content(self, category: str | None = None) -> FetchResult[CreativeContent]:
        """All curated items, or those whose category matches (case-insensitive)."""
        items = [
            item for item in self.library
            if category is None or item.category.lower() == category.lower()
        ]
        logger.debug("Creative content | category=%s items=%d", category, len(items))
        return FetchResult(items=items, source="Curated")
