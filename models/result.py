"""Response envelope returned by every upstream client."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, TypeVar

T = TypeVar("T")

FALLBACK_SOURCE = "Fallback"


@dataclass
class FetchResult(Generic[T]):
    """Items from one client call plus where they came from.

    Attributes:
        items: Normalized entities (never empty for fallback results)
        source: Label of the boundary that produced the items
        last_updated: When the items were produced
        error: Set when the items are fallback content
    """

    items: list[T]
    source: str
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.error is not None

    @classmethod
    def fallback(cls, items: list[T], error: str) -> "FetchResult[T]":
        return cls(items=items, source=FALLBACK_SOURCE, error=error)
