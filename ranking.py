"""Deduplication and ranking of aggregated collections.

News Deduplication:
    Titles are compared word by word (lowercased). Similarity is the
    number of words of one title found in the other, divided by the word
    count of the longer title. An item whose similarity with an
    already-kept item reaches DUPLICATE_THRESHOLD is dropped, so the
    first-seen instance in input order survives. Survivors are sorted by
    publication time, newest first; Python's stable sort keeps ties in
    input order.

Ranking:
    Tool and crypto collections are stable-sorted by a popularity signal
    (descending) and their rank fields are reassigned 1..N. Rank is always
    recomputed here, never carried over from upstream.
"""

import logging
from typing import Callable, Iterable, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 0.8


# Anything with `title` and `published_at`
D = TypeVar("D")
M = TypeVar("M", bound=BaseModel)


def title_similarity(title1: str, title2: str) -> float:
    """Fraction of shared words relative to the longer title.

    Example:
        >>> title_similarity("AI breakthrough at Foo", "AI breakthrough at Foo")
        1.0
        >>> title_similarity("AI breakthrough at Foo", "Quarterly crypto report")
        0.0
    """
    words1 = title1.lower().split()
    words2 = title2.lower().split()
    longest = max(len(words1), len(words2))
    if longest == 0:
        return 0.0
    vocabulary = set(words2)
    shared = sum(1 for word in words1 if word in vocabulary)
    return shared / longest


def dedupe_and_sort(items: Iterable[D], threshold: float = DUPLICATE_THRESHOLD) -> list[D]:
    """Drop near-duplicate titles, then sort newest first.

    Args:
        items: News items in feed order
        threshold: Similarity at or above which an item counts as a duplicate

    Returns:
        New list of unique items sorted by published_at descending
    """
    kept: list[D] = []
    dropped = 0
    for item in items:
        if any(title_similarity(item.title, other.title) >= threshold for other in kept):
            dropped += 1
            continue
        kept.append(item)

    if dropped:
        logger.debug("Dedup | kept=%d dropped=%d", len(kept), dropped)

    return sorted(kept, key=lambda item: item.published_at, reverse=True)


def assign_ranks(items: Iterable[M], key: Callable[[M], float]) -> list[M]:
    """Sort by popularity signal (descending) and reassign rank 1..N.

    Args:
        items: Models with an integer `rank` field
        key: Popularity signal extractor

    Returns:
        Copies of the items with contiguous ranks starting at 1
    """
    ordered = sorted(items, key=key, reverse=True)
    return [item.model_copy(update={"rank": position}) for position, item in enumerate(ordered, 1)]


def rank_changes(ranked: Iterable[M], previous: dict[str, int]) -> list[M]:
    """Mark each item's movement against the previous ranking.

    Args:
        ranked: Items with freshly assigned ranks
        previous: Mapping of item id to its rank in the last refresh

    Returns:
        Copies with `change` set to new, up, down or same
    """
    marked = []
    for item in ranked:
        before = previous.get(item.id)
        if before is None:
            change = "new"
        elif item.rank < before:
            change = "up"
        elif item.rank > before:
            change = "down"
        else:
            change = "same"
        marked.append(item.model_copy(update={"change": change}))
    return marked
