"""Local key-value persistence for preferences, saved items and cache.

All client-side state lives in one SQLite file as JSON values under
prefixed keys:

    cyberpress_preferences      UserPreferences
    cyberpress_saved_articles   list[SavedItem], newest first
    cyberpress_cache_<key>      {"data": ..., "timestamp": ms, "expires": ms}

Error Handling Strategy:
    - Missing or corrupt values fall back to documented defaults
    - Write failures (SQLite errors, unserializable values) are logged
      and the write is dropped; callers keep their in-memory state
    - Cache reads at or past expiry evict the entry and return None

Every operation touches a single key, so "last write per key wins" is the
only consistency rule.
"""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, TypeAdapter, ValidationError

from models.preferences import ReadStatus, SavedItem, UserPreferences

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "cyberpress_"
PREFERENCES_KEY = "preferences"
SAVED_KEY = "saved_articles"
CACHE_PREFIX = "cache_"

MS_PER_HOUR = 60 * 60 * 1000

_saved_list = TypeAdapter(list[SavedItem])


class CacheEntry(BaseModel):
    """Stored wrapper around cached content."""

    data: Any
    timestamp: int  # Insertion time (epoch ms)
    expires: int  # Expiry time (epoch ms)

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class Storage:
    """SQLite-backed storage with prefixed keys.

    Example:
        >>> with Storage("cyberpress.db") as storage:
        ...     storage.save_article(SavedItem.from_news(item, "ai-news"))
        ...     storage.cache_content("ai-news", payload, expiry_hours=1)
        ...     storage.get_cached_content("ai-news")
    """

    SCHEMA = """
    -- One row per prefixed key; value is a JSON document
    CREATE TABLE IF NOT EXISTS kv (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at INTEGER NOT NULL      -- Last write (epoch ms)
    );
    """

    def __init__(
        self,
        path: Path | str,
        prefix: str = STORAGE_PREFIX,
        clock: Callable[[], int] = _epoch_ms,
    ):
        """Open (or create) the storage file.

        Args:
            path: SQLite file path, or ":memory:" for a throwaway store
            prefix: Namespace prepended to every key
            clock: Current time in epoch milliseconds
        """
        self.path = str(path)
        self.prefix = prefix
        self._clock = clock
        self.conn = sqlite3.connect(self.path)
        self.conn.row_factory = sqlite3.Row
        if self.path != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        logger.debug("Storage initialized | path=%s", self.path)

    # === Generic key access ===

    def _set_item(self, key: str, value: Any) -> bool:
        full_key = self.prefix + key
        try:
            payload = json.dumps(value)
            self.conn.execute(
                "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (full_key, payload, self._clock()),
            )
            self.conn.commit()
            return True
        except (TypeError, ValueError, sqlite3.Error) as e:
            logger.error("Storage write failed | key=%s error=%s", key, e)
            return False

    def _get_item(self, key: str, default: Any = None) -> Any:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv WHERE key = ?", (self.prefix + key,)
            ).fetchone()
            return json.loads(row["value"]) if row else default
        except (ValueError, sqlite3.Error) as e:
            logger.error("Storage read failed | key=%s error=%s", key, e)
            return default

    def _remove_item(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv WHERE key = ?", (self.prefix + key,))
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error("Storage remove failed | key=%s error=%s", key, e)

    def _keys(self, sub_prefix: str = "") -> list[str]:
        """Unprefixed keys starting with sub_prefix."""
        pattern = (self.prefix + sub_prefix).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self.conn.execute(
            "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\'", (pattern + "%",)
        ).fetchall()
        return [row["key"][len(self.prefix):] for row in rows]

    # === Preferences ===

    def set_user_preferences(self, preferences: UserPreferences) -> bool:
        return self._set_item(PREFERENCES_KEY, preferences.model_dump(mode="json"))

    def get_user_preferences(self) -> UserPreferences:
        """Stored preferences, or defaults when missing or invalid."""
        raw = self._get_item(PREFERENCES_KEY)
        if raw is None:
            return UserPreferences()
        try:
            return UserPreferences.model_validate(raw)
        except ValidationError as e:
            logger.warning("Stored preferences invalid, using defaults | errors=%d", e.error_count())
            return UserPreferences()

    # === Saved items ===

    def get_saved_articles(self) -> list[SavedItem]:
        raw = self._get_item(SAVED_KEY, [])
        try:
            return _saved_list.validate_python(raw)
        except ValidationError as e:
            logger.warning("Stored saved items invalid, ignoring | errors=%d", e.error_count())
            return []

    def _write_saved(self, items: list[SavedItem]) -> bool:
        return self._set_item(SAVED_KEY, _saved_list.dump_python(items, mode="json"))

    def save_article(self, item: SavedItem) -> bool:
        """Save an item, replacing an existing one with the same id in place.

        New items are added to the front of the list.
        """
        items = self.get_saved_articles()
        for index, saved in enumerate(items):
            if saved.id == item.id:
                items[index] = item
                break
        else:
            items.insert(0, item)
        return self._write_saved(items)

    def remove_saved_article(self, item_id: str) -> bool:
        items = self.get_saved_articles()
        return self._write_saved([item for item in items if item.id != item_id])

    def is_article_saved(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self.get_saved_articles())

    def update_read_status(self, item_id: str, status: ReadStatus) -> bool:
        items = self.get_saved_articles()
        for index, item in enumerate(items):
            if item.id == item_id:
                items[index] = item.model_copy(update={"read_status": status})
                return self._write_saved(items)
        return False

    # === Content cache ===

    def cache_content(self, key: str, data: Any, expiry_hours: float = 1) -> bool:
        """Cache JSON-serializable data for expiry_hours (0 = already expired)."""
        now = self._clock()
        entry = CacheEntry(data=data, timestamp=now, expires=now + int(expiry_hours * MS_PER_HOUR))
        return self._set_item(CACHE_PREFIX + key, entry.model_dump())

    def get_cached_content(self, key: str) -> Any | None:
        """Cached data, or None when absent or expired (evicting the entry)."""
        raw = self._get_item(CACHE_PREFIX + key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate(raw)
        except ValidationError:
            logger.warning("Cache entry corrupt, evicting | key=%s", key)
            self._remove_item(CACHE_PREFIX + key)
            return None
        if entry.is_expired(self._clock()):
            self._remove_item(CACHE_PREFIX + key)
            logger.debug("Cache expired | key=%s", key)
            return None
        return entry.data

    def clear_expired_cache(self) -> int:
        """Evict every expired or corrupt cache entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = 0
        for key in self._keys(CACHE_PREFIX):
            raw = self._get_item(key)
            try:
                expired = raw is None or CacheEntry.model_validate(raw).is_expired(now)
            except ValidationError:
                expired = True
            if expired:
                self._remove_item(key)
                removed += 1
        if removed:
            logger.info("Cache cleanup | removed=%d", removed)
        return removed

    # === Maintenance ===

    def stats(self) -> dict[str, Any]:
        """Counts and approximate size of everything under the prefix."""
        row = self.conn.execute(
            "SELECT COUNT(*) AS keys, COALESCE(SUM(LENGTH(value)), 0) AS size "
            "FROM kv WHERE key LIKE ? ESCAPE '\\'",
            (self.prefix.replace("_", "\\_") + "%",),
        ).fetchone()
        return {
            "saved_items": len(self.get_saved_articles()),
            "cache_entries": len(self._keys(CACHE_PREFIX)),
            "keys": row["keys"],
            "storage_used": f"{round(row['size'] / 1024)} KB",
        }

    def clear_all_data(self) -> int:
        """Delete every key under the prefix. Returns the number removed."""
        keys = self._keys()
        for key in keys:
            self._remove_item(key)
        logger.info("Storage cleared | keys=%d", len(keys))
        return len(keys)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Storage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
