# price_compare/storage/query_cache.py

"""In-memory TTL cache of aggregated comparison results."""

import logging
import time
from dataclasses import dataclass

from price_compare.config.settings import Settings
from price_compare.filters.tokenizer import normalize_text
from price_compare.models.search_result import AggregatedResult

logger = logging.getLogger("price_compare.cache")

CacheKey = tuple[str, int, bool, frozenset[str]]


@dataclass
class CacheEntry:
    """One cached comparison for a query, limit, mode and source set."""

    key: CacheKey
    result: AggregatedResult
    timestamp: float


class QueryCache:
    """Short-lived cache so repeated queries skip the network.

    Keys use the normalised query text, so ``"iPhone 15"`` and
    ``"iphone  15"`` share an entry.  Entries older than the TTL are
    evicted lazily on every lookup.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._ttl: float = Settings.QUERY_CACHE_TTL if ttl is None else ttl

    @staticmethod
    def make_key(
        query: str,
        limit: int,
        best_only: bool,
        source_ids: frozenset[str],
    ) -> CacheKey:
        return (normalize_text(query), limit, best_only, source_ids)

    def get(self, key: CacheKey) -> AggregatedResult | None:
        """Return the cached result for *key*, or ``None`` on miss."""
        self._evict_expired(time.time())
        entry = self._entries.get(key)
        if entry is None:
            return None
        logger.info(
            "Cache hit for '%s' (limit=%d, best_only=%s)",
            key[0],
            key[1],
            key[2],
        )
        return entry.result

    def store(self, key: CacheKey, result: AggregatedResult) -> None:
        """Cache *result* unless every source failed."""
        if not any(o.succeeded for o in result.per_source.values()):
            logger.debug(
                "Not caching '%s': no source succeeded", key[0]
            )
            return
        self._entries[key] = CacheEntry(
            key=key,
            result=result,
            timestamp=time.time(),
        )
        logger.info(
            "Cached %d results for '%s'",
            result.total_result_count,
            key[0],
        )

    def clear(self) -> int:
        """Purge all cached entries.

        Returns the number of entries that were removed.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache manually purged (%d entries removed)", count)
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_expired(self, now: float) -> None:
        """Remove entries older than the TTL threshold."""
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.timestamp >= self._ttl
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(
                "Evicted %d expired cache entries", len(expired)
            )
