# pulse_feed/storage/lookup_cache.py

"""In-memory retailer lookup cache with TTL and LRU eviction."""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass

from pulse_feed.config.settings import Settings
from pulse_feed.models.retailer_listing import RetailerListing

logger = logging.getLogger("pulse_feed.cache")


@dataclass
class CacheEntry:
    """Listings cached for one canonical key."""

    listings: tuple[RetailerListing, ...]
    expires_at: float


def normalise_key(key: str) -> str:
    """Lowercase and trim a cache key."""
    return key.strip().lower()


class LookupCache:
    """Key → listings cache shared by every enrichment request.

    Iteration order of the underlying ``OrderedDict`` doubles as
    recency: a hit moves the entry to the end, so overflow evicts
    from the front.  Expiry is lazy; an entry past ``expires_at``
    is dropped the next time it is looked up.
    """

    def __init__(
        self,
        ttl: float | None = None,
        max_entries: int | None = None,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl: float = (
            Settings.LOOKUP_CACHE_TTL if ttl is None else ttl
        )
        self._max_entries: int = max(
            1,
            Settings.LOOKUP_CACHE_SIZE
            if max_entries is None
            else max_entries,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> list[RetailerListing] | None:
        """Return cached listings for *key*, or ``None`` on miss."""
        norm = normalise_key(key)
        entry = self._entries.get(norm)
        if entry is None:
            return None

        if time.time() >= entry.expires_at:
            del self._entries[norm]
            logger.debug("Lookup cache entry expired for '%s'", norm)
            return None

        self._entries.move_to_end(norm)
        logger.debug("Lookup cache hit for '%s'", norm)
        return list(entry.listings)

    def put(
        self,
        key: str,
        listings: list[RetailerListing],
    ) -> None:
        """Store *listings* under *key*, evicting the LRU entry on overflow."""
        norm = normalise_key(key)
        self._entries[norm] = CacheEntry(
            listings=tuple(listings),
            expires_at=time.time() + self._ttl,
        )
        self._entries.move_to_end(norm)

        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(
                "Lookup cache full, evicted '%s'", evicted
            )
        logger.debug(
            "Cached %d listings for '%s'", len(listings), norm
        )

    def purge_expired(self) -> int:
        """Drop every expired entry now; returns how many were removed."""
        now = time.time()
        expired = [
            key
            for key, entry in self._entries.items()
            if now >= entry.expires_at
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(
                "Purged %d expired lookup entries", len(expired)
            )
        return len(expired)

    def clear(self) -> int:
        """Purge all cached entries.

        Returns the number of entries that were removed.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(
            "Lookup cache purged (%d entries removed)", count
        )
        return count
