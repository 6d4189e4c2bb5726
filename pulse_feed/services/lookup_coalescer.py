# pulse_feed/services/lookup_coalescer.py

"""At-most-one in-flight retailer lookup per canonical key."""

import asyncio
import functools
import logging

from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.retailer_listing import RetailerListing
from pulse_feed.retailers.serpapi_client import RetailerLookupClient
from pulse_feed.storage.lookup_cache import (
    LookupCache,
    normalise_key,
)

logger = logging.getLogger("pulse_feed.coalescer")


class LookupCoalescer:
    """Shares one pending lookup between every caller of the same key.

    The cache probe, the pending-map probe and the registration of a
    new task all happen without an ``await`` in between, so under a
    single event loop two callers can never both start a call for the
    same key.
    """

    def __init__(
        self,
        client: RetailerLookupClient,
        cache: LookupCache,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.metrics = metrics or MetricsCollector()
        self._pending: dict[
            str, asyncio.Task[list[RetailerListing]]
        ] = {}

    @property
    def pending_count(self) -> int:
        """Number of keys with a lookup currently in flight."""
        return len(self._pending)

    def in_flight(self, canonical_key: str) -> bool:
        """Return True while a lookup for *canonical_key* is pending."""
        return normalise_key(canonical_key) in self._pending

    def _settle(
        self,
        key: str,
        task: asyncio.Task[list[RetailerListing]],
    ) -> None:
        # Retrieves the exception even when every waiter was cancelled
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Lookup for '%s' failed: %s", key, exc)

    async def _run(
        self,
        key: str,
        query: str,
        limit: int,
    ) -> list[RetailerListing]:
        try:
            # Cache was already consulted by resolve()
            return await self.client.fetch_listings(
                query,
                limit,
                canonical_key=key,
                force_refresh=True,
            )
        finally:
            self._pending.pop(key, None)

    async def resolve(
        self,
        canonical_key: str,
        query: str,
        limit: int,
    ) -> list[RetailerListing]:
        """Return listings for *canonical_key*, joining any pending call."""
        key = normalise_key(canonical_key) or normalise_key(query)

        cached = self.cache.get(key)
        if cached is not None:
            self.metrics.record(
                "ai.retailer_cache_hit", {"count": len(cached)}
            )
            return cached[:limit]

        task = self._pending.get(key)
        if task is None:
            self.metrics.record("ai.retailer_cache_miss", None)
            task = asyncio.ensure_future(
                self._run(key, query, limit)
            )
            self._pending[key] = task
            task.add_done_callback(functools.partial(self._settle, key))
            self.metrics.record(
                "ai.retailer_queue_size",
                {"pending": len(self._pending)},
            )
        else:
            logger.debug("Joining in-flight lookup for '%s'", key)
            self.metrics.record("ai.retailer_lookup_coalesced", None)

        # Shielded so a cancelled caller leaves the shared lookup running
        listings = await asyncio.shield(task)
        return list(listings)
