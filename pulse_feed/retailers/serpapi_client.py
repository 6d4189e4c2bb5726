# pulse_feed/retailers/serpapi_client.py

"""Retailer lookup client backed by SerpAPI's Google Shopping engine."""

import asyncio
import json
import logging
from typing import Any

from curl_cffi import requests as curl_requests

from pulse_feed.config.settings import Settings
from pulse_feed.errors import (
    NoResultsError,
    ProviderTransientError,
    ProviderUnavailable,
)
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.retailer_listing import RetailerListing
from pulse_feed.storage.lookup_cache import LookupCache


class RetailerLookupClient:
    """Issues one paid search call per query and normalizes the results.

    The API key is checked on every call rather than at construction,
    so a missing key surfaces as :class:`ProviderUnavailable` to the
    caller that actually needed the lookup.
    """

    def __init__(
        self,
        cache: LookupCache,
        metrics: MetricsCollector | None = None,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.logger = logging.getLogger("pulse_feed.retailers")
        self.settings = Settings()
        self.cache = cache
        self.metrics = metrics or MetricsCollector()
        self._api_key = (
            api_key if api_key is not None else self.settings.SERPAPI_KEY
        )
        self._endpoint = endpoint or self.settings.SERPAPI_ENDPOINT
        self._timeout = (
            timeout
            if timeout is not None
            else self.settings.RETAILER_TIMEOUT
        )
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def _request(self, query: str) -> dict[str, Any]:
        """Run the blocking search call and decode its JSON body."""
        params = {
            "engine": "google_shopping",
            "q": query,
            "hl": "en",
            "gl": "us",
            "api_key": self._api_key or "",
        }
        try:
            resp = self.session.get(
                self._endpoint,
                params=params,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self._timeout,
            )
        except Exception as exc:
            raise ProviderTransientError(
                f"serpapi_request_failed: {exc}"
            ) from exc

        if resp.status_code != 200:
            raise ProviderTransientError(
                f"serpapi_{resp.status_code}"
            )

        try:
            data: Any = json.loads(resp.text)
        except ValueError as exc:
            raise ProviderTransientError(
                "serpapi_invalid_json"
            ) from exc
        if not isinstance(data, dict):
            raise ProviderTransientError("serpapi_invalid_json")
        return data

    @staticmethod
    def _parse_result(entry: Any) -> RetailerListing | None:
        """Parse one shopping result, or ``None`` if it is unusable."""
        if not isinstance(entry, dict):
            return None
        link = entry.get("link") or entry.get("product_link")
        if not isinstance(link, str) or not link.startswith(
            ("http://", "https://")
        ):
            return None

        store = entry.get("store") or entry.get("source")
        title = entry.get("title")
        if not store and not title:
            return None

        price = entry.get("price")
        shipping = str(
            entry.get("shipping") or entry.get("delivery") or ""
        )
        return RetailerListing(
            label=str(store) if store else "Retailer",
            url=link,
            price_hint=str(price) if price is not None else None,
            trusted="free" in shipping.lower(),
        )

    @classmethod
    def sanitize_results(
        cls, results: list[Any],
    ) -> list[RetailerListing]:
        """Drop malformed entries, keeping provider order."""
        listings: list[RetailerListing] = []
        for entry in results:
            parsed = cls._parse_result(entry)
            if parsed is not None:
                listings.append(parsed)
        return listings

    async def fetch_listings(
        self,
        query: str,
        limit: int = 3,
        canonical_key: str | None = None,
        force_refresh: bool = False,
    ) -> list[RetailerListing]:
        """Return up to *limit* listings for *query*.

        A cached result for ``canonical_key or query`` is returned
        without a network call unless *force_refresh* is set; every
        successful fetch is written back to the cache.

        Raises:
            ProviderUnavailable: no API key is configured.
            ProviderTransientError: HTTP error, timeout or bad payload.
            NoResultsError: the provider returned no usable listings.
        """
        cache_key = canonical_key or query
        if not self._api_key:
            self.metrics.record(
                "ai.retailer_lookup_skipped",
                {"reason": "serpapi_missing"},
            )
            raise ProviderUnavailable("serpapi_missing_key")

        if not force_refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.metrics.record(
                    "ai.retailer_cache_hit", {"count": len(cached)}
                )
                return cached[:limit]

        try:
            data = await asyncio.to_thread(self._request, query)
            raw_results = data.get("shopping_results") or []
            if not isinstance(raw_results, list):
                raise ProviderTransientError("serpapi_invalid_json")
            listings = self.sanitize_results(raw_results)[:limit]
            if not listings:
                raise NoResultsError("serpapi_no_results")
        except ProviderTransientError as exc:
            self.metrics.record(
                "ai.retailer_lookup_failed", {"reason": str(exc)}
            )
            self.logger.warning(
                "[serpapi] Lookup failed for '%s': %s", query, exc
            )
            raise

        self.cache.put(cache_key, listings)
        self.metrics.record(
            "ai.retailer_lookup_success", {"count": len(listings)}
        )
        self.logger.info(
            "[serpapi] %d listings for '%s'", len(listings), query
        )
        return listings
