# tests/test_enrichment_service.py

"""Tests for EnrichmentService orchestration logic."""

import copy
import unittest

from helpers import make_listing, make_product

from pulse_feed.errors import (
    NoResultsError,
    ProviderTransientError,
    ProviderUnavailable,
)
from pulse_feed.filters.canonicalizer import canonical_key
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.product import BuyLink
from pulse_feed.models.retailer_listing import RetailerListing
from pulse_feed.services.enrichment_service import (
    EnrichmentService,
    HotQueryHits,
)
from pulse_feed.storage.lookup_cache import LookupCache


class FakeClient:
    """Stub lookup client returning one listing per query."""

    def __init__(self, cache: LookupCache) -> None:
        self.cache = cache
        self.queries: list[str] = []
        self.limits: list[int] = []
        self.failures: dict[str, Exception] = {}

    async def fetch_listings(
        self,
        query: str,
        limit: int = 3,
        canonical_key: str | None = None,
        force_refresh: bool = False,
    ) -> list[RetailerListing]:
        self.queries.append(query)
        self.limits.append(limit)
        key = canonical_key or query
        if key in self.failures:
            raise self.failures[key]
        slug = key.replace(" ", "-")
        listings = [
            make_listing("Target", f"https://target.example/{slug}")
        ]
        self.cache.put(key, listings)
        return listings


def _products() -> list:
    return [
        make_product("p1", "Solar Camping Lantern", "", confidence=0.6),
        make_product("p2", "Heated Ceramic Mug", "", confidence=0.9),
        make_product("p3", "Standing Desk Mat", "", confidence=0.7),
        make_product("p4", "Sleep Noise Buds", "", confidence=0.8),
    ]


class TestEnrichmentService(unittest.IsolatedAsyncioTestCase):
    """EnrichmentService.enrich tests."""

    def setUp(self) -> None:
        self.cache = LookupCache(ttl=900.0, max_entries=50)
        self.client = FakeClient(self.cache)
        self.metrics = MetricsCollector()

    def _service(self, **kwargs: object) -> EnrichmentService:
        return EnrichmentService(
            client=self.client,  # type: ignore[arg-type]
            cache=self.cache,
            metrics=self.metrics,
            **kwargs,  # type: ignore[arg-type]
        )

    async def test_empty_input_returns_empty(self) -> None:
        """No products means no lookups."""
        service = self._service()
        self.assertEqual(await service.enrich([]), [])
        self.assertEqual(self.client.queries, [])

    async def test_order_and_length_preserved(self) -> None:
        """Output matches input order regardless of scoring order."""
        products = _products()
        result = await self._service().enrich(products)
        self.assertEqual(
            [p.id for p in result], ["p1", "p2", "p3", "p4"]
        )

    async def test_input_not_mutated(self) -> None:
        """The caller's products keep their original links and source."""
        products = _products()
        snapshot = copy.deepcopy(products)
        await self._service().enrich(products)
        self.assertEqual(products, snapshot)

    async def test_links_prepended_and_source_promoted(self) -> None:
        """Enriched AI products gain retailer links and become hybrid."""
        existing = BuyLink("Brand", "https://brand.example/lantern")
        product = make_product(
            "p1",
            "Solar Camping Lantern",
            "",
            confidence=0.9,
            buy_links=[existing],
        )
        result = await self._service().enrich([product])
        self.assertEqual(result[0].source, "hybrid")
        self.assertEqual(result[0].buy_links[0].label, "Target")
        self.assertEqual(result[0].buy_links[-1], existing)

    async def test_scrape_source_not_promoted(self) -> None:
        """Only 'ai' products switch to 'hybrid'."""
        product = make_product(
            "p1", "Solar Camping Lantern", "", confidence=0.9,
            source="scrape",
        )
        result = await self._service().enrich([product])
        self.assertEqual(result[0].source, "scrape")
        self.assertEqual(len(result[0].buy_links), 1)

    async def test_max_links_passed_as_limit(self) -> None:
        """The per-product link cap is the lookup limit."""
        await self._service(max_links=2).enrich(_products()[:1])
        self.assertEqual(self.client.limits, [2])

    # ── Scoring & budget ─────────────────────────────────

    async def test_below_threshold_skipped(self) -> None:
        """Low-confidence products are returned unchanged, unlooked-up."""
        product = make_product(
            "p1",
            "Prototype",
            "An early prototype",
            novelty=0.9,
            confidence=0.55,
        )
        result = await self._service().enrich([product])
        self.assertEqual(self.client.queries, [])
        self.assertIs(result[0], product)
        self.assertEqual(
            self.metrics.count("ai.retailer_lookup_below_threshold"), 1
        )

    async def test_budget_limits_lookups_by_confidence(self) -> None:
        """With budget K < M, only the K most confident are looked up."""
        service = self._service(lookup_budget=2)
        result = await service.enrich(_products())

        self.assertEqual(len(self.client.queries), 2)
        enriched_ids = {p.id for p in result if p.source == "hybrid"}
        self.assertEqual(enriched_ids, {"p2", "p4"})
        self.assertEqual(
            self.metrics.count("ai.retailer_lookup_budget_exceeded"), 1
        )

    async def test_default_budget_covers_every_product(self) -> None:
        """Without a configured budget every eligible product is tried."""
        service = self._service()
        service.lookup_budget = None
        await service.enrich(_products())
        self.assertEqual(len(self.client.queries), 4)

    # ── Grouping & coalescing ────────────────────────────

    async def test_shared_key_single_lookup(self) -> None:
        """Products with the same 5-token key share one lookup."""
        a = make_product("a", "Smart Heated Ceramic Travel Mug", "")
        b = make_product("b", "Travel Mug Smart Ceramic Heated", "")
        self.assertEqual(canonical_key(a), canonical_key(b))
        self.assertEqual(len(canonical_key(a).split()), 5)

        result = await self._service().enrich([a, b])
        self.assertEqual(len(self.client.queries), 1)
        self.assertEqual(result[0].buy_links, result[1].buy_links)
        self.assertEqual(len(result[0].buy_links), 1)

    async def test_second_call_served_from_cache(self) -> None:
        """A repeated enrichment reuses cached listings."""
        service = self._service()
        await service.enrich(_products()[:1])
        await service.enrich(_products()[:1])
        self.assertEqual(len(self.client.queries), 1)

    async def test_success_counts_hot_hits(self) -> None:
        """Every successful resolve bumps the key's hit counter."""
        service = self._service()
        product = _products()[0]
        key = canonical_key(product)
        await service.enrich([product])
        await service.enrich([product])
        self.assertEqual(service.hot_hits.get(key), 2)

    # ── Failure isolation ────────────────────────────────

    async def test_partial_failure_isolated(self) -> None:
        """Key A failing leaves A's products unchanged; B still enriched."""
        products = _products()[:2]
        failing_key = canonical_key(products[0])
        self.client.failures[failing_key] = ProviderTransientError(
            "serpapi_500"
        )
        service = self._service()
        result = await service.enrich(products)

        self.assertEqual(len(result), 2)
        self.assertIs(result[0], products[0])
        self.assertEqual(result[0].source, "ai")
        self.assertEqual(result[1].source, "hybrid")
        self.assertEqual(len(service.last_report.errors), 1)
        self.assertEqual(
            self.metrics.count("ai.retailer_enrichment_failed"), 1
        )

    async def test_no_results_treated_as_transient(self) -> None:
        """NoResultsError degrades the group gracefully."""
        product = _products()[0]
        self.client.failures[canonical_key(product)] = NoResultsError(
            "serpapi_no_results"
        )
        result = await self._service().enrich([product])
        self.assertIs(result[0], product)

    async def test_configuration_error_propagates(self) -> None:
        """Missing credentials are fatal, never swallowed."""
        product = _products()[0]
        self.client.failures[canonical_key(product)] = ProviderUnavailable(
            "serpapi_missing_key"
        )
        with self.assertRaises(ProviderUnavailable):
            await self._service().enrich([product])

    # ── clear() ──────────────────────────────────────────

    async def test_clear_resets_cache_and_hits(self) -> None:
        """clear() drops cached listings and hit counters."""
        service = self._service()
        await service.enrich(_products()[:1])
        self.assertEqual(service.clear(), 1)
        self.assertEqual(len(service.hot_hits), 0)
        await service.enrich(_products()[:1])
        self.assertEqual(len(self.client.queries), 2)


class TestHotQueryHits(unittest.TestCase):
    """HotQueryHits bounded counter tests."""

    def test_increment_counts(self) -> None:
        """Increments accumulate per key."""
        hits = HotQueryHits(capacity=5)
        hits.increment("mug")
        self.assertEqual(hits.increment("mug"), 2)
        self.assertEqual(hits["mug"], 2)

    def test_capacity_drops_oldest_key(self) -> None:
        """Beyond capacity the oldest tracked key is forgotten."""
        hits = HotQueryHits(capacity=2)
        for key in ("a", "b", "c"):
            hits.increment(key)
        self.assertEqual(len(hits), 2)
        self.assertNotIn("a", hits)


if __name__ == "__main__":
    unittest.main()
