# pulse_feed/services/enrichment_service.py

"""Matches generated products to real retailer listings."""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace

from pulse_feed.config.settings import Settings
from pulse_feed.errors import ConfigurationError, ProviderTransientError
from pulse_feed.filters.canonicalizer import build_candidate, is_eligible
from pulse_feed.filters.link_deduplicator import LinkDeduplicator
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.product import ProductContent
from pulse_feed.models.retailer_listing import (
    CanonicalCandidate,
    RetailerListing,
)
from pulse_feed.retailers.serpapi_client import RetailerLookupClient
from pulse_feed.services.lookup_coalescer import LookupCoalescer
from pulse_feed.storage.lookup_cache import LookupCache

logger = logging.getLogger("pulse_feed.enrichment")


@dataclass
class EnrichmentReport:
    """Bookkeeping for the most recent ``enrich`` call."""

    candidates: int = 0
    eligible: int = 0
    lookups: int = 0
    enriched: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


class HotQueryHits(Mapping[str, int]):
    """Bounded per-key success counter used as a scoring bonus."""

    def __init__(self, capacity: int | None = None) -> None:
        self._capacity = (
            Settings.HOT_QUERY_CAPACITY if capacity is None else capacity
        )
        self._hits: OrderedDict[str, int] = OrderedDict()

    def __len__(self) -> int:
        return len(self._hits)

    def __getitem__(self, key: str) -> int:
        return self._hits[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._hits)

    def increment(self, key: str) -> int:
        self._hits[key] = self._hits.get(key, 0) + 1
        while len(self._hits) > self._capacity:
            self._hits.popitem(last=False)
        return self._hits.get(key, 0)

    def clear(self) -> None:
        self._hits.clear()


class EnrichmentService:
    """Owns the lookup cache, pending lookups and hit counters.

    One instance is meant to be shared by every request handler of a
    process; tests build their own to stay isolated.
    """

    def __init__(
        self,
        client: RetailerLookupClient | None = None,
        cache: LookupCache | None = None,
        metrics: MetricsCollector | None = None,
        confidence_threshold: float | None = None,
        max_links: int | None = None,
        lookup_budget: int | None = None,
    ) -> None:
        self.settings = Settings()
        self.metrics = metrics or MetricsCollector()
        self.cache = cache or LookupCache()
        self.client = client or RetailerLookupClient(
            self.cache, metrics=self.metrics
        )
        self.coalescer = LookupCoalescer(
            self.client, self.cache, metrics=self.metrics
        )
        self.hot_hits = HotQueryHits()
        self.confidence_threshold = (
            self.settings.CONFIDENCE_THRESHOLD
            if confidence_threshold is None
            else confidence_threshold
        )
        self.max_links = max_links or self.settings.MAX_RETAILER_LINKS
        self.lookup_budget = (
            lookup_budget
            if lookup_budget is not None
            else self.settings.LOOKUP_BUDGET
        )
        self.last_report = EnrichmentReport()

    # ── Private helpers ──────────────────────────────────

    def _select_candidates(
        self,
        products: list[ProductContent],
        report: EnrichmentReport,
    ) -> list[CanonicalCandidate]:
        """Score, filter, rank and budget the lookup candidates."""
        candidates = [
            build_candidate(product, index, self.hot_hits)
            for index, product in enumerate(products)
        ]
        report.candidates = len(candidates)

        eligible = [
            c
            for c in candidates
            if is_eligible(c, self.confidence_threshold)
        ]
        skipped = len(candidates) - len(eligible)
        if skipped:
            self.metrics.record(
                "ai.retailer_lookup_below_threshold",
                {
                    "skipped": skipped,
                    "threshold": self.confidence_threshold,
                },
            )
        report.eligible = len(eligible)

        # sorted() is stable: ties keep batch order
        eligible = sorted(
            eligible, key=lambda c: c.confidence, reverse=True
        )

        budget = max(1, self.lookup_budget or len(products))
        if budget < len(eligible):
            logger.warning(
                "Lookup budget %d below %d eligible candidates; "
                "enriching the top %d only",
                budget,
                len(eligible),
                budget,
            )
            self.metrics.record(
                "ai.retailer_lookup_budget_exceeded",
                {"budget": budget, "eligible": len(eligible)},
            )
            eligible = eligible[:budget]
        return eligible

    async def _lookup_group(
        self,
        key: str,
        query: str,
    ) -> list[RetailerListing]:
        return await self.coalescer.resolve(key, query, self.max_links)

    def _merge(
        self,
        product: ProductContent,
        listings: list[RetailerListing],
    ) -> ProductContent:
        """Return a copy of *product* with *listings* prepended."""
        if not listings:
            return product
        source = (
            "hybrid" if product.source == "ai" else product.source
        )
        return replace(
            product,
            buy_links=LinkDeduplicator.merge(
                product.buy_links, listings
            ),
            source=source,
        )

    # ── Public API ───────────────────────────────────────

    async def enrich(
        self,
        products: list[ProductContent],
    ) -> list[ProductContent]:
        """Attach retailer links to the products worth a lookup.

        The input list and its products are left untouched; the
        result has the same length and order.  A failed lookup
        leaves its group unenriched; a missing credential raises
        :class:`ConfigurationError`.
        """
        report = EnrichmentReport()
        self.last_report = report
        if not products:
            return []

        selected = self._select_candidates(products, report)
        groups: dict[str, list[CanonicalCandidate]] = {}
        for candidate in selected:
            groups.setdefault(candidate.canonical_key, []).append(
                candidate
            )
        report.lookups = len(groups)

        keys = list(groups)
        outcomes = await asyncio.gather(
            *(
                self._lookup_group(key, groups[key][0].query)
                for key in keys
            ),
            return_exceptions=True,
        )

        result = list(products)
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, ConfigurationError):
                raise outcome
            if isinstance(outcome, ProviderTransientError):
                report.errors.append(f"{key}: {outcome}")
                logger.warning(
                    "Retailer enrichment failed for '%s': %s",
                    key,
                    outcome,
                )
                self.metrics.record(
                    "ai.retailer_enrichment_failed",
                    {"reason": outcome.code},
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            self.hot_hits.increment(key)
            for candidate in groups[key]:
                enriched = self._merge(result[candidate.index], outcome)
                if enriched is not result[candidate.index]:
                    report.enriched += 1
                result[candidate.index] = enriched

        logger.info(
            "Enriched %d/%d products via %d lookups (%d failed)",
            report.enriched,
            len(products),
            report.lookups,
            len(report.errors),
        )
        return result

    def clear(self) -> int:
        """Reset the lookup cache and hit counters."""
        self.hot_hits.clear()
        return self.cache.clear()
