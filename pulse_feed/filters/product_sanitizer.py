# pulse_feed/filters/product_sanitizer.py

"""Clamp AI-generated product fields before scoring and enrichment."""

import logging
from dataclasses import replace
from typing import TypeVar

from pulse_feed.config.settings import Settings
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.product import ProductContent

logger = logging.getLogger("pulse_feed.filters")

T = TypeVar("T")

TEXT_LIMIT = 320
LIST_ITEM_LIMIT = 160
MAX_PROS = 5
MAX_CONS = 5
MAX_TAGS = 8
MAX_BUY_LINKS = 4


class ProductSanitizer:
    """Trim over-long AI copy and lists, emitting a metric per clamp."""

    def __init__(self, metrics: MetricsCollector | None = None) -> None:
        self.metrics = metrics or MetricsCollector()

    def _track(self, field_name: str, before: int, after: int) -> None:
        if before <= after:
            return
        logger.debug(
            "Clamped %s from %d to %d", field_name, before, after
        )
        self.metrics.record(
            "ai.payload_clamped",
            {
                "field": field_name,
                "before": before,
                "after": after,
                "overflow": before - after,
            },
        )

    def clamp_text(
        self, value: str, limit: int = TEXT_LIMIT, field_name: str = "text",
    ) -> str:
        """Cut *value* to *limit* characters plus an ellipsis."""
        if len(value) <= limit:
            return value
        self._track(field_name, len(value), limit)
        return f"{value[:limit]}…"

    def limit_list(
        self, items: list[T], limit: int, field_name: str,
    ) -> list[T]:
        """Keep the first *limit* entries of *items*."""
        if len(items) <= limit:
            return list(items)
        self._track(field_name, len(items), limit)
        return list(items[:limit])

    @staticmethod
    def clamp_confidence(value: float | None) -> float:
        """Clamp to ``[0, 1]`` with 3 decimals; missing → default."""
        if value is None or value != value:
            return Settings.DEFAULT_LOOKUP_CONFIDENCE
        return round(min(1.0, max(0.0, value)), 3)

    @staticmethod
    def normalise_media_url(value: str | None) -> str | None:
        """Keep only absolute http(s) media URLs."""
        if isinstance(value, str) and value.startswith("http"):
            return value
        return None

    def sanitize(self, product: ProductContent) -> ProductContent:
        """Return a clamped copy of *product*."""
        pros = self.limit_list(product.pros, MAX_PROS, "pros")
        cons = self.limit_list(product.cons, MAX_CONS, "cons")
        return replace(
            product,
            summary=self.clamp_text(product.summary, field_name="summary"),
            what_it_is=self.clamp_text(
                product.what_it_is, field_name="whatItIs"
            ),
            why_useful=self.clamp_text(
                product.why_useful, field_name="whyUseful"
            ),
            pros=[
                self.clamp_text(item, LIST_ITEM_LIMIT, f"pros[{i}]")
                for i, item in enumerate(pros)
            ],
            cons=[
                self.clamp_text(item, LIST_ITEM_LIMIT, f"cons[{i}]")
                for i, item in enumerate(cons)
            ],
            tags=self.limit_list(product.tags, MAX_TAGS, "tags"),
            buy_links=self.limit_list(
                product.buy_links, MAX_BUY_LINKS, "buyLinks"
            ),
            novelty_score=round(
                min(1.0, max(0.0, product.novelty_score)), 2
            ),
            media_url=self.normalise_media_url(product.media_url),
            retail_lookup_confidence=self.clamp_confidence(
                product.retail_lookup_confidence
            ),
        )

    def sanitize_all(
        self, products: list[ProductContent],
    ) -> list[ProductContent]:
        return [self.sanitize(p) for p in products]
