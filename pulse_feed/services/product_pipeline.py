# pulse_feed/services/product_pipeline.py

"""Generation pipeline: response cache → AI provider → enrichment → media."""

import logging
from dataclasses import replace
from typing import Any

from pulse_feed.ai.describer import ProductDescriber
from pulse_feed.ai.payload_schema import (
    parse_generation_request,
    validate_product_payload,
)
from pulse_feed.config.settings import Settings
from pulse_feed.errors import (
    ConfigurationError,
    GenerationFailed,
    PayloadValidationError,
    ProviderTransientError,
    PulseFeedError,
)
from pulse_feed.filters.product_sanitizer import ProductSanitizer
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.product import (
    GenerationDebug,
    ProductGenerationRequest,
    ProductGenerationResponse,
    ProductPageResult,
)
from pulse_feed.services.enrichment_service import EnrichmentService
from pulse_feed.services.media_probe import MediaProber
from pulse_feed.storage.response_cache import (
    GenerationResponseCache,
    fingerprint_request,
)

logger = logging.getLogger("pulse_feed.pipeline")


def clamp_result_count(value: int | None) -> int:
    """Clamp a requested page size to the supported 2–4 range."""
    requested = Settings.MIN_RESULTS if value is None else value
    return min(Settings.MAX_RESULTS, max(Settings.MIN_RESULTS, requested))


class ProductPageService:
    """Serves product pages, reusing cached pages when possible."""

    def __init__(
        self,
        describer: ProductDescriber,
        enrichment: EnrichmentService | None = None,
        media: MediaProber | None = None,
        response_cache: GenerationResponseCache | None = None,
        metrics: MetricsCollector | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.settings = Settings()
        self.metrics = metrics or MetricsCollector()
        self.describer = describer
        self.enrichment = enrichment or EnrichmentService(
            metrics=self.metrics
        )
        self.media = media or MediaProber(metrics=self.metrics)
        self.response_cache = response_cache or GenerationResponseCache()
        self.sanitizer = ProductSanitizer(metrics=self.metrics)
        self.max_attempts = max(
            1, max_attempts or self.settings.AI_MAX_ATTEMPTS
        )

    # ── Private helpers ──────────────────────────────────

    async def _describe(
        self,
        request: ProductGenerationRequest,
        desired: int,
    ) -> ProductGenerationResponse:
        """Call the describer, retrying transient provider failures."""
        last_error: ProviderTransientError | None = None
        for attempt in range(1, self.max_attempts + 1):
            self.metrics.record(
                "ai.call_attempt", {"attempt": attempt, "count": desired}
            )
            try:
                payload = await self.describer.describe(request, desired)
            except ProviderTransientError as exc:
                last_error = exc
                logger.warning(
                    "AI provider attempt %d/%d failed: %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )
                continue
            return validate_product_payload(payload)

        raise GenerationFailed(
            f"AI provider failed after {self.max_attempts} attempts: "
            f"{last_error}"
        ) from last_error

    async def _generate(
        self,
        request: ProductGenerationRequest,
        desired: int,
    ) -> ProductGenerationResponse:
        validated = await self._describe(request, desired)
        products = self.sanitizer.sanitize_all(
            validated.products[:desired]
        )
        if len(products) < desired:
            raise PayloadValidationError(
                "AI payload missing product entries"
            )

        products = await self.enrichment.enrich(products)
        products = await self.media.ensure_all(products)

        debug = validated.debug or GenerationDebug()
        return ProductGenerationResponse(
            products=products,
            debug=replace(debug, provider=debug.provider or "openai"),
        )

    # ── Public API ───────────────────────────────────────

    async def request_product_page(
        self,
        request: ProductGenerationRequest,
        force_novelty: bool = False,
    ) -> ProductPageResult:
        """Return the next page of products for *request*.

        A cached page for the same fingerprint is served unless
        *force_novelty* is set; a fresh page is always written back
        under that fingerprint.

        Raises:
            ConfigurationError: a provider credential is missing.
            PayloadValidationError: the AI payload failed validation.
            GenerationFailed: every AI attempt failed transiently.
        """
        desired = clamp_result_count(request.results_requested)
        fingerprint = fingerprint_request(request, desired)

        if not force_novelty:
            cached = self.response_cache.get(fingerprint)
            if cached is not None:
                self.metrics.record("ai.cache_hit", {"count": desired})
                return ProductPageResult(response=cached, cache_hit=True)

        try:
            response = await self._generate(request, desired)
        except PulseFeedError as exc:
            self.metrics.record(
                "ai.call_failed", {"reason": exc.code}
            )
            if isinstance(exc, ConfigurationError):
                logger.error("Generation misconfigured: %s", exc)
            else:
                logger.error("Generation failed: %s", exc)
            raise

        self.response_cache.put(fingerprint, response)
        self.metrics.record(
            "ai.call_success", {"count": len(response.products)}
        )
        return ProductPageResult(response=response, cache_hit=False)

    async def handle_page_request(self, data: Any) -> ProductPageResult:
        """Validate a raw JSON page request and serve it.

        Raises:
            PayloadValidationError: *data* is not a valid page request.
        """
        request, force_novelty = parse_generation_request(data)
        result = await self.request_product_page(request, force_novelty)
        self.metrics.record("api.generate", {"cacheHit": result.cache_hit})
        return result

    def clear_product_cache(self) -> int:
        """Drop every cached product page."""
        return self.response_cache.clear()

    def clear_retailer_cache(self) -> int:
        """Drop cached retailer listings and hot-query counters."""
        return self.enrichment.clear()

    def erase_all(self) -> dict[str, int]:
        """Reset all process-local state (the erase-my-data path)."""
        cleared = {
            "products": self.clear_product_cache(),
            "retailers": self.clear_retailer_cache(),
        }
        self.metrics.record("data.erase", cleared)
        return cleared
