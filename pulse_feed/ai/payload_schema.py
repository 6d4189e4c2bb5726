# pulse_feed/ai/payload_schema.py

"""Boundary validation for AI payloads and generation requests.

Raw JSON is validated once here with pydantic and converted into the
internal dataclasses; the rest of the pipeline only sees trusted
:mod:`pulse_feed.models.product` objects.
"""

import logging
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from pulse_feed.errors import PayloadValidationError
from pulse_feed.models.product import (
    BuyLink,
    GenerationDebug,
    PriceRange,
    ProductContent,
    ProductGenerationRequest,
    ProductGenerationResponse,
    Tag,
    UserPreferences,
    ViewedProduct,
)

logger = logging.getLogger("pulse_feed.ai")


def _require_http(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an absolute http(s) URL")
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TagPayload(_CamelModel):
    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    weight: float | None = None


class BuyLinkPayload(_CamelModel):
    label: str
    url: str
    price_hint: str | None = None
    trusted: bool = False

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _require_http(value)


class PriceRangePayload(_CamelModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)


class ProductPayload(_CamelModel):
    """One product as emitted by the AI description provider."""

    id: str
    title: str
    summary: str
    what_it_is: str
    why_useful: str
    price_range: PriceRangePayload
    pros: list[str] = Field(min_length=2)
    cons: list[str] = Field(min_length=1)
    tags: list[TagPayload]
    buy_links: list[BuyLinkPayload]
    media_url: str | None = None
    novelty_score: float = Field(ge=0, le=1)
    generated_at: str
    source: Literal["ai", "scrape", "hybrid"]
    retail_lookup_confidence: float | None = Field(
        default=None, ge=0, le=1
    )

    @field_validator("media_url")
    @classmethod
    def _check_media_url(cls, value: str | None) -> str | None:
        return None if value is None else _require_http(value)

    def to_product(self) -> ProductContent:
        return ProductContent(
            id=self.id,
            title=self.title,
            summary=self.summary,
            what_it_is=self.what_it_is,
            why_useful=self.why_useful,
            price_range=PriceRange(
                min=self.price_range.min,
                max=self.price_range.max,
                currency=self.price_range.currency,
            ),
            pros=list(self.pros),
            cons=list(self.cons),
            tags=[
                Tag(id=t.id, label=t.label, weight=t.weight)
                for t in self.tags
            ],
            buy_links=[
                BuyLink(
                    label=b.label,
                    url=b.url,
                    price_hint=b.price_hint,
                    trusted=b.trusted,
                )
                for b in self.buy_links
            ],
            media_url=self.media_url,
            novelty_score=self.novelty_score,
            generated_at=self.generated_at,
            source=self.source,
            retail_lookup_confidence=self.retail_lookup_confidence,
        )


class DebugPayload(_CamelModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    provider: str | None = None


class ProductResponsePayload(_CamelModel):
    """Top-level AI response: two to four products plus debug info."""

    products: list[ProductPayload] = Field(min_length=2, max_length=4)
    debug: DebugPayload | None = None


class PreferencesPayload(_CamelModel):
    liked_tags: list[str] = Field(default_factory=list)
    disliked_tags: list[str] = Field(default_factory=list)
    blacklisted_items: list[str] = Field(default_factory=list)
    tag_weights: dict[str, float] = Field(default_factory=dict)


class ViewedProductPayload(_CamelModel):
    id: str
    tags: list[TagPayload] = Field(default_factory=list)


class GenerationRequestPayload(_CamelModel):
    """Incoming page request as posted by the feed client."""

    session_id: str
    user_id: str
    preferences: PreferencesPayload
    search_terms: list[str] = Field(default_factory=list)
    last_viewed: list[ViewedProductPayload] = Field(default_factory=list)
    results_requested: int | None = None
    force_novelty: bool = False


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']} ({error.error_count()} errors)"


def product_response_schema() -> dict[str, Any]:
    """JSON schema handed to the AI provider for structured output."""
    return ProductResponsePayload.model_json_schema(by_alias=True)


def validate_product_payload(payload: Any) -> ProductGenerationResponse:
    """Validate a raw AI payload and convert it to internal models.

    Raises:
        PayloadValidationError: the payload does not match the schema.
    """
    try:
        parsed = ProductResponsePayload.model_validate(payload)
    except ValidationError as exc:
        logger.error("AI payload invalid: %s", _describe(exc))
        raise PayloadValidationError(
            f"AI payload invalid: {_describe(exc)}"
        ) from exc

    debug = (
        GenerationDebug(
            prompt_tokens=parsed.debug.prompt_tokens,
            completion_tokens=parsed.debug.completion_tokens,
            provider=parsed.debug.provider,
        )
        if parsed.debug is not None
        else None
    )
    return ProductGenerationResponse(
        products=[p.to_product() for p in parsed.products],
        debug=debug,
    )


_PRODUCT_LIST = TypeAdapter(list[ProductPayload])


def parse_products(data: Any) -> list[ProductContent]:
    """Validate a bare JSON list of products."""
    try:
        parsed = _PRODUCT_LIST.validate_python(data)
    except ValidationError as exc:
        raise PayloadValidationError(
            f"Product list invalid: {_describe(exc)}"
        ) from exc
    return [p.to_product() for p in parsed]


def parse_generation_request(
    data: Any,
) -> tuple[ProductGenerationRequest, bool]:
    """Validate a page request; returns the request and its force-novelty flag."""
    try:
        parsed = GenerationRequestPayload.model_validate(data)
    except ValidationError as exc:
        raise PayloadValidationError(
            f"Request invalid: {_describe(exc)}"
        ) from exc

    prefs = parsed.preferences
    request = ProductGenerationRequest(
        session_id=parsed.session_id,
        user_id=parsed.user_id,
        preferences=UserPreferences(
            liked_tags=list(prefs.liked_tags),
            disliked_tags=list(prefs.disliked_tags),
            blacklisted_items=list(prefs.blacklisted_items),
            tag_weights=dict(prefs.tag_weights),
        ),
        search_terms=list(parsed.search_terms),
        last_viewed=[
            ViewedProduct(
                id=v.id,
                tags=[
                    Tag(id=t.id, label=t.label, weight=t.weight)
                    for t in v.tags
                ],
            )
            for v in parsed.last_viewed
        ],
        results_requested=parsed.results_requested,
    )
    return request, parsed.force_novelty
