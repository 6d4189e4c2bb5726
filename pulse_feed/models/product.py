# pulse_feed/models/product.py

"""Product data models for inter-module data flow."""

from dataclasses import dataclass, field
from typing import Literal

ProductSource = Literal["ai", "scrape", "hybrid"]


@dataclass
class Tag:
    """A descriptive tag attached to a product."""

    id: str
    label: str
    weight: float | None = None


@dataclass
class BuyLink:
    """A purchase link shown under a product card."""

    label: str
    url: str
    price_hint: str | None = None
    trusted: bool = False


@dataclass
class PriceRange:
    """Estimated price band for a product."""

    min: float
    max: float
    currency: str = "USD"


@dataclass
class ProductContent:
    """A single AI-described (or scraped) product record."""

    id: str
    title: str
    summary: str = ""
    what_it_is: str = ""
    why_useful: str = ""
    price_range: PriceRange = field(
        default_factory=lambda: PriceRange(min=0.0, max=0.0)
    )
    pros: list[str] = field(default_factory=lambda: list[str]())
    cons: list[str] = field(default_factory=lambda: list[str]())
    tags: list[Tag] = field(default_factory=lambda: list[Tag]())
    buy_links: list[BuyLink] = field(
        default_factory=lambda: list[BuyLink]()
    )
    media_url: str | None = None
    novelty_score: float = 0.0
    generated_at: str = ""
    source: ProductSource = "ai"
    retail_lookup_confidence: float | None = None


@dataclass
class UserPreferences:
    """Learned preference snapshot sent with every generation request."""

    liked_tags: list[str] = field(default_factory=lambda: list[str]())
    disliked_tags: list[str] = field(
        default_factory=lambda: list[str]()
    )
    blacklisted_items: list[str] = field(
        default_factory=lambda: list[str]()
    )
    tag_weights: dict[str, float] = field(
        default_factory=lambda: dict[str, float]()
    )


@dataclass
class ViewedProduct:
    """The parts of a previously viewed product the pipeline needs."""

    id: str
    tags: list[Tag] = field(default_factory=lambda: list[Tag]())


@dataclass
class ProductGenerationRequest:
    """A request for the next page of feed products."""

    session_id: str
    user_id: str
    preferences: UserPreferences = field(
        default_factory=UserPreferences
    )
    search_terms: list[str] = field(
        default_factory=lambda: list[str]()
    )
    last_viewed: list[ViewedProduct] = field(
        default_factory=lambda: list[ViewedProduct]()
    )
    results_requested: int | None = None


@dataclass
class GenerationDebug:
    """Provider bookkeeping returned alongside generated products."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    provider: str | None = None


@dataclass
class ProductGenerationResponse:
    """A validated multi-product page."""

    products: list[ProductContent] = field(
        default_factory=lambda: list[ProductContent]()
    )
    debug: GenerationDebug | None = None


@dataclass
class ProductPageResult:
    """Outcome of a page request, flagging whether it came from cache."""

    response: ProductGenerationResponse
    cache_hit: bool = False
