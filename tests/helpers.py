# tests/helpers.py

"""Builders shared by the pulse_feed test modules."""

from typing import Any

from pulse_feed.models.product import BuyLink, ProductContent, Tag
from pulse_feed.models.retailer_listing import RetailerListing


def make_product(
    product_id: str = "p1",
    title: str = "Heated Ceramic Travel Mug",
    summary: str = "Keeps coffee warm for hours",
    what_it_is: str = "",
    novelty: float = 0.2,
    confidence: float | None = None,
    buy_links: list[BuyLink] | None = None,
    tags: list[str] | None = None,
    source: str = "ai",
) -> ProductContent:
    """Create a ProductContent with sensible defaults."""
    return ProductContent(
        id=product_id,
        title=title,
        summary=summary,
        what_it_is=what_it_is,
        tags=[Tag(id=t, label=t) for t in (tags or [])],
        buy_links=list(buy_links or []),
        novelty_score=novelty,
        source=source,  # type: ignore[arg-type]
        retail_lookup_confidence=confidence,
    )


def make_listing(
    label: str = "Target",
    url: str = "https://www.target.com/p/mug",
    price: str | None = "$24.99",
    trusted: bool = False,
) -> RetailerListing:
    """Create a RetailerListing."""
    return RetailerListing(
        label=label, url=url, price_hint=price, trusted=trusted
    )


def product_payload(
    product_id: str = "p1",
    title: str = "Heated Ceramic Travel Mug",
    **overrides: Any,
) -> dict[str, Any]:
    """A camelCase product dict as the AI provider would emit it."""
    payload: dict[str, Any] = {
        "id": product_id,
        "title": title,
        "summary": "Keeps coffee warm for hours",
        "whatItIs": "A self-heating mug",
        "whyUseful": "No more cold coffee",
        "priceRange": {"min": 20, "max": 40, "currency": "USD"},
        "pros": ["Warm", "Portable"],
        "cons": ["Needs charging"],
        "tags": [{"id": "kitchen", "label": "kitchen"}],
        "buyLinks": [],
        "mediaUrl": "https://cdn.example.com/mug.png",
        "noveltyScore": 0.3,
        "generatedAt": "2026-10-19T00:00:00Z",
        "source": "ai",
        "retailLookupConfidence": 0.7,
    }
    payload.update(overrides)
    return payload


def page_payload(count: int = 2) -> dict[str, Any]:
    """A full AI response payload with *count* distinct products."""
    titles = [
        "Heated Ceramic Travel Mug",
        "Solar Camping Lantern",
        "Ergonomic Standing Desk Mat",
        "Noise Cancelling Sleep Buds",
    ]
    return {
        "products": [
            product_payload(f"p{i + 1}", titles[i]) for i in range(count)
        ],
        "debug": {"provider": "test"},
    }
