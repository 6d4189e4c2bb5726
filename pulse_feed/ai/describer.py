# pulse_feed/ai/describer.py

"""Interface to the AI product description provider."""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from pulse_feed.ai.payload_schema import product_response_schema
from pulse_feed.models.product import ProductGenerationRequest

SCHEMA_NAME = "product_page"

_SYSTEM_TEMPLATE = """You generate concise shopping spotlights. Always return strictly valid JSON that matches the provided schema.
- Produce exactly {desired} distinct products per response.
- Each product must reference a real item that can be purchased today.
- Include a direct HTTPS mediaUrl for every product (brand press kit or royalty-free photo that visually matches the item).
- Avoid duplicate titles or URLs across the products.
- Keep copy under 320 characters per field.
- Estimate how likely each product can be found at mainstream retailers using retailLookupConfidence (0 = obscure prototype, 1 = widely stocked). Favor confident matches when unsure."""


@dataclass
class ProductPrompt:
    """Everything a provider needs for one structured-output call."""

    system: str
    user: str
    schema: dict[str, Any]
    schema_name: str = SCHEMA_NAME


class ProductDescriber(Protocol):
    """An AI provider that returns a raw product-page JSON payload.

    Implementations raise :class:`~pulse_feed.errors.ConfigurationError`
    when credentials are missing and
    :class:`~pulse_feed.errors.ProviderTransientError` for HTTP errors,
    timeouts or unparsable output.
    """

    async def describe(
        self,
        request: ProductGenerationRequest,
        results_requested: int,
    ) -> Any: ...


def build_product_prompt(
    request: ProductGenerationRequest,
    results_requested: int,
) -> ProductPrompt:
    """Render the system/user prompt pair for *request*."""
    prefs = request.preferences
    user = json.dumps(
        {
            "preferences": {
                "likedTags": prefs.liked_tags,
                "dislikedTags": prefs.disliked_tags,
                "blacklistedItems": prefs.blacklisted_items,
                "tagWeights": prefs.tag_weights,
            },
            "searchTerms": request.search_terms,
            "lastViewed": [
                {
                    "id": item.id,
                    "tags": [
                        {"id": tag.id, "label": tag.label}
                        for tag in item.tags
                    ],
                    "liked": item.id in prefs.liked_tags,
                }
                for item in request.last_viewed
            ],
            "constraints": {
                "tokenLimit": 768,
                "dedupeWithinHours": 24,
                "maxPriceUSD": 2000,
                "resultsRequested": results_requested,
            },
        }
    )
    return ProductPrompt(
        system=_SYSTEM_TEMPLATE.format(desired=results_requested),
        user=user,
        schema=product_response_schema(),
    )
