# pulse_feed/filters/preference_engine.py

"""Feed preference learning from swipe-like interactions.

Every interaction nudges the weight of each tag on the product; the
resulting :class:`UserPreferences` snapshot is what page requests
carry (and what the response cache fingerprints).
"""

import logging
import re
from dataclasses import replace
from typing import Literal

from pulse_feed.models.product import ProductContent, UserPreferences

logger = logging.getLogger("pulse_feed.filters")

Interaction = Literal["liked", "disliked", "reported", "viewed"]

INTERACTION_DELTAS: dict[str, float] = {
    "liked": 0.2,
    "disliked": -0.3,
    "reported": -1.0,
    "viewed": 0.05,
}
SEARCH_TERM_BOOST = 0.35
MIN_WEIGHT = -1.0
MAX_WEIGHT = 2.0

_SEARCH_SPLIT_RE = re.compile(r"[,\s]+")
_TERM_KEY_RE = re.compile(r"[^a-z0-9-]", re.IGNORECASE)


def _clamp_weight(value: float) -> float:
    return min(MAX_WEIGHT, max(MIN_WEIGHT, value))


def _append_unique(items: list[str], extra: list[str]) -> list[str]:
    merged = list(items)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged


def adjust_weights(
    preferences: UserPreferences,
    product: ProductContent,
    interaction: Interaction,
) -> UserPreferences:
    """Return a new snapshot with *interaction* applied to *product*'s tags.

    Tag weights move by the interaction delta, clamped to ``[-1, 2]``
    and rounded to 3 decimals.  Likes and dislikes also record the tag
    ids; a report blacklists the product id.  *preferences* is left
    untouched.
    """
    delta = INTERACTION_DELTAS.get(interaction, INTERACTION_DELTAS["viewed"])
    weights = dict(preferences.tag_weights)
    for tag in product.tags:
        weights[tag.id] = round(
            _clamp_weight(weights.get(tag.id, 0.0) + delta), 3
        )

    tag_ids = [tag.id for tag in product.tags]
    liked = list(preferences.liked_tags)
    disliked = list(preferences.disliked_tags)
    blacklisted = list(preferences.blacklisted_items)
    if interaction == "liked":
        liked = _append_unique(liked, tag_ids)
    elif interaction == "disliked":
        disliked = _append_unique(disliked, tag_ids)
    elif interaction == "reported":
        blacklisted = _append_unique(blacklisted, [product.id])

    logger.debug(
        "Applied '%s' to %s (%d tags)", interaction, product.id, len(tag_ids)
    )
    return replace(
        preferences,
        liked_tags=liked,
        disliked_tags=disliked,
        blacklisted_items=blacklisted,
        tag_weights=weights,
    )


def score_product_for_queue(
    product: ProductContent,
    preferences: UserPreferences,
) -> float:
    """Sum of the learned weights of *product*'s tags (unknown tags add 0)."""
    weights = preferences.tag_weights
    return sum(weights.get(tag.id, 0.0) for tag in product.tags)


def dedupe_products(
    products: list[ProductContent],
    blacklist: set[str],
) -> tuple[list[ProductContent], int]:
    """Drop blacklisted and repeated product ids, keeping first occurrence.

    Returns the kept products and the number removed.
    """
    seen: set[str] = set()
    kept: list[ProductContent] = []
    for product in products:
        if product.id in blacklist or product.id in seen:
            continue
        seen.add(product.id)
        kept.append(product)
    return kept, len(products) - len(kept)


def derive_search_terms(search_text: str) -> list[str]:
    """Split free search text on commas and whitespace, lowercased."""
    return [
        chunk.strip().lower()
        for chunk in _SEARCH_SPLIT_RE.split(search_text)
        if chunk.strip()
    ]


def merge_search_into_preferences(
    preferences: UserPreferences,
    search_terms: list[str],
) -> UserPreferences:
    """Boost a weight per search term so the next page leans toward it."""
    weights = dict(preferences.tag_weights)
    for term in search_terms:
        key = _TERM_KEY_RE.sub("-", term)
        weights[key] = _clamp_weight(
            weights.get(key, 0.0) + SEARCH_TERM_BOOST
        )
    return replace(preferences, tag_weights=weights)
