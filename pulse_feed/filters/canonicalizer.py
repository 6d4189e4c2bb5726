# pulse_feed/filters/canonicalizer.py

"""Canonical lookup keys, search queries and lookup-confidence scoring.

Products whose descriptive text reduces to the same token set share
one canonical key, which lets the enrichment layer issue a single
retailer lookup (and reuse a single cache entry) for all of them.
"""

import logging
import re
from collections.abc import Mapping

from pulse_feed.config.settings import Settings
from pulse_feed.models.product import ProductContent
from pulse_feed.models.retailer_listing import CanonicalCandidate

logger = logging.getLogger("pulse_feed.filters")

MAX_KEY_TOKENS = 16
MAX_QUERY_TOKENS = 12
QUERY_SUFFIX = "buy online"

STOP_WORDS: frozenset[str] = frozenset(
    {
        # articles, conjunctions, prepositions
        "a", "an", "the", "and", "or", "but", "nor", "of", "for",
        "to", "in", "on", "at", "by", "with", "from", "into", "as",
        "is", "are", "it", "its", "this", "that", "your", "you",
        # generic commerce words
        "buy", "online", "shop", "shopping", "store", "sale",
        "price", "deal", "deals", "cheap", "best", "new", "usa",
        "product", "products", "item", "items",
    }
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_SPECULATIVE_RE = re.compile(
    r"concept|prototype|beta|waitlist|exclusive", re.IGNORECASE
)

# Confidence adjustments
NOVELTY_CUTOFF = 0.75
NOVELTY_PENALTY = 0.25
SPECULATIVE_PENALTY = 0.20
NO_LINKS_BONUS = 0.12
TRUSTED_LINK_PENALTY = 0.05
RICH_KEY_TOKENS = 3
RICH_KEY_BONUS = 0.05
HOT_HIT_STEP = 0.02
HOT_HIT_CAP = 0.15


def tokenize(text: str) -> list[str]:
    """Lowercase *text*, strip non-alphanumerics and split."""
    return _NON_ALNUM_RE.sub(" ", text.lower()).split()


def key_tokens(product: ProductContent) -> list[str]:
    """Unique non-stop-word tokens of *product* in document order.

    Title tokens come first, then whatItIs, summary and tag labels;
    at most 16 are kept.
    """
    parts = [
        product.title,
        product.what_it_is,
        product.summary,
        *(tag.label for tag in product.tags),
    ]
    unique: list[str] = []
    seen: set[str] = set()
    for part in parts:
        for token in tokenize(part or ""):
            if token in STOP_WORDS or token in seen:
                continue
            seen.add(token)
            unique.append(token)
            if len(unique) >= MAX_KEY_TOKENS:
                return unique
    return unique


def canonical_key(product: ProductContent) -> str:
    """Derive the order-independent token-set key for *product*.

    Returns an empty string when every token is a stop word.
    """
    return " ".join(sorted(key_tokens(product)))


def build_query(
    product: ProductContent,
    tokens: list[str] | None = None,
) -> str:
    """Build the retailer search query for *product*.

    Uses the first 12 key tokens in document order, title first.
    """
    if tokens is None:
        tokens = key_tokens(product)
    head = tokens[:MAX_QUERY_TOKENS]
    if head:
        return f"{' '.join(head)} {QUERY_SUFFIX}"
    return f"{product.title.strip()} {QUERY_SUFFIX}".strip()


def _description_text(product: ProductContent) -> str:
    return " ".join(
        (
            product.title,
            product.summary,
            product.what_it_is,
            product.why_useful,
        )
    )


def score_confidence(
    product: ProductContent,
    key: str,
    hot_hits: Mapping[str, int] | None = None,
) -> float:
    """Estimate how worthwhile a retailer lookup is for *product*.

    The result is clamped to ``[0, 1]`` and rounded to 3 decimals.
    An empty canonical key always scores 0.
    """
    if not key:
        return 0.0

    base = product.retail_lookup_confidence
    score = (
        Settings.DEFAULT_LOOKUP_CONFIDENCE if base is None else base
    )

    if product.novelty_score >= NOVELTY_CUTOFF:
        score -= NOVELTY_PENALTY
    if _SPECULATIVE_RE.search(_description_text(product)):
        score -= SPECULATIVE_PENALTY
    if not product.buy_links:
        score += NO_LINKS_BONUS
    elif any(link.trusted for link in product.buy_links):
        score -= TRUSTED_LINK_PENALTY
    if len(key.split()) >= RICH_KEY_TOKENS:
        score += RICH_KEY_BONUS
    if hot_hits:
        score += min(HOT_HIT_CAP, hot_hits.get(key, 0) * HOT_HIT_STEP)

    return round(min(1.0, max(0.0, score)), 3)


def build_candidate(
    product: ProductContent,
    index: int,
    hot_hits: Mapping[str, int] | None = None,
) -> CanonicalCandidate:
    """Score one product of a batch into a :class:`CanonicalCandidate`."""
    tokens = key_tokens(product)
    key = " ".join(sorted(tokens))
    return CanonicalCandidate(
        product_id=product.id,
        index=index,
        canonical_key=key,
        query=build_query(product, tokens),
        confidence=score_confidence(product, key, hot_hits),
    )


def is_eligible(
    candidate: CanonicalCandidate,
    threshold: float | None = None,
) -> bool:
    """Return True when *candidate* is worth a paid lookup."""
    limit = (
        Settings.CONFIDENCE_THRESHOLD if threshold is None else threshold
    )
    return bool(candidate.canonical_key) and (
        candidate.confidence >= limit
    )
