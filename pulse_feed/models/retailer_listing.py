# pulse_feed/models/retailer_listing.py

"""Retailer listing and per-request lookup candidate models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetailerListing:
    """A normalized shopping result from the retailer search provider."""

    label: str
    url: str
    price_hint: str | None = None
    trusted: bool = False


@dataclass(frozen=True)
class CanonicalCandidate:
    """A product scored for a retailer lookup within one enrichment call."""

    product_id: str
    index: int
    canonical_key: str
    query: str
    confidence: float
