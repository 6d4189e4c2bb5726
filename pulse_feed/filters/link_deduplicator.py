# pulse_feed/filters/link_deduplicator.py

"""Buy-link merging and deduplication."""

import logging

from pulse_feed.models.product import BuyLink
from pulse_feed.models.retailer_listing import RetailerListing

logger = logging.getLogger("pulse_feed.filters")


class LinkDeduplicator:
    """Merge retailer listings into buy links without repeating a URL."""

    @staticmethod
    def _normalise_url(url: str) -> str:
        """Case-insensitive comparison key for a URL."""
        return url.strip().lower()

    @staticmethod
    def listing_to_link(listing: RetailerListing) -> BuyLink:
        """Convert a retailer listing into a product buy link."""
        return BuyLink(
            label=listing.label,
            url=listing.url,
            price_hint=listing.price_hint,
            trusted=listing.trusted,
        )

    @staticmethod
    def deduplicate(
        links: list[BuyLink],
    ) -> tuple[list[BuyLink], int]:
        """Drop repeated URLs, keeping the first occurrence.

        Returns the deduplicated list and the count of removed links.
        """
        seen: set[str] = set()
        kept: list[BuyLink] = []
        removed = 0
        for link in links:
            key = LinkDeduplicator._normalise_url(link.url)
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(link)

        if removed:
            logger.debug(
                "Deduplication removed %d repeated buy links",
                removed,
            )
        return kept, removed

    @staticmethod
    def merge(
        existing: list[BuyLink],
        listings: list[RetailerListing],
    ) -> list[BuyLink]:
        """Prepend *listings* to *existing* links and deduplicate."""
        retailer_links = [
            LinkDeduplicator.listing_to_link(listing)
            for listing in listings
        ]
        merged, _ = LinkDeduplicator.deduplicate(
            retailer_links + list(existing)
        )
        return merged
