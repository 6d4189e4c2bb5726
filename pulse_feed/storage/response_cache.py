# pulse_feed/storage/response_cache.py

"""Process-local cache of generated product pages keyed by request fingerprint."""

import copy
import hashlib
import json
import logging
from dataclasses import asdict

from pulse_feed.models.product import (
    ProductGenerationRequest,
    ProductGenerationResponse,
)

logger = logging.getLogger("pulse_feed.cache")


def fingerprint_request(
    request: ProductGenerationRequest,
    results_requested: int,
) -> str:
    """Return the SHA-256 hex fingerprint of a normalized request.

    Only preferences, search terms, the (sorted) ids of recently viewed
    products and the clamped result count take part.  Keys are sorted
    during encoding so dict insertion order never changes the hash.
    """
    payload = {
        "preferences": asdict(request.preferences),
        "searchTerms": list(request.search_terms),
        "lastViewed": sorted(item.id for item in request.last_viewed),
        "resultsRequested": results_requested,
    }
    encoded = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class GenerationResponseCache:
    """Unbounded fingerprint → response map.

    Entries have no TTL; they live until :meth:`clear` (the
    erase-my-data path) or process exit.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ProductGenerationResponse] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def get(
        self, fingerprint: str,
    ) -> ProductGenerationResponse | None:
        """Return a copy of the cached response, or ``None``."""
        cached = self._entries.get(fingerprint)
        if cached is None:
            return None
        logger.info("Response cache hit for %s", fingerprint[:12])
        return copy.deepcopy(cached)

    def put(
        self,
        fingerprint: str,
        response: ProductGenerationResponse,
    ) -> None:
        """Store (or overwrite) the response for *fingerprint*."""
        self._entries[fingerprint] = copy.deepcopy(response)
        logger.info(
            "Cached %d products under %s",
            len(response.products),
            fingerprint[:12],
        )

    def clear(self) -> int:
        """Purge all cached responses.

        Returns the number of entries that were removed.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(
            "Response cache purged (%d entries removed)", count
        )
        return count
