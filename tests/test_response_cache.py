# tests/test_response_cache.py

"""Tests for request fingerprinting and the generation response cache."""

import unittest

from helpers import make_product

from pulse_feed.models.product import (
    GenerationDebug,
    ProductGenerationRequest,
    ProductGenerationResponse,
    UserPreferences,
    ViewedProduct,
)
from pulse_feed.storage.response_cache import (
    GenerationResponseCache,
    fingerprint_request,
)


def _request(**overrides: object) -> ProductGenerationRequest:
    fields: dict[str, object] = {
        "session_id": "s1",
        "user_id": "u1",
        "preferences": UserPreferences(
            liked_tags=["outdoors"],
            tag_weights={"outdoors": 0.8, "kitchen": 0.2},
        ),
        "search_terms": ["lantern"],
        "last_viewed": [ViewedProduct("a"), ViewedProduct("b")],
    }
    fields.update(overrides)
    return ProductGenerationRequest(**fields)  # type: ignore[arg-type]


class TestFingerprint(unittest.TestCase):
    """fingerprint_request() tests."""

    def test_is_sha256_hex(self) -> None:
        """Fingerprints are 64 lowercase hex characters."""
        digest = fingerprint_request(_request(), 2)
        self.assertEqual(len(digest), 64)
        self.assertEqual(digest, digest.lower())
        int(digest, 16)

    def test_stable_under_weight_insertion_order(self) -> None:
        """Dict insertion order never changes the hash."""
        reordered = _request(
            preferences=UserPreferences(
                liked_tags=["outdoors"],
                tag_weights={"kitchen": 0.2, "outdoors": 0.8},
            )
        )
        self.assertEqual(
            fingerprint_request(_request(), 2),
            fingerprint_request(reordered, 2),
        )

    def test_stable_under_last_viewed_order(self) -> None:
        """Recently viewed ids are compared as a set."""
        reordered = _request(
            last_viewed=[ViewedProduct("b"), ViewedProduct("a")]
        )
        self.assertEqual(
            fingerprint_request(_request(), 2),
            fingerprint_request(reordered, 2),
        )

    def test_session_and_user_ignored(self) -> None:
        """Identity fields do not take part in the fingerprint."""
        other = _request(session_id="s2", user_id="u2")
        self.assertEqual(
            fingerprint_request(_request(), 2),
            fingerprint_request(other, 2),
        )

    def test_search_terms_order_matters(self) -> None:
        """Search terms keep their order."""
        a = _request(search_terms=["mug", "heated"])
        b = _request(search_terms=["heated", "mug"])
        self.assertNotEqual(
            fingerprint_request(a, 2), fingerprint_request(b, 2)
        )

    def test_result_count_changes_hash(self) -> None:
        """Asking for more products is a different request."""
        self.assertNotEqual(
            fingerprint_request(_request(), 2),
            fingerprint_request(_request(), 3),
        )


class TestGenerationResponseCache(unittest.TestCase):
    """GenerationResponseCache tests."""

    def setUp(self) -> None:
        self.cache = GenerationResponseCache()
        self.response = ProductGenerationResponse(
            products=[make_product("p1"), make_product("p2")],
            debug=GenerationDebug(provider="test"),
        )

    def test_miss_returns_none(self) -> None:
        """Unknown fingerprints are a miss."""
        self.assertIsNone(self.cache.get("missing"))

    def test_put_then_get(self) -> None:
        """A stored response comes back equal."""
        self.cache.put("fp", self.response)
        self.assertIn("fp", self.cache)
        self.assertEqual(self.cache.get("fp"), self.response)

    def test_put_overwrites(self) -> None:
        """A second put replaces the first entry."""
        self.cache.put("fp", self.response)
        newer = ProductGenerationResponse(products=[make_product("p9")])
        self.cache.put("fp", newer)
        cached = self.cache.get("fp")
        assert cached is not None
        self.assertEqual([p.id for p in cached.products], ["p9"])
        self.assertEqual(len(self.cache), 1)

    def test_cached_copy_isolated_from_callers(self) -> None:
        """Mutating stored or returned objects never leaks into the cache."""
        self.cache.put("fp", self.response)
        self.response.products.clear()
        first = self.cache.get("fp")
        assert first is not None
        first.products[0].title = "Changed"
        second = self.cache.get("fp")
        assert second is not None
        self.assertEqual(len(second.products), 2)
        self.assertNotEqual(second.products[0].title, "Changed")

    def test_clear_returns_count(self) -> None:
        """clear() empties the cache and reports what it removed."""
        self.cache.put("a", self.response)
        self.cache.put("b", self.response)
        self.assertEqual(self.cache.clear(), 2)
        self.assertEqual(len(self.cache), 0)
        self.assertIsNone(self.cache.get("a"))


if __name__ == "__main__":
    unittest.main()
