# tests/test_settings.py

"""Tests for the Settings configuration class."""

import os
import unittest
from pathlib import Path
from unittest.mock import patch

from pulse_feed.config.settings import (
    Settings,
    _env_float,
    _env_int,
    _env_optional_int,
    _env_str,
)


class TestSettings(unittest.TestCase):
    """Verify Settings constants."""

    def test_retailer_timeout_is_positive(self) -> None:
        """RETAILER_TIMEOUT must be a positive number."""
        self.assertIsInstance(Settings.RETAILER_TIMEOUT, float)
        self.assertGreater(Settings.RETAILER_TIMEOUT, 0)

    def test_lookup_cache_limits_positive(self) -> None:
        """Cache TTL is non-negative and size at least 1."""
        self.assertGreaterEqual(Settings.LOOKUP_CACHE_TTL, 0)
        self.assertGreaterEqual(Settings.LOOKUP_CACHE_SIZE, 1)

    def test_confidence_threshold_in_unit_interval(self) -> None:
        """CONFIDENCE_THRESHOLD lives in [0, 1]."""
        self.assertGreaterEqual(Settings.CONFIDENCE_THRESHOLD, 0.0)
        self.assertLessEqual(Settings.CONFIDENCE_THRESHOLD, 1.0)

    def test_result_bounds(self) -> None:
        """Pages hold between two and four products."""
        self.assertEqual(Settings.MIN_RESULTS, 2)
        self.assertEqual(Settings.MAX_RESULTS, 4)

    def test_media_probe_timeout_clamped(self) -> None:
        """MEDIA_PROBE_TIMEOUT stays within 0.5 to 7 seconds."""
        self.assertGreaterEqual(Settings.MEDIA_PROBE_TIMEOUT, 0.5)
        self.assertLessEqual(Settings.MEDIA_PROBE_TIMEOUT, 7.0)

    def test_path_constants_are_paths(self) -> None:
        """Path-typed settings are Path instances."""
        self.assertIsInstance(Settings.BASE_DIR, Path)
        self.assertIsInstance(Settings.LOGS_DIR, Path)

    def test_impersonate_browser_is_string(self) -> None:
        """IMPERSONATE_BROWSER must be a non-empty string."""
        self.assertIsInstance(Settings.IMPERSONATE_BROWSER, str)
        self.assertTrue(len(Settings.IMPERSONATE_BROWSER) > 0)

    def test_default_headers_identify_bot(self) -> None:
        """DEFAULT_HEADERS carry the bot user agent."""
        self.assertEqual(
            Settings.DEFAULT_HEADERS["User-Agent"], Settings.USER_AGENT
        )
        self.assertIn("Accept-Language", Settings.DEFAULT_HEADERS)


class TestEnvHelpers(unittest.TestCase):
    """Verify environment parsing helpers."""

    @patch.dict(os.environ, {"PF_TEST": "  value  "})
    def test_env_str_strips(self) -> None:
        """Values are stripped."""
        self.assertEqual(_env_str("PF_TEST"), "value")

    @patch.dict(os.environ, {"PF_TEST": "   "})
    def test_env_str_blank_is_default(self) -> None:
        """Blank values fall back to the default."""
        self.assertEqual(_env_str("PF_TEST", "fallback"), "fallback")

    @patch.dict(os.environ, {"PF_TEST": "nope"})
    def test_env_float_invalid_is_default(self) -> None:
        """Unparsable numbers fall back to the default."""
        self.assertEqual(_env_float("PF_TEST", 1.5), 1.5)

    @patch.dict(os.environ, {"PF_TEST": "inf"})
    def test_env_float_infinite_is_default(self) -> None:
        """Non-finite numbers fall back to the default."""
        self.assertEqual(_env_float("PF_TEST", 2.0), 2.0)

    @patch.dict(os.environ, {"PF_TEST": "7.9"})
    def test_env_int_truncates(self) -> None:
        """Integer settings accept decimal input."""
        self.assertEqual(_env_int("PF_TEST", 3), 7)

    @patch.dict(os.environ, {"PF_TEST": "0"})
    def test_env_optional_int_floor(self) -> None:
        """Optional integer settings are at least 1 when set."""
        self.assertEqual(_env_optional_int("PF_TEST"), 1)

    def test_env_optional_int_unset(self) -> None:
        """Unset optional integers are None."""
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("PF_TEST", None)
            self.assertIsNone(_env_optional_int("PF_TEST"))


if __name__ == "__main__":
    unittest.main()
