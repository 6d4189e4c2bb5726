# pulse_feed/services/media_probe.py

"""Remote product image validation with deterministic placeholders."""

import asyncio
import logging
import re
from dataclasses import replace
from urllib.parse import urlparse

from curl_cffi import requests as curl_requests

from pulse_feed.config.settings import Settings
from pulse_feed.metrics.collector import MetricsCollector
from pulse_feed.models.product import ProductContent

logger = logging.getLogger("pulse_feed.media")

FALLBACK_LIBRARY: list[str] = [
    "/media/placeholders/aurora.svg",
    "/media/placeholders/circuit.svg",
    "/media/placeholders/sunrise.svg",
]

_IMAGE_EXTENSION_RE = re.compile(
    r"\.(?:apng|avif|gif|jpe?g|jfif|pjpeg|pjp|png|svg|webp|heic|heif)$",
    re.IGNORECASE,
)

# HEAD rejections worth a ranged GET before giving up
_RETRY_WITH_GET = (403, 405, 406, 500, 501)


def _hash_string(value: str) -> int:
    """32-bit rolling string hash (stable across processes)."""
    hashed = 0
    for char in value:
        hashed = ((hashed << 5) - hashed + ord(char)) & 0xFFFFFFFF
    if hashed >= 0x80000000:
        hashed -= 0x100000000
    return abs(hashed)


def fallback_media_url(product: ProductContent) -> str:
    """Pick a placeholder image deterministically from title and tags."""
    parts = [product.title, *(tag.label for tag in product.tags)]
    seed = "|".join(p for p in parts if p) or "product"
    return FALLBACK_LIBRARY[_hash_string(seed) % len(FALLBACK_LIBRARY)]


def _is_image_mime(value: str | None) -> bool:
    return bool(value) and str(value).lower().startswith("image/")


def _has_image_extension(url: str) -> bool:
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    return bool(_IMAGE_EXTENSION_RE.search(path))


class MediaProber:
    """Checks that a product's media URL really serves an image."""

    def __init__(
        self,
        metrics: MetricsCollector | None = None,
        timeout: float | None = None,
    ) -> None:
        self.settings = Settings()
        self.metrics = metrics or MetricsCollector()
        self._timeout = min(
            7.0,
            max(
                0.5,
                self.settings.MEDIA_PROBE_TIMEOUT
                if timeout is None
                else timeout,
            ),
        )
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def probe(self, url: str) -> bool:
        """Return True when *url* answers with an image (blocking)."""
        try:
            head = self.session.head(
                url,
                allow_redirects=True,
                timeout=self._timeout,
            )
            if head.status_code == 200:
                content_type = head.headers.get("content-type")
                return _is_image_mime(content_type) or (
                    not content_type and _has_image_extension(url)
                )

            if head.status_code in _RETRY_WITH_GET:
                resp = self.session.get(
                    url,
                    headers={"Range": "bytes=0-0", "Accept": "image/*"},
                    allow_redirects=True,
                    timeout=self._timeout,
                )
                if resp.status_code in (200, 206):
                    content_type = resp.headers.get("content-type")
                    return _is_image_mime(
                        content_type
                    ) or _has_image_extension(url)
        except Exception as exc:
            logger.debug("Media probe failed for %s: %s", url, exc)
            self.metrics.record(
                "ai.media_probe_error", {"reason": str(exc)[:80]}
            )
        return False

    async def ensure_media(
        self, product: ProductContent,
    ) -> ProductContent:
        """Return *product*, swapping in a placeholder if its image is bad."""
        url = product.media_url
        if url and url.startswith("http"):
            if await asyncio.to_thread(self.probe, url):
                return product
            reason = "invalid_remote"
        else:
            reason = "missing_remote"

        self.metrics.record(
            "ai.media_fallback_applied", {"reason": reason}
        )
        return replace(product, media_url=fallback_media_url(product))

    async def ensure_all(
        self, products: list[ProductContent],
    ) -> list[ProductContent]:
        """Probe every product's media concurrently, keeping order."""
        return list(
            await asyncio.gather(
                *(self.ensure_media(p) for p in products)
            )
        )
