"""Shopify Admin REST client used by the drip sync and the tag push.

Requests pass through a leaky-bucket admission check mirroring Shopify's
own call limit (40 calls, draining 2/s). The ``X-Shopify-Shop-Api-Call-Limit``
response header resynchronises the bucket with the server's view.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from printbrain.services.enrichment import product_tags

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"
THROTTLE_MARKERS = ("variant creation limit", "Daily variant")
METAFIELD_NAMESPACE = "neverland"
PAPER_TEXT = "Premium 310gsm cotton-rag archival paper, 200+ year lightfast inks."
UNKNOWN_ARTIST = "Unknown Artist"

CONNECTION_ATTEMPTS = 5
MAX_RETRIES = 10


class ShopifyError(Exception):
    """Shopify request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ThrottleError(ShopifyError):
    """Daily variant creation quota exhausted."""

    pass


def is_throttle_body(body: str) -> bool:
    return any(marker in body for marker in THROTTLE_MARKERS)


class LeakyBucket:
    """Client-side model of Shopify's request bucket.

    Args:
        capacity: Bucket size
        drain_rate: Calls drained per second
        clock: Monotonic clock in seconds
        sleep: Async sleep used while waiting for room
    """

    def __init__(
        self,
        capacity: int = 40,
        drain_rate: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.capacity = capacity
        self.drain_rate = drain_rate
        self.used = 0.0
        self._clock = clock
        self._sleep = sleep
        self._last = clock()

    def _drain(self) -> None:
        now = self._clock()
        self.used = max(0.0, self.used - (now - self._last) * self.drain_rate)
        self._last = now

    async def acquire(self) -> None:
        """Wait in 500ms steps until the bucket has room, then take a slot."""
        self._drain()
        while self.used >= self.capacity - 2:
            await self._sleep(0.5)
            self._drain()
        self.used += 1
        self._last = self._clock()

    def observe(self, header: Optional[str]) -> None:
        """Apply a ``used/max`` call-limit header."""
        if not header or "/" not in header:
            return
        try:
            used, maximum = (int(part) for part in header.split("/", 1))
        except ValueError:
            return
        self.used = float(used)
        self.capacity = maximum
        self._last = self._clock()

    def fill(self) -> None:
        self.used = float(self.capacity)
        self._last = self._clock()


def build_product_payload(asset: Any) -> Dict[str, Any]:
    """Product-create body for one asset (single default variant)."""
    title = (asset.title or "Untitled")[:255]
    artist = asset.artist or UNKNOWN_ARTIST
    if asset.description:
        body_html = (
            f'<div class="np-desc"><p class="np-ai">{asset.description}</p>'
            f"<p>Museum-quality fine art print by <strong>{artist}</strong>.</p>"
            f"<p>{PAPER_TEXT}</p></div>"
        )
    else:
        body_html = (
            f"<p>Museum-quality fine art print by <strong>{artist}</strong>.</p>"
            f"<p>{PAPER_TEXT}</p>"
        )

    def metafield(key: str, value: Any) -> Dict[str, str]:
        return {
            "namespace": METAFIELD_NAMESPACE,
            "key": key,
            "value": str(value),
            "type": "single_line_text_field",
        }

    return {
        "product": {
            "title": title,
            "body_html": body_html,
            "vendor": artist,
            "product_type": "Art Print",
            "tags": ", ".join(product_tags(asset)),
            "status": "active",
            "metafields": [
                metafield("drive_file_id", asset.drive_file_id),
                metafield("ratio_class", asset.ratio_class or ""),
                metafield("quality_tier", asset.quality_tier or ""),
                metafield(
                    "max_print_cm",
                    f"{asset.max_print_width_cm or 0}×{asset.max_print_height_cm or 0}",
                ),
                metafield("aspect_ratio", asset.aspect_ratio or ""),
            ],
        }
    }


class ShopifyClient:
    """Shopify Admin REST client with bucket admission and retries.

    Example:
        >>> client = ShopifyClient("shop.myshopify.com", "shpat_...")
        >>> product_id, gid = await client.create_product(build_product_payload(asset))
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-10",
        client: Optional[httpx.AsyncClient] = None,
        bucket: Optional[LeakyBucket] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if not store_domain or not access_token:
            raise ShopifyError("Shopify store domain and access token are required")
        self.base_url = f"https://{store_domain}/admin/api/{api_version}"
        self.bucket = bucket or LeakyBucket(sleep=sleep)
        self._sleep = sleep
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"X-Shopify-Access-Token": access_token, "Content-Type": "application/json"},
            timeout=60.0,
        )

    async def _send(self, method: str, endpoint: str, body: Optional[dict]) -> httpx.Response:
        """Send once, retrying connection failures with 2s * n back-off."""
        for attempt in range(1, CONNECTION_ATTEMPTS + 1):
            try:
                return await self._client.request(method, endpoint, json=body)
            except httpx.TransportError as e:
                if attempt == CONNECTION_ATTEMPTS:
                    raise ShopifyError(f"Connection failed after {attempt} attempts: {e}")
                logger.warning(f"Shopify connection error ({attempt}/{CONNECTION_ATTEMPTS}): {e}")
                await self._sleep(2.0 * attempt)
        raise ShopifyError("Connection failed")

    async def _request(
        self,
        method: str,
        endpoint: str,
        body: Optional[dict] = None,
        default_retry_after: float = 4.0,
        allow_404: bool = False,
    ) -> Optional[dict]:
        for _ in range(MAX_RETRIES):
            await self.bucket.acquire()
            response = await self._send(method, endpoint, body)
            self.bucket.observe(response.headers.get(CALL_LIMIT_HEADER))

            if response.status_code == 429:
                if is_throttle_body(response.text):
                    raise ThrottleError("Daily variant limit reached", 429)
                wait = float(response.headers.get("Retry-After") or default_retry_after)
                self.bucket.fill()
                logger.info(f"Shopify rate limited, retrying in {wait + 1:.0f}s")
                await self._sleep(wait + 1.0)
                continue

            if response.status_code in (502, 503):
                await self._sleep(3.0)
                continue

            if response.status_code == 404 and allow_404:
                return None

            if response.status_code >= 400:
                text = response.text
                if is_throttle_body(text):
                    raise ThrottleError("Daily variant limit reached", response.status_code)
                raise ShopifyError(f"HTTP {response.status_code}: {text[:300]}", response.status_code)

            return response.json() if response.content else {}

        raise ShopifyError(f"{method} {endpoint} still failing after {MAX_RETRIES} retries")

    async def create_product(self, payload: Dict[str, Any]) -> Tuple[str, str]:
        """Create a product.

        Returns:
            Tuple of (numeric product id, product gid)

        Raises:
            ThrottleError: Daily variant quota exhausted
            ShopifyError: Any other failure
        """
        result = await self._request("POST", "/products.json", payload)
        product = (result or {}).get("product") or {}
        if not product.get("id"):
            raise ShopifyError(f"No product in response: {str(result)[:200]}")
        product_id = str(product["id"])
        return product_id, f"gid://shopify/Product/{product_id}"

    async def update_product_tags(self, product_id: str, tags: List[str]) -> bool:
        """Replace a product's tags. Returns False when the product no longer exists."""
        result = await self._request(
            "PUT",
            f"/products/{product_id}.json",
            {"product": {"id": int(product_id), "tags": ", ".join(tags)}},
            default_retry_after=2.0,
            allow_404=True,
        )
        return result is not None

    async def update_variant_price(
        self, variant_id: str, price: str, compare_at_price: Optional[str] = None
    ) -> dict:
        variant: Dict[str, Any] = {"id": int(variant_id), "price": price}
        if compare_at_price is not None:
            variant["compare_at_price"] = compare_at_price
        result = await self._request("PUT", f"/variants/{variant_id}.json", {"variant": variant})
        return (result or {}).get("variant") or {}

    async def close(self) -> None:
        await self._client.aclose()
