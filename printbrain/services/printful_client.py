"""Printful REST client for print fulfillment."""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

PRINTFUL_API_URL = "https://api.printful.com"
POSTER_PRODUCT_ID = 268
PACKING_EMAIL = "hello@neverlandprints.com"

# Our size labels (cm, "W×H") -> Enhanced Matte Paper Poster variants
SIZE_MAP: Dict[str, Dict[str, Any]] = {
    "21×30": {"variant_id": 8947, "size": "21×30 cm"},
    "30×40": {"variant_id": 8948, "size": "30×40 cm"},
    "30×42": {"variant_id": 19516, "size": "A2 (42×59.4 cm)"},
    "50×70": {"variant_id": 8952, "size": "50×70 cm"},
    "59×84": {"variant_id": 19515, "size": "A1 (59.4×84.1 cm)"},
    "61×91": {"variant_id": 8953, "size": "61×91 cm"},
    "70×100": {"variant_id": 8954, "size": "70×100 cm"},
    # Nearest matches for sizes produced by the resolution engine
    "20×20": {"variant_id": 8947, "size": "21×30 cm"},
    "30×30": {"variant_id": 8948, "size": "30×40 cm"},
    "50×50": {"variant_id": 8952, "size": "50×70 cm"},
    "20×30": {"variant_id": 8947, "size": "21×30 cm"},
    "40×60": {"variant_id": 8952, "size": "50×70 cm"},
    "60×80": {"variant_id": 8953, "size": "61×91 cm"},
    "30×20": {"variant_id": 8947, "size": "21×30 cm"},
    "40×30": {"variant_id": 8948, "size": "30×40 cm"},
    "60×40": {"variant_id": 8952, "size": "50×70 cm"},
    "80×60": {"variant_id": 8953, "size": "61×91 cm"},
    "90×60": {"variant_id": 8953, "size": "61×91 cm"},
}

DEFAULT_VARIANT = {"variant_id": 8948, "size": "30×40 cm"}


class PrintfulError(Exception):
    """Printful request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def variant_for_size(size: Optional[str]) -> int:
    """Printful variant id for a size label such as ``"30 × 40 cm"``.

    Examples:
        >>> variant_for_size("50 × 70 cm")
        8952
        >>> variant_for_size("13×18")
        8948
    """
    key = re.sub(r"cm", "", re.sub(r"\s", "", size or ""), flags=re.IGNORECASE).replace("x", "×")
    return SIZE_MAP.get(key, DEFAULT_VARIANT)["variant_id"]


def _address(recipient: Dict[str, Any], with_name: bool = True) -> Dict[str, Any]:
    address = {
        "address1": recipient.get("address1"),
        "city": recipient.get("city"),
        "country_code": recipient.get("country_code"),
        "state_code": recipient.get("state_code") or "",
        "zip": recipient.get("zip"),
    }
    if with_name:
        address["name"] = recipient.get("name")
        address["address2"] = recipient.get("address2") or ""
    return address


class PrintfulClient:
    """Printful API wrapper.

    Example:
        >>> client = PrintfulClient(api_key="...")
        >>> order = await client.create_order(recipient, image_url, variant_id=8948,
        ...     title="Water Lilies", external_id="1001-1")
        >>> await client.confirm_order(order["id"])
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = PRINTFUL_API_URL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise PrintfulError("PRINTFUL_API_KEY is not configured")
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=30.0,
        )

    async def _request(self, method: str, endpoint: str, body: Optional[dict] = None, params=None) -> Any:
        response = await self._client.request(method, endpoint, json=body, params=params)
        if response.status_code >= 400:
            raise PrintfulError(
                f"Printful {method} {endpoint}: {response.status_code} {response.text[:300]}",
                response.status_code,
            )
        return response.json().get("result")

    async def verify_connection(self) -> Dict[str, Any]:
        """Check the API key against the public catalog."""
        try:
            result = await self._request("GET", f"/products/{POSTER_PRODUCT_ID}")
            return {
                "connected": True,
                "product": result["product"]["title"],
                "variants": len(result.get("variants", [])),
            }
        except (PrintfulError, httpx.HTTPError, KeyError, TypeError) as e:
            return {"connected": False, "error": str(e)}

    async def get_products(self) -> List[Dict[str, Any]]:
        """Catalog products that are posters, prints or canvases."""
        result = await self._request("GET", "/products") or []
        keywords = ("poster", "print", "canvas")
        return [p for p in result if any(k in (p.get("title") or "").lower() for k in keywords)]

    async def create_order(
        self,
        recipient: Dict[str, Any],
        image_url: str,
        variant_id: int,
        title: Optional[str] = None,
        external_id: Optional[str] = None,
        quantity: int = 1,
    ) -> Dict[str, Any]:
        """Create a draft order for one printed item."""
        order = {
            "external_id": external_id,
            "shipping": "STANDARD",
            "recipient": _address(recipient),
            "items": [
                {
                    "variant_id": variant_id,
                    "quantity": quantity,
                    "name": title or "Art Print",
                    "files": [{"type": "default", "url": image_url}],
                }
            ],
            "packing_slip": {
                "email": PACKING_EMAIL,
                "message": f'Thank you for your purchase from Neverland Prints! "{title}"',
            },
        }
        return await self._request("POST", "/orders", order)

    async def confirm_order(self, order_id: Any) -> Dict[str, Any]:
        return await self._request("POST", f"/orders/{order_id}/confirm")

    async def get_order(self, order_id: Any) -> Dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}")

    async def list_orders(self, offset: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._request("GET", "/orders", params={"offset": offset, "limit": limit})

    async def estimate_costs(self, recipient: Dict[str, Any], image_url: str, variant_id: int) -> Dict[str, Any]:
        body = {
            "recipient": _address(recipient, with_name=False),
            "items": [{"variant_id": variant_id, "quantity": 1, "files": [{"type": "default", "url": image_url}]}],
        }
        return await self._request("POST", "/orders/estimate-costs", body)

    async def shipping_rates(self, recipient: Dict[str, Any], variant_id: int) -> List[Dict[str, Any]]:
        body = {
            "recipient": _address(recipient, with_name=False),
            "items": [{"variant_id": variant_id, "quantity": 1}],
        }
        return await self._request("POST", "/shipping/rates", body)

    async def close(self) -> None:
        await self._client.aclose()
