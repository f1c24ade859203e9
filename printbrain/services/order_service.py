"""Inbound order handling: webhook verification and fulfillment rows."""

import base64
import hashlib
import hmac
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from printbrain.database import SessionLocal, session_scope
from printbrain.models.analytics_event import AnalyticsEvent
from printbrain.models.fulfillment_order import FulfillmentOrder
from printbrain.services.descriptions import image_url
from printbrain.services.printful_client import PrintfulClient, variant_for_size

logger = logging.getLogger(__name__)

ARTWORK_PROPERTY = "Artwork"
FULL_RESOLUTION = 0


def compute_hmac(secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of ``body`` keyed with ``secret``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_hmac(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """
    Check a webhook signature in constant time.

    Args:
        secret: Shared webhook secret
        body: Raw request body
        signature: Value of the ``X-Shopify-Hmac-Sha256`` header

    Returns:
        True only when a secret is configured and the signature matches
    """
    if not secret or not signature:
        return False
    expected = compute_hmac(secret, body)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("ascii", "ignore"))


def _shipping_address(order: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    address = order.get("shipping_address")
    if not address:
        return None
    return {
        "name": f"{address.get('first_name') or ''} {address.get('last_name') or ''}".strip(),
        "address1": address.get("address1"),
        "address2": address.get("address2"),
        "city": address.get("city"),
        "province": address.get("province"),
        "province_code": address.get("province_code"),
        "country": address.get("country"),
        "country_code": address.get("country_code"),
        "zip": address.get("zip"),
    }


def parse_order_items(order: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Extract catalog line items from an order payload.

    A line item belongs to the catalog when its properties include
    ``Artwork``. Other line items are ignored.

    Args:
        order: Order webhook payload

    Returns:
        List of fulfillment row values
    """
    items = []
    shipping = _shipping_address(order)
    for line in order.get("line_items") or []:
        props = {p.get("name"): p.get("value") for p in line.get("properties") or [] if isinstance(p, dict)}
        if not props.get(ARTWORK_PROPERTY):
            logger.info(f"Order {order.get('name')}: standard item {line.get('title')} x {line.get('quantity')}")
            continue
        items.append(
            {
                "shopify_order_id": str(order.get("id")),
                "shopify_order_name": order.get("name"),
                "line_item_id": str(line.get("id")),
                "asset_id": props.get("_asset_id") or None,
                "drive_file_id": props.get("_drive_file_id") or None,
                "artwork_title": props.get(ARTWORK_PROPERTY),
                "artist": props.get("Artist") or "Unknown",
                "size": props.get("Size") or "",
                "frame": props.get("Frame") or "Unframed",
                "price_tier": props.get("_price_tier") or "",
                "preview_url": props.get("_preview") or None,
                "quantity": line.get("quantity") or 1,
                "price": str(line.get("price")) if line.get("price") is not None else None,
                "sku": line.get("sku"),
                "customer_email": order.get("email"),
                "shipping_address": shipping,
            }
        )
    return items


def upsert_fulfillment_items(db: Session, items: List[Dict[str, Any]]) -> int:
    """Insert or update rows keyed by (order id, line item id), status pending."""
    for item in items:
        row = db.query(FulfillmentOrder).filter(
            FulfillmentOrder.shopify_order_id == item["shopify_order_id"],
            FulfillmentOrder.line_item_id == item["line_item_id"],
        ).first()
        if row is None:
            row = FulfillmentOrder(**item)
            db.add(row)
        else:
            for key, value in item.items():
                setattr(row, key, value)
        row.status = "pending"
    db.flush()
    return len(items)


def record_purchase_events(db: Session, items: List[Dict[str, Any]]) -> None:
    for item in items:
        db.add(
            AnalyticsEvent(
                event_type="purchase",
                asset_id=item["asset_id"],
                metadata_json={
                    "asset_id": item["asset_id"],
                    "title": item["artwork_title"],
                    "artist": item["artist"],
                    "price": item["price"],
                    "order_id": item["shopify_order_id"],
                },
            )
        )


def mark_sent_to_printful(db: Session, order_id: str, line_item_id: str, printful_order_id: str) -> None:
    db.query(FulfillmentOrder).filter(
        FulfillmentOrder.shopify_order_id == order_id,
        FulfillmentOrder.line_item_id == line_item_id,
    ).update({"printful_order_id": printful_order_id, "status": "sent_to_printful"})


def mark_order_paid(db: Session, order_id: str) -> int:
    """Set every line of an order to paid. Returns the number of rows updated."""
    updated = db.query(FulfillmentOrder).filter(
        FulfillmentOrder.shopify_order_id == order_id
    ).update({"status": "paid"})
    if not updated:
        logger.warning(f"Order {order_id} marked paid but has no fulfillment rows yet")
    return updated


async def submit_to_printful(
    printful: PrintfulClient,
    order: Dict[str, Any],
    items: List[Dict[str, Any]],
    session_factory: Callable[[], Session] = SessionLocal,
    auto_confirm: bool = False,
) -> int:
    """Create one Printful order per item. Failures are logged per item."""
    address = order.get("shipping_address") or {}
    recipient = {
        "name": f"{address.get('first_name') or ''} {address.get('last_name') or ''}".strip(),
        "address1": address.get("address1"),
        "address2": address.get("address2"),
        "city": address.get("city"),
        "state_code": address.get("province_code"),
        "country_code": address.get("country_code"),
        "zip": address.get("zip"),
    }
    sent = 0
    for item in items:
        if item["drive_file_id"]:
            url = image_url(item["drive_file_id"], FULL_RESOLUTION)
        else:
            url = item["preview_url"]
        if not url:
            logger.warning(f"No image for '{item['artwork_title']}', skipping Printful")
            continue
        try:
            result = await printful.create_order(
                recipient,
                url,
                variant_id=variant_for_size(item["size"]),
                title=item["artwork_title"],
                external_id=f"{item['shopify_order_id']}-{item['line_item_id']}",
                quantity=item["quantity"],
            )
            printful_id = str(result["id"])
            with session_scope(session_factory) as db:
                mark_sent_to_printful(db, item["shopify_order_id"], item["line_item_id"], printful_id)
            logger.info(f"Printful order {printful_id} created for '{item['artwork_title']}'")
            if auto_confirm:
                await printful.confirm_order(printful_id)
                logger.info(f"Printful order {printful_id} confirmed")
            sent += 1
        except Exception as e:
            logger.error(f"Printful error for '{item['artwork_title']}': {str(e)[:150]}", exc_info=True)
    return sent


async def process_order_created(
    order: Dict[str, Any],
    session_factory: Callable[[], Session] = SessionLocal,
    printful: Optional[PrintfulClient] = None,
    auto_confirm: bool = False,
) -> Dict[str, Any]:
    """
    Persist catalog line items of a new order and optionally fulfill them.

    Args:
        order: Order webhook payload
        session_factory: Session factory
        printful: Printful client, None to skip fulfillment
        auto_confirm: Confirm Printful drafts immediately

    Returns:
        ``{"received": True, "items": n}``
    """
    logger.info(
        f"Order received: {order.get('name')} ({order.get('id')}), "
        f"{len(order.get('line_items') or [])} line items"
    )
    items = parse_order_items(order)
    if items:
        with session_scope(session_factory) as db:
            upsert_fulfillment_items(db, items)
            record_purchase_events(db, items)
        logger.info(f"Saved {len(items)} fulfillment items for order {order.get('name')}")

        if printful is not None and order.get("shipping_address"):
            await submit_to_printful(printful, order, items, session_factory, auto_confirm)

    return {"received": True, "items": len(items)}
