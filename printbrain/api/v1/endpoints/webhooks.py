"""Shopify order webhooks."""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from printbrain.api.deps import get_db, get_session_factory
from printbrain.config import settings
from printbrain.services import order_service
from printbrain.services.builders import build_printful

logger = logging.getLogger(__name__)

router = APIRouter()


async def verified_payload(
    request: Request,
    x_shopify_hmac_sha256: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """Read the raw body, check its signature and decode it."""
    body = await request.body()
    if not order_service.verify_hmac(settings.shopify_webhook_secret, body, x_shopify_hmac_sha256):
        logger.warning(f"Rejected webhook {request.url.path}: bad or missing signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")


@router.post("/order-created")
async def order_created(
    order: Dict[str, Any] = Depends(verified_payload),
    session_factory=Depends(get_session_factory),
):
    """
    Record catalog line items of a new order.

    Items carrying an "Artwork" property become fulfillment rows and
    purchase events; they are sent to Printful when it is configured.
    Processing failures still answer 200 so Shopify does not retry.
    """
    printful = build_printful()
    try:
        return await order_service.process_order_created(
            order,
            session_factory=session_factory,
            printful=printful,
            auto_confirm=settings.printful_auto_confirm,
        )
    except Exception as e:
        logger.error(f"Order webhook failed for {order.get('id')}: {e}", exc_info=True)
        return {"received": False, "error": str(e)}
    finally:
        if printful is not None:
            await printful.close()


@router.post("/order-paid")
def order_paid(order: Dict[str, Any] = Depends(verified_payload), db: Session = Depends(get_db)):
    """Mark every fulfillment row of the order as paid."""
    order_id = str(order.get("id"))
    try:
        updated = order_service.mark_order_paid(db, order_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Order paid webhook failed for {order_id}: {e}", exc_info=True)
        return {"received": False, "error": str(e)}

    logger.info(f"Order {order.get('name')} ({order_id}) paid, {updated} rows updated")
    return {"received": True, "updated": updated}
