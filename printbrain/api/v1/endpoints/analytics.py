"""Analytics endpoints: event ingest and summaries."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from printbrain.api.deps import get_db
from printbrain.schemas.analytics import AnalyticsSummaryResponse, TrackEventsResponse
from printbrain.services import analytics_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/events", response_model=TrackEventsResponse, response_model_exclude_none=True)
def track_events(
    request: Request,
    payload: Any = Body(..., description="One event object or a list of events"),
    db: Session = Depends(get_db),
):
    """
    Record storefront events.

    - **event_type**: impression, click, view, add_to_cart, purchase or search
    - **session_id**: Defaults to the client address

    Storage failures answer 200 with ``tracked: 0`` so storefront scripts stay quiet.
    """
    client_host = request.client.host if request.client else None
    rows = analytics_service.normalize_events(payload, client_host)
    if not rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid events")

    try:
        tracked = analytics_service.insert_events(db, rows)
    except Exception as e:
        db.rollback()
        logger.error(f"Analytics insert failed: {e}", exc_info=True)
        return TrackEventsResponse(tracked=0, error=str(e))

    return TrackEventsResponse(tracked=tracked)


@router.get("/analytics/summary", response_model=AnalyticsSummaryResponse)
def analytics_summary(
    days: int = Query(7, ge=1, le=365, description="Trailing window in days"),
    db: Session = Depends(get_db),
):
    """Event totals and top products over the trailing window."""
    try:
        return analytics_service.summarize(db, days)
    except Exception as e:
        logger.error(f"Analytics summary failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to summarize analytics: {str(e)}",
        )
