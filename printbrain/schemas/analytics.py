"""Analytics schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class TrackEventsResponse(BaseModel):
    """Result of an event ingest call."""

    tracked: int
    error: Optional[str] = None


class TopProduct(BaseModel):
    product_id: str
    views: int
    clicks: int
    atc: int
    score: int


class AnalyticsSummaryResponse(BaseModel):
    """Event counts over a trailing window."""

    period: str
    total_events: int
    by_type: Dict[str, int]
    top_products: List[TopProduct]


class DashboardStatsResponse(BaseModel):
    """Pipeline-wide counters."""

    total_assets: int
    total_variants: int
    total_artists: int
    ingestion_status: Dict[str, int]
    shopify_status: Dict[str, int]
    ratio_distribution: Dict[str, int]
    style_distribution: Dict[str, int]
    recent_runs: List[Dict[str, Any]]
    watcher: Optional[Dict[str, Any]] = None
    drip: Optional[Dict[str, Any]] = None
