"""Asset schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssetStatus:
    """Ingestion status values."""

    PENDING = "pending"
    DOWNLOADED = "downloaded"
    ANALYZED = "analyzed"
    TAGGED = "tagged"
    READY = "ready"
    ERROR = "error"


class AssetVariantResponse(BaseModel):
    """Stored print variant."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    width_cm: float
    height_cm: float
    width_inches: float
    height_inches: float
    effective_dpi: float
    quality_grade: str


class AssetResponse(BaseModel):
    """Dashboard view of an asset."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    drive_file_id: str
    filename: str
    file_path: Optional[str] = None
    mime_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    width_px: Optional[int] = None
    height_px: Optional[int] = None
    aspect_ratio: Optional[float] = None
    ratio_class: Optional[str] = None
    max_print_width_cm: Optional[float] = None
    max_print_height_cm: Optional[float] = None
    quality_tier: Optional[str] = None
    artist: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    style: Optional[str] = None
    mood: Optional[str] = None
    subject: Optional[str] = None
    era: Optional[str] = None
    palette: Optional[str] = None
    ai_tags: Optional[List[str]] = None
    ingestion_status: str
    shopify_status: str
    ingestion_error: Optional[str] = None
    shopify_product_id: Optional[str] = None
    shopify_synced_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    variants: List[AssetVariantResponse] = Field(default_factory=list)


class AssetListResponse(BaseModel):
    """Paginated dashboard asset list."""

    assets: List[AssetResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class AssetAnalysisResponse(BaseModel):
    """Result of re-running the resolution engine on an asset."""

    asset_id: str
    filename: str
    analysis: Dict[str, Any]
