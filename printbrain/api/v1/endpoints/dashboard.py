"""Operator dashboard endpoints."""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from printbrain.api.deps import get_db
from printbrain.schemas.analytics import DashboardStatsResponse
from printbrain.schemas.asset import AssetAnalysisResponse, AssetListResponse, AssetResponse
from printbrain.schemas.pipeline import PipelineRunListResponse, PipelineRunResponse
from printbrain.services import dashboard_service
from printbrain.services.dashboard_service import AssetNotAnalyzableError
from printbrain.services.pipeline_runs import list_runs

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stats", response_model=DashboardStatsResponse)
def get_stats(request: Request, db: Session = Depends(get_db)):
    """Asset, variant and run counters plus in-process worker status."""
    try:
        stats = dashboard_service.stats(db)
    except Exception as e:
        logger.error(f"Failed to compute dashboard stats: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute stats: {str(e)}",
        )

    watcher = getattr(request.app.state, "watcher", None)
    drip = getattr(request.app.state, "drip", None)
    stats["watcher"] = watcher.status() if watcher else None
    stats["drip"] = drip.status() if drip else None
    return stats


@router.get("/assets", response_model=AssetListResponse)
def list_assets(
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(50, ge=1, le=200, description="Items per page"),
    ingestion_status: Optional[str] = Query(None, description="Filter by ingestion status"),
    shopify_status: Optional[str] = Query(None, description="Filter by Shopify status"),
    artist: Optional[str] = None,
    search: Optional[str] = Query(None, description="Filename or title substring"),
    db: Session = Depends(get_db),
):
    """List assets newest first."""
    assets, total = dashboard_service.list_assets(
        db,
        page=page,
        per_page=per_page,
        ingestion_status=ingestion_status,
        shopify_status=shopify_status,
        artist=artist,
        search=search,
    )
    return AssetListResponse(
        assets=[AssetResponse.model_validate(a) for a in assets],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=math.ceil(total / per_page) if total > 0 else 0,
    )


@router.get("/assets/{asset_id}")
def get_asset(
    asset_id: str,
    profile: str = Query("matte_paper", description="Print profile for the specs"),
    db: Session = Depends(get_db),
):
    """Asset with variants and a print spec per variant."""
    asset = dashboard_service.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")

    return {
        "asset": AssetResponse.model_validate(asset).model_dump(mode="json"),
        "printSpecs": dashboard_service.print_specs(asset, profile),
    }


@router.post("/assets/{asset_id}/analyze", response_model=AssetAnalysisResponse)
def analyze_asset(asset_id: str, db: Session = Depends(get_db)):
    """Re-run the resolution engine on an asset and replace its variants."""
    asset = dashboard_service.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")

    try:
        analysis = dashboard_service.reanalyze_asset(db, asset)
    except AssetNotAnalyzableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        db.rollback()
        logger.error(f"Re-analysis failed for {asset_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to analyze asset: {str(e)}",
        )

    return AssetAnalysisResponse(asset_id=asset.id, filename=asset.filename, analysis=analysis)


@router.get("/pipeline-runs", response_model=PipelineRunListResponse)
def get_pipeline_runs(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Most recent scheduled job runs."""
    return PipelineRunListResponse(
        runs=[PipelineRunResponse.model_validate(run) for run in list_runs(db, limit=limit)]
    )


@router.get("/print-profiles")
def get_print_profiles():
    return {"profiles": dashboard_service.print_profiles()}


@router.get("/size-catalog")
def get_size_catalog():
    return dashboard_service.size_catalog()
