"""Storefront read API: catalog, detail, filters, similar, trending."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from printbrain.api.deps import get_db, get_embedder
from printbrain.config import settings
from printbrain.services import analytics_service, catalog_service
from printbrain.services.builders import build_similarity
from printbrain.services.catalog_service import PriceMapError
from printbrain.services.descriptions import image_set
from printbrain.services.embedding import GeminiEmbedder
from printbrain.services.similarity import TagSearch

logger = logging.getLogger(__name__)

router = APIRouter()


def cache_for(response: Response, seconds: int) -> None:
    response.headers["Cache-Control"] = f"public, max-age={seconds}"


@router.get("/price-map")
def get_price_map(response: Response):
    """Skeleton product variant ids for each price tier."""
    try:
        price_map = catalog_service.load_price_map(settings.price_map_path)
    except PriceMapError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    cache_for(response, 3600)
    return price_map


@router.get("/catalog")
def browse_catalog(
    response: Response,
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(24, ge=1, le=100, description="Items per page"),
    artist: Optional[str] = None,
    style: Optional[str] = None,
    mood: Optional[str] = None,
    orientation: Optional[str] = Query(None, description="Ratio class"),
    era: Optional[str] = None,
    subject: Optional[str] = None,
    country: Optional[str] = None,
    continent: Optional[str] = None,
    tag: Optional[str] = None,
    sort: str = Query("newest", pattern="^(newest|oldest|title_asc|title_desc|random)$"),
    q: Optional[str] = Query(None, description="Substring search"),
    db: Session = Depends(get_db),
):
    """
    Paginated catalog browse.

    Only assets that are ready or analyzed, have a Drive file and have been
    classified are listed.
    """
    filters = {
        "artist": artist,
        "style": style,
        "mood": mood,
        "orientation": orientation,
        "era": era,
        "subject": subject,
        "country": country,
        "continent": continent,
        "tag": tag,
    }
    try:
        items, total = catalog_service.browse_catalog(db, page, per_page, filters, sort, q)
    except Exception as e:
        logger.error(f"Catalog query failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load catalog: {str(e)}",
        )

    cache_for(response, 60)
    return {
        "items": items,
        "total": total,
        "page": page,
        "perPage": per_page,
        "totalPages": (total + per_page - 1) // per_page,
        "filters": {**filters, "sort": sort, "q": q},
    }


@router.get("/asset/{asset_id}")
def get_asset_detail(asset_id: str, response: Response, db: Session = Depends(get_db)):
    """Full asset detail with variants, print specs and the price map."""
    asset = catalog_service.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")

    try:
        price_map = catalog_service.load_price_map(settings.price_map_path)
    except PriceMapError as e:
        logger.warning(str(e))
        price_map = {}

    cache_for(response, 300)
    return catalog_service.asset_detail(asset, price_map)


@router.get("/product/{product_id}")
def get_product_images(product_id: str, response: Response, db: Session = Depends(get_db)):
    """Image URLs and variants for an already-synced product."""
    asset = catalog_service.find_by_product_id(db, product_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    cache_for(response, 3600)
    return {
        "driveFileId": asset.drive_file_id,
        "images": image_set(asset.drive_file_id, (400, 800, 1200, 1600, 2000)),
        "artist": asset.artist,
        "ratioClass": asset.ratio_class,
        "qualityTier": asset.quality_tier,
        "maxPrint": catalog_service.max_print_label(asset.max_print_width_cm, asset.max_print_height_cm),
        "variants": [
            {
                "label": v.label,
                "size": f"{v.width_cm} × {v.height_cm} cm",
                "dpi": v.effective_dpi,
                "quality": v.quality_grade,
            }
            for v in asset.variants
        ],
    }


@router.get("/artists")
def list_artists(
    response: Response,
    limit: int = Query(200, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Artists with asset counts."""
    try:
        artists, total = catalog_service.list_artists(db, limit)
    except Exception as e:
        logger.error(f"Artist listing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list artists: {str(e)}",
        )
    cache_for(response, 3600)
    return {"artists": artists, "total": total}


@router.get("/filters")
def list_filters(response: Response, db: Session = Depends(get_db)):
    """Available filter values with counts."""
    try:
        filters = catalog_service.list_filters(db)
    except Exception as e:
        logger.error(f"Filter listing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list filters: {str(e)}",
        )
    cache_for(response, 3600)
    return filters


@router.get("/search")
async def search(
    request: Request,
    response: Response,
    q: Optional[str] = Query(None, description="Search text"),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
    embedder: Optional[GeminiEmbedder] = Depends(get_embedder),
):
    """Semantic search with substring fallback."""
    if not q:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing query parameter ?q=")

    client_host = request.client.host if request.client else None
    await asyncio.to_thread(analytics_service.log_search, db, q, client_host)

    try:
        matches, method = await build_similarity(embedder).search_text(db, q, limit)
    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Search failed: {str(e)}",
        )

    cache_for(response, 300)
    return {"results": [catalog_service.match_item(m) for m in matches], "method": method}


@router.get("/similar-asset/{asset_id}")
async def similar_to_asset(
    asset_id: str,
    response: Response,
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db),
    embedder: Optional[GeminiEmbedder] = Depends(get_embedder),
):
    """Similar artworks by asset id: vector first, tag scoring otherwise."""
    asset = await asyncio.to_thread(catalog_service.get_asset, db, asset_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")

    try:
        matches, method = await build_similarity(embedder).similar_to_asset(db, asset, limit)
    except Exception as e:
        logger.error(f"Similar lookup failed for {asset_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Similar lookup failed: {str(e)}",
        )

    cache_for(response, 3600)
    return {"similar": [catalog_service.match_item(m) for m in matches], "method": method}


@router.get("/similar/{product_id}")
async def similar_to_product(
    product_id: str,
    response: Response,
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Tag-scored similar products among synced assets."""
    asset = await asyncio.to_thread(catalog_service.find_by_product_id, db, product_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    try:
        matches = await TagSearch(synced_only=True).similar_to_asset(db, asset, limit)
    except Exception as e:
        logger.error(f"Similar lookup failed for product {product_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Similar lookup failed: {str(e)}",
        )

    cache_for(response, 3600)
    return {"similar": [catalog_service.product_item(m) for m in matches]}


@router.get("/similar-v2/{product_id}")
async def similar_to_product_v2(
    product_id: str,
    request: Request,
    response: Response,
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db),
    embedder: Optional[GeminiEmbedder] = Depends(get_embedder),
):
    """Vector similar products; redirects to the tag-scored endpoint when unavailable."""
    asset = await asyncio.to_thread(catalog_service.find_by_product_id, db, product_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    search = build_similarity(embedder, synced_only=True)
    try:
        matches = await search.primary.similar_to_asset(db, asset, limit)
    except Exception as e:
        logger.warning(f"Vector similar failed for product {product_id}: {e}")
        await asyncio.to_thread(db.rollback)
        matches = []

    if not matches:
        legacy = request.url_for("similar_to_product", product_id=product_id).include_query_params(limit=limit)
        return RedirectResponse(url=str(legacy), status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    cache_for(response, 3600)
    return {"similar": [catalog_service.product_item(m) for m in matches], "method": "vector"}


@router.get("/trending")
def trending(
    response: Response,
    limit: int = Query(12, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Trending products, or newest synced with artist diversity."""
    try:
        products = analytics_service.trending_products(db, limit)
    except Exception as e:
        logger.error(f"Trending query failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load trending: {str(e)}",
        )
    cache_for(response, 1800)
    return {"trending": products}
