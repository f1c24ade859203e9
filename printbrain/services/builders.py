"""Construct pipeline components from application settings."""

from typing import Optional

from printbrain.config import Settings, settings as default_settings
from printbrain.services.drip import DripWorker
from printbrain.services.drive_scanner import DriveScanner
from printbrain.services.embedding import GeminiEmbedder
from printbrain.services.printful_client import PrintfulClient
from printbrain.services.shopify_client import ShopifyClient
from printbrain.services.similarity import SimilarityService, TagSearch, VectorSearch
from printbrain.services.sync_state import SyncStateStore
from printbrain.services.tagger import ArtTagger
from printbrain.storage.factory import get_drive_driver


def build_scanner(settings: Settings = default_settings) -> DriveScanner:
    return DriveScanner(
        get_drive_driver(settings),
        root_folder_id=settings.google_drive_folder_id,
        token_store=SyncStateStore(settings.drive_sync_token_path),
        concurrency=settings.drive_scan_concurrency,
        use_image_metadata=settings.drive_use_image_metadata,
    )


def build_tagger(settings: Settings = default_settings) -> ArtTagger:
    return ArtTagger(api_key=settings.openai_api_key, model=settings.openai_model)


def build_embedder(settings: Settings = default_settings) -> Optional[GeminiEmbedder]:
    """Embedding client, or None when no Gemini key is configured."""
    if not settings.gemini_api_key:
        return None
    return GeminiEmbedder(api_key=settings.gemini_api_key, model=settings.gemini_embedding_model)


def build_shopify(settings: Settings = default_settings) -> ShopifyClient:
    return ShopifyClient(
        settings.shopify_store_domain,
        settings.shopify_admin_api_token,
        api_version=settings.shopify_api_version,
    )


def build_printful(settings: Settings = default_settings) -> Optional[PrintfulClient]:
    """Printful client, or None when fulfillment is not configured."""
    if not settings.printful_api_key:
        return None
    return PrintfulClient(api_key=settings.printful_api_key)


def build_similarity(
    embedder: Optional[GeminiEmbedder] = None, synced_only: bool = False
) -> SimilarityService:
    return SimilarityService(VectorSearch(embedder), TagSearch(synced_only=synced_only))


def build_drip(settings: Settings = default_settings, **kwargs) -> DripWorker:
    return DripWorker(build_shopify(settings), utc_offset_hours=settings.local_utc_offset_hours, **kwargs)
