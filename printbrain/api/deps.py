"""API dependencies."""

from typing import Optional

from fastapi import HTTPException, Request, status

from printbrain.database import SessionLocal, get_db  # noqa: F401
from printbrain.services.builders import build_drip, build_scanner
from printbrain.services.drip import DripWorker
from printbrain.services.embedding import GeminiEmbedder
from printbrain.services.watcher import DriveWatcher


def get_session_factory():
    """Session factory for work that outlives a single request session."""
    return SessionLocal


def get_embedder(request: Request) -> Optional[GeminiEmbedder]:
    """Embedding client created at startup, None when not configured."""
    return getattr(request.app.state, "embedder", None)


def get_watcher(request: Request) -> DriveWatcher:
    """Process-wide Drive watcher, built on first use."""
    watcher = getattr(request.app.state, "watcher", None)
    if watcher is None:
        try:
            watcher = DriveWatcher(build_scanner())
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Drive scanner not configured: {str(e)}",
            )
        request.app.state.watcher = watcher
    return watcher


def get_drip(request: Request) -> DripWorker:
    """Process-wide drip sync actor, built on first use."""
    drip = getattr(request.app.state, "drip", None)
    if drip is None:
        try:
            drip = build_drip()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Shopify sync not configured: {str(e)}",
            )
        request.app.state.drip = drip
    return drip
