"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from printbrain import __version__
from printbrain.api.v1 import api_router
from printbrain.api.v1.endpoints import webhooks
from printbrain.config import settings
from printbrain.database import engine
from printbrain.services.builders import build_embedder

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.embedder = build_embedder()
    yield

    watcher = getattr(app.state, "watcher", None)
    if watcher is not None:
        await watcher.stop()
        await watcher.scanner.driver.close()

    drip = getattr(app.state, "drip", None)
    if drip is not None:
        await drip.stop()
        await drip.client.close()

    if app.state.embedder is not None:
        await app.state.embedder.close()


app = FastAPI(
    title="PrintBrain",
    description="Print-on-demand asset ingestion, enrichment and storefront service",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


# Include API routers
app.include_router(api_router, prefix="/api")
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    # Check database
    db_status = "disconnected"
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    # Check Redis
    redis_status = "disconnected"
    try:
        r = redis.from_url(settings.redis_url)
        r.ping()
        redis_status = "connected"
    except Exception as e:
        redis_status = f"error: {str(e)}"

    drive_status = "configured" if settings.google_drive_folder_id else "not_configured"

    watcher = getattr(app.state, "watcher", None)
    overall_status = "ok" if db_status == "connected" and redis_status == "connected" else "degraded"

    body = {
        "status": overall_status,
        "db": db_status,
        "redis": redis_status,
        "drive": drive_status,
        "embeddings": "configured" if getattr(app.state, "embedder", None) else "not_configured",
        "watcher": watcher.status() if watcher else None,
    }
    if db_status != "connected":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "printbrain.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
