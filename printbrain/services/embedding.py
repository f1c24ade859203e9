"""Text embeddings for similarity search (Gemini text-embedding-004)."""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, List, Optional, Sequence

import httpx
from sqlalchemy.orm import Session

from printbrain.database import SessionLocal, session_scope
from printbrain.models.types import EMBEDDING_DIM
from printbrain.services import asset_service

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"
MAX_DESCRIPTOR_LENGTH = 1000
BATCH_LIMIT = 100
RATE_LIMIT_SLEEP_SEC = 60.0
CHUNK_PACING_SEC = 0.2


class EmbeddingError(Exception):
    """Embedding request failed."""

    pass


class EmbeddingRateLimitError(EmbeddingError):
    """The embedding endpoint answered 429."""

    pass


def build_descriptor(asset: Any) -> str:
    """Compose the text embedded for an asset.

    Present fields are joined with ". " in a fixed order and the result
    is cut to 1000 characters.

    Examples:
        >>> from types import SimpleNamespace
        >>> build_descriptor(SimpleNamespace(title="Sunrise", artist="Monet",
        ...     style="Impressionism", era=None, mood="Serene", palette=None,
        ...     subject=None, ratio_class="landscape_3_2", description=None, ai_tags=["sun"]))
        'Sunrise. by Monet. Impressionism. Serene. landscape 3 2. sun'
    """
    parts: List[str] = []
    title = getattr(asset, "title", None)
    if title and title != "Untitled":
        parts.append(title)
    if getattr(asset, "artist", None):
        parts.append(f"by {asset.artist}")
    for field in ("style", "era", "mood"):
        value = getattr(asset, field, None)
        if value:
            parts.append(value)
    if getattr(asset, "palette", None):
        parts.append(f"{asset.palette} palette")
    if getattr(asset, "subject", None):
        parts.append(asset.subject)
    if getattr(asset, "ratio_class", None):
        parts.append(asset.ratio_class.replace("_", " "))
    if getattr(asset, "description", None):
        parts.append(asset.description)
    tags = getattr(asset, "ai_tags", None) or []
    if tags:
        parts.append(", ".join(tags))
    return ". ".join(parts)[:MAX_DESCRIPTOR_LENGTH]


class GeminiEmbedder:
    """Gemini embedding client producing 768-dimension vectors."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-004",
        base_url: str = GEMINI_API_URL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise EmbeddingError("GEMINI_API_KEY is not configured")
        self.api_key = api_key
        self.model = model
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=60.0)

    def _check(self, response: httpx.Response) -> dict:
        if response.status_code == 429:
            raise EmbeddingRateLimitError("Gemini rate limit (429)")
        if response.status_code >= 400:
            raise EmbeddingError(f"Gemini HTTP {response.status_code}: {response.text[:300]}")
        return response.json()

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed up to 100 texts in one request."""
        if len(texts) > BATCH_LIMIT:
            raise ValueError(f"At most {BATCH_LIMIT} texts per batch")
        body = {
            "requests": [
                {"model": f"models/{self.model}", "content": {"parts": [{"text": text}]}}
                for text in texts
            ]
        }
        response = await self._client.post(
            f"/models/{self.model}:batchEmbedContents",
            params={"key": self.api_key},
            json=body,
        )
        data = self._check(response)
        vectors = [e.get("values", []) for e in data.get("embeddings", [])]
        if len(vectors) != len(texts):
            raise EmbeddingError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors

    async def embed_text(self, text: str) -> List[float]:
        """Embed a single query string."""
        response = await self._client.post(
            f"/models/{self.model}:embedContent",
            params={"key": self.api_key},
            json={"model": f"models/{self.model}", "content": {"parts": [{"text": text}]}},
        )
        data = self._check(response)
        values = (data.get("embedding") or {}).get("values") or []
        if len(values) != EMBEDDING_DIM:
            raise EmbeddingError(f"Expected {EMBEDDING_DIM} dimensions, got {len(values)}")
        return values

    async def close(self) -> None:
        await self._client.aclose()


@dataclass
class EmbeddingStats:
    """Counters for one embedding run."""

    total: int = 0
    embedded: int = 0
    errors: int = 0
    elapsed: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class EmbeddingWorker:
    """Generate and upsert embeddings for enriched assets."""

    def __init__(
        self,
        embedder: GeminiEmbedder,
        session_factory: Callable[[], Session] = SessionLocal,
        chunk_size: int = BATCH_LIMIT,
        rate_limit_sleep: float = RATE_LIMIT_SLEEP_SEC,
        pacing: float = CHUNK_PACING_SEC,
    ):
        self.embedder = embedder
        self.session_factory = session_factory
        self.chunk_size = min(chunk_size, BATCH_LIMIT)
        self.rate_limit_sleep = rate_limit_sleep
        self.pacing = pacing

    def _load(self, limit: int, force: bool) -> List[tuple]:
        with session_scope(self.session_factory) as db:
            assets = asset_service.fetch_assets_without_embedding(db, limit=limit, force=force)
            return [(a.id, build_descriptor(a)) for a in assets]

    def _store(self, rows: List[tuple]) -> None:
        with session_scope(self.session_factory) as db:
            for asset_id, vector, text in rows:
                asset_service.upsert_embedding(db, asset_id, vector, text)

    async def _embed_chunk(self, texts: List[str], max_rate_limit_retries: int = 5) -> List[List[float]]:
        for _ in range(max_rate_limit_retries):
            try:
                return await self.embedder.embed_batch(texts)
            except EmbeddingRateLimitError:
                logger.warning(f"Embedding rate limited, sleeping {self.rate_limit_sleep}s")
                await asyncio.sleep(self.rate_limit_sleep)
        raise EmbeddingError("Embedding chunk still rate limited after retries")

    async def run(self, limit: int = 10000, force: bool = False) -> EmbeddingStats:
        """Embed assets lacking an embedding (or all enriched ones when forced)."""
        started = time.monotonic()
        items = await asyncio.to_thread(self._load, limit, force)
        stats = EmbeddingStats(total=len(items))

        for start in range(0, len(items), self.chunk_size):
            window = items[start : start + self.chunk_size]
            chunk = [(asset_id, text) for asset_id, text in window if text]
            # Empty descriptors cannot be embedded
            stats.errors += len(window) - len(chunk)
            if not chunk:
                continue
            try:
                vectors = await self._embed_chunk([text for _, text in chunk])
                rows = [(asset_id, vector, text) for (asset_id, text), vector in zip(chunk, vectors)]
                await asyncio.to_thread(self._store, rows)
                stats.embedded += len(rows)
            except Exception as e:
                stats.errors += len(chunk)
                logger.error(f"Embedding chunk at {start} failed: {e}", exc_info=True)
            await asyncio.sleep(self.pacing)

        stats.elapsed = round(time.monotonic() - started, 2)
        logger.info(f"Embeddings done: {stats.embedded}/{stats.total} embedded, {stats.errors} errors")
        return stats
