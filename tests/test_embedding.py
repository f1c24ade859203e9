"""Tests for descriptors, the Gemini client and the embedding worker."""

import json
from types import SimpleNamespace

import httpx
import pytest

from printbrain.models import AssetEmbedding
from printbrain.models.types import EMBEDDING_DIM
from printbrain.services.embedding import (
    EmbeddingError,
    EmbeddingRateLimitError,
    EmbeddingWorker,
    GeminiEmbedder,
    build_descriptor,
)


def asset_fields(**overrides):
    fields = dict(
        title="Untitled",
        artist=None,
        style=None,
        era=None,
        mood=None,
        palette=None,
        subject=None,
        ratio_class=None,
        description=None,
        ai_tags=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestBuildDescriptor:
    def test_field_order(self):
        asset = asset_fields(
            title="Harbour at Dusk",
            artist="Jane Doe",
            style="Tonalism",
            era="Late 19th Century",
            mood="Serene",
            palette="Cool Blues",
            subject="Seascape",
            ratio_class="landscape_3_2",
            ai_tags=["boats", "harbour"],
        )
        assert build_descriptor(asset) == (
            "Harbour at Dusk. by Jane Doe. Tonalism. Late 19th Century. Serene. "
            "Cool Blues palette. Seascape. landscape 3 2. boats, harbour"
        )

    def test_untitled_and_empty(self):
        assert build_descriptor(asset_fields()) == ""

    def test_truncated(self):
        assert len(build_descriptor(asset_fields(description="x" * 5000))) == 1000


def embedder_with(handler) -> GeminiEmbedder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://gemini.test")
    return GeminiEmbedder(api_key="key", client=client)


async def test_embed_batch_sends_one_request():
    seen = []

    def handler(request):
        seen.append(request)
        count = len(json.loads(request.content)["requests"])
        return httpx.Response(200, json={"embeddings": [{"values": [0.1] * EMBEDDING_DIM}] * count})

    embedder = embedder_with(handler)
    vectors = await embedder.embed_batch(["a", "b"])
    await embedder.close()

    assert len(vectors) == 2
    assert seen[0].url.path.endswith(":batchEmbedContents")
    assert seen[0].url.params["key"] == "key"


async def test_embed_batch_rate_limited():
    embedder = embedder_with(lambda request: httpx.Response(429))
    with pytest.raises(EmbeddingRateLimitError):
        await embedder.embed_batch(["a"])
    await embedder.close()


async def test_embed_text_checks_dimensions():
    embedder = embedder_with(lambda request: httpx.Response(200, json={"embedding": {"values": [1.0, 2.0]}}))
    with pytest.raises(EmbeddingError):
        await embedder.embed_text("sea")
    await embedder.close()


async def test_embed_batch_limit():
    embedder = embedder_with(lambda request: httpx.Response(200))
    with pytest.raises(ValueError):
        await embedder.embed_batch(["x"] * 101)
    await embedder.close()


def test_missing_api_key():
    with pytest.raises(EmbeddingError):
        GeminiEmbedder(api_key="")


class FakeEmbedder:
    def __init__(self, rate_limited_calls: int = 0):
        self.calls = 0
        self.rate_limited_calls = rate_limited_calls

    async def embed_batch(self, texts):
        self.calls += 1
        if self.calls <= self.rate_limited_calls:
            raise EmbeddingRateLimitError("429")
        return [[0.5] * EMBEDDING_DIM for _ in texts]


async def test_worker_embeds_enriched_assets_only(make_asset, session_factory):
    make_asset(drive_file_id="a", style="Baroque")
    make_asset(drive_file_id="b", style="Cubism")
    make_asset(drive_file_id="c")

    embedder = FakeEmbedder()
    stats = await EmbeddingWorker(embedder, session_factory=session_factory, pacing=0).run()

    assert stats.total == 2
    assert stats.embedded == 2
    assert embedder.calls == 1
    with session_factory() as db:
        assert db.query(AssetEmbedding).count() == 2

    again = await EmbeddingWorker(embedder, session_factory=session_factory, pacing=0).run()
    assert again.total == 0


async def test_worker_waits_out_rate_limit(make_asset, session_factory):
    make_asset(drive_file_id="a", style="Baroque")

    embedder = FakeEmbedder(rate_limited_calls=1)
    worker = EmbeddingWorker(embedder, session_factory=session_factory, rate_limit_sleep=0, pacing=0)
    stats = await worker.run()

    assert stats.embedded == 1
    assert embedder.calls == 2
