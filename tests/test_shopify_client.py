"""Tests for the Shopify client, its request bucket and product payloads."""

import json
from types import SimpleNamespace

import httpx
import pytest

from printbrain.services.shopify_client import (
    LeakyBucket,
    ShopifyClient,
    ShopifyError,
    ThrottleError,
    build_product_payload,
)


class FakeTime:
    """Manual clock whose sleep advances time and records each wait."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def client_with(handler, fake: FakeTime) -> ShopifyClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://shop.test/admin/api/2024-10")
    bucket = LeakyBucket(clock=fake.clock, sleep=fake.sleep)
    return ShopifyClient("shop.test", "token", client=http, bucket=bucket, sleep=fake.sleep)


def responses(*items):
    """Handler replaying the given responses in order."""
    queue = list(items)
    seen = []

    def handler(request):
        seen.append(request)
        return queue.pop(0)

    handler.seen = seen
    return handler


class TestLeakyBucket:
    async def test_waits_in_half_second_steps_when_full(self):
        fake = FakeTime()
        bucket = LeakyBucket(capacity=40, drain_rate=2.0, clock=fake.clock, sleep=fake.sleep)
        bucket.used = 38

        await bucket.acquire()

        assert fake.sleeps == [0.5]
        assert bucket.used == 38

    async def test_no_wait_with_room(self):
        fake = FakeTime()
        bucket = LeakyBucket(clock=fake.clock, sleep=fake.sleep)
        await bucket.acquire()
        assert fake.sleeps == []
        assert bucket.used == 1

    def test_observe_header(self):
        bucket = LeakyBucket()
        bucket.observe("12/80")
        assert bucket.used == 12
        assert bucket.capacity == 80
        bucket.observe("garbage")
        assert bucket.used == 12


async def test_create_product_returns_id_and_gid():
    fake = FakeTime()
    handler = responses(httpx.Response(201, json={"product": {"id": 987}}))
    client = client_with(handler, fake)

    product_id, gid = await client.create_product({"product": {"title": "x"}})
    await client.close()

    assert product_id == "987"
    assert gid == "gid://shopify/Product/987"
    assert handler.seen[0].url.path.endswith("/products.json")


async def test_rate_limit_honours_retry_after():
    fake = FakeTime()
    handler = responses(
        httpx.Response(429, headers={"Retry-After": "2"}, text="Exceeded 2 calls per second"),
        httpx.Response(201, json={"product": {"id": 1}}),
    )
    client = client_with(handler, fake)

    await client.create_product({"product": {}})
    await client.close()

    assert 3.0 in fake.sleeps
    assert len(handler.seen) == 2


async def test_daily_variant_limit_raises_throttle():
    fake = FakeTime()
    handler = responses(httpx.Response(429, text='{"errors":"Daily variant creation limit reached"}'))
    client = client_with(handler, fake)

    with pytest.raises(ThrottleError):
        await client.create_product({"product": {}})
    await client.close()


async def test_throttle_body_on_422():
    fake = FakeTime()
    handler = responses(httpx.Response(422, text="Daily variant creation limit reached"))
    client = client_with(handler, fake)

    with pytest.raises(ThrottleError):
        await client.create_product({"product": {}})
    await client.close()


async def test_bad_gateway_retried():
    fake = FakeTime()
    handler = responses(httpx.Response(502), httpx.Response(201, json={"product": {"id": 5}}))
    client = client_with(handler, fake)

    product_id, _ = await client.create_product({"product": {}})
    await client.close()

    assert product_id == "5"
    assert 3.0 in fake.sleeps


async def test_client_error_raises_with_status():
    fake = FakeTime()
    handler = responses(httpx.Response(422, text='{"errors":{"title":["can\'t be blank"]}}'))
    client = client_with(handler, fake)

    with pytest.raises(ShopifyError) as exc_info:
        await client.create_product({"product": {}})
    await client.close()

    assert exc_info.value.status_code == 422


async def test_update_tags_missing_product():
    fake = FakeTime()
    handler = responses(httpx.Response(404, text="Not Found"))
    client = client_with(handler, fake)

    assert await client.update_product_tags("42", ["a", "b"]) is False
    await client.close()


async def test_update_tags_sends_joined_list():
    fake = FakeTime()
    handler = responses(httpx.Response(200, json={"product": {"id": 42}}))
    client = client_with(handler, fake)

    assert await client.update_product_tags("42", ["a", "b"]) is True
    await client.close()

    body = json.loads(handler.seen[0].content)
    assert body == {"product": {"id": 42, "tags": "a, b"}}


def test_missing_credentials():
    with pytest.raises(ShopifyError):
        ShopifyClient("", "token")


def product_asset(**overrides):
    fields = dict(
        title="Harbour",
        artist=None,
        description=None,
        drive_file_id="file-1",
        ratio_class="landscape_3_2",
        quality_tier="high",
        max_print_width_cm=120.0,
        max_print_height_cm=80.0,
        aspect_ratio=1.5,
        style="Tonalism",
        era=None,
        mood=None,
        subject=None,
        palette=None,
        ai_tags=[],
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestProductPayload:
    def test_defaults(self):
        product = build_product_payload(product_asset())["product"]
        assert product["vendor"] == "Unknown Artist"
        assert product["product_type"] == "Art Print"
        assert "museum grade" in product["tags"]
        assert "np-ai" not in product["body_html"]
        keys = {m["key"]: m["value"] for m in product["metafields"]}
        assert keys["drive_file_id"] == "file-1"
        assert keys["max_print_cm"] == "120.0×80.0"

    def test_description_and_title_cap(self):
        product = build_product_payload(product_asset(title="T" * 300, description="A calm harbour."))["product"]
        assert len(product["title"]) == 255
        assert '<p class="np-ai">A calm harbour.</p>' in product["body_html"]
