"""Tests for the Printful client."""

import json

import httpx
import pytest

from printbrain.services.printful_client import PrintfulClient, PrintfulError, variant_for_size

RECIPIENT = {
    "name": "Ada Lovelace",
    "address1": "1 Main St",
    "city": "London",
    "country_code": "GB",
    "zip": "N1 1AA",
}


@pytest.mark.parametrize(
    "size, variant",
    [("30 × 40 cm", 8948), ("50x70", 8952), ("20 × 30 cm", 8947), ("13×18", 8948), (None, 8948)],
)
def test_variant_for_size(size, variant):
    assert variant_for_size(size) == variant


def printful_with(handler) -> PrintfulClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://printful.test")
    return PrintfulClient(api_key="pf", client=client)


async def test_create_order_body():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"code": 200, "result": {"id": 321, "status": "draft"}})

    printful = printful_with(handler)
    result = await printful.create_order(RECIPIENT, "https://img/x", 8948, title="Harbour", external_id="5001-11")
    await printful.close()

    assert result["id"] == 321
    body = seen[0]
    assert body["external_id"] == "5001-11"
    assert body["recipient"]["state_code"] == ""
    assert body["items"][0]["files"] == [{"type": "default", "url": "https://img/x"}]
    assert '"Harbour"' in body["packing_slip"]["message"]


async def test_error_status_raises():
    printful = printful_with(lambda request: httpx.Response(400, json={"error": {"message": "bad"}}))
    with pytest.raises(PrintfulError) as exc_info:
        await printful.confirm_order(1)
    await printful.close()
    assert exc_info.value.status_code == 400


async def test_verify_connection_reports_failure():
    printful = printful_with(lambda request: httpx.Response(401, text="unauthorized"))
    report = await printful.verify_connection()
    await printful.close()
    assert report["connected"] is False


async def test_get_products_keeps_print_types():
    products = [{"title": "Enhanced Matte Paper Poster"}, {"title": "Mug"}, {"title": "Canvas (in)"}]
    printful = printful_with(lambda request: httpx.Response(200, json={"result": products}))
    result = await printful.get_products()
    await printful.close()
    assert [p["title"] for p in result] == ["Enhanced Matte Paper Poster", "Canvas (in)"]


def test_missing_api_key():
    with pytest.raises(PrintfulError):
        PrintfulClient(api_key="")
