"""Tests for signed order webhooks and fulfillment rows."""

import json

import pytest

from printbrain.config import settings
from printbrain.models import AnalyticsEvent, FulfillmentOrder
from printbrain.services import order_service

SECRET = "whsec_test"

ORDER = {
    "id": 5001,
    "name": "#1001",
    "email": "buyer@example.com",
    "shipping_address": {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address1": "1 Main St",
        "city": "London",
        "province_code": "LND",
        "country_code": "GB",
        "zip": "N1 1AA",
    },
    "line_items": [
        {
            "id": 11,
            "title": "Harbour print",
            "quantity": 1,
            "price": "49.00",
            "properties": [
                {"name": "Artwork", "value": "Harbour"},
                {"name": "Artist", "value": "Jane Doe"},
                {"name": "Size", "value": "30 × 40 cm"},
                {"name": "_drive_file_id", "value": "file-1"},
                {"name": "_asset_id", "value": "asset-1"},
            ],
        },
        {"id": 12, "title": "Gift card", "quantity": 1, "price": "25.00", "properties": []},
    ],
}


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "shopify_webhook_secret", SECRET)
    monkeypatch.setattr("printbrain.api.v1.endpoints.webhooks.build_printful", lambda: None)
    return SECRET


def signed(payload, secret=SECRET):
    body = json.dumps(payload).encode("utf-8")
    return body, {"X-Shopify-Hmac-Sha256": order_service.compute_hmac(secret, body)}


def flip_middle_byte(body):
    middle = len(body) // 2
    return body[:middle] + bytes([body[middle] ^ 0x01]) + body[middle + 1 :]


class TestVerifyHmac:
    def test_matching_signature(self):
        body = b'{"id": 1}'
        assert order_service.verify_hmac("k", body, order_service.compute_hmac("k", body))

    def test_wrong_signature(self):
        assert not order_service.verify_hmac("k", b"{}", order_service.compute_hmac("other", b"{}"))

    def test_missing_secret_or_header(self):
        assert not order_service.verify_hmac("", b"{}", "abc")
        assert not order_service.verify_hmac("k", b"{}", None)

    @pytest.mark.parametrize(
        "alter_body,alter_signature",
        [
            (lambda body: body[:-1], lambda sig: sig),
            (lambda body: body + b" ", lambda sig: sig),
            (flip_middle_byte, lambda sig: sig),
            (lambda body: body, lambda sig: sig[:-4]),
            (lambda body: body, lambda sig: sig[:1]),
        ],
        ids=["truncated-body", "extended-body", "flipped-byte", "truncated-signature", "one-char-signature"],
    )
    def test_altered_body_or_signature(self, alter_body, alter_signature):
        body = json.dumps(ORDER).encode("utf-8")
        signature = order_service.compute_hmac("k", body)
        assert not order_service.verify_hmac("k", alter_body(body), alter_signature(signature))


def test_parse_order_items_keeps_catalog_lines_only():
    items = order_service.parse_order_items(ORDER)

    assert len(items) == 1
    item = items[0]
    assert item["shopify_order_id"] == "5001"
    assert item["line_item_id"] == "11"
    assert item["frame"] == "Unframed"
    assert item["shipping_address"]["name"] == "Ada Lovelace"


def test_unsigned_webhook_rejected(client_with_db, webhook_secret):
    response = client_with_db.post("/webhooks/order-created", content=json.dumps(ORDER))
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_tampered_body_rejected(client_with_db, webhook_secret):
    body, headers = signed(ORDER)
    response = client_with_db.post("/webhooks/order-created", content=body + b" ", headers=headers)
    assert response.status_code == 401


@pytest.mark.parametrize(
    "tamper",
    [
        lambda body, headers: (body[:-1], headers),
        lambda body, headers: (flip_middle_byte(body), headers),
        lambda body, headers: (body, {"X-Shopify-Hmac-Sha256": headers["X-Shopify-Hmac-Sha256"][:-2]}),
    ],
    ids=["truncated-body", "flipped-byte", "truncated-signature"],
)
def test_tampered_request_rejected(client_with_db, webhook_secret, test_db, tamper):
    body, headers = tamper(*signed(ORDER))

    response = client_with_db.post("/webhooks/order-created", content=body, headers=headers)

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert test_db.query(FulfillmentOrder).count() == 0


def test_order_created_stores_items_and_events(client_with_db, webhook_secret, test_db):
    body, headers = signed(ORDER)

    response = client_with_db.post("/webhooks/order-created", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "items": 1}
    row = test_db.query(FulfillmentOrder).one()
    assert row.status == "pending"
    assert row.artwork_title == "Harbour"
    event = test_db.query(AnalyticsEvent).one()
    assert event.event_type == "purchase"


def test_redelivery_updates_existing_row(client_with_db, webhook_secret, test_db):
    body, headers = signed(ORDER)
    client_with_db.post("/webhooks/order-created", content=body, headers=headers)
    client_with_db.post("/webhooks/order-created", content=body, headers=headers)

    assert test_db.query(FulfillmentOrder).count() == 1


def test_order_paid_marks_rows(client_with_db, webhook_secret, test_db):
    body, headers = signed(ORDER)
    client_with_db.post("/webhooks/order-created", content=body, headers=headers)

    body, headers = signed({"id": 5001, "name": "#1001"})
    response = client_with_db.post("/webhooks/order-paid", content=body, headers=headers)

    assert response.json() == {"received": True, "updated": 1}
    test_db.expire_all()
    assert test_db.query(FulfillmentOrder).one().status == "paid"


class FakePrintful:
    def __init__(self, fail=False):
        self.orders = []
        self.confirmed = []
        self.fail = fail

    async def create_order(self, recipient, image_url, variant_id, title, external_id, quantity):
        if self.fail:
            raise RuntimeError("printful down")
        self.orders.append({"recipient": recipient, "image_url": image_url, "variant_id": variant_id})
        return {"id": 777}

    async def confirm_order(self, order_id):
        self.confirmed.append(order_id)


async def test_items_sent_to_printful(session_factory):
    printful = FakePrintful()

    result = await order_service.process_order_created(
        ORDER, session_factory=session_factory, printful=printful, auto_confirm=True
    )

    assert result == {"received": True, "items": 1}
    assert printful.orders[0]["variant_id"] == 8948
    assert printful.orders[0]["recipient"]["state_code"] == "LND"
    assert "file-1" in printful.orders[0]["image_url"]
    assert printful.confirmed == ["777"]
    with session_factory() as db:
        row = db.query(FulfillmentOrder).one()
        assert row.status == "sent_to_printful"
        assert row.printful_order_id == "777"


async def test_printful_failure_keeps_pending_row(session_factory):
    result = await order_service.process_order_created(
        ORDER, session_factory=session_factory, printful=FakePrintful(fail=True)
    )

    assert result["items"] == 1
    with session_factory() as db:
        assert db.query(FulfillmentOrder).one().status == "pending"
