"""Tests for the storefront read API."""

from pathlib import Path

import pytest

from printbrain.config import settings
from printbrain.models import AnalyticsEvent

PRICE_MAP = Path(__file__).resolve().parents[1] / "config" / "skeleton-price-map.json"


@pytest.fixture(autouse=True)
def price_map(monkeypatch):
    monkeypatch.setattr(settings, "price_map_path", str(PRICE_MAP))


@pytest.fixture
def catalog(make_asset):
    return {
        "monet": make_asset(
            drive_file_id="m1",
            title="Water Lilies",
            artist="Claude Monet",
            style="Impressionism",
            mood="Serene",
            ai_tags=["pond", "France", "Europe"],
            shopify_product_id="101",
            shopify_status="synced",
        ),
        "hokusai": make_asset(
            drive_file_id="h1",
            width=6000,
            height=4000,
            title="The Great Wave",
            artist="Hokusai",
            style="Ukiyo-e",
            mood="Dramatic",
            ai_tags=["wave", "Japan", "Asia"],
            shopify_product_id="102",
            shopify_status="synced",
        ),
        "untagged": make_asset(drive_file_id="u1", title="Unclassified"),
        "pending": make_asset(drive_file_id="p1", style="Baroque", ingestion_status="pending"),
    }


def test_catalog_lists_visible_classified_assets(client_with_db, catalog):
    response = client_with_db.get("/api/storefront/catalog")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["totalPages"] == 1
    assert {item["title"] for item in body["items"]} == {"Water Lilies", "The Great Wave"}
    assert response.headers["Cache-Control"] == "public, max-age=60"


def test_catalog_filters(client_with_db, catalog):
    body = client_with_db.get("/api/storefront/catalog", params={"style": "Ukiyo-e"}).json()
    assert [item["artist"] for item in body["items"]] == ["Hokusai"]

    body = client_with_db.get("/api/storefront/catalog", params={"country": "France"}).json()
    assert [item["artist"] for item in body["items"]] == ["Claude Monet"]

    body = client_with_db.get("/api/storefront/catalog", params={"orientation": "landscape_3_2"}).json()
    assert body["total"] == 1

    body = client_with_db.get("/api/storefront/catalog", params={"q": "wave"}).json()
    assert body["items"][0]["driveFileId"] == "h1"


def test_catalog_sort_and_paging(client_with_db, catalog):
    body = client_with_db.get(
        "/api/storefront/catalog", params={"sort": "title_asc", "per_page": 1, "page": 2}
    ).json()
    assert body["items"][0]["title"] == "Water Lilies"
    assert body["totalPages"] == 2


def test_catalog_rejects_unknown_sort(client_with_db):
    response = client_with_db.get("/api/storefront/catalog", params={"sort": "popular"})
    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request"


def test_asset_detail(client_with_db, catalog):
    asset = catalog["monet"]
    response = client_with_db.get(f"/api/storefront/asset/{asset.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Water Lilies"
    assert body["variants"]
    assert body["variants"][0]["printSpec"]
    assert "small_unframed" in body["priceMap"]
    assert body["description"]


def test_asset_detail_not_found(client_with_db):
    response = client_with_db.get("/api/storefront/asset/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Asset not found"}


def test_product_images(client_with_db, catalog):
    body = client_with_db.get("/api/storefront/product/101").json()
    assert body["driveFileId"] == "m1"
    assert set(body["images"]) == {"s400", "s800", "s1200", "s1600", "s2000"}


def test_price_map(client_with_db):
    response = client_with_db.get("/api/storefront/price-map")
    assert response.status_code == 200
    assert response.json()["small_unframed"]["tier"] == "small"


def test_price_map_missing(client_with_db, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "price_map_path", str(tmp_path / "absent.json"))
    assert client_with_db.get("/api/storefront/price-map").status_code == 500


def test_artists_and_filters(client_with_db, catalog):
    artists = client_with_db.get("/api/storefront/artists").json()
    names = {a["name"] for a in artists["artists"]}
    assert {"Claude Monet", "Hokusai"} <= names

    filters = client_with_db.get("/api/storefront/filters").json()
    assert {"value": "Impressionism", "count": 1} in filters["styles"]
    assert {"value": "Japan", "count": 1} in filters["countries"]
    assert {c["value"] for c in filters["continents"]} == {"Europe", "Asia"}
    assert len(filters["priceTiers"]) == 4


def test_search_logs_event_and_falls_back_to_tags(client_with_db, catalog, test_db):
    response = client_with_db.get("/api/storefront/search", params={"q": "monet"})

    body = response.json()
    assert body["method"] == "tags"
    assert body["results"][0]["productId"] == "101"
    assert test_db.query(AnalyticsEvent).filter(AnalyticsEvent.event_type == "search").count() == 1


def test_search_requires_query(client_with_db):
    response = client_with_db.get("/api/storefront/search")
    assert response.status_code == 400


def test_similar_asset_uses_tag_fallback(client_with_db, catalog, make_asset):
    twin = make_asset(drive_file_id="m2", style="Impressionism", mood="Serene", artist="Berthe Morisot")

    body = client_with_db.get(f"/api/storefront/similar-asset/{catalog['monet'].id}").json()

    assert body["method"] == "tags"
    assert body["similar"][0]["id"] == twin.id


def test_similar_v2_redirects_without_embeddings(client_with_db, catalog):
    response = client_with_db.get(
        "/api/storefront/similar-v2/101", params={"limit": 4}, follow_redirects=False
    )
    assert response.status_code == 307
    assert response.headers["location"].endswith("/api/storefront/similar/101?limit=4")


def test_similar_by_product_synced_only(client_with_db, catalog, make_asset):
    make_asset(drive_file_id="m3", style="Impressionism", title="Unsynced")
    body = client_with_db.get("/api/storefront/similar/101").json()
    assert body["similar"] == []


def test_trending_falls_back_to_newest_synced(client_with_db, catalog):
    body = client_with_db.get("/api/storefront/trending").json()
    assert {p["productId"] for p in body["trending"]} == {"101", "102"}
