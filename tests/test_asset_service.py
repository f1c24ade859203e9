"""Tests for asset persistence helpers."""

from printbrain.models import Asset, AssetVariant
from printbrain.services import asset_service


def scanned(file_id, width=4000, height=6000, **extra):
    record = {
        "id": file_id,
        "name": f"{file_id}_{width}x{height}.jpg",
        "mime_type": "image/jpeg",
        "size": 1024,
        "path": f"Masters/Jane Doe/{file_id}.jpg",
        "artist": "Jane Doe",
        "quality_tier": "high",
        "title": file_id,
        "width": width,
        "height": height,
    }
    record.update(extra)
    return record


def test_build_record_with_dimensions():
    record = asset_service.build_asset_record(scanned("f1"))

    assert record["ratio_class"] == "portrait_2_3"
    assert record["ingestion_status"] == "analyzed"
    assert record["ingestion_error"] is None
    assert record["variants"]
    assert set(asset_service.ASSET_RECORD_KEYS) <= set(record)


def test_build_record_without_dimensions():
    record = asset_service.build_asset_record(scanned("f1", width=0, height=0))

    assert record["ratio_class"] is None
    assert record["width_px"] is None
    assert record["ingestion_error"] == "No dimensions in filename"
    assert record["variants"] == []


def test_insert_ignores_existing_drive_ids(test_db):
    first = asset_service.insert_asset_records(
        test_db, [asset_service.build_asset_record(scanned("f1")), asset_service.build_asset_record(scanned("f2"))]
    )
    again = asset_service.insert_asset_records(
        test_db, [asset_service.build_asset_record(scanned("f2")), asset_service.build_asset_record(scanned("f3"))]
    )

    assert first == 2
    assert again == 1
    assert test_db.query(Asset).count() == 3
    # Variants only for rows actually inserted
    per_asset = len(asset_service.build_asset_record(scanned("x"))["variants"])
    assert test_db.query(AssetVariant).count() == 3 * per_asset


def test_find_existing_drive_ids(test_db):
    asset_service.insert_asset_records(test_db, [asset_service.build_asset_record(scanned("f1"))])

    found = asset_service.find_existing_drive_ids(test_db, ["f1", "f2", "f1"], chunk_size=1)

    assert found == {"f1"}


def test_record_scan_error(test_db):
    asset_service.record_scan_error(test_db, scanned("bad"), "x" * 900)

    row = test_db.query(Asset).one()
    assert row.ingestion_status == "error"
    assert len(row.ingestion_error) == 500


def test_update_bumps_updated_at(test_db, make_asset):
    asset = make_asset()
    before = asset.updated_at

    assert asset_service.update_asset(test_db, asset.id, {"title": "Renamed"})

    test_db.refresh(asset)
    assert asset.title == "Renamed"
    assert asset.updated_at >= before
    assert not asset_service.update_asset(test_db, "missing", {"title": "x"})


def test_pending_sync_and_marking(test_db, make_asset):
    a = make_asset(drive_file_id="a")
    b = make_asset(drive_file_id="b")
    make_asset(drive_file_id="c", shopify_status="error")

    assert asset_service.count_pending_sync(test_db) == 2

    asset_service.mark_synced(test_db, a.id, "555")
    asset_service.mark_sync_error(test_db, b.id, "HTTP 422")

    assert asset_service.count_pending_sync(test_db) == 0
    test_db.refresh(a)
    assert a.shopify_product_gid == "gid://shopify/Product/555"
    assert a.ingestion_status == "ready"


def test_apply_enrichment_ignores_unknown_fields(test_db, make_asset):
    asset = make_asset()

    assert not asset_service.apply_enrichment(test_db, asset.id, {"colour": "red"})
    assert asset_service.apply_enrichment(test_db, asset.id, {"style": "Cubism", "colour": "red"})

    test_db.refresh(asset)
    assert asset.style == "Cubism"


def test_untagged_ids_keyset(test_db, make_asset):
    ids = sorted(make_asset(drive_file_id=f"d{i}").id for i in range(3))

    first = asset_service.fetch_untagged_ids(test_db, limit=2)
    rest = asset_service.fetch_untagged_ids(test_db, after_id=first[-1], limit=2)

    assert first + rest == ids
