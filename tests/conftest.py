"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from printbrain.api.deps import get_session_factory
from printbrain.database import Base, get_db
from printbrain.main import app
from printbrain.models import Asset, AssetVariant
from printbrain.services.resolution_engine import analyze_artwork


@pytest.fixture
def test_engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db(session_factory):
    """Create a test database session."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client_with_db(test_db, session_factory):
    """Create a test client with database session override."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_asset(test_db):
    """Insert an analyzed asset with variants derived from its pixel size."""

    def _make(
        drive_file_id: str = "drive-1",
        width: int = 4000,
        height: int = 6000,
        **fields,
    ) -> Asset:
        analysis = analyze_artwork(width, height)
        values = {
            "drive_file_id": drive_file_id,
            "filename": f"{drive_file_id}_{width}x{height}.jpg",
            "title": "Untitled",
            "artist": "Jane Doe",
            "width_px": width,
            "height_px": height,
            "aspect_ratio": analysis.aspect_ratio,
            "ratio_class": analysis.ratio_class,
            "max_print_width_cm": analysis.max_print.width_cm,
            "max_print_height_cm": analysis.max_print.height_cm,
            "quality_tier": "high",
            "ingestion_status": "analyzed",
            "shopify_status": "pending",
        }
        values.update(fields)
        asset = Asset(**values)
        asset.variants = [AssetVariant(**v.to_dict()) for v in analysis.variants]
        test_db.add(asset)
        test_db.commit()
        test_db.refresh(asset)
        return asset

    return _make
