"""Asset model."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, Float, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from printbrain.database import Base
from printbrain.models.types import JSONType, new_uuid

INGESTION_STATUSES = ("pending", "downloaded", "analyzed", "tagged", "ready", "error")
SHOPIFY_STATUSES = ("pending", "synced", "error")
QUALITY_TIERS = ("high", "standard")


class Asset(Base):
    """Canonical artwork record discovered in the Drive tree."""

    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=new_uuid)
    drive_file_id = Column(String(255), nullable=False, unique=True, index=True)

    # File facts
    filename = Column(String(500), nullable=False)
    file_path = Column(String(1000), nullable=True)
    mime_type = Column(String(100), nullable=True)
    file_size_bytes = Column(BigInteger, nullable=True)
    md5_checksum = Column(String(64), nullable=True)

    # Pixel and print facts
    width_px = Column(Integer, nullable=True)
    height_px = Column(Integer, nullable=True)
    aspect_ratio = Column(Float, nullable=True)
    ratio_class = Column(String(50), nullable=True, index=True)
    max_print_width_cm = Column(Float, nullable=True)
    max_print_height_cm = Column(Float, nullable=True)
    quality_tier = Column(String(20), nullable=True, index=True)

    # Provenance and enrichment
    artist = Column(String(255), nullable=True, index=True)
    title = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    style = Column(String(100), nullable=True, index=True)
    mood = Column(String(100), nullable=True)
    subject = Column(String(100), nullable=True)
    era = Column(String(100), nullable=True, index=True)
    palette = Column(String(100), nullable=True)
    ai_tags = Column(JSONType, nullable=True)

    # Lifecycle
    ingestion_status = Column(String(20), nullable=False, default="pending", index=True)
    shopify_status = Column(String(20), nullable=False, default="pending", index=True)
    ingestion_error = Column(Text, nullable=True)

    # Downstream linkage
    shopify_product_id = Column(String(50), nullable=True)
    shopify_product_gid = Column(String(100), nullable=True)
    shopify_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    variants = relationship(
        "AssetVariant",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="AssetVariant.id",
    )
    embedding = relationship(
        "AssetEmbedding",
        back_populates="asset",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __table_args__ = (
        Index(
            "idx_assets_pending_sync",
            "shopify_status",
            "ingestion_status",
            postgresql_where=text("shopify_status = 'pending'"),
        ),
    )

    def __repr__(self):
        return f"<Asset(id={self.id}, drive_file_id={self.drive_file_id}, title={self.title})>"
