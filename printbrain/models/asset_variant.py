"""Asset variant model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from printbrain.database import Base

QUALITY_GRADES = ("excellent", "good", "acceptable", "low")


class AssetVariant(Base):
    """Sellable print size derived from an asset's pixel geometry."""

    __tablename__ = "asset_variants"

    id = Column(Integer, primary_key=True, index=True)
    asset_id = Column(String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(50), nullable=False)
    width_cm = Column(Float, nullable=False)
    height_cm = Column(Float, nullable=False)
    width_inches = Column(Float, nullable=False)
    height_inches = Column(Float, nullable=False)
    effective_dpi = Column(Float, nullable=False)
    quality_grade = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    asset = relationship("Asset", back_populates="variants")

    def __repr__(self):
        return (
            f"<AssetVariant(asset_id={self.asset_id}, label={self.label}, "
            f"size={self.width_cm}x{self.height_cm}, dpi={self.effective_dpi})>"
        )
