"""Asset embedding model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from printbrain.database import Base
from printbrain.models.types import EmbeddingVector


class AssetEmbedding(Base):
    """One text-embedding vector per asset."""

    __tablename__ = "asset_embeddings"

    id = Column(Integer, primary_key=True, index=True)
    asset_id = Column(
        String(36),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    embedding = Column(EmbeddingVector, nullable=False)
    embedding_text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    asset = relationship("Asset", back_populates="embedding")

    def __repr__(self):
        return f"<AssetEmbedding(asset_id={self.asset_id})>"
