"""Analytics event model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from printbrain.database import Base
from printbrain.models.types import JSONType

EVENT_TYPES = ("impression", "click", "view", "add_to_cart", "purchase", "search")


class AnalyticsEvent(Base):
    """Append-only storefront analytics event."""

    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(30), nullable=False, index=True)
    product_id = Column(String(50), nullable=True, index=True)
    asset_id = Column(String(36), nullable=True, index=True)
    collection_id = Column(String(50), nullable=True)
    search_query = Column(Text, nullable=True)
    session_id = Column(String(255), nullable=True)
    metadata_json = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AnalyticsEvent(id={self.id}, type={self.event_type}, product_id={self.product_id})>"
