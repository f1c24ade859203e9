"""Fulfillment order model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from printbrain.database import Base
from printbrain.models.types import JSONType


class FulfillmentOrder(Base):
    """One row per artwork line item of an inbound order."""

    __tablename__ = "fulfillment_orders"

    id = Column(Integer, primary_key=True, index=True)
    shopify_order_id = Column(String(50), nullable=False, index=True)
    shopify_order_name = Column(String(50), nullable=True)
    line_item_id = Column(String(50), nullable=False)

    # Artwork coordinate
    asset_id = Column(String(36), nullable=True, index=True)
    drive_file_id = Column(String(255), nullable=True)
    artwork_title = Column(String(500), nullable=True)
    artist = Column(String(255), nullable=True)
    size = Column(String(50), nullable=True)
    frame = Column(String(50), nullable=True)
    price_tier = Column(String(30), nullable=True)
    preview_url = Column(String(1000), nullable=True)

    quantity = Column(Integer, nullable=False, default=1)
    price = Column(String(20), nullable=True)
    sku = Column(String(100), nullable=True)
    customer_email = Column(String(255), nullable=True)
    shipping_address = Column(JSONType, nullable=True)

    printful_order_id = Column(String(50), nullable=True)
    status = Column(String(30), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("shopify_order_id", "line_item_id", name="uq_fulfillment_order_line"),
    )

    def __repr__(self):
        return (
            f"<FulfillmentOrder(order={self.shopify_order_id}, line={self.line_item_id}, "
            f"status={self.status})>"
        )
