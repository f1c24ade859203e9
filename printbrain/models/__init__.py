"""SQLAlchemy models."""

from printbrain.database import Base
from printbrain.models.asset import Asset
from printbrain.models.asset_variant import AssetVariant
from printbrain.models.asset_embedding import AssetEmbedding
from printbrain.models.analytics_event import AnalyticsEvent
from printbrain.models.pipeline_run import PipelineRun
from printbrain.models.fulfillment_order import FulfillmentOrder

__all__ = [
    "Base",
    "Asset",
    "AssetVariant",
    "AssetEmbedding",
    "AnalyticsEvent",
    "PipelineRun",
    "FulfillmentOrder",
]
