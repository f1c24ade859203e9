"""Initial schema with all tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIM = 768


def upgrade() -> None:
    # Enable pgvector extension
    op.execute("CREATE EXTENSION IF NOT EXISTS vector;")

    # Create assets table
    op.create_table(
        'assets',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('drive_file_id', sa.String(length=255), nullable=False),
        sa.Column('filename', sa.String(length=500), nullable=False),
        sa.Column('file_path', sa.String(length=1000), nullable=True),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('file_size_bytes', sa.BigInteger(), nullable=True),
        sa.Column('md5_checksum', sa.String(length=64), nullable=True),
        sa.Column('width_px', sa.Integer(), nullable=True),
        sa.Column('height_px', sa.Integer(), nullable=True),
        sa.Column('aspect_ratio', sa.Float(), nullable=True),
        sa.Column('ratio_class', sa.String(length=50), nullable=True),
        sa.Column('max_print_width_cm', sa.Float(), nullable=True),
        sa.Column('max_print_height_cm', sa.Float(), nullable=True),
        sa.Column('quality_tier', sa.String(length=20), nullable=True),
        sa.Column('artist', sa.String(length=255), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('style', sa.String(length=100), nullable=True),
        sa.Column('mood', sa.String(length=100), nullable=True),
        sa.Column('subject', sa.String(length=100), nullable=True),
        sa.Column('era', sa.String(length=100), nullable=True),
        sa.Column('palette', sa.String(length=100), nullable=True),
        sa.Column('ai_tags', postgresql.JSONB(), nullable=True),
        sa.Column('ingestion_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('shopify_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('ingestion_error', sa.Text(), nullable=True),
        sa.Column('shopify_product_id', sa.String(length=50), nullable=True),
        sa.Column('shopify_product_gid', sa.String(length=100), nullable=True),
        sa.Column('shopify_synced_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('drive_file_id'),
        sa.CheckConstraint(
            "ingestion_status IN ('pending', 'downloaded', 'analyzed', 'tagged', 'ready', 'error')",
            name='ck_assets_ingestion_status',
        ),
        sa.CheckConstraint(
            "shopify_status IN ('pending', 'synced', 'error')",
            name='ck_assets_shopify_status',
        ),
    )
    op.create_index(op.f('ix_assets_drive_file_id'), 'assets', ['drive_file_id'], unique=False)
    op.create_index(op.f('ix_assets_ratio_class'), 'assets', ['ratio_class'], unique=False)
    op.create_index(op.f('ix_assets_quality_tier'), 'assets', ['quality_tier'], unique=False)
    op.create_index(op.f('ix_assets_artist'), 'assets', ['artist'], unique=False)
    op.create_index(op.f('ix_assets_style'), 'assets', ['style'], unique=False)
    op.create_index(op.f('ix_assets_era'), 'assets', ['era'], unique=False)
    op.create_index(op.f('ix_assets_ingestion_status'), 'assets', ['ingestion_status'], unique=False)
    op.create_index(op.f('ix_assets_shopify_status'), 'assets', ['shopify_status'], unique=False)
    op.create_index(op.f('ix_assets_created_at'), 'assets', ['created_at'], unique=False)
    op.create_index(
        'idx_assets_pending_sync',
        'assets',
        ['shopify_status', 'ingestion_status'],
        unique=False,
        postgresql_where=sa.text("shopify_status = 'pending'"),
    )
    op.create_index(
        'idx_assets_ai_tags',
        'assets',
        ['ai_tags'],
        unique=False,
        postgresql_using='gin',
    )

    # Create asset_variants table
    op.create_table(
        'asset_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.String(length=36), nullable=False),
        sa.Column('label', sa.String(length=50), nullable=False),
        sa.Column('width_cm', sa.Float(), nullable=False),
        sa.Column('height_cm', sa.Float(), nullable=False),
        sa.Column('width_inches', sa.Float(), nullable=False),
        sa.Column('height_inches', sa.Float(), nullable=False),
        sa.Column('effective_dpi', sa.Float(), nullable=False),
        sa.Column('quality_grade', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "quality_grade IN ('excellent', 'good', 'acceptable', 'low')",
            name='ck_asset_variants_quality_grade',
        ),
    )
    op.create_index(op.f('ix_asset_variants_id'), 'asset_variants', ['id'], unique=False)
    op.create_index(op.f('ix_asset_variants_asset_id'), 'asset_variants', ['asset_id'], unique=False)

    # Create asset_embeddings table
    op.create_table(
        'asset_embeddings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.String(length=36), nullable=False),
        sa.Column('embedding', Vector(EMBEDDING_DIM), nullable=False),
        sa.Column('embedding_text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('asset_id'),
    )
    op.create_index(op.f('ix_asset_embeddings_id'), 'asset_embeddings', ['id'], unique=False)
    op.create_index(op.f('ix_asset_embeddings_asset_id'), 'asset_embeddings', ['asset_id'], unique=False)
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_asset_embeddings_vector "
        "ON asset_embeddings USING ivfflat (embedding vector_cosine_ops) WITH (lists = 100);"
    )

    # Create analytics_events table
    op.create_table(
        'analytics_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=30), nullable=False),
        sa.Column('product_id', sa.String(length=50), nullable=True),
        sa.Column('asset_id', sa.String(length=36), nullable=True),
        sa.Column('collection_id', sa.String(length=50), nullable=True),
        sa.Column('search_query', sa.Text(), nullable=True),
        sa.Column('session_id', sa.String(length=255), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True, server_default=sa.text("'{}'::jsonb")),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "event_type IN ('impression', 'click', 'view', 'add_to_cart', 'purchase', 'search')",
            name='ck_analytics_events_event_type',
        ),
    )
    op.create_index(op.f('ix_analytics_events_id'), 'analytics_events', ['id'], unique=False)
    op.create_index(op.f('ix_analytics_events_event_type'), 'analytics_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_analytics_events_product_id'), 'analytics_events', ['product_id'], unique=False)
    op.create_index(op.f('ix_analytics_events_asset_id'), 'analytics_events', ['asset_id'], unique=False)
    op.create_index(op.f('ix_analytics_events_created_at'), 'analytics_events', ['created_at'], unique=False)
    op.create_index('idx_analytics_session', 'analytics_events', ['session_id'], unique=False)

    # Create pipeline_runs table
    op.create_table(
        'pipeline_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('run_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='running'),
        sa.Column('total_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processed_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('running', 'completed', 'completed_with_errors', 'failed')",
            name='ck_pipeline_runs_status',
        ),
    )
    op.create_index(op.f('ix_pipeline_runs_id'), 'pipeline_runs', ['id'], unique=False)
    op.create_index(op.f('ix_pipeline_runs_run_type'), 'pipeline_runs', ['run_type'], unique=False)

    # Create fulfillment_orders table
    op.create_table(
        'fulfillment_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shopify_order_id', sa.String(length=50), nullable=False),
        sa.Column('shopify_order_name', sa.String(length=50), nullable=True),
        sa.Column('line_item_id', sa.String(length=50), nullable=False),
        sa.Column('asset_id', sa.String(length=36), nullable=True),
        sa.Column('drive_file_id', sa.String(length=255), nullable=True),
        sa.Column('artwork_title', sa.String(length=500), nullable=True),
        sa.Column('artist', sa.String(length=255), nullable=True),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('frame', sa.String(length=50), nullable=True),
        sa.Column('price_tier', sa.String(length=30), nullable=True),
        sa.Column('preview_url', sa.String(length=1000), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price', sa.String(length=20), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('shipping_address', postgresql.JSONB(), nullable=True),
        sa.Column('printful_order_id', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shopify_order_id', 'line_item_id', name='uq_fulfillment_order_line'),
    )
    op.create_index(op.f('ix_fulfillment_orders_id'), 'fulfillment_orders', ['id'], unique=False)
    op.create_index(op.f('ix_fulfillment_orders_shopify_order_id'), 'fulfillment_orders', ['shopify_order_id'], unique=False)
    op.create_index(op.f('ix_fulfillment_orders_asset_id'), 'fulfillment_orders', ['asset_id'], unique=False)
    op.create_index(op.f('ix_fulfillment_orders_status'), 'fulfillment_orders', ['status'], unique=False)

    # Keep updated_at current for writers that bypass the ORM
    op.execute("""
        CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    for table in ('assets', 'asset_embeddings', 'fulfillment_orders'):
        op.execute(
            f"CREATE TRIGGER trg_{table}_updated_at BEFORE UPDATE ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION set_updated_at();"
        )

    # Cosine similarity search over synced assets
    op.execute(f"""
        CREATE OR REPLACE FUNCTION match_assets(
            query_embedding vector({EMBEDDING_DIM}),
            match_threshold FLOAT DEFAULT 0.5,
            match_count INT DEFAULT 10
        )
        RETURNS TABLE (
            asset_id VARCHAR,
            shopify_product_id VARCHAR,
            title VARCHAR,
            drive_file_id VARCHAR,
            artist VARCHAR,
            style VARCHAR,
            mood VARCHAR,
            ratio_class VARCHAR,
            max_print_width_cm FLOAT,
            max_print_height_cm FLOAT,
            similarity FLOAT
        )
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RETURN QUERY
            SELECT
                ae.asset_id,
                a.shopify_product_id,
                a.title,
                a.drive_file_id,
                a.artist,
                a.style,
                a.mood,
                a.ratio_class,
                a.max_print_width_cm,
                a.max_print_height_cm,
                1 - (ae.embedding <=> query_embedding) AS similarity
            FROM asset_embeddings ae
            JOIN assets a ON a.id = ae.asset_id
            WHERE a.shopify_status = 'synced'
              AND 1 - (ae.embedding <=> query_embedding) > match_threshold
            ORDER BY ae.embedding <=> query_embedding
            LIMIT match_count;
        END;
        $$;
    """)

    # Weighted engagement over the last 7 days: purchase 10, add to cart 5, click 2, view 1
    op.execute("""
        CREATE MATERIALIZED VIEW IF NOT EXISTS trending_products AS
        SELECT
            product_id,
            COUNT(*) FILTER (WHERE event_type = 'view') AS views,
            COUNT(*) FILTER (WHERE event_type = 'click') AS clicks,
            COUNT(*) FILTER (WHERE event_type = 'add_to_cart') AS adds_to_cart,
            COUNT(*) FILTER (WHERE event_type = 'purchase') AS purchases,
            (COUNT(*) FILTER (WHERE event_type = 'purchase') * 10 +
             COUNT(*) FILTER (WHERE event_type = 'add_to_cart') * 5 +
             COUNT(*) FILTER (WHERE event_type = 'click') * 2 +
             COUNT(*) FILTER (WHERE event_type = 'view') * 1) AS trending_score,
            MAX(created_at) AS last_event_at
        FROM analytics_events
        WHERE product_id IS NOT NULL
          AND created_at > NOW() - INTERVAL '7 days'
        GROUP BY product_id
        ORDER BY trending_score DESC;
    """)
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_trending_product_id ON trending_products (product_id);"
    )
    op.execute("""
        CREATE OR REPLACE FUNCTION refresh_trending() RETURNS void
        LANGUAGE plpgsql
        AS $$
        BEGIN
            REFRESH MATERIALIZED VIEW CONCURRENTLY trending_products;
        END;
        $$;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS refresh_trending();")
    op.execute("DROP MATERIALIZED VIEW IF EXISTS trending_products;")
    op.execute(f"DROP FUNCTION IF EXISTS match_assets(vector({EMBEDDING_DIM}), FLOAT, INT);")
    for table in ('assets', 'asset_embeddings', 'fulfillment_orders'):
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table};")
    op.execute("DROP FUNCTION IF EXISTS set_updated_at();")

    op.drop_table('fulfillment_orders')
    op.drop_table('pipeline_runs')
    op.drop_table('analytics_events')
    op.execute("DROP INDEX IF EXISTS idx_asset_embeddings_vector;")
    op.drop_table('asset_embeddings')
    op.drop_table('asset_variants')
    op.drop_table('assets')
    op.execute("DROP EXTENSION IF EXISTS vector;")
