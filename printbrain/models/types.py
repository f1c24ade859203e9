"""Column types shared by the models."""

import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

EMBEDDING_DIM = 768

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# pgvector on PostgreSQL, JSON list elsewhere
EmbeddingVector = Vector(EMBEDDING_DIM).with_variant(JSON(), "sqlite")


def new_uuid() -> str:
    """Generate a string UUID primary key."""
    return str(uuid.uuid4())
