from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from pgvector.sqlalchemy import Vector
from datetime import datetime, timezone

from app.db.base import Base
from app.core.config import settings

class ProductEmbeddingRecord(Base):
    __tablename__ = "product_embeddings"

    id = Column(String(64), primary_key=True)
    # One entry per product; no FK so the index can be rebuilt on its own
    product_id = Column(String(64), unique=True, nullable=False, index=True)

    # Vector embedding
    embedding = Column(Vector(settings.VECTOR_DIMENSIONS), nullable=False)

    # Denormalized product fields
    product_metadata = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
