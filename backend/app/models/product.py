from sqlalchemy import Column, String, Float, Boolean, DateTime, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.sql import func

from app.db.base import Base

class ProductRecord(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String(255), nullable=False, default="", index=True)
    price = Column(Float, nullable=False)
    in_stock = Column(Boolean, nullable=False, default=True)
    features = Column(ARRAY(String), nullable=False, default=list)
    specifications = Column(JSONB, nullable=False, default=dict)  # Key-value pairs
    tags = Column(ARRAY(String), nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
