from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from app.db.base import Base

class CustomerRecord(Base):
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True)  # external id, e.g. guest_abc
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
