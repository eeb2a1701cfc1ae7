"""
SQLAlchemy/pgvector stores.

Every call opens its own session from the factory, so concurrent callers
(the items of a synchronization batch, overlapping chat turns) never share
an ``AsyncSession``.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import delete, func, or_, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.exceptions import DimensionMismatchError, EmbeddingExistsError
from app.core.logging import get_logger
from app.db.base import Base
from app.models.chat import ChatMessageRecord, ChatSessionRecord
from app.models.customer import CustomerRecord
from app.models.embedding import ProductEmbeddingRecord
from app.models.product import ProductRecord
from app.schemas.chat import ChatMessage, ChatSession, MessageType
from app.schemas.customer import Customer
from app.schemas.product import EmbeddingInfo, Product, ProductEmbedding, product_from_metadata

logger = get_logger(__name__)


def _to_product(record: ProductRecord) -> Product:
    return Product(
        id=record.id,
        name=record.name,
        description=record.description or "",
        category=record.category or "",
        price=float(record.price),
        in_stock=bool(record.in_stock),
        features=list(record.features or []),
        specifications=dict(record.specifications or {}),
        tags=list(record.tags or []),
    )


def _to_customer(record: CustomerRecord) -> Customer:
    return Customer(id=record.id, name=record.name, email=record.email, phone=record.phone)


def _to_session(record: ChatSessionRecord) -> ChatSession:
    return ChatSession(
        id=record.id,
        customer_id=record.customer_id,
        created_at=record.created_at,
        is_active=bool(record.is_active),
    )


def _to_message(record: ChatMessageRecord) -> ChatMessage:
    return ChatMessage(
        id=record.id,
        content=record.content,
        type=MessageType(record.type),
        timestamp=record.timestamp,
        session_id=record.session_id,
    )


class SqlProductRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, product_id: str) -> Optional[Product]:
        async with self.session_factory() as db:
            record = await db.get(ProductRecord, product_id)
            return _to_product(record) if record else None

    async def list_all(self) -> List[Product]:
        async with self.session_factory() as db:
            result = await db.execute(select(ProductRecord).order_by(ProductRecord.created_at))
            return [_to_product(r) for r in result.scalars().all()]

    async def find_by_category(self, category: str) -> List[Product]:
        async with self.session_factory() as db:
            stmt = select(ProductRecord).where(
                func.lower(ProductRecord.category) == category.strip().lower()
            )
            result = await db.execute(stmt)
            return [_to_product(r) for r in result.scalars().all()]

    async def search_by_text(self, query: str, limit: int = 10) -> List[Product]:
        needle = query.strip()
        if not needle:
            return []
        pattern = f"%{needle}%"
        async with self.session_factory() as db:
            stmt = (
                select(ProductRecord)
                .where(
                    or_(
                        ProductRecord.name.ilike(pattern),
                        ProductRecord.description.ilike(pattern),
                        ProductRecord.category.ilike(pattern),
                    )
                )
                .limit(limit)
            )
            result = await db.execute(stmt)
            return [_to_product(r) for r in result.scalars().all()]

    async def save(self, product: Product) -> None:
        values = product.model_dump()
        async with self.session_factory() as db:
            stmt = pg_insert(ProductRecord).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ProductRecord.id],
                set_={k: stmt.excluded[k] for k in values if k != "id"},
            )
            await db.execute(stmt)
            await db.commit()

    async def delete(self, product_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(ProductRecord).where(ProductRecord.id == product_id))
            await db.commit()
            return bool(result.rowcount)


class SqlCustomerRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, customer_id: str) -> Optional[Customer]:
        async with self.session_factory() as db:
            record = await db.get(CustomerRecord, customer_id)
            return _to_customer(record) if record else None

    async def find_by_email(self, email: str) -> Optional[Customer]:
        async with self.session_factory() as db:
            stmt = (
                select(CustomerRecord)
                .where(func.lower(CustomerRecord.email) == email.strip().lower())
                .limit(1)
            )
            record = (await db.execute(stmt)).scalar_one_or_none()
            return _to_customer(record) if record else None

    async def create_if_absent(self, customer: Customer) -> Customer:
        # A profile written concurrently wins over the placeholder
        async with self.session_factory() as db:
            stmt = pg_insert(CustomerRecord).values(**customer.model_dump())
            stmt = stmt.on_conflict_do_nothing(index_elements=[CustomerRecord.id])
            await db.execute(stmt)
            await db.commit()
            record = await db.get(CustomerRecord, customer.id)
            return _to_customer(record)

    async def save(self, customer: Customer) -> None:
        values = customer.model_dump()
        async with self.session_factory() as db:
            stmt = pg_insert(CustomerRecord).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[CustomerRecord.id],
                set_={"name": stmt.excluded.name, "email": stmt.excluded.email, "phone": stmt.excluded.phone},
            )
            await db.execute(stmt)
            await db.commit()


class SqlChatRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        async with self.session_factory() as db:
            record = await db.get(ChatSessionRecord, session_id)
            return _to_session(record) if record else None

    async def get_active_session_for_customer(self, customer_id: str) -> Optional[ChatSession]:
        async with self.session_factory() as db:
            stmt = (
                select(ChatSessionRecord)
                .where(
                    ChatSessionRecord.customer_id == customer_id,
                    ChatSessionRecord.is_active.is_(True),
                )
                .order_by(ChatSessionRecord.created_at.desc())
                .limit(1)
            )
            result = await db.execute(stmt)
            record = result.scalar_one_or_none()
            return _to_session(record) if record else None

    async def save_session(self, session: ChatSession) -> None:
        async with self.session_factory() as db:
            await db.merge(
                ChatSessionRecord(
                    id=session.id,
                    customer_id=session.customer_id,
                    created_at=session.created_at,
                    is_active=session.is_active,
                )
            )
            await db.commit()

    async def append_message(self, message: ChatMessage) -> None:
        async with self.session_factory() as db:
            db.add(
                ChatMessageRecord(
                    id=message.id,
                    session_id=message.session_id,
                    type=message.type.value,
                    content=message.content,
                    timestamp=message.timestamp,
                )
            )
            await db.commit()

    async def get_messages(self, session_id: str) -> List[ChatMessage]:
        async with self.session_factory() as db:
            stmt = (
                select(ChatMessageRecord)
                .where(ChatMessageRecord.session_id == session_id)
                .order_by(ChatMessageRecord.timestamp)
            )
            result = await db.execute(stmt)
            return [_to_message(r) for r in result.scalars().all()]

    async def list_sessions_for_customer(self, customer_id: str) -> List[ChatSession]:
        async with self.session_factory() as db:
            stmt = (
                select(ChatSessionRecord)
                .where(ChatSessionRecord.customer_id == customer_id)
                .order_by(ChatSessionRecord.created_at.desc())
            )
            result = await db.execute(stmt)
            return [_to_session(r) for r in result.scalars().all()]


class PgVectorRepository:
    """Product embedding index stored in Postgres with the pgvector extension."""

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        dimensions: int,
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.dimensions = int(dimensions)
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        async with self.engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.run_sync(Base.metadata.create_all, tables=[ProductEmbeddingRecord.__table__])
        self._initialized = True
        logger.info(f"Vector index ready ({self.dimensions} dimensions)")

    async def has_entry(self, product_id: str) -> bool:
        async with self.session_factory() as db:
            stmt = select(ProductEmbeddingRecord.id).where(
                ProductEmbeddingRecord.product_id == product_id
            )
            result = await db.execute(stmt.limit(1))
            return result.scalar_one_or_none() is not None

    async def existing_product_ids(self) -> List[str]:
        async with self.session_factory() as db:
            result = await db.execute(select(ProductEmbeddingRecord.product_id))
            return [row for row in result.scalars().all()]

    async def upsert(self, embedding: ProductEmbedding, allow_overwrite: bool = False) -> None:
        if embedding.dimensions != self.dimensions:
            raise DimensionMismatchError(self.dimensions, embedding.dimensions, embedding.product_id)

        values = {
            "id": embedding.id,
            "product_id": embedding.product_id,
            "embedding": list(embedding.vector),
            "product_metadata": dict(embedding.metadata),
        }
        async with self.session_factory() as db:
            stmt = pg_insert(ProductEmbeddingRecord).values(**values)
            if allow_overwrite:
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ProductEmbeddingRecord.product_id],
                    set_={
                        "id": stmt.excluded.id,
                        "embedding": stmt.excluded.embedding,
                        "product_metadata": stmt.excluded.product_metadata,
                        "created_at": func.now(),
                    },
                )
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=[ProductEmbeddingRecord.product_id])
            result = await db.execute(stmt)
            await db.commit()
            if not allow_overwrite and not result.rowcount:
                raise EmbeddingExistsError(embedding.product_id)

    async def delete(self, product_id: str) -> None:
        async with self.session_factory() as db:
            await db.execute(
                delete(ProductEmbeddingRecord).where(ProductEmbeddingRecord.product_id == product_id)
            )
            await db.commit()

    async def search_nearest(self, vector: Sequence[float], k: int = 5) -> List[Product]:
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(self.dimensions, len(vector))
        distance_col = ProductEmbeddingRecord.embedding.cosine_distance(list(vector)).label("distance")
        async with self.session_factory() as db:
            stmt = (
                select(ProductEmbeddingRecord.product_metadata, distance_col)
                .order_by(distance_col)
                .limit(k)
            )
            result = await db.execute(stmt)
            return [product_from_metadata(metadata) for metadata, _distance in result.all()]

    async def embedding_info(self, product_id: str) -> EmbeddingInfo:
        async with self.session_factory() as db:
            stmt = select(
                func.vector_dims(ProductEmbeddingRecord.embedding),
                ProductEmbeddingRecord.created_at,
            ).where(ProductEmbeddingRecord.product_id == product_id)
            row = (await db.execute(stmt)).first()
            if row is None:
                return EmbeddingInfo(exists=False)
            dims, created_at = row
            return EmbeddingInfo(
                exists=True,
                dimensions=int(dims) if dims is not None else None,
                created_at=created_at.isoformat() if created_at else None,
            )

    async def count(self) -> int:
        async with self.session_factory() as db:
            return int(await db.scalar(select(func.count()).select_from(ProductEmbeddingRecord)) or 0)

    async def sample_dimensions(self) -> Optional[int]:
        async with self.session_factory() as db:
            dims = await db.scalar(
                select(func.vector_dims(ProductEmbeddingRecord.embedding)).limit(1)
            )
            return int(dims) if dims is not None else None

    async def reset(self) -> None:
        """Drop and recreate the embedding table."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all, tables=[ProductEmbeddingRecord.__table__])
            await conn.run_sync(Base.metadata.create_all, tables=[ProductEmbeddingRecord.__table__])
        logger.warning("Vector index dropped and recreated")


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
