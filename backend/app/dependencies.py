from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import settings
from app.core.logging import get_logger
from app.repositories.memory import (
    InMemoryChatRepository,
    InMemoryCustomerRepository,
    InMemoryProductRepository,
    InMemoryVectorRepository,
)
from app.services.ai.llm_service import build_llm_service
from app.services.chat.context import ChatContextAssembler
from app.services.chat.service import ChatService
from app.services.customers.service import CustomerService
from app.services.contracts import (
    ChatRepository,
    CustomerRepository,
    GenerativeAIService,
    ProductRepository,
    SearchableProductRepository,
    VectorRepository,
)
from app.services.embeddings.sync import EmbeddingSyncService

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Stores and services owned by one application instance."""

    product_repository: ProductRepository
    customer_repository: CustomerRepository
    chat_repository: ChatRepository
    vector_repository: VectorRepository
    ai_service: Optional[GenerativeAIService]
    chat_service: ChatService
    customer_service: CustomerService
    embedding_sync: Optional[EmbeddingSyncService]
    product_search: Optional[SearchableProductRepository] = None
    engine: Optional[AsyncEngine] = None

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


def build_container(
    *,
    product_repository: ProductRepository,
    customer_repository: CustomerRepository,
    chat_repository: ChatRepository,
    vector_repository: VectorRepository,
    ai_service: Optional[GenerativeAIService],
    engine: Optional[AsyncEngine] = None,
) -> ServiceContainer:
    assembler = ChatContextAssembler(chat_repository, vector_repository, ai_service)
    chat_service = ChatService(
        chat_repository,
        customer_repository,
        assembler,
        ai_service,
    )
    embedding_sync = None
    if ai_service is not None:
        embedding_sync = EmbeddingSyncService(product_repository, vector_repository, ai_service)
    return ServiceContainer(
        product_repository=product_repository,
        customer_repository=customer_repository,
        chat_repository=chat_repository,
        vector_repository=vector_repository,
        ai_service=ai_service,
        chat_service=chat_service,
        customer_service=CustomerService(customer_repository),
        embedding_sync=embedding_sync,
        product_search=(
            product_repository
            if isinstance(product_repository, SearchableProductRepository)
            else None
        ),
        engine=engine,
    )


def build_default_container() -> ServiceContainer:
    """Wire stores from settings: Postgres when DATABASE_URL is set, memory otherwise."""
    ai_service = build_llm_service()

    if not settings.DATABASE_URL:
        logger.info("DATABASE_URL not set; using in-memory stores")
        return build_container(
            product_repository=InMemoryProductRepository(),
            customer_repository=InMemoryCustomerRepository(),
            chat_repository=InMemoryChatRepository(),
            vector_repository=InMemoryVectorRepository(settings.VECTOR_DIMENSIONS),
            ai_service=ai_service,
        )

    from app.db.session import create_engine_from_settings, create_session_factory
    from app.repositories.sql import (
        PgVectorRepository,
        SqlChatRepository,
        SqlCustomerRepository,
        SqlProductRepository,
    )

    engine = create_engine_from_settings()
    session_factory = create_session_factory(engine)
    return build_container(
        product_repository=SqlProductRepository(session_factory),
        customer_repository=SqlCustomerRepository(session_factory),
        chat_repository=SqlChatRepository(session_factory),
        vector_repository=PgVectorRepository(engine, session_factory, settings.VECTOR_DIMENSIONS),
        ai_service=ai_service,
        engine=engine,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_chat_service(request: Request) -> ChatService:
    return get_container(request).chat_service


def get_customer_service(request: Request) -> CustomerService:
    return get_container(request).customer_service


def get_embedding_sync(request: Request) -> EmbeddingSyncService:
    sync = get_container(request).embedding_sync
    if sync is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Embedding synchronization requires a configured AI service",
        )
    return sync
