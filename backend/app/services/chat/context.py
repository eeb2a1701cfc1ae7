from __future__ import annotations

from typing import List, Optional, Sequence

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.chat import ChatContext, ChatMessage, ChatSession, MessageType
from app.schemas.customer import Customer
from app.schemas.product import Product
from app.services.contracts import ChatRepository, GenerativeAIService, VectorRepository

logger = get_logger(__name__)


class ChatContextAssembler:
    """Builds the per-turn ChatContext: recent history plus similar products."""

    def __init__(
        self,
        chat_repository: ChatRepository,
        vector_repository: Optional[VectorRepository],
        ai_service: Optional[GenerativeAIService],
        *,
        window_size: Optional[int] = None,
        search_top_k: Optional[int] = None,
        query_max_tokens: Optional[int] = None,
    ):
        self.chat_repository = chat_repository
        self.vector_repository = vector_repository
        self.ai_service = ai_service
        self.window_size = window_size or settings.CHAT_CONTEXT_WINDOW
        self.search_top_k = search_top_k or settings.CHAT_SEARCH_TOPK
        self.query_max_tokens = query_max_tokens or settings.CHAT_QUERY_MAX_TOKENS

    async def assemble(self, session: ChatSession, customer: Customer) -> ChatContext:
        messages = await self.chat_repository.get_messages(session.id)
        # Storage order is not trusted
        window = sorted(messages, key=lambda m: m.timestamp)[-self.window_size :]

        query = self.build_search_query(window)
        relevant_products: List[Product] = []
        if query:
            relevant_products = await self.find_relevant_products(query, self.search_top_k)

        return ChatContext(
            session_id=session.id,
            customer_id=customer.id,
            recent_messages=window,
            customer_profile=customer,
            relevant_products=relevant_products,
        )

    def build_search_query(self, messages: Sequence[ChatMessage]) -> str:
        conversation_text = " ".join(
            m.content for m in messages if m.type == MessageType.USER
        ).strip()
        if not conversation_text:
            return ""
        return " ".join(conversation_text.split()[-self.query_max_tokens :])

    async def find_relevant_products(self, query: str, limit: int) -> List[Product]:
        """Best-effort similarity search; any failure yields an empty list."""
        if self.ai_service is None or self.vector_repository is None:
            return []
        try:
            query_embedding = await self.ai_service.generate_embedding(query)
            return await self.vector_repository.search_nearest(query_embedding, limit)
        except Exception as e:
            logger.error(f"Error finding relevant products: {e}")
            return []
