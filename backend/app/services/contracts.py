from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from app.schemas.chat import ChatMessage, ChatSession
from app.schemas.customer import Customer
from app.schemas.product import EmbeddingInfo, Product, ProductEmbedding


class ProductRepository(Protocol):
    async def get(self, product_id: str) -> Optional[Product]:
        ...

    async def list_all(self) -> List[Product]:
        ...

    async def find_by_category(self, category: str) -> List[Product]:
        ...

    async def save(self, product: Product) -> None:
        ...

    async def delete(self, product_id: str) -> bool:
        ...


@runtime_checkable
class SearchableProductRepository(ProductRepository, Protocol):
    """Catalog stores that also support free-text lookup."""

    async def search_by_text(self, query: str, limit: int = 10) -> List[Product]:
        ...


class CustomerRepository(Protocol):
    async def get(self, customer_id: str) -> Optional[Customer]:
        ...

    async def save(self, customer: Customer) -> None:
        ...

    async def find_by_email(self, email: str) -> Optional[Customer]:
        ...

    async def create_if_absent(self, customer: Customer) -> Customer:
        """Insert unless the id exists; return whichever profile is stored."""
        ...


class ChatRepository(Protocol):
    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        ...

    async def get_active_session_for_customer(self, customer_id: str) -> Optional[ChatSession]:
        ...

    async def save_session(self, session: ChatSession) -> None:
        ...

    async def append_message(self, message: ChatMessage) -> None:
        ...

    async def get_messages(self, session_id: str) -> List[ChatMessage]:
        ...

    async def list_sessions_for_customer(self, customer_id: str) -> List[ChatSession]:
        ...


class GenerativeAIService(Protocol):
    embedding_dimensions: int

    async def generate_text(self, prompt: str) -> str:
        ...

    async def generate_embedding(self, text: str) -> List[float]:
        ...


class VectorRepository(Protocol):
    dimensions: int

    async def initialize(self) -> None:
        ...

    async def has_entry(self, product_id: str) -> bool:
        ...

    async def existing_product_ids(self) -> List[str]:
        ...

    async def upsert(self, embedding: ProductEmbedding, allow_overwrite: bool = False) -> None:
        ...

    async def delete(self, product_id: str) -> None:
        ...

    async def search_nearest(self, vector: Sequence[float], k: int = 5) -> List[Product]:
        ...

    async def embedding_info(self, product_id: str) -> EmbeddingInfo:
        ...

    async def count(self) -> int:
        ...

    async def sample_dimensions(self) -> Optional[int]:
        ...

    async def reset(self) -> None:
        ...
