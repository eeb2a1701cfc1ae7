"""
Dictionary-backed stores.

Each instance owns its own storage; nothing is shared between instances, so
tests and the default wiring build as many independent stores as they need.
"""

from __future__ import annotations

import asyncio
import math
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.exceptions import DimensionMismatchError, EmbeddingExistsError
from app.schemas.chat import ChatMessage, ChatSession
from app.schemas.customer import Customer
from app.schemas.product import EmbeddingInfo, Product, ProductEmbedding, product_from_metadata


class InMemoryProductRepository:
    def __init__(self, products: Sequence[Product] = ()):
        self._products: Dict[str, Product] = {p.id: p for p in products}
        self._lock = asyncio.Lock()

    async def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    async def list_all(self) -> List[Product]:
        return list(self._products.values())

    async def find_by_category(self, category: str) -> List[Product]:
        wanted = category.strip().lower()
        return [p for p in self._products.values() if p.category.lower() == wanted]

    async def search_by_text(self, query: str, limit: int = 10) -> List[Product]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = [p for p in self._products.values() if needle in p.searchable_content.lower()]
        return matches[:limit]

    async def save(self, product: Product) -> None:
        async with self._lock:
            self._products[product.id] = product

    async def delete(self, product_id: str) -> bool:
        async with self._lock:
            return self._products.pop(product_id, None) is not None


class InMemoryCustomerRepository:
    def __init__(self, customers: Sequence[Customer] = ()):
        self._customers: Dict[str, Customer] = {c.id: c for c in customers}
        self._lock = asyncio.Lock()

    async def get(self, customer_id: str) -> Optional[Customer]:
        return self._customers.get(customer_id)

    async def save(self, customer: Customer) -> None:
        async with self._lock:
            self._customers[customer.id] = customer

    async def find_by_email(self, email: str) -> Optional[Customer]:
        wanted = email.strip().lower()
        for customer in self._customers.values():
            if customer.email.lower() == wanted:
                return customer
        return None

    async def create_if_absent(self, customer: Customer) -> Customer:
        async with self._lock:
            return self._customers.setdefault(customer.id, customer)


class InMemoryChatRepository:
    def __init__(self) -> None:
        self._sessions: Dict[str, ChatSession] = {}
        self._messages: Dict[str, List[ChatMessage]] = {}
        self._lock = asyncio.Lock()

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    async def get_active_session_for_customer(self, customer_id: str) -> Optional[ChatSession]:
        active = [
            s for s in self._sessions.values() if s.customer_id == customer_id and s.is_active
        ]
        if not active:
            return None
        return max(active, key=lambda s: s.created_at)

    async def save_session(self, session: ChatSession) -> None:
        async with self._lock:
            self._sessions[session.id] = session
            self._messages.setdefault(session.id, [])

    async def append_message(self, message: ChatMessage) -> None:
        async with self._lock:
            if message.session_id not in self._sessions:
                raise KeyError(f"Unknown session {message.session_id}")
            self._messages.setdefault(message.session_id, []).append(message)

    async def get_messages(self, session_id: str) -> List[ChatMessage]:
        return list(self._messages.get(session_id, []))

    async def list_sessions_for_customer(self, customer_id: str) -> List[ChatSession]:
        sessions = [s for s in self._sessions.values() if s.customer_id == customer_id]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorRepository:
    """Brute-force cosine index keyed by product id."""

    def __init__(self, dimensions: int):
        self.dimensions = int(dimensions)
        self._entries: Dict[str, ProductEmbedding] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self) -> None:
        self._initialized = True

    async def has_entry(self, product_id: str) -> bool:
        return product_id in self._entries

    async def existing_product_ids(self) -> List[str]:
        return list(self._entries.keys())

    async def upsert(self, embedding: ProductEmbedding, allow_overwrite: bool = False) -> None:
        if embedding.dimensions != self.dimensions:
            raise DimensionMismatchError(self.dimensions, embedding.dimensions, embedding.product_id)
        async with self._lock:
            if embedding.product_id in self._entries and not allow_overwrite:
                raise EmbeddingExistsError(embedding.product_id)
            self._entries[embedding.product_id] = embedding

    async def delete(self, product_id: str) -> None:
        async with self._lock:
            self._entries.pop(product_id, None)

    async def search_nearest(self, vector: Sequence[float], k: int = 5) -> List[Product]:
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(self.dimensions, len(vector))
        scored: List[Tuple[float, ProductEmbedding]] = [
            (cosine_similarity(vector, entry.vector), entry) for entry in list(self._entries.values())
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [product_from_metadata(entry.metadata) for _score, entry in scored[:k]]

    async def embedding_info(self, product_id: str) -> EmbeddingInfo:
        entry = self._entries.get(product_id)
        if entry is None:
            return EmbeddingInfo(exists=False)
        return EmbeddingInfo(
            exists=True,
            dimensions=entry.dimensions,
            created_at=entry.metadata.get("created_at"),
        )

    async def count(self) -> int:
        return len(self._entries)

    async def sample_dimensions(self) -> Optional[int]:
        for entry in self._entries.values():
            return entry.dimensions
        return None

    async def reset(self) -> None:
        async with self._lock:
            self._entries.clear()

    def load(self, embeddings: Sequence[ProductEmbedding]) -> None:
        """Seed entries without validation (used to simulate a drifted index)."""
        for embedding in embeddings:
            self._entries[embedding.product_id] = embedding
