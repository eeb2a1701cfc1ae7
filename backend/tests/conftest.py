from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from app.core.exceptions import TransientCapabilityError
from app.repositories.memory import (
    InMemoryChatRepository,
    InMemoryCustomerRepository,
    InMemoryProductRepository,
    InMemoryVectorRepository,
)
from app.schemas.chat import ChatContext, ChatMessage, MessageType
from app.schemas.customer import Customer
from app.schemas.product import Product

DIMENSIONS = 4
TOPICS = ("laptop", "phone", "shoe", "book")


def topic_vector(text: str, dimensions: int = DIMENSIONS) -> List[float]:
    """Tiny bag-of-topics embedding so similarity is predictable in tests."""
    lowered = text.lower()
    vector = [float(lowered.count(topic)) for topic in TOPICS]
    vector = (vector + [0.0] * dimensions)[:dimensions]
    return [value + 0.01 for value in vector]


class StubAI:
    """Stand-in for the generative capability."""

    def __init__(
        self,
        *,
        dimensions: int = DIMENSIONS,
        reply: str = "Happy to help with that!",
        text_error: Optional[Exception] = None,
        embedding_error: Optional[Exception] = None,
        embedding_failures: Optional[Dict[str, int]] = None,
        wrong_dimension_for: tuple[str, ...] = (),
    ):
        self.embedding_dimensions = dimensions
        self.reply = reply
        self.text_error = text_error
        self.embedding_error = embedding_error
        self.embedding_failures = dict(embedding_failures or {})
        self.wrong_dimension_for = wrong_dimension_for
        self.prompts: List[str] = []
        self.embedded: List[str] = []

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.text_error is not None:
            raise self.text_error
        return self.reply

    async def generate_embedding(self, text: str) -> List[float]:
        self.embedded.append(text)
        if self.embedding_error is not None:
            raise self.embedding_error
        for marker, remaining in self.embedding_failures.items():
            if marker in text and remaining > 0:
                self.embedding_failures[marker] = remaining - 1
                raise TransientCapabilityError(f"rate limited: {marker}")
        if any(marker in text for marker in self.wrong_dimension_for):
            return [0.5] * (self.embedding_dimensions + 1)
        return topic_vector(text, self.embedding_dimensions)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_product(product_id: str, name: str, **overrides) -> Product:
    fields = {
        "description": f"{name} description",
        "category": "general",
        "price": 10.0,
        "in_stock": True,
    }
    fields.update(overrides)
    return Product(id=product_id, name=name, **fields)


def make_message(
    session_id: str,
    content: str,
    message_type: MessageType = MessageType.USER,
    *,
    offset_seconds: int = 0,
    message_id: Optional[str] = None,
) -> ChatMessage:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return ChatMessage(
        id=message_id or f"{session_id}-{offset_seconds}",
        content=content,
        type=message_type,
        timestamp=base + timedelta(seconds=offset_seconds),
        session_id=session_id,
    )


def make_context(
    message_products: Optional[List[Product]] = None,
    *,
    name: str = "Ada",
) -> ChatContext:
    return ChatContext(
        session_id="s-1",
        customer_id="c-1",
        customer_profile=Customer(id="c-1", name=name, email="ada@example.com"),
        relevant_products=message_products or [],
    )


@pytest.fixture(autouse=True)
def _isolate_debug_log(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("app.utils.debug_log.DEBUG_LOG_PATH", tmp_path / "debug.log")
    return tmp_path / "debug.log"


@pytest.fixture
def catalog() -> List[Product]:
    return [
        make_product("p-1", "Travel Laptop", category="computers", tags=["laptop"]),
        make_product("p-2", "Budget Phone", category="phones", tags=["phone"]),
        make_product("p-3", "Running Shoe", category="footwear", in_stock=False, tags=["shoe"]),
        make_product("p-4", "Cookbook", category="books", tags=["book"]),
        make_product("p-5", "Gaming Laptop", category="computers", features=["RGB keyboard"], tags=["laptop"]),
    ]


@pytest.fixture
def product_repository(catalog) -> InMemoryProductRepository:
    return InMemoryProductRepository(catalog)


@pytest.fixture
def vector_repository() -> InMemoryVectorRepository:
    return InMemoryVectorRepository(DIMENSIONS)


@pytest.fixture
def chat_repository() -> InMemoryChatRepository:
    return InMemoryChatRepository()


@pytest.fixture
def customer_repository() -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository()


@pytest.fixture
def stub_ai() -> StubAI:
    return StubAI()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
