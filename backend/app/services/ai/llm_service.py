import hashlib
import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from openai import AsyncOpenAI

from app.core.config import settings
from app.core.exceptions import TransientCapabilityError, ValidationError
from app.core.logging import get_logger

logger = get_logger(__name__)


def embedding_cache_key(model: str, text: str) -> str:
    """Whitespace-insensitive key: repeated queries differing only in spacing share a vector."""
    normalized = " ".join(text.split())
    digest = hashlib.sha256(f"{model}:{normalized}".encode("utf-8")).hexdigest()
    return f"{model}:{digest}"


class EmbeddingCache:
    """
    Bounded LRU of embedding vectors shared by chat retrieval and sync runs.

    Entries expire after
    ``ttl_seconds`` (0 keeps them until evicted). Vectors are copied on the way
    in and out so callers cannot mutate cached state.
    """

    def __init__(
        self,
        *,
        max_items: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_items = max(0, int(max_items))
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: OrderedDict[str, Tuple[float, List[float]]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: str) -> Optional[List[float]]:
        if self.max_items <= 0:
            return None
        entry = self._entries.get(key)
        if entry is not None and entry[0] and entry[0] <= self._clock():
            del self._entries[key]
            entry = None
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        self._entries.move_to_end(key)
        return list(entry[1])

    def store(self, key: str, vector: Sequence[float]) -> None:
        if self.max_items <= 0:
            return
        expires_at = self._clock() + self.ttl_seconds if self.ttl_seconds > 0 else 0.0
        self._entries[key] = (expires_at, list(vector))
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_items:
            self._entries.popitem(last=False)

    def stats(self) -> Dict[str, int]:
        return {"size": len(self._entries), "hits": self.hits, "misses": self.misses}


class LLMService:
    """Text generation and embeddings backed by the OpenAI API."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        embedding_dimensions: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.timeout_seconds = float(timeout_seconds or settings.AI_REQUEST_TIMEOUT_SECONDS)
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=self.timeout_seconds,
        )
        self.model = model or settings.OPENAI_MODEL
        self.embedding_model = embedding_model or settings.EMBEDDING_MODEL
        self.embedding_dimensions = int(embedding_dimensions or settings.VECTOR_DIMENSIONS)
        self.embedding_cache = EmbeddingCache(
            max_items=settings.EMBEDDING_CACHE_MAX_ITEMS,
            ttl_seconds=settings.EMBEDDING_CACHE_TTL_SECONDS,
        )

    async def generate_text(self, prompt: str) -> str:
        """Generate a reply for a fully composed prompt."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.CHAT_REPLY_TEMPERATURE,
                max_tokens=settings.CHAT_REPLY_MAX_TOKENS,
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.error(f"Error generating chat response: {e}")
            raise TransientCapabilityError(f"AI response generation failed: {e}") from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        if not content.strip():
            raise TransientCapabilityError("Empty response from AI service")
        return content.strip()

    async def generate_embedding(self, text: str) -> List[float]:
        """Generate an embedding vector for a text."""
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty for embedding generation")

        text = text.replace("\n", " ")
        cache_key = embedding_cache_key(self.embedding_model, text)
        cached = self.embedding_cache.lookup(cache_key)
        if cached is not None:
            return cached

        try:
            response = await self.client.embeddings.create(
                model=self.embedding_model,
                input=[text],
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.error(f"Error generating embedding: {e}")
            raise TransientCapabilityError(f"Embedding generation failed: {e}") from e

        if not response.data:
            raise TransientCapabilityError("Embedding response contained no data")
        embedding = list(response.data[0].embedding or [])
        if not embedding:
            raise TransientCapabilityError("Invalid embedding generated")
        self.embedding_cache.store(cache_key, embedding)
        return embedding


def build_llm_service() -> Optional[LLMService]:
    """Return the configured AI capability, or None when no API key is set."""
    if not settings.OPENAI_API_KEY:
        logger.info("OPENAI_API_KEY not set; chat replies will use the rule-based responder")
        return None
    return LLMService()
