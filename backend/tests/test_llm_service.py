from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.core.exceptions import TransientCapabilityError, ValidationError
from app.services.ai.llm_service import EmbeddingCache, LLMService, embedding_cache_key


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _FakeEmbeddings:
    def __init__(self, vector=None, error=None):
        self.vector = vector
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        data = [SimpleNamespace(embedding=self.vector)] if self.vector is not None else []
        return SimpleNamespace(data=data)


def _client(*, completions=None, embeddings=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=completions or _FakeCompletions("ok")),
        embeddings=embeddings or _FakeEmbeddings([0.1, 0.2]),
    )


def _service(client) -> LLMService:
    return LLMService(
        client,
        model="test-model",
        embedding_model="test-embedding",
        embedding_dimensions=2,
        timeout_seconds=5,
    )


@pytest.mark.asyncio
async def test_generate_text_strips_reply() -> None:
    completions = _FakeCompletions("  Hi there  ")
    service = _service(_client(completions=completions))

    assert await service.generate_text("prompt") == "Hi there"
    assert completions.calls[0]["model"] == "test-model"
    assert completions.calls[0]["messages"] == [{"role": "user", "content": "prompt"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("completions", [_FakeCompletions(""), _FakeCompletions(error=RuntimeError("timeout"))])
async def test_generate_text_failures_are_transient(completions) -> None:
    service = _service(_client(completions=completions))

    with pytest.raises(TransientCapabilityError):
        await service.generate_text("prompt")


@pytest.mark.asyncio
async def test_generate_embedding_is_cached() -> None:
    embeddings = _FakeEmbeddings([0.1, 0.2])
    service = _service(_client(embeddings=embeddings))

    first = await service.generate_embedding("red shoes")
    second = await service.generate_embedding("red shoes")

    assert first == second == [0.1, 0.2]
    assert len(embeddings.calls) == 1
    assert embeddings.calls[0]["model"] == "test-embedding"


@pytest.mark.asyncio
async def test_generate_embedding_rejects_empty_text() -> None:
    service = _service(_client())

    with pytest.raises(ValidationError):
        await service.generate_embedding("   ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "embeddings",
    [_FakeEmbeddings(None), _FakeEmbeddings([]), _FakeEmbeddings(error=RuntimeError("429"))],
)
async def test_generate_embedding_failures_are_transient(embeddings) -> None:
    service = _service(_client(embeddings=embeddings))

    with pytest.raises(TransientCapabilityError):
        await service.generate_embedding("red shoes")


@pytest.mark.asyncio
async def test_cache_key_ignores_spacing_differences() -> None:
    embeddings = _FakeEmbeddings([0.1, 0.2])
    service = _service(_client(embeddings=embeddings))

    await service.generate_embedding("red   shoes")
    await service.generate_embedding("red shoes\n")

    assert len(embeddings.calls) == 1
    assert service.embedding_cache.stats() == {"size": 1, "hits": 1, "misses": 1}


def test_cache_entries_expire_and_evict() -> None:
    now = [100.0]
    cache = EmbeddingCache(max_items=2, ttl_seconds=10, clock=lambda: now[0])
    for text in ("a", "b", "c"):
        cache.store(embedding_cache_key("m", text), [1.0])

    assert len(cache) == 2
    assert cache.lookup(embedding_cache_key("m", "a")) is None

    now[0] += 11
    assert cache.lookup(embedding_cache_key("m", "c")) is None
    assert len(cache) == 1


def test_cached_vectors_are_copies() -> None:
    cache = EmbeddingCache(max_items=4, ttl_seconds=0)
    key = embedding_cache_key("m", "laptop")
    cache.store(key, [1.0, 2.0])

    cache.lookup(key).append(3.0)

    assert cache.lookup(key) == [1.0, 2.0]
