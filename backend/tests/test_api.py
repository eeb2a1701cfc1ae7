from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.dependencies import build_container
from app.main import create_app
from conftest import StubAI

API = settings.API_V1_STR


def _client(product_repository, customer_repository, chat_repository, vector_repository, ai=None) -> TestClient:
    container = build_container(
        product_repository=product_repository,
        customer_repository=customer_repository,
        chat_repository=chat_repository,
        vector_repository=vector_repository,
        ai_service=ai,
    )
    return TestClient(create_app(container))


@pytest.fixture
def client(product_repository, customer_repository, chat_repository, vector_repository) -> TestClient:
    return _client(product_repository, customer_repository, chat_repository, vector_repository)


@pytest.fixture
def ai_client(product_repository, customer_repository, chat_repository, vector_repository) -> TestClient:
    return _client(product_repository, customer_repository, chat_repository, vector_repository, StubAI())


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["ai_configured"] is False
    assert body["embeddings"] == 0


def test_chat_round_trip(client: TestClient) -> None:
    response = client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "hello"})

    assert response.status_code == 200
    body = response.json()
    assert body["response"].startswith("Hello User guest_1!")
    assert body["suggested_actions"]

    history = client.get(f"{API}/chat/sessions/{body['session_id']}")
    assert history.status_code == 200
    assert [m["type"] for m in history.json()["messages"]] == ["user", "bot"]

    sessions = client.get(f"{API}/chat/customers/guest_1/sessions")
    assert [s["id"] for s in sessions.json()] == [body["session_id"]]


def test_chat_validation_error_is_400(client: TestClient) -> None:
    response = client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "   "})

    assert response.status_code == 400
    assert response.json()["detail"] == "Message is required"


def test_chat_cross_customer_session_is_400(client: TestClient) -> None:
    first = client.post(f"{API}/chat/", json={"customer_id": "owner", "message": "hello"}).json()

    response = client.post(
        f"{API}/chat/",
        json={"customer_id": "intruder", "message": "hello", "session_id": first["session_id"]},
    )

    assert response.status_code == 400


def test_chat_internal_error_is_generic_500(client: TestClient, chat_repository, monkeypatch) -> None:
    async def broken_save_session(session):
        raise RuntimeError("database password leaked in message")

    monkeypatch.setattr(chat_repository, "save_session", broken_save_session)

    response = client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "hello"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to process chat message. Please try again."


def test_missing_session_is_404(client: TestClient) -> None:
    assert client.get(f"{API}/chat/sessions/nope").status_code == 404


def test_embedding_routes_need_ai(client: TestClient) -> None:
    assert client.post(f"{API}/embeddings/sync").status_code == 503


def test_embedding_sync_and_status(ai_client: TestClient) -> None:
    response = ai_client.post(
        f"{API}/embeddings/sync",
        json={"batch_size": 2, "delay_between_batches_ms": 0, "max_retries": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert (body["total_products"], body["successful"], body["batches"]) == (5, 5, 3)

    status = ai_client.get(f"{API}/embeddings/status").json()
    assert status == {"total_products": 5, "with_embeddings": 5, "without_embeddings": 0}

    report = ai_client.get(f"{API}/embeddings/validate").json()
    assert (report["valid"], report["invalid"], report["missing"]) == (5, 0, 0)


def test_embedding_sync_for_selected_products(ai_client: TestClient) -> None:
    response = ai_client.post(
        f"{API}/embeddings/sync/products",
        json={"product_ids": ["p-1", "unknown"], "options": {"delay_between_batches_ms": 0}},
    )

    assert response.status_code == 200
    assert response.json()["successful"] == 1


def test_product_routes(ai_client: TestClient, vector_repository) -> None:
    listed = ai_client.get(f"{API}/products/", params={"category": "computers"}).json()
    assert {p["id"] for p in listed} == {"p-1", "p-5"}

    found = ai_client.get(f"{API}/products/search", params={"q": "cookbook"}).json()
    assert [p["id"] for p in found] == ["p-4"]

    assert ai_client.get(f"{API}/products/missing").status_code == 404

    created = ai_client.put(
        f"{API}/products/",
        json={"id": "p-9", "name": "E-Reader", "price": 120.0, "tags": ["book"]},
    )
    assert created.status_code == 200
    assert ai_client.get(f"{API}/products/p-9").json()["name"] == "E-Reader"

    assert ai_client.delete(f"{API}/products/p-9").status_code == 204
    assert ai_client.get(f"{API}/products/p-9").status_code == 404
    assert ai_client.delete(f"{API}/products/p-9").status_code == 404


def test_end_session_then_new_session(client: TestClient) -> None:
    first = client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "hello"}).json()

    intruder = client.patch(f"{API}/chat/sessions/{first['session_id']}/end", json={"customer_id": "guest_2"})
    assert intruder.status_code == 400

    ended = client.patch(f"{API}/chat/sessions/{first['session_id']}/end", json={"customer_id": "guest_1"})
    assert ended.status_code == 200
    assert ended.json()["is_active"] is False

    second = client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "hello"}).json()
    assert second["session_id"] != first["session_id"]

    missing = client.patch(f"{API}/chat/sessions/nope/end", json={"customer_id": "guest_1"})
    assert missing.status_code == 404


def test_customer_profile_routes(client: TestClient) -> None:
    client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "hello"})

    profile = client.get(f"{API}/customers/guest_1")
    assert profile.json()["name"] == "User guest_1"

    updated = client.put(f"{API}/customers/guest_1", json={"name": "Marie Curie", "email": "marie@example.com"})
    assert updated.status_code == 200
    assert updated.json()["email"] == "marie@example.com"

    reply = client.post(f"{API}/chat/", json={"customer_id": "guest_1", "message": "hello"}).json()
    assert reply["response"].startswith("Hello Marie Curie!")

    assert client.put(f"{API}/customers/guest_1", json={"name": "  "}).status_code == 400
    assert client.get(f"{API}/customers/nobody").status_code == 404
    assert client.put(f"{API}/customers/nobody", json={"name": "Nobody"}).status_code == 404
