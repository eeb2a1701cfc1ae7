from __future__ import annotations

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.repositories.memory import InMemoryCustomerRepository
from app.schemas.customer import Customer, CustomerUpdate
from app.services.chat.context import ChatContextAssembler
from app.services.chat.service import ChatService
from app.services.customers.service import CustomerService

ADA = Customer(id="c-1", name="Ada", email="ada@example.com")
GRACE = Customer(id="c-2", name="Grace", email="grace@example.com")


@pytest.fixture
def customers() -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository([ADA, GRACE])


@pytest.mark.asyncio
async def test_get_customer(customers) -> None:
    service = CustomerService(customers)

    assert await service.get_customer("c-1") == ADA
    with pytest.raises(NotFoundError):
        await service.get_customer("missing")


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(customers) -> None:
    service = CustomerService(customers)

    updated = await service.update_customer("c-1", CustomerUpdate(name="  Ada Lovelace ", phone="555-0100"))

    assert updated == Customer(id="c-1", name="Ada Lovelace", email="ada@example.com", phone="555-0100")
    assert await customers.get("c-1") == updated


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "update",
    [
        CustomerUpdate(name="   "),
        CustomerUpdate(name="A"),
        CustomerUpdate(email=""),
        CustomerUpdate(email="not-an-email"),
        CustomerUpdate(email="GRACE@example.com"),
    ],
)
async def test_invalid_updates_are_rejected(customers, update) -> None:
    service = CustomerService(customers)

    with pytest.raises(ValidationError):
        await service.update_customer("c-1", update)

    assert await customers.get("c-1") == ADA


@pytest.mark.asyncio
async def test_update_unknown_customer(customers) -> None:
    with pytest.raises(NotFoundError):
        await CustomerService(customers).update_customer("missing", CustomerUpdate(name="Nobody"))


@pytest.mark.asyncio
async def test_keeping_own_email_is_allowed(customers) -> None:
    updated = await CustomerService(customers).update_customer("c-1", CustomerUpdate(email="ADA@example.com"))
    assert updated.email == "ADA@example.com"


@pytest.mark.asyncio
async def test_greeting_uses_updated_name(customers, chat_repository) -> None:
    chat = ChatService(chat_repository, customers, ChatContextAssembler(chat_repository, None, None))
    await CustomerService(customers).update_customer("c-1", CustomerUpdate(name="Countess Lovelace"))

    response = await chat.handle_turn("c-1", "hello")

    assert response.response.startswith("Hello Countess Lovelace!")


@pytest.mark.asyncio
async def test_create_if_absent_keeps_stored_profile(customers) -> None:
    stored = await customers.create_if_absent(Customer.placeholder("c-1"))
    created = await customers.create_if_absent(Customer.placeholder("c-3"))

    assert stored == ADA
    assert created == Customer.placeholder("c-3")
    assert await customers.find_by_email("C-3@example.com") == created
