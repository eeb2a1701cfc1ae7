from __future__ import annotations

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.schemas.customer import Customer, CustomerUpdate
from app.services.contracts import CustomerRepository

logger = get_logger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100


class CustomerService:
    """Profile reads and updates. Replies greet the customer by the stored name."""

    def __init__(self, customer_repository: CustomerRepository):
        self.customer_repository = customer_repository

    async def get_customer(self, customer_id: str) -> Customer:
        customer = await self.customer_repository.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer

    async def update_customer(self, customer_id: str, update: CustomerUpdate) -> Customer:
        customer = await self.get_customer(customer_id)
        changes = update.model_dump(exclude_unset=True)

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
                raise ValidationError(
                    f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
                )
            changes["name"] = name

        if "email" in changes:
            email = (changes["email"] or "").strip()
            if not email or "@" not in email:
                raise ValidationError("Valid email address is required")
            if email.lower() != customer.email.lower():
                existing = await self.customer_repository.find_by_email(email)
                if existing is not None and existing.id != customer.id:
                    raise ValidationError("Customer with this email already exists")
            changes["email"] = email

        if "phone" in changes:
            changes["phone"] = (changes["phone"] or "").strip() or None

        updated = customer.model_copy(update=changes)
        await self.customer_repository.save(updated)
        logger.info(f"Updated customer profile {customer_id}: {sorted(changes)}")
        return updated
