from pydantic import BaseModel, ConfigDict
from typing import Optional


class Customer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None

    @classmethod
    def placeholder(cls, external_id: str) -> "Customer":
        """Minimal profile for a customer seen for the first time."""
        return cls(
            id=external_id,
            name=f"User {external_id}",
            email=f"{external_id}@example.com",
        )


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
