from fastapi import APIRouter, Depends

from app.dependencies import get_customer_service
from app.schemas.customer import Customer, CustomerUpdate
from app.services.customers.service import CustomerService

router = APIRouter()

@router.get("/{customer_id}", response_model=Customer)
async def get_customer(
    customer_id: str,
    customer_service: CustomerService = Depends(get_customer_service),
):
    return await customer_service.get_customer(customer_id)

@router.put("/{customer_id}", response_model=Customer)
async def update_customer(
    customer_id: str,
    update: CustomerUpdate,
    customer_service: CustomerService = Depends(get_customer_service),
):
    """Update name, email or phone. Omitted fields keep their stored value."""
    return await customer_service.update_customer(customer_id, update)
