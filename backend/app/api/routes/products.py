from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.dependencies import ServiceContainer, get_container
from app.schemas.embedding import SyncOptions
from app.schemas.product import Product, ProductCreate

router = APIRouter()
logger = get_logger(__name__)

@router.get("/", response_model=List[Product])
async def list_products(
    category: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    if category:
        return await container.product_repository.find_by_category(category)
    return await container.product_repository.list_all()

@router.get("/search", response_model=List[Product])
async def search_products(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    container: ServiceContainer = Depends(get_container),
):
    """Free-text catalog lookup (stores without text search answer 501)."""
    if container.product_search is None:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Text search is not supported by the configured product store",
        )
    return await container.product_search.search_by_text(q, limit)

@router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: str,
    container: ServiceContainer = Depends(get_container),
):
    product = await container.product_repository.get(product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product

@router.put("/", response_model=Product)
async def save_product(
    payload: ProductCreate,
    background_tasks: BackgroundTasks,
    container: ServiceContainer = Depends(get_container),
):
    """
    Create or replace a product.

    The product's embedding is regenerated in the background so the index
    follows the new searchable content.
    """
    product = Product(**payload.model_dump(exclude={"id"}), id=payload.id or str(uuid4()))
    await container.product_repository.save(product)

    if container.embedding_sync is not None:
        background_tasks.add_task(
            container.embedding_sync.synchronize_products,
            [product.id],
            SyncOptions(force_regenerate=True),
        )
    return product

@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    container: ServiceContainer = Depends(get_container),
):
    deleted = await container.product_repository.delete(product_id)
    if not deleted:
        raise NotFoundError(f"Product {product_id} not found")
    if container.embedding_sync is not None:
        await container.embedding_sync.remove_product(product_id)
    else:
        await container.vector_repository.delete(product_id)
    logger.info(f"Deleted product {product_id}")
