from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_embedding_sync
from app.schemas.embedding import (
    EmbeddingValidationReport,
    SyncOptions,
    SyncProductsRequest,
    SyncResult,
    SyncStatus,
)
from app.services.embeddings.sync import EmbeddingSyncService

router = APIRouter()

@router.post("/sync", response_model=SyncResult)
async def synchronize_embeddings(
    options: Optional[SyncOptions] = None,
    sync: EmbeddingSyncService = Depends(get_embedding_sync),
):
    """Bring the product vector index in line with the catalog."""
    return await sync.synchronize(options or SyncOptions())

@router.post("/sync/products", response_model=SyncResult)
async def synchronize_product_embeddings(
    request: SyncProductsRequest,
    sync: EmbeddingSyncService = Depends(get_embedding_sync),
):
    return await sync.synchronize_products(request.product_ids, request.options)

@router.get("/status", response_model=SyncStatus)
async def embedding_status(sync: EmbeddingSyncService = Depends(get_embedding_sync)):
    return await sync.get_status()

@router.get("/validate", response_model=EmbeddingValidationReport)
async def validate_embeddings(sync: EmbeddingSyncService = Depends(get_embedding_sync)):
    return await sync.validate_embeddings()
