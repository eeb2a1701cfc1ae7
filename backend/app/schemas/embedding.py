from typing import List

from pydantic import BaseModel, Field

from app.core.config import settings


class SyncOptions(BaseModel):
    batch_size: int = Field(default_factory=lambda: settings.EMBEDDING_SYNC_BATCH_SIZE, ge=1)
    delay_between_batches_ms: int = Field(
        default_factory=lambda: settings.EMBEDDING_SYNC_BATCH_DELAY_MS, ge=0
    )
    max_retries: int = Field(default_factory=lambda: settings.EMBEDDING_SYNC_MAX_RETRIES, ge=1)
    skip_existing: bool = True
    force_regenerate: bool = False


class SyncItemError(BaseModel):
    product_id: str
    product_name: str
    error: str


class SyncProcessedItem(BaseModel):
    product_id: str
    product_name: str
    embedding_dimensions: int
    attempts: int = 1


class SyncResult(BaseModel):
    total_products: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    batches: int = 0
    errors: List[SyncItemError] = []
    processed: List[SyncProcessedItem] = []
    duration_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_products <= 0:
            return 0.0
        return self.successful / self.total_products * 100.0


class SyncProductsRequest(BaseModel):
    product_ids: List[str] = Field(..., min_length=1)
    options: SyncOptions = Field(default_factory=SyncOptions)


class SyncStatus(BaseModel):
    total_products: int
    with_embeddings: int
    without_embeddings: int


class EmbeddingIssue(BaseModel):
    product_id: str
    issue: str


class EmbeddingValidationReport(BaseModel):
    valid: int = 0
    invalid: int = 0
    missing: int = 0
    issues: List[EmbeddingIssue] = []
