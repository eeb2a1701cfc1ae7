"""
Product embedding synchronization.

Keeps the vector index consistent with the product catalog. Candidates are
processed in fixed-size batches: batches run one after another, the items of
a batch run concurrently and every item settles on its own, so one product
exhausting its retries never aborts its siblings or the run.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple
from uuid import uuid4

from app.core.config import settings
from app.core.exceptions import (
    DimensionMismatchError,
    EmbeddingExistsError,
    TransientCapabilityError,
    ValidationError,
)
from app.core.logging import get_logger
from app.schemas.embedding import (
    EmbeddingIssue,
    EmbeddingValidationReport,
    SyncItemError,
    SyncOptions,
    SyncProcessedItem,
    SyncResult,
    SyncStatus,
)
from app.schemas.product import Product, ProductEmbedding, build_embedding_metadata
from app.services.contracts import GenerativeAIService, ProductRepository, VectorRepository
from app.services.embeddings.retry import BackoffFn, linear_backoff, with_retry
from app.utils.debug_log import debug_log as _debug_log

logger = get_logger(__name__)

_NON_RETRYABLE = (DimensionMismatchError, EmbeddingExistsError, ValidationError)


def build_searchable_text(product: Product) -> str:
    """Text embedded for a product: core fields, features, tags and specs."""
    parts = [
        product.name,
        product.description,
        product.category,
        *product.features,
        *product.tags,
        *[f"{key}: {value}" for key, value in product.specifications.items()],
    ]
    return " ".join(part for part in parts if isinstance(part, str) and part.strip()).strip()


def _is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, _NON_RETRYABLE)


@dataclass
class _ItemOutcome:
    product: Product
    dimensions: int = 0
    attempts: int = 0
    skipped: bool = False


class EmbeddingSyncService:
    def __init__(
        self,
        product_repository: ProductRepository,
        vector_repository: VectorRepository,
        ai_service: GenerativeAIService,
        *,
        expected_dimensions: Optional[int] = None,
        retry_base_delay_ms: Optional[int] = None,
        backoff: Optional[BackoffFn] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.product_repository = product_repository
        self.vector_repository = vector_repository
        self.ai_service = ai_service
        self.expected_dimensions = int(expected_dimensions or vector_repository.dimensions)
        base_delay_ms = (
            settings.EMBEDDING_SYNC_RETRY_BASE_DELAY_MS
            if retry_base_delay_ms is None
            else retry_base_delay_ms
        )
        self._backoff = backoff or linear_backoff(base_delay_ms / 1000.0)
        self._sleep = sleep

    async def ensure_index(self) -> None:
        """
        Initialize the index and repair schema drift.

        When a stored entry has a different dimensionality than expected the
        whole index is dropped and recreated. This is the only place that
        destructive repair happens.
        """
        await self.vector_repository.initialize()
        sampled = await self.vector_repository.sample_dimensions()
        if sampled is not None and sampled != self.expected_dimensions:
            logger.warning(
                f"Vector index holds {sampled}-dimensional entries, expected "
                f"{self.expected_dimensions}; recreating index"
            )
            await self.vector_repository.reset()
            await self.vector_repository.initialize()

    async def synchronize(self, options: Optional[SyncOptions] = None) -> SyncResult:
        """Create embeddings for catalog products so the index matches the catalog."""
        started = time.perf_counter()
        opts = options or SyncOptions()

        if opts.force_regenerate:
            logger.warning("Force mode: all product embeddings will be regenerated")
        elif opts.skip_existing:
            logger.info("Protection mode: existing embeddings will be preserved")

        try:
            await self.ensure_index()
            products = await self.product_repository.list_all()
        except Exception as e:
            logger.error(f"Embedding synchronization failed before processing: {e}")
            raise TransientCapabilityError(f"Embedding synchronization failed: {e}") from e

        if not products:
            return SyncResult(duration_ms=self._elapsed_ms(started))

        to_process, existing = await self._select_candidates(products, opts)
        result = await self._process_in_batches(
            to_process, opts, allow_overwrite=opts.force_regenerate
        )
        result.total_products = len(products)
        result.skipped += existing
        result.duration_ms = self._elapsed_ms(started)

        self._log_results(result)
        return result

    async def synchronize_incremental(self, options: Optional[SyncOptions] = None) -> SyncResult:
        """Check every product individually instead of pre-filtering by index listing."""
        opts = (options or SyncOptions()).model_copy(update={"skip_existing": False})
        logger.info("Starting incremental embedding synchronization")
        return await self.synchronize(opts)

    async def synchronize_products(
        self,
        product_ids: Sequence[str],
        options: Optional[SyncOptions] = None,
    ) -> SyncResult:
        """Run the same pipeline for an explicit subset of product ids."""
        started = time.perf_counter()
        opts = options or SyncOptions()
        logger.info(f"Synchronizing embeddings for {len(product_ids)} specific products")

        try:
            await self.ensure_index()
            products: List[Product] = []
            for product_id in product_ids:
                product = await self.product_repository.get(product_id)
                if product is None:
                    logger.warning(f"Product not found, skipping: {product_id}")
                    continue
                products.append(product)
        except Exception as e:
            logger.error(f"Embedding synchronization failed before processing: {e}")
            raise TransientCapabilityError(f"Embedding synchronization failed: {e}") from e

        if not products:
            return SyncResult(
                total_products=len(product_ids),
                duration_ms=self._elapsed_ms(started),
            )

        result = await self._process_in_batches(
            products, opts, allow_overwrite=opts.force_regenerate
        )
        result.total_products = len(product_ids)
        result.duration_ms = self._elapsed_ms(started)

        self._log_results(result)
        return result

    async def remove_product(self, product_id: str) -> None:
        """Drop the index entry of a deleted product."""
        await self.vector_repository.delete(product_id)
        logger.info(f"Removed embedding for product {product_id}")

    async def get_status(self) -> SyncStatus:
        products = await self.product_repository.list_all()
        existing = set(await self.vector_repository.existing_product_ids())
        with_embeddings = sum(1 for p in products if p.id in existing)
        return SyncStatus(
            total_products=len(products),
            with_embeddings=with_embeddings,
            without_embeddings=len(products) - with_embeddings,
        )

    async def validate_embeddings(self) -> EmbeddingValidationReport:
        products = await self.product_repository.list_all()
        existing_ids = await self.vector_repository.existing_product_ids()
        report = EmbeddingValidationReport()

        for product_id in existing_ids:
            try:
                info = await self.vector_repository.embedding_info(product_id)
            except Exception as e:
                report.invalid += 1
                report.issues.append(
                    EmbeddingIssue(product_id=product_id, issue=f"Validation error: {e}")
                )
                continue

            if not info.exists or not info.dimensions:
                report.invalid += 1
                report.issues.append(
                    EmbeddingIssue(
                        product_id=product_id,
                        issue="Embedding exists but cannot retrieve info",
                    )
                )
            elif info.dimensions != self.expected_dimensions:
                report.invalid += 1
                report.issues.append(
                    EmbeddingIssue(
                        product_id=product_id,
                        issue=(
                            f"Invalid dimensions: {info.dimensions}, "
                            f"expected: {self.expected_dimensions}"
                        ),
                    )
                )
            else:
                report.valid += 1

        existing = set(existing_ids)
        report.missing = sum(1 for p in products if p.id not in existing)
        return report

    async def _select_candidates(
        self,
        products: List[Product],
        opts: SyncOptions,
    ) -> Tuple[List[Product], int]:
        if opts.force_regenerate or not opts.skip_existing:
            return products, 0

        try:
            existing = set(await self.vector_repository.existing_product_ids())
        except Exception as e:
            logger.error(f"Failed to list existing embeddings, processing all products: {e}")
            return products, 0

        to_process = [p for p in products if p.id not in existing]
        skipped = len(products) - len(to_process)
        logger.info(
            f"Embedding status: {len(products)} products, {skipped} already embedded, "
            f"{len(to_process)} to process"
        )
        return to_process, skipped

    async def _process_in_batches(
        self,
        products: List[Product],
        opts: SyncOptions,
        *,
        allow_overwrite: bool,
    ) -> SyncResult:
        result = SyncResult()
        batch_size = max(1, opts.batch_size)
        total_batches = (len(products) + batch_size - 1) // batch_size

        for batch_number, start in enumerate(range(0, len(products), batch_size), start=1):
            batch = products[start : start + batch_size]
            logger.info(
                f"Processing batch {batch_number}/{total_batches} ({len(batch)} products)"
            )

            outcomes = await asyncio.gather(
                *(
                    self._embed_product(
                        product,
                        max_retries=opts.max_retries,
                        allow_overwrite=allow_overwrite,
                    )
                    for product in batch
                ),
                return_exceptions=True,
            )
            result.batches += 1

            for product, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    result.failed += 1
                    message = str(outcome) or outcome.__class__.__name__
                    result.errors.append(
                        SyncItemError(
                            product_id=product.id,
                            product_name=product.name,
                            error=message,
                        )
                    )
                    logger.error(f"Failed to embed {product.name} ({product.id}): {message}")
                elif outcome.skipped:
                    result.skipped += 1
                    logger.info(f"Skipped {product.name} (embedding already exists)")
                else:
                    result.successful += 1
                    result.processed.append(
                        SyncProcessedItem(
                            product_id=product.id,
                            product_name=product.name,
                            embedding_dimensions=outcome.dimensions,
                            attempts=outcome.attempts,
                        )
                    )

            if batch_number < total_batches and opts.delay_between_batches_ms > 0:
                await self._sleep(opts.delay_between_batches_ms / 1000.0)

        return result

    async def _embed_product(
        self,
        product: Product,
        *,
        max_retries: int,
        allow_overwrite: bool,
    ) -> _ItemOutcome:
        outcome = _ItemOutcome(product=product)

        async def attempt() -> int:
            outcome.attempts += 1
            if not allow_overwrite and await self.vector_repository.has_entry(product.id):
                raise EmbeddingExistsError(product.id)

            vector = await self.ai_service.generate_embedding(build_searchable_text(product))
            if not isinstance(vector, (list, tuple)) or len(vector) == 0:
                raise TransientCapabilityError("Invalid embedding generated")
            if len(vector) != self.expected_dimensions:
                raise DimensionMismatchError(self.expected_dimensions, len(vector), product.id)

            embedding = ProductEmbedding(
                id=str(uuid4()),
                product_id=product.id,
                vector=list(vector),
                metadata=build_embedding_metadata(product),
            )
            await self.vector_repository.upsert(embedding, allow_overwrite=allow_overwrite)
            return len(vector)

        def on_retry(attempt_number: int, exc: BaseException, delay: float) -> None:
            logger.warning(
                f"Retry {attempt_number}/{max_retries} for {product.name} in {delay:.2f}s: {exc}"
            )

        try:
            outcome.dimensions = await with_retry(
                attempt,
                max_attempts=max_retries,
                backoff=self._backoff,
                retry_if=_is_retryable,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except EmbeddingExistsError:
            outcome.skipped = True
        return outcome

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000.0

    @staticmethod
    def _log_results(result: SyncResult) -> None:
        logger.info(
            f"Embedding synchronization finished: total={result.total_products} "
            f"successful={result.successful} failed={result.failed} skipped={result.skipped} "
            f"batches={result.batches} duration={result.duration_ms / 1000.0:.2f}s "
            f"success_rate={result.success_rate:.1f}%"
        )
        _debug_log(
            "embedding_sync",
            total_products=result.total_products,
            successful=result.successful,
            failed=result.failed,
            skipped=result.skipped,
            batches=result.batches,
            duration_ms=round(result.duration_ms, 1),
            failed_product_ids=[error.product_id for error in result.errors],
        )
        for error in result.errors[:5]:
            logger.error(f"  {error.product_name} ({error.product_id}): {error.error}")
        if len(result.errors) > 5:
            logger.error(f"  ... and {len(result.errors) - 5} more errors")
