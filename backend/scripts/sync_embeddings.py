import argparse
import asyncio
import json

from app.core.config import settings
from app.dependencies import build_default_container
from app.schemas.embedding import SyncOptions


async def run_sync(*, options: SyncOptions, incremental: bool, product_ids: list[str], status_only: bool) -> None:
    container = build_default_container()
    try:
        sync = container.embedding_sync
        if sync is None:
            raise SystemExit("OPENAI_API_KEY is not configured; cannot generate embeddings.")

        if status_only:
            status = await sync.get_status()
            report = await sync.validate_embeddings()
            print(json.dumps({"status": status.model_dump(), "validation": report.model_dump()}, indent=2))
            return

        if product_ids:
            result = await sync.synchronize_products(product_ids, options)
        elif incremental:
            result = await sync.synchronize_incremental(options)
        else:
            result = await sync.synchronize(options)

        print(
            f"sync completed: total={result.total_products} successful={result.successful} "
            f"failed={result.failed} skipped={result.skipped} batches={result.batches} "
            f"duration_ms={result.duration_ms:.0f}"
        )
        for error in result.errors:
            print(f"  failed {error.product_id} ({error.product_name}): {error.error}")
    finally:
        await container.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Synchronize product embeddings with the vector index.")
    parser.add_argument("--batch-size", type=int, default=settings.EMBEDDING_SYNC_BATCH_SIZE, help="Products per batch.")
    parser.add_argument("--delay-ms", type=int, default=settings.EMBEDDING_SYNC_BATCH_DELAY_MS, help="Pause between batches.")
    parser.add_argument("--max-retries", type=int, default=settings.EMBEDDING_SYNC_MAX_RETRIES, help="Attempts per product.")
    parser.add_argument("--force", action="store_true", help="Regenerate embeddings that already exist.")
    parser.add_argument("--incremental", action="store_true", help="Check each product individually.")
    parser.add_argument("--status", action="store_true", help="Print index status and validation, then exit.")
    parser.add_argument("--product-id", action="append", default=[], dest="product_ids", help="Sync only this product (repeatable).")
    args = parser.parse_args()

    options = SyncOptions(
        batch_size=max(1, int(args.batch_size)),
        delay_between_batches_ms=max(0, int(args.delay_ms)),
        max_retries=max(1, int(args.max_retries)),
        skip_existing=not args.force,
        force_regenerate=bool(args.force),
    )
    asyncio.run(
        run_sync(
            options=options,
            incremental=bool(args.incremental),
            product_ids=list(args.product_ids),
            status_only=bool(args.status),
        )
    )


if __name__ == "__main__":
    main()
