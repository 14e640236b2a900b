#!/usr/bin/env python3
"""
Embedding backfill utility.
Rebuilds recipe embeddings and provisions the vector search index from the command line.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from recipe_search.core.backfill import BackfillJob
from recipe_search.core.config import (
    BACKFILL_BATCH_SIZE,
    EMBED_DIMENSIONS,
    VECTOR_INDEX_NAME,
    VECTOR_SIMILARITY,
    get_document_store,
    get_embedding_client,
    validate_config,
)
from recipe_search.core.errors import RecipeSearchError


async def run(args) -> int:
    store = get_document_store()
    await store.connect()

    try:
        if args.remove:
            removed = await store.clear_vectors()
            print(f"✓ Removed embeddings from {removed} recipes")
            return 0

        if args.ensure_index or args.recreate_index:
            if args.recreate_index and await store.drop_vector_index(VECTOR_INDEX_NAME):
                print(f"✓ Dropped existing {VECTOR_INDEX_NAME}")
            result = await store.ensure_vector_index(VECTOR_INDEX_NAME, EMBED_DIMENSIONS, VECTOR_SIMILARITY)
            print(f"✓ Search index {result.name}: {result.status.value}")

        if args.index_only:
            return 0

        print("Starting embedding backfill...")
        job = BackfillJob(store, get_embedding_client(), batch_size=args.batch_size, dimensions=EMBED_DIMENSIONS)
        stats = await job.run()

        print(f"Found {stats.total} recipes to process")
        print(f"✓ Embedded {stats.processed} recipes ({stats.errored} errors) in {stats.batches} batches")
        print(f"✓ {stats.final_count} recipes now carry an embedding")
        if stats.final_count != stats.persisted:
            print(f"WARNING: {stats.persisted} embeddings submitted but {stats.final_count} stored")

        print("Backfill complete!")
        return 0 if stats.errored == 0 else 2
    finally:
        await store.close()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Rebuild recipe embeddings and the vector search index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                      # Rebuild every embedding
  %(prog)s --ensure-index       # Provision the index, then rebuild
  %(prog)s --recreate-index --index-only   # Drop and recreate the index only
  %(prog)s --remove             # Strip all embeddings

Environment variables:
- MONGODB_URI, MONGODB_DB, MONGODB_COLLECTION
- OPENAI_API_KEY (when EMBED_PROVIDER=openai)
- BACKFILL_BATCH_SIZE (default 50)
        """
    )

    parser.add_argument(
        "--batch-size", "-b",
        type=int,
        default=BACKFILL_BATCH_SIZE,
        help="Concurrent embedding requests per batch"
    )

    parser.add_argument(
        "--ensure-index",
        action="store_true",
        help="Create the vector search index if it does not exist"
    )

    parser.add_argument(
        "--recreate-index",
        action="store_true",
        help="Drop and recreate the vector search index"
    )

    parser.add_argument(
        "--index-only",
        action="store_true",
        help="Provision the index without running the backfill"
    )

    parser.add_argument(
        "--remove",
        action="store_true",
        help="Remove all embeddings and exit"
    )

    args = parser.parse_args(argv)

    if args.batch_size < 1:
        parser.error("--batch-size must be >= 1")

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    try:
        return asyncio.run(run(args))
    except RecipeSearchError as e:
        print(f"ERROR: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
