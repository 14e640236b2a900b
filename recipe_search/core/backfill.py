"""
Embedding backfill job.

Clears stale vectors, embeds every eligible recipe in sequential batches of
concurrent requests, persists the successes in one unordered bulk write and
verifies the result against the store.
"""

import asyncio
from enum import Enum
from typing import List, Optional, Sequence
import uuid

from .errors import MalformedResponse, RecipeSearchError, UpstreamUnavailable
from ..util.logging import logger
from ..vector.embeddings import EmbeddingClient
from ..vector.index import DocumentStore
from ..vector.types import BackfillStats, BatchOutcome, Recipe


class BackfillState(str, Enum):
    IDLE = "idle"
    CLEARING_STALE = "clearing_stale"
    FETCHING_ELIGIBLE = "fetching_eligible"
    BATCHING = "batching"
    AWAITING_EMBEDDINGS = "awaiting_embeddings"
    PERSISTING = "persisting"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


def partition(items: Sequence, size: int) -> List[Sequence]:
    """Split items into consecutive chunks of at most `size`."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


class BackfillJob:
    """
    Rebuilds the vector field for every eligible recipe.

    The job is not incremental: existing vectors are always removed first.
    Per-recipe embedding failures are counted and logged; only store
    failures abort the run (state FAILED, exception propagated).
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingClient,
        batch_size: int = 50,
        dimensions: Optional[int] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self.store = store
        self.embedder = embedder
        self.batch_size = batch_size
        self.dimensions = dimensions or embedder.get_dimension()
        self.job_id = str(uuid.uuid4())
        self.state = BackfillState.IDLE
        self.stats = BackfillStats()

    def _transition(self, state: BackfillState, **details) -> None:
        self.state = state
        logger.log_backfill_state(self.job_id, state.value, details or None)

    async def run(self) -> BackfillStats:
        """Run the backfill to completion and return its stats."""
        try:
            return await self._run()
        except Exception as e:
            self._transition(BackfillState.FAILED, error=str(e))
            raise

    async def _run(self) -> BackfillStats:
        stats = self.stats = BackfillStats()

        self._transition(BackfillState.CLEARING_STALE)
        stats.cleared = await self.store.clear_vectors()

        self._transition(BackfillState.FETCHING_ELIGIBLE, cleared=stats.cleared)
        recipes = await self.store.find_eligible()
        stats.total = len(recipes)
        logger.info(f"Found {stats.total} recipes to process")

        if not recipes:
            self._transition(BackfillState.DONE, **stats.to_dict())
            return stats

        self._transition(BackfillState.BATCHING, total=stats.total, batch_size=self.batch_size)
        batches = partition(recipes, self.batch_size)
        stats.batches = len(batches)

        successes = []
        for number, batch in enumerate(batches, start=1):
            self._transition(BackfillState.AWAITING_EMBEDDINGS, batch=number, size=len(batch))
            for outcome in await self._embed_batch(batch):
                if outcome.ok:
                    successes.append((outcome.doc_id, outcome.vector))
                    stats.processed += 1
                else:
                    stats.errored += 1
            logger.log_backfill_progress(self.job_id, number, len(batches), stats.processed, stats.errored)

        self._transition(BackfillState.PERSISTING, updates=len(successes))
        stats.persisted = len(successes)
        stats.modified = await self.store.bulk_set_vectors(successes)

        self._transition(BackfillState.REPORTING, modified=stats.modified)
        stats.final_count = await self.store.count_with_vectors()
        if stats.final_count != stats.persisted:
            logger.warning(
                f"Backfill {self.job_id}: {stats.persisted} vectors submitted but {stats.final_count} documents carry one"
            )

        self._transition(BackfillState.DONE, **stats.to_dict())
        return stats

    async def _embed_batch(self, batch: Sequence[Recipe]) -> List[BatchOutcome]:
        """Embed one batch concurrently. Returns only once every request has resolved."""
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(self._embed_one(recipe)) for recipe in batch]
        return [task.result() for task in tasks]

    async def _embed_one(self, recipe: Recipe) -> BatchOutcome:
        try:
            vector = await self.embedder.embed(recipe.embedding_text())
            if len(vector) != self.dimensions:
                raise MalformedResponse(
                    f"Invalid embedding format: expected {self.dimensions} dimensions, got {len(vector)}"
                )
        except RecipeSearchError as e:
            reason = f"{e.error}: {e.message}"
            logger.log_embedding_failure(recipe.id, reason)
            return BatchOutcome.failed(recipe.id, reason)
        except Exception as e:
            # Unexpected provider errors stay scoped to this recipe
            reason = f"{UpstreamUnavailable.error}: {e}"
            logger.log_embedding_failure(recipe.id, reason)
            return BatchOutcome.failed(recipe.id, reason)

        return BatchOutcome.succeeded(recipe.id, vector)
