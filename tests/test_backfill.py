"""
Embedding backfill job: best-effort batching, persistence barrier and failure states.
"""

import asyncio

import pytest

from recipe_search.core.backfill import BackfillJob, BackfillState, partition
from recipe_search.core.errors import StoreUnavailable
from recipe_search.vector.embeddings import DeterministicHashEmbedding
from recipe_search.vector.index import InMemoryDocumentStore
from recipe_search.vector.types import Recipe

from .conftest import FailingStore, RecordingStore, ScriptedEmbedder, make_recipes


def test_partition():
    assert partition([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert partition([], 50) == []

    with pytest.raises(ValueError):
        partition([1], 0)


def test_backfill_only_embeds_eligible_recipes(recording_store, scripted_embedder):
    job = BackfillJob(recording_store, scripted_embedder)

    stats = asyncio.run(job.run())

    assert job.state == BackfillState.DONE
    assert stats.total == 2
    assert stats.processed == 2
    assert stats.errored == 0
    assert stats.persisted == 2
    assert stats.final_count == 2
    assert sorted(doc_id for doc_id, _ in recording_store.bulk_calls[0]) == [1, 3]
    assert recording_store.get_document(2).get("plot_embedding") is None


def test_backfill_counts_failures_without_aborting():
    documents = make_recipes(120)
    failing = {f"Dish {i}" for i in (0, 7, 49, 50, 88, 101, 119)}
    store = RecordingStore(documents)
    embedder = ScriptedEmbedder(fail_on=failing)

    stats = asyncio.run(BackfillJob(store, embedder, batch_size=50).run())

    assert stats.total == 120
    assert stats.processed == 113
    assert stats.errored == 7
    assert stats.persisted == 113
    assert stats.batches == 3
    assert len(embedder.calls) == 120
    # One bulk write after every batch has resolved
    assert len(store.bulk_calls) == 1
    assert len(store.bulk_calls[0]) == 113
    persisted_ids = {doc_id for doc_id, _ in store.bulk_calls[0]}
    assert persisted_ids.isdisjoint({0, 7, 49, 50, 88, 101, 119})
    assert stats.final_count == 113


class CrashingEmbedder(ScriptedEmbedder):
    """Raises a non-service exception for one recipe."""

    async def _generate(self, text):
        if text.startswith("Recipe: Dish 3\n"):
            raise RuntimeError("provider crashed")
        return await super()._generate(text)


def test_unexpected_embedder_error_is_counted_per_recipe():
    store = RecordingStore(make_recipes(10))
    job = BackfillJob(store, CrashingEmbedder(), batch_size=5)

    stats = asyncio.run(job.run())

    assert job.state == BackfillState.DONE
    assert stats.processed == 9
    assert stats.errored == 1
    assert 3 not in {doc_id for doc_id, _ in store.bulk_calls[0]}
    assert stats.final_count == 9


def test_embed_one_tags_unexpected_error():
    job = BackfillJob(InMemoryDocumentStore(), CrashingEmbedder())

    outcome = asyncio.run(job._embed_one(Recipe(id=3, name="Dish 3")))

    assert not outcome.ok
    assert outcome.reason == "upstream_unavailable: provider crashed"


def test_backfill_bounds_concurrency_to_batch_size():
    store = InMemoryDocumentStore(make_recipes(120))
    embedder = ScriptedEmbedder()

    asyncio.run(BackfillJob(store, embedder, batch_size=50).run())

    assert embedder.max_in_flight == 50


def test_malformed_vector_is_excluded_from_persistence(recording_store):
    embedder = ScriptedEmbedder(short_on={"Bread"})
    job = BackfillJob(recording_store, embedder)

    stats = asyncio.run(job.run())

    assert stats.processed == 1
    assert stats.errored == 1
    assert [doc_id for doc_id, _ in recording_store.bulk_calls[0]] == [1]
    assert recording_store.get_document(3).get("plot_embedding") is None


def test_embed_one_tags_malformed_response():
    embedder = ScriptedEmbedder(short_on={"Bread"})
    job = BackfillJob(InMemoryDocumentStore(), embedder)

    outcome = asyncio.run(job._embed_one(Recipe(id=3, name="Bread")))

    assert not outcome.ok
    assert outcome.doc_id == 3
    assert outcome.vector is None
    assert outcome.reason.startswith("malformed_response")


def test_job_checks_configured_dimension():
    # Embedder validates its own 10 dimensions; the job expects 1536
    job = BackfillJob(InMemoryDocumentStore(), ScriptedEmbedder(dimension=10), dimensions=1536)

    outcome = asyncio.run(job._embed_one(Recipe(id=1, name="Soup")))

    assert outcome.reason.startswith("malformed_response")


def test_backfill_with_no_eligible_recipes():
    store = InMemoryDocumentStore([{"_id": 1, "name": ""}, {"_id": 2}])
    embedder = ScriptedEmbedder()
    job = BackfillJob(store, embedder)

    stats = asyncio.run(job.run())

    assert job.state == BackfillState.DONE
    assert stats.total == 0
    assert stats.processed == 0
    assert stats.final_count == 0
    assert embedder.calls == []


def test_backfill_clears_stale_vectors_first():
    documents = [
        {"_id": 1, "name": "Soup", "plot_embedding": [9.9] * 1536},
        {"_id": 2, "name": "", "plot_embedding": [9.9] * 1536},
    ]
    store = InMemoryDocumentStore(documents)

    stats = asyncio.run(BackfillJob(store, ScriptedEmbedder()).run())

    assert stats.cleared == 2
    assert stats.final_count == 1
    assert store.get_document(2).get("plot_embedding") is None
    assert store.get_document(1)["plot_embedding"] != [9.9] * 1536


def test_backfill_rerun_is_idempotent(recipe_documents):
    store = InMemoryDocumentStore(recipe_documents)
    embedder = DeterministicHashEmbedding()

    first = asyncio.run(BackfillJob(store, embedder).run())
    second = asyncio.run(BackfillJob(store, embedder).run())

    assert first.final_count == second.final_count == 2
    assert second.cleared == first.final_count


@pytest.mark.parametrize("operation", ["clear_vectors", "find_eligible", "bulk_set_vectors"])
def test_store_failure_is_fatal(operation, recipe_documents):
    store = FailingStore(operation, recipe_documents)
    job = BackfillJob(store, ScriptedEmbedder())

    with pytest.raises(StoreUnavailable):
        asyncio.run(job.run())

    assert job.state == BackfillState.FAILED


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        BackfillJob(InMemoryDocumentStore(), ScriptedEmbedder(), batch_size=0)
