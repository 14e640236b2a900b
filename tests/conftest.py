"""
Shared fixtures: recipe documents, in-memory stores and scripted embedders.
"""

import asyncio

import pytest

from recipe_search.core.errors import StoreUnavailable, UpstreamUnavailable
from recipe_search.vector.embeddings import EmbeddingClient
from recipe_search.vector.index import InMemoryDocumentStore


class ScriptedEmbedder(EmbeddingClient):
    """Embedder with canned vectors that records calls and concurrency.

    Recipes named in `fail_on` raise UpstreamUnavailable; recipes named in
    `short_on` come back with a 10-element vector.
    """

    def __init__(self, dimension=1536, fail_on=(), short_on=(), delay=0.001):
        super().__init__(dimension)
        self.fail_on = set(fail_on)
        self.short_on = set(short_on)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _generate(self, text):
        self.calls.append(text)
        name = text.splitlines()[0].removeprefix("Recipe: ")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if name in self.fail_on:
                raise UpstreamUnavailable(f"embedding service unreachable for {name}")
            if name in self.short_on:
                return [0.5] * 10
            return [(len(name) % 7 + 1) / 10] * self.dimension
        finally:
            self.in_flight -= 1


class RecordingStore(InMemoryDocumentStore):
    """In-memory store that records every bulk update it receives."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.bulk_calls = []

    async def bulk_set_vectors(self, updates):
        self.bulk_calls.append(list(updates))
        return await super().bulk_set_vectors(updates)


class FailingStore(InMemoryDocumentStore):
    """In-memory store whose named operation raises StoreUnavailable."""

    def __init__(self, fail_on, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on = fail_on

    async def clear_vectors(self):
        if self.fail_on == "clear_vectors":
            raise StoreUnavailable("connection refused")
        return await super().clear_vectors()

    async def find_eligible(self):
        if self.fail_on == "find_eligible":
            raise StoreUnavailable("connection refused")
        return await super().find_eligible()

    async def bulk_set_vectors(self, updates):
        if self.fail_on == "bulk_set_vectors":
            raise StoreUnavailable("connection refused")
        return await super().bulk_set_vectors(updates)


def make_recipes(count, prefix="Dish"):
    return [
        {"_id": i, "name": f"{prefix} {i}", "ingredients": ["flour", "water"], "steps": ["mix", "bake"]}
        for i in range(count)
    ]


@pytest.fixture
def recipe_documents():
    """Three recipes, one of which has an empty name."""
    return [
        {"_id": 1, "name": "Soup", "ingredients": ["water", "salt", "carrots"], "steps": ["Boil water.", "Add carrots."]},
        {"_id": 2, "name": "", "ingredients": ["nothing"], "steps": ["Wait."]},
        {"_id": 3, "name": "Bread", "ingredients": "flour, water, yeast", "steps": "Knead and bake."},
    ]


@pytest.fixture
def memory_store(recipe_documents):
    return InMemoryDocumentStore(recipe_documents)


@pytest.fixture
def recording_store(recipe_documents):
    return RecordingStore(recipe_documents)


@pytest.fixture
def scripted_embedder():
    return ScriptedEmbedder()
