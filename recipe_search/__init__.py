"""Recipe semantic search service: embedding backfill, vector search and chat relay."""

__version__ = "1.0.0"
