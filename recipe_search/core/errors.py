"""
Error taxonomy shared by the embedding client, document store, jobs and API.
Every error carries a short machine-readable kind and the HTTP status it maps to.
"""

from typing import Optional


class RecipeSearchError(Exception):
    """Base class for all service errors."""

    error = "internal_error"
    status_code = 500

    def __init__(self, message: str = "", *, details: Optional[dict] = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.error, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInput(RecipeSearchError):
    """Caller-supplied data failed validation. Never retried."""

    error = "invalid_input"
    status_code = 400


class InvalidRequest(InvalidInput):
    """A search request failed validation before any upstream call."""

    error = "invalid_request"


class UpstreamUnavailable(RecipeSearchError):
    """The embedding or chat service could not be reached or returned an error."""

    error = "upstream_unavailable"
    status_code = 502


class MalformedResponse(RecipeSearchError):
    """An upstream service returned data of the wrong shape."""

    error = "malformed_response"
    status_code = 502


class EmbeddingError(RecipeSearchError):
    """Query embedding failed during a search."""

    error = "embedding_error"
    status_code = 502

    def __init__(self, message: str = "", *, cause_kind: str = "", details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.cause_kind = cause_kind


class IndexNotFound(RecipeSearchError):
    error = "index_not_found"
    status_code = 404


class IndexCreationError(RecipeSearchError):
    error = "index_creation_error"
    status_code = 500


class StoreUnavailable(RecipeSearchError):
    """The document store could not be reached. Fatal to the calling step."""

    error = "store_unavailable"
    status_code = 503
