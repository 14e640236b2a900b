"""
Request validation independent of the HTTP layer.
Failures raise InvalidRequest / InvalidInput from the shared error taxonomy.
"""

from typing import Any, Dict, List, Mapping, Tuple

from .errors import InvalidInput, InvalidRequest

MIN_SEARCH_LIMIT = 1
MAX_SEARCH_LIMIT = 50


def validate_search_request(query: Any, limit: Any, max_limit: int = MAX_SEARCH_LIMIT) -> Tuple[str, int]:
    """Validate a search query and limit. Returns the trimmed query and the limit."""
    if not isinstance(query, str) or not query.strip():
        raise InvalidRequest("Query must be a non-empty string")

    # bool is an int subclass but never a meaningful limit
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidRequest(f"Limit must be an integer between {MIN_SEARCH_LIMIT} and {max_limit}")

    if limit < MIN_SEARCH_LIMIT or limit > max_limit:
        raise InvalidRequest(f"Limit must be between {MIN_SEARCH_LIMIT} and {max_limit}")

    return query.strip(), limit


def validate_conversation(conversation: Any) -> List[Dict[str, Any]]:
    """Validate a chat conversation: a non-empty list of role/content messages."""
    if not isinstance(conversation, list) or not conversation:
        raise InvalidInput("conversationArr must be a non-empty array of messages")

    for position, message in enumerate(conversation):
        if not isinstance(message, Mapping):
            raise InvalidInput(f"Message {position} must be an object with role and content")

        role = message.get("role")
        if not isinstance(role, str) or not role.strip():
            raise InvalidInput(f"Message {position} must have a non-empty role")

        if not isinstance(message.get("content"), str):
            raise InvalidInput(f"Message {position} must have string content")

    return [dict(message) for message in conversation]
