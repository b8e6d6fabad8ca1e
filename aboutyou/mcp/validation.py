"""Argument validation and response shapes for the aboutyou MCP server."""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from aboutyou.storage.queries import DIRECTIONS
from aboutyou.storage.schema import VALID_LABELS, is_valid_label

MAX_MEMORY_LENGTH = 10_000
MAX_SEARCH_LIMIT = 100


class ErrorCode(Enum):
    """Structured error codes for MCP responses."""

    VALIDATION_ERROR = "validation_error"  # 400: Bad input
    NOT_FOUND = "not_found"  # 404: Entity doesn't exist
    QUERY_ERROR = "query_error"  # 422: Cypher rejected by Neo4j
    STORE_UNAVAILABLE = "store_unavailable"  # 503: Neo4j unreachable
    INDEX_UNAVAILABLE = "index_unavailable"  # 503: No semantic index configured
    SYSTEM_ERROR = "system_error"  # 500: Anything else


def error_response(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    hint: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a structured error response.

    Args:
        code: Error code enum value
        message: Human-readable error message
        details: Optional additional details
        hint: Optional hint for resolving the error

    Returns:
        Structured error response dictionary
    """
    response: Dict[str, Any] = {
        "success": False,
        "error_code": code.value,
        "error": message,
    }
    if details:
        response["details"] = details
    if hint:
        response["hint"] = hint
    return response


def success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Build a structured success response."""
    return {"success": True, **data}


def validate_entity_type(entity_type: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Check an optional label filter against the closed schema.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if entity_type is None or is_valid_label(entity_type):
        return True, None
    return False, f"Unknown entity type: '{entity_type}'. Valid: {sorted(VALID_LABELS)}"


def validate_direction(direction: str) -> Tuple[bool, Optional[str]]:
    if direction in DIRECTIONS:
        return True, None
    return False, f"Invalid direction: '{direction}'. Valid: {list(DIRECTIONS)}"


def validate_memory_content(content: Any) -> Tuple[bool, Optional[str]]:
    """A memory must be non-blank text of reasonable length."""
    if not isinstance(content, str) or not content.strip():
        return False, "Memory content must be a non-empty string"
    if len(content) > MAX_MEMORY_LENGTH:
        return False, f"Memory content too long ({len(content)} > {MAX_MEMORY_LENGTH} characters)"
    return True, None


def validate_search(query: Any, limit: Any) -> Tuple[bool, Optional[str]]:
    """A search needs non-blank text and a limit between 1 and MAX_SEARCH_LIMIT."""
    if not isinstance(query, str) or not query.strip():
        return False, "Search query must be a non-empty string"
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_SEARCH_LIMIT:
        return False, f"limit must be an integer between 1 and {MAX_SEARCH_LIMIT}"
    return True, None
