"""Tests for aboutyou MCP validation pure functions.

No I/O, no fixtures needed.
"""

import pytest

from aboutyou.mcp.validation import (
    MAX_MEMORY_LENGTH,
    MAX_SEARCH_LIMIT,
    ErrorCode,
    error_response,
    success_response,
    validate_direction,
    validate_entity_type,
    validate_memory_content,
    validate_search,
)


# ============================================================================
# Response Helpers
# ============================================================================


class TestErrorResponse:
    def test_basic_error(self):
        r = error_response(ErrorCode.NOT_FOUND, "Entity not found")
        assert r == {"success": False, "error_code": "not_found", "error": "Entity not found"}

    def test_error_with_details_and_hint(self):
        r = error_response(
            ErrorCode.QUERY_ERROR,
            "Invalid input",
            details={"code": "Neo.ClientError.Statement.SyntaxError"},
            hint="Check the query",
        )
        assert r["details"]["code"] == "Neo.ClientError.Statement.SyntaxError"
        assert r["hint"] == "Check the query"

    def test_empty_details_are_omitted(self):
        assert "details" not in error_response(ErrorCode.SYSTEM_ERROR, "boom", details={})


def test_success_response_flattens_data():
    assert success_response({"count": 2}) == {"success": True, "count": 2}


# ============================================================================
# Validators
# ============================================================================


class TestValidateEntityType:
    def test_none_means_any_type(self):
        assert validate_entity_type(None) == (True, None)

    def test_known_label(self):
        assert validate_entity_type("Organization") == (True, None)

    @pytest.mark.parametrize("value", ["Vehicle", "person", "Person) DETACH DELETE (n"])
    def test_unknown_label(self, value):
        valid, error = validate_entity_type(value)
        assert not valid
        assert "Unknown entity type" in error
        assert "Person" in error


class TestValidateDirection:
    @pytest.mark.parametrize("direction", ["in", "out", "both"])
    def test_valid(self, direction):
        assert validate_direction(direction) == (True, None)

    def test_invalid(self):
        valid, error = validate_direction("up")
        assert not valid
        assert "'up'" in error


class TestValidateMemoryContent:
    def test_valid(self):
        assert validate_memory_content("Prefers tea over coffee") == (True, None)

    @pytest.mark.parametrize("content", ["", "   \n", None, 42])
    def test_blank_or_not_text(self, content):
        valid, error = validate_memory_content(content)
        assert not valid
        assert "non-empty string" in error

    def test_too_long(self):
        valid, error = validate_memory_content("x" * (MAX_MEMORY_LENGTH + 1))
        assert not valid
        assert "too long" in error


class TestValidateSearch:
    def test_valid(self):
        assert validate_search("hobbies", 10) == (True, None)
        assert validate_search("hobbies", MAX_SEARCH_LIMIT) == (True, None)

    @pytest.mark.parametrize("query", ["", "  ", None])
    def test_blank_query(self, query):
        valid, error = validate_search(query, 10)
        assert not valid
        assert "non-empty string" in error

    @pytest.mark.parametrize("limit", [0, -1, MAX_SEARCH_LIMIT + 1, "5", True])
    def test_bad_limit(self, limit):
        valid, error = validate_search("hobbies", limit)
        assert not valid
        assert "limit" in error
