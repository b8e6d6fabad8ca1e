"""Tests for aboutyou MCP handler functions.

Each handler is called directly against a GraphStore backed by the
in-memory FakeGraph from conftest.
"""

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from neo4j.exceptions import ClientError, ServiceUnavailable

from aboutyou.core.config import Neo4jConfig
from aboutyou.extraction.models import ExtractedEntity, ExtractedRelationship
from aboutyou.mcp.server import (
    MANUAL_SOURCE,
    create_server,
    handle_add_memory,
    handle_get_entity,
    handle_get_profile,
    handle_get_relationships,
    handle_graph_stats,
    handle_query_graph,
    handle_search_memories,
    init_server,
    read_resource_text,
)
from aboutyou.storage.graph import GraphStore


@pytest.fixture(autouse=True)
def reset_server():
    yield
    init_server(None)


@pytest_asyncio.fixture
async def server_store(graph_store):
    await graph_store.upsert(
        [
            ExtractedEntity(type="Person", name="Ada", properties={"relation": "self"}),
            ExtractedEntity(type="Skill", name="Go", properties={"level": "expert"}),
        ],
        [
            ExtractedRelationship(
                from_name="Ada", from_type="Person", rel_type="SKILLED_IN", to_name="Go", to_type="Skill"
            )
        ],
    )
    init_server(graph_store)
    return graph_store


# ============================================================================
# Store availability
# ============================================================================


class TestUnavailable:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda: handle_query_graph("RETURN 1"),
            lambda: handle_get_entity("Ada"),
            lambda: handle_get_relationships("Ada"),
            lambda: handle_get_profile(),
            lambda: handle_add_memory("likes tea"),
            lambda: handle_graph_stats(),
        ],
    )
    async def test_no_store(self, call):
        init_server(None)

        result = await call()

        assert result["success"] is False
        assert result["error_code"] == "store_unavailable"
        assert "hint" in result

    @pytest.mark.asyncio
    async def test_store_never_connected(self):
        init_server(GraphStore(Neo4jConfig()))

        result = await handle_get_profile()

        assert result["error_code"] == "store_unavailable"

    @pytest.mark.asyncio
    async def test_connection_lost_mid_call(self, server_store, fake_graph):
        fake_graph.fail_on["CALL db.labels()"] = ServiceUnavailable("gone")

        result = await handle_graph_stats()

        assert result["error_code"] == "store_unavailable"


# ============================================================================
# Read tools
# ============================================================================


class TestQueryGraph:
    @pytest.mark.asyncio
    async def test_rows(self, server_store, fake_graph):
        fake_graph.canned = [{"name": "Ada"}]

        result = await handle_query_graph("MATCH (n:Person) RETURN n.name AS name")

        assert result == {"success": True, "rows": [{"name": "Ada"}], "count": 1}

    @pytest.mark.asyncio
    async def test_rejected_query(self, server_store, fake_graph):
        fake_graph.fail_on["RETRUN"] = ClientError("Invalid input 'RETRUN'")

        result = await handle_query_graph("RETRUN 1")

        assert result["success"] is False
        assert result["error_code"] == "query_error"

    @pytest.mark.asyncio
    async def test_blank_query(self, server_store):
        result = await handle_query_graph("  ")
        assert result["error_code"] == "validation_error"


class TestGetEntity:
    @pytest.mark.asyncio
    async def test_found(self, server_store):
        result = await handle_get_entity("Go", "Skill")

        assert result["success"] is True
        assert result["entity"]["properties"]["level"] == "expert"
        assert result["entity"]["connections"][0]["relationship"] == "SKILLED_IN"

    @pytest.mark.asyncio
    async def test_not_found(self, server_store):
        result = await handle_get_entity("Nobody")

        assert result == {"success": False, "error_code": "not_found", "error": 'No entity found with name "Nobody"'}

    @pytest.mark.asyncio
    async def test_unknown_type(self, server_store, fake_graph):
        before = len(fake_graph.queries)

        result = await handle_get_entity("Go", "Vehicle")

        assert result["error_code"] == "validation_error"
        assert len(fake_graph.queries) == before


class TestGetRelationships:
    @pytest.mark.asyncio
    async def test_outgoing(self, server_store):
        result = await handle_get_relationships("Ada", direction="out")

        assert result["count"] == 1
        assert result["relationships"][0]["to_node"]["name"] == "Go"

    @pytest.mark.asyncio
    async def test_invalid_direction(self, server_store):
        result = await handle_get_relationships("Ada", direction="sideways")
        assert result["error_code"] == "validation_error"


class TestProfileAndStats:
    @pytest.mark.asyncio
    async def test_profile(self, server_store):
        result = await handle_get_profile()

        profile = result["profile"]
        assert profile["is_self"] is True
        assert profile["person"]["name"] == "Ada"
        assert profile["connections"]["SKILLED_IN"][0]["name"] == "Go"

    @pytest.mark.asyncio
    async def test_stats(self, server_store):
        result = await handle_graph_stats()

        assert result["stats"] == {"labels": {"Person": 1, "Skill": 1}, "relationships": 1}


# ============================================================================
# add_memory
# ============================================================================


class TestAddMemory:
    @pytest.mark.asyncio
    async def test_stored_as_manual(self, server_store, fake_graph):
        result = await handle_add_memory("  Prefers tea over coffee  ")

        assert result == {
            "success": True,
            "content": "Prefers tea over coffee",
            "source": MANUAL_SOURCE,
            "indexed": False,
        }
        assert fake_graph.memories[0]["content"] == "Prefers tea over coffee"
        assert fake_graph.memories[0]["source_file"] == "manual"

    @pytest.mark.asyncio
    async def test_indexed_when_index_present(self, server_store):
        index = AsyncMock()
        init_server(server_store, vector_index=index)

        result = await handle_add_memory("Plays chess", entities=["Ada"])

        assert result["indexed"] is True
        [record] = index.add_batch.call_args.args[0]
        assert record.text == "Plays chess"
        assert record.entities == ["Ada"]
        assert record.source_file == MANUAL_SOURCE

    @pytest.mark.asyncio
    async def test_blank_memory_rejected(self, server_store, fake_graph):
        result = await handle_add_memory("   ")

        assert result["error_code"] == "validation_error"
        assert fake_graph.memories == []


class TestSearchMemories:
    @pytest.mark.asyncio
    async def test_results_from_index(self):
        index = AsyncMock()
        index.search.return_value = [{"text": "Plays chess", "source_file": "manual", "score": 0.91}]
        init_server(None, vector_index=index)

        result = await handle_search_memories("  chess  ", limit=5)

        index.search.assert_awaited_once_with("chess", 5)
        assert result == {
            "success": True,
            "query": "chess",
            "results": [{"text": "Plays chess", "source_file": "manual", "score": 0.91}],
            "count": 1,
        }

    @pytest.mark.asyncio
    async def test_no_index(self, server_store):
        result = await handle_search_memories("chess")

        assert result["success"] is False
        assert result["error_code"] == "index_unavailable"
        assert "hint" in result

    @pytest.mark.asyncio
    async def test_blank_query_not_sent(self):
        index = AsyncMock()
        init_server(None, vector_index=index)

        result = await handle_search_memories("   ")

        assert result["error_code"] == "validation_error"
        index.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_limit(self):
        index = AsyncMock()
        init_server(None, vector_index=index)

        result = await handle_search_memories("chess", limit=0)

        assert result["error_code"] == "validation_error"
        index.search.assert_not_awaited()


# ============================================================================
# Resources and server
# ============================================================================


class TestResources:
    @pytest.mark.asyncio
    async def test_profile_resource(self, server_store):
        body = json.loads(await read_resource_text("aboutyou://profile"))
        assert body["person"]["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_entities_resource(self, server_store):
        body = json.loads(await read_resource_text("aboutyou://entities"))
        assert body == {"Person": 1, "Skill": 1}

    @pytest.mark.asyncio
    async def test_stats_resource(self, server_store):
        body = json.loads(await read_resource_text("aboutyou://stats"))
        assert body["stats"]["relationships"] == 1

    @pytest.mark.asyncio
    async def test_resource_without_store(self):
        body = json.loads(await read_resource_text("aboutyou://entities"))
        assert body["error_code"] == "store_unavailable"

    @pytest.mark.asyncio
    async def test_unknown_resource(self):
        with pytest.raises(ValueError, match="Unknown resource"):
            await read_resource_text("aboutyou://nope")


def test_create_server():
    assert create_server().name == "aboutyou"
