"""aboutyou MCP Server - Model Context Protocol access to the personal knowledge graph.

Tools (7):
- search_memories: Semantic search over indexed memories (needs a vector index)
- query_graph: Run a Cypher query (operator use)
- get_entity: Facts about one entity plus its direct connections
- get_relationships: Edges from/to an entity, optionally filtered
- get_profile: The self Person and everything connected to it
- add_memory: Record a fact about the user
- graph_stats: Node counts per label and relationship total

Resources (3): aboutyou://profile, aboutyou://entities, aboutyou://stats

If Neo4j cannot be reached at startup the server still runs; graph tools
answer with ``store_unavailable`` instead of failing the process.
Without a vector index, ``search_memories`` answers ``index_unavailable``.
"""

import json
import logging
from functools import wraps
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool
from neo4j.exceptions import Neo4jError

from aboutyou.core.config import AppConfig, load_config
from aboutyou.core.logging_config import setup_logging
from aboutyou.mcp.validation import (
    ErrorCode,
    error_response,
    success_response,
    validate_direction,
    validate_entity_type,
    validate_memory_content,
    validate_search,
)
from aboutyou.storage.graph import GraphStore, GraphStoreError
from aboutyou.storage.queries import GraphQueryService
from aboutyou.storage.vector import VectorIndex, VectorRecord

logger = logging.getLogger(__name__)

# Global instances (initialized when server starts)
_store: Optional[GraphStore] = None
_vector_index: Optional[VectorIndex] = None

_NOT_CONNECTED_MSG = "Neo4j is not connected"
_NOT_CONNECTED_HINT = "Start Neo4j and check neo4j.uri and credentials, then restart the server"
_NO_INDEX_HINT = "Start the server with a semantic index to enable memory search"

MANUAL_SOURCE = "manual"


def init_server(store: Optional[GraphStore], vector_index: Optional[VectorIndex] = None) -> None:
    """Install the store (and optional semantic index) the tools operate on."""
    global _store, _vector_index
    _store = store
    _vector_index = vector_index


def _queries() -> Optional[GraphQueryService]:
    if _store is None or not _store.connected:
        return None
    return GraphQueryService(_store)


def _unavailable(message: str = _NOT_CONNECTED_MSG) -> Dict[str, Any]:
    return error_response(ErrorCode.STORE_UNAVAILABLE, message, hint=_NOT_CONNECTED_HINT)


def store_errors(func):
    """Decorator answering store_unavailable when Neo4j drops mid-call."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except GraphStoreError as e:
            logger.warning(f"{func.__name__}: {e}")
            return _unavailable(str(e))

    return wrapper


# ============================================================================
# Tool handlers
# ============================================================================


async def handle_search_memories(query: str, limit: int = 10) -> Dict[str, Any]:
    """Ranked matches from the semantic index. Does not touch Neo4j."""
    valid, error = validate_search(query, limit)
    if not valid:
        return error_response(ErrorCode.VALIDATION_ERROR, error)

    if _vector_index is None:
        return error_response(ErrorCode.INDEX_UNAVAILABLE, "No semantic index configured", hint=_NO_INDEX_HINT)

    results = await _vector_index.search(query.strip(), limit)
    return success_response({"query": query.strip(), "results": results, "count": len(results)})


@store_errors
async def handle_query_graph(cypher: str) -> Dict[str, Any]:
    """Run raw Cypher. No sanitization; the caller is trusted."""
    if not isinstance(cypher, str) or not cypher.strip():
        return error_response(ErrorCode.VALIDATION_ERROR, "cypher must be a non-empty string")

    queries = _queries()
    if queries is None:
        return _unavailable()

    try:
        rows = await queries.query_graph(cypher)
    except Neo4jError as e:
        return error_response(
            ErrorCode.QUERY_ERROR,
            e.message or str(e),
            details={"code": e.code},
        )
    return success_response({"rows": rows, "count": len(rows)})


@store_errors
async def handle_get_entity(name: str, entity_type: Optional[str] = None) -> Dict[str, Any]:
    """Entity properties plus connections, or not_found."""
    valid, error = validate_entity_type(entity_type)
    if not valid:
        return error_response(ErrorCode.VALIDATION_ERROR, error)

    queries = _queries()
    if queries is None:
        return _unavailable()

    entity = await queries.get_entity(name, entity_type)
    if entity is None:
        return error_response(ErrorCode.NOT_FOUND, f'No entity found with name "{name}"')
    return success_response({"entity": entity})


@store_errors
async def handle_get_relationships(
    entity: str,
    rel_type: Optional[str] = None,
    direction: str = "both",
) -> Dict[str, Any]:
    valid, error = validate_direction(direction)
    if not valid:
        return error_response(ErrorCode.VALIDATION_ERROR, error)

    queries = _queries()
    if queries is None:
        return _unavailable()

    relationships = await queries.get_relationships(entity, rel_type, direction)
    return success_response({"relationships": relationships, "count": len(relationships)})


@store_errors
async def handle_get_profile() -> Dict[str, Any]:
    queries = _queries()
    if queries is None:
        return _unavailable()

    return success_response({"profile": await queries.get_profile()})


@store_errors
async def handle_add_memory(content: str, entities: Optional[List[str]] = None) -> Dict[str, Any]:
    """Store a memory in the graph and, when configured, the semantic index."""
    valid, error = validate_memory_content(content)
    if not valid:
        return error_response(ErrorCode.VALIDATION_ERROR, error)

    if _store is None or not _store.connected:
        return _unavailable()

    content = content.strip()
    await _store.add_memory(content, MANUAL_SOURCE)

    indexed = False
    if _vector_index is not None:
        await _vector_index.add_batch(
            [VectorRecord(text=content, source_file=MANUAL_SOURCE, entities=list(entities or []), summary=content)]
        )
        indexed = True

    return success_response({"content": content, "source": MANUAL_SOURCE, "indexed": indexed})


@store_errors
async def handle_graph_stats() -> Dict[str, Any]:
    queries = _queries()
    if queries is None:
        return _unavailable()

    return success_response({"stats": await queries.get_stats()})


async def read_resource_text(uri: str) -> str:
    """JSON body for one of the aboutyou:// resources."""
    if uri == "aboutyou://profile":
        result = await handle_get_profile()
        body = result.get("profile", result)
    elif uri == "aboutyou://entities":
        result = await handle_graph_stats()
        body = result["stats"]["labels"] if result["success"] else result
    elif uri == "aboutyou://stats":
        body = await handle_graph_stats()
    else:
        raise ValueError(f"Unknown resource: {uri}")
    return json.dumps(body, indent=2, default=str)


# ============================================================================
# MCP Server Setup
# ============================================================================


def create_server() -> Server:
    """Create and configure the MCP server."""
    server = Server("aboutyou")

    @server.list_tools()
    async def list_tools():
        return [
            Tool(
                name="search_memories",
                description="Semantic search over the user's indexed files and extracted memories.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "The search query"},
                        "limit": {
                            "type": "integer",
                            "description": "Max results to return (default 10)",
                        },
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="query_graph",
                description="Run a Cypher query against the knowledge graph. Use for structured questions about entities and relationships.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "cypher": {"type": "string", "description": "Cypher query to execute"},
                    },
                    "required": ["cypher"],
                },
            ),
            Tool(
                name="get_entity",
                description="Get everything known about one entity (person, organization, skill, ...) and its direct connections.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Exact entity name"},
                        "type": {
                            "type": "string",
                            "description": "Optional entity type filter (Person, Organization, Skill, ...)",
                        },
                    },
                    "required": ["name"],
                },
            ),
            Tool(
                name="get_relationships",
                description="Find relationships from or to an entity.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "entity": {"type": "string", "description": "Entity name"},
                        "rel_type": {
                            "type": "string",
                            "description": "Optional relationship type (WORKS_AT, SKILLED_IN, ...)",
                        },
                        "direction": {
                            "type": "string",
                            "enum": ["in", "out", "both"],
                            "description": "Direction relative to the entity (default both)",
                        },
                    },
                    "required": ["entity"],
                },
            ),
            Tool(
                name="get_profile",
                description="High-level profile of the user: the self person and its connections grouped by relationship type.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="add_memory",
                description="Record a fact or memory about the user.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "content": {"type": "string", "description": "The fact or memory to store"},
                        "entities": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Entity names this memory relates to",
                        },
                    },
                    "required": ["content"],
                },
            ),
            Tool(
                name="graph_stats",
                description="Count nodes per entity type and total relationships.",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict):
        try:
            result: Any = None
            if name == "search_memories":
                result = await handle_search_memories(arguments["query"], arguments.get("limit", 10))
            elif name == "query_graph":
                result = await handle_query_graph(arguments["cypher"])
            elif name == "get_entity":
                result = await handle_get_entity(arguments["name"], arguments.get("type"))
            elif name == "get_relationships":
                result = await handle_get_relationships(
                    arguments["entity"],
                    rel_type=arguments.get("rel_type"),
                    direction=arguments.get("direction", "both"),
                )
            elif name == "get_profile":
                result = await handle_get_profile()
            elif name == "add_memory":
                result = await handle_add_memory(arguments["content"], arguments.get("entities"))
            elif name == "graph_stats":
                result = await handle_graph_stats()
            else:
                result = error_response(ErrorCode.VALIDATION_ERROR, f"Unknown tool: {name}")

        except KeyError as e:
            result = error_response(ErrorCode.VALIDATION_ERROR, f"Missing required argument: {e.args[0]}")
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            result = error_response(ErrorCode.SYSTEM_ERROR, str(e), details={"type": type(e).__name__})

        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    @server.list_resources()
    async def list_resources():
        return [
            Resource(
                uri="aboutyou://profile",
                name="profile",
                description="User profile summary from the knowledge graph",
                mimeType="application/json",
            ),
            Resource(
                uri="aboutyou://entities",
                name="entities",
                description="Entity counts by type",
                mimeType="application/json",
            ),
            Resource(
                uri="aboutyou://stats",
                name="stats",
                description="Knowledge graph statistics",
                mimeType="application/json",
            ),
        ]

    @server.read_resource()
    async def read_resource(uri) -> str:
        return await read_resource_text(str(uri))

    return server


async def run_server(config: AppConfig, vector_index: Optional[VectorIndex] = None) -> None:
    """Connect to Neo4j (best effort) and serve over stdio.

    Args:
        config: Application configuration
        vector_index: Optional semantic index backing search_memories and add_memory
    """
    store = GraphStore(config.neo4j)
    try:
        await store.connect()
    except GraphStoreError as e:
        logger.warning(f"Neo4j not available: {e}. Graph tools will return errors.")

    init_server(store, vector_index)
    server = create_server()
    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("MCP server running on stdio")
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await store.close()


def main():
    """CLI entry point for the MCP server."""
    import asyncio

    config = load_config()
    setup_logging(config.log_level)
    asyncio.run(run_server(config))


if __name__ == "__main__":
    main()
