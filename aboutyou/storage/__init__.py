"""Neo4j storage: schema, upserts and queries."""

from aboutyou.storage.graph import GraphStore, GraphStoreError, UpsertStats
from aboutyou.storage.queries import GraphQueryService
from aboutyou.storage.schema import NODE_LABELS, REL_TYPES, VALID_LABELS

__all__ = [
    "GraphStore",
    "GraphStoreError",
    "UpsertStats",
    "GraphQueryService",
    "NODE_LABELS",
    "REL_TYPES",
    "VALID_LABELS",
]
