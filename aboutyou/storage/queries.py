"""
Read-side graph operations: entity lookup, traversal, profile and stats.

All queries return plain maps (``properties(n)``, ``labels(n)``) so the
rows coming back from ``GraphStore.run`` are JSON-friendly dicts.
"""

import logging
from typing import Any, Dict, List, Optional

from aboutyou.storage.graph import GraphStore
from aboutyou.storage.schema import SELF_RELATION, is_valid_label, sanitize_rel_type

logger = logging.getLogger(__name__)

DIRECTIONS = ("in", "out", "both")

_NEIGHBOURHOOD = """
OPTIONAL MATCH (n)-[r]-(m)
RETURN properties(n) AS node,
       labels(n) AS labels,
       collect({
           relationship: type(r),
           direction: CASE WHEN startNode(r) = n THEN 'out' ELSE 'in' END,
           properties: properties(m),
           labels: labels(m)
       }) AS connections
"""


def _connections(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # OPTIONAL MATCH with no edges collects a single all-null map
    return [c for c in rows if c.get("relationship") is not None]


class GraphQueryService:
    """Queries over the personal knowledge graph."""

    def __init__(self, store: GraphStore):
        self.store = store

    async def get_entity(self, name: str, entity_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Look up an entity and its direct neighbours.

        Args:
            name: Exact entity name
            entity_type: Optional label filter; labels outside the schema match nothing

        Returns:
            Dict with ``properties``, ``labels`` and ``connections`` (each with
            ``relationship``, ``direction`` relative to the entity, the
            neighbour's ``properties`` and ``labels``), or None if not found
        """
        if entity_type is not None and not is_valid_label(entity_type):
            logger.debug(f"Unknown label in lookup: {entity_type}")
            return None

        label = f":{entity_type}" if entity_type else ""
        rows = await self.store.run(
            f"MATCH (n{label} {{name: $name}})\nWITH n LIMIT 1" + _NEIGHBOURHOOD,
            {"name": name},
        )
        if not rows:
            return None

        row = rows[0]
        return {
            "properties": row["node"],
            "labels": row["labels"],
            "connections": _connections(row["connections"]),
        }

    async def get_relationships(
        self,
        entity: str,
        rel_type: Optional[str] = None,
        direction: str = "both",
    ) -> List[Dict[str, Any]]:
        """All edges touching ``entity``, with both endpoints' properties.

        Args:
            entity: Entity name
            rel_type: Optional relationship type (canonicalized before use)
            direction: ``out``, ``in`` or ``both`` relative to ``entity``

        Returns:
            List of ``{from_node, from_labels, relationship, properties, to_node, to_labels}``
            in the edge's own direction

        Raises:
            ValueError: If ``direction`` is not one of in/out/both
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction}. Valid: {list(DIRECTIONS)}")

        rel = f":{sanitize_rel_type(rel_type)}" if rel_type else ""
        left, right = {"out": ("-", "->"), "in": ("<-", "-"), "both": ("-", "-")}[direction]

        return await self.store.run(
            f"""MATCH (a {{name: $name}}){left}[r{rel}]{right}(b)
                RETURN properties(startNode(r)) AS from_node,
                       labels(startNode(r)) AS from_labels,
                       type(r) AS relationship,
                       properties(r) AS properties,
                       properties(endNode(r)) AS to_node,
                       labels(endNode(r)) AS to_labels""",
            {"name": entity},
        )

    async def get_profile(self) -> Dict[str, Any]:
        """Profile rooted at the self Person, grouped by relationship type.

        Falls back to any Person when none is flagged as self. With no Person
        at all, ``person`` is None and ``connections`` is empty.
        """
        rows = await self.store.run(
            "MATCH (n:Person {relation: $relation})\nWITH n LIMIT 1" + _NEIGHBOURHOOD,
            {"relation": SELF_RELATION},
        )
        is_self = bool(rows)
        if not rows:
            rows = await self.store.run("MATCH (n:Person)\nWITH n LIMIT 1" + _NEIGHBOURHOOD)
        if not rows:
            return {"person": None, "is_self": False, "connections": {}}

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for conn in _connections(rows[0]["connections"]):
            grouped.setdefault(conn["relationship"], []).append(
                {
                    **(conn["properties"] or {}),
                    "_labels": conn["labels"],
                    "_direction": conn["direction"],
                }
            )

        return {"person": rows[0]["node"], "is_self": is_self, "connections": grouped}

    async def get_stats(self) -> Dict[str, Any]:
        """Node count per label and total relationship count."""
        label_rows = await self.store.run(
            """CALL db.labels() YIELD label
               CALL {
                   WITH label
                   MATCH (n) WHERE label IN labels(n)
                   RETURN count(n) AS count
               }
               RETURN label, count
               ORDER BY label"""
        )
        rel_rows = await self.store.run("MATCH ()-[r]->() RETURN count(r) AS count")

        return {
            "labels": {row["label"]: row["count"] for row in label_rows},
            "relationships": rel_rows[0]["count"] if rel_rows else 0,
        }

    async def query_graph(self, cypher: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run an operator-supplied Cypher query as-is. Trusted callers only."""
        return await self.store.run(cypher, parameters)
