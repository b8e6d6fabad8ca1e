"""
Neo4j graph store - connection handling and idempotent upserts.

Entities are MERGEd on ``(label, name)``; relationships are MERGEd between
two existing endpoint nodes. Every entity and every relationship is its own
statement, run one after the other on a single session. A relationship
whose endpoints are not in the graph simply matches nothing.

Labels are only interpolated into Cypher after a membership check against
the closed schema; property keys and relationship types from agent text
go through the sanitizers in ``aboutyou.storage.schema``.
"""

import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession
from neo4j.exceptions import (
    AuthError,
    ClientError,
    DatabaseError,
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    TransientError,
)

from aboutyou.core.config import Neo4jConfig
from aboutyou.extraction.models import ExtractedEntity, ExtractedRelationship
from aboutyou.storage.schema import (
    constraint_statements,
    is_valid_label,
    sanitize_identifier,
    sanitize_rel_type,
)

logger = logging.getLogger(__name__)

# Errors that reject one statement without taking the connection down
RECORD_ERRORS = (ClientError, TransientError, DatabaseError)


class GraphStoreError(Exception):
    """The graph store is unreachable, unauthenticated or not connected."""
    pass


def wrap_driver_errors(func):
    """Decorator turning driver connectivity errors into GraphStoreError."""

    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except (DriverError, ServiceUnavailable, AuthError) as e:
            logger.error(f"Neo4j unavailable in {func.__name__}: {e}")
            raise GraphStoreError(f"Failed to {func.__name__}: {e}") from e

    return wrapper


def sanitize_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize property keys; on collision the later key wins."""
    return {sanitize_identifier(key): value for key, value in properties.items()}


@dataclass
class UpsertStats:
    """What one upsert call did, record by record."""

    entities_written: int = 0
    relationships_written: int = 0
    relationships_unmatched: int = 0
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities_written": self.entities_written,
            "relationships_written": self.relationships_written,
            "relationships_unmatched": self.relationships_unmatched,
            "skipped": list(self.skipped),
            "failed": list(self.failed),
        }


class GraphStore:
    """Async Neo4j store for the personal knowledge graph."""

    def __init__(self, config: Neo4jConfig, driver: Optional[AsyncDriver] = None):
        """
        Initialize the store. Nothing is opened until connect().

        Args:
            config: Neo4j connection settings
            driver: Pre-built driver (tests); connect() will not create one
        """
        self.config = config
        self.driver: Optional[AsyncDriver] = driver

    @property
    def connected(self) -> bool:
        return self.driver is not None

    async def connect(self) -> None:
        """Open the driver, verify connectivity and apply constraints.

        Raises:
            GraphStoreError: If Neo4j cannot be reached or rejects the credentials
        """
        if self.driver is None:
            self.driver = AsyncGraphDatabase.driver(
                self.config.uri,
                auth=(self.config.username, self.config.password),
            )
        try:
            await self.driver.verify_connectivity()
        except (DriverError, Neo4jError) as e:
            await self.close()
            raise GraphStoreError(f"Could not connect to Neo4j at {self.config.uri}: {e}") from e

        logger.debug(f"Connected to Neo4j at {self.config.uri}")
        await self.init_constraints()

    async def close(self) -> None:
        """Close the driver if open."""
        if self.driver is not None:
            await self.driver.close()
            self.driver = None

    async def __aenter__(self) -> "GraphStore":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def session(self) -> AsyncSession:
        """New session. One session serves one in-flight operation at a time."""
        if self.driver is None:
            raise GraphStoreError("Not connected to Neo4j")
        if self.config.database:
            return self.driver.session(database=self.config.database)
        return self.driver.session()

    @wrap_driver_errors
    async def run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement on a fresh session and return its rows as dicts."""
        async with self.session() as session:
            result = await session.run(query, parameters or {})
            return await result.data()

    @wrap_driver_errors
    async def init_constraints(self) -> None:
        """Create name-uniqueness constraints. Safe to call repeatedly."""
        async with self.session() as session:
            for statement in constraint_statements():
                try:
                    result = await session.run(statement)
                    await result.consume()
                except AuthError:
                    raise
                except ClientError as e:
                    # Already exists under another name, or unsupported edition
                    logger.debug(f"Constraint not applied ({e.code}): {statement}")
        logger.debug("Neo4j constraints initialized")

    @wrap_driver_errors
    async def upsert(
        self,
        entities: Iterable[ExtractedEntity],
        relationships: Iterable[ExtractedRelationship],
    ) -> UpsertStats:
        """Create-or-update entities, then relationships, one statement each.

        Records with labels outside the closed schema are skipped with a
        warning. A record the database rejects (constraint violation,
        deadlock, internal error) is logged and skipped; the rest of the
        batch continues.

        Args:
            entities: Entities to MERGE on (type, name)
            relationships: Relationships to MERGE between existing endpoints

        Returns:
            UpsertStats describing what was written and skipped

        Raises:
            GraphStoreError: If the connection to Neo4j is lost or the
                credentials are rejected
        """
        stats = UpsertStats()

        async with self.session() as session:
            for entity in entities:
                if not is_valid_label(entity.type):
                    logger.warning(f"Skipping entity with invalid label: {entity.type} ({entity.name})")
                    stats.skipped.append(f"{entity.type}:{entity.name}")
                    continue
                try:
                    await self._merge_entity(session, entity)
                    stats.entities_written += 1
                except AuthError:
                    raise
                except RECORD_ERRORS as e:
                    logger.warning(f"Failed to upsert {entity.type}:{entity.name}: {e}")
                    stats.failed.append(f"{entity.type}:{entity.name}")

            for rel in relationships:
                label = f"{rel.from_type}:{rel.from_name} -[{rel.rel_type}]-> {rel.to_type}:{rel.to_name}"
                if not is_valid_label(rel.from_type) or not is_valid_label(rel.to_type):
                    logger.warning(
                        f"Skipping relationship with invalid labels: {rel.from_type} -> {rel.to_type}"
                    )
                    stats.skipped.append(label)
                    continue
                try:
                    if await self._merge_relationship(session, rel):
                        stats.relationships_written += 1
                    else:
                        logger.debug(f"Relationship endpoints not in graph: {label}")
                        stats.relationships_unmatched += 1
                except AuthError:
                    raise
                except RECORD_ERRORS as e:
                    logger.warning(f"Failed to upsert relationship {label}: {e}")
                    stats.failed.append(label)

        return stats

    async def _merge_entity(self, session: AsyncSession, entity: ExtractedEntity) -> None:
        props = sanitize_properties(entity.properties)
        props["name"] = entity.name

        result = await session.run(
            f"""MERGE (n:{entity.type} {{name: $name}})
                ON CREATE SET n += $props, n.created_at = datetime()
                ON MATCH SET n += $props, n.updated_at = datetime()""",
            {"name": entity.name, "props": props},
        )
        await result.consume()

    async def _merge_relationship(self, session: AsyncSession, rel: ExtractedRelationship) -> bool:
        rel_type = sanitize_rel_type(rel.rel_type)

        result = await session.run(
            f"""MATCH (a:{rel.from_type} {{name: $from_name}})
                MATCH (b:{rel.to_type} {{name: $to_name}})
                MERGE (a)-[r:{rel_type}]->(b)
                ON CREATE SET r += $props, r.created_at = datetime()
                ON MATCH SET r += $props, r.updated_at = datetime()
                RETURN count(r) AS linked""",
            {
                "from_name": rel.from_name,
                "to_name": rel.to_name,
                "props": sanitize_properties(rel.properties),
            },
        )
        record = await result.single()
        return bool(record and record["linked"])

    @wrap_driver_errors
    async def add_memory(self, content: str, source: str) -> None:
        """Record a free-text observation.

        Not deduplicated: every call is a separate observation with its own
        source and timestamp.
        """
        async with self.session() as session:
            result = await session.run(
                """CREATE (m:Memory {
                       content: $content,
                       source_file: $source,
                       created_at: datetime()
                   })""",
                {"content": content, "source": source},
            )
            await result.consume()

    @wrap_driver_errors
    async def clear_all(self) -> None:
        """Delete every node and relationship."""
        async with self.session() as session:
            result = await session.run("MATCH (n) DETACH DELETE n")
            await result.consume()
        logger.info("Cleared all Neo4j data")
