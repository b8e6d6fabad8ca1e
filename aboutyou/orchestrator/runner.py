"""
ScanRunner - Sequential per-directory extraction pipeline.

For each directory, one after the other:
1. EXTRACT - Let the agent explore it and consolidate what it emits
2. UPSERT - MERGE entities and relationships into the graph
3. MEMORY - Record every memory as its own observation
4. INDEX - Hand memories to the semantic index, if one is plugged in

A directory that fails is reported and the scan moves on, whether the
agent, a database statement or the semantic index failed. Losing the graph
store aborts the scan, since every remaining directory would fail the
same way.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from neo4j.exceptions import Neo4jError

from aboutyou.core.config import AppConfig, expand_home
from aboutyou.core.observability import ObservabilityLogger
from aboutyou.extraction.agent import ProgressCallback, SessionFactory, run_extraction
from aboutyou.extraction.models import ExtractionOutcome, ExtractionStatus
from aboutyou.storage.graph import GraphStore, GraphStoreError
from aboutyou.storage.vector import VectorIndex, records_from_result

logger = logging.getLogger(__name__)


@dataclass
class DirectoryReport:
    """What happened to one scanned directory."""

    directory: str
    status: ExtractionStatus
    entities: int = 0
    relationships: int = 0
    memories: int = 0
    cause: Optional[str] = None
    upsert: Dict[str, Any] = field(default_factory=dict)
    index_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directory": self.directory,
            "status": self.status.value,
            "entities": self.entities,
            "relationships": self.relationships,
            "memories": self.memories,
            "cause": self.cause,
            "upsert": dict(self.upsert),
            "index_error": self.index_error,
        }


@dataclass
class ScanSummary:
    """Outcome of a whole scan."""

    session_id: Optional[str]
    directories: List[str]
    reports: List[DirectoryReport] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_entities(self) -> int:
        return sum(r.entities for r in self.reports)

    @property
    def total_relationships(self) -> int:
        return sum(r.relationships for r in self.reports)

    @property
    def total_memories(self) -> int:
        return sum(r.memories for r in self.reports)

    @property
    def failed(self) -> List[DirectoryReport]:
        return [r for r in self.reports if r.status is ExtractionStatus.FAILED]

    @property
    def partial(self) -> List[DirectoryReport]:
        return [r for r in self.reports if r.status is ExtractionStatus.PARTIAL]

    def totals(self) -> Dict[str, int]:
        return {
            "directories": len(self.reports),
            "entities": self.total_entities,
            "relationships": self.total_relationships,
            "memories": self.total_memories,
            "partial": len(self.partial),
            "failed": len(self.failed),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "dry_run": self.dry_run,
            "directories": list(self.directories),
            "totals": self.totals(),
            "reports": [r.to_dict() for r in self.reports],
        }


class ScanRunner:
    """Runs the extraction pipeline over a list of directories.

    Usage:
        store = GraphStore(config.neo4j)
        await store.connect()
        runner = ScanRunner(config, store, logger=ObservabilityLogger(config.storage.logs_db))
        summary = await runner.scan(config.scan.directories)
    """

    def __init__(
        self,
        config: AppConfig,
        graph_store: Optional[GraphStore],
        vector_index: Optional[VectorIndex] = None,
        logger: Optional[ObservabilityLogger] = None,
        session: Optional[SessionFactory] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Args:
            config: Application configuration
            graph_store: Connected graph store (may be None for dry runs)
            vector_index: Optional semantic index for memories
            logger: Optional audit log
            session: Agent session factory, defaults to a real Claude Code session
            on_progress: Optional callback receiving running extraction totals
        """
        self.config = config
        self.graph_store = graph_store
        self.vector_index = vector_index
        self.audit = logger
        self.session = session
        self.on_progress = on_progress

    def resolve_directories(self, directories: Sequence[str]) -> List[str]:
        """Expand and resolve paths, dropping the ones that do not exist."""
        resolved = []
        for directory in directories:
            path = Path(expand_home(directory)).resolve()
            if not path.is_dir():
                logger.warning(f"Directory does not exist: {path}")
                if self.audit:
                    self.audit.log_skip(str(path), "does not exist")
                continue
            if str(path) not in resolved:
                resolved.append(str(path))
        return resolved

    async def scan(self, directories: Optional[Sequence[str]] = None, dry_run: bool = False) -> ScanSummary:
        """Scan directories one at a time.

        Args:
            directories: Directories to scan (defaults to the configured ones)
            dry_run: Only resolve the directories; touch neither agent nor store

        Returns:
            ScanSummary with one DirectoryReport per scanned directory

        Raises:
            GraphStoreError: If the graph store becomes unavailable mid-scan
        """
        if directories is None:
            directories = self.config.scan.directories
        if self.audit:
            self.audit.new_session()

        resolved = self.resolve_directories(directories)
        session_id = self.audit.session_id if self.audit else None
        summary = ScanSummary(session_id=session_id, directories=resolved, dry_run=dry_run)

        if self.audit:
            self.audit.log_input(resolved, dry_run=dry_run)

        if not resolved:
            logger.error("No valid directories to scan")
            return summary
        if dry_run:
            return summary
        if self.graph_store is None:
            raise GraphStoreError("No graph store configured")

        for directory in resolved:
            logger.info(f"Scanning: {directory}")
            summary.reports.append(await self._scan_directory(directory))

        totals = summary.totals()
        logger.info(
            f"Scan complete: {totals['entities']} entities, {totals['relationships']} relationships, "
            f"{totals['memories']} memories ({totals['partial']} partial, {totals['failed']} failed)"
        )
        if self.audit:
            self.audit.log_complete(totals)

        return summary

    async def _scan_directory(self, directory: str) -> DirectoryReport:
        try:
            outcome = await run_extraction(
                directory,
                self.config.extraction,
                session=self.session,
                on_progress=self.on_progress,
                ignore=self.config.scan.ignore,
            )
        except Exception as e:
            logger.error(f"Failed scanning {directory}: {e}")
            if self.audit:
                self.audit.log_error(type(e).__name__, directory=directory, details=str(e))
                self.audit.log_extract({"directory": directory, "status": ExtractionStatus.FAILED.value})
            return DirectoryReport(
                directory=directory,
                status=ExtractionStatus.FAILED,
                cause=f"{type(e).__name__}: {e}",
            )

        if self.audit:
            self.audit.log_extract(outcome.to_dict())

        try:
            return await self._store(outcome)
        except GraphStoreError as e:
            if self.audit:
                self.audit.log_error(type(e).__name__, directory=directory, details=str(e))
            raise
        except Neo4jError as e:
            logger.error(f"Failed storing {directory}: {e}")
            if self.audit:
                self.audit.log_error(type(e).__name__, directory=directory, details=str(e))
            return DirectoryReport(
                directory=directory,
                status=ExtractionStatus.FAILED,
                cause=f"{type(e).__name__}: {e}",
            )

    async def _store(self, outcome: ExtractionOutcome) -> DirectoryReport:
        result = outcome.result
        directory = outcome.directory
        report = DirectoryReport(
            directory=directory,
            status=outcome.status,
            entities=len(result.entities),
            relationships=len(result.relationships),
            memories=len(result.memories),
            cause=outcome.cause,
        )

        if result.entities or result.relationships:
            stats = await self.graph_store.upsert(result.entities, result.relationships)
            report.upsert = stats.to_dict()
            if self.audit:
                self.audit.log_upsert(directory, report.upsert)

        for memory in result.memories:
            await self.graph_store.add_memory(memory, directory)
        if result.memories and self.audit:
            self.audit.log_memory(directory, len(result.memories))

        if result.memories and self.vector_index is not None:
            try:
                await self.vector_index.add_batch(records_from_result(result, directory))
            except Exception as e:
                logger.warning(f"Semantic index failed for {directory}: {e}")
                report.index_error = f"{type(e).__name__}: {e}"
                if self.audit:
                    self.audit.log_error(type(e).__name__, directory=directory, details=str(e))

        return report
