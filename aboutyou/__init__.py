"""
aboutyou - Personal knowledge graph built by an exploring agent

Point a Claude Code agent at your directories, let it read what it finds,
and keep what it learns about you in Neo4j.

Core components:
- parse_extraction_response: Marker-language parser for agent text
- merge_results: Consolidates the partial results of one run
- run_extraction: Drives one agent session over a directory
- GraphStore: Idempotent Neo4j upserts
- GraphQueryService: Entity lookup, traversal, profile and stats
- ScanRunner: Sequential per-directory pipeline
- ObservabilityLogger: SQLite audit trail of scans
"""

__version__ = "0.1.0"

# Extraction
from aboutyou.extraction.models import (
    ExtractedEntity,
    ExtractedRelationship,
    ExtractionResult,
    ExtractionOutcome,
    ExtractionStatus,
)
from aboutyou.extraction.parser import parse_extraction_response
from aboutyou.extraction.merge import merge_results
from aboutyou.extraction.agent import ExtractionError, run_extraction

# Storage
from aboutyou.storage.graph import GraphStore, GraphStoreError, UpsertStats
from aboutyou.storage.queries import GraphQueryService

# Core
from aboutyou.core.config import AppConfig, load_config
from aboutyou.core.observability import ObservabilityLogger, LogEntry

# Orchestration
from aboutyou.orchestrator.runner import ScanRunner, ScanSummary, DirectoryReport

__all__ = [
    # Extraction
    "ExtractedEntity",
    "ExtractedRelationship",
    "ExtractionResult",
    "ExtractionOutcome",
    "ExtractionStatus",
    "parse_extraction_response",
    "merge_results",
    "ExtractionError",
    "run_extraction",
    # Storage
    "GraphStore",
    "GraphStoreError",
    "UpsertStats",
    "GraphQueryService",
    # Core
    "AppConfig",
    "load_config",
    "ObservabilityLogger",
    "LogEntry",
    # Orchestration
    "ScanRunner",
    "ScanSummary",
    "DirectoryReport",
]
