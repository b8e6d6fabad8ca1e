"""
aboutyou.orchestrator - Sequential scan pipeline.

For each directory: extract with the agent, upsert into Neo4j, record
memories, then hand memories to the semantic index if one is configured.
"""

from aboutyou.orchestrator.runner import DirectoryReport, ScanRunner, ScanSummary

__all__ = [
    "DirectoryReport",
    "ScanRunner",
    "ScanSummary",
]
