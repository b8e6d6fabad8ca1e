"""Agent-driven extraction: prompts, stream consumer, parser and merger."""

from aboutyou.extraction.models import (
    ExtractedEntity,
    ExtractedRelationship,
    ExtractionResult,
    ExtractionOutcome,
    ExtractionStatus,
)
from aboutyou.extraction.parser import parse_extraction_response
from aboutyou.extraction.merge import merge_results

__all__ = [
    "ExtractedEntity",
    "ExtractedRelationship",
    "ExtractionResult",
    "ExtractionOutcome",
    "ExtractionStatus",
    "parse_extraction_response",
    "merge_results",
]
