"""
Data models for the extraction pipeline.

These dataclasses flow through the pipeline:
- ExtractedEntity / ExtractedRelationship: Records parsed from agent text
- ExtractionResult: Output of parsing one block (or of merging many)
- ExtractionOutcome: What one exploration run produced, and how completely
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class ExtractedEntity:
    """
    Typed, named node of personal knowledge.

    Identity is the exact ``(type, name)`` pair.
    """

    type: str
    """Entity label (Person, Organization, Skill, ...). Not validated here."""

    name: str
    """Natural key, trimmed"""

    properties: Dict[str, str] = field(default_factory=dict)
    """Free-form string properties"""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.type, self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractedEntity":
        """Create from dictionary."""
        return cls(
            type=data.get("type", ""),
            name=data.get("name", ""),
            properties=dict(data.get("properties", {})),
        )


@dataclass
class ExtractedRelationship:
    """
    Directed edge between two entities referenced by ``(type, name)``.

    Endpoints are resolved against stored nodes only at upsert time.
    """

    from_name: str
    from_type: str
    rel_type: str
    to_name: str
    to_type: str
    properties: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractedRelationship":
        """Create from dictionary."""
        return cls(
            from_name=data.get("from_name", ""),
            from_type=data.get("from_type", ""),
            rel_type=data.get("rel_type", ""),
            to_name=data.get("to_name", ""),
            to_type=data.get("to_type", ""),
            properties=dict(data.get("properties", {})),
        )


@dataclass
class ExtractionResult:
    """
    Entities, relationships, memories and summary from one parsed block.

    The same shape is used for the consolidated result of a whole run.
    """

    entities: List[ExtractedEntity] = field(default_factory=list)
    relationships: List[ExtractedRelationship] = field(default_factory=list)
    memories: List[str] = field(default_factory=list)
    summary: str = ""

    def is_empty(self) -> bool:
        """True when nothing worth keeping was extracted."""
        return not self.entities and not self.memories

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relationships": [r.to_dict() for r in self.relationships],
            "memories": list(self.memories),
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionResult":
        """Create from dictionary."""
        return cls(
            entities=[ExtractedEntity.from_dict(e) for e in data.get("entities", [])],
            relationships=[
                ExtractedRelationship.from_dict(r) for r in data.get("relationships", [])
            ],
            memories=list(data.get("memories", [])),
            summary=data.get("summary", ""),
        )


class ExtractionStatus(Enum):
    """How much of an exploration run made it into the result."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class ExtractionOutcome:
    """
    Result of one exploration run over a single directory.

    ``PARTIAL`` means the session errored or crashed and ``result`` holds
    only what was parsed before that; ``cause`` says why.
    """

    directory: str
    status: ExtractionStatus
    result: ExtractionResult = field(default_factory=ExtractionResult)
    cause: Optional[str] = None
    turns: int = 0
    tool_calls: int = 0
    files_read: int = 0
    cost_usd: Optional[float] = None

    @property
    def is_partial(self) -> bool:
        return self.status is ExtractionStatus.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "directory": self.directory,
            "status": self.status.value,
            "cause": self.cause,
            "turns": self.turns,
            "tool_calls": self.tool_calls,
            "files_read": self.files_read,
            "cost_usd": self.cost_usd,
            "entities": len(self.result.entities),
            "relationships": len(self.result.relationships),
            "memories": len(self.result.memories),
        }
