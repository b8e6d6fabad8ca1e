"""
Semantic index collaborator.

The scan runner hands each directory's memories and summary to whatever
index is plugged in. Embedding and search live behind this protocol; no
implementation ships with the package.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Protocol, Sequence

from aboutyou.extraction.models import ExtractionResult


@dataclass
class VectorRecord:
    """One text snippet to index, with where it came from."""

    text: str
    source_file: str
    entities: List[str] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)


class VectorIndex(Protocol):
    """Anything that can store text records and search them."""

    async def add_batch(self, records: Sequence[VectorRecord]) -> None:
        ...

    async def search(self, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        ...


def records_from_result(result: ExtractionResult, source: str) -> List[VectorRecord]:
    """One record per memory, tagged with the run's entity names and summary."""
    names = [e.name for e in result.entities]
    return [
        VectorRecord(text=memory, source_file=source, entities=list(names), summary=result.summary)
        for memory in result.memories
    ]
