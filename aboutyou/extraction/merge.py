"""Fold many partial extraction results into one consolidated result."""

from typing import Dict, Iterable, Set, Tuple

from aboutyou.extraction.models import ExtractedEntity, ExtractionResult


def merge_results(results: Iterable[ExtractionResult]) -> ExtractionResult:
    """Merge partial results in order.

    - Entities are keyed by ``(type, name)`` in first-seen order; a repeat
      overwrites same-named properties and keeps the rest.
    - Relationships are concatenated as-is (the store MERGE makes repeats
      harmless).
    - Memories are kept on first appearance only.
    - The first non-empty summary wins.

    Inputs are never mutated.

    Args:
        results: Partial results, oldest first

    Returns:
        Consolidated ExtractionResult
    """
    merged = ExtractionResult()
    entity_map: Dict[Tuple[str, str], ExtractedEntity] = {}
    seen_memories: Set[str] = set()

    for result in results:
        for entity in result.entities:
            existing = entity_map.get(entity.key)
            if existing is None:
                entity_map[entity.key] = ExtractedEntity(
                    type=entity.type,
                    name=entity.name,
                    properties=dict(entity.properties),
                )
            else:
                existing.properties.update(entity.properties)

        merged.relationships.extend(result.relationships)

        for memory in result.memories:
            memory = memory.strip()
            if memory and memory not in seen_memories:
                seen_memories.add(memory)
                merged.memories.append(memory)

        if result.summary and not merged.summary:
            merged.summary = result.summary

    merged.entities = list(entity_map.values())
    return merged
