"""
Parser for the ``<extraction>`` marker language.

The exploring agent interleaves blocks like this with its free text:

    <extraction>
      <entities>
        <entity type="Person" name="Ada Lovelace" relation="self">
          <property key="email">ada@example.com</property>
        </entity>
      </entities>
      <relationships>
        <rel from="Ada Lovelace" from_type="Person" type="SKILLED_IN"
             to="Mathematics" to_type="Skill">
          <property key="level">expert</property>
        </rel>
      </relationships>
      <memories>
        <memory>Prefers tea over coffee</memory>
      </memories>
      <summary>Found a resume and a notes folder</summary>
    </extraction>

Matching is flat, non-recursive grouping rather than a grammar. Anything
malformed simply does not match and is skipped; parsing never raises.
Entity types are passed through untouched, validation happens when the
graph is written.
"""

import logging
import re
from typing import Dict, Iterator, Optional, Tuple

from aboutyou.extraction.models import (
    ExtractedEntity,
    ExtractedRelationship,
    ExtractionResult,
)

logger = logging.getLogger(__name__)


EXTRACTION_RE = re.compile(r"<extraction>([\s\S]*?)</extraction>")
ENTITY_RE = re.compile(r"<entity\s+([^>]*?)(?:/>|>([\s\S]*?)</entity>)")
REL_RE = re.compile(r"<rel\s+([^>]*?)(?:/>|>([\s\S]*?)</rel>)")
PROPERTY_RE = re.compile(r"""<property\s+key\s*=\s*(?:"([^"]*)"|'([^']*)')\s*>([\s\S]*?)</property>""")
MEMORY_RE = re.compile(r"<memory>([\s\S]*?)</memory>")
SUMMARY_RE = re.compile(r"<summary>([\s\S]*?)</summary>")
ATTR_RE = re.compile(r"""(\w+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")

REL_REQUIRED = ("from", "from_type", "type", "to", "to_type")


def parse_extraction_response(text: Optional[str]) -> ExtractionResult:
    """Parse every ``<extraction>`` block in ``text``.

    Args:
        text: Free text produced by the agent (may be empty or None)

    Returns:
        ExtractionResult with everything that parsed cleanly. Empty when
        no block was found.
    """
    result = ExtractionResult()
    if not text or not isinstance(text, str):
        return result

    for block_match in EXTRACTION_RE.finditer(text):
        block = block_match.group(1)

        for entity_match in ENTITY_RE.finditer(block):
            entity = _parse_entity(entity_match.group(1), entity_match.group(2) or "")
            if entity is not None:
                result.entities.append(entity)

        for rel_match in REL_RE.finditer(block):
            rel = _parse_relationship(rel_match.group(1), rel_match.group(2) or "")
            if rel is not None:
                result.relationships.append(rel)

        for memory_match in MEMORY_RE.finditer(block):
            memory = memory_match.group(1).strip()
            if memory:
                result.memories.append(memory)

        summary_match = SUMMARY_RE.search(block)
        if summary_match:
            summary = summary_match.group(1).strip()
            if summary:
                result.summary = summary

    return result


def parse_attributes(attr_string: str) -> Dict[str, str]:
    """Parse ``key="value"`` pairs from a tag's attribute section.

    Later duplicates of the same attribute win.
    """
    attrs: Dict[str, str] = {}
    for match in ATTR_RE.finditer(attr_string):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attrs[match.group(1)] = value
    return attrs


def _iter_properties(body: str) -> Iterator[Tuple[str, str]]:
    for match in PROPERTY_RE.finditer(body):
        key = match.group(1) if match.group(1) is not None else match.group(2)
        key = key.strip()
        if not key:
            logger.debug("Skipping property with empty key")
            continue
        yield key, match.group(3).strip()


def _parse_entity(attr_string: str, body: str) -> Optional[ExtractedEntity]:
    attrs = parse_attributes(attr_string)
    entity_type = attrs.get("type", "").strip()
    name = attrs.get("name", "").strip()

    if not entity_type or not name:
        logger.debug(f"Dropping entity without type/name: {attr_string[:80]!r}")
        return None

    # Attribute shorthand first, nested <property> tags override it
    properties = {
        key: value.strip()
        for key, value in attrs.items()
        if key not in ("type", "name")
    }
    for key, value in _iter_properties(body):
        properties[key] = value

    return ExtractedEntity(type=entity_type, name=name, properties=properties)


def _parse_relationship(attr_string: str, body: str) -> Optional[ExtractedRelationship]:
    attrs = {k: v.strip() for k, v in parse_attributes(attr_string).items()}

    missing = [key for key in REL_REQUIRED if not attrs.get(key)]
    if missing:
        logger.debug(f"Dropping relationship missing {missing}: {attr_string[:80]!r}")
        return None

    return ExtractedRelationship(
        from_name=attrs["from"],
        from_type=attrs["from_type"],
        rel_type=attrs["type"],
        to_name=attrs["to"],
        to_type=attrs["to_type"],
        properties=dict(_iter_properties(body)),
    )
