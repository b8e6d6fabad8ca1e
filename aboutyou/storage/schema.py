"""
Closed graph schema and identifier sanitization.

Labels are a closed set checked by membership at write time. Relationship
types are open: the recommended set below is what the agent is asked to
use, but any type is accepted once canonicalized.

Anything extracted from agent text that ends up inside a Cypher string
(property keys, relationship types) must go through ``sanitize_identifier``
or ``sanitize_rel_type``. Labels are never interpolated unless they are
members of ``VALID_LABELS``.
"""

import re
from typing import Dict, FrozenSet, List, Optional

NODE_LABELS: Dict[str, str] = {
    "Person": "name, email, relation (self/friend/colleague/family)",
    "Organization": "name, type (company/school/community)",
    "Project": "name, description, url",
    "Skill": "name, category (technical/soft/language)",
    "Interest": "name, category",
    "Location": "name, type (city/country/address)",
    "Event": "name, date, description",
    "Preference": "key, value, context",
    "Memory": "content, date, source_file, confidence",
    "Topic": "name",
}

REL_TYPES: Dict[str, str] = {
    "KNOWS": "Person -> Person (since, context)",
    "WORKS_AT": "Person -> Organization (role, since, until)",
    "STUDIED_AT": "Person -> Organization (degree, since, until)",
    "SKILLED_IN": "Person -> Skill (level: beginner/intermediate/expert)",
    "INTERESTED_IN": "Person -> Interest",
    "WORKED_ON": "Person -> Project (role)",
    "LOCATED_IN": "Person -> Location (since, until)",
    "ATTENDED": "Person -> Event",
    "HAS_PREFERENCE": "Person -> Preference",
    "REMEMBERS": "Person -> Memory",
    "RELATED_TO": "any -> any (how)",
    "ABOUT": "Memory -> any node",
}

VALID_LABELS: FrozenSet[str] = frozenset(NODE_LABELS)
VALID_REL_TYPES: FrozenSet[str] = frozenset(REL_TYPES)

# Every label is merged on name, so every label gets a uniqueness constraint.
# Memory nodes written by add_memory carry no name and are unaffected.
UNIQUE_NAME_LABELS: List[str] = list(NODE_LABELS)

SELF_RELATION = "self"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def is_valid_label(label: Optional[str]) -> bool:
    """Check membership in the closed label set (case-sensitive)."""
    return label in VALID_LABELS


def sanitize_identifier(value: str) -> str:
    """Restrict an identifier to ``[a-zA-Z0-9_]``.

    Every other character becomes ``_``. A leading digit or an empty result
    is prefixed with ``_`` so the output is always a valid bare Cypher
    identifier.
    """
    cleaned = _UNSAFE_CHARS.sub("_", value)
    if not cleaned or cleaned[0].isdigit():
        cleaned = "_" + cleaned
    return cleaned


def sanitize_rel_type(rel_type: str) -> str:
    """Canonicalize a relationship type: sanitized and upper-cased.

    ``"works at"`` -> ``"WORKS_AT"``
    """
    return sanitize_identifier(rel_type.strip()).upper()


def constraint_statements() -> List[str]:
    """Cypher statements creating one name-uniqueness constraint per label.

    ``IF NOT EXISTS`` makes re-applying them a no-op.
    """
    return [
        f"CREATE CONSTRAINT {label.lower()}_name IF NOT EXISTS "
        f"FOR (n:{label}) REQUIRE n.name IS UNIQUE"
        for label in UNIQUE_NAME_LABELS
    ]
