"""
Shared pytest fixtures for aboutyou tests.

Provides fixtures for:
- An in-memory stand-in for the Neo4j async driver
- Scripted agent sessions (Claude Code message streams)
- Configuration pointing at temporary directories
- Sample marker-language text
"""

import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest
from claude_code_sdk import AssistantMessage, ResultMessage, TextBlock, ToolUseBlock

from aboutyou.core.config import AppConfig
from aboutyou.storage.graph import GraphStore


# -------------------------
# Fake Neo4j
# -------------------------

NodeKey = Tuple[str, str]

_MERGE_NODE = re.compile(r"MERGE \(n:(\w+) \{name: \$name\}\)")
_MERGE_REL = re.compile(
    r"MATCH \(a:(\w+) \{name: \$from_name\}\)\s+"
    r"MATCH \(b:(\w+) \{name: \$to_name\}\)\s+"
    r"MERGE \(a\)-\[r:(\w+)\]->\(b\)"
)
_LOOKUP = re.compile(r"MATCH \(n(?::(\w+))? \{name: \$name\}\)\nWITH n LIMIT 1")
_SELF = re.compile(r"MATCH \(n:Person \{relation: \$relation\}\)\nWITH n LIMIT 1")
_ANY_PERSON = re.compile(r"MATCH \(n:Person\)\nWITH n LIMIT 1")
_TRAVERSE = re.compile(r"MATCH \(a \{name: \$name\}\)(<?-)\[r(?::(\w+))?\](->|-)\(b\)")


class FakeGraph:
    """Tiny in-memory graph that understands the statements aboutyou issues.

    Every statement is recorded in ``queries``. ``fail_on`` maps a query
    substring to an exception raised when a matching statement runs.
    """

    def __init__(self):
        self.nodes: Dict[NodeKey, Dict[str, Any]] = {}
        self.edges: Dict[Tuple[NodeKey, str, NodeKey], Dict[str, Any]] = {}
        self.memories: List[Dict[str, Any]] = []
        self.queries: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_on: Dict[str, Exception] = {}
        self.canned: List[Dict[str, Any]] = []

    def execute(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.queries.append((query, params))
        for fragment, error in self.fail_on.items():
            if fragment in query:
                raise error

        if query.startswith("CREATE CONSTRAINT"):
            return []

        match = _MERGE_NODE.search(query)
        if match:
            key = (match.group(1), params["name"])
            if key in self.nodes:
                self.nodes[key].update(params["props"])
                self.nodes[key]["updated_at"] = "now"
            else:
                self.nodes[key] = {**params["props"], "created_at": "now"}
            return []

        match = _MERGE_REL.search(query)
        if match:
            from_key = (match.group(1), params["from_name"])
            to_key = (match.group(2), params["to_name"])
            if from_key not in self.nodes or to_key not in self.nodes:
                return [{"linked": 0}]
            edge = (from_key, match.group(3), to_key)
            if edge in self.edges:
                self.edges[edge].update(params["props"])
                self.edges[edge]["updated_at"] = "now"
            else:
                self.edges[edge] = {**params["props"], "created_at": "now"}
            return [{"linked": 1}]

        if query.startswith("CREATE (m:Memory"):
            self.memories.append(
                {"content": params["content"], "source_file": params["source"], "created_at": "now"}
            )
            return []

        if query.startswith("MATCH (n) DETACH DELETE n"):
            self.nodes.clear()
            self.edges.clear()
            self.memories.clear()
            return []

        match = _LOOKUP.search(query)
        if match:
            return self._neighbourhood(self._find(params["name"], match.group(1)))

        if _SELF.search(query):
            candidates = [k for k, p in self.nodes.items() if k[0] == "Person" and p.get("relation") == params["relation"]]
            return self._neighbourhood(candidates[0] if candidates else None)

        if _ANY_PERSON.search(query):
            candidates = [k for k in self.nodes if k[0] == "Person"]
            return self._neighbourhood(candidates[0] if candidates else None)

        match = _TRAVERSE.search(query)
        if match:
            return self._traverse(params["name"], match.group(1), match.group(2), match.group(3))

        if "CALL db.labels()" in query:
            counts: Dict[str, int] = {}
            for label, _ in self.nodes:
                counts[label] = counts.get(label, 0) + 1
            if self.memories:
                counts["Memory"] = counts.get("Memory", 0) + len(self.memories)
            return [{"label": label, "count": counts[label]} for label in sorted(counts)]

        if "MATCH ()-[r]->() RETURN count(r)" in query:
            return [{"count": len(self.edges)}]

        return list(self.canned)

    def _find(self, name: str, label: Optional[str]) -> Optional[NodeKey]:
        for key in self.nodes:
            if key[1] == name and (label is None or key[0] == label):
                return key
        return None

    def _neighbourhood(self, key: Optional[NodeKey]) -> List[Dict[str, Any]]:
        if key is None:
            return []
        connections = []
        for (src, rel_type, dst) in self.edges:
            if src == key:
                connections.append(
                    {"relationship": rel_type, "direction": "out", "properties": self.nodes[dst], "labels": [dst[0]]}
                )
            elif dst == key:
                connections.append(
                    {"relationship": rel_type, "direction": "in", "properties": self.nodes[src], "labels": [src[0]]}
                )
        if not connections:
            connections = [{"relationship": None, "direction": "in", "properties": None, "labels": None}]
        return [{"node": self.nodes[key], "labels": [key[0]], "connections": connections}]

    def _traverse(self, name: str, left: str, rel_type: Optional[str], right: str) -> List[Dict[str, Any]]:
        rows = []
        for (src, edge_type, dst), props in self.edges.items():
            if rel_type and edge_type != rel_type:
                continue
            outgoing = src[1] == name and right == "->"
            incoming = dst[1] == name and left == "<-"
            either = left == "-" and right == "-" and name in (src[1], dst[1])
            if outgoing or incoming or either:
                rows.append(
                    {
                        "from_node": self.nodes[src],
                        "from_labels": [src[0]],
                        "relationship": edge_type,
                        "properties": props,
                        "to_node": self.nodes[dst],
                        "to_labels": [dst[0]],
                    }
                )
        return rows


class FakeResult:
    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows

    async def data(self) -> List[Dict[str, Any]]:
        return list(self._rows)

    async def single(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    async def consume(self) -> None:
        return None


class FakeSession:
    def __init__(self, graph: FakeGraph):
        self.graph = graph

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    async def run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> FakeResult:
        return FakeResult(self.graph.execute(query, parameters or {}))


class FakeDriver:
    """Quacks like neo4j.AsyncDriver for GraphStore."""

    def __init__(self, graph: FakeGraph, connect_error: Optional[Exception] = None):
        self.graph = graph
        self.connect_error = connect_error
        self.sessions = 0
        self.closed = False

    async def verify_connectivity(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    def session(self, **kwargs) -> FakeSession:
        self.sessions += 1
        return FakeSession(self.graph)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def fake_driver(fake_graph: FakeGraph) -> FakeDriver:
    return FakeDriver(fake_graph)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Configuration with local state under tmp_path."""
    return AppConfig.from_dict(
        {
            "scan": {"directories": [str(tmp_path / "docs")]},
            "extraction": {"max_turns": 5},
            "storage": {"data_dir": str(tmp_path / "data")},
        }
    )


@pytest.fixture
def graph_store(app_config: AppConfig, fake_driver: FakeDriver) -> GraphStore:
    """GraphStore wired to the in-memory graph (already 'connected')."""
    return GraphStore(app_config.neo4j, driver=fake_driver)


# -------------------------
# Scripted agent sessions
# -------------------------


def assistant(text: Optional[str] = None, tools: Sequence[Tuple[str, Dict[str, Any]]] = ()) -> AssistantMessage:
    """Build an assistant turn with optional text and tool calls."""
    content: List[Any] = []
    for i, (name, tool_input) in enumerate(tools):
        content.append(ToolUseBlock(id=f"tool_{i}", name=name, input=tool_input))
    if text is not None:
        content.append(TextBlock(text=text))
    return AssistantMessage(content=content, model="claude-test")


def result(
    is_error: bool = False,
    subtype: str = "success",
    text: Optional[str] = None,
    num_turns: int = 1,
    cost: Optional[float] = 0.01,
) -> ResultMessage:
    """Build the terminal result message of a session."""
    return ResultMessage(
        subtype=subtype,
        duration_ms=1000,
        duration_api_ms=800,
        is_error=is_error,
        num_turns=num_turns,
        session_id="session-test",
        total_cost_usd=cost,
        usage={"input_tokens": 10, "output_tokens": 20},
        result=text,
    )


class ScriptedSession:
    """Session factory replaying ``messages`` then optionally raising ``error``."""

    def __init__(self, messages: Sequence[Any], error: Optional[Exception] = None):
        self.messages = list(messages)
        self.error = error
        self.calls: List[Tuple[str, Any]] = []

    def __call__(self, prompt: str, options: Any):
        self.calls.append((prompt, options))
        return self._stream()

    async def _stream(self):
        for message in self.messages:
            yield message
        if self.error is not None:
            raise self.error


@pytest.fixture
def scripted_session() -> Callable[..., ScriptedSession]:
    return ScriptedSession


def block(entities: str = "", relationships: str = "", memories: Sequence[str] = (), summary: str = "") -> str:
    """Wrap marker-language fragments in an <extraction> block."""
    memory_tags = "".join(f"<memory>{m}</memory>" for m in memories)
    summary_tag = f"<summary>{summary}</summary>" if summary else ""
    return (
        "<extraction>"
        f"<entities>{entities}</entities>"
        f"<relationships>{relationships}</relationships>"
        f"<memories>{memory_tags}</memories>"
        f"{summary_tag}"
        "</extraction>"
    )


SAMPLE_RESPONSE = """I looked at the resume and found a few things.

<extraction>
  <entities>
    <entity type="Person" name="Ada Lovelace" relation="self">
      <property key="email">ada@example.com</property>
    </entity>
    <entity type="Organization" name="Analytical Engines Ltd" type_hint="company"/>
    <entity type="Skill" name="Mathematics">
      <property key="category">technical</property>
    </entity>
  </entities>
  <relationships>
    <rel from="Ada Lovelace" from_type="Person" type="WORKS_AT" to="Analytical Engines Ltd" to_type="Organization">
      <property key="role">Programmer</property>
    </rel>
    <rel from="Ada Lovelace" from_type="Person" type="SKILLED_IN" to="Mathematics" to_type="Skill"/>
  </relationships>
  <memories>
    <memory>Prefers working late at night</memory>
  </memories>
  <summary>Resume of the user</summary>
</extraction>

Next I will look at the notes folder."""


@pytest.fixture
def sample_response() -> str:
    return SAMPLE_RESPONSE
