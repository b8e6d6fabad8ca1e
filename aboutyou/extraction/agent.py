"""
Stream consumer for the exploring agent.

Points a Claude Code session at a directory, lets it explore on its own
with read-only tools, and parses ``<extraction>`` blocks out of every
assistant turn as they arrive. Parsed blocks are buffered per run and
merged at the end.

If the session reports an error or the transport blows up halfway, the
blocks parsed so far are merged and returned as a partial outcome. Only a
run that produced nothing at all is surfaced as a failure.
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence

from claude_code_sdk import (
    AssistantMessage,
    ClaudeCodeOptions,
    ResultMessage,
    TextBlock,
    ToolUseBlock,
    query,
)

from aboutyou.core.config import ExtractionConfig
from aboutyou.extraction.merge import merge_results
from aboutyou.extraction.models import ExtractionOutcome, ExtractionResult, ExtractionStatus
from aboutyou.extraction.parser import parse_extraction_response
from aboutyou.extraction.prompts import SYSTEM_PROMPT, build_scan_prompt

logger = logging.getLogger(__name__)

# (prompt, options) -> async stream of SDK messages
SessionFactory = Callable[[str, ClaudeCodeOptions], AsyncIterator[Any]]


class ExtractionError(Exception):
    """Raised when an exploration run fails with nothing to salvage."""

    def __init__(self, directory: str, message: str):
        super().__init__(f"{directory}: {message}")
        self.directory = directory


@dataclass
class ExtractionProgress:
    """Running totals emitted after every turn that yielded knowledge."""

    directory: str
    turn: int
    entities: int
    memories: int


ProgressCallback = Callable[[ExtractionProgress], None]


def default_session(prompt: str, options: ClaudeCodeOptions) -> AsyncIterator[Any]:
    """Open a real Claude Code session."""
    return query(prompt=prompt, options=options)


def build_options(directory: str, config: ExtractionConfig) -> ClaudeCodeOptions:
    """SDK options for exploring ``directory`` with read-only tools."""
    return ClaudeCodeOptions(
        system_prompt=SYSTEM_PROMPT,
        max_turns=config.max_turns,
        allowed_tools=list(config.allowed_tools),
        permission_mode=config.permission_mode,
        cwd=directory,
        model=config.model,
    )


def extract_text(message: Any) -> str:
    """Join the human-readable text blocks of an assistant message.

    Accepts plain string content as well as block lists.
    """
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    parts = []
    for block in content:
        if isinstance(block, TextBlock):
            parts.append(block.text)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "\n".join(parts)


def describe_tool_use(block: ToolUseBlock) -> str:
    """Short progress line for a tool call (name plus its salient argument)."""
    tool_input = block.input or {}
    if block.name == "Read":
        return f"Reading: {tool_input.get('file_path')}"
    if block.name == "Glob":
        return f"Glob: {tool_input.get('pattern')}"
    if block.name == "Grep":
        return f"Grep: \"{tool_input.get('pattern')}\" in {tool_input.get('path') or '.'}"
    if block.name == "Bash":
        return f"Bash: {tool_input.get('command')}"
    return block.name


class _ExtractionRun:
    """Mutable state of one run, owned by a single run_extraction call."""

    def __init__(self, directory: str, on_progress: Optional[ProgressCallback] = None):
        self.directory = directory
        self.on_progress = on_progress
        self.results: List[ExtractionResult] = []
        self.turns = 0
        self.tool_calls = 0
        self.files_read = 0
        self.cost_usd: Optional[float] = None
        self.error: Optional[str] = None

    @property
    def entity_count(self) -> int:
        return sum(len(r.entities) for r in self.results)

    @property
    def memory_count(self) -> int:
        return sum(len(r.memories) for r in self.results)

    def buffer(self, text: str) -> bool:
        """Parse ``text`` and keep the result if it holds anything."""
        parsed = parse_extraction_response(text)
        if parsed.is_empty():
            return False
        self.results.append(parsed)
        return True

    def handle_assistant(self, message: AssistantMessage) -> None:
        self.turns += 1

        for block in message.content if isinstance(message.content, list) else []:
            if isinstance(block, ToolUseBlock):
                self.tool_calls += 1
                if block.name == "Read":
                    self.files_read += 1
                logger.info(f"  [turn {self.turns}] {describe_tool_use(block)}")

        text = extract_text(message)
        if text and self.buffer(text):
            logger.info(
                f"  [turn {self.turns}] Extracted! Running totals: "
                f"{self.entity_count} entities, {self.memory_count} memories"
            )
            if self.on_progress:
                self.on_progress(
                    ExtractionProgress(
                        directory=self.directory,
                        turn=self.turns,
                        entities=self.entity_count,
                        memories=self.memory_count,
                    )
                )

    def handle_result(self, message: ResultMessage) -> None:
        self.cost_usd = message.total_cost_usd

        if message.is_error:
            self.error = (message.result if message.subtype == "success" else message.subtype) or "unknown error"
            logger.error(f"Agent error in {self.directory}: {self.error}")
            return

        cost = f"${message.total_cost_usd:.4f}" if message.total_cost_usd is not None else "n/a"
        logger.info(
            f"Agent done: {message.num_turns} turns, {self.files_read} files read, "
            f"{self.tool_calls} tool calls, {cost}"
        )
        if message.result:
            self.buffer(message.result)

    def outcome(self, status: ExtractionStatus) -> ExtractionOutcome:
        return ExtractionOutcome(
            directory=self.directory,
            status=status,
            result=merge_results(self.results),
            cause=self.error,
            turns=self.turns,
            tool_calls=self.tool_calls,
            files_read=self.files_read,
            cost_usd=self.cost_usd,
        )


async def run_extraction(
    directory: str,
    config: ExtractionConfig,
    session: Optional[SessionFactory] = None,
    on_progress: Optional[ProgressCallback] = None,
    ignore: Sequence[str] = (),
) -> ExtractionOutcome:
    """Let the agent explore ``directory`` and consolidate what it extracts.

    Never writes to the graph; the caller decides what to do with the result.

    Args:
        directory: Directory the agent explores (also its working directory)
        config: Extraction settings (model, turn bound, tools)
        session: Session factory, defaults to a real Claude Code session
        on_progress: Optional callback receiving running totals
        ignore: Directory names the agent is asked to skip

    Returns:
        ExtractionOutcome, COMPLETE or PARTIAL (with ``cause`` set)

    Raises:
        ExtractionError: The session reported an error and nothing was parsed
        Exception: The session crashed before anything was parsed
    """
    session = session or default_session
    run = _ExtractionRun(directory, on_progress)

    logger.info(f"Agent exploring: {directory}")

    try:
        async for message in session(build_scan_prompt(directory, ignore), build_options(directory, config)):
            if isinstance(message, AssistantMessage):
                run.handle_assistant(message)
            elif isinstance(message, ResultMessage):
                run.handle_result(message)
    except Exception as e:
        logger.error(f"Agent crashed in {directory}: {e}")
        if not run.results:
            raise
        run.error = f"{type(e).__name__}: {e}"
        outcome = run.outcome(ExtractionStatus.PARTIAL)
        logger.warning(
            f"Recovered partial results: {len(outcome.result.entities)} entities, "
            f"{len(outcome.result.relationships)} relationships, "
            f"{len(outcome.result.memories)} memories"
        )
        return outcome

    if run.error is not None:
        if not run.results:
            raise ExtractionError(directory, run.error)
        return run.outcome(ExtractionStatus.PARTIAL)

    return run.outcome(ExtractionStatus.COMPLETE)
