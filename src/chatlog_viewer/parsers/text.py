"""Plain-text transcript parser.

Transcripts are copied out of the chat panel and look like::

    digitarald: Fix the footer link

    GitHub Copilot: I'll look at the footer first.

    Read [](file:///src/components/Footer.tsx)
    Searched for regex `View on GitHub`, 2 results
    Ran Navigate to a URL
    Completed with input: {
      "url": "http://localhost:3000"
    }

The parser is a line-driven state machine with three modes: normal
text, inside a fenced code block, and collecting multi-line tool input.
Outside a code block, each line is classified by the first matching
rule:

1. combined multi-search line (``Searched ...|Searched ...``)
2. code fence
3. continuation of pending tool input
4. user header / 5. assistant header
6. file reference (``Read [](file://...)`` also yields a read call)
7. ``Completed with input:``
8. tool call recognizers
9. task status lines
10. free text

Any rule other than free text first flushes the pending text as a
segment. Unrecognized lines are never an error; they become text.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import get_assistant_prefix, get_user_name
from ..core import ChatMessage, FileReference, ParsedSession, TaskStatus, ToolCall
from ..normalize import SegmentList, apply_result_count, basename
from .base import LogParser

logger = logging.getLogger(__name__)

NORMAL = "normal"
IN_CODE_BLOCK = "in_code_block"
IN_TOOL_INPUT = "in_tool_input"

MULTI_SEARCH_DELIMITER = "|Searched "

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_FILE_REF_RE = re.compile(r"\[\]\(file://([^)#]+?)(?:#(\d+-\d+))?\)")
_COMPLETED_INPUT_RE = re.compile(r"^Completed with input:\s*(.*)")
_CREATED_TODOS_RE = re.compile(r"^Created\s+(\d+)\s+todos?")
_COMPLETED_TASK_RE = re.compile(r"^Completed:\s+\*?(.+?)\*?\s+\((\d+/\d+)\)")
_SECTION_MARKERS = ("Ran ", "Searched ", "Read ", "Got output")


# ── Tool call recognizers ───────────────────────────────────────────


def _ran_type(action: str) -> str:
    """Infer a tool type from the label of a ``Ran ...`` line."""
    lower = action.lower()
    if "navigate" in lower:
        return "navigate"
    if "click" in lower:
        return "click"
    if "type" in lower:
        return "type"
    if "screenshot" in lower or "snapshot" in lower:
        return "screenshot"
    if "search" in lower:
        return "search"
    return "run"


def _ran(m: re.Match) -> ToolCall:
    action = m.group(1).strip()
    return ToolCall(type=_ran_type(action), action=action)


def _test_summary(m: re.Match) -> ToolCall:
    passed, total, pct = m.groups()
    return ToolCall(type="test", action="Tests passed", output=f"{passed}/{total} ({pct}%)")


def _files_matching(m: re.Match) -> ToolCall:
    output = "0 results" if m.group(2) else None
    return ToolCall(type="search", action=m.group(1).strip(), output=output)


_MULTI_REPLACE = "Multi-Replace String in Files"
_APPLY_PATCH = "Apply Patch"

# Tried in order; the first match wins.
_TOOL_RECOGNIZERS: list[tuple[re.Pattern, Callable[[re.Match], ToolCall]]] = [
    (
        re.compile(r"^Starting:\s+\*?(.+?)\*?\s+\((\d+/\d+)\)"),
        lambda m: ToolCall(type="todo", action=f"Starting {m.group(1)} {m.group(2)}"),
    ),
    (
        re.compile(rf'^(?:Using\s+"{_MULTI_REPLACE}"|\s*{_MULTI_REPLACE}\s*$)'),
        lambda m: ToolCall(type="replace", action=_MULTI_REPLACE),
    ),
    (
        re.compile(rf'^(?:Using\s+"{_APPLY_PATCH}"|\s*{_APPLY_PATCH}\s*$)'),
        lambda m: ToolCall(type="patch", action=_APPLY_PATCH),
    ),
    (
        re.compile(r"^Discovering tests\.\.\.\s*$"),
        lambda m: ToolCall(type="test", action="Discovering tests", status="pending"),
    ),
    (
        re.compile(r"^(\d+)/(\d+)\s+tests\s+passed\s+\((\d+)%\)"),
        _test_summary,
    ),
    (
        re.compile(r"^Opened Simple Browser at\s+(\S+)"),
        lambda m: ToolCall(type="navigate", action="Opened Simple Browser", input=m.group(1)),
    ),
    (
        re.compile(r"^Ran\s+(.+?)(?:\s+-\s+.+)?$"),
        _ran,
    ),
    # Searched <anything>, 6 results
    (
        re.compile(r"^Searched\s+(.+?),\s*(\d+)\s*results?"),
        lambda m: ToolCall(type="search", action=m.group(1), output=f"{m.group(2)} results"),
    ),
    # Searched for files matching `**/Footer*`[, no matches]
    (
        re.compile(r"^Searched\s+(.*for files matching.+?)(,\s*(?:no matches|no results))?\s*$"),
        _files_matching,
    ),
    # Searched for regex `search.*icon` (fragment of a combined line)
    (
        re.compile(r"^Searched\s+for\s+regex\s+`([^`]+)`\s*$"),
        lambda m: ToolCall(type="search", action=f"for regex {m.group(1)}"),
    ),
    # Searched for regex search|Search (**/tests/unit/**), no results
    (
        re.compile(r"^Searched\s+for\s+(regex|text)\s+(.+?),\s*(?:no results|no matches)\s*$"),
        lambda m: ToolCall(
            type="search", action=f"{m.group(1)} {m.group(2)}", output="0 results"
        ),
    ),
    # Searched (**/src/components/**), no results
    (
        re.compile(r"^Searched\s+\(([^)]+)\),\s*(?:no results|no matches)\s*$"),
        lambda m: ToolCall(type="search", action=m.group(1), output="0 results"),
    ),
    # Searched `pattern`, no matches
    (
        re.compile(r"^Searched\s+`?([^`,]+?)`?,\s*(?:no results|no matches)\s*$"),
        lambda m: ToolCall(type="search", action=m.group(1), output="0 results"),
    ),
    (
        re.compile(r"^Got output for `(.+?)` task"),
        lambda m: ToolCall(type="run", action=m.group(1)),
    ),
]


def match_tool_call(line: str) -> Optional[ToolCall]:
    """Build a tool call from a single transcript line, or return None."""
    for pattern, build in _TOOL_RECOGNIZERS:
        m = pattern.match(line)
        if m:
            tool_call = build(m)
            tool_call.raw_action = line.strip()
            return apply_result_count(tool_call)
    return None


# ── Parser ──────────────────────────────────────────────────────────


@dataclass
class _TextState:
    """Cursors for one parse. Created per call and dropped on return."""

    messages: list[ChatMessage] = field(default_factory=list)
    message: Optional[ChatMessage] = None
    segments: SegmentList = field(default_factory=SegmentList)
    text_lines: list[str] = field(default_factory=list)
    mode: str = NORMAL
    code_language: str = "plaintext"
    code_lines: list[str] = field(default_factory=list)
    tool_input_lines: list[str] = field(default_factory=list)
    last_tool_call: Optional[ToolCall] = None
    message_count: int = 0

    def flush_text(self) -> None:
        if self.text_lines:
            self.segments.add_text("\n".join(self.text_lines))
            self.text_lines = []


class TextLogParser(LogParser):
    """Parser for copy-pasted chat transcripts."""

    format = "text"

    def __init__(self, user_name: str | None = None, assistant_prefix: str | None = None):
        self.user_name = user_name or get_user_name()
        self.assistant_prefix = assistant_prefix or get_assistant_prefix()
        self._user_re = re.compile(rf"^{re.escape(self.user_name)}:\s*(.+)")

    def parse(self, content: str) -> ParsedSession:
        state = _TextState()
        for line in _LINE_SPLIT_RE.split(content):
            self._feed(state, line)

        if state.mode == IN_CODE_BLOCK:
            logger.debug("Unterminated code block at end of transcript")
            self._close_code_block(state)
        elif state.mode == IN_TOOL_INPUT:
            self._end_tool_input(state, "\n".join(state.tool_input_lines))
        self._finalize_message(state)

        return ParsedSession.from_messages(state.messages)

    # ── Line classification ──────────────────────────────────────────

    def _feed(self, state: _TextState, line: str) -> None:
        if state.mode == IN_CODE_BLOCK:
            if _is_fence(line):
                self._close_code_block(state)
            else:
                state.code_lines.append(line)
            return

        if (
            line.startswith("Searched ")
            and MULTI_SEARCH_DELIMITER in line
            and state.message is not None
        ):
            if state.mode == IN_TOOL_INPUT:
                self._abandon_tool_input(state)
            state.flush_text()
            self._emit_multi_search(state, line)
            return

        if _is_fence(line):
            if state.mode == IN_TOOL_INPUT:
                self._abandon_tool_input(state)
            state.flush_text()
            state.mode = IN_CODE_BLOCK
            state.code_language = line.strip()[3:].strip() or "plaintext"
            state.code_lines = []
            return

        if state.mode == IN_TOOL_INPUT:
            if self._collect_tool_input(state, line):
                return
            # Section boundary: the input has been closed, classify the line afresh.
            self._feed(state, line)
            return

        user_match = self._user_re.match(line)
        if user_match:
            self._start_message(state, "user", user_match.group(1))
            return

        if line.startswith(self.assistant_prefix):
            self._start_message(state, "assistant", line[len(self.assistant_prefix):].strip())
            return

        if state.message is None:
            # Preamble before the first header carries no turn to attach to.
            return

        ref_match = _FILE_REF_RE.search(line)
        if ref_match:
            state.flush_text()
            self._record_file_reference(state, line, ref_match)
            return

        completed = _COMPLETED_INPUT_RE.match(line)
        if completed:
            state.flush_text()
            self._start_tool_input(state, completed.group(1).strip())
            return

        tool_call = match_tool_call(line)
        if tool_call:
            state.flush_text()
            state.segments.add_tool_call(tool_call)
            state.last_tool_call = tool_call
            return

        task = _parse_task_status(line)
        if task:
            state.flush_text()
            state.message.tasks.append(task)
            return

        state.text_lines.append(line)

    # ── Messages ─────────────────────────────────────────────────────

    def _start_message(self, state: _TextState, role: str, first_line: str) -> None:
        self._finalize_message(state)
        state.message_count += 1
        state.message = ChatMessage(id=f"msg_{state.message_count}", role=role)
        state.segments = SegmentList()
        state.text_lines = [first_line]
        state.last_tool_call = None

    def _finalize_message(self, state: _TextState) -> None:
        if state.message is None:
            return
        state.flush_text()
        message = state.message
        message.segments = state.segments.items
        if message.segments or message.file_references:
            state.messages.append(message)
        state.message = None

    # ── Code blocks ──────────────────────────────────────────────────

    def _close_code_block(self, state: _TextState) -> None:
        state.mode = NORMAL
        if state.message is not None:
            state.segments.add_code_block(state.code_language, "\n".join(state.code_lines))
        state.code_lines = []

    # ── Tool calls and their input ───────────────────────────────────

    def _emit_multi_search(self, state: _TextState, line: str) -> None:
        parts = line.split(MULTI_SEARCH_DELIMITER)
        fragments = [parts[0]] + ["Searched " + part for part in parts[1:]]
        for fragment in fragments:
            fragment = fragment.strip()
            if not fragment:
                continue
            tool_call = match_tool_call(fragment)
            if tool_call is None or tool_call.type != "search":
                action = fragment[len("Searched "):] if fragment.startswith("Searched ") else fragment
                tool_call = apply_result_count(ToolCall(
                    type="search", action=action.strip(), raw_action=fragment,
                ))
            state.segments.add_tool_call(tool_call)
            state.last_tool_call = tool_call

    def _record_file_reference(self, state: _TextState, line: str, m: re.Match) -> None:
        path = m.group(1)
        state.message.file_references.append(FileReference(path=path, lines=m.group(2)))
        if line.startswith("Read"):
            state.segments.add_tool_call(ToolCall(
                type="read",
                action=f"Read {basename(path)}",
                raw_action=line.strip(),
                input=path,
            ))

    def _start_tool_input(self, state: _TextState, inline: str) -> None:
        if state.last_tool_call is None:
            logger.debug("'Completed with input' without a preceding tool call")
            return

        if not inline:
            state.mode = IN_TOOL_INPUT
            state.tool_input_lines = []
            return

        if inline.startswith(("{", "[")):
            try:
                json.loads(inline)
            except ValueError:
                state.mode = IN_TOOL_INPUT
                state.tool_input_lines = [inline]
                return

        state.last_tool_call.input = inline
        state.last_tool_call = None

    def _collect_tool_input(self, state: _TextState, line: str) -> bool:
        """Add a line to pending tool input. Returns False at a section boundary."""
        state.tool_input_lines.append(line)
        joined = "\n".join(state.tool_input_lines)
        try:
            json.loads(joined)
        except ValueError:
            if line.strip() and not self._is_section_start(line):
                return True
            state.tool_input_lines.pop()
            logger.debug("Tool input ended before valid JSON; keeping it as raw text")
            self._end_tool_input(state, "\n".join(state.tool_input_lines))
            return False

        self._end_tool_input(state, joined)
        return True

    def _abandon_tool_input(self, state: _TextState) -> None:
        self._end_tool_input(state, "\n".join(state.tool_input_lines))

    def _end_tool_input(self, state: _TextState, raw: str) -> None:
        if state.last_tool_call is not None and raw.strip():
            state.last_tool_call.input = raw
        state.mode = NORMAL
        state.tool_input_lines = []
        state.last_tool_call = None

    def _is_section_start(self, line: str) -> bool:
        return (
            not line.strip()
            or line.startswith(f"{self.user_name}:")
            or line.startswith(self.assistant_prefix)
            or line.startswith(_SECTION_MARKERS)
        )


def _is_fence(line: str) -> bool:
    return line.strip().startswith("```")


def _parse_task_status(line: str) -> Optional[TaskStatus]:
    created = _CREATED_TODOS_RE.match(line)
    if created:
        return TaskStatus(title=f"Created {created.group(1)} todos", status="completed")

    completed = _COMPLETED_TASK_RE.match(line)
    if completed:
        return TaskStatus(
            title=completed.group(1),
            status="completed",
            index=completed.group(2),
        )
    return None
