"""Core data models for chatlog-viewer."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

TOOL_CALL_TYPES = (
    "read",
    "search",
    "navigate",
    "click",
    "type",
    "screenshot",
    "run",
    "todo",
    "subagent",
    "replace",
    "patch",
    "test",
    "other",
)


@dataclass
class EditRange:
    """Line/column span of a single text edit (1-based, as exported)."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass
class FileEdit:
    """One replacement applied to a file by an edit tool."""

    file_path: str
    text: str
    range: Optional[EditRange] = None


@dataclass
class ToolCall:
    """A normalized record of one agent action."""

    type: str  # one of TOOL_CALL_TYPES
    action: str  # display label, e.g. "Read Button.tsx"
    raw_action: str = ""  # text as it appeared in the log
    input: Optional[str] = None
    output: Optional[str] = None
    status: str = "completed"  # "pending" | "completed" | "failed"
    normalized_result_count: Optional[int] = None  # search-like calls only
    from_sub_agent: bool = False
    is_subagent_root: bool = False
    sub_agent_calls: list["ToolCall"] = field(default_factory=list)
    file_edits: list[FileEdit] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    mcp_server: Optional[str] = None
    screenshot: Optional[str] = None  # base64 PNG
    console_output: Optional[list[str]] = None
    page_snapshot: Optional[str] = None  # YAML DOM snapshot


@dataclass
class TextSegment:
    content: str
    order: int = 0
    type: str = field(default="text", init=False)


@dataclass
class CodeBlockSegment:
    language: str
    code: str
    order: int = 0
    type: str = field(default="code_block", init=False)


@dataclass
class ToolCallSegment:
    tool_call: ToolCall
    order: int = 0
    type: str = field(default="tool_call", init=False)


@dataclass
class ThinkingSegment:
    content: str
    order: int = 0
    type: str = field(default="thinking", init=False)


ContentSegment = Union[TextSegment, CodeBlockSegment, ToolCallSegment, ThinkingSegment]


@dataclass
class FileReference:
    """A file mentioned by the log, e.g. ``Read [](file:///src/app.ts#10-20)``."""

    path: str
    lines: Optional[str] = None  # "10-20"


@dataclass
class TaskStatus:
    title: str
    status: str  # "pending" | "started" | "completed"
    index: Optional[str] = None  # "1/5"


@dataclass
class VariableData:
    """Context variable attached to a user request (file, selection, prompt...)."""

    kind: str
    name: str
    description: Optional[str] = None
    value: Any = None


@dataclass
class ChatMessage:
    """A single user or assistant turn."""

    id: str
    role: str  # "user" | "assistant"
    segments: list[ContentSegment] = field(default_factory=list)
    file_references: list[FileReference] = field(default_factory=list)
    tasks: list[TaskStatus] = field(default_factory=list)
    variable_data: list[VariableData] = field(default_factory=list)


@dataclass(frozen=True)
class SessionMetadata:
    total_messages: int
    tool_call_count: int
    file_count: int


@dataclass(frozen=True)
class ParsedSession:
    """The result of parsing one log. Built once, never modified.

    Freezing is shallow: the session and its ``messages`` tuple cannot be
    reassigned or resized, but the ChatMessage and ToolCall objects inside
    are plain dataclasses. Consumers treat them as read-only.
    """

    messages: tuple[ChatMessage, ...]
    metadata: SessionMetadata

    @classmethod
    def from_messages(cls, messages: list[ChatMessage]) -> "ParsedSession":
        """Freeze a list of messages and derive the session metadata."""
        tool_calls = sum(
            1 for msg in messages for seg in msg.segments if seg.type == "tool_call"
        )
        files = sum(len(msg.file_references) for msg in messages)
        return cls(
            messages=tuple(messages),
            metadata=SessionMetadata(
                total_messages=len(messages),
                tool_call_count=tool_calls,
                file_count=files,
            ),
        )
