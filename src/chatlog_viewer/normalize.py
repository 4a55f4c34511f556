"""Normalization helpers shared by all three log parsers.

- ``derive_result_count``: turns "6 results" / "no matches" phrasing into a number.
- ``SegmentList``: appends content segments and keeps ``order`` equal to position.
- ``split_fenced_text``: breaks accumulated markdown into text and code blocks.
- ``group_tool_call``: nests sub-agent calls under the last top-level call.
- ``collect_file_edits``: gathers ``textEditGroup`` items that follow an edit tool.
"""

import re
from typing import Optional

from .core import (
    CodeBlockSegment,
    ContentSegment,
    EditRange,
    FileEdit,
    TextSegment,
    ThinkingSegment,
    ToolCall,
    ToolCallSegment,
)

_RESULT_COUNT_RE = re.compile(r"(\d+)\s+results?")
_NO_RESULTS_RE = re.compile(r"\b(?:no results|no matches)\b", re.IGNORECASE)
_FENCE_BLOCK_RE = re.compile(r"```([a-zA-Z0-9_-]*)\n([\s\S]*?)```")
_FENCE_ONLY_RE = re.compile(r"^(?:```\w*\s*)+$")


def derive_result_count(candidate: Optional[str]) -> Optional[int]:
    """Return the number of results a search-like string reports, if any."""
    if not candidate:
        return None
    match = _RESULT_COUNT_RE.search(candidate)
    if match:
        return int(match.group(1))
    if _NO_RESULTS_RE.search(candidate) or candidate.strip() == "0 results":
        return 0
    return None


def apply_result_count(tool_call: ToolCall) -> ToolCall:
    """Fill ``normalized_result_count`` on search calls from output or raw action."""
    if tool_call.type == "search":
        tool_call.normalized_result_count = derive_result_count(
            tool_call.output or tool_call.raw_action
        )
    return tool_call


def is_fence_only(text: str) -> bool:
    """True for strings made only of bare ``` markers (with optional languages)."""
    return bool(_FENCE_ONLY_RE.match(text.strip()))


def basename(path: str) -> str:
    return path.rstrip("/").split("/")[-1] or path


class SegmentList:
    """Ordered segment accumulator for one message.

    Every segment is numbered with its index on append, so ``order``
    always equals position.
    """

    def __init__(self):
        self.items: list[ContentSegment] = []

    def __len__(self) -> int:
        return len(self.items)

    def append(self, segment: ContentSegment) -> ContentSegment:
        segment.order = len(self.items)
        self.items.append(segment)
        return segment

    def add_text(self, content: str) -> None:
        """Append trimmed text; whitespace-only text is dropped."""
        text = content.strip()
        if text:
            self.append(TextSegment(content=text))

    def add_code_block(self, language: str, code: str) -> None:
        self.append(CodeBlockSegment(language=language or "plaintext", code=code))

    def add_tool_call(self, tool_call: ToolCall) -> None:
        self.append(ToolCallSegment(tool_call=tool_call))

    def add_thinking(self, content: str) -> None:
        self.append(ThinkingSegment(content=content))

    def add_markdown(self, text: str) -> None:
        """Append text, splitting fenced code blocks into their own segments."""
        for segment in split_fenced_text(text):
            self.append(segment)


def split_fenced_text(text: str) -> list[ContentSegment]:
    """Split markdown on ```lang fences into text and code-block segments.

    Returned segments are unnumbered; ``SegmentList.append`` assigns order.
    """
    segments: list[ContentSegment] = []
    last_index = 0
    for match in _FENCE_BLOCK_RE.finditer(text):
        preceding = text[last_index:match.start()].strip()
        if preceding:
            segments.append(TextSegment(content=preceding))
        segments.append(CodeBlockSegment(
            language=match.group(1) or "plaintext",
            code=match.group(2),
        ))
        last_index = match.end()

    trailing = text[last_index:].strip()
    if trailing:
        segments.append(TextSegment(content=trailing))
    return segments


def group_tool_call(
    segments: SegmentList,
    tool_call: ToolCall,
    last_top_level: Optional[ToolCall],
) -> Optional[ToolCall]:
    """Place a tool call in the timeline and return the new top-level cursor.

    Calls flagged ``from_sub_agent`` are nested under the most recent
    top-level call. With no such call yet they are kept top-level so that
    nothing is lost, but they never become the cursor themselves.
    """
    if tool_call.from_sub_agent and last_top_level is not None:
        last_top_level.sub_agent_calls.append(tool_call)
        return last_top_level

    segments.add_tool_call(tool_call)
    if tool_call.from_sub_agent:
        return last_top_level
    return tool_call


def collect_file_edits(items: list, start: int) -> list[FileEdit]:
    """Collect ``textEditGroup`` edits that directly follow an edit tool call.

    Scanning stops at the first substantive string item or at the next
    tool invocation. Bare fence markers and empty strings do not stop it.
    """
    edits: list[FileEdit] = []
    for item in items[start:]:
        if not isinstance(item, dict):
            continue

        value = item.get("value")
        if isinstance(value, str) and value.strip() and not is_fence_only(value):
            break
        if item.get("kind") == "toolInvocationSerialized":
            break

        if item.get("kind") != "textEditGroup" or not item.get("uri") or not item.get("edits"):
            continue

        file_path = extract_file_path(item["uri"])
        for group in item["edits"]:
            if not isinstance(group, list):
                continue
            for edit in group:
                if isinstance(edit, dict):
                    edits.append(FileEdit(
                        file_path=file_path,
                        text=edit.get("text") or "",
                        range=_edit_range(edit.get("range")),
                    ))
    return edits


def extract_file_path(uri) -> str:
    """Resolve a VS Code URI (string or ``{path, fsPath}``) to a file path."""
    if isinstance(uri, str):
        return uri.replace("file://", "", 1)
    if isinstance(uri, dict):
        if uri.get("path"):
            return uri["path"]
        if uri.get("fsPath"):
            return uri["fsPath"]
    return "Unknown file"


def _edit_range(raw) -> Optional[EditRange]:
    if not isinstance(raw, dict):
        return None
    return EditRange(
        start_line=raw.get("startLineNumber") or 0,
        start_column=raw.get("startColumn") or 0,
        end_line=raw.get("endLineNumber") or 0,
        end_column=raw.get("endColumn") or 0,
    )
