"""Parser for the structured JSON chat export.

Export layout::

    {
      "requesterUsername": "...",
      "responderUsername": "...",
      "requests": [
        {
          "requestId": "request_1",
          "message": {"text": "Fix the footer"},
          "variableData": {"variables": [{"kind": "file", "name": "Footer.tsx", ...}]},
          "response": [ ...response items... ],
          "result": {"metadata": {"toolCallRounds": [...], "toolCallResults": {...}}}
        }
      ]
    }

Response item kinds:
- plain ``{"value": "markdown"}``: appended to the running text
- "inlineReference": spliced into the running text as a link or inline code
- "thinking": reasoning block, deduplicated by id
- "toolInvocationSerialized": one tool call
- "textEditGroup": edits, attached to the preceding replace tool call
- "codeblockUri", "prepareToolInvocation", "undoStop", "mcpServersStarting": skipped
"""

import json
import logging
import re
from typing import Optional

from ..core import ChatMessage, ParsedSession, TextSegment, ToolCall, VariableData
from ..normalize import (
    SegmentList,
    apply_result_count,
    basename,
    collect_file_edits,
    group_tool_call,
    is_fence_only,
)
from .base import InvalidFormatError, LogParser

logger = logging.getLogger(__name__)

SKIP_KINDS = frozenset({
    "codeblockUri",
    "textEditGroup",
    "prepareToolInvocation",
    "undoStop",
    "mcpServersStarting",
})
REPLACE_TOOL_IDS = frozenset({"copilot_replaceString", "copilot_multiReplaceString"})

# Checked in order; more specific ids first ("runTests" before "run").
_TOOL_ID_TYPES = [
    (re.compile(r"runSubagent", re.I), "subagent"),
    (re.compile(r"applyPatch", re.I), "patch"),
    (re.compile(r"multiReplaceString|replaceString", re.I), "replace"),
    (re.compile(r"runTests|test", re.I), "test"),
    (re.compile(r"read", re.I), "read"),
    (re.compile(r"search", re.I), "search"),
    (re.compile(r"navigate", re.I), "navigate"),
    (re.compile(r"click", re.I), "click"),
    (re.compile(r"type", re.I), "type"),
    (re.compile(r"screenshot|snapshot", re.I), "screenshot"),
    (re.compile(r"run", re.I), "run"),
    (re.compile(r"todo", re.I), "todo"),
]

_USING_WRAPPER_RE = re.compile(r"""^Using\s*["'](.+?)["']\s*\.?$""")
_RAN_PREFIX_RE = re.compile(r"^Ran\s+")
_SEARCHED_RE = re.compile(r"^Searched\b")
_READ_LINK_RE = re.compile(r"\[\]\(file://([^)]+)\)")
_FILE_LIKE_RE = re.compile(r"\.\w+#?L?\d*$")
_CONSOLE_RE = re.compile(r"### New console messages\n([\s\S]*?)(?=\n###|\Z)")
_PAGE_STATE_RE = re.compile(r"### Page state[\s\S]*?```yaml\n([\s\S]*?)\n```")


def map_tool_id(tool_id: str) -> str:
    """Map a VS Code tool id to a ToolCall type."""
    for pattern, tool_type in _TOOL_ID_TYPES:
        if pattern.search(tool_id or ""):
            return tool_type
    return "other"


class JsonExportParser(LogParser):
    """Parser for ``{"requests": [...]}`` chat session exports."""

    format = "json"

    def parse(self, content: str) -> ParsedSession:
        try:
            data = json.loads(content)
            messages: list[ChatMessage] = []
            for request in data["requests"]:
                messages.extend(self._parse_request(request))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Failed to parse JSON chat export: %s", e)
            raise InvalidFormatError(self.format, "Invalid JSON chat export format") from e

        return ParsedSession.from_messages(messages)

    # ── Requests ─────────────────────────────────────────────────────

    def _parse_request(self, request: dict) -> list[ChatMessage]:
        request_id = request.get("requestId", "")
        messages = []

        text = request["message"].get("text")
        if text:
            messages.append(ChatMessage(
                id=request_id,
                role="user",
                segments=[TextSegment(content=text, order=0)],
                variable_data=_parse_variable_data(request.get("variableData")),
            ))

        response = request.get("response") or []
        metadata = (request.get("result") or {}).get("metadata") or {}
        assistant = self._parse_response(
            request_id,
            response,
            metadata.get("toolCallResults") or {},
            metadata.get("toolCallRounds") or [],
        )
        if assistant:
            messages.append(assistant)
        return messages

    def _parse_response(
        self,
        request_id: str,
        items: list,
        tool_call_results: dict,
        tool_call_rounds: list,
    ) -> Optional[ChatMessage]:
        """Fold response items into one assistant message.

        Text is buffered until something that must keep its own position
        (thinking, tool call) arrives, then flushed with fenced code split
        out into code-block segments.
        """
        segments = SegmentList()
        buffer = ""
        last_top_level: Optional[ToolCall] = None
        seen_thinking: set[str] = set()

        for index, item in enumerate(items):
            if not isinstance(item, dict):
                logger.debug("Skipping non-object response item in %s", request_id)
                continue

            kind = item.get("kind")
            if kind in SKIP_KINDS:
                continue

            if kind == "thinking":
                value = _join_text(item.get("value"))
                if not value or (item.get("metadata") or {}).get("vscodeReasoningDone"):
                    continue
                thinking_id = item.get("id")
                if thinking_id:
                    if thinking_id in seen_thinking:
                        continue
                    seen_thinking.add(thinking_id)
                segments.add_markdown(buffer)
                buffer = ""
                segments.add_thinking(value)
                continue

            if kind == "inlineReference":
                buffer += _inline_reference_text(item)
                continue

            value = item.get("value")
            if isinstance(value, str):
                trimmed = value.strip()
                if trimmed and not is_fence_only(trimmed):
                    buffer += value
                continue

            if kind == "toolInvocationSerialized":
                segments.add_markdown(buffer)
                buffer = ""
                tool_call = self._parse_tool_call(item, tool_call_results, tool_call_rounds)
                if item.get("toolId") in REPLACE_TOOL_IDS:
                    tool_call.file_edits = collect_file_edits(items, index + 1)
                last_top_level = group_tool_call(segments, tool_call, last_top_level)
                continue

            logger.debug("Ignoring response item of kind %r in %s", kind, request_id)

        segments.add_markdown(buffer)
        if not segments:
            return None
        return ChatMessage(
            id=f"{request_id}_response",
            role="assistant",
            segments=segments.items,
        )

    # ── Tool calls ───────────────────────────────────────────────────

    def _parse_tool_call(
        self,
        item: dict,
        tool_call_results: dict,
        tool_call_rounds: list,
    ) -> ToolCall:
        tool_id = item.get("toolId") or ""
        tool_call_id = item.get("toolCallId")
        raw_action = _message_text(item.get("pastTenseMessage") or item.get("invocationMessage"))
        action = _RAN_PREFIX_RE.sub("", raw_action)
        tool_type = map_tool_id(tool_id)

        tool_call = ToolCall(
            type=tool_type,
            action=action,
            raw_action=raw_action,
            status="completed" if item.get("isComplete") is True else "pending",
            tool_call_id=tool_call_id,
            from_sub_agent=item.get("fromSubAgent") is True,
            is_subagent_root=bool(re.search(r"runSubagent", tool_id, re.I)),
        )

        if tool_type == "subagent":
            _fill_subagent_io(tool_call, tool_call_results, tool_call_rounds)

        if tool_type == "read":
            link = _READ_LINK_RE.search(action)
            if link:
                path = link.group(1)
                tool_call.action = f"Read {basename(path)}"
                tool_call.input = tool_call.input or path

        result_details = item.get("resultDetails")
        if isinstance(result_details, dict):
            _apply_result_details(tool_call, result_details)

        source = item.get("source")
        if isinstance(source, dict) and source.get("type") == "mcp":
            tool_call.mcp_server = source.get("serverLabel") or source.get("label")

        if tool_call.type != "search" and _SEARCHED_RE.match(raw_action):
            tool_call.type = "search"
        return apply_result_count(tool_call)


def _message_text(message) -> str:
    """Resolve a string or ``{"value": ...}`` message, dropping a ``Using "X".`` wrapper."""
    if isinstance(message, dict):
        text = message.get("value") or ""
    elif isinstance(message, str):
        text = message
    else:
        text = ""
    if not text:
        return "Unknown action"
    return _USING_WRAPPER_RE.sub(r"\1", text)


def _join_text(value) -> str:
    if isinstance(value, list):
        return "".join(part for part in value if isinstance(part, str))
    if isinstance(value, str):
        return value
    return ""


def _inline_reference_text(item: dict) -> str:
    """Render an inline reference as a markdown link (files) or inline code."""
    ref = item.get("inlineReference")
    if not ref:
        return ""
    name = item.get("name") or ""
    if not name and isinstance(ref, dict):
        name = ref.get("name") or ""
        if not name:
            uri = ref.get("uri") if isinstance(ref.get("uri"), dict) else ref
            path = uri.get("path") or uri.get("fsPath") or ""
            name = basename(path) if path else ""
    if not name:
        return ""
    if "/" in name or _FILE_LIKE_RE.search(name):
        return f"[{name}]({name})"
    return f"`{name}`"


def _parse_variable_data(variable_data) -> list[VariableData]:
    if not isinstance(variable_data, dict):
        return []
    return [
        VariableData(
            kind=v.get("kind", ""),
            name=v.get("name", ""),
            description=v.get("modelDescription") or v.get("description"),
            value=v.get("value"),
        )
        for v in variable_data.get("variables") or []
        if isinstance(v, dict)
    ]


def _apply_result_details(tool_call: ToolCall, details: dict) -> None:
    """Copy input, output and browser artifacts out of ``resultDetails``."""
    raw_input = details.get("input")
    if isinstance(raw_input, str) and raw_input:
        tool_call.input = raw_input
    elif raw_input:
        tool_call.input = json.dumps(raw_input, indent=2)

    if details.get("isError") is True:
        tool_call.status = "failed"

    output = details.get("output")
    if not isinstance(output, list):
        return

    for entry in output:
        if not isinstance(entry, dict) or entry.get("type") != "embed":
            continue
        value = entry.get("value")
        if entry.get("mimeType") == "image/png":
            tool_call.screenshot = value
            continue
        if not isinstance(value, str) or not value:
            continue

        tool_call.output = value
        console = _CONSOLE_RE.search(value)
        if console:
            tool_call.console_output = [
                line.strip()[1:].strip()
                for line in console.group(1).split("\n")
                if line.strip().startswith("-")
            ]
        snapshot = _PAGE_STATE_RE.search(value)
        if snapshot:
            tool_call.page_snapshot = snapshot.group(1)


def _fill_subagent_io(tool_call: ToolCall, results: dict, rounds: list) -> None:
    """Recover a sub-agent's prompt and answer from the request's tool call rounds.

    Prefers the round entry whose id matches the invocation, falling back
    to the first ``runSubagent`` call.
    """
    candidates = [
        call
        for round_ in rounds if isinstance(round_, dict)
        for call in round_.get("toolCalls") or []
        if isinstance(call, dict) and call.get("name") == "runSubagent"
    ]
    if not candidates:
        return
    call = next((c for c in candidates if c.get("id") == tool_call.tool_call_id), candidates[0])

    arguments = call.get("arguments")
    if arguments:
        try:
            args = json.loads(arguments)
        except ValueError:
            tool_call.input = arguments
        else:
            prompt = args.get("prompt") if isinstance(args, dict) else None
            tool_call.input = prompt or arguments

    result = results.get(call.get("id")) if call.get("id") else None
    if isinstance(result, dict) and result.get("content"):
        first = result["content"][0]
        if isinstance(first, dict) and first.get("value"):
            tool_call.output = first["value"]
