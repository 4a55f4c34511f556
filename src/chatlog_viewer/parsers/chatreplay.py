"""Parser for chat replay exports.

A replay holds one entry per prompt, each with the raw request and tool
call log recorded while answering it::

    {
      "exportedAt": "2025-12-02T08:45:40.568Z",
      "totalPrompts": 1,
      "prompts": [
        {
          "prompt": "Read the README file",
          "logs": [
            {"kind": "request", "type": "ChatMLSuccess", "response": {"message": ["..."]}},
            {"kind": "toolCall", "id": "tool_1", "tool": "read_file",
             "args": "{\\"filePath\\": \\"/workspace/README.md\\"}", "response": ["..."]}
          ]
        }
      ]
    }
"""

import json
import logging
from typing import Optional

from ..core import ChatMessage, ParsedSession, TextSegment, ToolCall
from ..normalize import SegmentList, apply_result_count, basename, group_tool_call
from .base import InvalidFormatError, LogParser

logger = logging.getLogger(__name__)

THINKING_CONTENT_TYPE = 2
INPUT_KEYS = ("path", "filePath", "query", "command", "prompt")


def map_tool_name(tool: str) -> str:
    """Map a replay tool name (``read_file``, ``run_in_terminal``...) to a ToolCall type."""
    if tool == "runSubagent":
        return "subagent"
    if "replace" in tool or "edit" in tool:
        return "replace"
    for needle in ("test", "read", "search", "navigate", "click", "type"):
        if needle in tool:
            return needle
    if "screenshot" in tool or "snapshot" in tool:
        return "screenshot"
    if "run" in tool or "terminal" in tool:
        return "run"
    if "todo" in tool:
        return "todo"
    return "other"


def action_label(tool: str, args: dict) -> str:
    """Build a human-readable label for a tool invocation."""
    if tool == "read_file":
        return f"Read {basename(args['filePath'])}" if args.get("filePath") else "Read file"
    if tool == "list_dir":
        return f"List {basename(args['path'])}" if args.get("path") else "List directory"
    if tool in ("grep_search", "semantic_search"):
        return f'Search for "{args["query"]}"' if args.get("query") else "Search"
    if tool == "replace_string_in_file":
        return f"Edit {basename(args['filePath'])}" if args.get("filePath") else "Edit file"
    if tool == "multi_replace_string_in_file":
        return "Edit multiple files"
    if tool == "run_in_terminal":
        return f"Run {args['command']}" if args.get("command") else "Run command"
    if tool == "runSubagent":
        return str(args["description"]) if args.get("description") else "Run subagent"
    if tool == "manage_todo_list":
        return "Update tasks"
    if tool == "runTests":
        return "Run tests"
    return tool.replace("_", " ")


class ChatReplayParser(LogParser):
    """Parser for ``{"exportedAt": ..., "prompts": [...]}`` replay exports."""

    format = "chatreplay"

    def parse(self, content: str) -> ParsedSession:
        try:
            data = json.loads(content)
            messages: list[ChatMessage] = []
            previous_prompt: Optional[str] = None
            for prompt in data["prompts"]:
                text = prompt["prompt"]
                # Replays repeat a prompt on retries; only the first copy is shown.
                if text != previous_prompt:
                    messages.append(ChatMessage(
                        id=f"prompt_{len(messages)}",
                        role="user",
                        segments=[TextSegment(content=text, order=0)],
                    ))
                previous_prompt = text

                segments = self._parse_logs(prompt.get("logs") or [])
                if segments:
                    messages.append(ChatMessage(
                        id=f"response_{len(messages)}",
                        role="assistant",
                        segments=segments.items,
                    ))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Failed to parse chatreplay log: %s", e)
            raise InvalidFormatError(self.format, "Invalid chatreplay format") from e

        return ParsedSession.from_messages(messages)

    def _parse_logs(self, logs: list) -> SegmentList:
        segments = SegmentList()
        buffer = ""
        last_top_level: Optional[ToolCall] = None
        seen_thinking: set[str] = set()

        for log in logs:
            kind = log.get("kind")

            if kind == "request" and log.get("type") == "ChatMLSuccess":
                segments.add_text(buffer)
                buffer = ""
                for thinking_id, thinking in _thinking_entries(log):
                    if thinking_id is not None:
                        if thinking_id in seen_thinking:
                            continue
                        seen_thinking.add(thinking_id)
                    segments.add_thinking(thinking)

                response = log.get("response")
                message = response.get("message") if isinstance(response, dict) else None
                if isinstance(message, list):
                    text = "".join(message).strip()
                    if text:
                        buffer += text + "\n"

            elif kind == "toolCall":
                segments.add_text(buffer)
                buffer = ""
                last_top_level = group_tool_call(segments, _parse_tool_call(log), last_top_level)

        segments.add_text(buffer)
        return segments


def _parse_tool_call(log: dict) -> ToolCall:
    tool = log.get("tool") or ""
    try:
        args = json.loads(log.get("args") or "{}")
    except ValueError:
        logger.debug("Unparseable args for tool call %s", log.get("id"))
        args = {}
    if not isinstance(args, dict):
        args = {}

    tool_type = map_tool_name(tool)
    action = action_label(tool, args)
    tool_input = next((args[key] for key in INPUT_KEYS if args.get(key)), None)

    tool_call = ToolCall(
        type=tool_type,
        action=action,
        raw_action=action,
        input=str(tool_input) if tool_input is not None else None,
        output=_flatten_response(log.get("response")),
        status="completed",
        tool_call_id=log.get("id"),
        from_sub_agent=log.get("fromSubAgent") is True,
        is_subagent_root=tool_type == "subagent",
    )
    return apply_result_count(tool_call)


def _flatten_response(response) -> Optional[str]:
    if not response:
        return None
    if isinstance(response, list):
        return "\n".join(str(part) for part in response)
    if isinstance(response, str):
        return response
    return json.dumps(response, indent=2)


def _thinking_entries(log: dict):
    """Yield ``(id, text)`` for thinking blocks in a request's response and history."""
    response = log.get("response")
    sources = [response.get("content")] if isinstance(response, dict) else []
    request_messages = log.get("requestMessages")
    history = request_messages.get("messages") if isinstance(request_messages, dict) else None
    if isinstance(history, list):
        sources.extend(msg.get("content") for msg in history if isinstance(msg, dict))

    for content in sources:
        if not isinstance(content, list):
            continue
        for item in content:
            if not isinstance(item, dict) or item.get("type") != THINKING_CONTENT_TYPE:
                continue
            # Opaque parts carry a bare string value.
            value = item.get("value")
            if not isinstance(value, dict) or value.get("type") != "thinking":
                continue
            thinking = value.get("thinking")
            if not isinstance(thinking, dict):
                continue
            text = thinking.get("text")
            if isinstance(text, list):
                text = "".join(part for part in text if isinstance(part, str))
            if text:
                yield thinking.get("id"), text
