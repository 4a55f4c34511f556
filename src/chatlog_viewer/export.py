"""Export parsed sessions to JSON and Markdown."""

import json

from .core import ChatMessage, ContentSegment, FileEdit, ParsedSession, ToolCall


def session_to_dict(session: ParsedSession) -> dict:
    """Convert a session to a JSON-serializable dict with camelCase keys."""
    return {
        "messages": [_message_to_dict(msg) for msg in session.messages],
        "metadata": {
            "totalMessages": session.metadata.total_messages,
            "toolCallCount": session.metadata.tool_call_count,
            "fileCount": session.metadata.file_count,
        },
    }


def session_to_json(session: ParsedSession) -> str:
    """Export a session as structured JSON."""
    return json.dumps(session_to_dict(session), indent=2, ensure_ascii=False)


def session_to_markdown(
    session: ParsedSession,
    title: str = "Chat Log",
    log_format: str | None = None,
) -> str:
    """Export a session as a readable Markdown transcript."""
    lines = [f"# {title}", ""]
    if log_format:
        lines.append(f"**Format:** {log_format}")
    lines.append(f"**Messages:** {session.metadata.total_messages}")
    lines.append(f"**Tool calls:** {session.metadata.tool_call_count}")
    lines.extend(["", "---", ""])

    for msg in session.messages:
        lines.append(f"## {msg.role.capitalize()}")
        lines.append("")
        for seg in msg.segments:
            lines.extend(_segment_to_markdown(seg))
            lines.append("")

        if msg.file_references:
            lines.append("**Files:**")
            for ref in msg.file_references:
                suffix = f" (lines {ref.lines})" if ref.lines else ""
                lines.append(f"- `{ref.path}`{suffix}")
            lines.append("")

        if msg.tasks:
            lines.append("**Tasks:**")
            for task in msg.tasks:
                mark = "x" if task.status == "completed" else " "
                index = f" ({task.index})" if task.index else ""
                lines.append(f"- [{mark}] {task.title}{index}")
            lines.append("")

        lines.extend(["---", ""])

    return "\n".join(lines)


# ── Private helpers ──────────────────────────────────────────────


def _segment_to_markdown(seg: ContentSegment) -> list[str]:
    if seg.type == "text":
        return [seg.content]
    if seg.type == "code_block":
        return [f"```{seg.language}", seg.code.rstrip("\n"), "```"]
    if seg.type == "thinking":
        return [f"> {line}" if line else ">" for line in seg.content.splitlines()]
    return _tool_call_lines(seg.tool_call, depth=0)


def _tool_call_lines(tool_call: ToolCall, depth: int) -> list[str]:
    indent = "  " * depth
    line = f"{indent}- **{tool_call.type}** {tool_call.action}"
    if tool_call.normalized_result_count is not None:
        line += f" ({tool_call.normalized_result_count} results)"
    if tool_call.status != "completed":
        line += f" _{tool_call.status}_"
    lines = [line]
    for child in tool_call.sub_agent_calls:
        lines.extend(_tool_call_lines(child, depth + 1))
    return lines


def _message_to_dict(msg: ChatMessage) -> dict:
    data = {
        "id": msg.id,
        "role": msg.role,
        "contentSegments": [_segment_to_dict(seg) for seg in msg.segments],
    }
    if msg.file_references:
        data["fileReferences"] = [
            _drop_none({"path": ref.path, "lines": ref.lines})
            for ref in msg.file_references
        ]
    if msg.tasks:
        data["tasks"] = [
            _drop_none({"title": t.title, "status": t.status, "index": t.index})
            for t in msg.tasks
        ]
    if msg.variable_data:
        data["variableData"] = [
            _drop_none({
                "kind": v.kind,
                "name": v.name,
                "description": v.description,
                "value": v.value,
            })
            for v in msg.variable_data
        ]
    return data


def _segment_to_dict(seg: ContentSegment) -> dict:
    data = {"type": seg.type, "order": seg.order}
    if seg.type == "code_block":
        data["language"] = seg.language
        data["code"] = seg.code
    elif seg.type == "tool_call":
        data["toolCall"] = _tool_call_to_dict(seg.tool_call)
    else:
        data["content"] = seg.content
    return data


def _tool_call_to_dict(tool_call: ToolCall) -> dict:
    data = _drop_none({
        "type": tool_call.type,
        "action": tool_call.action,
        "rawAction": tool_call.raw_action,
        "input": tool_call.input,
        "output": tool_call.output,
        "status": tool_call.status,
        "normalizedResultCount": tool_call.normalized_result_count,
        "toolCallId": tool_call.tool_call_id,
        "mcpServer": tool_call.mcp_server,
        "screenshot": tool_call.screenshot,
        "consoleOutput": tool_call.console_output,
        "pageSnapshot": tool_call.page_snapshot,
    })
    if tool_call.from_sub_agent:
        data["fromSubAgent"] = True
    if tool_call.is_subagent_root:
        data["isSubagentRoot"] = True
    if tool_call.sub_agent_calls:
        data["subAgentCalls"] = [_tool_call_to_dict(c) for c in tool_call.sub_agent_calls]
    if tool_call.file_edits:
        data["fileEdits"] = [_file_edit_to_dict(e) for e in tool_call.file_edits]
    return data


def _file_edit_to_dict(edit: FileEdit) -> dict:
    data = {"filePath": edit.file_path, "text": edit.text}
    if edit.range:
        data["range"] = {
            "startLine": edit.range.start_line,
            "startColumn": edit.range.start_column,
            "endLine": edit.range.end_line,
            "endColumn": edit.range.end_column,
        }
    return data


def _drop_none(data: dict) -> dict:
    return {key: value for key, value in data.items() if value is not None}
