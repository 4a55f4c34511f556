"""Tests for the JSON chat export parser."""

import json

import pytest

from chatlog_viewer.parsers import InvalidFormatError
from chatlog_viewer.parsers.json_export import JsonExportParser, map_tool_id


def parse(data):
    return JsonExportParser().parse(json.dumps(data))


def request(response, request_id="r1", text="Go", **extra):
    return {"requestId": request_id, "message": {"text": text}, "response": response, **extra}


def tool(tool_id, message, **extra):
    return {
        "kind": "toolInvocationSerialized",
        "toolId": tool_id,
        "pastTenseMessage": message,
        "isComplete": True,
        **extra,
    }


class TestFixtureExport:
    def test_messages(self, json_export):
        session = JsonExportParser().parse(json_export)
        assert [m.id for m in session.messages] == [
            "request_1", "request_1_response", "request_2", "request_2_response",
        ]
        assert [m.role for m in session.messages] == ["user", "assistant", "user", "assistant"]
        assert session.metadata.total_messages == 4
        assert session.metadata.tool_call_count == 3

    def test_assistant_segments(self, json_export):
        assistant = JsonExportParser().parse(json_export).messages[1]
        assert [s.type for s in assistant.segments] == [
            "text", "thinking", "tool_call", "text", "tool_call", "text", "code_block", "text",
        ]
        assert [s.order for s in assistant.segments] == list(range(8))
        assert assistant.segments[3].content == "Found it. [Footer.tsx](Footer.tsx) has the wrong link."
        assert assistant.segments[6].language == "ts"

    def test_read_call(self, json_export):
        read = JsonExportParser().parse(json_export).messages[1].segments[2].tool_call
        assert read.type == "read"
        assert read.action == "Read Footer.tsx"
        assert read.input == "/src/components/Footer.tsx"
        assert read.tool_call_id == "call_read"

    def test_replace_collects_edits(self, json_export):
        replace = JsonExportParser().parse(json_export).messages[1].segments[4].tool_call
        assert replace.type == "replace"
        assert replace.action == "Replace String in File"
        assert [(e.file_path, e.text) for e in replace.file_edits] == [
            ("/src/components/Footer.tsx", "https://github.com/digitarald/chatlog"),
            ("/src/components/Header.tsx", "header"),
        ]
        assert replace.file_edits[0].range.start_column == 5
        assert replace.file_edits[1].range is None

    def test_variable_data(self, json_export):
        user = JsonExportParser().parse(json_export).messages[0]
        (var,) = user.variable_data
        assert (var.kind, var.name, var.description) == ("file", "Footer.tsx", "Footer component")

    def test_sub_agent_grouping(self, json_export):
        assistant = JsonExportParser().parse(json_export).messages[3]
        assert len(assistant.segments) == 1
        root = assistant.segments[0].tool_call
        assert root.type == "subagent"
        assert root.is_subagent_root
        assert root.input == "Find untested modules"
        assert root.output == "All modules are covered."

        search, run = root.sub_agent_calls
        assert search.from_sub_agent and run.from_sub_agent
        assert search.type == "search"
        assert search.normalized_result_count == 12
        assert run.type == "run"
        assert run.action == "`npm test`"
        assert run.raw_action == "Ran `npm test`"


class TestResponseItems:
    def test_text_tool_interleaving(self):
        session = parse({"requests": [request([
            {"value": "One"},
            tool("copilot_runInTerminal", "Ran `ls`"),
            {"value": "Two"},
            tool("copilot_runInTerminal", "Ran `pwd`"),
            {"value": "Three"},
        ])]})
        segments = session.messages[1].segments
        assert [s.type for s in segments] == ["text", "tool_call", "text", "tool_call", "text"]
        assert [s.order for s in segments] == [0, 1, 2, 3, 4]

    def test_fence_only_and_structural_items_are_skipped(self):
        session = parse({"requests": [request([
            {"value": "```"},
            {"value": "```ts\n"},
            {"kind": "codeblockUri", "uri": {"path": "/a.ts"}},
            {"kind": "undoStop"},
            {"kind": "mcpServersStarting"},
            {"value": "Hello"},
        ])]})
        segments = session.messages[1].segments
        assert [(s.type, s.content) for s in segments] == [("text", "Hello")]

    def test_thinking_rules(self):
        session = parse({"requests": [request([
            {"kind": "thinking", "id": "a", "value": "first"},
            {"kind": "thinking", "id": "a", "value": "first again"},
            {"kind": "thinking", "id": "b", "value": ""},
            {"kind": "thinking", "id": "c", "value": "done", "metadata": {"vscodeReasoningDone": True}},
            {"kind": "thinking", "value": ["part ", "two"]},
        ])]})
        segments = session.messages[1].segments
        assert [s.content for s in segments] == ["first", "part two"]

    def test_inline_reference_symbol_is_code(self):
        session = parse({"requests": [request([
            {"value": "Call "},
            {"kind": "inlineReference", "inlineReference": {"name": "parseLog"}},
            {"value": " next."},
        ])]})
        assert session.messages[1].segments[0].content == "Call `parseLog` next."

    def test_inline_reference_from_uri_path(self):
        session = parse({"requests": [request([
            {"kind": "inlineReference", "inlineReference": {"uri": {"path": "/src/lib/parser.ts"}}},
        ])]})
        assert session.messages[1].segments[0].content == "[parser.ts](parser.ts)"

    def test_empty_user_text_and_empty_response(self):
        session = parse({"requests": [request([], text="")]})
        assert session.messages == ()

    def test_edits_stop_at_next_tool(self):
        session = parse({"requests": [request([
            tool("copilot_replaceString", "Edited a.ts"),
            tool("copilot_readFile", "Read b.ts"),
            {"kind": "textEditGroup", "uri": {"path": "/a.ts"}, "edits": [[{"text": "x"}]]},
        ])]})
        replace, read = [s.tool_call for s in session.messages[1].segments]
        assert replace.file_edits == []
        assert read.file_edits == []

    def test_orphan_sub_agent_call_is_top_level(self):
        session = parse({"requests": [request([
            tool("copilot_readFile", "Read a.ts", fromSubAgent=True),
        ])]})
        (segment,) = session.messages[1].segments
        assert segment.tool_call.from_sub_agent


class TestToolCallFields:
    def test_using_wrapper_and_invocation_fallback(self):
        session = parse({"requests": [request([
            {
                "kind": "toolInvocationSerialized",
                "toolId": "copilot_applyPatch",
                "invocationMessage": 'Using "Apply Patch"',
                "isComplete": False,
            },
        ])]})
        call = session.messages[1].segments[0].tool_call
        assert call.type == "patch"
        assert call.action == "Apply Patch"
        assert call.status == "pending"

    def test_missing_message_defaults(self):
        session = parse({"requests": [request([
            {"kind": "toolInvocationSerialized", "toolId": "mystery"},
        ])]})
        call = session.messages[1].segments[0].tool_call
        assert call.action == "Unknown action"
        assert call.type == "other"

    def test_searched_message_forces_search(self):
        session = parse({"requests": [request([
            tool("copilot_findFiles", "Searched for files matching `**/*.ts`, 3 matches"),
            tool("copilot_findFiles", "Searched codebase for \"auth\", 4 results"),
        ])]})
        first, second = [s.tool_call for s in session.messages[1].segments]
        assert first.type == "search"
        assert first.normalized_result_count is None
        assert second.normalized_result_count == 4

    def test_result_details(self):
        output = (
            "### Ran Playwright code\n"
            "### New console messages\n"
            "- [LOG] ready @ http://localhost:3000\n"
            "- [ERROR] boom\n"
            "### Page state\n"
            "- Page URL: http://localhost:3000\n"
            "```yaml\n"
            "- button \"Submit\"\n"
            "```"
        )
        session = parse({"requests": [request([
            tool(
                "mcp_playwright_browser_navigate",
                "Ran Navigate to a URL",
                source={"type": "mcp", "serverLabel": "playwright"},
                resultDetails={
                    "input": {"url": "http://localhost:3000"},
                    "output": [
                        {"type": "embed", "mimeType": "image/png", "value": "iVBORw0KGgo="},
                        {"type": "embed", "value": output},
                    ],
                },
            ),
        ])]})
        call = session.messages[1].segments[0].tool_call
        assert call.type == "navigate"
        assert call.action == "Navigate to a URL"
        assert call.mcp_server == "playwright"
        assert json.loads(call.input) == {"url": "http://localhost:3000"}
        assert call.screenshot == "iVBORw0KGgo="
        assert call.output == output
        assert call.console_output == ["[LOG] ready @ http://localhost:3000", "[ERROR] boom"]
        assert call.page_snapshot == '- button "Submit"'

    def test_error_result_marks_failed(self):
        session = parse({"requests": [request([
            tool("copilot_runInTerminal", "Ran `false`", resultDetails={"isError": True}),
        ])]})
        assert session.messages[1].segments[0].tool_call.status == "failed"

    def test_subagent_io_falls_back_to_first_round_call(self):
        session = parse({"requests": [request(
            [tool("runSubagent", "Research", toolCallId="unmatched")],
            result={"metadata": {
                "toolCallRounds": [{"toolCalls": [
                    {"id": "c1", "name": "runSubagent", "arguments": "not json"},
                ]}],
                "toolCallResults": {},
            }},
        )]})
        call = session.messages[1].segments[0].tool_call
        assert call.input == "not json"
        assert call.output is None


class TestMapToolId:
    @pytest.mark.parametrize("tool_id,expected", [
        ("runSubagent", "subagent"),
        ("copilot_applyPatch", "patch"),
        ("copilot_multiReplaceString", "replace"),
        ("runTests", "test"),
        ("copilot_readFile", "read"),
        ("copilot_searchCodebase", "search"),
        ("mcp_playwright_browser_click", "click"),
        ("mcp_playwright_browser_type", "type"),
        ("mcp_playwright_browser_take_screenshot", "screenshot"),
        ("copilot_runInTerminal", "run"),
        ("manage_todo_list", "todo"),
        ("copilot_fetchWebPage", "other"),
    ])
    def test_mapping(self, tool_id, expected):
        assert map_tool_id(tool_id) == expected


class TestInvalidInput:
    @pytest.mark.parametrize("content", [
        "{not json",
        '{"noRequests": []}',
        '{"requests": [{"requestId": "r1"}]}',
        '{"requests": "nope"}',
    ])
    def test_raises_invalid_format(self, content):
        with pytest.raises(InvalidFormatError) as exc_info:
            JsonExportParser().parse(content)
        assert exc_info.value.format == "json"
        assert str(exc_info.value) == "Invalid JSON chat export format"
        assert exc_info.value.__cause__ is not None
