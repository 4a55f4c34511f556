"""Shared test fixtures for chatlog-viewer."""

import json

import pytest


TEXT_LOG = """digitarald: Fix the footer link and check the search icon

GitHub Copilot: I'll look at the footer first.

Read [](file:///Users/test/project/src/components/Footer.tsx)
Searched for regex `View on GitHub|Footer`, 6 results
Searched for files matching `**/Footer*`, no matches

Ran Navigate to a URL
Completed with input: {
  "url": "http://localhost:3000"
}

The footer link points to the wrong repository. Here is the fix:

```typescript
const repoUrl = "https://github.com/digitarald/chatlog";
```

Created 2 todos
Starting: *Fix footer link* (1/2)
Completed: *Fix footer link* (1/2)

digitarald: Thanks!
"""


def _tool(tool_id, message, **extra):
    item = {
        "kind": "toolInvocationSerialized",
        "toolId": tool_id,
        "pastTenseMessage": {"value": message},
        "isComplete": True,
    }
    item.update(extra)
    return item


@pytest.fixture
def text_log():
    """A copy-pasted transcript with two user turns and one assistant turn."""
    return TEXT_LOG


@pytest.fixture
def json_export_data():
    """A JSON chat export covering text, tools, edits, thinking and sub-agents.

    Request 1 response order: text, read, text, replace (+2 edit groups), text.
    Request 2: a sub-agent root followed by two calls made inside the sub-agent.
    """
    return {
        "requesterUsername": "digitarald",
        "responderUsername": "GitHub Copilot",
        "requests": [
            {
                "requestId": "request_1",
                "message": {"text": "Fix the footer link"},
                "variableData": {
                    "variables": [
                        {
                            "kind": "file",
                            "name": "Footer.tsx",
                            "modelDescription": "Footer component",
                            "value": {"path": "/src/Footer.tsx"},
                        },
                    ],
                },
                "response": [
                    {"value": "Let me read the footer."},
                    {
                        "kind": "thinking",
                        "id": "think-1",
                        "value": "The link is probably hardcoded.",
                    },
                    {
                        "kind": "thinking",
                        "id": "think-1",
                        "value": "The link is probably hardcoded.",
                    },
                    {"kind": "prepareToolInvocation", "toolName": "copilot_readFile"},
                    _tool(
                        "copilot_readFile",
                        "Read [](file:///src/components/Footer.tsx)",
                        toolCallId="call_read",
                    ),
                    {"value": "Found it. "},
                    {
                        "kind": "inlineReference",
                        "inlineReference": {"name": "Footer.tsx"},
                    },
                    {"value": " has the wrong link."},
                    _tool(
                        "copilot_replaceString",
                        'Using "Replace String in File".',
                        toolCallId="call_replace",
                    ),
                    {"value": "```"},
                    {
                        "kind": "textEditGroup",
                        "uri": {"path": "/src/components/Footer.tsx"},
                        "edits": [
                            [
                                {
                                    "text": "https://github.com/digitarald/chatlog",
                                    "range": {
                                        "startLineNumber": 3,
                                        "startColumn": 5,
                                        "endLineNumber": 3,
                                        "endColumn": 40,
                                    },
                                },
                            ],
                            [],
                        ],
                    },
                    {
                        "kind": "textEditGroup",
                        "uri": "file:///src/components/Header.tsx",
                        "edits": [[{"text": "header"}]],
                    },
                    {"kind": "undoStop"},
                    {"value": "Done:\n\n```ts\nconst x = 1;\n```\nAll fixed."},
                    {
                        "kind": "textEditGroup",
                        "uri": {"path": "/src/late.ts"},
                        "edits": [[{"text": "ignored"}]],
                    },
                ],
            },
            {
                "requestId": "request_2",
                "message": {"text": "Audit the tests"},
                "response": [
                    _tool(
                        "runSubagent",
                        "Audit test coverage",
                        toolCallId="call_sub",
                    ),
                    _tool(
                        "copilot_findTextInFiles",
                        "Searched for text `describe(`, 12 results",
                        fromSubAgent=True,
                    ),
                    _tool(
                        "copilot_runInTerminal",
                        "Ran `npm test`",
                        fromSubAgent=True,
                    ),
                ],
                "result": {
                    "metadata": {
                        "toolCallRounds": [
                            {
                                "toolCalls": [
                                    {
                                        "id": "call_sub",
                                        "name": "runSubagent",
                                        "arguments": json.dumps({"prompt": "Find untested modules"}),
                                    },
                                ],
                            },
                        ],
                        "toolCallResults": {
                            "call_sub": {"content": [{"value": "All modules are covered."}]},
                        },
                    },
                },
            },
        ],
    }


@pytest.fixture
def json_export(json_export_data):
    return json.dumps(json_export_data)


@pytest.fixture
def chatreplay_data():
    """A chat replay with a retried (duplicated) prompt and repeated thinking."""
    thinking = {"type": 2, "value": {"type": "thinking", "thinking": {"id": "t1", "text": "Look at README first."}}}
    return {
        "exportedAt": "2025-12-02T08:45:40.568Z",
        "totalPrompts": 3,
        "totalLogEntries": 6,
        "prompts": [
            {
                "prompt": "Read the README file",
                "hasSeen": False,
                "logs": [
                    {"id": "el_1", "kind": "element", "name": "prompt"},
                    {
                        "id": "req_1",
                        "kind": "request",
                        "type": "ChatMLSuccess",
                        "name": "panel/editAgent",
                        "response": {"type": "success", "message": ["Reading ", "the README."], "content": [thinking]},
                        "requestMessages": {"messages": [{"role": 3, "content": [thinking]}]},
                    },
                    {
                        "id": "tool_1",
                        "kind": "toolCall",
                        "tool": "read_file",
                        "args": json.dumps({"filePath": "/workspace/README.md"}),
                        "response": ["# My Project\n\nThis is a sample README."],
                    },
                ],
            },
            {
                "prompt": "Read the README file",
                "hasSeen": False,
                "logs": [
                    {
                        "id": "tool_2",
                        "kind": "toolCall",
                        "tool": "grep_search",
                        "args": json.dumps({"query": "install"}),
                        "response": ["Found 5 results"],
                    },
                ],
            },
            {
                "prompt": "Now run the tests",
                "hasSeen": False,
                "logs": [
                    {
                        "id": "req_3",
                        "kind": "request",
                        "type": "ChatMLCancelation",
                        "name": "panel/editAgent",
                    },
                    {
                        "id": "tool_3",
                        "kind": "toolCall",
                        "tool": "run_in_terminal",
                        "args": "{not json",
                        "response": {"exitCode": 0},
                    },
                ],
            },
        ],
    }


@pytest.fixture
def chatreplay(chatreplay_data):
    return json.dumps(chatreplay_data)
