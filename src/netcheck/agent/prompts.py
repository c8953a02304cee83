"""Prompt text for the planner loop, the synthesizer and the compliance phases."""

import json
from typing import (
    Iterable,
    Sequence,
)

from netcheck.core.schema import ToolDescriptor

# ---------------------------------------------------------------------------
# Exploration
# ---------------------------------------------------------------------------
PLANNER_SYSTEM_PROMPT = """\
You are NetCheck, an agent that inspects a source repository with tools to find the .NET SDK,
runtime and target framework versions it uses.

Every reply MUST be exactly one JSON object and nothing else.  To use a tool reply with:
{"action": "call_tool", "tool": "<tool name>", "arguments": { ... }, "reason": "<why>"}
When you have read enough files to answer, reply with:
{"action": "final_result"}
No markdown, no code fences, no commentary outside the JSON object.
"""

PROTOCOL_REMINDER = """\
PROTOCOL REMINDER: your last replies contained no parseable JSON object.
Reply with exactly one JSON object, either
{"action": "call_tool", "tool": "<tool name>", "arguments": { ... }, "reason": "<why>"}
or
{"action": "final_result"}
Do not add any text before or after the object."""

MALFORMED_REPLY = "Your reply did not contain a valid JSON object. Reply with one JSON object only."

UNKNOWN_ACTION = (
    'Unrecognized action. Use "call_tool" or "final_result" only, as one JSON object.'
)

MISSING_TOOL_NAME = (
    'Your call_tool action has no tool name. Set "tool" to one of the available tools.'
)

GATE_NOT_SATISFIED = """\
You have not read any authoritative file yet ({patterns}).
Keep exploring: locate and read those files with the available tools before requesting
final_result."""

CONTINUE_OR_FINALIZE = (
    "Continue exploring with another call_tool action, or reply with "
    '{"action": "final_result"} once the relevant files have been read.'
)


def build_system_prompt(tools: Sequence[ToolDescriptor]) -> str:
    """Build the exploration system prompt with the available tools listed."""
    prompt = PLANNER_SYSTEM_PROMPT
    if tools:
        tools_info = []
        for tool in tools:
            properties = (tool.input_schema or {}).get("properties") or {}
            param_desc = ", ".join(
                f"{name}: {info.get('type', 'any') if isinstance(info, dict) else 'any'}"
                for name, info in properties.items()
            )
            tools_info.append(f"- {tool.name}({param_desc}): {tool.description}")
        prompt += "\nAvailable tools:\n" + "\n".join(tools_info)
    return prompt


def build_scan_goal(repository: str, patterns: Iterable[str]) -> str:
    """First user message of a version scan."""
    return (
        f"Repository target: {repository}\n\n"
        "Perform the complete .NET version scan (DO NOT stop after listing repository metadata):\n"
        "1. Traverse the repository using available tools until all relevant files are examined.\n"
        f"2. Read the contents of: {', '.join(patterns)}, Dockerfile*, *.yml, *.yaml.\n"
        "3. Request final_result only after those files have been read."
    )


def unknown_tool(name: str, available: Sequence[str]) -> str:
    return f"Tool '{name}' does not exist. Available tools: {', '.join(available)}."


def tool_result_message(name: str, payload: str) -> str:
    return f"Tool result ({name}):\n{payload}\n\n{CONTINUE_OR_FINALIZE}"


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------
SYNTHESIS_SYSTEM_PROMPT = """\
You convert collected repository evidence into a JSON report.
Output ONLY one JSON object EXACTLY matching this schema, no commentary, no markdown:
{"repository": "<owner/name>",
 "dotnet_versions": {"sdk_versions": ["..."],
                     "runtime_versions": ["..."],
                     "target_frameworks": ["..."]}}
- sdk_versions: SDK versions (global.json, SDK container images)
- runtime_versions: runtime or runtime container versions, if distinct
- target_frameworks: every TFM, including multi-targeting
Deduplicate values and use empty arrays when nothing was found."""


def build_synthesis_prompt(repository: str, seen: Sequence[str], evidence_json: str) -> str:
    return (
        f"Repository: {repository}\n\n"
        f"Files discovered:\n{json.dumps(list(seen), ensure_ascii=False)}\n\n"
        f"File contents (path -> content):\n{evidence_json}\n\n"
        "Produce the JSON report now."
    )


# ---------------------------------------------------------------------------
# Tagged-array phases
# ---------------------------------------------------------------------------
TAGGED_ARRAY_SYSTEM_PROMPT = """\
You review pull requests for compliance.  Every answer is a JSON array wrapped in
<{tag}></{tag}> tags and nothing else, for example:
<{tag}>[{{"PullRequestNumber": 1, "Check": "title", "Passed": false, "Reason": "..."}}]</{tag}>
Return <{tag}>[]</{tag}> when there is nothing to report."""

PHASE_CORRECTIONS = (
    "Your previous output was invalid. Wrap a JSON array in <{tag}></{tag}> tags.",
    "Your previous output was invalid AGAIN. Output ONLY <{tag}>[ ... ]</{tag}> with a valid "
    "JSON array inside. No prose.",
    "FINAL ATTEMPT. Your output must be exactly <{tag}>[...]</{tag}>. An object such as {{}} "
    "is not an array. If unsure, output <{tag}>[]</{tag}>.",
)


def phase_correction(attempt: int, tag: str) -> str:
    """Corrective prompt after *attempt* failed attempts (1-based), escalating in tone."""
    index = min(max(attempt, 1), len(PHASE_CORRECTIONS)) - 1
    return PHASE_CORRECTIONS[index].format(tag=tag)


NORMALIZE_PHASE = """\
Normalize the pull requests below into a JSON array of objects with exactly the keys
"PullRequestNumber" (integer), "Title" (string) and "Body" (string).

Pull requests:
{pull_requests}"""

TITLE_PHASE = """\
Check the title of every pull request listed below.  A title passes when it starts with a
ticket reference of the form "{prefix}-<number>" (for example "{prefix}-123 Fix login").
Report ONLY failures as objects {{"PullRequestNumber": <int>, "Check": "title", "Passed": false,
"Reason": "<why>"}}."""

BODY_PHASE = """\
Check the body of every pull request listed below.  A body passes when it is not empty and
describes the change.  Report ONLY failures as objects {{"PullRequestNumber": <int>,
"Check": "body", "Passed": false, "Reason": "<why>"}}.  The previous phase result lists title
failures and is context only.

Pull requests:
{pull_requests}"""
