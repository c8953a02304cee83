"""
Classification of one extracted JSON object into a :data:`PlannerAction`.

Models drift between two conventions: an explicit ``"action"`` discriminator, and bare objects
whose intent shows through their keys (``{"tool": ...}``, ``{"final_result": ...}``,
``{"done": true}``).  Both are accepted, in that order.  Anything else is ``UnknownAction``;
an unrecognized discriminator never defaults to a continuing action.
"""

from typing import (
    Any,
    Dict,
    Mapping,
)

from netcheck.core.schema import (
    CallToolAction,
    FinalResultAction,
    PlannerAction,
    UnknownAction,
)

CALL_TOOL_NAMES = frozenset({"call_tool", "tool_call", "call", "use_tool", "tool"})
FINAL_RESULT_NAMES = frozenset({"final_result", "final", "finish", "finalize", "done", "answer"})

TOOL_NAME_FIELDS = ("tool", "tool_name", "toolName", "name")
ARGUMENT_FIELDS = ("arguments", "args", "parameters", "input")


def _tool_name(obj: Mapping[str, Any]) -> str | None:
    for field in TOOL_NAME_FIELDS:
        value = obj.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _arguments(obj: Mapping[str, Any]) -> Any:
    for field in ARGUMENT_FIELDS:
        if field in obj:
            return obj[field]
    return None


def _call_tool(obj: Mapping[str, Any]) -> CallToolAction:
    reason = obj.get("reason")
    return CallToolAction(
        tool_name=_tool_name(obj),
        arguments=_arguments(obj),
        reason=reason if isinstance(reason, str) else None,
    )


def _final_result(obj: Mapping[str, Any]) -> FinalResultAction:
    payload = obj.get("final_result")
    return FinalResultAction(payload=payload if isinstance(payload, dict) else dict(obj))


def classify_action(obj: Dict[str, Any]) -> PlannerAction:
    """Map an extracted JSON object to a planner action."""
    # 1. explicit discriminator
    action = obj.get("action")
    if action is not None:
        label = str(action).strip().lower() if isinstance(action, str) else ""
        if label in CALL_TOOL_NAMES:
            return _call_tool(obj)
        if label in FINAL_RESULT_NAMES:
            return _final_result(obj)
        return UnknownAction(payload=obj)

    # 2. inferred from the keys present
    if "tool" in obj or "tool_name" in obj:
        return _call_tool(obj)
    if "final_result" in obj or obj.get("done") is True:
        return _final_result(obj)
    return UnknownAction(payload=obj)
