"""
Local tool registry for NetCheck.

Local tools are plain functions that take keyword arguments.  They sit beside the remote (MCP)
catalog and are offered to the model under the same protocol, described by a JSON schema built
from their signature.
"""

import inspect
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    TypedDict,
    get_type_hints,
)

logger = logging.getLogger(__name__)

TOOL_REGISTRY: Dict[str, Callable] = {}
"""Global registry of local tool functions, by tool name."""

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def register_tool(name: str) -> Callable:
    """
    Register the decorated function as local tool *name*.

        @register_tool("parse_json")
        def parse_json(file_content: str) -> Optional[str]:
            ...

    Raises
    ------
    ValueError
        If *name* is already taken.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(fn: Callable) -> Callable:
        TOOL_REGISTRY[name] = fn
        return fn

    return wrapper


class ToolSchema(TypedDict):
    """Description of one local tool."""

    description: str
    input_schema: Dict[str, Any]


def _input_schema(fn: Callable) -> Dict[str, Any]:
    hints = get_type_hints(fn)
    properties: Dict[str, Any] = {}
    required = []
    for param_name, param in inspect.signature(fn).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param_name] = {"type": _JSON_TYPES.get(hints.get(param_name), "string")}
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    return {"type": "object", "properties": properties, "required": required}


def get_tool_schemas() -> Mapping[str, ToolSchema]:
    """Describe every registered tool: docstring plus a JSON schema of its parameters."""
    return {
        name: ToolSchema(description=(fn.__doc__ or "").strip(), input_schema=_input_schema(fn))
        for name, fn in TOOL_REGISTRY.items()
    }


# Register the built-in tools.
from netcheck.tools import parse_tools  # noqa: E402,F401  pylint: disable=wrong-import-position
