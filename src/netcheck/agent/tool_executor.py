"""
Dispatches tool calls and wraps errors.

Two layers live here:

* :func:`execute_tool` runs a function from the local ``netcheck.tools`` registry and raises
  :class:`ToolExecutionError` on any problem.
* :class:`ToolGateway` fronts every catalog invoker for the planner loop.  It normalizes the
  arguments a model produced and never raises for tool problems: failures come back as
  ``{"tool": ..., "error": True, "message": ...}`` so one broken call cannot abort a run.
"""

import json
import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Sequence,
)

from pydantic import BaseModel

from netcheck.core.schema import ToolDescriptor
from netcheck.tools import TOOL_REGISTRY
from netcheck.tools.catalog import ToolInvoker

logger = logging.getLogger(__name__)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


def execute_tool(name: str, args: Dict[str, Any] | None = None) -> Any:
    """
    Look up *name* in the local registry and invoke it with *args*.

    Parameters
    ----------
    name:
        The registered tool name.
    args:
        Keyword arguments to pass verbatim to the tool function.  If *None*,
        an empty dict is assumed.

    Returns
    -------
    Any
        Whatever the tool function returns.

    Raises
    ------
    ToolExecutionError
        If the tool is missing or its invocation raises an exception.
    """

    if args is None:
        args = {}

    tool_fn = TOOL_REGISTRY.get(name)
    if tool_fn is None:
        raise ToolExecutionError(f"Tool '{name}' is not registered.")

    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        return tool_fn(**args)
    except TypeError as exc:
        # Argument mismatch — give the caller a clean exception.
        logger.exception("Argument error while executing tool '%s'", name)
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc


# ---------------------------------------------------------------------------
# Argument normalization
# ---------------------------------------------------------------------------
def _coerce_number(value: int | float) -> int | float:
    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return value
        return float(value)
    if value.is_integer() and _INT64_MIN <= value <= _INT64_MAX:
        return int(value)
    return value


def _coerce_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        return _coerce_number(value)
    if isinstance(value, Mapping):
        return _coerce_object(value)
    if isinstance(value, (list, tuple)):
        # Arrays travel as their JSON text, not as structured values.
        return json.dumps(list(value))
    return value


def _coerce_object(obj: Mapping[Any, Any]) -> Dict[str, Any]:
    return {str(key): _coerce_value(value) for key, value in obj.items()}


def _object_fields(obj: Any) -> Any:
    return getattr(obj, "__dict__", str(obj))


def normalize_arguments(raw: Any) -> Dict[str, Any]:
    """
    Coerce whatever the model supplied as tool arguments into one string-keyed dict.

    Accepts ``None`` or blank text, JSON text, a mapping, a pydantic model, or any other
    JSON-serializable payload.  Anything that does not end up as a JSON object yields ``{}``.
    """
    if raw is None:
        return {}
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(mode="json")
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            raw = json.loads(raw)
        except (ValueError, RecursionError):
            return {}
    if not isinstance(raw, Mapping):
        # Last resort: serialize & deserialize
        try:
            raw = json.loads(json.dumps(raw, default=_object_fields))
        except (TypeError, ValueError, RecursionError):
            return {}
        if not isinstance(raw, dict):
            return {}
    try:
        return _coerce_object(raw)
    except RecursionError:
        logger.warning("Tool arguments are nested too deeply; sending none")
        return {}


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
def tool_failure(name: str, message: str) -> Dict[str, Any]:
    """Structured failure payload handed back to the model."""
    return {"tool": name, "error": True, "message": message}


class ToolGateway:
    """Name-indexed registry of tool invokers shared, read-only, by every run."""

    def __init__(self, invokers: Sequence[ToolInvoker], case_insensitive: bool = False) -> None:
        self.case_insensitive = case_insensitive
        self._invokers: Dict[str, ToolInvoker] = {}
        for invoker in invokers:
            key = self._key(invoker.name)
            if key in self._invokers:
                logger.warning("Tool '%s' registered twice; keeping the first", invoker.name)
                continue
            self._invokers[key] = invoker

    def _key(self, name: str) -> str:
        return name.lower() if self.case_insensitive else name

    @property
    def descriptors(self) -> List[ToolDescriptor]:
        return [invoker.descriptor for invoker in self._invokers.values()]

    @property
    def tool_names(self) -> List[str]:
        return [invoker.name for invoker in self._invokers.values()]

    def resolve(self, name: str | None) -> ToolInvoker | None:
        """Return the invoker registered under *name*, or *None*."""
        if not name:
            return None
        return self._invokers.get(self._key(name.strip()))

    def has_tool(self, name: str | None) -> bool:
        return self.resolve(name) is not None

    async def invoke(self, name: str, raw_arguments: Any = None) -> Dict[str, Any]:
        """
        Invoke tool *name* with *raw_arguments* and return a result payload.

        Success yields ``{"tool": name, "error": False, "result": ...}``; unknown tools and
        exceptions yield :func:`tool_failure`.  Task cancellation is not caught.
        """
        invoker = self.resolve(name)
        if invoker is None:
            logger.warning("Tool '%s' is not registered", name)
            return tool_failure(name, f"Tool '{name}' is not registered.")

        arguments = normalize_arguments(raw_arguments)
        started = time.perf_counter()
        logger.info("Tool '%s' started", invoker.name)
        logger.debug("Tool '%s' arguments: %s", invoker.name, arguments)
        try:
            result = await invoker.invoke(arguments)
        except Exception as exc:  # pylint: disable=broad-except
            elapsed = time.perf_counter() - started
            logger.exception("Tool '%s' failed after %.2fs", invoker.name, elapsed)
            return tool_failure(invoker.name, f"{type(exc).__name__}: {exc}")

        elapsed = time.perf_counter() - started
        logger.info("Tool '%s' finished in %.2fs", invoker.name, elapsed)
        return {"tool": invoker.name, "error": False, "result": result}
