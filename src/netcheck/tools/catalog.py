"""
Tool catalogs: where the planner loop gets its invokable tools from.

A catalog lists :class:`ToolInvoker` handles.  Each handle is bound to one read-only
:class:`~netcheck.core.schema.ToolDescriptor` and exposes a single coroutine, ``invoke``.
"""

import asyncio
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from netcheck.core.schema import ToolDescriptor
from netcheck.tools import (
    TOOL_REGISTRY,
    get_tool_schemas,
)

logger = logging.getLogger(__name__)


class ToolInvoker(ABC):
    """Handle bound to one tool descriptor."""

    def __init__(self, descriptor: ToolDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def invoke(self, arguments: Dict[str, Any]) -> Any:
        """Run the tool with normalized *arguments*; may raise."""


class ToolCatalog(ABC):
    """Source of tool invokers."""

    @abstractmethod
    async def list_tools(self) -> List[ToolInvoker]:
        """Return every tool this catalog can run."""

    async def __aenter__(self) -> "ToolCatalog":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


# ---------------------------------------------------------------------------
# Local tools (``netcheck.tools.TOOL_REGISTRY``)
# ---------------------------------------------------------------------------
class LocalToolInvoker(ToolInvoker):
    """Runs a function from the local registry through :func:`execute_tool`."""

    async def invoke(self, arguments: Dict[str, Any]) -> Any:
        # pylint: disable=import-outside-toplevel
        from netcheck.agent.tool_executor import execute_tool

        # Off the event loop; local tools are synchronous.
        return await asyncio.to_thread(execute_tool, self.name, arguments)


class LocalToolCatalog(ToolCatalog):
    """Exposes the registered local tools."""

    def __init__(self, names: Sequence[str] | None = None) -> None:
        self.names = list(names) if names is not None else None

    async def list_tools(self) -> List[ToolInvoker]:
        schemas = get_tool_schemas()
        invokers: List[ToolInvoker] = []
        for name in TOOL_REGISTRY:
            if self.names is not None and name not in self.names:
                continue
            schema = schemas[name]
            descriptor = ToolDescriptor(
                name=name,
                description=schema["description"],
                input_schema=schema["input_schema"],
            )
            invokers.append(LocalToolInvoker(descriptor))
        return invokers


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------
class CompositeToolCatalog(ToolCatalog):
    """Merges several catalogs; when two tools share a name the first catalog wins."""

    def __init__(self, catalogs: Sequence[ToolCatalog]) -> None:
        self.catalogs = list(catalogs)

    async def list_tools(self) -> List[ToolInvoker]:
        merged: Dict[str, ToolInvoker] = {}
        for catalog in self.catalogs:
            for invoker in await catalog.list_tools():
                if invoker.name in merged:
                    logger.warning("Duplicate tool '%s' ignored", invoker.name)
                    continue
                merged[invoker.name] = invoker
        return list(merged.values())

    async def __aenter__(self) -> "CompositeToolCatalog":
        for catalog in self.catalogs:
            await catalog.__aenter__()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        for catalog in reversed(self.catalogs):
            await catalog.__aexit__(*exc_info)
