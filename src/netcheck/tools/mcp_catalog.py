"""
Remote tool catalog backed by an MCP server (e.g. ``github-mcp-server``).

Uses the official Python SDK (``mcp`` package).  When ``MCP_URL`` is configured the SSE
transport is used (with an optional bearer token), otherwise the server is spawned over stdio.
The session is opened once and shared by every run; tool descriptors are read-only.
"""

import logging
import shlex
from contextlib import AsyncExitStack
from typing import (
    Any,
    Dict,
    List,
)

from mcp import (
    ClientSession,
    StdioServerParameters,
)
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client

from netcheck.config import settings
from netcheck.core.schema import ToolDescriptor
from netcheck.tools.catalog import (
    ToolCatalog,
    ToolInvoker,
)

logger = logging.getLogger(__name__)


def _content_block(block: Any) -> Dict[str, Any]:
    if hasattr(block, "model_dump"):
        return block.model_dump(mode="json", exclude_none=True)
    return {"type": getattr(block, "type", None), "text": getattr(block, "text", None)}


class McpToolInvoker(ToolInvoker):
    """Calls one remote tool on a live :class:`ClientSession`."""

    def __init__(self, session: ClientSession, descriptor: ToolDescriptor) -> None:
        super().__init__(descriptor)
        self._session = session

    async def invoke(self, arguments: Dict[str, Any]) -> Any:
        result = await self._session.call_tool(self.name, arguments)
        # Return a simplified object the model can consume
        return {
            "is_error": bool(result.isError),
            "structured_content": result.structuredContent,
            "content": [_content_block(b) for b in (result.content or [])],
        }


class McpToolCatalog(ToolCatalog):
    """Lists and invokes tools exposed by an MCP server.

    Must be entered (``async with``) before :meth:`list_tools` is called.
    """

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        command: str | None = None,
        arguments: str | None = None,
    ) -> None:
        self.url = url if url is not None else settings.MCP_URL
        self.token = token if token is not None else settings.MCP_TOKEN
        self.command = command or settings.MCP_COMMAND
        self.arguments = arguments if arguments is not None else settings.MCP_ARGUMENTS
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None

    def _headers(self) -> Dict[str, str] | None:
        if not self.token:
            return None
        return {"Authorization": f"Bearer {self.token}"}

    async def __aenter__(self) -> "McpToolCatalog":
        stack = AsyncExitStack()
        try:
            if self.url:
                logger.info("Using SSE transport for MCP client with endpoint %s", self.url)
                read, write = await stack.enter_async_context(
                    sse_client(self.url, headers=self._headers())
                )
            else:
                logger.info("Using stdio transport for MCP client with command '%s'", self.command)
                params = StdioServerParameters(
                    command=self.command, args=shlex.split(self.arguments or "")
                )
                read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except Exception:
            logger.exception("Failed to create MCP client")
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        logger.info("MCP client created and connected successfully.")
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._session = None

    async def list_tools(self) -> List[ToolInvoker]:
        if self._session is None:
            raise RuntimeError("McpToolCatalog must be entered before listing tools")
        response = await self._session.list_tools()
        invokers: List[ToolInvoker] = []
        for tool in response.tools:
            schema = tool.inputSchema or {}
            descriptor = ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                input_schema=schema if isinstance(schema, dict) else {},
            )
            invokers.append(McpToolInvoker(self._session, descriptor))
        logger.info("MCP server offers %d tools", len(invokers))
        return invokers
