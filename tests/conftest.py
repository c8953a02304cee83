"""Shared fakes: a scripted model client and in-memory tools."""

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
)

from netcheck.agent.model_client import BaseModelClient
from netcheck.agent.tool_executor import ToolGateway
from netcheck.core.schema import (
    ChatMessage,
    ModelReply,
    ToolDescriptor,
)
from netcheck.tools.catalog import (
    ToolCatalog,
    ToolInvoker,
)


class ScriptedModelClient(BaseModelClient):
    """Returns canned replies in order and records every conversation it was sent."""

    name = "scripted"

    def __init__(self, replies: Sequence[str]) -> None:
        super().__init__(native_tools=False)
        self.replies = list(replies)
        self.calls: List[List[ChatMessage]] = []

    async def send(
        self, messages: Sequence[ChatMessage], tools: Sequence[ToolDescriptor] | None = None
    ) -> ModelReply:
        self.calls.append(list(messages))
        if not self.replies:
            raise AssertionError("No scripted reply left")
        return ModelReply(text=self.replies.pop(0))


class FakeInvoker(ToolInvoker):
    """Tool whose behaviour is a plain callable; records the arguments it got."""

    def __init__(self, name: str, handler: Callable[[Dict[str, Any]], Any]) -> None:
        super().__init__(ToolDescriptor(name=name, description=f"fake {name}"))
        self.handler = handler
        self.received: List[Dict[str, Any]] = []

    async def invoke(self, arguments: Dict[str, Any]) -> Any:
        self.received.append(arguments)
        return self.handler(arguments)


class FakeCatalog(ToolCatalog):
    def __init__(self, invokers: Sequence[ToolInvoker]) -> None:
        self.invokers = list(invokers)

    async def list_tools(self) -> List[ToolInvoker]:
        return list(self.invokers)


CSPROJ = (
    "<Project Sdk=\"Microsoft.NET.Sdk\"><PropertyGroup>"
    "<TargetFramework>net8.0</TargetFramework></PropertyGroup></Project>"
)


def project_file_tool() -> FakeInvoker:
    """``get_file_contents`` that always returns an SDK-style project file."""
    return FakeInvoker(
        "get_file_contents",
        lambda args: {"path": "src/App/App.csproj", "content": CSPROJ},
    )


def make_gateway(*invokers: ToolInvoker, case_insensitive: bool = False) -> ToolGateway:
    return ToolGateway(list(invokers), case_insensitive=case_insensitive)
