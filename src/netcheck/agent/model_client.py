"""
Model clients for NetCheck.

This module is the only place that *directly* calls an LLM.  Everything else (planner loop,
synthesizer, tools) stays model-agnostic and only sees :meth:`BaseModelClient.send`.

We support three back-ends out of the box:

1. **Ollama** ``/api/chat`` for self-hosted models (default).
2. **OpenAI** via the official async SDK.
3. **Anthropic** via the official async SDK.

Additional providers can be added by subclassing :class:`BaseModelClient` and registering via
:func:`register_model_client`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx

from netcheck.config import settings
from netcheck.core.errors import ModelBackendError
from netcheck.core.schema import (
    ChatMessage,
    ModelReply,
    Role,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CLIENT_REGISTRY: dict[str, Type["BaseModelClient"]] = {}


def register_model_client(name: str) -> Callable:
    """Decorator to register a model client class under *name*."""

    def wrapper(cls: Type["BaseModelClient"]) -> Type["BaseModelClient"]:
        _CLIENT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_model_client(name: str | None = None) -> "BaseModelClient":
    """
    Factory that returns an instantiated model client.

    Fallback order:
    1. *name* arg
    2. ``settings.MODEL_BACKEND`` env option
    3. default: ``"ollama"``
    """

    target = name or getattr(settings, "MODEL_BACKEND", "ollama")
    cls = _CLIENT_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Model backend '{target}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Abstract client that sends a conversation and returns one assistant reply."""

    name: str = "base"

    def __init__(self, native_tools: bool | None = None) -> None:
        self.native_tools = settings.NATIVE_TOOL_SCHEMAS if native_tools is None else native_tools

    @staticmethod
    def _function_tools(tools: Sequence[ToolDescriptor] | None) -> List[Dict[str, Any]]:
        """OpenAI-style function declarations (also understood by Ollama)."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema or {"type": "object", "properties": {}},
                },
            }
            for tool in tools or []
        ]

    @abstractmethod
    async def send(
        self, messages: Sequence[ChatMessage], tools: Sequence[ToolDescriptor] | None = None
    ) -> ModelReply:
        """Return the assistant reply for *messages*.  Transport errors propagate."""

    async def complete(
        self, messages: Sequence[ChatMessage], tools: Sequence[ToolDescriptor] | None = None
    ) -> ModelReply:
        """
        :meth:`send` for callers that need a uniform failure type.

        Raises
        ------
        ModelBackendError
            If the backend call raises (connection refused, HTTP error status, SDK error).
        """
        try:
            return await self.send(messages, tools)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Model backend '%s' failed", self.name)
            raise ModelBackendError(f"Model backend '{self.name}' failed: {exc}") from exc

    async def aclose(self) -> None:
        """Release network resources."""


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
@register_model_client("ollama")
class OllamaClient(BaseModelClient):
    """Ollama ``/api/chat`` client over httpx."""

    name = "ollama"

    def __init__(
        self,
        endpoint: str | None = None,
        model: str | None = None,
        native_tools: bool | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(native_tools)
        self.endpoint = (endpoint or settings.OLLAMA_ENDPOINT).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self._client = http_client or httpx.AsyncClient(timeout=settings.MODEL_TIMEOUT_SECONDS)

    async def send(
        self, messages: Sequence[ChatMessage], tools: Sequence[ToolDescriptor] | None = None
    ) -> ModelReply:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.as_dict() for m in messages],
            "stream": False,
            "options": {"temperature": settings.MODEL_TEMPERATURE},
        }
        if self.native_tools and tools:
            payload["tools"] = self._function_tools(tools)

        resp = await self._client.post(f"{self.endpoint}/api/chat", json=payload)
        resp.raise_for_status()
        message = resp.json().get("message") or {}
        content = message.get("content") or ""
        logger.debug("Ollama response: %s", content)
        return ModelReply(text=content, tool_calls=list(message.get("tool_calls") or []))

    async def aclose(self) -> None:
        await self._client.aclose()


@register_model_client("openai")
class OpenAIClient(BaseModelClient):
    """OpenAI chat-completions client."""

    name = "openai"

    def __init__(self, model: str | None = None, native_tools: bool | None = None) -> None:
        import openai  # pylint: disable=import-outside-toplevel

        super().__init__(native_tools)
        self.model = model or settings.OPENAI_MODEL
        self._client = openai.AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY, timeout=settings.MODEL_TIMEOUT_SECONDS
        )

    async def send(
        self, messages: Sequence[ChatMessage], tools: Sequence[ToolDescriptor] | None = None
    ) -> ModelReply:
        kwargs: Dict[str, Any] = {}
        if self.native_tools and tools:
            kwargs["tools"] = self._function_tools(tools)

        resp = await self._client.chat.completions.create(
            model=self.model,
            messages=[m.as_dict() for m in messages],
            temperature=settings.MODEL_TEMPERATURE,
            **kwargs,
        )
        message = resp.choices[0].message
        tool_calls = [call.model_dump() for call in (message.tool_calls or [])]
        logger.debug("OpenAI response: %s", message.content)
        return ModelReply(text=message.content or "", tool_calls=tool_calls)

    async def aclose(self) -> None:
        await self._client.close()


@register_model_client("anthropic")
class AnthropicClient(BaseModelClient):
    """Anthropic Claude client."""

    name = "anthropic"

    def __init__(self, model: str | None = None, native_tools: bool | None = None) -> None:
        import anthropic  # pylint: disable=import-outside-toplevel

        super().__init__(native_tools)
        self.model = model or settings.ANTHROPIC_MODEL
        self._client = anthropic.AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY, timeout=settings.MODEL_TIMEOUT_SECONDS
        )

    @staticmethod
    def _split_messages(messages: Sequence[ChatMessage]) -> tuple[str, List[Dict[str, str]]]:
        """Pull the system prompt out and merge consecutive same-role turns."""
        system_parts: List[str] = []
        turns: List[Dict[str, str]] = []
        for message in messages:
            if message.role is Role.SYSTEM:
                system_parts.append(message.content)
                continue
            if turns and turns[-1]["role"] == message.role.value:
                turns[-1]["content"] += "\n\n" + message.content
            else:
                turns.append({"role": message.role.value, "content": message.content})
        return "\n\n".join(system_parts), turns

    async def send(
        self, messages: Sequence[ChatMessage], tools: Sequence[ToolDescriptor] | None = None
    ) -> ModelReply:
        system_prompt, turns = self._split_messages(messages)
        kwargs: Dict[str, Any] = {}
        if self.native_tools and tools:
            kwargs["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.input_schema or {"type": "object", "properties": {}},
                }
                for tool in tools
            ]

        response = await self._client.messages.create(
            model=self.model,
            max_tokens=settings.MODEL_MAX_TOKENS,
            system=system_prompt,
            messages=turns,
            temperature=settings.MODEL_TEMPERATURE,
            **kwargs,
        )

        # Handle different content block types from Anthropic API
        text_parts: List[str] = []
        tool_calls: List[Dict[str, Any]] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append({"name": block.name, "input": block.input})
        content = "".join(text_parts)
        logger.debug("Anthropic response: %s", content)
        return ModelReply(text=content, tool_calls=tool_calls)

    async def aclose(self) -> None:
        await self._client.close()
