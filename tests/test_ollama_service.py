"""
Tests for the Ollama model service, using httpx's mock transport.

Run with:
$ pytest -q
"""

import asyncio
import json

import httpx

from netcheck.services.ollama_service import OllamaModelService


def _service(handler, model: str = "llama3.2:3b") -> OllamaModelService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaModelService(endpoint="http://ollama:11434/", model=model, http_client=client)


def _tags(*names):
    return httpx.Response(200, json={"models": [{"name": name} for name in names]})


def test_exact_model_is_available() -> None:
    service = _service(lambda request: _tags("mistral:7b", "llama3.2:3b"))
    assert asyncio.run(service.is_model_available())


def test_same_family_counts_as_available() -> None:
    service = _service(lambda request: _tags("LLAMA3.2:latest"))
    assert asyncio.run(service.is_model_available())


def test_missing_model() -> None:
    service = _service(lambda request: _tags("llama3.1:8b"))
    assert not asyncio.run(service.is_model_available())


def test_transport_error_is_false() -> None:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = _service(handler)
    assert not asyncio.run(service.is_model_available())
    assert not asyncio.run(service.ensure_model_loaded())


def test_ensure_pulls_missing_model() -> None:
    """A missing model is pulled without streaming and then re-checked."""

    pulled = []

    def handler(request):
        if request.url.path == "/api/pull":
            pulled.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "success"})
        return _tags("llama3.2:3b") if pulled else _tags()

    service = _service(handler)
    assert asyncio.run(service.ensure_model_loaded())
    assert pulled == [{"name": "llama3.2:3b", "stream": False}]


def test_failed_pull() -> None:
    def handler(request):
        if request.url.path == "/api/pull":
            return httpx.Response(500, text="disk full")
        return _tags()

    service = _service(handler)
    assert not asyncio.run(service.ensure_model_loaded())
