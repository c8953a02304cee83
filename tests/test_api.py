"""
Tests for the HTTP API, with the engine replaced through dependency overrides.

Run with:
$ pytest -q
"""

import pytest
from fastapi.testclient import TestClient

from netcheck.api.app import (
    app,
    get_engine,
    get_model_service,
)
from netcheck.core.errors import (
    ExhaustionError,
    ModelBackendError,
    ModelUnavailableError,
)
from netcheck.core.schema import (
    ComplianceReport,
    DotnetVersions,
    RepositoryRef,
    VersionScanResult,
)


class FakeEngine:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.requests = []

    async def scan_repository(self, repository, timeout=None):
        self.requests.append((repository, timeout))
        if self.error:
            raise self.error
        return VersionScanResult(
            repository=repository,
            dotnet_versions=DotnetVersions(target_frameworks=["net8.0"]),
            scan_timestamp="2024-01-01T00:00:00Z",
        )

    async def check_pull_requests(self, owner, repository, pull_requests=None, timeout=None):
        self.requests.append((owner, repository, pull_requests))
        if self.error:
            raise self.error
        return ComplianceReport(Repository=RepositoryRef(Owner=owner, Name=repository))


class FakeModelService:
    model = "llama3.2:3b"

    async def is_model_available(self) -> bool:
        return False


@pytest.fixture
def client():
    # No ``with`` block: the lifespan (MCP server, Ollama) is not started.
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use(engine: FakeEngine) -> FakeEngine:
    app.dependency_overrides[get_engine] = lambda: engine
    return engine


def test_health(client) -> None:
    """Liveness probe answers without an engine."""

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_scan_success(client) -> None:
    engine = _use(FakeEngine())
    resp = client.post("/scan", json={"repository": "acme/shop", "timeout_seconds": 30})
    assert resp.status_code == 200
    assert resp.json() == {
        "repository": "acme/shop",
        "dotnet_versions": {
            "sdk_versions": [],
            "runtime_versions": [],
            "target_frameworks": ["net8.0"],
        },
        "scan_timestamp": "2024-01-01T00:00:00Z",
    }
    assert engine.requests == [("acme/shop", 30.0)]


def test_scan_failure_maps_to_502(client) -> None:
    _use(FakeEngine(ExhaustionError("Iteration ceiling reached.", last_reply="{oops")))
    resp = client.post("/scan", json={"repository": "acme/shop"})
    assert resp.status_code == 502
    assert resp.json()["detail"] == {
        "message": "Iteration ceiling reached.",
        "last_reply": "{oops",
    }


def test_backend_failure_maps_to_502(client) -> None:
    """An unreachable model backend is a run failure, not an unhandled server error."""

    _use(FakeEngine(ModelBackendError("Model backend 'ollama' failed: refused", last_reply="")))
    resp = client.post("/scan", json={"repository": "acme/shop"})
    assert resp.status_code == 502
    assert resp.json()["detail"]["message"].startswith("Model backend")


def test_scan_blank_repository_maps_to_400(client) -> None:
    _use(FakeEngine(ValueError("Repository identifier is required.")))
    resp = client.post("/scan", json={"repository": " "})
    assert resp.status_code == 400


def test_model_unavailable_maps_to_503(client) -> None:
    _use(FakeEngine(ModelUnavailableError("Model not available.")))
    resp = client.post("/compliance", json={"owner": "acme", "repository": "shop"})
    assert resp.status_code == 503


def test_compliance_success(client) -> None:
    engine = _use(FakeEngine())
    pulls = [{"number": 1, "title": "TB-1 x", "body": "y"}]
    resp = client.post(
        "/compliance", json={"owner": "acme", "repository": "shop", "pull_requests": pulls}
    )
    assert resp.status_code == 200
    assert resp.json()["Repository"] == {"Owner": "acme", "Name": "shop"}
    assert resp.json()["Compliant"] is True
    assert engine.requests == [("acme", "shop", pulls)]


def test_missing_engine_is_503(client) -> None:
    resp = client.post("/scan", json={"repository": "acme/shop"})
    assert resp.status_code == 503


def test_model_health(client) -> None:
    app.dependency_overrides[get_model_service] = FakeModelService
    resp = client.get("/health/model")
    assert resp.status_code == 200
    assert resp.json() == {"model": "llama3.2:3b", "available": False}
