"""
HTTP API for NetCheck.

It exposes the following endpoints:
- **GET /health**        - liveness probe for health checks.
- **GET /health/model**  - whether the configured Ollama model is available.
- **POST /scan**         - .NET version scan: {"repository": "owner/name"}
- **POST /compliance**   - pull-request compliance: {"owner": "...", "repository": "..."}
"""

import logging
from contextlib import (
    AsyncExitStack,
    asynccontextmanager,
)
from typing import (
    AsyncIterator,
    List,
)

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
    Request,
)

from netcheck.agent.engine import AIEngine
from netcheck.agent.model_client import load_model_client
from netcheck.api.models import (
    ComplianceRequest,
    ModelStatusResponse,
    ScanRequest,
)
from netcheck.common import (
    AnsiColors,
    colored_print,
)
from netcheck.config import settings
from netcheck.core.errors import (
    ModelUnavailableError,
    OperationFailure,
)
from netcheck.core.schema import (
    ComplianceReport,
    VersionScanResult,
)
from netcheck.services.ollama_service import OllamaModelService
from netcheck.tools.catalog import (
    CompositeToolCatalog,
    LocalToolCatalog,
    ToolCatalog,
)
from netcheck.tools.mcp_catalog import McpToolCatalog

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------
def build_catalog() -> ToolCatalog:
    """Local tools (when enabled) followed by the MCP server's tools."""
    catalogs: List[ToolCatalog] = []
    if settings.ENABLE_LOCAL_TOOLS:
        catalogs.append(LocalToolCatalog())
    catalogs.append(McpToolCatalog())
    return CompositeToolCatalog(catalogs)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the tool catalog, validate the model and build the shared engine."""
    async with AsyncExitStack() as stack:
        model_service = None
        if settings.MODEL_BACKEND.lower() == "ollama":
            model_service = OllamaModelService()
            stack.push_async_callback(model_service.aclose)
            if settings.ENSURE_MODEL_ON_STARTUP:
                logger.info("Starting model validation...")
                if await model_service.ensure_model_loaded():
                    logger.info("Model validation completed successfully.")
                else:
                    logger.warning(
                        "Model validation failed. Check the Ollama configuration and make sure "
                        "the model is available."
                    )

        client = load_model_client()
        stack.push_async_callback(client.aclose)
        catalog = await stack.enter_async_context(build_catalog())
        app.state.model_service = model_service
        app.state.engine = await AIEngine.from_catalog(
            client, catalog, model_service=model_service
        )
        yield
        app.state.engine = None
        logger.info("NetCheck API stopped.")


app = FastAPI(
    title="NetCheck API",
    version="0.1.0",
    description="Tool-driven .NET version scans and pull-request compliance checks",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_engine(request: Request) -> AIEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialised.")
    return engine


def get_model_service(request: Request) -> OllamaModelService | None:
    return getattr(request.app.state, "model_service", None)


def _http_error(exc: Exception) -> HTTPException:
    """Translate a run failure into an HTTP error."""
    if isinstance(exc, OperationFailure):
        logger.warning("Run failed: %s", exc.message)
        return HTTPException(status_code=502, detail=exc.to_detail())
    if isinstance(exc, ModelUnavailableError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.get("/health/model", response_model=ModelStatusResponse, summary="Model availability")
async def model_health(
    service: OllamaModelService | None = Depends(get_model_service),
) -> ModelStatusResponse:
    if service is None:
        return ModelStatusResponse(model=settings.MODEL_BACKEND, available=True)
    available = await service.is_model_available()
    return ModelStatusResponse(model=service.model, available=available)


@app.post("/scan", response_model=VersionScanResult, summary="Scan a repository")
async def scan(req: ScanRequest, engine: AIEngine = Depends(get_engine)) -> VersionScanResult:
    """Detect the .NET SDK, runtime and target framework versions of a repository."""
    try:
        return await engine.scan_repository(req.repository, timeout=req.timeout_seconds)
    except (OperationFailure, ModelUnavailableError, ValueError) as exc:
        raise _http_error(exc) from exc


@app.post("/compliance", response_model=ComplianceReport, summary="Check pull requests")
async def compliance(
    req: ComplianceRequest, engine: AIEngine = Depends(get_engine)
) -> ComplianceReport:
    """Check pull-request titles and bodies of a repository."""
    try:
        return await engine.check_pull_requests(
            req.owner, req.repository, req.pull_requests, timeout=req.timeout_seconds
        )
    except (OperationFailure, ModelUnavailableError, ValueError) as exc:
        raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload.
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting NetCheck API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"NetCheck API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "netcheck.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    run_api(reload=True)
