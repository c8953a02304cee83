"""
Caller-facing entry points: repository version scans and pull-request compliance checks.

The engine owns the read-only collaborators shared by every run (model client, tool gateway,
optional model service).  Each call builds its own loop, conversation and evidence, so
concurrent runs never share mutable state.
"""

import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Mapping,
    Sequence,
    TypeVar,
)

from netcheck.agent.agent_loop import (
    LoopLimits,
    PlannerLoop,
)
from netcheck.agent.compliance import ComplianceChecker
from netcheck.agent.evidence import EvidenceAccumulator
from netcheck.agent.model_client import BaseModelClient
from netcheck.agent.prompts import build_scan_goal
from netcheck.agent.tool_executor import ToolGateway
from netcheck.config import settings
from netcheck.core.errors import (
    ModelUnavailableError,
    RunTimeoutError,
    snippet,
)
from netcheck.core.schema import (
    ComplianceReport,
    VersionScanResult,
)
from netcheck.services.ollama_service import OllamaModelService
from netcheck.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AIEngine:
    """Runs scans and compliance checks against one model and one tool catalog."""

    def __init__(
        self,
        client: BaseModelClient,
        gateway: ToolGateway,
        model_service: OllamaModelService | None = None,
        limits: LoopLimits | None = None,
    ) -> None:
        self.client = client
        self.gateway = gateway
        self.model_service = model_service
        self.limits = limits

    @classmethod
    async def from_catalog(
        cls, client: BaseModelClient, catalog: ToolCatalog, **kwargs: Any
    ) -> "AIEngine":
        """Build an engine from an (already entered) tool catalog."""
        invokers = await catalog.list_tools()
        gateway = ToolGateway(invokers, case_insensitive=settings.TOOL_NAME_CASE_INSENSITIVE)
        logger.info("Engine ready with %d tools: %s", len(invokers), gateway.tool_names)
        return cls(client, gateway, **kwargs)

    def new_evidence(self) -> EvidenceAccumulator:
        return EvidenceAccumulator(
            authoritative_patterns=list(settings.AUTHORITATIVE_PATTERNS),
            item_max_bytes=settings.EVIDENCE_ITEM_MAX_BYTES,
            total_max_bytes=settings.EVIDENCE_TOTAL_MAX_BYTES,
        )

    async def ensure_model(self) -> None:
        """Make sure the backing model is present before spending a run on it."""
        if self.model_service is None:
            return
        if await self.model_service.is_model_available():
            return
        if not await self.model_service.ensure_model_loaded():
            logger.error("Model unavailable for run.")
            raise ModelUnavailableError("Model not available.")

    async def _with_timeout(
        self, work: Awaitable[T], timeout: float | None, loop: PlannerLoop | None = None
    ) -> T:
        budget = settings.RUN_TIMEOUT_SECONDS if timeout is None else timeout
        if not budget or budget <= 0:
            return await work
        try:
            return await asyncio.wait_for(work, timeout=budget)
        except asyncio.TimeoutError as exc:
            last = loop.state.last_reply if loop is not None else ""
            logger.error("Run timed out after %.1fs", budget)
            raise RunTimeoutError(
                f"Run exceeded its {budget:.0f}s time budget.",
                last_reply=snippet(last, settings.DIAGNOSTIC_SNIPPET_CHARS),
            ) from exc

    async def scan_repository(
        self, repository: str, timeout: float | None = None
    ) -> VersionScanResult:
        """
        Detect the .NET SDK, runtime and target framework versions of *repository*.

        Raises
        ------
        ValueError
            If *repository* is blank.
        OperationFailure
            If the run exhausts its budgets, synthesis fails or the time budget elapses.
        """
        if not repository or not repository.strip():
            raise ValueError("Repository identifier is required.")
        repository = repository.strip()
        await self.ensure_model()

        evidence = self.new_evidence()
        loop = PlannerLoop(self.client, self.gateway, evidence, limits=self.limits)
        goal = build_scan_goal(repository, evidence.authoritative_patterns)
        logger.info("Scanning %s", repository)
        result = await self._with_timeout(loop.run(goal, repository), timeout, loop)
        logger.info(
            "Scan of %s finished: %d turns, %d tool calls",
            repository,
            loop.state.iterations,
            loop.state.tool_calls,
        )
        return result

    async def check_pull_requests(
        self,
        owner: str,
        repository: str,
        pull_requests: Sequence[Mapping[str, Any]] | None = None,
        timeout: float | None = None,
    ) -> ComplianceReport:
        """Check pull requests of ``owner/repository`` for title and body compliance."""
        if not owner.strip() or not repository.strip():
            raise ValueError("Owner and repository are required.")
        await self.ensure_model()
        checker = ComplianceChecker(self.client, self.gateway)
        return await self._with_timeout(
            checker.check(owner.strip(), repository.strip(), pull_requests), timeout
        )
