"""
Main orchestration loop for NetCheck.

One :class:`PlannerLoop` drives one run: it replays the conversation to the model, extracts a
single JSON object from each reply, classifies it and either calls a tool, asks for a correction
or hands over to the synthesizer.  The loop is the only writer of its conversation, evidence and
counters; nothing here is shared between runs.

States::

    EXPLORING --(final_result + evidence gate open)--> FINALIZING --> SUCCEEDED
        |                                                   |
        +--(ceilings, backend error, cancel)--> FAILED <----+ (synthesis error)
"""

from __future__ import annotations

import json
import logging
from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from typing import (
    Any,
    List,
)

from pydantic import (
    BaseModel,
    Field,
)

from netcheck.agent import prompts
from netcheck.agent.actions import classify_action
from netcheck.agent.evidence import EvidenceAccumulator
from netcheck.agent.model_client import BaseModelClient
from netcheck.agent.synthesizer import CanonicalizingSynthesizer
from netcheck.agent.tool_executor import ToolGateway
from netcheck.config import settings
from netcheck.core.errors import (
    ExhaustionError,
    OperationFailure,
    snippet,
)
from netcheck.core.extractor import extract_json_object
from netcheck.core.schema import (
    CallToolAction,
    Conversation,
    FinalResultAction,
    ToolCall,
    VersionScanResult,
)

logger = logging.getLogger(__name__)


class LoopPhase(str, Enum):
    """Where a run is in its life cycle."""

    EXPLORING = "exploring"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LoopLimits(BaseModel):
    """Tunable ceilings for one run, snapshotted from settings at construction."""

    max_iterations: int = Field(40, ge=1)
    max_malformed_turns: int = Field(6, ge=0)
    reminder_thresholds: List[int] = Field(default_factory=lambda: [2, 4])
    tool_result_max_chars: int = Field(12000, ge=256)
    diagnostic_chars: int = Field(2000, ge=0)

    @classmethod
    def from_settings(cls) -> "LoopLimits":
        return cls(
            max_iterations=settings.MAX_ITERATIONS,
            max_malformed_turns=settings.MAX_MALFORMED_TURNS,
            reminder_thresholds=list(settings.PROTOCOL_REMINDER_THRESHOLDS),
            tool_result_max_chars=settings.TOOL_RESULT_MAX_CHARS,
            diagnostic_chars=settings.DIAGNOSTIC_SNIPPET_CHARS,
        )


@dataclass
class LoopState:
    """Counters of one run."""

    phase: LoopPhase = LoopPhase.EXPLORING
    iterations: int = 0
    malformed_turns: int = 0
    consecutive_parse_failures: int = 0
    tool_history: List[ToolCall] = field(default_factory=list)
    last_reply: str = ""

    @property
    def tool_calls(self) -> int:
        return len(self.tool_history)


class PlannerLoop:
    """Drives one exploration run against the model and the tool gateway."""

    def __init__(
        self,
        client: BaseModelClient,
        gateway: ToolGateway,
        evidence: EvidenceAccumulator,
        synthesizer: CanonicalizingSynthesizer | None = None,
        limits: LoopLimits | None = None,
    ) -> None:
        self.client = client
        self.gateway = gateway
        self.evidence = evidence
        self.limits = limits or LoopLimits.from_settings()
        self.synthesizer = synthesizer or CanonicalizingSynthesizer(
            client, diagnostic_chars=self.limits.diagnostic_chars
        )
        self.state = LoopState()
        self.conversation: Conversation | None = None

    # ---------------------------------------------------------------------------
    # Run
    # ---------------------------------------------------------------------------
    def start(self, goal: str) -> Conversation:
        """Create the run's conversation: fixed system directive plus the goal."""
        self.conversation = Conversation.start(
            prompts.build_system_prompt(self.gateway.descriptors), goal
        )
        self.state = LoopState()
        return self.conversation

    async def run(self, goal: str, repository: str) -> VersionScanResult:
        """Explore until the evidence gate opens, then synthesize the scan result."""
        self.start(goal)
        try:
            while self.state.phase is LoopPhase.EXPLORING:
                await self.step()

            logger.info(
                "Finalizing %s after %d turns and %d tool calls",
                repository,
                self.state.iterations,
                self.state.tool_calls,
            )
            result = await self.synthesizer.synthesize(repository, self.evidence)
        except OperationFailure as exc:
            self.state.phase = LoopPhase.FAILED
            if not exc.last_reply:
                exc.last_reply = snippet(self.state.last_reply, self.limits.diagnostic_chars)
            raise
        except BaseException:
            # Cancellation (run timeout) or an unexpected error: still a terminal state.
            self.state.phase = LoopPhase.FAILED
            raise

        self.state.phase = LoopPhase.SUCCEEDED
        return result

    async def step(self) -> LoopPhase:
        """Run one planner turn and return the resulting phase."""
        if self.conversation is None:
            raise RuntimeError("PlannerLoop.start() must be called before step()")
        if self.state.phase is not LoopPhase.EXPLORING:
            return self.state.phase

        state = self.state
        if state.iterations >= self.limits.max_iterations:
            raise self._fail(f"Iteration ceiling of {self.limits.max_iterations} turns reached.")
        state.iterations += 1

        reply = await self.client.complete(self.conversation.messages, self.gateway.descriptors)
        text = reply.text or ""
        state.last_reply = text
        self.conversation.add_assistant(text)
        if reply.tool_calls:
            logger.debug("Ignoring %d native tool-call records", len(reply.tool_calls))

        candidate = extract_json_object(text)
        if candidate is None:
            self._on_malformed()
            return state.phase

        # Any parseable turn forgives earlier malformed ones.
        state.malformed_turns = 0
        state.consecutive_parse_failures = 0

        action = classify_action(candidate)
        if isinstance(action, CallToolAction):
            await self._on_call_tool(action)
        elif isinstance(action, FinalResultAction):
            self._on_final_result()
        else:
            logger.warning(
                "Turn %d: unknown action %s", state.iterations, snippet(json.dumps(candidate), 200)
            )
            self.conversation.add_user(prompts.UNKNOWN_ACTION)
        return state.phase

    # ---------------------------------------------------------------------------
    # Turn handlers
    # ---------------------------------------------------------------------------
    def _on_malformed(self) -> None:
        state = self.state
        state.malformed_turns += 1
        state.consecutive_parse_failures += 1
        logger.warning(
            "Turn %d: no JSON object in reply (malformed %d/%d)",
            state.iterations,
            state.malformed_turns,
            self.limits.max_malformed_turns,
        )
        if state.malformed_turns > self.limits.max_malformed_turns:
            raise self._fail(
                f"Model produced no parseable JSON in {state.malformed_turns} consecutive turns."
            )
        if state.consecutive_parse_failures in self.limits.reminder_thresholds:
            self.conversation.add_user(prompts.PROTOCOL_REMINDER)
        else:
            self.conversation.add_user(prompts.MALFORMED_REPLY)

    async def _on_call_tool(self, action: CallToolAction) -> None:
        name = action.tool_name
        if not name:
            logger.warning("Turn %d: call_tool without a tool name", self.state.iterations)
            self.conversation.add_user(prompts.MISSING_TOOL_NAME)
            return
        invoker = self.gateway.resolve(name)
        if invoker is None:
            logger.warning("Turn %d: unknown tool '%s'", self.state.iterations, name)
            self.conversation.add_user(prompts.unknown_tool(name, self.gateway.tool_names))
            return

        logger.info(
            "Turn %d: calling '%s' (%s)",
            self.state.iterations,
            invoker.name,
            action.reason or "no reason",
        )
        result = await self.gateway.invoke(invoker.name, action.arguments)
        self.state.tool_history.append(
            ToolCall(name=invoker.name, args=_argument_record(action.arguments))
        )
        self.evidence.harvest(result)
        self.conversation.add_user(
            prompts.tool_result_message(invoker.name, self._render_result(result))
        )

    def _on_final_result(self) -> None:
        if not self.evidence.has_authoritative_evidence():
            logger.info(
                "Turn %d: final_result refused, no authoritative evidence yet",
                self.state.iterations,
            )
            self.conversation.add_user(
                prompts.GATE_NOT_SATISFIED.format(
                    patterns=", ".join(self.evidence.authoritative_patterns)
                )
            )
            return
        self.state.phase = LoopPhase.FINALIZING

    # ---------------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------------
    def _render_result(self, result: Any) -> str:
        text = json.dumps(result, default=str, ensure_ascii=False)
        limit = self.limits.tool_result_max_chars
        if len(text) > limit:
            return text[:limit] + "\n...[tool result truncated]"
        return text

    def _fail(self, message: str) -> ExhaustionError:
        self.state.phase = LoopPhase.FAILED
        logger.error("Run failed: %s", message)
        return ExhaustionError(
            message, last_reply=snippet(self.state.last_reply, self.limits.diagnostic_chars)
        )


def _argument_record(arguments: Any) -> dict:
    if isinstance(arguments, dict):
        return arguments
    if arguments in (None, ""):
        return {}
    return {"raw": arguments}
