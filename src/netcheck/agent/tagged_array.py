"""
Sequential phases that each ask the model for one tagged JSON array.

Each phase gets a fresh conversation, a bounded number of attempts and escalating corrections.
A phase that never yields an array fails open with ``[]``; the next phase still runs and sees
that empty result as its prior context.
"""

import json
import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Sequence,
)

from netcheck.agent.model_client import BaseModelClient
from netcheck.agent.prompts import (
    TAGGED_ARRAY_SYSTEM_PROMPT,
    phase_correction,
)
from netcheck.config import settings
from netcheck.core.extractor import (
    extract_tagged_array,
    is_empty_object,
)
from netcheck.core.schema import Conversation

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[Mapping[str, List[Any]]], str]


@dataclass
class Phase:
    """One step of a pipeline; ``build_prompt`` receives the results of earlier phases."""

    name: str
    build_prompt: PromptBuilder


@dataclass
class PhaseOutcome:
    name: str
    items: List[Any]
    attempts: int
    succeeded: bool
    conversation: Conversation = field(repr=False, default_factory=Conversation)


class TaggedArrayPipeline:
    """Runs :class:`Phase` objects in order with per-phase retry budgets."""

    def __init__(
        self,
        client: BaseModelClient,
        max_attempts: int | None = None,
        tag: str | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self.client = client
        self.max_attempts = max(1, max_attempts or settings.PHASE_MAX_ATTEMPTS)
        self.tag = tag or settings.ARRAY_TAG
        self.system_prompt = system_prompt or TAGGED_ARRAY_SYSTEM_PROMPT.format(tag=self.tag)

    def _prompt(self, phase: Phase, results: Mapping[str, List[Any]], previous: str | None) -> str:
        prompt = phase.build_prompt(results)
        if previous is not None:
            prompt += (
                f"\n\nResult of the previous phase ({previous}):\n"
                f"{json.dumps(results[previous], ensure_ascii=False)}"
            )
        return prompt

    async def run_phase(
        self, phase: Phase, results: Mapping[str, List[Any]], previous: str | None = None
    ) -> PhaseOutcome:
        """Run one phase; never raises for malformed output."""
        prompt = self._prompt(phase, results, previous)
        conversation = Conversation.start(self.system_prompt, prompt)
        for attempt in range(1, self.max_attempts + 1):
            reply = await self.client.complete(conversation.messages)
            conversation.add_assistant(reply.text)
            items = extract_tagged_array(reply.text, self.tag)
            if items is not None:
                logger.info(
                    "Phase '%s' returned %d items (attempt %d)", phase.name, len(items), attempt
                )
                return PhaseOutcome(phase.name, items, attempt, True, conversation)

            if is_empty_object(reply.text):
                logger.warning(
                    "Phase '%s' attempt %d: got {} instead of an array", phase.name, attempt
                )
            else:
                logger.warning("Phase '%s' attempt %d: no tagged array", phase.name, attempt)
            if attempt < self.max_attempts:
                conversation.add_user(phase_correction(attempt, self.tag))

        logger.error(
            "Phase '%s' exhausted %d attempts; continuing with an empty result",
            phase.name,
            self.max_attempts,
        )
        return PhaseOutcome(phase.name, [], self.max_attempts, False, conversation)

    async def run(self, phases: Sequence[Phase]) -> Dict[str, PhaseOutcome]:
        """Run *phases* in order, carrying each result into the next phase's prompt."""
        results: Dict[str, List[Any]] = {}
        outcomes: Dict[str, PhaseOutcome] = {}
        previous: str | None = None
        for phase in phases:
            outcome = await self.run_phase(phase, results, previous)
            results[phase.name] = outcome.items
            outcomes[phase.name] = outcome
            previous = phase.name
        return outcomes
