"""
Tests for the tagged-array retry pipeline.

Run with:
$ pytest -q
"""

import asyncio

from conftest import ScriptedModelClient

from netcheck.agent.prompts import PHASE_CORRECTIONS
from netcheck.agent.tagged_array import (
    Phase,
    TaggedArrayPipeline,
)
from netcheck.core.schema import Role


def _phase(name: str, prompt: str = "do it") -> Phase:
    return Phase(name, lambda results: prompt)


def test_first_attempt_success() -> None:
    client = ScriptedModelClient(['<json>[{"PullRequestNumber": 1}]</json>'])
    pipeline = TaggedArrayPipeline(client, max_attempts=3)
    outcome = asyncio.run(pipeline.run_phase(_phase("only"), {}))
    assert outcome.succeeded
    assert outcome.attempts == 1
    assert outcome.items == [{"PullRequestNumber": 1}]


def test_retry_with_correction() -> None:
    client = ScriptedModelClient(["Sure, here are the results!", "<json>[1]</json>"])
    pipeline = TaggedArrayPipeline(client, max_attempts=3)
    outcome = asyncio.run(pipeline.run_phase(_phase("only"), {}))
    assert outcome.items == [1]
    assert outcome.attempts == 2
    assert client.calls[1][-1].role is Role.USER
    assert client.calls[1][-1].content == PHASE_CORRECTIONS[0].format(tag="json")


def test_corrections_escalate() -> None:
    client = ScriptedModelClient(["{}", "{}", "{}"])
    pipeline = TaggedArrayPipeline(client, max_attempts=3)
    outcome = asyncio.run(pipeline.run_phase(_phase("only"), {}))
    corrections = [
        m.content for m in outcome.conversation.messages[2:] if m.role is Role.USER
    ]
    assert corrections == [
        PHASE_CORRECTIONS[0].format(tag="json"),
        PHASE_CORRECTIONS[1].format(tag="json"),
    ]


def test_exhausted_phase_fails_open_and_next_phase_runs() -> None:
    """A phase that never yields an array contributes ``[]`` to the next phase."""

    client = ScriptedModelClient(["{}", "no", "still no", "<json>[2]</json>"])
    pipeline = TaggedArrayPipeline(client, max_attempts=3)
    outcomes = asyncio.run(pipeline.run([_phase("first"), _phase("second", "check")]))

    assert outcomes["first"].items == []
    assert not outcomes["first"].succeeded
    assert outcomes["first"].attempts == 3
    assert outcomes["second"].items == [2]

    second_prompt = client.calls[3]
    assert len(second_prompt) == 2
    assert second_prompt[1].content == "check\n\nResult of the previous phase (first):\n[]"


def test_custom_tag() -> None:
    client = ScriptedModelClient(["<result>[true]</result>"])
    pipeline = TaggedArrayPipeline(client, max_attempts=1, tag="result")
    outcome = asyncio.run(pipeline.run_phase(_phase("only"), {}))
    assert outcome.items == [True]
    assert "<result>" in client.calls[0][0].content
