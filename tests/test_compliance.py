"""
Tests for the pull-request compliance flow.

Run with:
$ pytest -q
"""

import asyncio
import json

from conftest import (
    FakeInvoker,
    ScriptedModelClient,
    make_gateway,
)

from netcheck.agent.compliance import (
    ComplianceChecker,
    build_consolidated_report,
    canonicalize_failures,
    count_array_items,
    pull_requests_from_tool_result,
    summarize_pull_requests,
)
from netcheck.agent.tagged_array import TaggedArrayPipeline
from netcheck.core.schema import (
    ComplianceFailure,
    PullRequestSummary,
)

RAW_PULL_REQUESTS = [
    {"number": 1, "title": "TB-1 Add login", "body": "Adds the login page", "state": "open"},
    {"number": 2, "title": "fix stuff", "body": None, "state": "closed"},
]

NORMALIZED = json.dumps(
    [
        {"PullRequestNumber": 1, "Title": "TB-1 Add login", "Body": "Adds the login page"},
        {"PullRequestNumber": 2, "Title": "fix stuff", "Body": ""},
    ]
)


def _checker(replies):
    client = ScriptedModelClient(replies)
    pipeline = TaggedArrayPipeline(client, max_attempts=3)
    checker = ComplianceChecker(
        client, pipeline=pipeline, ticket_prefix="TB", token_counter=len
    )
    return checker, client


def test_count_array_items() -> None:
    assert count_array_items("[1, 2, 3]") == 3
    assert count_array_items('{"a": 1}') == 0
    assert count_array_items("oops") == 0
    assert count_array_items(None) == 0
    assert count_array_items("[" * 5000 + "]" * 5000) == 0


def test_summarize_pull_requests() -> None:
    """GitHub-style and normalized shapes both map; duplicates and unnumbered items drop."""

    items = RAW_PULL_REQUESTS + [
        {"PullRequestNumber": 1, "Title": "dup"},
        {"title": "no number"},
        "junk",
    ]
    summaries = summarize_pull_requests(items)
    assert [s.PullRequestNumber for s in summaries] == [1, 2]
    assert summaries[0].Title == "TB-1 Add login"
    assert summaries[1].Body == ""


def test_canonicalize_failures() -> None:
    items = [
        {"PullRequestNumber": 2, "Check": "whatever", "Passed": False, "Reason": "no ticket"},
        {"PullRequestNumber": 2, "Passed": False, "Reason": "duplicate"},
        {"PullRequestNumber": 3, "Passed": True},
        {"PullRequestNumber": "oops"},
        {"PullRequestNumber": 99},
        "junk",
    ]
    failures = canonicalize_failures(items, "title", known_numbers=[1, 2, 3])
    assert failures == [
        ComplianceFailure(PullRequestNumber=2, Check="title", Passed=False, Reason="no ticket")
    ]


def test_build_consolidated_report() -> None:
    prs = [
        PullRequestSummary(PullRequestNumber=1, Title="TB-1 ok"),
        PullRequestSummary(PullRequestNumber=2, Title="bad"),
    ]
    title = [ComplianceFailure(PullRequestNumber=2, Check="title", Reason="no ticket")]
    body = [ComplianceFailure(PullRequestNumber=2, Check="body", Reason="empty")]

    report = build_consolidated_report("acme", "shop", prs, title, body, token_estimate=42)
    dumped = report.model_dump()

    assert dumped["Repository"] == {"Owner": "acme", "Name": "shop"}
    assert dumped["Stats"] == {
        "PullRequestCount": 2,
        "TitleFailures": 1,
        "BodyFailures": 1,
        "TokenEstimate": 42,
    }
    assert dumped["PullRequests"][0]["Failures"] == []
    assert [f["Check"] for f in dumped["PullRequests"][1]["Failures"]] == ["title", "body"]
    assert dumped["Compliant"] is False


def test_check_runs_three_phases() -> None:
    title_failures = '[{"PullRequestNumber": 2, "Check": "title", "Passed": false, "Reason": "x"}]'
    body_failures = '[{"PullRequestNumber": 2, "Check": "body", "Passed": false, "Reason": "y"}]'
    checker, client = _checker(
        [
            f"<json>{NORMALIZED}</json>",
            f"<json>{title_failures}</json>",
            f"<json>{body_failures}</json>",
        ]
    )

    report = asyncio.run(checker.check("acme", "shop", RAW_PULL_REQUESTS))

    assert len(client.calls) == 3
    assert "TB-<number>" in client.calls[1][1].content
    assert "Result of the previous phase (normalize)" in client.calls[1][1].content
    assert "Result of the previous phase (title)" in client.calls[2][1].content
    assert report.Stats.PullRequestCount == 2
    assert report.Stats.TitleFailures == 1
    assert report.Stats.BodyFailures == 1
    # three messages (system, user, assistant) per phase with ``len`` as the counter
    assert report.Stats.TokenEstimate == 9
    assert not report.Compliant


def test_check_survives_failed_normalization() -> None:
    """An exhausted normalize phase falls back to the raw pull requests."""

    checker, _ = _checker(["nope", "nope", "nope", "<json>[]</json>", "<json>[]</json>"])
    report = asyncio.run(checker.check("acme", "shop", RAW_PULL_REQUESTS))
    assert report.Stats.PullRequestCount == 2
    assert report.Compliant


def test_pull_requests_from_mcp_text_block() -> None:
    result = {
        "tool": "list_pull_requests",
        "error": False,
        "result": {
            "is_error": False,
            "structured_content": None,
            "content": [{"type": "text", "text": json.dumps(RAW_PULL_REQUESTS)}],
        },
    }
    assert pull_requests_from_tool_result(result) == RAW_PULL_REQUESTS


def test_fetch_pull_requests_through_gateway() -> None:
    lister = FakeInvoker(
        "list_pull_requests",
        lambda args: {"is_error": False, "structured_content": RAW_PULL_REQUESTS, "content": []},
    )
    checker = ComplianceChecker(ScriptedModelClient([]), gateway=make_gateway(lister))
    pulls = asyncio.run(checker.fetch_pull_requests("acme", "shop"))
    assert pulls == RAW_PULL_REQUESTS
    assert lister.received == [{"owner": "acme", "repo": "shop", "state": "all"}]


def test_fetch_without_list_tool() -> None:
    checker = ComplianceChecker(ScriptedModelClient([]), gateway=make_gateway())
    assert asyncio.run(checker.fetch_pull_requests("acme", "shop")) == []
