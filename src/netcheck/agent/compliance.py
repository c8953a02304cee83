"""
Pull-request compliance checks on top of :class:`TaggedArrayPipeline`.

Three phases run in order: ``normalize`` (raw pull requests -> number/title/body), ``title``
(ticket reference at the start of the title) and ``body`` (non-empty, descriptive body).  The
model only ever reports failures; its arrays are rebuilt into :class:`ComplianceFailure` models
before the consolidated report is assembled.
"""

import json
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Sequence,
)

from pydantic import ValidationError

from netcheck.agent import prompts
from netcheck.agent.model_client import BaseModelClient
from netcheck.agent.tagged_array import (
    Phase,
    TaggedArrayPipeline,
)
from netcheck.agent.tool_executor import ToolGateway
from netcheck.config import settings
from netcheck.core.extractor import extract_tagged_array
from netcheck.core.schema import (
    ChatMessage,
    ComplianceFailure,
    ComplianceReport,
    ComplianceStats,
    PullRequestReport,
    PullRequestSummary,
    RepositoryRef,
)
from netcheck.core.token_estimator import estimate_conversation_tokens

logger = logging.getLogger(__name__)

TokenCounter = Callable[[Sequence[ChatMessage]], int]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def count_array_items(text: str | None) -> int:
    """Number of elements in the JSON array *text*; 0 when it is not a JSON array."""
    try:
        value = json.loads(text or "")
    except (ValueError, RecursionError):
        return 0
    return len(value) if isinstance(value, list) else 0


def pull_requests_from_tool_result(result: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Dig the pull-request list out of a gateway result (structured or text content)."""
    payload = result.get("result")
    if isinstance(payload, Mapping):
        structured = payload.get("structured_content")
        if isinstance(structured, list):
            return [item for item in structured if isinstance(item, dict)]
        if isinstance(structured, Mapping):
            for key in ("items", "pull_requests", "pullRequests", "result"):
                if isinstance(structured.get(key), list):
                    return [item for item in structured[key] if isinstance(item, dict)]
        for block in payload.get("content") or []:
            text = block.get("text") if isinstance(block, Mapping) else None
            if not text:
                continue
            logger.debug("Pull request payload holds %d items", count_array_items(text))
            items = extract_tagged_array(text)
            if items is not None:
                return [item for item in items if isinstance(item, dict)]
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    return []


def _first(item: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def summarize_pull_requests(items: Iterable[Any]) -> List[PullRequestSummary]:
    """Map GitHub-style or already normalized dicts to :class:`PullRequestSummary`."""
    summaries: Dict[int, PullRequestSummary] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        number = _first(item, ("PullRequestNumber", "number", "pull_number", "id"))
        try:
            summary = PullRequestSummary(
                PullRequestNumber=number,
                Title=str(_first(item, ("Title", "title")) or ""),
                Body=str(_first(item, ("Body", "body")) or ""),
            )
        except ValidationError:
            logger.debug("Skipping pull request without a usable number: %s", item)
            continue
        summaries.setdefault(summary.PullRequestNumber, summary)
    return list(summaries.values())


def canonicalize_failures(
    items: Iterable[Any], check: str, known_numbers: Iterable[int] | None = None
) -> List[ComplianceFailure]:
    """Keep valid failure entries only, one per pull request."""
    known = set(known_numbers) if known_numbers is not None else None
    failures: Dict[int, ComplianceFailure] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        try:
            failure = ComplianceFailure.model_validate({"Check": check, **item})
        except ValidationError:
            continue
        if failure.Passed:
            continue
        if known is not None and failure.PullRequestNumber not in known:
            logger.debug("Dropping failure for unknown pull request %d", failure.PullRequestNumber)
            continue
        failure.Check = check
        failures.setdefault(failure.PullRequestNumber, failure)
    return list(failures.values())


def build_consolidated_report(
    owner: str,
    repository: str,
    pull_requests: Sequence[PullRequestSummary],
    title_failures: Sequence[ComplianceFailure],
    body_failures: Sequence[ComplianceFailure],
    token_estimate: int,
) -> ComplianceReport:
    """Assemble the per-pull-request report plus totals."""
    by_number: Dict[int, List[ComplianceFailure]] = {}
    for failure in [*title_failures, *body_failures]:
        by_number.setdefault(failure.PullRequestNumber, []).append(failure)

    reports = [
        PullRequestReport(
            PullRequestNumber=pr.PullRequestNumber,
            Title=pr.Title,
            Failures=by_number.get(pr.PullRequestNumber, []),
        )
        for pr in pull_requests
    ]
    return ComplianceReport(
        Repository=RepositoryRef(Owner=owner, Name=repository),
        PullRequests=reports,
        Stats=ComplianceStats(
            PullRequestCount=len(pull_requests),
            TitleFailures=len(title_failures),
            BodyFailures=len(body_failures),
            TokenEstimate=token_estimate,
        ),
        Compliant=not title_failures and not body_failures,
    )


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------
class ComplianceChecker:
    """Runs the compliance phases for one repository."""

    def __init__(
        self,
        client: BaseModelClient,
        gateway: ToolGateway | None = None,
        pipeline: TaggedArrayPipeline | None = None,
        ticket_prefix: str | None = None,
        token_counter: TokenCounter = estimate_conversation_tokens,
    ) -> None:
        self.client = client
        self.gateway = gateway
        self.pipeline = pipeline or TaggedArrayPipeline(client)
        self.ticket_prefix = ticket_prefix or settings.TICKET_PREFIX
        self.token_counter = token_counter

    async def fetch_pull_requests(self, owner: str, repository: str) -> List[Dict[str, Any]]:
        """List pull requests through the configured catalog tool."""
        tool = settings.PULL_REQUEST_LIST_TOOL
        if self.gateway is None or not self.gateway.has_tool(tool):
            logger.warning("Tool '%s' unavailable; no pull requests to check", tool)
            return []
        arguments = {"owner": owner, "repo": repository, "state": "all"}
        result = await self.gateway.invoke(tool, arguments)
        if result.get("error"):
            logger.warning("Listing pull requests failed: %s", result.get("message"))
            return []
        return pull_requests_from_tool_result(result)

    def phases(self, raw_pull_requests: Sequence[Mapping[str, Any]]) -> List[Phase]:
        raw_json = json.dumps(list(raw_pull_requests), ensure_ascii=False, default=str)
        fallback = [s.model_dump() for s in summarize_pull_requests(raw_pull_requests)]

        def normalized(results: Mapping[str, List[Any]]) -> List[Dict[str, Any]]:
            found = [s.model_dump() for s in summarize_pull_requests(results.get("normalize", []))]
            return found or fallback

        def title_prompt(results: Mapping[str, List[Any]]) -> str:
            text = prompts.TITLE_PHASE.format(prefix=self.ticket_prefix)
            if not results.get("normalize"):
                text += "\n\nPull requests:\n" + json.dumps(fallback, ensure_ascii=False)
            return text

        def body_prompt(results: Mapping[str, List[Any]]) -> str:
            return prompts.BODY_PHASE.format(
                pull_requests=json.dumps(normalized(results), ensure_ascii=False)
            )

        def normalize_prompt(_results: Mapping[str, List[Any]]) -> str:
            return prompts.NORMALIZE_PHASE.format(pull_requests=raw_json)

        return [
            Phase("normalize", normalize_prompt),
            Phase("title", title_prompt),
            Phase("body", body_prompt),
        ]

    async def check(
        self,
        owner: str,
        repository: str,
        pull_requests: Sequence[Mapping[str, Any]] | None = None,
    ) -> ComplianceReport:
        if pull_requests is None:
            pull_requests = await self.fetch_pull_requests(owner, repository)
        logger.info("Checking %d pull requests in %s/%s", len(pull_requests), owner, repository)

        outcomes = await self.pipeline.run(self.phases(pull_requests))

        summaries = summarize_pull_requests(outcomes["normalize"].items)
        if not summaries:
            summaries = summarize_pull_requests(pull_requests)
        numbers = [s.PullRequestNumber for s in summaries]
        title_failures = canonicalize_failures(outcomes["title"].items, "title", numbers)
        body_failures = canonicalize_failures(outcomes["body"].items, "body", numbers)
        tokens = sum(self.token_counter(o.conversation.messages) for o in outcomes.values())

        return build_consolidated_report(
            owner, repository, summaries, title_failures, body_failures, tokens
        )
