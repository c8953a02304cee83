"""
Second pass: turn accumulated evidence into the schema-exact scan result.

The model is asked once, in a fresh conversation, for a report object.  Whatever it returns is
then rebuilt field by field: only the declared keys survive, version lists are cleaned and
deduplicated, the repository is the one that was requested and the timestamp is ours.
"""

import logging
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
)

from netcheck.agent.evidence import EvidenceAccumulator
from netcheck.agent.model_client import BaseModelClient
from netcheck.agent.prompts import (
    SYNTHESIS_SYSTEM_PROMPT,
    build_synthesis_prompt,
)
from netcheck.core.errors import (
    SynthesisError,
    snippet,
)
from netcheck.core.extractor import extract_json_object
from netcheck.core.schema import (
    Conversation,
    DotnetVersions,
    VersionScanResult,
)

logger = logging.getLogger(__name__)

VERSION_FIELDS = tuple(DotnetVersions.model_fields)


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with a ``Z`` suffix."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def dedupe_strings(values: Any) -> List[str]:
    """Keep string elements only, trimmed and non-blank, deduplicated case-insensitively."""
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, Iterable) or isinstance(values, Mapping):
        return []
    seen: set[str] = set()
    out: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        cleaned = value.strip()
        if not cleaned:
            continue
        folded = cleaned.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        out.append(cleaned)
    return out


def unwrap_report(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the report nested under ``final_result`` when the model wrapped it there."""
    wrapped = raw.get("final_result")
    if isinstance(wrapped, Mapping) and "dotnet_versions" not in raw:
        return wrapped
    return raw


def canonicalize_scan(
    raw: Mapping[str, Any], repository: str, now: datetime | None = None
) -> VersionScanResult:
    """Rebuild *raw* into a :class:`VersionScanResult`, discarding every undeclared key."""
    raw = unwrap_report(raw)
    nested = raw.get("dotnet_versions")
    source: Mapping[str, Any] = nested if isinstance(nested, Mapping) else {}
    versions: Dict[str, List[str]] = {}
    for field in VERSION_FIELDS:
        # Some models flatten the lists to the top level.
        value = source[field] if field in source else raw.get(field)
        versions[field] = dedupe_strings(value)
    return VersionScanResult(
        repository=repository,
        dotnet_versions=DotnetVersions(**versions),
        scan_timestamp=utc_timestamp(now),
    )


class CanonicalizingSynthesizer:
    """Produces the final artifact from a finished exploration."""

    def __init__(
        self,
        client: BaseModelClient,
        diagnostic_chars: int = 2000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.diagnostic_chars = diagnostic_chars
        self.clock = clock

    async def synthesize(self, repository: str, evidence: EvidenceAccumulator) -> VersionScanResult:
        conversation = Conversation.start(
            SYNTHESIS_SYSTEM_PROMPT,
            build_synthesis_prompt(repository, evidence.seen, evidence.to_prompt()),
        )
        reply = await self.client.complete(conversation.messages)
        raw = extract_json_object(reply.text)
        if raw is None:
            logger.error("Synthesis reply contained no JSON object")
            raise SynthesisError(
                "Model did not return a valid JSON report.",
                last_reply=snippet(reply.text, self.diagnostic_chars),
            )

        raw = unwrap_report(raw)
        extra = sorted(set(raw) - {"repository", "dotnet_versions", "scan_timestamp"})
        if extra:
            logger.info("Discarding undeclared report keys: %s", extra)
        now = self.clock() if self.clock else None
        return canonicalize_scan(raw, repository, now)
