"""
Tests for the canonicalizing synthesizer.

Run with:
$ pytest -q
"""

import asyncio
from datetime import (
    datetime,
    timedelta,
    timezone,
)

from conftest import ScriptedModelClient

from netcheck.agent.evidence import EvidenceAccumulator
from netcheck.agent.synthesizer import (
    CanonicalizingSynthesizer,
    canonicalize_scan,
    dedupe_strings,
    utc_timestamp,
)
from netcheck.core.errors import SynthesisError

FIXED = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


def test_dedupe_is_case_insensitive_and_order_stable() -> None:
    assert dedupe_strings(["net8.0", "NET8.0", "net9.0"]) == ["net8.0", "net9.0"]


def test_dedupe_drops_blanks_and_non_strings() -> None:
    assert dedupe_strings([" net6.0 ", "", 8, None, "net6.0"]) == ["net6.0"]
    assert dedupe_strings("8.0.100") == ["8.0.100"]
    assert dedupe_strings({"a": 1}) == []
    assert dedupe_strings(None) == []


def test_timestamp_is_utc_with_z_suffix() -> None:
    assert utc_timestamp(FIXED) == "2024-05-06T07:08:09Z"
    local = FIXED.astimezone(timezone(timedelta(hours=2)))
    assert utc_timestamp(local) == "2024-05-06T07:08:09Z"


def test_canonicalize_keeps_only_declared_keys() -> None:
    """Undeclared keys vanish, the requested repository wins and the timestamp is ours."""

    raw = {
        "repository": "model/guess",
        "dotnet_versions": {
            "sdk_versions": ["8.0.100"],
            "runtime_versions": [],
            "target_frameworks": ["net8.0", "NET8.0", "net9.0"],
            "notes": "extra",
        },
        "scan_timestamp": "yesterday",
        "confidence": 0.9,
    }
    result = canonicalize_scan(raw, "acme/shop", now=FIXED)
    assert result.model_dump() == {
        "repository": "acme/shop",
        "dotnet_versions": {
            "sdk_versions": ["8.0.100"],
            "runtime_versions": [],
            "target_frameworks": ["net8.0", "net9.0"],
        },
        "scan_timestamp": "2024-05-06T07:08:09Z",
    }


def test_canonicalize_accepts_flattened_lists() -> None:
    result = canonicalize_scan({"sdk_versions": "8.0.100", "target_frameworks": ["net8.0"]}, "r")
    assert result.dotnet_versions.sdk_versions == ["8.0.100"]
    assert result.dotnet_versions.target_frameworks == ["net8.0"]
    assert result.dotnet_versions.runtime_versions == []


def test_canonicalize_unwraps_final_result() -> None:
    """A report nested under ``final_result`` keeps its versions."""

    raw = {
        "final_result": {
            "dotnet_versions": {
                "sdk_versions": ["8.0.100"],
                "runtime_versions": ["8.0.0"],
                "target_frameworks": ["net8.0"],
            }
        }
    }
    result = canonicalize_scan(raw, "acme/shop", now=FIXED)
    assert result.dotnet_versions.sdk_versions == ["8.0.100"]
    assert result.dotnet_versions.runtime_versions == ["8.0.0"]
    assert result.dotnet_versions.target_frameworks == ["net8.0"]


def test_synthesize_uses_fresh_conversation() -> None:
    evidence = EvidenceAccumulator(authoritative_patterns=["*.csproj"])
    evidence.harvest({"path": "App.csproj", "content": "<TargetFramework>net8.0</TargetFramework>"})
    client = ScriptedModelClient(
        ['Here it is: {"dotnet_versions": {"target_frameworks": ["net8.0"]}}']
    )
    synthesizer = CanonicalizingSynthesizer(client, clock=lambda: FIXED)

    result = asyncio.run(synthesizer.synthesize("acme/shop", evidence))

    assert len(client.calls) == 1
    assert len(client.calls[0]) == 2
    assert "App.csproj" in client.calls[0][1].content
    assert result.scan_timestamp == "2024-05-06T07:08:09Z"
    assert result.dotnet_versions.target_frameworks == ["net8.0"]


def test_synthesize_without_json_fails() -> None:
    evidence = EvidenceAccumulator(authoritative_patterns=["*.csproj"])
    client = ScriptedModelClient(["I could not determine the versions."])
    synthesizer = CanonicalizingSynthesizer(client, diagnostic_chars=10)
    try:
        asyncio.run(synthesizer.synthesize("acme/shop", evidence))
    except SynthesisError as exc:
        assert exc.last_reply == "I could no..."
    else:  # pragma: no cover
        raise AssertionError("SynthesisError was not raised")


def test_synthesize_unwraps_final_result_reply() -> None:
    evidence = EvidenceAccumulator(authoritative_patterns=["*.csproj"])
    client = ScriptedModelClient(
        ['{"final_result": {"dotnet_versions": {"target_frameworks": ["net8.0"]}}}']
    )
    synthesizer = CanonicalizingSynthesizer(client, clock=lambda: FIXED)
    result = asyncio.run(synthesizer.synthesize("acme/shop", evidence))
    assert result.dotnet_versions.target_frameworks == ["net8.0"]
