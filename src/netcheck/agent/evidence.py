"""
Evidence harvested from tool results during exploration.

The accumulator walks every tool result as a JSON tree and keeps ``path -> content`` fragments
(file contents the model has read) plus the set of every path or name it has come across.  Both
collections are keyed case-insensitively and bounded: each item by ``item_max_bytes`` and the
whole record by ``total_max_bytes``.
"""

import base64
import binascii
import fnmatch
import json
import logging
import posixpath
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Sequence,
)

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n...[truncated]"

# Priority order: a path-like field beats a name-like field when both are present.
PATH_FIELDS = ("path", "file_path", "filePath", "uri")
NAME_FIELDS = ("name", "file_name", "fileName", "filename")
CONTENT_FIELDS = ("content", "text", "decoded_content")

_MAX_DEPTH = 64


def truncate_utf8(text: str, max_bytes: int, marker: str = TRUNCATION_MARKER) -> str:
    """
    Cut *text* so its UTF-8 encoding, marker included, fits in *max_bytes*.

    Text already within budget is returned unchanged, so applying the same budget twice gives
    the same result.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    marker_bytes = marker.encode("utf-8")
    if max_bytes <= len(marker_bytes):
        return marker_bytes[: max(0, max_bytes)].decode("utf-8", errors="ignore")
    # errors="ignore" drops a multi-byte character split by the cut
    head = encoded[: max_bytes - len(marker_bytes)].decode("utf-8", errors="ignore")
    return head + marker


def _serialized_size(value: Any) -> int:
    return len(json.dumps(value, default=str, ensure_ascii=False).encode("utf-8"))


@dataclass
class EvidenceItem:
    """One harvested fragment; ``key`` keeps the spelling first seen."""

    key: str
    content: str


@dataclass
class EvidenceAccumulator:
    """Per-run evidence store. Not shared between runs."""

    authoritative_patterns: Sequence[str]
    item_max_bytes: int = 16 * 1024
    total_max_bytes: int = 256 * 1024
    _seen: Dict[str, str] = field(default_factory=dict)
    _contents: Dict[str, EvidenceItem] = field(default_factory=dict)
    discarded_batches: int = 0

    # -- queries -------------------------------------------------------------
    @property
    def seen(self) -> List[str]:
        """Every path or name encountered so far, first spelling kept."""
        return list(self._seen.values())

    @property
    def contents(self) -> Dict[str, str]:
        return {item.key: item.content for item in self._contents.values()}

    def total_bytes(self) -> int:
        return _serialized_size(self.contents)

    def is_authoritative(self, key: str) -> bool:
        """Return *True* if the file name of *key* matches an authoritative pattern."""
        basename = posixpath.basename(key.replace("\\", "/").rstrip("/")).lower()
        return any(
            fnmatch.fnmatchcase(basename, pattern.lower())
            for pattern in self.authoritative_patterns
        )

    def has_authoritative_evidence(self) -> bool:
        """Gate for leaving exploration: some harvested content comes from an authoritative file."""
        return any(self.is_authoritative(item.key) for item in self._contents.values())

    def to_prompt(self) -> str:
        """Render the harvested contents as JSON for a prompt."""
        return json.dumps(self.contents, indent=2, ensure_ascii=False)

    # -- harvesting ----------------------------------------------------------
    def harvest(self, tool_result: Any) -> None:
        """Walk *tool_result* and merge what it reveals, or discard the whole batch if too big."""
        result_size = _serialized_size(tool_result)
        if result_size > self.total_max_bytes:
            self.discarded_batches += 1
            logger.warning(
                "Tool result of %d bytes exceeds evidence ceiling (%d); skipped",
                result_size,
                self.total_max_bytes,
            )
            return

        seen_batch: Dict[str, str] = {}
        content_batch: Dict[str, EvidenceItem] = {}
        self._visit(tool_result, seen_batch, content_batch, depth=0)
        if not seen_batch and not content_batch:
            return

        merged = dict(self._contents)
        for lowered, item in content_batch.items():
            existing = merged.get(lowered)
            key = existing.key if existing else item.key
            merged[lowered] = EvidenceItem(key=key, content=item.content)
        merged_size = _serialized_size({item.key: item.content for item in merged.values()})
        if merged_size > self.total_max_bytes:
            self.discarded_batches += 1
            logger.warning(
                "Harvest would grow evidence to %d bytes (ceiling %d); batch discarded",
                merged_size,
                self.total_max_bytes,
            )
            return

        for lowered, key in seen_batch.items():
            self._seen.setdefault(lowered, key)
        self._contents = merged
        logger.debug(
            "Harvested %d keys (%d with content); evidence now %d bytes",
            len(seen_batch),
            len(content_batch),
            merged_size,
        )

    def _visit(
        self,
        node: Any,
        seen_batch: Dict[str, str],
        content_batch: Dict[str, EvidenceItem],
        depth: int,
    ) -> None:
        if depth > _MAX_DEPTH:
            return
        if isinstance(node, Mapping):
            self._record(node, seen_batch, content_batch)
            for value in node.values():
                self._visit(value, seen_batch, content_batch, depth + 1)
        elif isinstance(node, (list, tuple)):
            for element in node:
                self._visit(element, seen_batch, content_batch, depth + 1)
        elif isinstance(node, str):
            stripped = node.strip()
            if stripped[:1] in ("{", "["):
                try:
                    nested = json.loads(stripped)
                except (ValueError, RecursionError):
                    return
                self._visit(nested, seen_batch, content_batch, depth + 1)
        # other scalars carry no evidence

    def _record(
        self,
        node: Mapping[str, Any],
        seen_batch: Dict[str, str],
        content_batch: Dict[str, EvidenceItem],
    ) -> None:
        key = _first_string(node, PATH_FIELDS) or _first_string(node, NAME_FIELDS)
        if not key:
            return
        lowered = key.lower()
        seen_batch.setdefault(lowered, key)

        content = _first_string(node, CONTENT_FIELDS, strip=False)
        if content is None:
            return
        if str(node.get("encoding", "")).lower() == "base64":
            content = _decode_base64(content)
        content_batch[lowered] = EvidenceItem(
            key=key, content=truncate_utf8(content, self.item_max_bytes)
        )


def _first_string(node: Mapping[str, Any], fields: Sequence[str], strip: bool = True) -> str | None:
    for name in fields:
        value = node.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip() if strip else value
    return None


def _decode_base64(content: str) -> str:
    try:
        decoded = base64.b64decode("".join(content.split()), validate=True)
    except (binascii.Error, ValueError):
        return content
    return decoded.decode("utf-8", errors="replace")
