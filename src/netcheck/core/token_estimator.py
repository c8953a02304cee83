"""Rough token accounting for prompts and conversations."""

import logging
from functools import lru_cache
from typing import (
    Any,
    Iterable,
)

import tiktoken

from netcheck.core.schema import ChatMessage

logger = logging.getLogger(__name__)

ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def _encoding() -> Any:
    # tiktoken fetches the BPE ranks on first use; offline hosts fall back to a byte heuristic.
    try:
        return tiktoken.get_encoding(ENCODING_NAME)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Tokenizer %s unavailable (%s); using byte estimate", ENCODING_NAME, exc)
        return None


def estimate_tokens(text: str | None) -> int:
    """Return the number of tokens in *text* (0 for blank input)."""
    if not text or not text.strip():
        return 0
    encoding = _encoding()
    if encoding is None:
        return max(1, len(text.encode("utf-8")) // 4)
    return len(encoding.encode(text))


def estimate_conversation_tokens(messages: Iterable[ChatMessage]) -> int:
    """Estimate tokens for a conversation: role plus content for every message."""
    total = 0
    for message in messages:
        total += estimate_tokens(message.role.value)
        total += estimate_tokens(message.content)
    return total
