"""
Error types surfaced by NetCheck runs.

Recoverable protocol problems (malformed replies, unknown tools, premature finalization) never
leave the planner loop; only the fatal conditions below reach the caller.
"""


class NetCheckError(RuntimeError):
    """Base class for every NetCheck error."""


class OperationFailure(NetCheckError):
    """
    A run ended without producing an artifact.

    ``last_reply`` holds the last raw model text (already truncated) for diagnostics.
    """

    def __init__(self, message: str, last_reply: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.last_reply = last_reply

    def to_detail(self) -> dict[str, str]:
        """Return a JSON-friendly payload for API error responses."""
        return {"message": self.message, "last_reply": self.last_reply}


class ExhaustionError(OperationFailure):
    """The iteration ceiling or the malformed-turn ceiling was exceeded."""


class SynthesisError(OperationFailure):
    """The synthesis pass did not produce a parseable JSON object."""


class RunTimeoutError(OperationFailure):
    """The caller-supplied time budget for the whole run elapsed."""


class ModelBackendError(OperationFailure):
    """The model backend could not be reached or answered with an error."""


class ModelUnavailableError(NetCheckError):
    """The configured model could not be found or pulled."""


def snippet(text: str | None, limit: int) -> str:
    """Truncate *text* for diagnostics."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
