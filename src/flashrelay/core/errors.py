from __future__ import annotations

class RelayError(Exception):
    """Base class for failures surfaced to the caller."""

class ValidationError(RelayError):
    """Missing or invalid request input. Reported before any upstream call."""

class ConfigurationError(RelayError):
    """
    Caller-independent setup problem (missing credential, bad config value).
    Raised while building the provider, before any quota is spent.
    """

class UpstreamError(RelayError):
    """
    The streaming call itself failed (on open or mid-stream).
    'transient' marks rate limits, timeouts and 5xx.
    """

    def __init__(self, message: str, *, status: int | None = None, transient: bool = False):
        super().__init__(message)
        self.status = status
        self.transient = transient

class RecordParseWarning(UserWarning):
    """A candidate line that is not a JSON object. Logged and dropped, never fatal."""


def classify_upstream_exception(exc: Exception) -> UpstreamError:
    """
    Convert SDK exceptions (openai, google-genai) into a neutral UpstreamError.
    Inspects status attributes and the message instead of SDK exception classes.
    """
    if isinstance(exc, UpstreamError):
        return exc
    status = (
        getattr(exc, "status_code", None)
        or getattr(exc, "http_status", None)
        or getattr(exc, "code", None)
    )
    msg = str(exc) or type(exc).__name__

    if isinstance(status, int):
        transient = status == 429 or status >= 500
        return UpstreamError(msg, status=status, transient=transient)

    lower = msg.lower()
    transient = isinstance(exc, TimeoutError) or any(
        k in lower for k in ("rate limit", "temporarily unavailable", "timeout", "timed out", "connection")
    )
    return UpstreamError(msg, transient=transient)
