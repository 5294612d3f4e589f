"""Domain exceptions raised by the analysis pipeline.

Entry points (message handler, HTTP app, CLI) translate every one of these
into the uniform ``analysis_error`` envelope. ``token_count`` is filled in by
the pipeline once the prompt has been counted.
"""

from typing import Optional


class PromptLensError(Exception):
    """Base class for all analysis failures."""

    def __init__(self, message: str, token_count: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.token_count = token_count


class InputError(PromptLensError):
    """Empty prompt, malformed credential or an impossible chunk description."""


class RateLimited(PromptLensError):
    """The caller issued a request inside its cooldown window."""


class LimitExceeded(PromptLensError):
    """The prompt is at or above the hard token cap."""


class UpstreamError(PromptLensError):
    """The LLM call failed (transport, timeout or provider-reported error)."""

    def __init__(self, message: str, status: Optional[int] = None, token_count: Optional[int] = None):
        super().__init__(message, token_count=token_count)
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"API Error: {self.status} - {self.message}"
        return f"API Error: {self.message}"


class InternalError(PromptLensError):
    """An invariant of the pipeline was violated (e.g. an oversized chunk)."""
