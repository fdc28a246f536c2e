from __future__ import annotations


class ConversionError(RuntimeError):
    """Base class for fatal conversion failures."""


class TransportError(ConversionError):
    """The remote model endpoint failed or answered with an error payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MissingOutputError(ConversionError):
    """The agent never produced a manifest plus at least one content script."""


class CheckFailedError(ConversionError):
    """The last self-check reported by the agent did not pass."""

    def __init__(self, summary: str) -> None:
        super().__init__(f"Agent check did not pass: {summary or 'unknown check failure'}")
        self.summary = summary


class ConversionCancelled(ConversionError):
    """The caller signalled cancellation between turns."""
