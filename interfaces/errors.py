from __future__ import annotations


class PocketLlmError(Exception):
    """Base exception for model management and inference."""


class InvalidArgumentError(PocketLlmError, ValueError):
    """Caller supplied a malformed URL, file name or non-positive count."""


class TransportError(PocketLlmError, OSError):
    """Network I/O failure, timeout, non-retryable HTTP status or truncated body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotReadyError(PocketLlmError, RuntimeError):
    """Inference requested before a session was prepared."""
