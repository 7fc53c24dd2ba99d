from __future__ import annotations
from dataclasses import dataclass, field

import httpx

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass(frozen=True, slots=True)
class DownloadConfig:
    user_agent: str = "PocketLLM-ModelDownloader/1.0"
    accept: str = "application/octet-stream, */*"
    max_attempts: int = 3
    connect_timeout_s: float = 30.0
    read_timeout_s: float = 15 * 60.0
    write_timeout_s: float = 15 * 60.0
    call_timeout_s: float = 20 * 60.0
    max_retry_after_s: float = 600.0
    initial_backoff_s: float = 1.0
    max_backoff_s: float = 60.0
    # Consecutive retryable-status waits allowed before one counts as a hard failure
    max_waits_per_attempt: int = 8
    chunk_size: int = 64 * 1024
    retryable_statuses: frozenset[int] = field(default=RETRYABLE_STATUS_CODES)

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect_timeout_s,
            read=self.read_timeout_s,
            write=self.write_timeout_s,
            pool=self.connect_timeout_s,
        )

    def validate(self) -> None:
        if not isinstance(self.max_attempts, int) or self.max_attempts <= 0:
            raise ValueError("DownloadConfig.max_attempts must be a positive integer.")
        for name in ("connect_timeout_s", "read_timeout_s", "write_timeout_s", "call_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"DownloadConfig.{name} must be positive.")
        if self.initial_backoff_s < 0 or self.max_backoff_s < self.initial_backoff_s:
            raise ValueError("DownloadConfig backoff bounds are inconsistent.")
        if self.max_waits_per_attempt < 0:
            raise ValueError("DownloadConfig.max_waits_per_attempt must be >= 0.")
        if self.chunk_size <= 0:
            raise ValueError("DownloadConfig.chunk_size must be positive.")
