from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import unquote, urlsplit
import asyncio
import inspect
import logging
import os
import shutil
import tempfile
import time

import httpx

from config.download_config import DownloadConfig
from interfaces.errors import InvalidArgumentError, TransportError
from services.model_store import ModelStore, TEMP_SUFFIX

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int]], Any]
StatusCallback = Callable[[str], Any]

STATUS_DOWNLOADING = "Downloading model..."


async def _notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def resolve_file_name(url: str) -> str:
    """Last path segment of the URL, or a timestamped name when there is none."""
    segment = unquote(urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]).strip()
    return segment or f"model-{int(time.time() * 1000)}"


def sanitize_file_name(file_name: str) -> str:
    name = Path((file_name or "").replace("\\", "/")).name.strip()
    if not name:
        raise InvalidArgumentError("Invalid model file name.")
    return name


def temp_prefix(file_name: str) -> str:
    stem = file_name.split(".", 1)[0]
    return stem if len(stem) >= 3 else "model"


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return max(0, int(text))
    except ValueError:
        # HTTP-date form is not honoured; exponential backoff applies instead
        return None


def compute_retry_delay(retry_after_s: Optional[int], wait_count: int, cfg: DownloadConfig) -> float:
    if retry_after_s is not None and retry_after_s > 0:
        return float(min(retry_after_s, cfg.max_retry_after_s))
    backoff = cfg.initial_backoff_s * (2 ** min(wait_count, 10))
    return min(backoff, cfg.max_backoff_s)


def format_delay(delay_s: float) -> str:
    total = max(1, int(delay_s))
    minutes, seconds = divmod(total, 60)
    parts = []
    if minutes:
        parts.append(f"{minutes} minute" + ("s" if minutes != 1 else ""))
    if seconds or not minutes:
        parts.append(f"{seconds} second" + ("s" if seconds != 1 else ""))
    return " ".join(parts)


def format_file_size(num_bytes: int) -> str:
    size = float(max(0, num_bytes))
    for unit in ("B", "kB", "MB", "GB"):
        if size < 1000 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1000
    return f"{size:.1f} GB"


@dataclass(frozen=True, slots=True)
class DownloadProgress:
    """What a progress bar needs to render one progress callback."""
    downloaded_bytes: int
    total_bytes: Optional[int]
    percent: int
    indeterminate: bool
    data_text: str

    @staticmethod
    def from_bytes(downloaded: int, total: Optional[int]) -> "DownloadProgress":
        if total is not None and total > 0:
            percent = round(min(100.0, max(0.0, downloaded / total * 100)))
            return DownloadProgress(
                downloaded_bytes=downloaded,
                total_bytes=total,
                percent=percent,
                indeterminate=False,
                data_text=f"{format_file_size(downloaded)} / {format_file_size(total)}",
            )
        return DownloadProgress(
            downloaded_bytes=downloaded,
            total_bytes=None,
            percent=0,
            indeterminate=True,
            data_text=format_file_size(downloaded),
        )


@dataclass(frozen=True, slots=True)
class _RetryLater:
    status_code: int
    retry_after_s: Optional[int]


@dataclass
class Downloader:
    """
    Fetches one remote model file into the model store.

    - Up to `max_attempts` hard attempts; retryable HTTP statuses wait and retry
      without spending an attempt.
    - The body is streamed to a private `.download` temp file and only renamed
      to the target name once complete.
    - Temp files are removed on every exit path, including cancellation.
    """
    store: ModelStore
    config: DownloadConfig = field(default_factory=DownloadConfig)
    transport: Optional[httpx.AsyncBaseTransport] = None
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout(),
            transport=self.transport,
            follow_redirects=True,
            headers={
                "User-Agent": self.config.user_agent,
                "Accept": self.config.accept,
                # Byte counts are checked against Content-Length, so no transfer encoding
                "Accept-Encoding": "identity",
            },
        )

    async def download(
        self,
        url: str,
        file_name: str,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> Path:
        if urlsplit((url or "").strip()).scheme.lower() not in {"http", "https"}:
            raise InvalidArgumentError("Model URL must use the HTTP or HTTPS scheme.")
        safe_name = sanitize_file_name(file_name)

        cfg = self.config
        models_dir = self.store.ensure_dir()
        target = models_dir / safe_name
        prefix = temp_prefix(safe_name)

        attempt = 0
        wait_count = 0
        last_error: Optional[TransportError] = None

        logger.info("Downloading %s -> %s", url, target)
        await _notify(on_status, STATUS_DOWNLOADING)

        async with self._client() as client:
            while attempt < cfg.max_attempts:
                fd, tmp_name = tempfile.mkstemp(prefix=prefix, suffix=TEMP_SUFFIX, dir=models_dir)
                os.close(fd)
                tmp = Path(tmp_name)
                try:
                    outcome = await self._attempt(client, url.strip(), tmp, on_progress)

                    if isinstance(outcome, _RetryLater):
                        if wait_count >= cfg.max_waits_per_attempt:
                            raise TransportError(
                                f"Server kept answering HTTP {outcome.status_code}",
                                outcome.status_code,
                            )
                        delay = compute_retry_delay(outcome.retry_after_s, wait_count, cfg)
                        wait_count += 1
                        tmp.unlink(missing_ok=True)
                        logger.warning(
                            "HTTP %s from %s, retrying in %.1fs (wait %d)",
                            outcome.status_code, url, delay, wait_count,
                        )
                        if delay > 0:
                            await _notify(on_status, f"Waiting {format_delay(delay)} before retrying the download")
                            await self.sleep(delay)
                            await _notify(on_status, STATUS_DOWNLOADING)
                        continue

                    wait_count = 0
                    self._commit(tmp, target)
                    logger.info("Committed model file %s (%d bytes)", target, outcome)
                    return target
                except TransportError as exc:
                    last_error = exc
                    attempt += 1
                    wait_count = 0
                    logger.warning("Download attempt %d/%d failed: %s", attempt, cfg.max_attempts, exc)
                    if attempt >= cfg.max_attempts:
                        raise
                finally:
                    tmp.unlink(missing_ok=True)

        raise last_error or TransportError("Download failed without a known cause")

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        url: str,
        tmp: Path,
        on_progress: Optional[ProgressCallback],
    ) -> int | _RetryLater:
        try:
            return await asyncio.wait_for(
                self._stream_to(client, url, tmp, on_progress),
                timeout=self.config.call_timeout_s,
            )
        except TransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportError("Model download timed out") from exc
        except (httpx.HTTPError, OSError) as exc:
            raise TransportError(f"Model download failed: {exc}") from exc

    async def _stream_to(
        self,
        client: httpx.AsyncClient,
        url: str,
        tmp: Path,
        on_progress: Optional[ProgressCallback],
    ) -> int | _RetryLater:
        async with client.stream("GET", url) as response:
            if response.status_code in self.config.retryable_statuses:
                return _RetryLater(
                    status_code=response.status_code,
                    retry_after_s=parse_retry_after(response.headers.get("Retry-After")),
                )
            if not response.is_success:
                raise TransportError(
                    f"Model download failed. Response code: {response.status_code}",
                    response.status_code,
                )

            total = _content_length(response)
            downloaded = 0
            with tmp.open("wb") as out:
                async for chunk in response.aiter_bytes(self.config.chunk_size):
                    if not chunk:
                        continue
                    out.write(chunk)
                    downloaded += len(chunk)
                    await _notify(on_progress, downloaded, total)
                out.flush()

            if total is not None and downloaded != total:
                raise TransportError(f"Download interrupted. Received only {downloaded} of {total} bytes")
            return downloaded

    @staticmethod
    def _commit(tmp: Path, target: Path) -> None:
        if target.exists():
            target.unlink()
        try:
            tmp.rename(target)
        except OSError:
            # Cross-device or locked target: not atomic, readers may briefly see a partial copy
            shutil.copyfile(tmp, target)
            tmp.unlink(missing_ok=True)


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None
