"""Tests for the resilient model downloader."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from config.download_config import DownloadConfig
from interfaces.errors import InvalidArgumentError, TransportError
from services.downloader import (
    DownloadProgress,
    Downloader,
    compute_retry_delay,
    format_delay,
    parse_retry_after,
    resolve_file_name,
    sanitize_file_name,
)

URL = "https://example.test/models/tiny.gguf"
BODY = b"GGUF" + bytes(range(96))


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def reply(status, **kwargs):
    return lambda: httpx.Response(status, **kwargs)


class Script:
    """Mock transport handler replaying response factories; the last one repeats."""

    def __init__(self, *factories):
        self.factories = list(factories)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.factories) > 1:
            return self.factories.pop(0)()
        return self.factories[0]()


def make_downloader(model_store, script, config=None):
    sleep = SleepRecorder()
    downloader = Downloader(
        store=model_store,
        config=config or DownloadConfig(chunk_size=16),
        transport=httpx.MockTransport(script),
        sleep=sleep,
    )
    return downloader, sleep


def leftovers(model_store):
    return sorted(p.name for p in model_store.models_dir.iterdir())


@pytest.mark.asyncio
async def test_successful_download_commits_one_file(model_store):
    script = Script(reply(200, content=BODY))
    downloader, sleep = make_downloader(model_store, script)
    progress = []

    path = await downloader.download(URL, "tiny.gguf", on_progress=lambda d, t: progress.append((d, t)))

    assert path == model_store.models_dir / "tiny.gguf"
    assert path.read_bytes() == BODY
    assert leftovers(model_store) == ["tiny.gguf"]
    assert progress[-1] == (len(BODY), len(BODY))
    assert all(t == len(BODY) for _, t in progress)
    assert sleep.delays == []
    request = script.requests[0]
    assert request.headers["User-Agent"] == "PocketLLM-ModelDownloader/1.0"
    assert request.headers["Accept-Encoding"] == "identity"


@pytest.mark.asyncio
async def test_retry_after_is_honoured_without_spending_attempts(model_store):
    busy = reply(503, headers={"Retry-After": "2"})
    script = Script(busy, busy, reply(200, content=BODY))
    downloader, sleep = make_downloader(model_store, script)
    progress = []
    statuses = []

    path = await downloader.download(
        URL,
        "tiny.gguf",
        on_progress=lambda d, t: progress.append(d),
        on_status=statuses.append,
    )

    assert path.read_bytes() == BODY
    assert sleep.delays == [2.0, 2.0]
    assert len(script.requests) == 3
    assert progress == sorted(progress)
    assert "Waiting 2 seconds before retrying the download" in statuses
    assert leftovers(model_store) == ["tiny.gguf"]


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited(model_store):
    script = Script(reply(200, content=BODY))
    downloader, _ = make_downloader(model_store, script)
    seen = []

    async def on_progress(downloaded, total):
        seen.append(downloaded)

    await downloader.download(URL, "tiny.gguf", on_progress=on_progress)
    assert seen[-1] == len(BODY)


@pytest.mark.asyncio
async def test_truncated_body_is_retried(model_store):
    truncated = reply(200, headers={"Content-Length": "100"}, content=b"x" * 50)
    script = Script(truncated, reply(200, content=BODY))
    downloader, sleep = make_downloader(model_store, script)

    path = await downloader.download(URL, "tiny.gguf")

    assert path.read_bytes() == BODY
    assert len(script.requests) == 2
    assert sleep.delays == []
    assert leftovers(model_store) == ["tiny.gguf"]


@pytest.mark.asyncio
async def test_non_retryable_status_exhausts_attempts(model_store):
    script = Script(reply(404))
    downloader, sleep = make_downloader(model_store, script)

    with pytest.raises(TransportError) as excinfo:
        await downloader.download(URL, "tiny.gguf")

    assert excinfo.value.status_code == 404
    assert "404" in str(excinfo.value)
    assert len(script.requests) == 3
    assert sleep.delays == []
    assert leftovers(model_store) == []


@pytest.mark.asyncio
async def test_endless_retryable_status_turns_into_hard_failures(model_store):
    script = Script(reply(503))
    cfg = DownloadConfig(max_attempts=2, max_waits_per_attempt=2, chunk_size=16)
    downloader, sleep = make_downloader(model_store, script, cfg)

    with pytest.raises(TransportError):
        await downloader.download(URL, "tiny.gguf")

    # Two waits per attempt with exponential backoff, reset after each hard failure
    assert sleep.delays == [1.0, 2.0, 1.0, 2.0]
    assert len(script.requests) == 6
    assert leftovers(model_store) == []


@pytest.mark.asyncio
async def test_unknown_length_reports_no_total(model_store):
    async def body():
        yield BODY[:50]
        yield BODY[50:]

    script = Script(lambda: httpx.Response(200, content=body()))
    downloader, _ = make_downloader(model_store, script)
    totals = []

    path = await downloader.download(URL, "tiny.gguf", on_progress=lambda d, t: totals.append(t))

    assert path.read_bytes() == BODY
    assert totals and all(t is None for t in totals)


@pytest.mark.asyncio
async def test_existing_target_is_replaced(model_store):
    model_store.ensure_dir()
    (model_store.models_dir / "tiny.gguf").write_bytes(b"old")
    downloader, _ = make_downloader(model_store, Script(reply(200, content=BODY)))

    path = await downloader.download(URL, "tiny.gguf")

    assert path.read_bytes() == BODY
    assert leftovers(model_store) == ["tiny.gguf"]


@pytest.mark.asyncio
async def test_invalid_arguments(model_store):
    downloader, _ = make_downloader(model_store, Script(reply(200, content=BODY)))

    with pytest.raises(InvalidArgumentError):
        await downloader.download("ftp://example.test/tiny.gguf", "tiny.gguf")
    with pytest.raises(InvalidArgumentError):
        await downloader.download("not a url", "tiny.gguf")
    with pytest.raises(InvalidArgumentError):
        await downloader.download(URL, "   ")


def test_file_name_helpers():
    assert resolve_file_name("https://h/a/b/Model%20Q4.gguf?download=1") == "Model Q4.gguf"
    assert resolve_file_name("https://h/").startswith("model-")
    assert sanitize_file_name("../../etc/evil.gguf") == "evil.gguf"
    assert sanitize_file_name("dir\\win.gguf") == "win.gguf"


def test_retry_delay_helpers():
    cfg = DownloadConfig()
    assert parse_retry_after("5") == 5
    assert parse_retry_after(" ") is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
    assert compute_retry_delay(5, 0, cfg) == 5.0
    assert compute_retry_delay(5000, 0, cfg) == 600.0
    assert compute_retry_delay(None, 0, cfg) == 1.0
    assert compute_retry_delay(None, 3, cfg) == 8.0
    assert compute_retry_delay(None, 20, cfg) == 60.0
    assert format_delay(2) == "2 seconds"
    assert format_delay(61) == "1 minute 1 second"
    assert format_delay(120) == "2 minutes"


def test_download_progress_rendering():
    known = DownloadProgress.from_bytes(500, 1000)
    assert known.percent == 50
    assert not known.indeterminate
    assert known.data_text == "500 B / 1.0 kB"

    unknown = DownloadProgress.from_bytes(2_500_000, None)
    assert unknown.indeterminate
    assert unknown.total_bytes is None
    assert unknown.data_text == "2.5 MB"


@pytest.mark.asyncio
async def test_cancel_mid_stream_removes_temp_file(model_store):
    streaming = asyncio.Event()

    async def stalled_body():
        yield BODY[:16]
        streaming.set()
        await asyncio.Event().wait()

    script = Script(lambda: httpx.Response(200, content=stalled_body()))
    downloader, _ = make_downloader(model_store, script)

    task = asyncio.create_task(downloader.download(URL, "tiny.gguf"))
    await asyncio.wait_for(streaming.wait(), 5)
    assert any(p.name.endswith(".download") for p in model_store.models_dir.iterdir())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert leftovers(model_store) == []
