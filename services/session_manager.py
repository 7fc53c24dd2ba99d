from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import asyncio
import logging

from config.llama_config import RuntimeConfig, SamplingConfig
from helpers.broadcast import BroadcastChannel
from interfaces.errors import NotReadyError
from interfaces.llm.engine import Engine

logger = logging.getLogger(__name__)


class SessionState(Enum):
    EMPTY = "empty"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class Session:
    """Identity of the live session. The engine handle never leaves SessionManager."""
    model_file: Path
    runtime_config: RuntimeConfig


class SessionManager:
    """
    Owns the single active engine session.

    prepare/run/release are serialized by one lock, so a session is never
    released while another call is using or replacing it.
    """

    def __init__(self, engine: Engine, progress: Optional[BroadcastChannel[str]] = None) -> None:
        self._engine = engine
        self._lock = asyncio.Lock()
        self._session: Optional[Session] = None
        self._handle: Any = None
        self.progress: BroadcastChannel[str] = progress if progress is not None else BroadcastChannel()

    @property
    def state(self) -> SessionState:
        return SessionState.READY if self._session is not None else SessionState.EMPTY

    @property
    def session(self) -> Optional[Session]:
        return self._session

    async def prepare(self, model_file: Path, runtime_config: RuntimeConfig) -> Session:
        path = Path(model_file).expanduser().resolve()
        cfg = runtime_config.sanitized()
        cfg.validate()

        async with self._lock:
            current = self._session
            if (
                current is not None
                and current.model_file == path
                and current.runtime_config == cfg
                and path.exists()
            ):
                logger.debug("Reusing session for %s", path)
                return current

            self._release_locked()

            init = asyncio.ensure_future(asyncio.to_thread(self._engine.init, str(path), cfg))
            try:
                handle = await asyncio.shield(init)
            except asyncio.CancelledError:
                # The worker thread keeps going; release whatever it produces
                init.add_done_callback(self._release_orphan)
                raise

            self._handle = handle
            self._session = Session(model_file=path, runtime_config=cfg)
            logger.info("Session ready for %s (ctx=%d, threads=%d)", path.name, cfg.context_size, cfg.thread_count)
            return self._session

    async def run(self, prompt: str, sampling: SamplingConfig) -> str:
        async with self._lock:
            if self._handle is None:
                raise NotReadyError("Model is not ready. Call prepare() first.")

            loop = asyncio.get_running_loop()

            def on_token(token: str) -> None:
                loop.call_soon_threadsafe(self.progress.publish, token)

            call = asyncio.ensure_future(
                asyncio.to_thread(self._engine.complete, self._handle, prompt, sampling.sanitized(), on_token)
            )
            try:
                return await asyncio.shield(call)
            except asyncio.CancelledError:
                # The engine call cannot be interrupted; keep the handle until it returns
                await asyncio.wait([call])
                raise

    async def release(self) -> None:
        async with self._lock:
            self._release_locked()

    def is_acceleration_available(self) -> Optional[bool]:
        return self._engine.is_acceleration_available()

    def _release_locked(self) -> None:
        handle, session = self._handle, self._session
        self._handle = None
        self._session = None
        if handle is not None:
            logger.info("Releasing session for %s", session.model_file.name if session else "<unknown>")
            self._engine.release(handle)

    def _release_orphan(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Cancelled session init failed: %s", exc)
            return
        logger.info("Releasing session initialised after cancellation")
        self._engine.release(task.result())
