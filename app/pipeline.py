from __future__ import annotations

# Standard library imports
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterable, Awaitable, Callable, Mapping, Optional, TYPE_CHECKING
import asyncio
import logging

# Helpers
from helpers.latest_task import LatestTask

# Errors and progress rendering
from interfaces.errors import PocketLlmError
from services.downloader import DownloadProgress, resolve_file_name
from services.model_store import current_selection

# Type-only imports to avoid runtime circular dependencies
if TYPE_CHECKING:
    from services.downloader import Downloader
    from services.llm_service import LlmService
    from services.model_store import ModelStore
    from services.session_manager import Session, SessionManager
    from services.settings_controller import SettingsController

logger = logging.getLogger(__name__)

STATUS_DOWNLOAD_PROMPT = "Download a model to get started."
STATUS_NO_FILE = "Model file not found. Download or select a model again."


@dataclass
class ModelPipeline:
    """
    Model lifecycle orchestration
    Responsibilities:
    - Download a model and persist it as the selected model
    - Select an already downloaded model by name
    - (Re)prepare the inference session for the selected model
    - Keep a status line, a status log and download progress for the caller to render
    - Tear everything down exactly once

    Only one download and one prepare run at a time; starting a new one
    cancels the one in flight.
    """

    # Injected dependencies
    store: "ModelStore"
    downloader: "Downloader"
    settings: "SettingsController"
    sessions: "SessionManager"
    llm: "LlmService"
    fallback_threads: int
    settings_updates: Optional[AsyncIterable[Mapping[str, Any]]] = None
    poll_settings: Optional[Callable[[], Awaitable[Any]]] = None
    poll_interval_s: float = 2.0

    # Observable state
    status: str = STATUS_DOWNLOAD_PROMPT
    progress: Optional[DownloadProgress] = None
    selected_name: Optional[str] = None
    log: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._download_slot = LatestTask("download")
        self._prepare_slot = LatestTask("prepare")
        self._observer: Optional[asyncio.Task] = None
        self._poller: Optional[asyncio.Task] = None
        self._closed = False

    # ---- STARTUP ----

    async def start(self) -> None:
        """Load persisted settings, follow external changes and auto-prepare the saved model."""
        await self.settings.load()
        if self.settings_updates is not None:
            self._observer = asyncio.get_running_loop().create_task(self.settings.observe(self.settings_updates))
        if self.poll_settings is not None:
            self._poller = asyncio.get_running_loop().create_task(self._poll_loop())
        self.refresh_models()
        saved = self.saved_model_file()
        if saved is not None:
            self.prepare_model(saved)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_s)
            try:
                await self.poll_settings()
            except OSError:
                logger.warning("Polling the settings file failed", exc_info=True)

    def saved_model_file(self) -> Optional[Path]:
        return self.store.resolve_path(self.settings.config.model_path)

    def refresh_models(self) -> list[str]:
        """List downloaded models and re-derive which one is selected."""
        names = self.store.list_models()
        saved = self.saved_model_file()
        self.selected_name = current_selection(saved.name if saved else None, self.selected_name, names)
        return names

    # ---- DOWNLOAD ----

    def start_download(self, url: str) -> asyncio.Task:
        url = (url or "").strip()
        return self._download_slot.launch(self._download(url, resolve_file_name(url)))

    async def _download(self, url: str, file_name: str) -> Optional[Path]:
        self.progress = DownloadProgress.from_bytes(0, None)
        try:
            path = await self.downloader.download(
                url,
                file_name,
                on_progress=self._on_progress,
                on_status=self._set_status,
            )
        except (PocketLlmError, OSError) as exc:
            self._set_status(f"Model download failed: {exc}")
            await self.settings.clear_model_path()
            self.refresh_models()
            return None
        finally:
            self.progress = None

        await self.settings.update_model_path(str(path))
        self._set_status(f"Model downloaded: {path.name}")
        self.refresh_models()
        self.prepare_model(path)
        return path

    def _on_progress(self, downloaded: int, total: Optional[int]) -> None:
        self.progress = DownloadProgress.from_bytes(downloaded, total)

    # ---- SELECT / PREPARE ----

    async def select_model(self, name: str) -> Optional[asyncio.Task]:
        saved = self.saved_model_file()
        if self.selected_name == name and saved is not None and saved.name == name:
            return None

        path = self.store.resolve(name)
        if path is None:
            self._set_status(STATUS_NO_FILE)
            self.selected_name = None
            await self.settings.clear_model_path()
            self.refresh_models()
            return None

        await self.settings.update_model_path(str(path))
        self.selected_name = path.name
        return self.prepare_model(path)

    def prepare_model(self, path: Path) -> asyncio.Task:
        return self._prepare_slot.launch(self._prepare(path))

    async def _prepare(self, path: Path) -> Optional["Session"]:
        if not path.is_file():
            self._set_status(STATUS_NO_FILE)
            await self.settings.clear_model_path()
            self.refresh_models()
            return None

        self._set_status(f"Loading {path.name}...")
        try:
            runtime = self.settings.build_request("", self.fallback_threads).runtime
            session = await self.sessions.prepare(path, runtime)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Engine errors are opaque; surface them as the status line
            logger.exception("Preparing %s failed", path.name)
            self._set_status(str(exc) or type(exc).__name__)
            return None

        self._set_status(f"{path.name} is ready.")
        return session

    async def wait_idle(self) -> None:
        """Wait for the in-flight download and the prepare it may trigger."""
        await self._download_slot.wait()
        await self._prepare_slot.wait()

    # ---- INFERENCE ----

    async def run_inference(self, prompt: str) -> str:
        result = await self.llm.answer(prompt)
        return result.text

    # ---- TEARDOWN ----

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._download_slot.cancel()
        self._prepare_slot.cancel()
        background = [t for t in (self._observer, self._poller) if t is not None]
        for task in background:
            task.cancel()
        await self._download_slot.wait()
        await self._prepare_slot.wait()
        if background:
            await asyncio.wait(background)
        unsubscribe = getattr(self.settings_updates, "close", None)
        if callable(unsubscribe):
            unsubscribe()
        await self.sessions.release()

    def _set_status(self, message: str) -> None:
        self.status = message
        self.log.append(message)
        logger.info("%s", message)
