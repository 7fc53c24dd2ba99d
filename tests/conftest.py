"""Shared test fixtures."""

from __future__ import annotations

import threading

import pytest

from config.presets import PRESET_VALUES, PresetOption
from config.settings_config import SettingsConfig
from services.model_store import ModelStore
from services.session_manager import SessionManager
from services.settings_controller import SettingsController
from services.settings_store import JsonSettingsStore


class FakeEngine:
    """Engine that records calls and streams a canned reply word by word."""

    def __init__(
        self,
        reply: str = "Hello from the model",
        fail_init: Exception | None = None,
        block_init: bool = False,
    ):
        self.reply = reply
        self.fail_init = fail_init
        self.block_init = block_init
        self.init_started = threading.Event()
        self.init_proceed = threading.Event()
        self.inits: list[tuple[str, object]] = []
        self.released: list[object] = []
        self.prompts: list[tuple[str, object]] = []
        self.release_event = threading.Event()
        self._next = 0

    def init(self, model_path, runtime):
        self.init_started.set()
        if self.block_init:
            self.init_proceed.wait(5)
        if self.fail_init is not None:
            raise self.fail_init
        self._next += 1
        handle = f"handle-{self._next}"
        self.inits.append((model_path, runtime))
        return handle

    def complete(self, handle, prompt, sampling, on_token):
        self.prompts.append((prompt, sampling))
        if sampling.max_tokens == 0:
            return ""
        words = self.reply.split(" ")
        for i, word in enumerate(words):
            on_token(word if i == 0 else " " + word)
        return self.reply

    def release(self, handle):
        self.released.append(handle)
        self.release_event.set()

    def is_acceleration_available(self):
        return False


class MemorySettingsStore:
    """In-memory settings store counting write transactions."""

    def __init__(self, data: dict | None = None):
        self.data = dict(data or {})
        self.transactions: list[dict] = []

    async def read(self):
        return dict(self.data)

    async def write(self, key, value):
        await self.write_many({key: value})

    async def write_many(self, values):
        self.transactions.append(dict(values))
        for key, value in values.items():
            if value is None:
                self.data.pop(key, None)
            else:
                self.data[key] = value


@pytest.fixture
def default_settings():
    return SettingsConfig.from_preset(PresetOption.BALANCED, PRESET_VALUES[PresetOption.BALANCED])


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def sessions(fake_engine):
    return SessionManager(engine=fake_engine)


@pytest.fixture
def model_store(tmp_path):
    return ModelStore(models_dir=tmp_path / "models")


@pytest.fixture
def memory_settings_store():
    return MemorySettingsStore()


@pytest.fixture
def json_settings_store(tmp_path):
    return JsonSettingsStore(tmp_path / "config" / "settings.json")


@pytest.fixture
def controller(memory_settings_store, default_settings):
    return SettingsController(store=memory_settings_store, default=default_settings)


@pytest.fixture
def model_file(model_store):
    model_store.ensure_dir()
    path = model_store.models_dir / "tiny.gguf"
    path.write_bytes(b"GGUF" + b"\0" * 28)
    return path
