from __future__ import annotations

from dataclasses import dataclass
import os

import psutil

from app.llama_bootstrap import get_app_base_dir
from config.download_config import DownloadConfig
from config.paths_config import PathsConfig
from config.presets import PRESET_VALUES, PresetOption
from config.settings_config import SettingsConfig


@dataclass(frozen=True, slots=True)
class EngineDefaults:
    fallback_threads: int

    def validate(self) -> None:
        if not isinstance(self.fallback_threads, int) or self.fallback_threads <= 0:
            raise ValueError("EngineDefaults.fallback_threads must be a positive integer.")


@dataclass(frozen=True, slots=True)
class AppConfig:
    paths: PathsConfig
    download: DownloadConfig
    engine: EngineDefaults
    default_settings: SettingsConfig


def default_thread_count() -> int:
    override = os.getenv("LLM_THREADS", "").strip()
    if override.isdigit() and int(override) > 0:
        return int(override)
    return max(1, psutil.cpu_count(logical=True) or os.cpu_count() or 1)


def build_settings() -> AppConfig:

    paths = PathsConfig.from_strings(get_app_base_dir())
    paths.validate()
    paths.ensure_dirs()

    download = DownloadConfig()
    download.validate()

    balanced = PRESET_VALUES[PresetOption.BALANCED]
    engine = EngineDefaults(fallback_threads=default_thread_count())
    engine.validate()

    default_settings = SettingsConfig.from_preset(PresetOption.BALANCED, balanced)

    return AppConfig(paths=paths, download=download, engine=engine, default_settings=default_settings)
