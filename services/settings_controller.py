from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, AsyncIterable, Mapping, Optional
import asyncio
import logging

from config.llama_config import RuntimeConfig, SamplingConfig
from config.presets import PRESET_VALUES, PresetOption, PresetValues, on_field_edited
from config.settings_config import MODEL_PATH_KEY, PRESET_KEY, SettingsConfig, SettingsField
from interfaces.settings.store import SettingsStore
from nlp.llm.config_codec import decode_runtime_config, decode_sampling_config
from nlp.llm.token_budget import TokenBudget, compute_token_budget, derive_default_max_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InferenceRequest:
    runtime: RuntimeConfig
    sampling: SamplingConfig
    budget: TokenBudget


class SettingsController:
    """
    Single source of truth for settings.

    Keeps the in-memory SettingsConfig and the persisted store in step, and
    owns the preset state machine: picking a named preset overwrites every
    bundled field, editing any one field drops the preset to CUSTOM.
    Never raises on bad stored data; persistence failures are logged.
    """

    def __init__(
        self,
        store: SettingsStore,
        default: SettingsConfig,
        presets: Mapping[PresetOption, PresetValues] = PRESET_VALUES,
    ) -> None:
        self._store = store
        self._default = default
        self._presets = presets
        self._config = default
        self._lock = asyncio.Lock()

    @property
    def config(self) -> SettingsConfig:
        return self._config

    def reconcile(self, snapshot: Mapping[str, Any]) -> SettingsConfig:
        cfg = SettingsConfig.from_snapshot(snapshot, self._default)
        if cfg.model_path is not None and not Path(cfg.model_path).is_file():
            logger.warning("Saved model %s no longer exists; clearing the reference", cfg.model_path)
            cfg = replace(cfg, model_path=None)
        return cfg

    async def load(self) -> SettingsConfig:
        return await self.apply_snapshot(await self._store.read())

    async def apply_snapshot(self, snapshot: Mapping[str, Any]) -> SettingsConfig:
        cfg = self.reconcile(snapshot)
        self._config = cfg
        if snapshot.get(MODEL_PATH_KEY) and cfg.model_path is None:
            await self._persist({MODEL_PATH_KEY: None})
        return cfg

    async def observe(self, snapshots: AsyncIterable[Mapping[str, Any]]) -> None:
        """Reconcile every snapshot the store reports until the stream ends."""
        async for snapshot in snapshots:
            await self.apply_snapshot(snapshot)

    async def select_preset(self, preset: PresetOption) -> SettingsConfig:
        async with self._lock:
            if preset == self._config.preset:
                return self._config
            if preset is PresetOption.CUSTOM:
                self._config = replace(self._config, preset=PresetOption.CUSTOM)
                await self._persist({PRESET_KEY: preset.id})
            else:
                self._config = self._config.with_preset_values(preset, self._presets[preset])
                await self._persist(self._config.bundle_entries())
            logger.info("Preset set to %s", preset.id)
            return self._config

    async def edit_field(self, field: SettingsField, value: Any) -> SettingsConfig:
        coerced = field.coerce(value, None)
        if coerced is None:
            logger.warning("Ignoring invalid value %r for %s", value, field.attr)
            return self._config

        async with self._lock:
            if coerced == self._config.get(field):
                return self._config

            entries: dict[str, Any] = {}
            cfg = self._config
            if cfg.preset is not PresetOption.CUSTOM:
                # Preset tag and field land in one transaction
                cfg = replace(cfg, preset=on_field_edited(cfg.preset))
                entries[PRESET_KEY] = cfg.preset.id
            cfg = cfg.with_field(field, coerced)
            entries[field.key] = coerced

            self._config = cfg
            await self._persist(entries)
            return cfg

    async def update_model_path(self, path: Optional[str]) -> SettingsConfig:
        async with self._lock:
            value = path if path and path.strip() else None
            self._config = replace(self._config, model_path=value)
            await self._persist({MODEL_PATH_KEY: value})
            return self._config

    async def clear_model_path(self) -> SettingsConfig:
        return await self.update_model_path(None)

    def build_request(self, prompt: str, fallback_threads: int) -> InferenceRequest:
        """Parse the stored runtime/sampling text, overlay the numeric knobs and clamp to the context."""
        cfg = self._config

        runtime = decode_runtime_config(cfg.runtime, fallback_threads, cfg.context_size).config
        runtime = replace(
            runtime,
            n_gpu_layers=runtime.n_gpu_layers if runtime.n_gpu_layers is not None else cfg.n_gpu_layers,
            batch_size=runtime.batch_size if runtime.batch_size is not None else cfg.batch_size,
        ).sanitized()

        default_max_tokens = derive_default_max_tokens(runtime.context_size)
        sampling = decode_sampling_config(cfg.sampling, default_max_tokens).config
        sampling = replace(
            sampling,
            temperature=sampling.temperature if sampling.temperature is not None else cfg.temperature,
            top_p=sampling.top_p if sampling.top_p is not None else cfg.top_p,
        ).sanitized()

        budget = compute_token_budget(prompt, runtime.context_size, sampling.max_tokens)
        sampling = replace(sampling, max_tokens=budget.max_tokens)
        logger.debug("Inference request: runtime=%s sampling=%s budget=%s", runtime, sampling, budget)
        return InferenceRequest(runtime=runtime, sampling=sampling, budget=budget)

    async def _persist(self, entries: Mapping[str, Any]) -> None:
        try:
            if len(entries) == 1:
                key, value = next(iter(entries.items()))
                await self._store.write(key, value)
            else:
                await self._store.write_many(entries)
        except OSError as exc:
            logger.error("Could not persist settings %s: %s", ", ".join(entries.keys()), exc)
