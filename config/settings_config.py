from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping
import math

from config.presets import PresetOption, PresetValues

MODEL_PATH_KEY = "model_path"
PRESET_KEY = "preset_setting"


class SettingsField(Enum):
    """Individually editable settings: (attribute name, persisted key, value type)."""
    MODEL = ("model", "model_setting", str)
    RUNTIME = ("runtime", "runtime_setting", str)
    SAMPLING = ("sampling", "sampling_setting", str)
    PROMPT_PERSONA = ("prompt_persona", "prompt_persona_setting", str)
    MEMORY = ("memory", "memory_setting", str)
    CODING_WORKSPACE = ("coding_workspace", "coding_workspace_setting", str)
    PRIVACY = ("privacy", "privacy_setting", str)
    STORAGE = ("storage", "storage_setting", str)
    DIAGNOSTICS = ("diagnostics", "diagnostics_setting", str)
    CONTEXT_SIZE = ("context_size", "context_size_setting", int)
    N_GPU_LAYERS = ("n_gpu_layers", "n_gpu_layers_setting", int)
    BATCH_SIZE = ("batch_size", "batch_size_setting", int)
    TEMPERATURE = ("temperature", "temperature_setting", float)
    TOP_P = ("top_p", "top_p_setting", float)

    @property
    def attr(self) -> str:
        return self.value[0]

    @property
    def key(self) -> str:
        return self.value[1]

    @property
    def kind(self) -> type:
        return self.value[2]

    def coerce(self, raw: Any, default: Any) -> Any:
        """Convert a stored value to this field's type, falling back to `default`."""
        if raw is None or isinstance(raw, bool):
            return default
        if self.kind is str:
            return raw if isinstance(raw, str) else default
        try:
            value = self.kind(raw.strip() if isinstance(raw, str) else raw)
        except (TypeError, ValueError, OverflowError):
            return default
        if isinstance(value, float) and not math.isfinite(value):
            return default
        return value


@dataclass(frozen=True, slots=True)
class SettingsConfig:
    """The persisted settings snapshot."""
    model_path: str | None
    preset: PresetOption
    model: str
    runtime: str
    sampling: str
    prompt_persona: str
    memory: str
    coding_workspace: str
    privacy: str
    storage: str
    diagnostics: str
    context_size: int
    n_gpu_layers: int
    batch_size: int
    temperature: float
    top_p: float

    def get(self, field: SettingsField) -> Any:
        return getattr(self, field.attr)

    def with_field(self, field: SettingsField, value: Any) -> "SettingsConfig":
        return replace(self, **{field.attr: value})

    def with_preset_values(self, preset: PresetOption, values: PresetValues) -> "SettingsConfig":
        return replace(self, preset=preset, **{f.attr: getattr(values, f.attr) for f in SettingsField})

    @staticmethod
    def from_preset(preset: PresetOption, values: PresetValues, model_path: str | None = None) -> "SettingsConfig":
        return SettingsConfig(
            model_path=model_path,
            preset=preset,
            **{f.attr: getattr(values, f.attr) for f in SettingsField},
        )

    @staticmethod
    def from_snapshot(snapshot: Mapping[str, Any], default: "SettingsConfig") -> "SettingsConfig":
        """Map stored keys onto a config; missing or malformed entries keep `default`."""
        model_path = snapshot.get(MODEL_PATH_KEY)
        if not isinstance(model_path, str) or not model_path.strip():
            model_path = None
        raw_preset = snapshot.get(PRESET_KEY)
        preset = PresetOption.from_id(raw_preset) if isinstance(raw_preset, str) else default.preset
        fields = {f.attr: f.coerce(snapshot.get(f.key), default.get(f)) for f in SettingsField}
        return SettingsConfig(model_path=model_path, preset=preset, **fields)

    def bundle_entries(self) -> dict[str, Any]:
        """Persisted key/value pairs for the preset tag and every bundled field."""
        entries: dict[str, Any] = {PRESET_KEY: self.preset.id}
        entries.update({f.key: self.get(f) for f in SettingsField})
        return entries
