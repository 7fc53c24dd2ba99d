from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PresetOption(Enum):
    BATTERY_SAVER = "battery_saver"
    BALANCED = "balanced"
    TURBO = "turbo"
    CUSTOM = "custom"

    @property
    def id(self) -> str:
        return self.value

    @staticmethod
    def from_id(value: str | None) -> "PresetOption":
        """Map a stored tag (or a legacy label) to a preset; unknown or blank means BALANCED."""
        if value is None or not value.strip():
            return PresetOption.BALANCED
        normalized = value.strip().lower()
        for option in PresetOption:
            if option.value == normalized:
                return option
        return _LEGACY_LABELS.get(normalized, PresetOption.BALANCED)


_LEGACY_LABELS = {
    "default": PresetOption.BALANCED,
    "preset default": PresetOption.BALANCED,
    "battery": PresetOption.BATTERY_SAVER,
    "battery saver": PresetOption.BATTERY_SAVER,
    "hemat baterai": PresetOption.BATTERY_SAVER,
    "pro": PresetOption.TURBO,
}


def on_field_edited(preset: PresetOption) -> PresetOption:
    """Any individual edit leaves the named preset; CUSTOM stays CUSTOM."""
    return PresetOption.CUSTOM


@dataclass(frozen=True, slots=True)
class PresetValues:
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


PRESET_VALUES: dict[PresetOption, PresetValues] = {
    PresetOption.BATTERY_SAVER: PresetValues(
        model="Llama-3.2-1B Instruct (Q4_K_M)",
        runtime='{"threads": 2, "n_ctx": 1024, "n_batch": 128, "use_mmap": true}',
        sampling='{"max_tokens": 256, "temperature": 0.6, "top_p": 0.85, "top_k": 30}',
        prompt_persona="Concise assistant",
        memory="Short-term only",
        coding_workspace="Disabled",
        privacy="Local only",
        storage="Keep one model",
        diagnostics="Off",
        context_size=1024,
        n_gpu_layers=0,
        batch_size=128,
        temperature=0.6,
        top_p=0.85,
    ),
    PresetOption.BALANCED: PresetValues(
        model="Llama-3.2-3B Instruct (Q4_K_M)",
        runtime='{"threads": "auto", "n_ctx": 2048, "n_batch": 256, "use_mmap": true}',
        sampling='{"max_tokens": 512, "temperature": 0.7, "top_p": 0.9, "top_k": 40, "repeat_penalty": 1.1}',
        prompt_persona="Helpful assistant",
        memory="Conversation",
        coding_workspace="Read only",
        privacy="Local only",
        storage="Keep recent models",
        diagnostics="Errors only",
        context_size=2048,
        n_gpu_layers=0,
        batch_size=256,
        temperature=0.7,
        top_p=0.9,
    ),
    PresetOption.TURBO: PresetValues(
        model="Phi-4 Mini Instruct (Q4_K_M)",
        runtime='{"threads": "auto", "n_ctx": 4096, "n_batch": 512, "flash_attn": "auto", "offload_kqv": true}',
        sampling='{"max_tokens": 1024, "temperature": 0.8, "top_p": 0.95, "top_k": 50, "repeat_penalty": 1.05}',
        prompt_persona="Expert assistant",
        memory="Conversation + notes",
        coding_workspace="Read and write",
        privacy="Local only",
        storage="Keep all models",
        diagnostics="Verbose",
        context_size=4096,
        n_gpu_layers=99,
        batch_size=512,
        temperature=0.8,
        top_p=0.95,
    ),
}
