from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional
import os

import psutil

from config.llama_models import DEFAULT_MODEL_SPEC, LlamaModelSpec


@dataclass(frozen=True, slots=True)
class HardwareInfo:
    total_ram_gb: float
    cpu_count: int
    acceleration: Optional[bool]

    @property
    def summary(self) -> str:
        if self.acceleration is None:
            accel = "GPU offload unknown"
        elif self.acceleration:
            accel = "GPU offload available"
        else:
            accel = "CPU only"
        return f"RAM: {self.total_ram_gb:.1f} GB | CPU: {self.cpu_count} | {accel}"


def get_hardware_info(acceleration: Optional[bool] = None) -> HardwareInfo:
    """Snapshot RAM and CPU count; `acceleration` comes from the engine probe."""
    ram_gb = psutil.virtual_memory().total / 1024 ** 3
    cpus = psutil.cpu_count(logical=True) or os.cpu_count() or 1
    return HardwareInfo(total_ram_gb=ram_gb, cpu_count=cpus, acceleration=acceleration)


def _size_rank(spec: LlamaModelSpec) -> tuple[float, float]:
    return spec.min_ram_gb, spec.param_size_b


def recommend_model(specs: Iterable[LlamaModelSpec], hw: HardwareInfo) -> LlamaModelSpec:
    """Largest catalog entry the machine has RAM for, else the smallest entry."""
    specs = list(specs)
    if not specs:
        return DEFAULT_MODEL_SPEC
    fitting = [s for s in specs if s.min_ram_gb <= hw.total_ram_gb]
    if fitting:
        return max(fitting, key=_size_rank)
    return min(specs, key=_size_rank)


def _catalog_line(position: int, spec: LlamaModelSpec, recommended_key: str, installed: set[str]) -> str:
    tags = ""
    if spec.key == recommended_key:
        tags += " *recommended*"
    if spec.hf_filename in installed:
        tags += " [installed]"
    return f"{position:>2}) {spec.display_name}{tags} - {spec.size_label}, needs {spec.min_ram_gb} GB RAM"


def prompt_model_choice(
    specs: list[LlamaModelSpec],
    recommended: LlamaModelSpec,
    installed: set[str],
    hw: HardwareInfo,
) -> Optional[LlamaModelSpec]:
    """Ask which catalog model to use. Enter accepts the recommendation, 'q' skips."""
    print("\nAvailable models")
    print(hw.summary)
    for position, spec in enumerate(specs, start=1):
        print(_catalog_line(position, spec, recommended.key, installed))

    question = f"Model number [{recommended.display_name}] (q to skip): "
    while True:
        answer = input(question).strip().lower()
        if answer == "":
            return recommended
        if answer == "q":
            return None
        if answer.isdigit() and 0 < int(answer) <= len(specs):
            return specs[int(answer) - 1]
        print(f"Please enter a number between 1 and {len(specs)}.")
