from __future__ import annotations
from dataclasses import dataclass, field, replace
import math

from interfaces.errors import InvalidArgumentError


def _positive(value):
    return value if value is not None and value > 0 else None


def _non_negative(value):
    return value if value is not None and value >= 0 else None


def _finite(value):
    return value if value is not None and math.isfinite(value) else None


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """
    llama.cpp runtime initialisation parameters.

    Optional fields left as None keep the engine's own defaults.
    """
    thread_count: int
    context_size: int
    thread_count_batch: int | None = None
    batch_size: int | None = None
    ubatch_size: int | None = None
    seq_max: int | None = None
    n_gpu_layers: int | None = None
    main_gpu: int | None = None
    flash_attention: int | None = None   # -1 auto, 0 off, 1 on
    rope_freq_base: float | None = None
    rope_freq_scale: float | None = None
    offload_kqv: bool | None = None
    no_perf: bool | None = None
    embeddings: bool | None = None
    kv_unified: bool | None = None
    use_mmap: bool | None = None
    use_mlock: bool | None = None

    def sanitized(self) -> "RuntimeConfig":
        # Counts are clamped; every other invalid value is dropped to unset
        return replace(
            self,
            thread_count=max(1, self.thread_count),
            context_size=max(1, self.context_size),
            thread_count_batch=_positive(self.thread_count_batch),
            batch_size=_positive(self.batch_size),
            ubatch_size=_positive(self.ubatch_size),
            seq_max=_positive(self.seq_max),
            n_gpu_layers=_non_negative(self.n_gpu_layers),
            main_gpu=_non_negative(self.main_gpu),
            flash_attention=self.flash_attention if self.flash_attention in (-1, 0, 1) else None,
            rope_freq_base=_positive(_finite(self.rope_freq_base)),
            rope_freq_scale=_positive(_finite(self.rope_freq_scale)),
        )

    def validate(self) -> None:
        if not isinstance(self.thread_count, int) or self.thread_count <= 0:
            raise InvalidArgumentError("RuntimeConfig.thread_count must be a positive integer.")
        if not isinstance(self.context_size, int) or self.context_size <= 0:
            raise InvalidArgumentError("RuntimeConfig.context_size must be a positive integer.")

    @staticmethod
    def with_defaults(thread_count: int, context_size: int) -> "RuntimeConfig":
        return RuntimeConfig(
            thread_count=max(1, thread_count),
            context_size=max(1, context_size),
        )


@dataclass(frozen=True, slots=True)
class SamplingConfig:
    """Sampling hyper-parameters for a single generation call."""
    max_tokens: int
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    repeat_penalty: float | None = None
    repeat_last_n: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop_sequences: tuple[str, ...] = field(default_factory=tuple)
    seed: int | None = None

    def sanitized(self) -> "SamplingConfig":
        top_p = _finite(self.top_p)
        return replace(
            self,
            max_tokens=max(0, self.max_tokens),
            temperature=_positive(_finite(self.temperature)),
            top_p=top_p if top_p is not None and 0.0 <= top_p <= 1.0 else None,
            top_k=_positive(self.top_k),
            repeat_penalty=_positive(_finite(self.repeat_penalty)),
            repeat_last_n=_non_negative(self.repeat_last_n),
            frequency_penalty=_finite(self.frequency_penalty),
            presence_penalty=_finite(self.presence_penalty),
            stop_sequences=tuple(s for s in self.stop_sequences if s),
            seed=_non_negative(self.seed),
        )

    def validate(self) -> None:
        if not isinstance(self.max_tokens, int) or self.max_tokens < 0:
            raise InvalidArgumentError("SamplingConfig.max_tokens must be a non-negative integer.")

    @staticmethod
    def with_defaults(max_tokens: int) -> "SamplingConfig":
        return SamplingConfig(max_tokens=max(0, max_tokens))
