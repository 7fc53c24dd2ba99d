from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Mapping, Optional, TypeVar
import json
import logging
import math

from config.llama_config import RuntimeConfig, SamplingConfig

logger = logging.getLogger(__name__)

C = TypeVar("C")

# Accepted spellings per field, first match wins. The key names are part of the
# stored settings format and must not change.
THREAD_KEYS = ("threads", "thread_count", "n_threads")
CONTEXT_KEYS = ("context", "context_size", "n_ctx", "ctx")
BATCH_KEYS = ("batch", "n_batch")
UBATCH_KEYS = ("ubatch", "n_ubatch")
SEQ_MAX_KEYS = ("seq_max", "n_seq_max")
GPU_LAYERS_KEYS = ("n_gpu_layers", "gpu_layers")
MAIN_GPU_KEYS = ("main_gpu",)
FLASH_ATTENTION_KEYS = ("flash_attn", "flash_attention")
THREAD_INFERENCE_KEYS = ("inference", "decode", "eval", "generation")
THREAD_BATCH_KEYS = ("batch", "batch_eval", "thread_count_batch")

MAX_TOKENS_KEYS = ("max_tokens", "max_new_tokens")
TEMPERATURE_KEYS = ("temperature", "temp")
REPEAT_PENALTY_KEYS = ("repeat_penalty", "presence_penalty_scale")
STOP_KEYS = ("stop_sequences", "stop", "stops")

_TRUE_WORDS = {"true", "1", "yes", "enabled", "enable"}
_FALSE_WORDS = {"false", "0", "no", "disabled", "disable"}


@dataclass(frozen=True, slots=True)
class ParseResult(Generic[C]):
    """Either a config recognized from stored JSON or the fallback config."""
    config: C
    recognized: bool

    @staticmethod
    def fallback(config: C) -> "ParseResult[C]":
        return ParseResult(config=config, recognized=False)


def _is_number(value: Any) -> bool:
    # JSON booleans decode to bool, which is an int subclass
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_int(value: Any) -> Optional[int]:
    if _is_number(value):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_float(value: Any) -> Optional[float]:
    if _is_number(value):
        try:
            return float(value)
        except OverflowError:
            # Integer beyond float range
            return None
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if _is_number(value):
        number = _as_int(value)
        return None if number is None else number != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _extract(data: Mapping[str, Any], keys: tuple[str, ...], convert) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        converted = convert(value)
        if converted is not None:
            return converted
    return None


def extract_int(data: Mapping[str, Any], *keys: str) -> Optional[int]:
    return _extract(data, keys, _as_int)


def extract_float(data: Mapping[str, Any], *keys: str) -> Optional[float]:
    return _extract(data, keys, _as_float)


def extract_bool(data: Mapping[str, Any], *keys: str) -> Optional[bool]:
    return _extract(data, keys, _as_bool)


def extract_flash_attention(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return 1 if value else 0
    if _is_number(value):
        mode = _as_int(value)
        return mode if mode in (-1, 0, 1) else None
    if isinstance(value, str):
        word = value.strip().lower()
        if word == "auto":
            return -1
        if word in {"enabled", "enable", "true", "on"}:
            return 1
        if word in {"disabled", "disable", "false", "off"}:
            return 0
    return None


def parse_thread_counts(value: Any, fallback_threads: int) -> tuple[int, Optional[int]]:
    """Return (inference threads, batch threads) from a number, "auto" or a sub-object."""
    fallback = max(1, fallback_threads)
    if _is_number(value):
        threads = _as_int(value)
        return (max(1, threads), None) if threads is not None else (fallback, None)
    if isinstance(value, str):
        text = value.strip()
        if not text or text.lower() == "auto":
            return fallback, None
        threads = _as_int(text)
        return (threads, None) if threads is not None and threads > 0 else (fallback, None)
    if isinstance(value, Mapping):
        inference = extract_int(value, *THREAD_INFERENCE_KEYS)
        batch = extract_int(value, *THREAD_BATCH_KEYS)
        inference = fallback_threads if inference is None else inference
        return max(1, inference), batch if batch is not None and batch > 0 else None
    return fallback, None


def _load_object(raw: Optional[str]) -> Optional[dict[str, Any]]:
    candidate = (raw or "").strip()
    if not candidate.startswith("{"):
        # Free-form notes are allowed and silently ignored
        return None
    try:
        data = json.loads(candidate)
    except RecursionError as exc:
        raise ValueError("settings JSON is nested too deeply") from exc
    if not isinstance(data, dict):
        raise ValueError("settings JSON is not an object")
    return data


def decode_runtime_config(
    raw: Optional[str], fallback_threads: int, fallback_context: int
) -> ParseResult[RuntimeConfig]:
    default = RuntimeConfig.with_defaults(fallback_threads, fallback_context).sanitized()
    try:
        data = _load_object(raw)
    except ValueError as exc:
        logger.warning("Runtime settings could not be parsed, using defaults: %s", exc)
        return ParseResult.fallback(default)
    if data is None:
        return ParseResult.fallback(default)

    thread_count, thread_batch = parse_thread_counts(_first(data, THREAD_KEYS), fallback_threads)
    context = extract_int(data, *CONTEXT_KEYS)
    cfg = RuntimeConfig(
        thread_count=thread_count,
        context_size=fallback_context if context is None else context,
        thread_count_batch=thread_batch,
        batch_size=extract_int(data, *BATCH_KEYS),
        ubatch_size=extract_int(data, *UBATCH_KEYS),
        seq_max=extract_int(data, *SEQ_MAX_KEYS),
        n_gpu_layers=extract_int(data, *GPU_LAYERS_KEYS),
        main_gpu=extract_int(data, *MAIN_GPU_KEYS),
        flash_attention=extract_flash_attention(_first(data, FLASH_ATTENTION_KEYS)),
        rope_freq_base=extract_float(data, "rope_freq_base"),
        rope_freq_scale=extract_float(data, "rope_freq_scale"),
        offload_kqv=extract_bool(data, "offload_kqv"),
        no_perf=extract_bool(data, "no_perf"),
        embeddings=extract_bool(data, "embeddings"),
        kv_unified=extract_bool(data, "kv_unified"),
        use_mmap=extract_bool(data, "use_mmap"),
        use_mlock=extract_bool(data, "use_mlock"),
    )
    return ParseResult(config=cfg.sanitized(), recognized=True)


def parse_stop_sequences(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    if isinstance(value, list):
        return tuple(entry for entry in value if isinstance(entry, str) and entry)
    return ()


def decode_sampling_config(raw: Optional[str], default_max_tokens: int) -> ParseResult[SamplingConfig]:
    default = SamplingConfig.with_defaults(default_max_tokens).sanitized()
    try:
        data = _load_object(raw)
    except ValueError as exc:
        logger.warning("Sampling settings could not be parsed, using defaults: %s", exc)
        return ParseResult.fallback(default)
    if data is None:
        return ParseResult.fallback(default)

    max_tokens = extract_int(data, *MAX_TOKENS_KEYS)
    cfg = SamplingConfig(
        max_tokens=default_max_tokens if max_tokens is None else max_tokens,
        temperature=extract_float(data, *TEMPERATURE_KEYS),
        top_p=extract_float(data, "top_p"),
        top_k=extract_int(data, "top_k"),
        repeat_penalty=extract_float(data, *REPEAT_PENALTY_KEYS),
        repeat_last_n=extract_int(data, "repeat_last_n"),
        frequency_penalty=extract_float(data, "frequency_penalty"),
        presence_penalty=extract_float(data, "presence_penalty"),
        stop_sequences=parse_stop_sequences(_first(data, STOP_KEYS)),
        seed=extract_int(data, "seed"),
    )
    return ParseResult(config=cfg.sanitized(), recognized=True)


def parse_runtime_config(raw: Optional[str], fallback_threads: int, fallback_context: int) -> RuntimeConfig:
    return decode_runtime_config(raw, fallback_threads, fallback_context).config


def parse_sampling_config(raw: Optional[str], default_max_tokens: int) -> SamplingConfig:
    return decode_sampling_config(raw, default_max_tokens).config
