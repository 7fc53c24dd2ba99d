from __future__ import annotations

from typing import Any, Callable, Optional
import logging

from config.llama_config import RuntimeConfig, SamplingConfig

try:
    import llama_cpp
except Exception:  # pragma: no cover - optional dependency
    llama_cpp = None

logger = logging.getLogger(__name__)


def runtime_to_llama_kwargs(model_path: str, runtime: RuntimeConfig) -> dict[str, Any]:
    """Map a RuntimeConfig onto `llama_cpp.Llama` keyword arguments; unset fields are omitted."""
    params: dict[str, Any] = {
        "model_path": model_path,
        "n_ctx": runtime.context_size,
        "n_threads": runtime.thread_count,
        "verbose": False,
    }
    optional = {
        "n_threads_batch": runtime.thread_count_batch,
        "n_batch": runtime.batch_size,
        "n_ubatch": runtime.ubatch_size,
        "n_gpu_layers": runtime.n_gpu_layers,
        "main_gpu": runtime.main_gpu,
        "rope_freq_base": runtime.rope_freq_base,
        "rope_freq_scale": runtime.rope_freq_scale,
        "offload_kqv": runtime.offload_kqv,
        "embedding": runtime.embeddings,
        "use_mmap": runtime.use_mmap,
        "use_mlock": runtime.use_mlock,
    }
    params.update({k: v for k, v in optional.items() if v is not None})
    if runtime.batch_size is None:
        params["n_batch"] = min(runtime.context_size, 512)
    # -1 (auto) keeps the library default
    if runtime.flash_attention in (0, 1):
        params["flash_attn"] = runtime.flash_attention == 1
    ignored = [
        name for name, value in (
            ("seq_max", runtime.seq_max),
            ("kv_unified", runtime.kv_unified),
            ("no_perf", runtime.no_perf),
        ) if value is not None
    ]
    if ignored:
        logger.debug("llama-cpp-python has no knob for %s; ignoring", ", ".join(ignored))
    return params


def sampling_to_completion_kwargs(sampling: SamplingConfig) -> dict[str, Any]:
    params: dict[str, Any] = {"max_tokens": sampling.max_tokens}
    optional = {
        "temperature": sampling.temperature,
        "top_p": sampling.top_p,
        "top_k": sampling.top_k,
        "repeat_penalty": sampling.repeat_penalty,
        "frequency_penalty": sampling.frequency_penalty,
        "presence_penalty": sampling.presence_penalty,
        "seed": sampling.seed,
    }
    params.update({k: v for k, v in optional.items() if v is not None})
    if sampling.stop_sequences:
        params["stop"] = list(sampling.stop_sequences)
    if sampling.repeat_last_n is not None:
        # Only settable as last_n_tokens_size when the model is loaded
        logger.debug("llama-cpp-python has no per-call knob for repeat_last_n; ignoring")
    return params


class LlamaCppEngine:
    """
    Engine backed by llama-cpp-python. The handle is the `Llama` instance itself.
    All calls block and are expected to run on a worker thread.
    """

    def _require(self) -> Any:
        if llama_cpp is None:
            raise RuntimeError("llama-cpp-python is not installed. Install the 'engine' extra to run models.")
        return llama_cpp

    def init(self, model_path: str, runtime: RuntimeConfig) -> Any:
        lib = self._require()
        params = runtime_to_llama_kwargs(model_path, runtime)
        logger.info("Loading model %s", model_path)
        logger.debug("Llama params: %s", params)
        return lib.Llama(**params)

    def complete(
        self,
        handle: Any,
        prompt: str,
        sampling: SamplingConfig,
        on_token: Callable[[str], None],
    ) -> str:
        if sampling.max_tokens == 0:
            # llama.cpp reads 0 as "until the context is full"
            return ""
        params = sampling_to_completion_kwargs(sampling)
        pieces: list[str] = []
        for chunk in handle.create_completion(prompt, stream=True, **params):
            text = (chunk.get("choices") or [{}])[0].get("text") or ""
            if text:
                pieces.append(text)
                on_token(text)
        return "".join(pieces)

    def release(self, handle: Any) -> None:
        close = getattr(handle, "close", None)
        if callable(close):
            close()

    def is_acceleration_available(self) -> Optional[bool]:
        if llama_cpp is None:
            return None
        probe = getattr(llama_cpp, "llama_supports_gpu_offload", None)
        if probe is None:
            return None
        return bool(probe())
