"""Tests for the llama-cpp-python engine adapter."""

from __future__ import annotations

import logging

from config.llama_config import RuntimeConfig, SamplingConfig
from nlp.llm.engine import LlamaCppEngine, runtime_to_llama_kwargs, sampling_to_completion_kwargs


class FakeLlama:
    def __init__(self, pieces):
        self.pieces = pieces
        self.calls = []
        self.closed = False

    def create_completion(self, prompt, stream=False, **kwargs):
        self.calls.append((prompt, stream, kwargs))
        for piece in self.pieces:
            yield {"choices": [{"text": piece}]}

    def close(self):
        self.closed = True


def test_runtime_kwargs_omit_unset_fields():
    params = runtime_to_llama_kwargs("/m/a.gguf", RuntimeConfig(thread_count=4, context_size=2048))
    assert params == {
        "model_path": "/m/a.gguf",
        "n_ctx": 2048,
        "n_threads": 4,
        "verbose": False,
        "n_batch": 512,
    }


def test_runtime_kwargs_map_every_set_field():
    runtime = RuntimeConfig(
        thread_count=4,
        context_size=256,
        thread_count_batch=8,
        batch_size=128,
        n_gpu_layers=99,
        flash_attention=1,
        use_mmap=False,
        embeddings=True,
        kv_unified=True,
    )
    params = runtime_to_llama_kwargs("/m/a.gguf", runtime)
    assert params["n_threads_batch"] == 8
    assert params["n_batch"] == 128
    assert params["n_gpu_layers"] == 99
    assert params["flash_attn"] is True
    assert params["use_mmap"] is False
    assert params["embedding"] is True
    assert "kv_unified" not in params


def test_auto_flash_attention_keeps_library_default():
    params = runtime_to_llama_kwargs("/m/a.gguf", RuntimeConfig(thread_count=1, context_size=128, flash_attention=-1))
    assert "flash_attn" not in params
    assert params["n_batch"] == 128


def test_sampling_kwargs():
    params = sampling_to_completion_kwargs(
        SamplingConfig(max_tokens=64, temperature=0.5, top_k=20, stop_sequences=("</s>",))
    )
    assert params == {"max_tokens": 64, "temperature": 0.5, "top_k": 20, "stop": ["</s>"]}


def test_complete_streams_chunks():
    engine = LlamaCppEngine()
    handle = FakeLlama(["Hel", "", "lo"])
    tokens = []

    text = engine.complete(handle, "hi", SamplingConfig(max_tokens=8), tokens.append)

    assert text == "Hello"
    assert tokens == ["Hel", "lo"]
    assert handle.calls[0][1] is True


def test_zero_max_tokens_skips_the_engine():
    engine = LlamaCppEngine()
    handle = FakeLlama(["never"])

    assert engine.complete(handle, "hi", SamplingConfig(max_tokens=0), lambda t: None) == ""
    assert handle.calls == []


def test_release_closes_handle():
    handle = FakeLlama([])
    LlamaCppEngine().release(handle)
    assert handle.closed


def test_repeat_last_n_is_logged_as_ignored(caplog):
    with caplog.at_level(logging.DEBUG, logger="nlp.llm.engine"):
        params = sampling_to_completion_kwargs(SamplingConfig(max_tokens=8, repeat_last_n=64))

    assert params == {"max_tokens": 8}
    assert "repeat_last_n" in caplog.text
