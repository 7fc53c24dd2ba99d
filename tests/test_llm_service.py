"""Tests for the inference entry point."""

from __future__ import annotations

import pytest

from config.settings_config import SettingsField
from interfaces.errors import InvalidArgumentError, NotReadyError
from services.llm_service import LlmService


@pytest.fixture
def llm(controller, sessions):
    return LlmService(settings=controller, sessions=sessions, fallback_threads=2)


@pytest.mark.asyncio
async def test_blank_prompt_is_rejected(llm):
    with pytest.raises(InvalidArgumentError):
        await llm.answer("   ")


@pytest.mark.asyncio
async def test_no_model_is_not_ready(llm, controller):
    await controller.load()
    with pytest.raises(NotReadyError):
        await llm.answer("hello")


@pytest.mark.asyncio
async def test_answer_prepares_and_runs(llm, controller, fake_engine, model_file):
    await controller.load()
    await controller.update_model_path(str(model_file))

    result = await llm.answer("  hello  ")

    assert result.text == "Hello from the model"
    assert result.budget.prompt_tokens == 2
    path, runtime = fake_engine.inits[0]
    assert path == str(model_file.resolve())
    assert runtime.thread_count == 2
    assert runtime.context_size == 2048
    prompt, sampling = fake_engine.prompts[0]
    assert prompt == "hello"
    assert sampling.max_tokens == 512


@pytest.mark.asyncio
async def test_session_is_reused_until_runtime_changes(llm, controller, fake_engine, model_file):
    await controller.load()
    await controller.update_model_path(str(model_file))

    await llm.answer("one")
    await llm.answer("two")
    assert len(fake_engine.inits) == 1

    await controller.edit_field(SettingsField.RUNTIME, '{"n_ctx": 512}')
    await llm.answer("three")

    assert len(fake_engine.inits) == 2
    assert fake_engine.released == ["handle-1"]
    assert fake_engine.prompts[-1][1].max_tokens == 512
