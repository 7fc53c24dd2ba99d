"""Tests for prompt token estimation and budget clamping."""

from __future__ import annotations

from nlp.llm.token_budget import compute_token_budget, derive_default_max_tokens, estimate_prompt_tokens


def test_default_max_tokens():
    assert derive_default_max_tokens(0) == 0
    assert derive_default_max_tokens(-5) == 0
    assert derive_default_max_tokens(10) == 10
    assert derive_default_max_tokens(20) == 16
    assert derive_default_max_tokens(33) == 17
    assert derive_default_max_tokens(1024) == 512
    assert derive_default_max_tokens(2048) == 1024
    assert derive_default_max_tokens(4096) == 2048


def test_estimate_prompt_tokens():
    assert estimate_prompt_tokens("") == 0
    assert estimate_prompt_tokens("   ") == 0
    assert estimate_prompt_tokens("hi") == 1
    assert estimate_prompt_tokens("hello") == 2
    # Many short words: word count dominates
    assert estimate_prompt_tokens("a b c d e f") == 6
    # One long word: characters dominate
    assert estimate_prompt_tokens("x" * 40) == 10


def test_budget_clamps_to_remaining_context():
    budget = compute_token_budget("x" * 40, 32, 100)
    assert budget.prompt_tokens == 10
    assert budget.remaining_tokens == 22
    assert budget.max_tokens == 22


def test_budget_keeps_configured_max_when_it_fits():
    budget = compute_token_budget("hello world", 2048, 256)
    assert budget.max_tokens == 256
    assert budget.remaining_tokens == 2048 - budget.prompt_tokens


def test_prompt_larger_than_context():
    budget = compute_token_budget("word " * 100, 50, 30)
    assert budget.remaining_tokens == 0
    assert budget.max_tokens == 0


def test_budget_is_monotonic_in_prompt_length():
    previous = None
    for n in range(0, 200, 7):
        budget = compute_token_budget("ab " * n, 256, 128)
        assert 0 <= budget.max_tokens <= budget.remaining_tokens
        if previous is not None:
            assert budget.max_tokens <= previous
        previous = budget.max_tokens


def test_repeated_word_prompt_fits_budget():
    prompt = " ".join(["word"] * 100)
    budget = compute_token_budget(prompt, 1024, 500)

    assert budget.prompt_tokens > 0
    assert budget.remaining_tokens == 1024 - budget.prompt_tokens
    assert budget.max_tokens <= budget.remaining_tokens
    assert budget.max_tokens <= 500


def test_budget_is_monotonic_in_context_size():
    prompt = "the quick brown fox jumps over the lazy dog"
    previous = -1
    for context in range(0, 300, 5):
        budget = compute_token_budget(prompt, context, 64)
        assert budget.max_tokens >= previous
        previous = budget.max_tokens
