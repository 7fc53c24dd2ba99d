from __future__ import annotations

from dataclasses import dataclass
import math
import re

DEFAULT_MAX_TOKEN_FRACTION = 0.5
MIN_DEFAULT_MAX_TOKENS = 16
AVERAGE_CHARS_PER_TOKEN = 4.0
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class TokenBudget:
    prompt_tokens: int
    remaining_tokens: int
    max_tokens: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def derive_default_max_tokens(context_size: int) -> int:
    """Half the context window, at least 16 tokens but never more than the window."""
    context = max(0, context_size)
    if context == 0:
        return 0
    scaled = _round_half_up(context * DEFAULT_MAX_TOKEN_FRACTION)
    return min(context, max(MIN_DEFAULT_MAX_TOKENS, scaled))


def estimate_prompt_tokens(prompt: str) -> int:
    """
    Conservative prompt cost: the larger of the word count and chars / 4.

    Not a tokenizer; it only has to err on the high side.
    """
    text = (prompt or "").strip()
    if not text:
        return 0
    word_estimate = len([w for w in _WHITESPACE.split(text) if w])
    char_estimate = max(1, math.ceil(len(text) / AVERAGE_CHARS_PER_TOKEN))
    return max(word_estimate, char_estimate)


def compute_token_budget(prompt: str, context_size: int, configured_max_tokens: int) -> TokenBudget:
    prompt_tokens = estimate_prompt_tokens(prompt)
    remaining = max(0, max(0, context_size) - prompt_tokens)
    return TokenBudget(
        prompt_tokens=prompt_tokens,
        remaining_tokens=remaining,
        max_tokens=min(remaining, max(0, configured_max_tokens)),
    )
