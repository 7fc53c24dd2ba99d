from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import logging

from interfaces.errors import InvalidArgumentError, NotReadyError
from nlp.llm.token_budget import TokenBudget
from services.session_manager import SessionManager
from services.settings_controller import SettingsController

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InferenceResult:
    text: str
    budget: TokenBudget


@dataclass
class LlmService:
    """
    App-facing inference entry point.

    Current settings -> parsed + sanitized configs -> token budget clamp ->
    session prepared for the saved model -> engine completion.
    """
    settings: SettingsController
    sessions: SessionManager
    fallback_threads: int = 1

    async def answer(self, prompt: str) -> InferenceResult:
        text = (prompt or "").strip()
        if not text:
            raise InvalidArgumentError("Prompt must not be empty.")

        model_path = self.settings.config.model_path
        if not model_path or not Path(model_path).is_file():
            raise NotReadyError("No model selected. Download or select a model first.")

        req = self.settings.build_request(text, self.fallback_threads)
        logger.info(
            "Requesting completion: prompt~%d tokens, max %d of %d remaining",
            req.budget.prompt_tokens, req.budget.max_tokens, req.budget.remaining_tokens,
        )
        await self.sessions.prepare(Path(model_path), req.runtime)
        out = await self.sessions.run(text, req.sampling)
        logger.info("Completion finished: %d characters", len(out))
        return InferenceResult(text=out, budget=req.budget)
