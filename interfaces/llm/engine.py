from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from config.llama_config import RuntimeConfig, SamplingConfig


class Engine(Protocol):
    """Native inference runtime. Calls block; callers run them off the event loop."""

    def init(self, model_path: str, runtime: "RuntimeConfig") -> Any:
        ...

    def complete(
        self,
        handle: Any,
        prompt: str,
        sampling: "SamplingConfig",
        on_token: Callable[[str], None],
    ) -> str:
        ...

    def release(self, handle: Any) -> None:
        ...

    def is_acceleration_available(self) -> Optional[bool]:
        ...
