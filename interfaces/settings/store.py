from __future__ import annotations

from typing import Any, Mapping, Protocol


class SettingsStore(Protocol):
    async def read(self) -> dict[str, Any]:
        ...

    async def write(self, key: str, value: Any) -> None:
        """Persist one scalar; `None` removes the key."""
        ...

    async def write_many(self, values: Mapping[str, Any]) -> None:
        """Persist several keys in one transaction."""
        ...
