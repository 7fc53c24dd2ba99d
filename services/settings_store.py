from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional
import asyncio
import json
import logging
import os
import tempfile

from helpers.broadcast import BroadcastChannel

logger = logging.getLogger(__name__)


class JsonSettingsStore:
    """
    Key-value settings persisted as one JSON object on disk.

    Every write rewrites the file through a temp file + os.replace, so a
    multi-key write lands all-or-nothing. Snapshots are published on
    `updates` after each write and when `poll_external()` notices that
    another process changed the file.
    """

    def __init__(self, path: Path, capacity: int = 16) -> None:
        self.path = Path(path)
        self.updates: BroadcastChannel[dict[str, Any]] = BroadcastChannel(capacity)
        self._lock = asyncio.Lock()
        self._seen_mtime_ns: Optional[int] = self._mtime_ns()

    def _mtime_ns(self) -> Optional[int]:
        try:
            return self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _read_sync(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Settings file %s unreadable, using empty settings: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_sync(self, data: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".settings-", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(dict(data), fh, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        finally:
            Path(tmp_name).unlink(missing_ok=True)
        self._seen_mtime_ns = self._mtime_ns()

    async def read(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_sync)

    async def write(self, key: str, value: Any) -> None:
        await self.write_many({key: value})

    async def write_many(self, values: Mapping[str, Any]) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_sync)
            for key, value in values.items():
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
            await asyncio.to_thread(self._write_sync, data)
        logger.debug("Persisted settings keys: %s", ", ".join(values.keys()))
        self.updates.publish(dict(data))

    async def poll_external(self) -> Optional[dict[str, Any]]:
        """Publish and return a fresh snapshot if the file changed behind our back."""
        mtime = self._mtime_ns()
        if mtime == self._seen_mtime_ns:
            return None
        self._seen_mtime_ns = mtime
        snapshot = await self.read()
        logger.info("Settings changed externally")
        self.updates.publish(snapshot)
        return snapshot
