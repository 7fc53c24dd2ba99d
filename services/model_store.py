from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
import logging

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".download"


def current_selection(
    saved_name: Optional[str],
    fallback_name: Optional[str],
    available: Sequence[str],
) -> Optional[str]:
    """Saved name wins if still available, then the fallback, else nothing."""
    if saved_name is not None and saved_name in available:
        return saved_name
    if fallback_name is not None and fallback_name in available:
        return fallback_name
    return None


@dataclass(frozen=True, slots=True)
class ModelStore:
    """
    Registry of downloaded model files under the cache directory.

    Reads hit the filesystem every time; in-flight downloads stay invisible
    because they are written under a `.download` temp name.
    """
    models_dir: Path

    def ensure_dir(self) -> Path:
        self.models_dir.mkdir(parents=True, exist_ok=True)
        return self.models_dir

    def list_models(self) -> list[str]:
        if not self.models_dir.is_dir():
            return []
        return sorted(
            p.name for p in self.models_dir.iterdir()
            if p.is_file() and not p.name.endswith(TEMP_SUFFIX)
        )

    def path_for(self, name: str) -> Path:
        # Only the last path segment is honoured
        return self.models_dir / Path(name).name

    def resolve(self, name: Optional[str]) -> Optional[Path]:
        if not name or not Path(name).name:
            return None
        path = self.path_for(name)
        return path if path.is_file() else None

    def resolve_path(self, path: Optional[str]) -> Optional[Path]:
        """Existence-check an absolute saved path (the persisted model reference)."""
        if not path:
            return None
        p = Path(path)
        return p if p.is_file() else None

    def current_selection(self, saved_name: Optional[str], fallback_name: Optional[str]) -> Optional[str]:
        return current_selection(saved_name, fallback_name, self.list_models())

    def remove(self, name: str) -> bool:
        path = self.resolve(name)
        if path is None:
            return False
        path.unlink(missing_ok=True)
        logger.info("Removed model %s", path)
        return True
