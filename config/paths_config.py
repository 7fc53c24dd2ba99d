from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

@dataclass(frozen=True, slots=True)
class PathsConfig:
    """
    File system locations used by the app

    All paths are stored as Path objects and normalized (expanded + resolved).
    Directories can be created with `ensure_dirs()`
    """
    base_dir: Path
    models_dir: Path
    settings_file: Path

    @staticmethod
    def from_strings(base_dir: str | Path) -> "PathsConfig":
        """
        Convenience constructor for CLI/env usage.

        Models live in `<base>/models`, persisted settings in `<base>/config/settings.json`.
        """
        base = PathsConfig._norm(base_dir)
        return PathsConfig(
            base_dir=base,
            models_dir=base / "models",
            settings_file=base / "config" / "settings.json",
        )

    def ensure_dirs(self) -> None:
        """
        Create the model cache and settings directories if they don't exist.
        """
        self.models_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)

    def validate(self) -> None:
        """
        Raises ValueError if a location exists but has the wrong type.
        """
        for p, label in [(self.base_dir, "base_dir"), (self.models_dir, "models_dir")]:
            if p.exists() and not p.is_dir():
                raise ValueError(f"{label} exists but is not a directory: {p}")
        if self.settings_file.exists() and not self.settings_file.is_file():
            raise ValueError(f"settings_file exists but is not a file: {self.settings_file}")

    @staticmethod
    def _norm(p: str | Path) -> Path:
        """
        Normalize a path: expand ~ and resolve to an absolute path.
        """
        return Path(p).expanduser().resolve()
