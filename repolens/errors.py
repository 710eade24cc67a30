"""Exception types shared across repolens."""

from __future__ import annotations

from pathlib import Path


class RepoLensError(RuntimeError):
    """Base class for repolens failures that callers may want to report."""


class ModelLoadError(RepoLensError):
    """Raised when an entity-recognition model cannot be initialised."""


def validate_root(root: str | Path) -> Path:
    """Resolve ``root`` and fail fast when it is not a usable directory."""
    path = Path(root).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Invalid directory: {path} does not exist")
    if not path.is_dir():
        raise NotADirectoryError(f"Invalid directory: {path} is not a directory")
    return path.resolve()


__all__ = ["ModelLoadError", "RepoLensError", "validate_root"]
