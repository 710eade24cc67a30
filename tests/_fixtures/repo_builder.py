"""Helper utilities for constructing temporary repositories in tests."""

from __future__ import annotations

import os
import textwrap
import time
from pathlib import Path
from typing import Mapping


class RepoBuilder:
    """Utility for writing files into a throwaway repository."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the repository."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def write_bytes(self, relative: str, data: bytes) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def age(self, relative: str, days: float) -> None:
        """Backdate the modification time of ``relative`` by ``days``."""
        stamp = time.time() - days * 86400
        os.utime(self.root / relative, (stamp, stamp))

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root


__all__ = ["RepoBuilder"]
