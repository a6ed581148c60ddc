from __future__ import annotations

import pathlib
from abc import ABC, abstractmethod
from typing import Dict, Optional

CREATED = "created"
UPDATED = "updated"


class UnsafePathError(ValueError):
    """A relative path that points outside the project root."""


class PatchFileOps(ABC):
    """
    File access used by the edit pipeline. Paths are relative to the project
    root; open() raises FileNotFoundError for files that do not exist yet.
    Every successful write is recorded in changes_map as 'created' or
    'updated'. A file created during a run stays 'created'.
    """

    def __init__(self) -> None:
        self._changes: Dict[str, str] = {}

    @abstractmethod
    def open(self, rel_path: str) -> str: ...

    @abstractmethod
    def write(self, rel_path: str, content: str) -> None: ...

    @property
    def changes_map(self) -> Dict[str, str]:
        return self._changes

    def _mark(self, rel_path: str, existed: bool) -> None:
        self.changes_map.setdefault(rel_path, UPDATED if existed else CREATED)


class FileSystemPatchFileOps(PatchFileOps):
    def __init__(self, base_path: pathlib.Path):
        super().__init__()
        self.root = pathlib.Path(base_path).resolve()

    def resolve(self, rel_path: str) -> pathlib.Path:
        if pathlib.PurePath(rel_path).is_absolute() or rel_path.startswith("~"):
            raise UnsafePathError(f"Absolute paths are not allowed: {rel_path}")
        target = (self.root / rel_path).resolve()
        if target != self.root and self.root not in target.parents:
            raise UnsafePathError(f"Path escapes project root: {rel_path}")
        return target

    def open(self, rel_path: str) -> str:
        # newline="" keeps CRLF files intact
        with self.resolve(rel_path).open("rt", encoding="utf-8", newline="") as fh:
            return fh.read()

    def write(self, rel_path: str, content: str) -> None:
        target = self.resolve(rel_path)
        existed = target.exists()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8", newline="")
        self._mark(rel_path, existed)


class InMemoryFileOps(PatchFileOps):
    """Dict-backed file operations, handy for dry runs and tests."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        super().__init__()
        self.files: Dict[str, str] = dict(files or {})

    def open(self, rel_path: str) -> str:
        try:
            return self.files[rel_path]
        except KeyError:
            raise FileNotFoundError(rel_path) from None

    def write(self, rel_path: str, content: str) -> None:
        existed = rel_path in self.files
        self.files[rel_path] = content
        self._mark(rel_path, existed)
