"""Sources of file names and file content for the lint engines."""

import os
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

# directories never worth linting
SKIPPED_DIRECTORIES = frozenset({".git", ".hg", ".svn", ".xref-data", "node_modules"})


def is_excluded(file_name: str, excluded: Iterable[str]) -> bool:
    """Check whether file_name is one of the excluded paths or lies below one."""
    path = PurePosixPath(file_name)
    for exclude in excluded:
        exclude_path = PurePosixPath(exclude.strip("/"))
        if path == exclude_path or exclude_path in path.parents:
            return True
    return False


class FileProvider(ABC):
    """Enumerates the files of one revision or location and yields their content."""

    def __init__(self):
        self.excluded: list[str] = []

    def exclude_paths(self, paths: Iterable[str]) -> None:
        """Hide paths, and everything below them, from get_files()."""
        self.excluded.extend(paths)

    @abstractmethod
    def get_files(self) -> list[str]:
        """Relative, '/'-separated file names in sorted order."""
        pass

    @abstractmethod
    def get_file_content(self, file_name: str) -> bytes:
        pass


class FileSystemFileProvider(FileProvider):
    """Files with the given extensions below root (or below some paths inside root)."""

    def __init__(
        self,
        root: Path,
        paths: Iterable[str] | None = None,
        extensions: Iterable[str] = ("php",),
    ):
        super().__init__()
        self.root = root
        self.paths = list(paths) if paths else ["."]
        self.extensions = {ext.lower().lstrip(".") for ext in extensions}

    def get_files(self) -> list[str]:
        files = set()
        for path in self.paths:
            start = (self.root / path).resolve()
            if start.is_file():
                candidates = [start]
            else:
                candidates = self._walk(start)
            for candidate in candidates:
                if candidate.suffix.lower().lstrip(".") not in self.extensions:
                    continue
                try:
                    file_name = candidate.relative_to(self.root.resolve()).as_posix()
                except ValueError:
                    continue  # outside of root
                if not is_excluded(file_name, self.excluded):
                    files.add(file_name)
        return sorted(files)

    def _walk(self, start: Path) -> list[Path]:
        result = []
        for dirpath, dirnames, filenames in os.walk(start):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
            result.extend(Path(dirpath) / name for name in filenames)
        return result

    def get_file_content(self, file_name: str) -> bytes:
        """Read a file below root.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        return (self.root / file_name).read_bytes()
