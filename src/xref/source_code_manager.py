"""Contract of the revision-control backend used by incremental checks."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import PurePosixPath
from typing import Any

from xref.file_provider import FileProvider, is_excluded

# symbolic revisions every backend understands
WORKING_TREE = "WORKING_TREE"  # files on disk, including untracked ones
INDEX = "INDEX"  # staged content
HEAD = "HEAD"


class SourceCodeManager(ABC):
    """Supplies file lists, file content and diffs for revisions."""

    @abstractmethod
    def update_repository(self) -> None:
        """Bring the local copy up to date with its remotes."""
        pass

    @abstractmethod
    def get_list_of_branches(self) -> dict[str, str]:
        """Branch name to the revision id it points at."""
        pass

    @abstractmethod
    def get_list_of_files(self, revision: str) -> list[str]:
        pass

    @abstractmethod
    def get_list_of_modified_files(self, old_revision: str, new_revision: str) -> list[str]:
        """Paths added, removed or changed between two revisions."""
        pass

    @abstractmethod
    def get_file_content(self, revision: str, path: str) -> bytes:
        """Content of path at revision.

        Raises:
            RevisionNotFoundError: If the revision can't be resolved.
            FileNotFoundInRevisionError: If path doesn't exist at the revision.
        """
        pass

    @abstractmethod
    def get_revision_info(self, revision: str) -> dict[str, Any]:
        """Backend-specific metadata such as author, time and message."""
        pass

    def get_file_provider(self, revision: str, extensions: Iterable[str] = ("php",)) -> "ScmFileProvider":
        return ScmFileProvider(self, revision, extensions)


class ScmFileProvider(FileProvider):
    """Files of one revision, read through a SourceCodeManager."""

    def __init__(self, scm: SourceCodeManager, revision: str, extensions: Iterable[str] = ("php",)):
        super().__init__()
        self.scm = scm
        self.revision = revision
        self.extensions = {ext.lower().lstrip(".") for ext in extensions}

    def get_files(self) -> list[str]:
        return sorted(
            path for path in self.scm.get_list_of_files(self.revision)
            if PurePosixPath(path).suffix.lower().lstrip(".") in self.extensions
            and not is_excluded(path, self.excluded)
        )

    def get_file_content(self, file_name: str) -> bytes:
        return self.scm.get_file_content(self.revision, file_name)
