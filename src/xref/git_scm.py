"""Git backend of the source code manager, on top of pygit2."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pygit2

from xref.errors import FileNotFoundInRevisionError, RevisionNotFoundError, SourceControlError
from xref.source_code_manager import HEAD, INDEX, WORKING_TREE, SourceCodeManager

logger = logging.getLogger(__name__)


class GitSourceCodeManager(SourceCodeManager):
    """Revisions are commit-ish strings, plus WORKING_TREE and INDEX.

    Modified files are found by comparing blob ids of two snapshots, so any
    pair of revisions can be compared, including working tree against a commit.
    """

    def __init__(self, repository_dir: Path | str) -> None:
        self._path = Path(repository_dir)
        try:
            self._repo = pygit2.Repository(str(self._path))
        except (KeyError, pygit2.GitError) as e:
            raise SourceControlError(f"Not a git repository: {self._path}") from e

    @property
    def workdir(self) -> Path:
        if not self._repo.workdir:
            raise SourceControlError(f"Repository {self._path} has no working tree")
        return Path(self._repo.workdir)

    def update_repository(self) -> None:
        for remote in self._repo.remotes:
            logger.info(f"Fetching {remote.name}")
            try:
                remote.fetch()
            except pygit2.GitError as e:
                raise SourceControlError(f"Failed to fetch {remote.name}: {e}") from e

    def get_list_of_branches(self) -> dict[str, str]:
        branches = {}
        for name in self._repo.branches.local:
            branch = self._repo.branches.local[name]
            commit = branch.peel(pygit2.Commit)
            branches[name] = str(commit.id)
        return branches

    def get_list_of_files(self, revision: str) -> list[str]:
        return sorted(self._snapshot(revision))

    def get_list_of_modified_files(self, old_revision: str, new_revision: str) -> list[str]:
        old = self._snapshot(old_revision)
        new = self._snapshot(new_revision)
        return sorted(path for path in old.keys() | new.keys() if old.get(path) != new.get(path))

    def get_file_content(self, revision: str, path: str) -> bytes:
        if revision == WORKING_TREE:
            file_path = self.workdir / path
            if not file_path.is_file():
                raise FileNotFoundInRevisionError(revision, path)
            return file_path.read_bytes()

        if revision == INDEX:
            index = self._read_index()
            try:
                entry = index[path]
            except KeyError as e:
                raise FileNotFoundInRevisionError(revision, path) from e
            return self._repo[entry.id].data

        tree = self._resolve_commit(revision).tree
        try:
            entry = tree[path]
        except KeyError as e:
            raise FileNotFoundInRevisionError(revision, path) from e
        obj = self._repo[entry.id]
        if not isinstance(obj, pygit2.Blob):
            raise FileNotFoundInRevisionError(revision, path)
        return obj.data

    def get_revision_info(self, revision: str) -> dict[str, Any]:
        if revision in (WORKING_TREE, INDEX):
            return {"id": revision}
        commit = self._resolve_commit(revision)
        return {
            "id": str(commit.id),
            "author": commit.author.name,
            "email": commit.author.email,
            "time": commit.commit_time,
            "message": commit.message.strip(),
        }

    # --- internals ---

    def _resolve_commit(self, revision: str) -> pygit2.Commit:
        if revision == HEAD and self._repo.head_is_unborn:
            raise RevisionNotFoundError(revision)
        try:
            obj = self._repo.revparse_single(revision)
            return obj.peel(pygit2.Commit)
        except (KeyError, ValueError, pygit2.GitError) as e:
            raise RevisionNotFoundError(revision) from e

    def _read_index(self) -> pygit2.Index:
        index = self._repo.index
        index.read()
        return index

    def _snapshot(self, revision: str) -> dict[str, str]:
        """Path to content id of every file at revision."""
        if revision == INDEX:
            return {entry.path: str(entry.id) for entry in self._read_index()}
        if revision == WORKING_TREE:
            return self._working_tree_snapshot()
        snapshot: dict[str, str] = {}
        self._walk_tree(self._resolve_commit(revision).tree, "", snapshot)
        return snapshot

    def _walk_tree(self, tree: pygit2.Tree, prefix: str, snapshot: dict[str, str]) -> None:
        for entry in tree:
            path = f"{prefix}{entry.name}"
            if entry.type_str == "tree":
                self._walk_tree(self._repo[entry.id], f"{path}/", snapshot)
            elif entry.type_str == "blob":
                snapshot[path] = str(entry.id)

    def _working_tree_snapshot(self) -> dict[str, str]:
        paths = {entry.path for entry in self._read_index()}
        try:
            status = self._repo.status()
        except pygit2.GitError as e:
            raise SourceControlError(f"Failed to read status of {self._path}: {e}") from e
        for path, flags in status.items():
            if flags & pygit2.GIT_STATUS_WT_DELETED:
                paths.discard(path)
            elif flags & pygit2.GIT_STATUS_WT_NEW:
                paths.add(path)

        snapshot = {}
        for path in paths:
            file_path = self.workdir / path
            if file_path.is_file():
                snapshot[path] = str(pygit2.hashfile(str(file_path)))
        return snapshot
