import logging
from pathlib import Path
from typing import List, Optional

from hunky.config import Settings
from hunky.diff_parser import parse_diff
from hunky.errors import CommitNotFound, DiffComputationError, GitError
from hunky.git_backend import CliGitBackend, GitBackend
from hunky.models import CommitInfo, DiffSnapshot, FileChange, FileStatus, Hunk

logger = logging.getLogger(__name__)


class GitService:
    """Service for reading changes from a git repository and staging whole files."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        settings: Optional[Settings] = None,
        backend: Optional[GitBackend] = None,
    ) -> None:
        """Open the repository containing repo_path (default: the current directory).

        Raises RepositoryNotFound or NotAWorkingRepository when the path is not
        inside a working tree.
        """
        self.settings = settings or Settings()
        if backend is None:
            backend = CliGitBackend.discover(repo_path or Path.cwd(), self.settings.git_executable)
        self.backend = backend
        self.repo_path = backend.repo_path

    @property
    def context_lines(self) -> int:
        return self.settings.context_lines

    def base_tree(self) -> str:
        """HEAD, or the empty tree when nothing has been committed yet."""
        return self.backend.head_commit() or self.backend.empty_tree()

    def build_snapshot(self) -> DiffSnapshot:
        """Get HEAD vs. index+working tree, staged and unstaged edits merged per path."""
        try:
            diff_output = self.backend.diff(self.base_tree(), context_lines=self.context_lines)
            files = parse_diff(diff_output)
            # A path removed from the index but still on disk is already
            # reported by the diff above.
            known = {f.path for f in files}
            files.extend(
                self._untracked_change(path) for path in self.backend.untracked_files() if path not in known
            )
        except GitError as e:
            raise DiffComputationError(f"Failed to compute working tree diff: {e}") from e

        files.sort(key=lambda f: f.path)
        logger.debug("Built snapshot with %d files", len(files))
        return DiffSnapshot(files=files)

    def build_file_change(self, path: str) -> Optional[FileChange]:
        """Get the current HEAD vs. working tree change of a single path, or None if unchanged."""
        try:
            diff_output = self.backend.diff(self.base_tree(), paths=[path], context_lines=self.context_lines)
            change = _find_change(parse_diff(diff_output), path)
            if change is None and self._is_untracked(path):
                change = self._untracked_change(path)
        except GitError as e:
            raise DiffComputationError(f"Failed to compute diff for {path}: {e}") from e
        return change

    def build_file_hunks(self, path: str) -> List[Hunk]:
        """Get the current HEAD vs. working tree hunks of a single path."""
        change = self.build_file_change(path)
        return change.hunks if change else []

    def staged_change(self, path: str) -> Optional[FileChange]:
        """HEAD vs. index for path (old side HEAD, new side index), or None if equal."""
        try:
            diff_output = self.backend.diff(
                self.base_tree(), cached=True, paths=[path], context_lines=self.context_lines
            )
        except GitError as e:
            raise DiffComputationError(f"Failed to compute staged diff for {path}: {e}") from e
        return _find_change(parse_diff(diff_output), path)

    def staged_hunks(self, path: str) -> List[Hunk]:
        change = self.staged_change(path)
        return change.hunks if change else []

    def unstaged_change(self, path: str) -> Optional[FileChange]:
        """Index vs. working tree for path (old side index, new side working tree).

        An untracked file is presented as an addition against an empty index
        entry.
        """
        try:
            if self._is_untracked(path):
                return self._untracked_change(path)
            diff_output = self.backend.diff(paths=[path], context_lines=self.context_lines)
        except GitError as e:
            raise DiffComputationError(f"Failed to compute unstaged diff for {path}: {e}") from e
        return _find_change(parse_diff(diff_output), path)

    def unstaged_hunks(self, path: str) -> List[Hunk]:
        change = self.unstaged_change(path)
        return change.hunks if change else []

    def is_tracked(self, path: str) -> bool:
        return self.backend.is_tracked(path)

    def is_ignored(self, path: str) -> bool:
        return self.backend.is_ignored(path)

    def commit_diff(self, commit_id: str) -> DiffSnapshot:
        """Get the changes a commit introduced relative to its first parent.

        A root commit is compared against the empty tree, so every path it
        contains is reported as added.
        """
        sha = self.backend.resolve_commit(commit_id)
        if sha is None:
            raise CommitNotFound(f"Commit not found: {commit_id}")
        try:
            parent = self.backend.first_parent(sha) or self.backend.empty_tree()
            diff_output = self.backend.diff(parent, sha, context_lines=self.context_lines, find_renames=True)
            files = parse_diff(diff_output)
            info = self.backend.log(1, sha)
        except GitError as e:
            raise DiffComputationError(f"Failed to compute diff for commit {commit_id}: {e}") from e

        return DiffSnapshot(files=files, commit=info[0] if info else None)

    def recent_commits(self, limit: int) -> List[CommitInfo]:
        """Get up to limit commits from HEAD, newest first."""
        try:
            return self.backend.log(limit)
        except GitError as e:
            raise DiffComputationError(f"Failed to list commits: {e}") from e

    def stage_file(self, path: str) -> None:
        """Record the working tree state of path in the index, including deletion."""
        self.backend.add_path(path)
        logger.info("Staged file %s", path)

    def unstage_file(self, path: str) -> None:
        """Restore the index entry of path to its HEAD state."""
        self.backend.reset_path(path)
        logger.info("Unstaged file %s", path)

    def _is_untracked(self, path: str) -> bool:
        return not self.backend.is_tracked(path) and (self.repo_path / path).is_file()

    def _untracked_change(self, path: str) -> FileChange:
        """Present an untracked file as a whole-file addition."""
        parsed = parse_diff(self.backend.untracked_diff(path, context_lines=self.context_lines))
        first = parsed[0] if parsed else None
        hunks = [hunk.model_copy(update={"file_path": path}) for hunk in first.hunks] if first else []
        return FileChange(
            path=path,
            status=FileStatus.ADDED,
            hunks=hunks,
            is_binary=bool(first and first.is_binary),
            mode=first.mode if first else None,
        )


def _find_change(files: List[FileChange], path: str) -> Optional[FileChange]:
    return next((f for f in files if f.path == path or f.old_path == path), None)
