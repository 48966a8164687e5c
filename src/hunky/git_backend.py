"""Git capability interface and its git-executable implementation.

Everything hunky needs from version control goes through GitBackend, so the
engine's behavior does not depend on how git is reached. CliGitBackend runs
the ``git`` executable; tests substitute their own implementations.
"""

from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from hunky.errors import GitError, NotAWorkingRepository, PatchApplyError, RepositoryNotFound
from hunky.models import CommitInfo

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class GitBackend(ABC):
    """Operations the engine performs against one repository."""

    repo_path: Path

    @abstractmethod
    def head_commit(self) -> Optional[str]:
        """Return the HEAD commit id, or None when HEAD is unborn."""

    @abstractmethod
    def empty_tree(self) -> str:
        """Return the id of the empty tree in this repository's hash format."""

    @abstractmethod
    def diff(
        self,
        *revisions: str,
        cached: bool = False,
        paths: Sequence[str] = (),
        context_lines: int = 3,
        find_renames: bool = False,
    ) -> str:
        """Return unified diff text, with the same endpoint rules as ``git diff``."""

    @abstractmethod
    def untracked_files(self) -> List[str]:
        """Return untracked, non-ignored files, recursing into untracked directories."""

    @abstractmethod
    def untracked_diff(self, path: str, context_lines: int = 3) -> str:
        """Return diff text presenting an untracked file as newly added."""

    @abstractmethod
    def is_tracked(self, path: str) -> bool:
        """Return True if path has an entry in the index."""

    @abstractmethod
    def is_ignored(self, path: str) -> bool:
        """Return True if path is excluded by ignore rules."""

    @abstractmethod
    def apply_patch(self, patch: str, reverse: bool = False) -> None:
        """Apply patch to the index only, atomically; raise PatchApplyError on rejection."""

    @abstractmethod
    def add_path(self, path: str) -> None:
        """Record the working-tree state of path (including its removal) in the index."""

    @abstractmethod
    def reset_path(self, path: str) -> None:
        """Restore the index entry of path to HEAD (drop it when HEAD is unborn)."""

    @abstractmethod
    def resolve_commit(self, ref: str) -> Optional[str]:
        """Return the full id of the commit ref names, or None."""

    @abstractmethod
    def first_parent(self, sha: str) -> Optional[str]:
        """Return the first parent of commit sha, or None for a root commit."""

    @abstractmethod
    def log(self, limit: int, rev: str = "HEAD") -> List[CommitInfo]:
        """Return up to limit commits reachable from rev, newest first."""


class CliGitBackend(GitBackend):
    """GitBackend that shells out to the git executable."""

    def __init__(self, repo_path: Path, git_executable: str = "git") -> None:
        self.repo_path = Path(repo_path)
        self.git_executable = git_executable
        self._empty_tree: Optional[str] = None

    @classmethod
    def discover(cls, path: str | Path, git_executable: str = "git") -> "CliGitBackend":
        """Locate the working tree containing path."""
        start = Path(path).resolve()
        if not start.exists():
            raise RepositoryNotFound(f"path does not exist: {start}")
        cwd = start if start.is_dir() else start.parent

        locator = cls(cwd, git_executable)
        result = locator._run(["rev-parse", "--git-dir"], ok_codes=None)
        if result.returncode != 0:
            raise RepositoryNotFound(f"not a git repository: {start}")

        flags = locator._run(["rev-parse", "--is-bare-repository", "--is-inside-git-dir"]).stdout.split()
        if "true" in flags:
            raise NotAWorkingRepository(f"repository at {start} has no working directory")

        toplevel = locator._run(["rev-parse", "--show-toplevel"]).stdout.strip()
        if not toplevel:
            raise NotAWorkingRepository(f"repository at {start} has no working directory")
        return cls(Path(toplevel), git_executable)

    def _run(
        self,
        args: List[str],
        input_text: Optional[str] = None,
        ok_codes: Optional[Sequence[int]] = (0,),
    ) -> subprocess.CompletedProcess:
        """Run git in the repository and return the completed process.

        Output is decoded without newline translation, so carriage returns in
        file content survive. ok_codes=None accepts any exit status.
        """
        cmd = [self.git_executable, "-c", "core.quotePath=false", *args]
        logger.debug("Running git command: %s", " ".join(cmd))
        env = dict(os.environ, GIT_OPTIONAL_LOCKS="0")
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_path,
                input=None if input_text is None else input_text.encode(_ENCODING, _ERRORS),
                capture_output=True,
                env=env,
                check=False,
            )
        except OSError as e:
            raise GitError(f"failed to execute git: {e}", cmd) from e

        result.stdout = result.stdout.decode(_ENCODING, _ERRORS)
        result.stderr = result.stderr.decode(_ENCODING, _ERRORS)
        if ok_codes is not None and result.returncode not in ok_codes:
            logger.debug("git stderr: %s", result.stderr)
            raise GitError(f"git command failed: {' '.join(cmd)}", cmd, result.stderr)
        return result

    def head_commit(self) -> Optional[str]:
        return self.resolve_commit("HEAD")

    def empty_tree(self) -> str:
        if self._empty_tree is None:
            self._empty_tree = self._run(["hash-object", "-t", "tree", "--stdin"], input_text="").stdout.strip()
        return self._empty_tree

    def diff(
        self,
        *revisions: str,
        cached: bool = False,
        paths: Sequence[str] = (),
        context_lines: int = 3,
        find_renames: bool = False,
    ) -> str:
        args = [
            "diff",
            "--no-color",
            "--no-ext-diff",
            "--no-textconv",
            "--src-prefix=a/",
            "--dst-prefix=b/",
            f"--unified={context_lines}",
            "--find-renames" if find_renames else "--no-renames",
        ]
        if cached:
            args.append("--cached")
        args.extend(revisions)
        args.append("--")
        args.extend(paths)
        return self._run(args).stdout

    def untracked_files(self) -> List[str]:
        output = self._run(["ls-files", "--others", "--exclude-standard", "-z"]).stdout
        return [name for name in output.split("\0") if name]

    def untracked_diff(self, path: str, context_lines: int = 3) -> str:
        # --no-index exits with 1 when the inputs differ.
        return self._run(
            [
                "diff",
                "--no-index",
                "--no-color",
                "--no-ext-diff",
                "--src-prefix=a/",
                "--dst-prefix=b/",
                f"--unified={context_lines}",
                "--",
                os.devnull,
                path,
            ],
            ok_codes=(0, 1),
        ).stdout

    def is_tracked(self, path: str) -> bool:
        return bool(self._run(["ls-files", "-z", "--", path]).stdout.strip("\0"))

    def is_ignored(self, path: str) -> bool:
        return self._run(["check-ignore", "-q", "--", path], ok_codes=None).returncode == 0

    def apply_patch(self, patch: str, reverse: bool = False) -> None:
        args = ["apply", "--cached", "--unidiff-zero", "--whitespace=nowarn"]
        if reverse:
            args.append("--reverse")
        args.append("-")
        result = self._run(args, input_text=patch, ok_codes=None)
        if result.returncode != 0:
            action = "unstage" if reverse else "stage"
            raise PatchApplyError(f"Failed to {action} patch: {result.stderr.strip()}", patch)

    def add_path(self, path: str) -> None:
        self._run(["add", "-A", "--", path])

    def reset_path(self, path: str) -> None:
        if self.head_commit() is None:
            self._run(["rm", "--cached", "-q", "--ignore-unmatch", "--", path])
        else:
            self._run(["reset", "-q", "HEAD", "--", path])

    def resolve_commit(self, ref: str) -> Optional[str]:
        if not ref or ref.startswith("-"):
            return None
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], ok_codes=None)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def first_parent(self, sha: str) -> Optional[str]:
        ids = self._run(["rev-list", "--parents", "-n", "1", sha]).stdout.split()
        return ids[1] if len(ids) > 1 else None

    def log(self, limit: int, rev: str = "HEAD") -> List[CommitInfo]:
        if limit <= 0 or self.resolve_commit(rev) is None:
            return []
        fmt = _FIELD_SEP.join(["%H", "%h", "%an", "%s", "%ct"]) + _RECORD_SEP
        output = self._run(["log", f"-n{limit}", f"--format={fmt}", rev, "--"]).stdout
        commits = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, short_sha, author, summary, stamp = record.split(_FIELD_SEP)
            commits.append(
                CommitInfo(
                    sha=sha,
                    short_sha=short_sha if len(short_sha) >= 7 else sha[:7],
                    author=author,
                    summary=summary,
                    timestamp=datetime.fromtimestamp(int(stamp), tz=timezone.utc),
                )
            )
        return commits
