"""Exception types raised by the hunky engine.

Every failure the engine can report derives from HunkyError so callers can
catch the whole family at one seam.
"""

from __future__ import annotations

from typing import List, Optional


class HunkyError(Exception):
    """Base class for all hunky specific errors."""


class GitError(HunkyError):
    """Raised when a git invocation fails."""

    def __init__(self, message: str, command: Optional[List[str]] = None, stderr: str = "") -> None:
        self.command = command or []
        self.stderr = stderr
        details = message
        if stderr.strip():
            details = f"{message}: {stderr.strip()}"
        super().__init__(details)


class RepositoryNotFound(HunkyError):
    """Raised when a path is not inside any git repository."""


class NotAWorkingRepository(HunkyError):
    """Raised when the repository has no working tree (bare, or inside .git)."""


class DiffComputationError(HunkyError):
    """Raised when a diff cannot be computed or parsed."""


class CommitNotFound(HunkyError):
    """Raised when a commit identifier does not resolve to a commit."""


class LineIndexOutOfBounds(HunkyError):
    """Raised when a line index does not exist in the hunk."""


class UnsupportedLineKind(HunkyError):
    """Raised when a context line is used as a single-line staging target."""


class PatchApplyError(HunkyError):
    """Raised when git rejects a synthesized patch.

    The index is left untouched; patch_text holds the rejected patch so it can
    be inspected.
    """

    def __init__(self, message: str, patch_text: str) -> None:
        self.message = message
        self.patch_text = patch_text
        super().__init__(f"{message}\nPatch was:\n{patch_text}")


class ReviewModeError(HunkyError):
    """Raised when the index is changed while a historical commit is shown."""
