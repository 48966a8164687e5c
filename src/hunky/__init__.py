"""hunky: interactive hunk and line staging engine for git."""

from __future__ import annotations

from hunky.config import Settings
from hunky.errors import (
    CommitNotFound,
    DiffComputationError,
    GitError,
    HunkyError,
    LineIndexOutOfBounds,
    NotAWorkingRepository,
    PatchApplyError,
    RepositoryNotFound,
    ReviewModeError,
    UnsupportedLineKind,
)
from hunky.file_watcher import FileWatcher
from hunky.git_service import GitService
from hunky.models import CommitInfo, DiffLine, DiffSnapshot, FileChange, FileStatus, Hunk, HunkId, LineType
from hunky.review_session import ReviewSession
from hunky.seen import SeenTracker
from hunky.staging import StagingService

__all__: list[str] = [
    "CommitInfo",
    "CommitNotFound",
    "DiffComputationError",
    "DiffLine",
    "DiffSnapshot",
    "FileChange",
    "FileStatus",
    "FileWatcher",
    "GitError",
    "GitService",
    "Hunk",
    "HunkId",
    "HunkyError",
    "LineIndexOutOfBounds",
    "LineType",
    "NotAWorkingRepository",
    "PatchApplyError",
    "RepositoryNotFound",
    "ReviewModeError",
    "ReviewSession",
    "SeenTracker",
    "Settings",
    "StagingService",
    "UnsupportedLineKind",
]
