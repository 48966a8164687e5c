import logging
import time
import uuid
from pathlib import Path
from typing import List, Optional

from hunky.config import Settings
from hunky.errors import ReviewModeError
from hunky.git_service import GitService
from hunky.models import CommitInfo, DiffSnapshot, FileChange, Hunk
from hunky.seen import SeenTracker
from hunky.staging import StagingService

logger = logging.getLogger(__name__)


class ReviewSession:
    """Manages one interactive session: the current snapshot and what has been seen.

    A session shows either live changes (HEAD vs. index and working tree) or,
    in review mode, the changes of one historical commit. Switching between
    the two starts the seen bookkeeping over.
    """

    def __init__(
        self,
        repo_path: Optional[str] = None,
        settings: Optional[Settings] = None,
        git_service: Optional[GitService] = None,
        mark_initial_seen: bool = True,
    ) -> None:
        """Initialize a session and take the first snapshot.

        Parameters:
        - repo_path: Any path inside the working tree (default: current directory)
        - settings: Engine settings, read from the environment when omitted
        - git_service: Preconfigured GitService to use instead of discovering one
        - mark_initial_seen: Treat everything present at startup as already seen,
          so only later changes show up as new
        """
        self.id = str(uuid.uuid4())[:8]
        self.created_at = time.time()
        self.settings = settings or Settings()
        self.git_service = git_service or GitService(repo_path, self.settings)
        self.staging = StagingService(self.git_service)
        self.seen = SeenTracker()
        self.commit: Optional[str] = None

        self.snapshot = self.refresh()
        if mark_initial_seen:
            self.mark_all_seen()

    @property
    def repo_path(self) -> Path:
        return self.git_service.repo_path

    @property
    def is_live(self) -> bool:
        return self.commit is None

    def refresh(self) -> DiffSnapshot:
        """Rebuild the snapshot for the current source and annotate its hunks."""
        if self.commit is None:
            snapshot = self.git_service.build_snapshot()
        else:
            snapshot = self.git_service.commit_diff(self.commit)
        for file_change in snapshot.files:
            self._annotate(file_change.path, file_change.hunks)
        self.snapshot = snapshot
        return snapshot

    # Lets a FileWatcher drive the session directly.
    build_snapshot = refresh

    def is_ignored(self, path: str) -> bool:
        return self.git_service.is_ignored(path)

    def enter_review(self, commit: str) -> DiffSnapshot:
        """Show the changes of commit instead of the live working state."""
        snapshot = self.git_service.commit_diff(commit)
        self.commit = commit
        self.seen.clear()
        for file_change in snapshot.files:
            self._annotate(file_change.path, file_change.hunks)
        self.snapshot = snapshot
        logger.info("Entered review of commit %s", commit)
        return snapshot

    def leave_review(self) -> DiffSnapshot:
        """Return to live changes."""
        self.commit = None
        self.seen.clear()
        logger.info("Left review mode")
        return self.refresh()

    def recent_commits(self, limit: int) -> List[CommitInfo]:
        return self.git_service.recent_commits(limit)

    def mark_seen(self, hunk: Hunk) -> None:
        hunk.seen = True
        self.seen.mark_seen(hunk.id)

    def mark_all_seen(self) -> None:
        for _, hunk in self.snapshot.iter_hunks():
            self.mark_seen(hunk)

    def reset_seen(self) -> None:
        self.seen.clear()
        for _, hunk in self.snapshot.iter_hunks():
            hunk.seen = False

    def unseen_hunk_count(self) -> int:
        return sum(1 for _, hunk in self.snapshot.iter_hunks() if not self.seen.is_seen(hunk.id))

    def stage_file(self, path: str) -> None:
        self._require_live()
        self.git_service.stage_file(path)
        self._file_changed(path)

    def unstage_file(self, path: str) -> None:
        self._require_live()
        self.git_service.unstage_file(path)
        self._file_changed(path)

    def toggle_file(self, path: str) -> bool:
        """Unstage path if any of its lines are staged, stage it otherwise.

        Returns True when the file ended staged.
        """
        self._require_live()
        file_change = self.snapshot.file(path)
        hunks = file_change.hunks if file_change else []
        if any(self.staging.staged_lines_by_hunk(hunks, path)):
            self.unstage_file(path)
            return False
        self.stage_file(path)
        return True

    def detect_staged_lines(self, hunk: Hunk, path: str) -> List[int]:
        return self.staging.detect_staged_lines(hunk, path)

    def stage_hunk(self, hunk: Hunk, path: str) -> int:
        self._require_live()
        staged = self.staging.stage_hunk(hunk, path)
        self._file_changed(path)
        return staged

    def unstage_hunk(self, hunk: Hunk, path: str) -> int:
        self._require_live()
        unstaged = self.staging.unstage_hunk(hunk, path)
        self._file_changed(path)
        return unstaged

    def stage_line(self, hunk: Hunk, index: int, path: str) -> bool:
        self._require_live()
        changed = self.staging.stage_line(hunk, index, path)
        self._file_changed(path)
        return changed

    def unstage_line(self, hunk: Hunk, index: int, path: str) -> bool:
        self._require_live()
        changed = self.staging.unstage_line(hunk, index, path)
        self._file_changed(path)
        return changed

    def toggle_hunk(self, hunk: Hunk, path: str) -> bool:
        self._require_live()
        staged = self.staging.toggle_hunk(hunk, path)
        self._file_changed(path)
        return staged

    def commit_diff(self, commit_id: str) -> DiffSnapshot:
        return self.git_service.commit_diff(commit_id)

    def _require_live(self) -> None:
        if not self.is_live:
            raise ReviewModeError(f"Cannot change the index while reviewing commit {self.commit}")

    def _annotate(self, path: str, hunks: List[Hunk]) -> None:
        for hunk in hunks:
            hunk.seen = self.seen.is_seen(hunk.id)
        if self.is_live and hunks:
            for hunk, staged in zip(hunks, self.staging.staged_lines_by_hunk(hunks, path)):
                hunk.staged_line_indices = set(staged)

    def _file_changed(self, path: str) -> None:
        """Recompute the change of path after its index entry changed.

        Seen entries of the path are dropped; hunks whose identity survived the
        recomputation keep their seen state. A path that no longer differs from
        HEAD leaves the snapshot, one that was not shown yet is added to it.
        """
        old = self.snapshot.file(path)
        still_seen = {hunk.id for hunk in old.hunks if hunk.seen} if old else set()
        self.seen.remove_file_hunks(path)

        change = self.git_service.build_file_change(path)
        files: List[FileChange] = [f for f in self.snapshot.files if f.path != path]
        if change is not None:
            for hunk in change.hunks:
                if hunk.id in still_seen:
                    self.seen.mark_seen(hunk.id)
            self._annotate(path, change.hunks)
            files.append(change)
            files.sort(key=lambda f: f.path)
        self.snapshot = self.snapshot.model_copy(update={"files": files})
