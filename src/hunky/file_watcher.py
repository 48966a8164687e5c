"""Debounced refresh of the diff snapshot on file-system changes."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from hunky.config import Settings
from hunky.errors import HunkyError
from hunky.logging_utils import TRACE, filtered_events_enabled
from hunky.models import DiffSnapshot

logger = logging.getLogger(__name__)

RELEVANT_KINDS = frozenset({"created", "modified", "removed"})
IgnorePredicate = Callable[[str], bool]


def should_process_event(
    path: str | Path,
    kind: str,
    repo_root: str | Path,
    is_ignored: Optional[IgnorePredicate] = None,
) -> bool:
    """Decide whether a file-system event should trigger a refresh.

    Only created/modified/removed events count. Inside the ``.git``
    directory only the index file is relevant, since staging from another
    tool rewrites it. Paths outside the repository and paths excluded by
    ignore rules are dropped.
    """
    if kind not in RELEVANT_KINDS:
        return False
    try:
        rel = Path(path).relative_to(Path(repo_root))
    except ValueError:
        return False
    parts = rel.parts
    if not parts:
        return False
    if parts[0] == ".git":
        return parts == (".git", "index")
    if is_ignored is not None and is_ignored(rel.as_posix()):
        return False
    return True


class Debouncer:
    """Trailing-edge debounce on a timer thread.

    A trigger during the delay window supersedes the pending one, so at most
    one callback invocation is ever pending.
    """

    def __init__(self, delay: float, callback: Callable[[], Any]) -> None:
        self.delay = delay
        self.callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A newer trigger or a cancel won the race with this timer.
            if generation != self._generation:
                return
            self._timer = None
        self.callback()


class RefreshEventHandler(FileSystemEventHandler):
    """Feeds relevant watchdog events into a Debouncer."""

    def __init__(
        self,
        repo_root: Path,
        debouncer: Debouncer,
        is_ignored: Optional[IgnorePredicate] = None,
        log_filtered: bool = False,
    ) -> None:
        self.repo_root = Path(repo_root)
        self.debouncer = debouncer
        self.is_ignored = is_ignored
        self.log_filtered = log_filtered

    def handle(self, path: str, kind: str) -> bool:
        """Trigger a refresh if (path, kind) is relevant; return whether it was."""
        if should_process_event(path, kind, self.repo_root, self.is_ignored):
            logger.debug("Refresh triggered by %s %s", kind, path)
            self.debouncer.trigger()
            return True
        if self.log_filtered:
            logger.log(TRACE, "Filtered event: %s %s", kind, path)
        return False

    def on_created(self, event: FileSystemEvent) -> None:
        self.handle(str(event.src_path), "created")

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtime updates always accompany an event on a file inside.
        if event.is_directory:
            return
        self.handle(str(event.src_path), "modified")

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.handle(str(event.src_path), "removed")

    def on_moved(self, event: FileSystemEvent) -> None:
        # Either end of the move being relevant is enough.
        removed = self.handle(str(event.src_path), "removed")
        if not removed:
            self.handle(str(event.dest_path), "created")


class FileWatcher:
    """Watches the working tree and delivers a fresh snapshot after each burst of changes.

    source is anything with ``repo_path`` and ``build_snapshot()``: a
    GitService, or a ReviewSession when snapshots should carry session
    annotations. on_snapshot runs on the debounce timer thread.
    """

    def __init__(
        self,
        source: Any,
        on_snapshot: Callable[[DiffSnapshot], Any],
        settings: Optional[Settings] = None,
    ) -> None:
        self.source = source
        self.on_snapshot = on_snapshot
        self.settings = settings or Settings()
        self.repo_root = Path(source.repo_path)
        self.debouncer = Debouncer(self.settings.debounce_seconds, self._rebuild)
        self.handler = RefreshEventHandler(
            self.repo_root,
            self.debouncer,
            is_ignored=getattr(source, "is_ignored", None),
            log_filtered=filtered_events_enabled(self.settings),
        )
        self.observer: Optional[BaseObserver] = None

    @property
    def is_watching(self) -> bool:
        return self.observer is not None

    def start(self) -> None:
        """Start watching the working tree recursively."""
        if self.observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.repo_root), recursive=True)
        observer.start()
        self.observer = observer
        logger.info("File watcher started for %s", self.repo_root)

    def stop(self) -> None:
        """Stop watching and drop any pending refresh."""
        self.debouncer.cancel()
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            logger.info("File watcher stopped for %s", self.repo_root)

    def refresh_now(self) -> Optional[DiffSnapshot]:
        """Rebuild immediately on the calling thread, superseding a pending refresh."""
        self.debouncer.cancel()
        return self._rebuild()

    def _rebuild(self) -> Optional[DiffSnapshot]:
        try:
            snapshot = self.source.build_snapshot()
        except HunkyError as e:
            logger.warning("Background refresh failed: %s", e)
            return None
        logger.debug("Created snapshot with %d files", len(snapshot.files))
        self.on_snapshot(snapshot)
        return snapshot
