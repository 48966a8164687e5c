from typing import Set

from hunky.models import HunkId


class SeenTracker:
    """Hunks the user has already looked at during this session."""

    def __init__(self) -> None:
        self._seen: Set[HunkId] = set()

    def mark_seen(self, hunk_id: HunkId) -> None:
        self._seen.add(hunk_id)

    def is_seen(self, hunk_id: HunkId) -> bool:
        return hunk_id in self._seen

    def remove_file_hunks(self, path: str) -> None:
        """Forget every hunk of path, e.g. after its hunks were recomputed."""
        self._seen = {hunk_id for hunk_id in self._seen if hunk_id.file_path != path}

    def clear(self) -> None:
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, hunk_id: HunkId) -> bool:
        return self.is_seen(hunk_id)
