"""Hunk and line staging against the index.

Hunks shown to the user come from the HEAD -> working tree diff. The index
sits between those two images, so every operation here works with two more
diffs of the same path:

* staged: HEAD -> index
* unstaged: index -> working tree

A line of a displayed hunk is located in those diffs by its line numbers
only. Patches are cut from the diff that describes the image being patched
(unstaged for staging, staged for unstaging), so their coordinates are
always exact for the current index.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from hunky.errors import LineIndexOutOfBounds, UnsupportedLineKind
from hunky.git_service import GitService
from hunky.models import DiffLine, FileChange, FileStatus, Hunk, LineType
from hunky.patch import Fragment, first_positions, hunk_fragment, line_fragment, partial_fragment, render_patch

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = "100644"

# (hunk index, line index) inside a staged or unstaged diff
Target = Tuple[int, int]


def translate(hunks: List[Hunk], pos: int, reverse: bool = False) -> Optional[int]:
    """Map line pos of one side of a diff onto the other side.

    Forward maps old -> new and reverse maps new -> old. Returns None when
    the line is removed (forward) or added (reverse) by the diff, because it
    has no counterpart on the other side.
    """
    offset = 0
    for hunk in hunks:
        old_pos, new_pos = first_positions(hunk)
        if pos < (new_pos if reverse else old_pos):
            break
        for line in hunk.lines:
            here, there = (line.new_num, line.old_num) if reverse else (line.old_num, line.new_num)
            if here == pos:
                return there
        if reverse:
            offset += hunk.old_count - hunk.new_count
        else:
            offset += hunk.new_count - hunk.old_count
    return pos + offset


def _find(hunks: List[Hunk], line_type: LineType, attr: str, number: Optional[int]) -> Optional[Target]:
    if number is None:
        return None
    for hunk_idx, hunk in enumerate(hunks):
        for idx, line in enumerate(hunk.lines):
            if line.type == line_type and getattr(line, attr) == number:
                return hunk_idx, idx
    return None


def _unstaged_target(line: DiffLine, staged: List[Hunk], unstaged: List[Hunk]) -> Optional[Target]:
    """Where line still waits to be staged, or None if the index already has it."""
    if line.type == LineType.ADDITION:
        return _find(unstaged, LineType.ADDITION, "new_num", line.new_num)
    index_line = translate(staged, line.old_num) if line.old_num is not None else None
    return _find(unstaged, LineType.DELETION, "old_num", index_line)


def _staged_target(line: DiffLine, staged: List[Hunk], unstaged: List[Hunk]) -> Optional[Target]:
    """Where the index records line, or None if it is not staged."""
    if line.type == LineType.DELETION:
        return _find(staged, LineType.DELETION, "old_num", line.old_num)
    index_line = translate(unstaged, line.new_num, reverse=True) if line.new_num is not None else None
    return _find(staged, LineType.ADDITION, "new_num", index_line)


def _check_line(hunk: Hunk, index: int) -> None:
    if index < 0 or index >= len(hunk.lines):
        raise LineIndexOutOfBounds(f"line index {index} out of range for hunk of {len(hunk.lines)} lines")
    if not hunk.lines[index].is_change:
        raise UnsupportedLineKind("only added or removed lines can be staged individually")


def _group(targets: Iterable[Optional[Target]]) -> Dict[int, Set[int]]:
    selection: Dict[int, Set[int]] = {}
    for target in targets:
        if target is not None:
            selection.setdefault(target[0], set()).add(target[1])
    return selection


def _fragment(hunk: Hunk, selected: Set[int], reverse: bool) -> Fragment:
    if selected == set(hunk.change_indices()):
        return hunk_fragment(hunk, reverse)
    return partial_fragment(hunk, selected, reverse)


def _covers(change: FileChange, selection: Dict[int, Set[int]], line_type: LineType) -> bool:
    return all(
        idx in selection.get(hunk_idx, ())
        for hunk_idx, hunk in enumerate(change.hunks)
        for idx, line in enumerate(hunk.lines)
        if line.type == line_type
    )


def _file_modes(change: Optional[FileChange], selection: Dict[int, Set[int]], reverse: bool) -> Dict[str, str]:
    """Creation or deletion headers for patches that add or drop the index entry."""
    if change is None:
        return {}
    mode = change.mode or DEFAULT_FILE_MODE
    if not reverse:
        if change.status == FileStatus.ADDED:
            return {"new_file_mode": mode}
        if change.status == FileStatus.DELETED and _covers(change, selection, LineType.DELETION):
            return {"deleted_file_mode": mode}
    else:
        if change.status == FileStatus.DELETED:
            return {"deleted_file_mode": mode}
        if change.status == FileStatus.ADDED and _covers(change, selection, LineType.ADDITION):
            return {"new_file_mode": mode}
    return {}


class StagingService:
    """Stage and unstage hunks and single lines of the working tree diff."""

    def __init__(self, git_service: GitService) -> None:
        self.git = git_service

    def detect_staged_lines(self, hunk: Hunk, path: str) -> List[int]:
        """Return the sorted indices of hunk's change lines already in the index.

        A deletion of HEAD line m is staged when the index also removes line
        m. An addition at working tree line n is staged when line n exists in
        the index (at line i) and index line i is an addition relative to
        HEAD. Text is never compared, so identical lines elsewhere in the
        file cannot match.
        """
        return self.staged_lines_by_hunk([hunk], path)[0]

    def staged_lines_by_hunk(self, hunks: List[Hunk], path: str) -> List[List[int]]:
        """detect_staged_lines for several hunks of one path, reading the index once."""
        staged = self.git.staged_hunks(path)
        unstaged = self.git.unstaged_hunks(path)
        return [
            [idx for idx in hunk.change_indices() if _staged_target(hunk.lines[idx], staged, unstaged) is not None]
            for hunk in hunks
        ]

    def stage_hunk(self, hunk: Hunk, path: str) -> int:
        """Stage every change line of hunk; return how many lines were staged."""
        return self.stage_lines(hunk, hunk.change_indices(), path)

    def unstage_hunk(self, hunk: Hunk, path: str) -> int:
        """Unstage every change line of hunk; return how many lines were unstaged."""
        return self.unstage_lines(hunk, hunk.change_indices(), path)

    def stage_line(self, hunk: Hunk, index: int, path: str) -> bool:
        """Stage hunk.lines[index] on its own.

        Returns False without touching the index when the line is already
        staged.
        """
        _check_line(hunk, index)
        staged_change = self.git.staged_change(path)
        unstaged_change = self.git.unstaged_change(path)
        target = _unstaged_target(
            hunk.lines[index],
            staged_change.hunks if staged_change else [],
            unstaged_change.hunks if unstaged_change else [],
        )
        if target is None or unstaged_change is None:
            logger.debug("Line %d of %s is already staged", index, path)
            return False

        hunk_idx, line_idx = target
        fragment = line_fragment(unstaged_change.hunks[hunk_idx], line_idx)
        modes = _file_modes(unstaged_change, {hunk_idx: {line_idx}}, reverse=False)
        self._apply(render_patch(path, [fragment], **modes))
        logger.info("Staged line %d of %s", index, path)
        return True

    def unstage_line(self, hunk: Hunk, index: int, path: str) -> bool:
        """Remove hunk.lines[index] from the index, leaving the working tree alone.

        Returns False without touching the index when the line is not staged.
        """
        _check_line(hunk, index)
        staged_change = self.git.staged_change(path)
        unstaged_change = self.git.unstaged_change(path)
        target = _staged_target(
            hunk.lines[index],
            staged_change.hunks if staged_change else [],
            unstaged_change.hunks if unstaged_change else [],
        )
        if target is None or staged_change is None:
            logger.debug("Line %d of %s is not staged", index, path)
            return False

        hunk_idx, line_idx = target
        fragment = line_fragment(staged_change.hunks[hunk_idx], line_idx, reverse=True)
        modes = _file_modes(staged_change, {hunk_idx: {line_idx}}, reverse=True)
        self._apply(render_patch(path, [fragment], reverse=True, **modes), reverse=True)
        logger.info("Unstaged line %d of %s", index, path)
        return True

    def stage_lines(self, hunk: Hunk, indices: Iterable[int], path: str) -> int:
        """Stage a set of change lines of hunk with a single patch."""
        indices = list(indices)
        for index in indices:
            _check_line(hunk, index)
        staged_change = self.git.staged_change(path)
        unstaged_change = self.git.unstaged_change(path)
        staged = staged_change.hunks if staged_change else []
        unstaged = unstaged_change.hunks if unstaged_change else []

        selection = _group(_unstaged_target(hunk.lines[idx], staged, unstaged) for idx in indices)
        if not selection or unstaged_change is None:
            logger.debug("Nothing left to stage in %s", path)
            return 0

        fragments = [_fragment(unstaged[h], lines, reverse=False) for h, lines in selection.items()]
        modes = _file_modes(unstaged_change, selection, reverse=False)
        self._apply(render_patch(path, fragments, **modes))
        count = sum(len(lines) for lines in selection.values())
        logger.info("Staged %d line(s) of %s", count, path)
        return count

    def unstage_lines(self, hunk: Hunk, indices: Iterable[int], path: str) -> int:
        """Unstage a set of change lines of hunk with a single reversed patch."""
        indices = list(indices)
        for index in indices:
            _check_line(hunk, index)
        staged_change = self.git.staged_change(path)
        unstaged_change = self.git.unstaged_change(path)
        staged = staged_change.hunks if staged_change else []
        unstaged = unstaged_change.hunks if unstaged_change else []

        selection = _group(_staged_target(hunk.lines[idx], staged, unstaged) for idx in indices)
        if not selection or staged_change is None:
            logger.debug("Nothing staged to unstage in %s", path)
            return 0

        fragments = [_fragment(staged[h], lines, reverse=True) for h, lines in selection.items()]
        modes = _file_modes(staged_change, selection, reverse=True)
        self._apply(render_patch(path, fragments, reverse=True, **modes), reverse=True)
        count = sum(len(lines) for lines in selection.values())
        logger.info("Unstaged %d line(s) of %s", count, path)
        return count

    def toggle_hunk(self, hunk: Hunk, path: str) -> bool:
        """Stage or unstage hunk as one action and report whether it ended staged.

        Nothing staged stages the whole hunk, everything staged unstages it,
        and a partially staged hunk always moves toward fully staged.
        """
        staged = set(self.detect_staged_lines(hunk, path))
        changes = hunk.change_indices()
        if not staged:
            self.stage_hunk(hunk, path)
            return True
        if staged.issuperset(changes):
            self.unstage_hunk(hunk, path)
            return False
        self.stage_lines(hunk, [idx for idx in changes if idx not in staged], path)
        return True

    def _apply(self, patch: str, reverse: bool = False) -> None:
        logger.debug("Applying patch (reverse=%s):\n%s", reverse, patch)
        self.git.backend.apply_patch(patch, reverse=reverse)
