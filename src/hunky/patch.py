"""Patch synthesis for hunk, line and partial staging.

A patch is rendered from fragments. Each fragment is a run of lines plus the
1-based position of its first line in the image the patch is applied to: the
old side for forward application, the new side for reverse application.
Headers are derived from those positions, so a fragment cut out of a larger
hunk still carries exact ``@@`` coordinates and git can apply it even with
zero lines of context.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from hunky.errors import LineIndexOutOfBounds, UnsupportedLineKind
from hunky.models import DiffLine, Hunk, LineType

MAX_LINE_CONTEXT = 3


@dataclass
class Fragment:
    """Lines of one ``@@`` block and where they sit in the target image."""

    base: int
    lines: List[DiffLine]

    @property
    def old_count(self) -> int:
        return sum(1 for line in self.lines if line.type != LineType.ADDITION)

    @property
    def new_count(self) -> int:
        return sum(1 for line in self.lines if line.type != LineType.DELETION)

    @property
    def has_changes(self) -> bool:
        return any(line.is_change for line in self.lines)


def first_positions(hunk: Hunk) -> Tuple[int, int]:
    """Old and new line numbers of the hunk's first line on each side.

    A side with no lines (count 0) is anchored after its start line, which
    is how unified diffs encode a pure insertion or removal.
    """
    old_pos = hunk.old_start if hunk.old_count else hunk.old_start + 1
    new_pos = hunk.new_start if hunk.new_count else hunk.new_start + 1
    return old_pos, new_pos


def positions_before(hunk: Hunk, index: int) -> Tuple[int, int]:
    """Old and new line numbers at which hunk.lines[index] begins."""
    old_pos, new_pos = first_positions(hunk)
    for line in hunk.lines[:index]:
        if line.type != LineType.ADDITION:
            old_pos += 1
        if line.type != LineType.DELETION:
            new_pos += 1
    return old_pos, new_pos


def line_window(hunk: Hunk, index: int) -> Tuple[int, int]:
    """Return the inclusive [start, end] range used to patch one line.

    The target must be an addition or deletion. Up to three context lines are
    taken on each side, stopping at the neighbouring change line or the hunk
    edge.
    """
    if index < 0 or index >= len(hunk.lines):
        raise LineIndexOutOfBounds(f"line index {index} out of range for hunk of {len(hunk.lines)} lines")
    if not hunk.lines[index].is_change:
        raise UnsupportedLineKind("only added or removed lines can be staged individually")

    start = index
    while start > 0 and index - start < MAX_LINE_CONTEXT and hunk.lines[start - 1].type == LineType.CONTEXT:
        start -= 1
    end = index
    while end + 1 < len(hunk.lines) and end - index < MAX_LINE_CONTEXT and hunk.lines[end + 1].type == LineType.CONTEXT:
        end += 1
    return start, end


def hunk_fragment(hunk: Hunk, reverse: bool = False) -> Fragment:
    old_pos, new_pos = first_positions(hunk)
    return Fragment(base=new_pos if reverse else old_pos, lines=list(hunk.lines))


def line_fragment(hunk: Hunk, index: int, reverse: bool = False) -> Fragment:
    start, end = line_window(hunk, index)
    old_pos, new_pos = positions_before(hunk, start)
    return Fragment(base=new_pos if reverse else old_pos, lines=hunk.lines[start:end + 1])


def partial_fragment(hunk: Hunk, selected: Iterable[int], reverse: bool = False) -> Fragment:
    """Fragment that applies only the selected change lines of hunk.

    Forward: unselected deletions stay in the file, so they become context,
    and unselected additions are dropped. Reverse application mirrors this:
    unselected additions are present in the target and become context while
    unselected deletions are dropped.
    """
    chosen: Set[int] = set(selected)
    for idx in chosen:
        if idx < 0 or idx >= len(hunk.lines):
            raise LineIndexOutOfBounds(f"line index {idx} out of range for hunk of {len(hunk.lines)} lines")

    kept_type, dropped_type = (
        (LineType.ADDITION, LineType.DELETION) if reverse else (LineType.DELETION, LineType.ADDITION)
    )
    lines: List[DiffLine] = []
    for idx, line in enumerate(hunk.lines):
        if idx in chosen or line.type == LineType.CONTEXT:
            lines.append(line)
        elif line.type == kept_type:
            lines.append(line.model_copy(update={"type": LineType.CONTEXT}))
        elif line.type == dropped_type:
            continue
    old_pos, new_pos = first_positions(hunk)
    return Fragment(base=new_pos if reverse else old_pos, lines=lines)


def fragment_headers(fragments: List[Fragment], reverse: bool = False) -> List[str]:
    """Compute ``@@`` headers, carrying the line shift of earlier fragments."""
    headers = []
    shift = 0
    for fragment in fragments:
        old_count, new_count = fragment.old_count, fragment.new_count
        if reverse:
            new_base = fragment.base
            old_base = fragment.base - shift
        else:
            old_base = fragment.base
            new_base = fragment.base + shift
        old_start = old_base if old_count else old_base - 1
        new_start = new_base if new_count else new_base - 1
        headers.append(f"@@ -{old_start},{old_count} +{new_start},{new_count} @@\n")
        shift += new_count - old_count
    return headers


def render_patch(
    path: str,
    fragments: List[Fragment],
    reverse: bool = False,
    new_file_mode: Optional[str] = None,
    deleted_file_mode: Optional[str] = None,
) -> str:
    """Render a git-style patch for one path.

    reverse only affects which side the fragment positions refer to; the
    text still describes old -> new and is reversed by the applier.
    """
    old_label = _label("a/", path)
    new_label = _label("b/", path)
    out = [f"diff --git {old_label} {new_label}\n"]
    if new_file_mode:
        out.append(f"new file mode {new_file_mode}\n")
        old_label = "/dev/null"
    if deleted_file_mode:
        out.append(f"deleted file mode {deleted_file_mode}\n")
        new_label = "/dev/null"
    out.append(f"--- {old_label}\n")
    out.append(f"+++ {new_label}\n")

    ordered = sorted((f for f in fragments if f.has_changes), key=lambda f: f.base)
    for header, fragment in zip(fragment_headers(ordered, reverse), ordered):
        out.append(header)
        out.extend(line.patch_text() for line in fragment.lines)
    return "".join(out)


def quote_path(path: str) -> str:
    """Quote path the way git does when it contains special characters."""
    if not any(ch in path for ch in '"\\\n\t'):
        return path
    escaped = (
        path.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _label(prefix: str, path: str) -> str:
    quoted = quote_path(path)
    if quoted.startswith('"'):
        return f'"{prefix}{quoted[1:]}'
    return f"{prefix}{path}"
