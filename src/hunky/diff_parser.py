"""Unified diff parsing for hunky.

Turns the text produced by ``git diff`` into FileChange/Hunk models. The
parser walks the diff once: lines are grouped into per-file sections at each
``diff --git`` header, and each section's hunks are accumulated in a local
in-progress value that is emitted at the next ``@@`` boundary or at the end
of the section. Hunk bodies are consumed by the line counts in their header,
so a deleted line that itself starts with ``---`` is never mistaken for a
file header.
"""

from __future__ import annotations

import codecs
import re
from typing import Iterable, Iterator, List, Optional, Tuple

from hunky.errors import DiffComputationError
from hunky.models import DiffLine, FileChange, FileStatus, Hunk, LineType

_HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))?"
    r" \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))?"
    r" @@"
)
_DIFF_HEADER = "diff --git "
_DEV_NULL = "/dev/null"


def split_lines(text: str) -> List[str]:
    """Split diff text on newlines only, keeping carriage returns in content."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_diff(diff_text: str) -> List[FileChange]:
    """Parse the output of ``git diff`` into file changes, in diff order."""
    files: List[FileChange] = []
    for section in _iter_sections(split_lines(diff_text)):
        files.append(_parse_section(section))
    return files


def _iter_sections(lines: List[str]) -> Iterator[List[str]]:
    section: List[str] = []
    for line in lines:
        if line.startswith(_DIFF_HEADER):
            if section:
                yield section
            section = [line]
        elif section:
            section.append(line)
        # Anything before the first file header (commit preamble) is skipped.
    if section:
        yield section


def _parse_section(section: List[str]) -> FileChange:
    old_path, new_path = _paths_from_header(section[0])
    status = FileStatus.MODIFIED
    is_binary = False
    mode: Optional[str] = None

    i = 1
    while i < len(section) and not section[i].startswith("@@"):
        line = section[i]
        if line.startswith("new file mode "):
            status = FileStatus.ADDED
            mode = line.split()[-1]
        elif line.startswith("deleted file mode "):
            status = FileStatus.DELETED
            mode = line.split()[-1]
        elif line.startswith("new mode "):
            mode = line.split()[-1]
        elif line.startswith("index ") and mode is None:
            parts = line.split()
            if len(parts) == 3:
                mode = parts[2]
        elif line.startswith("rename from "):
            old_path = _unquote(line[len("rename from "):])
            status = FileStatus.RENAMED
        elif line.startswith("rename to "):
            new_path = _unquote(line[len("rename to "):])
            status = FileStatus.RENAMED
        elif line.startswith("copy from "):
            old_path = _unquote(line[len("copy from "):])
            status = FileStatus.COPIED
        elif line.startswith("copy to "):
            new_path = _unquote(line[len("copy to "):])
            status = FileStatus.COPIED
        elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
            is_binary = True
        elif line.startswith("--- "):
            label = _unquote(line[4:])
            if label == _DEV_NULL:
                status = FileStatus.ADDED
            else:
                old_path = _strip_prefix(label, "a/")
        elif line.startswith("+++ "):
            label = _unquote(line[4:])
            if label == _DEV_NULL:
                status = FileStatus.DELETED
            else:
                new_path = _strip_prefix(label, "b/")
        i += 1

    path = old_path if status == FileStatus.DELETED else new_path
    hunks = [] if is_binary else list(_iter_hunks(section[i:], path))
    return FileChange(
        path=path,
        old_path=old_path if old_path != path else None,
        status=status,
        hunks=hunks,
        is_binary=is_binary,
        mode=mode,
    )


def _iter_hunks(body: Iterable[str], path: str) -> Iterator[Hunk]:
    """Accumulate hunk lines, emitting each hunk at its closing boundary."""
    start: Optional[Tuple[int, int]] = None
    lines: List[DiffLine] = []
    old_left = new_left = 0
    old_num = new_num = 0

    for raw in body:
        if old_left == 0 and new_left == 0:
            match = _HUNK_HEADER_RE.match(raw)
            if match is None:
                if raw.startswith("\\") and lines:
                    lines[-1] = lines[-1].model_copy(update={"no_newline": True})
                continue
            if start is not None:
                yield Hunk(file_path=path, old_start=start[0], new_start=start[1], lines=lines)
            old_num = int(match.group("old_start"))
            new_num = int(match.group("new_start"))
            start = (old_num, new_num)
            old_left = _count(match.group("old_count"))
            new_left = _count(match.group("new_count"))
            lines = []
            continue

        if raw.startswith("\\"):
            if lines:
                lines[-1] = lines[-1].model_copy(update={"no_newline": True})
            continue

        prefix, content = (raw[0], raw[1:]) if raw else (" ", "")
        if prefix not in "+- ":
            raise DiffComputationError(f"unexpected line in hunk for {path}: {raw!r}")
        line_type = LineType.from_prefix(prefix)

        if line_type == LineType.CONTEXT:
            lines.append(DiffLine(type=line_type, content=content, old_num=old_num, new_num=new_num))
            old_num += 1
            new_num += 1
            old_left -= 1
            new_left -= 1
        elif line_type == LineType.DELETION:
            lines.append(DiffLine(type=line_type, content=content, old_num=old_num))
            old_num += 1
            old_left -= 1
        else:
            lines.append(DiffLine(type=line_type, content=content, new_num=new_num))
            new_num += 1
            new_left -= 1

        if old_left < 0 or new_left < 0:
            raise DiffComputationError(f"hunk for {path} is longer than its header says")

    if old_left or new_left:
        raise DiffComputationError(f"truncated hunk for {path}")
    if start is not None:
        yield Hunk(file_path=path, old_start=start[0], new_start=start[1], lines=lines)


def _count(group: Optional[str]) -> int:
    return 1 if group is None else int(group)


def _paths_from_header(header: str) -> Tuple[str, str]:
    rest = header[len(_DIFF_HEADER):]
    if rest.startswith('"'):
        # Quoted names: "a/x y" "b/x y"
        closing = rest.index('" ', 1) + 1 if '" ' in rest[1:] else len(rest)
        old, new = rest[:closing], rest[closing + 1:]
    else:
        middle = (len(rest) - 1) // 2
        if rest[middle:middle + 1] == " " and rest[2:middle] == rest[middle + 3:]:
            old, new = rest[:middle], rest[middle + 1:]
        else:
            old, _, new = rest.partition(" b/")
            new = "b/" + new
    return _strip_prefix(_unquote(old), "a/"), _strip_prefix(_unquote(new), "b/")


def _strip_prefix(path: str, prefix: str) -> str:
    return path[len(prefix):] if path.startswith(prefix) else path


def _unquote(path: str) -> str:
    """Undo git's C-style quoting of unusual path names."""
    path = path.rstrip("\t")
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    raw = path[1:-1].encode("utf-8", "surrogateescape")
    return codecs.escape_decode(raw)[0].decode("utf-8", "surrogateescape")
