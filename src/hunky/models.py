import hashlib
from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class LineType(str, Enum):
    """Type of line in a diff."""
    ADDITION = "addition"
    DELETION = "deletion"
    CONTEXT = "context"

    @property
    def prefix(self) -> str:
        """Single-character marker used in unified diff text."""
        return {"addition": "+", "deletion": "-", "context": " "}[self.value]

    @classmethod
    def from_prefix(cls, prefix: str) -> "LineType":
        return {"+": cls.ADDITION, "-": cls.DELETION, " ": cls.CONTEXT}[prefix]


class FileStatus(str, Enum):
    """Delta between the two compared endpoints for one path."""
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    RENAMED = "Renamed"
    COPIED = "Copied"
    TYPE_CHANGE = "TypeChange"


NO_NEWLINE_MARKER = "\\ No newline at end of file"


class DiffLine(BaseModel):
    """A single line in a hunk.

    content holds the text without its prefix and without the line
    terminator. no_newline marks the final line of a side whose file does not
    end with a newline.
    """
    model_config = ConfigDict(frozen=True)

    type: LineType
    content: str
    old_num: Optional[int] = None
    new_num: Optional[int] = None
    no_newline: bool = False

    @property
    def is_change(self) -> bool:
        return self.type != LineType.CONTEXT

    def patch_text(self) -> str:
        """Render the line for a patch, always newline terminated."""
        text = f"{self.type.prefix}{self.content}\n"
        if self.no_newline:
            text += NO_NEWLINE_MARKER + "\n"
        return text


class HunkId(BaseModel):
    """Session-scoped identity of a hunk, derived from its position and content."""
    model_config = ConfigDict(frozen=True)

    file_path: str
    old_start: int
    new_start: int
    content_hash: str

    @classmethod
    def for_hunk(cls, file_path: str, old_start: int, new_start: int, lines: List[DiffLine]) -> "HunkId":
        digest = hashlib.sha1()
        for line in lines:
            digest.update(line.type.prefix.encode("utf-8"))
            digest.update(line.content.encode("utf-8", "surrogateescape"))
            digest.update(b"\\\n" if line.no_newline else b"\n")
        return cls(
            file_path=file_path,
            old_start=old_start,
            new_start=new_start,
            content_hash=digest.hexdigest(),
        )


class Hunk(BaseModel):
    """A contiguous change area plus its bounding context.

    old_start/new_start/lines form the structural body and are never changed
    after construction. staged_line_indices, seen and accepted are annotations
    layered on by the session.
    """
    file_path: str
    old_start: int
    new_start: int
    lines: List[DiffLine]
    staged_line_indices: Set[int] = Field(default_factory=set)
    seen: bool = False
    accepted: bool = False

    @property
    def id(self) -> HunkId:
        return HunkId.for_hunk(self.file_path, self.old_start, self.new_start, self.lines)

    @property
    def old_count(self) -> int:
        return sum(1 for line in self.lines if line.type != LineType.ADDITION)

    @property
    def new_count(self) -> int:
        return sum(1 for line in self.lines if line.type != LineType.DELETION)

    def change_indices(self) -> List[int]:
        """Indices of the lines that can be staged individually."""
        return [idx for idx, line in enumerate(self.lines) if line.is_change]

    def count_changes(self) -> int:
        """Number of logical changes; a deletion paired with an addition counts once."""
        additions = sum(1 for line in self.lines if line.type == LineType.ADDITION)
        deletions = sum(1 for line in self.lines if line.type == LineType.DELETION)
        pairs = min(additions, deletions)
        return pairs + (additions + deletions - 2 * pairs)

    @property
    def is_fully_staged(self) -> bool:
        changes = self.change_indices()
        return bool(changes) and set(changes) <= self.staged_line_indices

    def format(self) -> str:
        return "".join(line.patch_text() for line in self.lines)


class FileChange(BaseModel):
    """A path that differs between the two compared endpoints."""
    path: str
    status: FileStatus
    hunks: List[Hunk] = Field(default_factory=list)
    old_path: Optional[str] = None
    is_binary: bool = False
    mode: Optional[str] = None

    @property
    def additions(self) -> int:
        return sum(1 for hunk in self.hunks for line in hunk.lines if line.type == LineType.ADDITION)

    @property
    def deletions(self) -> int:
        return sum(1 for hunk in self.hunks for line in hunk.lines if line.type == LineType.DELETION)


class CommitInfo(BaseModel):
    """Summary of one commit in the history."""
    model_config = ConfigDict(frozen=True)

    sha: str
    short_sha: str
    author: str
    summary: str
    timestamp: datetime


class DiffSnapshot(BaseModel):
    """Everything that changed between two endpoints at one point in time.

    A snapshot is replaced, never edited, when the repository changes.
    commit is set for historical snapshots only.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    files: List[FileChange] = Field(default_factory=list)
    commit: Optional[CommitInfo] = None

    def file(self, path: str) -> Optional[FileChange]:
        return next((f for f in self.files if f.path == path), None)

    def iter_hunks(self):
        for file_change in self.files:
            for hunk in file_change.hunks:
                yield file_change, hunk
