"""Tests for the diff model."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from hunky.models import (
    NO_NEWLINE_MARKER,
    CommitInfo,
    DiffLine,
    DiffSnapshot,
    FileChange,
    FileStatus,
    Hunk,
    HunkId,
    LineType,
)


def make_hunk(path: str = "a.txt", contents: str = "b") -> Hunk:
    return Hunk(
        file_path=path,
        old_start=1,
        new_start=1,
        lines=[
            DiffLine(type=LineType.CONTEXT, content="a", old_num=1, new_num=1),
            DiffLine(type=LineType.DELETION, content=contents, old_num=2),
            DiffLine(type=LineType.ADDITION, content=contents.upper(), new_num=2),
            DiffLine(type=LineType.ADDITION, content="extra", new_num=3),
            DiffLine(type=LineType.CONTEXT, content="c", old_num=3, new_num=4),
        ],
    )


class TestDiffLine:
    """Test line rendering."""

    def test_prefixes(self) -> None:
        assert LineType.ADDITION.prefix == "+"
        assert LineType.DELETION.prefix == "-"
        assert LineType.CONTEXT.prefix == " "
        assert LineType.from_prefix("-") is LineType.DELETION

    def test_patch_text_is_newline_terminated(self) -> None:
        line = DiffLine(type=LineType.ADDITION, content="hello", new_num=1)
        assert line.patch_text() == "+hello\n"

    def test_patch_text_with_missing_newline(self) -> None:
        line = DiffLine(type=LineType.DELETION, content="last", old_num=9, no_newline=True)
        assert line.patch_text() == f"-last\n{NO_NEWLINE_MARKER}\n"

    def test_only_changes_are_changes(self) -> None:
        assert DiffLine(type=LineType.ADDITION, content="x").is_change
        assert not DiffLine(type=LineType.CONTEXT, content="x").is_change


class TestHunk:
    """Test derived hunk values and identity."""

    def test_counts(self) -> None:
        hunk = make_hunk()
        assert hunk.old_count == 3
        assert hunk.new_count == 4
        assert hunk.change_indices() == [1, 2, 3]

    def test_count_changes_pairs_modifications(self) -> None:
        # One -/+ pair plus one lone addition.
        assert make_hunk().count_changes() == 2

    def test_id_is_deterministic(self) -> None:
        assert make_hunk().id == make_hunk().id
        assert hash(make_hunk().id) == hash(make_hunk().id)

    def test_id_changes_with_content(self) -> None:
        first = make_hunk(contents="b")
        second = make_hunk(contents="z")
        assert (first.old_start, first.new_start) == (second.old_start, second.new_start)
        assert first.id != second.id

    def test_id_depends_on_path(self) -> None:
        assert make_hunk(path="a.txt").id != make_hunk(path="b.txt").id

    def test_id_depends_on_missing_newline(self) -> None:
        lines = [DiffLine(type=LineType.ADDITION, content="x", new_num=1)]
        flagged = [DiffLine(type=LineType.ADDITION, content="x", new_num=1, no_newline=True)]
        assert HunkId.for_hunk("a", 0, 1, lines) != HunkId.for_hunk("a", 0, 1, flagged)

    def test_annotations_leave_identity_alone(self) -> None:
        hunk = make_hunk()
        before = hunk.id
        hunk.seen = True
        hunk.accepted = True
        hunk.staged_line_indices = {1, 2}
        assert hunk.id == before

    def test_id_follows_the_current_lines(self) -> None:
        hunk = make_hunk()
        before = hunk.id
        replaced = hunk.model_copy(update={"lines": hunk.lines[:-1]})
        assert replaced.id != before
        assert replaced.id == HunkId.for_hunk(hunk.file_path, 1, 1, hunk.lines[:-1])

    def test_fully_staged(self) -> None:
        hunk = make_hunk()
        assert not hunk.is_fully_staged
        hunk.staged_line_indices = {1, 2}
        assert not hunk.is_fully_staged
        hunk.staged_line_indices = {1, 2, 3}
        assert hunk.is_fully_staged

    def test_format(self) -> None:
        assert make_hunk().format() == " a\n-b\n+B\n+extra\n c\n"


class TestSnapshot:
    """Test snapshot lookups."""

    def test_snapshot_is_frozen(self) -> None:
        snapshot = DiffSnapshot(files=[])
        with pytest.raises(ValidationError):
            snapshot.files = []  # type: ignore[misc]

    def test_file_lookup_and_iteration(self) -> None:
        first = FileChange(path="a.txt", status=FileStatus.MODIFIED, hunks=[make_hunk("a.txt")])
        second = FileChange(path="b.txt", status=FileStatus.ADDED, hunks=[make_hunk("b.txt"), make_hunk("b.txt")])
        snapshot = DiffSnapshot(files=[first, second])

        assert snapshot.file("b.txt") is second
        assert snapshot.file("missing") is None
        assert [f.path for f, _ in snapshot.iter_hunks()] == ["a.txt", "b.txt", "b.txt"]
        assert snapshot.commit is None

    def test_file_change_totals(self) -> None:
        change = FileChange(path="a.txt", status=FileStatus.MODIFIED, hunks=[make_hunk()])
        assert change.additions == 2
        assert change.deletions == 1

    def test_commit_info(self) -> None:
        info = CommitInfo(
            sha="a" * 40,
            short_sha="a" * 7,
            author="Someone",
            summary="Do things",
            timestamp=datetime(2024, 1, 1),
        )
        assert len(info.short_sha) >= 7
