"""Tests for patch synthesis."""

from typing import List, Tuple

import pytest

from hunky.errors import LineIndexOutOfBounds, UnsupportedLineKind
from hunky.models import DiffLine, Hunk, LineType
from hunky.patch import (
    Fragment,
    first_positions,
    fragment_headers,
    hunk_fragment,
    line_fragment,
    line_window,
    partial_fragment,
    positions_before,
    quote_path,
    render_patch,
)


def build_hunk(old_start: int, new_start: int, rows: List[Tuple[str, str]]) -> Hunk:
    """Build a hunk from (prefix, content) pairs, numbering lines like git does."""
    old_num = old_start if any(p != "+" for p, _ in rows) else old_start + 1
    new_num = new_start if any(p != "-" for p, _ in rows) else new_start + 1
    lines = []
    for prefix, content in rows:
        kind = LineType.from_prefix(prefix)
        if kind == LineType.CONTEXT:
            lines.append(DiffLine(type=kind, content=content, old_num=old_num, new_num=new_num))
            old_num += 1
            new_num += 1
        elif kind == LineType.DELETION:
            lines.append(DiffLine(type=kind, content=content, old_num=old_num))
            old_num += 1
        else:
            lines.append(DiffLine(type=kind, content=content, new_num=new_num))
            new_num += 1
    return Hunk(file_path="f.txt", old_start=old_start, new_start=new_start, lines=lines)


HEADER = "diff --git a/f.txt b/f.txt\n--- a/f.txt\n+++ b/f.txt\n"


class TestPositions:
    """Test coordinate bookkeeping inside a hunk."""

    def test_first_positions(self) -> None:
        assert first_positions(build_hunk(4, 6, [(" ", "a"), ("-", "b")])) == (4, 6)

    def test_first_positions_of_pure_insertion(self) -> None:
        # "@@ -2,0 +3,1 @@" inserts after old line 2.
        assert first_positions(build_hunk(2, 3, [("+", "x")])) == (3, 3)

    def test_positions_before(self) -> None:
        hunk = build_hunk(10, 10, [(" ", "a"), ("-", "b"), ("+", "B"), ("+", "C"), (" ", "d")])
        assert positions_before(hunk, 0) == (10, 10)
        assert positions_before(hunk, 2) == (12, 11)
        assert positions_before(hunk, 4) == (12, 13)


class TestLineWindow:
    """Test the context window around a single line."""

    def test_window_takes_at_most_three_context_lines(self) -> None:
        rows = [(" ", f"c{i}") for i in range(4)] + [("+", "x")] + [(" ", f"d{i}") for i in range(4)]
        hunk = build_hunk(1, 1, rows)
        assert line_window(hunk, 4) == (1, 7)

    def test_window_stops_at_neighbouring_changes(self) -> None:
        hunk = build_hunk(1, 1, [(" ", "a"), ("+", "b"), (" ", "c"), ("-", "d"), (" ", "e")])
        assert line_window(hunk, 3) == (2, 4)
        assert line_window(hunk, 1) == (0, 2)

    def test_context_line_is_rejected(self) -> None:
        hunk = build_hunk(1, 1, [(" ", "a"), ("+", "b")])
        with pytest.raises(UnsupportedLineKind):
            line_window(hunk, 0)

    def test_unknown_index_is_rejected(self) -> None:
        hunk = build_hunk(1, 1, [(" ", "a"), ("+", "b")])
        with pytest.raises(LineIndexOutOfBounds):
            line_window(hunk, 2)
        with pytest.raises(LineIndexOutOfBounds):
            line_window(hunk, -1)


class TestRenderPatch:
    """Test rendered patch text."""

    def test_whole_hunk(self) -> None:
        hunk = build_hunk(1, 1, [(" ", "a"), ("-", "b"), ("+", "B"), (" ", "c")])
        patch = render_patch("f.txt", [hunk_fragment(hunk)])
        assert patch == HEADER + "@@ -1,3 +1,3 @@\n a\n-b\n+B\n c\n"

    def test_single_line_recomputes_header(self) -> None:
        hunk = build_hunk(
            1,
            1,
            [(" ", "a"), ("+", "dup"), (" ", "b"), (" ", "c"), ("+", "dup"), (" ", "d"), (" ", "e")],
        )
        patch = render_patch("f.txt", [line_fragment(hunk, 4)])
        assert patch == HEADER + "@@ -2,4 +2,5 @@\n b\n c\n+dup\n d\n e\n"

    def test_single_line_insertion_without_context(self) -> None:
        hunk = build_hunk(0, 1, [("+", "x"), ("+", "y"), ("+", "z")])
        patch = render_patch("f.txt", [line_fragment(hunk, 1)])
        assert patch.endswith("@@ -0,0 +1,1 @@\n+y\n")

    def test_pure_deletion_header(self) -> None:
        hunk = build_hunk(5, 4, [("-", "gone")])
        patch = render_patch("f.txt", [hunk_fragment(hunk)])
        assert patch.endswith("@@ -5,1 +4,0 @@\n-gone\n")

    def test_later_fragments_carry_earlier_shift(self) -> None:
        fragments = [
            Fragment(base=5, lines=[DiffLine(type=LineType.DELETION, content="y", old_num=5)]),
            Fragment(base=2, lines=[DiffLine(type=LineType.ADDITION, content="x", new_num=2)]),
        ]
        patch = render_patch("f.txt", fragments)
        assert patch == HEADER + "@@ -1,0 +2,1 @@\n+x\n@@ -5,1 +5,0 @@\n-y\n"

    def test_reverse_headers_use_target_positions(self) -> None:
        fragments = [
            Fragment(base=2, lines=[DiffLine(type=LineType.ADDITION, content="x", new_num=2)]),
            Fragment(base=6, lines=[DiffLine(type=LineType.ADDITION, content="y", new_num=6)]),
        ]
        assert fragment_headers(fragments, reverse=True) == [
            "@@ -1,0 +2,1 @@\n",
            "@@ -4,0 +6,1 @@\n",
        ]

    def test_fragments_without_changes_are_skipped(self) -> None:
        hunk = build_hunk(1, 1, [(" ", "a"), ("+", "b")])
        patch = render_patch("f.txt", [partial_fragment(hunk, [])])
        assert patch == HEADER

    def test_missing_newline_marker_is_kept(self) -> None:
        hunk = Hunk(
            file_path="f.txt",
            old_start=1,
            new_start=1,
            lines=[DiffLine(type=LineType.DELETION, content="b", old_num=1, no_newline=True),
                   DiffLine(type=LineType.ADDITION, content="b", new_num=1)],
        )
        patch = render_patch("f.txt", [hunk_fragment(hunk)])
        assert patch.endswith("@@ -1,1 +1,1 @@\n-b\n\\ No newline at end of file\n+b\n")

    def test_new_file_headers(self) -> None:
        hunk = build_hunk(0, 1, [("+", "x")])
        patch = render_patch("n.txt", [hunk_fragment(hunk)], new_file_mode="100644")
        assert patch == (
            "diff --git a/n.txt b/n.txt\n"
            "new file mode 100644\n"
            "--- /dev/null\n"
            "+++ b/n.txt\n"
            "@@ -0,0 +1,1 @@\n"
            "+x\n"
        )

    def test_deleted_file_headers(self) -> None:
        hunk = build_hunk(1, 0, [("-", "x"), ("-", "y")])
        patch = render_patch("d.txt", [hunk_fragment(hunk)], deleted_file_mode="100644")
        assert patch == (
            "diff --git a/d.txt b/d.txt\n"
            "deleted file mode 100644\n"
            "--- a/d.txt\n"
            "+++ /dev/null\n"
            "@@ -1,2 +0,0 @@\n"
            "-x\n"
            "-y\n"
        )


class TestPartialFragment:
    """Test staging a subset of a hunk."""

    def test_forward_keeps_unselected_deletions_as_context(self) -> None:
        hunk = build_hunk(1, 1, [(" ", "a"), ("-", "b"), ("+", "B"), ("-", "c"), ("+", "C")])
        fragment = partial_fragment(hunk, [1, 2])
        assert [(line.type.prefix, line.content) for line in fragment.lines] == [
            (" ", "a"),
            ("-", "b"),
            ("+", "B"),
            (" ", "c"),
        ]
        assert fragment.base == 1

    def test_reverse_keeps_unselected_additions_as_context(self) -> None:
        hunk = build_hunk(3, 3, [(" ", "a"), ("-", "b"), ("+", "B"), ("+", "C")])
        fragment = partial_fragment(hunk, [3], reverse=True)
        assert [(line.type.prefix, line.content) for line in fragment.lines] == [
            (" ", "a"),
            (" ", "B"),
            ("+", "C"),
        ]
        assert fragment.base == 3

    def test_unknown_index_is_rejected(self) -> None:
        hunk = build_hunk(1, 1, [("+", "a")])
        with pytest.raises(LineIndexOutOfBounds):
            partial_fragment(hunk, [3])


def test_quote_path() -> None:
    assert quote_path("plain name.txt") == "plain name.txt"
    assert quote_path('we"ird') == '"we\\"ird"'
    assert quote_path("tab\there") == '"tab\\there"'
