import pytest

from editpipe.edits import Hunk
from editpipe.patch import (
    PatchApplier,
    UnanchorableHunkError,
    apply_patch,
    diff_contents,
    parse_unified_patch,
    render_unified_patch,
)
from editpipe.settings import PatchSettings


def test_apply_simple_patch():
    patch = "@@ -1 +1 @@\n-Hello, world!\n+Hello, patched world!"

    assert apply_patch("Hello, world!", patch) == "Hello, patched world!"


def test_multiple_hunks_without_trailing_newline():
    old = "\n".join(["Line 1", "Line 2", "Line 3", "Line 4"])
    patch = "\n".join(
        [
            "@@ -1,2 +1,2 @@",
            "-Line 1",
            "+Updated Line 1",
            " Line 2",
            "@@ -4 +4 @@",
            "-Line 4",
            "+Updated Line 4",
        ]
    )

    assert apply_patch(old, patch) == "\n".join(
        ["Updated Line 1", "Line 2", "Line 3", "Updated Line 4"]
    )


def test_line_additions_and_deletions():
    assert (
        apply_patch("line1\nline2\nline3\n", "@@ -2,1 +2,2 @@\n line2\n+newline\n")
        == "line1\nline2\nnewline\nline3\n"
    )
    assert (
        apply_patch("line1\nline2\nline3\n", "@@ -2,2 +2,1 @@\n line2\n-line3\n")
        == "line1\nline2\n"
    )


def test_incorrect_line_numbers():
    old = "line1\nline2\nline3\nline4\n"
    patch = "@@ -2,2 +2,2 @@\n line2\n-line3\n+modified line3"

    assert apply_patch(old, patch) == "line1\nline2\nmodified line3\nline4\n"


def test_far_off_header_still_anchors():
    old = "".join(f"l{i}\n" for i in range(10))
    patch = "@@ -50,3 +50,3 @@\n l4\n-l5\n+L5\n l6\n"

    assert apply_patch(old, patch) == old.replace("l5\n", "L5\n")


def test_slightly_wrong_context_keeps_file_lines():
    old = "line1\nline2\nline3\nline4\n"
    patch = "\n".join(
        [
            "@@ -1,4 +1,4 @@",
            " line1",
            " lne2",
            "-line3",
            "+modified line3",
            " line4",
        ]
    )

    assert apply_patch(old, patch) == "line1\nline2\nmodified line3\nline4\n"


def test_anchor_reports_fuzzy_mode():
    applier = PatchApplier()
    hunk = parse_unified_patch("@@ -1,3 +1,3 @@\n line1\n lne2\n-line3\n+x\n").hunks[0]
    anchor = applier.anchor(["line1\n", "line2\n", "line3\n"], hunk, 0)

    assert anchor is not None
    assert (anchor.index, anchor.mode, anchor.mismatches) == (0, "fuzzy", 1)


def test_fuzz_zero_rejects_wrong_context():
    old = "line1\nline2\nline3\nline4\n"
    patch = "@@ -1,3 +1,3 @@\n line1\n lne2\n-line3\n+x\n"

    with pytest.raises(UnanchorableHunkError):
        PatchApplier(PatchSettings(fuzz=0)).apply(old, patch)


def test_removed_lines_must_match():
    old = "a\nb\nc\n"
    patch = "@@ -1,2 +1,2 @@\n a\n-zzz\n+y\n"

    with pytest.raises(UnanchorableHunkError) as exc:
        apply_patch(old, patch)
    assert exc.value.index == 0
    assert "-zzz" in exc.value.hint


def test_too_many_mismatched_context_lines():
    old = "a\nb\nc\nd\ne\n"
    patch = "@@ -1,5 +1,5 @@\n x\n y\n z\n-d\n+D\n e\n"

    with pytest.raises(UnanchorableHunkError):
        apply_patch(old, patch)


def test_second_failing_hunk_aborts_whole_apply():
    old = "a\nb\nc\n"
    patch = "@@ -1,1 +1,1 @@\n-a\n+A\n@@ -3,1 +3,1 @@\n-nope\n+N\n"

    with pytest.raises(UnanchorableHunkError) as exc:
        apply_patch(old, patch)
    assert exc.value.index == 1


MOVE_OLD = "def a():\n    return 1\n\ndef b():\n    return 2\n"
MOVE_NEW = "def b():\n    return 2\n\ndef a():\n    return 1\n"
REMOVE_A = "@@ -1,3 +1,0 @@\n-def a():\n-    return 1\n-\n"
APPEND_A = "@@ -4,2 +1,5 @@\n def b():\n     return 2\n+\n+def a():\n+    return 1\n"


@pytest.mark.parametrize("patch", [REMOVE_A + APPEND_A, APPEND_A + REMOVE_A])
def test_relocation_in_either_hunk_order(patch: str):
    assert apply_patch(MOVE_OLD, patch) == MOVE_NEW


def test_crlf_is_restored():
    assert apply_patch("a\r\nb\r\n", "@@ -1,2 +1,2 @@\n a\n-b\n+B\n") == "a\r\nB\r\n"


def test_bare_header_searches_whole_file():
    old = "".join(f"row {i}\n" for i in range(8))
    patch = "@@\n row 6\n-row 7\n+last\n"

    assert apply_patch(old, patch) == old.replace("row 7\n", "last\n")


def test_pure_insertion_needs_header_position():
    with pytest.raises(UnanchorableHunkError):
        apply_patch("a\n", "@@\n+b\n")

    assert apply_patch("a\n", "@@ -1,0 +2,1 @@\n+b\n") == "a\nb\n"


def test_apply_pre_resolved_hunks():
    content = "xx foo yy foo"
    hunks = [
        Hunk(start=3, end=6, original_text="foo", replacement_text="bar"),
        # Stale offset: relocated to the nearest exact occurrence
        Hunk(start=0, end=3, original_text="foo", replacement_text="baz"),
    ]

    assert PatchApplier().apply(content, hunks) == "xx bar yy baz"


def test_apply_pre_resolved_hunk_that_vanished():
    with pytest.raises(UnanchorableHunkError):
        PatchApplier().apply("abc", [Hunk(0, 3, "xyz", "q")])


TOP = "".join(f"{i}\n" for i in range(10))


@pytest.mark.parametrize(
    "old, new",
    [
        ("a\nb\nc\nd\ne\n", TOP + "a\nb\nX\nc\nd\nY\ne\n"),
        ("a\nb\nc\nd\n", "1\n2\n3\na\nd\nb\nc\n"),
        ("a\n}\nb\n}", "a\nz\n}\nb\nc\n}\n"),
        ("x\n" * 3 + "y\n", "h\n" + "x\n" * 3 + "m\n" + "y\n" + "t\n"),
    ],
)
@pytest.mark.parametrize("context", [0, 1])
def test_zero_context_hunks_round_trip(old: str, new: str, context: int):
    patch = render_unified_patch(diff_contents(old, new, context))

    assert apply_patch(old, patch) == new


def test_removed_lines_match_after_trimming_whitespace():
    assert apply_patch("a\n    b\nc\n", "@@ -1,3 +1,3 @@\n a\n-b  \n+B\n c\n") == "a\nB\nc\n"
