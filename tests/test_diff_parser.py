"""Tests for annotator.diff_parser module."""

from pathlib import Path

import pytest

from annotator.diff_parser import (
    ChangedFile,
    changed_files_from_api,
    is_renamed_only,
    parse_patch,
    split_unified_diff,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"

TWO_HUNKS = "\n".join([
    "@@ -1,3 +1,4 @@",
    " line1",
    "+added2",
    " line3",
    " line4",
    "@@ -10,4 +11,5 @@",
    " ctx11",
    "-removed",
    "+added12",
    "+added13",
    " ctx14",
])


class TestParsePatch:
    """Tests for parse_patch."""

    def test_no_patch(self):
        """Pure renames and binary files have no patch at all."""
        assert parse_patch(None) == []
        assert parse_patch("") == []

    def test_single_addition(self):
        patch = "@@ -1,2 +1,3 @@\n a\n+b\n c"
        assert parse_patch(patch) == [2]

    def test_multiple_hunks(self):
        assert parse_patch(TWO_HUNKS) == [2, 12, 13]

    def test_deletions_do_not_advance(self):
        patch = "@@ -5,3 +5,2 @@\n-gone\n-also gone\n+new\n kept"
        assert parse_patch(patch) == [5]

    def test_new_file(self):
        patch = "@@ -0,0 +1,3 @@\n+one\n+two\n+three"
        assert parse_patch(patch) == [1, 2, 3]

    def test_file_headers_ignored(self):
        """The +++ header is not an added line."""
        patch = "--- a/app.py\n+++ b/app.py\n@@ -1,1 +1,2 @@\n a\n+b"
        assert parse_patch(patch) == [2]

    def test_header_without_lengths(self):
        """git omits the length for one-line hunks."""
        patch = "@@ -3 +3 @@\n-a\n+b"
        assert parse_patch(patch) == [3]

    def test_no_newline_marker(self):
        patch = "\n".join([
            "@@ -1,1 +1,2 @@",
            "-old",
            "\\ No newline at end of file",
            "+new",
            "+newer",
            "\\ No newline at end of file",
        ])
        assert parse_patch(patch) == [1, 2]

    def test_malformed_hunk_contributes_nothing(self):
        """A hunk we cannot place yields no lines; later hunks still count."""
        patch = "@@ bogus @@\n+x\n+y\n@@ -1,1 +5,2 @@\n ctx\n+z"
        assert parse_patch(patch) == [6]

    def test_only_deletions(self):
        assert parse_patch("@@ -1,2 +0,0 @@\n-a\n-b") == []

    def test_idempotent(self):
        assert parse_patch(TWO_HUNKS) == parse_patch(TWO_HUNKS)

    def test_form_feed_is_one_line(self):
        """Only newlines end a diff line; a form feed inside one does not."""
        assert parse_patch("@@ -1,2 +1,3 @@\n a\n \x0c\n+b") == [3]
        assert parse_patch("@@ -1,1 +1,3 @@\n a x\n+b\n+\x1cc") == [2, 3]

    def test_crlf_line_endings(self):
        patch = "@@ -1,1 +1,2 @@\r\n a\r\n+b\r\n"
        assert parse_patch(patch) == [2]

    def test_added_line_starting_with_plus_plus(self):
        """Added content like `++i;` is still an added line."""
        assert parse_patch("@@ -1,1 +1,2 @@\n a\n+++i;") == [2]
        assert parse_patch("@@ -0,0 +1,2 @@\n++++\n+text") == [1, 2]


class TestChangedFile:
    """Tests for ChangedFile construction."""

    def test_is_renamed_only(self):
        assert is_renamed_only("old.py", None)
        assert is_renamed_only("old.py", "")
        assert not is_renamed_only("old.py", "@@ -1 +1 @@\n-a\n+b")
        assert not is_renamed_only(None, None)

    def test_from_github(self):
        changed = ChangedFile.from_github({
            "filename": "src/app.py",
            "status": "modified",
            "patch": "@@ -1,1 +1,2 @@\n a\n+b",
        })
        assert changed.path == "src/app.py"
        assert changed.changed_lines == (2,)
        assert changed.previous_path is None
        assert not changed.renamed_only

    def test_from_github_rename(self):
        changed = ChangedFile.from_github({
            "filename": "src/new.py",
            "previous_filename": "src/old.py",
            "status": "renamed",
        })
        assert changed.changed_lines == ()
        assert changed.renamed_only

    def test_changed_files_from_api(self):
        items = [
            {"filename": "a.py", "patch": "@@ -1 +1 @@\n-x\n+y"},
            {"filename": "b.py", "patch": "@@ -0,0 +1,2 @@\n+1\n+2"},
        ]
        files = changed_files_from_api(items)
        assert [f.path for f in files] == ["a.py", "b.py"]
        assert [f.changed_lines for f in files] == [(1,), (1, 2)]

    @pytest.mark.parametrize("item", [
        {"filename": "a.py", "patch": 5},
        {"filename": "a.py", "patch": "@@ -1 +1 @@\n+x", "previous_filename": ["old.py"]},
        {"filename": 7, "patch": "@@ -1 +1 @@\n+x"},
    ])
    def test_from_github_rejects_non_string_fields(self, item):
        with pytest.raises(TypeError, match="must be a string"):
            ChangedFile.from_github(item)


class TestSplitUnifiedDiff:
    """Tests for split_unified_diff."""

    def test_sample_diff(self):
        diff = (FIXTURES_DIR / "sample.diff").read_text()
        files = {f.path: f for f in split_unified_diff(diff)}

        assert set(files) == {"src/app.py", "src/new_name.py", "src/moved.py", "src/gone.py"}

        app = files["src/app.py"]
        assert app.changed_lines == (2, 11, 12)
        assert app.previous_path is None
        assert not app.renamed_only

        renamed = files["src/new_name.py"]
        assert renamed.previous_path == "src/old_name.py"
        assert renamed.patch is None
        assert renamed.renamed_only

        moved = files["src/moved.py"]
        assert moved.previous_path == "src/original.py"
        assert moved.changed_lines == (5,)
        assert not moved.renamed_only

        assert files["src/gone.py"].changed_lines == ()

    def test_empty_diff(self):
        assert split_unified_diff("") == []

    def test_ignores_preamble(self):
        diff = "commit abc\nAuthor: someone\n\ndiff --git a/x.py b/x.py\n@@ -0,0 +1 @@\n+x"
        files = split_unified_diff(diff)
        assert len(files) == 1
        assert files[0].changed_lines == (1,)

    def test_headers_versus_plus_plus_content(self):
        """The +++ header names the file; +++ inside a hunk is an added line."""
        diff = "\n".join([
            "diff --git a/notes.md b/notes.md",
            "--- a/notes.md",
            "+++ b/notes.md",
            "@@ -1,1 +1,3 @@",
            " # Notes",
            "++++",
            "+\x0cpage two",
            "",
        ])
        files = split_unified_diff(diff)
        assert [f.path for f in files] == ["notes.md"]
        assert files[0].changed_lines == (2, 3)
