import unittest

from diff_reviewer.custom_exceptions import MalformedDiffError
from diff_reviewer.diff_parser import DiffParser, parse_diff, parse_patch
from diff_reviewer.models import LineKind


SIMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,2 +1,3 @@
 context
-old
+new
+added
"""

MULTI_HUNK_DIFF = """diff --git a/src/calc.py b/src/calc.py
index 1111111..2222222 100644
--- a/src/calc.py
+++ b/src/calc.py
@@ -10,3 +10,4 @@ def add(a, b):
     x = 1
-    y = 2
+    y = 3
+    z = 4
     return x
@@ -40,2 +41,3 @@ def sub(a, b):
     a = 1
+    b = 2
     return a
"""


class TestDiffParser(unittest.TestCase):
    """Test unified diff parsing."""

    def test_simple_hunk_line_numbers(self):
        """Test target line numbers and kinds for a single hunk."""
        changes = parse_diff(SIMPLE_DIFF)

        self.assertEqual(len(changes), 1)
        change = changes[0]
        self.assertEqual(change.path, "src/app.py")
        self.assertEqual(len(change.hunks), 1)

        hunk = change.hunks[0]
        self.assertEqual((hunk.source_start, hunk.source_count), (1, 2))
        self.assertEqual((hunk.target_start, hunk.target_count), (1, 3))
        self.assertEqual([line.kind for line in hunk.lines],
                         [LineKind.CONTEXT, LineKind.REMOVED, LineKind.ADDED, LineKind.ADDED])
        self.assertEqual([line.target_line_number for line in hunk.lines], [1, None, 2, 3])
        self.assertEqual([line.content for line in hunk.lines], ["context", "old", "new", "added"])

    def test_positions_count_from_first_hunk_header(self):
        """Test GitHub diff positions, including the second hunk header."""
        change = parse_diff(MULTI_HUNK_DIFF)[0]

        first, second = change.hunks
        self.assertEqual([line.position for line in first.lines], [1, 2, 3, 4, 5])
        # The second header takes position 6
        self.assertEqual([line.position for line in second.lines], [7, 8, 9])
        self.assertEqual(second.section, "def sub(a, b):")

    def test_line_at(self):
        """Test finding the diff line for a target line number."""
        change = parse_diff(MULTI_HUNK_DIFF)[0]

        self.assertEqual(change.line_at(12).content, "    z = 4")
        self.assertIs(change.line_at(12).kind, LineKind.ADDED)
        self.assertIs(change.line_at(41).kind, LineKind.CONTEXT)
        self.assertIsNone(change.line_at(30))

    def test_target_lines_strictly_increase(self):
        """Test that target line numbers increase within a file."""
        change = parse_diff(MULTI_HUNK_DIFF)[0]
        numbers = [line.target_line_number for line in change.target_lines()]

        self.assertEqual(numbers, sorted(set(numbers)))
        self.assertEqual(numbers, [10, 11, 12, 13, 41, 42, 43])

    def test_target_content_is_reproduced(self):
        """Test that added and context lines give back the new file's covered range."""
        change = parse_diff(MULTI_HUNK_DIFF)[0]
        first = change.hunks[0]

        self.assertEqual([line.content for line in first.target_lines()],
                         ["    x = 1", "    y = 3", "    z = 4", "    return x"])
        self.assertEqual(len(first.target_lines()), first.target_count)

    def test_hunk_render_round_trip(self):
        """Test that rendering a hunk gives back its original text."""
        change = parse_diff(SIMPLE_DIFF)[0]
        expected = "@@ -1,2 +1,3 @@\n context\n-old\n+new\n+added"
        self.assertEqual(change.hunks[0].render(), expected)
        self.assertEqual(change.patch_text(), expected)

    def test_omitted_counts_default_to_one(self):
        """Test hunk headers without counts."""
        diff = "diff --git a/a.txt b/a.txt\n--- a/a.txt\n+++ b/a.txt\n@@ -3 +3 @@\n-a\n+b\n"
        hunk = parse_diff(diff)[0].hunks[0]

        self.assertEqual((hunk.source_count, hunk.target_count), (1, 1))
        self.assertEqual(hunk.lines[1].target_line_number, 3)

    def test_content_that_looks_like_file_headers(self):
        """Test that lines inside a hunk are never read as file headers."""
        diff = (
            "diff --git a/notes.md b/notes.md\n"
            "--- a/notes.md\n"
            "+++ b/notes.md\n"
            "@@ -1,2 +1,2 @@\n"
            "--- old rule\n"
            "+++ new rule\n"
            " footer\n"
        )
        changes = parse_diff(diff)

        self.assertEqual(len(changes), 1)
        lines = changes[0].hunks[0].lines
        self.assertEqual([line.kind for line in lines], [LineKind.REMOVED, LineKind.ADDED, LineKind.CONTEXT])
        self.assertEqual(lines[0].content, "-- old rule")
        self.assertEqual(lines[1].content, "++ new rule")

    def test_blank_line_is_context(self):
        """Test that an empty line inside a hunk is treated as empty context."""
        diff = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1,3 +1,3 @@\n a\n\n-b\n+c\n"
        lines = parse_diff(diff)[0].hunks[0].lines

        self.assertIs(lines[1].kind, LineKind.CONTEXT)
        self.assertEqual(lines[1].content, "")
        self.assertEqual(lines[3].target_line_number, 3)

    def test_no_newline_marker_counts_toward_position(self):
        """Test '\\ No newline at end of file' markers."""
        diff = (
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "\\ No newline at end of file\n"
            "+b\n"
            "\\ No newline at end of file\n"
        )
        change = parse_diff(diff)[0]
        hunk = change.hunks[0]

        self.assertEqual(len(hunk.lines), 2)
        self.assertEqual(change.line_at(1).position, 3)
        self.assertIn("\\ No newline at end of file", hunk.render())

    def test_new_file(self):
        """Test a newly added file."""
        diff = (
            "diff --git a/new.py b/new.py\n"
            "new file mode 100644\n"
            "index 0000000..1234567\n"
            "--- /dev/null\n"
            "+++ b/new.py\n"
            "@@ -0,0 +1,2 @@\n"
            "+a\n"
            "+b\n"
        )
        change = parse_diff(diff)[0]

        self.assertTrue(change.is_new_file)
        self.assertEqual(change.path, "new.py")
        self.assertIsNone(change.previous_path)
        self.assertEqual([line.target_line_number for line in change.added_lines()], [1, 2])

    def test_deleted_file(self):
        """Test a deleted file: removed lines only, no target lines."""
        diff = (
            "diff --git a/old.py b/old.py\n"
            "deleted file mode 100644\n"
            "--- a/old.py\n"
            "+++ /dev/null\n"
            "@@ -1,2 +0,0 @@\n"
            "-a\n"
            "-b\n"
        )
        change = parse_diff(diff)[0]

        self.assertTrue(change.is_deleted_file)
        self.assertEqual(change.path, "old.py")
        self.assertEqual(len(change.hunks[0].lines), 2)
        self.assertEqual(change.target_lines(), [])

    def test_rename_with_changes(self):
        """Test that a renamed file is identified by its target path."""
        diff = (
            "diff --git a/old_name.py b/new_name.py\n"
            "similarity index 90%\n"
            "rename from old_name.py\n"
            "rename to new_name.py\n"
            "--- a/old_name.py\n"
            "+++ b/new_name.py\n"
            "@@ -1 +1 @@\n"
            "-x\n"
            "+y\n"
        )
        change = parse_diff(diff)[0]

        self.assertEqual(change.path, "new_name.py")
        self.assertEqual(change.previous_path, "old_name.py")
        self.assertTrue(change.is_renamed)
        self.assertEqual(len(change.hunks), 1)

    def test_pure_rename_has_no_hunks(self):
        """Test a rename without content changes."""
        diff = (
            "diff --git a/a.py b/b.py\n"
            "similarity index 100%\n"
            "rename from a.py\n"
            "rename to b.py\n"
        )
        change = parse_diff(diff)[0]

        self.assertEqual(change.path, "b.py")
        self.assertTrue(change.is_renamed)
        self.assertEqual(change.hunks, [])

    def test_binary_file(self):
        """Test that binary files are recorded with no hunks."""
        diff = (
            "diff --git a/img.png b/img.png\n"
            "index 1111111..2222222 100644\n"
            "Binary files a/img.png and b/img.png differ\n"
            "diff --git a/a.py b/a.py\n"
            "--- a/a.py\n"
            "+++ b/a.py\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        changes = parse_diff(diff)

        self.assertEqual([change.path for change in changes], ["img.png", "a.py"])
        self.assertTrue(changes[0].is_binary)
        self.assertEqual(changes[0].hunks, [])
        self.assertEqual(len(changes[1].hunks), 1)

    def test_plain_unified_diff_without_git_headers(self):
        """Test diffs made of ---/+++ headers only."""
        diff = (
            "--- a/x.py\n"
            "+++ b/x.py\n"
            "@@ -1 +1,2 @@\n"
            " a\n"
            "+b\n"
            "--- a/y.py\n"
            "+++ b/y.py\n"
            "@@ -0,0 +1 @@\n"
            "+z\n"
        )
        changes = parse_diff(diff)

        self.assertEqual([change.path for change in changes], ["x.py", "y.py"])
        self.assertEqual(changes[1].added_lines()[0].target_line_number, 1)

    def test_form_feed_inside_line(self):
        """Test that a form feed does not split a diff line."""
        diff = "diff --git a/a.c b/a.c\n--- a/a.c\n+++ b/a.c\n@@ -1,2 +1,4 @@\n a\n+\x0c\n+b\n c\n"
        lines = parse_diff(diff)[0].hunks[0].lines

        self.assertEqual([(line.kind, line.target_line_number, line.content) for line in lines], [
            (LineKind.CONTEXT, 1, "a"),
            (LineKind.ADDED, 2, "\x0c"),
            (LineKind.ADDED, 3, "b"),
            (LineKind.CONTEXT, 4, "c"),
        ])

    def test_unicode_line_separator_inside_line(self):
        """Test that U+2028 in a JS string keeps the file and its line numbers."""
        diff = "diff --git a/s.js b/s.js\n--- a/s.js\n+++ b/s.js\n@@ -1,1 +1,3 @@\n a\n+var s = 'x\u2028 y';\n+z();\n"
        changes, errors = DiffParser().parse_lenient(diff)

        self.assertEqual(errors, [])
        change = changes[0]
        self.assertEqual(change.line_at(2).content, "var s = 'x\u2028 y';")
        self.assertEqual(change.line_at(3).content, "z();")
        self.assertIs(change.line_at(3).kind, LineKind.ADDED)

    def test_crlf_line_endings(self):
        diff = "diff --git a/a.py b/a.py\r\n--- a/a.py\r\n+++ b/a.py\r\n@@ -1 +1 @@\r\n-a\r\n+b\r\n"
        change = parse_diff(diff)[0]

        self.assertEqual(change.path, "a.py")
        self.assertEqual(change.line_at(1).content, "b")

    def test_malformed_plain_diff_lenient_keeps_later_files(self):
        """Test that a broken file in a diff without git headers does not hide the next file."""
        diff = (
            "--- a/one.py\n"
            "+++ b/one.py\n"
            "@@ -x +1 @@\n"
            "+bad\n"
            "--- a/two.py\n"
            "+++ b/two.py\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        changes, errors = DiffParser().parse_lenient(diff)

        self.assertEqual([change.path for change in changes], ["two.py"])
        self.assertEqual([error.path for error in errors], ["one.py"])
        self.assertEqual(changes[0].line_at(1).position, 2)

    def test_empty_diff(self):
        """Test that an empty diff gives no changes."""
        self.assertEqual(parse_diff(""), [])

    def test_malformed_hunk_header_strict(self):
        """Test that strict parsing raises on a bad hunk header."""
        diff = "diff --git a/bad.py b/bad.py\n--- a/bad.py\n+++ b/bad.py\n@@ -1,x +1 @@\n+oops\n"

        with self.assertRaises(MalformedDiffError) as ctx:
            parse_diff(diff)
        self.assertEqual(ctx.exception.path, "bad.py")
        self.assertEqual(ctx.exception.error_code, 4001)

    def test_malformed_hunk_header_lenient_skips_file(self):
        """Test that lenient parsing drops only the broken file."""
        diff = (
            "diff --git a/bad.py b/bad.py\n"
            "--- a/bad.py\n"
            "+++ b/bad.py\n"
            "@@ -1,x +1 @@\n"
            "+oops\n"
            "diff --git a/good.py b/good.py\n"
            "--- a/good.py\n"
            "+++ b/good.py\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        changes, errors = DiffParser().parse_lenient(diff)

        self.assertEqual([change.path for change in changes], ["good.py"])
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].path, "bad.py")

    def test_more_lines_than_declared(self):
        """Test that a hunk with more added lines than its header declares is malformed."""
        diff = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1,2 +1,1 @@\n+a\n+b\n-c\n"

        with self.assertRaises(MalformedDiffError):
            parse_diff(diff)

        changes, errors = DiffParser().parse_lenient(diff)
        self.assertEqual(changes, [])
        self.assertEqual(len(errors), 1)

    def test_target_start_zero_with_lines_is_malformed(self):
        """Test that a non-empty target range cannot start at line 0."""
        diff = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1 +0,1 @@\n-a\n+b\n"

        with self.assertRaises(MalformedDiffError):
            parse_diff(diff)

    def test_parse_patch(self):
        """Test parsing the per-file patch field of the files API."""
        change = parse_patch("src/app.py", "@@ -1,2 +1,3 @@\n context\n-old\n+new\n+added")

        self.assertEqual(change.path, "src/app.py")
        self.assertEqual(change.line_at(3).content, "added")
        self.assertEqual(change.line_at(3).position, 4)


if __name__ == "__main__":
    unittest.main()
