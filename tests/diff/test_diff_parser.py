import unittest

from qit.diff.diff_parser import DiffParseError, build_patch, parse_unified_diff, unquote_path


SAMPLE = (
    "diff --git a/src/core.go b/src/core.go\n"
    "index 1111111..2222222 100644\n"
    "--- a/src/core.go\n"
    "+++ b/src/core.go\n"
    "@@ -1,3 +1,3 @@\n"
    " package core\n"
    "-if x != nil {\n"
    "+if x == nil {\n"
    " }\n"
    "@@ -10,2 +10,3 @@ func f() {\n"
    " a\n"
    "+b\n"
    " c\n"
    "diff --git a/old.txt b/new.txt\n"
    "similarity index 100%\n"
    "rename from old.txt\n"
    "rename to new.txt\n"
    "diff --git a/img.png b/img.png\n"
    "index 3333333..4444444 100644\n"
    "Binary files a/img.png and b/img.png differ\n"
    "diff --git a/gone.py b/gone.py\n"
    "deleted file mode 100644\n"
    "index 5555555..0000000\n"
    "--- a/gone.py\n"
    "+++ /dev/null\n"
    "@@ -1 +0,0 @@\n"
    "-print('bye')\n"
)


class TestParseUnifiedDiff(unittest.TestCase):
    def test_sections_and_hunks(self) -> None:
        files = parse_unified_diff(SAMPLE)
        self.assertEqual([fd.path for fd in files], ["src/core.go", "new.txt", "img.png", "gone.py"])

        core = files[0]
        self.assertEqual(len(core.hunks), 2)
        first, second = core.hunks
        self.assertEqual((first.old_start, first.old_count, first.start_line, first.line_count), (1, 3, 1, 3))
        self.assertEqual(
            first.diff_text,
            "@@ -1,3 +1,3 @@\n package core\n-if x != nil {\n+if x == nil {\n }\n",
        )
        self.assertEqual(first.changed_lines(), ["-if x != nil {", "+if x == nil {"])
        self.assertEqual((second.start_line, second.line_count), (10, 3))
        self.assertEqual(core.header[0], "diff --git a/src/core.go b/src/core.go")
        self.assertEqual(core.header[-1], "+++ b/src/core.go")

    def test_rename_binary_and_delete(self) -> None:
        _, rename, binary, deleted = parse_unified_diff(SAMPLE)
        self.assertTrue(rename.renamed)
        self.assertEqual((rename.old_path, rename.new_path), ("old.txt", "new.txt"))
        self.assertEqual(rename.hunks, [])
        self.assertTrue(binary.binary)
        self.assertTrue(deleted.deleted_file)
        self.assertIsNone(deleted.new_path)
        self.assertEqual(deleted.path, "gone.py")

    def test_empty_output(self) -> None:
        self.assertEqual(parse_unified_diff(""), [])

    def test_paths_with_spaces(self) -> None:
        text = (
            "diff --git a/my file.txt b/my file.txt\n"
            "new file mode 100644\n"
            "index 0000000..e69de29\n"
        )
        (fd,) = parse_unified_diff(text)
        self.assertEqual(fd.path, "my file.txt")
        self.assertTrue(fd.new_file)
        self.assertEqual(fd.hunks, [])

    def test_quoted_paths(self) -> None:
        text = (
            'diff --git "a/sp\\303\\251cial.txt" "b/sp\\303\\251cial.txt"\n'
            "index 1111111..2222222 100644\n"
            '--- "a/sp\\303\\251cial.txt"\n'
            '+++ "b/sp\\303\\251cial.txt"\n'
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        (fd,) = parse_unified_diff(text)
        self.assertEqual(fd.path, "spécial.txt")
        self.assertEqual(unquote_path('"tab\\there"'), "tab\there")
        self.assertEqual(unquote_path("plain"), "plain")

    def test_no_newline_marker_and_carriage_return(self) -> None:
        text = (
            "diff --git a/a.txt b/a.txt\n"
            "index 1111111..2222222 100644\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -1 +1 @@\n"
            "-old\r\n"
            "\\ No newline at end of file\n"
            "+new\r\n"
            "\\ No newline at end of file\n"
        )
        (fd,) = parse_unified_diff(text)
        hunk = fd.hunks[0]
        self.assertEqual(hunk.changed_lines(), ["-old\r", "+new\r"])
        self.assertTrue(hunk.diff_text.endswith("\\ No newline at end of file\n"))

    def test_strictness(self) -> None:
        bad_inputs = {
            "garbage before first section": "hello\n" + SAMPLE,
            "unknown header": "diff --git a/x b/x\nweird header\n",
            "truncated hunk": "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1,2 +1,2 @@\n a\n",
            "too many lines": "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1 +1 @@\n-a\n+b\n+c\n",
            "unexpected body line": "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1 +1 @@\n?a\n",
        }
        for label, text in bad_inputs.items():
            with self.subTest(label):
                with self.assertRaises(DiffParseError):
                    parse_unified_diff(text)


class TestBuildPatch(unittest.TestCase):
    def test_keeps_only_given_hunks(self) -> None:
        core = parse_unified_diff(SAMPLE)[0]
        patch = build_patch(core.header, [core.hunks[1]])
        self.assertTrue(patch.startswith("diff --git a/src/core.go b/src/core.go\n"))
        self.assertIn("+++ b/src/core.go\n@@ -10,2 +10,3 @@", patch)
        self.assertNotIn("if x == nil", patch)
        # The rebuilt patch must itself parse back to the one hunk.
        (fd,) = parse_unified_diff(patch)
        self.assertEqual(fd.hunks, [core.hunks[1]])


if __name__ == "__main__":
    unittest.main()
