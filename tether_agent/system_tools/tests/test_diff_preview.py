import unittest

from tether_agent.system_tools.diff_preview import (
    diff_lines_to_text,
    edit_diff,
    new_file_lines,
    new_file_preview,
    unified_diff,
    unified_diff_lines,
)


class TestUnifiedDiff(unittest.TestCase):
    def test_changed_line_is_marked(self) -> None:
        lines = unified_diff_lines("a\nb\nc\n", "a\nB\nc\n", "src/x.txt")
        self.assertEqual(lines[:2], ["--- a/src/x.txt", "+++ b/src/x.txt"])
        self.assertIn("-b", lines)
        self.assertIn("+B", lines)
        self.assertTrue(any(line.startswith("@@") for line in lines))

    def test_identical_content_yields_headers_only(self) -> None:
        self.assertEqual(
            unified_diff("same\n", "same\n", "f.txt", color=False),
            "--- a/f.txt\n+++ b/f.txt",
        )

    def test_colored_output_carries_ansi_codes(self) -> None:
        out = unified_diff("a\n", "b\n", "f.txt", color=True)
        self.assertIn("\x1b[", out)
        self.assertIn("-a", out)
        self.assertIn("+b", out)

    def test_line_styles(self) -> None:
        text = diff_lines_to_text(["--- a/f", "+++ b/f", "@@ -1 +1 @@", "-old", "+new", " same"])
        styles = {text.plain[span.start : span.end]: str(span.style) for span in text.spans}
        self.assertEqual(styles["-old"], "red")
        self.assertEqual(styles["+new"], "green")
        self.assertEqual(styles["@@ -1 +1 @@"], "cyan")
        self.assertEqual(styles["--- a/f"], "bold")
        self.assertNotIn(" same", styles)


class TestNewFilePreview(unittest.TestCase):
    def test_every_line_is_an_addition(self) -> None:
        self.assertEqual(
            new_file_lines("one\ntwo\n", "n.txt"),
            ["--- /dev/null", "+++ b/n.txt", "+one", "+two"],
        )

    def test_plain_preview(self) -> None:
        self.assertEqual(new_file_preview("x", "n.txt", color=False), "--- /dev/null\n+++ b/n.txt\n+x")


class TestEditDiff(unittest.TestCase):
    def test_identical_content_has_no_hunks(self) -> None:
        self.assertEqual(edit_diff("a\n", "a\n"), "--- before\n+++ after")

    def test_separate_hunks_each_get_a_header(self) -> None:
        old = "\n".join(f"l{i}" for i in range(1, 31))
        new = old.replace("l2\n", "L2\n").replace("l28\n", "L28\n")

        out = edit_diff(old, new, context=1)
        self.assertIn("@@ line 1 @@", out)
        self.assertIn("@@ line 27 @@", out)
        self.assertEqual(out.count("@@ line"), 2)

    def test_insertion_only(self) -> None:
        out = edit_diff("a\nb\n", "a\nx\nb\n", context=0)
        self.assertEqual(out, "--- before\n+++ after\n@@ line 2 @@\n+x")


if __name__ == "__main__":
    unittest.main(verbosity=2)
