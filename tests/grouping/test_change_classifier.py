import unittest

from qit.changes.model import ChangeEntry, ChangeKind, Hunk
from qit.grouping.change_classifier import Classification, CommitType, classify, classify_entry


def entry(path, lines=(), kind=ChangeKind.MODIFIED, hunk_count=1):
    """Build an entry whose hunks carry the given ``+``/``-`` lines."""
    hunks = []
    if lines:
        per_hunk = max(1, len(lines) // hunk_count)
        for i in range(hunk_count):
            chunk = lines[i * per_hunk:] if i == hunk_count - 1 else lines[i * per_hunk:(i + 1) * per_hunk]
            old = sum(1 for line in chunk if line.startswith("-"))
            new = sum(1 for line in chunk if line.startswith("+"))
            text = f"@@ -1,{old} +1,{new} @@\n" + "".join(line + "\n" for line in chunk)
            hunks.append(Hunk(1, old, 1, new, text))
    old_path = "before/" + path if kind in (ChangeKind.RENAMED, ChangeKind.COPIED) else None
    return ChangeEntry(path=path, kind=kind, old_path=old_path, hunks=hunks)


class TestClassifyEntry(unittest.TestCase):
    def test_rules(self) -> None:
        cases = [
            ("readme", entry("docs/readme.md", ["+Usage"]), CommitType.DOCS, 0.9),
            ("changelog", entry("CHANGELOG", ["+1.0"]), CommitType.DOCS, 0.9),
            ("code in docs", entry("docs/conf.py", ["+x = 1"]), CommitType.DOCS, 0.5),
            ("test dir", entry("tests/test_api.py", ["+def test_x():"]), CommitType.TEST, 0.9),
            ("go test", entry("pkg/core_test.go", ["-a", "+b"]), CommitType.TEST, 0.9),
            ("manifest", entry("pyproject.toml", ["-a", "+b"]), CommitType.BUILD, 0.85),
            ("requirements", entry("requirements-dev.txt", ["+pytest"]), CommitType.BUILD, 0.85),
            ("ci", entry(".github/workflows/ci.yml", ["+on: push"]), CommitType.BUILD, 0.85),
            ("new symbol", entry("src/api.py", ["+def create():", "+    pass"]), CommitType.FEAT, 0.8),
            ("new file", entry("src/new.go", ["+func Run() {", "+}"], kind=ChangeKind.ADDED), CommitType.FEAT, 0.85),
            ("small fix", entry("src/core.go", ["-if x != nil {", "+if x == nil {"]), CommitType.FIX, 0.7),
            ("rewrite with symbols", entry("src/a.py", ["-old()", "+def new():", "+    pass"]), CommitType.REFACTOR, 0.4),
            ("whitespace", entry("src/a.py", ["-x=1", "+x = 1"]), CommitType.STYLE, 0.6),
            ("binary", entry("assets/logo.png", kind=ChangeKind.BINARY), CommitType.CHORE, 0.3),
            ("deleted", entry("src/old.py", ["-x = 1"], kind=ChangeKind.DELETED), CommitType.CHORE, 0.3),
        ]
        for label, change, expected_type, expected_confidence in cases:
            with self.subTest(label):
                result = classify_entry(change)
                self.assertIs(result.entry, change)
                self.assertEqual(result.commit_type, expected_type)
                self.assertAlmostEqual(result.confidence, expected_confidence)
                self.assertTrue(result.reason)

    def test_large_change_is_refactor(self) -> None:
        lines = []
        for i in range(15):
            lines += [f"-value = compute({i})", f"+value = compute_fast({i})"]
        result = classify_entry(entry("src/engine.py", lines))
        self.assertEqual(result.commit_type, CommitType.REFACTOR)
        self.assertAlmostEqual(result.confidence, 0.6)

    def test_many_hunks_is_refactor(self) -> None:
        lines = ["-a = 1", "+a = 2", "-b = 1", "+b = 2", "-c = 1", "+c = 2"]
        result = classify_entry(entry("src/engine.py", lines, hunk_count=3))
        self.assertEqual(result.commit_type, CommitType.REFACTOR)

    def test_fix_threshold_is_configurable(self) -> None:
        change = entry("src/core.go", ["-a", "+b", "-c", "+d"])
        self.assertEqual(classify_entry(change, fix_max_lines=4).commit_type, CommitType.FIX)
        self.assertEqual(classify_entry(change, fix_max_lines=3).commit_type, CommitType.REFACTOR)

    def test_deterministic(self) -> None:
        change = entry("src/core.go", ["-if x != nil {", "+if x == nil {"])
        self.assertEqual(classify_entry(change), classify_entry(change))


class TestClassify(unittest.TestCase):
    def test_preserves_order(self) -> None:
        entries = [entry("docs/readme.md", ["+x"]), entry("src/core.go", ["-a", "+b"])]
        results = classify(entries)
        self.assertEqual([r.entry.path for r in results], ["docs/readme.md", "src/core.go"])
        self.assertEqual([r.commit_type for r in results], [CommitType.DOCS, CommitType.FIX])

    def test_new_readme_next_to_small_fix(self) -> None:
        readme = entry("docs/readme.md", ["+# Title", "+Usage"], kind=ChangeKind.ADDED)
        core = entry("src/core.go", ["-if x != nil {", "+if x == nil {"])
        docs, fix = classify([readme, core])
        self.assertEqual((docs.commit_type, fix.commit_type), (CommitType.DOCS, CommitType.FIX))
        self.assertGreaterEqual(docs.confidence, 0.8)
        self.assertGreaterEqual(fix.confidence, 0.6)

    def test_confidence_bounds(self) -> None:
        with self.assertRaises(ValueError):
            Classification(entry("a.py"), CommitType.FIX, 1.5)


if __name__ == "__main__":
    unittest.main()
