"""
Heuristics for classifying changes into Conventional Commit types.

The classifier infers the most appropriate commit type for each entry of a
change set from its path and the lines its hunks add or remove. It is a pure
function of its input and performs no I/O, so the rules can be tested with
plain tables. The first matching rule wins:

1. documentation paths -> ``docs``
2. test paths -> ``test``
3. build and configuration paths -> ``build``
4. diffs that only add new top-level symbols -> ``feat``
5. diffs that change existing logic -> ``fix`` when small and localized,
   ``refactor`` otherwise
6. everything else -> ``style`` for whitespace-only diffs, ``chore`` otherwise

Deciding the type of a whole commit is left to the message composer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Iterable, List

from qit.changes.model import ChangeEntry, ChangeKind


class CommitType(str, Enum):
    FEAT = "feat"
    FIX = "fix"
    DOCS = "docs"
    REFACTOR = "refactor"
    TEST = "test"
    CHORE = "chore"
    STYLE = "style"
    PERF = "perf"
    BUILD = "build"


@dataclass
class Classification:
    """Commit type proposed for one entry.

    ``entry`` refers back to the classified :class:`ChangeEntry`; the
    classification does not own it.
    """

    entry: ChangeEntry
    commit_type: CommitType
    confidence: float
    reason: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


DEFAULT_FIX_MAX_LINES = 20
FIX_MAX_HUNKS = 2

DOC_EXTENSIONS = {".md", ".rst", ".adoc", ".txt"}
DOC_NAMES = ("readme", "changelog", "license", "contributing", "authors")
DOC_DIRS = {"docs", "doc"}
CODE_EXTENSIONS = {
    ".py", ".go", ".rs", ".js", ".jsx", ".ts", ".tsx", ".java", ".kt",
    ".c", ".h", ".cc", ".cpp", ".hpp", ".cs", ".rb", ".php", ".swift",
    ".scala", ".sh",
}

TEST_DIRS = {"tests", "test", "__tests__", "spec"}
TEST_NAME = re.compile(r"(^test_|_test\.[^.]+$|\.test\.[^.]+$|\.spec\.[^.]+$|^conftest\.py$)")

BUILD_NAMES = {
    "dockerfile", "makefile", "pyproject.toml", "setup.py", "setup.cfg",
    "package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "poetry.lock", "pipfile", "pipfile.lock", "go.mod", "go.sum",
    "cargo.toml", "cargo.lock", "tox.ini", "manifest.in", "cmakelists.txt",
}
BUILD_DIRS = {".github", ".gitlab", ".circleci"}
BUILD_EXTENSIONS = {".toml", ".ini", ".cfg", ".yml", ".yaml", ".lock"}

SYMBOL_PATTERNS = [
    re.compile(p)
    for p in (
        r"^(async\s+)?def\s+\w+",
        r"^class\s+\w+",
        r"^func\s+",
        r"^(pub(\([\w:]+\))?\s+)?(async\s+)?fn\s+\w+",
        r"^(pub(\([\w:]+\))?\s+)?(struct|enum|trait|impl|mod)\s+\w+",
        r"^(export\s+)?(default\s+)?(async\s+)?function\b",
        r"^(export\s+)?(abstract\s+)?(class|interface|enum)\s+\w+",
        r"^type\s+\w+\s+(struct|interface)\b",
        r"^(public|private|protected)\s+.*\(",
    )
]


def _is_requirements(name: str) -> bool:
    return name.startswith("requirements") and name.endswith(".txt")


def _is_docs(path: PurePosixPath) -> bool:
    name = path.name.lower()
    if _is_requirements(name):
        return False
    if path.suffix.lower() in DOC_EXTENSIONS or name.startswith(DOC_NAMES):
        return True
    return any(part.lower() in DOC_DIRS for part in path.parts[:-1])


def _is_test(path: PurePosixPath) -> bool:
    if any(part.lower() in TEST_DIRS for part in path.parts[:-1]):
        return True
    return TEST_NAME.search(path.name.lower()) is not None


def _is_build(path: PurePosixPath) -> bool:
    name = path.name.lower()
    if name in BUILD_NAMES or _is_requirements(name) or name.startswith("dockerfile"):
        return True
    if any(part.lower() in BUILD_DIRS for part in path.parts[:-1]):
        return True
    return path.suffix.lower() in BUILD_EXTENSIONS


def _is_symbol(line: str) -> bool:
    return any(pattern.match(line) for pattern in SYMBOL_PATTERNS)


def _changed_lines(entry: ChangeEntry) -> List[str]:
    lines: List[str] = []
    for hunk in entry.hunks:
        lines.extend(hunk.changed_lines())
    return lines


def _whitespace_only(added: List[str], removed: List[str]) -> bool:
    squash = lambda lines: "".join(re.sub(r"\s", "", line) for line in lines)  # noqa: E731
    return squash(added) == squash(removed)


def classify_entry(entry: ChangeEntry, fix_max_lines: int = DEFAULT_FIX_MAX_LINES) -> Classification:
    """Classify a single change entry.

    Parameters
    ----------
    entry : ChangeEntry
        The entry to classify.
    fix_max_lines : int
        Largest number of changed lines still considered a localized fix.

    Returns
    -------
    Classification
        The proposed commit type with a confidence in ``[0, 1]``.
    """
    path = PurePosixPath(entry.path)

    if _is_docs(path):
        # Code living under docs/ is ambiguous: examples or doc tooling.
        if path.suffix.lower() in CODE_EXTENSIONS:
            return Classification(entry, CommitType.DOCS, 0.5, "code under a docs directory")
        return Classification(entry, CommitType.DOCS, 0.9, "documentation file")
    if _is_test(path):
        return Classification(entry, CommitType.TEST, 0.9, "test file")
    if _is_build(path):
        return Classification(entry, CommitType.BUILD, 0.85, "build or configuration file")

    changed = _changed_lines(entry)
    added = [line[1:] for line in changed if line.startswith("+")]
    removed = [line[1:] for line in changed if line.startswith("-")]
    new_symbols = [line for line in added if _is_symbol(line)]
    is_new_file = entry.kind is ChangeKind.ADDED

    if new_symbols and not removed:
        confidence = 0.85 if is_new_file else 0.8
        return Classification(entry, CommitType.FEAT, confidence, "adds new symbols")

    logic_change = (
        entry.kind in (ChangeKind.MODIFIED, ChangeKind.RENAMED, ChangeKind.COPIED)
        and bool(changed)
        and not _whitespace_only(added, removed)
    )
    if logic_change:
        if new_symbols:
            return Classification(entry, CommitType.REFACTOR, 0.4, "changes logic and adds symbols")
        localized = len(changed) <= fix_max_lines and len(entry.hunks) <= FIX_MAX_HUNKS
        if localized:
            return Classification(entry, CommitType.FIX, 0.7, "small localized change")
        return Classification(entry, CommitType.REFACTOR, 0.6, "broad change to existing logic")

    if changed and _whitespace_only(added, removed):
        return Classification(entry, CommitType.STYLE, 0.6, "whitespace only")
    return Classification(entry, CommitType.CHORE, 0.3, "no specific signal")


def classify(
    entries: Iterable[ChangeEntry],
    fix_max_lines: int = DEFAULT_FIX_MAX_LINES,
) -> List[Classification]:
    """Classify every entry of a change set, preserving order."""
    return [classify_entry(entry, fix_max_lines) for entry in entries]
